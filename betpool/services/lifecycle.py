"""
Match lifecycle: decides whether a match still accepts predictions and moves
matches from scheduled to live once their kickoff has passed.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from ..models.match import Match, MatchStatus
from ..timeutils import utcnow

logger = logging.getLogger(__name__)


def eligible_for_betting(match: Match, now: datetime) -> bool:
    """True iff the match is still scheduled and has not kicked off."""
    return match.status == MatchStatus.SCHEDULED.value and now < match.kickoff


def betting_closed_reason(match: Match, now: datetime) -> Optional[str]:
    """Explain why a match no longer accepts predictions, or None if it does."""
    if match.status != MatchStatus.SCHEDULED.value:
        return f"Match {match.id} is {match.status}, betting is closed"
    if now >= match.kickoff:
        return f"Match {match.id} has already kicked off"
    return None


def eligible_match_clause(match_id: int, now: datetime):
    """SQL condition equivalent to eligible_for_betting for one match."""
    return (
        (Match.id == match_id)
        & (Match.status == MatchStatus.SCHEDULED.value)
        & (Match.kickoff > now)
    )


def advance_match_statuses(db: Session, now: Optional[datetime] = None) -> int:
    """
    Mark scheduled matches whose kickoff has passed as live.

    Returns the number of matches updated.
    """
    now = now or utcnow()
    statement = (
        update(Match)
        .where(Match.status == MatchStatus.SCHEDULED.value, Match.kickoff <= now)
        .values(status=MatchStatus.LIVE.value, updated_at=now)
    )
    try:
        result = db.connection().execute(statement)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if result.rowcount:
        logger.info("Moved %d matches to live", result.rowcount)
    return result.rowcount
