"""
Maintenance jobs for a running pool, meant for cron or a one-off shell.

    python -m betpool.maintenance advance
    python -m betpool.maintenance close-due
    python -m betpool.maintenance rescore
"""
import argparse
import logging
import sys
from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from .config import DATABASE_URL, LOG_JSON, LOG_LEVEL
from .database import Database
from .logging_config import setup_logging
from .models.match import Match, MatchStatus
from .services.cache import ensure_data_version
from .services.competitions import close_due_competitions
from .services.lifecycle import advance_match_statuses
from .services.scoring import rescore_match
from .timeutils import utcnow

logger = logging.getLogger(__name__)

COMMANDS = ("advance", "close-due", "rescore")


def rescore_finished_matches(db: Session) -> int:
    """Recompute points for every finished match; returns predictions scored."""
    match_ids = db.exec(
        select(Match.id)
        .where(
            Match.status == MatchStatus.FINISHED.value,
            Match.home_score.is_not(None),
            Match.away_score.is_not(None)
        )
        .order_by(Match.kickoff, Match.id)
    ).all()

    scored = 0
    for match_id in match_ids:
        scored += rescore_match(db, match_id)
    logger.info("Rescored %d predictions on %d finished matches", scored, len(match_ids))
    return scored


def run_command(db: Session, command: str, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    if command == "advance":
        advanced = advance_match_statuses(db, now)
        return f"Moved {advanced} matches to live"
    if command == "close-due":
        closed = close_due_competitions(db, now)
        names = ", ".join(c.name for c in closed) or "none"
        return f"Closed {len(closed)} competitions: {names}"
    if command == "rescore":
        scored = rescore_finished_matches(db)
        return f"Rescored {scored} predictions"
    raise ValueError(f"Unknown command: {command}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="betpool maintenance jobs")
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--database-url", default=DATABASE_URL)
    args = parser.parse_args(argv)

    setup_logging(LOG_LEVEL, json_output=LOG_JSON)

    database = Database(args.database_url).open()
    try:
        database.create_db_and_tables()
        with database.session() as db:
            ensure_data_version(db)
            print(run_command(db, args.command))
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
