"""
Bet ledger: one prediction per (user, match), writable only while the match is
open for betting.

The eligibility check is part of the SQL write itself, so a match that kicks
off (or is moved to live) between reading it and writing the prediction can
never receive the write.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Integer, exists, insert, literal, update
from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import (
    AuthorizationError,
    ConflictError,
    EligibilityError,
    NotFoundError,
)
from ..models.match import Match, MatchStatus
from ..models.prediction import Prediction
from ..models.user import User
from ..timeutils import utcnow
from .cache import bump_data_version
from .lifecycle import betting_closed_reason, eligible_for_betting, eligible_match_clause
from .scoring import score, validate_score

logger = logging.getLogger(__name__)


def _authorize(actor: User, user_id: int) -> None:
    if actor.id != user_id and not actor.is_admin:
        raise AuthorizationError("You can only change your own predictions")


def _find(db: Session, user_id: int, match_id: int) -> Optional[Prediction]:
    statement = select(Prediction).where(
        Prediction.user_id == user_id,
        Prediction.match_id == match_id
    )
    return db.exec(statement).first()


def _conditional_update(db: Session, user_id, match_id, home, away, now) -> int:
    statement = (
        update(Prediction)
        .where(
            Prediction.user_id == user_id,
            Prediction.match_id == match_id,
            exists(sa_select(Match.id).where(eligible_match_clause(match_id, now)))
        )
        .values(predicted_home=home, predicted_away=away, updated_at=now)
    )
    return db.connection().execute(statement).rowcount


def _conditional_insert(db: Session, user_id, match_id, home, away, now) -> int:
    source = sa_select(
        literal(user_id, Integer),
        literal(match_id, Integer),
        literal(home, Integer),
        literal(away, Integer),
        literal(now, DateTime),
        literal(now, DateTime),
    ).where(eligible_match_clause(match_id, now))
    statement = insert(Prediction).from_select(
        ["user_id", "match_id", "predicted_home", "predicted_away", "created_at", "updated_at"],
        source
    )
    return db.connection().execute(statement).rowcount


def place_or_update(
    db: Session,
    actor: User,
    user_id: int,
    match_id: int,
    predicted_home,
    predicted_away,
    now: Optional[datetime] = None
) -> Prediction:
    """
    Create the user's prediction for a match, or overwrite its scores.

    Raises ValidationError, AuthorizationError, NotFoundError, EligibilityError
    or ConflictError. Nothing is committed when an error is raised.
    """
    home = validate_score(predicted_home, "predicted_home")
    away = validate_score(predicted_away, "predicted_away")
    _authorize(actor, user_id)

    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")

    now = now or utcnow()
    reason = betting_closed_reason(match, now)
    if reason:
        logger.info("Rejected prediction from user %s: %s", user_id, reason)
        raise EligibilityError(reason)

    try:
        if _find(db, user_id, match_id):
            written = _conditional_update(db, user_id, match_id, home, away, now)
        else:
            try:
                written = _conditional_insert(db, user_id, match_id, home, away, now)
            except IntegrityError:
                # Another request created the row first; overwrite its scores
                db.rollback()
                written = _conditional_update(db, user_id, match_id, home, away, now)
                if not written and _find(db, user_id, match_id) is None:
                    raise ConflictError(
                        f"Prediction for match {match_id} changed concurrently, try again"
                    )
        if not written:
            db.rollback()
            raise EligibilityError(f"Match {match_id} is no longer open for betting")
        db.commit()
    except Exception:
        db.rollback()
        raise

    prediction = _find(db, user_id, match_id)
    db.refresh(prediction)
    logger.debug(
        "User %s predicted %d-%d for match %s", user_id, home, away, match_id
    )
    return prediction


def get_prediction(db: Session, user_id: int, match_id: int) -> Prediction:
    prediction = _find(db, user_id, match_id)
    if not prediction:
        raise NotFoundError(f"No prediction from user {user_id} for match {match_id}")
    return prediction


def delete_prediction(db: Session, actor: User, prediction_id: int) -> None:
    """Admin-only moderation delete. Unconditional."""
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")

    prediction = db.get(Prediction, prediction_id)
    if not prediction:
        raise NotFoundError(f"Prediction {prediction_id} not found")

    try:
        db.delete(prediction)
        bump_data_version(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin %s deleted prediction %s", actor.id, prediction_id)


def admin_update_prediction(
    db: Session,
    actor: User,
    prediction_id: int,
    predicted_home,
    predicted_away,
    now: Optional[datetime] = None
) -> Prediction:
    """
    Admin-only correction of any prediction, whatever the match status.

    On a finished match the points are recomputed from the stored final score.
    """
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    home = validate_score(predicted_home, "predicted_home")
    away = validate_score(predicted_away, "predicted_away")

    prediction = db.get(Prediction, prediction_id)
    if not prediction:
        raise NotFoundError(f"Prediction {prediction_id} not found")
    match = db.get(Match, prediction.match_id)

    try:
        prediction.predicted_home = home
        prediction.predicted_away = away
        prediction.updated_at = now or utcnow()
        if match.status == MatchStatus.FINISHED.value and match.home_score is not None:
            prediction.points = score(home, away, match.home_score, match.away_score)
        db.add(prediction)
        bump_data_version(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(prediction)
    logger.info(
        "Admin %s set prediction %s to %d-%d (points=%s)",
        actor.id, prediction_id, home, away, prediction.points
    )
    return prediction


def list_user_predictions(db: Session, user_id: int) -> List[Prediction]:
    statement = (
        select(Prediction)
        .join(Match, Prediction.match_id == Match.id)
        .where(Prediction.user_id == user_id)
        .order_by(Match.kickoff, Match.id)
    )
    return list(db.exec(statement).all())


def list_match_predictions(
    db: Session,
    match_id: int,
    viewer: User,
    now: Optional[datetime] = None
) -> List[dict]:
    """
    Every prediction on a match, oldest first.

    While the match is still open for betting, scores of other users are
    hidden so nobody can copy them. Admins always see every score.
    """
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")

    hidden = eligible_for_betting(match, now or utcnow())
    statement = (
        select(Prediction, User)
        .join(User, Prediction.user_id == User.id)
        .where(Prediction.match_id == match_id)
        .order_by(Prediction.created_at, Prediction.id)
    )

    bets = []
    for prediction, user in db.exec(statement).all():
        visible = not hidden or user.id == viewer.id or viewer.is_admin
        bets.append({
            "id": prediction.id,
            "user_id": user.id,
            "display_name": user.display_name,
            "predicted_home": prediction.predicted_home if visible else None,
            "predicted_away": prediction.predicted_away if visible else None,
            "points": prediction.points,
            "created_at": prediction.created_at,
        })
    return bets
