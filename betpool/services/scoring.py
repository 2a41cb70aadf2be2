import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Session, select

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.match import Match, MatchStatus
from ..models.prediction import Prediction
from ..timeutils import utcnow
from .cache import bump_data_version

logger = logging.getLogger(__name__)

EXACT_SCORE_POINTS = 3
CORRECT_OUTCOME_POINTS = 1


def validate_score(value, field: str) -> int:
    """Scores must be non-negative integers. Booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


class Outcome(str, Enum):
    HOME_WIN = "home_win"
    AWAY_WIN = "away_win"
    DRAW = "draw"


def outcome(home: int, away: int) -> Outcome:
    if home > away:
        return Outcome.HOME_WIN
    if home < away:
        return Outcome.AWAY_WIN
    return Outcome.DRAW


def score(predicted_home: int, predicted_away: int, actual_home: int, actual_away: int) -> int:
    """
    Points for one prediction.

    Scoring:
    - Exact score: 3 points
    - Correct outcome (home win / away win / draw) with a different score: 1 point
    - Anything else: 0 points
    """
    if predicted_home == actual_home and predicted_away == actual_away:
        return EXACT_SCORE_POINTS
    if outcome(predicted_home, predicted_away) == outcome(actual_home, actual_away):
        return CORRECT_OUTCOME_POINTS
    return 0


def result_label(points: int) -> str:
    if points == EXACT_SCORE_POINTS:
        return "exact"
    if points == CORRECT_OUTCOME_POINTS:
        return "correct"
    return "wrong"


def _apply_points(db: Session, match: Match) -> int:
    """Overwrite points on every prediction of a finished match."""
    statement = select(Prediction).where(Prediction.match_id == match.id)
    predictions = db.exec(statement).all()

    for prediction in predictions:
        prediction.points = score(
            prediction.predicted_home,
            prediction.predicted_away,
            match.home_score,
            match.away_score
        )
        db.add(prediction)

    return len(predictions)


def record_final_score(
    db: Session,
    match_id: int,
    home_score,
    away_score,
    now: Optional[datetime] = None
) -> int:
    """
    Store a match's final score, mark it finished and score its predictions.

    Also used for corrections: a second call with a different score overwrites
    the points of every prediction on the match. Returns the number of
    predictions scored.
    """
    home_score = validate_score(home_score, "home_score")
    away_score = validate_score(away_score, "away_score")

    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")

    now = now or utcnow()
    if match.status == MatchStatus.SCHEDULED.value and now < match.kickoff:
        raise ConflictError(f"Match {match_id} has not kicked off yet")

    previous = (match.home_score, match.away_score)
    try:
        match.home_score = home_score
        match.away_score = away_score
        match.status = MatchStatus.FINISHED.value
        match.updated_at = now
        db.add(match)
        scored = _apply_points(db, match)
        bump_data_version(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if previous != (None, None) and previous != (home_score, away_score):
        logger.info(
            "Corrected match %s from %s-%s to %d-%d, rescored %d predictions",
            match_id, previous[0], previous[1], home_score, away_score, scored
        )
    else:
        logger.info(
            "Match %s finished %d-%d, scored %d predictions",
            match_id, home_score, away_score, scored
        )
    return scored


def rescore_match(db: Session, match_id: int) -> int:
    """Re-apply scoring from the stored final score."""
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")
    if match.status != MatchStatus.FINISHED.value or match.home_score is None or match.away_score is None:
        raise ConflictError(f"Match {match_id} has no final score")

    try:
        scored = _apply_points(db, match)
        bump_data_version(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Rescored %d predictions for match %s", scored, match_id)
    return scored
