import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func

from ..errors import ConflictError, NotFoundError
from ..models.competition import Competition, CompetitionMember, CompetitionStatus
from ..models.match import Match
from ..models.prediction import Prediction
from ..models.user import User
from ..timeutils import utcnow
from .cache import bump_data_version
from .rankings import compute_aggregates, rank_aggregates

logger = logging.getLogger(__name__)


def is_active(competition: Competition, now: datetime) -> bool:
    return competition.start_date <= now <= competition.end_date


def _get_competition(db: Session, competition_id: int) -> Competition:
    competition = db.get(Competition, competition_id)
    if not competition:
        raise NotFoundError(f"Competition {competition_id} not found")
    return competition


def join_competition(db: Session, competition_id: int, user_id: int) -> CompetitionMember:
    competition = _get_competition(db, competition_id)
    if competition.status == CompetitionStatus.FINISHED.value:
        raise ConflictError(f"Competition {competition_id} is already finished")

    member = CompetitionMember(competition_id=competition_id, user_id=user_id)
    try:
        db.add(member)
        bump_data_version(db)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"User {user_id} already joined competition {competition_id}")
    except Exception:
        db.rollback()
        raise

    db.refresh(member)
    logger.info("User %s joined competition %s", user_id, competition_id)
    return member


def close_competition(db: Session, competition_id: int, now: Optional[datetime] = None) -> Competition:
    """
    Record winner and last place of an ended competition, exactly once.

    Members are ranked on the competition's finished matches; ties keep join
    order. Closing an already closed competition raises ConflictError and
    leaves the recorded result untouched.
    """
    competition = _get_competition(db, competition_id)
    now = now or utcnow()

    if competition.status == CompetitionStatus.FINISHED.value:
        raise ConflictError(f"Competition {competition_id} is already closed")
    if now < competition.end_date:
        raise ConflictError(f"Competition {competition_id} has not ended yet")

    ranking = rank_aggregates(compute_aggregates(db, competition_id), "points")
    winner_id = ranking[0].user_id if ranking else None
    last_place_id = ranking[-1].user_id if ranking else None

    statement = (
        update(Competition)
        .where(
            Competition.id == competition_id,
            Competition.status != CompetitionStatus.FINISHED.value
        )
        .values(
            status=CompetitionStatus.FINISHED.value,
            winner_id=winner_id,
            last_place_id=last_place_id
        )
    )
    try:
        closed = db.connection().execute(statement).rowcount
        if not closed:
            raise ConflictError(f"Competition {competition_id} is already closed")
        bump_data_version(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(competition)
    logger.info(
        "Closed competition %s: winner=%s last_place=%s (%d members)",
        competition_id, winner_id, last_place_id, len(ranking)
    )
    return competition


def close_due_competitions(db: Session, now: Optional[datetime] = None) -> List[Competition]:
    """Close every active competition whose end date has passed."""
    now = now or utcnow()
    statement = select(Competition.id).where(
        Competition.status != CompetitionStatus.FINISHED.value,
        Competition.end_date <= now
    ).order_by(Competition.end_date, Competition.id)

    closed = []
    for competition_id in db.exec(statement).all():
        try:
            closed.append(close_competition(db, competition_id, now))
        except ConflictError:
            # Closed by a concurrent request in the meantime
            logger.info("Competition %s was closed concurrently", competition_id)
    return closed


def competition_summaries(db: Session, now: Optional[datetime] = None) -> List[dict]:
    """
    Every competition, newest first, with its winner, the winner's points in
    that competition, participant count and match count.
    """
    now = now or utcnow()
    competitions = db.exec(
        select(Competition).order_by(Competition.start_date.desc(), Competition.id.desc())
    ).all()

    participants = dict(db.exec(
        select(CompetitionMember.competition_id, func.count(CompetitionMember.id))
        .group_by(CompetitionMember.competition_id)
    ).all())
    match_counts = dict(db.exec(
        select(Match.competition_id, func.count(Match.id))
        .where(Match.competition_id.is_not(None))
        .group_by(Match.competition_id)
    ).all())

    summaries = []
    for competition in competitions:
        winner = db.get(User, competition.winner_id) if competition.winner_id else None
        winner_points = 0
        if winner:
            winner_points = db.exec(
                select(func.coalesce(func.sum(Prediction.points), 0))
                .join(Match, Prediction.match_id == Match.id)
                .where(
                    Prediction.user_id == winner.id,
                    Match.competition_id == competition.id
                )
            ).one()

        summaries.append({
            "id": competition.id,
            "name": competition.name,
            "start_date": competition.start_date,
            "end_date": competition.end_date,
            "status": competition.status,
            "is_active": is_active(competition, now),
            "winner_id": winner.id if winner else None,
            "winner_name": winner.display_name if winner else None,
            "winner_points": winner_points,
            "last_place_id": competition.last_place_id,
            "participant_count": participants.get(competition.id, 0),
            "game_count": match_counts.get(competition.id, 0),
        })
    return summaries
