from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select

from ..database import get_session
from ..dependencies import get_stats_cache, require_user
from ..models.competition import Competition
from ..models.user import User
from ..services import competitions as competition_service
from ..services.cache import AggregateCache
from ..services.stats import get_competition_standings
from ..timeutils import utcnow

router = APIRouter(prefix="/api/competitions", tags=["competitions"])


def competition_payload(competition: Competition, now) -> dict:
    return {
        "id": competition.id,
        "name": competition.name,
        "start_date": competition.start_date,
        "end_date": competition.end_date,
        "status": competition.status,
        "is_active": competition_service.is_active(competition, now),
        "winner_id": competition.winner_id,
        "last_place_id": competition.last_place_id
    }


@router.get("")
async def list_competitions(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    competitions = db.exec(
        select(Competition).order_by(Competition.start_date.desc(), Competition.id.desc())
    ).all()
    now = utcnow()
    return [competition_payload(c, now) for c in competitions]


@router.get("/palmares")
async def palmares(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    """Past and running competitions with their winners."""
    return competition_service.competition_summaries(db)


@router.post("/{competition_id}/join", status_code=status.HTTP_201_CREATED)
async def join_competition(
    competition_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    member = competition_service.join_competition(db, competition_id, current_user.id)
    return {
        "competition_id": member.competition_id,
        "user_id": member.user_id,
        "joined_at": member.joined_at
    }


@router.get("/{competition_id}/standings")
async def standings(
    competition_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session),
    cache: AggregateCache = Depends(get_stats_cache)
):
    return get_competition_standings(db, competition_id, cache=cache)
