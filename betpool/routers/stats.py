from typing import Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..config import LEADERBOARD_DEFAULT_LIMIT, RECENT_PERFORMANCE_LIMIT
from ..database import get_session
from ..dependencies import get_stats_cache, require_user
from ..models.user import User
from ..services import stats as stats_service
from ..services.cache import AggregateCache

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/me")
async def my_stats(
    competition_id: Optional[int] = None,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session),
    cache: AggregateCache = Depends(get_stats_cache)
):
    return stats_service.get_user_stats(db, current_user.id, competition_id, cache=cache)


@router.get("/me/recent")
async def my_recent_performance(
    limit: int = RECENT_PERFORMANCE_LIMIT,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return stats_service.get_recent_performance(db, current_user.id, limit)


@router.get("/users/{user_id}")
async def user_stats(
    user_id: int,
    competition_id: Optional[int] = None,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session),
    cache: AggregateCache = Depends(get_stats_cache)
):
    return stats_service.get_user_stats(db, user_id, competition_id, cache=cache)


@router.get("/leaderboard")
async def leaderboard(
    competition_id: Optional[int] = None,
    sort: str = "points",
    limit: int = LEADERBOARD_DEFAULT_LIMIT,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session),
    cache: AggregateCache = Depends(get_stats_cache)
):
    return stats_service.get_leaderboard(db, competition_id, sort, limit, cache=cache)


@router.get("/streaks")
async def streak_board(
    kind: str = "points",
    limit: int = LEADERBOARD_DEFAULT_LIMIT,
    competition_id: Optional[int] = None,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session),
    cache: AggregateCache = Depends(get_stats_cache)
):
    return stats_service.get_streak_board(db, kind, limit, competition_id, cache=cache)
