"""
Read-side queries: user stats, leaderboards, streak boards and standings.

All of them start from compute_aggregates (through the cache when one is
given), so every number shown anywhere comes from the same derivation. A
user's rank in get_user_stats is their position on the matching points board.
"""

from typing import List, Optional

from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from ..config import (
    AVERAGE_MIN_PREDICTIONS,
    LEADERBOARD_DEFAULT_LIMIT,
    RECENT_PERFORMANCE_LIMIT,
)
from ..errors import NotFoundError, ValidationError
from ..models.competition import Competition
from ..models.match import Match, MatchStatus
from ..models.prediction import Prediction
from ..models.team import Team
from ..models.user import User
from .cache import AggregateCache, current_data_version
from .rankings import (
    SORT_KEYS,
    UserAggregate,
    compute_aggregates,
    find_user,
    rank_aggregates,
)
from .scoring import result_label

STREAK_KINDS = ("points", "exact")


def get_aggregates(
    db: Session,
    competition_id: Optional[int] = None,
    cache: Optional[AggregateCache] = None
) -> List[UserAggregate]:
    if cache is None:
        return compute_aggregates(db, competition_id)
    version = current_data_version(db)
    return list(cache.get_or_compute(("aggregates", competition_id),
                                     lambda: compute_aggregates(db, competition_id),
                                     version=version))


def get_ranking(
    db: Session,
    competition_id: Optional[int] = None,
    cache: Optional[AggregateCache] = None
) -> List[UserAggregate]:
    return rank_aggregates(get_aggregates(db, competition_id, cache), "points")


def _require_competition(db: Session, competition_id: int) -> Competition:
    competition = db.get(Competition, competition_id)
    if not competition:
        raise NotFoundError(f"Competition {competition_id} not found")
    return competition


def _points_board(aggregates: List[UserAggregate], competition_id: Optional[int]) -> List[UserAggregate]:
    # Competition boards list every member; the global board only users who played
    if competition_id is not None:
        return aggregates
    return [a for a in aggregates if a.total_predictions > 0]


def get_user_stats(
    db: Session,
    user_id: int,
    competition_id: Optional[int] = None,
    cache: Optional[AggregateCache] = None
) -> dict:
    """
    Stats and rank for one user, globally or inside one competition.

    The rank is the user's position on the points leaderboard of the same
    scope. A user who is not on that board gets a null rank; a user outside
    the ranking altogether also gets zeroed stats.
    """
    if competition_id is not None:
        _require_competition(db, competition_id)

    aggregates = get_aggregates(db, competition_id, cache)
    board = rank_aggregates(_points_board(aggregates, competition_id), "points")
    aggregate = find_user(board, user_id) or find_user(aggregates, user_id)
    if aggregate is None:
        user = db.get(User, user_id)
        aggregate = UserAggregate(user_id=user_id, display_name=user.display_name if user else "")
    return aggregate.to_dict()


def get_leaderboard(
    db: Session,
    competition_id: Optional[int] = None,
    sort_key: str = "points",
    limit: int = LEADERBOARD_DEFAULT_LIMIT,
    cache: Optional[AggregateCache] = None
) -> List[dict]:
    """
    Top users by total points or by average points.

    The global points board leaves out users without any scored prediction;
    the average board needs AVERAGE_MIN_PREDICTIONS scored predictions.
    """
    if sort_key not in SORT_KEYS:
        raise ValidationError(f"sort must be one of {', '.join(SORT_KEYS)}")
    if limit < 1:
        raise ValidationError("limit must be positive")
    if competition_id is not None:
        _require_competition(db, competition_id)

    aggregates = get_aggregates(db, competition_id, cache)
    if sort_key == "average":
        aggregates = [a for a in aggregates if a.total_predictions >= AVERAGE_MIN_PREDICTIONS]
    else:
        aggregates = _points_board(aggregates, competition_id)

    ranked = rank_aggregates(aggregates, sort_key)
    return [a.to_dict() for a in ranked[:limit]]


def get_streak_board(
    db: Session,
    kind: str = "points",
    limit: int = LEADERBOARD_DEFAULT_LIMIT,
    competition_id: Optional[int] = None,
    cache: Optional[AggregateCache] = None
) -> List[dict]:
    """Longest scoring (or exact-score) streaks, longest first."""
    if kind not in STREAK_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(STREAK_KINDS)}")
    if limit < 1:
        raise ValidationError("limit must be positive")

    entries = []
    for aggregate in get_aggregates(db, competition_id, cache):
        if kind == "points":
            length, start, end = (aggregate.longest_streak,
                                  aggregate.longest_streak_start,
                                  aggregate.longest_streak_end)
        else:
            length, start, end = (aggregate.exact_streak,
                                  aggregate.exact_streak_start,
                                  aggregate.exact_streak_end)
        if length > 0:
            entries.append({
                "user_id": aggregate.user_id,
                "display_name": aggregate.display_name,
                "streak_length": length,
                "anchor_start": start,
                "anchor_end": end,
            })

    entries.sort(key=lambda e: -e["streak_length"])
    for position, entry in enumerate(entries):
        entry["rank"] = position + 1
    return entries[:limit]


def get_competition_standings(
    db: Session,
    competition_id: int,
    cache: Optional[AggregateCache] = None
) -> List[dict]:
    """Every member of a competition, ranked by points."""
    _require_competition(db, competition_id)
    return [a.to_dict() for a in get_ranking(db, competition_id, cache)]


def get_recent_performance(db: Session, user_id: int, limit: int = RECENT_PERFORMANCE_LIMIT) -> List[dict]:
    """The user's last finished matches with their prediction and points, newest first."""
    if limit < 1:
        raise ValidationError("limit must be positive")

    home_team = aliased(Team)
    away_team = aliased(Team)
    statement = (
        select(Prediction, Match, home_team.name, away_team.name)
        .join(Match, Prediction.match_id == Match.id)
        .join(home_team, Match.home_team_id == home_team.id)
        .join(away_team, Match.away_team_id == away_team.id)
        .where(
            Prediction.user_id == user_id,
            Match.status == MatchStatus.FINISHED.value,
            Prediction.points.is_not(None)
        )
        .order_by(Match.kickoff.desc(), Match.id.desc())
        .limit(limit)
    )

    return [
        {
            "match_id": match.id,
            "kickoff": match.kickoff,
            "home_team": home_name,
            "away_team": away_name,
            "actual_score": f"{match.home_score}-{match.away_score}",
            "predicted_score": f"{prediction.predicted_home}-{prediction.predicted_away}",
            "points": prediction.points,
            "result": result_label(prediction.points),
        }
        for prediction, match, home_name, away_name in db.exec(statement).all()
    ]
