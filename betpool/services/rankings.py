"""
Ranking aggregation.

Everything here that produces a UserAggregate is a pure function of scored
predictions; the database helpers only load the inputs.
"""

from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlmodel import Session, select, func

from ..models.competition import Competition, CompetitionMember, CompetitionStatus
from ..models.match import Match, MatchStatus
from ..models.prediction import Prediction
from ..models.user import User
from .scoring import CORRECT_OUTCOME_POINTS, EXACT_SCORE_POINTS
from .streaks import ScoredPick, analyze_streaks

SORT_KEYS = ("points", "average")


@dataclass(frozen=True)
class RankedUser:
    """Identity of a user taking part in a ranking, in tie-break order."""
    user_id: int
    display_name: str


@dataclass(frozen=True)
class UserAggregate:
    user_id: int
    display_name: str
    total_predictions: int = 0
    total_points: int = 0
    accuracy: float = 0.0
    average_points: float = 0.0
    exact_count: int = 0
    correct_count: int = 0
    longest_streak: int = 0
    longest_streak_start: Optional[datetime] = None
    longest_streak_end: Optional[datetime] = None
    exact_streak: int = 0
    exact_streak_start: Optional[datetime] = None
    exact_streak_end: Optional[datetime] = None
    competitions_won: int = 0
    rank: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "rank": self.rank,
            "total_predictions": self.total_predictions,
            "total_points": self.total_points,
            "accuracy": self.accuracy,
            "average_points": self.average_points,
            "exact_count": self.exact_count,
            "correct_count": self.correct_count,
            "longest_streak": self.longest_streak,
            "longest_streak_start": self.longest_streak_start,
            "longest_streak_end": self.longest_streak_end,
            "exact_streak": self.exact_streak,
            "exact_streak_start": self.exact_streak_start,
            "exact_streak_end": self.exact_streak_end,
            "competitions_won": self.competitions_won,
        }


def aggregate_user(user: RankedUser, picks: Sequence[ScoredPick], competitions_won: int = 0) -> UserAggregate:
    """Totals, accuracy, average and streaks for one user's chronological picks."""
    total_predictions = len(picks)
    total_points = sum(p.points for p in picks)
    exact_count = sum(1 for p in picks if p.points == EXACT_SCORE_POINTS)
    correct_count = sum(1 for p in picks if p.points == CORRECT_OUTCOME_POINTS)

    if total_predictions:
        accuracy = round(total_points / (total_predictions * EXACT_SCORE_POINTS) * 100, 2)
        average_points = round(total_points / total_predictions, 2)
    else:
        accuracy = 0.0
        average_points = 0.0

    streaks = analyze_streaks(picks)
    return UserAggregate(
        user_id=user.user_id,
        display_name=user.display_name,
        total_predictions=total_predictions,
        total_points=total_points,
        accuracy=accuracy,
        average_points=average_points,
        exact_count=exact_count,
        correct_count=correct_count,
        longest_streak=streaks.points.length,
        longest_streak_start=streaks.points.start,
        longest_streak_end=streaks.points.end,
        exact_streak=streaks.exact.length,
        exact_streak_start=streaks.exact.start,
        exact_streak_end=streaks.exact.end,
        competitions_won=competitions_won,
    )


def build_aggregates(
    users: Sequence[RankedUser],
    scored: Iterable[ScoredPick],
    wins: Optional[Dict[int, int]] = None
) -> List[UserAggregate]:
    """
    One aggregate per user, in the order users were given.

    Picks belonging to users outside `users` are ignored. `scored` must be
    ordered by kickoff for the streaks to be meaningful.
    """
    wins = wins or {}
    picks_by_user: Dict[int, List[ScoredPick]] = defaultdict(list)
    for pick in scored:
        picks_by_user[pick.user_id].append(pick)

    return [
        aggregate_user(user, picks_by_user.get(user.user_id, []), wins.get(user.user_id, 0))
        for user in users
    ]


def rank_aggregates(aggregates: Sequence[UserAggregate], sort_key: str = "points") -> List[UserAggregate]:
    """
    Sort descending by total points (or average points) and number the result.

    The rank is 1 + position in the sorted list: users with equal totals get
    consecutive ranks, in the order they were given.
    """
    if sort_key == "points":
        ordered = sorted(aggregates, key=lambda a: -a.total_points)
    elif sort_key == "average":
        ordered = sorted(aggregates, key=lambda a: -a.average_points)
    else:
        raise ValueError(f"Unknown sort key: {sort_key}")

    return [replace(aggregate, rank=position + 1) for position, aggregate in enumerate(ordered)]


def find_user(ranking: Sequence[UserAggregate], user_id: int) -> Optional[UserAggregate]:
    return next((a for a in ranking if a.user_id == user_id), None)


# Loaders

def load_scored_predictions(db: Session, competition_id: Optional[int] = None) -> List[ScoredPick]:
    """Scored predictions on finished matches, ordered by kickoff."""
    statement = (
        select(Prediction.user_id, Prediction.match_id, Match.kickoff, Prediction.points)
        .join(Match, Prediction.match_id == Match.id)
        .where(
            Match.status == MatchStatus.FINISHED.value,
            Prediction.points.is_not(None)
        )
        .order_by(Match.kickoff, Match.id, Prediction.id)
    )
    if competition_id is not None:
        statement = statement.where(Match.competition_id == competition_id)

    return [
        ScoredPick(user_id=user_id, match_id=match_id, kickoff=kickoff, points=points)
        for user_id, match_id, kickoff, points in db.exec(statement).all()
    ]


def load_ranked_users(db: Session, competition_id: Optional[int] = None) -> List[RankedUser]:
    """
    Users taking part in a ranking, in tie-break order.

    Globally: every non-admin user by sign-up order. For a competition: its
    members by join order.
    """
    if competition_id is None:
        statement = (
            select(User.id, User.display_name)
            .where(User.is_admin == False)  # noqa: E712
            .order_by(User.created_at, User.id)
        )
    else:
        statement = (
            select(User.id, User.display_name)
            .join(CompetitionMember, CompetitionMember.user_id == User.id)
            .where(CompetitionMember.competition_id == competition_id)
            .order_by(CompetitionMember.joined_at, CompetitionMember.id)
        )
    return [RankedUser(user_id=user_id, display_name=name) for user_id, name in db.exec(statement).all()]


def load_competition_wins(db: Session) -> Dict[int, int]:
    """Number of finished competitions won, per user."""
    statement = (
        select(Competition.winner_id, func.count(Competition.id))
        .where(
            Competition.status == CompetitionStatus.FINISHED.value,
            Competition.winner_id.is_not(None)
        )
        .group_by(Competition.winner_id)
    )
    return {winner_id: count for winner_id, count in db.exec(statement).all()}


def compute_aggregates(db: Session, competition_id: Optional[int] = None) -> List[UserAggregate]:
    """
    Load inputs and build unranked aggregates in tie-break order.

    This is the only path that turns stored predictions into aggregates.
    """
    users = load_ranked_users(db, competition_id)
    scored = load_scored_predictions(db, competition_id)
    wins = load_competition_wins(db)
    return build_aggregates(users, scored, wins)
