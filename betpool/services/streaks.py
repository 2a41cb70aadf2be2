"""
Streak analysis over a user's scored predictions.

Entries must be sorted by match kickoff, oldest first. A streak is the longest
run of consecutive entries satisfying a predicate; its anchors are the kickoff
dates of the first and last match in that run.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .scoring import EXACT_SCORE_POINTS


@dataclass(frozen=True)
class ScoredPick:
    """One scored prediction, reduced to what the aggregators need."""
    user_id: int
    match_id: int
    kickoff: datetime
    points: int


@dataclass(frozen=True)
class Streak:
    length: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class StreakSummary:
    points: Streak
    exact: Streak


def scored_points(pick: ScoredPick) -> bool:
    return pick.points > 0


def exact_score(pick: ScoredPick) -> bool:
    return pick.points == EXACT_SCORE_POINTS


def longest_run(entries: Iterable[ScoredPick], predicate: Callable[[ScoredPick], bool]) -> Streak:
    """
    Single left-to-right scan. Only a strictly longer run replaces the one
    already recorded, so ties keep the earliest run.
    """
    current = 0
    current_start = None
    best = Streak()

    for entry in entries:
        if predicate(entry):
            if current == 0:
                current_start = entry.kickoff
            current += 1
            if current > best.length:
                best = Streak(length=current, start=current_start, end=entry.kickoff)
        else:
            current = 0

    return best


def analyze_streaks(entries) -> StreakSummary:
    entries = list(entries)
    return StreakSummary(
        points=longest_run(entries, scored_points),
        exact=longest_run(entries, exact_score),
    )
