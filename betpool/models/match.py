from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field

from ..timeutils import utcnow


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


class Match(SQLModel, table=True):
    __tablename__ = "matches"

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: Optional[int] = Field(default=None, foreign_key="competitions.id", index=True)

    home_team_id: int = Field(foreign_key="teams.id")
    away_team_id: int = Field(foreign_key="teams.id")

    kickoff: datetime = Field(index=True)  # naive UTC
    status: str = Field(default=MatchStatus.SCHEDULED.value, index=True)

    # Final score, only present once the match is finished
    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
