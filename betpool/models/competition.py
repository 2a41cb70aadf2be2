from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint

from ..timeutils import utcnow


class CompetitionStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"


class Competition(SQLModel, table=True):
    __tablename__ = "competitions"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=100)
    start_date: datetime
    end_date: datetime
    status: str = Field(default=CompetitionStatus.ACTIVE.value, index=True)

    # Filled once, when the competition is closed
    winner_id: Optional[int] = Field(default=None, foreign_key="users.id")
    last_place_id: Optional[int] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(default_factory=utcnow)


class CompetitionMember(SQLModel, table=True):
    __tablename__ = "competition_members"
    __table_args__ = (UniqueConstraint("competition_id", "user_id", name="unique_competition_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(foreign_key="competitions.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    joined_at: datetime = Field(default_factory=utcnow)
