from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint

from ..timeutils import utcnow


class Prediction(SQLModel, table=True):
    __tablename__ = "predictions"
    __table_args__ = (UniqueConstraint("user_id", "match_id", name="unique_user_match"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    match_id: int = Field(foreign_key="matches.id", index=True)

    predicted_home: int
    predicted_away: int

    # Null until the match is finished
    points: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
