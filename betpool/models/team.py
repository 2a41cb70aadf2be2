from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from ..timeutils import utcnow


class Team(SQLModel, table=True):
    """A participant in matches. Managed by admins."""
    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)
    code: Optional[str] = Field(default=None, max_length=10)
    created_at: datetime = Field(default_factory=utcnow)
