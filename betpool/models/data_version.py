from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from ..timeutils import utcnow


class DataVersion(SQLModel, table=True):
    """Single row counting writes that change ranking inputs."""
    __tablename__ = "data_version"

    id: Optional[int] = Field(default=None, primary_key=True)
    generation: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utcnow)
