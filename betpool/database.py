from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import DATABASE_URL


class Database:
    """
    Owns the SQLAlchemy engine for one running service.

    Created and opened in the application lifespan, closed on shutdown, and
    handed to request handlers through get_session.
    """

    def __init__(self, url: str = DATABASE_URL, echo: bool = False, **engine_kwargs):
        self.url = url
        self.echo = echo
        self.engine_kwargs = engine_kwargs
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def open(self) -> "Database":
        if self._engine is None:
            kwargs = dict(self.engine_kwargs)
            if self.url.startswith("sqlite"):
                kwargs.setdefault("connect_args", {"check_same_thread": False})
            self._engine = create_engine(self.url, echo=self.echo, **kwargs)
        return self

    def create_db_and_tables(self) -> None:
        """Create all database tables."""
        # Table classes must be registered on the metadata first
        from . import models  # noqa: F401

        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        return Session(self.engine)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


def get_session(request: Request):
    """Dependency for getting database sessions."""
    database: Database = request.app.state.database
    with database.session() as session:
        yield session
