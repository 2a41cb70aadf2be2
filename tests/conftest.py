from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

import betpool.models  # noqa: F401
from main import app
from betpool.auth import create_session, hash_password
from betpool.config import SESSION_COOKIE_NAME
from betpool.database import get_session
from betpool.dependencies import get_stats_cache
from betpool.models import Competition, CompetitionMember, Match, Team, User
from betpool.services.cache import AggregateCache

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Fixed reference time for service-level tests
NOW = datetime(2026, 6, 1, 12, 0)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="cache")
def cache_fixture():
    return AggregateCache()


@pytest.fixture(name="client")
def client_fixture(session: Session, cache: AggregateCache):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_stats_cache] = lambda: cache
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Create users with increasing sign-up times so tie-break order is fixed."""
    created = []

    def _make_user(username: str, is_admin: bool = False) -> User:
        user = User(
            username=username,
            display_name=username.title(),
            password_hash=hash_password("password123"),
            is_admin=is_admin,
            created_at=NOW - timedelta(days=365) + timedelta(minutes=len(created))
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        created.append(user)
        return user

    return _make_user


@pytest.fixture(name="teams")
def teams_fixture(session: Session):
    home = Team(name="Lions", code="LIO")
    away = Team(name="Tigers", code="TIG")
    session.add_all([home, away])
    session.commit()
    session.refresh(home)
    session.refresh(away)
    return home, away


@pytest.fixture(name="make_match")
def make_match_fixture(session: Session, teams):
    def _make_match(kickoff: datetime, competition_id=None, status: str = "scheduled") -> Match:
        home, away = teams
        match = Match(
            home_team_id=home.id,
            away_team_id=away.id,
            kickoff=kickoff,
            status=status,
            competition_id=competition_id
        )
        session.add(match)
        session.commit()
        session.refresh(match)
        return match

    return _make_match


@pytest.fixture(name="make_competition")
def make_competition_fixture(session: Session):
    def _make_competition(name: str, members=(), start=None, end=None) -> Competition:
        competition = Competition(
            name=name,
            start_date=start or NOW - timedelta(days=30),
            end_date=end or NOW - timedelta(days=1)
        )
        session.add(competition)
        session.commit()
        session.refresh(competition)
        for position, user in enumerate(members):
            session.add(CompetitionMember(
                competition_id=competition.id,
                user_id=user.id,
                joined_at=competition.start_date + timedelta(minutes=position)
            ))
        session.commit()
        return competition

    return _make_competition


@pytest.fixture(name="user")
def user_fixture(make_user):
    return make_user("alice")


@pytest.fixture(name="admin")
def admin_fixture(make_user):
    return make_user("root", is_admin=True)


@pytest.fixture(name="user_client")
def user_client_fixture(client: TestClient, session: Session, user: User):
    """Client logged in as a regular user."""
    token = create_session(session, user.id).session_token
    client.cookies.set(SESSION_COOKIE_NAME, token)
    return client


@pytest.fixture(name="admin_client")
def admin_client_fixture(client: TestClient, session: Session, admin: User):
    """Client logged in as an admin."""
    token = create_session(session, admin.id).session_token
    client.cookies.set(SESSION_COOKIE_NAME, token)
    return client
