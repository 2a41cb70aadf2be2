import secrets
from datetime import timedelta
from typing import Optional

import bcrypt
from sqlmodel import Session, select

from .config import SESSION_EXPIRE_DAYS
from .models import User, Session as SessionModel
from .timeutils import utcnow


def hash_password(password: str) -> str:
    """Hash a password using bcrypt. Truncates to 72 bytes for bcrypt compatibility."""
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        password_bytes = password_bytes[:72]

    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    password_bytes = plain_password.encode('utf-8')
    if len(password_bytes) > 72:
        password_bytes = password_bytes[:72]

    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def create_session(db: Session, user_id: int) -> SessionModel:
    """Create a new login session for a user."""
    session = SessionModel(
        user_id=user_id,
        session_token=secrets.token_urlsafe(32),
        expires_at=utcnow() + timedelta(days=SESSION_EXPIRE_DAYS)
    )

    db.add(session)
    db.commit()
    db.refresh(session)

    return session


def get_user_by_session_token(db: Session, session_token: str) -> Optional[User]:
    """Get user by session token if the session is still valid."""
    statement = select(SessionModel).where(SessionModel.session_token == session_token)
    session = db.exec(statement).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        db.delete(session)
        db.commit()
        return None

    return db.get(User, session.user_id)


def delete_session(db: Session, session_token: str) -> bool:
    """Delete a session (logout)."""
    statement = select(SessionModel).where(SessionModel.session_token == session_token)
    session = db.exec(statement).first()

    if session:
        db.delete(session)
        db.commit()
        return True

    return False


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Authenticate a user by username and password."""
    statement = select(User).where(User.username == username)
    user = db.exec(statement).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    return user


def ensure_admin(db: Session, username: str, password: str) -> User:
    """Create the admin account on first start."""
    admin_user = db.exec(select(User).where(User.username == username)).first()
    if not admin_user:
        admin_user = User(
            username=username,
            display_name="Administrator",
            password_hash=hash_password(password),
            is_admin=True
        )
        db.add(admin_user)
        db.commit()
        db.refresh(admin_user)
    return admin_user
