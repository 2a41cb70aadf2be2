from typing import Optional
from fastapi import Request, Depends, HTTPException, status
from sqlmodel import Session

from .auth import get_user_by_session_token
from .config import SESSION_COOKIE_NAME
from .database import get_session
from .models.user import User
from .services.cache import AggregateCache


async def get_current_user(
    request: Request,
    db: Session = Depends(get_session)
) -> Optional[User]:
    """Get the current logged-in user from the session cookie."""
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if not session_token:
        return None

    return get_user_by_session_token(db, session_token)


async def require_user(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """Require a logged-in user."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return current_user


async def require_admin(
    current_user: User = Depends(require_user)
) -> User:
    """Require an admin user."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def get_stats_cache(request: Request) -> AggregateCache:
    """The ranking cache shared by every request of this application."""
    return request.app.state.stats_cache
