from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel
from sqlmodel import Session, select

from ..auth import authenticate_user, create_session, delete_session, hash_password
from ..config import SESSION_COOKIE_NAME, SESSION_EXPIRE_DAYS
from ..database import get_session
from ..dependencies import require_user
from ..models.user import User
from ..services.cache import bump_data_version

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str
    password: str
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "is_admin": user.is_admin
    }


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="lax"
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: Session = Depends(get_session)
):
    """Create an account and log it in."""
    username = payload.username.strip()
    if not username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username is required")

    existing_user = db.exec(select(User).where(User.username == username)).first()
    if existing_user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already exists")

    if len(payload.password) < 6:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 6 characters"
        )

    user = User(
        username=username,
        display_name=(payload.display_name or username).strip(),
        password_hash=hash_password(payload.password)
    )
    db.add(user)
    bump_data_version(db)
    db.commit()
    db.refresh(user)

    session = create_session(db, user.id)
    _set_session_cookie(response, session.session_token)
    return _user_payload(user)


@router.post("/login")
async def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_session)
):
    user = authenticate_user(db, payload.username, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    session = create_session(db, user.id)
    _set_session_cookie(response, session.session_token)
    return _user_payload(user)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_session)
):
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if session_token:
        delete_session(db, session_token)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"status": "logged_out"}


@router.get("/me")
async def me(current_user: User = Depends(require_user)):
    return _user_payload(current_user)
