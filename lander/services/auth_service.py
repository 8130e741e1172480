"""JWT session management, password hashing and request authorization dependencies."""

import asyncio
import secrets
from datetime import datetime, timedelta, UTC

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.constants import BCRYPT_ROUNDS, REFRESH_COOKIE_NAME
from lander.db.session import get_db
from lander.models.user import User
from lander.services.reconciler import grants_access
from lander.services.subscription_store import expire_if_overdue, load_state


async def hash_password(password: str) -> str:
    hashed = await asyncio.to_thread(bcrypt.hashpw, password.encode(), bcrypt.gensalt(BCRYPT_ROUNDS))
    return hashed.decode()


async def verify_password(password: str, password_hash: str) -> bool:
    try:
        return await asyncio.to_thread(bcrypt.checkpw, password.encode(), password_hash.encode())
    except ValueError:
        return False


def create_access_token(user_id: int) -> str:
    """Short-lived bearer token for API calls."""
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_access_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: int) -> str:
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days),
        # jti keeps two tokens issued within the same second distinct
        "jti": secrets.token_urlsafe(8),
    }
    return jwt.encode(payload, settings.jwt_refresh_secret, algorithm=settings.jwt_algorithm)


def set_refresh_cookie(response: Response, token: str) -> None:
    """Set the refresh token as an HTTP-only cookie on the response."""
    settings = get_settings()
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="strict",
        max_age=settings.refresh_token_expire_days * 86400,
        path="/",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(key=REFRESH_COOKIE_NAME, path="/")


def _decode(token: str, secret: str) -> int:
    settings = get_settings()
    payload = jwt.decode(
        token, secret, algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )
    return int(payload["sub"])


def decode_access_token(token: str) -> int:
    return _decode(token, get_settings().jwt_access_secret)


def decode_refresh_token(token: str) -> int:
    return _decode(token, get_settings().jwt_refresh_secret)


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization")
    if not header:
        raise HTTPException(status_code=401, detail="Token not provided")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Token missing")
    return token


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: decode the bearer token and return the User, or raise 401.

    Runs the lazy expiry check before returning, so the rest of the request
    sees the corrected subscription status.
    """
    token = _bearer_token(request)
    try:
        user_id = decode_access_token(token)
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    await expire_if_overdue(db, user)
    return user


async def require_verified_email(user: User = Depends(get_current_user)) -> User:
    if not user.email_verified:
        raise HTTPException(status_code=403, detail="Email not verified")
    return user


async def require_active_subscription(user: User = Depends(require_verified_email)) -> User:
    if not grants_access(load_state(user)):
        raise HTTPException(status_code=403, detail="Subscription is not active")
    return user

