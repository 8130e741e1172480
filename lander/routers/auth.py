"""Auth routes — register, login, token refresh, email verification, logout."""

import logging

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.constants import REFRESH_COOKIE_NAME
from lander.db.session import get_db
from lander.models.user import User
from lander.schemas.auth import LoginRequest, RegisterRequest, UserInfo
from lander.services import promo_service
from lander.services.auth_service import (
    clear_refresh_cookie,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_current_user,
    hash_password,
    require_active_subscription,
    set_refresh_cookie,
    verify_password,
)
from lander.services.email_service import confirm_email, send_verification_email
from lander.services.subscription_store import expire_if_overdue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_json(user: User) -> dict:
    return UserInfo.model_validate(user).model_dump(mode="json", by_alias=True)


async def _issue_tokens(db: AsyncSession, user: User, body: dict) -> JSONResponse:
    """Rotate the stored refresh token and return the access token in the body."""
    refresh = create_refresh_token(user.id)
    user.refresh_token = refresh
    await db.commit()

    response = JSONResponse({**body, "accessToken": create_access_token(user.id)})
    set_refresh_cookie(response, refresh)
    return response


@router.post("/register")
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="User already exists")

    promo = await promo_service.get_valid_promo(db, body.promo_code) if body.promo_code else None

    user = User(
        email=email,
        password_hash=await hash_password(body.password),
        name=body.name,
        subscription_status="inactive",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    if promo:
        try:
            await promo_service.redeem(db, user, promo)
        except HTTPException as e:
            # Lost the last use of the code to another registration
            logger.warning("Promo %s not applied to new user %s: %s", promo.code, user.id, e.detail)

    await send_verification_email(db, user)
    logger.info("Registered user %s", user.id)

    return await _issue_tokens(db, user, {
        "success": True,
        "message": "Registration complete! Check your email",
        "user": _user_json(user),
    })


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not await verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    await expire_if_overdue(db, user)

    return await _issue_tokens(db, user, {"success": True, "user": _user_json(user)})


@router.post("/refresh")
async def refresh(request: Request, db: AsyncSession = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=400, detail="Refresh token cookie not found")

    try:
        user_id = decode_refresh_token(token)
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Expired or invalid refresh token")

    user = await db.get(User, user_id)
    if not user or user.refresh_token != token:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    await expire_if_overdue(db, user)

    return await _issue_tokens(db, user, {"success": True, "user": _user_json(user)})


@router.get("/logout")
async def logout():
    response = JSONResponse({"success": True, "message": "Logged out"})
    clear_refresh_cookie(response)
    return response


@router.get("/verify-email")
async def verify_email(token: str | None = Query(None), db: AsyncSession = Depends(get_db)):
    """Confirm the email and bounce back to the frontend with the outcome."""
    base_url = get_settings().frontend_url
    if not token:
        return RedirectResponse(f"{base_url}/email-confirmed?msg=empty", status_code=303)

    if not await confirm_email(db, token):
        return RedirectResponse(f"{base_url}/email-confirmed?msg=expired", status_code=303)
    return RedirectResponse(f"{base_url}/email-confirmed?msg=success", status_code=303)


@router.get("/gate")
async def gate(user: User = Depends(require_active_subscription)):
    return {"success": True, "message": "Access granted", "user": _user_json(user)}


@router.get("/get-user")
async def get_user(user: User = Depends(get_current_user)):
    return {"success": True, "user": _user_json(user)}


@router.get("/resend-email")
async def resend_email(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.email_verified:
        return {"success": True, "message": "Email already verified"}
    if not await send_verification_email(db, user):
        raise HTTPException(status_code=500, detail="Failed to send email")
    return {"success": True, "message": "Email sent"}
