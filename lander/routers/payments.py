"""Payment routes — YooKassa subscription, animation and voting payments."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lander.db.session import get_db
from lander.models.user import User
from lander.schemas.payment import CreatePaymentRequest
from lander.services import payment_service
from lander.services.auth_service import get_current_user
from lander.services.yookassa import YooKassaClient, get_gateway

router = APIRouter(prefix="/api/payment/yookassa", tags=["payments"])


@router.post("")
async def create_payment(
    body: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: YooKassaClient = Depends(get_gateway),
):
    return await payment_service.create_payment(db, gateway, user, body)


@router.get("/status")
async def payment_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: YooKassaClient = Depends(get_gateway),
):
    return await payment_service.poll_status(db, gateway, user)


@router.post("/cancel")
async def cancel_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: YooKassaClient = Depends(get_gateway),
):
    return await payment_service.cancel_subscription(db, gateway, user)


@router.post("/resume")
async def resume_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: YooKassaClient = Depends(get_gateway),
):
    return await payment_service.resume_subscription(db, gateway, user)


@router.get("/history")
async def payment_history(
    user: User = Depends(get_current_user),
    gateway: YooKassaClient = Depends(get_gateway),
):
    payments = await payment_service.payment_history(gateway, user)
    return {"success": True, "payments": payments}
