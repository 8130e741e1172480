"""YooKassa payments — creation, status polling, cancel/resume, webhook reconciliation.

Thin adapters around the subscription state machine: each function talks to
the gateway where needed, turns the outcome into an event and hands it to
``subscription_store.apply_event``.
"""

import logging
from decimal import Decimal
from typing import Any

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.constants import (
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_SUCCEEDED,
    PRODUCT_ANIMATION,
    PRODUCT_RETURN_PATHS,
    PRODUCT_SUBSCRIPTION,
    PRODUCT_VOTING,
)
from lander.models.animation import Animation
from lander.models.user import User
from lander.schemas.payment import CreatePaymentRequest, WebhookPayload
from lander.services import voting_service
from lander.services.promo_service import discounted_amount
from lander.services.reconciler import (
    INACTIVE,
    Cancelled,
    PaymentFailed,
    PaymentInitiated,
    PaymentSucceeded,
    Resumed,
    StatusPolled,
)
from lander.services.subscription_store import apply_event, find_by_payment_id, load_state
from lander.services.yookassa import YooKassaClient
from lander.utils import now_utc, parse_timestamp

logger = logging.getLogger(__name__)


def _metadata(user: User, product: str, target_id: int | None = None) -> dict[str, str | None]:
    return {
        "userId": str(user.id),
        "product": product,
        "targetId": str(target_id) if target_id is not None else None,
    }


async def create_payment(
    db: AsyncSession, gateway: YooKassaClient, user: User, body: CreatePaymentRequest
) -> dict[str, Any]:
    """Start a payment for ``body.product`` and record what it is for."""
    settings = get_settings()
    if body.product in (PRODUCT_ANIMATION, PRODUCT_VOTING) and body.target_id is None:
        raise HTTPException(status_code=400, detail="targetId is required for this product")
    if body.product == PRODUCT_VOTING and not await voting_service.get_voting(db, body.target_id):
        raise HTTPException(status_code=404, detail="Voting not found")

    final_amount = await discounted_amount(db, user, body.amount)
    data = await gateway.create_payment(
        amount=final_amount,
        return_url=f"{settings.frontend_url}{PRODUCT_RETURN_PATHS[body.product]}",
        description=f"Payment for: {body.product}",
        metadata=_metadata(user, body.product, body.target_id),
    )

    confirmation_url = (data.get("confirmation") or {}).get("confirmation_url")
    if not confirmation_url:
        raise HTTPException(status_code=400, detail=data.get("message") or "Failed to create payment")

    payment_id = data["id"]
    if body.product == PRODUCT_SUBSCRIPTION:
        method_id = (data.get("payment_method") or {}).get("id")
        await apply_event(db, user, PaymentInitiated(payment_id, method_id), trigger="payment created")
    elif body.product == PRODUCT_VOTING:
        await voting_service.create_pledge(db, user.id, body.target_id, final_amount, payment_id)

    logger.info("Created %s payment %s for user %s (%s)", body.product, payment_id, user.id, final_amount)
    return {"success": True, "confirmationUrl": confirmation_url, "finalAmount": final_amount}


async def poll_status(db: AsyncSession, gateway: YooKassaClient, user: User) -> dict[str, Any]:
    """Synchronous status check of the user's last subscription payment."""
    if not user.yoo_payment_id:
        raise HTTPException(status_code=400, detail="No payment to check")

    data = await gateway.get_payment(user.yoo_payment_id)
    gateway_status = data.get("status") or ""
    # Prefer the capture time so polling and the webhook land on the same end date
    at = parse_timestamp(data.get("captured_at")) or now_utc()
    method_id = (data.get("payment_method") or {}).get("id")
    await apply_event(db, user, StatusPolled(gateway_status, at, method_id), trigger="status poll")

    return {"success": True, "status": user.subscription_status, "data": data}


async def cancel_subscription(db: AsyncSession, gateway: YooKassaClient, user: User) -> dict[str, Any]:
    if not user.yoo_subscription_id:
        raise HTTPException(status_code=400, detail="No saved payment method to cancel")

    await gateway.delete_payment_method(user.yoo_subscription_id)
    await apply_event(db, user, Cancelled(), trigger="cancel")
    return {"success": True, "message": "Auto-payment cancelled, subscription deactivated"}


async def resume_subscription(db: AsyncSession, gateway: YooKassaClient, user: User) -> dict[str, Any]:
    if not user.yoo_subscription_id:
        raise HTTPException(status_code=400, detail="No subscription to resume")
    if load_state(user).status != INACTIVE:
        raise HTTPException(status_code=409, detail="Subscription is not inactive")

    settings = get_settings()
    amount = await discounted_amount(db, user, Decimal(settings.subscription_price))
    data = await gateway.resume_subscription(
        user.yoo_subscription_id, amount, _metadata(user, PRODUCT_SUBSCRIPTION)
    )
    outcome = await apply_event(db, user, Resumed(now_utc(), data.get("id")), trigger="resume")
    if not outcome.changed:
        # Charged, but a concurrent write left nothing to resume
        logger.error(
            "Resume charge %s for user %s went through but the subscription is now %s",
            data.get("id"), user.id, user.subscription_status,
        )
        raise HTTPException(status_code=409, detail="Subscription changed during resume, please contact support")
    return {"success": True, "message": "Subscription resumed", "subscriptionEndAt": user.subscription_end_at}


async def payment_history(gateway: YooKassaClient, user: User) -> list[dict[str, Any]]:
    items = await gateway.list_payments()
    return [p for p in items if (p.get("metadata") or {}).get("userId") == str(user.id)]


# --- Webhook ---


async def _handle_subscription_event(db: AsyncSession, payload: WebhookPayload) -> bool:
    obj = payload.object
    user = await find_by_payment_id(db, obj.id)
    if not user:
        logger.info("Webhook %s for payment %s matches no user, acknowledging", payload.event, obj.id)
        return False

    if payload.event == EVENT_PAYMENT_SUCCEEDED:
        captured_at = parse_timestamp(obj.captured_at)
        if captured_at is None:
            logger.warning("payment.succeeded %s without captured_at, using receipt time", obj.id)
            captured_at = now_utc()
        method_id = obj.payment_method.id if obj.payment_method else None
        outcome = await apply_event(db, user, PaymentSucceeded(obj.id, captured_at, method_id), trigger="webhook")
        return outcome.changed

    if payload.event == EVENT_PAYMENT_FAILED:
        outcome = await apply_event(db, user, PaymentFailed(obj.id), trigger="webhook")
        return outcome.changed

    return False


async def _handle_animation_event(db: AsyncSession, payload: WebhookPayload) -> bool:
    target_id = payload.object.metadata.target_id
    if payload.event != EVENT_PAYMENT_SUCCEEDED or not (target_id or "").isdigit():
        return False

    result = await db.execute(
        update(Animation)
        .where(Animation.id == int(target_id), Animation.status != "development")
        .values(status="development", updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def handle_webhook(db: AsyncSession, payload: WebhookPayload) -> dict[str, Any]:
    """Apply an authenticated gateway event. Always acknowledges; never asks for a retry."""
    if not payload.object.id:
        raise HTTPException(status_code=400, detail="Payment not found in event")

    product = payload.object.metadata.product
    logger.info("YooKassa webhook: %s for %s payment %s", payload.event, product, payload.object.id)

    if product == PRODUCT_SUBSCRIPTION:
        processed = await _handle_subscription_event(db, payload)
    elif product == PRODUCT_VOTING:
        processed = payload.event == EVENT_PAYMENT_SUCCEEDED and await voting_service.credit_pledge(
            db, payload.object.id
        )
    elif product == PRODUCT_ANIMATION:
        processed = await _handle_animation_event(db, payload)
    else:
        logger.info("Ignoring webhook for unknown product %r", product)
        processed = False

    return {"success": True, "processed": processed, "message": "Webhook processed"}
