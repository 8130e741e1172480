"""Webhook routes — YooKassa payment notifications."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.constants import WEBHOOK_SIGNATURE_HEADER
from lander.db.session import get_db
from lander.schemas.payment import WebhookPayload
from lander.services.payment_service import handle_webhook
from lander.services.webhook_security import verify_webhook_signature

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payment/yookassa", tags=["webhooks"])


@router.post("/webhook")
async def yookassa_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    settings = get_settings()
    body = await request.body()

    verify_webhook_signature(
        body,
        request.headers.get(WEBHOOK_SIGNATURE_HEADER),
        settings.yookassa_webhook_secret,
        debug=settings.debug,
    )

    try:
        payload = WebhookPayload.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    return await handle_webhook(db, payload)
