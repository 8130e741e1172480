"""Authenticity check for inbound payment webhooks (HMAC-SHA256 over the raw body)."""

import hashlib
import hmac
import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str, debug: bool = False) -> None:
    """Raise HTTPException unless ``signature`` matches ``body``.

    With no secret configured, webhooks are refused (503) except in debug mode.
    """
    if not secret:
        if debug:
            logger.warning("Webhook secret not configured, accepting unsigned webhook (debug mode)")
            return
        raise HTTPException(status_code=503, detail="Webhook verification is not configured.")

    provided = (signature or "").strip()
    if not provided:
        raise HTTPException(status_code=400, detail="Missing webhook signature.")
    provided = provided.removeprefix("sha256=")

    if not hmac.compare_digest(compute_signature(body, secret), provided):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=400, detail="Invalid webhook signature.")
