"""YooKassa REST client — payments, saved payment methods, history.

One attempt per call, no retries: a failure surfaces to the caller as
``GatewayError``. The client is constructed at startup and closed at shutdown.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

import httpx
from fastapi import Request

from lander.config import Settings
from lander.constants import HTTP_CONNECT_TIMEOUT, HTTP_TOTAL_TIMEOUT, PAYMENT_HISTORY_LIMIT

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for payment gateway failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GatewayRejected(GatewayError):
    """The gateway answered with a non-2xx status."""


class GatewayUnavailable(GatewayError):
    """The gateway could not be reached or returned garbage."""


class YooKassaClient:
    def __init__(
        self,
        shop_id: str,
        secret_key: str,
        base_url: str = "https://api.yookassa.ru/v3",
        currency: str = "RUB",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.currency = currency
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(shop_id, secret_key),
            timeout=httpx.Timeout(HTTP_TOTAL_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "YooKassaClient":
        return cls(
            shop_id=settings.yookassa_shop_id,
            secret_key=settings.yookassa_secret_key,
            base_url=settings.yookassa_api_url,
            currency=settings.payment_currency,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("YooKassa %s %s failed: %s", method, path, e)
            raise GatewayUnavailable(f"Payment gateway unreachable: {e}") from e

        try:
            data = resp.json() if resp.content else {}
        except ValueError as e:
            raise GatewayUnavailable("Payment gateway returned an unreadable response", resp.status_code) from e

        if resp.is_error:
            message = data.get("description") or data.get("message") or f"Gateway error {resp.status_code}"
            logger.error("YooKassa %s %s -> %s: %s", method, path, resp.status_code, message)
            raise GatewayRejected(message, resp.status_code)
        return data

    async def create_payment(
        self,
        amount: Decimal,
        return_url: str,
        description: str,
        metadata: dict[str, str | None],
    ) -> dict[str, Any]:
        """Create a redirect-confirmed card payment that saves the card for renewals."""
        payload = {
            "amount": {"value": f"{amount:.2f}", "currency": self.currency},
            "confirmation": {"type": "redirect", "return_url": return_url},
            "capture": True,
            "description": description,
            "payment_method_data": {"type": "bank_card"},
            "save_payment_method": True,
            "metadata": {k: v for k, v in metadata.items() if v is not None},
        }
        return await self._request(
            "POST", "/payments", json=payload, headers={"Idempotence-Key": str(uuid.uuid4())}
        )

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    async def list_payments(self, limit: int = PAYMENT_HISTORY_LIMIT) -> list[dict[str, Any]]:
        data = await self._request("GET", "/payments", params={"limit": limit})
        return data.get("items") or []

    async def delete_payment_method(self, payment_method_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/payment_methods/{payment_method_id}")

    async def resume_subscription(self, payment_method_id: str, amount: Decimal, metadata: dict[str, str | None]) -> dict[str, Any]:
        """Charge the saved payment method for the next period.

        Raises ``GatewayRejected`` unless the charge went through synchronously.
        """
        payload = {
            "amount": {"value": f"{amount:.2f}", "currency": self.currency},
            "capture": True,
            "payment_method_id": payment_method_id,
            "description": "Subscription renewal",
            "metadata": {k: v for k, v in metadata.items() if v is not None},
        }
        data = await self._request(
            "POST", "/payments", json=payload, headers={"Idempotence-Key": str(uuid.uuid4())}
        )
        if data.get("status") != "succeeded":
            raise GatewayRejected(f"Renewal payment is {data.get('status') or 'unknown'}")
        return data


def get_gateway(request: Request) -> YooKassaClient:
    """FastAPI dependency returning the gateway client created at startup."""
    return request.app.state.gateway
