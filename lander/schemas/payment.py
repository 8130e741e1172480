"""Payment and webhook Pydantic schemas."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CreatePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: Literal["subscription", "animation", "voting"]
    amount: Decimal = Field(gt=0)
    target_id: int | None = Field(None, alias="targetId")


class WebhookPaymentMethod(BaseModel):
    id: str | None = None


class WebhookMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    product: str | None = None
    user_id: str | None = Field(None, alias="userId")
    target_id: str | None = Field(None, alias="targetId")


class WebhookObject(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    status: str | None = None
    captured_at: str | None = None
    payment_method: WebhookPaymentMethod | None = None
    metadata: WebhookMetadata = Field(default_factory=WebhookMetadata)


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    event: str
    object: WebhookObject
