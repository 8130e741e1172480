"""Promo code Pydantic schemas."""

from pydantic import BaseModel, Field


class ApplyPromoRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
