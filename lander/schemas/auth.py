"""Auth-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str | None = Field(None, max_length=128)
    promo_code: str | None = Field(None, alias="promoCode")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    email: str
    name: str | None = None
    email_verified: bool = Field(False, alias="emailVerified")
    subscription_status: str = Field("inactive", alias="subscriptionStatus")
    subscription_end_at: datetime | None = Field(None, alias="subscriptionEndAt")
    yoo_subscription_id: str | None = Field(None, alias="yooSubscriptionId")
    promo_code_id: int | None = Field(None, alias="promoCodeId")
