"""User model — credentials, email verification and subscription state."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lander.utils import now_utc
from .base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    promo_code_id: Mapped[int | None] = mapped_column(ForeignKey("promo_codes.id"), nullable=True)

    # Subscription state, written only through subscription_store
    subscription_status: Mapped[str] = mapped_column(String(16), nullable=False, default="inactive")
    subscription_end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    yoo_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    yoo_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subscription_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        CheckConstraint(
            "subscription_status IN ('inactive', 'pending', 'active')", name="ck_users_subscription_status"
        ),
    )

    # Relationships
    promo_code: Mapped["PromoCode"] = relationship()
    landings: Mapped[list["Landing"]] = relationship(back_populates="user")
    votes: Mapped[list["Vote"]] = relationship(back_populates="user")
