"""Promo code redemption — validation, usage accounting, trial grants."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lander.models.promo_code import PromoCode
from lander.models.user import User
from lander.services.reconciler import TrialGranted
from lander.services.subscription_store import apply_event
from lander.utils import as_utc, now_utc

logger = logging.getLogger(__name__)


async def get_valid_promo(db: AsyncSession, code: str, user: User | None = None) -> PromoCode:
    """Return the promo code or raise HTTPException(400) explaining why it can't be used."""
    result = await db.execute(select(PromoCode).where(PromoCode.code == code))
    promo = result.scalar_one_or_none()

    expires_at = as_utc(promo.expires_at) if promo else None
    if not promo or not promo.active or (expires_at and expires_at < now_utc()):
        raise HTTPException(status_code=400, detail="Promo code is not valid")
    if user is not None and user.promo_code_id == promo.id:
        raise HTTPException(status_code=400, detail="You have already used this promo code")
    if promo.usage_limit and promo.used_count >= promo.usage_limit:
        raise HTTPException(status_code=400, detail="Promo code usage limit reached")
    return promo


async def redeem(db: AsyncSession, user: User, promo: PromoCode) -> None:
    """Attach ``promo`` to ``user``, count the use and grant trial days if any.

    The usage counter is bumped with a conditional update so concurrent
    redemptions cannot exceed ``usage_limit``.
    """
    result = await db.execute(
        update(PromoCode)
        .where(
            PromoCode.id == promo.id,
            or_(PromoCode.usage_limit.is_(None), PromoCode.used_count < PromoCode.usage_limit),
        )
        .values(used_count=PromoCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise HTTPException(status_code=400, detail="Promo code usage limit reached")

    user.promo_code_id = promo.id
    await db.commit()
    await db.refresh(promo)
    logger.info("User %s redeemed promo code %s", user.id, promo.code)

    if promo.custom_type == "trial" and promo.bonus_days:
        await apply_event(db, user, TrialGranted(promo.bonus_days, now_utc()), trigger=f"promo {promo.code}")


async def discounted_amount(db: AsyncSession, user: User, amount: Decimal) -> Decimal:
    """Apply the user's promo discount, rounded to kopecks."""
    final = Decimal(amount)
    if user.promo_code_id:
        promo = await db.get(PromoCode, user.promo_code_id)
        if promo and promo.discount_pct:
            final = final * (Decimal(100) - Decimal(promo.discount_pct)) / Decimal(100)
    return final.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
