"""Promo code routes — redemption by the signed-in user."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lander.db.session import get_db
from lander.models.user import User
from lander.schemas.auth import UserInfo
from lander.schemas.promo import ApplyPromoRequest
from lander.services import promo_service
from lander.services.auth_service import require_verified_email

router = APIRouter(prefix="/api/promo", tags=["promo"])


@router.post("/apply")
async def apply_promo(
    body: ApplyPromoRequest,
    user: User = Depends(require_verified_email),
    db: AsyncSession = Depends(get_db),
):
    promo = await promo_service.get_valid_promo(db, body.code, user)
    await promo_service.redeem(db, user, promo)
    return {
        "success": True,
        "message": "Promo code applied",
        "promoCode": {
            "id": promo.id,
            "code": promo.code,
            "discountPct": promo.discount_pct,
            "bonusDays": promo.bonus_days,
            "customType": promo.custom_type,
        },
        "user": UserInfo.model_validate(user).model_dump(mode="json", by_alias=True),
    }
