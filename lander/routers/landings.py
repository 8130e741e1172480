"""Landing access check — is the owner's landing allowed to be served?"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lander.db.session import get_db
from lander.models.landing import Landing
from lander.models.user import User
from lander.services.reconciler import grants_access
from lander.services.subscription_store import expire_if_overdue

router = APIRouter(prefix="/api/landings", tags=["landings"])


@router.get("/{slug}/access")
async def landing_access(slug: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Landing).where(Landing.slug == slug))
    landing = result.scalar_one_or_none()
    if not landing:
        raise HTTPException(status_code=404, detail="Landing not found")

    owner = await db.get(User, landing.user_id)
    if not owner:
        raise HTTPException(status_code=404, detail="Landing owner not found")

    state = await expire_if_overdue(db, owner)
    if not grants_access(state) or not owner.email_verified:
        raise HTTPException(status_code=403, detail="Owner is inactive or has not verified their email")

    return {"success": True, "slug": landing.slug, "userId": owner.id}
