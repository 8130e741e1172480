"""Tests for the landing access check."""

from datetime import datetime, timedelta, UTC

from conftest import reload_user, yesterday
from lander.models.landing import Landing


async def _landing(database, user_id: int, slug: str) -> None:
    async with database.session() as db:
        db.add(Landing(user_id=user_id, slug=slug))
        await db.commit()


async def test_active_owner_landing_is_served(client, database, make_user):
    user = await make_user(subscription_status="active", subscription_end_at=datetime.now(UTC) + timedelta(days=2))
    await _landing(database, user.id, "bakery")

    resp = await client.get("/api/landings/bakery/access")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "slug": "bakery", "userId": user.id}


async def test_overdue_owner_is_expired_and_denied(client, database, make_user):
    user = await make_user(subscription_status="active", subscription_end_at=yesterday())
    await _landing(database, user.id, "florist")

    resp = await client.get("/api/landings/florist/access")

    assert resp.status_code == 403
    assert (await reload_user(database, user.id)).subscription_status == "inactive"


async def test_unverified_owner_denied(client, database, make_user):
    user = await make_user(
        email_verified=False,
        subscription_status="active",
        subscription_end_at=datetime.now(UTC) + timedelta(days=2),
    )
    await _landing(database, user.id, "garage")

    resp = await client.get("/api/landings/garage/access")

    assert resp.status_code == 403


async def test_unknown_slug(client):
    resp = await client.get("/api/landings/nowhere/access")
    assert resp.status_code == 404
