"""Tests for the payment routes: create, status, cancel, resume, history."""

from datetime import datetime, timedelta, UTC
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import update

from conftest import auth_headers, reload_user, signed_webhook
from lander.models.promo_code import PromoCode
from lander.models.user import User
from lander.models.voting import Vote, Voting
from lander.services.yookassa import GatewayRejected, GatewayUnavailable
from lander.utils import as_utc

BASE = "/api/payment/yookassa"


class TestCreatePayment:
    async def test_subscription_payment_marks_user_pending(self, client, database, gateway, make_user):
        user = await make_user()

        resp = await client.post(BASE, json={"product": "subscription", "amount": "990"}, headers=auth_headers(user))

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["confirmationUrl"] == "https://yoomoney.test/1"
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "pending"
        assert stored.yoo_payment_id == "pay_1"
        assert stored.yoo_subscription_id == "pm_1"

        _, amount, return_url, metadata = gateway.calls[0]
        assert amount == Decimal("990.00")
        assert return_url == "http://frontend.test/dashboard/account"
        assert metadata["userId"] == str(user.id)
        assert metadata["product"] == "subscription"

    async def test_second_checkout_while_pending_is_tracked(self, client, database, make_user):
        user = await make_user()
        body = {"product": "subscription", "amount": "990"}

        await client.post(BASE, json=body, headers=auth_headers(user))
        await client.post(BASE, json=body, headers=auth_headers(user))
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "pending"
        assert stored.yoo_payment_id == "pay_2"
        assert stored.yoo_subscription_id == "pm_2"

        webhook_body, headers = signed_webhook({
            "event": "payment.succeeded",
            "object": {
                "id": "pay_2",
                "status": "succeeded",
                "captured_at": datetime.now(UTC).isoformat(),
                "metadata": {"product": "subscription", "userId": str(user.id)},
            },
        })
        resp = await client.post(f"{BASE}/webhook", content=webhook_body, headers=headers)

        assert resp.json()["processed"] is True
        assert (await reload_user(database, user.id)).subscription_status == "active"

    async def test_discount_applied_from_promo(self, client, database, gateway, make_user):
        async with database.session() as db:
            promo = PromoCode(code="HALF", discount_pct=50)
            db.add(promo)
            await db.commit()
            promo_id = promo.id
        user = await make_user(promo_code_id=promo_id)

        resp = await client.post(BASE, json={"product": "subscription", "amount": "999"}, headers=auth_headers(user))

        assert Decimal(str(resp.json()["finalAmount"])) == Decimal("499.50")
        assert gateway.calls[0][1] == Decimal("499.50")

    async def test_no_confirmation_url_leaves_state_untouched(self, client, database, gateway, make_user):
        user = await make_user()
        gateway.create_response = {"id": "p-x", "status": "canceled", "message": "Card declined"}

        resp = await client.post(BASE, json={"product": "subscription", "amount": "990"}, headers=auth_headers(user))

        assert resp.status_code == 400
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "inactive"
        assert stored.yoo_payment_id is None

    async def test_gateway_down_returns_502(self, client, database, gateway, make_user):
        user = await make_user()
        gateway.fail_with = GatewayUnavailable("timeout")

        resp = await client.post(BASE, json={"product": "subscription", "amount": "990"}, headers=auth_headers(user))

        assert resp.status_code == 502
        assert (await reload_user(database, user.id)).subscription_status == "inactive"

    async def test_animation_requires_target(self, client, gateway, make_user):
        user = await make_user()
        resp = await client.post(BASE, json={"product": "animation", "amount": "100"}, headers=auth_headers(user))
        assert resp.status_code == 400
        assert gateway.calls == []

    async def test_voting_payment_creates_uncredited_pledge(self, client, database, make_user):
        user = await make_user()
        async with database.session() as db:
            voting = Voting(title="Export to PDF", description="...", creator_id=user.id)
            db.add(voting)
            await db.commit()
            voting_id = voting.id

        resp = await client.post(
            BASE, json={"product": "voting", "amount": "250", "targetId": voting_id}, headers=auth_headers(user)
        )

        assert resp.status_code == 200
        async with database.session() as db:
            vote = await db.get(Vote, 1)
            voting = await db.get(Voting, voting_id)
        assert vote.yoo_payment_id == "pay_1"
        assert vote.credited is False
        assert voting.amount == Decimal("0")
        assert (await reload_user(database, user.id)).subscription_status == "inactive"

    async def test_voting_not_found(self, client, make_user):
        user = await make_user()
        resp = await client.post(
            BASE, json={"product": "voting", "amount": "250", "targetId": 999}, headers=auth_headers(user)
        )
        assert resp.status_code == 404

    async def test_requires_auth(self, client):
        resp = await client.post(BASE, json={"product": "subscription", "amount": "990"})
        assert resp.status_code == 401


class TestStatusPoll:
    async def test_succeeded_payment_activates_from_capture(self, client, database, gateway, make_user):
        user = await make_user(subscription_status="pending", yoo_payment_id="p1")
        captured = datetime.now(UTC).replace(microsecond=0) - timedelta(hours=1)
        gateway.payments["p1"] = {
            "id": "p1",
            "status": "succeeded",
            "captured_at": captured.isoformat().replace("+00:00", "Z"),
        }

        resp = await client.get(f"{BASE}/status", headers=auth_headers(user))

        assert resp.status_code == 200
        assert resp.json()["status"] == "active"
        stored = await reload_user(database, user.id)
        assert as_utc(stored.subscription_end_at) == captured + relativedelta(months=1)

    async def test_poll_stores_saved_payment_method(self, client, database, gateway, make_user):
        user = await make_user(subscription_status="pending", yoo_payment_id="p1")
        gateway.payments["p1"] = {
            "id": "p1",
            "status": "succeeded",
            "captured_at": datetime.now(UTC).isoformat(),
            "payment_method": {"id": "pm-saved", "saved": True},
        }

        await client.get(f"{BASE}/status", headers=auth_headers(user))

        assert (await reload_user(database, user.id)).yoo_subscription_id == "pm-saved"

    async def test_repeated_polls_do_not_extend(self, client, database, gateway, make_user):
        user = await make_user(subscription_status="pending", yoo_payment_id="p1")
        gateway.payments["p1"] = {"id": "p1", "status": "succeeded", "captured_at": datetime.now(UTC).isoformat()}

        await client.get(f"{BASE}/status", headers=auth_headers(user))
        first = await reload_user(database, user.id)
        await client.get(f"{BASE}/status", headers=auth_headers(user))
        second = await reload_user(database, user.id)

        assert first.subscription_end_at == second.subscription_end_at

    async def test_pending_payment_leaves_state(self, client, database, make_user):
        user = await make_user(subscription_status="pending", yoo_payment_id="p1")
        resp = await client.get(f"{BASE}/status", headers=auth_headers(user))
        assert resp.json()["status"] == "pending"

    async def test_no_payment_to_check(self, client, make_user):
        user = await make_user()
        resp = await client.get(f"{BASE}/status", headers=auth_headers(user))
        assert resp.status_code == 400


class TestCancelResume:
    async def test_cancel_deletes_method_and_deactivates(self, client, database, gateway, make_user):
        end = datetime.now(UTC) + timedelta(days=20)
        user = await make_user(subscription_status="active", subscription_end_at=end, yoo_subscription_id="pm1")

        resp = await client.post(f"{BASE}/cancel", headers=auth_headers(user))

        assert resp.status_code == 200
        assert gateway.calls == [("delete_payment_method", "pm1")]
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "inactive"
        assert stored.yoo_subscription_id is None
        assert as_utc(stored.subscription_end_at) == end

    async def test_cancel_without_method_skips_gateway(self, client, database, gateway, make_user):
        user = await make_user(subscription_status="active", subscription_end_at=datetime.now(UTC) + timedelta(days=5))

        resp = await client.post(f"{BASE}/cancel", headers=auth_headers(user))

        assert resp.status_code == 400
        assert gateway.calls == []
        assert (await reload_user(database, user.id)).subscription_status == "active"

    async def test_cancel_gateway_failure_keeps_state(self, client, database, gateway, make_user):
        user = await make_user(
            subscription_status="active",
            subscription_end_at=datetime.now(UTC) + timedelta(days=5),
            yoo_subscription_id="pm1",
        )
        gateway.fail_with = GatewayRejected("Payment method not found", 404)

        resp = await client.post(f"{BASE}/cancel", headers=auth_headers(user))

        assert resp.status_code == 400
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "active"
        assert stored.yoo_subscription_id == "pm1"

    async def test_resume_sets_one_period_from_now(self, client, database, gateway, make_user):
        user = await make_user(
            subscription_status="inactive",
            subscription_end_at=datetime.now(UTC) - timedelta(days=40),
            yoo_subscription_id="pm1",
        )
        before = datetime.now(UTC)

        resp = await client.post(f"{BASE}/resume", headers=auth_headers(user))

        after = datetime.now(UTC)
        assert resp.status_code == 200
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "active"
        end = as_utc(stored.subscription_end_at)
        assert before + relativedelta(months=1) <= end <= after + relativedelta(months=1)
        assert stored.yoo_payment_id == "pay_resume"
        assert gateway.calls[0][:3] == ("resume_subscription", "pm1", Decimal("990.00"))

    async def test_resume_gateway_failure_changes_nothing(self, client, database, gateway, make_user):
        end = datetime.now(UTC) - timedelta(days=40)
        user = await make_user(subscription_status="inactive", subscription_end_at=end, yoo_subscription_id="pm1")
        gateway.fail_with = GatewayRejected("Renewal payment is canceled")

        resp = await client.post(f"{BASE}/resume", headers=auth_headers(user))

        assert resp.status_code == 400
        stored = await reload_user(database, user.id)
        assert stored.subscription_status == "inactive"
        assert as_utc(stored.subscription_end_at) == end

    async def test_resume_reports_concurrent_change(self, client, database, gateway, make_user):
        user = await make_user(
            subscription_status="inactive",
            subscription_end_at=datetime.now(UTC) - timedelta(days=40),
            yoo_subscription_id="pm1",
        )
        other_end = datetime.now(UTC) + timedelta(days=7)

        async def promo_lands_first():
            async with database.session() as db:
                await db.execute(
                    update(User)
                    .where(User.id == user.id)
                    .values(
                        subscription_status="active",
                        subscription_end_at=other_end,
                        subscription_version=User.subscription_version + 1,
                    )
                )
                await db.commit()

        gateway.on_resume = promo_lands_first

        resp = await client.post(f"{BASE}/resume", headers=auth_headers(user))

        assert resp.status_code == 409
        stored = await reload_user(database, user.id)
        assert as_utc(stored.subscription_end_at) == other_end

    async def test_resume_active_subscription_conflicts(self, client, gateway, make_user):
        user = await make_user(
            subscription_status="active",
            subscription_end_at=datetime.now(UTC) + timedelta(days=5),
            yoo_subscription_id="pm1",
        )
        resp = await client.post(f"{BASE}/resume", headers=auth_headers(user))
        assert resp.status_code == 409
        assert gateway.calls == []

    async def test_resume_without_method(self, client, make_user):
        user = await make_user()
        resp = await client.post(f"{BASE}/resume", headers=auth_headers(user))
        assert resp.status_code == 400


async def test_history_filters_to_current_user(client, gateway, make_user):
    user = await make_user()
    gateway.history = [
        {"id": "a", "metadata": {"userId": str(user.id)}},
        {"id": "b", "metadata": {"userId": "someone-else"}},
        {"id": "c"},
    ]

    resp = await client.get(f"{BASE}/history", headers=auth_headers(user))

    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()["payments"]] == ["a"]
