"""Persistence adapter for the subscription state machine.

Loads ``SubscriptionState`` from the user row, runs the pure ``transition``
and writes the result with a conditional update on ``subscription_version``.
A writer that lost the race reloads and re-applies its event to the fresh
state instead of clobbering the winner.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.constants import RECONCILE_MAX_ATTEMPTS
from lander.models.user import User
from lander.services.reconciler import (
    ACTIVE,
    Event,
    ExpiryChecked,
    SubscriptionState,
    Transition,
    transition,
)
from lander.utils import as_utc, now_utc

logger = logging.getLogger(__name__)


def load_state(user: User) -> SubscriptionState:
    return SubscriptionState(
        status=user.subscription_status,
        end_at=as_utc(user.subscription_end_at),
        payment_id=user.yoo_payment_id,
        payment_method_id=user.yoo_subscription_id,
        version=user.subscription_version or 0,
    )


async def _compare_and_swap(db: AsyncSession, user_id: int, before: SubscriptionState, after: SubscriptionState) -> bool:
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.subscription_version == before.version)
        .values(
            subscription_status=after.status,
            subscription_end_at=after.end_at,
            yoo_payment_id=after.payment_id,
            yoo_subscription_id=after.payment_method_id,
            subscription_version=before.version + 1,
            updated_at=now_utc(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def apply_event(db: AsyncSession, user: User, event: Event, trigger: str = "") -> Transition:
    """Apply ``event`` to ``user`` and persist it if anything changed.

    ``user`` is refreshed from the database after a write (or a lost race),
    so callers always continue with the stored values.
    """
    period = get_settings().subscription_period_months
    result = Transition(load_state(user))

    for attempt in range(1, RECONCILE_MAX_ATTEMPTS + 1):
        before = load_state(user)
        result = transition(before, event, period)
        if not result.changed:
            return result

        if await _compare_and_swap(db, user.id, before, result.state):
            await db.refresh(user)
            logger.info(
                "Subscription user=%s %s -> %s via %s (%s)",
                user.id, before.status, result.state.status,
                trigger or type(event).__name__,
                ", ".join(result.effects),
            )
            return result

        logger.warning(
            "Subscription update for user %s lost a concurrent write (attempt %d/%d)",
            user.id, attempt, RECONCILE_MAX_ATTEMPTS,
        )
        await db.refresh(user)

    logger.warning("Giving up on %s for user %s after %d attempts", type(event).__name__, user.id, RECONCILE_MAX_ATTEMPTS)
    return Transition(load_state(user))


async def expire_if_overdue(db: AsyncSession, user: User, now: datetime | None = None) -> SubscriptionState:
    """Lazy expiry: correct an overdue ``active`` user in storage and in memory."""
    await apply_event(db, user, ExpiryChecked(now or now_utc()), trigger="lazy expiry")
    return load_state(user)


async def find_by_payment_id(db: AsyncSession, payment_id: str) -> User | None:
    result = await db.execute(select(User).where(User.yoo_payment_id == payment_id))
    return result.scalars().first()


async def expire_overdue(db: AsyncSession, now: datetime | None = None) -> int:
    """Batch sweep used by the background worker. Returns the number of users expired."""
    now = now or now_utc()
    result = await db.execute(
        select(User).where(
            User.subscription_status == ACTIVE,
            User.subscription_end_at.is_not(None),
            User.subscription_end_at < now,
        )
    )
    users = result.scalars().all()

    expired = 0
    for user in users:
        outcome = await apply_event(db, user, ExpiryChecked(now), trigger="expiry sweep")
        if outcome.changed:
            expired += 1
    return expired
