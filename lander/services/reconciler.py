"""Subscription state machine — pure transition function, no I/O.

Every change to a user's subscription goes through ``transition(state, event)``.
Handlers load a ``SubscriptionState``, call ``transition`` and persist the
result (see ``subscription_store``). Keeping this module free of HTTP and
database code lets the whole table be unit-tested directly.

States: ``inactive`` (initial), ``pending``, ``active``. There is no terminal
state.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import StrEnum

from lander.utils import add_months, as_utc

INACTIVE = "inactive"
PENDING = "pending"
ACTIVE = "active"


class Effect(StrEnum):
    STATUS_CHANGED = "status_changed"
    EXPIRY_SET = "expiry_set"
    PAYMENT_ID_SET = "payment_id_set"
    PAYMENT_METHOD_SET = "payment_method_set"
    PAYMENT_METHOD_CLEARED = "payment_method_cleared"


@dataclass(frozen=True)
class SubscriptionState:
    status: str = INACTIVE
    end_at: datetime | None = None
    payment_id: str | None = None
    payment_method_id: str | None = None
    version: int = 0


# --- Events ---


@dataclass(frozen=True)
class PaymentInitiated:
    """Client started a subscription payment and the gateway returned a confirmation URL."""

    payment_id: str
    payment_method_id: str | None = None


@dataclass(frozen=True)
class PaymentSucceeded:
    """Webhook ``payment.succeeded`` correlated to the user by payment id."""

    payment_id: str
    captured_at: datetime
    payment_method_id: str | None = None


@dataclass(frozen=True)
class PaymentFailed:
    """Webhook ``payment.failed`` correlated to the user by payment id."""

    payment_id: str


@dataclass(frozen=True)
class ExpiryChecked:
    now: datetime


@dataclass(frozen=True)
class StatusPolled:
    """Synchronous status query answered by the gateway."""

    gateway_status: str
    at: datetime
    payment_method_id: str | None = None


@dataclass(frozen=True)
class Cancelled:
    """Gateway already deleted the saved payment method."""


@dataclass(frozen=True)
class Resumed:
    """Gateway already accepted the resume charge."""

    now: datetime
    payment_id: str | None = None


@dataclass(frozen=True)
class TrialGranted:
    """Promo code trial: extends from the later of the current end and now."""

    bonus_days: int
    now: datetime


Event = (
    PaymentInitiated
    | PaymentSucceeded
    | PaymentFailed
    | ExpiryChecked
    | StatusPolled
    | Cancelled
    | Resumed
    | TrialGranted
)


@dataclass(frozen=True)
class Transition:
    state: SubscriptionState
    effects: tuple[Effect, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.effects)


def grants_access(state: SubscriptionState) -> bool:
    """Boolean gate for protected routes."""
    return state.status == ACTIVE


def is_overdue(state: SubscriptionState, now: datetime) -> bool:
    end_at = as_utc(state.end_at)
    return state.status == ACTIVE and end_at is not None and end_at < now


def _diff(before: SubscriptionState, after: SubscriptionState) -> Transition:
    effects = []
    if after.status != before.status:
        effects.append(Effect.STATUS_CHANGED)
    if as_utc(after.end_at) != as_utc(before.end_at):
        effects.append(Effect.EXPIRY_SET)
    if after.payment_id != before.payment_id:
        effects.append(Effect.PAYMENT_ID_SET)
    if after.payment_method_id != before.payment_method_id:
        if after.payment_method_id is None:
            effects.append(Effect.PAYMENT_METHOD_CLEARED)
        else:
            effects.append(Effect.PAYMENT_METHOD_SET)
    return Transition(after, tuple(effects))


def _activate(state: SubscriptionState, end_at: datetime, now: datetime | None = None, **changes) -> SubscriptionState:
    # active must never be written with an end already behind us
    if now is not None and end_at <= now:
        return state
    return replace(state, status=ACTIVE, end_at=end_at, **changes)


def transition(state: SubscriptionState, event: Event, period_months: int = 1) -> Transition:
    """Compute the next state for ``event``. Unmatched events yield no effects."""
    nxt = state

    match event:
        case PaymentInitiated(payment_id=payment_id, payment_method_id=method_id):
            # A new checkout always supersedes the one being tracked, even while pending
            nxt = replace(
                state,
                status=PENDING,
                payment_id=payment_id,
                payment_method_id=method_id or state.payment_method_id,
            )

        case PaymentSucceeded(payment_id=payment_id, captured_at=captured_at, payment_method_id=method_id):
            # Set, never increment: redelivery lands on the same end date.
            # An inactive user has cancelled or expired since; old events must not revive them.
            if payment_id == state.payment_id and state.status in (PENDING, ACTIVE):
                nxt = replace(
                    state,
                    status=ACTIVE,
                    end_at=add_months(as_utc(captured_at), period_months),
                    payment_method_id=method_id or state.payment_method_id,
                )

        case PaymentFailed(payment_id=payment_id):
            if payment_id == state.payment_id and state.status == PENDING:
                nxt = replace(state, status=INACTIVE)

        case ExpiryChecked(now=now):
            if is_overdue(state, now):
                nxt = replace(state, status=INACTIVE)

        case StatusPolled(gateway_status=gateway_status, at=at, payment_method_id=method_id):
            if gateway_status == "succeeded" and state.status in (PENDING, ACTIVE):
                nxt = _activate(
                    state,
                    add_months(as_utc(at), period_months),
                    payment_method_id=method_id or state.payment_method_id,
                )

        case Cancelled():
            if state.payment_method_id:
                nxt = replace(state, status=INACTIVE, payment_method_id=None)

        case Resumed(now=now, payment_id=payment_id):
            if state.status == INACTIVE:
                nxt = _activate(
                    state,
                    add_months(as_utc(now), period_months),
                    payment_id=payment_id or state.payment_id,
                )

        case TrialGranted(bonus_days=bonus_days, now=now):
            if bonus_days > 0:
                current_end = as_utc(state.end_at)
                base = current_end if current_end and current_end > now else now
                nxt = _activate(state, base + timedelta(days=bonus_days), now)

    return _diff(state, nxt)
