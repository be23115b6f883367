"""Customer status derivation.

Status is always recomputed from the plan tier and the mirrored billing
snapshot; nothing stores it. Every consumer (detail view, promo eligibility,
dashboards) goes through ``resolve_status``.
"""

from __future__ import annotations

import enum

from backoffice.models.customer import PlanTier, SubscriptionStatus


class CustomerStatus(enum.Enum):
    active_trial = "active_trial"
    active_paid = "active_paid"
    past_due = "past_due"
    pending_cancellation = "pending_cancellation"
    cancelled = "cancelled"


STATUS_LABELS = {
    CustomerStatus.active_trial: "Active Trial",
    CustomerStatus.active_paid: "Active Paid",
    CustomerStatus.past_due: "Past Due",
    CustomerStatus.pending_cancellation: "Pending Cancel",
    CustomerStatus.cancelled: "Cancelled",
}


def _enum_value(value) -> str | None:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def resolve_status(plan_tier, snapshot) -> CustomerStatus:
    """Derive the user-facing status.

    ``snapshot`` is anything exposing ``subscription_status`` and
    ``cancel_at_period_end`` (normally a ``BillingSnapshot``), or None.
    Enum members and raw string values are both accepted.
    """
    if _enum_value(plan_tier) == PlanTier.free_trial.value:
        return CustomerStatus.active_trial

    subscription_status = (
        _enum_value(getattr(snapshot, "subscription_status", None)) if snapshot else None
    )
    if snapshot is None or subscription_status == SubscriptionStatus.inactive.value:
        return CustomerStatus.cancelled
    if subscription_status == SubscriptionStatus.past_due.value:
        return CustomerStatus.past_due
    if subscription_status == SubscriptionStatus.canceled.value:
        return CustomerStatus.cancelled
    if subscription_status == SubscriptionStatus.active.value:
        if getattr(snapshot, "cancel_at_period_end", False):
            return CustomerStatus.pending_cancellation
        return CustomerStatus.active_paid
    return CustomerStatus.cancelled


def customer_status(customer) -> CustomerStatus:
    return resolve_status(customer.plan_tier, customer.billing_snapshot)
