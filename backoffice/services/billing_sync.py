"""Mutations that must stay in agreement with the billing provider.

Comp-month follows the compensating-transaction shape: the local optimistic
write is committed first, the provider is called, and a provider failure
reverts the local write before the error reaches the caller. It is not a
two-phase commit; a request that dies between the two steps leaves the local
write in place and the audit trail shows no completed sync for it.

Credits skip the local pre-write, so there is nothing to compensate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.metrics import observe_billing_sync
from backoffice.models.customer import BillingSnapshot, Customer, SubscriptionStatus
from backoffice.services.admin_actions import record_admin_action
from backoffice.services.billing_provider import (
    BillingProviderClientError,
    StripeClient,
    get_billing_provider,
)
from backoffice.services.common import (
    as_utc,
    coerce_uuid,
    get_or_404,
    require_reason,
    utcnow,
)
from backoffice.services.errors import BillingProviderError, Conflict, ValidationFailed

logger = logging.getLogger(__name__)

COMP_MONTH_DAYS = 30
CREDIT_MIN_AMOUNT = 1
CREDIT_MAX_AMOUNT = 100_000


@dataclass
class BillingSyncResult:
    provider_synced: bool
    reverted: bool = False
    provider_result: Any = None
    provider_message: str | None = None
    revert_error: str | None = None


def run_billing_sync(
    db: Session,
    operation: str,
    local_write: Callable[[], None],
    compensate: Callable[[], None],
    provider_call: Callable[[], Any],
) -> BillingSyncResult:
    """Commit ``local_write``, call the provider, undo with ``compensate`` on failure.

    Any exception from ``provider_call`` counts as a failed sync and is
    reported through the result instead of propagating.

    The compensating write is best effort: when it fails the error is logged
    and reported in the result, never retried.
    """
    local_write()
    db.commit()

    try:
        provider_result = provider_call()
    except Exception as exc:
        if isinstance(exc, BillingProviderClientError):
            message = exc.message
        else:
            message = f"{type(exc).__name__}: {exc}"
            logger.exception("%s: unexpected error from the billing provider call", operation)
        result = BillingSyncResult(provider_synced=False, provider_message=message)
        try:
            compensate()
            db.commit()
            result.reverted = True
            observe_billing_sync(operation, "reverted")
            logger.warning("%s: provider sync failed, local write reverted: %s", operation, message)
        except SQLAlchemyError as revert_exc:
            db.rollback()
            result.revert_error = str(revert_exc)
            observe_billing_sync(operation, "revert_failed")
            logger.exception(
                "%s: provider sync failed and the local revert also failed; "
                "manual reconciliation needed",
                operation,
            )
        return result

    observe_billing_sync(operation, "synced")
    return BillingSyncResult(provider_synced=True, provider_result=provider_result)


def _locked_snapshot(db: Session, customer: Customer) -> BillingSnapshot | None:
    return (
        db.query(BillingSnapshot)
        .filter(BillingSnapshot.customer_id == customer.id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


class BillingSync:
    @staticmethod
    def comp_month(
        db: Session,
        customer_id: str,
        reason: str | None,
        actor_id: str | None = None,
        provider: StripeClient | None = None,
    ) -> dict:
        cleaned = require_reason(reason)
        customer = get_or_404(db, Customer, customer_id, "Customer not found")
        snapshot = _locked_snapshot(db, customer)
        if snapshot is None:
            raise ValidationFailed("No billing record found for this customer")
        if snapshot.subscription_status != SubscriptionStatus.active:
            raise Conflict("Can only comp months for active paid accounts")
        subscription_id = snapshot.provider_subscription_id
        if not subscription_id:
            raise ValidationFailed("No billing provider subscription found for this customer")

        provider = provider or get_billing_provider()
        previous_end = snapshot.current_period_end
        new_end = (as_utc(previous_end) or utcnow()) + timedelta(days=COMP_MONTH_DAYS)

        def local_write():
            snapshot.current_period_end = new_end

        def compensate():
            snapshot.current_period_end = previous_end

        result = run_billing_sync(
            db,
            "comp_month",
            local_write,
            compensate,
            lambda: provider.update_subscription_period_end(
                subscription_id, int(new_end.timestamp())
            ),
        )

        details = {
            "customer_name": customer.name,
            "days_added": COMP_MONTH_DAYS,
            "previous_period_end": as_utc(previous_end),
            "new_period_end": new_end,
            "provider_subscription_id": subscription_id,
            "provider_synced": result.provider_synced,
            "reverted": result.reverted,
        }
        if not result.provider_synced:
            details["provider_message"] = result.provider_message
            if result.revert_error:
                details["revert_error"] = result.revert_error
            record_admin_action(
                db,
                actor_id,
                "comp_month_failed",
                target_customer_id=customer.id,
                reason=cleaned,
                details=details,
                commit=True,
            )
            raise BillingProviderError(
                f"Billing provider sync failed: {result.provider_message}",
                result.provider_message,
                {"reverted": result.reverted},
            )

        record_admin_action(
            db,
            actor_id,
            "comp_month",
            target_customer_id=customer.id,
            reason=cleaned,
            details=details,
            commit=True,
        )
        return {"new_period_end": new_end}

    @staticmethod
    def apply_credit(
        db: Session,
        customer_id: str,
        amount,
        reason: str | None,
        actor_id: str | None = None,
        provider: StripeClient | None = None,
    ) -> dict:
        try:
            amount_minor = int(amount)
        except (TypeError, ValueError) as exc:
            raise ValidationFailed(
                f"Amount must be between {CREDIT_MIN_AMOUNT} and {CREDIT_MAX_AMOUNT}"
            ) from exc
        if isinstance(amount, bool) or not CREDIT_MIN_AMOUNT <= amount_minor <= CREDIT_MAX_AMOUNT:
            raise ValidationFailed(
                f"Amount must be between {CREDIT_MIN_AMOUNT} and {CREDIT_MAX_AMOUNT}"
            )
        cleaned = require_reason(reason)
        customer = get_or_404(db, Customer, customer_id, "Customer not found")
        snapshot = customer.billing_snapshot
        if snapshot is None or not snapshot.provider_customer_id:
            raise ValidationFailed(
                "No billing provider record found for this customer. "
                "Customer must have an active subscription."
            )

        provider = provider or get_billing_provider()
        currency = settings.billing_currency
        try:
            provider.create_balance_transaction(
                snapshot.provider_customer_id,
                -amount_minor,
                currency,
                cleaned,
                metadata={
                    "applied_by_admin_id": str(actor_id) if actor_id else "",
                    "customer_id": str(coerce_uuid(customer.id)),
                },
            )
        except BillingProviderClientError as exc:
            observe_billing_sync("apply_credit", "failed")
            logger.error("apply_credit failed for customer %s: %s", customer.id, exc.message)
            raise BillingProviderError(f"Billing provider error: {exc.message}", exc.message) from exc

        observe_billing_sync("apply_credit", "synced")
        record_admin_action(
            db,
            actor_id,
            "apply_credit",
            target_customer_id=customer.id,
            reason=cleaned,
            details={
                "amount": amount_minor,
                "currency": currency,
                "provider_customer_id": snapshot.provider_customer_id,
                "customer_name": customer.name,
            },
            commit=True,
        )
        return {"amount": amount_minor, "currency": currency}


billing_sync = BillingSync()
