"""Suspend / re-enable state machine for customer accounts."""

from __future__ import annotations

import enum
import logging

from sqlalchemy.orm import Session

from backoffice.models.customer import AccountStatus, Customer
from backoffice.services.admin_actions import record_admin_action
from backoffice.services.common import (
    coerce_uuid,
    lock_or_404,
    require_reason,
    utcnow,
    validate_enum,
)
from backoffice.services.errors import Conflict, ValidationFailed

logger = logging.getLogger(__name__)

RE_ENABLE_MIN_REASON_LENGTH = 10


class SuspensionReason(enum.Enum):
    chargeback = "chargeback"
    fraud = "fraud"
    abuse = "abuse"
    non_payment = "non_payment"
    other = "other"


SUSPENSION_REASON_LABELS = {
    SuspensionReason.chargeback: "Chargeback / Dispute",
    SuspensionReason.fraud: "Fraud",
    SuspensionReason.abuse: "Abuse / Policy Violation",
    SuspensionReason.non_payment: "Non-Payment",
    SuspensionReason.other: "Other",
}


def compose_suspended_reason(reason: SuspensionReason, notes: str | None) -> str:
    label = SUSPENSION_REASON_LABELS[reason]
    cleaned = (notes or "").strip()
    return f"{label}: {cleaned}" if cleaned else label


class SuspensionLifecycle:
    @staticmethod
    def suspend(
        db: Session,
        customer_id: str,
        reason_code: str,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Customer:
        if not reason_code:
            raise ValidationFailed("Suspension reason is required")
        reason = validate_enum(reason_code, SuspensionReason, "suspension reason")
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")
        if customer.account_status != AccountStatus.active:
            raise Conflict("Account is already suspended or inactive")

        suspended_reason = compose_suspended_reason(reason, notes)
        customer.account_status = AccountStatus.suspended
        customer.suspended_at = utcnow()
        customer.suspended_reason = suspended_reason
        customer.suspended_by_id = coerce_uuid(actor_id)
        record_admin_action(
            db,
            actor_id,
            "suspend_account",
            target_customer_id=customer.id,
            reason=suspended_reason,
            details={
                "customer_name": customer.name,
                "reason_key": reason.value,
                "reason_label": SUSPENSION_REASON_LABELS[reason],
                "notes": (notes or "").strip() or None,
            },
        )
        db.commit()
        db.refresh(customer)
        logger.info("Suspended customer %s (%s)", customer.id, reason.value)
        return customer

    @staticmethod
    def re_enable(
        db: Session,
        customer_id: str,
        reason: str | None,
        actor_id: str | None = None,
    ) -> Customer:
        cleaned = require_reason(reason, RE_ENABLE_MIN_REASON_LENGTH)
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")
        if customer.account_status == AccountStatus.active:
            raise Conflict("Account is not suspended")

        previous_status = customer.account_status
        customer.account_status = AccountStatus.active
        customer.re_enabled_at = utcnow()
        customer.re_enabled_by_id = coerce_uuid(actor_id)
        customer.re_enable_reason = cleaned
        record_admin_action(
            db,
            actor_id,
            "re_enable_account",
            target_customer_id=customer.id,
            reason=cleaned,
            details={
                "customer_name": customer.name,
                "previous_status": previous_status,
                "suspended_at": customer.suspended_at,
                "suspended_reason": customer.suspended_reason,
            },
        )
        db.commit()
        db.refresh(customer)
        logger.info("Re-enabled customer %s", customer.id)
        return customer


suspension = SuspensionLifecycle()
