"""Customer detail view and local-only operator edits."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from backoffice.models.customer import (
    DEFAULT_TRIAL_DAYS,
    PLAN_TIER_LABELS,
    Customer,
    PlanTier,
)
from backoffice.services.admin_actions import record_admin_action
from backoffice.services.common import (
    as_utc,
    full_name,
    get_or_404,
    lock_or_404,
    require_reason,
    validate_enum,
)
from backoffice.services.errors import Conflict, ValidationFailed
from backoffice.services.status import STATUS_LABELS, customer_status

logger = logging.getLogger(__name__)

MAX_TRIAL_EXTENSION_DAYS = 365


class Customers:
    @staticmethod
    def get(db: Session, customer_id: str) -> Customer:
        return get_or_404(db, Customer, customer_id, "Customer not found")

    @staticmethod
    def detail(db: Session, customer_id: str) -> dict:
        customer = Customers.get(db, customer_id)
        status = customer_status(customer)
        snapshot = customer.billing_snapshot
        return {
            "id": customer.id,
            "name": customer.name,
            "plan_tier": customer.plan_tier,
            "plan_label": PLAN_TIER_LABELS[customer.plan_tier],
            "billing_exempt": customer.billing_exempt,
            "signup_date": customer.created_at,
            "trial_ends_at": customer.trial_ends_at,
            "status": status,
            "status_label": STATUS_LABELS[status],
            "account_status": customer.account_status,
            "suspended_at": customer.suspended_at,
            "suspended_reason": customer.suspended_reason,
            "suspended_by_id": customer.suspended_by_id,
            "re_enabled_at": customer.re_enabled_at,
            "re_enabled_by_id": customer.re_enabled_by_id,
            "pending_promo_code": (
                customer.pending_promo_code.code if customer.pending_promo_code else None
            ),
            "billing": snapshot,
            "members": [
                {
                    "id": member.id,
                    "name": full_name(member.first_name, member.last_name),
                    "email": member.email,
                    "is_active": member.is_active,
                }
                for member in sorted(customer.users, key=lambda user: as_utc(user.created_at))
            ],
            "lockbox_count": len(customer.lockboxes),
        }

    @staticmethod
    def extend_trial(
        db: Session,
        customer_id: str,
        days: int,
        reason: str | None,
        actor_id: str | None = None,
    ) -> Customer:
        if isinstance(days, bool) or not isinstance(days, int):
            raise ValidationFailed(f"Days must be between 1 and {MAX_TRIAL_EXTENSION_DAYS}")
        if not 1 <= days <= MAX_TRIAL_EXTENSION_DAYS:
            raise ValidationFailed(f"Days must be between 1 and {MAX_TRIAL_EXTENSION_DAYS}")
        cleaned = require_reason(reason)
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")
        if customer.plan_tier != PlanTier.free_trial:
            raise Conflict("Can only extend trial for accounts on free trial")

        current_end = as_utc(customer.trial_ends_at) or (
            as_utc(customer.created_at) + timedelta(days=DEFAULT_TRIAL_DAYS)
        )
        new_end = current_end + timedelta(days=days)
        customer.trial_ends_at = new_end
        record_admin_action(
            db,
            actor_id,
            "extend_trial",
            target_customer_id=customer.id,
            reason=cleaned,
            details={
                "days_added": days,
                "previous_end": current_end,
                "new_end": new_end,
                "customer_name": customer.name,
            },
        )
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def change_plan(
        db: Session,
        customer_id: str,
        plan_tier,
        reason: str | None,
        actor_id: str | None = None,
    ) -> dict:
        if not plan_tier:
            raise ValidationFailed("Plan tier is required")
        new_plan = validate_enum(plan_tier, PlanTier, "plan tier")
        cleaned = require_reason(reason)
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")
        if customer.plan_tier == new_plan:
            raise Conflict(f"Account is already on the {PLAN_TIER_LABELS[new_plan]} plan")

        previous_plan = customer.plan_tier
        customer.plan_tier = new_plan
        record_admin_action(
            db,
            actor_id,
            "change_plan",
            target_customer_id=customer.id,
            reason=cleaned,
            details={
                "previous_plan": previous_plan,
                "new_plan": new_plan,
                "previous_plan_label": PLAN_TIER_LABELS[previous_plan],
                "new_plan_label": PLAN_TIER_LABELS[new_plan],
            },
        )
        db.commit()
        logger.info(
            "Customer %s moved from %s to %s", customer.id, previous_plan.value, new_plan.value
        )
        return {"previous_plan": previous_plan, "new_plan": new_plan}

    @staticmethod
    def set_billing_exempt(
        db: Session,
        customer_id: str,
        billing_exempt: bool,
        reason: str | None,
        actor_id: str | None = None,
    ) -> Customer:
        if not isinstance(billing_exempt, bool):
            raise ValidationFailed("billing_exempt must be true or false")
        cleaned = require_reason(reason)
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")
        if bool(customer.billing_exempt) == billing_exempt:
            raise Conflict(
                f"Billing exempt is already set to {str(billing_exempt).lower()}"
            )

        previous = bool(customer.billing_exempt)
        customer.billing_exempt = billing_exempt
        record_admin_action(
            db,
            actor_id,
            "toggle_billing_exempt",
            target_customer_id=customer.id,
            reason=cleaned,
            details={"before": previous, "after": billing_exempt},
        )
        db.commit()
        db.refresh(customer)
        return customer


customers = Customers()
