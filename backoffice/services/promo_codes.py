"""Promo code management and redemption."""

from __future__ import annotations

import logging
import re
from datetime import timedelta

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice.metrics import observe_promo_redemption
from backoffice.models.customer import DEFAULT_TRIAL_DAYS, Customer
from backoffice.models.promo import (
    PromoCode,
    PromoCodeRedemption,
    PromoCodeType,
    RedemptionStatus,
    RedemptionTarget,
)
from backoffice.schemas.promo import PromoApplyResult, PromoCodeCreate, PromoCodeUpdate
from backoffice.services import eligibility
from backoffice.services.admin_actions import record_admin_action
from backoffice.services.billing_provider import (
    BillingProviderClientError,
    StripeClient,
    get_billing_provider,
)
from backoffice.services.common import as_utc, coerce_uuid, lock_or_404, utcnow
from backoffice.services.errors import (
    BillingProviderError,
    Conflict,
    NotFound,
    RequiresForce,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _increment_redemptions(promo: PromoCode) -> None:
    promo.current_redemptions = PromoCode.current_redemptions + 1


def _decrement_redemptions(promo: PromoCode) -> None:
    promo.current_redemptions = case(
        (PromoCode.current_redemptions > 0, PromoCode.current_redemptions - 1),
        else_=0,
    )


def _ensure_redeemable(promo: PromoCode) -> None:
    if not promo.is_active:
        raise Conflict("Promo code is not active")
    expires_at = as_utc(promo.expires_at)
    if expires_at is not None and expires_at < utcnow():
        raise Conflict("Promo code has expired")
    if (
        promo.max_redemptions is not None
        and promo.current_redemptions >= promo.max_redemptions
    ):
        raise Conflict("Promo code has reached its redemption limit")


def _lock_code(db: Session, **criteria) -> PromoCode | None:
    return (
        db.query(PromoCode)
        .filter_by(**criteria)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


class PromoCodes:
    @staticmethod
    def create(
        db: Session,
        payload: PromoCodeCreate,
        actor_id: str | None = None,
        provider: StripeClient | None = None,
    ) -> PromoCode:
        code = normalize_code(payload.code)
        if not _CODE_PATTERN.match(code):
            raise ValidationFailed(
                "Code must be uppercase letters, numbers, hyphens, and underscores only"
            )
        if payload.type == PromoCodeType.extended_trial:
            if not payload.free_days or payload.free_days < 1:
                raise ValidationFailed("free_days is required for extended_trial codes")
        else:
            if not payload.discount_percent or not 1 <= payload.discount_percent <= 100:
                raise ValidationFailed(
                    "discount_percent (1-100) is required for subscription_discount codes"
                )
            if not payload.duration_months or payload.duration_months < 1:
                raise ValidationFailed(
                    "duration_months is required for subscription_discount codes"
                )

        existing = db.query(PromoCode.id).filter(PromoCode.code == code).first()
        if existing:
            raise Conflict("A promo code with this code already exists")

        coupon_id = None
        promotion_code_id = None
        if payload.type == PromoCodeType.subscription_discount:
            provider = provider or get_billing_provider()
            expires_at = as_utc(payload.expires_at)
            try:
                coupon = provider.create_coupon(
                    payload.discount_percent,
                    payload.duration_months,
                    payload.description or code,
                    metadata={"backoffice_promo_code": code},
                )
                coupon_id = coupon["id"]
                promotion = provider.create_promotion_code(
                    coupon_id,
                    code,
                    max_redemptions=payload.max_redemptions,
                    expires_at=int(expires_at.timestamp()) if expires_at else None,
                    metadata={"backoffice_promo_code": code},
                )
                promotion_code_id = promotion["id"]
            except BillingProviderClientError as exc:
                logger.error("Creating provider coupon for %s failed: %s", code, exc.message)
                raise BillingProviderError(
                    f"Billing provider error: {exc.message}", exc.message
                ) from exc

        is_trial = payload.type == PromoCodeType.extended_trial
        promo = PromoCode(
            code=code,
            description=payload.description,
            type=payload.type,
            free_days=payload.free_days if is_trial else None,
            discount_percent=None if is_trial else payload.discount_percent,
            duration_months=None if is_trial else payload.duration_months,
            max_redemptions=payload.max_redemptions,
            expires_at=payload.expires_at,
            valid_plans=[plan.value for plan in payload.valid_plans] if payload.valid_plans else None,
            new_customers_only=payload.new_customers_only,
            one_per_customer=payload.one_per_customer,
            provider_coupon_id=coupon_id,
            provider_promotion_code_id=promotion_code_id,
            created_by_id=coerce_uuid(actor_id),
        )
        db.add(promo)
        record_admin_action(
            db,
            actor_id,
            "create_promo_code",
            details={
                "code": code,
                "type": payload.type,
                "provider_coupon_id": coupon_id,
                "provider_promotion_code_id": promotion_code_id,
            },
        )
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if coupon_id:
                logger.error(
                    "Promo code %s was not stored; provider coupon %s is orphaned",
                    code,
                    coupon_id,
                )
            raise Conflict("A promo code with this code already exists") from exc
        db.refresh(promo)
        return promo

    @staticmethod
    def get(db: Session, code: str) -> PromoCode:
        promo = db.query(PromoCode).filter(PromoCode.code == normalize_code(code)).one_or_none()
        if not promo:
            raise NotFound("Promo code not found")
        return promo

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        limit: int,
        offset: int,
    ):
        query = db.query(PromoCode)
        if is_active is not None:
            query = query.filter(PromoCode.is_active == is_active)
        return (
            query.order_by(PromoCode.created_at.desc()).limit(limit).offset(offset).all()
        )

    @staticmethod
    def update(
        db: Session,
        code: str,
        payload: PromoCodeUpdate,
        actor_id: str | None = None,
    ) -> PromoCode:
        promo = PromoCodes.get(db, code)
        changes: dict[str, dict] = {}
        data = payload.model_dump(exclude_unset=True)
        if "max_redemptions" in data:
            new_limit = data["max_redemptions"]
            if new_limit is not None and new_limit < promo.current_redemptions:
                raise ValidationFailed(
                    f"max_redemptions cannot be lower than current redemptions "
                    f"({promo.current_redemptions})"
                )
            changes["max_redemptions"] = {
                "from": promo.max_redemptions,
                "to": data["max_redemptions"],
            }
            promo.max_redemptions = data["max_redemptions"]
        if "expires_at" in data:
            previous = as_utc(promo.expires_at)
            new_value = as_utc(data["expires_at"])
            if new_value != previous:
                # Customers holding this code get a fresh expiry notice.
                db.query(Customer).filter(Customer.pending_promo_code_id == promo.id).update(
                    {Customer.pending_code_expiry_notified_at: None},
                    synchronize_session=False,
                )
            changes["expires_at"] = {"from": previous, "to": new_value}
            promo.expires_at = data["expires_at"]
        if changes:
            record_admin_action(
                db,
                actor_id,
                "edit_promo_code",
                details={"promo_code_id": promo.id, "code": promo.code, "changes": changes},
            )
        db.commit()
        db.refresh(promo)
        return promo

    @staticmethod
    def deactivate(db: Session, code: str, actor_id: str | None = None) -> PromoCode:
        promo = PromoCodes.get(db, code)
        if not promo.is_active:
            raise Conflict("Promo code is already inactive")
        promo.is_active = False
        record_admin_action(
            db,
            actor_id,
            "deactivate_promo_code",
            details={"promo_code_id": promo.id, "code": promo.code},
        )
        db.commit()
        db.refresh(promo)
        return promo

    @staticmethod
    def apply(
        db: Session,
        customer_id: str,
        code: str,
        force: bool = False,
        actor_id: str | None = None,
    ) -> PromoApplyResult:
        """Redeem ``code`` for a customer.

        Reversal of a replaced discount, the redemption insert, both counter
        changes and the audit record commit together. The code and customer
        rows are locked for the duration so concurrent redemptions serialize.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationFailed("Promo code is required")
        promo = _lock_code(db, code=normalized)
        if not promo:
            raise NotFound("Promo code not found")
        _ensure_redeemable(promo)
        customer = lock_or_404(db, Customer, customer_id, "Customer not found")

        try:
            eligibility.ensure_eligible(db, promo, customer, force)
        except RequiresForce:
            observe_promo_redemption(promo.type.value, "requires_force")
            raise
        except Conflict:
            observe_promo_redemption(promo.type.value, "blocked")
            raise

        if promo.type == PromoCodeType.extended_trial:
            result = PromoCodes._apply_trial_extension(db, promo, customer, force, actor_id)
        else:
            result = PromoCodes._apply_discount(db, promo, customer, force, actor_id)
        db.commit()
        observe_promo_redemption(promo.type.value, "applied")
        return result

    @staticmethod
    def _apply_trial_extension(
        db: Session,
        promo: PromoCode,
        customer: Customer,
        force: bool,
        actor_id: str | None,
    ) -> PromoApplyResult:
        current_end = as_utc(customer.trial_ends_at) or (
            as_utc(customer.created_at) + timedelta(days=DEFAULT_TRIAL_DAYS)
        )
        new_end = current_end + timedelta(days=promo.free_days or 0)
        customer.trial_ends_at = new_end
        db.add(
            PromoCodeRedemption(
                promo_code_id=promo.id,
                customer_id=customer.id,
                status=RedemptionStatus.active,
                applied_to=RedemptionTarget.trial_extension,
                applied_by_id=coerce_uuid(actor_id),
            )
        )
        _increment_redemptions(promo)
        record_admin_action(
            db,
            actor_id,
            "apply_promo_code",
            target_customer_id=customer.id,
            details={
                "code": promo.code,
                "type": promo.type,
                "free_days": promo.free_days,
                "previous_trial_end": current_end,
                "new_trial_end": new_end,
                "customer_name": customer.name,
                "forced": bool(force),
            },
        )
        return PromoApplyResult(type=promo.type, trial_ends_at=new_end)

    @staticmethod
    def _apply_discount(
        db: Session,
        promo: PromoCode,
        customer: Customer,
        force: bool,
        actor_id: str | None,
    ) -> PromoApplyResult:
        replaced_code = None
        prior_id = customer.pending_promo_code_id
        if prior_id and prior_id != promo.id:
            prior = _lock_code(db, id=prior_id)
            (
                db.query(PromoCodeRedemption)
                .filter(PromoCodeRedemption.customer_id == customer.id)
                .filter(PromoCodeRedemption.promo_code_id == prior_id)
                .filter(PromoCodeRedemption.status == RedemptionStatus.active)
                .update(
                    {
                        PromoCodeRedemption.status: RedemptionStatus.reversed,
                        PromoCodeRedemption.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            if prior is not None:
                replaced_code = prior.code
                _decrement_redemptions(prior)
            logger.info(
                "Customer %s pending discount %s replaced by %s",
                customer.id,
                replaced_code or prior_id,
                promo.code,
            )

        customer.pending_promo_code_id = promo.id
        db.add(
            PromoCodeRedemption(
                promo_code_id=promo.id,
                customer_id=customer.id,
                status=RedemptionStatus.active,
                applied_by_id=coerce_uuid(actor_id),
            )
        )
        _increment_redemptions(promo)
        record_admin_action(
            db,
            actor_id,
            "apply_promo_code",
            target_customer_id=customer.id,
            details={
                "code": promo.code,
                "type": promo.type,
                "discount_percent": promo.discount_percent,
                "duration_months": promo.duration_months,
                "replaced_code": replaced_code,
                "customer_name": customer.name,
                "forced": bool(force),
            },
        )
        return PromoApplyResult(type=promo.type)


promo_codes = PromoCodes()
