from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.customers import (
    AccountStatusRead,
    ApplyCreditRequest,
    ApplyCreditResult,
    BillingExemptRequest,
    BillingExemptResult,
    ChangePlanRequest,
    ChangePlanResult,
    CompMonthRequest,
    CompMonthResult,
    CustomerDetail,
    ExtendTrialRequest,
    ExtendTrialResult,
    ReEnableRequest,
    SuspendRequest,
)
from backoffice.schemas.promo import PromoApply, PromoApplyResult
from backoffice.schemas.timeline import TimelinePage
from backoffice.services import timeline as timeline_service
from backoffice.services.auth_dependencies import (
    AdminPrincipal,
    require_active_customer,
    require_permission,
)
from backoffice.services.billing_provider import StripeClient, get_billing_provider
from backoffice.services.billing_sync import billing_sync
from backoffice.services.customers import customers as customers_service
from backoffice.services.promo_codes import promo_codes as promo_codes_service
from backoffice.services.suspension import suspension as suspension_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/{customer_id}", response_model=CustomerDetail)
def get_customer(
    customer_id: str,
    db: Session = Depends(get_db),
    _: AdminPrincipal = Depends(require_permission("view_customer_detail")),
):
    return customers_service.detail(db, customer_id)


@router.get("/{customer_id}/timeline", response_model=TimelinePage)
def get_customer_timeline(
    customer_id: str,
    since: datetime | None = Query(default=None),
    page: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    session_factory=Depends(timeline_service.get_session_factory),
    _: AdminPrincipal = Depends(require_permission("view_customer_detail")),
):
    return timeline_service.get_timeline(
        db, customer_id, since=since, page=page, session_factory=session_factory
    )


@router.post("/{customer_id}/apply-promo", response_model=PromoApplyResult)
def apply_promo(
    customer_id: str,
    payload: PromoApply,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("apply_promo_code")),
    _active: None = Depends(require_active_customer),
):
    return promo_codes_service.apply(
        db, customer_id, payload.code, payload.force, principal.admin_id
    )


@router.post("/{customer_id}/comp-month", response_model=CompMonthResult)
def comp_month(
    customer_id: str,
    payload: CompMonthRequest,
    db: Session = Depends(get_db),
    provider: StripeClient = Depends(get_billing_provider),
    principal: AdminPrincipal = Depends(require_permission("comp_month")),
    _active: None = Depends(require_active_customer),
):
    return billing_sync.comp_month(
        db, customer_id, payload.reason, principal.admin_id, provider=provider
    )


@router.post("/{customer_id}/apply-credit", response_model=ApplyCreditResult)
def apply_credit(
    customer_id: str,
    payload: ApplyCreditRequest,
    db: Session = Depends(get_db),
    provider: StripeClient = Depends(get_billing_provider),
    principal: AdminPrincipal = Depends(require_permission("apply_credit")),
    _active: None = Depends(require_active_customer),
):
    return billing_sync.apply_credit(
        db, customer_id, payload.amount, payload.reason, principal.admin_id, provider=provider
    )


@router.post("/{customer_id}/suspend", response_model=AccountStatusRead)
def suspend_customer(
    customer_id: str,
    payload: SuspendRequest,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("edit_customer")),
):
    return suspension_service.suspend(
        db, customer_id, payload.reason_code, payload.notes, principal.admin_id
    )


@router.post("/{customer_id}/re-enable", response_model=AccountStatusRead)
def re_enable_customer(
    customer_id: str,
    payload: ReEnableRequest,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("re_enable_account")),
):
    return suspension_service.re_enable(db, customer_id, payload.reason, principal.admin_id)


@router.post("/{customer_id}/extend-trial", response_model=ExtendTrialResult)
def extend_trial(
    customer_id: str,
    payload: ExtendTrialRequest,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("extend_trial")),
    _active: None = Depends(require_active_customer),
):
    customer = customers_service.extend_trial(
        db, customer_id, payload.days, payload.reason, principal.admin_id
    )
    return ExtendTrialResult(trial_ends_at=customer.trial_ends_at)


@router.post("/{customer_id}/change-plan", response_model=ChangePlanResult)
def change_plan(
    customer_id: str,
    payload: ChangePlanRequest,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("edit_customer")),
    _active: None = Depends(require_active_customer),
):
    return customers_service.change_plan(
        db, customer_id, payload.plan_tier, payload.reason, principal.admin_id
    )


@router.post("/{customer_id}/billing-exempt", response_model=BillingExemptResult)
def set_billing_exempt(
    customer_id: str,
    payload: BillingExemptRequest,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("edit_customer")),
    _active: None = Depends(require_active_customer),
):
    customer = customers_service.set_billing_exempt(
        db, customer_id, payload.billing_exempt, payload.reason, principal.admin_id
    )
    return BillingExemptResult(billing_exempt=customer.billing_exempt)
