from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.customer import AccountStatus, PlanTier, SubscriptionStatus
from backoffice.services.status import CustomerStatus


class BillingSnapshotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subscription_status: SubscriptionStatus
    cancel_at_period_end: bool
    current_period_end: datetime | None = None
    provider_customer_id: str | None = None
    provider_subscription_id: str | None = None


class CustomerMemberRead(BaseModel):
    id: UUID
    name: str
    email: str
    is_active: bool


class CustomerDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    plan_tier: PlanTier
    plan_label: str
    billing_exempt: bool
    signup_date: datetime
    trial_ends_at: datetime | None = None
    status: CustomerStatus
    status_label: str
    account_status: AccountStatus
    suspended_at: datetime | None = None
    suspended_reason: str | None = None
    suspended_by_id: UUID | None = None
    re_enabled_at: datetime | None = None
    re_enabled_by_id: UUID | None = None
    pending_promo_code: str | None = None
    billing: BillingSnapshotRead | None = None
    members: list[CustomerMemberRead] = Field(default_factory=list)
    lockbox_count: int = 0


class AccountStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_status: AccountStatus
    suspended_at: datetime | None = None
    suspended_reason: str | None = None
    re_enabled_at: datetime | None = None
    re_enable_reason: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class CompMonthRequest(ReasonRequest):
    pass


class CompMonthResult(BaseModel):
    success: bool = True
    new_period_end: datetime


class ApplyCreditRequest(ReasonRequest):
    amount: int


class ApplyCreditResult(BaseModel):
    success: bool = True
    amount: int
    currency: str


class SuspendRequest(BaseModel):
    reason_code: str | None = Field(default=None, max_length=40)
    notes: str | None = Field(default=None, max_length=2000)


class ReEnableRequest(ReasonRequest):
    pass


class ExtendTrialRequest(ReasonRequest):
    days: int


class ExtendTrialResult(BaseModel):
    success: bool = True
    trial_ends_at: datetime


class ChangePlanRequest(ReasonRequest):
    plan_tier: str | None = Field(default=None, max_length=40)


class ChangePlanResult(BaseModel):
    success: bool = True
    previous_plan: PlanTier
    new_plan: PlanTier


class BillingExemptRequest(ReasonRequest):
    billing_exempt: bool


class BillingExemptResult(BaseModel):
    success: bool = True
    billing_exempt: bool
