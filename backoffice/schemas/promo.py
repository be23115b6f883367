from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.customer import PlanTier
from backoffice.models.promo import PromoCodeType


class PromoCodeCreate(BaseModel):
    code: str = Field(min_length=1, max_length=60)
    description: str | None = None
    type: PromoCodeType
    free_days: int | None = None
    discount_percent: int | None = None
    duration_months: int | None = None
    max_redemptions: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None
    valid_plans: list[PlanTier] | None = None
    new_customers_only: bool = False
    one_per_customer: bool = False


class PromoCodeUpdate(BaseModel):
    max_redemptions: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None


class PromoCodeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    description: str | None = None
    type: PromoCodeType
    free_days: int | None = None
    discount_percent: int | None = None
    duration_months: int | None = None
    max_redemptions: int | None = None
    current_redemptions: int
    expires_at: datetime | None = None
    valid_plans: list[PlanTier] | None = None
    new_customers_only: bool
    one_per_customer: bool
    is_active: bool
    provider_coupon_id: str | None = None
    provider_promotion_code_id: str | None = None
    created_at: datetime
    updated_at: datetime


class PromoApply(BaseModel):
    code: str = Field(min_length=1, max_length=60)
    force: bool = False


class PromoApplyResult(BaseModel):
    success: bool = True
    type: PromoCodeType
    trial_ends_at: datetime | None = None
