import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db import Base


class PlanTier(enum.Enum):
    free_trial = "free_trial"
    solo = "solo"
    solo_pro = "solo_pro"
    solo_max = "solo_max"
    team_starter = "team_starter"
    team_growth = "team_growth"
    team_pro = "team_pro"
    enterprise = "enterprise"


PLAN_TIER_LABELS = {
    PlanTier.free_trial: "Free Trial",
    PlanTier.solo: "Solo",
    PlanTier.solo_pro: "Solo Pro",
    PlanTier.solo_max: "Solo Max",
    PlanTier.team_starter: "Team Starter",
    PlanTier.team_growth: "Team Growth",
    PlanTier.team_pro: "Team Pro",
    PlanTier.enterprise: "Enterprise",
}

# Trial length assumed while trial_ends_at is unset.
DEFAULT_TRIAL_DAYS = 14


class AccountStatus(enum.Enum):
    active = "active"
    suspended = "suspended"


class SubscriptionStatus(enum.Enum):
    active = "active"
    past_due = "past_due"
    canceled = "canceled"
    inactive = "inactive"


class Customer(Base):
    """A tenant of the product; owns billing state and lockboxes."""

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    plan_tier: Mapped[PlanTier] = mapped_column(Enum(PlanTier), default=PlanTier.free_trial)
    billing_exempt: Mapped[bool] = mapped_column(Boolean, default=False)
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    has_ever_subscribed: Mapped[bool] = mapped_column(Boolean, default=False)

    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus), default=AccountStatus.active
    )
    suspended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    suspended_reason: Mapped[str | None] = mapped_column(Text)
    suspended_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("admin_users.id")
    )
    re_enabled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    re_enabled_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("admin_users.id")
    )
    re_enable_reason: Mapped[str | None] = mapped_column(Text)

    pending_promo_code_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("promo_codes.id")
    )
    pending_code_expiry_notified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    billing_snapshot = relationship(
        "BillingSnapshot", back_populates="customer", uselist=False
    )
    pending_promo_code = relationship("PromoCode", foreign_keys=[pending_promo_code_id])
    users = relationship("CustomerUser", back_populates="customer")
    lockboxes = relationship("Lockbox", back_populates="customer")


class BillingSnapshot(Base):
    """Local mirror of the billing provider's subscription for a customer."""

    __tablename__ = "billing_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, unique=True
    )
    provider_customer_id: Mapped[str | None] = mapped_column(String(120))
    provider_subscription_id: Mapped[str | None] = mapped_column(String(120))
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus), default=SubscriptionStatus.inactive
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    customer = relationship("Customer", back_populates="billing_snapshot")


class CustomerUser(Base):
    __tablename__ = "customer_users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False
    )
    first_name: Mapped[str | None] = mapped_column(String(80))
    last_name: Mapped[str | None] = mapped_column(String(80))
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    customer = relationship("Customer", back_populates="users")


class Lockbox(Base):
    __tablename__ = "lockboxes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True
    )
    display_id: Mapped[str] = mapped_column(String(40), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    customer = relationship("Customer", back_populates="lockboxes")
