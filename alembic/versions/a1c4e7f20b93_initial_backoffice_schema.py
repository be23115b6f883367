"""initial back-office schema

Revision ID: a1c4e7f20b93
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b93"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLAN_TIERS = (
    "free_trial",
    "solo",
    "solo_pro",
    "solo_max",
    "team_starter",
    "team_growth",
    "team_pro",
    "enterprise",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(80), nullable=True),
        sa.Column("last_name", sa.String(80), nullable=True),
        sa.Column(
            "role",
            sa.Enum("super_admin", "support_l1", "support_l2", name="adminrole"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "promo_codes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(60), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "type",
            sa.Enum("extended_trial", "subscription_discount", name="promocodetype"),
            nullable=False,
        ),
        sa.Column("free_days", sa.Integer, nullable=True),
        sa.Column("discount_percent", sa.Integer, nullable=True),
        sa.Column("duration_months", sa.Integer, nullable=True),
        sa.Column("max_redemptions", sa.Integer, nullable=True),
        sa.Column("current_redemptions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_plans", sa.JSON, nullable=True),
        sa.Column("new_customers_only", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("one_per_customer", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column("provider_coupon_id", sa.String(120), nullable=True),
        sa.Column("provider_promotion_code_id", sa.String(120), nullable=True),
        sa.Column(
            "created_by_id", UUID(as_uuid=True), sa.ForeignKey("admin_users.id"), nullable=True
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_promo_codes_redemption_limit",
        ),
    )

    op.create_table(
        "customers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("plan_tier", sa.Enum(*PLAN_TIERS, name="plantier"), nullable=True),
        sa.Column("billing_exempt", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_ever_subscribed", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column(
            "account_status",
            sa.Enum("active", "suspended", name="accountstatus"),
            nullable=True,
        ),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_reason", sa.Text, nullable=True),
        sa.Column(
            "suspended_by_id", UUID(as_uuid=True), sa.ForeignKey("admin_users.id"), nullable=True
        ),
        sa.Column("re_enabled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "re_enabled_by_id", UUID(as_uuid=True), sa.ForeignKey("admin_users.id"), nullable=True
        ),
        sa.Column("re_enable_reason", sa.Text, nullable=True),
        sa.Column(
            "pending_promo_code_id",
            UUID(as_uuid=True),
            sa.ForeignKey("promo_codes.id"),
            nullable=True,
        ),
        sa.Column("pending_code_expiry_notified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "billing_snapshots",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "customer_id",
            UUID(as_uuid=True),
            sa.ForeignKey("customers.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("provider_customer_id", sa.String(120), nullable=True),
        sa.Column("provider_subscription_id", sa.String(120), nullable=True),
        sa.Column(
            "subscription_status",
            sa.Enum("active", "past_due", "canceled", "inactive", name="subscriptionstatus"),
            nullable=True,
        ),
        sa.Column("cancel_at_period_end", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "customer_users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("first_name", sa.String(80), nullable=True),
        sa.Column("last_name", sa.String(80), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "lockboxes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("display_id", sa.String(40), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_lockboxes_customer_id", "lockboxes", ["customer_id"])

    op.create_table(
        "lockbox_audit_log",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lockbox_id", UUID(as_uuid=True), sa.ForeignKey("lockboxes.id"), nullable=False),
        sa.Column("action", sa.String(80), nullable=False),
        sa.Column("action_method", sa.String(40), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column(
            "performed_by_id",
            UUID(as_uuid=True),
            sa.ForeignKey("customer_users.id"),
            nullable=True,
        ),
        sa.Column("performed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_lockbox_audit_log_lockbox_performed",
        "lockbox_audit_log",
        ["lockbox_id", "performed_at"],
    )

    op.create_table(
        "sent_emails",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("template_key", sa.String(120), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("status", sa.String(40), nullable=True, server_default="sent"),
        sa.Column("provider_message_id", sa.String(120), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_sent_emails_customer_sent", "sent_emails", ["customer_id", "sent_at"])

    op.create_table(
        "promo_code_redemptions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "promo_code_id", UUID(as_uuid=True), sa.ForeignKey("promo_codes.id"), nullable=False
        ),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "reversed", name="redemptionstatus"),
            nullable=True,
        ),
        sa.Column(
            "applied_to",
            sa.Enum("trial_extension", "subscription", name="redemptiontarget"),
            nullable=True,
        ),
        sa.Column(
            "applied_by_id", UUID(as_uuid=True), sa.ForeignKey("admin_users.id"), nullable=True
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_promo_code_redemptions_code_customer",
        "promo_code_redemptions",
        ["promo_code_id", "customer_id"],
    )

    op.create_table(
        "admin_actions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "admin_user_id", UUID(as_uuid=True), sa.ForeignKey("admin_users.id"), nullable=True
        ),
        sa.Column("action_type", sa.String(80), nullable=False),
        sa.Column(
            "target_customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True
        ),
        sa.Column("target_user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("performed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_admin_actions_target_customer_performed",
        "admin_actions",
        ["target_customer_id", "performed_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_admin_actions_target_customer_performed", table_name="admin_actions")
    op.drop_table("admin_actions")
    op.drop_index("ix_promo_code_redemptions_code_customer", table_name="promo_code_redemptions")
    op.drop_table("promo_code_redemptions")
    op.drop_index("ix_sent_emails_customer_sent", table_name="sent_emails")
    op.drop_table("sent_emails")
    op.drop_index("ix_lockbox_audit_log_lockbox_performed", table_name="lockbox_audit_log")
    op.drop_table("lockbox_audit_log")
    op.drop_index("ix_lockboxes_customer_id", table_name="lockboxes")
    op.drop_table("lockboxes")
    op.drop_table("customer_users")
    op.drop_table("billing_snapshots")
    op.drop_table("customers")
    op.drop_table("promo_codes")
    op.drop_table("admin_users")
    bind = op.get_bind()
    for enum_name in (
        "redemptiontarget",
        "redemptionstatus",
        "subscriptionstatus",
        "accountstatus",
        "plantier",
        "promocodetype",
        "adminrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
