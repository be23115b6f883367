"""Turn raw source rows into ``TimelineEvent`` projections.

Each source owns a label table. Codes missing from a table fall back to the
title-cased code and then to a generic label, so an event never has an empty
title.
"""

from __future__ import annotations

from backoffice.models.activity import LockboxAuditEntry, SentEmail
from backoffice.models.admin import AdminAction
from backoffice.schemas.timeline import TimelineActor, TimelineEvent
from backoffice.services.common import as_utc, full_name

LOCKBOX_ACTION_LABELS = {
    "created": "Lockbox created",
    "moved": "Lockbox status changed",
    "deleted": "Lockbox deleted",
    "reassigned": "Lockbox reassigned",
    "photo_uploaded": "Photo uploaded",
    "photo_deleted": "Photo deleted",
    "phone_verified": "Phone verified",
    "phone_changed": "Phone number changed",
    "member_removed": "Team member removed",
    "invitation_resent": "Invitation resent",
    "invitation_cancelled": "Invitation cancelled",
    # Status values written as actions by older clients.
    "checked_out": "Lockbox checked out",
    "installed": "Lockbox installed",
    "available": "Lockbox marked available",
    "removed": "Lockbox removed",
    "in_transit": "Lockbox in transit",
    "out_of_service": "Lockbox out of service",
    # Legacy
    "create": "Lockbox created",
    "update": "Lockbox updated",
    "delete": "Lockbox deleted",
    "checkout": "Lockbox checked out",
    "install": "Lockbox installed",
    "status_change": "Lockbox status changed",
    "transfer": "Lockbox transferred",
    "code_view": "Code viewed",
    "code_change": "Code changed",
}

EMAIL_TEMPLATE_LABELS = {
    "welcome": "Welcome email",
    "trial_ending": "Trial ending reminder",
    "trial_expired": "Trial expired notice",
    "payment_failed": "Payment failed notice",
    "promo_code_expiring": "Promo code expiry reminder",
    "account_suspended": "Account suspended notice",
    "account_reactivated": "Account re-enabled notice",
}

ADMIN_ACTION_LABELS = {
    "change_plan": "Plan changed",
    "extend_trial": "Trial extended",
    "comp_month": "Month comped",
    "comp_month_failed": "Month comp failed",
    "apply_credit": "Credit applied",
    "apply_promo_code": "Promo code applied",
    "toggle_billing_exempt": "Billing exemption toggled",
    "delete_account": "Account deleted",
    "re_enable_account": "Account re-enabled",
    "suspend_account": "Account suspended",
    "deactivate_team_member": "Team member deactivated",
    "reactivate_team_member": "Team member reactivated",
    "cancel_invitation": "Invitation cancelled",
    "update_customer": "Account info updated",
    "admin_login": "Admin logged in",
    "admin_logout": "Admin logged out",
}


def humanize_code(code: str | None, fallback: str) -> str:
    """``"photo_rotated"`` -> ``"Photo Rotated"``; blank codes get ``fallback``."""
    words = (code or "").replace("_", " ").split()
    if not words:
        return fallback
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _label(table: dict[str, str], code: str | None, fallback: str) -> str:
    return table.get(code or "") or humanize_code(code, fallback)


def normalize_lockbox_action(
    entry: LockboxAuditEntry, display_id: str | None = None
) -> TimelineEvent:
    user = entry.performed_by
    actor = None
    if user is not None:
        actor = TimelineActor(
            name=full_name(user.first_name, user.last_name) or user.email,
            email=user.email,
            role="customer",
        )
    return TimelineEvent(
        id=f"lockbox_{entry.id}",
        type="lockbox_action",
        timestamp=as_utc(entry.performed_at),
        title=_label(LOCKBOX_ACTION_LABELS, entry.action, "Lockbox activity"),
        subtitle=f"Lockbox #{display_id}" if display_id else None,
        actor=actor,
        badge=entry.action or None,
        metadata={
            "action": entry.action,
            "action_method": entry.action_method,
            "lockbox_id": str(entry.lockbox_id),
            "details": entry.details,
        },
    )


def normalize_email(entry: SentEmail) -> TimelineEvent:
    status = entry.status or "sent"
    return TimelineEvent(
        id=f"email_{entry.id}",
        type="email_sent",
        timestamp=as_utc(entry.sent_at),
        title=_label(EMAIL_TEMPLATE_LABELS, entry.template_key, "Email sent"),
        subtitle=f"To: {entry.recipient}" if entry.recipient else None,
        actor=None,
        badge=status,
        metadata={
            "template_key": entry.template_key,
            "status": status,
            "subject": entry.subject,
            "recipient": entry.recipient,
            "provider_message_id": entry.provider_message_id,
        },
    )


def normalize_admin_action(entry: AdminAction) -> TimelineEvent:
    admin = entry.admin_user
    actor = None
    if admin is not None:
        actor = TimelineActor(
            name=full_name(admin.first_name, admin.last_name) or admin.email,
            email=admin.email,
            role="admin",
        )
    details = entry.details or {}
    subtitle = None
    if entry.reason:
        subtitle = f"Reason: {entry.reason}"
    elif details.get("previous_plan_label") and details.get("new_plan_label"):
        subtitle = f"{details['previous_plan_label']} → {details['new_plan_label']}"
    return TimelineEvent(
        id=f"admin_{entry.id}",
        type="admin_action",
        timestamp=as_utc(entry.performed_at),
        title=_label(ADMIN_ACTION_LABELS, entry.action_type, "Admin action"),
        subtitle=subtitle,
        actor=actor,
        badge=entry.action_type or None,
        metadata={
            "action_type": entry.action_type,
            "reason": entry.reason,
            "details": entry.details,
        },
    )
