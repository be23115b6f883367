"""Append-only operator audit trail."""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.models.admin import AdminAction
from backoffice.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _normalize_value(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {key: _normalize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(item) for item in value]
    return value


def record_admin_action(
    db: Session,
    actor_id,
    action_type: str,
    *,
    target_customer_id=None,
    target_user_id=None,
    details: dict | None = None,
    reason: str | None = None,
    commit: bool = False,
) -> AdminAction:
    """Add one audit record to the session.

    The record joins the caller's transaction unless ``commit`` is set, so a
    mutation and its audit entry land together.
    """
    action = AdminAction(
        admin_user_id=coerce_uuid(actor_id),
        action_type=action_type,
        target_customer_id=coerce_uuid(target_customer_id),
        target_user_id=coerce_uuid(target_user_id),
        details=_normalize_value(details) if details else None,
        reason=reason,
    )
    db.add(action)
    if commit:
        db.commit()
    logger.info(
        "admin action %s by %s on customer %s",
        action_type,
        actor_id or "system",
        target_customer_id,
    )
    return action
