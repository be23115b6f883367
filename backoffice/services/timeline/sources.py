"""Event sources merged into the customer timeline.

A source knows how to read its own rows for a customer and how to project
one row into a ``TimelineEvent``. Adding a source means adding a subclass
here and listing it in ``DEFAULT_SOURCES``; merging and paging stay as-is.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session, selectinload

from backoffice.models.activity import LockboxAuditEntry, SentEmail
from backoffice.models.admin import AdminAction
from backoffice.schemas.timeline import TimelineEvent
from backoffice.services.timeline import normalizers


@dataclass(frozen=True)
class TimelineQuery:
    customer_id: uuid.UUID
    since: datetime
    limit: int
    lockbox_display_ids: dict[uuid.UUID, str] = field(default_factory=dict)


class TimelineSource:
    name = "source"

    def applies(self, query: TimelineQuery) -> bool:
        return True

    def fetch(self, db: Session, query: TimelineQuery) -> list:
        """Return up to ``query.limit`` rows newer than ``query.since``, newest first."""
        raise NotImplementedError

    def normalize(self, row, query: TimelineQuery) -> TimelineEvent:
        raise NotImplementedError


class LockboxActivitySource(TimelineSource):
    name = "lockbox_action"

    def applies(self, query: TimelineQuery) -> bool:
        return bool(query.lockbox_display_ids)

    def fetch(self, db: Session, query: TimelineQuery) -> list:
        return (
            db.query(LockboxAuditEntry)
            .options(selectinload(LockboxAuditEntry.performed_by))
            .filter(LockboxAuditEntry.lockbox_id.in_(list(query.lockbox_display_ids)))
            .filter(LockboxAuditEntry.performed_at >= query.since)
            .order_by(LockboxAuditEntry.performed_at.desc())
            .limit(query.limit)
            .all()
        )

    def normalize(self, row: LockboxAuditEntry, query: TimelineQuery) -> TimelineEvent:
        return normalizers.normalize_lockbox_action(
            row, query.lockbox_display_ids.get(row.lockbox_id)
        )


class SentEmailSource(TimelineSource):
    name = "email_sent"

    def fetch(self, db: Session, query: TimelineQuery) -> list:
        return (
            db.query(SentEmail)
            .filter(SentEmail.customer_id == query.customer_id)
            .filter(SentEmail.sent_at >= query.since)
            .order_by(SentEmail.sent_at.desc())
            .limit(query.limit)
            .all()
        )

    def normalize(self, row: SentEmail, query: TimelineQuery) -> TimelineEvent:
        return normalizers.normalize_email(row)


class AdminActionSource(TimelineSource):
    name = "admin_action"

    def fetch(self, db: Session, query: TimelineQuery) -> list:
        return (
            db.query(AdminAction)
            .options(selectinload(AdminAction.admin_user))
            .filter(AdminAction.target_customer_id == query.customer_id)
            .filter(AdminAction.performed_at >= query.since)
            .order_by(AdminAction.performed_at.desc())
            .limit(query.limit)
            .all()
        )

    def normalize(self, row: AdminAction, query: TimelineQuery) -> TimelineEvent:
        return normalizers.normalize_admin_action(row)


DEFAULT_SOURCES: tuple[TimelineSource, ...] = (
    LockboxActivitySource(),
    SentEmailSource(),
    AdminActionSource(),
)
