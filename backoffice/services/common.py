"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Timezone normalization
- Enum and reason validation
- Entity retrieval with 404 handling and row locking
- Person name formatting
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TypeVar

from backoffice.services.errors import NotFound, ValidationFailed

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")

MIN_REASON_LENGTH = 3


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise ValidationFailed(f"Invalid identifier: {value}") from exc


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way out)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Raises:
        ValidationFailed: if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationFailed(f"Invalid {label}") from exc


def require_reason(reason: str | None, min_length: int = MIN_REASON_LENGTH) -> str:
    """Return the trimmed reason or raise if it is missing or too short."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationFailed("Reason is required")
    if len(cleaned) < min_length:
        raise ValidationFailed(f"Reason must be at least {min_length} characters")
    return cleaned


def get_or_404(db: Session, model: type[T], id, detail: str | None = None, **options) -> T:
    """Get entity by ID or raise NotFound."""
    entity = db.get(model, coerce_uuid(id), **options)
    if not entity:
        raise NotFound(detail or f"{model.__name__} not found")
    return entity


def lock_or_404(db: Session, model: type[T], id, detail: str | None = None) -> T:
    """Load an entity with ``SELECT ... FOR UPDATE`` or raise NotFound.

    The lock is held until the caller commits or rolls back, so a read-modify-write
    sequence on the row cannot interleave with another request.
    """
    return get_or_404(db, model, id, detail, with_for_update=True, populate_existing=True)


_NAME_PARTICLES = {
    "de", "del", "della", "di", "da",
    "van", "von", "der", "den",
    "la", "le", "les", "du",
    "el", "al",
}
_NAME_PREFIXES = ("mac", "mc", "o'")


def _capitalize(part: str) -> str:
    return part[:1].upper() + part[1:].lower()


def _title_word(word: str, index: int) -> str:
    lower = word.lower()
    if index > 0 and lower in _NAME_PARTICLES:
        return lower
    for prefix in _NAME_PREFIXES:
        if lower.startswith(prefix) and len(lower) > len(prefix):
            head = "O'" if prefix == "o'" else _capitalize(prefix)
            return head + _capitalize(lower[len(prefix):])
    if "-" in word:
        return "-".join(_capitalize(part) for part in word.split("-"))
    apostrophe = word.find("'")
    if 0 < apostrophe < len(word) - 1:
        return _capitalize(word[: apostrophe + 1]) + _capitalize(word[apostrophe + 1:])
    return _capitalize(word)


def format_person_name(name: str | None) -> str:
    """Title-case a person name ("JOHN mcdonald" -> "John McDonald")."""
    if not name or not name.strip():
        return ""
    return " ".join(_title_word(word, index) for index, word in enumerate(name.split()))


def full_name(first_name: str | None, last_name: str | None) -> str:
    return " ".join(
        part for part in (format_person_name(first_name), format_person_name(last_name)) if part
    )
