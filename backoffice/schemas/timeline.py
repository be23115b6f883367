from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

TimelineEventType = Literal["lockbox_action", "email_sent", "admin_action"]


class TimelineActor(BaseModel):
    name: str
    email: str | None = None
    role: Literal["customer", "admin"]


class TimelineEvent(BaseModel):
    id: str
    type: TimelineEventType
    timestamp: datetime
    title: str = Field(min_length=1)
    subtitle: str | None = None
    actor: TimelineActor | None = None
    badge: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TimelinePage(BaseModel):
    events: list[TimelineEvent]
    page: int
    page_size: int
    total: int
    has_more: bool
