"""Merge the per-source event logs into one ordered, paginated feed.

Every source is capped at ``timeline_fetch_limit`` rows before the merge, so
for a customer with more recent activity than one cap in a single source,
pages past that point are approximate: older rows of the busy source never
enter the merged list while older rows of quieter sources still do.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Sequence

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.db import SessionLocal
from backoffice.metrics import TIMELINE_SOURCE_FETCH
from backoffice.models.customer import Customer, Lockbox
from backoffice.schemas.timeline import TimelineEvent, TimelinePage
from backoffice.services.common import as_utc, get_or_404, utcnow
from backoffice.services.errors import ValidationFailed
from backoffice.services.timeline.sources import (
    DEFAULT_SOURCES,
    TimelineQuery,
    TimelineSource,
)

logger = logging.getLogger(__name__)


class TimelineAggregator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sources: Sequence[TimelineSource] = DEFAULT_SOURCES,
        max_workers: int | None = None,
        fetch_limit: int | None = None,
        page_size: int | None = None,
    ):
        self.session_factory = session_factory
        self.sources = tuple(sources)
        self.max_workers = max_workers
        self.fetch_limit = fetch_limit or settings.timeline_fetch_limit
        self.page_size = page_size or settings.timeline_page_size

    def _collect(self, source: TimelineSource, query: TimelineQuery) -> list[TimelineEvent]:
        started = time.perf_counter()
        session = self.session_factory()
        try:
            rows = source.fetch(session, query)
            return [source.normalize(row, query) for row in rows]
        finally:
            session.close()
            TIMELINE_SOURCE_FETCH.labels(source=source.name).observe(
                time.perf_counter() - started
            )

    def collect(self, query: TimelineQuery) -> list[TimelineEvent]:
        """Fetch all applicable sources concurrently and merge newest first."""
        sources = [source for source in self.sources if source.applies(query)]
        if not sources:
            return []
        workers = min(self.max_workers or settings.timeline_max_workers, len(sources))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._collect, source, query) for source in sources]
            batches = [future.result() for future in futures]
        merged = [event for batch in batches for event in batch]
        # sorted() is stable, so equal timestamps keep source order.
        return sorted(merged, key=lambda event: as_utc(event.timestamp), reverse=True)

    def get_timeline(
        self,
        db: Session,
        customer_id: str,
        since: datetime | None = None,
        page: int = 0,
    ) -> TimelinePage:
        if page < 0:
            raise ValidationFailed("Page must be zero or greater")
        customer = get_or_404(db, Customer, customer_id, "Customer not found")
        if since is None:
            since = utcnow() - timedelta(days=settings.timeline_default_window_days)
        lockboxes = (
            db.query(Lockbox.id, Lockbox.display_id)
            .filter(Lockbox.customer_id == customer.id)
            .all()
        )
        query = TimelineQuery(
            customer_id=customer.id,
            since=as_utc(since),
            limit=self.fetch_limit,
            lockbox_display_ids={lockbox.id: lockbox.display_id for lockbox in lockboxes},
        )
        events = self.collect(query)
        total = len(events)
        start = page * self.page_size
        logger.debug(
            "Timeline for customer %s: %s events since %s", customer.id, total, query.since
        )
        return TimelinePage(
            events=events[start : start + self.page_size],
            page=page,
            page_size=self.page_size,
            total=total,
            has_more=start + self.page_size < total,
        )


def get_session_factory() -> Callable[[], Session]:
    """Dependency for the sessions opened by the per-source fetch workers."""
    return SessionLocal


def get_timeline(
    db: Session,
    customer_id: str,
    since: datetime | None = None,
    page: int = 0,
    session_factory: Callable[[], Session] | None = None,
    max_workers: int | None = None,
) -> TimelinePage:
    if session_factory is None:
        session_factory = get_session_factory()
    aggregator = TimelineAggregator(session_factory, max_workers=max_workers)
    return aggregator.get_timeline(db, customer_id, since=since, page=page)
