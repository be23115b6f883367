"""Customer activity timeline."""

from backoffice.services.timeline.aggregator import (
    TimelineAggregator,
    get_session_factory,
    get_timeline,
)
from backoffice.services.timeline.sources import TimelineQuery, TimelineSource

__all__ = [
    "TimelineAggregator",
    "TimelineQuery",
    "TimelineSource",
    "get_session_factory",
    "get_timeline",
]
