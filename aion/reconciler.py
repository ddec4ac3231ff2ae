from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Callable, Iterable

from aion.errors import ReconciliationPartialFailure
from aion.models import CalendarEvent, ConnectionFlags, EventSource


FeedGenerator = Callable[[], Iterable[CalendarEvent]]


@dataclass
class ReconcileOutcome:
    events: list[CalendarEvent]
    degraded: bool
    reason: str
    failure: ReconciliationPartialFailure | None = None


def source_visible(source: EventSource, flags: ConnectionFlags) -> bool:
    if source == EventSource.GOOGLE:
        return flags.google
    if source == EventSource.TUM:
        return flags.tum
    if source == EventSource.FLO:
        return flags.has_cycle
    return True


def reconcile(
    *,
    feed: FeedGenerator | None,
    user_events: Iterable[CalendarEvent],
    flags: ConnectionFlags,
) -> ReconcileOutcome:
    """Merge the simulated feed with the user pool.

    Feed events are filtered by connection flags; the user pool is appended
    unfiltered, so concatenation order doubles as z-order (feed below user).
    A failing feed degrades the result to the user pool alone.
    """
    user_pool = list(user_events)
    if feed is None:
        return ReconcileOutcome(events=user_pool, degraded=False, reason="feed_disabled")
    try:
        feed_events = list(feed())
    except Exception as exc:
        failure = ReconciliationPartialFailure(exc)
        return ReconcileOutcome(
            events=user_pool,
            degraded=True,
            reason="feed_failed",
            failure=failure,
        )
    visible = [event for event in feed_events if source_visible(event.source, flags)]
    return ReconcileOutcome(events=visible + user_pool, degraded=False, reason="merged")


def grid_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return [event for event in events if event.source != EventSource.FLO]


def is_phase_day(day: date, events: Iterable[CalendarEvent], tz: tzinfo) -> bool:
    for event in events:
        if event.source != EventSource.FLO:
            continue
        if event.start.astimezone(tz).date() <= day <= event.end.astimezone(tz).date():
            return True
    return False
