from __future__ import annotations

import itertools
import threading
import time as _time
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from aion.errors import InvalidEventError, InvalidRangeError
from aion.models import (
    CalendarEvent,
    EventSource,
    WorkoutStatus,
    _ensure_tz,
    local_midnight,
    parse_clock,
)


ID_PREFIXES = {
    EventSource.AION_AI: "ai",
    EventSource.HEALTH: "workout",
}
DEFAULT_ID_PREFIX = "user"
DEFAULT_DRAFT_START = time(9, 0)
DEFAULT_DRAFT_DURATION_MINUTES = 60

_id_counter = itertools.count(1)
_id_lock = threading.Lock()


def new_event_id(prefix: str = DEFAULT_ID_PREFIX) -> str:
    # The counter keeps ids minted within the same millisecond distinct.
    with _id_lock:
        sequence = next(_id_counter)
    millis = int(_time.time() * 1000)
    return f"{prefix}-{millis}-{sequence}"


def _coerce_status(source: EventSource, status: Any) -> WorkoutStatus | None:
    if status is None or status == "":
        return None
    parsed = status if isinstance(status, WorkoutStatus) else WorkoutStatus(str(status).strip().lower())
    if source != EventSource.HEALTH:
        raise InvalidEventError(f"status is only allowed on {EventSource.HEALTH.value} events")
    return parsed


def create_event(
    *,
    title: str,
    start: datetime,
    end: datetime,
    source: EventSource | str,
    id: str = "",
    description: str = "",
    location: str = "",
    color: str = "",
    is_fixed: bool = False,
    status: WorkoutStatus | str | None = None,
    workout_type: str = "",
) -> CalendarEvent:
    """Build a validated event, minting an id when none is supplied.

    Raises InvalidRangeError when ``end`` precedes ``start`` and
    InvalidEventError when a status is set on a non-HEALTH event.
    """
    if start is None or end is None:
        raise InvalidEventError("start and end are required")
    resolved_source = EventSource.parse(source)
    start = _ensure_tz(start)
    end = _ensure_tz(end)
    if end < start:
        raise InvalidRangeError(f"event end {end.isoformat()} precedes start {start.isoformat()}")
    event_id = str(id or "").strip() or new_event_id(ID_PREFIXES.get(resolved_source, DEFAULT_ID_PREFIX))
    return CalendarEvent(
        id=event_id,
        title=str(title or "").strip(),
        start=start,
        end=end,
        source=resolved_source,
        description=str(description or ""),
        location=str(location or ""),
        color=str(color or ""),
        is_fixed=bool(is_fixed),
        status=_coerce_status(resolved_source, status),
        workout_type=str(workout_type or "").strip(),
    )


def is_multi_day(event: CalendarEvent, tz: tzinfo | None = None) -> bool:
    start = event.start.astimezone(tz) if tz else event.start
    end = event.end.astimezone(tz) if tz else event.end
    return end.date() != start.date()


@dataclass(frozen=True)
class DaySpan:
    start_hour: float
    end_hour: float

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour


def _hours_between(origin: datetime, moment: datetime) -> float:
    return (moment - origin).total_seconds() / 3600.0


def clamp_to_day(event: CalendarEvent, day: date, tz: tzinfo) -> DaySpan | None:
    """Return the fractional-hour slice of ``event`` that falls on ``day``.

    Hours are measured from the day's local midnight in ``tz`` and clamped to
    ``[0, 24]``. Events that do not touch the day return None; an event ending
    exactly at midnight does not leak onto the following day.
    """
    day_start = local_midnight(day, tz)
    day_end = local_midnight(day + timedelta(days=1), tz)
    start = event.start.astimezone(tz)
    end = event.end.astimezone(tz)
    if start >= day_end:
        return None
    if end <= day_start and not (start == end and start >= day_start):
        return None
    start_hour = max(0.0, _hours_between(day_start, start))
    end_hour = min(24.0, _hours_between(day_start, end))
    return DaySpan(start_hour=start_hour, end_hour=max(start_hour, end_hour))


@dataclass(frozen=True)
class EventDraft:
    """Form state shared by manual add, edit and suggestion conversion."""

    title: str
    day: date
    start_time: time = DEFAULT_DRAFT_START
    duration_minutes: int = DEFAULT_DRAFT_DURATION_MINUTES
    category: EventSource = EventSource.SOCIAL
    description: str = ""
    location: str = ""
    converts_from: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any], *, default_day: date) -> "EventDraft":
        day_value = payload.get("day")
        try:
            day = date.fromisoformat(str(day_value)) if day_value else default_day
            start_time = parse_clock(payload.get("start_time"), DEFAULT_DRAFT_START)
            category = EventSource.parse(payload.get("category") or EventSource.SOCIAL)
        except ValueError as exc:
            raise InvalidEventError(str(exc)) from exc
        return cls(
            title=str(payload.get("title", "") or ""),
            day=day,
            start_time=start_time,
            duration_minutes=int(payload.get("duration_minutes", DEFAULT_DRAFT_DURATION_MINUTES)),
            category=category,
            description=str(payload.get("description", "") or ""),
            location=str(payload.get("location", "") or ""),
        )

    def _validate(self) -> None:
        if not self.title.strip():
            raise InvalidEventError("title is required")
        if self.duration_minutes <= 0:
            raise InvalidEventError("duration_minutes must be positive")

    def window(self, tz: tzinfo) -> tuple[datetime, datetime]:
        start = datetime.combine(self.day, self.start_time, tzinfo=tz)
        return start, start + timedelta(minutes=self.duration_minutes)

    def build(self, tz: tzinfo) -> CalendarEvent:
        self._validate()
        start, end = self.window(tz)
        if self.converts_from:
            return create_event(
                title=self.title,
                start=start,
                end=end,
                source=EventSource.AION_AI,
                description=self.description or "Added from suggestions",
                location=self.location,
                is_fixed=True,
            )
        return create_event(
            title=self.title,
            start=start,
            end=end,
            source=self.category,
            id=new_event_id(DEFAULT_ID_PREFIX),
            description=self.description or "Added by you",
            location=self.location,
            is_fixed=True,
        )

    def apply_to(self, event: CalendarEvent, tz: tzinfo) -> CalendarEvent:
        self._validate()
        start, end = self.window(tz)
        return event.with_updates(
            title=self.title.strip(),
            start=start,
            end=end,
            description=self.description or event.description,
            location=self.location or event.location,
        )
