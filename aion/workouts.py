from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum

from aion.errors import InvalidEventError, InvalidTransitionError
from aion.events import create_event, new_event_id
from aion.models import CalendarEvent, EventSource, WorkoutStatus


DEFAULT_WORKOUT_START = time(9, 0)
DEFAULT_WORKOUT_MINUTES = 60


class WorkoutCategory(str, Enum):
    YOGA = "yoga"
    STRENGTH = "strength"
    CARDIO = "cardio"
    FULL_BODY = "full_body"
    REST = "rest"
    PILATES = "pilates"
    CUSTOM = "custom"
    OTHER = "other"


class DisplayStyle(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"
    FADED = "faded"


WORKOUT_TAGS = {
    "yoga": WorkoutCategory.YOGA,
    "flexibility": WorkoutCategory.YOGA,
    "strength": WorkoutCategory.STRENGTH,
    "glutes": WorkoutCategory.STRENGTH,
    "upper": WorkoutCategory.STRENGTH,
    "lift": WorkoutCategory.STRENGTH,
    "cardio": WorkoutCategory.CARDIO,
    "running": WorkoutCategory.CARDIO,
    "run": WorkoutCategory.CARDIO,
    "cycling": WorkoutCategory.CARDIO,
    "full": WorkoutCategory.FULL_BODY,
    "full body": WorkoutCategory.FULL_BODY,
    "full_body": WorkoutCategory.FULL_BODY,
    "rest": WorkoutCategory.REST,
    "pilates": WorkoutCategory.PILATES,
    "custom": WorkoutCategory.CUSTOM,
}

WORKOUT_ICONS = {
    WorkoutCategory.YOGA: "flower",
    WorkoutCategory.STRENGTH: "dumbbell",
    WorkoutCategory.CARDIO: "wind",
    WorkoutCategory.FULL_BODY: "flame",
    WorkoutCategory.REST: "coffee",
    WorkoutCategory.PILATES: "sparkles",
    WorkoutCategory.CUSTOM: "activity",
    WorkoutCategory.OTHER: "activity",
}

STATUS_STYLES = {
    WorkoutStatus.COMPLETED: DisplayStyle.SOLID,
    WorkoutStatus.PLANNED: DisplayStyle.DASHED,
    WorkoutStatus.MISSED: DisplayStyle.FADED,
}


def workout_category(tag: str | WorkoutCategory | None) -> WorkoutCategory:
    if isinstance(tag, WorkoutCategory):
        return tag
    key = " ".join(str(tag or "").strip().lower().replace("-", " ").split())
    return WORKOUT_TAGS.get(key, WorkoutCategory.OTHER)


def workout_icon(category: WorkoutCategory) -> str:
    return WORKOUT_ICONS[category]


def display_style(event: CalendarEvent) -> DisplayStyle:
    # Status alone decides; elapsed planned workouts stay dashed.
    if event.source != EventSource.HEALTH or event.status is None:
        return DisplayStyle.SOLID
    return STATUS_STYLES[event.status]


def log_workout(
    day: date,
    activity_name: str,
    category: str | WorkoutCategory = WorkoutCategory.CUSTOM,
    *,
    start_time: time | None = None,
    duration_minutes: int | None = None,
    tz: tzinfo = timezone.utc,
    location: str = "",
) -> CalendarEvent:
    """Create a planned workout; completion is never inferred from creation."""
    title = str(activity_name or "").strip()
    if not title:
        raise InvalidEventError("activity_name is required")
    minutes = DEFAULT_WORKOUT_MINUTES if duration_minutes is None else int(duration_minutes)
    if minutes <= 0:
        raise InvalidEventError("duration_minutes must be positive")
    start = datetime.combine(day, start_time or DEFAULT_WORKOUT_START, tzinfo=tz)
    tag = category.value if isinstance(category, WorkoutCategory) else str(category or "").strip().lower()
    return create_event(
        id=new_event_id("workout"),
        title=title,
        start=start,
        end=start + timedelta(minutes=minutes),
        source=EventSource.HEALTH,
        location=location,
        is_fixed=True,
        status=WorkoutStatus.PLANNED,
        workout_type=tag or WorkoutCategory.CUSTOM.value,
    )


def _transition(event: CalendarEvent, target: WorkoutStatus) -> CalendarEvent:
    if event.source != EventSource.HEALTH:
        raise InvalidTransitionError(f"event {event.id} is not a workout")
    if event.status != WorkoutStatus.PLANNED:
        current = event.status.value if event.status else "unset"
        raise InvalidTransitionError(f"workout {event.id} is {current}; cannot mark {target.value}")
    return event.with_updates(status=target)


def mark_completed(event: CalendarEvent) -> CalendarEvent:
    return _transition(event, WorkoutStatus.COMPLETED)


def mark_missed(event: CalendarEvent) -> CalendarEvent:
    return _transition(event, WorkoutStatus.MISSED)


def transition(event: CalendarEvent, target: WorkoutStatus | str) -> CalendarEvent:
    resolved = target if isinstance(target, WorkoutStatus) else WorkoutStatus(str(target).strip().lower())
    if resolved == WorkoutStatus.COMPLETED:
        return mark_completed(event)
    if resolved == WorkoutStatus.MISSED:
        return mark_missed(event)
    raise InvalidTransitionError(f"cannot transition workout {event.id} back to {resolved.value}")
