"""Simulated external calendars.

Google, TUM and Flo integrations are not wired to real services; this module
produces the same deterministic set of events on every call, anchored to the
supplied ``now``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from aion.events import create_event
from aion.models import CalendarEvent, EventSource, WorkoutStatus

GOOGLE_COLOR = "bg-orange-500"
TUM_COLOR = "bg-blue-600"
FLO_COLOR = "bg-pink-200"
WORKOUT_COLOR = "bg-red-500"

PERIOD_LENGTH_DAYS = 5


def _at(today: date, days_offset: int, hour: int, minute: int, tz: tzinfo) -> datetime:
    return datetime.combine(today + timedelta(days=days_offset), time(hour, minute), tzinfo=tz)


def generate_weekly_events(now: datetime | None = None, tz: tzinfo = timezone.utc) -> list[CalendarEvent]:
    now = now or datetime.now(tz)
    today = now.astimezone(tz).date()
    events: list[CalendarEvent] = []

    events.append(
        create_event(
            id="g-1",
            title="Go to dentist at 3",
            start=_at(today, 0, 15, 0, tz),
            end=_at(today, 0, 16, 0, tz),
            source=EventSource.GOOGLE,
            color=GOOGLE_COLOR,
            is_fixed=True,
            location="Dr. Smith Clinic",
            description="Routine checkup.",
        )
    )
    events.append(
        create_event(
            id="g-2",
            title="Meeting at 5",
            start=_at(today, 0, 17, 0, tz),
            end=_at(today, 0, 18, 0, tz),
            source=EventSource.GOOGLE,
            color=GOOGLE_COLOR,
            is_fixed=True,
            location="Conference Room B",
            description="Project Sync.",
        )
    )

    events.append(
        create_event(
            id="tum-1",
            title="Lecture in Garching at 11",
            start=_at(today, 0, 11, 0, tz),
            end=_at(today, 0, 12, 30, tz),
            source=EventSource.TUM,
            color=TUM_COLOR,
            is_fixed=True,
            location="Garching",
            description="Informatics 101",
        )
    )
    events.append(
        create_event(
            id="tum-2",
            title="Seminar in Main Campus at 6",
            start=_at(today, 0, 18, 0, tz),
            end=_at(today, 0, 19, 30, tz),
            source=EventSource.TUM,
            color=TUM_COLOR,
            is_fixed=True,
            location="Main Campus",
            description="Advanced Topics Seminar",
        )
    )

    # Period block started yesterday and runs through the end of its fifth day after.
    cycle_start = datetime.combine(today - timedelta(days=1), time.min, tzinfo=tz)
    cycle_end = datetime.combine(cycle_start.date() + timedelta(days=PERIOD_LENGTH_DAYS), time.max, tzinfo=tz)
    events.append(
        create_event(
            id="flo-period",
            title="Period (Day 2)",
            start=cycle_start,
            end=cycle_end,
            source=EventSource.FLO,
            color=FLO_COLOR,
            is_fixed=True,
            description="Menstruation phase.",
        )
    )

    workouts = [
        ("w-past-1", "Morning Run", -1, (7, 0), (7, 45), "running", WorkoutStatus.COMPLETED, "Park"),
        ("w-past-2", "Evening Yoga", -2, (19, 0), (20, 0), "yoga", WorkoutStatus.MISSED, "Living Room"),
        ("w-past-3", "Upper Body Power", -3, (18, 0), (19, 0), "upper", WorkoutStatus.COMPLETED, "Gym"),
        ("w-past-4", "5k Run", -4, (7, 0), (7, 45), "running", WorkoutStatus.MISSED, "Outdoors"),
    ]
    for event_id, title, offset, (sh, sm), (eh, em), workout_type, status, location in workouts:
        events.append(
            create_event(
                id=event_id,
                title=title,
                start=_at(today, offset, sh, sm, tz),
                end=_at(today, offset, eh, em, tz),
                source=EventSource.HEALTH,
                workout_type=workout_type,
                status=status,
                is_fixed=True,
                location=location,
                color=WORKOUT_COLOR,
            )
        )

    return events
