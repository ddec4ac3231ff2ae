from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from icalendar import Calendar as ICalendar
from icalendar import Event as ICEvent

from aion.models import CalendarEvent


PRODID = "-//Aion//Wellness Calendar//EN"


def build_vevent(event: CalendarEvent, stamp: datetime | None = None) -> ICEvent:
    vevent = ICEvent()
    vevent.add("UID", event.id)
    vevent.add("DTSTAMP", (stamp or datetime.now(timezone.utc)).astimezone(timezone.utc))
    vevent.add("SUMMARY", event.title or "")
    vevent.add("DESCRIPTION", event.description or "")
    if event.location:
        vevent.add("LOCATION", event.location)
    vevent.add("DTSTART", event.start)
    vevent.add("DTEND", event.end)
    vevent.add("CATEGORIES", [event.source.value])
    if event.status is not None:
        vevent.add("X-AION-WORKOUT-STATUS", event.status.value)
    if event.workout_type:
        vevent.add("X-AION-WORKOUT-TYPE", event.workout_type)
    return vevent


def export_ical(events: Iterable[CalendarEvent], now: datetime | None = None) -> str:
    """Serialise events as one VCALENDAR; every VEVENT shares the export's DTSTAMP."""
    stamp = now or datetime.now(timezone.utc)
    calendar_obj = ICalendar()
    calendar_obj.add("PRODID", PRODID)
    calendar_obj.add("VERSION", "2.0")
    for event in events:
        calendar_obj.add_component(build_vevent(event, stamp))
    return calendar_obj.to_ical().decode("utf-8")
