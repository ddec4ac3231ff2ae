from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Collection, Union

from aion.errors import InvalidEventError
from aion.events import DEFAULT_DRAFT_DURATION_MINUTES, DEFAULT_DRAFT_START, EventDraft
from aion.models import CalendarEvent, DayAnalysis, EventSource, Suggestion, parse_clock


Proposal = Union[Suggestion, CalendarEvent]

CLOCK_PATTERN = re.compile(
    r"(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?:(?P<meridiem>am|pm|a\.m\.|p\.m\.)(?![a-z]))?",
    re.IGNORECASE,
)
RANGE_SEPARATOR = re.compile(r"\s*(?:-|–|\bto\b|\buntil\b)\s*", re.IGNORECASE)

PERIOD_WINDOWS = {
    "morning": (time(9, 0), 60),
    "midday": (time(12, 0), 60),
    "noon": (time(12, 0), 60),
    "lunch": (time(12, 0), 60),
    "afternoon": (time(15, 0), 60),
    "evening": (time(19, 0), 60),
    "night": (time(21, 0), 60),
    "bedtime": (time(22, 0), 30),
}


@dataclass(frozen=True)
class SuggestionOverrides:
    """Edits made in the confirm dialog; never written back to the suggestion."""

    title: str | None = None
    day: date | None = None
    start_time: time | None = None
    duration_minutes: int | None = None
    category: EventSource | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "SuggestionOverrides":
        payload = payload or {}
        try:
            day_value = payload.get("day")
            start_value = payload.get("start_time")
            category_value = payload.get("category")
            return cls(
                title=payload.get("title"),
                day=date.fromisoformat(str(day_value)) if day_value else None,
                start_time=parse_clock(start_value, DEFAULT_DRAFT_START) if start_value else None,
                duration_minutes=(
                    int(payload["duration_minutes"]) if payload.get("duration_minutes") is not None else None
                ),
                category=EventSource.parse(category_value) if category_value else None,
                description=payload.get("description"),
            )
        except ValueError as exc:
            raise InvalidEventError(str(exc)) from exc


def _to_clock(hour: int, minute: int, meridiem: str | None) -> time | None:
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12
        if meridiem.lower().startswith("p"):
            hour += 12
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour, minute)


def parse_time_slot(label: str | None, day: date, tz: tzinfo) -> tuple[datetime, datetime] | None:
    """Read a free-text slot label such as "14:30", "2-3pm" or "evening"."""
    text = str(label or "").strip().lower()
    if not text:
        return None
    parts = RANGE_SEPARATOR.split(text, maxsplit=1)
    first = CLOCK_PATTERN.search(parts[0])
    if first and (first.group("minute") or first.group("meridiem") or len(parts) > 1):
        second = CLOCK_PATTERN.search(parts[1]) if len(parts) > 1 else None
        end_meridiem = second.group("meridiem") if second else None
        start_clock = _to_clock(
            int(first.group("hour")),
            int(first.group("minute") or 0),
            first.group("meridiem") or end_meridiem,
        )
        if start_clock is not None:
            start = datetime.combine(day, start_clock, tzinfo=tz)
            end = start + timedelta(minutes=DEFAULT_DRAFT_DURATION_MINUTES)
            if second:
                end_clock = _to_clock(int(second.group("hour")), int(second.group("minute") or 0), end_meridiem)
                if end_clock is not None and end_clock > start_clock:
                    end = datetime.combine(day, end_clock, tzinfo=tz)
            return start, end
    for word, (start_clock, minutes) in PERIOD_WINDOWS.items():
        if word in text:
            start = datetime.combine(day, start_clock, tzinfo=tz)
            return start, start + timedelta(minutes=minutes)
    return None


def list_pending(analysis: DayAnalysis | None, accepted_ids: Collection[str]) -> list[Suggestion]:
    if analysis is None:
        return []
    return [suggestion for suggestion in analysis.suggestions if suggestion.id not in accepted_ids]


def list_pending_schedule(analysis: DayAnalysis | None, accepted_ids: Collection[str]) -> list[CalendarEvent]:
    if analysis is None:
        return []
    return [event for event in analysis.schedule if event.id not in accepted_ids]


def find_proposal(analysis: DayAnalysis | None, proposal_id: str) -> Proposal | None:
    if analysis is None:
        return None
    for suggestion in analysis.suggestions:
        if suggestion.id == proposal_id:
            return suggestion
    for event in analysis.schedule:
        if event.id == proposal_id:
            return event
    return None


def draft_from_proposal(proposal: Proposal, reference_day: date, tz: tzinfo) -> EventDraft:
    start = proposal.start.astimezone(tz) if proposal.start else None
    end = proposal.end.astimezone(tz) if proposal.end else None
    if start is None and isinstance(proposal, Suggestion):
        window = parse_time_slot(proposal.time_slot, reference_day, tz)
        if window:
            start, end = window
    if start is None:
        return EventDraft(
            title=proposal.title,
            day=reference_day,
            description=proposal.description,
            converts_from=proposal.id,
        )
    minutes = round((end - start).total_seconds() / 60) if end else DEFAULT_DRAFT_DURATION_MINUTES
    category = proposal.source if isinstance(proposal, CalendarEvent) else EventSource.AION_AI
    return EventDraft(
        title=proposal.title,
        day=start.date(),
        start_time=start.time(),
        duration_minutes=max(1, minutes),
        category=category,
        description=proposal.description,
        location=getattr(proposal, "location", ""),
        converts_from=proposal.id,
    )


def accept(
    proposal: Proposal,
    overrides: SuggestionOverrides | None = None,
    *,
    reference_day: date | None = None,
    tz: tzinfo = timezone.utc,
) -> CalendarEvent:
    """Convert a suggestion or proposed schedule item into a committed event.

    The result always gets a fresh id, AION_AI origin, ``is_fixed=True`` and no
    status. Recording the acceptance is left to the caller.
    """
    reference_day = reference_day or datetime.now(tz).date()
    draft = draft_from_proposal(proposal, reference_day, tz)
    if overrides is not None:
        draft = EventDraft(
            title=overrides.title if overrides.title is not None else draft.title,
            day=overrides.day or draft.day,
            start_time=overrides.start_time or draft.start_time,
            duration_minutes=(
                overrides.duration_minutes if overrides.duration_minutes is not None else draft.duration_minutes
            ),
            category=overrides.category or draft.category,
            description=overrides.description if overrides.description is not None else draft.description,
            location=draft.location,
            converts_from=proposal.id,
        )
    return draft.build(tz)
