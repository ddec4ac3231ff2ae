from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Any, Iterable

from aion.events import DaySpan, clamp_to_day
from aion.models import CalendarEvent, EventSource, LayoutConfig
from aion.navigation import CalendarCursor, ViewMode, week_days
from aion.reconciler import grid_events, is_phase_day
from aion.workouts import DisplayStyle, display_style, workout_category, workout_icon


SHORT_EVENT_HOURS = 0.75
HOURS_PER_DAY = 24.0

SOURCE_COLORS = {
    EventSource.GOOGLE: "orange",
    EventSource.TUM: "blue",
    EventSource.FLO: "pink",
    EventSource.HEALTH: "red",
    EventSource.AION_AI: "violet",
    EventSource.SOCIAL: "amber",
    EventSource.SCHOOL: "slate",
    EventSource.WELLNESS: "slate",
}

SOURCE_ICONS = {
    EventSource.GOOGLE: "calendar",
    EventSource.TUM: "graduation-cap",
    EventSource.FLO: "droplet",
    EventSource.HEALTH: "activity",
    EventSource.AION_AI: "sparkles",
    EventSource.SCHOOL: "graduation-cap",
    EventSource.WELLNESS: "heart",
    EventSource.SOCIAL: "zap",
}


def event_color(event: CalendarEvent) -> str:
    return event.color or SOURCE_COLORS.get(event.source, "slate")


def event_icon(event: CalendarEvent) -> str:
    if event.source == EventSource.HEALTH and event.workout_type:
        return workout_icon(workout_category(event.workout_type))
    return SOURCE_ICONS.get(event.source, "clock")


@dataclass
class EventPlacement:
    event: CalendarEvent
    span: DaySpan
    top: float
    height: float
    z_index: int
    style: DisplayStyle
    color: str
    icon: str

    @property
    def is_short(self) -> bool:
        return self.span.duration_hours <= SHORT_EVENT_HOURS

    def to_dict(self, track_units: int | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "event": self.event.to_dict(),
            "start_hour": self.span.start_hour,
            "end_hour": self.span.end_hour,
            "top": self.top,
            "height": self.height,
            "z_index": self.z_index,
            "style": self.style.value,
            "struck_through": self.style == DisplayStyle.FADED,
            "color": self.color,
            "icon": self.icon,
            "is_short": self.is_short,
        }
        if track_units:
            payload["top_units"] = self.top * track_units
            payload["height_units"] = self.height * track_units
        return payload


@dataclass
class DayColumn:
    day: date
    placements: list[EventPlacement] = field(default_factory=list)
    is_phase_day: bool = False
    is_today: bool = False

    def to_dict(self, track_units: int | None = None) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "is_phase_day": self.is_phase_day,
            "is_today": self.is_today,
            "events": [placement.to_dict(track_units) for placement in self.placements],
        }


@dataclass
class MonthCell:
    day: date
    events: list[CalendarEvent]
    overflow: int
    is_phase_day: bool = False
    is_today: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "events": [
                {**event.to_dict(), "style": display_style(event).value, "color": event_color(event)}
                for event in self.events
            ],
            "overflow": self.overflow,
            "is_phase_day": self.is_phase_day,
            "is_today": self.is_today,
        }


@dataclass
class MonthGrid:
    year: int
    month: int
    leading_blanks: int
    cells: list[MonthCell]

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "leading_blanks": self.leading_blanks,
            "cells": [cell.to_dict() for cell in self.cells],
        }


def place_event(event: CalendarEvent, span: DaySpan, z_index: int, config: LayoutConfig) -> EventPlacement:
    top = span.start_hour / HOURS_PER_DAY
    height = max(span.duration_hours / HOURS_PER_DAY, config.min_height_fraction)
    return EventPlacement(
        event=event,
        span=span,
        top=top,
        height=height,
        z_index=z_index,
        style=display_style(event),
        color=event_color(event),
        icon=event_icon(event),
    )


def events_on_day(day: date, events: Iterable[CalendarEvent], tz: tzinfo) -> list[tuple[CalendarEvent, DaySpan]]:
    matched: list[tuple[CalendarEvent, DaySpan]] = []
    for event in grid_events(events):
        span = clamp_to_day(event, day, tz)
        if span is not None:
            matched.append((event, span))
    return matched


def layout_day(
    day: date,
    events: Iterable[CalendarEvent],
    tz: tzinfo,
    config: LayoutConfig | None = None,
    today: date | None = None,
) -> DayColumn:
    """Place every event touching ``day`` on a 0..1 vertical track.

    Overlapping events are not packed into lanes; input order becomes z-order.
    """
    config = config or LayoutConfig()
    all_events = list(events)
    placements = [
        place_event(event, span, z_index, config)
        for z_index, (event, span) in enumerate(events_on_day(day, all_events, tz))
    ]
    return DayColumn(
        day=day,
        placements=placements,
        is_phase_day=is_phase_day(day, all_events, tz),
        is_today=today == day,
    )


def layout_week(
    reference: date,
    events: Iterable[CalendarEvent],
    tz: tzinfo,
    config: LayoutConfig | None = None,
    today: date | None = None,
) -> list[DayColumn]:
    all_events = list(events)
    return [layout_day(day, all_events, tz, config, today) for day in week_days(reference)]


def month_offset(first_of_month: date) -> int:
    # isoweekday(): Monday=1 .. Sunday=7
    weekday = first_of_month.isoweekday() % 7
    return 6 if weekday == 0 else weekday - 1


def layout_month(
    reference: date,
    events: Iterable[CalendarEvent],
    tz: tzinfo,
    config: LayoutConfig | None = None,
    today: date | None = None,
) -> MonthGrid:
    config = config or LayoutConfig()
    all_events = list(events)
    first = reference.replace(day=1)
    cells: list[MonthCell] = []
    for day in CalendarCursor(first, ViewMode.MONTH).visible_days():
        day_events = [event for event, _ in events_on_day(day, all_events, tz)]
        cells.append(
            MonthCell(
                day=day,
                events=day_events[: config.month_cell_cap],
                overflow=max(0, len(day_events) - config.month_cell_cap),
                is_phase_day=is_phase_day(day, all_events, tz),
                is_today=today == day,
            )
        )
    return MonthGrid(year=first.year, month=first.month, leading_blanks=month_offset(first), cells=cells)


def render_view(
    cursor: CalendarCursor,
    events: Iterable[CalendarEvent],
    tz: tzinfo,
    config: LayoutConfig | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    config = config or LayoutConfig()
    all_events = list(events)
    payload: dict[str, Any] = {
        "view": cursor.view_mode.value,
        "reference_date": cursor.reference_date.isoformat(),
        "track_units": config.track_units,
    }
    if cursor.view_mode == ViewMode.MONTH:
        payload["month"] = layout_month(cursor.reference_date, all_events, tz, config, today).to_dict()
        return payload
    if cursor.view_mode == ViewMode.DAY:
        columns = [layout_day(cursor.reference_date, all_events, tz, config, today)]
    else:
        columns = layout_week(cursor.reference_date, all_events, tz, config, today)
    payload["columns"] = [column.to_dict(config.track_units) for column in columns]
    return payload
