from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_days(day: date) -> list[date]:
    monday = start_of_week(day)
    return [monday + timedelta(days=offset) for offset in range(7)]


def shift_month(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


@dataclass(frozen=True)
class CalendarCursor:
    reference_date: date
    view_mode: ViewMode = ViewMode.WEEK

    def navigate(self, direction: str) -> "CalendarCursor":
        key = str(direction).strip().lower()
        if key not in {"prev", "next"}:
            raise ValueError(f"direction must be 'prev' or 'next', got {direction!r}")
        step = 1 if key == "next" else -1
        if self.view_mode == ViewMode.DAY:
            target = self.reference_date + timedelta(days=step)
        elif self.view_mode == ViewMode.WEEK:
            target = self.reference_date + timedelta(days=7 * step)
        else:
            target = shift_month(self.reference_date, step)
        return replace(self, reference_date=target)

    def go_to_today(self, today: date) -> "CalendarCursor":
        return replace(self, reference_date=today)

    def with_mode(self, view_mode: ViewMode | str) -> "CalendarCursor":
        return replace(self, view_mode=ViewMode(view_mode))

    def visible_days(self) -> list[date]:
        if self.view_mode == ViewMode.DAY:
            return [self.reference_date]
        if self.view_mode == ViewMode.WEEK:
            return week_days(self.reference_date)
        last_day = calendar.monthrange(self.reference_date.year, self.reference_date.month)[1]
        first = self.reference_date.replace(day=1)
        return [first + timedelta(days=offset) for offset in range(last_day)]
