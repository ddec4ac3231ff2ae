from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DEFAULT_AI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_AI_MODEL = "gpt-4o-mini"
TUM_APP_NAME = "TUM Online"
FLO_APP_NAME = "Flo"


class EventSource(str, Enum):
    SCHOOL = "School/Study"
    WELLNESS = "Health & Chill"
    SOCIAL = "Social/Fun"
    AION_AI = "Aion Plan"
    GOOGLE = "Google Calendar"
    HEALTH = "Health & Fitness"
    FLO = "Flo"
    TUM = "Tum"

    @classmethod
    def parse(cls, value: Any) -> "EventSource":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"unknown event source: {value!r}")


class WorkoutStatus(str, Enum):
    PLANNED = "planned"
    COMPLETED = "completed"
    MISSED = "missed"


class BurnoutLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Persona(str, Enum):
    TOXIC = "Toxic Motivation"
    SOFT = "Softer / Empathetic"
    NEUTRAL = "Neutral / Stoic"


SUGGESTION_TYPES = ("warning", "optimization", "opportunity", "insight")
PRIORITIES = ("High", "Medium", "Low")
MOODS = ("Great", "Okay", "Stressed", "Tired", "Anxious")


def _ensure_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_iso_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _ensure_tz(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return _ensure_tz(parsed)


def serialize_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _ensure_tz(value).isoformat()


def resolve_timezone(name: str | None) -> tzinfo:
    text = str(name or "").strip()
    if not text or text.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def parse_clock(value: str | time | None, default: time) -> time:
    if value is None:
        return default
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return default
    hours_text, _, minutes_text = text.partition(":")
    hours = int(hours_text)
    minutes = int(minutes_text or 0)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"clock time out of range: {value!r}")
    return time(hours, minutes)


@dataclass
class AIConfig:
    base_url: str = DEFAULT_AI_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_AI_MODEL
    timeout_seconds: int = 90
    temperature: float = 0.4

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AIConfig":
        data = data or {}
        return cls(
            base_url=str(data.get("base_url", DEFAULT_AI_BASE_URL)).strip() or DEFAULT_AI_BASE_URL,
            api_key=str(data.get("api_key", "")).strip(),
            model=str(data.get("model", DEFAULT_AI_MODEL)).strip() or DEFAULT_AI_MODEL,
            timeout_seconds=max(1, int(data.get("timeout_seconds", 90))),
            temperature=min(2.0, max(0.0, float(data.get("temperature", 0.4)))),
        )


@dataclass
class CalendarConfig:
    timezone: str = "UTC"
    feed_enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CalendarConfig":
        data = data or {}
        tz_name = str(data.get("timezone", "UTC")).strip() or "UTC"
        if resolve_timezone(tz_name) is timezone.utc:
            tz_name = "UTC"
        return cls(timezone=tz_name, feed_enabled=bool(data.get("feed_enabled", True)))

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)


@dataclass
class LayoutConfig:
    track_units: int = 1200
    min_event_units: int = 35
    month_cell_cap: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LayoutConfig":
        data = data or {}
        track_units = max(24, int(data.get("track_units", 1200)))
        min_event_units = int(data.get("min_event_units", 35))
        return cls(
            track_units=track_units,
            min_event_units=min(track_units, max(1, min_event_units)),
            month_cell_cap=max(1, int(data.get("month_cell_cap", 3))),
        )

    @property
    def min_height_fraction(self) -> float:
        return self.min_event_units / self.track_units


@dataclass
class WorkoutConfig:
    default_start: str = "09:00"
    default_duration_minutes: int = 60

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WorkoutConfig":
        data = data or {}
        default_start = str(data.get("default_start", "09:00")).strip() or "09:00"
        try:
            parse_clock(default_start, time(9, 0))
        except ValueError:
            default_start = "09:00"
        return cls(
            default_start=default_start,
            default_duration_minutes=max(1, int(data.get("default_duration_minutes", 60))),
        )


@dataclass
class AppConfig:
    ai: AIConfig = field(default_factory=AIConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    workouts: WorkoutConfig = field(default_factory=WorkoutConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AppConfig":
        data = data or {}
        return cls(
            ai=AIConfig.from_dict(data.get("ai")),
            calendar=CalendarConfig.from_dict(data.get("calendar")),
            layout=LayoutConfig.from_dict(data.get("layout")),
            workouts=WorkoutConfig.from_dict(data.get("workouts")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def default_app_config() -> AppConfig:
    return AppConfig()


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    source: EventSource
    description: str = ""
    location: str = ""
    color: str = ""
    is_fixed: bool = False
    status: WorkoutStatus | None = None
    workout_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "start": serialize_datetime(self.start),
            "end": serialize_datetime(self.end),
            "source": self.source.value,
            "description": self.description,
            "location": self.location,
            "color": self.color,
            "is_fixed": self.is_fixed,
            "status": self.status.value if self.status else None,
            "workout_type": self.workout_type,
        }

    def with_updates(self, **kwargs: Any) -> "CalendarEvent":
        return replace(self, **kwargs)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class Suggestion:
    id: str
    title: str
    description: str = ""
    type: str = "insight"
    priority: str = "Medium"
    time_slot: str = ""
    start: datetime | None = None
    end: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "priority": self.priority,
            "time_slot": self.time_slot,
            "start": serialize_datetime(self.start),
            "end": serialize_datetime(self.end),
        }


@dataclass(frozen=True)
class DayAnalysis:
    burnout_level: BurnoutLevel
    burnout_score: float
    advice: str
    schedule: tuple[CalendarEvent, ...] = ()
    suggestions: tuple[Suggestion, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "burnout_level": self.burnout_level.value,
            "burnout_score": self.burnout_score,
            "advice": self.advice,
            "schedule": [event.to_dict() for event in self.schedule],
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
            "created_at": serialize_datetime(self.created_at),
        }


@dataclass(frozen=True)
class UserProfile:
    name: str = ""
    age: str = ""
    has_cycle: bool = False
    relationship_status: str = "Single"
    kids_count: int = 0
    career_roles: tuple[str, ...] = ()
    connected_apps: tuple[str, ...] = ()
    is_google_calendar_connected: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "UserProfile":
        data = data or {}
        return cls(
            name=str(data.get("name", "") or "").strip(),
            age=str(data.get("age", "") or "").strip(),
            has_cycle=bool(data.get("has_cycle", False)),
            relationship_status=str(data.get("relationship_status", "") or "").strip() or "Single",
            kids_count=max(0, int(data.get("kids_count", 0) or 0)),
            career_roles=tuple(str(x).strip() for x in data.get("career_roles", []) or [] if str(x).strip()),
            connected_apps=tuple(str(x).strip() for x in data.get("connected_apps", []) or [] if str(x).strip()),
            is_google_calendar_connected=bool(data.get("is_google_calendar_connected", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["career_roles"] = list(self.career_roles)
        payload["connected_apps"] = list(self.connected_apps)
        return payload


@dataclass(frozen=True)
class ConnectionFlags:
    google: bool = False
    tum: bool = False
    has_cycle: bool = False

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ConnectionFlags":
        apps = set(profile.connected_apps)
        return cls(
            google=profile.is_google_calendar_connected,
            tum=TUM_APP_NAME in apps,
            has_cycle=profile.has_cycle or FLO_APP_NAME in apps,
        )


@dataclass(frozen=True)
class WellnessMetrics:
    sleep_hours: float
    stress_level: int
    mood: str
    custom_activity: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WellnessMetrics":
        data = data or {}
        sleep_hours = float(data.get("sleep_hours", 0))
        if sleep_hours < 0:
            raise ValueError("sleep_hours must be >= 0")
        stress_level = int(data.get("stress_level", 5))
        if not 1 <= stress_level <= 10:
            raise ValueError("stress_level must be between 1 and 10")
        mood = str(data.get("mood", "Okay")).strip()
        if mood not in MOODS:
            raise ValueError(f"mood must be one of {', '.join(MOODS)}")
        return cls(
            sleep_hours=sleep_hours,
            stress_level=stress_level,
            mood=mood,
            custom_activity=str(data.get("custom_activity", "") or "").strip(),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
