from __future__ import annotations

import json
import math
from datetime import datetime, timedelta, tzinfo
from typing import Any

from aion.errors import InvalidEventError, PlanningServiceError
from aion.events import create_event, new_event_id
from aion.models import (
    PRIORITIES,
    SUGGESTION_TYPES,
    BurnoutLevel,
    CalendarEvent,
    DayAnalysis,
    EventSource,
    Persona,
    Suggestion,
    UserProfile,
    WellnessMetrics,
    local_midnight,
)
from aion.suggestions import parse_time_slot


MAX_DAY_OFFSET = 6

SCHEDULE_CATEGORIES = {
    "SCHOOL": EventSource.SCHOOL,
    "WELLNESS": EventSource.WELLNESS,
    "SOCIAL": EventSource.SOCIAL,
}

PLANNER_PROMPT = """You are Aion, an expert wellness and productivity planner.
Return JSON only, matching this schema:
{
  "burnoutLevel": "Low" | "Medium" | "High",
  "burnoutScore": number 0-100,
  "advice": "string",
  "scheduleItems": [
    {
      "title": "string",
      "category": "SCHOOL" | "WELLNESS" | "SOCIAL",
      "dayOffset": 0 for today, 1 for tomorrow,
      "startOffsetHours": hour of day 0-24,
      "durationMinutes": number,
      "description": "string"
    }
  ],
  "suggestions": [
    {
      "title": "string",
      "description": "string",
      "type": "warning" | "optimization" | "opportunity" | "insight",
      "priority": "High" | "Medium" | "Low",
      "timeSlot": "string"
    }
  ]
}
"""

LOAD_RULES = """Calculation logic for stress and load:
1. Kids: 0 low baseline; 1 moderate; 2-3 high; 4+ extreme.
   Single parent (kids > 0 and status Single): +20% burnout risk.
2. Career: healthcare high stress; finance/tech/law medium-high;
   creative lower baseline; student variable (under 22 assume exam stress).
3. Relationship: partnered users have less me-time, suggest quality time;
   single users may need social suggestions.
4. Biometrics: sleep < 6h adds 30% burnout risk and suggestions must be
   restorative; stress > 7 means immediate intervention, no high intensity workouts.
"""

VIBE_TONES = {
    Persona.TOXIC: "Vibe check tone: aggressive drill sergeant. Command the user. Use caps.",
    Persona.SOFT: "Vibe check tone: gentle, loving and warm. Prioritize feelings over productivity.",
    Persona.NEUTRAL: "Vibe check tone: practical and stoic. Focus on facts and balance. No fluff.",
}

COACH_TONES = {
    Persona.TOXIC: (
        "You are a 'Toxic Motivation' coach. Aggressive, militaristic, blunt. "
        "Excuses are for the weak. Push the user to their limit."
    ),
    Persona.SOFT: (
        "You are a 'Softer / Empathetic' coach. Gentle, validating, warm. "
        "Rest is part of the process. Make the user feel safe."
    ),
    Persona.NEUTRAL: (
        "You are Aion, a friendly and supportive wellness coach. Balanced, practical, calm. "
        "Consistency over intensity."
    ),
}

COACH_RULES = "Help the user manage stress, workload and burnout. Keep replies short and actionable."


def build_planning_payload(
    *,
    profile: UserProfile,
    metrics: WellnessMetrics,
    persona: Persona,
    now: datetime,
) -> dict[str, Any]:
    return {
        "profile": {
            "name": profile.name,
            "age": profile.age,
            "relationship_status": profile.relationship_status or "Single",
            "kids": profile.kids_count,
            "career": ", ".join(profile.career_roles) or "None",
            "cycle_tracking": profile.has_cycle,
        },
        "check_in": {
            "now": now.isoformat(),
            "sleep_hours": metrics.sleep_hours,
            "stress_level": metrics.stress_level,
            "mood": metrics.mood,
            "top_of_mind": metrics.custom_activity or "None",
        },
        "persona": persona.value,
    }


def build_messages(payload: dict[str, Any], persona: Persona) -> list[dict[str, str]]:
    system = "\n".join([PLANNER_PROMPT, LOAD_RULES, VIBE_TONES[persona]])
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
    ]


def build_coach_messages(
    history: list[dict[str, str]],
    message: str,
    persona: Persona,
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": f"{COACH_TONES[persona]}\n{COACH_RULES}"}]
    for item in history:
        if not isinstance(item, dict):
            continue
        role = "assistant" if str(item.get("role", "")) in {"model", "assistant"} else "user"
        text = str(item.get("text", item.get("content", "")) or "").strip()
        if text:
            messages.append({"role": role, "content": text})
    messages.append({"role": "user", "content": message})
    return messages


def burnout_level_for(score: float) -> BurnoutLevel:
    if score < 34:
        return BurnoutLevel.LOW
    if score < 67:
        return BurnoutLevel.MEDIUM
    return BurnoutLevel.HIGH


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_schedule(raw_items: Any, now: datetime, tz: tzinfo) -> list[CalendarEvent]:
    if not isinstance(raw_items, list):
        return []
    today = now.astimezone(tz).date()
    schedule: list[CalendarEvent] = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title", "") or "").strip()
        duration = _as_float(item.get("durationMinutes"))
        offset = _as_float(item.get("startOffsetHours"))
        if not title or duration is None or duration <= 0 or offset is None:
            continue
        offset = min(24.0, max(0.0, offset))
        day_offset = min(MAX_DAY_OFFSET, max(0, int(_as_float(item.get("dayOffset")) or 0)))
        category = SCHEDULE_CATEGORIES.get(str(item.get("category", "")).strip().upper(), EventSource.SOCIAL)
        try:
            midnight = local_midnight(today + timedelta(days=day_offset), tz)
            start = midnight + timedelta(minutes=round(offset * 60))
            schedule.append(
                create_event(
                    id=new_event_id(f"plan-{index}"),
                    title=title,
                    start=start,
                    end=start + timedelta(minutes=round(duration)),
                    source=category,
                    description=str(item.get("description", "") or ""),
                    is_fixed=False,
                )
            )
        except (InvalidEventError, OverflowError):
            continue
    return schedule


def normalize_suggestions(raw_items: Any, now: datetime, tz: tzinfo) -> list[Suggestion]:
    if not isinstance(raw_items, list):
        return []
    today = now.astimezone(tz).date()
    suggestions: list[Suggestion] = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title", "") or "").strip()
        if not title:
            continue
        suggestion_type = str(item.get("type", "") or "").strip().lower()
        priority = str(item.get("priority", "") or "").strip().capitalize()
        time_slot = str(item.get("timeSlot", "") or "").strip()
        window = parse_time_slot(time_slot, today, tz)
        suggestions.append(
            Suggestion(
                id=f"sug-{index}",
                title=title,
                description=str(item.get("description", "") or ""),
                type=suggestion_type if suggestion_type in SUGGESTION_TYPES else "insight",
                priority=priority if priority in PRIORITIES else "Medium",
                time_slot=time_slot,
                start=window[0] if window else None,
                end=window[1] if window else None,
            )
        )
    return suggestions


def normalize_plan(raw: Any, now: datetime, tz: tzinfo) -> DayAnalysis:
    """Validate a raw planner response and anchor it to ``now``.

    Only a non-object root or a missing score is fatal; malformed items are
    dropped and out-of-range values are clamped.
    """
    if not isinstance(raw, dict):
        raise PlanningServiceError("planner response root must be an object")
    score = _as_float(raw.get("burnoutScore"))
    if score is None:
        raise PlanningServiceError("planner response is missing burnoutScore")
    score = min(100.0, max(0.0, score))
    level_text = str(raw.get("burnoutLevel", "") or "").strip().capitalize()
    try:
        level = BurnoutLevel(level_text)
    except ValueError:
        level = burnout_level_for(score)
    return DayAnalysis(
        burnout_level=level,
        burnout_score=score,
        advice=str(raw.get("advice", "") or "").strip(),
        schedule=tuple(normalize_schedule(raw.get("scheduleItems"), now, tz)),
        suggestions=tuple(normalize_suggestions(raw.get("suggestions"), now, tz)),
        created_at=now,
    )
