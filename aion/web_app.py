from __future__ import annotations

import os
from datetime import date, datetime, timezone
from typing import Any, NoReturn

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from aion.ai_client import OpenAICompatibleClient
from aion.checkin import RETRY_NOTICE, CheckinCoordinator
from aion.config_manager import MASK, ConfigManager
from aion.errors import (
    InvalidEventError,
    InvalidTransitionError,
    PlanningInFlightError,
    PlanningServiceError,
)
from aion.events import EventDraft
from aion.ical_export import export_ical
from aion.models import ConnectionFlags, Persona, UserProfile, WellnessMetrics, WorkoutStatus
from aion.navigation import CalendarCursor, ViewMode
from aion.planner import build_coach_messages
from aion.state_store import StateStore
from aion.store import CalendarStore
from aion.suggestions import SuggestionOverrides


class ConfigUpdateRequest(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class ProfileUpdateRequest(BaseModel):
    name: str = ""
    age: str = ""
    has_cycle: bool = False
    relationship_status: str = "Single"
    kids_count: int = Field(default=0, ge=0)
    career_roles: list[str] = Field(default_factory=list)
    connected_apps: list[str] = Field(default_factory=list)
    is_google_calendar_connected: bool = False


class PersonaUpdateRequest(BaseModel):
    persona: str


class EventDraftRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    day: str | None = None
    start_time: str = "09:00"
    duration_minutes: int = Field(default=60, gt=0)
    category: str = "Social/Fun"
    description: str = ""
    location: str = ""


class WorkoutLogRequest(BaseModel):
    day: str | None = None
    activity_name: str = Field(min_length=1, max_length=200)
    category: str = "custom"
    start_time: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)


class CheckinRequest(BaseModel):
    sleep_hours: float = Field(ge=0)
    stress_level: int = Field(ge=1, le=10)
    mood: str
    custom_activity: str = ""


class AcceptSuggestionRequest(BaseModel):
    title: str | None = None
    day: str | None = None
    start_time: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    category: str | None = None
    description: str | None = None


class CoachRequest(BaseModel):
    history: list[dict[str, str]] = Field(default_factory=list)
    message: str = Field(min_length=1, max_length=4000)


class AppContext:
    def __init__(self, config_path: str, state_path: str) -> None:
        self.config_manager = ConfigManager(config_path)
        self.state_store = StateStore(state_path)
        self.calendar_store = CalendarStore(self.config_manager, self.state_store)
        self.checkin = CheckinCoordinator(self.calendar_store)


def _masked_meta(config_dict: dict[str, Any]) -> dict[str, Any]:
    has_ai_api_key = bool(config_dict.get("ai", {}).get("api_key", "").strip())
    return {"ai": {"api_key": {"is_masked": has_ai_api_key}}}


def _sanitize_config_payload(payload: dict[str, Any], current: dict[str, Any]) -> dict[str, Any]:
    sanitized = dict(payload)
    current_ai_api_key = str(current.get("ai", {}).get("api_key", ""))
    ai = sanitized.get("ai")
    if isinstance(ai, dict):
        api_key = ai.get("api_key")
        if api_key is not None:
            api_key_text = str(api_key).strip()
            if api_key_text in {"", MASK}:
                if current_ai_api_key:
                    ai.pop("api_key", None)
                else:
                    ai["api_key"] = ""
        if not ai:
            sanitized.pop("ai", None)
    return sanitized


def _parse_day(value: str | None, default: date) -> date:
    if not value:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"invalid date: {value}") from exc


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, KeyError):
        raise HTTPException(status_code=404, detail=f"not found: {exc.args[0] if exc.args else ''}") from exc
    if isinstance(exc, (InvalidTransitionError, PlanningInFlightError)):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, PlanningServiceError):
        raise HTTPException(status_code=502, detail=RETRY_NOTICE) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


def _state_payload(store: CalendarStore) -> dict[str, Any]:
    state = store.state
    return {
        "profile": state.profile.to_dict(),
        "persona": state.persona.value,
        "flags": ConnectionFlags.from_profile(state.profile).__dict__,
    }


def create_app() -> FastAPI:
    config_path = os.getenv("AION_CONFIG_PATH", "config.yaml")
    state_path = os.getenv("AION_STATE_PATH", "data/state.db")
    context = AppContext(config_path=config_path, state_path=state_path)

    app = FastAPI(title="Aion Calendar", version="0.1.0")
    app.state.context = context

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/config")
    def get_config() -> dict[str, Any]:
        raw = app.state.context.config_manager.load().to_dict()
        return {"config": app.state.context.config_manager.masked(), "meta": _masked_meta(raw)}

    @app.put("/api/config")
    def put_config(request: ConfigUpdateRequest) -> dict[str, Any]:
        current = app.state.context.config_manager.load().to_dict()
        sanitized_payload = _sanitize_config_payload(request.payload, current)
        try:
            updated = app.state.context.config_manager.update(sanitized_payload)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"message": "config updated", "config": updated.to_dict()}

    @app.post("/api/ai/test")
    def test_ai_connectivity() -> dict[str, Any]:
        config = app.state.context.config_manager.load()
        ok, message = OpenAICompatibleClient(config.ai).test_connectivity()
        return {"ok": ok, "message": message}

    @app.get("/api/profile")
    def get_profile() -> dict[str, Any]:
        return _state_payload(app.state.context.calendar_store)

    @app.put("/api/profile")
    def put_profile(request: ProfileUpdateRequest) -> dict[str, Any]:
        store = app.state.context.calendar_store
        store.set_profile(UserProfile.from_dict(request.model_dump()))
        return _state_payload(store)

    @app.put("/api/persona")
    def put_persona(request: PersonaUpdateRequest) -> dict[str, Any]:
        try:
            persona = Persona(request.persona)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"unknown persona: {request.persona}") from exc
        store = app.state.context.calendar_store
        store.set_persona(persona)
        return _state_payload(store)

    @app.get("/api/calendar")
    def get_calendar(view: str = "week", date: str | None = None) -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            view_mode = ViewMode(view)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"unknown view: {view}") from exc
        cursor = CalendarCursor(reference_date=_parse_day(date, store.today()), view_mode=view_mode)
        return store.render(cursor)

    @app.get("/api/calendar/navigate")
    def navigate_calendar(view: str = "week", date: str | None = None, direction: str = "next") -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            cursor = CalendarCursor(reference_date=_parse_day(date, store.today()), view_mode=ViewMode(view))
            if direction == "today":
                cursor = cursor.go_to_today(store.today())
            else:
                cursor = cursor.navigate(direction)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return store.render(cursor)

    @app.get("/api/calendar.ics")
    def get_calendar_ics() -> Response:
        outcome = app.state.context.calendar_store.display_events()
        return Response(content=export_ical(outcome.events), media_type="text/calendar")

    @app.get("/api/events")
    def list_events() -> dict[str, Any]:
        outcome = app.state.context.calendar_store.display_events()
        return {"events": [event.to_dict() for event in outcome.events], "degraded": outcome.degraded}

    @app.post("/api/events")
    def create_event(request: EventDraftRequest) -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            draft = EventDraft.from_dict(request.model_dump(), default_day=store.today())
            event = store.create_event(draft)
        except ValueError as exc:
            _raise_http(exc)
        return {"message": "event added", "event": event.to_dict()}

    @app.put("/api/events/{event_id}")
    def edit_event(event_id: str, request: EventDraftRequest) -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            draft = EventDraft.from_dict(request.model_dump(), default_day=store.today())
            event = store.edit_event(event_id, draft)
        except (ValueError, KeyError) as exc:
            _raise_http(exc)
        return {"message": "event updated", "event": event.to_dict()}

    @app.delete("/api/events/{event_id}")
    def delete_event(event_id: str) -> dict[str, str]:
        try:
            app.state.context.calendar_store.delete_event(event_id)
        except KeyError as exc:
            _raise_http(exc)
        return {"message": "event deleted"}

    @app.post("/api/workouts")
    def log_workout(request: WorkoutLogRequest) -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            event = store.log_workout(
                _parse_day(request.day, store.today()),
                request.activity_name,
                request.category,
                start_time=request.start_time,
                duration_minutes=request.duration_minutes,
            )
        except ValueError as exc:
            _raise_http(exc)
        return {"message": "workout planned", "event": event.to_dict()}

    def _transition_workout(event_id: str, target: WorkoutStatus) -> dict[str, Any]:
        try:
            event = app.state.context.calendar_store.set_workout_status(event_id, target)
        except (InvalidTransitionError, KeyError) as exc:
            _raise_http(exc)
        return {"message": f"workout {target.value}", "event": event.to_dict()}

    @app.post("/api/workouts/{event_id}/complete")
    def complete_workout(event_id: str) -> dict[str, Any]:
        return _transition_workout(event_id, WorkoutStatus.COMPLETED)

    @app.post("/api/workouts/{event_id}/missed")
    def miss_workout(event_id: str) -> dict[str, Any]:
        return _transition_workout(event_id, WorkoutStatus.MISSED)

    @app.post("/api/checkin")
    def submit_checkin(request: CheckinRequest) -> dict[str, Any]:
        try:
            metrics = WellnessMetrics.from_dict(request.model_dump())
            analysis = app.state.context.checkin.submit(metrics)
        except (PlanningInFlightError, PlanningServiceError, ValueError) as exc:
            _raise_http(exc)
        return {"message": "check-in analysed", "analysis": analysis.to_dict()}

    @app.delete("/api/checkin")
    def reset_checkin() -> dict[str, Any]:
        try:
            state = app.state.context.calendar_store.reset_checkin()
        except PlanningInFlightError as exc:
            _raise_http(exc)
        return {"message": "check-in cleared", "planning": state.planning.to_dict()}

    @app.get("/api/analysis")
    def get_analysis() -> dict[str, Any]:
        state = app.state.context.calendar_store.state
        return {
            "analysis": state.analysis.to_dict() if state.analysis else None,
            "metrics": state.metrics.to_dict() if state.metrics else None,
            "planning": state.planning.to_dict(),
        }

    @app.get("/api/suggestions")
    def list_suggestions() -> dict[str, Any]:
        pending = app.state.context.calendar_store.pending_suggestions()
        return {
            "has_analysis": pending["has_analysis"],
            "suggestions": [item.to_dict() for item in pending["suggestions"]],
            "schedule": [item.to_dict() for item in pending["schedule"]],
        }

    @app.post("/api/suggestions/{suggestion_id}/accept")
    def accept_suggestion(suggestion_id: str, request: AcceptSuggestionRequest | None = None) -> dict[str, Any]:
        store = app.state.context.calendar_store
        try:
            overrides = SuggestionOverrides.from_dict(request.model_dump()) if request else None
            event = store.accept_suggestion(suggestion_id, overrides)
        except (InvalidEventError, KeyError) as exc:
            _raise_http(exc)
        if event is None:
            raise HTTPException(status_code=409, detail="suggestion already accepted")
        return {"message": "suggestion accepted", "event": event.to_dict()}

    @app.post("/api/coach")
    def coach(request: CoachRequest) -> dict[str, Any]:
        store = app.state.context.calendar_store
        config = app.state.context.config_manager.load()
        messages = build_coach_messages(request.history, request.message, store.state.persona)
        try:
            reply = OpenAICompatibleClient(config.ai).chat(messages=messages)
        except PlanningServiceError as exc:
            _raise_http(exc)
        return {"reply": reply, "at": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/audit/events")
    def audit_events(limit: int = 100, action: str | None = None) -> dict[str, Any]:
        return {"events": app.state.context.state_store.recent_audit_events(limit=limit, action=action)}

    @app.get("/api/checkin/runs")
    def checkin_runs(limit: int = 20) -> dict[str, Any]:
        return {"runs": app.state.context.state_store.recent_checkin_runs(limit=limit)}

    return app
