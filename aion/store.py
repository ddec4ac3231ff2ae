from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable

from aion.errors import PlanningInFlightError
from aion.events import EventDraft
from aion.feed import generate_weekly_events
from aion.layout import render_view
from aion.models import (
    AppConfig,
    CalendarEvent,
    ConnectionFlags,
    DayAnalysis,
    Persona,
    UserProfile,
    WellnessMetrics,
    WorkoutStatus,
    parse_clock,
)
from aion.navigation import CalendarCursor
from aion.reconciler import ReconcileOutcome, reconcile
from aion.suggestions import (
    Proposal,
    SuggestionOverrides,
    accept,
    find_proposal,
    list_pending,
    list_pending_schedule,
)
from aion.workouts import DEFAULT_WORKOUT_START, log_workout, transition


FeedFactory = Callable[[datetime, tzinfo], Iterable[CalendarEvent]]


class PlanningStatus(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PlanningState:
    status: PlanningStatus = PlanningStatus.IDLE
    error: str = ""

    @property
    def is_analyzing(self) -> bool:
        return self.status == PlanningStatus.IN_FLIGHT

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "error": self.error, "is_analyzing": self.is_analyzing}


@dataclass(frozen=True)
class AppState:
    profile: UserProfile = field(default_factory=UserProfile)
    persona: Persona = Persona.NEUTRAL
    user_events: tuple[CalendarEvent, ...] = ()
    accepted_suggestion_ids: frozenset[str] = frozenset()
    metrics: WellnessMetrics | None = None
    analysis: DayAnalysis | None = None
    planning: PlanningState = field(default_factory=PlanningState)

    def find_user_event(self, event_id: str) -> CalendarEvent:
        for event in self.user_events:
            if event.id == event_id:
                return event
        raise KeyError(event_id)


def set_profile(state: AppState, profile: UserProfile) -> AppState:
    return replace(state, profile=profile)


def set_persona(state: AppState, persona: Persona) -> AppState:
    return replace(state, persona=persona)


def add_event(state: AppState, event: CalendarEvent) -> AppState:
    if any(existing.id == event.id for existing in state.user_events):
        raise ValueError(f"event id already in pool: {event.id}")
    return replace(state, user_events=state.user_events + (event,))


def replace_event(state: AppState, event: CalendarEvent) -> AppState:
    state.find_user_event(event.id)
    return replace(
        state,
        user_events=tuple(event if existing.id == event.id else existing for existing in state.user_events),
    )


def remove_event(state: AppState, event_id: str) -> AppState:
    state.find_user_event(event_id)
    return replace(state, user_events=tuple(e for e in state.user_events if e.id != event_id))


def accept_proposal(
    state: AppState,
    proposal_id: str,
    overrides: SuggestionOverrides | None,
    *,
    reference_day: date,
    tz: tzinfo,
) -> tuple[AppState, CalendarEvent | None]:
    """Materialise a proposal; marking it accepted and pooling the event is one step.

    Returns ``(state, None)`` unchanged when the proposal was already accepted.
    """
    if proposal_id in state.accepted_suggestion_ids:
        return state, None
    proposal: Proposal | None = find_proposal(state.analysis, proposal_id)
    if proposal is None:
        raise KeyError(proposal_id)
    event = accept(proposal, overrides, reference_day=reference_day, tz=tz)
    next_state = replace(
        state,
        user_events=state.user_events + (event,),
        accepted_suggestion_ids=state.accepted_suggestion_ids | {proposal_id},
    )
    return next_state, event


def begin_planning(state: AppState, metrics: WellnessMetrics) -> AppState:
    if state.planning.status == PlanningStatus.IN_FLIGHT:
        raise PlanningInFlightError("a check-in is already being analysed")
    return replace(state, metrics=metrics, planning=PlanningState(status=PlanningStatus.IN_FLIGHT))


def finish_planning(state: AppState, analysis: DayAnalysis) -> AppState:
    # Suggestion ids are scoped to one analysis, so the accepted set starts over.
    return replace(
        state,
        analysis=analysis,
        accepted_suggestion_ids=frozenset(),
        planning=PlanningState(status=PlanningStatus.SUCCEEDED),
    )


def fail_planning(state: AppState, error: str) -> AppState:
    return replace(state, planning=PlanningState(status=PlanningStatus.FAILED, error=error))


def reset_checkin(state: AppState) -> AppState:
    if state.planning.status == PlanningStatus.IN_FLIGHT:
        raise PlanningInFlightError("cannot reset while a check-in is being analysed")
    return replace(
        state,
        metrics=None,
        analysis=None,
        accepted_suggestion_ids=frozenset(),
        planning=PlanningState(),
    )


class CalendarStore:
    """Owns the session's AppState and applies transitions under one lock."""

    def __init__(self, config_manager: Any, state_store: Any = None, feed: FeedFactory | None = None) -> None:
        self.config_manager = config_manager
        self.state_store = state_store
        self.feed = feed or (lambda now, tz: generate_weekly_events(now, tz))
        self._lock = threading.RLock()
        self._state = AppState()

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    def _config(self) -> AppConfig:
        return self.config_manager.load()

    def _audit(self, event_id: str, action: str, details: dict[str, Any]) -> None:
        if self.state_store is not None:
            self.state_store.record_audit_event(event_id=event_id, action=action, details=details)

    def _apply(self, transition_fn: Callable[[AppState], AppState]) -> AppState:
        with self._lock:
            self._state = transition_fn(self._state)
            return self._state

    def tz(self) -> tzinfo:
        return self._config().calendar.tz

    def today(self, now: datetime | None = None) -> date:
        tz = self.tz()
        return (now or datetime.now(timezone.utc)).astimezone(tz).date()

    def display_events(self, now: datetime | None = None) -> ReconcileOutcome:
        config = self._config()
        tz = config.calendar.tz
        now = now or datetime.now(timezone.utc)
        state = self.state
        feed = (lambda: self.feed(now, tz)) if config.calendar.feed_enabled else None
        outcome = reconcile(
            feed=feed,
            user_events=state.user_events,
            flags=ConnectionFlags.from_profile(state.profile),
        )
        if outcome.degraded:
            self._audit("feed", "feed_degraded", {"reason": outcome.reason, "error": str(outcome.failure)})
        return outcome

    def render(self, cursor: CalendarCursor, now: datetime | None = None) -> dict[str, Any]:
        config = self._config()
        now = now or datetime.now(timezone.utc)
        outcome = self.display_events(now)
        payload = render_view(
            cursor,
            outcome.events,
            config.calendar.tz,
            config.layout,
            today=now.astimezone(config.calendar.tz).date(),
        )
        payload["degraded"] = outcome.degraded
        return payload

    def set_profile(self, profile: UserProfile) -> AppState:
        return self._apply(lambda state: set_profile(state, profile))

    def set_persona(self, persona: Persona) -> AppState:
        return self._apply(lambda state: set_persona(state, persona))

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        self._apply(lambda state: add_event(state, event))
        self._audit(event.id, "add_event", {"title": event.title, "source": event.source.value})
        return event

    def create_event(self, draft: EventDraft) -> CalendarEvent:
        return self.add_event(draft.build(self.tz()))

    def edit_event(self, event_id: str, draft: EventDraft) -> CalendarEvent:
        tz = self.tz()
        with self._lock:
            current = self._state.find_user_event(event_id)
            updated = draft.apply_to(current, tz)
            self._state = replace_event(self._state, updated)
        self._audit(event_id, "edit_event", {"before": current.to_dict(), "after": updated.to_dict()})
        return updated

    def delete_event(self, event_id: str) -> None:
        self._apply(lambda state: remove_event(state, event_id))
        self._audit(event_id, "delete_event", {})

    def log_workout(
        self,
        day: date,
        activity_name: str,
        category: str,
        start_time: str | None = None,
        duration_minutes: int | None = None,
    ) -> CalendarEvent:
        config = self._config()
        event = log_workout(
            day,
            activity_name,
            category,
            start_time=parse_clock(start_time, parse_clock(config.workouts.default_start, DEFAULT_WORKOUT_START)),
            duration_minutes=duration_minutes or config.workouts.default_duration_minutes,
            tz=config.calendar.tz,
        )
        return self.add_event(event)

    def set_workout_status(self, event_id: str, target: WorkoutStatus | str) -> CalendarEvent:
        with self._lock:
            current = self._state.find_user_event(event_id)
            updated = transition(current, target)
            self._state = replace_event(self._state, updated)
        self._audit(
            event_id,
            "workout_status",
            {"before": current.status.value if current.status else None, "after": updated.status.value},
        )
        return updated

    def pending_suggestions(self) -> dict[str, Any]:
        state = self.state
        return {
            "has_analysis": state.analysis is not None,
            "suggestions": list_pending(state.analysis, state.accepted_suggestion_ids),
            "schedule": list_pending_schedule(state.analysis, state.accepted_suggestion_ids),
        }

    def accept_suggestion(
        self,
        proposal_id: str,
        overrides: SuggestionOverrides | None = None,
        now: datetime | None = None,
    ) -> CalendarEvent | None:
        tz = self.tz()
        reference_day = self.today(now)
        with self._lock:
            self._state, event = accept_proposal(
                self._state,
                proposal_id,
                overrides,
                reference_day=reference_day,
                tz=tz,
            )
        if event is not None:
            self._audit(event.id, "accept_suggestion", {"suggestion_id": proposal_id, "title": event.title})
        return event

    def begin_planning(self, metrics: WellnessMetrics) -> AppState:
        return self._apply(lambda state: begin_planning(state, metrics))

    def finish_planning(self, analysis: DayAnalysis) -> AppState:
        return self._apply(lambda state: finish_planning(state, analysis))

    def fail_planning(self, error: str) -> AppState:
        return self._apply(lambda state: fail_planning(state, error))

    def reset_checkin(self) -> AppState:
        return self._apply(reset_checkin)
