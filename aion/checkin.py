from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from aion.ai_client import OpenAICompatibleClient
from aion.errors import PlanningServiceError
from aion.models import DayAnalysis, Persona, UserProfile, WellnessMetrics
from aion.planner import build_messages, build_planning_payload, normalize_plan
from aion.store import CalendarStore


PlannerCall = Callable[[UserProfile, WellnessMetrics, Persona, datetime], Any]

RETRY_NOTICE = "Could not reach the Aion planner. Please try again."


class CheckinCoordinator:
    """Runs at most one planning request at a time against a CalendarStore."""

    def __init__(self, store: CalendarStore, planner: PlannerCall | None = None) -> None:
        self.store = store
        self.planner = planner or self._remote_plan

    def _remote_plan(
        self,
        profile: UserProfile,
        metrics: WellnessMetrics,
        persona: Persona,
        now: datetime,
    ) -> dict[str, Any]:
        config = self.store.config_manager.load()
        client = OpenAICompatibleClient(config.ai)
        payload = build_planning_payload(
            profile=profile,
            metrics=metrics,
            persona=persona,
            now=now.astimezone(config.calendar.tz),
        )
        return client.generate_plan(messages=build_messages(payload, persona))

    def submit(self, metrics: WellnessMetrics, now: datetime | None = None) -> DayAnalysis:
        """Analyse a check-in.

        Raises PlanningInFlightError when another submission is still running
        and PlanningServiceError when the planner fails; in the latter case the
        previous analysis, event pool and accepted set are left as they were.
        """
        state = self.store.begin_planning(metrics)
        started_at = datetime.now(timezone.utc)
        now = now or started_at
        state_store = self.store.state_store
        run_id: int | None = None
        try:
            if state_store is not None:
                run_id = state_store.start_checkin_run()
            raw = self.planner(state.profile, metrics, state.persona, now)
            analysis = normalize_plan(raw, now, self.store.tz())
        except Exception as exc:
            error = exc if isinstance(exc, PlanningServiceError) else PlanningServiceError(str(exc))
            self.store.fail_planning(str(error))
            self._finish_run(run_id, started_at, "failed", str(error), 0)
            if error is exc:
                raise
            raise error from exc
        self.store.finish_planning(analysis)
        self._finish_run(run_id, started_at, "success", analysis.advice[:200], len(analysis.suggestions))
        return analysis

    def _finish_run(self, run_id: int | None, started_at: datetime, status: str, message: str, suggestions: int) -> None:
        if run_id is None:
            return
        duration_ms = int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000)
        self.store.state_store.finish_checkin_run(
            run_id=run_id,
            status=status,
            message=message,
            duration_ms=max(0, duration_ms),
            suggestions=suggestions,
        )
