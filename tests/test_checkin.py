import tempfile
import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from aion.checkin import CheckinCoordinator
from aion.errors import PlanningInFlightError, PlanningServiceError
from aion.models import AppConfig, WellnessMetrics
from aion.state_store import StateStore
from aion.store import CalendarStore, PlanningStatus


UTC = timezone.utc
NOW = datetime(2025, 10, 1, 8, 0, tzinfo=UTC)
RAW_PLAN = {
    "burnoutLevel": "High",
    "burnoutScore": 82,
    "advice": "Rest first.",
    "suggestions": [{"title": "Nap", "type": "warning", "priority": "High", "timeSlot": "afternoon"}],
}


class CheckinCoordinatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.state_store = StateStore(str(Path(self.temp_dir.name) / "state.db"))
        config_manager = mock.Mock()
        config_manager.load.return_value = AppConfig()
        self.store = CalendarStore(config_manager, self.state_store)
        self.metrics = WellnessMetrics(sleep_hours=4, stress_level=9, mood="Tired")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_success_sets_analysis_and_records_run(self) -> None:
        planner = mock.Mock(return_value=RAW_PLAN)
        analysis = CheckinCoordinator(self.store, planner).submit(self.metrics, now=NOW)
        self.assertEqual(analysis.burnout_score, 82)
        state = self.store.state
        self.assertIs(state.analysis, analysis)
        self.assertEqual(state.metrics, self.metrics)
        self.assertEqual(state.planning.status, PlanningStatus.SUCCEEDED)
        self.assertFalse(state.planning.is_analyzing)
        planner.assert_called_once_with(state.profile, self.metrics, state.persona, NOW)
        runs = self.state_store.recent_checkin_runs()
        self.assertEqual(runs[0]["status"], "success")
        self.assertEqual(runs[0]["suggestions"], 1)

    def test_second_submit_blocked_while_in_flight(self) -> None:
        started = threading.Event()
        release = threading.Event()
        calls = []
        results = []

        def slow_planner(profile, metrics, persona, now):
            calls.append(now)
            started.set()
            release.wait(5)
            return RAW_PLAN

        coordinator = CheckinCoordinator(self.store, slow_planner)
        worker = threading.Thread(target=lambda: results.append(coordinator.submit(self.metrics, now=NOW)))
        worker.start()
        self.assertTrue(started.wait(5))
        self.assertTrue(self.store.state.planning.is_analyzing)
        with self.assertRaises(PlanningInFlightError):
            coordinator.submit(self.metrics, now=NOW)
        release.set()
        worker.join(5)

        self.assertEqual(len(calls), 1)
        self.assertEqual(len(results), 1)
        self.assertIs(self.store.state.analysis, results[0])
        self.assertFalse(self.store.state.planning.is_analyzing)

    def test_failure_keeps_previous_analysis(self) -> None:
        first = CheckinCoordinator(self.store, mock.Mock(return_value=RAW_PLAN)).submit(self.metrics, now=NOW)
        self.store.accept_suggestion("sug-0", now=NOW)
        failing = mock.Mock(side_effect=RuntimeError("timeout"))
        with self.assertRaises(PlanningServiceError):
            CheckinCoordinator(self.store, failing).submit(self.metrics, now=NOW)
        state = self.store.state
        self.assertIs(state.analysis, first)
        self.assertEqual(state.accepted_suggestion_ids, frozenset({"sug-0"}))
        self.assertEqual(len(state.user_events), 1)
        self.assertEqual(state.planning.status, PlanningStatus.FAILED)
        self.assertIn("timeout", state.planning.error)
        self.assertEqual(self.state_store.recent_checkin_runs()[0]["status"], "failed")

    def test_invalid_plan_fails_and_allows_retry(self) -> None:
        planner = mock.Mock(side_effect=[{"advice": "no score"}, RAW_PLAN])
        coordinator = CheckinCoordinator(self.store, planner)
        with self.assertRaises(PlanningServiceError):
            coordinator.submit(self.metrics, now=NOW)
        analysis = coordinator.submit(self.metrics, now=NOW)
        self.assertEqual(analysis.advice, "Rest first.")

    def test_default_planner_needs_configured_client(self) -> None:
        with self.assertRaises(PlanningServiceError):
            CheckinCoordinator(self.store).submit(self.metrics, now=NOW)
        self.assertEqual(self.store.state.planning.status, PlanningStatus.FAILED)


if __name__ == "__main__":
    unittest.main()
