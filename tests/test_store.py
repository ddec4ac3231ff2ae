import tempfile
import unittest
from datetime import date, datetime, time, timezone
from pathlib import Path
from unittest import mock

from aion.errors import InvalidTransitionError, PlanningInFlightError
from aion.events import EventDraft
from aion.models import (
    AppConfig,
    BurnoutLevel,
    DayAnalysis,
    EventSource,
    Suggestion,
    UserProfile,
    WellnessMetrics,
    WorkoutStatus,
)
from aion.navigation import CalendarCursor, ViewMode
from aion.state_store import StateStore
from aion.store import AppState, CalendarStore, PlanningStatus, accept_proposal, add_event, begin_planning


UTC = timezone.utc
NOW = datetime(2025, 10, 1, 8, 0, tzinfo=UTC)
METRICS = WellnessMetrics(sleep_hours=7, stress_level=4, mood="Okay")


def _analysis() -> DayAnalysis:
    return DayAnalysis(
        burnout_level=BurnoutLevel.LOW,
        burnout_score=20,
        advice="Keep going.",
        suggestions=(Suggestion(id="sug-0", title="Walk", time_slot="17:00"),),
    )


class StoreTransitionTests(unittest.TestCase):
    def test_add_event_rejects_duplicate_ids(self) -> None:
        event = EventDraft(title="Coffee", day=date(2025, 10, 1)).build(UTC)
        state = add_event(AppState(), event)
        with self.assertRaises(ValueError):
            add_event(state, event)

    def test_begin_planning_is_single_flight(self) -> None:
        state = begin_planning(AppState(), METRICS)
        self.assertTrue(state.planning.is_analyzing)
        with self.assertRaises(PlanningInFlightError):
            begin_planning(state, METRICS)

    def test_accept_is_idempotent(self) -> None:
        state = AppState(analysis=_analysis())
        state, event = accept_proposal(state, "sug-0", None, reference_day=date(2025, 10, 1), tz=UTC)
        self.assertIsNotNone(event)
        again, second = accept_proposal(state, "sug-0", None, reference_day=date(2025, 10, 1), tz=UTC)
        self.assertIsNone(second)
        self.assertIs(again, state)
        self.assertEqual(len(state.user_events), 1)
        with self.assertRaises(KeyError):
            accept_proposal(state, "sug-9", None, reference_day=date(2025, 10, 1), tz=UTC)


class CalendarStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.state_store = StateStore(str(Path(self.temp_dir.name) / "state.db"))
        self.config_manager = mock.Mock()
        self.config_manager.load.return_value = AppConfig.from_dict({"calendar": {"timezone": "UTC"}})
        self.store = CalendarStore(self.config_manager, self.state_store)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_manual_add_shows_up_in_render(self) -> None:
        event = self.store.create_event(
            EventDraft(title="Coffee", day=date(2025, 10, 1), start_time=time(15, 0))
        )
        payload = self.store.render(CalendarCursor(date(2025, 10, 1), ViewMode.DAY), now=NOW)
        placements = payload["columns"][0]["events"]
        self.assertIn(event.id, [p["event"]["id"] for p in placements])
        self.assertFalse(payload["degraded"])
        actions = [row["action"] for row in self.state_store.recent_audit_events()]
        self.assertIn("add_event", actions)

    def test_feed_respects_profile_connections(self) -> None:
        ids = [e.id for e in self.store.display_events(NOW).events]
        self.assertNotIn("g-1", ids)
        self.store.set_profile(UserProfile(is_google_calendar_connected=True, connected_apps=("TUM Online",)))
        ids = [e.id for e in self.store.display_events(NOW).events]
        self.assertIn("g-1", ids)
        self.assertIn("tum-1", ids)
        self.assertNotIn("flo-period", ids)

    def test_feed_failure_is_audited(self) -> None:
        def broken_feed(now, tz):
            raise RuntimeError("offline")

        store = CalendarStore(self.config_manager, self.state_store, feed=broken_feed)
        outcome = store.display_events(NOW)
        self.assertTrue(outcome.degraded)
        audited = self.state_store.recent_audit_events(action="feed_degraded")
        self.assertEqual(audited[0]["details"]["reason"], "feed_failed")

    def test_edit_and_delete(self) -> None:
        event = self.store.create_event(EventDraft(title="Coffee", day=date(2025, 10, 1)))
        edited = self.store.edit_event(event.id, EventDraft(title="Tea", day=date(2025, 10, 1)))
        self.assertEqual(self.store.state.find_user_event(event.id).title, "Tea")
        self.assertEqual(edited.source, EventSource.SOCIAL)
        self.store.delete_event(event.id)
        with self.assertRaises(KeyError):
            self.store.delete_event(event.id)
        with self.assertRaises(KeyError):
            self.store.edit_event("missing", EventDraft(title="x", day=date(2025, 10, 1)))

    def test_workout_lifecycle(self) -> None:
        workout = self.store.log_workout(date(2025, 10, 1), "Run", "cardio")
        self.assertEqual(workout.start.time(), time(9, 0))
        self.assertEqual(workout.end.time(), time(10, 0))
        done = self.store.set_workout_status(workout.id, WorkoutStatus.COMPLETED)
        self.assertEqual(done.status, WorkoutStatus.COMPLETED)
        with self.assertRaises(InvalidTransitionError):
            self.store.set_workout_status(workout.id, "missed")

    def test_accept_suggestion_through_store(self) -> None:
        self.store.begin_planning(METRICS)
        self.store.finish_planning(_analysis())
        event = self.store.accept_suggestion("sug-0", now=NOW)
        self.assertEqual(event.start, datetime(2025, 10, 1, 17, 0, tzinfo=UTC))
        self.assertIsNone(self.store.accept_suggestion("sug-0", now=NOW))
        pending = self.store.pending_suggestions()
        self.assertTrue(pending["has_analysis"])
        self.assertEqual(pending["suggestions"], [])
        self.assertEqual(len(self.store.state.user_events), 1)

    def test_new_analysis_resets_accepted_set(self) -> None:
        self.store.begin_planning(METRICS)
        self.store.finish_planning(_analysis())
        self.store.accept_suggestion("sug-0", now=NOW)
        self.store.begin_planning(METRICS)
        state = self.store.finish_planning(_analysis())
        self.assertEqual(state.accepted_suggestion_ids, frozenset())
        self.assertEqual(len(self.store.pending_suggestions()["suggestions"]), 1)

    def test_reset_checkin(self) -> None:
        self.store.begin_planning(METRICS)
        with self.assertRaises(PlanningInFlightError):
            self.store.reset_checkin()
        self.store.finish_planning(_analysis())
        state = self.store.reset_checkin()
        self.assertIsNone(state.analysis)
        self.assertIsNone(state.metrics)
        self.assertEqual(state.planning.status, PlanningStatus.IDLE)


if __name__ == "__main__":
    unittest.main()
