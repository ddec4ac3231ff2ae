import os
import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from aion.web_app import create_app


RAW_PLAN = {
    "burnoutLevel": "Medium",
    "burnoutScore": 55,
    "advice": "Balance the afternoon.",
    "scheduleItems": [{"title": "Focus", "category": "SCHOOL", "startOffsetHours": 14.5, "durationMinutes": 30}],
    "suggestions": [{"title": "Walk", "type": "opportunity", "priority": "Low", "timeSlot": "evening"}],
}


class WebAppTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = str(Path(self.temp_dir.name) / "config.yaml")
        self.state_path = str(Path(self.temp_dir.name) / "state.db")
        os.environ["AION_CONFIG_PATH"] = self.config_path
        os.environ["AION_STATE_PATH"] = self.state_path
        self.app = create_app()
        self.client = TestClient(self.app)

        seed_payload = {
            "ai": {"base_url": "https://api.example.com/v1", "api_key": "secret-key", "model": "gpt-4o-mini"},
            "calendar": {"timezone": "UTC", "feed_enabled": True},
        }
        resp = self.client.put("/api/config", json={"payload": seed_payload})
        self.assertEqual(resp.status_code, 200)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _today(self) -> str:
        return datetime.now(timezone.utc).date().isoformat()

    def test_healthz(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_config_is_masked(self) -> None:
        data = self.client.get("/api/config").json()
        self.assertEqual(data["config"]["ai"]["api_key"], "***")
        self.assertTrue(data["meta"]["ai"]["api_key"]["is_masked"])

    def test_put_config_masked_or_empty_secret_does_not_override(self) -> None:
        for secret in ("***", ""):
            resp = self.client.put("/api/config", json={"payload": {"ai": {"api_key": secret, "model": "gpt-4.1"}}})
            self.assertEqual(resp.status_code, 200)
            config = resp.json()["config"]
            self.assertEqual(config["ai"]["api_key"], "secret-key")
            self.assertEqual(config["ai"]["model"], "gpt-4.1")

    def test_put_config_unknown_section_is_bad_request(self) -> None:
        resp = self.client.put("/api/config", json={"payload": {"sync": {"interval_seconds": 600}}})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("sync", resp.json()["detail"])

    def test_ai_test_endpoint(self) -> None:
        with mock.patch(
            "aion.web_app.OpenAICompatibleClient.test_connectivity",
            return_value=(True, "Connected. Model response: OK"),
        ):
            resp = self.client.post("/api/ai/test")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["ok"])

    def test_profile_and_persona(self) -> None:
        resp = self.client.put(
            "/api/profile",
            json={"name": "Sam", "connected_apps": ["Flo"], "is_google_calendar_connected": True},
        )
        self.assertEqual(resp.status_code, 200)
        flags = resp.json()["flags"]
        self.assertTrue(flags["google"])
        self.assertTrue(flags["has_cycle"])
        self.assertFalse(flags["tum"])

        resp = self.client.put("/api/persona", json={"persona": "Toxic Motivation"})
        self.assertEqual(resp.json()["persona"], "Toxic Motivation")
        resp = self.client.put("/api/persona", json={"persona": "Chaotic"})
        self.assertEqual(resp.status_code, 400)

    def test_calendar_views(self) -> None:
        self.client.put("/api/profile", json={"is_google_calendar_connected": True})
        resp = self.client.get("/api/calendar", params={"view": "day"})
        self.assertEqual(resp.status_code, 200)
        column = resp.json()["columns"][0]
        dentist = [p for p in column["events"] if p["event"]["id"] == "g-1"][0]
        self.assertAlmostEqual(dentist["top"], 0.625)
        self.assertAlmostEqual(dentist["height"], 1 / 24)

        resp = self.client.get("/api/calendar", params={"view": "month", "date": "2025-10-15"})
        self.assertEqual(resp.json()["month"]["leading_blanks"], 2)

        resp = self.client.get("/api/calendar/navigate", params={"view": "month", "date": "2025-01-31"})
        self.assertEqual(resp.json()["reference_date"], "2025-02-28")

        self.assertEqual(self.client.get("/api/calendar", params={"view": "year"}).status_code, 400)
        self.assertEqual(self.client.get("/api/calendar", params={"date": "tomorrow"}).status_code, 400)

    def test_event_crud(self) -> None:
        resp = self.client.post(
            "/api/events",
            json={"title": "Coffee", "day": "2025-10-01", "start_time": "14:00", "duration_minutes": 30},
        )
        self.assertEqual(resp.status_code, 200)
        event = resp.json()["event"]
        self.assertTrue(event["id"].startswith("user-"))
        self.assertEqual(event["start"], "2025-10-01T14:00:00+00:00")

        resp = self.client.put(f"/api/events/{event['id']}", json={"title": "Tea", "day": "2025-10-01"})
        self.assertEqual(resp.json()["event"]["title"], "Tea")

        self.assertEqual(self.client.delete(f"/api/events/{event['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/events/{event['id']}").status_code, 404)
        bad = self.client.post("/api/events", json={"title": "Oops", "start_time": "25:00"})
        self.assertEqual(bad.status_code, 400)

    def test_workout_endpoints(self) -> None:
        resp = self.client.post("/api/workouts", json={"activity_name": "Leg day", "category": "strength"})
        self.assertEqual(resp.status_code, 200)
        workout = resp.json()["event"]
        self.assertEqual(workout["status"], "planned")

        resp = self.client.post(f"/api/workouts/{workout['id']}/complete")
        self.assertEqual(resp.json()["event"]["status"], "completed")
        self.assertEqual(self.client.post(f"/api/workouts/{workout['id']}/missed").status_code, 409)
        self.assertEqual(self.client.post("/api/workouts/nope/complete").status_code, 404)

    def test_checkin_and_suggestion_flow(self) -> None:
        with mock.patch("aion.checkin.OpenAICompatibleClient.generate_plan", return_value=RAW_PLAN):
            resp = self.client.post("/api/checkin", json={"sleep_hours": 4, "stress_level": 9, "mood": "Tired"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["analysis"]["burnout_level"], "Medium")

        pending = self.client.get("/api/suggestions").json()
        self.assertTrue(pending["has_analysis"])
        self.assertEqual([s["id"] for s in pending["suggestions"]], ["sug-0"])
        schedule_id = pending["schedule"][0]["id"]

        resp = self.client.post(f"/api/suggestions/{schedule_id}/accept")
        self.assertEqual(resp.status_code, 200)
        event = resp.json()["event"]
        self.assertEqual(event["source"], "Aion Plan")
        self.assertTrue(event["is_fixed"])
        self.assertEqual(event["start"][11:16], "14:30")
        self.assertEqual(event["end"][11:16], "15:00")

        self.assertEqual(self.client.post(f"/api/suggestions/{schedule_id}/accept").status_code, 409)
        resp = self.client.post("/api/suggestions/sug-0/accept", json={"title": "Long walk", "start_time": "18:00"})
        self.assertEqual(resp.json()["event"]["title"], "Long walk")
        self.assertEqual(self.client.post("/api/suggestions/sug-7/accept").status_code, 404)
        self.assertEqual(self.client.get("/api/suggestions").json()["suggestions"], [])

        analysis = self.client.get("/api/analysis").json()
        self.assertEqual(analysis["planning"]["status"], "succeeded")
        self.assertEqual(analysis["metrics"]["mood"], "Tired")

        self.assertEqual(self.client.delete("/api/checkin").status_code, 200)
        self.assertIsNone(self.client.get("/api/analysis").json()["analysis"])

    def test_checkin_failure_returns_retry_notice(self) -> None:
        with mock.patch("aion.checkin.OpenAICompatibleClient.generate_plan", side_effect=RuntimeError("boom")):
            resp = self.client.post("/api/checkin", json={"sleep_hours": 7, "stress_level": 3, "mood": "Great"})
        self.assertEqual(resp.status_code, 502)
        self.assertIn("try again", resp.json()["detail"])
        self.assertEqual(self.client.get("/api/analysis").json()["planning"]["status"], "failed")
        runs = self.client.get("/api/checkin/runs").json()["runs"]
        self.assertEqual(runs[0]["status"], "failed")

    def test_checkin_validation(self) -> None:
        resp = self.client.post("/api/checkin", json={"sleep_hours": 7, "stress_level": 12, "mood": "Great"})
        self.assertEqual(resp.status_code, 422)
        resp = self.client.post("/api/checkin", json={"sleep_hours": 7, "stress_level": 5, "mood": "Bored"})
        self.assertEqual(resp.status_code, 400)

    def test_coach(self) -> None:
        with mock.patch("aion.web_app.OpenAICompatibleClient.chat", return_value="Breathe.") as chat:
            resp = self.client.post("/api/coach", json={"message": "I'm overwhelmed"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["reply"], "Breathe.")
        messages = chat.call_args.kwargs["messages"]
        self.assertEqual(messages[-1]["content"], "I'm overwhelmed")

    def test_ics_export_and_audit(self) -> None:
        self.client.post("/api/events", json={"title": "Coffee"})
        resp = self.client.get("/api/calendar.ics")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/calendar"))
        self.assertIn("SUMMARY:Coffee", resp.text)
        audit = self.client.get("/api/audit/events", params={"action": "add_event"}).json()["events"]
        self.assertEqual(audit[0]["details"]["title"], "Coffee")

    def test_events_listing_reports_degraded_feed(self) -> None:
        store = self.app.state.context.calendar_store
        store.feed = mock.Mock(side_effect=RuntimeError("offline"))
        resp = self.client.get("/api/events")
        self.assertTrue(resp.json()["degraded"])
        self.assertEqual(resp.json()["events"], [])


if __name__ == "__main__":
    unittest.main()
