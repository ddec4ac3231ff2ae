import unittest
from datetime import datetime, timezone

from icalendar import Calendar

from aion.events import create_event
from aion.ical_export import export_ical
from aion.models import EventSource, WorkoutStatus


UTC = timezone.utc


class IcalExportTests(unittest.TestCase):
    def test_export_contains_events_and_workout_fields(self) -> None:
        events = [
            create_event(
                id="g-1",
                title="Dentist",
                start=datetime(2025, 10, 1, 15, tzinfo=UTC),
                end=datetime(2025, 10, 1, 16, tzinfo=UTC),
                source=EventSource.GOOGLE,
                location="Clinic",
            ),
            create_event(
                id="workout-1",
                title="Run",
                start=datetime(2025, 10, 2, 7, tzinfo=UTC),
                end=datetime(2025, 10, 2, 8, tzinfo=UTC),
                source=EventSource.HEALTH,
                status=WorkoutStatus.PLANNED,
                workout_type="running",
            ),
        ]
        text = export_ical(events)
        calendar = Calendar.from_ical(text)
        vevents = [component for component in calendar.walk("VEVENT")]
        self.assertEqual([str(v["UID"]) for v in vevents], ["g-1", "workout-1"])
        self.assertEqual(str(vevents[0]["SUMMARY"]), "Dentist")
        self.assertEqual(str(vevents[0]["LOCATION"]), "Clinic")
        self.assertEqual(vevents[0].decoded("DTSTART"), datetime(2025, 10, 1, 15, tzinfo=UTC))
        self.assertEqual(str(vevents[1]["X-AION-WORKOUT-STATUS"]), "planned")
        self.assertIn("PRODID:-//Aion//Wellness Calendar//EN", text)

    def test_every_event_carries_the_export_timestamp(self) -> None:
        exported_at = datetime(2025, 10, 1, 8, 30, tzinfo=UTC)
        events = [
            create_event(
                id=f"user-{index}",
                title="Coffee",
                start=datetime(2025, 10, 1, 9 + index, tzinfo=UTC),
                end=datetime(2025, 10, 1, 10 + index, tzinfo=UTC),
                source=EventSource.SOCIAL,
            )
            for index in range(2)
        ]
        calendar = Calendar.from_ical(export_ical(events, now=exported_at))
        stamps = [vevent.decoded("DTSTAMP") for vevent in calendar.walk("VEVENT")]
        self.assertEqual(stamps, [exported_at, exported_at])

    def test_empty_calendar(self) -> None:
        text = export_ical([])
        self.assertIn("BEGIN:VCALENDAR", text)
        self.assertNotIn("BEGIN:VEVENT", text)


if __name__ == "__main__":
    unittest.main()
