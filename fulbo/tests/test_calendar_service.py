"""
Unit tests for the calendar event stub.
"""

from datetime import date, datetime

from fulbo.services import calendar_service

PLAYERS = [
    {"name": "Juan", "email": "juan@example.com"},
    {"name": "Pedro", "email": "pedro@example.com"},
]


def test_build_event_defaults_to_ten_for_one_hour():
    event = calendar_service.build_event(7, date(2025, 3, 16), PLAYERS)

    assert event["id"] == "fulbo_7_20250316"
    assert event["start"] == datetime(2025, 3, 16, 10, 0)
    assert event["end"] == datetime(2025, 3, 16, 11, 0)
    assert event["location"] == calendar_service.DEFAULT_LOCATION
    assert event["attendees"] == ["juan@example.com", "pedro@example.com"]


def test_build_event_uses_custom_time_and_maps_link():
    event = calendar_service.build_event(
        3,
        date(2025, 3, 16),
        PLAYERS,
        custom_time="19:30",
        location="Cancha 5",
        maps_link="https://maps.example.com/x",
    )

    assert event["start"] == datetime(2025, 3, 16, 19, 30)
    assert event["end"] == datetime(2025, 3, 16, 20, 30)
    assert event["location"] == "Cancha 5 - https://maps.example.com/x"


def test_generate_ics():
    event = calendar_service.build_event(1, date(2025, 3, 16), PLAYERS, location="Club, Norte")
    ics = event["ics"]
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "UID:fulbo_1_20250316@fulbo.app" in lines
    assert "DTSTART:20250316T100000" in lines
    assert "DTEND:20250316T110000" in lines
    assert "LOCATION:Club\\, Norte" in lines
    assert "ATTENDEE:mailto:pedro@example.com" in lines


def test_google_calendar_url():
    url = calendar_service.google_calendar_url(date(2025, 3, 16), "18:00", "Cancha 5")

    assert url.startswith("https://calendar.google.com/calendar/render?")
    assert "action=TEMPLATE" in url
    assert "20250316T180000%2F20250316T190000" in url
