"""
Calendar event stub for confirmed games.

No external calendar is called: events are rendered as iCalendar text that
is attached to the match-confirmed email, plus a Google Calendar template link.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from urllib.parse import urlencode
from fulbo.utils.constants import DEFAULT_GAME_TIME, GAME_DURATION_HOURS
from fulbo.utils.datetime_utils import parse_time

logger = logging.getLogger(__name__)

EVENT_TITLE = "Partido de Fútbol"
DEFAULT_LOCATION = "Cancha por definir"
ORGANIZER_EMAIL = "admin@fulbo.app"
GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"


def _format_ics_datetime(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def _escape_ics_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def event_times(game_date: date, custom_time: Optional[str] = None):
    """Start and end of a game in local wall-clock time."""
    hours, minutes = parse_time(custom_time or DEFAULT_GAME_TIME)
    start = datetime(game_date.year, game_date.month, game_date.day, hours, minutes)
    return start, start + timedelta(hours=GAME_DURATION_HOURS)


def build_event(
    game_id: int,
    game_date: date,
    participants: List[Dict],
    custom_time: Optional[str] = None,
    location: Optional[str] = None,
    maps_link: Optional[str] = None,
) -> Dict:
    """
    Describe the calendar event for a confirmed game.

    Args:
        game_id: Game ID
        game_date: Date of the game
        participants: User dicts with name and email
        custom_time: Optional "HH:MM" start time
        location: Venue name
        maps_link: Optional map URL appended to the location

    Returns:
        Event dictionary including the rendered ICS text
    """
    start, end = event_times(game_date, custom_time)
    venue = location or DEFAULT_LOCATION
    participant_lines = "\n".join(f"- {p.get('name')} ({p.get('email')})" for p in participants)
    event = {
        "id": f"fulbo_{game_id}_{game_date.strftime('%Y%m%d')}",
        "title": EVENT_TITLE,
        "description": (
            f"Partido organizado con {len(participants)} jugadores.\n\n"
            f"Participantes:\n{participant_lines}"
        ),
        "start": start,
        "end": end,
        "location": f"{venue} - {maps_link}" if maps_link else venue,
        "attendees": [p["email"] for p in participants if p.get("email")],
    }
    event["ics"] = generate_ics(event)
    logger.info(f"Calendar event {event['id']} built for game {game_id}")
    return event


def generate_ics(event: Dict) -> str:
    """Render an event as an iCalendar document (CRLF line endings)."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Fulbo Organizer//ES",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{event['id']}@fulbo.app",
        f"DTSTART:{_format_ics_datetime(event['start'])}",
        f"DTEND:{_format_ics_datetime(event['end'])}",
        f"SUMMARY:{_escape_ics_text(event['title'])}",
        f"DESCRIPTION:{_escape_ics_text(event['description'])}",
    ]
    if event.get("location"):
        lines.append(f"LOCATION:{_escape_ics_text(event['location'])}")
    lines.append(f"ORGANIZER:mailto:{ORGANIZER_EMAIL}")
    lines.extend(f"ATTENDEE:mailto:{email}" for email in event.get("attendees", []))
    lines.extend(["STATUS:CONFIRMED", "SEQUENCE:0", "END:VEVENT", "END:VCALENDAR"])
    return "\r\n".join(lines)


def google_calendar_url(
    game_date: date,
    custom_time: Optional[str] = None,
    location: Optional[str] = None,
) -> str:
    """Link that opens a prefilled Google Calendar event."""
    start, end = event_times(game_date, custom_time)
    params = {
        "action": "TEMPLATE",
        "text": EVENT_TITLE,
        "dates": f"{_format_ics_datetime(start)}/{_format_ics_datetime(end)}",
        "location": location or DEFAULT_LOCATION,
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"
