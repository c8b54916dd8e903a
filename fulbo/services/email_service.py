"""
Email service using SendGrid for sending notifications.

Sends are fire-and-forget: every function returns a bool and logs failures
instead of raising, so a failed email never undoes a committed change.
"""

import os
import base64
import logging
from typing import Optional, List, Dict, Union
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Mail,
    Email,
    To,
    Content,
    Attachment,
    FileContent,
    FileName,
    FileType,
    Disposition,
)
from dotenv import load_dotenv
from fulbo.services import settings_service

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@fulbo.app")
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
ENABLE_EMAIL = settings_service.get_bool_env("ENABLE_EMAIL", default=True)

MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]
WEEKDAY_NAMES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


async def is_enabled(session: Optional[AsyncSession] = None) -> bool:
    """
    Check if email is enabled, checking database first.

    Args:
        session: Optional database session for checking database settings

    Returns:
        True if email is enabled, False otherwise
    """
    try:
        return await settings_service.get_bool_setting(
            session, "enable_email", env_var="ENABLE_EMAIL", default=True, fallback_to_cache=True
        )
    except Exception as e:
        logger.warning(f"Error getting ENABLE_EMAIL from settings, using default: {e}")
        return ENABLE_EMAIL


def format_game_date(value: date) -> str:
    """Spanish long date, e.g. "Domingo 3 de Marzo de 2024"."""
    return (
        f"{WEEKDAY_NAMES[value.weekday()]} {value.day} de "
        f"{MONTH_NAMES[value.month - 1]} de {value.year}"
    )


def _build_attachment(attachment: Dict) -> Attachment:
    content: Union[str, bytes] = attachment["content"]
    if isinstance(content, str):
        content = content.encode("utf-8")
    return Attachment(
        FileContent(base64.b64encode(content).decode("ascii")),
        FileName(attachment["filename"]),
        FileType(attachment.get("content_type", "application/octet-stream")),
        Disposition("attachment"),
    )


async def send_email(
    recipients: List[str],
    subject: str,
    html_body: str,
    text_body: str,
    attachments: Optional[List[Dict]] = None,
    session: Optional[AsyncSession] = None,
) -> bool:
    """
    Send one email to each recipient via SendGrid.

    Recipients receive individual copies and do not see each other.

    Args:
        recipients: Email addresses
        subject: Subject line
        html_body: HTML content
        text_body: Plain text content
        attachments: Optional list of {filename, content, content_type}
        session: Optional database session for checking database settings

    Returns:
        bool: True if the email was sent (or intentionally skipped), False on failure
    """
    recipients = [r for r in recipients if r]
    if not recipients:
        logger.info(f"No recipients for '{subject}'. Email skipped.")
        return True

    enable_email = await is_enabled(session)
    if not enable_email:
        logger.info("Email sending is disabled. Email notification skipped.")
        return True  # Return True to not break the flow, but log that email was skipped

    # If SendGrid is not configured, log warning and return True (don't fail the request)
    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not configured. Email notification skipped.")
        return True

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL),
            to_emails=[To(r) for r in recipients],
            subject=subject,
            plain_text_content=Content("text/plain", text_body),
            html_content=Content("text/html", html_body),
            is_multiple=True,
        )
        for attachment in attachments or []:
            message.add_attachment(_build_attachment(attachment))

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if 200 <= response.status_code < 300:
            logger.info(f"Email '{subject}' sent to {len(recipients)} recipient(s)")
            return True
        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return False

    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {str(e)}")
        return False


def _wrap_html(title: str, body: str) -> str:
    return (
        "<div style=\"font-family: sans-serif; max-width: 600px; margin: 0 auto;\">"
        f"<h2 style=\"color: #16a34a;\">{title}</h2>{body}"
        f"<p style=\"color: #6b7280; font-size: 12px;\">Fulbo &middot; <a href=\"{APP_URL}\">{APP_URL}</a></p>"
        "</div>"
    )


async def send_voting_reminder(
    recipients: List[str],
    month: int,
    year: int,
    session: Optional[AsyncSession] = None,
) -> bool:
    """Remind members to vote their Sundays for a month."""
    month_name = f"{MONTH_NAMES[month - 1]} {year}"
    subject = f"Recordatorio: votá tus domingos de {month_name}"
    text_body = (
        f"Todavía no votaste tu disponibilidad para {month_name}.\n"
        f"Entrá a {APP_URL}/dashboard y marcá los domingos que podés jugar."
    )
    html_body = _wrap_html(
        "¡No te olvides de votar!",
        f"<p>Todavía no votaste tu disponibilidad para <strong>{month_name}</strong>.</p>"
        f"<p><a href=\"{APP_URL}/dashboard\">Votar ahora</a></p>",
    )
    return await send_email(recipients, subject, html_body, text_body, session=session)


async def send_match_confirmation(
    recipients: List[str],
    game_date: date,
    reservation_info: Optional[Dict] = None,
    custom_time: Optional[str] = None,
    calendar_ics: Optional[str] = None,
    session: Optional[AsyncSession] = None,
) -> bool:
    """Tell participants their match is confirmed, with the calendar invite attached."""
    info = reservation_info or {}
    when = format_game_date(game_date)
    time_text = info.get("time") or custom_time or "10:00"
    details = [
        ("Fecha", when),
        ("Hora", time_text),
        ("Lugar", info.get("location") or "Por definir"),
    ]
    if info.get("cost") is not None:
        details.append(("Costo", str(info["cost"])))
    if info.get("reserved_by"):
        details.append(("Reservado por", info["reserved_by"]))
    if info.get("payment_alias"):
        details.append(("Alias de pago", info["payment_alias"]))
    if info.get("maps_link"):
        details.append(("Mapa", info["maps_link"]))

    subject = f"Partido confirmado: {when}"
    text_body = "¡El partido está confirmado!\n\n" + "\n".join(
        f"{label}: {value}" for label, value in details
    )
    html_body = _wrap_html(
        "¡Partido confirmado!",
        "<ul>" + "".join(f"<li><strong>{label}:</strong> {value}</li>" for label, value in details) + "</ul>",
    )
    attachments = None
    if calendar_ics:
        attachments = [
            {"filename": "partido.ics", "content": calendar_ics, "content_type": "text/calendar"}
        ]
    return await send_email(recipients, subject, html_body, text_body, attachments, session=session)


async def send_mvp_reminder(
    recipients: List[str],
    game_id: int,
    game_date: date,
    payment_alias: Optional[str] = None,
    cost: Optional[Union[int, float, str]] = None,
    session: Optional[AsyncSession] = None,
) -> bool:
    """Ask participants to vote the MVP and to pay their share."""
    when = format_game_date(game_date)
    vote_link = f"{APP_URL}/dashboard/history?game={game_id}"
    payment_line = ""
    if payment_alias:
        payment_line = f"Pagá tu parte al alias {payment_alias}"
        if cost is not None:
            payment_line += f" (costo total: {cost})"
        payment_line += "."

    subject = f"Votá al MVP del partido del {when}"
    text_body = f"¡Gracias por jugar el {when}!\nVotá al MVP: {vote_link}\n{payment_line}".strip()
    html_body = _wrap_html(
        "¿Quién fue el MVP?",
        f"<p>¡Gracias por jugar el {when}!</p>"
        f"<p><a href=\"{vote_link}\">Votar al MVP</a></p>"
        + (f"<p>{payment_line}</p>" if payment_line else ""),
    )
    return await send_email(recipients, subject, html_body, text_body, session=session)


async def send_admin_match_ready(
    recipients: List[str],
    game_date: date,
    participant_names: List[str],
    session: Optional[AsyncSession] = None,
) -> bool:
    """Tell admins a Sunday reached a full roster and needs a reservation."""
    when = format_game_date(game_date)
    subject = f"Partido listo para confirmar: {when}"
    text_body = (
        f"El {when} ya tiene {len(participant_names)} jugadores:\n"
        + "\n".join(f"- {name}" for name in participant_names)
        + f"\n\nReservá la cancha y confirmá el partido en {APP_URL}/dashboard/admin"
    )
    html_body = _wrap_html(
        "Partido listo para confirmar",
        f"<p>El <strong>{when}</strong> ya tiene {len(participant_names)} jugadores:</p>"
        "<ul>" + "".join(f"<li>{name}</li>" for name in participant_names) + "</ul>"
        f"<p><a href=\"{APP_URL}/dashboard/admin\">Ir al panel de administración</a></p>",
    )
    return await send_email(recipients, subject, html_body, text_body, session=session)
