"""
Send booking notifications by email via SMTP (Gmail or any relay).
Set SMTP_USER, SMTP_PASSWORD (and optionally NOTIFY_FROM) in .env. Without them, sending is skipped.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from infrabook.config import settings
from infrabook.core.constants import (
    EVENT_BOOKING_REQUESTED,
    EVENT_BOOKING_STATUS_CHANGED,
    EVENT_GUEST_CONFIRMATION,
)

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if settings.notify_from:
        return settings.notify_from
    if settings.smtp_user:
        return f"Infrastructure Booking <{settings.smtp_user}>"
    return "Infrastructure Booking <noreply@localhost>"


def _slot_line(payload: dict[str, Any]) -> str:
    name = payload.get("infrastructure_name") or "Infrastructure"
    return f"{name}: {payload.get('date', '')} {payload.get('start_time', '')}-{payload.get('end_time', '')}".strip()


def render_message(event: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, plain-text body) for a notification event."""
    slot = _slot_line(payload)
    if event == EVENT_BOOKING_REQUESTED:
        lines = [
            "A new booking request is waiting for a decision.",
            "",
            f"• {slot}",
            f"• Requested by: {payload.get('claimant', '')}",
        ]
        if payload.get("purpose"):
            lines.append(f"• Purpose: {payload['purpose']}")
        if payload.get("approve_url"):
            lines += ["", f"Approve: {payload['approve_url']}"]
        if payload.get("reject_url"):
            lines.append(f"Reject: {payload['reject_url']}")
        return f"New booking request for {payload.get('infrastructure_name') or 'infrastructure'}", "\n".join(lines)
    if event == EVENT_BOOKING_STATUS_CHANGED:
        status = payload.get("status", "")
        return f"Your booking was {status}", f"Your booking has been {status}.\n\n• {slot}"
    if event == EVENT_GUEST_CONFIRMATION:
        lines = [
            f"Hello {payload.get('name') or 'there'},",
            "",
            "Please confirm your booking request by opening the link below:",
            "",
            payload.get("confirm_url", ""),
            "",
            f"• {slot}",
            "",
            f"The link expires in {payload.get('expires_in_hours', settings.guest_intent_ttl_hours)} hours.",
        ]
        return "Confirm your booking request", "\n".join(lines)
    return f"Booking notification: {event}", slot


class SmtpNotifier:
    """Default Notifier: one email per recipient. Returns True only if every message was sent."""

    def send(self, event: str, recipients: list[str], payload: dict[str, Any]) -> bool:
        recipients = [r.strip() for r in recipients if r and r.strip()]
        if not recipients:
            return False
        user = settings.smtp_user
        password = settings.smtp_password
        if not user or not password:
            logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping %s notification", event)
            return False
        subject, body = render_message(event, payload)
        from_addr = _from_address()
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(user, password)
                for to_email in recipients:
                    msg = MIMEMultipart("alternative")
                    msg["Subject"] = subject
                    msg["From"] = from_addr
                    msg["To"] = to_email
                    msg.attach(MIMEText(body, "plain"))
                    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
                    server.sendmail(user, [to_email], msg.as_string())
            logger.info("Email %s sent to %s recipients", event, len(recipients))
            return True
        except Exception as e:
            logger.exception("Failed to send %s email: %s", event, e)
            return False
