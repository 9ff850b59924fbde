"""Reminder email renderer — pure formatting.

Builds the subject, plain-text and HTML bodies of a quiet block reminder.
Times are shown in one fixed UTC offset (e.g. "+05:30").

No I/O: this module only transforms data.
"""

from __future__ import annotations

import html
import logging
import re
from datetime import datetime, timedelta, timezone

from quiet_hours.data.models import QuietBlock
from quiet_hours.ports.email_port import ReminderEmail
from quiet_hours.ports.profile_port import Contact

logger = logging.getLogger(__name__)

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def parse_utc_offset(raw: str) -> timezone:
    """Parse "+05:30" / "-0800" / "Z" into a fixed-offset timezone.

    Falls back to UTC on malformed input.
    """
    raw = (raw or "").strip()
    if raw.upper() in ("", "Z", "UTC"):
        return timezone.utc
    m = _OFFSET_RE.match(raw)
    if not m:
        logger.warning("Invalid display offset %r, using UTC", raw)
        return timezone.utc
    sign, hours, minutes = m.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    if delta >= timedelta(hours=24):
        logger.warning("Display offset %r out of range, using UTC", raw)
        return timezone.utc
    return timezone(-delta if sign == "-" else delta)


def _clock(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    suffix = "am" if dt.hour < 12 else "pm"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_start(dt: datetime, tz: timezone) -> str:
    """e.g. "Monday, 19 October 2026, 9:50 am"."""
    local = dt.astimezone(tz)
    return f"{local:%A}, {local.day} {local:%B %Y}, {_clock(local)}"


def format_end(dt: datetime, tz: timezone) -> str:
    """e.g. "10:50 am"."""
    return _clock(dt.astimezone(tz))


def build_reminder_email(
    contact: Contact,
    block: QuietBlock,
    *,
    lead_minutes: int,
    display_tz: timezone,
    sender_name: str,
) -> ReminderEmail:
    """Render the reminder for one block and recipient."""
    start_text = format_start(block.start, display_tz)
    end_text = format_end(block.end, display_tz)
    footer = f"This reminder was sent {lead_minutes} minutes before your quiet block starts."

    text = "\n".join([
        f"Quiet Block Reminder: {block.title}",
        "",
        f"Hello {contact.display_name},",
        "",
        "This is a friendly reminder that your quiet block is starting soon:",
        "",
        block.title,
        f"Start Time: {start_text}",
        f"End Time: {end_text}",
        "",
        "Time to prepare for your quiet time!",
        "Find a quiet space and get ready to focus.",
        "",
        footer,
        f"Sent by {sender_name}",
    ])

    esc = html.escape
    body_html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Quiet Block Reminder</title></head>
<body style="font-family: sans-serif; background-color: #f8fafc;">
  <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff;">
    <h1>Quiet Block Reminder</h1>
    <p>Hello <strong>{esc(contact.display_name)}</strong>,</p>
    <p>This is a friendly reminder that your quiet block is starting soon:</p>
    <div style="border: 1px solid #e2e8f0; padding: 20px;">
      <h2>{esc(block.title)}</h2>
      <p><strong>Start Time:</strong> {esc(start_text)}</p>
      <p><strong>End Time:</strong> {esc(end_text)}</p>
    </div>
    <p>Time to prepare for your quiet time! Find a quiet space and get ready to focus.</p>
    <p style="color: #9ca3af; font-size: 12px;">{esc(footer)}<br>Sent by {esc(sender_name)}</p>
  </div>
</body>
</html>
"""

    return ReminderEmail(
        to=contact.email,
        subject=f"Quiet Block Reminder: {block.title}",
        text=text,
        html=body_html,
    )
