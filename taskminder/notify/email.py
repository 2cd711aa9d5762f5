"""Reminder e-mails over SMTP.

The notifier renders one HTML reminder per task and hands it to aiosmtplib.
Without mail credentials it only logs what it would have sent, so a local
stack runs end to end with no SMTP server.
"""

from __future__ import annotations

import html
from datetime import datetime
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

from taskminder.config import MailConfig
from taskminder.errors import SendFailedError
from taskminder.models.task import Owner, Priority, Task, as_utc
from taskminder.observability import get_json_logger, get_metrics

PRIORITY_COLORS: dict[str, str] = {
    Priority.HIGH: "#EF4444",
    Priority.MEDIUM: "#F59E0B",
    Priority.LOW: "#10B981",
}
_DEFAULT_COLOR = "#6B7280"


class Notifier(Protocol):
    async def send(self, task: Task, owner: Owner) -> None:
        """Deliver a reminder for ``task`` to ``owner``. Raises SendFailedError."""


def format_due_date(value: datetime) -> str:
    """Render e.g. ``Monday, January 5, 2026 at 3:00 PM UTC``."""
    d = as_utc(value)
    hour = d.hour % 12 or 12
    return f"{d:%A, %B} {d.day}, {d.year} at {hour}:{d:%M} {d:%p} UTC"


def render_subject(task: Task) -> str:
    return f"Reminder: {task.title}"


def render_text(task: Task) -> str:
    lines = [f"Task Reminder: {task.title}"]
    if task.description:
        lines.append(task.description)
    lines.append(f"Due Date: {format_due_date(task.due_date)}")
    lines.append(f"Priority: {task.priority.value}")
    lines.append("Don't forget to complete this task on time!")
    return "\n".join(lines)


def render_html(task: Task) -> str:
    color = PRIORITY_COLORS.get(task.priority, _DEFAULT_COLOR)
    description = (
        f'<p style="color: #6B7280;">{html.escape(task.description)}</p>'
        if task.description
        else ""
    )
    return f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #4F46E5;">Task Reminder</h2>
  <div style="background-color: #F3F4F6; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="color: #1F2937; margin-top: 0;">{html.escape(task.title)}</h3>
    {description}
    <div style="margin-top: 15px;">
      <p style="margin: 5px 0;"><strong>Due Date:</strong> {format_due_date(task.due_date)}</p>
      <p style="margin: 5px 0;"><strong>Priority:</strong>
        <span style="text-transform: capitalize; color: {color};">{task.priority.value}</span></p>
    </div>
  </div>
  <p style="color: #6B7280; font-size: 14px;">Don't forget to complete this task on time!</p>
  <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #E5E7EB;">
    <p style="color: #9CA3AF; font-size: 12px; margin: 0;">
      This is an automated reminder from Task Reminder App.
    </p>
  </div>
</div>
"""


class EmailNotifier(Notifier):
    def __init__(self, config: MailConfig) -> None:
        self._config = config
        self._logger = get_json_logger("taskminder.notify")
        self._metrics = get_metrics()

    def build_message(self, task: Task, owner: Owner) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f'"{self._config.from_name}" <{self._config.username}>'
        msg["To"] = owner.email
        msg["Subject"] = render_subject(task)
        msg.set_content(render_text(task))
        msg.add_alternative(render_html(task), subtype="html")
        return msg

    async def send(self, task: Task, owner: Owner) -> None:
        if not self._config.configured:
            self._logger.warning(
                "email not configured; skipping reminder",
                extra={
                    "event": "reminder_skipped",
                    "task_id": task.id,
                    "attributes": {"title": task.title, "to": owner.email},
                },
            )
            return

        message = self.build_message(task, owner)
        try:
            await aiosmtplib.send(
                message,
                hostname=self._config.host,
                port=self._config.port,
                username=self._config.username,
                password=self._config.password,
                start_tls=self._config.start_tls,
                timeout=30,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            self._metrics.increment("email_errors")
            raise SendFailedError(f"reminder e-mail to {owner.email} failed: {exc}") from exc
        self._logger.info(
            "reminder email sent",
            extra={"event": "reminder_email_sent", "task_id": task.id, "owner_id": owner.id},
        )


__all__ = [
    "Notifier",
    "EmailNotifier",
    "format_due_date",
    "render_subject",
    "render_html",
    "render_text",
]
