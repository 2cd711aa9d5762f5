from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class MailConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    from_name: str
    start_tls: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)


@dataclass(slots=True)
class AppConfig:
    redis_url: str
    key_prefix: str
    host: str
    port: int
    mail: MailConfig
    reminder_interval_seconds: float
    reminder_window_seconds: float
    scheduler_enabled: bool


def _int(e: dict[str, Any], name: str, default: int, *, minimum: int = 1) -> int:
    raw = (e.get(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    return max(minimum, value)


def _flag(e: dict[str, Any], name: str, default: bool) -> bool:
    raw = (e.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


def load_config(env: dict[str, str] | None = None) -> AppConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    mail = MailConfig(
        host=e.get("EMAIL_HOST") or "smtp.gmail.com",
        port=_int(e, "EMAIL_PORT", 587),
        username=e.get("EMAIL_USER") or None,
        password=e.get("EMAIL_PASS") or None,
        from_name=e.get("EMAIL_FROM_NAME") or "Task Reminder App",
        start_tls=_flag(e, "EMAIL_STARTTLS", True),
    )
    return AppConfig(
        redis_url=e.get("REDIS_URL") or "redis://localhost:6379/0",
        key_prefix=e.get("TASK_STORE_PREFIX") or "taskminder",
        host=e.get("HOST") or "0.0.0.0",
        port=_int(e, "PORT", 5000),
        mail=mail,
        reminder_interval_seconds=float(_int(e, "REMINDER_INTERVAL_SECONDS", 60)),
        reminder_window_seconds=float(_int(e, "REMINDER_WINDOW_SECONDS", 300)),
        scheduler_enabled=_flag(e, "SCHEDULER_ENABLED", True),
    )


__all__ = ["AppConfig", "MailConfig", "load_config"]
