from __future__ import annotations

from fastapi import FastAPI

from taskminder.config import AppConfig, load_config
from taskminder.notify.email import EmailNotifier
from taskminder.scheduler.reminders import ReminderScheduler
from taskminder.store.redis_store import RedisOwnerDirectory, RedisTaskStore

from .app import create_app


def build_scheduler(
    cfg: AppConfig, store: RedisTaskStore, owners: RedisOwnerDirectory
) -> ReminderScheduler:
    return ReminderScheduler(
        store,
        owners,
        EmailNotifier(cfg.mail),
        interval_seconds=cfg.reminder_interval_seconds,
        window_seconds=cfg.reminder_window_seconds,
    )


def build_app(cfg: AppConfig | None = None) -> FastAPI:
    cfg = cfg or load_config()
    store = RedisTaskStore(cfg.redis_url, key_prefix=cfg.key_prefix)
    owners = RedisOwnerDirectory(cfg.redis_url, key_prefix=cfg.key_prefix)
    scheduler = build_scheduler(cfg, store, owners) if cfg.scheduler_enabled else None
    return create_app(store, scheduler=scheduler)


__all__ = ["build_app", "build_scheduler"]
