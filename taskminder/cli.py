from __future__ import annotations

import argparse
import asyncio
import sys

from taskminder.config import AppConfig, load_config
from taskminder.models.task import Owner
from taskminder.observability import get_json_logger


def serve(cfg: AppConfig, host: str | None, port: int | None) -> int:
    import uvicorn

    from taskminder.gateway.asgi import build_app

    uvicorn.run(build_app(cfg), host=host or cfg.host, port=port or cfg.port, log_config=None)
    return 0


def add_owner(cfg: AppConfig, owner_id: str, email: str, name: str | None) -> int:
    from taskminder.store.redis_store import RedisOwnerDirectory

    if "@" not in email:
        sys.stderr.write(f"error: not an e-mail address: {email}\n")
        return 2
    RedisOwnerDirectory(cfg.redis_url, key_prefix=cfg.key_prefix).put_owner(
        Owner(id=owner_id, email=email, name=name)
    )
    get_json_logger("taskminder.cli").info(
        "owner contact saved", extra={"event": "owner_saved", "owner_id": owner_id}
    )
    return 0


def run_tick(cfg: AppConfig) -> int:
    from taskminder.gateway.asgi import build_scheduler
    from taskminder.store.redis_store import RedisOwnerDirectory, RedisTaskStore

    store = RedisTaskStore(cfg.redis_url, key_prefix=cfg.key_prefix)
    if not store.ping():
        sys.stderr.write(f"error: task store unreachable at {cfg.redis_url}\n")
        return 1
    owners = RedisOwnerDirectory(cfg.redis_url, key_prefix=cfg.key_prefix)
    sent = asyncio.run(build_scheduler(cfg, store, owners).tick())
    sys.stdout.write(f"{sent} reminder(s) sent\n")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser("taskminder")
    sub = parser.add_subparsers(dest="cmd")

    p_serve = sub.add_parser("serve", help="Run the HTTP API with the reminder scheduler")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)

    p_owner = sub.add_parser("add-owner", help="Register or update an owner's contact address")
    p_owner.add_argument("--id", dest="owner_id", required=True)
    p_owner.add_argument("--email", required=True)
    p_owner.add_argument("--name", default=None)

    sub.add_parser("tick", help="Run one reminder scan now")

    args = parser.parse_args(argv)
    cfg = load_config()
    if args.cmd == "serve":
        code = serve(cfg, args.host, args.port)
    elif args.cmd == "add-owner":
        code = add_owner(cfg, args.owner_id, args.email, args.name)
    elif args.cmd == "tick":
        code = run_tick(cfg)
    else:
        parser.print_help()
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
