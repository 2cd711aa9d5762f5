from __future__ import annotations

from fastapi import Header, HTTPException

from taskminder.observability import bind_owner


def require_owner(x_user_id: str | None = Header(default=None)) -> str:
    """Resolve the authenticated owner from the ``X-User-Id`` header.

    Token verification happens upstream (auth proxy); this service trusts the
    header it forwards. Swap this dependency via ``create_app(authenticate=...)``
    to verify credentials in-process instead.
    """
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Not authorized, no principal")
    bind_owner(owner_id)
    return owner_id


__all__ = ["require_owner"]
