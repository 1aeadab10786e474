"""
ROUTE GUARD
===========
Navigation controller for server-rendered pages.

FLOW:
- Read the principal from the session (expiring stale sessions first).
- Ask resolve_route() for a decision on the requested path.
- Redirect at most once per request, and only when the target differs from
  the path being served.

HOW:
- API, static and metrics paths are not pages and are left to the
  endpoint dependencies.
"""

from __future__ import annotations

import time
from typing import Any, MutableMapping, Optional

from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from access.access_config import ACCESS_SETTINGS
from access.audit_trail import audit
from access.metrics import record_route_decision
from access.rbac import Principal, is_public, is_within, normalize_path, resolve_route

GUARDED_METHODS = frozenset({"GET", "HEAD"})
UNGUARDED_PREFIXES = ("/api", "/static", "/metrics", "/health")


def start_session(session: MutableMapping[str, Any], user_id: int, role: Optional[str]) -> None:
    now_ts = int(time.time())
    session.clear()
    session["user_id"] = user_id
    session["role"] = role
    session["_created"] = now_ts
    session["_last_seen"] = now_ts


def session_expired(session: MutableMapping[str, Any], now_ts: int) -> bool:
    max_age = int(ACCESS_SETTINGS["SESSION_MAX_AGE"])
    idle_timeout = int(ACCESS_SETTINGS["SESSION_IDLE_TIMEOUT"])
    created = int(session.get("_created", now_ts))
    last_seen = int(session.get("_last_seen", created))
    absolute_expired = bool(max_age) and (now_ts - created) > max_age
    idle_expired = bool(idle_timeout) and (now_ts - last_seen) > idle_timeout
    return absolute_expired or idle_expired


def principal_from_session(session: Optional[MutableMapping[str, Any]], now_ts: Optional[int] = None) -> Optional[Principal]:
    """Current principal, or None. An expired session is cleared."""
    if not session:
        return None
    user_id = session.get("user_id")
    if not user_id:
        return None
    now_ts = now_ts or int(time.time())
    if session_expired(session, now_ts):
        session.clear()
        return None
    session["_last_seen"] = now_ts
    return Principal(id=user_id, role=session.get("role"))


def is_guarded(method: str, path: str) -> bool:
    if method not in GUARDED_METHODS:
        return False
    return not any(is_within(path, prefix) for prefix in UNGUARDED_PREFIXES)


class RouteGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        path = request.url.path
        if "session" not in request.scope or not is_guarded(request.method, path):
            return await call_next(request)

        principal = principal_from_session(request.session)
        decision = resolve_route(principal, path)
        request.state.principal = principal
        request.state.route_decision = decision

        target = decision.redirect_to
        if decision.needs_redirect and target != normalize_path(path):
            if decision.allowed:
                record_route_decision("landing")
            else:
                record_route_decision("denied")
                audit(
                    "route_denied",
                    user_id=principal.id if principal else None,
                    details={"path": path, "redirect": target},
                )
            return RedirectResponse(target, status_code=303)

        record_route_decision("public" if is_public(path) else "allowed")
        return await call_next(request)
