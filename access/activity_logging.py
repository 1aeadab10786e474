"""
ACTIVITY TRACKING
=================
One line per request in <LOG_DIR>/activity.log, tagged with the session's
user and role and the route guard's verdict.
"""

from __future__ import annotations

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware

from access.audit_trail import client_ip
from access.log_files import file_logger
from access.request_id import request_id_of

_SECRET_PARAM = re.compile(r"\b(password|token|secret|key|code)=([^&\s]*)", re.IGNORECASE)


def redact(query: str) -> str:
    return _SECRET_PARAM.sub(lambda m: f"{m.group(1)}=***", query)


def _guard_outcome(request) -> str:
    decision = getattr(request.state, "route_decision", None)
    if decision is None:
        return "-"
    if decision.redirect_to is None:
        return "allow"
    return "landing" if decision.allowed else "deny"


class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        self.logger = file_logger("access.activity", "activity.log")

    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        session = request.scope.get("session") or {}
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        self.logger.log(
            level,
            "%s %s%s status=%s ms=%.1f user_id=%s role=%s guard=%s request_id=%s ip=%s",
            request.method,
            request.url.path,
            "?" + redact(request.url.query) if request.url.query else "",
            response.status_code,
            elapsed_ms,
            session.get("user_id", "-"),
            session.get("role") or "-",
            _guard_outcome(request),
            request_id_of(request) or "-",
            client_ip(request),
        )
        return response
