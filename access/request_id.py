"""
REQUEST ID
==========
Correlation id shared by the activity log, the audit trail and the client.
"""

# FLOW:
# - Reuse a well-formed inbound x-request-id, otherwise mint one.
# - Store it on request.state and echo it on the response.

from __future__ import annotations

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "x-request-id"
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def accept_request_id(raw) -> str:
    """Inbound ids end up in log lines, so anything unusual is replaced."""
    raw = (raw or "").strip()
    if _VALID_ID.match(raw):
        return raw
    return uuid.uuid4().hex


def request_id_of(request) -> str:
    return getattr(request.state, "request_id", "") or ""


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        request.state.request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response
