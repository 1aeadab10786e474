"""
AUDIT TRAIL
===========
Who did what to accounts, roles, plans and subscriptions, one line per event
in <LOG_DIR>/audit.log.
"""

# FLOW:
# - bind_request() runs once per request from the app middleware.
# - audit() adds that request data to every event raised while handling it.
# - Background jobs have no request; their lines carry "-" placeholders.

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from access.access_config import feature_enabled
from access.log_files import file_logger
from access.metrics import record_audit_event
from access.request_id import request_id_of

logger = file_logger("access.audit", "audit.log")


@dataclass(frozen=True)
class AuditContext:
    ip: str = "-"
    request_id: str = "-"
    method: str = "-"
    path: str = "-"


_NO_REQUEST = AuditContext()
_audit_ctx: contextvars.ContextVar[AuditContext] = contextvars.ContextVar("audit_ctx", default=_NO_REQUEST)


def client_ip(request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "-"


def bind_request(request) -> contextvars.Token:
    return _audit_ctx.set(
        AuditContext(
            ip=client_ip(request),
            request_id=request_id_of(request) or "-",
            method=request.method or "-",
            path=request.url.path or "-",
        )
    )


def unbind_request(token: contextvars.Token) -> None:
    _audit_ctx.reset(token)


def _format_details(details: Union[str, Mapping[str, Any], None]) -> str:
    if not details:
        return ""
    if isinstance(details, Mapping):
        return ";".join(f"{key}={value}" for key, value in details.items())
    return str(details)


def audit(event: str, user_id: Optional[int] = None, details: Union[str, Mapping[str, Any], None] = None) -> None:
    if not feature_enabled("audit-trail", True):
        return
    ctx = _audit_ctx.get()
    logger.info(
        "event=%s user_id=%s ip=%s request_id=%s method=%s path=%s details=%s",
        event,
        user_id if user_id is not None else "-",
        ctx.ip,
        ctx.request_id,
        ctx.method,
        ctx.path,
        _format_details(details),
    )
    record_audit_event(event)
