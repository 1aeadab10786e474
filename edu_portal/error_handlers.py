"""
Error responses.

API callers always get FastAPI's JSON body {"detail": ...}. Browsers asking
for HTML get error.html instead, except a 401 on a page, which goes back to
the login form the way the route guard would have sent them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from access.rbac import LOGIN_PATH
from access.request_id import request_id_of
from .app_context import SUBSCRIPTION_REQUIRED, templates

logger = logging.getLogger("edu_portal.errors")


@dataclass(frozen=True)
class ErrorCopy:
    title: str
    reason: str


_COPY = {
    400: ErrorCopy("Bad request", "The request data was invalid or incomplete."),
    401: ErrorCopy("Sign in required", "Your session is missing or has expired."),
    403: ErrorCopy("Access denied", "Your account cannot open this page."),
    404: ErrorCopy("Page not found", "Nothing lives at this address."),
    405: ErrorCopy("Method not allowed", "This address does not accept that kind of request."),
    409: ErrorCopy("Conflict", "That change clashes with what is already saved."),
    422: ErrorCopy("Invalid input", "Some of the submitted fields are not valid."),
}
_FALLBACK = ErrorCopy("Request failed", "The request could not be completed.")
_SERVER_ERROR = ErrorCopy("Something went wrong", "The server hit an unexpected problem. Try again shortly.")


def error_copy(status_code: int) -> ErrorCopy:
    if status_code >= 500:
        return _SERVER_ERROR
    return _COPY.get(status_code, _FALLBACK)


def wants_html(request: Request) -> bool:
    if request.url.path.startswith("/api"):
        return False
    return "text/html" in (request.headers.get("accept") or "").lower()


def _first_validation_problem(exc: RequestValidationError) -> str:
    errors = exc.errors() or []
    if not errors:
        return "Request validation failed."
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg") or "Invalid input."
    return f"{field}: {message}" if field else message


def render_error(request: Request, status_code: int, detail: str):
    copy = error_copy(status_code)
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "status_code": status_code,
            "path": request.url.path,
            "detail": detail or copy.reason,
            "error_title": copy.title,
            "error_reason": copy.reason,
            "request_id": request_id_of(request),
            "show_plans": detail == SUBSCRIPTION_REQUIRED,
        },
        status_code=status_code,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        if wants_html(request):
            return render_error(request, 422, _first_validation_problem(exc))
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if not wants_html(request):
            return await http_exception_handler(request, exc)
        if exc.status_code == 401:
            return RedirectResponse(LOGIN_PATH, status_code=303)
        detail = exc.detail if isinstance(exc.detail, str) else ""
        return render_error(request, exc.status_code, detail)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s request_id=%s",
            request.method,
            request.url.path,
            request_id_of(request) or "-",
        )
        if wants_html(request):
            return render_error(request, 500, "")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
