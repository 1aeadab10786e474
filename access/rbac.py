"""
ROLE-BASED ACCESS CONTROL (RBAC)
================================
Resolves, for a principal and a requested path, whether the page may be
shown and where to send the browser otherwise.
"""

# FLOW:
# - resolve_route() normalizes the path, coerces the principal to a known
#   role (or none), then applies public / landing / dashboard rules in order.
# HOW:
# - Route tables are immutable and built once at import time.
# - Unknown roles resolve exactly like an anonymous visitor.

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

from access.access_config import ACCESS_SETTINGS

HOME_PATH = "/"
LOGIN_PATH = "/auth/login"
SIGNUP_PATH = "/auth/signup"
DASHBOARD_PREFIX = "/dashboard"

ROLES = ("admin", "tutor", "parent", "student")

# Admin accounts are provisioned, never self-selected.
SELECTABLE_ROLES = ("student", "parent", "tutor")

ROLE_ROOTS: Mapping[str, str] = MappingProxyType({
    "admin": "/dashboard/admin",
    "tutor": "/dashboard/tutor",
    "parent": "/dashboard/parent",
    "student": "/dashboard/student",
})

ROLE_SUB_ROUTES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "admin": (
        "analytics",
        "reports",
        "users",
        "products",
        "subscriptions",
        "payments",
        "tutors",
        "courses",
        "mock-tests",
        "settings",
        "questions",
        "classes",
        "media",
    ),
    "tutor": (),
    "parent": (),
    "student": (),
})

MARKETING_PATHS = frozenset({
    "/home",
    "/about-us",
    "/contact-us",
    "/mock-exams",
    "/tution",
    "/reports",
})

LANDING_PATHS = frozenset({HOME_PATH, LOGIN_PATH})

_MULTI_SLASH = re.compile(r"/{2,}")


@dataclass(frozen=True)
class Principal:
    id: Any = None
    role: Optional[str] = None


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    redirect_to: Optional[str] = None

    @property
    def needs_redirect(self) -> bool:
        return self.redirect_to is not None

    def as_dict(self) -> dict:
        return {"allowed": self.allowed, "redirectTo": self.redirect_to}


def normalize_path(path: Any) -> str:
    """Canonical form used for every comparison; garbage becomes '/'."""
    if not isinstance(path, str):
        return HOME_PATH
    path = path.strip().split("#", 1)[0].split("?", 1)[0]
    if not path:
        return HOME_PATH
    if not path.startswith("/"):
        path = "/" + path
    # collapse first: normpath keeps a leading '//' as-is
    return posixpath.normpath(_MULTI_SLASH.sub("/", path))


PUBLIC_PATHS = frozenset(
    {HOME_PATH, LOGIN_PATH, SIGNUP_PATH}
    | MARKETING_PATHS
    | {normalize_path(p) for p in ACCESS_SETTINGS["EXTRA_PUBLIC_PATHS"]}
)


def role_of(principal: Any) -> Optional[str]:
    """Known role of the principal, or None for anonymous / unrecognized."""
    if principal is None:
        return None
    if isinstance(principal, Mapping):
        role = principal.get("role")
    else:
        role = getattr(principal, "role", None)
    if isinstance(role, str) and role in ROLE_ROOTS:
        return role
    return None


def root_for(principal: Any) -> str:
    role = role_of(principal)
    if role is None:
        return LOGIN_PATH
    return ROLE_ROOTS[role]


def is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


def is_public(path: Any) -> bool:
    return normalize_path(path) in PUBLIC_PATHS


def dashboard_routes(role: Optional[str]) -> tuple[str, ...]:
    """Root plus enumerated sub-routes for a role, in menu order."""
    if role not in ROLE_ROOTS:
        return ()
    root = ROLE_ROOTS[role]
    return (root,) + tuple(f"{root}/{name}" for name in ROLE_SUB_ROUTES[role])


def _dashboard_decision(role: str, path: str) -> RouteDecision:
    root = ROLE_ROOTS[role]
    if not is_within(path, root):
        return RouteDecision(allowed=False, redirect_to=root)
    if path == root:
        return RouteDecision(allowed=True)
    section = path[len(root) + 1:].split("/", 1)[0]
    if section in ROLE_SUB_ROUTES[role]:
        return RouteDecision(allowed=True)
    return RouteDecision(allowed=False, redirect_to=root)


def resolve_route(principal: Any, current_path: Any) -> RouteDecision:
    path = normalize_path(current_path)
    role = role_of(principal)

    if role is None:
        if path in PUBLIC_PATHS:
            return RouteDecision(allowed=True)
        return RouteDecision(allowed=False, redirect_to=LOGIN_PATH)

    if path in LANDING_PATHS:
        return RouteDecision(allowed=True, redirect_to=ROLE_ROOTS[role])

    if is_within(path, DASHBOARD_PREFIX):
        return _dashboard_decision(role, path)

    return RouteDecision(allowed=True)
