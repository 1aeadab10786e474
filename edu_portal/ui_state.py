"""Per-session dashboard UI state (sidebar open/closed)."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from fastapi import Request

SESSION_KEY = "ui.sidebar"


@dataclass
class SidebarState:
    is_open: bool = True

    def toggle(self) -> "SidebarState":
        self.is_open = not self.is_open
        return self

    def close(self) -> "SidebarState":
        self.is_open = False
        return self

    def as_dict(self) -> dict:
        return {"isOpen": self.is_open}


def load_sidebar(session) -> SidebarState:
    raw = session.get(SESSION_KEY) or {}
    return SidebarState(is_open=bool(raw.get("is_open", True)))


def save_sidebar(session, state: SidebarState) -> None:
    session[SESSION_KEY] = asdict(state)


def get_sidebar_state(request: Request) -> SidebarState:
    return load_sidebar(request.session)
