from fastapi import Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from access.rbac import MARKETING_PATHS, ROLE_ROOTS, dashboard_routes, resolve_route
from .app_context import get_current_user, templates
from .database import get_db
from .models import User
from .subscription_service import feature_gate_for
from .ui_state import get_sidebar_state

PAGE_TITLES = {
    "/": "Home",
    "/home": "Home",
    "/about-us": "About Us",
    "/contact-us": "Contact Us",
    "/mock-exams": "Mock Exams",
    "/tution": "Tuition",
    "/reports": "Reports",
}


def _title(segment: str) -> str:
    return segment.replace("-", " ").replace("/", " / ").title()


def _render_dashboard(request: Request, user: User, db: Session, section: str = ""):
    path = ROLE_ROOTS[user.role] + (f"/{section}" if section else "")
    decision = resolve_route(user, path)
    if not decision.allowed:
        raise HTTPException(status_code=403, detail="Access denied")
    gate = feature_gate_for(db, user.id)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "title": _title(section) if section else f"{user.role.title()} Dashboard",
            "current_path": path,
            "nav": [(route, _title(route.rsplit("/", 1)[-1])) for route in dashboard_routes(user.role)],
            "sidebar": get_sidebar_state(request),
            "gate": gate.summary(),
        },
    )


def register_page_routes(app):
    def _public_page(path: str):
        async def page(request: Request):
            return templates.TemplateResponse(
                request, "page.html", {"title": PAGE_TITLES[path], "current_path": path}
            )
        page.__name__ = "page_" + (path.strip("/").replace("-", "_") or "root")
        return page

    for path in ["/", *sorted(MARKETING_PATHS)]:
        app.add_api_route(path, _public_page(path), methods=["GET"], response_class=HTMLResponse)

    @app.get("/dashboard/{role}", response_class=HTMLResponse)
    async def dashboard_root(
        request: Request,
        role: str,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        if user.role != role:
            raise HTTPException(status_code=403, detail="Access denied")
        return _render_dashboard(request, user, db)

    @app.get("/dashboard/admin/{section:path}", response_class=HTMLResponse)
    async def admin_section(
        request: Request,
        section: str,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        if user.role != "admin":
            raise HTTPException(status_code=403, detail="Access denied")
        return _render_dashboard(request, user, db, section.strip("/"))
