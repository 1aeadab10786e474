import logging

from fastapi import FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

from access.access_config import ACCESS_SETTINGS
from access.activity_logging import ActivityLoggingMiddleware
from access.audit_trail import bind_request, unbind_request
from access.rbac import DASHBOARD_PREFIX, is_within
from access.request_id import RequestIdMiddleware
from access.route_guard import RouteGuardMiddleware

from .api_routes import register_api_routes
from .database import Base, SessionLocal, engine
from .error_handlers import register_error_handlers
from .page_routes import register_page_routes
from .plan_catalog import seed_default_plans
from .subscription_jobs import shutdown_scheduler, start_scheduler
from .web_auth_routes import register_web_auth_routes

logger = logging.getLogger("edu_portal")

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def init_database() -> None:
    """Create missing tables and seed the default plans."""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        added = seed_default_plans(db)
        if added:
            logger.info("Seeded %s default subscription plans", added)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_app() -> FastAPI:
    app = FastAPI(title="Edu Portal")

    register_web_auth_routes(app)
    register_page_routes(app)
    register_api_routes(app)
    register_error_handlers(app)

    # Starlette wraps in reverse order: the last one added runs first.
    app.add_middleware(RouteGuardMiddleware)
    app.add_middleware(ActivityLoggingMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=ACCESS_SETTINGS["SESSION_SECRET_KEY"],
        max_age=ACCESS_SETTINGS["SESSION_MAX_AGE"] or None,
        https_only=ACCESS_SETTINGS["SESSION_HTTPS_ONLY"],
        same_site="lax",
    )

    @app.middleware("http")
    async def bind_audit_context(request: Request, call_next):
        token = bind_request(request)
        try:
            return await call_next(request)
        finally:
            unbind_request(token)

    app.add_middleware(RequestIdMiddleware)

    @app.middleware("http")
    async def no_store_dashboards(request: Request, call_next):
        response = await call_next(request)
        # back button after logout must not show a cached dashboard
        if is_within(request.url.path, DASHBOARD_PREFIX):
            response.headers.update(NO_STORE_HEADERS)
        return response

    @app.on_event("startup")
    def startup_event():
        init_database()
        start_scheduler()

    @app.on_event("shutdown")
    def shutdown_event():
        shutdown_scheduler()

    return app


app = create_app()
