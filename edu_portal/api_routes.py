import datetime
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from access.audit_trail import audit
from access.feature_gate import within_limit
from access.metrics import METRICS_CONTENT_TYPE, record_feature_check, render_latest
from access.rbac import resolve_route
from .app_context import get_current_user, get_principal, require_admin, require_subscription
from .database import get_db
from .models import MockTest, SubscriptionPlan, User
from .plan_catalog import validate_features, validate_tier
from .subscription_service import (
    feature_gate_for,
    latest_active_subscription,
    list_user_subscriptions,
    serialize_plan,
    serialize_subscription,
    subscribe,
)
from .ui_state import SidebarState, get_sidebar_state, save_sidebar


class PlanPayload(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    tier: str
    duration: int = Field(default=30, ge=1)
    price: float = Field(default=0, ge=0)
    features: dict
    isActive: Optional[bool] = None


class AssignSubscription(BaseModel):
    userId: int
    planId: int
    days: Optional[int] = Field(default=None, ge=1)


class MockTestPayload(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    durationMinutes: int = Field(default=60, ge=1)


def _check_plan_payload(payload: PlanPayload) -> None:
    if not validate_tier(payload.tier):
        raise HTTPException(status_code=400, detail=f"Unknown tier '{payload.tier}'")
    problems = validate_features(payload.features)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))


def _serialize_mock_test(row: MockTest) -> dict:
    return {
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "durationMinutes": row.duration_minutes,
        "createdBy": row.created_by,
    }


def _month_start(now: datetime.datetime) -> datetime.datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def register_api_routes(app):
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics():
        return Response(content=render_latest(), media_type=METRICS_CONTENT_TYPE)

    # --- ROUTING ---

    @app.get("/api/route-decision")
    async def route_decision(request: Request, path: str = "/"):
        return resolve_route(get_principal(request), path).as_dict()

    # --- UI STATE ---

    @app.get("/api/ui/sidebar")
    async def sidebar_state(state: SidebarState = Depends(get_sidebar_state)):
        return state.as_dict()

    @app.post("/api/ui/sidebar/toggle")
    async def sidebar_toggle(request: Request, state: SidebarState = Depends(get_sidebar_state)):
        save_sidebar(request.session, state.toggle())
        return state.as_dict()

    @app.post("/api/ui/sidebar/close")
    async def sidebar_close(request: Request, state: SidebarState = Depends(get_sidebar_state)):
        save_sidebar(request.session, state.close())
        return state.as_dict()

    # --- SUBSCRIPTIONS ---

    @app.get("/api/subscriptions")
    async def user_subscriptions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        return list_user_subscriptions(db, user.id)

    @app.get("/api/user/subscriptions")
    async def user_active_subscription(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        subscription = latest_active_subscription(db, user.id)
        if subscription is None:
            raise HTTPException(status_code=404, detail="No active subscription")
        return subscription

    @app.get("/api/features")
    async def feature_summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        return feature_gate_for(db, user.id).summary()

    @app.post("/api/admin/subscriptions")
    async def assign_subscription(
        payload: AssignSubscription,
        admin: User = Depends(require_admin),
        db: Session = Depends(get_db),
    ):
        target = db.query(User).filter(User.id == payload.userId).first()
        if not target:
            raise HTTPException(status_code=404, detail="User not found")
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == payload.planId).first()
        if not plan or not plan.is_active:
            raise HTTPException(status_code=404, detail="Plan not found")
        row = subscribe(db, target.id, plan, days=payload.days)
        audit("subscription_assigned", user_id=admin.id, details={"target": target.id, "plan": plan.id})
        return serialize_subscription(row)

    # --- PLANS ---

    @app.get("/api/subscription-plans")
    async def subscription_plans(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        plans = db.query(SubscriptionPlan).order_by(SubscriptionPlan.created_at.desc(), SubscriptionPlan.id.desc()).all()
        return [serialize_plan(plan) for plan in plans]

    @app.post("/api/subscription-plans")
    async def create_plan(payload: PlanPayload, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
        _check_plan_payload(payload)
        plan = SubscriptionPlan(
            name=payload.name,
            description=payload.description,
            tier=payload.tier,
            duration_days=payload.duration,
            price=payload.price,
            features=payload.features,
            is_active=True,
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        audit("plan_created", user_id=admin.id, details={"plan": plan.id, "tier": plan.tier})
        return serialize_plan(plan)

    @app.put("/api/subscription-plans/{plan_id}")
    async def update_plan(
        plan_id: int,
        payload: PlanPayload,
        admin: User = Depends(require_admin),
        db: Session = Depends(get_db),
    ):
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        _check_plan_payload(payload)
        plan.name = payload.name
        plan.description = payload.description
        plan.tier = payload.tier
        plan.duration_days = payload.duration
        plan.price = payload.price
        plan.features = payload.features
        if payload.isActive is not None:
            plan.is_active = payload.isActive
        db.commit()
        db.refresh(plan)
        audit("plan_updated", user_id=admin.id, details={"plan": plan.id, "tier": plan.tier})
        return serialize_plan(plan)

    # --- MOCK TESTS ---

    @app.get("/api/mock-tests")
    async def mock_tests(
        user: User = Depends(require_subscription("mockTests")),
        db: Session = Depends(get_db),
    ):
        rows = db.query(MockTest).order_by(MockTest.created_at.desc(), MockTest.id.desc()).all()
        return [_serialize_mock_test(row) for row in rows]

    @app.post("/api/mock-tests")
    async def create_mock_test(
        payload: MockTestPayload,
        user: User = Depends(require_subscription("mockTests")),
        db: Session = Depends(get_db),
    ):
        now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        if user.role != "admin":
            limit = feature_gate_for(db, user.id).get_feature_limit("mockTests")
            used = (
                db.query(func.count(MockTest.id))
                .filter(MockTest.created_by == user.id, MockTest.created_at >= _month_start(now))
                .scalar()
            ) or 0
            allowed = within_limit(limit, used)
            record_feature_check("mockTests", allowed)
            if not allowed:
                raise HTTPException(status_code=403, detail=f"Monthly mock test limit reached ({used}/{limit})")

        row = MockTest(
            title=payload.title,
            description=payload.description,
            duration_minutes=payload.durationMinutes,
            created_by=user.id,
            created_at=now,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return _serialize_mock_test(row)
