from __future__ import annotations

import datetime
from typing import Optional

from sqlalchemy.orm import Session

from access.feature_gate import STATUS_ACTIVE, STATUS_EXPIRED, FeatureGate, to_utc
from .models import SubscriptionPlan, UserSubscription


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    value = to_utc(value)
    return value.isoformat().replace("+00:00", "Z") if value else None


def serialize_plan(plan: SubscriptionPlan) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "description": plan.description,
        "tier": plan.tier,
        "duration": plan.duration_days,
        "price": float(plan.price or 0),
        "features": plan.features or {},
        "isActive": bool(plan.is_active),
    }


def serialize_subscription(row: UserSubscription) -> dict:
    """The {"subscription": ..., "plan": ...} record the feature gate reads."""
    plan = row.plan
    return {
        "subscription": {
            "id": row.id,
            "startDate": _iso(row.start_date),
            "endDate": _iso(row.end_date),
            "status": row.status,
        },
        "plan": {
            "id": plan.id,
            "name": plan.name,
            "tier": plan.tier,
            "features": plan.features or {},
        },
    }


def list_user_subscriptions(db: Session, user_id: int) -> list[dict]:
    """All of a user's subscriptions, newest start date first."""
    rows = (
        db.query(UserSubscription)
        .join(SubscriptionPlan, SubscriptionPlan.id == UserSubscription.plan_id)
        .filter(UserSubscription.user_id == user_id)
        .order_by(UserSubscription.start_date.desc(), UserSubscription.id.desc())
        .all()
    )
    return [serialize_subscription(row) for row in rows]


def latest_active_subscription(db: Session, user_id: int) -> Optional[dict]:
    row = (
        db.query(UserSubscription)
        .join(SubscriptionPlan, SubscriptionPlan.id == UserSubscription.plan_id)
        .filter(
            UserSubscription.user_id == user_id,
            UserSubscription.status == STATUS_ACTIVE,
        )
        .order_by(UserSubscription.start_date.desc(), UserSubscription.id.desc())
        .first()
    )
    return serialize_subscription(row) if row else None


def feature_gate_for(db: Session, user_id: int, now: Optional[datetime.datetime] = None) -> FeatureGate:
    # First record in provider order, same as any other client of the listing.
    return FeatureGate.from_records(list_user_subscriptions(db, user_id), now=now)


def subscribe(db: Session, user_id: int, plan: SubscriptionPlan, days: Optional[int] = None) -> UserSubscription:
    """Start a new active subscription; earlier active ones are marked expired."""
    start = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    end = start + datetime.timedelta(days=days if days is not None else plan.duration_days)

    db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
        UserSubscription.status == STATUS_ACTIVE,
    ).update({UserSubscription.status: STATUS_EXPIRED}, synchronize_session=False)

    row = UserSubscription(
        user_id=user_id,
        plan_id=plan.id,
        start_date=start,
        end_date=end,
        status=STATUS_ACTIVE,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
