import datetime

from apscheduler.schedulers.background import BackgroundScheduler

from access.access_config import ACCESS_SETTINGS
from access.audit_trail import audit
from access.feature_gate import STATUS_ACTIVE, STATUS_EXPIRED
from .database import SessionLocal
from .models import UserSubscription

scheduler = BackgroundScheduler()


def expire_lapsed_subscriptions(now=None) -> int:
    """Mark active subscriptions whose end date has passed as expired."""
    now = now or datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    db = SessionLocal()
    try:
        rows = db.query(UserSubscription).filter(
            UserSubscription.status == STATUS_ACTIVE,
            UserSubscription.end_date < now,
        ).all()
        for row in rows:
            row.status = STATUS_EXPIRED
        if rows:
            db.commit()
            audit("subscriptions_expired", details=f"count={len(rows)}")
        return len(rows)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def start_scheduler() -> None:
    if not ACCESS_SETTINGS["SCHEDULER_ENABLED"] or scheduler.running:
        return
    scheduler.add_job(
        expire_lapsed_subscriptions,
        "interval",
        minutes=ACCESS_SETTINGS["SUBSCRIPTION_SWEEP_MINUTES"],
        id="expire_subscriptions_job",
        replace_existing=True,
    )
    scheduler.start()


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown()
