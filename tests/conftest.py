import datetime
import os
import tempfile

# Settings are read once at import time, so configure before importing the app.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="edu-portal-logs-")

import pytest
from fastapi.testclient import TestClient

from edu_portal.auth import hash_password
from edu_portal.database import Base, SessionLocal, engine
from edu_portal.main import app
from edu_portal.models import SubscriptionPlan, User, UserSubscription
from edu_portal.plan_catalog import seed_default_plans

PASSWORD = "correct-horse"


def _naive_utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_default_plans(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(username, role=None, password=PASSWORD, is_active=True):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def give_plan(db):
    def _give(user, tier, status="active", start_offset_days=0, days=30):
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.tier == tier).first()
        start = _naive_utcnow() + datetime.timedelta(days=start_offset_days)
        row = UserSubscription(
            user_id=user.id,
            plan_id=plan.id,
            start_date=start,
            end_date=start + datetime.timedelta(days=days),
            status=status,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    return _give


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        response = client.post(
            "/auth/login",
            data={"username": username, "password": password},
            follow_redirects=False,
        )
        return response
    return _login
