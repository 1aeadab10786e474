import pytest

from edu_portal.models import MockTest, SubscriptionPlan, UserSubscription


@pytest.fixture
def student(make_user, login):
    user = make_user("sam", role="student")
    login("sam")
    return user


@pytest.fixture
def admin(make_user, login):
    user = make_user("root", role="admin")
    login("root")
    return user


def _plan_payload(**overrides):
    payload = {
        "name": "Crash Course",
        "description": "Two weeks of everything",
        "tier": "standard",
        "duration": 14,
        "price": 199,
        "features": {
            "mockTests": {"enabled": True, "limit": 10},
            "liveClasses": {"enabled": True, "limit": 2},
        },
    }
    payload.update(overrides)
    return payload


class TestSubscriptionListing:
    def test_requires_login(self, client):
        assert client.get("/api/subscriptions").status_code == 401
        assert client.get("/api/features").status_code == 401

    def test_empty(self, client, student):
        assert client.get("/api/subscriptions").json() == []
        response = client.get("/api/user/subscriptions")
        assert response.status_code == 404
        assert response.json() == {"detail": "No active subscription"}

    def test_newest_first_and_record_shape(self, client, student, give_plan):
        give_plan(student, "basic", status="expired", start_offset_days=-60)
        newest = give_plan(student, "premium")
        records = client.get("/api/subscriptions").json()
        assert [r["plan"]["tier"] for r in records] == ["premium", "basic"]

        first = records[0]
        assert set(first) == {"subscription", "plan"}
        assert first["subscription"]["id"] == newest.id
        assert first["subscription"]["status"] == "active"
        assert first["subscription"]["endDate"].endswith("Z")
        assert first["plan"]["features"]["mockTests"] == {"enabled": True, "limit": -1}

    def test_latest_active(self, client, student, give_plan):
        give_plan(student, "standard")
        give_plan(student, "basic", status="cancelled", start_offset_days=1)
        response = client.get("/api/user/subscriptions")
        assert response.status_code == 200
        assert response.json()["plan"]["tier"] == "standard"


class TestFeatureSummary:
    def test_without_subscription(self, client, student):
        summary = client.get("/api/features").json()
        assert summary["active"] is False
        assert summary["tier"] == "basic"
        assert all(details == {"enabled": False} for details in summary["features"].values())

    def test_premium(self, client, student, give_plan):
        give_plan(student, "premium")
        summary = client.get("/api/features").json()
        assert summary["active"] is True
        assert summary["tier"] == "premium"
        assert summary["features"]["mockTests"]["limit"] == -1
        assert summary["features"]["customization"] == {"enabled": False}

    def test_lapsed_end_date(self, client, student, give_plan):
        give_plan(student, "premium", start_offset_days=-40, days=30)
        summary = client.get("/api/features").json()
        assert summary["active"] is False
        assert summary["tier"] == "basic"

    def test_most_recent_record_decides(self, client, student, give_plan):
        give_plan(student, "premium", start_offset_days=-5)
        give_plan(student, "standard", status="expired")
        summary = client.get("/api/features").json()
        assert summary["active"] is False


class TestPlans:
    def test_seeded_plans_listed(self, client, student):
        plans = client.get("/api/subscription-plans").json()
        assert {plan["tier"] for plan in plans} == {"basic", "standard", "premium", "enterprise"}
        assert all("features" in plan for plan in plans)

    def test_create_requires_admin(self, client, student):
        response = client.post("/api/subscription-plans", json=_plan_payload())
        assert response.status_code == 403

    def test_admin_creates_and_updates(self, client, db, admin):
        created = client.post("/api/subscription-plans", json=_plan_payload())
        assert created.status_code == 200
        body = created.json()
        assert body["tier"] == "standard"
        assert body["duration"] == 14
        assert body["isActive"] is True

        updated = client.put(
            f"/api/subscription-plans/{body['id']}",
            json=_plan_payload(name="Crash Course Plus", tier="premium", isActive=False),
        )
        assert updated.status_code == 200
        assert updated.json()["isActive"] is False
        db.expire_all()
        assert db.get(SubscriptionPlan, body["id"]).tier == "premium"

    def test_update_without_is_active_keeps_plan_retired(self, client, db, admin):
        plan_id = client.post("/api/subscription-plans", json=_plan_payload()).json()["id"]
        retired = client.put(f"/api/subscription-plans/{plan_id}", json=_plan_payload(isActive=False))
        assert retired.json()["isActive"] is False

        renamed = client.put(f"/api/subscription-plans/{plan_id}", json=_plan_payload(name="Crash Course II"))
        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Crash Course II"
        assert renamed.json()["isActive"] is False
        db.expire_all()
        assert db.get(SubscriptionPlan, plan_id).is_active is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"tier": "gold"},
            {"features": {"teleport": {"enabled": True}}},
            {"features": {"mockTests": {"enabled": "yes"}}},
            {"features": {"mockTests": {"enabled": True, "limit": -3}}},
        ],
    )
    def test_rejects_bad_plans(self, client, admin, overrides):
        response = client.post("/api/subscription-plans", json=_plan_payload(**overrides))
        assert response.status_code == 400

    def test_update_missing_plan(self, client, admin):
        assert client.put("/api/subscription-plans/9999", json=_plan_payload()).status_code == 404

    def test_payload_validation(self, client, admin):
        response = client.post("/api/subscription-plans", json={"name": "", "tier": "basic"})
        assert response.status_code == 422


class TestAdminAssignment:
    def test_assign_replaces_active_subscription(self, client, db, make_user, give_plan, login):
        learner = make_user("sam", role="student")
        old = give_plan(learner, "basic")
        make_user("root", role="admin")
        login("root")

        premium = db.query(SubscriptionPlan).filter(SubscriptionPlan.tier == "premium").one()
        response = client.post("/api/admin/subscriptions", json={"userId": learner.id, "planId": premium.id})
        assert response.status_code == 200
        assert response.json()["plan"]["tier"] == "premium"
        assert response.json()["subscription"]["status"] == "active"

        db.expire_all()
        assert db.get(UserSubscription, old.id).status == "expired"

    def test_unknown_user_or_plan(self, client, db, admin):
        plan = db.query(SubscriptionPlan).first()
        assert client.post("/api/admin/subscriptions", json={"userId": 999, "planId": plan.id}).status_code == 404
        assert client.post("/api/admin/subscriptions", json={"userId": admin.id, "planId": 999}).status_code == 404

    def test_not_for_students(self, client, student, db):
        plan = db.query(SubscriptionPlan).first()
        response = client.post("/api/admin/subscriptions", json={"userId": student.id, "planId": plan.id})
        assert response.status_code == 403


class TestMockTests:
    def test_locked_without_subscription(self, client, student):
        response = client.get("/api/mock-tests")
        assert response.status_code == 403
        assert response.json() == {"detail": "This content requires an active subscription"}

    def test_user_without_role(self, client, make_user, login):
        make_user("newbie")
        login("newbie")
        response = client.get("/api/mock-tests")
        assert response.status_code == 403
        assert response.json() == {"detail": "Select a role to continue"}

    def test_admin_bypasses_gate(self, client, admin):
        assert client.get("/api/mock-tests").status_code == 200
        created = client.post("/api/mock-tests", json={"title": "Algebra drill"})
        assert created.status_code == 200
        assert created.json()["createdBy"] == admin.id

    def test_basic_monthly_limit(self, client, db, student, give_plan):
        give_plan(student, "basic")
        for i in range(5):
            assert client.post("/api/mock-tests", json={"title": f"Test {i}"}).status_code == 200
        response = client.post("/api/mock-tests", json={"title": "One too many"})
        assert response.status_code == 403
        assert response.json()["detail"] == "Monthly mock test limit reached (5/5)"
        assert db.query(MockTest).count() == 5

    def test_premium_is_unlimited(self, client, student, give_plan):
        give_plan(student, "premium")
        for i in range(8):
            assert client.post("/api/mock-tests", json={"title": f"Test {i}"}).status_code == 200
        assert len(client.get("/api/mock-tests").json()) == 8

    def test_expired_subscription_locks_again(self, client, student, give_plan):
        give_plan(student, "premium", status="expired")
        assert client.get("/api/mock-tests").status_code == 403
