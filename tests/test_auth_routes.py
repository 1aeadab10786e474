import pytest
from fastapi import HTTPException

from edu_portal.database import SessionLocal
from edu_portal.models import User
from edu_portal.web_auth_routes import assign_role

PASSWORD = "correct-horse"


def _signup(client, username="newbie", email="newbie@example.com", password=PASSWORD):
    return client.post(
        "/auth/signup",
        data={"username": username, "email": email, "password": password},
        follow_redirects=False,
    )


class TestSignup:
    def test_signup_starts_role_selection(self, client, db):
        response = _signup(client)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"

        user = db.query(User).filter(User.username == "newbie").one()
        assert user.role is None
        assert user.password_hash != PASSWORD

        page = client.get("/auth/login")
        assert page.status_code == 200
        assert "Choose Your Role" in page.text
        assert 'value="admin"' not in page.text

    def test_short_password(self, client):
        response = _signup(client, password="short")
        assert response.status_code == 400
        assert "at least 8 characters" in response.text

    def test_username_cannot_look_like_email(self, client):
        assert _signup(client, username="a@b.com").status_code == 400

    def test_password_over_bcrypt_limit(self, client):
        assert _signup(client, password="x" * 73).status_code == 400

    def test_duplicate_username(self, client, make_user):
        make_user("taken")
        response = _signup(client, username="taken", email="other@example.com")
        assert response.status_code == 409

    def test_signup_page_is_public(self, client):
        assert client.get("/auth/signup", follow_redirects=False).status_code == 200


class TestLogin:
    def test_login_lands_on_role_root(self, client, make_user, login):
        make_user("root", role="admin")
        response = login("root")
        assert response.status_code == 303
        assert response.headers["location"] == "/dashboard/admin"
        assert client.get("/api/user").json()["role"] == "admin"

    def test_login_without_role_lands_on_role_picker(self, client, make_user, login):
        make_user("undecided")
        response = login("undecided")
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"
        assert client.get("/api/user").json()["role"] is None

    def test_bad_password(self, client, make_user, login):
        make_user("sam", role="student")
        response = login("sam", password="wrong-password")
        assert response.status_code == 401
        assert "Invalid credentials" in response.text
        assert client.get("/api/user").status_code == 401

    def test_login_with_email(self, make_user, login):
        make_user("sam", role="student")
        response = login("SAM@example.com")
        assert response.status_code == 303
        assert response.headers["location"] == "/dashboard/student"

    def test_unknown_user(self, login):
        assert login("ghost").status_code == 401

    def test_inactive_account(self, make_user, login):
        make_user("gone", role="student", is_active=False)
        assert login("gone").status_code == 403

    def test_login_records_last_login(self, db, make_user, login):
        user = make_user("sam", role="student")
        assert user.last_login is None
        login("sam")
        db.expire_all()
        assert db.get(User, user.id).last_login is not None

    def test_logout(self, client, make_user, login):
        make_user("sam", role="student")
        login("sam")
        response = client.get("/auth/logout", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"
        assert client.get("/api/user").status_code == 401
        assert client.get("/dashboard/student", follow_redirects=False).headers["location"] == "/auth/login"


class TestRoleSelection:
    def test_role_is_chosen_once(self, client, db):
        _signup(client)
        response = client.post("/api/user/role", json={"role": "tutor"})
        assert response.status_code == 200
        assert response.json()["role"] == "tutor"
        assert response.json()["redirectTo"] == "/dashboard/tutor"

        again = client.post("/api/user/role", json={"role": "student"})
        assert again.status_code == 409
        assert again.json() == {"detail": "Role already selected"}

        db.expire_all()
        assert db.query(User).filter(User.username == "newbie").one().role == "tutor"

    @pytest.mark.parametrize("role", ["admin", "superuser", ""])
    def test_role_not_selectable(self, client, role):
        _signup(client)
        response = client.post("/api/user/role", json={"role": role})
        assert response.status_code == 400
        assert client.get("/api/user").json()["role"] is None

    def test_form_selection_redirects_to_dashboard(self, client):
        _signup(client)
        response = client.post("/auth/role", data={"role": "parent"}, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/dashboard/parent"
        assert client.get("/dashboard/parent", follow_redirects=False).status_code == 200

    def test_role_selection_needs_login(self, client):
        assert client.post("/api/user/role", json={"role": "student"}).status_code == 401

    def test_user_without_role_cannot_reach_dashboards(self, client):
        _signup(client)
        response = client.get("/dashboard/student", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"

    def test_racing_selections_keep_the_first_role(self, db, make_user):
        pending = make_user("pending")
        first_session, second_session = SessionLocal(), SessionLocal()
        try:
            first = first_session.get(User, pending.id)
            second = second_session.get(User, pending.id)
            assert first.role is None and second.role is None

            assign_role(first_session, first, "student")
            with pytest.raises(HTTPException) as exc_info:
                assign_role(second_session, second, "parent")
            assert exc_info.value.status_code == 409
            assert second.role == "student"
        finally:
            first_session.close()
            second_session.close()

        db.expire_all()
        assert db.get(User, pending.id).role == "student"
