import datetime

from fastapi import Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from access.audit_trail import audit
from access.rbac import LOGIN_PATH, ROLE_ROOTS, SELECTABLE_ROLES, root_for
from access.route_guard import start_session
from .app_context import get_current_user, get_principal, templates
from .auth import authenticate_user, hash_password, password_problem
from .database import get_db
from .models import User


class RoleSelection(BaseModel):
    role: str


def _landing_for(user: User) -> str:
    """Role root, or the login page (role picker) while no role is set."""
    return root_for(user)


def assign_role(db: Session, user: User, role: str) -> User:
    """One-time role selection. Admin is never selectable."""
    if role not in SELECTABLE_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")
    # only the first selection to commit sticks
    updated = (
        db.query(User)
        .filter(User.id == user.id, User.role.is_(None))
        .update({User.role: role}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        db.refresh(user)
        raise HTTPException(status_code=409, detail="Role already selected")
    db.refresh(user)
    audit("role_selected", user_id=user.id, details=f"role={role}")
    return user


def register_web_auth_routes(app):
    @app.get("/auth/login", response_class=HTMLResponse)
    async def login_page(request: Request):
        principal = get_principal(request)
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {
                "pending_role": principal is not None and principal.role is None,
                "roles": SELECTABLE_ROLES,
            },
        )

    @app.post("/auth/login")
    async def login_submit(
        request: Request,
        username: str = Form(...),
        password: str = Form(...),
        db: Session = Depends(get_db)
    ):
        user = authenticate_user(db, username.strip(), password)
        if not user:
            audit("auth_login_failed", user_id=None, details=f"username={username}")
            return templates.TemplateResponse(
                request,
                "auth/login.html",
                {"error": "Invalid credentials", "pending_role": False, "roles": SELECTABLE_ROLES},
                status_code=401
            )

        if not user.is_active:
            audit("auth_login_inactive", user_id=user.id, details=f"username={user.username}")
            raise HTTPException(status_code=403, detail="Account is inactive")

        user.last_login = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        db.commit()

        start_session(request.session, user.id, user.role)
        audit("auth_login_success", user_id=user.id, details=f"username={user.username};role={user.role}")
        return RedirectResponse(_landing_for(user), status_code=303)

    @app.get("/auth/signup", response_class=HTMLResponse)
    async def signup_page(request: Request):
        return templates.TemplateResponse(request, "auth/signup.html", {})

    @app.post("/auth/signup")
    async def signup_submit(
        request: Request,
        username: str = Form(...),
        email: str = Form(...),
        password: str = Form(...),
        db: Session = Depends(get_db)
    ):
        username = username.strip()
        email = email.strip().lower()
        error, status_code = password_problem(password), 400
        if not error and "@" in username:
            error = "Username cannot contain '@'"
        if not error and db.query(User).filter((User.username == username) | (User.email == email)).first():
            error, status_code = "Username or email already registered", 409
        if error:
            return templates.TemplateResponse(
                request,
                "auth/signup.html",
                {"error": error, "username": username, "email": email},
                status_code=status_code,
            )

        user = User(username=username, email=email, password_hash=hash_password(password), role=None)
        db.add(user)
        db.commit()
        db.refresh(user)

        start_session(request.session, user.id, None)
        audit("auth_signup", user_id=user.id, details=f"username={username}")
        # No role yet: the login page shows the role picker
        return RedirectResponse(LOGIN_PATH, status_code=303)

    @app.post("/auth/role")
    async def role_form_submit(
        request: Request,
        role: str = Form(...),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ):
        assign_role(db, user, role)
        request.session["role"] = user.role
        return RedirectResponse(ROLE_ROOTS[user.role], status_code=303)

    @app.get("/auth/logout")
    async def logout(request: Request):
        existing_user_id = request.session.get("user_id")
        if existing_user_id:
            audit("auth_logout", user_id=existing_user_id, details="logout")
        request.session.clear()
        return RedirectResponse(LOGIN_PATH, status_code=303)

    @app.get("/api/user")
    async def current_user_info(user: User = Depends(get_current_user)):
        return {"id": user.id, "username": user.username, "email": user.email, "role": user.role}

    @app.post("/api/user/role")
    async def select_role(
        payload: RoleSelection,
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ):
        assign_role(db, user, payload.role)
        request.session["role"] = user.role
        return {"id": user.id, "role": user.role, "redirectTo": ROLE_ROOTS[user.role]}
