from pathlib import Path
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from access.feature_gate import FEATURE_KEYS
from access.metrics import record_feature_check
from access.rbac import Principal, role_of
from access.route_guard import principal_from_session
from .database import get_db
from .models import User
from .subscription_service import feature_gate_for

SUBSCRIPTION_REQUIRED = "This content requires an active subscription"

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_principal(request: Request) -> Optional[Principal]:
    return principal_from_session(request.session)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    principal = get_principal(request)
    if principal is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.query(User).filter(User.id == principal.id).first()
    if not user or not user.is_active:
        request.session.clear()
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(user: User = Depends(get_current_user)) -> User:
    if role_of(user) is None:
        raise HTTPException(status_code=403, detail="Select a role to continue")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def require_subscription(feature: str):
    """Dependency factory: the current user's plan must enable `feature`. Admins bypass."""
    if feature not in FEATURE_KEYS:
        raise ValueError(f"Unknown feature key: {feature}")

    def dependency(user: User = Depends(require_role), db: Session = Depends(get_db)) -> User:
        if user.role == "admin":
            return user
        granted = feature_gate_for(db, user.id).has_feature(feature)
        record_feature_check(feature, granted)
        if not granted:
            raise HTTPException(status_code=403, detail=SUBSCRIPTION_REQUIRED)
        return user

    return dependency
