import bcrypt
from sqlalchemy import func
from sqlalchemy.orm import Session

from edu_portal.models import User

MIN_PASSWORD_LENGTH = 8
# bcrypt ignores everything past 72 bytes
MAX_PASSWORD_BYTES = 72


def password_problem(password: str):
    """Reason the password is unacceptable, or None."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
    return None


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def authenticate_user(db: Session, login: str, password: str):
    """Match on username, or on email when the login contains '@'."""
    query = db.query(User)
    if "@" in login:
        user = query.filter(func.lower(User.email) == login.lower()).first()
    else:
        user = query.filter(User.username == login).first()
    if user and verify_password(password, user.password_hash):
        return user
    return None
