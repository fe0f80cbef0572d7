"""
auth_service.py — Credential login and password hashing

Business Rules:
- Emails are compared lower-cased
- Inactive, suspended, or deleted accounts cannot log in
- Each failed password attempt increments failed_login_attempts
- A successful login resets the counter and stamps last_login_at
- Every login writes a LOGIN audit entry

Called by: routers/auth.py, routers/users.py, seed.py
Depends on: passlib (bcrypt), models.User, services/audit_service
"""

import logging

from fastapi import Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..database import utcnow
from ..models import User
from .audit_service import log_action

log = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def authenticate(
    db: Session, email: str, password: str, request: Request | None = None
) -> dict:
    """Check credentials. Returns the user or an error dict with a status."""
    email = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email, User.deleted_at.is_(None)).first()
    if not user or not user.password_hash:
        log.info("Login failed: unknown account %s", email)
        return {"error": "Invalid email or password", "status": 401}

    if not user.is_active or user.is_suspended:
        log.info("Login refused for locked account %s", email)
        return {"error": "Account is disabled or suspended", "status": 403}

    if not verify_password(password, user.password_hash):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        user.last_failed_login_at = utcnow()
        db.commit()
        log.info("Login failed: bad password for %s (%d attempts)", email, user.failed_login_attempts)
        return {"error": "Invalid email or password", "status": 401}

    user.failed_login_attempts = 0
    user.last_login_at = utcnow()
    log_action(
        db, "LOGIN", "User", user.id, user_id=user.id,
        details={"email": user.email}, request=request,
    )
    db.commit()
    log.info("User %s logged in", email)
    return {"user": user}


def record_logout(db: Session, user: User, request: Request | None = None) -> None:
    log_action(db, "LOGOUT", "User", user.id, user_id=user.id, request=request)
    db.commit()
