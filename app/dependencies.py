"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for authentication and authorization.
All routers import from here instead of defining their own auth logic.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if deactivated, suspended
  or deleted (and clears the session)
- require_permission(...) passes if the role has ANY listed permission
- require_all_permissions(...) needs EVERY listed permission
- require_role(...) matches the role name exactly
- require_admin allows ADMIN and SUPER_ADMIN

Called by: all routers
Depends on: models, database, authorization
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .authorization import AuthContext, has_all_permissions, has_any_permission, is_admin
from .database import get_db
from .models import User

log = logging.getLogger(__name__)


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    try:
        return db.get(User, uid)
    except Exception:
        log.warning("Session user lookup failed for id=%s", uid, exc_info=True)
        request.session.clear()
        return None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if locked out."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Unauthorized")
    if user.deleted_at is not None or not user.is_active:
        request.session.clear()
        raise HTTPException(403, "Account deactivated — contact an administrator")
    if user.is_suspended:
        request.session.clear()
        raise HTTPException(403, "Account suspended — contact an administrator")
    return user


def auth_context(user: User) -> AuthContext:
    return AuthContext(user_id=user.id, role=user.role)


# ── Authorization ─────────────────────────────────────────────────────


def require_permission(*permissions: str):
    """Dependency factory: user needs ANY of the given permissions."""

    def _check(user: User = Depends(require_user)) -> User:
        if not has_any_permission(user.role, permissions):
            log.info("Forbidden: %s (%s) lacks any of %s", user.email, user.role, permissions)
            raise HTTPException(403, "Forbidden")
        return user

    return _check


def require_all_permissions(*permissions: str):
    """Dependency factory: user needs EVERY given permission."""

    def _check(user: User = Depends(require_user)) -> User:
        if not has_all_permissions(user.role, permissions):
            raise HTTPException(403, "Forbidden")
        return user

    return _check


def require_role(*roles: str):
    """Dependency factory: user's role must be one of ``roles``."""

    def _check(user: User = Depends(require_user)) -> User:
        if user.role not in roles:
            raise HTTPException(403, "Forbidden")
        return user

    return _check


def require_admin(user: User = Depends(require_user)) -> User:
    """Dependency: raises 403 unless ADMIN or SUPER_ADMIN."""
    if not is_admin(user.role):
        raise HTTPException(403, "Admin access required")
    return user
