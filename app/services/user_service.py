"""User service — staff account management with super-admin guards."""

import logging

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..database import utcnow
from ..models import BuildingManager, User, Violation
from .audit_service import log_action
from .auth_service import hash_password

log = logging.getLogger(__name__)


def serialize_user(u: User, violations: int | None = None, buildings: int | None = None) -> dict:
    data = {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "is_active": u.is_active,
        "is_suspended": u.is_suspended,
        "last_login_at": u.last_login_at.isoformat() if u.last_login_at else None,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }
    if violations is not None:
        data["counts"] = {"violations": violations, "managed_buildings": buildings or 0}
    return data


def list_users(db: Session, search: str | None = None, role: str | None = None) -> dict:
    q = db.query(User).filter(User.deleted_at.is_(None))
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(or_(func.lower(User.email).like(term), func.lower(User.name).like(term)))
    if role and role != "all":
        q = q.filter(User.role == role)
    users = q.order_by(User.role, User.name).all()

    ids = [u.id for u in users]
    violation_counts, building_counts = {}, {}
    if ids:
        violation_counts = dict(
            db.query(Violation.logged_by_id, func.count(Violation.id))
            .filter(Violation.logged_by_id.in_(ids))
            .group_by(Violation.logged_by_id)
            .all()
        )
        building_counts = dict(
            db.query(BuildingManager.user_id, func.count(BuildingManager.id))
            .filter(BuildingManager.user_id.in_(ids))
            .group_by(BuildingManager.user_id)
            .all()
        )
    return {
        "users": [
            serialize_user(u, violation_counts.get(u.id, 0), building_counts.get(u.id, 0))
            for u in users
        ]
    }


def create_user(db: Session, data: dict, admin_user: User, request: Request | None = None) -> dict:
    email = data["email"].strip().lower()
    if db.query(User).filter(func.lower(User.email) == email).first():
        return {"error": "A user with this email already exists", "status": 400}
    if data["role"] == "SUPER_ADMIN" and admin_user.role != "SUPER_ADMIN":
        return {"error": "Only super admins can create super admin accounts", "status": 403}

    user = User(
        email=email,
        name=data.get("name"),
        password_hash=hash_password(data["password"]),
        role=data["role"],
        is_active=data.get("is_active", True),
    )
    db.add(user)
    db.flush()
    log_action(
        db, "CREATE", "User", user.id, user_id=admin_user.id,
        details={"email": user.email, "role": user.role}, request=request,
    )
    db.commit()
    db.refresh(user)
    log.info("Admin %s created user %s (%s)", admin_user.email, user.email, user.role)
    return {"user": serialize_user(user)}


def update_user(
    db: Session, user_id: int, updates: dict, admin_user: User, request: Request | None = None
) -> dict:
    """Apply edits. Guards against self-demotion, self-suspension, and
    non-super-admins touching super admins."""
    target = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if not target:
        return {"error": "User not found", "status": 404}

    if target.role == "SUPER_ADMIN" and admin_user.role != "SUPER_ADMIN":
        return {"error": "Only super admins can modify super admin accounts", "status": 403}

    if target.id == admin_user.id:
        if updates.get("role") and updates["role"] != target.role:
            return {"error": "Cannot change your own role", "status": 400}
        if updates.get("is_suspended") is True:
            return {"error": "Cannot suspend your own account", "status": 400}

    if updates.get("role") == "SUPER_ADMIN" and admin_user.role != "SUPER_ADMIN":
        return {"error": "Only super admins can grant the super admin role", "status": 403}

    if updates.get("name") is not None:
        target.name = updates["name"].strip()
    if updates.get("role"):
        old_role = target.role
        target.role = updates["role"]
        log.info("Admin %s changed %s role: %s -> %s", admin_user.email, target.email, old_role, target.role)
    if updates.get("is_active") is not None:
        target.is_active = updates["is_active"]
    if updates.get("password"):
        target.password_hash = hash_password(updates["password"])
    if updates.get("is_suspended") is not None:
        target.is_suspended = updates["is_suspended"]
        if updates["is_suspended"]:
            target.suspended_at = utcnow()
            target.suspension_reason = updates.get("suspension_reason")
        else:
            target.suspended_at = None
            target.suspension_reason = None

    log_action(
        db, "UPDATE", "User", target.id, user_id=admin_user.id,
        details={"changes": sorted(updates)}, request=request,
    )
    db.commit()
    db.refresh(target)
    return {"user": serialize_user(target)}


def delete_user(db: Session, user_id: int, admin_user: User, request: Request | None = None) -> dict:
    if user_id == admin_user.id:
        return {"error": "Cannot delete your own account", "status": 400}
    target = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if not target:
        return {"error": "User not found", "status": 404}
    if target.role == "SUPER_ADMIN" and admin_user.role != "SUPER_ADMIN":
        return {"error": "Only super admins can delete super admin accounts", "status": 403}

    target.deleted_at = utcnow()
    log_action(
        db, "DELETE", "User", target.id, user_id=admin_user.id,
        details={"email": target.email}, request=request,
    )
    db.commit()
    log.info("Admin %s deleted user %s", admin_user.email, target.email)
    return {"success": True}
