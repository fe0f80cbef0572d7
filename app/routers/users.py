"""Users API — staff accounts. Admin and super admin only."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from ..constants import MIN_PASSWORD_LENGTH
from ..database import get_db
from ..dependencies import require_admin
from ..models import User
from ..services import user_service

router = APIRouter(tags=["users"])

Role = Literal["SUPER_ADMIN", "ADMIN", "MANAGER", "SECURITY", "RESIDENT"]


# ── Schemas ──────────────────────────────────────────────────────────


class UserCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(None, max_length=255)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    role: Role = "MANAGER"
    is_active: bool = True


class UserUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    password: str | None = Field(None, min_length=MIN_PASSWORD_LENGTH)
    role: Role | None = None
    is_active: bool | None = None
    is_suspended: bool | None = None
    suspension_reason: str | None = Field(None, max_length=500)


def _unwrap(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.get("/api/users")
def list_users(
    search: str | None = None,
    role: str | None = None,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, search=search, role=role)


@router.post("/api/users", status_code=201)
def create_user(
    body: UserCreate,
    request: Request,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _unwrap(user_service.create_user(db, body.model_dump(), user, request))


@router.patch("/api/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No changes provided")
    return _unwrap(user_service.update_user(db, user_id, updates, user, request))


@router.delete("/api/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _unwrap(user_service.delete_user(db, user_id, user, request))
