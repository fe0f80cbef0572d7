"""
routers/auth.py — Credential login & session routes

Business Rules:
- Email + password login; email normalized to lowercase
- Session cookie carries user_id and role (signed, 30-day max age)
- Login is rate limited per client IP
- Logout clears the session and writes a LOGOUT audit entry
- /api/auth/me returns the user with permissions and nav items for the role

Called by: main.py (router mount)
Depends on: services/auth_service, dependencies, authorization, navigation
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..authorization import get_permissions
from ..config import settings
from ..database import get_db
from ..dependencies import get_user, require_user
from ..models import User
from ..navigation import get_nav_items_for_role
from ..rate_limit import limiter
from ..services.auth_service import authenticate, record_logout

log = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


def _me(user: User) -> dict:
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
        },
        "permissions": sorted(get_permissions(user.role)),
        "nav_items": get_nav_items_for_role(user.role),
    }


@router.post("/api/auth/login")
@limiter.limit(settings.rate_limit_login)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    result = authenticate(db, body.email, body.password, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    user = result["user"]
    request.session.clear()
    request.session["user_id"] = user.id
    request.session["role"] = user.role
    return _me(user)


@router.post("/api/auth/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    user = get_user(request, db)
    if user:
        record_logout(db, user, request)
        log.info("User %s logged out", user.email)
    request.session.clear()
    return JSONResponse({"ok": True})


@router.get("/api/auth/me")
def me(user: User = Depends(require_user)):
    return _me(user)
