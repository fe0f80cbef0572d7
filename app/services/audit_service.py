"""Audit service — append-only trail of who did what.

Callers own the transaction: log_action only adds the row, so the audit
entry commits (or rolls back) together with the change it describes.
"""

from fastapi import Request
from sqlalchemy.orm import Session

from ..models import AuditLog


def client_ip(request: Request | None) -> str | None:
    """First hop of x-forwarded-for, then x-real-ip, then the socket peer."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def user_agent(request: Request | None) -> str | None:
    if request is None:
        return None
    return request.headers.get("user-agent")


def log_action(
    db: Session,
    action: str,
    entity_type: str,
    entity_id,
    user_id: int | None = None,
    details: dict | None = None,
    data_accessed: list[str] | None = None,
    request: Request | None = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        user_id=user_id,
        details=details,
        data_accessed=data_accessed,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    db.add(entry)
    return entry
