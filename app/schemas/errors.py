"""
schemas/errors.py — Error bodies returned by the parking API

Business Rules:
- Every error carries the human message, the HTTP status and the request ID
- Schema failures add pydantic's `detail` list
- Pass rule failures (registration, extension) add the structured
  `errors` / `warnings` issue lists so the form can point at fields

Called by: main.py (exception handlers, route guard), routers/passes.py
Depends on: nothing
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list | None = None


class RuleViolationResponse(ErrorResponse):
    """Validation issues are pre-serialized dicts: code, message, field?, metadata?."""

    errors: list[dict] = Field(default_factory=list)
    warnings: list[dict] = Field(default_factory=list)
