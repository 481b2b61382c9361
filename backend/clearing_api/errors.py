"""Domain errors raised by the RBAC services and guard.

The HTTP layer translates them with the handlers registered by
``register_exception_handlers``; library callers catch them directly.
"""
from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class RbacError(Exception):
    """Base class for every error surfaced by the RBAC core."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, details: list[Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


class NotFoundError(RbacError):
    """Resource absent, or owned by a different tenant than the path implies."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationFailedError(RbacError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class ForbiddenError(RbacError):
    """The resource exists but no required permission group is satisfied."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ConflictError(RbacError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


def _handle_rbac_error(_request: Request, exc: RbacError) -> JSONResponse:
    content: dict[str, Any] = {"detail": exc.message}
    if exc.details:
        content["errors"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach RBAC error handlers to the FastAPI app."""
    app.add_exception_handler(RbacError, _handle_rbac_error)
