from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.schemas.conflict import ConflictDetail


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised for malformed planner input (period range, missing class, bad week)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class ConflictError(AppError):
    """Raised when a placement double-books a teacher/room or hits an absence.

    Always carries the complete list of conflicts so the planner can fix every
    problem in one pass.
    """
    def __init__(self, conflicts: list[ConflictDetail], message: str | None = None):
        self.conflicts = list(conflicts)
        text = message or "\n".join(item.message for item in self.conflicts) or "Conflict detected"
        super().__init__(
            text,
            status_code=409,
            details={"conflicts": [item.model_dump() for item in self.conflicts]},
        )


class DuplicateNameError(AppError):
    """Raised when a template name is already taken."""
    def __init__(self, name: str):
        super().__init__(f"A template named '{name}' already exists", status_code=409, details={"name": name})


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: int | str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
