"""
Typed errors raised by the checksheet workflow.

Every failure the engine reports belongs to exactly one taxonomy kind. Each
class carries a machine-readable ``code`` and the HTTP ``status_code`` of its
reference binding, plus structured ``details`` for logs and API bodies:

    WorkflowError (base)
    |
    +-- ValidationError      VALIDATION_ERROR     400  malformed or missing input
    +-- AuthorizationError   AUTHORIZATION_ERROR  403  wrong role or not the owner
    +-- NotFoundError        NOT_FOUND            404  unknown or soft-deleted reference
    +-- ConflictError        CONFLICT             409  status precondition not met / lost race
    +-- PersistenceError     PERSISTENCE_ERROR    500  storage failure, always rolled back

The engine never retries. A ConflictError means the caller must re-read the
checksheet before deciding whether to try again.
"""
from typing import Any, Optional
from uuid import UUID


class WorkflowError(Exception):
    """Base class for all workflow failures."""

    code: str = "WORKFLOW_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(WorkflowError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(WorkflowError):
    code = "AUTHORIZATION_ERROR"
    status_code = 403


class NotFoundError(WorkflowError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, kind: Any, reference_id: UUID, message: Optional[str] = None):
        label = getattr(kind, "label", str(kind))
        super().__init__(
            message or f"{label} not found",
            kind=getattr(kind, "value", kind),
            reference_id=str(reference_id),
        )


class ConflictError(WorkflowError):
    code = "CONFLICT"
    status_code = 409


class PersistenceError(WorkflowError):
    code = "PERSISTENCE_ERROR"
    status_code = 500
