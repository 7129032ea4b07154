"""
Domain error taxonomy.

Every failure the workflow core reports is one of these types. Each carries a
machine-readable ``code``, the HTTP status the routing layer should answer
with, and structured ``details`` the caller can act on (for example the
``available`` quantity when a consumption request overshoots the pool).

    DomainError
    +-- NotFound       referenced id absent
    +-- Forbidden      authorization denied
    +-- InvalidInput   missing / out-of-range field, invalid status value
    +-- Conflict       duplicate attendance, insufficient quantity, wrong state
    +-- Internal       storage or collaborator failure
"""
from typing import Any, Dict


class DomainError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.details)
        return body


class NotFound(DomainError):
    code = "not_found"
    status_code = 404


class Forbidden(DomainError):
    code = "forbidden"
    status_code = 403


class InvalidInput(DomainError):
    code = "invalid_input"
    status_code = 400


class Conflict(DomainError):
    code = "conflict"
    status_code = 409


class Internal(DomainError):
    code = "internal"
    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        # Never leak storage detail to the caller
        return {"detail": "Internal server error", "code": self.code}
