# backend/mentorverse/core/exceptions.py
"""
Domain exceptions.

Services raise these; `main.py` turns them into JSON responses through
`to_http_exception()`, so routers never build error bodies by hand.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base class for every error the API reports on purpose."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationError(DomainError):
    """Malformed or missing input. `errors` is a list of {field, message}."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Validation failed", errors: Optional[List[Dict[str, str]]] = None) -> None:
        self.errors = errors or []
        super().__init__(message, details={"errors": self.errors})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class ConflictError(DomainError):
    """Requested time window overlaps sessions the owner already holds."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicting_sessions: Optional[List[Dict[str, Any]]] = None) -> None:
        self.conflicting_sessions = conflicting_sessions or []
        super().__init__(message, details={"conflicting_sessions": self.conflicting_sessions})


class PolicyError(DomainError):
    """An eligibility rule (notice window, reschedule limit, status) was violated."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class StoreError(DomainError):
    """
    Persistence failure. The underlying cause is logged where it happens;
    the client only ever sees a generic message.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": "Internal server error", "code": self.code, "details": {}},
        )


class UpstreamError(DomainError):
    """An outbound service answered, but with nothing usable."""

    status_code = status.HTTP_502_BAD_GATEWAY
