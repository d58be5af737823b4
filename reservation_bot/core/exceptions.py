"""
Custom exception classes
Give the capacity core and the HTTP layer a precise error taxonomy
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """Database failure"""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class ConcurrencyError(BaseApplicationError):
    """Write conflict inside a transaction"""

    def __init__(self, message: str = "The system is busy, please retry"):
        super().__init__(message, "CONCURRENCY_CONFLICT")


class AuthenticationError(BaseApplicationError):
    """Missing or invalid operator token"""

    def __init__(self, message: str):
        super().__init__(message, "AUTHENTICATION_REQUIRED")


class AuthorizationError(BaseApplicationError):
    """Operator is not allowed to act on this store"""

    def __init__(self, message: str):
        super().__init__(message, "PERMISSION_DENIED")


class ValidationError(BaseApplicationError):
    """Malformed rule field or command token.

    ``details`` names the offending ``field`` or ``token``.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        token: Optional[str] = None,
        details: Dict[str, Any] = None,
    ):
        details = dict(details or {})
        if field is not None:
            details["field"] = field
        if token is not None:
            details["token"] = token
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field
        self.token = token


class NotFoundError(BaseApplicationError):
    """Referenced resource does not exist"""

    def __init__(self, message: str, error_code: str = "RESOURCE_NOT_FOUND",
                 details: Dict[str, Any] = None):
        super().__init__(message, error_code, details)


class RuleNotFoundError(NotFoundError):
    """Capacity rule does not exist"""

    def __init__(self, rule_id: Any):
        super().__init__(f"Capacity rule #{rule_id} not found", "RULE_NOT_FOUND",
                         {"rule_id": rule_id})


class ReservationNotFoundError(NotFoundError):
    """Reservation does not exist"""

    def __init__(self, reservation_id: str):
        super().__init__(f"Reservation {reservation_id} not found",
                         "RESERVATION_NOT_FOUND", {"reservation_id": reservation_id})


class BackendUnavailableError(BaseApplicationError):
    """Rule Store or Usage Counter backend failed or timed out"""

    def __init__(self, message: str, collaborator: str = None):
        super().__init__(message, "BACKEND_UNAVAILABLE",
                         {"collaborator": collaborator} if collaborator else None)
        self.collaborator = collaborator


class CapacityExceededError(BaseApplicationError):
    """Reservation rejected by a capacity rule"""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "CAPACITY_EXCEEDED", details)
