"""
Centralized HTTP exceptions for consistent error handling.

Every business error carries a stable machine-readable ``code`` and an
``ErrorKind`` that fixes its HTTP status class. Exceptions log on
construction, so raising sites never log the same failure twice.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Order", order_id, code="ORDER_NOT_FOUND")
    raise ValidationError("Quantity must be at least 1", code="INVALID_QUANTITY", quantity=0)
"""

from enum import Enum
from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """Error classes and the HTTP status each one renders as."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    POLICY = "policy"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _KIND_STATUS[self]


_KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.POLICY: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        detail: str,
        code: str | None = None,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        self.code = code or self.default_code

        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, code=self.code, status_code=self.kind.status_code, **log_context)

        super().__init__(status_code=self.kind.status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Order", order_id, code="ORDER_NOT_FOUND")
    """

    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(
        self,
        entity: str,
        entity_id: str | None = None,
        code: str | None = None,
        **log_context: Any,
    ):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            detail,
            code=code,
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Always raised before any write.

    Usage:
        raise ValidationError("Description is required", field="description")
    """

    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"


class PolicyError(AppException):
    """A well-formed request refused by a business rule (400)."""

    kind = ErrorKind.POLICY
    default_code = "POLICY_VIOLATION"


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    The entity's current state does not allow the operation (409).

    Usage:
        raise ConflictError("Approval request was already reviewed", code="ALREADY_REVIEWED")
    """

    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """Invalid status transition."""

    default_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Cannot transition {entity} from '{from_status}' to '{to_status}'"
        super().__init__(
            detail,
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to generate a unique order number", code="ORDER_NUMBER_EXHAUSTED")
    """

    kind = ErrorKind.INTERNAL
    default_code = "INTERNAL_ERROR"

    def __init__(self, detail: str = "Internal server error", code: str | None = None, **log_context: Any):
        super().__init__(detail, code=code, log_level="error", **log_context)


class DatabaseError(InternalError):
    """Database operation failed."""

    default_code = "DATABASE_ERROR"

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)


class AuditLogError(AppException):
    """
    Audit trail failure.

    Validation problems (bad enum, cyclic snapshot) are 400s; a failed write
    is LOG_FAILED with status 500.
    """

    def __init__(self, detail: str, code: str, kind: ErrorKind = ErrorKind.VALIDATION, **log_context: Any):
        self.kind = kind
        super().__init__(
            detail,
            code=code,
            log_level="error" if kind is ErrorKind.INTERNAL else "warning",
            **log_context,
        )
