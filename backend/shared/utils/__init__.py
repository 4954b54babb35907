"""
Utilities module: Exceptions, validators, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    ErrorKind,
    NotFoundError,
    ValidationError,
    PolicyError,
    ConflictError,
    InvalidTransitionError,
    InternalError,
    AuditLogError,
)
from shared.utils.validators import is_uuid, has_circular_reference
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "AppException",
    "ErrorKind",
    "NotFoundError",
    "ValidationError",
    "PolicyError",
    "ConflictError",
    "InvalidTransitionError",
    "InternalError",
    "AuditLogError",
    # validators
    "is_uuid",
    "has_circular_reference",
    # schemas
    "ErrorResponse",
]
