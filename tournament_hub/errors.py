"""
tournament_hub/errors.py
Centralized error taxonomy and response envelope

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input / invalid state transition
- 401: Authentication missing, invalid, or account banned
- 403: Access forbidden (role / ownership)
- 404: Resource does not exist
- 409: Unique-constraint conflict
- 422: Request body failed schema validation (FastAPI)
- 500: Unclassified store or internal failure (never caused by user input)
"""

import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    NEGATIVE_VALUE = "NEGATIVE_VALUE"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"
    ACCOUNT_BANNED = "ACCOUNT_BANNED"

    FORBIDDEN = "FORBIDDEN"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"

    NOT_FOUND = "NOT_FOUND"

    CONFLICT = "CONFLICT"
    DUPLICATE_STANDING = "DUPLICATE_STANDING"
    DUPLICATE_JOIN_REQUEST = "DUPLICATE_JOIN_REQUEST"

    STATE_TRANSITION_INVALID = "STATE_TRANSITION_INVALID"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(APIError):
    """400 - Malformed or missing input, e.g. negative scores or unknown tournament"""
    def __init__(self, message: str, code: str = ErrorCode.VALIDATION_ERROR, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Validation Error",
            message=message,
            code=code,
            details=details
        )


class InvalidStateError(APIError):
    """400 - Invalid state transition"""
    def __init__(self, message: str, code: str = ErrorCode.STATE_TRANSITION_INVALID, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Invalid State",
            message=message,
            code=code,
            details=details
        )


class AuthError(APIError):
    """401 - Not signed in, bad credentials, or banned"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )


class ForbiddenError(APIError):
    """403 - Access denied"""
    def __init__(self, message: str, code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class NotFoundError(APIError):
    """404 - Referenced id absent"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code,
            details={"resource": resource, "id": str(identifier)} if identifier is not None else None
        )


class ConflictError(APIError):
    """409 - Unique-constraint violation"""
    def __init__(self, message: str, code: str = ErrorCode.CONFLICT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message=message,
            code=code,
            details=details
        )


class InternalError(APIError):
    """500 - Unclassified store failure. The log id ties the response to the log line."""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


def new_log_id() -> str:
    return str(uuid.uuid4())[:8]


def translate_integrity_error(
    error: IntegrityError,
    conflict_message: str = "Record already exists",
    conflict_code: str = ErrorCode.CONFLICT,
    fk_message: str = "Referenced record does not exist",
) -> APIError:
    """
    Map a driver IntegrityError onto the taxonomy.

    Unique violations become ConflictError, foreign-key violations become
    ValidationError, anything else (check constraints) a ValidationError too.
    """
    text = str(getattr(error, "orig", error)).lower()
    if "unique" in text or "duplicate" in text:
        return ConflictError(conflict_message, code=conflict_code)
    if "foreign key" in text:
        return ValidationError(fk_message, code=ErrorCode.INVALID_INPUT)
    logger.warning(f"Integrity error mapped to validation failure: {text}")
    return ValidationError("Constraint violation", code=ErrorCode.INVALID_INPUT)


def get_error_summary() -> Dict[str, Any]:
    """Return summary of error handling system for documentation"""
    return {
        "service": "tournament-hub-error-handler",
        "response_structure": {
            "success": "boolean (always false for errors)",
            "error": "string (error type)",
            "message": "string (human-readable)",
            "code": "string (machine-readable)",
            "details": "object (optional)"
        },
        "status_codes": {
            "400": "Invalid input / invalid state transition",
            "401": "Authentication missing, invalid, or account banned",
            "403": "Access forbidden",
            "404": "Resource does not exist",
            "409": "Unique-constraint conflict",
            "422": "Request schema validation error",
            "500": "Internal error (NEVER caused by user input)"
        },
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if not attr.startswith('_')
        ]
    }
