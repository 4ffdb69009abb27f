"""
Standardized Error Handling Utilities

This module provides the exception types raised by the sequence services,
consistent error response formats, and error handling functions shared by
all API endpoints.
"""

import logging
from typing import Dict, Any, Optional
from flask import jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from helpdesk.utils.timezone import utcnow

logger = logging.getLogger(__name__)

# Standard error codes
ERROR_CODES = {
    # Client errors (4xx)
    'VALIDATION_ERROR': 'VALIDATION_ERROR',
    'NOT_FOUND': 'NOT_FOUND',
    'CONFLICT': 'CONFLICT',
    'UNAUTHORIZED': 'UNAUTHORIZED',
    'FORBIDDEN': 'FORBIDDEN',
    'BAD_REQUEST': 'BAD_REQUEST',

    # Server errors (5xx)
    'INTERNAL_ERROR': 'INTERNAL_ERROR',
    'SERVICE_UNAVAILABLE': 'SERVICE_UNAVAILABLE',
    'DATABASE_ERROR': 'DATABASE_ERROR',
    'EXTERNAL_API_ERROR': 'EXTERNAL_API_ERROR',

    # Business logic errors
    'SEQUENCE_NOT_ACTIVE': 'SEQUENCE_NOT_ACTIVE',
    'DUPLICATE_SHORTCUT': 'DUPLICATE_SHORTCUT',
    'INVALID_STEP': 'INVALID_STEP',
    'EXECUTION_NOT_ACTIVE': 'EXECUTION_NOT_ACTIVE'
}

# HTTP status code mapping
STATUS_CODES = {
    'VALIDATION_ERROR': 400,
    'NOT_FOUND': 404,
    'CONFLICT': 409,
    'UNAUTHORIZED': 401,
    'FORBIDDEN': 403,
    'BAD_REQUEST': 400,
    'INTERNAL_ERROR': 500,
    'SERVICE_UNAVAILABLE': 503,
    'DATABASE_ERROR': 500,
    'EXTERNAL_API_ERROR': 502,
    'SEQUENCE_NOT_ACTIVE': 404,
    'DUPLICATE_SHORTCUT': 409,
    'INVALID_STEP': 400,
    'EXECUTION_NOT_ACTIVE': 409
}


class SequenceError(Exception):
    """Base exception for sequence definition and execution errors."""
    code = 'INTERNAL_ERROR'

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    @property
    def status_code(self):
        return STATUS_CODES.get(self.code, 500)


class ValidationError(SequenceError):
    """Rejected input: bad shortcut, unknown status, step content not matching its type."""
    code = 'VALIDATION_ERROR'


class NotFoundError(SequenceError):
    """Row missing, not in the caller's organization, or not startable."""
    code = 'NOT_FOUND'

    def __init__(self, resource, resource_id=None, message=None, code=None):
        if message is None:
            message = f"{resource} not found"
            if resource_id:
                message += f" with id: {resource_id}"
        super().__init__(message, code=code)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(SequenceError):
    """Request collides with current state (duplicate shortcut, terminal execution)."""
    code = 'CONFLICT'


def create_error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    status_code: Optional[int] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        code: Error code from ERROR_CODES
        message: Human-readable error message
        details: Additional error details (optional)
        status_code: HTTP status code (optional, defaults to code mapping)

    Returns:
        Tuple of (json_response, status_code)
    """
    if code not in ERROR_CODES:
        logger.warning(f"Unknown error code used: {code}, defaulting to INTERNAL_ERROR")
        code = 'INTERNAL_ERROR'

    http_status = status_code or STATUS_CODES.get(code, 500)

    error_response = {
        'success': False,
        'error': {
            'code': code,
            'message': message,
            'timestamp': utcnow().isoformat()
        }
    }

    if details:
        error_response['error']['details'] = details

    return jsonify(error_response), http_status

def handle_validation_error(message: str, details: Optional[Dict[str, Any]] = None) -> tuple:
    """Handle validation errors (400)."""
    return create_error_response('VALIDATION_ERROR', message, details)

def handle_not_found_error(resource: str, resource_id: Optional[str] = None) -> tuple:
    """Handle not found errors (404)."""
    message = f"{resource} not found"
    if resource_id:
        message += f" with id: {resource_id}"
    return create_error_response('NOT_FOUND', message)

def handle_sequence_error(error: SequenceError) -> tuple:
    """Render a SequenceError raised by the sequence services."""
    if error.status_code >= 500:
        logger.error(f"Sequence error ({error.code}): {error.message}")
    else:
        logger.info(f"Sequence request rejected ({error.code}): {error.message}")
    return create_error_response(error.code, error.message, error.details)

def handle_database_error(error: Exception, operation: str = "database operation") -> tuple:
    """Handle database errors (500)."""
    logger.error(f"Database error during {operation}: {str(error)}")

    if isinstance(error, IntegrityError):
        return create_error_response('CONFLICT', f"Database constraint violation during {operation}")
    elif isinstance(error, SQLAlchemyError):
        return create_error_response('DATABASE_ERROR', f"Database error during {operation}")
    else:
        return create_error_response('DATABASE_ERROR', f"Unexpected database error during {operation}")

def handle_internal_error(error: Exception, operation: str = "operation") -> tuple:
    """Handle internal server errors (500)."""
    logger.error(f"Internal error during {operation}: {str(error)}")
    return create_error_response('INTERNAL_ERROR', f"An unexpected error occurred during {operation}")

def handle_exception(error: Exception, operation: str = "operation") -> tuple:
    """
    Generic exception handler that categorizes errors and returns appropriate responses.

    Args:
        error: The exception that occurred
        operation: Description of the operation being performed

    Returns:
        Tuple of (json_response, status_code)
    """
    if isinstance(error, SequenceError):
        return handle_sequence_error(error)
    elif isinstance(error, HTTPException):
        return create_error_response('BAD_REQUEST', error.description, status_code=error.code)
    elif isinstance(error, SQLAlchemyError):
        return handle_database_error(error, operation)
    else:
        return handle_internal_error(error, operation)

def validate_required_fields(data: Dict[str, Any], required_fields: list) -> Optional[tuple]:
    """
    Validate that required fields are present in request data.

    Args:
        data: Request data dictionary
        required_fields: List of required field names

    Returns:
        Error response tuple if validation fails, None if validation passes
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None]

    if missing_fields:
        details = {
            'missing_fields': missing_fields,
            'required_fields': required_fields
        }
        return handle_validation_error(
            f"Missing required fields: {', '.join(missing_fields)}",
            details
        )

    return None
