# core/errors.py

from fastapi import HTTPException


# -----------------------------------------------------
# Domain error taxonomy
# -----------------------------------------------------
# Each maps 1:1 onto an HTTP status so the app-level
# HTTPException handler renders them unchanged.
# -----------------------------------------------------
class AppError(HTTPException):
    status_code_default = 500

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code_default, detail=detail)


class BadRequestError(AppError):
    status_code_default = 400


class ForbiddenError(AppError):
    status_code_default = 403


class NotFoundError(AppError):
    status_code_default = 404


class ConflictError(AppError):
    status_code_default = 409


class PaymentGatewayError(AppError):
    status_code_default = 502


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors (APIError carries .message / .code)
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1: PostgREST / GoTrue errors
    message = getattr(error, "message", None)
    if message:
        return str(message)

    # Case 2: errors with args (common)
    if getattr(error, "args", None):
        return str(error.args[0])

    # Case 3: Plain string fallback
    return str(error) or "Unknown Supabase error"


def is_unique_violation(error: Exception) -> bool:
    """True for Postgres 23505 / duplicate key errors surfaced by PostgREST."""
    if getattr(error, "code", None) == "23505":
        return True

    detail = extract_supabase_error(error).lower()
    return "duplicate" in detail or "unique" in detail


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to create access request")
        status_code: HTTP status code (default 500)

    Returns:
        HTTPException with standardized error message
    """
    from core.logging_config import logger

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    # Provide user-friendly messages for common errors
    error_lower = error_detail.lower()
    if is_unique_violation(error):
        return ConflictError(f"{operation}: Record already exists")
    elif "foreign key" in error_lower:
        return BadRequestError(f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return NotFoundError(f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")
