"""Application-level exceptions and FastAPI exception handlers.

Resource controllers never let these escape: each public operation converts
them into a failure :class:`~apitoolbox.core.response.Result`. The handlers
below cover everything raised outside a controller (dependencies, routers).
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apitoolbox.core.messages import Alert, tr

class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str = "internal_error"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

class AlertError(AppException):
    """An exception identified by a message key (see :class:`Alert`)."""

    alert: Alert = Alert.ACCESS_DENIED
    default_status: int = 403

    def __init__(self, status_code: int | None = None):
        super().__init__(
            tr(self.alert),
            status_code=status_code or self.default_status,
            code=self.alert.value,
        )

class TokenNotFoundError(AlertError):
    alert = Alert.TOKEN_NOT_FOUND

class UserNotFoundError(AlertError):
    alert = Alert.USER_NOT_FOUND

class JwtNotConfiguredError(AlertError):
    """Raised when no token validator is available (no JWT secret configured)."""

    alert = Alert.JWT_NOT_FOUND
    default_status = 500

class AccessDeniedError(AlertError):
    alert = Alert.ACCESS_DENIED

class PermissionsDeniedError(AlertError):
    alert = Alert.PERMISSIONS_DENIED

# Not-found cases answer 403, as the API always has; clients rely on it.
class RecordNotFoundError(AlertError):
    alert = Alert.RECORD_NOT_FOUND

class RecordsNotFoundError(AlertError):
    alert = Alert.RECORDS_NOT_FOUND

class ConflictError(AlertError):
    """Raised when a write collides with an existing record (unique keys)."""

    alert = Alert.RECORD_CONFLICT
    default_status = 409

class ValidationFailedError(AlertError):
    """Raised when input data fails validation; carries the field errors."""

    alert = Alert.VALIDATION_FAILED
    default_status = 422

    def __init__(self, errors: list[dict[str, Any]] | None = None):
        super().__init__()
        self.errors = errors or []

class ComponentNotFoundError(AppException):
    def __init__(self, name: str):
        super().__init__(f"component '{name}' not found", status_code=500, code="component_not_found")

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str, data: Any = None) -> dict:
    body = {"success": False, "message": message, "errorCode": code}
    if data is not None:
        body["data"] = data
    return body

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        errors = getattr(exc, "errors", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, errors),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", "Resource not found"),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("internal_error", "An unexpected error occurred"),
        )
