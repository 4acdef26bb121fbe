import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base for every failure reported as a ``{"success": false}`` envelope.

    Business-rule failures keep HTTP 200 so clients branch on ``success``;
    only malformed input (400), missing/invalid credentials (401) and
    gateway trouble use a non-2xx status.
    """

    code = "error"
    status_code = 200

    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    code = "validation_error"
    status_code = 400


class AuthError(AppError):
    code = "auth_error"
    status_code = 401


class ForbiddenError(AppError):
    code = "forbidden"


class NotFoundError(AppError):
    code = "not_found"


class ConflictError(AppError):
    code = "conflict"


class SignatureMismatchError(AppError):
    code = "signature_mismatch"


class ExternalServiceError(AppError):
    code = "payment_gateway_error"
    status_code = 502


class GatewayConfigurationError(ExternalServiceError):
    code = "configuration_error"
    status_code = 500


def error_body(exc: AppError) -> dict:
    body = {"success": False, "error": exc.message, "code": exc.code}
    if exc.details:
        body["details"] = exc.details
    return body


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


def field_details(errors) -> list[dict]:
    """Flatten pydantic error dicts into the envelope's {field, message} list."""
    details = []
    for err in errors:
        msg = err.get("msg") or "Invalid value"
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        details.append({"field": _field_name(err.get("loc") or ()), "message": msg})
    return details


async def request_validation_handler(request: Request, exc: RequestValidationError):
    wrapped = ValidationError("Invalid request", details=field_details(exc.errors()))
    return JSONResponse(status_code=wrapped.status_code, content=error_body(wrapped))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "code": "internal_error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
