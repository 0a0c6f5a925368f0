import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FieldError(BaseModel):
    field: str
    message: str


class ReviewServiceError(Exception):
    """Base class for every error the API turns into an envelope."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReviewValidationError(ReviewServiceError):
    status_code = 400

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        super().__init__("; ".join(error.message for error in errors) or "Validation failed")


class ReviewNotFoundError(ReviewServiceError):
    status_code = 404


class UpstreamError(ReviewServiceError):
    """Failure talking to the upstream content store."""


class UpstreamAuthenticationError(UpstreamError):
    pass


class UpstreamPermissionError(UpstreamError):
    pass


class UpstreamNotFoundError(UpstreamError):
    pass


class UpstreamValidationError(UpstreamError):
    pass


class UpstreamTransportError(UpstreamError):
    pass


class UnknownUpstreamError(UpstreamError):
    pass


class CrmError(Exception):
    """Raised by the CRM side-channel; only ever logged."""


def _envelope(request: Request, status_code: int, message: str, exc: Exception, **extra) -> JSONResponse:
    body = {"success": False, "message": message, **extra}
    if status_code >= 500:
        if request.app.state.settings.DEBUG:
            body["error"] = {"type": type(exc).__name__, "message": str(exc)}
            if not isinstance(exc, ReviewServiceError):
                body["error"]["trace"] = traceback.format_exception(exc)
        else:
            body["error"] = "Internal server error"
    return JSONResponse(status_code=status_code, content=body)


async def review_service_error_handler(request: Request, exc: ReviewServiceError) -> JSONResponse:
    if isinstance(exc, ReviewValidationError):
        return _envelope(
            request, exc.status_code, exc.message, exc, errors=[error.model_dump() for error in exc.errors]
        )
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _envelope(request, exc.status_code, exc.message, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = "Route not found"
    elif exc.status_code == 405:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    return _envelope(request, exc.status_code, message, exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": str(error["loc"][-1]) if error.get("loc") else "body", "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return _envelope(request, 400, "Invalid request", exc, errors=errors)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return _envelope(request, 500, "Internal server error", exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReviewServiceError, review_service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
