"""
Error vocabulary for the LegalAI API.

Services raise these; `register_error_handlers` turns them into small JSON
bodies of the shape ``{"error": "<message>"}`` so the frontend never has to
parse framework-specific structures.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from legalai.utils.logger import logger


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class InvalidOrExpired(AppError):
    status_code = 400
    default_message = "Invalid or expired code"


class NoActiveRequest(AppError):
    status_code = 400
    default_message = "No active password reset request. Please start again."


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Invalid token"


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists"


class QuotaExceeded(AppError):
    """Rate limit hit. `wait_time` is expressed in `unit` ("minutes" or "hours")."""

    status_code = 429
    default_message = "Upload limit reached"

    def __init__(self, wait_time: int, unit: str, limit: int, message: Optional[str] = None):
        self.wait_time = wait_time
        self.unit = unit
        self.limit = limit
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "waitTime": self.wait_time, "waitUnit": self.unit}


class UpstreamFailure(AppError):
    """A collaborator (store, analysis engine, mail server) failed.

    Only `message` reaches the client; the cause stays in the server log.
    """

    status_code = 502
    default_message = "An upstream service failed. Please try again later."


def register_error_handlers(app: FastAPI) -> None:
    """Register the JSON error handlers on the application."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if isinstance(exc, UpstreamFailure):
            logger.error(f"{request.method} {request.url.path} upstream failure: {exc.__cause__ or exc}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        logger.warning(f"Request validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse({"error": "Invalid request"}, status_code=400)
