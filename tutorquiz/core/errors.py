"""
Typed service failures and their HTTP rendering.

Services raise these; the HTTP layer only translates them into responses.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tutorquiz.core.config import settings

logger = logging.getLogger(__name__)


class QuizServiceError(Exception):
    """Base class for expected, request-scoped failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "service_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(QuizServiceError):
    """Quiz, question or attempt is missing, soft-deleted or not visible."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class Forbidden(QuizServiceError):
    """Requester is authenticated but does not own the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"


class ValidationError(QuizServiceError):
    """Structural violation: answer invariants, field bounds."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"


class InvalidState(QuizServiceError):
    """Attempt is not in the state the operation requires."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_state"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuizServiceError)
    async def service_error_handler(request: Request, exc: QuizServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "message": exc.message,
                    "type": exc.error_type,
                    "status_code": exc.status_code,
                }
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": exc.detail, "type": "http_error", "status_code": exc.status_code}},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": {"message": "Validation error", "type": "validation_error", "details": jsonable_encoder(exc.errors())}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"message": message, "type": "internal_error"}},
        )
