"""Global error handlers.

Every failure leaves the API as ``{"success": false, "message": ..., "error": <code>}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.exceptions import AuthServiceError, InvalidInputError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error_code},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register the auth service exception handlers on the app."""

    @app.exception_handler(AuthServiceError)
    async def auth_service_error_handler(request: Request, exc: AuthServiceError):
        if exc.status_code >= 500:
            logger.error(
                "%s on %s: %s", exc.error_code, request.url.path, exc.message, exc_info=exc
            )
        else:
            logger.info("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = sorted(
            {".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()}
        )
        logger.info("Validation error on %s: %s", request.url.path, fields)
        message = "Invalid or missing fields"
        if fields:
            message = f"{message}: {', '.join(field for field in fields if field)}"
        return _error_response(
            status.HTTP_400_BAD_REQUEST, InvalidInputError.error_code, message
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled %s on %s", type(exc).__name__, request.url.path, exc_info=exc
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal", "An internal error occurred"
        )
