# src/utils/exception_handler.py
from fastapi import FastAPI, Request, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from .logger import setup_logger
from .exceptions import BaseAPIException

logger = setup_logger("EXCEPTION_HANDLER")

# Bare HTTPExceptions (framework 404/405, auth scheme errors) share the taxonomy
STATUS_ERROR_TYPES = {
    status.HTTP_400_BAD_REQUEST: "ValidationError",
    status.HTTP_401_UNAUTHORIZED: "AuthError",
    status.HTTP_403_FORBIDDEN: "PermissionError",
    status.HTTP_404_NOT_FOUND: "NotFoundError",
    status.HTTP_409_CONFLICT: "ConflictError",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "ValidationError",
}


def error_body(message, error_type: str, status_code: int, **extra) -> dict:
    """Every error leaves the API as {"message", "type", "status"}"""
    body = {"message": message, "type": error_type, "status": status_code}
    body.update(extra)
    return body


def setup_exception_handlers(app: FastAPI):
    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(f"{exc.error_type} on {request.url.path}: {exc.detail}")
        else:
            logger.warning(f"{exc.error_type} on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail, exc.error_type, exc.status_code),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        logger.info(f"Rejected payload on {request.url.path}: {len(errors)} error(s)")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body(
                "Invalid request",
                "ValidationError",
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                errors=errors,
            ),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=error_body(
                "Too many requests - please try again later",
                "RateLimitExceeded",
                status.HTTP_429_TOO_MANY_REQUESTS,
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        error_type = STATUS_ERROR_TYPES.get(exc.status_code, "InternalError")
        detail = exc.detail or error_type

        if exc.status_code == status.HTTP_404_NOT_FOUND:
            logger.info(f"Not found: {request.url.path}")
        else:
            logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(detail, error_type, exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        # Raw store errors are logged, never echoed
        logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)

        if isinstance(exc, IntegrityError):
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=error_body(
                    "Request conflicts with existing data",
                    "ConflictError",
                    status.HTTP_409_CONFLICT,
                ),
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "Database operation failed",
                "InternalError",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "Internal server error",
                "InternalError",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ),
        )
