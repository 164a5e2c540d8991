# src/utils/exceptions.py
from fastapi import HTTPException, status
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from logging import Logger


class BaseAPIException(HTTPException):
    # Rendered as the "type" field of error responses
    error_type = "InternalError"

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: Optional[dict] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationException(BaseAPIException):
    """Malformed or missing input, raised before anything is written"""

    error_type = "ValidationError"

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail
        )


class InvalidReferralException(BaseAPIException):
    """Referral code is unknown or does not belong to an external professional"""

    error_type = "InvalidReferralError"

    def __init__(self, detail: str = "Invalid referral code"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedException(BaseAPIException):
    error_type = "AuthError"

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(BaseAPIException):
    error_type = "PermissionError"

    def __init__(self, detail: str = "Operation not authorized"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundException(BaseAPIException):
    error_type = "NotFoundError"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictException(BaseAPIException):
    error_type = "ConflictError"

    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InternalServerException(BaseAPIException):
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail
        )


async def handle_db_exception(
    db: AsyncSession, logger: Logger, operation: str, exception: Exception
):
    """Roll back, log and re-raise as an API error without leaking store details"""
    await db.rollback()

    # API errors raised inside the transaction keep their meaning
    if isinstance(exception, BaseAPIException):
        logger.warning(f"{operation} rejected: {exception.detail}")
        raise exception

    logger.error(f"Database error during {operation}: {str(exception)}", exc_info=True)
    raise InternalServerException(f"Internal server error during {operation}")
