# app/core/errors.py - Application error hierarchy rendered as the JSON error envelope
from fastapi import status


class AppError(Exception):
    """Base error carrying an HTTP status code and a client-facing message"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class ValidationError(AppError):
    status_code = 422

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message)


def error_body(message: str, status_code: int) -> dict:
    return {"success": False, "error": {"message": message, "status_code": status_code}}


__all__ = [
    "AppError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "error_body",
]
