"""
Application exceptions.
Each one is an HTTPException so FastAPI renders it directly; the WebSocket
gateway reads the same code/message out of `detail`.
"""
from typing import Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base class: carries a stable error code and a human message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "ERROR"
    message: str = "Something went wrong."

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message or self.message
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message},
        )


class NotAuthenticated(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    message = "Authentication required."


class SessionExpired(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "SESSION_EXPIRED"
    message = "Session expired or invalid. Please log in again."


class Forbidden(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "You do not have access to this resource."


class AdminRequired(Forbidden):
    code = "ADMIN_REQUIRED"
    message = "Admin access required."


class NotFound(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(message=f"{resource} not found.")


class ValidationFailed(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Invalid request."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message=message)
        self.field = field
        if field:
            self.detail["field"] = field


class StoreUnavailable(AppException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "STORE_ERROR"
    message = "Failed to save changes. Please try again."
