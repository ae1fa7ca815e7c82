# userhub/core/error_messages.py
from typing import Optional

from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base for every error a route can raise; carries its own status and public message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal Server Error"
    headers: Optional[dict] = None

    def __init__(self, message: Optional[str] = None, internal: Optional[str] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=message or type(self).message,
            headers=type(self).headers,
        )
        # Logged by the exception handler, never sent to the client
        self.internal = internal


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "User not found"


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized"
    headers = {"WWW-Authenticate": "Bearer"}


class ConflictError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Conflict"


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request"


class DownstreamError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal Server Error"


class MailDeliveryError(DownstreamError):
    message = "Error sending the verification email"


class FetchError(DownstreamError):
    message = "Error updating avatar"


class DecodeError(DownstreamError):
    message = "Error updating avatar"


class StorageError(DownstreamError):
    message = "Error updating avatar"


class DatabaseError(DownstreamError):
    message = "Database error"


# ------------------------
# Token issuer errors (not HTTP errors on their own)
# ------------------------
class TokenError(Exception):
    pass


class InvalidTokenError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


# ------------------------
# Store errors, translated to HTTP errors by the routes
# ------------------------
class DuplicateKey(Exception):
    pass
