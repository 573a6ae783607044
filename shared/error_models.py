"""
Standard error models for the client core.
Every failure surfaced by the request layer is one of the ApiError subclasses below.
"""
from typing import Optional, Any, Dict
from pydantic import BaseModel, ConfigDict
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes used across the client."""
    # Authentication & Authorization
    AUTH_REQUIRED = "AUTH_REQUIRED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    OPERATION_IN_PROGRESS = "OPERATION_IN_PROGRESS"

    # Resource
    NOT_FOUND = "NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    REQUEST_REJECTED = "REQUEST_REJECTED"

    # Transport & Server
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    CANCELLED = "CANCELLED"


class ServerErrorBody(BaseModel):
    """
    Error body returned by the remote service.
    The service is inconsistent about the key it uses, so all known ones are accepted.
    """
    model_config = ConfigDict(extra="allow")

    error: Optional[Any] = None
    message: Optional[Any] = None
    detail: Optional[Any] = None

    @classmethod
    def extract_message(cls, body: Any) -> Optional[str]:
        """Return the server's message from a parsed body, or None."""
        if isinstance(body, dict):
            parsed = cls.model_validate(body)
            for candidate in (parsed.error, parsed.message, parsed.detail):
                if isinstance(candidate, str) and candidate.strip():
                    return candidate
                if isinstance(candidate, dict):
                    nested = candidate.get("message")
                    if isinstance(nested, str) and nested.strip():
                        return nested
            return None
        if isinstance(body, str) and body.strip():
            return body.strip()
        return None


class ApiError(Exception):
    """Base class for every classified client error."""
    error_code: ErrorCode = ErrorCode.REQUEST_REJECTED
    default_message: str = "Request failed."
    transient: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.detail = detail or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for UI layers and error tracking."""
        return {
            "error": True,
            "error_code": self.error_code.value,
            "message": self.message,
            "status_code": self.status_code,
            "detail": self.detail,
        }


# Transient: retried with bounded backoff

class NetworkError(ApiError):
    error_code = ErrorCode.NETWORK_ERROR
    default_message = "Network error: Please check your internet connection"
    transient = True


class Timeout(ApiError):
    error_code = ErrorCode.TIMEOUT
    default_message = "The request timed out. Please try again."
    transient = True


class ServerUnavailable(ApiError):
    error_code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Server error. Please try again later."
    transient = True


# Surfaced immediately, never retried

class AuthRequired(ApiError):
    error_code = ErrorCode.AUTH_REQUIRED
    default_message = "You need to log in to continue."


class AuthExpired(ApiError):
    error_code = ErrorCode.TOKEN_EXPIRED
    default_message = "Authentication failed. Please log in again."


class Forbidden(ApiError):
    error_code = ErrorCode.FORBIDDEN
    default_message = "Access denied. You don't have permission to perform this action."


class NotFound(ApiError):
    error_code = ErrorCode.NOT_FOUND
    default_message = "Resource not found."


class Conflict(ApiError):
    error_code = ErrorCode.RESOURCE_CONFLICT
    default_message = "Conflict occurred. Please check your data."


class RequestRejected(ApiError):
    error_code = ErrorCode.REQUEST_REJECTED


class RequestCancelled(ApiError):
    error_code = ErrorCode.CANCELLED
    default_message = "The request was cancelled."


# Client-side: raised before any request is made

class ValidationError(ApiError):
    error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid input provided."


class OperationInProgress(ApiError):
    error_code = ErrorCode.OPERATION_IN_PROGRESS
    default_message = "An action is already in progress for this notification."


def error_for_status(status_code: int, message: Optional[str] = None) -> ApiError:
    """
    Map a non-2xx HTTP status code to its classified error.

    Args:
        status_code: HTTP status code of the response
        message: Server message extracted from the body, passed through verbatim

    Returns:
        The ApiError instance to raise (401 handling side effects live in the executor)
    """
    error_class_map = {
        401: AuthExpired,
        403: Forbidden,
        404: NotFound,
        409: Conflict,
    }
    if status_code >= 500:
        return ServerUnavailable(message, status_code=status_code)
    error_class = error_class_map.get(status_code)
    if error_class is not None:
        return error_class(message, status_code=status_code)
    return RequestRejected(message or f"HTTP {status_code}", status_code=status_code)
