from enum import Enum
from typing import List, Union

from fastapi import status


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    CONFLICT = "conflict"
    DEPENDENCY = "dependency"
    AUTHENTICATION = "authentication"


class ServiceError(Exception):
    """Base exception for service layer errors.

    Business-rule failures all surface as HTTP 400; ``kind`` tells them apart
    for logging and tests without changing the wire format.
    """

    def __init__(
        self,
        message: Union[str, List[str]],
        kind: ErrorKind = ErrorKind.VALIDATION,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ) -> None:
        super().__init__(message if isinstance(message, str) else "; ".join(message))
        self.message = message
        self.kind = kind
        self.status_code = status_code


class AuthenticationError(ServiceError):
    """Missing, malformed, expired or mis-signed token."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, ErrorKind.AUTHENTICATION, status.HTTP_401_UNAUTHORIZED)


def not_found(message: str) -> ServiceError:
    return ServiceError(message, ErrorKind.NOT_FOUND)


def access_denied(message: str) -> ServiceError:
    return ServiceError(message, ErrorKind.ACCESS_DENIED)


def conflict(message: str) -> ServiceError:
    return ServiceError(message, ErrorKind.CONFLICT)
