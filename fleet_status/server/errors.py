"""Error kinds and the exception endpoints raise to produce error responses."""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any, Dict


class ErrorKind(str, Enum):
    """Failure categories.

    UNREACHABLE, TIMEOUT and MALFORMED_RESPONSE describe probe outcomes and
    are turned into ProbeResult values inside the probe layer and have no
    HTTP status of their own; an ApiError carrying one answers 500.
    """

    UNREACHABLE = "Unreachable"
    TIMEOUT = "Timeout"
    MALFORMED_RESPONSE = "MalformedResponse"
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"
    UNAVAILABLE = "Unavailable"
    INTERNAL = "Internal"


STATUS_FOR_KIND: Dict[ErrorKind, HTTPStatus] = {
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.INVALID_INPUT: HTTPStatus.BAD_REQUEST,
    ErrorKind.UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
}

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ApiError(Exception):
    """Raised by an endpoint to answer with ``{"error": message}``."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status(self) -> HTTPStatus:
        return STATUS_FOR_KIND.get(self.kind, HTTPStatus.INTERNAL_SERVER_ERROR)

    def to_dict(self) -> Dict[str, Any]:
        if self.kind is ErrorKind.INTERNAL:
            return {"error": INTERNAL_ERROR_MESSAGE}
        return {"error": self.message}


def not_found(message: str) -> ApiError:
    return ApiError(ErrorKind.NOT_FOUND, message)


def invalid_input(message: str) -> ApiError:
    return ApiError(ErrorKind.INVALID_INPUT, message)


def unavailable(message: str) -> ApiError:
    return ApiError(ErrorKind.UNAVAILABLE, message)
