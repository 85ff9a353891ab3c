"""Error types and structured error bodies."""

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any


class FacilityStatusError(Exception):
    """Base class for facility status errors."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class NotFoundError(FacilityStatusError):
    """A requested id or href does not resolve to an entity of the expected kind."""

    status = HTTPStatus.NOT_FOUND


class InvalidArgumentError(FacilityStatusError, ValueError):
    """A malformed href, date or query parameter."""

    status = HTTPStatus.BAD_REQUEST


def error_body(status: HTTPStatus, detail: str, instance: str | None = None) -> dict[str, Any]:
    """Build a problem-details style error body."""
    body: dict[str, Any] = {
        "type": "about:blank",
        "status": status.value,
        "title": status.phrase,
        "detail": detail,
    }
    if instance is not None:
        body["instance"] = instance
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    return body


def not_found_error(location: str) -> dict[str, Any]:
    return error_body(HTTPStatus.NOT_FOUND, f"The resource {location} was not found.", location)


def bad_request_error(location: str, reason: str) -> dict[str, Any]:
    return error_body(HTTPStatus.BAD_REQUEST, f"The request is invalid: {reason}", location)


def internal_server_error(location: str, exc: BaseException) -> dict[str, Any]:
    return error_body(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc) or exc.__class__.__name__, location)
