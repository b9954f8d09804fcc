"""Domain errors raised by the service layer and mapped to HTTP responses."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BadRequestError(DomainError):
    """The request is well-formed but not allowed in the current state."""

    status_code = 400


class ForbiddenError(DomainError):
    """The acting user is not a participant of the resource."""

    status_code = 403


class NotFoundError(DomainError):
    """The referenced resource does not exist."""

    status_code = 404


class ConflictError(DomainError):
    """The resource already exists."""

    status_code = 409
