"""Error taxonomy shared by the enqueue path, the worker and the client.

Errors raised before a job exists (authorization, validation) surface
synchronously to the submitting caller. Errors raised after a job exists are
recorded on the job row and only become visible through the status endpoint.

HTTP mapping (see `classlens.api.app`):

=====================  ======
Exception              Status
=====================  ======
AuthorizationError     403
ValidationError        422
NotFoundError          404
anything else          500
=====================  ======
"""

from __future__ import annotations


class ClassLensError(Exception):
    """Base class for all application errors."""


class AuthorizationError(ClassLensError):
    """The caller has no rights over the referenced class."""


class ValidationError(ClassLensError, ValueError):
    """The analysis request is malformed or incomplete for its kind."""


class NotFoundError(ClassLensError, LookupError):
    """No job with that id exists in the caller's scope."""


class ConfigurationError(ClassLensError, RuntimeError):
    """A required setting (typically a provider API key) is absent."""


class WorkerFailure(ClassLensError, RuntimeError):
    """The worker produced something it cannot persist as a result."""


class TransportFailure(ClassLensError):
    """The client could not obtain a usable response from the API."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ClassLensError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "WorkerFailure",
    "TransportFailure",
]
