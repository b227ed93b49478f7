"""Error types for stepwise.

Hierarchy:
    StepwiseError
        RegistryError
            RegistryFetchError    remote descriptor fetch failed (sync)
            DescriptorError       descriptor cannot be parsed at all
        BackendError
            TransportError        network failure or timeout
            ApiError              backend answered with a non-2xx status
                SessionExpiredError   backend answered 401

Lookups by unknown identifier never raise; they return None/False.
"""

from __future__ import annotations


class StepwiseError(Exception):
    """Base error for all stepwise operations."""


class RegistryError(StepwiseError):
    """Base error for node registry operations."""


class RegistryFetchError(RegistryError):
    """Raised when sync() cannot fetch descriptors from the remote service.

    The registry keeps its previous contents when this is raised.
    """


class DescriptorError(RegistryError):
    """Raised when a descriptor is not usable at all.

    Only structural problems raise this (not a JSON object, missing id).
    Missing or malformed schemas compile to a permissive definition instead.
    """


class BackendError(StepwiseError):
    """Base error for calls to the execution backend."""


class TransportError(BackendError):
    """Network-level failure talking to the backend (connection, timeout)."""


class ApiError(BackendError):
    """Backend returned an error response."""

    def __init__(self, message: str, status_code: int, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionExpiredError(ApiError):
    """Backend rejected the credentials (HTTP 401)."""
