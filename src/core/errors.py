"""Cast exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class CastError(Exception):
    """Base exception for all Cast failures."""


class CastConfigError(CastError):
    """Raised when no usable storage root can be resolved."""


class CastParseError(CastError):
    """Raised for malformed manifest input."""


class CastValidationError(CastError):
    """Raised when a manifest misses or has invalid required fields."""

    def __init__(self, message: str, errors: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.errors = errors


class CastNotFoundError(CastError):
    """Raised for missing blobs, datasets, or auto-detected inputs."""


class CastSourceUnavailableError(CastNotFoundError):
    """Raised when a transformation source cannot be resolved."""


class CastAmbiguousInputError(CastError):
    """Raised when input auto-detection finds more than one candidate."""


class CastBuilderError(CastError):
    """Raised when a transformation builder step fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class CastEmptyOutputError(CastError):
    """Raised when a builder finishes without producing any file."""


class CastStoreError(CastError):
    """Raised for content store and materialization filesystem failures."""


class CastDependencyError(CastError):
    """Raised when an optional runtime dependency is missing."""
