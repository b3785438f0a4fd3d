"""Error taxonomy for AssetUnify operations.

Every error is scoped to a single operation; none is fatal to the process.
"""

from __future__ import annotations


class AssetUnifyError(Exception):
    """Base class for errors surfaced to callers."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AssetUnifyError):
    """Missing or malformed required input (title, field name, selector name, ...)."""

    status_code = 400


class NotFoundError(AssetUnifyError):
    """Unknown group, selector, manipulator, source or raw table."""

    status_code = 404


class ConflictError(AssetUnifyError):
    """Input clashes with existing data (duplicate headers or row keys)."""

    status_code = 409


class IntegrityWarning(UserWarning):
    """Recoverable data problem; logged, never raised out of the core.

    Examples: a raw row whose table was deleted, an invalid regex pattern.
    """
