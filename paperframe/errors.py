"""
Error taxonomy shared by the carousel operations and the HTTP layer.
"""

from __future__ import annotations


class PaperframeError(Exception):
    """Base error. ``detail`` is the only text ever shown to a caller."""

    status_code: int = 500
    detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class ValidationError(PaperframeError):
    status_code = 400
    detail = "Invalid request"


class AuthError(PaperframeError):
    status_code = 401
    detail = "Unauthorized"


class NotFoundError(PaperframeError):
    status_code = 404
    detail = "Not found"


class ConflictError(PaperframeError):
    """Concurrent writers kept winning until the retry budget ran out."""

    status_code = 409
    detail = "Carousel was modified concurrently, try again"


class StorageError(PaperframeError):
    """
    A metadata or object store call failed.

    ``operation`` and ``key`` are kept for logs only; the public detail stays
    generic.
    """

    status_code = 500
    detail = "Storage operation failed"

    def __init__(self, operation: str, key: str | None = None):
        self.operation = operation
        self.key = key
        super().__init__()

    def __str__(self) -> str:
        return f"{self.operation} failed for key={self.key!r}"


class CorruptStateError(PaperframeError):
    """A metadata key exists but its value cannot be parsed."""

    status_code = 500
    detail = "Stored carousel state is corrupt"

    def __init__(self, key: str):
        self.key = key
        super().__init__()

    def __str__(self) -> str:
        return f"corrupt value stored under {self.key!r}"


class ConsistencyError(PaperframeError):
    status_code = 500
    detail = "Internal consistency check failed"
