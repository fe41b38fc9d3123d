"""Error taxonomy shared by every stage of the indexer.

Expected configuration problems are reported through ``ConfigurationError``
(or, on the advisory path, as ``ConfigIssue`` values). Everything else is a
runtime fault that is logged where it happens and re-raised to the caller.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CONFIGURATION_INVALID = "CONFIGURATION_INVALID"
    RESOURCE_LOAD_FAILED = "RESOURCE_LOAD_FAILED"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"


class BestBetsError(Exception):
    """Base class for every error raised by the indexer."""

    code: ErrorCode = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, message: str, *, recoverable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }


class ConfigurationError(BestBetsError):
    """A required config field is missing, mistyped or out of range."""

    code = ErrorCode.CONFIGURATION_INVALID


class ResourceLoadError(BestBetsError):
    """A schema or content file could not be read or parsed."""

    code = ErrorCode.RESOURCE_LOAD_FAILED


class InvariantViolationError(BestBetsError):
    """Loaded data broke an indexing invariant (empty match set, duplicates...)."""

    code = ErrorCode.INVARIANT_VIOLATION


class UpstreamServiceError(BestBetsError):
    """The search engine (or its analysis endpoint) failed a request."""

    code = ErrorCode.UPSTREAM_FAILED

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = True,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, recoverable=recoverable)
        self.status_code = status_code
