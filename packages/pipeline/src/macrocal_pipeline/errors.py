"""
errors.py — Exception hierarchy for the ingestion pipeline.

Row-level errors (ParseError, ValidationError, ConflictError) are collected
as values and counted; NetworkError fails a single source and triggers
fallback; AllSourcesFailedError is the only run-fatal condition.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline errors."""


class NetworkError(PipelineError):
    """Fetch timeout, non-2xx status, or transport failure."""

    def __init__(
        self,
        url: str,
        message: str,
        *,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code
        self.transient = transient


class ParseError(PipelineError):
    """A single source row could not be read."""

    def __init__(self, message: str, *, row_index: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.row_index = row_index

    def __str__(self) -> str:
        if self.row_index is None:
            return self.message
        return f"row {self.row_index}: {self.message}"


class ValidationError(ParseError):
    """A parsed or normalized record is missing a required field."""


class ConflictError(PipelineError):
    """The store rejected a write for a reason other than the duplicate key."""


class MergeError(PipelineError):
    """A duplicate-indicator group could not be merged."""

    def __init__(self, group_key: tuple[str, str], message: str) -> None:
        super().__init__(f"{group_key[0]}:{group_key[1]}: {message}")
        self.group_key = group_key


class AllSourcesFailedError(PipelineError):
    """Every configured source failed to produce a result."""

    def __init__(self, failures: dict[str, str]) -> None:
        detail = "; ".join(f"{name}: {msg}" for name, msg in failures.items())
        super().__init__(f"All sources failed: {detail}" if detail else "No sources to run")
        self.failures = failures
