"""
Custom exceptions and error handling for the Insight Action engine.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for debugging
- Partial success handling for batch persistence
"""

from dataclasses import dataclass, field
from typing import Any


class InsightActionsError(Exception):
    """Base exception for all insight action errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(InsightActionsError):
    """Base class for client-related errors."""

    pass


class LLMError(ClientError):
    """Error from the signal extractor's chat completion endpoint."""

    pass


class LLMRateLimitError(LLMError):
    """Rate limit exceeded on the chat completion endpoint."""

    pass


class LLMResponseError(LLMError):
    """Endpoint refused the request or returned an unusable response."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(InsightActionsError):
    """Base class for pipeline-related errors."""

    pass


class ValidationError(PipelineError):
    """Input validation failed. Surfaced to the caller, never retried."""

    pass


class ActionNotFoundError(ValidationError):
    """Action does not exist or belongs to another user."""

    pass


class MeetingNotFoundError(ValidationError):
    """Meeting does not exist or belongs to another user."""

    pass


class ActionAlreadyApprovedError(ValidationError):
    """Action was already approved; confirmation is at-most-once."""

    pass


class ExtractionError(PipelineError):
    """Signal extraction failed or returned a malformed payload."""

    pass


class ReferentialIntegrityError(PipelineError):
    """A record the side effect depends on is missing."""

    pass


class RepositoryError(PipelineError):
    """Error during persistence operations."""

    pass


# =============================================================================
# Partial Success Handling
# =============================================================================


@dataclass
class ItemResult:
    """Result for a single item in a batch operation."""

    item_id: str | None
    success: bool
    error: InsightActionsError | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PartialSuccessResult:
    """
    Result of a batch operation that may partially succeed.

    Allows processing to continue even when some items fail,
    while preserving error context for debugging.
    """

    succeeded: list[ItemResult] = field(default_factory=list)
    failed: list[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def all_failed(self) -> bool:
        return self.success_count == 0

    @property
    def partial_success(self) -> bool:
        return self.success_count > 0 and self.failure_count > 0

    def add_success(
        self,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a successful item."""
        self.succeeded.append(
            ItemResult(item_id=item_id, success=True, data=data or {})
        )

    def add_failure(
        self,
        error: InsightActionsError,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a failed item."""
        self.failed.append(
            ItemResult(item_id=item_id, success=False, error=error, data=data or {})
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'total_count': self.total_count,
            'all_succeeded': self.all_succeeded,
            'succeeded_ids': [r.item_id for r in self.succeeded if r.item_id],
            'failed_ids': [r.item_id for r in self.failed if r.item_id],
            'errors': [
                {'item_id': r.item_id, 'error': str(r.error)}
                for r in self.failed
                if r.error
            ],
        }


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_llm_error(exc: Exception, context: dict[str, Any] | None = None) -> LLMError:
    """
    Wrap a chat completion exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed LLMError subclass
    """
    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if 'rate limit' in error_str or 'rate_limit' in error_str or '429' in error_str:
        return LLMRateLimitError(
            f"LLM rate limit exceeded: {exc}",
            context=ctx,
        )
    elif 'content policy' in error_str or 'refused' in error_str or 'unexpected' in error_str:
        return LLMResponseError(
            f"LLM returned an unusable response: {exc}",
            context=ctx,
        )
    else:
        return LLMError(
            f"LLM API error: {exc}",
            context=ctx,
        )
