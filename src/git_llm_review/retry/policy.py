"""
Retry policy.

An immutable description of how often and how far apart to retry, and
which errors are worth retrying at all.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from git_llm_review.config import RetrySettings

RetryPredicate = Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule plus retryability rule.

    Delays are in seconds. When ``is_retryable`` is set it takes precedence
    over ``retryable_errors``.
    """

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.2
    retryable_errors: tuple[str, ...] = ()
    is_retryable: RetryPredicate | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError("jitter_factor must be between 0.0 and 1.0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def classify(self, error: BaseException) -> bool:
        """Whether ``error`` should be retried under this policy."""
        if self.is_retryable is not None:
            return self.is_retryable(error)
        return matches_retryable_substring(error, self.retryable_errors)

    def with_predicate(self, predicate: RetryPredicate) -> RetryPolicy:
        return replace(self, is_retryable=predicate)

    @classmethod
    def disabled(cls) -> RetryPolicy:
        """A policy that makes exactly one attempt."""
        return cls(max_retries=0, initial_delay=0.0, max_delay=0.0, jitter_factor=0.0)

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        """Build the run's policy from configuration (delays configured in ms)."""
        if not settings.enabled:
            return cls.disabled()
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.initial_delay_ms / 1000.0,
            max_delay=settings.max_delay_ms / 1000.0,
            backoff_factor=settings.backoff_factor,
            jitter_factor=settings.jitter_factor,
            retryable_errors=tuple(settings.retryable_errors),
        )


def matches_retryable_substring(error: BaseException, substrings: tuple[str, ...]) -> bool:
    """Case-insensitive check of the error message against known transient texts."""
    message = str(error).lower()
    return any(s.lower() in message for s in substrings if s)
