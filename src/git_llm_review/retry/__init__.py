"""
Retry Module

Backoff/jitter executor and the LLM retryability classifier.
"""

from .executor import SleepFunc, apply_jitter, backoff_delays, next_delay, retry_async
from .llm import (
    LLMErrorKind,
    classify_llm_error,
    do_llm_request,
    is_llm_error_retryable,
    llm_retry_policy,
)
from .policy import RetryPolicy, matches_retryable_substring

__all__ = [
    "RetryPolicy",
    "matches_retryable_substring",
    "retry_async",
    "SleepFunc",
    "next_delay",
    "apply_jitter",
    "backoff_delays",
    "LLMErrorKind",
    "classify_llm_error",
    "is_llm_error_retryable",
    "llm_retry_policy",
    "do_llm_request",
]
