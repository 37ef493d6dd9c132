"""
Review Module

Per-file LLM review: repository access, prompt rendering, the concurrent
runner, the response parser and output formatting.
"""

from .errors import GitError, ResponseParseError, ReviewCancelledError, ReviewError
from .formatter import format_markdown, format_terminal, format_terminal_error
from .git_repo import GitRepository
from .models import (
    AggregateRunResult,
    ChangeScope,
    ChangeStatus,
    FileDiff,
    FileTask,
    Issue,
    ReviewResult,
    RunStats,
)
from .parser import parse_json_review, parse_review
from .pipeline import ReviewPipeline
from .progress import ConsoleProgress, NullProgress, ProgressSink
from .prompt import render_review_prompt, truncate_prompt
from .runner import ConcurrentReviewRunner

__all__ = [
    "FileTask",
    "ChangeScope",
    "ChangeStatus",
    "Issue",
    "FileDiff",
    "ReviewResult",
    "RunStats",
    "AggregateRunResult",
    "ReviewError",
    "ReviewCancelledError",
    "ResponseParseError",
    "GitError",
    "GitRepository",
    "parse_review",
    "parse_json_review",
    "render_review_prompt",
    "truncate_prompt",
    "ConcurrentReviewRunner",
    "ReviewPipeline",
    "ProgressSink",
    "ConsoleProgress",
    "NullProgress",
    "format_terminal",
    "format_terminal_error",
    "format_markdown",
]
