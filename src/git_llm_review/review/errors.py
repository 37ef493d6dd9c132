"""Errors raised by the review pipeline."""

from .models import ReviewResult


class ReviewError(Exception):
    """Base class for review pipeline failures."""


class ReviewCancelledError(ReviewError):
    """The run deadline fired before this file's review finished."""

    def __init__(self, path: str, stage: str = "review"):
        self.path = path
        self.stage = stage
        super().__init__(f"review of {path} cancelled: deadline exceeded during {stage}")


class ResponseParseError(ReviewError):
    """No parser stage recovered any issue or diff from the response.

    Carries the empty result so callers can still treat it as "no issues".
    """

    def __init__(self, message: str, result: ReviewResult | None = None):
        super().__init__(message)
        self.result = result if result is not None else ReviewResult()


class GitError(ReviewError):
    """A git command failed."""
