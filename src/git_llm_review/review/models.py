"""
Data models for the review pipeline.

Defines the types that flow between the repository, the task runner,
the retry layer and the response parser.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_ISSUE_TITLE = "Unnamed Issue"
DEFAULT_ISSUE_EXPLANATION = "No explanation provided."
DEFAULT_ISSUE_FILE = "General"


class ChangeScope(str, Enum):
    """Which side of the index a file's changes come from."""

    STAGED = "staged"  # git diff --cached
    UNSTAGED = "unstaged"  # git diff
    UNIFIED = "unified"  # staged + unstaged against HEAD


class ChangeStatus(str, Enum):
    """Git change status of a file."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class FileTask:
    """A single file to review. Created once per run and never mutated."""

    path: str
    change_status: str = ChangeStatus.MODIFIED.value
    change_scope: ChangeScope = ChangeScope.STAGED

    @property
    def is_deleted(self) -> bool:
        """True when every side of the change deletes the file."""
        parts = self.change_status.split("+")
        return all(p == ChangeStatus.DELETED.value for p in parts)


@dataclass
class Issue:
    """A single issue reported by the model."""

    title: str = ""
    explanation: str = ""
    file: str = ""
    diff: str = ""  # Legacy per-issue diff

    def normalized(self) -> "Issue":
        """Return a copy with blank fields replaced by their defaults."""
        return Issue(
            title=self.title.strip() or DEFAULT_ISSUE_TITLE,
            explanation=self.explanation.strip() or DEFAULT_ISSUE_EXPLANATION,
            file=self.file.strip() or DEFAULT_ISSUE_FILE,
            diff=self.diff,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data: dict[str, Any] = {
            "title": self.title,
            "explanation": self.explanation,
            "file": self.file,
        }
        if self.diff:
            data["diff"] = self.diff
        return data


@dataclass
class FileDiff:
    """A consolidated suggested diff for one file."""

    file: str
    diff: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {"file": self.file, "diff": self.diff}


@dataclass
class ReviewResult:
    """Structured review of one file."""

    issues: list[Issue] = field(default_factory=list)
    diffs: list[FileDiff] = field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    @property
    def diff_count(self) -> int:
        return len(self.diffs)

    @property
    def is_empty(self) -> bool:
        """True when the model reported neither issues nor diffs."""
        return not self.issues and not self.diffs

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "issues": [i.to_dict() for i in self.issues],
            "diffs": [d.to_dict() for d in self.diffs],
        }

    def __str__(self) -> str:
        if self.is_empty:
            return "No issues found."

        lines = [f"Found {len(self.issues)} issues:", ""]
        for n, issue in enumerate(self.issues, start=1):
            lines.append(f"Issue {n}: {issue.title}")
            lines.append(f"Explanation: {issue.explanation}")
            if issue.diff:
                lines.extend(["Suggested changes:", "```diff", issue.diff, "```"])
            lines.append("")

        if self.diffs:
            lines.extend(["", "Consolidated diffs by file:", "=" * 40, ""])
            for file_diff in self.diffs:
                lines.append(f"File: {file_diff.file}")
                lines.append("-" * 40)
                lines.extend(["```diff", file_diff.diff, "```", ""])

        return "\n".join(lines)


@dataclass
class RunStats:
    """Counters for a finished run."""

    total_files: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    total_issues: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "total_issues": self.total_issues,
            "duration_ms": self.duration_ms,
        }


@dataclass
class AggregateRunResult:
    """
    Outcome of a whole run, keyed by file path.

    A path appears in at most one of the two maps. Both maps are only
    read after every task has finished.
    """

    results_by_path: dict[str, ReviewResult] = field(default_factory=dict)
    errors_by_path: dict[str, BaseException] = field(default_factory=dict)
    stats: RunStats = field(default_factory=RunStats)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors_by_path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "results": {
                path: result.to_dict() for path, result in self.results_by_path.items()
            },
            "errors": {path: str(err) for path, err in self.errors_by_path.items()},
            "stats": self.stats.to_dict(),
        }
