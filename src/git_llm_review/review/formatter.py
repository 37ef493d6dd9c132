"""
Output formatting for review results.

Terminal output uses ANSI colors when enabled; the markdown report
covers a whole run.
"""

import re
from datetime import datetime

from .models import AggregateRunResult, Issue, ReviewResult

RESET = "\033[0m"
BOLD_RED = "\033[1;31m"
BOLD_GREEN = "\033[1;32m"
BOLD_BLUE = "\033[1;34m"
BOLD_MAGENTA = "\033[1;35m"
BOLD_CYAN = "\033[1;36m"
GREEN = "\033[32m"
RED = "\033[31m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"

DEFAULT_ISSUE_TYPE = "Other"

# Lowercase prefix -> display name
ISSUE_TYPES = {
    "bug": "Bug",
    "style": "Style",
    "formatting": "Style",
    "performance": "Performance",
    "perf": "Performance",
    "efficiency": "Performance",
    "security": "Security",
    "maintainability": "Maintainability",
    "maintenance": "Maintainability",
    "readability": "Maintainability",
}

_FENCE_OPEN = re.compile(r"^```[\w+-]*\n")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def issue_type(title: str) -> str:
    """Type prefix of an issue title: "Bug: nil deref" -> "Bug"."""
    prefix, sep, _ = title.partition(":")
    if not sep:
        return DEFAULT_ISSUE_TYPE
    prefix = prefix.strip()
    known = ISSUE_TYPES.get(prefix.lower())
    if known:
        return known
    if prefix[:1].isupper() and len(prefix.split()) == 1:
        return prefix
    return DEFAULT_ISSUE_TYPE


def group_issues(issues: list[Issue]) -> dict[str, list[Issue]]:
    """Issues keyed by type, types sorted alphabetically."""
    groups: dict[str, list[Issue]] = {}
    for issue in issues:
        groups.setdefault(issue_type(issue.title), []).append(issue)
    return dict(sorted(groups.items()))


def _bare_diff(diff: str) -> str:
    """Strip a code fence the model may have put around a diff."""
    diff = _FENCE_OPEN.sub("", diff.strip())
    return _FENCE_CLOSE.sub("", diff)


def format_terminal(result: ReviewResult, path: str, color: bool = True) -> str:
    """Render one file's review for the terminal."""

    def paint(text: str, code: str) -> str:
        return f"{code}{text}{RESET}" if color else text

    lines = [paint(f"File: {path}", BOLD_MAGENTA), paint("-" * 40, MAGENTA)]
    if result.is_empty:
        lines.append(paint("No issues found.", BOLD_GREEN))
        return "\n".join(lines) + "\n"

    lines.extend([paint(f"Found {result.issue_count} issues", BOLD_BLUE), ""])
    for group, issues in group_issues(result.issues).items():
        lines.append(paint(f"{group} Issues", BOLD_BLUE))
        for issue in issues:
            lines.append(paint(issue.title, BOLD_CYAN))
            lines.append(issue.explanation)
            if issue.file and issue.file != path:
                lines.append(paint(f"  ({issue.file})", CYAN))
            lines.append("")

    if result.diffs:
        lines.append(paint("Consolidated Changes", BOLD_BLUE))
        for file_diff in result.diffs:
            lines.append(paint(f"File: {file_diff.file}", BOLD_MAGENTA))
            for diff_line in _bare_diff(file_diff.diff).splitlines():
                if diff_line.startswith("+") and not diff_line.startswith("+++"):
                    lines.append(paint(diff_line, GREEN))
                elif diff_line.startswith("-") and not diff_line.startswith("---"):
                    lines.append(paint(diff_line, RED))
                else:
                    lines.append(diff_line)
            lines.append("")

    return "\n".join(lines) + "\n"


def format_terminal_error(path: str, error: BaseException, color: bool = True) -> str:
    text = f"Error reviewing {path}: {error}"
    return f"{BOLD_RED}{text}{RESET}\n" if color else text + "\n"


def format_markdown(
    aggregate: AggregateRunResult,
    repo_name: str,
    generated_at: datetime | None = None,
) -> str:
    """Render a whole run as a markdown report."""
    generated_at = generated_at or datetime.now()
    stats = aggregate.stats
    parts = [
        "# Code Review Report",
        "",
        f"Repository: {repo_name}",
        "",
        f"Generated on: {generated_at.strftime('%a, %d %b %Y %H:%M:%S')}",
        "",
        f"Files reviewed: {stats.succeeded} of {stats.total_files}, "
        f"issues found: {stats.total_issues}",
        "",
    ]

    for path in sorted(aggregate.results_by_path):
        result = aggregate.results_by_path[path]
        parts.extend([f"## File: {path}", ""])
        if result.is_empty:
            parts.extend(["No issues found in this file.", ""])
            continue

        for group, issues in group_issues(result.issues).items():
            parts.extend([f"### {group} Issues", ""])
            for issue in issues:
                parts.extend([f"#### {issue.title}", "", issue.explanation, ""])
                if issue.diff:
                    parts.extend(["```diff", _bare_diff(issue.diff), "```", ""])

        for file_diff in result.diffs:
            parts.extend([f"### Suggested changes: {file_diff.file}", ""])
            parts.extend(["```diff", _bare_diff(file_diff.diff), "```", ""])

    if aggregate.errors_by_path:
        parts.extend(["## Errors", ""])
        for path in sorted(aggregate.errors_by_path):
            parts.append(f"- `{path}`: {aggregate.errors_by_path[path]}")
        parts.append("")

    return "\n".join(parts)
