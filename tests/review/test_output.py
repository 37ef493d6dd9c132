"""
Tests for prompt rendering, result formatting and progress reporting.
"""

import io
from datetime import datetime

import pytest

from git_llm_review.review.errors import ReviewCancelledError
from git_llm_review.review.formatter import (
    format_markdown,
    format_terminal,
    format_terminal_error,
    group_issues,
    issue_type,
)
from git_llm_review.review.models import (
    AggregateRunResult,
    ChangeScope,
    FileDiff,
    FileTask,
    Issue,
    ReviewResult,
    RunStats,
)
from git_llm_review.review.progress import ConsoleProgress
from git_llm_review.review.prompt import (
    TRUNCATION_MARKER,
    language_for,
    render_review_prompt,
    truncate_prompt,
)


SAMPLE_RESULT = ReviewResult(
    issues=[
        Issue(title="Bug: nil map", explanation="m is nil", file="main.go"),
        Issue(title="Style: naming", explanation="use camelCase", file="main.go"),
        Issue(title="Bug: leak", explanation="file never closed", file="main.go"),
    ],
    diffs=[FileDiff(file="main.go", diff="```diff\n-old\n+new\n```")],
)


# =============================================================================
# MODELS
# =============================================================================

class TestModels:
    """Value types."""

    def test_issue_normalized(self):
        issue = Issue(title="  Bug: x ", explanation="", file="").normalized()

        assert issue.title == "Bug: x"
        assert issue.explanation == "No explanation provided."
        assert issue.file == "General"

    def test_file_task_is_frozen(self):
        task = FileTask(path="a.go")

        with pytest.raises(AttributeError):
            task.path = "b.go"

    @pytest.mark.parametrize("status,deleted", [
        ("deleted", True),
        ("deleted+deleted", True),
        ("modified+deleted", False),
        ("added", False),
    ])
    def test_is_deleted(self, status: str, deleted: bool):
        assert FileTask(path="a", change_status=status).is_deleted is deleted

    def test_result_str(self):
        assert str(ReviewResult()) == "No issues found."
        text = str(SAMPLE_RESULT)
        assert text.startswith("Found 3 issues:")
        assert "Consolidated diffs by file:" in text

    def test_aggregate_to_dict(self):
        aggregate = AggregateRunResult(
            results_by_path={"a.go": ReviewResult()},
            errors_by_path={"b.go": RuntimeError("boom")},
            stats=RunStats(total_files=2, succeeded=1, failed=1),
        )

        data = aggregate.to_dict()

        assert data["errors"] == {"b.go": "boom"}
        assert data["results"]["a.go"] == {"issues": [], "diffs": []}
        assert data["stats"]["failed"] == 1


# =============================================================================
# PROMPT
# =============================================================================

class TestPrompt:
    """Prompt templates."""

    @pytest.mark.parametrize("path,language", [
        ("cmd/main.go", "go"),
        ("lib/x.PY", "python"),
        ("proto/api.proto", "protobuf"),
        ("Makefile", ""),
    ])
    def test_language_for(self, path: str, language: str):
        assert language_for(path) == language

    def test_openai_prompt(self):
        prompt = render_review_prompt(
            FileTask(path="svc/main.go"), "+fmt.Println()\n", "package main\n", "openai"
        )

        assert "File: svc/main.go" in prompt
        assert "```go\npackage main\n```" in prompt
        assert "```diff\n+fmt.Println()\n```" in prompt
        assert '"issues"' in prompt and '"diffs"' in prompt
        assert not prompt.startswith("Human:")

    def test_anthropic_prompt(self):
        prompt = render_review_prompt(FileTask(path="a.py"), "+x", "x = 1", "Anthropic")

        assert prompt.startswith("Human:")
        assert '<file path="a.py">' in prompt

    def test_unknown_provider_uses_openai_flavor(self):
        task = FileTask(path="a.py")

        assert render_review_prompt(task, "+x", "x", "local") == render_review_prompt(
            task, "+x", "x", "openai"
        )

    def test_deleted_file_note(self):
        task = FileTask(path="old.go", change_status="deleted", change_scope=ChangeScope.UNIFIED)

        prompt = render_review_prompt(task, "-package old", "", "openai")

        assert "File deleted" in prompt

    def test_braces_in_content_are_literal(self):
        prompt = render_review_prompt(FileTask(path="a.go"), "+{x}", "m := map[string]int{}", "openai")

        assert "map[string]int{}" in prompt
        assert "+{x}" in prompt

    def test_truncate_short_prompt_unchanged(self):
        assert truncate_prompt("short", 100) == "short"
        assert truncate_prompt("x" * 1000, 0) == "x" * 1000

    def test_truncate_keeps_head_and_tail(self):
        prompt = "HEAD" + "m" * 5000 + "TAIL"

        truncated = truncate_prompt(prompt, 100)

        assert len(truncated) <= 400
        assert truncated.startswith("HEAD")
        assert truncated.endswith("TAIL")
        assert TRUNCATION_MARKER in truncated


# =============================================================================
# FORMATTING
# =============================================================================

class TestFormatter:
    """Terminal and markdown rendering."""

    @pytest.mark.parametrize("title,expected", [
        ("Bug: nil deref", "Bug"),
        ("bug: lowercase", "Bug"),
        ("Perf: slow", "Performance"),
        ("Naming: odd", "Naming"),
        ("just a sentence: with colon", "Other"),
        ("No prefix", "Other"),
    ])
    def test_issue_type(self, title: str, expected: str):
        assert issue_type(title) == expected

    def test_group_issues_sorted(self):
        groups = group_issues(SAMPLE_RESULT.issues)

        assert list(groups) == ["Bug", "Style"]
        assert [i.title for i in groups["Bug"]] == ["Bug: nil map", "Bug: leak"]

    def test_terminal_without_color(self):
        text = format_terminal(SAMPLE_RESULT, "main.go", color=False)

        assert "\033[" not in text
        assert "File: main.go" in text
        assert "Found 3 issues" in text
        assert "Bug Issues" in text
        assert "+new" in text
        assert "```" not in text

    def test_terminal_with_color(self):
        text = format_terminal(SAMPLE_RESULT, "main.go", color=True)

        assert "\033[32m+new" in text

    def test_terminal_empty(self):
        assert "No issues found." in format_terminal(ReviewResult(), "a.go", color=False)

    def test_terminal_error(self):
        text = format_terminal_error("a.go", RuntimeError("boom"), color=False)

        assert text == "Error reviewing a.go: boom\n"

    def test_markdown_report(self):
        aggregate = AggregateRunResult(
            results_by_path={"main.go": SAMPLE_RESULT, "clean.py": ReviewResult()},
            errors_by_path={"slow.go": ReviewCancelledError("slow.go")},
            stats=RunStats(total_files=3, succeeded=2, cancelled=1, total_issues=3),
        )

        report = format_markdown(aggregate, "my-repo", generated_at=datetime(2024, 5, 1, 12, 0))

        assert report.startswith("# Code Review Report")
        assert "Repository: my-repo" in report
        assert "## File: main.go" in report
        assert "### Bug Issues" in report
        assert "#### Bug: leak" in report
        assert "```diff\n-old\n+new\n```" in report
        assert "No issues found in this file." in report
        assert "## Errors" in report
        assert "`slow.go`: review of slow.go cancelled" in report


# =============================================================================
# PROGRESS
# =============================================================================

class TestConsoleProgress:
    """Counts and summary lines."""

    def test_counts(self):
        stream = io.StringIO()
        progress = ConsoleProgress(stream=stream)

        progress.start(3)
        for path in ("a.go", "b.go", "c.go"):
            progress.start_file(path)
        progress.complete_file("a.go", 2)
        progress.complete_file("b.go", 0)
        progress.error_file("c.go", "boom")
        progress.finish()

        output = stream.getvalue()
        assert progress.completed == 2
        assert progress.errors == 1
        assert progress.in_flight == set()
        assert "Starting code review of 3 files..." in output
        assert "[3/3] failed c.go: boom" in output
        assert "Processed 3 files: 2 completed, 1 errors" in output

    def test_long_paths_shortened(self):
        stream = io.StringIO()
        progress = ConsoleProgress(stream=stream)
        progress.start(1)

        progress.start_file("very/deep/" * 10 + "file.go")

        line = stream.getvalue().splitlines()[-1]
        assert "..." in line
        assert line.endswith("file.go")
