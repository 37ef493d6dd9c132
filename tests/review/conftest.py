"""
Shared fixtures for review pipeline tests.

Provides temporary git repositories and canned model responses.
"""

import subprocess
from pathlib import Path
from typing import Generator

import pytest


def git(repo_path: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo_path, check=True, capture_output=True)


# =============================================================================
# GIT REPOSITORY FIXTURES
# =============================================================================

@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Create a minimal temporary git repository.

    Yields:
        Path to the initialized git repository with one commit
    """
    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    git(repo_path, "init")
    git(repo_path, "config", "user.email", "test@test.com")
    git(repo_path, "config", "user.name", "Test User")

    (repo_path / "main.go").write_text("package main\n\nfunc main() {}\n")
    (repo_path / "README.md").write_text("# Test\n")
    git(repo_path, "add", ".")
    git(repo_path, "commit", "-m", "Initial commit")

    yield repo_path


@pytest.fixture
def repo_with_changes(temp_git_repo: Path) -> Path:
    """
    Repository with a mix of staged, unstaged and untracked changes.

    - main.go: staged modification plus a further unstaged edit
    - util.py: staged new file
    - notes.txt: staged new file with an unreviewed extension
    - scratch.py: untracked
    - README.md: unchanged
    """
    (temp_git_repo / "main.go").write_text("package main\n\nfunc main() {\n\tprintln(1)\n}\n")
    (temp_git_repo / "util.py").write_text("def helper():\n    return 1\n")
    (temp_git_repo / "notes.txt").write_text("todo\n")
    git(temp_git_repo, "add", "main.go", "util.py", "notes.txt")

    (temp_git_repo / "main.go").write_text("package main\n\nfunc main() {\n\tprintln(2)\n}\n")
    (temp_git_repo / "scratch.py").write_text("x = 1\n")
    return temp_git_repo


# =============================================================================
# MODEL RESPONSES
# =============================================================================

@pytest.fixture
def review_response() -> str:
    """A well-formed model answer with one issue and one diff."""
    return (
        '{"issues": [{"title": "Bug: debug print left in", '
        '"explanation": "println should not ship", "file": "main.go"}], '
        '"diffs": [{"file": "main.go", "diff": "-\\tprintln(2)"}]}'
    )
