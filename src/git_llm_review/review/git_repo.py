"""
Git Repository

Lists changed files and fetches their diffs and contents by shelling out
to git.
"""

import asyncio
from pathlib import Path

import structlog

from .errors import GitError
from .models import ChangeScope, ChangeStatus, FileTask

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    "A": ChangeStatus.ADDED.value,
    "M": ChangeStatus.MODIFIED.value,
    "D": ChangeStatus.DELETED.value,
    "R": ChangeStatus.RENAMED.value,
    "C": ChangeStatus.ADDED.value,
    "T": ChangeStatus.MODIFIED.value,
    "U": ChangeStatus.MODIFIED.value,
    "?": ChangeStatus.UNTRACKED.value,
}


class GitRepository:
    """Read-only view of a working tree."""

    def __init__(self, repo_path: str | Path | None = None):
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()

    async def is_git_repository(self) -> bool:
        try:
            output = await self._run_git(["rev-parse", "--is-inside-work-tree"])
        except GitError:
            return False
        return output.strip() == "true"

    async def root(self) -> Path:
        """Absolute path of the repository's top-level directory."""
        output = await self._run_git(["rev-parse", "--show-toplevel"])
        return Path(output.strip())

    async def staged_files(self, extensions: list[str] | None = None) -> list[FileTask]:
        """Files in the index, deletions excluded."""
        output = await self._run_git(["diff", "--cached", "--name-status"])
        return parse_name_status(output, extensions)

    async def unified_files(self, extensions: list[str] | None = None) -> list[FileTask]:
        """Staged, unstaged and untracked files, one task per path."""
        output = await self._run_git(["status", "--porcelain"])
        return parse_porcelain(output, extensions)

    async def file_diff(self, task: FileTask) -> str:
        """Diff text for one file, taken from the side of the index the task covers."""
        if task.change_scope == ChangeScope.STAGED:
            return await self._run_git(["diff", "--cached", "--", task.path])
        if task.change_scope == ChangeScope.UNSTAGED:
            return await self._run_git(["diff", "--", task.path])

        if task.change_status == ChangeStatus.UNTRACKED.value:
            # Exit status 1 just means "files differ".
            return await self._run_git(
                ["diff", "--no-index", "--", "/dev/null", task.path], ok_codes=(0, 1)
            )
        return await self._run_git(["diff", "HEAD", "--", task.path])

    async def file_content(self, task: FileTask) -> str:
        """
        Content the diff applies to; empty when the file is gone.

        Staged tasks read the index blob so unstaged edits are not reviewed.
        Other scopes read the working tree. A file that cannot be read is
        logged and reviewed from its diff alone.
        """
        if task.is_deleted:
            return ""

        if task.change_scope == ChangeScope.STAGED:
            try:
                # ":<path>" names the index entry, relative to the repository root.
                return await self._run_git(["show", f":{task.path}"])
            except GitError as e:
                logger.warning("Failed to read staged content", file=task.path, error=str(e))
                return ""

        path = self.repo_path / task.path
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Failed to read file content", file=task.path, error=str(e))
            return ""

    async def _run_git(self, args: list[str], ok_codes: tuple[int, ...] = (0,)) -> str:
        """Run git command and return output."""
        cmd = ["git", "-C", str(self.repo_path)] + args

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitError("git is not installed or not on PATH") from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode not in ok_codes:
            error_msg = stderr.decode(errors="replace").strip()
            logger.debug("git command failed", args=args, returncode=proc.returncode)
            raise GitError(f"Git command failed: {error_msg or f'exit status {proc.returncode}'}")

        return stdout.decode(errors="replace")


def has_extension(path: str, extensions: list[str] | None) -> bool:
    """Case-insensitive suffix match; no extensions means every file."""
    if not extensions:
        return True
    suffix = Path(path).suffix.lower()
    return any(suffix == ext.lower() for ext in extensions)


def parse_name_status(output: str, extensions: list[str] | None = None) -> list[FileTask]:
    """Parse ``git diff --cached --name-status`` output."""
    tasks: list[FileTask] = []
    for line in output.splitlines():
        parts = line.strip().split("\t")
        if len(parts) < 2 or not parts[0]:
            continue

        code = parts[0][0]
        if code == "D":
            continue
        # Renames and copies list old then new; review the new path.
        path = parts[2] if code in "RC" and len(parts) >= 3 else parts[1]
        if not has_extension(path, extensions):
            continue

        tasks.append(
            FileTask(
                path=path,
                change_status=STATUS_CODES.get(code, ChangeStatus.MODIFIED.value),
                change_scope=ChangeScope.STAGED,
            )
        )
    return tasks


def parse_porcelain(output: str, extensions: list[str] | None = None) -> list[FileTask]:
    """
    Parse ``git status --porcelain`` output into unified tasks.

    A file with both staged and unstaged changes becomes one task whose
    status joins the two sides, e.g. ``"added+modified"``.
    """
    statuses: dict[str, list[str]] = {}
    for line in output.splitlines():
        if len(line) < 4:
            continue

        index_code, tree_code = line[0], line[1]
        path = line[3:].strip()
        if "R" in (index_code, tree_code) and " -> " in path:
            path = path.split(" -> ", 1)[1]
        path = path.strip('"')
        if not has_extension(path, extensions):
            continue

        sides = statuses.setdefault(path, [])
        if index_code == "?" and tree_code == "?":
            sides.append(ChangeStatus.UNTRACKED.value)
            continue
        if index_code != " ":
            sides.append(STATUS_CODES.get(index_code, ChangeStatus.MODIFIED.value))
        if tree_code != " ":
            sides.append(STATUS_CODES.get(tree_code, ChangeStatus.MODIFIED.value))

    return [
        FileTask(path=path, change_status="+".join(sides), change_scope=ChangeScope.UNIFIED)
        for path, sides in statuses.items()
        if sides
    ]
