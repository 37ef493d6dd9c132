"""
Progress reporting for a review run.

Sinks are purely observational. The runner calls them through
``SafeProgress`` so a failing sink can never break a run.
"""

import sys
import time
from typing import Protocol, TextIO

import structlog

logger = structlog.get_logger(__name__)


class ProgressSink(Protocol):
    """Receives lifecycle events from the runner."""

    def start(self, total: int) -> None: ...

    def start_file(self, path: str) -> None: ...

    def complete_file(self, path: str, issue_count: int) -> None: ...

    def error_file(self, path: str, message: str) -> None: ...

    def finish(self) -> None: ...


class NullProgress:
    """Discards every event."""

    def start(self, total: int) -> None:
        pass

    def start_file(self, path: str) -> None:
        pass

    def complete_file(self, path: str, issue_count: int) -> None:
        pass

    def error_file(self, path: str, message: str) -> None:
        pass

    def finish(self) -> None:
        pass


class ConsoleProgress:
    """Prints a one-line status per event.

    Events all arrive on the event loop thread, so no locking is needed.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self.total = 0
        self.completed = 0
        self.errors = 0
        self.in_flight: set[str] = set()
        self._started_at = 0.0

    @property
    def done(self) -> int:
        return self.completed + self.errors

    def start(self, total: int) -> None:
        self.total = total
        self.completed = 0
        self.errors = 0
        self._started_at = time.monotonic()
        self._write(f"Starting code review of {total} files...")

    def start_file(self, path: str) -> None:
        self.in_flight.add(path)
        self._write(f"[{self.done}/{self.total}] reviewing {_shorten(path)}")

    def complete_file(self, path: str, issue_count: int) -> None:
        self.in_flight.discard(path)
        self.completed += 1
        self._write(f"[{self.done}/{self.total}] done {_shorten(path)} ({issue_count} issues)")

    def error_file(self, path: str, message: str) -> None:
        self.in_flight.discard(path)
        self.errors += 1
        self._write(f"[{self.done}/{self.total}] failed {_shorten(path)}: {message}")

    def finish(self) -> None:
        elapsed = time.monotonic() - self._started_at
        self._write(f"Code review completed in {elapsed:.1f}s")
        self._write(
            f"Processed {self.total} files: {self.completed} completed, {self.errors} errors"
        )

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()


class SafeProgress:
    """Forwards events to a sink, logging and swallowing anything it raises."""

    def __init__(self, sink: ProgressSink | None):
        self._sink = sink or NullProgress()

    def start(self, total: int) -> None:
        self._call("start", total)

    def start_file(self, path: str) -> None:
        self._call("start_file", path)

    def complete_file(self, path: str, issue_count: int) -> None:
        self._call("complete_file", path, issue_count)

    def error_file(self, path: str, message: str) -> None:
        self._call("error_file", path, message)

    def finish(self) -> None:
        self._call("finish")

    def _call(self, event: str, *args: object) -> None:
        try:
            getattr(self._sink, event)(*args)
        except Exception as e:
            logger.warning("Progress sink failed", progress_event=event, error=str(e))


def _shorten(path: str, width: int = 40) -> str:
    if len(path) <= width:
        return path
    return "..." + path[-(width - 3):]
