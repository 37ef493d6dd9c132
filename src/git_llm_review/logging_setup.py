"""Logging setup and prompt/exchange capture."""

import logging
from datetime import datetime
from pathlib import Path
from typing import TextIO

import structlog

logger = structlog.get_logger(__name__)

# Handle behind the file logger; replaced and closed on reconfiguration.
_log_file_handle: TextIO | None = None


def configure_logging(debug: bool = False, log_file: str | Path | None = None) -> None:
    """
    Configure structlog for the process.

    Console output is human-readable; with ``log_file`` every event is
    appended to that file as a JSON line instead. Calling this again closes
    the previously opened log file.
    """
    global _log_file_handle

    level = logging.DEBUG if debug else logging.WARNING

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]

    previous_handle = _log_file_handle
    _log_file_handle = None

    if log_file:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer()])
        _log_file_handle = Path(log_file).open("a", encoding="utf-8")
        logger_factory = structlog.WriteLoggerFactory(file=_log_file_handle)
        # File logs capture info events even when the console stays quiet.
        level = logging.DEBUG if debug else logging.INFO
    else:
        processors.append(structlog.dev.ConsoleRenderer())
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )

    if previous_handle is not None:
        previous_handle.close()


def close_log_file() -> None:
    """Close the file opened by ``configure_logging`` and fall back to defaults."""
    global _log_file_handle

    if _log_file_handle is not None:
        structlog.reset_defaults()
        _log_file_handle.close()
        _log_file_handle = None


class PromptLogger:
    """Appends rendered prompts, or prompt/response exchanges, to a file.

    Write failures are logged and ignored; capture never aborts a review.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def log_prompt(self, provider: str, file_path: str, prompt: str) -> None:
        self._append(provider, file_path, [("PROMPT", prompt)])

    def log_exchange(self, provider: str, file_path: str, prompt: str, response: str) -> None:
        self._append(provider, file_path, [("PROMPT", prompt), ("RESPONSE", response)])

    def _append(self, provider: str, file_path: str, sections: list[tuple[str, str]]) -> None:
        header = f"=== {datetime.now().isoformat(timespec='seconds')} | {provider} | {file_path} ==="
        parts = [header]
        for title, body in sections:
            parts.extend([f"--- {title} ---", body])
        parts.append("")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write("\n".join(parts) + "\n")
        except OSError as e:
            logger.warning("Failed to write prompt log", path=str(self.path), error=str(e))
