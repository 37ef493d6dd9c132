"""
Command-line entry point.

Reviews the staged files of the current repository (or staged and
unstaged with ``--all``) and prints the results.
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from git_llm_review import __version__
from git_llm_review.config import DEFAULT_CONFIG_FILE, ConfigError, load_config
from git_llm_review.llm import LLMError
from git_llm_review.logging_setup import close_log_file, configure_logging
from git_llm_review.review import (
    ConsoleProgress,
    GitError,
    GitRepository,
    ReviewPipeline,
    format_markdown,
    format_terminal,
    format_terminal_error,
)

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-llm-review",
        description="Review changed files in a git repository with an LLM",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help=f"Path to the YAML config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Review staged and unstaged changes together instead of staged only",
    )
    parser.add_argument(
        "-m",
        "--markdown",
        type=Path,
        metavar="PATH",
        help="Also write a markdown report to PATH",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "-x",
        "--log-prompts",
        action="store_true",
        help="Append every rendered prompt to the prompt log",
    )
    parser.add_argument(
        "--log-full-exchange",
        action="store_true",
        help="Append every prompt and raw response to the exchange log",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Run a review; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.debug:
        config.logging.debug = True
    if args.log_prompts:
        config.logging.log_prompts = True
    if args.log_full_exchange:
        config.logging.log_exchanges = True

    log_settings = config.logging
    configure_logging(
        debug=log_settings.debug,
        log_file=log_settings.log_file_path if log_settings.log_to_file else None,
    )

    try:
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    repo = GitRepository()
    if not await repo.is_git_repository():
        print("Error: not a git repository", file=sys.stderr)
        return 1

    try:
        repo = GitRepository(await repo.root())
        if args.all:
            files = await repo.unified_files(config.extensions)
        else:
            files = await repo.staged_files(config.extensions)
    except GitError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not files:
        scope = "changed" if args.all else "staged"
        print(f"No {scope} files with configured extensions found.")
        return 0

    try:
        pipeline = ReviewPipeline.from_config(config, repo, progress=ConsoleProgress())
    except LLMError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        aggregate = await pipeline.run(files)
    finally:
        await pipeline.aclose()

    color = not args.no_color and sys.stdout.isatty()
    for path in sorted(aggregate.results_by_path):
        print(format_terminal(aggregate.results_by_path[path], path, color=color))
    for path in sorted(aggregate.errors_by_path):
        print(format_terminal_error(path, aggregate.errors_by_path[path], color=color))

    if args.markdown:
        report = format_markdown(aggregate, repo.repo_path.name)
        try:
            args.markdown.parent.mkdir(parents=True, exist_ok=True)
            args.markdown.write_text(report, encoding="utf-8")
        except OSError as e:
            print(f"Error: failed to write markdown report: {e}", file=sys.stderr)
            return 1
        print(f"Markdown report written to {args.markdown}")

    logger.info("Review complete", **aggregate.stats.to_dict())
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    finally:
        close_log_file()
    sys.exit(code)


if __name__ == "__main__":
    run()
