"""
Review Pipeline

Wires the repository, a provider, the retry layer, the response parser
and the concurrent runner into a per-file review.
"""

import asyncio
import random

import httpx
import structlog

from git_llm_review.config import Config
from git_llm_review.llm import LLMProvider, ProviderRegistry, default_registry
from git_llm_review.logging_setup import PromptLogger
from git_llm_review.retry import RetryPolicy, SleepFunc, do_llm_request

from .git_repo import GitRepository
from .models import AggregateRunResult, FileTask, ReviewResult
from .parser import parse_review
from .progress import ProgressSink
from .prompt import render_review_prompt, truncate_prompt
from .runner import ConcurrentReviewRunner

logger = structlog.get_logger(__name__)


class ReviewPipeline:
    """
    Per-file LLM review.

    Args:
        config: Validated application config
        repository: Source of diffs and file contents
        provider: LLM provider that sends prompts
        progress: Optional progress sink for runs
        prompt_logger: Captures every rendered prompt when set
        exchange_logger: Captures every prompt/response pair when set
        sleep: Back-off sleep, replaceable in tests
        rng: Jitter source, replaceable in tests
    """

    def __init__(
        self,
        config: Config,
        repository: GitRepository,
        provider: LLMProvider,
        progress: ProgressSink | None = None,
        prompt_logger: PromptLogger | None = None,
        exchange_logger: PromptLogger | None = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.repository = repository
        self.provider = provider
        self.progress = progress
        self.prompt_logger = prompt_logger
        self.exchange_logger = exchange_logger
        self.retry_policy = RetryPolicy.from_settings(config.retry)
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_config(
        cls,
        config: Config,
        repository: GitRepository,
        registry: ProviderRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
        progress: ProgressSink | None = None,
    ) -> "ReviewPipeline":
        """Build the provider and optional capture logs described by ``config``."""
        registry = registry or default_registry()
        provider = registry.create(config.llm.provider, config.llm, http_client)

        log_settings = config.logging
        return cls(
            config,
            repository,
            provider,
            progress=progress,
            prompt_logger=PromptLogger(log_settings.prompt_log_path) if log_settings.log_prompts else None,
            exchange_logger=(
                PromptLogger(log_settings.exchange_log_path) if log_settings.log_exchanges else None
            ),
        )

    async def review_file(self, task: FileTask) -> ReviewResult:
        """Review one file. Provider errors propagate once retries are spent."""
        log = logger.bind(file=task.path, scope=task.change_scope.value)

        diff_text = await self.repository.file_diff(task)
        if task.is_deleted and not diff_text.strip():
            log.debug("Skipping deleted file with empty diff")
            return ReviewResult()

        content = await self.repository.file_content(task)
        prompt = render_review_prompt(task, diff_text, content, self.provider.name)
        prompt = truncate_prompt(prompt, self.config.llm.max_prompt_tokens)

        if self.prompt_logger:
            self.prompt_logger.log_prompt(self.provider.name, task.path, prompt)

        response = await do_llm_request(
            lambda: self.provider.send(prompt),
            self.retry_policy,
            provider=self.provider.name,
            sleep=self._sleep,
            rng=self._rng,
        )
        completion = self.provider.parse_completion(response)

        if self.exchange_logger:
            self.exchange_logger.log_exchange(self.provider.name, task.path, prompt, completion)

        result = parse_review(completion)
        log.debug("File reviewed", issues=result.issue_count, diffs=result.diff_count)
        return result

    async def run(self, files: list[FileTask]) -> AggregateRunResult:
        """Review ``files`` concurrently with the configured limits."""
        runner = ConcurrentReviewRunner(
            self.review_file,
            max_concurrency=self.config.concurrency.max_tasks,
            deadline=self.config.concurrency.run_deadline or None,
            progress=self.progress,
        )
        return await runner.run(files)

    async def aclose(self) -> None:
        await self.provider.aclose()
