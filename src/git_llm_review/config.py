"""Configuration management for git-llm-review.

Settings start from defaults, are merged with an optional YAML file, and
finally overridden from the environment.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = ".git-llm-reviewer.yaml"

SUPPORTED_PROVIDERS = ("openai", "anthropic")

DEFAULT_API_URLS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com",
}


class ConfigError(ValueError):
    """Configuration could not be loaded or is invalid."""


@dataclass
class LLMSettings:
    """Which model to talk to and how."""

    provider: str = "openai"  # "openai" | "anthropic"
    api_url: str = ""  # Empty means the provider's default
    api_key: str = ""
    model: str = "gpt-4"
    timeout: int = 300  # seconds
    max_prompt_tokens: int = 0  # 0 disables prompt truncation

    @property
    def effective_api_url(self) -> str:
        return self.api_url or DEFAULT_API_URLS.get(self.provider, "")


@dataclass
class ConcurrencySettings:
    """Bounded fan-out of per-file reviews."""

    max_tasks: int = 5
    run_deadline: float = 0.0  # seconds; 0 disables the run deadline


@dataclass
class RetrySettings:
    """Backoff for transient LLM failures. Delays are in milliseconds."""

    enabled: bool = True
    max_retries: int = 3
    initial_delay_ms: int = 500
    max_delay_ms: int = 5000
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1
    retryable_errors: list[str] = field(
        default_factory=lambda: [
            "rate limit",
            "timeout",
            "connection reset",
            "connection refused",
            "no response",
            "internal server error",
        ]
    )


@dataclass
class LoggingSettings:
    """Log output and optional prompt/exchange capture."""

    debug: bool = False
    log_to_file: bool = False
    log_file_path: str = "git-llm-review.log"
    log_prompts: bool = False
    prompt_log_path: str = "prompt.log"
    log_exchanges: bool = False
    exchange_log_path: str = "exchange.log"


@dataclass
class Config:
    """Application configuration."""

    extensions: list[str] = field(
        default_factory=lambda: [".go", ".c", ".cc", ".proto", ".vue", ".py"]
    )
    llm: LLMSettings = field(default_factory=LLMSettings)
    concurrency: ConcurrencySettings = field(default_factory=ConcurrencySettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def validate(self) -> None:
        """Raise ConfigError describing the first invalid setting."""
        if self.llm.provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Unsupported LLM provider '{self.llm.provider}'. "
                f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if not self.llm.api_key:
            raise ConfigError("LLM API key is required. Set llm.api_key or LLM_API_KEY.")
        if self.llm.timeout <= 0:
            raise ConfigError("llm.timeout must be > 0")
        if self.concurrency.max_tasks < 1:
            raise ConfigError("concurrency.max_tasks must be >= 1")
        if self.concurrency.run_deadline < 0:
            raise ConfigError("concurrency.run_deadline must be >= 0")
        if self.retry.max_retries < 0:
            raise ConfigError("retry.max_retries must be >= 0")
        if self.retry.initial_delay_ms < 0 or self.retry.max_delay_ms < 0:
            raise ConfigError("retry delays must be >= 0")
        if self.retry.backoff_factor < 1.0:
            raise ConfigError("retry.backoff_factor must be >= 1.0")
        if not 0.0 <= self.retry.jitter_factor <= 1.0:
            raise ConfigError("retry.jitter_factor must be between 0.0 and 1.0")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Merge a parsed config file over the defaults.

        Only non-empty strings, positive numbers and explicit booleans
        override a default, so a partial file keeps every setting it does not
        name.
        """
        cfg = cls()

        extensions = data.get("extensions")
        if extensions:
            cfg.extensions = [str(e) for e in extensions]

        _merge_section(cfg.llm, _section(data, "llm"))
        _merge_section(cfg.concurrency, _section(data, "concurrency"))
        _merge_section(cfg.retry, _section(data, "retry"))
        _merge_section(cfg.logging, _section(data, "logging"))
        return cfg

    def apply_env(self, environ: dict[str, str] | None = None) -> "Config":
        """Override settings from environment variables."""
        env = os.environ if environ is None else environ

        if env.get("LLM_API_KEY"):
            self.llm.api_key = env["LLM_API_KEY"]
        if env.get("GIT_LLM_REVIEW_PROVIDER"):
            self.llm.provider = env["GIT_LLM_REVIEW_PROVIDER"].lower()
        if env.get("GIT_LLM_REVIEW_MODEL"):
            self.llm.model = env["GIT_LLM_REVIEW_MODEL"]
        if env.get("GIT_LLM_REVIEW_MAX_TASKS"):
            try:
                self.concurrency.max_tasks = int(env["GIT_LLM_REVIEW_MAX_TASKS"])
            except ValueError as e:
                raise ConfigError(
                    f"GIT_LLM_REVIEW_MAX_TASKS must be an integer: {env['GIT_LLM_REVIEW_MAX_TASKS']}"
                ) from e
        return self


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> Config:
    """
    Load configuration.

    Args:
        path: YAML file to merge over the defaults; a missing file is not an error
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The merged Config. It is not validated; call ``validate()`` before use.
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.is_file():
            try:
                loaded = yaml.safe_load(config_path.read_text())
            except yaml.YAMLError as e:
                raise ConfigError(f"failed to parse config file {config_path}: {e}") from e
            except OSError as e:
                raise ConfigError(f"failed to read config file {config_path}: {e}") from e
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigError(f"config file {config_path} must contain a mapping")
            data = loaded or {}

    return Config.from_dict(data).apply_env(environ)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return value


def _merge_section(target: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        if not hasattr(target, key):
            raise ConfigError(f"unknown setting '{key}' in section {type(target).__name__}")

        current = getattr(target, key)
        try:
            if isinstance(current, bool):
                if not isinstance(value, bool):
                    raise TypeError(key)
                setattr(target, key, value)
            elif isinstance(current, (int, float)):
                number = type(current)(value)
                if number > 0:
                    setattr(target, key, number)
            elif isinstance(current, list):
                if value:
                    setattr(target, key, [str(v) for v in value])
            elif value:
                setattr(target, key, str(value))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value for '{key}': {value!r}") from e
