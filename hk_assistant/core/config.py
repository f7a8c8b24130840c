"""
Application configuration.

Loads settings from environment variables and .env file.
Provider defaults live here as module constants.
Settings are built once at startup and passed explicitly to the
components that need them.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LLM_TIMEOUT_SEC = 120

ZHIPU_BASE_URL = "https://open.bigmodel.cn/api/paas/v4"
ZHIPU_MODEL = "glm-4-flash"
OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class CompletionConfig:
    """Resolved LLM provider configuration.

    Attributes:
        provider: "zhipu" or "openai-compatible"; empty when no key is set.
        api_key: Bearer token. Empty means credentials are absent.
        base_url: Provider base URL (``/chat/completions`` is appended).
        model: Default model name when a request has no override.
        timeout_seconds: Deadline of each outbound completion call.
        max_tokens: Output token budget sent with every request.
    """

    provider: str
    api_key: str
    base_url: str
    model: str
    timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SEC
    max_tokens: int = 4000

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        zhipu_api_key: Zhipu key; takes precedence over the generic triple.
        zhipu_model: Default Zhipu model.
        llm_api_key: Generic OpenAI-compatible key.
        llm_base_url: Generic OpenAI-compatible base URL.
        llm_model: Generic default model.
        llm_timeout_sec: Outbound LLM deadline, shared by both call modes.
        llm_max_tokens: Output token budget. Reasoning models spend part of
            it on deliberation before the answer.
        quote_timeout_sec: Timeout for quote provider calls.
        stream_backend_url: Base URL of the internal prediction service.
        gateway_timeout_sec: Gateway-side read timeout towards the internal service.
        gateway_connect_timeout_sec: Gateway-side connect timeout.
        rate_limit_enabled: Toggle slowapi limits on the gateway.
        rate_limit_heavy: Rate limit for prediction endpoints.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    project_name: str = "HK Stock Assistant"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    zhipu_api_key: str = ""
    zhipu_model: str = ZHIPU_MODEL
    zhipu_base_url: str = ZHIPU_BASE_URL
    llm_api_key: str = ""
    llm_base_url: str = OPENAI_BASE_URL
    llm_model: str = OPENAI_MODEL
    llm_timeout_sec: int = DEFAULT_LLM_TIMEOUT_SEC
    llm_max_tokens: int = 4000

    quote_timeout_sec: float = 8.0

    stream_backend_url: str = "http://127.0.0.1:8890"
    gateway_timeout_sec: float = 180.0
    gateway_connect_timeout_sec: float = 3.0

    rate_limit_enabled: bool = True
    rate_limit_heavy: str = "10/minute"

    @field_validator("llm_timeout_sec", mode="before")
    @classmethod
    def _positive_timeout(cls, value: Any) -> int:
        """Fall back to the default for blank, unparsable or non-positive values."""
        try:
            seconds = int(str(value).strip())
        except (TypeError, ValueError):
            return DEFAULT_LLM_TIMEOUT_SEC
        return seconds if seconds > 0 else DEFAULT_LLM_TIMEOUT_SEC

    def completion_config(self) -> CompletionConfig:
        """Resolve the active LLM provider.

        Priority:
        1. ``ZHIPU_API_KEY`` with the Zhipu base URL and ``ZHIPU_MODEL``.
        2. ``LLM_API_KEY`` + ``LLM_BASE_URL`` + ``LLM_MODEL`` (OpenAI compatible).
        """
        if self.zhipu_api_key:
            return CompletionConfig(
                provider="zhipu",
                api_key=self.zhipu_api_key,
                base_url=self.zhipu_base_url,
                model=self.zhipu_model or ZHIPU_MODEL,
                timeout_seconds=self.llm_timeout_sec,
                max_tokens=self.llm_max_tokens,
            )
        return CompletionConfig(
            provider="openai-compatible" if self.llm_api_key else "",
            api_key=self.llm_api_key,
            base_url=self.llm_base_url or OPENAI_BASE_URL,
            model=self.llm_model or OPENAI_MODEL,
            timeout_seconds=self.llm_timeout_sec,
            max_tokens=self.llm_max_tokens,
        )


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, with explicit overrides."""
    return Settings(**overrides)


def describe(config: CompletionConfig) -> dict[str, Optional[str]]:
    """Loggable view of a completion config (never includes the key)."""
    return {
        "provider": config.provider or None,
        "base_url": config.base_url,
        "model": config.model,
        "timeout_seconds": f"{config.timeout_seconds:g}",
    }
