"""Configuration management for TaskForge."""

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from taskforge.agent.executor import ExecutorConfig
    from taskforge.rlm.models import RLMConfig

ProviderName = Literal["openai", "anthropic", "google"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TASKFORGE_",
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Keys (no prefix, standard env vars)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")

    # Provider configuration
    provider: ProviderName = "anthropic"
    model: str | None = Field(
        default=None,
        description="Model for execution and RLM calls (defaults to the provider's balanced model)",
    )
    planner_model: str | None = Field(
        default=None,
        description="Model for planning and reflection (defaults to the provider's fast model)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # LangSmith tracing (no prefix - standard env vars)
    langsmith_api_key: str | None = Field(default=None, alias="LANGSMITH_API_KEY")
    langsmith_tracing: bool = Field(default=False, alias="LANGSMITH_TRACING")
    langsmith_endpoint: str = Field(
        default="https://api.smith.langchain.com", alias="LANGSMITH_ENDPOINT"
    )
    langsmith_project: str = Field(default="taskforge", alias="LANGSMITH_PROJECT")

    # Executor
    max_parallel_tasks: int = Field(
        default=5,
        ge=1,
        le=64,
        description="Maximum number of tasks in flight at once",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries per task after the first failed attempt",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=60.0,
        description="Base delay for exponential retry backoff (0 retries immediately)",
    )
    retry_backoff_max_seconds: float = Field(
        default=8.0,
        ge=0.0,
        le=300.0,
        description="Upper bound for a single retry delay",
    )
    max_recovery_rounds: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Reflect-and-recover rounds the agent loop may run after failures",
    )

    # RLM (Recursive Language Model) configuration
    rlm_max_recursion_depth: int = Field(
        default=10,
        ge=0,
        le=50,
        description="Maximum depth of recursive calls",
    )
    rlm_max_execution_seconds: float = Field(
        default=300.0,
        ge=1.0,
        le=3600.0,
        description="Wall-clock budget for one RLM execution",
    )
    rlm_size_threshold: int = Field(
        default=1000,
        ge=0,
        le=1_000_000,
        description="Serialized size above which a variable is chunked",
    )
    rlm_variable_char_limit: int = Field(
        default=5000,
        ge=100,
        le=1_000_000,
        description="Per-variable character ceiling in leaf prompts",
    )
    rlm_string_chunk_size: int = Field(default=2000, ge=100, le=100_000)
    rlm_list_chunk_size: int = Field(default=10, ge=1, le=1000)

    @property
    def langsmith_enabled(self) -> bool:
        """Check if LangSmith tracing is enabled and configured."""
        return bool(self.langsmith_api_key and self.langsmith_tracing)

    def api_key_for(self, provider: ProviderName) -> str | None:
        """Return the configured API key for ``provider``."""
        if provider == "openai":
            return self.openai_api_key
        elif provider == "google":
            return self.google_api_key
        return self.anthropic_api_key

    @property
    def executor_config(self) -> "ExecutorConfig":
        """Get executor configuration object."""
        from taskforge.agent.executor import ExecutorConfig

        return ExecutorConfig(
            max_parallel_tasks=self.max_parallel_tasks,
            max_retries=self.max_retries,
            retry_backoff_seconds=self.retry_backoff_seconds,
            retry_backoff_max_seconds=self.retry_backoff_max_seconds,
        )

    @property
    def rlm_config(self) -> "RLMConfig":
        """Get RLM configuration object."""
        from taskforge.rlm.models import RLMConfig

        return RLMConfig(
            max_recursion_depth=self.rlm_max_recursion_depth,
            max_execution_time=self.rlm_max_execution_seconds,
            size_threshold=self.rlm_size_threshold,
            variable_char_limit=self.rlm_variable_char_limit,
            string_chunk_size=self.rlm_string_chunk_size,
            list_chunk_size=self.rlm_list_chunk_size,
            max_concurrency=self.max_parallel_tasks,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
