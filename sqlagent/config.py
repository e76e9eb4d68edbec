"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from sqlagent.config import get_settings

    settings = get_settings()
    print(settings.llm.default_provider)
    print(settings.agent.max_iterations)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, PostgresDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FORBIDDEN_KEYWORDS = [
    "DROP",
    "DELETE",
    "UPDATE",
    "INSERT",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "EXECUTE",
]


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    default_provider: Literal["openai", "anthropic", "local"] = Field(
        default="openai", description="LLM provider used by the agent loop"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key",
        min_length=20,
    )
    openai_model: str = Field(default="gpt-4o", description="OpenAI chat model")

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514", description="Anthropic chat model"
    )

    # Local model configuration
    local_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL for local model server (Ollama)",
    )
    local_model: str = Field(default="llama3.1", description="Local model name")
    local_think: bool = Field(
        default=True,
        description="Request reasoning output from local models that support it",
    )

    # Common settings
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses (0.0 = deterministic)",
    )
    max_tokens: int = Field(
        default=4096,
        gt=0,
        le=32000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v

    @model_validator(mode="after")
    def validate_provider_keys(self) -> "LLMSettings":
        """Ensure an API key is set for the selected provider."""
        provider_key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }
        provider = self.default_provider
        if provider in provider_key_map and not provider_key_map[provider]:
            raise ValueError(
                f"API key required for {provider} provider. Set LLM_{provider.upper()}_API_KEY"
            )
        return self


class SQLSettings(BaseSettings):
    """SQL guardrail configuration."""

    allowed_statements: list[str] = Field(
        default_factory=lambda: ["SELECT", "WITH"],
        description="Statement prefixes the agent may execute",
    )
    forbidden_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FORBIDDEN_KEYWORDS),
        description="Keywords rejected anywhere in a query",
    )
    max_rows: int = Field(
        default=1000,
        gt=0,
        le=100000,
        description="Maximum rows returned to the model per query",
    )
    default_limit: int = Field(
        default=100,
        gt=0,
        description="LIMIT the model is instructed to use by default",
    )

    model_config = SettingsConfigDict(
        env_prefix="SQL_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("allowed_statements", "forbidden_keywords")
    @classmethod
    def normalize_keywords(cls, v: list[str]) -> list[str]:
        """Upper-case and strip keyword lists."""
        return [item.strip().upper() for item in v if item and item.strip()]


class AgentSettings(BaseSettings):
    """Agent loop configuration."""

    max_iterations: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum LLM calls per question",
    )
    chat_history_length: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Number of prior conversation messages replayed to the model",
    )
    parallel_tool_calls: bool = Field(
        default=False,
        description="Run tool calls from one model turn concurrently",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_",
        env_file=".env",
        extra="ignore",
    )


class LearningSettings(BaseSettings):
    """Self-learning configuration."""

    enabled: bool = Field(default=True, description="Enable learnings and saved patterns")
    auto_save_errors: bool = Field(
        default=True,
        description="Record a learning automatically when a query fails",
    )
    prune_after_days: int = Field(
        default=90,
        ge=1,
        description="Age after which unused learnings are pruned",
    )
    max_auto_learnings_per_day: int = Field(
        default=50,
        ge=0,
        description="Cap on auto-generated learnings per day",
    )

    model_config = SettingsConfigDict(
        env_prefix="LEARNING_",
        env_file=".env",
        extra="ignore",
    )


class SearchSettings(BaseSettings):
    """Knowledge search configuration."""

    driver: Literal["keyword", "postgres", "null"] = Field(
        default="keyword",
        description="Search driver used for patterns and learnings",
    )
    language: str = Field(
        default="english",
        description="Text search configuration for the postgres driver",
    )
    query_pattern_limit: int = Field(default=3, gt=0, le=20)
    learning_limit: int = Field(default=5, gt=0, le=20)
    custom_indexes: list[str] = Field(
        default_factory=list,
        description="Extra knowledge document indexes searched alongside patterns and learnings",
    )

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        extra="ignore",
    )


class KnowledgeSettings(BaseSettings):
    """Semantic model and business rule sources."""

    source: Literal["files", "store"] = Field(
        default="files",
        description="Load table metadata and rules from YAML/JSON files or the knowledge store",
    )
    path: Path = Field(
        default=Path("knowledge"),
        description="Directory holding tables/ and business/ definitions",
    )

    model_config = SettingsConfigDict(
        env_prefix="KNOWLEDGE_",
        env_file=".env",
        extra="ignore",
    )


class ConnectionsSettings(BaseSettings):
    """Target database connections."""

    config_path: Path = Field(
        default=Path("config/connections.yaml"),
        description="YAML file describing named connections and their access policy",
    )
    url: str | None = Field(
        None,
        description="Single target database URL used when no connections file exists",
    )
    default: str | None = Field(
        None,
        description="Connection used when a request does not name one",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONNECTIONS_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", "default", mode="before")
    @classmethod
    def normalize_empty(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class StorageSettings(BaseSettings):
    """Knowledge storage configuration."""

    url: PostgresDsn | None = Field(
        None,
        description="PostgreSQL URL for learnings and query patterns (unset = in-memory)",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | PostgresDsn | None) -> str | PostgresDsn | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class ToolsSettings(BaseSettings):
    """Tooling configuration."""

    policy_path: str = Field(
        default="config/tools.yaml",
        description="Path to tool policy and plugin configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="TOOLS_",
        env_file=".env",
        extra="ignore",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, sql, agent, learning, ...).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Enable debug mode (exposes the last prompt in API responses)
        API_HOST: API server host
        API_PORT: API server port
        LLM_*: LLM provider configuration (see LLMSettings)
        SQL_*: SQL guardrails (see SQLSettings)
        AGENT_*: Agent loop (see AgentSettings)
        LEARNING_*: Self-learning (see LearningSettings)
        SEARCH_*: Knowledge search (see SearchSettings)
        KNOWLEDGE_*: Semantic model sources (see KnowledgeSettings)
        CONNECTIONS_*: Target databases (see ConnectionsSettings)
        STORAGE_*: Knowledge storage (see StorageSettings)
        TOOLS_*: Tool policy (see ToolsSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.llm.default_provider
        'openai'
        >>> settings.agent.max_iterations
        10
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="SqlAgent",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    sql: SQLSettings = Field(default_factory=SQLSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    knowledge: KnowledgeSettings = Field(default_factory=KnowledgeSettings)
    connections: ConnectionsSettings = Field(default_factory=ConnectionsSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tools: ToolsSettings = Field(default_factory=ToolsSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "llm_provider": self.llm.default_provider,
                "max_iterations": self.agent.max_iterations,
                "learning_enabled": self.learning.enabled,
                "search_driver": self.search.driver,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("SQL_AGENT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses functools.lru_cache to ensure settings are loaded only once.
    This is the recommended way to access settings throughout the application.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
