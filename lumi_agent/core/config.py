"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and a .env
file without explicit dotenv loading.

Provider credentials are intentionally not modelled here: pydantic-ai reads
``OPENAI_API_KEY``, ``ANTHROPIC_API_KEY``, ``GOOGLE_API_KEY`` and
``OLLAMA_BASE_URL`` from the environment itself.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="LUMI_LOG_LEVEL", description="Root console log level")
    format: str = Field(default="detailed", alias="LUMI_LOG_FORMAT", description="simple, detailed or json")
    file_dir: str = Field(default="logs", alias="LUMI_LOG_FILE_DIR", description="Directory for the log file")
    enable_file: bool = Field(default=False, alias="LUMI_ENABLE_FILE_LOGGING", description="Write a log file")

    model_config = {"populate_by_name": True}


class EngineConfig(BaseModel):
    """Execution engine defaults."""

    max_iterations: int = Field(
        default=10,
        ge=1,
        alias="LUMI_MAX_ITERATIONS",
        description="Default model/tool round-trip bound for agents that do not set one",
    )
    stream_responses: bool = Field(
        default=False,
        alias="LUMI_STREAM_RESPONSES",
        description="Use the streaming provider API by default",
    )

    model_config = {"populate_by_name": True}


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(default="127.0.0.1", alias="LUMI_SERVER_HOST", description="Host to bind to")
    server_port: int = Field(default=8000, alias="LUMI_SERVER_PORT", description="Port to bind to")

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(default="INFO", alias="LUMI_LOG_LEVEL")
    log_format: str = Field(default="detailed", alias="LUMI_LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="LUMI_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="LUMI_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Engine Configuration
    # =====================================================================
    max_iterations: int = Field(default=10, ge=1, alias="LUMI_MAX_ITERATIONS")
    stream_responses: bool = Field(default=False, alias="LUMI_STREAM_RESPONSES")

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./lumi_agent.db",
        alias="DATABASE_URL",
        description="Async SQLAlchemy URL for session and audit persistence",
    )
    database_echo: Optional[bool] = Field(default=None, alias="DATABASE_ECHO")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def engine(self) -> EngineConfig:
        """Get engine defaults from environment variables."""
        return EngineConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
