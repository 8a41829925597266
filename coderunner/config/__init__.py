"""Configuration management for the Code Runner API.

A single flat Settings class reads everything from the environment (or a
``.env`` file). Related fields are also exposed as grouped views.

Usage:
    from coderunner.config import settings

    # Grouped access
    settings.api.api_port
    settings.sandbox.docker_host

    # Flat access
    settings.api_port
    settings.docker_host
"""

from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import APIConfig
from .logging import LoggingConfig
from .sandbox import SandboxConfig
from .languages import (
    LANGUAGES,
    LanguageSpec,
    build_command,
    get_language,
    get_supported_languages,
    get_timeout,
    is_supported_language,
)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(
        default=3000, ge=1, le=65535, validation_alias=AliasChoices("api_port", "port")
    )
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)

    # Container engine
    docker_host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Control socket URL of the Docker-compatible engine",
    )
    docker_client_timeout: int = Field(default=60, ge=1, le=600)
    engine_connect_attempts: int = Field(
        default=5, ge=1, le=100, description="Startup ping attempts before giving up"
    )
    engine_connect_delay_seconds: float = Field(
        default=2.0, ge=0, le=60, description="Fixed delay between ping attempts"
    )

    # Job workspaces
    workspace_root: str = Field(
        default="/tmp/code-runner/jobs",
        description="Directory holding one sub-directory per job",
    )
    workspace_host_root: Optional[str] = Field(
        default=None,
        description="Path of workspace_root as seen by the engine, if it differs",
    )

    # Sandbox limits
    sandbox_workdir: str = Field(default="/app")
    sandbox_memory_mb: int = Field(default=1536, ge=64, le=65536)
    sandbox_cpu_period: int = Field(default=100000, ge=1000, le=1000000)
    sandbox_cpu_quota: int = Field(default=150000, ge=1000)
    sandbox_timeout_seconds: int = Field(default=15, ge=1, le=600)
    sandbox_slow_start_timeout_seconds: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Deadline for languages flagged slow_start in the registry",
    )
    sandbox_drain_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        le=60,
        description="How long to wait for buffered output after the sandbox exits",
    )
    enable_network_isolation: bool = Field(default=False)
    max_concurrent_jobs: Optional[int] = Field(
        default=None, ge=1, description="Optional cap on jobs running at once"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    log_max_size_mb: int = Field(default=10, ge=1)
    log_backup_count: int = Field(default=7, ge=1)
    enable_access_logs: bool = Field(default=True)

    # Development Configuration
    enable_cors: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=list)
    enable_docs: bool = Field(default=True)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        """Upper-case and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Only json and console renderers exist."""
        if v.lower() not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return v.lower()

    @property
    def api(self) -> APIConfig:
        """Access API configuration group."""
        return APIConfig(
            api_host=self.api_host,
            api_port=self.api_port,
            api_debug=self.api_debug,
            api_reload=self.api_reload,
            enable_cors=self.enable_cors,
            cors_origins=self.cors_origins,
            enable_docs=self.enable_docs,
        )

    @property
    def sandbox(self) -> SandboxConfig:
        """Access sandbox engine configuration group."""
        return SandboxConfig(
            docker_host=self.docker_host,
            docker_client_timeout=self.docker_client_timeout,
            engine_connect_attempts=self.engine_connect_attempts,
            engine_connect_delay_seconds=self.engine_connect_delay_seconds,
            workspace_root=self.workspace_root,
            workspace_host_root=self.workspace_host_root,
            sandbox_workdir=self.sandbox_workdir,
            sandbox_memory_mb=self.sandbox_memory_mb,
            sandbox_cpu_period=self.sandbox_cpu_period,
            sandbox_cpu_quota=self.sandbox_cpu_quota,
            sandbox_timeout_seconds=self.sandbox_timeout_seconds,
            sandbox_slow_start_timeout_seconds=self.sandbox_slow_start_timeout_seconds,
            sandbox_drain_grace_seconds=self.sandbox_drain_grace_seconds,
            enable_network_isolation=self.enable_network_isolation,
            max_concurrent_jobs=self.max_concurrent_jobs,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
            enable_access_logs=self.enable_access_logs,
        )

    @property
    def sandbox_memory_bytes(self) -> int:
        """Memory ceiling in bytes as the engine expects it."""
        return self.sandbox_memory_mb * 1024 * 1024


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "APIConfig",
    "LoggingConfig",
    "SandboxConfig",
    # Language registry
    "LANGUAGES",
    "LanguageSpec",
    "build_command",
    "get_language",
    "get_supported_languages",
    "get_timeout",
    "is_supported_language",
]
