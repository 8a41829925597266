"""Sandbox engine configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class SandboxConfig(BaseSettings):
    """Container engine connection and per-job sandbox settings."""

    docker_host: str = Field(default="unix:///var/run/docker.sock")
    docker_client_timeout: int = Field(default=60, ge=1, le=600)
    engine_connect_attempts: int = Field(default=5, ge=1, le=100)
    engine_connect_delay_seconds: float = Field(default=2.0, ge=0, le=60)

    workspace_root: str = Field(default="/tmp/code-runner/jobs")
    workspace_host_root: Optional[str] = Field(default=None)

    sandbox_workdir: str = Field(default="/app")
    sandbox_memory_mb: int = Field(default=1536, ge=64, le=65536)
    sandbox_cpu_period: int = Field(default=100000, ge=1000, le=1000000)
    sandbox_cpu_quota: int = Field(default=150000, ge=1000)
    sandbox_timeout_seconds: int = Field(default=15, ge=1, le=600)
    sandbox_slow_start_timeout_seconds: int = Field(default=60, ge=1, le=600)
    sandbox_drain_grace_seconds: float = Field(default=5.0, ge=0, le=60)
    enable_network_isolation: bool = Field(default=False)
    max_concurrent_jobs: Optional[int] = Field(default=None, ge=1)

    class Config:
        env_prefix = ""
        extra = "ignore"
