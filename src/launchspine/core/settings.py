"""Settings for the launch coordinator and its worker pool.

Configuration is environment-driven through pydantic-settings. Every field
can be overridden with a ``LAUNCH_``-prefixed environment variable or a
``.env`` file entry, e.g. ``LAUNCH_MAX_WORKERS=16``.

Examples:
    >>> from launchspine.core.settings import LaunchSettings
    >>> LaunchSettings(max_workers=2).max_workers
    2

Tags:
    settings, configuration, pydantic, environment, launch-spine
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class LaunchSettings(BaseSettings):
    """Settings shared by the coordinator and the launch workers.

    Fields
    ──────
    max_workers        : Size of the launch worker thread pool
    thread_name_prefix : Prefix for worker thread names
    log_level          : Structlog log level
    json_logs          : Force JSON (True) / console (False) rendering
    service_name       : ``service.name`` field on every log line
    generated_conf_dir : Directory holding the generated role configuration
    staging_dir        : Directory providers may write role files into
    """

    model_config = SettingsConfigDict(
        env_prefix="LAUNCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Worker pool ──────────────────────────────────────────────
    max_workers: PositiveInt = Field(
        default=8,
        description="Maximum number of container launches in flight",
    )
    thread_name_prefix: str = "launch-worker"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    service_name: str = "launch-spine"

    # ── Storage ──────────────────────────────────────────────────
    generated_conf_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "generated" / "conf",
        description="Generated configuration bundle shipped to every container",
    )
    staging_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "generated" / "staging",
        description="Scratch directory for provider-owned staged files",
    )


@lru_cache(maxsize=1)
def get_settings() -> LaunchSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return LaunchSettings()
