"""Tool configuration loaded from WESTKIT_* environment variables."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WestkitSettings(BaseSettings):
    """westkit settings.

    All fields are read from environment variables with the ``WESTKIT_``
    prefix.  For example, ``WESTKIT_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    Workspace progress (stage flags, projects, builds) is **not** configured
    here -- it lives in the persisted ``WorkspaceState`` for each workspace
    root.
    """

    model_config = SettingsConfigDict(
        env_prefix="WESTKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- State storage ---------------------------------------------------------
    data_root: str = str(Path.home() / ".westkit")
    """Root directory for persisted workspace state."""

    data_prefix: str | None = None
    """Optional namespace inserted into state paths: ``{data_root}/{data_prefix}/...``."""

    # -- External tools --------------------------------------------------------
    west_command: str = "west"
    python_executable: str = sys.executable
    """Interpreter used to create the workspace virtual environment."""

    required_tools: list[str] = Field(default_factory=lambda: ["cmake", "ninja", "dtc", "git"])
    """Host tools probed by ``check-dependencies`` (``west`` is always probed)."""

    process_timeout: float | None = None
    """Seconds to wait for a single external process; ``None`` waits forever.

    ``west update`` and ``pip install`` routinely take tens of minutes on a
    cold workspace, so only set this when a hard ceiling is wanted.
    """

    # -- Workspace layout ------------------------------------------------------
    venv_dir: str = ".venv"
    manifest_dir: str = "manifest"
    zephyr_remote: str = "https://github.com/zephyrproject-rtos/zephyr"
    zephyr_revision: str = "main"

    # -- SDK -------------------------------------------------------------------
    sdk_version: str | None = None
    """Passed to ``west sdk install --version`` when set."""

    # -- Precondition retry policy ---------------------------------------------
    precondition_retries: int = 0
    """How many times a downstream command re-checks a missing setup stage.

    ``0`` fails immediately with ``PreconditionNotMetError``.
    """

    precondition_delay: float = 3.0
    precondition_backoff: float = 2.0
    precondition_max_delay: float = 30.0


def get_settings() -> WestkitSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> WestkitSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return WestkitSettings()


from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
