"""Shared test fixtures.

Every test gets its own settings cache and a private data root, so nothing
is written under the real ``~/.westkit``.  External tools are never run: the
workflow tests inject a fake ``ProcessRunner`` (see ``tests/workflow``).
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from westkit.workflow.settings import _get_settings_cached


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch) -> Iterator[None]:
    """Point WESTKIT_DATA_ROOT at a temp dir and invalidate the settings cache."""
    monkeypatch.setenv("WESTKIT_DATA_ROOT", str(tmp_path / "westkit-data"))
    monkeypatch.delenv("WESTKIT_DATA_PREFIX", raising=False)
    monkeypatch.delenv("WESTKIT_PRECONDITION_RETRIES", raising=False)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()
