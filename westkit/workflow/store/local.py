"""Local filesystem workspace store.

Stores workspace state as JSON files under a unified data root with optional
namespace prefix::

    {data_root}/{prefix}/workspaces/{key}/state.json

where ``key`` is a short digest of the resolved workspace root, so moving a
workspace folder starts a fresh record.

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  A crash mid-write therefore never leaves a
half-written record that could later be mistaken for completed stages.
"""

from __future__ import annotations

import contextlib
import hashlib
import os
import tempfile
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from westkit.workflow.errors import CorruptWorkspaceError
from westkit.workflow.models.workspace import WorkspaceState


def workspace_key(workspace_root: Path) -> str:
    """Stable key for a workspace root (first 16 hex chars of its sha256)."""
    resolved = str(Path(workspace_root).expanduser().resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]


class LocalWorkspaceStore:
    """Local filesystem implementation of the WorkspaceStore protocol.

    Layout::

        {base}/workspaces/{key}/state.json

    Where ``base`` is ``data_root / prefix`` (or just ``data_root`` if no prefix).
    """

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root).expanduser()
        if prefix:
            base = base / prefix
        self._base = base / "workspaces"

    def state_path(self, workspace_root: Path) -> Path:
        return self._base / workspace_key(workspace_root) / "state.json"

    # -- Read ------------------------------------------------------------------

    async def load(self, workspace_root: Path) -> WorkspaceState:
        path = self.state_path(workspace_root)
        try:
            raw = await to_thread.run_sync(partial(_read_file, path))
        except FileNotFoundError:
            return WorkspaceState(workspace_root=str(Path(workspace_root).expanduser().resolve()))

        try:
            return WorkspaceState.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Workspace state at {} is corrupt: {}", path, exc)
            msg = f"Corrupt workspace state at {path}: {exc}"
            raise CorruptWorkspaceError(msg) from exc

    # -- Write -----------------------------------------------------------------

    async def save(self, workspace_root: Path, state: WorkspaceState) -> None:
        path = self.state_path(workspace_root)
        data = state.model_dump_json(indent=2, by_alias=True)
        await to_thread.run_sync(partial(_atomic_write, path, data))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so ``os.replace`` is
    atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    """Read file contents.  Raises ``FileNotFoundError`` if missing."""
    return path.read_text(encoding="utf-8")

