"""In-process workspace registry.

Maps workspace roots to their live ``WorkspaceContext``.  Guarantees there is
exactly one context (and therefore one lock) per root inside the process, so
two commands running concurrently against the same workspace serialise their
mutations.  Ephemeral -- empty on process restart; durable state lives in the
workspace store.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from westkit.workflow.context import WorkspaceContext

if TYPE_CHECKING:
    from westkit.workflow.store.base import WorkspaceStore


class WorkspaceRegistry:
    """Registry of open workspaces keyed by resolved root path."""

    def __init__(self, store: WorkspaceStore) -> None:
        self._store = store
        self._workspaces: dict[Path, WorkspaceContext] = {}

    @property
    def store(self) -> WorkspaceStore:
        return self._store

    def get(self, root: str | Path) -> WorkspaceContext:
        """Return the context for *root*, creating it (unloaded) on first use."""
        key = Path(root).expanduser().resolve()
        ctx = self._workspaces.get(key)
        if ctx is None:
            logger.debug("Registry: open workspace {}", key)
            ctx = WorkspaceContext(key, self._store)
            self._workspaces[key] = ctx
        return ctx

    async def open(self, root: str | Path) -> WorkspaceContext:
        """Return the context for *root* with its state loaded."""
        ctx = self.get(root)
        await ctx.load()
        return ctx
