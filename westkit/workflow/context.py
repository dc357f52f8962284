"""Workspace context.

A ``WorkspaceContext`` is the live handle for one workspace root: it owns the
in-memory ``WorkspaceState`` and the single lock that serialises every
mutation of it.  A second lock, ``setup_lock``, serialises whole setup
pipeline runs without blocking unrelated mutations.

Mutations go through ``mutate()``::

    async with ctx.mutate() as draft:
        draft.active_setup_state.west_updated = True

The block runs under the lock on a deep copy.  On normal exit the copy is
re-validated, saved durably, and only then published; if the block raises,
nothing is saved and the published state is untouched.  Callers therefore
never observe a flag that has not been written to the store.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import ValidationError

from westkit.workflow.errors import CorruptWorkspaceError
from westkit.workflow.models.workspace import WorkspaceState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from westkit.workflow.store.base import WorkspaceStore


class WorkspaceContext:
    """State + mutex for a single workspace root."""

    def __init__(self, root: str | Path, store: WorkspaceStore) -> None:
        self.root = Path(root).expanduser().resolve()
        self._store = store
        self._lock = asyncio.Lock()
        self._state: WorkspaceState | None = None
        # Held for a whole setup pipeline run; independent of the state lock.
        self.setup_lock = asyncio.Lock()

    # -- Read ------------------------------------------------------------------

    @property
    def state(self) -> WorkspaceState:
        """Last published state.  Treat as read-only; use ``mutate()`` to change it."""
        if self._state is None:
            msg = f"Workspace {self.root} has not been loaded"
            raise RuntimeError(msg)
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    async def load(self) -> WorkspaceState:
        """Load from the store on first use; later calls return the cached state."""
        if self._state is None:
            async with self._lock:
                if self._state is None:
                    self._state = await self._store.load(self.root)
        return self._state

    async def refresh(self) -> WorkspaceState:
        """Re-read from the store (picks up progress made by another process)."""
        async with self._lock:
            self._state = await self._store.load(self.root)
            return self._state

    # -- Mutation --------------------------------------------------------------

    @asynccontextmanager
    async def mutate(self) -> AsyncIterator[WorkspaceState]:
        """Critical section yielding a draft that is saved and published on success."""
        async with self._lock:
            if self._state is None:
                self._state = await self._store.load(self.root)

            draft = self._state.model_copy(deep=True)
            yield draft

            try:
                validated = WorkspaceState.model_validate(draft.model_dump())
            except ValidationError as exc:
                msg = f"Refusing to save invalid workspace state for {self.root}: {exc}"
                raise CorruptWorkspaceError(msg) from exc

            if validated.workspace_root is None:
                validated.workspace_root = str(self.root)

            await self._store.save(self.root, validated)
            self._state = validated
            logger.debug("Workspace {} saved (stage={})", self.root, validated.setup_stage)
