"""Workspace store interface for state persistence.

The store holds one ``WorkspaceState`` record per workspace root.  Durability
across process restarts is what makes the setup pipeline resumable: a stage
flag only counts once ``save`` has returned.  The interface is async so file
I/O never blocks the event loop while external processes are supervised.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from westkit.workflow.models.workspace import WorkspaceState


@runtime_checkable
class WorkspaceStore(Protocol):
    """Async protocol for reading and writing workspace state records.

    Storage layout (keyed by workspace root):
        {root}/workspaces/{key(workspace_root)}/state.json
    """

    async def load(self, workspace_root: Path) -> WorkspaceState:
        """Load state.  Returns a fresh record if none exists.

        Raises ``CorruptWorkspaceError`` if the stored record violates an
        invariant (e.g. a build referencing a missing project).
        """
        ...

    async def save(self, workspace_root: Path, state: WorkspaceState) -> None:
        """Persist state atomically."""
        ...
