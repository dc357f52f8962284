"""Workspace store implementations for state persistence."""

from westkit.workflow.store.base import WorkspaceStore
from westkit.workflow.store.local import LocalWorkspaceStore

__all__ = ["LocalWorkspaceStore", "WorkspaceStore"]
