"""Workspace entity managers.

Each module provides an async manager that registers projects or build
configurations in a ``WorkspaceContext``.  Managers drive the user prompts
and raise domain exceptions (``westkit.workflow.errors``), never exit codes
or printed messages -- that translation is the command layer's
responsibility.
"""
