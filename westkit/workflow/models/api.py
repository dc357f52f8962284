"""Result schemas returned by the command surface.

These sit between the core (which raises domain exceptions) and the CLI
(which prints and sets exit codes).  ``error`` carries the exception class
name so scripted callers can branch on it without parsing messages.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from westkit.workflow.models.enums import CommandStatus


class CommandResult(BaseModel):
    """Outcome of one top-level command."""

    command: str
    status: CommandStatus
    message: str = ""
    output: str = Field(default="", description="Captured diagnostic output of the failing/last external process")
    error: str | None = Field(default=None, description="Domain exception class name on failure")
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == CommandStatus.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.status == CommandStatus.CANCELLED


class ToolStatus(BaseModel):
    """One host tool probed by ``check-dependencies``."""

    name: str
    found: bool
    version: str | None = None
    path: str | None = None
