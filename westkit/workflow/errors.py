"""Domain exceptions raised by the workflow core.

Core operations raise these; ``WorkspaceCommands`` translates them into
``CommandResult`` values and the CLI into exit codes.  Each class also
derives from the closest builtin (``ValueError``, ``LookupError``,
``RuntimeError``) so callers can catch at either granularity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from westkit.workflow.execution.process import ProcessResult
    from westkit.workflow.models.enums import PipelineStage


class WestkitError(Exception):
    """Base class for all westkit domain errors."""


class OperationCancelledError(WestkitError):
    """The user declined a prompt.  Not a failure: nothing was changed."""

    def __init__(self, what: str = "operation") -> None:
        super().__init__(f"{what} cancelled")


class PreconditionNotMetError(WestkitError, RuntimeError):
    """A stage or command was invoked before the setup stage it depends on."""

    def __init__(self, required: PipelineStage, current: PipelineStage) -> None:
        super().__init__(f"Requires setup stage '{required}', workspace is at '{current}'")
        self.required = required
        self.current = current


class DuplicateIdentifierError(WestkitError, ValueError):
    """An identifier chosen for creation is already taken."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' already exists")
        self.kind = kind
        self.identifier = identifier


class InvalidIdentifierError(WestkitError, ValueError):
    """An identifier is empty or not usable as a folder name."""


class UnknownProjectError(WestkitError, LookupError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project '{project_id}' not found")
        self.project_id = project_id


class UnknownBuildConfigurationError(WestkitError, LookupError):
    def __init__(self, build_id: str) -> None:
        super().__init__(f"Build configuration '{build_id}' not found")
        self.build_id = build_id


class InvalidProjectFolderError(WestkitError, ValueError):
    """Selected folder does not look like a Zephyr application root."""


class CorruptWorkspaceError(WestkitError, ValueError):
    """Persisted workspace state violates a structural invariant."""


class ExternalToolError(WestkitError, RuntimeError):
    """An external process could not be started at all."""


class ProcessTimeoutError(ExternalToolError):
    """The caller stopped waiting; the process was terminated best-effort."""


# -- External-process failures -----------------------------------------------


class StageFailedError(WestkitError, RuntimeError):
    """An external process exited non-zero (or had nothing to act on).

    ``result`` holds the captured output when a process actually ran.
    """

    label = "stage"

    def __init__(self, detail: str = "", result: ProcessResult | None = None) -> None:
        message = f"{self.label} failed"
        if result is not None:
            message += f" (exit {result.exit_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.result = result


class SetupFailedError(StageFailedError):
    label = "Manifest initialisation"


class DependencySyncFailedError(StageFailedError):
    label = "Dependency sync"


class EnvironmentSetupFailedError(StageFailedError):
    label = "Python environment setup"


class PackageInstallFailedError(StageFailedError):
    label = "Package installation"


class SdkInstallFailedError(StageFailedError):
    label = "SDK installation"
