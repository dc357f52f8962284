"""Data models for the workflow core."""

from westkit.workflow.models.api import CommandResult, ToolStatus
from westkit.workflow.models.enums import (
    CommandStatus,
    ManifestSource,
    OptimizationProfile,
    PipelineStage,
    SdkInstallMode,
)
from westkit.workflow.models.workspace import (
    ActiveSetupState,
    BuildConfiguration,
    ManifestRecord,
    Project,
    SdkRecord,
    WorkspaceState,
)

__all__ = [
    # Workspace
    "ActiveSetupState",
    "BuildConfiguration",
    # API schemas
    "CommandResult",
    # Enums
    "CommandStatus",
    "ManifestRecord",
    "ManifestSource",
    "OptimizationProfile",
    "PipelineStage",
    "Project",
    "SdkInstallMode",
    "SdkRecord",
    "ToolStatus",
    "WorkspaceState",
]
