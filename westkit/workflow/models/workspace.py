"""Workspace state model.

One ``WorkspaceState`` per workspace root: the single source of truth for
"what has already happened" (stage flags) plus the registered projects and
build configurations.

The persisted JSON keeps camelCase keys (``initialSetupComplete``,
``activeSetupState.westUpdated``, ...) via the alias generator; Python code
uses the snake_case field names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from westkit.workflow.models.enums import ManifestSource, OptimizationProfile, PipelineStage, SdkInstallMode


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- Setup progress ----------------------------------------------------------


class ActiveSetupState(_Record):
    """Sub-stage flags after the manifest exists.  Monotonic within a workspace lifetime."""

    west_updated: bool = False
    python_environment_setup: bool = False
    packages_installed: bool = False


class ManifestRecord(_Record):
    """Where the workspace manifest came from."""

    source: ManifestSource
    path: str | None = Field(default=None, description="Local west.yml written by the standard setup")
    url: str | None = Field(default=None, description="Remote manifest repository (west init -m)")
    template: str | None = None
    board_family: str | None = None
    zephyr_base: str | None = Field(
        default=None, description="Zephyr checkout relative to the workspace root, resolved after west update"
    )


class SdkRecord(_Record):
    mode: SdkInstallMode
    toolchains: list[str] = Field(default_factory=list, description="Empty for automatic installs")


# -- Entities ----------------------------------------------------------------


class Project(_Record):
    """A firmware application registered in the workspace."""

    id: str
    source_path: str
    template: str | None = None
    imported_from: str | None = None

    @model_validator(mode="after")
    def _single_origin(self) -> Project:
        if (self.template is None) == (self.imported_from is None):
            msg = f"Project '{self.id}' must have exactly one of template / importedFrom"
            raise ValueError(msg)
        return self


class BuildConfiguration(_Record):
    """Binds one project to a board and optimisation profile."""

    id: str
    project_id: str
    board: str
    optimization_profile: OptimizationProfile = OptimizationProfile.DEBUG
    extra_board_search_paths: list[str] = Field(default_factory=list)


# -- Top-level record --------------------------------------------------------


_STAGE_FLAGS: list[tuple[PipelineStage, str]] = [
    (PipelineStage.DEPENDENCIES_SYNCED, "west_updated"),
    (PipelineStage.ENVIRONMENT_READY, "python_environment_setup"),
    (PipelineStage.PACKAGES_READY, "packages_installed"),
]


class WorkspaceState(_Record):
    """Persisted bootstrap progress and configuration for one workspace root."""

    workspace_root: str | None = None
    initial_setup_complete: bool = False
    active_setup_state: ActiveSetupState = Field(default_factory=ActiveSetupState)
    manifest: ManifestRecord | None = None

    projects: dict[str, Project] = Field(default_factory=dict)
    build_configurations: dict[str, BuildConfiguration] = Field(default_factory=dict)

    active_project_id: str | None = Field(default=None, description="Last-used project; convenience only")
    active_build_id: str | None = Field(default=None, description="Last-used build; convenience only")

    board_roots: list[str] = Field(default_factory=list, description="External board folders added by the user")
    sdk: SdkRecord | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> WorkspaceState:
        # Flags are strictly linear: no flag may be set while its predecessor is unset.
        previous = self.initial_setup_complete
        for stage, flag in _STAGE_FLAGS:
            current = getattr(self.active_setup_state, flag)
            if current and not previous:
                msg = f"Stage flag '{flag}' is set but the stage before '{stage}' is not"
                raise ValueError(msg)
            previous = current

        for key, project in self.projects.items():
            if key != project.id:
                msg = f"Project key '{key}' does not match id '{project.id}'"
                raise ValueError(msg)

        for key, build in self.build_configurations.items():
            if key != build.id:
                msg = f"Build key '{key}' does not match id '{build.id}'"
                raise ValueError(msg)
            if build.project_id not in self.projects:
                msg = f"Build '{build.id}' references unknown project '{build.project_id}'"
                raise ValueError(msg)
        return self

    # -- Derived ---------------------------------------------------------------

    @property
    def setup_stage(self) -> PipelineStage:
        if not self.initial_setup_complete:
            return PipelineStage.UNINITIALIZED
        stage = PipelineStage.MANIFEST_CREATED
        for next_stage, flag in _STAGE_FLAGS:
            if not getattr(self.active_setup_state, flag):
                break
            stage = next_stage
        return stage

    @property
    def active_project(self) -> Project | None:
        if self.active_project_id is None:
            return None
        return self.projects.get(self.active_project_id)

    @property
    def active_build(self) -> BuildConfiguration | None:
        if self.active_build_id is None:
            return None
        return self.build_configurations.get(self.active_build_id)
