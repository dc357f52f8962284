"""Firmware build via ``west build``.

The build runs from the workspace root with the workspace venv activated.
It reports the exit status and captured output and never changes workspace
state: a failed compile is a result, not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from westkit.workflow.errors import UnknownBuildConfigurationError, UnknownProjectError
from westkit.workflow.execution.boards import board_root_for
from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.waiting import RetryPolicy, require_stage
from westkit.workflow.models.enums import PipelineStage

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.execution.process import OutputCallback, ProcessRunner
    from westkit.workflow.models.workspace import BuildConfiguration, Project
    from westkit.workflow.settings import WestkitSettings


@dataclass(frozen=True)
class BuildResult:
    build_id: str
    ok: bool
    exit_code: int
    stdout: str
    stderr: str
    build_dir: Path


def build_args(config: BuildConfiguration, project: Project) -> list[str]:
    """``west`` arguments for one build configuration."""
    project_path = Path(project.source_path)
    args = [
        "build",
        "-b",
        config.board,
        "-d",
        str(WorkspacePaths.build_dir(project_path, config.id)),
        str(project_path),
        "--",
        f"-D{config.optimization_profile.kconfig}=y",
    ]
    board_roots = list(dict.fromkeys(str(board_root_for(p)) for p in config.extra_board_search_paths))
    if board_roots:
        args.append(f"-DBOARD_ROOT={';'.join(board_roots)}")
    return args


class BuildExecutor:
    def __init__(
        self,
        ctx: WorkspaceContext,
        *,
        runner: ProcessRunner,
        settings: WestkitSettings,
        policy: RetryPolicy | None = None,
        on_output: OutputCallback | None = None,
    ) -> None:
        self._ctx = ctx
        self._runner = runner
        self._settings = settings
        self._policy = policy
        self._on_output = on_output

    @property
    def _paths(self) -> WorkspacePaths:
        return WorkspacePaths.for_workspace(self._ctx, self._settings)

    async def build(self, build_id: str) -> BuildResult:
        state = await self._ctx.load()
        if build_id not in state.build_configurations:
            raise UnknownBuildConfigurationError(build_id)

        state = await require_stage(self._ctx, PipelineStage.PACKAGES_READY, self._policy)
        config = state.build_configurations[build_id]
        project = state.projects.get(config.project_id)
        if project is None:
            raise UnknownProjectError(config.project_id)

        build_dir = WorkspacePaths.build_dir(Path(project.source_path), build_id)
        logger.info("Building {} ({} on {}, {})", build_id, project.id, config.board, config.optimization_profile)
        process = await self._runner.run(
            self._settings.west_command,
            build_args(config, project),
            cwd=self._ctx.root,
            env=self._paths.venv_environment(),
            timeout=self._settings.process_timeout,
            on_output=self._on_output,
        )

        if process.ok:
            logger.info("Build {} succeeded -> {}", build_id, build_dir)
        else:
            logger.warning("Build {} failed with exit code {}", build_id, process.exit_code)
        return BuildResult(
            build_id=build_id,
            ok=process.ok,
            exit_code=process.exit_code,
            stdout=process.stdout,
            stderr=process.stderr,
            build_dir=build_dir,
        )
