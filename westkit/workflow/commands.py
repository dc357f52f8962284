"""Top-level workspace commands.

One method per user-facing command.  Each wires the core component for the
workspace, runs it, and translates domain exceptions into a
``CommandResult``:

- ``OperationCancelledError`` -> ``cancelled`` (not a failure)
- any other ``WestkitError`` -> ``failed`` with the message and, for
  external-process failures, the captured output

Anything else propagates.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from westkit.workflow.errors import OperationCancelledError, StageFailedError, UnknownProjectError, WestkitError
from westkit.workflow.execution.builder import BuildExecutor
from westkit.workflow.execution.host import check_host_tools
from westkit.workflow.execution.pipeline import PipelineResult, SetupPipeline
from westkit.workflow.execution.toolchain import ToolchainInstaller
from westkit.workflow.execution.waiting import RetryPolicy, wait_for_stage
from westkit.workflow.managers.builds import BuildConfigurator
from westkit.workflow.managers.projects import ProjectScaffolder
from westkit.workflow.models.api import CommandResult
from westkit.workflow.models.enums import CommandStatus, PipelineStage

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.execution.process import OutputCallback, ProcessRunner
    from westkit.workflow.prompts import UserPrompt
    from westkit.workflow.registry import WorkspaceRegistry
    from westkit.workflow.settings import WestkitSettings


def _succeeded(command: str, message: str, output: str = "", **data: Any) -> CommandResult:
    return CommandResult(command=command, status=CommandStatus.SUCCEEDED, message=message, output=output, data=data)


def _failed(command: str, message: str, *, output: str = "", error: str | None = None, **data: Any) -> CommandResult:
    return CommandResult(
        command=command,
        status=CommandStatus.FAILED,
        message=message,
        output=output,
        error=error,
        data=data,
    )


def _pipeline_data(result: PipelineResult) -> dict[str, Any]:
    return {"stage": str(result.stage), "ran": result.ran, "skipped": result.skipped}


class WorkspaceCommands:
    """Command surface for one workspace root."""

    def __init__(
        self,
        root: str | Path,
        *,
        settings: WestkitSettings,
        registry: WorkspaceRegistry,
        runner: ProcessRunner,
        prompt: UserPrompt,
        on_output: OutputCallback | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self._settings = settings
        self._registry = registry
        self._runner = runner
        self._prompt = prompt
        self._on_output = on_output
        self._policy = RetryPolicy.from_settings(settings)

    async def _context(self) -> WorkspaceContext:
        return await self._registry.open(self.root)

    async def _guard(self, command: str, action: Callable[[], Awaitable[CommandResult]]) -> CommandResult:
        try:
            return await action()
        except OperationCancelledError as exc:
            logger.info("{}: {}", command, exc)
            return CommandResult(command=command, status=CommandStatus.CANCELLED, message=str(exc))
        except StageFailedError as exc:
            logger.error("{} failed: {}", command, exc)
            output = exc.result.output if exc.result is not None else ""
            return _failed(command, str(exc), output=output, error=type(exc).__name__)
        except WestkitError as exc:
            logger.error("{} failed: {}", command, exc)
            return _failed(command, str(exc), error=type(exc).__name__)

    # -- Host ------------------------------------------------------------------

    async def check_dependencies(self) -> CommandResult:
        async def action() -> CommandResult:
            tools = [*self._settings.required_tools, self._settings.west_command]
            statuses = await check_host_tools(self._runner, tools)
            missing = [s.name for s in statuses if not s.found]
            data = {"tools": [s.model_dump() for s in statuses]}
            if missing:
                return _failed("check-dependencies", f"Missing host tools: {', '.join(missing)}", **data)
            return _succeeded("check-dependencies", "All host tools found", **data)

        return await self._guard("check-dependencies", action)

    # -- Setup -----------------------------------------------------------------

    def _pipeline(self, ctx: WorkspaceContext) -> SetupPipeline:
        return SetupPipeline(
            ctx, runner=self._runner, prompt=self._prompt, settings=self._settings, on_output=self._on_output
        )

    async def setup_standard(self) -> CommandResult:
        async def action() -> CommandResult:
            result = await self._pipeline(await self._context()).setup_standard()
            return _succeeded("setup", f"Workspace ready ({result.stage})", **_pipeline_data(result))

        return await self._guard("setup", action)

    async def setup_from_remote_manifest(self, url: str | None = None) -> CommandResult:
        async def action() -> CommandResult:
            result = await self._pipeline(await self._context()).setup_from_remote_manifest(url)
            return _succeeded("setup-git", f"Workspace ready ({result.stage})", **_pipeline_data(result))

        return await self._guard("setup-git", action)

    # -- Toolchain -------------------------------------------------------------

    async def install_sdk(self) -> CommandResult:
        async def action() -> CommandResult:
            installer = ToolchainInstaller(
                await self._context(),
                runner=self._runner,
                prompt=self._prompt,
                settings=self._settings,
                policy=self._policy,
                on_output=self._on_output,
            )
            result = await installer.install_sdk()
            return _succeeded(
                "install-sdk",
                f"Zephyr SDK installed ({result.mode})",
                output=result.process.output if result.process else "",
                mode=str(result.mode),
                toolchains=result.toolchains,
            )

        return await self._guard("install-sdk", action)

    # -- Projects --------------------------------------------------------------

    def _scaffolder(self, ctx: WorkspaceContext) -> ProjectScaffolder:
        return ProjectScaffolder(ctx, prompt=self._prompt, settings=self._settings, policy=self._policy)

    async def create_project(self) -> CommandResult:
        async def action() -> CommandResult:
            project = await self._scaffolder(await self._context()).create_project()
            return _succeeded(
                "create-project",
                f"Created project '{project.id}' at {project.source_path}",
                project_id=project.id,
                path=project.source_path,
            )

        return await self._guard("create-project", action)

    async def add_project(self) -> CommandResult:
        async def action() -> CommandResult:
            project = await self._scaffolder(await self._context()).add_existing_project()
            return _succeeded(
                "add-project",
                f"Added project '{project.id}' from {project.source_path}",
                project_id=project.id,
                path=project.source_path,
            )

        return await self._guard("add-project", action)

    # -- Builds ----------------------------------------------------------------

    async def add_build(self, project_id: str | None = None) -> CommandResult:
        """Add a build configuration; defaults to the active project, else asks."""

        async def action() -> CommandResult:
            ctx = await self._context()
            chosen = project_id or await self._pick_project(ctx)
            configurator = BuildConfigurator(ctx, prompt=self._prompt, settings=self._settings, policy=self._policy)
            config = await configurator.add_build_configuration(chosen)
            return _succeeded(
                "add-build",
                f"Added build '{config.id}' ({config.project_id} on {config.board})",
                build_id=config.id,
                project_id=config.project_id,
                board=config.board,
            )

        return await self._guard("add-build", action)

    async def _pick_project(self, ctx: WorkspaceContext) -> str:
        state = ctx.state
        if state.active_project is not None:
            return state.active_project.id
        if not state.projects:
            raise UnknownProjectError("(none registered)")
        choice = await self._prompt.select_one("Select a project", sorted(state.projects))
        if choice is None:
            raise OperationCancelledError("Build configuration")
        return choice

    async def build(self, build_id: str | None = None) -> CommandResult:
        """Build *build_id*, or the active build when omitted."""

        async def action() -> CommandResult:
            ctx = await self._context()
            chosen = build_id or ctx.state.active_build_id
            if chosen is None:
                return _failed("build", "No build configuration selected; run add-build first")

            executor = BuildExecutor(
                ctx, runner=self._runner, settings=self._settings, policy=self._policy, on_output=self._on_output
            )
            result = await executor.build(chosen)
            output = "\n".join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)
            data = {"build_id": result.build_id, "exit_code": result.exit_code, "build_dir": str(result.build_dir)}
            if not result.ok:
                return _failed("build", f"Build '{chosen}' failed (exit {result.exit_code})", output=output, **data)
            return _succeeded("build", f"Build '{chosen}' succeeded: {result.build_dir}", output=output, **data)

        return await self._guard("build", action)

    # -- Introspection ---------------------------------------------------------

    async def status(self) -> CommandResult:
        async def action() -> CommandResult:
            state = (await self._context()).state
            return _succeeded(
                "status",
                f"Workspace {self.root} is at '{state.setup_stage}'",
                stage=str(state.setup_stage),
                state=state.model_dump(mode="json", by_alias=True),
            )

        return await self._guard("status", action)

    async def wait(
        self,
        stage: str = PipelineStage.PACKAGES_READY,
        *,
        interval: float = 3.0,
        timeout: float | None = None,
        on_progress: Callable[[PipelineStage], None] | None = None,
    ) -> CommandResult:
        """Poll until another process has brought the workspace to *stage*."""

        async def action() -> CommandResult:
            target = PipelineStage(stage)
            try:
                state = await wait_for_stage(
                    await self._context(), target, interval=interval, timeout=timeout, on_progress=on_progress
                )
            except TimeoutError as exc:
                return _failed("wait", str(exc), stage=str(self._registry.get(self.root).state.setup_stage))
            return _succeeded("wait", f"Workspace reached '{target}'", stage=str(state.setup_stage))

        return await self._guard("wait", action)
