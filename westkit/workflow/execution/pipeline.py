"""Setup pipeline -- drives a workspace from empty to ``packages_ready``.

Stages (each guarded by a persisted flag)::

    uninitialized --manifest--> manifest_created --west update--> dependencies_synced
        --python -m venv--> environment_ready --pip install--> packages_ready

Two entry points acquire the manifest differently:

- ``setup_standard``: prompt for a template and board family, write a local
  ``west.yml`` + ``.west/config``.
- ``setup_from_remote_manifest``: ``west init -m <url>``.

Both then call ``_resume``, the single continuation that walks the remaining
stages in order, skipping every stage whose flag is already set.  A stage's
flag is saved (durably) only after its process exits successfully, so a
failed or interrupted run is always resumed at the first incomplete stage and
never repeats a finished one.

Stages never run in parallel: each one consumes files produced by the one
before.  Whole pipeline runs on the same workspace are serialised by the
context's ``setup_lock``; the state lock is only held for the flag writes, so
other commands can still read and mutate the workspace meanwhile.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from anyio import to_thread
from loguru import logger

from westkit.workflow.errors import (
    DependencySyncFailedError,
    EnvironmentSetupFailedError,
    OperationCancelledError,
    PackageInstallFailedError,
    PreconditionNotMetError,
    SetupFailedError,
)
from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.manifest import (
    BOARD_FAMILIES,
    MANIFEST_TEMPLATES,
    find_requirements,
    resolve_zephyr_base,
    write_local_manifest,
)
from westkit.workflow.models.enums import ManifestSource, PipelineStage
from westkit.workflow.models.workspace import ManifestRecord
from westkit.workflow.prompts import PromptSpec

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.execution.process import OutputCallback, ProcessResult, ProcessRunner
    from westkit.workflow.prompts import UserPrompt
    from westkit.workflow.settings import WestkitSettings

MANIFEST_STAGE = "manifest"


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass
class PipelineResult:
    """Outcome of one pipeline invocation."""

    stage: PipelineStage
    ran: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    processes: list[ProcessResult] = field(default_factory=list)


@dataclass(frozen=True)
class _Stage:
    name: str
    reaches: PipelineStage
    flag: str
    action: Callable[[], Awaitable[list[ProcessResult]]]


def _tail(result: ProcessResult, lines: int = 15) -> str:
    return "\n".join(result.output.splitlines()[-lines:])


def _previous(stage: PipelineStage) -> PipelineStage:
    members = list(PipelineStage)
    return members[members.index(stage) - 1]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class SetupPipeline:
    """Workspace bootstrap for one ``WorkspaceContext``."""

    def __init__(
        self,
        ctx: WorkspaceContext,
        *,
        runner: ProcessRunner,
        prompt: UserPrompt,
        settings: WestkitSettings,
        on_output: OutputCallback | None = None,
    ) -> None:
        self._ctx = ctx
        self._runner = runner
        self._prompt = prompt
        self._settings = settings
        self._on_output = on_output

    @property
    def _paths(self) -> WorkspacePaths:
        return WorkspacePaths.for_workspace(self._ctx, self._settings)

    # -- Entry points ----------------------------------------------------------

    async def setup_standard(self) -> PipelineResult:
        """Create a local manifest (if needed), then resume the remaining stages."""
        async with self._ctx.setup_lock:
            state = await self._ctx.load()
            result = PipelineResult(stage=state.setup_stage)

            if state.initial_setup_complete:
                result.skipped.append(MANIFEST_STAGE)
            else:
                template = await self._prompt.select_one("Select a workspace template", MANIFEST_TEMPLATES)
                if template is None:
                    raise OperationCancelledError("Workspace setup")
                board_family = await self._prompt.select_one("Select the default board family", BOARD_FAMILIES)
                if board_family is None:
                    raise OperationCancelledError("Workspace setup")

                manifest_path = await to_thread.run_sync(
                    partial(
                        write_local_manifest,
                        self._paths,
                        template=template,
                        board_family=board_family,
                        zephyr_remote=self._settings.zephyr_remote,
                        zephyr_revision=self._settings.zephyr_revision,
                    )
                )
                logger.info("Wrote manifest {} ({}, {})", manifest_path, template, board_family)

                async with self._ctx.mutate() as draft:
                    draft.manifest = ManifestRecord(
                        source=ManifestSource.LOCAL,
                        path=str(manifest_path),
                        template=template,
                        board_family=board_family,
                    )
                    draft.initial_setup_complete = True
                result.ran.append(MANIFEST_STAGE)

            return await self._resume(result)

    async def setup_from_remote_manifest(self, url: str | None = None) -> PipelineResult:
        """``west init -m <url>`` (if needed), then resume the remaining stages."""
        async with self._ctx.setup_lock:
            state = await self._ctx.load()
            result = PipelineResult(stage=state.setup_stage)

            if state.initial_setup_complete:
                if url:
                    logger.info("Workspace {} already initialised; ignoring manifest URL {}", self._ctx.root, url)
                result.skipped.append(MANIFEST_STAGE)
            else:
                if not url:
                    url = await self._prompt.text(
                        PromptSpec(
                            prompt="Enter the west manifest git repository URL",
                            placeholder="https://github.com/org/repo.git",
                        )
                    )
                if not url or not url.strip():
                    raise OperationCancelledError("Workspace setup")
                url = url.strip()

                self._ctx.root.mkdir(parents=True, exist_ok=True)
                process = await self._run(self._settings.west_command, ["init", "-m", url, str(self._ctx.root)])
                result.processes.append(process)
                if not process.ok:
                    raise SetupFailedError(_tail(process), process)

                async with self._ctx.mutate() as draft:
                    draft.manifest = ManifestRecord(source=ManifestSource.REMOTE, url=url)
                    draft.initial_setup_complete = True
                result.ran.append(MANIFEST_STAGE)

            return await self._resume(result)

    # -- Shared continuation ---------------------------------------------------

    def _stages(self) -> list[_Stage]:
        return [
            _Stage("west_update", PipelineStage.DEPENDENCIES_SYNCED, "west_updated", self._sync_dependencies),
            _Stage(
                "python_environment",
                PipelineStage.ENVIRONMENT_READY,
                "python_environment_setup",
                self._create_environment,
            ),
            _Stage("install_packages", PipelineStage.PACKAGES_READY, "packages_installed", self._install_packages),
        ]

    async def _resume(self, result: PipelineResult) -> PipelineResult:
        """Run every stage whose flag is still false, in order."""
        for stage in self._stages():
            state = self._ctx.state
            if getattr(state.active_setup_state, stage.flag):
                logger.info("Skipping stage {} (already completed)", stage.name)
                result.skipped.append(stage.name)
                continue

            required = _previous(stage.reaches)
            if not state.setup_stage.reached(required):
                raise PreconditionNotMetError(required, state.setup_stage)

            logger.info("Running stage {}", stage.name)
            result.processes.extend(await stage.action())

            async with self._ctx.mutate() as draft:
                setattr(draft.active_setup_state, stage.flag, True)
            logger.info("Stage {} completed (workspace now '{}')", stage.name, self._ctx.state.setup_stage)
            result.ran.append(stage.name)

        result.stage = self._ctx.state.setup_stage
        return result

    # -- Stage actions ---------------------------------------------------------

    async def _sync_dependencies(self) -> list[ProcessResult]:
        process = await self._run(self._settings.west_command, ["update"])
        if not process.ok:
            raise DependencySyncFailedError(_tail(process), process)

        zephyr_base = await to_thread.run_sync(resolve_zephyr_base, self._paths)
        logger.info("Zephyr checkout at {}", self._ctx.root / zephyr_base)
        if self._ctx.state.manifest is not None and self._ctx.state.manifest.zephyr_base != zephyr_base:
            async with self._ctx.mutate() as draft:
                draft.manifest.zephyr_base = zephyr_base
        return [process]

    async def _create_environment(self) -> list[ProcessResult]:
        process = await self._run(self._settings.python_executable, ["-m", "venv", str(self._paths.venv)])
        if not process.ok:
            raise EnvironmentSetupFailedError(_tail(process), process)
        return [process]

    async def _install_packages(self) -> list[ProcessResult]:
        requirements = await to_thread.run_sync(find_requirements, self._paths)
        if requirements is None:
            msg = f"no requirements file found under {self._ctx.root}"
            raise PackageInstallFailedError(msg)

        python = str(self._paths.venv_python)
        processes: list[ProcessResult] = []
        for args in (
            ["-m", "pip", "install", "-r", str(requirements)],
            ["-m", "pip", "install", "west"],
        ):
            process = await self._run(python, args, env=self._paths.venv_environment())
            processes.append(process)
            if not process.ok:
                raise PackageInstallFailedError(_tail(process), process)
        return processes

    async def _run(self, command: str, args: list[str], env: dict[str, str] | None = None) -> ProcessResult:
        return await self._runner.run(
            command,
            args,
            cwd=self._ctx.root,
            env=env,
            timeout=self._settings.process_timeout,
            on_output=self._on_output,
        )

