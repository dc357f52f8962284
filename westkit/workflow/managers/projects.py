"""Project management: scaffold from a template or import an existing folder.

Raises ``InvalidIdentifierError``, ``DuplicateIdentifierError`` and
``InvalidProjectFolderError`` on bad input and ``OperationCancelledError``
when a prompt is dismissed.  Nothing is registered unless every prompt was
answered.
"""

from __future__ import annotations

import re
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from anyio import to_thread
from loguru import logger

from westkit.workflow.errors import (
    DuplicateIdentifierError,
    InvalidIdentifierError,
    InvalidProjectFolderError,
    OperationCancelledError,
)
from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.templates import PROJECT_TEMPLATES, render_project
from westkit.workflow.execution.waiting import RetryPolicy, require_stage
from westkit.workflow.models.enums import PipelineStage
from westkit.workflow.models.workspace import Project
from westkit.workflow.prompts import PromptSpec

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.prompts import UserPrompt
    from westkit.workflow.settings import WestkitSettings

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_identifier(kind: str, value: str | None) -> str:
    """Return *value* stripped, or raise if it cannot be used as a folder name."""
    candidate = (value or "").strip()
    if not candidate:
        msg = f"{kind} name must not be empty"
        raise InvalidIdentifierError(msg)
    if not _IDENTIFIER_RE.match(candidate):
        msg = f"{kind} name '{candidate}' may only contain letters, digits, '_', '-' and '.'"
        raise InvalidIdentifierError(msg)
    return candidate


def _write_files(target: Path, files: dict[str, str]) -> None:
    """Render *files* into a sibling staging folder, then rename it to *target*."""
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))
    try:
        for relative, content in files.items():
            path = staging / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        staging.chmod(0o755)
        staging.rename(target)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise


class ProjectScaffolder:
    def __init__(
        self,
        ctx: WorkspaceContext,
        *,
        prompt: UserPrompt,
        settings: WestkitSettings,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._ctx = ctx
        self._prompt = prompt
        self._settings = settings
        self._policy = policy

    @property
    def _paths(self) -> WorkspacePaths:
        return WorkspacePaths.for_workspace(self._ctx, self._settings)

    async def create_project(self) -> Project:
        """Render a built-in template into ``{root}/{name}`` and register it."""
        await require_stage(self._ctx, PipelineStage.PACKAGES_READY, self._policy)

        template = await self._prompt.select_one("Select a project template", list(PROJECT_TEMPLATES))
        if template is None:
            raise OperationCancelledError("Project creation")
        raw_name = await self._prompt.text(PromptSpec(prompt="Enter a project name", placeholder="my_app"))
        if raw_name is None:
            raise OperationCancelledError("Project creation")

        name = validate_identifier("Project", raw_name)
        if name in self._ctx.state.projects:
            raise DuplicateIdentifierError("Project", name)

        target = self._paths.project_dir(name)
        files = render_project(template, name)

        written = False
        try:
            async with self._ctx.mutate() as draft:
                if name in draft.projects:
                    raise DuplicateIdentifierError("Project", name)
                if target.exists():
                    raise DuplicateIdentifierError("Project folder", str(target))

                await to_thread.run_sync(_write_files, target, files)
                written = True
                project = Project(id=name, source_path=str(target), template=template)
                draft.projects[name] = project
                draft.active_project_id = name
        except BaseException:
            # The folder only stays once the project is saved.
            if written:
                logger.warning("Removing {}: project {} was not registered", target, name)
                shutil.rmtree(target, ignore_errors=True)
            raise

        logger.info("Created project {} from template {} at {}", name, template, target)
        return project

    async def add_existing_project(self) -> Project:
        """Register a folder that already holds a Zephyr application."""
        await require_stage(self._ctx, PipelineStage.PACKAGES_READY, self._policy)

        folder = await self._prompt.select_folder("Select the project folder")
        if folder is None:
            raise OperationCancelledError("Adding project")

        folder = Path(folder).expanduser().resolve()
        if not (folder / "CMakeLists.txt").is_file():
            msg = f"{folder} does not contain a CMakeLists.txt"
            raise InvalidProjectFolderError(msg)

        project_id = validate_identifier("Project", folder.name)
        async with self._ctx.mutate() as draft:
            if project_id in draft.projects:
                raise DuplicateIdentifierError("Project", project_id)
            project = Project(id=project_id, source_path=str(folder), imported_from=str(folder))
            draft.projects[project_id] = project
            draft.active_project_id = project_id

        logger.info("Added existing project {} from {}", project_id, folder)
        return project
