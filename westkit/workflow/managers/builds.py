"""Build configuration management.

A build configuration binds a registered project to a board and an
optimisation profile.  Boards are offered from, in priority order:

1. the synced Zephyr tree (``boards`` of the recorded zephyr checkout)
2. board folders registered on the workspace plus the project's ``boards/``
3. any folder the user points at through ``Select other folder...``

Cancelling any prompt leaves the workspace untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from anyio import to_thread
from loguru import logger

from westkit.workflow.errors import DuplicateIdentifierError, OperationCancelledError, UnknownProjectError
from westkit.workflow.execution.boards import BoardDefinition, discover_boards, scan_boards
from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.waiting import RetryPolicy, require_stage
from westkit.workflow.managers.projects import validate_identifier
from westkit.workflow.models.enums import OptimizationProfile, PipelineStage
from westkit.workflow.models.workspace import BuildConfiguration
from westkit.workflow.prompts import PromptSpec

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.models.workspace import Project, WorkspaceState
    from westkit.workflow.prompts import UserPrompt
    from westkit.workflow.settings import WestkitSettings

OTHER_FOLDER = "Select other folder..."


class BuildConfigurator:
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

    def board_search_roots(self, state: WorkspaceState, project: Project) -> list[Path]:
        """Board roots in priority order, without duplicates."""
        roots = [self._paths.zephyr_boards_dir]
        roots.extend(Path(p) for p in state.board_roots)
        local_boards = Path(project.source_path) / "boards"
        if local_boards.is_dir():
            roots.append(local_boards)
        return list(dict.fromkeys(roots))

    async def add_build_configuration(self, project_id: str) -> BuildConfiguration:
        state = await self._ctx.load()
        if project_id not in state.projects:
            raise UnknownProjectError(project_id)
        state = await require_stage(self._ctx, PipelineStage.PACKAGES_READY, self._policy)
        project = state.projects[project_id]

        roots = self.board_search_roots(state, project)
        added: list[Path] = []
        board = await self._choose_board(roots, added)

        profile = await self._prompt.select_one(
            f"Select optimization profile for {board.name}",
            [p.value for p in OptimizationProfile],
        )
        if profile is None:
            raise OperationCancelledError("Build configuration")

        raw_id = await self._prompt.text(
            PromptSpec(prompt="Enter a build name", placeholder=f"{project_id}_{board.name}".replace("/", "_"))
        )
        if raw_id is None:
            raise OperationCancelledError("Build configuration")
        build_id = validate_identifier("Build", raw_id)
        if build_id in self._ctx.state.build_configurations:
            raise DuplicateIdentifierError("Build configuration", build_id)

        external = [] if board.root == self._paths.zephyr_boards_dir else [str(board.root)]
        async with self._ctx.mutate() as draft:
            if project_id not in draft.projects:
                raise UnknownProjectError(project_id)
            if build_id in draft.build_configurations:
                raise DuplicateIdentifierError("Build configuration", build_id)

            config = BuildConfiguration(
                id=build_id,
                project_id=project_id,
                board=board.name,
                optimization_profile=OptimizationProfile(profile),
                extra_board_search_paths=external,
            )
            draft.build_configurations[build_id] = config
            if board.root in added and str(board.root) not in draft.board_roots:
                draft.board_roots.append(str(board.root))
            draft.active_project_id = project_id
            draft.active_build_id = build_id

        logger.info("Added build {} ({} on {}, {})", build_id, project_id, board.name, profile)
        return config

    async def _choose_board(self, roots: list[Path], added: list[Path]) -> BoardDefinition:
        """Board select loop; the fallback option extends *roots* and re-prompts."""
        boards = await to_thread.run_sync(discover_boards, list(roots))
        while True:
            choice = await self._prompt.select_one("Select a board", [*sorted(boards), OTHER_FOLDER])
            if choice is None:
                raise OperationCancelledError("Build configuration")
            if choice != OTHER_FOLDER:
                return boards[choice]

            folder = await self._prompt.select_folder("Select a folder containing board definitions")
            if folder is None:
                raise OperationCancelledError("Build configuration")
            folder = Path(folder).expanduser().resolve()

            found = await to_thread.run_sync(scan_boards, folder)
            if not found:
                logger.warning("No board definitions found under {}", folder)
                continue
            if folder not in roots:
                roots.append(folder)
                added.append(folder)
            for board in found:
                boards.setdefault(board.name, board)
            logger.info("Added {} board(s) from {}", len(found), folder)
