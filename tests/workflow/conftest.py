"""Fixtures for workflow tests: scripted prompts and a fake process runner."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from westkit.workflow.commands import WorkspaceCommands
from westkit.workflow.context import WorkspaceContext
from westkit.workflow.errors import ExternalToolError
from westkit.workflow.execution.process import OutputCallback, ProcessResult
from westkit.workflow.models.workspace import ActiveSetupState
from westkit.workflow.prompts import PromptSpec
from westkit.workflow.registry import WorkspaceRegistry
from westkit.workflow.settings import WestkitSettings
from westkit.workflow.store.local import LocalWorkspaceStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_board(boards_dir: Path, vendor: str, name: str) -> Path:
    """Create a hardware-model-v2 ``board.yml`` under ``boards_dir/vendor/name``."""
    folder = boards_dir / vendor / name
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "board.yml"
    path.write_text(
        f"board:\n  name: {name}\n  vendor: {vendor}\n  socs:\n    - name: {name}_soc\n",
        encoding="utf-8",
    )
    return path


def _write_remote_checkout(root: Path, zephyr_path: str) -> None:
    """What ``west init -m`` leaves behind: the manifest repo and ``.west/config``."""
    manifest_repo = root / "app-manifest"
    manifest_repo.mkdir(parents=True, exist_ok=True)
    (manifest_repo / "west.yml").write_text(
        "manifest:\n"
        "  projects:\n"
        "    - name: zephyr\n"
        "      url: https://github.com/zephyrproject-rtos/zephyr\n"
        f"      path: {zephyr_path}\n"
        "  self:\n"
        "    path: app-manifest\n",
        encoding="utf-8",
    )
    west_dir = root / ".west"
    west_dir.mkdir(parents=True, exist_ok=True)
    (west_dir / "config").write_text("[manifest]\npath = app-manifest\nfile = west.yml\n", encoding="utf-8")


class _Replies(list):
    """Successive answers for one prompt title (consumed in order)."""


class ScriptedPrompt:
    """``UserPrompt`` answering from a script keyed by prompt title.

    The longest key contained in the title wins.  ``None`` answers mean
    cancel.  An unscripted prompt fails the test.
    """

    def __init__(self, answers: Mapping[str, Any] | None = None) -> None:
        self.answers: dict[str, Any] = dict(answers or {})
        self.asked: list[str] = []

    def queue(self, title: str, *answers: Any) -> None:
        """Answer successive prompts matching *title* with *answers*, in order."""
        self.answers[title] = _Replies(answers)

    def _answer(self, title: str) -> Any:
        self.asked.append(title)
        keys = [key for key in self.answers if key in title]
        if not keys:
            msg = f"Unexpected prompt: {title!r}"
            raise AssertionError(msg)
        key = max(keys, key=len)
        value = self.answers[key]
        if isinstance(value, _Replies):
            if not value:
                msg = f"No replies left for prompt {title!r}"
                raise AssertionError(msg)
            return value.pop(0)
        return value

    async def select_one(self, title: str, options: Sequence[str]) -> str | None:
        answer = self._answer(title)
        if answer is not None and answer not in options:
            msg = f"{answer!r} is not an option of {title!r}: {list(options)}"
            raise AssertionError(msg)
        return answer

    async def select_many(self, title: str, options: Sequence[str]) -> list[str] | None:
        answer = self._answer(title)
        if answer is not None:
            assert all(item in options for item in answer)
        return answer

    async def text(self, spec: PromptSpec) -> str | None:
        return self._answer(spec.prompt)

    async def select_folder(self, title: str) -> Path | None:
        answer = self._answer(title)
        return Path(answer) if answer is not None else None


class FakeRunner:
    """``ProcessRunner`` that records calls instead of spawning processes.

    ``failures`` maps a fragment of the joined command line to an exit code.
    ``missing`` lists commands that cannot be started.  ``west init -m``
    writes ``.west/config`` and a manifest placing zephyr at ``zephyr_path``;
    ``west update`` lays down a small synced tree (requirements file and two
    boards) there unless ``sync_tree`` is false; ``-m venv`` creates the venv
    folder.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self.failures: dict[str, int] = {}
        self.missing: set[str] = set()
        self.sync_tree = True
        self.zephyr_path = "zephyr"

    @property
    def command_lines(self) -> list[str]:
        return [" ".join(argv) for argv in self.calls]

    def count(self, fragment: str) -> int:
        return sum(fragment in line for line in self.command_lines)

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        on_output: OutputCallback | None = None,
    ) -> ProcessResult:
        argv = [command, *(str(a) for a in args)]
        if command in self.missing:
            msg = f"Could not start '{command}': not found"
            raise ExternalToolError(msg)

        self.calls.append(argv)
        self.envs.append(env)
        joined = " ".join(argv)
        for fragment, code in self.failures.items():
            if fragment in joined:
                return ProcessResult(argv=argv, exit_code=code, stdout="", stderr=f"simulated failure: {fragment}")

        self._side_effects(argv, Path(cwd) if cwd is not None else Path.cwd())
        stdout = f"{Path(command).name} version 1.0.0" if "--version" in argv else "done"
        if on_output is not None:
            on_output("stdout", stdout)
        return ProcessResult(argv=argv, exit_code=0, stdout=stdout, stderr="")

    def _side_effects(self, argv: list[str], cwd: Path) -> None:
        if argv[1:3] == ["init", "-m"]:
            _write_remote_checkout(Path(argv[4]), self.zephyr_path)
        elif argv[1:] == ["update"] and self.sync_tree:
            zephyr = cwd / self.zephyr_path
            scripts = zephyr / "scripts"
            scripts.mkdir(parents=True, exist_ok=True)
            (scripts / "requirements.txt").write_text("west\npyelftools\n", encoding="utf-8")
            write_board(zephyr / "boards", "st", "nucleo_f401re")
            write_board(zephyr / "boards", "nordic", "nrf52840dk")
        elif argv[1:3] == ["-m", "venv"]:
            Path(argv[3]).mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> WestkitSettings:
    return WestkitSettings(data_root=str(tmp_path / "data"), python_executable="python3")


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    root = tmp_path / "ws"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def store(settings: WestkitSettings) -> LocalWorkspaceStore:
    return LocalWorkspaceStore(settings.data_root)


@pytest.fixture
def registry(store: LocalWorkspaceStore) -> WorkspaceRegistry:
    return WorkspaceRegistry(store)


@pytest.fixture
async def ctx(registry: WorkspaceRegistry, workspace_root: Path) -> WorkspaceContext:
    return await registry.open(workspace_root)


@pytest.fixture
async def ready_ctx(ctx: WorkspaceContext) -> WorkspaceContext:
    """Workspace that has completed the whole setup pipeline."""
    write_board(ctx.root / "zephyr" / "boards", "st", "nucleo_f401re")
    write_board(ctx.root / "zephyr" / "boards", "nordic", "nrf52840dk")
    async with ctx.mutate() as draft:
        draft.initial_setup_complete = True
        draft.active_setup_state = ActiveSetupState(
            west_updated=True,
            python_environment_setup=True,
            packages_installed=True,
        )
    return ctx


@pytest.fixture
def make_board():
    return write_board


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def prompt() -> ScriptedPrompt:
    return ScriptedPrompt()


@pytest.fixture
def commands(
    workspace_root: Path,
    settings: WestkitSettings,
    registry: WorkspaceRegistry,
    runner: FakeRunner,
    prompt: ScriptedPrompt,
) -> WorkspaceCommands:
    return WorkspaceCommands(workspace_root, settings=settings, registry=registry, runner=runner, prompt=prompt)
