"""Tests for the setup pipeline (standard and remote-manifest entry points).

External processes are replaced by ``FakeRunner``; ``west update`` lays
down a requirements file so the install stage can find it.
"""

from __future__ import annotations

import configparser

import pytest
import yaml

from westkit.workflow.context import WorkspaceContext
from westkit.workflow.errors import (
    DependencySyncFailedError,
    EnvironmentSetupFailedError,
    OperationCancelledError,
    PackageInstallFailedError,
    SetupFailedError,
)
from westkit.workflow.execution.builder import BuildExecutor
from westkit.workflow.execution.pipeline import SetupPipeline
from westkit.workflow.managers.builds import BuildConfigurator
from westkit.workflow.models.enums import ManifestSource, PipelineStage
from westkit.workflow.models.workspace import Project


@pytest.fixture
def pipeline(ctx: WorkspaceContext, runner, prompt, settings) -> SetupPipeline:
    prompt.answers.update({"workspace template": "Minimal", "board family": "stm32"})
    return SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)


# ---------------------------------------------------------------------------
# Standard setup
# ---------------------------------------------------------------------------


async def test_standard_setup_runs_every_stage_in_order(pipeline: SetupPipeline, ctx: WorkspaceContext, runner) -> None:
    result = await pipeline.setup_standard()

    assert result.stage == PipelineStage.PACKAGES_READY
    assert result.ran == ["manifest", "west_update", "python_environment", "install_packages"]
    assert result.skipped == []

    lines = runner.command_lines
    assert lines[0] == "west update"
    assert lines[1] == f"python3 -m venv {ctx.root / '.venv'}"
    assert lines[2].endswith(f"-m pip install -r {ctx.root / 'zephyr' / 'scripts' / 'requirements.txt'}")
    assert lines[3].endswith("-m pip install west")
    assert len(lines) == 4


async def test_standard_setup_writes_manifest_and_west_config(pipeline: SetupPipeline, ctx: WorkspaceContext) -> None:
    await pipeline.setup_standard()

    manifest = yaml.safe_load((ctx.root / "manifest" / "west.yml").read_text(encoding="utf-8"))
    zephyr = manifest["manifest"]["projects"][0]
    assert zephyr["name"] == "zephyr"
    assert zephyr["import"] == {"name-allowlist": ["cmsis", "hal_stm32"]}

    config = configparser.ConfigParser()
    config.read(ctx.root / ".west" / "config")
    assert config["manifest"]["path"] == "manifest"
    assert config["manifest"]["file"] == "west.yml"

    record = ctx.state.manifest
    assert record is not None
    assert record.source == ManifestSource.LOCAL
    assert record.template == "Minimal"
    assert record.board_family == "stm32"
    assert record.zephyr_base == "zephyr"
    assert config["zephyr"]["base"] == "zephyr"


async def test_completed_setup_is_a_no_op(pipeline: SetupPipeline, runner, prompt) -> None:
    await pipeline.setup_standard()
    calls_before = len(runner.calls)
    prompts_before = len(prompt.asked)

    result = await pipeline.setup_standard()

    assert result.ran == []
    assert result.skipped == ["manifest", "west_update", "python_environment", "install_packages"]
    assert len(runner.calls) == calls_before
    assert len(prompt.asked) == prompts_before


async def test_cancelled_template_prompt_changes_nothing(ctx: WorkspaceContext, runner, prompt, settings, store) -> None:
    prompt.answers.update({"workspace template": None})
    pipeline = SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)

    with pytest.raises(OperationCancelledError):
        await pipeline.setup_standard()

    assert runner.calls == []
    assert ctx.state.setup_stage == PipelineStage.UNINITIALIZED
    assert not store.state_path(ctx.root).exists()
    assert not (ctx.root / "manifest").exists()


# ---------------------------------------------------------------------------
# Resumption after failures
# ---------------------------------------------------------------------------


async def test_resume_after_update_failure(pipeline: SetupPipeline, ctx: WorkspaceContext, runner, store) -> None:
    runner.failures["west update"] = 1

    with pytest.raises(DependencySyncFailedError) as exc_info:
        await pipeline.setup_standard()
    assert exc_info.value.result is not None
    assert "simulated failure" in exc_info.value.result.stderr

    persisted = await store.load(ctx.root)
    assert persisted.setup_stage == PipelineStage.MANIFEST_CREATED
    assert runner.count("-m venv") == 0

    runner.failures.clear()
    result = await pipeline.setup_standard()

    assert result.skipped == ["manifest"]
    assert result.stage == PipelineStage.PACKAGES_READY
    assert runner.count("west update") == 2


async def test_resume_after_venv_failure(pipeline: SetupPipeline, ctx: WorkspaceContext, runner) -> None:
    runner.failures["-m venv"] = 1

    with pytest.raises(EnvironmentSetupFailedError):
        await pipeline.setup_standard()
    assert ctx.state.setup_stage == PipelineStage.DEPENDENCIES_SYNCED

    runner.failures.clear()
    result = await pipeline.setup_standard()

    assert result.ran == ["python_environment", "install_packages"]
    assert runner.count("west update") == 1


async def test_resume_after_install_failure(pipeline: SetupPipeline, ctx: WorkspaceContext, runner) -> None:
    runner.failures["pip install -r"] = 2

    with pytest.raises(PackageInstallFailedError):
        await pipeline.setup_standard()
    assert ctx.state.setup_stage == PipelineStage.ENVIRONMENT_READY

    runner.failures.clear()
    result = await pipeline.setup_standard()

    assert result.ran == ["install_packages"]
    assert runner.count("west update") == 1
    assert runner.count("-m venv") == 1
    assert ctx.state.setup_stage == PipelineStage.PACKAGES_READY


async def test_missing_requirements_file_fails_install(pipeline: SetupPipeline, ctx: WorkspaceContext, runner) -> None:
    runner.sync_tree = False

    with pytest.raises(PackageInstallFailedError, match="no requirements file"):
        await pipeline.setup_standard()

    assert ctx.state.setup_stage == PipelineStage.ENVIRONMENT_READY
    assert runner.count("pip install") == 0


async def test_install_runs_inside_venv(pipeline: SetupPipeline, ctx: WorkspaceContext, runner) -> None:
    await pipeline.setup_standard()

    pip_env = runner.envs[2]
    assert pip_env is not None
    assert pip_env["VIRTUAL_ENV"] == str(ctx.root / ".venv")
    assert pip_env["PATH"].startswith(str(ctx.root / ".venv"))


# ---------------------------------------------------------------------------
# Remote manifest
# ---------------------------------------------------------------------------


async def test_remote_setup_runs_west_init(ctx: WorkspaceContext, runner, prompt, settings) -> None:
    pipeline = SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)
    url = "https://github.com/example/manifest.git"

    result = await pipeline.setup_from_remote_manifest(url)

    assert runner.calls[0] == ["west", "init", "-m", url, str(ctx.root)]
    assert result.stage == PipelineStage.PACKAGES_READY
    assert ctx.state.manifest is not None
    assert ctx.state.manifest.source == ManifestSource.REMOTE
    assert ctx.state.manifest.url == url
    assert prompt.asked == []


async def test_remote_setup_prompts_for_url(ctx: WorkspaceContext, runner, prompt, settings) -> None:
    prompt.answers["manifest git repository URL"] = "  https://example.com/m.git  "
    pipeline = SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)

    await pipeline.setup_from_remote_manifest()

    assert runner.calls[0][3] == "https://example.com/m.git"


async def test_remote_init_failure_leaves_workspace_uninitialized(
    ctx: WorkspaceContext, runner, prompt, settings, store
) -> None:
    runner.failures["west init"] = 1
    pipeline = SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)

    with pytest.raises(SetupFailedError):
        await pipeline.setup_from_remote_manifest("https://example.com/broken.git")

    assert ctx.state.initial_setup_complete is False
    assert (await store.load(ctx.root)).initial_setup_complete is False
    assert runner.count("west update") == 0


async def test_remote_setup_on_initialized_workspace_skips_init(pipeline: SetupPipeline, runner) -> None:
    await pipeline.setup_standard()
    calls_before = len(runner.calls)

    result = await pipeline.setup_from_remote_manifest("https://example.com/other.git")

    assert result.ran == []
    assert len(runner.calls) == calls_before


async def test_remote_manifest_with_zephyr_in_subfolder(ctx: WorkspaceContext, runner, prompt, settings) -> None:
    runner.zephyr_path = "deps/zephyr"
    pipeline = SetupPipeline(ctx, runner=runner, prompt=prompt, settings=settings)

    result = await pipeline.setup_from_remote_manifest("https://github.com/example/manifest.git")

    assert result.stage == PipelineStage.PACKAGES_READY
    assert ctx.state.manifest.zephyr_base == "deps/zephyr"
    requirements = ctx.root / "deps" / "zephyr" / "scripts" / "requirements.txt"
    assert any(line.endswith(f"-r {requirements}") for line in runner.command_lines)
    assert runner.envs[-1]["ZEPHYR_BASE"] == str(ctx.root / "deps" / "zephyr")

    # Boards and builds follow the recorded location
    prompt.answers.update({"Select a board": "nrf52840dk", "optimization profile": "debug", "build name": "dbg"})
    app = ctx.root / "app"
    app.mkdir()
    (app / "CMakeLists.txt").write_text("project(app)\n", encoding="utf-8")
    async with ctx.mutate() as draft:
        draft.projects["app"] = Project(id="app", source_path=str(app), template="minimal")

    config = await BuildConfigurator(ctx, prompt=prompt, settings=settings).add_build_configuration("app")
    assert config.extra_board_search_paths == []

    await BuildExecutor(ctx, runner=runner, settings=settings).build("dbg")
    assert runner.envs[-1]["ZEPHYR_BASE"] == str(ctx.root / "deps" / "zephyr")
