"""Tests for manifest generation and requirements discovery."""

from __future__ import annotations

import pytest

from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.manifest import (
    FULL_TEMPLATE,
    MINIMAL_TEMPLATE,
    build_manifest,
    find_requirements,
    load_manifest,
    resolve_zephyr_base,
    write_local_manifest,
)

ZEPHYR = "https://github.com/zephyrproject-rtos/zephyr"


def test_full_template_imports_everything() -> None:
    doc = build_manifest(
        template=FULL_TEMPLATE, board_family="nrf", zephyr_remote=ZEPHYR, zephyr_revision="v4.1.0", manifest_dir="m"
    )
    zephyr = doc["manifest"]["projects"][0]
    assert zephyr["import"] is True
    assert zephyr["revision"] == "v4.1.0"
    assert doc["manifest"]["self"] == {"path": "m"}


def test_minimal_template_limits_modules_to_board_family() -> None:
    doc = build_manifest(
        template=MINIMAL_TEMPLATE, board_family="nrf", zephyr_remote=ZEPHYR, zephyr_revision="main", manifest_dir="m"
    )
    assert doc["manifest"]["projects"][0]["import"] == {"name-allowlist": ["cmsis", "hal_nordic", "segger"]}


def test_unknown_choices_are_rejected() -> None:
    with pytest.raises(ValueError, match="template"):
        build_manifest(template="Huge", board_family="nrf", zephyr_remote=ZEPHYR, zephyr_revision="main", manifest_dir="m")
    with pytest.raises(ValueError, match="board family"):
        build_manifest(
            template=MINIMAL_TEMPLATE, board_family="z80", zephyr_remote=ZEPHYR, zephyr_revision="main", manifest_dir="m"
        )


def test_written_manifest_loads_back(tmp_path) -> None:
    paths = WorkspacePaths(tmp_path)
    path = write_local_manifest(
        paths, template=FULL_TEMPLATE, board_family="esp32", zephyr_remote=ZEPHYR, zephyr_revision="main"
    )
    assert path == tmp_path / "manifest" / "west.yml"
    assert load_manifest(path)["projects"][0]["url"] == ZEPHYR
    assert (tmp_path / ".west" / "config").is_file()


def test_find_requirements_prefers_zephyr(tmp_path) -> None:
    paths = WorkspacePaths(tmp_path)
    for folder in ("zephyr/scripts", "aaa/scripts"):
        (tmp_path / folder).mkdir(parents=True)
        (tmp_path / folder / "requirements.txt").write_text("west\n", encoding="utf-8")

    assert find_requirements(paths) == tmp_path / "zephyr" / "scripts" / "requirements.txt"


def test_find_requirements_searches_synced_tree_but_not_venv(tmp_path) -> None:
    paths = WorkspacePaths(tmp_path)
    venv_scripts = tmp_path / ".venv" / "scripts"
    venv_scripts.mkdir(parents=True)
    (venv_scripts / "requirements.txt").write_text("nope\n", encoding="utf-8")
    assert find_requirements(paths) is None

    nested = tmp_path / "deps" / "zephyr" / "scripts"
    nested.mkdir(parents=True)
    (nested / "requirements.txt").write_text("west\n", encoding="utf-8")
    assert find_requirements(paths) == nested / "requirements.txt"


# ---------------------------------------------------------------------------
# Zephyr location
# ---------------------------------------------------------------------------


def _west_config(root, body: str) -> None:
    (root / ".west").mkdir(parents=True, exist_ok=True)
    (root / ".west" / "config").write_text(body, encoding="utf-8")


def test_zephyr_base_from_west_config(tmp_path) -> None:
    _west_config(tmp_path, "[manifest]\npath = app\n\n[zephyr]\nbase = sdk/zephyr\n")
    assert resolve_zephyr_base(WorkspacePaths(tmp_path)) == "sdk/zephyr"


def test_zephyr_base_from_manifest_project_path(tmp_path) -> None:
    _west_config(tmp_path, "[manifest]\npath = app\nfile = west.yml\n")
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "west.yml").write_text(
        "manifest:\n  projects:\n    - name: hal_nordic\n      path: modules/hal/nordic\n"
        "    - name: zephyr\n      path: deps/zephyr\n",
        encoding="utf-8",
    )
    assert resolve_zephyr_base(WorkspacePaths(tmp_path)) == "deps/zephyr"


def test_zephyr_manifest_repository(tmp_path) -> None:
    # ``west init -m https://github.com/zephyrproject-rtos/zephyr``
    _west_config(tmp_path, "[manifest]\npath = zephyr\nfile = west.yml\n")
    (tmp_path / "zephyr").mkdir()
    (tmp_path / "zephyr" / "west.yml").write_text(
        "manifest:\n  projects:\n    - name: cmsis\n      path: modules/hal/cmsis\n  self:\n    path: zephyr\n",
        encoding="utf-8",
    )
    assert resolve_zephyr_base(WorkspacePaths(tmp_path)) == "zephyr"


def test_zephyr_base_defaults(tmp_path) -> None:
    assert resolve_zephyr_base(WorkspacePaths(tmp_path)) == "zephyr"

    _west_config(tmp_path, "[manifest]\npath = app\n")
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "west.yml").write_text("manifest: [not, a, mapping\n", encoding="utf-8")
    assert resolve_zephyr_base(WorkspacePaths(tmp_path)) == "zephyr"


def test_paths_follow_zephyr_base(tmp_path) -> None:
    paths = WorkspacePaths(tmp_path, zephyr_base="deps/zephyr")
    assert paths.zephyr_boards_dir == tmp_path / "deps" / "zephyr" / "boards"
    assert paths.venv_environment()["ZEPHYR_BASE"] == str(tmp_path / "deps" / "zephyr")
