"""West manifest generation and synced-tree discovery.

The standard setup writes a local ``west.yml`` that pins Zephyr and imports
only the modules needed for the chosen board family (``Minimal``) or every
Zephyr module (``Full``), then marks the folder as a west workspace by writing
``.west/config`` -- the same two files ``west init -l`` would leave behind.
"""

from __future__ import annotations

import configparser
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from westkit.workflow.execution.environment import DEFAULT_ZEPHYR_BASE, WorkspacePaths

MINIMAL_TEMPLATE = "Minimal"
FULL_TEMPLATE = "Full"
MANIFEST_TEMPLATES = [MINIMAL_TEMPLATE, FULL_TEMPLATE]

BOARD_FAMILY_MODULES: dict[str, list[str]] = {
    "stm32": ["cmsis", "hal_stm32"],
    "nrf": ["cmsis", "hal_nordic", "segger"],
    "esp32": ["hal_espressif"],
    "rpi_pico": ["cmsis", "hal_rpi_pico"],
    "nxp": ["cmsis", "hal_nxp"],
    "atmel": ["cmsis", "hal_atmel"],
    "silabs": ["cmsis", "hal_silabs"],
    "ti": ["cmsis", "hal_ti"],
}
BOARD_FAMILIES = list(BOARD_FAMILY_MODULES)


def build_manifest(
    *,
    template: str,
    board_family: str,
    zephyr_remote: str,
    zephyr_revision: str,
    manifest_dir: str,
) -> dict[str, Any]:
    """Return the manifest document as a plain dict."""
    if template not in MANIFEST_TEMPLATES:
        msg = f"Unknown manifest template '{template}'"
        raise ValueError(msg)
    if board_family not in BOARD_FAMILY_MODULES:
        msg = f"Unknown board family '{board_family}'"
        raise ValueError(msg)

    zephyr: dict[str, Any] = {
        "name": "zephyr",
        "url": zephyr_remote,
        "revision": zephyr_revision,
    }
    if template == MINIMAL_TEMPLATE:
        zephyr["import"] = {"name-allowlist": list(BOARD_FAMILY_MODULES[board_family])}
    else:
        zephyr["import"] = True

    return {
        "manifest": {
            "projects": [zephyr],
            "self": {"path": manifest_dir},
        }
    }


def write_local_manifest(
    paths: WorkspacePaths,
    *,
    template: str,
    board_family: str,
    zephyr_remote: str,
    zephyr_revision: str,
) -> Path:
    """Write ``west.yml`` and ``.west/config``; returns the manifest path."""
    document = build_manifest(
        template=template,
        board_family=board_family,
        zephyr_remote=zephyr_remote,
        zephyr_revision=zephyr_revision,
        manifest_dir=paths.manifest_dir.name,
    )
    paths.manifest_dir.mkdir(parents=True, exist_ok=True)
    paths.manifest_file.write_text(
        f"# Generated by westkit ({template}, {board_family})\n" + yaml.safe_dump(document, sort_keys=False),
        encoding="utf-8",
    )

    config = configparser.ConfigParser()
    config["manifest"] = {"path": paths.manifest_dir.name, "file": paths.manifest_file.name}
    config["zephyr"] = {"base": paths.zephyr_dir.relative_to(paths.root).as_posix()}
    paths.west_dir.mkdir(parents=True, exist_ok=True)
    with paths.west_config.open("w", encoding="utf-8") as f:
        config.write(f)

    return paths.manifest_file


def load_manifest(path: Path) -> dict[str, Any]:
    """Parse a west manifest; returns the ``manifest`` mapping."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    manifest = (data.get("manifest") or {}) if isinstance(data, dict) else None
    if not isinstance(manifest, dict):
        msg = f"{path} is not a west manifest"
        raise ValueError(msg)
    return manifest


def _read_west_config(paths: WorkspacePaths) -> configparser.ConfigParser:
    config = configparser.ConfigParser()
    if paths.west_config.is_file():
        config.read(paths.west_config, encoding="utf-8")
    return config


def resolve_zephyr_base(paths: WorkspacePaths) -> str:
    """Locate the zephyr checkout of a synced workspace, relative to its root.

    Looks at ``zephyr.base`` in ``.west/config`` first, then at the ``zephyr``
    project of the active manifest (a manifest repository that is itself
    zephyr counts too).  Falls back to ``zephyr``.
    """
    config = _read_west_config(paths)
    base = config.get("zephyr", "base", fallback=None)
    if base:
        return base

    manifest_path = config.get("manifest", "path", fallback=None)
    if not manifest_path:
        return DEFAULT_ZEPHYR_BASE
    manifest_file = paths.root / manifest_path / config.get("manifest", "file", fallback="west.yml")
    if not manifest_file.is_file():
        return DEFAULT_ZEPHYR_BASE

    try:
        manifest = load_manifest(manifest_file)
    except (yaml.YAMLError, ValueError) as exc:
        logger.warning("Could not read manifest {}: {}", manifest_file, exc)
        return DEFAULT_ZEPHYR_BASE

    for project in manifest.get("projects") or []:
        if isinstance(project, dict) and project.get("name") == "zephyr":
            return str(project.get("path") or project["name"])

    self_path = (manifest.get("self") or {}).get("path") or manifest_path
    if Path(self_path).name == "zephyr":
        return self_path
    return DEFAULT_ZEPHYR_BASE


def find_requirements(paths: WorkspacePaths) -> Path | None:
    """Locate the Python requirements file inside the synced dependency tree.

    ``scripts/requirements.txt`` of the zephyr checkout wins; otherwise the first
    ``scripts/requirements*.txt`` one or two levels down (remote manifests may
    place zephyr under a different folder).
    """
    preferred = paths.zephyr_dir / "scripts" / "requirements.txt"
    if preferred.is_file():
        return preferred

    skip = {paths.venv.resolve(), paths.west_dir.resolve()}
    for pattern in ("*/scripts/requirements.txt", "*/*/scripts/requirements.txt", "*/scripts/requirements*.txt"):
        for candidate in sorted(paths.root.glob(pattern)):
            top = paths.root / candidate.relative_to(paths.root).parts[0]
            if top.resolve() in skip:
                continue
            if candidate.is_file():
                return candidate
    return None
