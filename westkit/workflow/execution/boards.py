"""Board definition discovery.

A board root is any folder tree holding Zephyr board definitions.  Two
layouts are recognised:

- hardware model v2: ``board.yml`` with a ``board:`` mapping or a ``boards:``
  list, each entry carrying a ``name``
- legacy: ``<board>.yaml`` metadata with an ``identifier`` and ``arch``

When several roots are searched, the first root that defines a name wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from loguru import logger


@dataclass(frozen=True)
class BoardDefinition:
    name: str
    root: Path
    """Search root the definition was found under."""
    path: Path
    vendor: str | None = None


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.debug("Skipping unreadable board file {}: {}", path, exc)
        return None


def _hwmv2_entries(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict):
        return []
    if isinstance(data.get("board"), dict):
        return [data["board"]]
    boards = data.get("boards")
    if isinstance(boards, list):
        return [entry for entry in boards if isinstance(entry, dict)]
    return []


def scan_boards(root: Path) -> list[BoardDefinition]:
    """All boards defined anywhere under *root*, sorted by name."""
    root = Path(root)
    if not root.is_dir():
        return []

    found: dict[str, BoardDefinition] = {}
    for board_file in sorted(root.rglob("board.yml")):
        for entry in _hwmv2_entries(_load_yaml(board_file)):
            name = entry.get("name")
            if isinstance(name, str) and name and name not in found:
                found[name] = BoardDefinition(name=name, root=root, path=board_file, vendor=entry.get("vendor"))

    for meta_file in sorted(root.rglob("*.yaml")):
        data = _load_yaml(meta_file)
        if not isinstance(data, dict) or "arch" not in data:
            continue
        name = data.get("identifier")
        if isinstance(name, str) and name and name not in found:
            found[name] = BoardDefinition(name=name, root=root, path=meta_file, vendor=data.get("vendor"))

    return sorted(found.values(), key=lambda b: b.name)


def discover_boards(roots: Iterable[Path]) -> dict[str, BoardDefinition]:
    """Merge boards from *roots* in priority order."""
    boards: dict[str, BoardDefinition] = {}
    for root in roots:
        for board in scan_boards(root):
            boards.setdefault(board.name, board)
    return boards


def board_root_for(search_path: str | Path) -> Path:
    """``BOARD_ROOT`` for a search path: a ``boards`` folder contributes its parent."""
    path = Path(search_path)
    return path.parent if path.name == "boards" else path
