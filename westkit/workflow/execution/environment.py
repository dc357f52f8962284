"""Workspace layout and runtime environment.

Resolves every on-disk location the workflow touches from the workspace root
and settings, and builds the process environment for commands that must run
inside the workspace virtualenv.

Layout on the host::

    {root}/.west/config                 -> west workspace marker
    {root}/{manifest_dir}/west.yml      -> locally generated manifest (standard setup)
    {root}/{zephyr_base}/               -> synced by ``west update`` (``zephyr`` unless the
                                           manifest places it elsewhere)
    {root}/{venv_dir}/                  -> isolated Python environment
    {root}/{project_id}/                -> scaffolded projects
    {project}/build/{build_id}/         -> build output
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.settings import WestkitSettings

DEFAULT_ZEPHYR_BASE = "zephyr"


class WorkspacePaths:
    """Resolved workspace paths."""

    def __init__(
        self,
        root: Path,
        *,
        venv_dir: str = ".venv",
        manifest_dir: str = "manifest",
        zephyr_base: str = DEFAULT_ZEPHYR_BASE,
    ) -> None:
        self.root = Path(root)
        self._venv_dir = venv_dir
        self._manifest_dir = manifest_dir
        self._zephyr_base = zephyr_base

    @classmethod
    def for_workspace(cls, ctx: WorkspaceContext, settings: WestkitSettings) -> WorkspacePaths:
        """Paths for *ctx*, using the zephyr location recorded after ``west update``."""
        zephyr_base = DEFAULT_ZEPHYR_BASE
        if ctx.is_loaded and ctx.state.manifest is not None and ctx.state.manifest.zephyr_base:
            zephyr_base = ctx.state.manifest.zephyr_base
        return cls(ctx.root, venv_dir=settings.venv_dir, manifest_dir=settings.manifest_dir, zephyr_base=zephyr_base)

    # -- west ------------------------------------------------------------------

    @property
    def west_dir(self) -> Path:
        return self.root / ".west"

    @property
    def west_config(self) -> Path:
        return self.west_dir / "config"

    @property
    def manifest_dir(self) -> Path:
        return self.root / self._manifest_dir

    @property
    def manifest_file(self) -> Path:
        return self.manifest_dir / "west.yml"

    @property
    def zephyr_dir(self) -> Path:
        return self.root / self._zephyr_base

    @property
    def zephyr_boards_dir(self) -> Path:
        return self.zephyr_dir / "boards"

    # -- venv ------------------------------------------------------------------

    @property
    def venv(self) -> Path:
        return self.root / self._venv_dir

    @property
    def venv_bin(self) -> Path:
        return self.venv / ("Scripts" if sys.platform == "win32" else "bin")

    @property
    def venv_python(self) -> Path:
        return self.venv_bin / ("python.exe" if sys.platform == "win32" else "python")

    def venv_environment(self) -> dict[str, str]:
        """Env overrides that activate the workspace venv for a child process."""
        path = os.environ.get("PATH", "")
        return {
            "VIRTUAL_ENV": str(self.venv),
            "PATH": str(self.venv_bin) + (os.pathsep + path if path else ""),
            "ZEPHYR_BASE": str(self.zephyr_dir),
        }

    # -- projects --------------------------------------------------------------

    def project_dir(self, project_id: str) -> Path:
        """Folder for a scaffolded project: ``{root}/{project_id}/``."""
        return self.root / project_id

    @staticmethod
    def build_dir(project_path: Path, build_id: str) -> Path:
        return Path(project_path) / "build" / build_id
