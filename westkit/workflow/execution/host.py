"""Host dependency probe.

Runs ``<tool> --version`` for every required host tool (plus ``west``) and
reports what was found.  Read-only: never touches workspace state.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from westkit.workflow.errors import ExternalToolError
from westkit.workflow.models.api import ToolStatus

if TYPE_CHECKING:
    from westkit.workflow.execution.process import ProcessRunner


async def check_host_tools(
    runner: ProcessRunner,
    tools: Sequence[str],
    *,
    timeout: float | None = 30.0,
) -> list[ToolStatus]:
    """Probe each tool in order; a tool that cannot be started is reported missing."""
    statuses: list[ToolStatus] = []
    for name in dict.fromkeys(tools):
        try:
            result = await runner.run(name, ["--version"], timeout=timeout)
        except ExternalToolError as exc:
            logger.info("Host tool {} not available: {}", name, exc)
            statuses.append(ToolStatus(name=name, found=False))
            continue

        version = next((line.strip() for line in result.output.splitlines() if line.strip()), None)
        statuses.append(
            ToolStatus(
                name=name,
                found=result.ok,
                version=version if result.ok else None,
                path=shutil.which(name),
            )
        )
    return statuses
