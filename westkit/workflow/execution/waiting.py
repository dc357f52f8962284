"""Stage preconditions and waiting.

Downstream commands (SDK install, project scaffolding, build configuration,
build) need the setup pipeline to have reached ``packages_ready``.
``require_stage`` enforces that, optionally re-checking the store with
bounded exponential backoff when another process may still be finishing the
pipeline.  The default policy does not retry.

``wait_for_stage`` is the caller-side polling helper (``westkit wait``); core
operations never poll.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from westkit.workflow.errors import PreconditionNotMetError
from westkit.workflow.models.enums import PipelineStage

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.models.workspace import WorkspaceState
    from westkit.workflow.settings import WestkitSettings


@dataclass(frozen=True)
class RetryPolicy:
    """How often to re-check a precondition that is not met yet."""

    retries: int = 0
    delay: float = 3.0
    backoff: float = 2.0
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls, settings: WestkitSettings) -> RetryPolicy:
        return cls(
            retries=settings.precondition_retries,
            delay=settings.precondition_delay,
            backoff=settings.precondition_backoff,
            max_delay=settings.precondition_max_delay,
        )

    def delays(self) -> Iterator[float]:
        delay = self.delay
        for _ in range(max(self.retries, 0)):
            yield min(delay, self.max_delay)
            delay *= self.backoff


async def require_stage(
    ctx: WorkspaceContext,
    stage: PipelineStage = PipelineStage.PACKAGES_READY,
    policy: RetryPolicy | None = None,
) -> WorkspaceState:
    """Return the workspace state once *stage* is reached.

    Raises ``PreconditionNotMetError`` when retries are exhausted.
    """
    state = await ctx.load()
    if state.setup_stage.reached(stage):
        return state

    for delay in (policy or RetryPolicy()).delays():
        logger.info("Workspace {} is at '{}', re-checking for '{}' in {:.1f}s", ctx.root, state.setup_stage, stage, delay)
        await asyncio.sleep(delay)
        state = await ctx.refresh()
        if state.setup_stage.reached(stage):
            return state

    raise PreconditionNotMetError(stage, state.setup_stage)


async def wait_for_stage(
    ctx: WorkspaceContext,
    stage: PipelineStage = PipelineStage.PACKAGES_READY,
    *,
    interval: float = 3.0,
    timeout: float | None = None,
    on_progress: Callable[[PipelineStage], None] | None = None,
) -> WorkspaceState:
    """Poll the store until *stage* is reached.

    ``on_progress`` is called each time the observed stage changes.  Raises
    ``TimeoutError`` if *timeout* seconds pass first.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    last_seen: PipelineStage | None = None

    while True:
        state = await ctx.refresh()
        current = state.setup_stage
        if current != last_seen:
            last_seen = current
            if on_progress is not None:
                on_progress(current)
        if current.reached(stage):
            return state
        if deadline is not None and time.monotonic() >= deadline:
            msg = f"Workspace {ctx.root} did not reach '{stage}' within {timeout}s (at '{current}')"
            raise TimeoutError(msg)
        await asyncio.sleep(interval)
