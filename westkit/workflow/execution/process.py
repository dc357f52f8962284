"""External process runner.

Every long-running action (``west init``/``update``, venv creation, ``pip``,
SDK install, ``west build``) goes through a ``ProcessRunner``.  From the
caller's view ``run`` blocks until the process exits; underneath, stdout and
stderr are pumped line by line so output is logged (and optionally forwarded)
while the process is still running.

Failure contract:

- the process cannot be started at all -> ``ExternalToolError``
- the caller-level timeout expires -> the child is terminated (then killed)
  and ``ProcessTimeoutError`` is raised
- the awaiting task is cancelled -> the child is terminated and the
  cancellation propagates
- reading or forwarding the output fails -> the child is terminated and
  ``ExternalToolError`` is raised
- a non-zero exit is *not* an exception here; the caller decides what it
  means via ``ProcessResult.ok``

Nothing is rolled back after a termination: whatever the tool already wrote
to disk stays there.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from westkit.workflow.errors import ExternalToolError, ProcessTimeoutError

OutputCallback = Callable[[str, str], None]
"""Called with ``(stream_name, line)`` for every line of output."""

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ProcessResult:
    argv: list[str]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined output, stderr last (where most tools put the error)."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@runtime_checkable
class ProcessRunner(Protocol):
    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        on_output: OutputCallback | None = None,
    ) -> ProcessResult: ...


def format_argv(argv: Sequence[str]) -> str:
    return shlex.join(str(a) for a in argv)


class SubprocessRunner:
    """``ProcessRunner`` backed by ``asyncio.create_subprocess_exec``.

    ``env`` entries are layered over the current environment.
    """

    def __init__(self, *, default_timeout: float | None = None, kill_grace: float = 5.0) -> None:
        self._default_timeout = default_timeout
        self._kill_grace = kill_grace

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
        effective_timeout = timeout if timeout is not None else self._default_timeout
        logger.info("CMD {} (cwd={})", format_argv(argv), cwd or ".")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(os.environ, **(env or {})),
            )
        except OSError as exc:
            msg = f"Could not start '{command}': {exc}"
            raise ExternalToolError(msg) from exc

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []
        tasks = [
            asyncio.ensure_future(_pump(proc.stdout, "stdout", stdout_lines, on_output)),
            asyncio.ensure_future(_pump(proc.stderr, "stderr", stderr_lines, on_output)),
            asyncio.ensure_future(proc.wait()),
        ]

        try:
            await asyncio.wait_for(asyncio.gather(*tasks), effective_timeout)
        except TimeoutError:
            logger.warning("CMD timed out after {}s, terminating: {}", effective_timeout, format_argv(argv))
            await _terminate(proc, self._kill_grace)
            msg = f"'{format_argv(argv)}' did not finish within {effective_timeout}s"
            raise ProcessTimeoutError(msg) from None
        except asyncio.CancelledError:
            logger.warning("CMD cancelled, terminating: {}", format_argv(argv))
            await _terminate(proc, self._kill_grace)
            raise
        except Exception as exc:
            logger.error("CMD output handling failed, terminating: {}", format_argv(argv))
            await _terminate(proc, self._kill_grace)
            msg = f"Reading output of '{format_argv(argv)}' failed: {exc}"
            raise ExternalToolError(msg) from exc
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        result = ProcessResult(
            argv=argv,
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout="\n".join(stdout_lines),
            stderr="\n".join(stderr_lines),
        )
        if result.ok:
            logger.debug("CMD finished: {}", format_argv(argv))
        else:
            logger.warning("CMD exited {}: {}", result.exit_code, format_argv(argv))
        return result


async def _pump(
    stream: asyncio.StreamReader | None,
    name: str,
    sink: list[str],
    on_output: OutputCallback | None,
) -> None:
    """Split *stream* into lines; reads in chunks so a line may exceed any buffer."""
    if stream is None:
        return
    pending = b""
    while chunk := await stream.read(_CHUNK_SIZE):
        *complete, pending = (pending + chunk).split(b"\n")
        for raw in complete:
            _emit(raw, name, sink, on_output)
    if pending:
        _emit(pending, name, sink, on_output)


def _emit(raw: bytes, name: str, sink: list[str], on_output: OutputCallback | None) -> None:
    line = raw.decode("utf-8", errors="replace").rstrip("\r")
    sink.append(line)
    logger.debug("{} {}", name.upper(), line)
    if on_output is not None:
        on_output(name, line)


async def _terminate(proc: asyncio.subprocess.Process, grace: float) -> None:
    """Best-effort SIGTERM, then SIGKILL after *grace* seconds."""
    if proc.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), grace)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
