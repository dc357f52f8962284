"""Zephyr SDK installation via ``west sdk install``.

The user either lets west pick (``Automatic``) or narrows the install to a
set of cross toolchains.  Narrowing asks a second question: every known
toolchain, or a hand-picked subset.  An empty subset counts as cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from westkit.workflow.errors import OperationCancelledError, SdkInstallFailedError
from westkit.workflow.execution.environment import WorkspacePaths
from westkit.workflow.execution.waiting import RetryPolicy, require_stage
from westkit.workflow.models.enums import PipelineStage, SdkInstallMode
from westkit.workflow.models.workspace import SdkRecord

if TYPE_CHECKING:
    from westkit.workflow.context import WorkspaceContext
    from westkit.workflow.execution.process import OutputCallback, ProcessResult, ProcessRunner
    from westkit.workflow.prompts import UserPrompt
    from westkit.workflow.settings import WestkitSettings

AUTOMATIC = "Automatic"
SELECT_TOOLCHAINS = "Select specific toolchains"
INSTALL_ALL = "Install all toolchains"

KNOWN_TOOLCHAINS = [
    "aarch64-zephyr-elf",
    "arc64-zephyr-elf",
    "arc-zephyr-elf",
    "arm-zephyr-eabi",
    "microblazeel-zephyr-elf",
    "mips-zephyr-elf",
    "nios2-zephyr-elf",
    "riscv64-zephyr-elf",
    "sparc-zephyr-elf",
    "x86_64-zephyr-elf",
    "xtensa-espressif_esp32_zephyr-elf",
    "xtensa-espressif_esp32s2_zephyr-elf",
    "xtensa-espressif_esp32s3_zephyr-elf",
    "xtensa-nxp_imx_adsp_zephyr-elf",
    "xtensa-intel_ace15_mtpm_zephyr-elf",
]


@dataclass
class SdkInstallResult:
    mode: SdkInstallMode
    toolchains: list[str] = field(default_factory=list)
    process: ProcessResult | None = None


def sdk_install_args(toolchains: list[str], version: str | None = None) -> list[str]:
    """Arguments for ``west`` -- no ``-t`` means west decides what to install."""
    args = ["sdk", "install"]
    if version:
        args += ["--version", version]
    if toolchains:
        args += ["-t", *toolchains]
    return args


class ToolchainInstaller:
    def __init__(
        self,
        ctx: WorkspaceContext,
        *,
        runner: ProcessRunner,
        prompt: UserPrompt,
        settings: WestkitSettings,
        policy: RetryPolicy | None = None,
        on_output: OutputCallback | None = None,
    ) -> None:
        self._ctx = ctx
        self._runner = runner
        self._prompt = prompt
        self._settings = settings
        self._policy = policy
        self._on_output = on_output

    @property
    def _paths(self) -> WorkspacePaths:
        return WorkspacePaths.for_workspace(self._ctx, self._settings)

    async def install_sdk(self) -> SdkInstallResult:
        await require_stage(self._ctx, PipelineStage.PACKAGES_READY, self._policy)

        mode, toolchains = await self._choose()
        process = await self._runner.run(
            self._settings.west_command,
            sdk_install_args(toolchains, self._settings.sdk_version),
            cwd=self._ctx.root,
            env=self._paths.venv_environment(),
            timeout=self._settings.process_timeout,
            on_output=self._on_output,
        )
        if not process.ok:
            tail = "\n".join(process.output.splitlines()[-15:])
            raise SdkInstallFailedError(tail, process)

        async with self._ctx.mutate() as draft:
            draft.sdk = SdkRecord(mode=mode, toolchains=toolchains)
        logger.info("Zephyr SDK installed (mode={}, toolchains={})", mode, toolchains or "default")
        return SdkInstallResult(mode=mode, toolchains=toolchains, process=process)

    async def _choose(self) -> tuple[SdkInstallMode, list[str]]:
        choice = await self._prompt.select_one("Select SDK installation mode", [AUTOMATIC, SELECT_TOOLCHAINS])
        if choice is None:
            raise OperationCancelledError("SDK installation")
        if choice == AUTOMATIC:
            return SdkInstallMode.AUTOMATIC, []

        scope = await self._prompt.select_one("Select toolchains to install", [INSTALL_ALL, SELECT_TOOLCHAINS])
        if scope is None:
            raise OperationCancelledError("SDK installation")
        if scope == INSTALL_ALL:
            return SdkInstallMode.ALL_TOOLCHAINS, list(KNOWN_TOOLCHAINS)

        picked = await self._prompt.select_many("Select toolchains", KNOWN_TOOLCHAINS)
        if not picked:
            raise OperationCancelledError("SDK installation")
        return SdkInstallMode.SELECTED_TOOLCHAINS, list(picked)
