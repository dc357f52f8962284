"""Shared enumerations used across the workflow core."""

from __future__ import annotations

from enum import StrEnum

# -- Setup pipeline ----------------------------------------------------------


class PipelineStage(StrEnum):
    """Setup progress, derived from the stage flags.

    Ordered: each stage implies every stage before it.
    """

    UNINITIALIZED = "uninitialized"
    MANIFEST_CREATED = "manifest_created"
    DEPENDENCIES_SYNCED = "dependencies_synced"
    ENVIRONMENT_READY = "environment_ready"
    PACKAGES_READY = "packages_ready"

    @property
    def rank(self) -> int:
        return list(PipelineStage).index(self)

    def reached(self, other: PipelineStage) -> bool:
        """True if this stage is ``other`` or later."""
        return self.rank >= other.rank


class ManifestSource(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


# -- Toolchain ---------------------------------------------------------------


class SdkInstallMode(StrEnum):
    AUTOMATIC = "automatic"
    ALL_TOOLCHAINS = "all_toolchains"
    SELECTED_TOOLCHAINS = "selected_toolchains"


# -- Build -------------------------------------------------------------------


class OptimizationProfile(StrEnum):
    """Zephyr optimisation level; value maps to ``CONFIG_<VALUE>_OPTIMIZATIONS``."""

    DEBUG = "debug"
    SPEED = "speed"
    SIZE = "size"
    NO_OPTIMIZATIONS = "no_optimizations"

    @property
    def kconfig(self) -> str:
        if self is OptimizationProfile.NO_OPTIMIZATIONS:
            return "CONFIG_NO_OPTIMIZATIONS"
        return f"CONFIG_{self.value.upper()}_OPTIMIZATIONS"


# -- Commands ----------------------------------------------------------------


class CommandStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
