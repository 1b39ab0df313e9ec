"""
Host hardware profiling.

Reads the logical core count and total RAM with psutil and derives the
toolchain worker/heap plan from them.
"""

import logging
import math
from typing import Optional

import psutil

from ..models.hardware import GIB, MAX_HEAP_BYTES, MIN_HEAP_BYTES, HardwareProfile
from ..validation import ProfilingError, handle_error, ErrorSeverity

logger = logging.getLogger(__name__)

WORKER_CORE_FACTOR = 0.9
HEAP_RAM_FACTOR = 0.5

# Conservative plan used when the host cannot be read.
FALLBACK_WORKERS = 4
FALLBACK_HEAP_BYTES = 4 * GIB


def calculate_profile(cpu_cores: int, total_ram_bytes: int) -> HardwareProfile:
    """Derive the worker/heap plan from raw host capacity.

    Args:
        cpu_cores: Logical CPU count.
        total_ram_bytes: Installed physical memory.

    Returns:
        HardwareProfile with ``max_workers >= 1`` and a heap clamped to
        [4 GiB, 16 GiB].

    Examples:
        >>> calculate_profile(8, 16 * GIB).max_workers
        7
        >>> calculate_profile(8, 16 * GIB).heap_bytes == 8 * GIB
        True
    """
    cores = max(0, int(cpu_cores))
    ram = max(0, int(total_ram_bytes))

    # Round half up; round() would send 4.5 to 4.
    max_workers = max(1, math.floor(cores * WORKER_CORE_FACTOR + 0.5))
    heap_bytes = min(max(int(ram * HEAP_RAM_FACTOR), MIN_HEAP_BYTES), MAX_HEAP_BYTES)

    return HardwareProfile(
        cpu_cores=cores,
        total_ram_bytes=ram,
        max_workers=max_workers,
        heap_bytes=heap_bytes,
    )


class HardwareProfiler:
    """Point-in-time reader of host capacity."""

    def read(self) -> HardwareProfile:
        """
        Read the host and build a profile.

        Raises:
            ProfilingError: If core or memory counts cannot be read
        """
        try:
            cpu_cores: Optional[int] = psutil.cpu_count(logical=True)
            total_ram = psutil.virtual_memory().total
        except Exception as e:
            raise ProfilingError(f"Failed to query host hardware: {e}") from e

        if not cpu_cores:
            raise ProfilingError("psutil could not determine the CPU core count")
        if not total_ram:
            raise ProfilingError("psutil could not determine total memory")

        return calculate_profile(cpu_cores, total_ram)

    def profile(self) -> HardwareProfile:
        """
        Profile the host, falling back to a conservative plan on failure.

        Never raises: a ProfilingError is logged as a warning and the
        fallback (4 workers, 4 GiB heap) is returned instead.
        """
        try:
            hardware = self.read()
        except ProfilingError as e:
            handle_error(
                error=e,
                context="hardware profiling (using 4 workers / 4GB heap)",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return HardwareProfile(
                cpu_cores=FALLBACK_WORKERS,
                total_ram_bytes=2 * FALLBACK_HEAP_BYTES,
                max_workers=FALLBACK_WORKERS,
                heap_bytes=FALLBACK_HEAP_BYTES,
            )

        logger.info(f"Hardware profile: {hardware.describe()}")
        return hardware
