"""
Hardware profile data model.
"""

from dataclasses import dataclass

GIB = 1024 ** 3
MIB = 1024 ** 2

MIN_HEAP_BYTES = 4 * GIB
MAX_HEAP_BYTES = 16 * GIB


@dataclass(frozen=True)
class HardwareProfile:
    """Point-in-time host capacity and the build plan derived from it."""

    cpu_cores: int
    total_ram_bytes: int
    # Toolchain worker count: 90% of cores, at least 1.
    max_workers: int
    # Toolchain heap: half of RAM, clamped to [4 GiB, 16 GiB].
    heap_bytes: int

    @property
    def heap_mb(self) -> int:
        return self.heap_bytes // MIB

    @property
    def heap_gb(self) -> float:
        return self.heap_bytes / GIB

    @property
    def total_ram_gb(self) -> float:
        return self.total_ram_bytes / GIB

    def describe(self) -> str:
        return (
            f"{self.cpu_cores} cores, {self.total_ram_gb:.1f}GB RAM -> "
            f"{self.max_workers} workers, {self.heap_gb:.1f}GB heap"
        )
