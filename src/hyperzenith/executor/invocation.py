"""
Gradle invocation construction.

Toolchain flags are derived from an explicit, enumerated option set rather
than string concatenation, so every flag that reaches the command line can
be traced to one field here.

    Option               Turbo        Non-turbo   Gradle arguments
    -------------------  -----------  ----------  -------------------------------------------
    task                 per target   per target  assembleDebug | bundleDebug
    max_workers          profile      profile     --max-workers=N
    heap_mb              profile      profile     -Dorg.gradle.jvmargs=-Xmx<N>m ...
    parallel             on           off         --parallel -Dorg.gradle.parallel=true
    build_cache          on           off         --build-cache -Dorg.gradle.caching=true
    configuration_cache  on           off         --configuration-cache
                                                  --configuration-cache-problems=warn
    incremental          on           off         -Dkotlin.incremental=true
                                                  -Dorg.gradle.vfs.watch=true
    skip_tasks           lint, test   none        -x lint -x test
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from ..models.build import BuildRequest, BuildTarget
from ..models.hardware import HardwareProfile
from ..validation import ValidationError

GRADLE_TASKS = {
    BuildTarget.APK: "assembleDebug",
    BuildTarget.AAB: "bundleDebug",
}

TURBO_SKIPPED_TASKS = ("lint", "test")

# Keeps the daemon alive for an hour between builds.
DAEMON_IDLE_TIMEOUT_MS = 3_600_000


@dataclass(frozen=True)
class GradleInvocation:
    """The complete, auditable set of options for one Gradle run."""

    task: str
    max_workers: int
    heap_mb: int
    parallel: bool = False
    build_cache: bool = False
    configuration_cache: bool = False
    incremental: bool = False
    skip_tasks: Tuple[str, ...] = field(default_factory=tuple)

    def jvm_args(self) -> str:
        args = [f"-Xmx{self.heap_mb}m"]
        if self.parallel:
            args.extend(["-XX:+UseParallelGC", "-XX:MaxMetaspaceSize=1g"])
        return " ".join(args)

    def to_args(self) -> List[str]:
        """Gradle command-line arguments (without the wrapper itself)."""
        args = [self.task, f"--max-workers={self.max_workers}", f"-Dorg.gradle.jvmargs={self.jvm_args()}"]

        if self.parallel:
            args.extend(["--parallel", "-Dorg.gradle.parallel=true"])
        if self.build_cache:
            args.extend(["--build-cache", "-Dorg.gradle.caching=true"])
        if self.configuration_cache:
            args.extend(["--configuration-cache", "--configuration-cache-problems=warn"])
        if self.incremental:
            args.extend([
                "-Dkotlin.incremental=true",
                "-Dorg.gradle.vfs.watch=true",
                f"-Dorg.gradle.daemon.idletimeout={DAEMON_IDLE_TIMEOUT_MS}",
            ])
        for task in self.skip_tasks:
            args.extend(["-x", task])

        return args


def build_invocation(request: BuildRequest, profile: HardwareProfile) -> GradleInvocation:
    """
    Derive the Gradle options for ``request`` on a host described by ``profile``.

    Raises:
        ValidationError: If the target is not a local (Android) target
    """
    task = GRADLE_TASKS.get(request.target)
    if task is None:
        raise ValidationError(
            f"Target '{request.target.value}' cannot be built locally",
            field_name="target",
            value=request.target.value,
        )

    if not request.turbo:
        return GradleInvocation(task=task, max_workers=profile.max_workers, heap_mb=profile.heap_mb)

    return GradleInvocation(
        task=task,
        max_workers=profile.max_workers,
        heap_mb=profile.heap_mb,
        parallel=True,
        build_cache=True,
        configuration_cache=True,
        incremental=True,
        skip_tasks=TURBO_SKIPPED_TASKS,
    )
