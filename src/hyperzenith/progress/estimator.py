"""
Heuristic build progress estimation.

A line of toolchain output is matched, case-insensitively, against an
ordered table of build phases. This is a heuristic, not a parser: false
matches are tolerated, regressions are not (see ProgressTracker).
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class PhaseRule:
    """Keywords that identify a build phase and its completion checkpoint."""

    phase: str
    keywords: Tuple[str, ...]
    percent: float


# First match wins.
PHASE_TABLE: Tuple[PhaseRule, ...] = (
    PhaseRule("initialization", ("starting", "initializing"), 5.0),
    PhaseRule("dependency_resolution", ("downloading", "resolving"), 12.0),
    PhaseRule("configuration", ("configuring",), 20.0),
    PhaseRule("preprocessing", (":prebuild", "prebuild"), 28.0),
    PhaseRule("compilation", (":compile", "compiling"), 45.0),
    PhaseRule("resource_merging", (":merge", "merging"), 60.0),
    PhaseRule("packaging", (":package", "packaging"), 72.0),
    PhaseRule("assembly", (":assemble", "assembling", ":bundle", "bundling"), 85.0),
    PhaseRule("signing", ("signing", ":sign"), 92.0),
    PhaseRule("completion", ("build successful", "build completed", "build succeeded"), 100.0),
)


def match_phase(line: str) -> Optional[PhaseRule]:
    """Return the first phase whose keywords occur in ``line``."""
    lowered = line.lower()
    for rule in PHASE_TABLE:
        if any(keyword in lowered for keyword in rule.keywords):
            return rule
    return None


def estimate(line: str) -> Optional[float]:
    """
    Map one output line to a completion percentage.

    Args:
        line: Raw output line

    Returns:
        Checkpoint percentage in [0, 100], or None if no phase matches

    Examples:
        >>> estimate("> Task :app:compileDebugKotlin")
        45.0
        >>> estimate("BUILD SUCCESSFUL in 42s")
        100.0
        >>> estimate("some unrelated chatter") is None
        True
    """
    rule = match_phase(line)
    return rule.percent if rule else None


class ProgressTracker:
    """
    Running maximum of estimates for one build session.

    Matched lines raise the value to their checkpoint; unmatched lines creep
    forward by a small increment, never past ``idle_cap``. The value never
    decreases. A new session needs a new tracker.
    """

    def __init__(self, idle_increment: float = 0.08, idle_cap: float = 95.0):
        self.idle_increment = idle_increment
        self.idle_cap = idle_cap
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def update(self, line: str) -> float:
        """Fold one line into the estimate and return the new value."""
        checkpoint = estimate(line)
        if checkpoint is not None:
            candidate = checkpoint
        else:
            candidate = min(self._value + self.idle_increment, self.idle_cap)
        self._value = max(self._value, candidate)
        return self._value

    def complete(self) -> float:
        """Mark the session as finished successfully."""
        self._value = 100.0
        return self._value
