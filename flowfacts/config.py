"""
flowfacts/config.py
───────────────────

Tuning knobs for the worklist solver.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List


class WorklistStrategy(enum.Enum):
    """Order in which pending nodes are taken off the worklist.

    Every strategy reaches the same fixed point; they differ only in the
    number of iterations needed to get there.
    """
    FIFO = "fifo"
    LIFO = "lifo"
    PRIORITY = "priority"   # smallest node index first


BACKWARD_MODES = ("worklist", "round-robin")


@dataclass
class SolverConfig:
    """Configuration of one solver run."""
    strategy: WorklistStrategy = WorklistStrategy.FIFO
    max_iterations: int = 1_000_000
    backward_mode: str = "worklist"

    def validate(self) -> List[str]:
        """Return a list of problems (empty if the configuration is valid)."""
        problems: List[str] = []
        if not isinstance(self.strategy, WorklistStrategy):
            problems.append(f"unknown worklist strategy {self.strategy!r}")
        bound = self.max_iterations
        if isinstance(bound, bool) or not isinstance(bound, int):
            problems.append(f"max_iterations must be an int, got {bound!r}")
        elif bound <= 0:
            problems.append("max_iterations must be positive")
        if self.backward_mode not in BACKWARD_MODES:
            problems.append(
                f"backward_mode must be one of {', '.join(BACKWARD_MODES)}"
            )
        return problems
