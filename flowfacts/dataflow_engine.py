"""
flowfacts.dataflow_engine
=========================

A generic, monotone dataflow analysis framework over statement-level
CFGs (:mod:`flowfacts.ctrlflow_graph`).

Theory
------
A dataflow analysis is defined by:

1.  A **fact lattice** of finite height, with a ``meet_into`` operator
    that merges one fact into another in place.
2.  A **direction**: *forward* (facts flow along control-flow edges) or
    *backward* (facts flow against them).
3.  A **transfer function** per node.  It writes the node's outgoing
    fact (forward) or incoming fact (backward) and reports whether that
    fact changed.
4.  A **boundary fact** for the entry (forward) or exit (backward) node,
    and an **initial fact** for every other node.

The solver iterates until no node's fact changes.  Because the lattice
has finite height and every transfer function is monotone, the fixed
point is unique and every scheduling order reaches it.

Worklist strategies
-------------------
``FIFO``
    Breadth-first.  The default.
``LIFO``
    Depth-first.
``PRIORITY``
    Smallest node index first (heap-backed).

A pending-membership set keeps each node at most once on the worklist.
Backward analyses may alternatively be solved by plain round-robin
sweeps (``SolverConfig.backward_mode = "round-robin"``), which reach the
same fixed point.

Public API
----------
    Direction           - forward / backward enum
    DataflowAnalysis    - abstract base every analysis implements
    DataflowResult      - in/out facts per node, plus solve statistics
    WorklistSolver      - fixed-point engine
    solve               - convenience function
    check_monotonicity  - debug utility

Usage example
-------------
::

    from flowfacts.ctrlflow_graph import build_cfg
    from flowfacts.dataflow_analyses import ConstantPropagation
    from flowfacts.dataflow_engine import solve

    cfg = build_cfg(ir)
    result = solve(cfg, ConstantPropagation())
    for stmt in ir:
        print(stmt, result.get_out_fact(stmt))
"""

from __future__ import annotations

import abc
import enum
import heapq
import logging
import time
from collections import deque
from typing import (
    Any,
    ClassVar,
    Deque,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from flowfacts.config import SolverConfig, WorklistStrategy
from flowfacts.ctrlflow_graph import CFG
from flowfacts.errors import ResultFrozenError, SolverDivergenceError
from flowfacts.ir import Stmt

logger = logging.getLogger(__name__)

F = TypeVar("F")


# ===========================================================================
# DIRECTION
# ===========================================================================

class Direction(enum.Enum):
    """Direction of dataflow propagation."""
    FORWARD = "forward"
    BACKWARD = "backward"


# ===========================================================================
# ANALYSIS CONTRACT
# ===========================================================================

class DataflowAnalysis(abc.ABC, Generic[F]):
    """Abstract base class for a dataflow analysis.

    Facts are mutable objects exposing ``copy()`` and ``leq(other)``.
    Subclasses set ``ID`` and implement the five hooks below; the solver
    calls nothing else.
    """

    ID: ClassVar[str] = ""

    @abc.abstractmethod
    def is_forward(self) -> bool:
        ...

    @abc.abstractmethod
    def new_boundary_fact(self, cfg: CFG) -> F:
        """Fact for the entry node (forward) or the exit node (backward)."""
        ...

    @abc.abstractmethod
    def new_initial_fact(self) -> F:
        """Fact every other node starts from."""
        ...

    @abc.abstractmethod
    def meet_into(self, fact: F, target: F) -> None:
        """Merge *fact* into *target* in place."""
        ...

    @abc.abstractmethod
    def transfer_node(self, node: Stmt, in_fact: F, out_fact: F) -> bool:
        """Apply the node's transfer function.

        A forward analysis updates *out_fact* from *in_fact*, a backward
        one updates *in_fact* from *out_fact*.  Returns ``True`` if the
        updated fact changed.
        """
        ...

    @property
    def direction(self) -> Direction:
        return Direction.FORWARD if self.is_forward() else Direction.BACKWARD

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.ID!r})"


# ===========================================================================
# RESULT
# ===========================================================================

class DataflowResult(Generic[F]):
    """Container for dataflow analysis results.

    The solver owns a result while iterating and freezes it before handing
    it out; afterwards the setters raise :class:`ResultFrozenError`.

    Attributes
    ----------
    iterations : int
        Number of node visits performed.
    converged : bool
        Whether the analysis reached a fixed point.
    elapsed_seconds : float
        Wall-clock time.
    direction : Direction
        Analysis direction.
    """

    def __init__(self, direction: Direction = Direction.FORWARD) -> None:
        self._in_facts: Dict[Stmt, F] = {}
        self._out_facts: Dict[Stmt, F] = {}
        self.iterations: int = 0
        self.converged: bool = False
        self.elapsed_seconds: float = 0.0
        self.direction = direction
        self._frozen = False

    def get_in_fact(self, node: Stmt) -> Optional[F]:
        return self._in_facts.get(node)

    def get_out_fact(self, node: Stmt) -> Optional[F]:
        return self._out_facts.get(node)

    def set_in_fact(self, node: Stmt, fact: F) -> None:
        self._check_writable()
        self._in_facts[node] = fact

    def set_out_fact(self, node: Stmt, fact: F) -> None:
        self._check_writable()
        self._out_facts[node] = fact

    def items_in(self) -> Iterable[Tuple[Stmt, F]]:
        """Iterate over ``(node, in_fact)`` pairs."""
        return self._in_facts.items()

    def items_out(self) -> Iterable[Tuple[Stmt, F]]:
        """Iterate over ``(node, out_fact)`` pairs."""
        return self._out_facts.items()

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_writable(self) -> None:
        if self._frozen:
            raise ResultFrozenError("dataflow result is read-only once solved")

    def __repr__(self) -> str:
        return (
            f"DataflowResult({self.direction.value}, nodes={len(self._in_facts)}, "
            f"iterations={self.iterations}, converged={self.converged})"
        )


# ===========================================================================
# WORKLIST
# ===========================================================================

class _Worklist:
    """Pending nodes, ordered by strategy, each present at most once."""

    def __init__(self, strategy: WorklistStrategy, order: Dict[Stmt, int]) -> None:
        self._strategy = strategy
        self._order = order
        self._queue: Deque[Stmt] = deque()
        self._heap: List[int] = []
        self._pending: Set[Stmt] = set()
        self._by_rank = {rank: node for node, rank in order.items()}

    def push(self, node: Stmt) -> None:
        if node in self._pending:
            return
        self._pending.add(node)
        if self._strategy == WorklistStrategy.PRIORITY:
            heapq.heappush(self._heap, self._order[node])
        else:
            self._queue.append(node)

    def pop(self) -> Stmt:
        if self._strategy == WorklistStrategy.PRIORITY:
            node = self._by_rank[heapq.heappop(self._heap)]
        elif self._strategy == WorklistStrategy.LIFO:
            node = self._queue.pop()
        else:
            node = self._queue.popleft()
        self._pending.discard(node)
        return node

    def __len__(self) -> int:
        return len(self._pending)


# ===========================================================================
# SOLVER
# ===========================================================================

class WorklistSolver(Generic[F]):
    """Fixed-point engine for one :class:`DataflowAnalysis`.

    Parameters
    ----------
    analysis : DataflowAnalysis
        The analysis to solve.
    config : SolverConfig, optional
        Strategy, iteration bound and backward mode.

    Raises
    ------
    ValueError
        If *config* does not validate.
    """

    def __init__(
        self,
        analysis: DataflowAnalysis[F],
        config: Optional[SolverConfig] = None,
    ) -> None:
        self.analysis = analysis
        self.config = config if config is not None else SolverConfig()
        problems = self.config.validate()
        if problems:
            raise ValueError(
                "Invalid solver configuration: " + "; ".join(problems)
            )

    def solve(self, cfg: CFG) -> DataflowResult[F]:
        """Run the analysis to its fixed point.

        Raises
        ------
        SolverDivergenceError
            If more than ``config.max_iterations`` node visits are needed.
        """
        t0 = time.monotonic()
        result: DataflowResult[F] = DataflowResult(self.analysis.direction)
        self._initialize(cfg, result)
        if self.analysis.is_forward():
            self._do_solve_forward(cfg, result)
        elif self.config.backward_mode == "round-robin":
            self._do_solve_round_robin(cfg, result)
        else:
            self._do_solve_backward(cfg, result)
        result.converged = True
        result.elapsed_seconds = time.monotonic() - t0
        result.freeze()
        logger.debug(
            "%r on %r: %d iterations (%s), %.3f ms",
            self.analysis, cfg, result.iterations,
            self._schedule_name(), result.elapsed_seconds * 1000.0,
        )
        return result

    def resolve(self, cfg: CFG, result: DataflowResult[F]) -> int:
        """Re-apply every equation once to a copy of *result*.

        Returns the number of nodes whose fact changed; ``0`` means
        *result* is a fixed point.  *result* itself is not modified.
        """
        scratch: DataflowResult[F] = DataflowResult(result.direction)
        for node in cfg:
            scratch.set_in_fact(node, result.get_in_fact(node).copy())
            scratch.set_out_fact(node, result.get_out_fact(node).copy())
        changed = 0
        forward = self.analysis.is_forward()
        for node in cfg:
            if forward and not cfg.is_entry(node):
                changed += self._visit_forward(cfg, scratch, node)
            elif not forward and not cfg.is_exit(node):
                changed += self._visit_backward(cfg, scratch, node)
        return changed

    # ----- initialisation ---------------------------------------------------

    def _initialize(self, cfg: CFG, result: DataflowResult[F]) -> None:
        a = self.analysis
        for node in cfg:
            result.set_in_fact(node, a.new_initial_fact())
            result.set_out_fact(node, a.new_initial_fact())
        if a.is_forward():
            result.set_out_fact(cfg.entry, a.new_boundary_fact(cfg))
        else:
            result.set_in_fact(cfg.exit, a.new_boundary_fact(cfg))

    # ----- node visits ------------------------------------------------------

    def _visit_forward(
        self, cfg: CFG, result: DataflowResult[F], node: Stmt
    ) -> bool:
        a = self.analysis
        in_fact = a.new_initial_fact()
        for pred in cfg.preds_of(node):
            a.meet_into(result.get_out_fact(pred), in_fact)
        result.set_in_fact(node, in_fact)
        return a.transfer_node(node, in_fact, result.get_out_fact(node))

    def _visit_backward(
        self, cfg: CFG, result: DataflowResult[F], node: Stmt
    ) -> bool:
        a = self.analysis
        out_fact = a.new_initial_fact()
        for succ in cfg.succs_of(node):
            a.meet_into(result.get_in_fact(succ), out_fact)
        result.set_out_fact(node, out_fact)
        return a.transfer_node(node, result.get_in_fact(node), out_fact)

    # ----- drivers ----------------------------------------------------------

    def _do_solve_forward(self, cfg: CFG, result: DataflowResult[F]) -> None:
        worklist = self._new_worklist(cfg)
        for node in cfg:
            if not cfg.is_entry(node):
                worklist.push(node)
        while worklist:
            node = worklist.pop()
            self._tick(result, len(worklist))
            if self._visit_forward(cfg, result, node):
                for succ in cfg.succs_of(node):
                    worklist.push(succ)

    def _do_solve_backward(self, cfg: CFG, result: DataflowResult[F]) -> None:
        worklist = self._new_worklist(cfg)
        for node in cfg:
            if not cfg.is_exit(node):
                worklist.push(node)
        while worklist:
            node = worklist.pop()
            self._tick(result, len(worklist))
            if self._visit_backward(cfg, result, node):
                for pred in cfg.preds_of(node):
                    worklist.push(pred)

    def _do_solve_round_robin(self, cfg: CFG, result: DataflowResult[F]) -> None:
        # Sweeps run exit-to-entry so that facts flow with the iteration.
        nodes = [n for n in reversed(cfg.nodes) if not cfg.is_exit(n)]
        changed = True
        while changed:
            changed = False
            for node in nodes:
                self._tick(result, len(nodes))
                changed |= self._visit_backward(cfg, result, node)

    # ----- helpers ----------------------------------------------------------

    def _new_worklist(self, cfg: CFG) -> _Worklist:
        order = {node: rank for rank, node in enumerate(cfg)}
        return _Worklist(self.config.strategy, order)

    def _tick(self, result: DataflowResult[F], pending: int) -> None:
        result.iterations += 1
        if result.iterations > self.config.max_iterations:
            raise SolverDivergenceError(self.config.max_iterations, pending)

    def _schedule_name(self) -> str:
        if not self.analysis.is_forward() and self.config.backward_mode == "round-robin":
            return "round-robin"
        return self.config.strategy.value


# ===========================================================================
# CONVENIENCE FUNCTIONS
# ===========================================================================

def solve(
    cfg: CFG,
    analysis: DataflowAnalysis[F],
    config: Optional[SolverConfig] = None,
) -> DataflowResult[F]:
    """Solve *analysis* over *cfg* and return the frozen result."""
    return WorklistSolver(analysis, config).solve(cfg)


def check_monotonicity(
    analysis: DataflowAnalysis[F],
    node: Stmt,
    samples: Sequence[F],
) -> bool:
    """Check that the transfer function of *node* is monotone on *samples*.

    For every pair ``(a, b)`` of *samples* where ``a ⊑ b``, verifies that
    ``transfer(a) ⊑ transfer(b)``.  Samples are incoming facts for a
    forward analysis and outgoing facts for a backward one.

    This is a development/debugging utility: it cannot prove monotonicity
    in general, only detect violations.

    Returns
    -------
    bool
        ``True`` if no violation found.
    """
    def apply(sample: Any) -> Any:
        produced = analysis.new_initial_fact()
        if analysis.is_forward():
            analysis.transfer_node(node, sample.copy(), produced)
        else:
            analysis.transfer_node(node, produced, sample.copy())
        return produced

    for a in samples:
        for b in samples:
            if a.leq(b) and not apply(a).leq(apply(b)):
                return False
    return True
