"""
flowfacts.dead_code
===================

Dead code detection on top of constant propagation and liveness.

Two kinds of statement are reported:

``unreachable``
    Not reachable from the entry once branches whose outcome is a known
    constant are pruned.  An ``if`` with a constant condition keeps only
    the taken edge; a ``switch`` on a constant keeps only the matching
    case (or the default).
``useless assignment``
    ``x = e`` where ``e`` has no side effect and ``x`` is not live
    afterwards.

The result is a list of statements sorted by index, each listed once.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import List, Set

from flowfacts.abstract_domains import CPFact, SetFact
from flowfacts.ctrlflow_graph import CFG, CFGEdge, EdgeKind
from flowfacts.dataflow_analyses import ConstantPropagation
from flowfacts.dataflow_engine import DataflowResult
from flowfacts.errors import MalformedCFGError
from flowfacts.ir import (
    IR,
    ArithmeticExp,
    ArithmeticOp,
    ArrayAccess,
    AssignStmt,
    CastExp,
    Exp,
    FieldAccess,
    If,
    NewExp,
    Stmt,
    SwitchStmt,
    Var,
)

logger = logging.getLogger(__name__)


def has_no_side_effect(rvalue: Exp) -> bool:
    """Return ``True`` if evaluating *rvalue* can have no observable effect.

    Allocation, casts, field and array accesses and integer division or
    remainder may run code or throw, so they count as side effects.
    """
    if isinstance(rvalue, (NewExp, CastExp, FieldAccess, ArrayAccess)):
        return False
    if isinstance(rvalue, ArithmeticExp):
        return rvalue.op not in (ArithmeticOp.DIV, ArithmeticOp.REM)
    return True


def _feasible_edges(
    cfg: CFG, node: Stmt, constants: DataflowResult[CPFact]
) -> List[CFGEdge]:
    edges = cfg.out_edges_of(node)
    if isinstance(node, If):
        cond = ConstantPropagation.evaluate(
            node.condition, constants.get_out_fact(node)
        )
        if cond.is_constant():
            taken = EdgeKind.IF_FALSE if cond.get_constant() == 0 else EdgeKind.IF_TRUE
            return [e for e in edges if e.kind == taken]
    elif isinstance(node, SwitchStmt):
        value = constants.get_out_fact(node).get(node.var)
        if value.is_constant():
            n = value.get_constant()
            for e in edges:
                if e.kind == EdgeKind.SWITCH_CASE and e.case_value == n:
                    return [e]
            for e in edges:
                if e.kind == EdgeKind.SWITCH_DEFAULT:
                    return [e]
            raise MalformedCFGError(
                f"switch at {node.index} on constant {n} has no matching "
                f"case and no default edge"
            )
    return edges


def _reachable(cfg: CFG, constants: DataflowResult[CPFact]) -> Set[Stmt]:
    visited: Set[Stmt] = {cfg.entry}
    queue = deque([cfg.entry])
    while queue:
        node = queue.popleft()
        for e in _feasible_edges(cfg, node, constants):
            if e.target not in visited:
                visited.add(e.target)
                queue.append(e.target)
    return visited


def detect(
    cfg: CFG,
    constants: DataflowResult[CPFact],
    live_vars: DataflowResult[SetFact],
) -> List[Stmt]:
    """Return the dead statements of *cfg*, sorted by index.

    Parameters
    ----------
    cfg : CFG
    constants : DataflowResult[CPFact]
        Solved constant propagation over *cfg*.
    live_vars : DataflowResult[SetFact]
        Solved live variable analysis over *cfg*.

    Raises
    ------
    MalformedCFGError
        If a switch on a known constant has neither a matching case nor a
        default edge.
    """
    stmts = cfg.get_ir().get_stmts()
    reachable = _reachable(cfg, constants)
    dead: List[Stmt] = []
    for stmt in stmts:
        if stmt not in reachable:
            logger.debug("dead (unreachable): %r", stmt)
            dead.append(stmt)
            continue
        if (
            isinstance(stmt, AssignStmt)
            and isinstance(stmt.lvalue, Var)
            and has_no_side_effect(stmt.rvalue)
            and not live_vars.get_out_fact(stmt).contains(stmt.lvalue)
        ):
            logger.debug("dead (useless assignment): %r", stmt)
            dead.append(stmt)
    # ``stmts`` is in index order and each statement is visited once
    return dead


class DeadCodeDetection:
    """Analysis-object form of :func:`detect`."""

    ID = "deadcode"

    def analyze(
        self,
        ir: IR,
        cfg: CFG,
        constants: DataflowResult[CPFact],
        live_vars: DataflowResult[SetFact],
    ) -> List[Stmt]:
        if cfg.get_ir() is not ir:
            raise MalformedCFGError(f"{cfg!r} was not built from {ir!r}")
        return detect(cfg, constants, live_vars)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.ID!r})"
