"""
flowfacts.ctrlflow_graph
========================

Statement-level control flow graphs over :class:`flowfacts.ir.IR`.

Every statement is one CFG node.  Two synthetic :class:`~flowfacts.ir.Nop`
nodes, ``entry`` (index ``-1``) and ``exit`` (index ``len(ir)``), bracket
the body; the entry has no predecessors and the exit no successors.
Edges carry an :class:`EdgeKind`, and ``SWITCH_CASE`` edges also carry the
case value they are taken for.

Public API
----------
    EdgeKind     - classification of a CFG edge
    CFGEdge      - a directed edge between two statements
    CFG          - the control flow graph for one routine
    build_cfg    - build a CFG from an IR
    cfg_summary  - multi-line human-readable listing

Typical usage::

    from flowfacts.ir_parser import parse_ir
    from flowfacts.ctrlflow_graph import build_cfg

    cfg = build_cfg(parse_ir(text))
    for stmt in cfg:
        print(stmt.index, [e.target.index for e in cfg.out_edges_of(stmt)])
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from typing import (
    Collection,
    Dict,
    Iterator,
    List,
    Optional,
    Set,
)

from flowfacts.errors import MalformedCFGError
from flowfacts.ir import (
    IR,
    Goto,
    If,
    Nop,
    Return,
    Stmt,
    SwitchStmt,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    ENTRY = "entry"
    FALL_THROUGH = "fall-through"
    GOTO = "goto"
    IF_TRUE = "if-true"
    IF_FALSE = "if-false"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"
    RETURN = "return"


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------

class CFGEdge:
    """A directed edge in the CFG.

    Attributes
    ----------
    source : Stmt
    target : Stmt
    kind : EdgeKind
    case_value : int or None
        The case constant for ``SWITCH_CASE`` edges, ``None`` otherwise.
    """

    __slots__ = ("source", "target", "kind", "case_value")

    def __init__(
        self,
        source: Stmt,
        target: Stmt,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        case_value: Optional[int] = None,
    ) -> None:
        if (kind is EdgeKind.SWITCH_CASE) != (case_value is not None):
            raise MalformedCFGError(
                f"{kind.value} edge {source.index}->{target.index}: "
                f"case value {case_value!r} is inconsistent with the edge kind"
            )
        self.source = source
        self.target = target
        self.kind = kind
        self.case_value = case_value

    def __repr__(self) -> str:
        extra = "" if self.case_value is None else f", case={self.case_value}"
        return (
            f"CFGEdge({self.source.index} -> {self.target.index}, "
            f"kind={self.kind.value!r}{extra})"
        )

    def __hash__(self) -> int:
        return hash((id(self.source), id(self.target), self.kind, self.case_value))

    def __eq__(self, other) -> bool:
        if isinstance(other, CFGEdge):
            return (
                self.source is other.source
                and self.target is other.target
                and self.kind == other.kind
                and self.case_value == other.case_value
            )
        return NotImplemented


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------

class CFG:
    """Intraprocedural control flow graph for a single routine.

    Iterating a CFG yields ``entry``, the statements in index order, then
    ``exit``; this is the stable node order the solver relies on.

    Attributes
    ----------
    entry : Nop
        Synthetic entry node (index ``-1``).
    exit : Nop
        Synthetic exit node (index ``len(ir)``).
    nodes : list[Stmt]
        All nodes including entry and exit.
    edges : list[CFGEdge]
        All edges.
    """

    def __init__(self, ir: IR) -> None:
        self._ir = ir
        self.entry = Nop()
        self.entry.index = -1
        self.exit = Nop()
        self.exit.index = len(ir)
        self.nodes: List[Stmt] = [self.entry, *ir.get_stmts(), self.exit]
        self.edges: List[CFGEdge] = []
        self._in_edges: Dict[Stmt, List[CFGEdge]] = {n: [] for n in self.nodes}
        self._out_edges: Dict[Stmt, List[CFGEdge]] = {n: [] for n in self.nodes}

    # ----- graph mutation ---------------------------------------------------

    def add_edge(
        self,
        source: Stmt,
        target: Stmt,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        case_value: Optional[int] = None,
    ) -> CFGEdge:
        """Create an edge, register it, and wire up the adjacency lists."""
        for end in (source, target):
            if end not in self._out_edges:
                raise MalformedCFGError(
                    f"edge endpoint {end!r} is not a node of {self!r}"
                )
        if source is self.exit:
            raise MalformedCFGError("the exit node cannot have successors")
        if target is self.entry:
            raise MalformedCFGError("the entry node cannot have predecessors")
        e = CFGEdge(source, target, kind=kind, case_value=case_value)
        self.edges.append(e)
        self._out_edges[source].append(e)
        self._in_edges[target].append(e)
        return e

    # ----- queries ----------------------------------------------------------

    def get_ir(self) -> IR:
        return self._ir

    def get_entry(self) -> Stmt:
        return self.entry

    def get_exit(self) -> Stmt:
        return self.exit

    def is_entry(self, node: Stmt) -> bool:
        return node is self.entry

    def is_exit(self, node: Stmt) -> bool:
        return node is self.exit

    def in_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._in_edges[node])

    def out_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._out_edges[node])

    def preds_of(self, node: Stmt) -> List[Stmt]:
        return [e.source for e in self._in_edges[node]]

    def succs_of(self, node: Stmt) -> List[Stmt]:
        return [e.target for e in self._out_edges[node]]

    def reachable_from(self, start: Stmt) -> Set[Stmt]:
        """Return the set of nodes reachable from *start* (BFS)."""
        visited: Set[Stmt] = {start}
        queue = deque([start])
        while queue:
            n = queue.popleft()
            for e in self._out_edges[n]:
                if e.target not in visited:
                    visited.add(e.target)
                    queue.append(e.target)
        return visited

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node) -> bool:
        return node in self._out_edges

    # ----- serialisation helpers --------------------------------------------

    def to_dot(
        self,
        title: Optional[str] = None,
        dead: Collection[Stmt] = (),
    ) -> str:
        """Return a Graphviz DOT representation of this CFG.

        Statements in *dead* are drawn greyed out.
        """
        dead_ids = {id(s) for s in dead}
        lines = ["digraph CFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self.nodes:
            if n is self.entry:
                lbl, color = "[entry]", ', style=filled, fillcolor="#ccffcc"'
            elif n is self.exit:
                lbl, color = "[exit]", ', style=filled, fillcolor="#ffcccc"'
            else:
                lbl = f"{n.index}: {n}".replace('"', '\\"')
                color = ""
                if id(n) in dead_ids:
                    color = ', style=filled, fillcolor="#dddddd", fontcolor="#777777"'
            lines.append(f'  {self._dot_id(n)} [label="{lbl}"{color}];')
        for e in self.edges:
            style = ""
            elabel = e.kind.value
            if e.case_value is not None:
                elabel += f": {e.case_value}"
            if e.kind == EdgeKind.IF_TRUE:
                style = ', color=green, fontcolor=green'
            elif e.kind == EdgeKind.IF_FALSE:
                style = ', color=red, fontcolor=red'
            elif e.kind == EdgeKind.SWITCH_DEFAULT:
                style = ', style=dashed'
            lines.append(
                f'  {self._dot_id(e.source)} -> {self._dot_id(e.target)} '
                f'[label="{elabel}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def _dot_id(self, node: Stmt) -> str:
        if node is self.entry:
            return "ENTRY"
        if node is self.exit:
            return "EXIT"
        return f"S{node.index}"

    def __repr__(self) -> str:
        return (
            f"CFG(method={self._ir.method_name!r}, nodes={len(self.nodes)}, "
            f"edges={len(self.edges)})"
        )


# ===========================================================================
# PUBLIC API
# ===========================================================================

def build_cfg(ir: IR) -> CFG:
    """Build the :class:`CFG` of *ir*.

    Falling off the last statement, and every ``return``, flows to the
    exit node.

    Raises
    ------
    MalformedCFGError
        If a jump names a statement that is not part of *ir*, or a switch
        has neither cases nor a default.
    """
    cfg = CFG(ir)
    stmts = ir.get_stmts()
    members = {id(s) for s in stmts}

    def _next(i: int) -> Stmt:
        return stmts[i + 1] if i + 1 < len(stmts) else cfg.exit

    def _check(stmt: Stmt, target: Optional[Stmt]) -> Stmt:
        if target is None or id(target) not in members:
            raise MalformedCFGError(
                f"statement {stmt.index} ({stmt}) jumps outside its routine"
            )
        return target

    cfg.add_edge(cfg.entry, stmts[0] if stmts else cfg.exit, EdgeKind.ENTRY)

    for i, stmt in enumerate(stmts):
        if isinstance(stmt, Goto):
            cfg.add_edge(stmt, _check(stmt, stmt.target), EdgeKind.GOTO)
        elif isinstance(stmt, If):
            cfg.add_edge(stmt, _check(stmt, stmt.target), EdgeKind.IF_TRUE)
            cfg.add_edge(stmt, _next(i), EdgeKind.IF_FALSE)
        elif isinstance(stmt, SwitchStmt):
            if not stmt.case_targets and stmt.default_target is None:
                raise MalformedCFGError(
                    f"switch at {stmt.index} has no targets"
                )
            for value, target in stmt.case_targets:
                cfg.add_edge(
                    stmt, _check(stmt, target), EdgeKind.SWITCH_CASE,
                    case_value=value,
                )
            if stmt.default_target is not None:
                cfg.add_edge(
                    stmt, _check(stmt, stmt.default_target),
                    EdgeKind.SWITCH_DEFAULT,
                )
        elif isinstance(stmt, Return):
            cfg.add_edge(stmt, cfg.exit, EdgeKind.RETURN)
        else:
            cfg.add_edge(stmt, _next(i), EdgeKind.FALL_THROUGH)

    if logger.isEnabledFor(logging.DEBUG):
        unreachable = len(cfg.nodes) - len(cfg.reachable_from(cfg.entry))
        logger.debug(
            "Built %r (%d nodes not reachable from entry)", cfg, unreachable
        )
    return cfg


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for node in cfg:
        succ = ", ".join(
            f"{e.target.index}({e.kind.value}"
            + ("" if e.case_value is None else f" {e.case_value}")
            + ")"
            for e in cfg.out_edges_of(node)
        )
        pred = ", ".join(str(e.source.index) for e in cfg.in_edges_of(node))
        if cfg.is_entry(node):
            text = "[entry]"
        elif cfg.is_exit(node):
            text = "[exit]"
        else:
            text = str(node)
        lines.append(f"  {node.index}: {text}  succ=[{succ}]  pred=[{pred}]")
    return "\n".join(lines)
