# tests/conftest.py
"""
Shared helpers and sample programs for the flowfacts test-suite.

Helpers are plain functions so test modules can import them directly::

    from tests.conftest import make_cfg, run_constprop
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from flowfacts.abstract_domains import CPFact, Value
from flowfacts.config import SolverConfig
from flowfacts.ctrlflow_graph import CFG, build_cfg
from flowfacts.dataflow_analyses import ConstantPropagation, LiveVariableAnalysis
from flowfacts.dataflow_engine import DataflowResult, solve
from flowfacts.ir import IR
from flowfacts.ir_parser import parse_ir
from flowfacts.pipeline import run_all_analyses


# ── Sample programs ──────────────────────────────────────────────

STRAIGHT_LINE = """
    x = 1
    y = x + 2
    z = y * 3
    return z
"""

WITH_PARAMS = """
    param int a
    param String s
    x = a + 1
    b = 4
    return x
"""

CONSTANT_BRANCH = """
        x = 10
        if (x > 5) goto T
        y = 1
        goto E
    T:  y = 2
    E:  return y
"""

LOOP = """
        param int n
        i = 0
        s = 0
        c = 1
    L:  if (i >= n) goto E
        s = s + c
        i = i + 1
        goto L
    E:  return s
"""

SWITCH = """
        x = {value}
        switch (x) {{ case 1: goto A; case 2: goto B; default: goto C; }}
    A:  y = 10
        goto E
    B:  y = 20
        goto E
    C:  y = 30
    E:  return y
"""

SIDE_EFFECTS = """
    param int[] a
    param int i
    Foo o
    x = 1
    y = a[i]
    z = i / 2
    w = i + 1
    p = new Foo
    q = (int) i
    f = o.f
    r = invoke compute(i)
    return
"""


# ── Helpers ──────────────────────────────────────────────────────

def make_ir(source: str, method_name: str = "main") -> IR:
    return parse_ir(source, method_name=method_name)


def make_cfg(source: str) -> Tuple[IR, CFG]:
    ir = make_ir(source)
    return ir, build_cfg(ir)


def run_constprop(
    source: str, config: Optional[SolverConfig] = None
) -> Tuple[IR, CFG, DataflowResult]:
    ir, cfg = make_cfg(source)
    return ir, cfg, solve(cfg, ConstantPropagation(), config)


def run_liveness(
    source: str, config: Optional[SolverConfig] = None
) -> Tuple[IR, CFG, DataflowResult]:
    ir, cfg = make_cfg(source)
    return ir, cfg, solve(cfg, LiveVariableAnalysis(), config)


def dead_indices(source: str) -> List[int]:
    return [stmt.index for stmt in run_all_analyses(make_ir(source)).dead_code]


def env(fact: CPFact) -> Dict[str, object]:
    """Render a CPFact as ``{name: int | "NAC"}`` for compact assertions."""
    out: Dict[str, object] = {}
    for var, value in fact.items():
        out[var.name] = value.get_constant() if value.is_constant() else "NAC"
    return out


def snapshot(cfg: CFG, result: DataflowResult) -> List[Tuple[int, object, object]]:
    return [
        (node.index, result.get_in_fact(node), result.get_out_fact(node))
        for node in cfg
    ]


def const(n: int) -> Value:
    return Value.make_constant(n)


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def loop_cfg():
    return make_cfg(LOOP)


@pytest.fixture
def straight_line_cfg():
    return make_cfg(STRAIGHT_LINE)
