"""
flowfacts/dataflow_analyses.py
══════════════════════════════

Ready-made dataflow analyses built on ``dataflow_engine.py``.

Provided analyses
─────────────────
  1. ConstantPropagation     — forward, must (flat lattice over int32)
  2. LiveVariableAnalysis    — backward, may (set of variables)

Each analysis is a stateless :class:`~flowfacts.dataflow_engine.DataflowAnalysis`
and is run through :func:`flowfacts.dataflow_engine.solve`.
"""

from __future__ import annotations

import operator
from typing import Callable, Dict

from flowfacts.abstract_domains import (
    NAC,
    UNDEF,
    CPFact,
    SetFact,
    Value,
    meet_into as meet_cp_facts,
)
from flowfacts.ctrlflow_graph import CFG
from flowfacts.dataflow_engine import DataflowAnalysis
from flowfacts.ir import (
    ArithmeticExp,
    ArithmeticOp,
    BinaryExp,
    BitwiseOp,
    ConditionOp,
    DefinitionStmt,
    Exp,
    IntLiteral,
    ShiftOp,
    Stmt,
    Var,
    can_hold_int,
)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — 32-BIT INTEGER ARITHMETIC
# ═════════════════════════════════════════════════════════════════════════
#
#  Folding follows two's-complement int32: + - * wrap, / truncates toward
#  zero, % takes the sign of the dividend, shift distances use the low
#  five bits, >> is arithmetic and >>> logical.
# ═════════════════════════════════════════════════════════════════════════

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


def wrap_int32(n: int) -> int:
    """Reduce *n* to the signed 32-bit range."""
    n &= 0xFFFFFFFF
    return n - (1 << 32) if n & 0x80000000 else n


def _div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return wrap_int32(q if (a < 0) == (b < 0) else -q)


def _rem(a: int, b: int) -> int:
    r = abs(a) % abs(b)
    return -r if a < 0 else r


def _ushr(a: int, s: int) -> int:
    return (a & 0xFFFFFFFF) >> (s & 31)


_FOLD: Dict[object, Callable[[int, int], int]] = {
    ArithmeticOp.ADD: operator.add,
    ArithmeticOp.SUB: operator.sub,
    ArithmeticOp.MUL: operator.mul,
    ArithmeticOp.DIV: _div,
    ArithmeticOp.REM: _rem,
    ConditionOp.EQ: lambda a, b: int(a == b),
    ConditionOp.NE: lambda a, b: int(a != b),
    ConditionOp.LT: lambda a, b: int(a < b),
    ConditionOp.GT: lambda a, b: int(a > b),
    ConditionOp.LE: lambda a, b: int(a <= b),
    ConditionOp.GE: lambda a, b: int(a >= b),
    ShiftOp.SHL: lambda a, s: a << (s & 31),
    ShiftOp.SHR: lambda a, s: a >> (s & 31),
    ShiftOp.USHR: _ushr,
    BitwiseOp.OR: operator.or_,
    BitwiseOp.AND: operator.and_,
    BitwiseOp.XOR: operator.xor,
}


def fold_binary(op, a: int, b: int) -> int:
    """Apply the binary operator *op* to two int32 values.

    The divisor of ``/`` and ``%`` must be non-zero.
    """
    return wrap_int32(_FOLD[op](wrap_int32(a), wrap_int32(b)))


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — CONSTANT PROPAGATION
# ═════════════════════════════════════════════════════════════════════════
#
#  Direction:   FORWARD
#  Confluence:  MEET (flat lattice, UNDEF ⊑ c ⊑ NAC)
#  Boundary:    every int-holding parameter is NAC
#  Transfer:    x = e  ⇒  out = in[x ↦ eval(e, in)]
# ═════════════════════════════════════════════════════════════════════════

class ConstantPropagation(DataflowAnalysis[CPFact]):
    """
    Intraprocedural constant propagation using the flat (constant) lattice.

    Only variables whose type can hold an int are tracked; every other
    definition passes the incoming fact through unchanged.
    """

    ID = "constprop"

    def is_forward(self) -> bool:
        return True

    def new_boundary_fact(self, cfg: CFG) -> CPFact:
        fact = CPFact()
        for param in cfg.get_ir().get_params():
            if can_hold_int(param):
                fact.update(param, NAC)
        return fact

    def new_initial_fact(self) -> CPFact:
        return CPFact()

    def meet_into(self, fact: CPFact, target: CPFact) -> None:
        meet_cp_facts(fact, target)

    def transfer_node(self, stmt: Stmt, in_fact: CPFact, out_fact: CPFact) -> bool:
        if isinstance(stmt, DefinitionStmt):
            lhs = stmt.lvalue
            if isinstance(lhs, Var) and can_hold_int(lhs):
                new_out = in_fact.copy()
                new_out.update(lhs, self.evaluate(stmt.rvalue, in_fact))
                return out_fact.copy_from(new_out)
        return out_fact.copy_from(in_fact)

    can_hold_int = staticmethod(can_hold_int)

    @staticmethod
    def evaluate(exp: Exp, in_fact: CPFact) -> Value:
        """Evaluate *exp* against *in_fact*.

        Literals are constants and variables take their value from
        *in_fact*.  A binary expression folds when both operands are
        constants, is NAC when either operand is NAC and UNDEF otherwise;
        ``/`` or ``%`` by a known zero is UNDEF.  Any other expression is
        NAC.
        """
        if isinstance(exp, IntLiteral):
            return Value.make_constant(exp.value)
        if isinstance(exp, Var):
            return in_fact.get(exp)
        if isinstance(exp, BinaryExp):
            v1 = ConstantPropagation.evaluate(exp.operand1, in_fact)
            v2 = ConstantPropagation.evaluate(exp.operand2, in_fact)
            if (
                isinstance(exp, ArithmeticExp)
                and exp.op in (ArithmeticOp.DIV, ArithmeticOp.REM)
                and v2.is_constant()
                and v2.get_constant() == 0
            ):
                return UNDEF
            if v1.is_nac() or v2.is_nac():
                return NAC
            if v1.is_constant() and v2.is_constant():
                return Value.make_constant(
                    fold_binary(exp.op, v1.get_constant(), v2.get_constant())
                )
            return UNDEF
        return NAC


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — LIVE VARIABLE ANALYSIS
# ═════════════════════════════════════════════════════════════════════════
#
#  Direction:   BACKWARD
#  Confluence:  JOIN (may / union)
#  Transfer:    in = use(s) ∪ (out − def(s))
# ═════════════════════════════════════════════════════════════════════════

class LiveVariableAnalysis(DataflowAnalysis[SetFact]):
    """
    Live variable analysis.

    A variable is live at a point if some path from that point reads it
    before writing it.  Writes through ``o.f`` or ``a[i]`` kill nothing
    and read their base (and index).
    """

    ID = "livevar"

    def is_forward(self) -> bool:
        return False

    def new_boundary_fact(self, cfg: CFG) -> SetFact:
        return SetFact()

    def new_initial_fact(self) -> SetFact:
        return SetFact()

    def meet_into(self, fact: SetFact, target: SetFact) -> None:
        target.union_with(fact)

    def transfer_node(self, stmt: Stmt, in_fact: SetFact, out_fact: SetFact) -> bool:
        new_in = out_fact.copy()
        defined = stmt.get_def()
        if isinstance(defined, Var):
            new_in.remove(defined)
        for var in stmt.get_uses():
            new_in.add(var)
        return in_fact.copy_from(new_in)
