# tests/test_int32_folding.py
"""
Cross-check constant folding against Z3's 32-bit bit-vector semantics.
"""

import pytest
from hypothesis import assume, given, settings, strategies as st

from flowfacts.abstract_domains import CPFact
from flowfacts.dataflow_analyses import ConstantPropagation
from flowfacts.ir import IntLiteral, make_binary

z3 = pytest.importorskip("z3")

INT32 = st.integers(min_value=-(1 << 31), max_value=(1 << 31) - 1)

SYMBOLS = [
    "+", "-", "*", "/", "%",
    "==", "!=", "<", ">", "<=", ">=",
    "<<", ">>", ">>>",
    "&", "|", "^",
]


def z3_fold(symbol, a, b):
    x = z3.BitVecVal(a, 32)
    y = z3.BitVecVal(b, 32)
    s = z3.BitVecVal(b & 31, 32)
    expr = {
        "+": lambda: x + y,
        "-": lambda: x - y,
        "*": lambda: x * y,
        "/": lambda: x / y,              # bvsdiv, truncates toward zero
        "%": lambda: z3.SRem(x, y),      # sign follows the dividend
        "==": lambda: x == y,
        "!=": lambda: x != y,
        "<": lambda: x < y,
        ">": lambda: x > y,
        "<=": lambda: x <= y,
        ">=": lambda: x >= y,
        "<<": lambda: x << s,
        ">>": lambda: x >> s,
        ">>>": lambda: z3.LShR(x, s),
        "&": lambda: x & y,
        "|": lambda: x | y,
        "^": lambda: x ^ y,
    }[symbol]()
    result = z3.simplify(expr)
    if z3.is_bool(result):
        return 1 if z3.is_true(result) else 0
    return result.as_signed_long()


class TestFoldingMatchesBitVectors:

    @settings(max_examples=400, deadline=None)
    @given(st.sampled_from(SYMBOLS), INT32, INT32)
    def test_random_operands(self, symbol, a, b):
        assume(not (symbol in ("/", "%") and b == 0))
        exp = make_binary(symbol, IntLiteral(a), IntLiteral(b))
        value = ConstantPropagation.evaluate(exp, CPFact())
        assert value.get_constant() == z3_fold(symbol, a, b)

    @pytest.mark.parametrize("symbol", SYMBOLS)
    @pytest.mark.parametrize("a, b", [
        (-(1 << 31), -1),
        ((1 << 31) - 1, (1 << 31) - 1),
        (-1, 32),
        (-(1 << 31), 31),
        (12345, -7),
    ])
    def test_edge_operands(self, symbol, a, b):
        exp = make_binary(symbol, IntLiteral(a), IntLiteral(b))
        value = ConstantPropagation.evaluate(exp, CPFact())
        assert value.get_constant() == z3_fold(symbol, a, b)
