# tests/test_abstract_domains.py
"""
Lattice laws for Value / meet_value and the behaviour of the fact stores.
"""

import pytest
from hypothesis import given, strategies as st

from flowfacts.abstract_domains import (
    NAC,
    UNDEF,
    CPFact,
    SetFact,
    Value,
    meet_into,
    meet_value,
)
from flowfacts.ir import Var, PrimitiveType
from tests.conftest import const


values = st.one_of(
    st.just(UNDEF),
    st.just(NAC),
    st.integers(min_value=-3, max_value=3).map(Value.make_constant),
)

VARS = [Var("a"), Var("b"), Var("c")]

facts = st.dictionaries(st.sampled_from(VARS), values).map(CPFact)


class TestValue:

    def test_factories(self):
        assert Value.get_undef() is UNDEF
        assert Value.get_nac() is NAC
        assert Value.make_constant(5) == const(5)

    def test_predicates(self):
        assert UNDEF.is_undef() and not UNDEF.is_constant() and not UNDEF.is_nac()
        assert NAC.is_nac() and not NAC.is_constant()
        assert const(0).is_constant() and not const(0).is_undef()

    def test_get_constant_rejects_non_constants(self):
        assert const(-4).get_constant() == -4
        for v in (UNDEF, NAC):
            with pytest.raises(ValueError):
                v.get_constant()

    def test_make_constant_rejects_non_ints(self):
        with pytest.raises(TypeError):
            Value.make_constant(True)
        with pytest.raises(TypeError):
            Value.make_constant("3")

    def test_structural_equality_and_hashing(self):
        assert const(3) == Value.make_constant(3)
        assert const(3) != const(4)
        assert const(0) != UNDEF and const(0) != NAC
        assert len({const(1), const(1), UNDEF, NAC}) == 3

    def test_repr(self):
        assert repr(const(7)) == "7"
        assert repr(UNDEF) == "UNDEF"
        assert repr(NAC) == "NAC"

    def test_order(self):
        assert UNDEF.leq(const(1)) and const(1).leq(NAC) and UNDEF.leq(NAC)
        assert not const(1).leq(const(2))
        assert not NAC.leq(const(1))
        assert not const(1).leq(UNDEF)


class TestMeet:

    def test_table(self):
        assert meet_value(NAC, const(1)) == NAC
        assert meet_value(const(1), NAC) == NAC
        assert meet_value(const(1), const(1)) == const(1)
        assert meet_value(const(1), const(2)) == NAC
        assert meet_value(UNDEF, UNDEF) == UNDEF

    def test_undef_with_constant_is_the_constant_on_either_side(self):
        assert meet_value(UNDEF, const(9)) == const(9)
        assert meet_value(const(9), UNDEF) == const(9)

    @given(values, values)
    def test_commutative(self, a, b):
        assert meet_value(a, b) == meet_value(b, a)

    @given(values, values, values)
    def test_associative(self, a, b, c):
        assert meet_value(meet_value(a, b), c) == meet_value(a, meet_value(b, c))

    @given(values)
    def test_idempotent(self, a):
        assert meet_value(a, a) == a

    @given(values)
    def test_undef_is_identity_and_nac_absorbs(self, a):
        assert meet_value(UNDEF, a) == a
        assert meet_value(NAC, a) == NAC

    @given(values, values)
    def test_meet_is_an_upper_bound(self, a, b):
        m = meet_value(a, b)
        assert a.leq(m) and b.leq(m)

    @given(values, values)
    def test_order_agrees_with_meet(self, a, b):
        assert a.leq(b) == (meet_value(a, b) == b)


class TestCPFact:

    def test_missing_is_undef(self):
        assert CPFact().get(Var("x")) == UNDEF

    def test_update_reports_change(self):
        x = Var("x")
        fact = CPFact()
        assert fact.update(x, const(1)) is True
        assert fact.update(x, const(1)) is False
        assert fact.update(x, NAC) is True
        assert fact.get(x) == NAC

    def test_update_to_undef_removes_the_key(self):
        x = Var("x")
        fact = CPFact({x: const(1)})
        assert fact.update(x, UNDEF) is True
        assert x not in fact
        assert len(fact) == 0
        assert fact.update(x, UNDEF) is False

    def test_undef_never_stored_by_constructor(self):
        fact = CPFact({Var("x"): UNDEF, Var("y"): const(2)})
        assert list(fact.keys()) == [Var("y")]

    def test_remove(self):
        x = Var("x")
        fact = CPFact({x: const(1)})
        assert fact.remove(x) == const(1)
        assert fact.remove(x) is None

    def test_copy_is_independent(self):
        x = Var("x")
        fact = CPFact({x: const(1)})
        dup = fact.copy()
        dup.update(x, NAC)
        assert fact.get(x) == const(1)

    def test_copy_from_reports_change(self):
        x = Var("x")
        a, b = CPFact({x: const(1)}), CPFact()
        assert b.copy_from(a) is True
        assert b == a
        assert b.copy_from(a) is False

    def test_equality_ignores_insertion_order(self):
        x, y = Var("x"), Var("y")
        assert CPFact({x: const(1), y: NAC}) == CPFact({y: NAC, x: const(1)})
        assert CPFact({x: const(1)}) != CPFact({x: const(2)})

    def test_variables_differ_by_type(self):
        assert Var("x", PrimitiveType.INT) != Var("x", PrimitiveType.LONG)

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(CPFact())

    def test_repr_sorted_by_name(self):
        fact = CPFact({Var("x"): const(1), Var("a"): NAC})
        assert repr(fact) == "CPFact({a=NAC, x=1})"

    def test_meet_into_leaves_target_only_keys(self):
        x, y = Var("x"), Var("y")
        target = CPFact({y: const(5)})
        meet_into(CPFact({x: const(1)}), target)
        assert target == CPFact({x: const(1), y: const(5)})

    def test_meet_into_conflicting_constants(self):
        x = Var("x")
        target = CPFact({x: const(2)})
        assert meet_into(CPFact({x: const(1)}), target) is True
        assert target.get(x) == NAC

    @given(facts, facts)
    def test_meet_into_is_pointwise_meet(self, source, target):
        before = target.copy()
        meet_into(source, target)
        for v in VARS:
            assert target.get(v) == meet_value(source.get(v), before.get(v))
        assert source.leq(target) and before.leq(target)


class TestSetFact:

    def test_add_remove_contains(self):
        x = Var("x")
        s = SetFact()
        assert s.add(x) is True and s.add(x) is False
        assert s.contains(x) and x in s
        assert s.remove(x) is True and s.remove(x) is False
        assert len(s) == 0

    def test_union_with(self):
        x, y = Var("x"), Var("y")
        s = SetFact([x])
        assert s.union_with(SetFact([y])) is True
        assert s.union_with(SetFact([x])) is False
        assert s == SetFact([x, y])

    def test_copy_and_copy_from(self):
        x = Var("x")
        s = SetFact([x])
        dup = s.copy()
        dup.remove(x)
        assert x in s
        assert dup.copy_from(s) is True
        assert dup.copy_from(s) is False

    def test_leq_is_inclusion(self):
        x, y = Var("x"), Var("y")
        assert SetFact([x]).leq(SetFact([x, y]))
        assert not SetFact([x, y]).leq(SetFact([x]))

    def test_repr(self):
        assert repr(SetFact([Var("b"), Var("a")])) == "{a, b}"
