"""
flowfacts/abstract_domains.py
═════════════════════════════

Lattice elements and per-program-point facts used by the analyses.

    ┌─────────────────────────────────────────────────────────────┐
    │  Value      — UNDEF ⊑ Constant(n) ⊑ NAC   (flat over int)    │
    │  CPFact     — Var → Value   (UNDEF entries never stored)     │
    │  SetFact    — mutable set of Var  (liveness)                 │
    └─────────────────────────────────────────────────────────────┘

The constant lattice::

                 NAC
          / | ... | \\
        …  -1  0  1  2  …
          \\ | ... | /
                UNDEF

Facts are mutable: the solver owns them while iterating and reports
"changed" by comparing before/after, so every mutator returns a bool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    ClassVar,
    Dict,
    Final,
    Iterable,
    Iterator,
    Optional,
    Set,
    Tuple,
    Union,
)

from flowfacts.ir import Var


# ═══════════════════════════════════════════════════════════════════════════
#  PART 0 — SENTINELS
# ═══════════════════════════════════════════════════════════════════════════

class _UndefSentinel:
    """Unique sentinel for UNDEF (bottom)."""
    _instance: ClassVar[Optional[_UndefSentinel]] = None

    def __new__(cls) -> _UndefSentinel:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEF"

    def __hash__(self) -> int:
        return hash("__UNDEF__")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _UndefSentinel)


class _NacSentinel:
    """Unique sentinel for NAC (top)."""
    _instance: ClassVar[Optional[_NacSentinel]] = None

    def __new__(cls) -> _NacSentinel:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NAC"

    def __hash__(self) -> int:
        return hash("__NAC__")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _NacSentinel)


_UNDEF_MARK: Final = _UndefSentinel()
_NAC_MARK: Final = _NacSentinel()


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — VALUE
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Value:
    """
    Abstract value of an integer variable at one program point.

    Examples
    --------
    >>> Value.make_constant(7)
    7
    >>> meet_value(Value.make_constant(7), Value.make_constant(3))
    NAC
    >>> meet_value(Value.get_undef(), Value.make_constant(3))
    3
    """
    value: Union[int, _UndefSentinel, _NacSentinel]

    @staticmethod
    def get_undef() -> Value:
        return UNDEF

    @staticmethod
    def get_nac() -> Value:
        return NAC

    @staticmethod
    def make_constant(n: int) -> Value:
        if isinstance(n, bool) or not isinstance(n, int):
            raise TypeError(f"constant must be an int, got {n!r}")
        return Value(n)

    def is_undef(self) -> bool:
        return self.value is _UNDEF_MARK

    def is_constant(self) -> bool:
        return isinstance(self.value, int)

    def is_nac(self) -> bool:
        return self.value is _NAC_MARK

    def get_constant(self) -> int:
        """Return the integer held by a constant value.

        Raises
        ------
        ValueError
            If this value is UNDEF or NAC.
        """
        if not isinstance(self.value, int):
            raise ValueError(f"{self!r} is not a constant")
        return self.value

    def leq(self, other: Value) -> bool:
        """Lattice order ``self ⊑ other``."""
        if self.is_undef() or other.is_nac():
            return True
        return self.value == other.value

    def meet(self, other: Value) -> Value:
        return meet_value(self, other)

    def __repr__(self) -> str:
        return repr(self.value)

    __str__ = __repr__


UNDEF: Final = Value(_UNDEF_MARK)
NAC: Final = Value(_NAC_MARK)


def meet_value(v1: Value, v2: Value) -> Value:
    """Meet of two values.

    NAC absorbs everything, UNDEF is the identity, and two constants
    survive only when they are equal.  The operation is commutative.
    """
    if v1.is_nac() or v2.is_nac():
        return NAC
    if v1.is_undef():
        return v2
    if v2.is_undef():
        return v1
    if v1.value == v2.value:
        return v1
    return NAC


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — CONSTANT-PROPAGATION FACT
# ═══════════════════════════════════════════════════════════════════════════

class CPFact:
    """
    Abstract environment ``Var → Value`` at one program point.

    Unmapped variables are implicitly UNDEF, and UNDEF is never stored:
    updating a variable to UNDEF removes it.  Two facts are therefore equal
    exactly when they agree on every variable.
    """

    __slots__ = ("_map",)
    __hash__ = None  # mutable

    def __init__(self, mapping: Optional[Dict[Var, Value]] = None) -> None:
        self._map: Dict[Var, Value] = {}
        if mapping:
            for var, value in mapping.items():
                self.update(var, value)

    def get(self, var: Var) -> Value:
        return self._map.get(var, UNDEF)

    def update(self, var: Var, value: Value) -> bool:
        """Map *var* to *value*; return ``True`` if the fact changed."""
        if value.is_undef():
            return self._map.pop(var, None) is not None
        old = self._map.get(var)
        self._map[var] = value
        return old != value

    def remove(self, var: Var) -> Optional[Value]:
        return self._map.pop(var, None)

    def copy(self) -> CPFact:
        fact = CPFact()
        fact._map = dict(self._map)
        return fact

    def copy_from(self, other: CPFact) -> bool:
        """Overwrite this fact with *other*; return ``True`` if it changed."""
        if self._map == other._map:
            return False
        self._map = dict(other._map)
        return True

    def keys(self) -> Iterable[Var]:
        return self._map.keys()

    def items(self) -> Iterable[Tuple[Var, Value]]:
        return self._map.items()

    def leq(self, other: CPFact) -> bool:
        """Pointwise ``⊑``."""
        return all(
            self.get(v).leq(other.get(v))
            for v in set(self._map) | set(other._map)
        )

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CPFact):
            return self._map == other._map
        return NotImplemented

    def __len__(self) -> int:
        return len(self._map)

    def __iter__(self) -> Iterator[Var]:
        return iter(self._map)

    def __contains__(self, var: object) -> bool:
        return var in self._map

    def __repr__(self) -> str:
        body = ", ".join(
            f"{v.name}={val!r}"
            for v, val in sorted(self._map.items(), key=lambda kv: kv[0].name)
        )
        return f"CPFact({{{body}}})"


def meet_into(source: CPFact, target: CPFact) -> bool:
    """Meet every entry of *source* into *target*.

    Keys present only in *target* are left untouched.  Returns ``True`` if
    *target* changed.
    """
    changed = False
    for var, value in source.items():
        changed |= target.update(var, meet_value(value, target.get(var)))
    return changed


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — SET FACT
# ═══════════════════════════════════════════════════════════════════════════

class SetFact:
    """Mutable set of variables, ordered by inclusion."""

    __slots__ = ("_set",)
    __hash__ = None  # mutable

    def __init__(self, elements: Iterable[Var] = ()) -> None:
        self._set: Set[Var] = set(elements)

    def add(self, var: Var) -> bool:
        if var in self._set:
            return False
        self._set.add(var)
        return True

    def remove(self, var: Var) -> bool:
        if var not in self._set:
            return False
        self._set.remove(var)
        return True

    def contains(self, var: Var) -> bool:
        return var in self._set

    def union_with(self, other: SetFact) -> bool:
        before = len(self._set)
        self._set |= other._set
        return len(self._set) != before

    def copy(self) -> SetFact:
        return SetFact(self._set)

    def copy_from(self, other: SetFact) -> bool:
        if self._set == other._set:
            return False
        self._set = set(other._set)
        return True

    def leq(self, other: SetFact) -> bool:
        return self._set <= other._set

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SetFact):
            return self._set == other._set
        return NotImplemented

    def __contains__(self, var: object) -> bool:
        return var in self._set

    def __len__(self) -> int:
        return len(self._set)

    def __iter__(self) -> Iterator[Var]:
        return iter(self._set)

    def __repr__(self) -> str:
        return "{" + ", ".join(sorted(v.name for v in self._set)) + "}"
