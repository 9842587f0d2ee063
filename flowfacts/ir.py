"""
flowfacts/ir.py
═══════════════

Three-address intermediate representation consumed by the analyses.

The IR is deliberately small: it models exactly the statement and
expression shapes the dataflow analyses read, and nothing else.

    ┌──────────────────────────────────────────────────────────────┐
    │  Exp                                                         │
    │    ├── Var                 — local variable / parameter      │
    │    ├── IntLiteral          — integer constant                │
    │    ├── BinaryExp           — two operands + operator         │
    │    │     ├── ArithmeticExp   + - * / %                       │
    │    │     ├── ConditionExp    == != < > <= >=                 │
    │    │     ├── ShiftExp        << >> >>>                       │
    │    │     └── BitwiseExp      | & ^                           │
    │    ├── NegExp              — unary minus                     │
    │    ├── NewExp              — object / array allocation       │
    │    ├── CastExp             — (T) v                           │
    │    ├── FieldAccess         — o.f  /  C.f                     │
    │    ├── ArrayAccess         — a[i]                            │
    │    └── InvokeExp           — m(args)                         │
    │                                                              │
    │  Stmt                                                        │
    │    ├── DefinitionStmt                                        │
    │    │     ├── AssignStmt      lvalue = rvalue                 │
    │    │     └── Invoke          [x =] m(args)                   │
    │    ├── If                    if (cond) goto L                │
    │    ├── Goto                  goto L                          │
    │    ├── SwitchStmt            switch (v) {case n: goto L ...} │
    │    ├── Return                return [v]                      │
    │    └── Nop                                                   │
    └──────────────────────────────────────────────────────────────┘

Expressions are immutable value objects.  Statements are identity
objects: two textually equal statements at different indices are
different program points.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import (
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — TYPES
# ═══════════════════════════════════════════════════════════════════════════

class PrimitiveType(enum.Enum):
    """Primitive value types of the source language."""
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    CHAR = "char"
    BOOLEAN = "boolean"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReferenceType:
    """Any non-primitive type (classes, arrays)."""
    name: str

    def __str__(self) -> str:
        return self.name


Type = Union[PrimitiveType, ReferenceType]

_INT_LIKE = frozenset({
    PrimitiveType.BYTE,
    PrimitiveType.SHORT,
    PrimitiveType.INT,
    PrimitiveType.CHAR,
    PrimitiveType.BOOLEAN,
})


def parse_type(name: str) -> Type:
    """Map a type name (``"int"``, ``"String"``, ``"int[]"``) to a type."""
    try:
        return PrimitiveType(name)
    except ValueError:
        return ReferenceType(name)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════

class Exp:
    """Base class of every expression."""

    def uses(self) -> List[Var]:
        """Variables read when evaluating this expression."""
        return []


@dataclass(frozen=True)
class Var(Exp):
    """A local variable or parameter."""
    name: str
    type: Type = PrimitiveType.INT

    def uses(self) -> List[Var]:
        return [self]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IntLiteral(Exp):
    value: int

    def __str__(self) -> str:
        return str(self.value)


Operand = Union[Var, IntLiteral]


class ArithmeticOp(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"


class ConditionOp(enum.Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="


class ShiftOp(enum.Enum):
    SHL = "<<"
    SHR = ">>"
    USHR = ">>>"


class BitwiseOp(enum.Enum):
    OR = "|"
    AND = "&"
    XOR = "^"


@dataclass(frozen=True)
class BinaryExp(Exp):
    """``operand1 op operand2``; concrete subclasses fix the operator set."""
    op: enum.Enum
    operand1: Operand
    operand2: Operand

    def uses(self) -> List[Var]:
        return self.operand1.uses() + self.operand2.uses()

    def __str__(self) -> str:
        return f"{self.operand1} {self.op.value} {self.operand2}"


@dataclass(frozen=True)
class ArithmeticExp(BinaryExp):
    op: ArithmeticOp


@dataclass(frozen=True)
class ConditionExp(BinaryExp):
    op: ConditionOp


@dataclass(frozen=True)
class ShiftExp(BinaryExp):
    op: ShiftOp


@dataclass(frozen=True)
class BitwiseExp(BinaryExp):
    op: BitwiseOp


_BINARY_OPS = {}
for _cls, _ops in (
    (ArithmeticExp, ArithmeticOp),
    (ConditionExp, ConditionOp),
    (ShiftExp, ShiftOp),
    (BitwiseExp, BitwiseOp),
):
    for _op in _ops:
        _BINARY_OPS[_op.value] = (_cls, _op)
del _cls, _ops, _op


def make_binary(symbol: str, operand1: Operand, operand2: Operand) -> BinaryExp:
    """Build the right :class:`BinaryExp` subclass for an operator symbol."""
    try:
        cls, op = _BINARY_OPS[symbol]
    except KeyError:
        raise ValueError(f"Unknown binary operator {symbol!r}") from None
    return cls(op, operand1, operand2)


@dataclass(frozen=True)
class NegExp(Exp):
    operand: Var

    def uses(self) -> List[Var]:
        return [self.operand]

    def __str__(self) -> str:
        return f"-{self.operand}"


@dataclass(frozen=True)
class NewExp(Exp):
    type: Type

    def __str__(self) -> str:
        return f"new {self.type}"


@dataclass(frozen=True)
class CastExp(Exp):
    cast_type: Type
    value: Operand

    def uses(self) -> List[Var]:
        return self.value.uses()

    def __str__(self) -> str:
        return f"({self.cast_type}) {self.value}"


@dataclass(frozen=True)
class FieldAccess(Exp):
    """Instance field ``base.name`` or static field ``owner.name``.

    A static access has ``base`` set to ``None`` and the class name in
    ``owner``.
    """
    base: Optional[Var]
    name: str
    owner: str = ""

    @property
    def is_static(self) -> bool:
        return self.base is None

    def uses(self) -> List[Var]:
        return [] if self.base is None else [self.base]

    def __str__(self) -> str:
        prefix = self.owner if self.base is None else str(self.base)
        return f"{prefix}.{self.name}"


@dataclass(frozen=True)
class ArrayAccess(Exp):
    base: Var
    index: Operand

    def uses(self) -> List[Var]:
        return [self.base] + self.index.uses()

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"


@dataclass(frozen=True)
class InvokeExp(Exp):
    method: str
    args: Tuple[Operand, ...] = ()

    def uses(self) -> List[Var]:
        out: List[Var] = []
        for a in self.args:
            out.extend(a.uses())
        return out

    def __str__(self) -> str:
        return f"invoke {self.method}({', '.join(str(a) for a in self.args)})"


LValue = Union[Var, FieldAccess, ArrayAccess]


def can_hold_int(var: Var) -> bool:
    """Return ``True`` if *var*'s declared type holds an integer value.

    byte, short, int, char and boolean qualify; every other type does not.
    """
    return var.type in _INT_LIKE


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(eq=False, repr=False)
class Stmt:
    """Base class of every statement.

    ``index`` is the position in the owning :class:`IR` and gives the
    stable total order used for worklist priority and output sorting.
    """
    index: int = field(default=-1, init=False)
    line_number: int = field(default=-1, init=False)

    def get_def(self) -> Optional[LValue]:
        """The location written by this statement, if any."""
        return None

    def get_uses(self) -> List[Var]:
        """Variables read by this statement."""
        return []

    def __str__(self) -> str:
        return type(self).__name__.lower()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.index}: {self}>"


class DefinitionStmt(Stmt):
    """A statement of the form ``lvalue = rvalue``."""

    @property
    def lvalue(self) -> Optional[LValue]:
        raise NotImplementedError

    @property
    def rvalue(self) -> Exp:
        raise NotImplementedError


@dataclass(eq=False, repr=False)
class AssignStmt(DefinitionStmt):
    target: LValue
    value: Exp

    @property
    def lvalue(self) -> LValue:
        return self.target

    @property
    def rvalue(self) -> Exp:
        return self.value

    def get_def(self) -> Optional[LValue]:
        return self.target

    def get_uses(self) -> List[Var]:
        uses = list(self.value.uses())
        if not isinstance(self.target, Var):
            # o.f = v and a[i] = v read the base (and index)
            uses.extend(self.target.uses())
        return uses

    def __str__(self) -> str:
        return f"{self.target} = {self.value}"


@dataclass(eq=False, repr=False)
class Invoke(DefinitionStmt):
    invoke_exp: InvokeExp
    result: Optional[Var] = None

    @property
    def lvalue(self) -> Optional[Var]:
        return self.result

    @property
    def rvalue(self) -> InvokeExp:
        return self.invoke_exp

    def get_def(self) -> Optional[LValue]:
        return self.result

    def get_uses(self) -> List[Var]:
        return self.invoke_exp.uses()

    def __str__(self) -> str:
        if self.result is None:
            return str(self.invoke_exp)
        return f"{self.result} = {self.invoke_exp}"


class JumpStmt(Stmt):
    """A statement that transfers control to explicit targets."""

    def targets(self) -> List[Stmt]:
        raise NotImplementedError


@dataclass(eq=False, repr=False)
class If(JumpStmt):
    condition: ConditionExp
    target: Optional[Stmt] = None

    def targets(self) -> List[Stmt]:
        return [] if self.target is None else [self.target]

    def get_uses(self) -> List[Var]:
        return self.condition.uses()

    def __str__(self) -> str:
        dest = "?" if self.target is None else str(self.target.index)
        return f"if ({self.condition}) goto {dest}"


@dataclass(eq=False, repr=False)
class Goto(JumpStmt):
    target: Optional[Stmt] = None

    def targets(self) -> List[Stmt]:
        return [] if self.target is None else [self.target]

    def __str__(self) -> str:
        dest = "?" if self.target is None else str(self.target.index)
        return f"goto {dest}"


@dataclass(eq=False, repr=False)
class SwitchStmt(JumpStmt):
    var: Var
    case_targets: List[Tuple[int, Stmt]] = field(default_factory=list)
    default_target: Optional[Stmt] = None

    def case_values(self) -> List[int]:
        return [value for value, _ in self.case_targets]

    def targets(self) -> List[Stmt]:
        out = [t for _, t in self.case_targets]
        if self.default_target is not None:
            out.append(self.default_target)
        return out

    def get_uses(self) -> List[Var]:
        return [self.var]

    def __str__(self) -> str:
        arms = [f"case {v}: goto {t.index};" for v, t in self.case_targets]
        if self.default_target is not None:
            arms.append(f"default: goto {self.default_target.index};")
        return f"switch ({self.var}) {{{' '.join(arms)}}}"


@dataclass(eq=False, repr=False)
class Return(Stmt):
    value: Optional[Operand] = None

    def get_uses(self) -> List[Var]:
        return [] if self.value is None else self.value.uses()

    def __str__(self) -> str:
        return "return" if self.value is None else f"return {self.value}"


@dataclass(eq=False, repr=False)
class Nop(Stmt):
    pass


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — METHOD BODY
# ═══════════════════════════════════════════════════════════════════════════

class IR:
    """The body of one routine: parameters plus an indexed statement list.

    Constructing an ``IR`` assigns each statement its ``index``.
    """

    def __init__(
        self,
        method_name: str,
        params: Sequence[Var],
        stmts: Sequence[Stmt],
        variables: Optional[Sequence[Var]] = None,
    ) -> None:
        self.method_name = method_name
        self._params: List[Var] = list(params)
        self._stmts: List[Stmt] = list(stmts)
        for i, stmt in enumerate(self._stmts):
            stmt.index = i
        if variables is None:
            seen = dict.fromkeys(self._params)
            for stmt in self._stmts:
                d = stmt.get_def()
                if isinstance(d, Var):
                    seen.setdefault(d)
                for v in stmt.get_uses():
                    seen.setdefault(v)
            variables = list(seen)
        self._vars: List[Var] = list(variables)

    def get_params(self) -> List[Var]:
        return list(self._params)

    def get_stmts(self) -> List[Stmt]:
        return list(self._stmts)

    def get_stmt(self, index: int) -> Stmt:
        return self._stmts[index]

    def get_vars(self) -> List[Var]:
        return list(self._vars)

    def var(self, name: str) -> Var:
        """Look a variable up by name."""
        for v in self._vars:
            if v.name == name:
                return v
        raise KeyError(name)

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._stmts)

    def __len__(self) -> int:
        return len(self._stmts)

    def __repr__(self) -> str:
        return f"IR(method={self.method_name!r}, stmts={len(self._stmts)})"

    def dump(self) -> str:
        """Multi-line listing, one ``index: stmt`` per line."""
        head = ", ".join(f"{p.type} {p.name}" for p in self._params)
        lines = [f"{self.method_name}({head})"]
        for stmt in self._stmts:
            lines.append(f"  {stmt.index}: {stmt}")
        return "\n".join(lines)
