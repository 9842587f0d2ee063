"""
ir_parser.py — textual three-address IR
=======================================

Reads a routine body written one statement per line into an
:class:`flowfacts.ir.IR`.

Usage::

    from flowfacts.ir_parser import parse_ir

    ir = parse_ir('''
        param int n
        int x, y
            x = 1
            if (n > 0) goto L1
            y = x + 2
            goto L2
        L1: y = x * 3
        L2: return y
    ''', method_name="example")

Syntax
------
``# ...``                           comment to end of line
``L:``                              label for the next statement
``param <type> <name>``             parameter, in order
``<type> <name>[, <name> ...]``     local declaration
``x = <rvalue>``                    literal, variable, ``a op b``, ``-a``,
                                    ``new T``, ``(T) v``, ``o.f``, ``a[i]``
``o.f = v`` / ``a[i] = v``          stores
``[x =] invoke m(args)``            call
``if (a op b) goto L``              conditional jump
``goto L``
``switch (v) { case n: goto L; ... default: goto L; }``
``return [v]``
``nop``

Undeclared variables are ``int``.  ``C.f`` with ``C`` not a variable is a
static field of class ``C``.  Integer literals must fit in 32 bits.

Depends on:
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from flowfacts.errors import IRSyntaxError
from flowfacts.ir import (
    IR,
    ArrayAccess,
    AssignStmt,
    CastExp,
    FieldAccess,
    Goto,
    If,
    IntLiteral,
    Invoke,
    InvokeExp,
    NegExp,
    NewExp,
    Nop,
    PrimitiveType,
    Return,
    Stmt,
    SwitchStmt,
    Type,
    Var,
    make_binary,
    parse_type,
)

logger = logging.getLogger(__name__)

_INT32 = range(-(1 << 31), 1 << 31)


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — GRAMMAR (one line at a time)
# ═══════════════════════════════════════════════════════════════════

IR_GRAMMAR = Grammar(r'''
    line            = _ label_def? statement? _
    label_def       = label _ ":" _

    statement       = param_decl
                    / if_stmt
                    / switch_stmt
                    / goto_stmt
                    / return_stmt
                    / nop_stmt
                    / invoke_stmt
                    / assign_stmt
                    / var_decl

    # ─────────────────────────────────────────────────────────────
    # Declarations
    # ─────────────────────────────────────────────────────────────

    param_decl      = KW_PARAM __ type_name __ ident
    var_decl        = type_name __ ident_list
    ident_list      = ident (_ "," _ ident)*

    # ─────────────────────────────────────────────────────────────
    # Control flow
    # ─────────────────────────────────────────────────────────────

    if_stmt         = KW_IF _ "(" _ condition _ ")" _ KW_GOTO __ label
    condition       = operand _ cond_op _ operand
    goto_stmt       = KW_GOTO __ label
    switch_stmt     = KW_SWITCH _ "(" _ ident _ ")" _ "{" _ case_arm* default_arm? _ "}"
    case_arm        = KW_CASE __ int_lit _ ":" _ KW_GOTO __ label _ ";" _
    default_arm     = KW_DEFAULT _ ":" _ KW_GOTO __ label _ ";"? _
    return_stmt     = KW_RETURN return_value?
    return_value    = __ operand
    nop_stmt        = KW_NOP _

    # ─────────────────────────────────────────────────────────────
    # Calls and assignments
    # ─────────────────────────────────────────────────────────────

    invoke_stmt     = invoke_result? invoke_exp
    invoke_result   = ident _ "=" _
    invoke_exp      = KW_INVOKE __ method_name _ "(" _ arg_list? _ ")"
    arg_list        = operand (_ "," _ operand)*

    assign_stmt     = lvalue _ "=" _ rvalue
    lvalue          = array_access / field_access / ident
    rvalue          = new_exp
                    / cast_exp
                    / binary_exp
                    / unary_exp
                    / array_access
                    / field_access
                    / int_lit
                    / ident

    binary_exp      = operand _ bin_op _ operand
    unary_exp       = "-" _ ident
    new_exp         = KW_NEW __ type_name
    cast_exp        = "(" _ type_name _ ")" _ operand
    array_access    = ident _ "[" _ operand _ "]"
    field_access    = ident "." ident
    operand         = int_lit / ident

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────

    bin_op          = ">>>" / ">>" / "<<" / "==" / "!=" / "<=" / ">=" / "<" / ">"
                    / "+" / "-" / "*" / "/" / "%" / "&" / "|" / "^"
    cond_op         = "==" / "!=" / "<=" / ">=" / "<" / ">"

    KW_PARAM        = ~r"param\b"
    KW_IF           = ~r"if\b"
    KW_GOTO         = ~r"goto\b"
    KW_SWITCH       = ~r"switch\b"
    KW_CASE         = ~r"case\b"
    KW_DEFAULT      = ~r"default\b"
    KW_RETURN       = ~r"return\b"
    KW_NOP          = ~r"nop\b"
    KW_INVOKE       = ~r"invoke\b"
    KW_NEW          = ~r"new\b"

    label           = ~r"[A-Za-z_$][A-Za-z0-9_$]*"
    ident           = ~r"[A-Za-z_$][A-Za-z0-9_$]*"
    method_name     = ~r"[A-Za-z_$][A-Za-z0-9_$.<>]*"
    type_name       = ~r"[A-Za-z_$][A-Za-z0-9_$.]*(\[\])*"
    int_lit         = ~r"-?[0-9]+"

    __              = ~r"[ \t]+"
    _               = ~r"[ \t]*"
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — VISITOR (parse tree → statements)
# ═══════════════════════════════════════════════════════════════════

class _IRBuilder(NodeVisitor):
    """Accumulates one routine while its lines are visited in order.

    Jump targets are recorded as fixups and resolved in :meth:`finish`,
    once every label is known.
    """

    unwrapped_exceptions = (IRSyntaxError,)

    def __init__(self) -> None:
        self.lineno = 0
        self._vars: Dict[str, Var] = {}
        self._params: List[Var] = []
        self._stmts: List[Stmt] = []
        self._labels: Dict[str, Stmt] = {}
        self._pending_labels: List[Tuple[str, int]] = []
        self._fixups: List[Tuple[str, int, Callable[[Stmt], None]]] = []

    def generic_visit(self, node, visited_children):
        # Optional / ZeroOrMore: None when absent, else the list of matches
        return visited_children or None

    # ─────────────────────────────────────────────────────────────
    # Lines and labels
    # ─────────────────────────────────────────────────────────────

    def visit_line(self, node, visited_children):
        _, label_opt, stmt_opt, _ = visited_children
        if label_opt:
            label = label_opt[0]
            known = {name for name, _ in self._pending_labels}
            if label in self._labels or label in known:
                raise IRSyntaxError(f"duplicate label {label!r}", line=self.lineno)
            self._pending_labels.append((label, self.lineno))
        stmt = stmt_opt[0] if stmt_opt else None
        if stmt is not None:
            self._append(stmt)
        return stmt

    def visit_label_def(self, node, visited_children):
        return visited_children[0]

    def visit_statement(self, node, visited_children):
        return visited_children[0]

    # ─────────────────────────────────────────────────────────────
    # Declarations
    # ─────────────────────────────────────────────────────────────

    def visit_param_decl(self, node, visited_children):
        _, _, type_name, _, name = visited_children
        if any(p.name == name for p in self._params):
            raise IRSyntaxError(f"duplicate parameter {name!r}", line=self.lineno)
        self._params.append(self._declare(parse_type(type_name), name))
        return None

    def visit_var_decl(self, node, visited_children):
        type_name, _, names = visited_children
        for name in names:
            self._declare(parse_type(type_name), name)
        return None

    def visit_ident_list(self, node, visited_children):
        first, rest = visited_children
        return [first] + [group[3] for group in rest or []]

    # ─────────────────────────────────────────────────────────────
    # Control flow
    # ─────────────────────────────────────────────────────────────

    def visit_if_stmt(self, node, visited_children):
        condition, label = visited_children[4], visited_children[10]
        stmt = If(condition)
        self._jump(label, lambda target: setattr(stmt, "target", target))
        return stmt

    def visit_condition(self, node, visited_children):
        op1, _, symbol, _, op2 = visited_children
        return make_binary(symbol, op1, op2)

    def visit_goto_stmt(self, node, visited_children):
        stmt = Goto()
        self._jump(visited_children[2], lambda target: setattr(stmt, "target", target))
        return stmt

    def visit_switch_stmt(self, node, visited_children):
        var = self._var(visited_children[4])
        arms = visited_children[10] or []
        default_opt = visited_children[11]
        stmt = SwitchStmt(var)
        seen = set()
        for slot, (value, label) in enumerate(arms):
            if value in seen:
                raise IRSyntaxError(f"duplicate case {value}", line=self.lineno)
            seen.add(value)
            stmt.case_targets.append((value, None))

            def _set_case(target, slot=slot, value=value):
                stmt.case_targets[slot] = (value, target)

            self._jump(label, _set_case)
        if default_opt:
            self._jump(
                default_opt[0],
                lambda target: setattr(stmt, "default_target", target),
            )
        return stmt

    def visit_case_arm(self, node, visited_children):
        return visited_children[2], visited_children[8]

    def visit_default_arm(self, node, visited_children):
        return visited_children[6]

    def visit_return_stmt(self, node, visited_children):
        _, value_opt = visited_children
        return Return(value_opt[0] if value_opt else None)

    def visit_return_value(self, node, visited_children):
        return visited_children[1]

    def visit_nop_stmt(self, node, visited_children):
        return Nop()

    # ─────────────────────────────────────────────────────────────
    # Calls and assignments
    # ─────────────────────────────────────────────────────────────

    def visit_invoke_stmt(self, node, visited_children):
        result_opt, exp = visited_children
        result = self._var(result_opt[0]) if result_opt else None
        return Invoke(exp, result=result)

    def visit_invoke_result(self, node, visited_children):
        return visited_children[0]

    def visit_invoke_exp(self, node, visited_children):
        method, args_opt = visited_children[2], visited_children[6]
        return InvokeExp(method, tuple(args_opt[0]) if args_opt else ())

    def visit_arg_list(self, node, visited_children):
        first, rest = visited_children
        return [first] + [group[3] for group in rest or []]

    def visit_assign_stmt(self, node, visited_children):
        lvalue, _, _, _, rvalue = visited_children
        return AssignStmt(lvalue, rvalue)

    def visit_lvalue(self, node, visited_children):
        target = visited_children[0]
        return self._var(target) if isinstance(target, str) else target

    def visit_rvalue(self, node, visited_children):
        value = visited_children[0]
        if isinstance(value, int):
            return IntLiteral(value)
        if isinstance(value, str):
            return self._var(value)
        return value

    def visit_binary_exp(self, node, visited_children):
        op1, _, symbol, _, op2 = visited_children
        return make_binary(symbol, op1, op2)

    def visit_unary_exp(self, node, visited_children):
        return NegExp(self._var(visited_children[2]))

    def visit_new_exp(self, node, visited_children):
        return NewExp(parse_type(visited_children[2]))

    def visit_cast_exp(self, node, visited_children):
        return CastExp(parse_type(visited_children[2]), visited_children[6])

    def visit_array_access(self, node, visited_children):
        return ArrayAccess(self._var(visited_children[0]), visited_children[4])

    def visit_field_access(self, node, visited_children):
        base, _, name = visited_children
        if base in self._vars:
            return FieldAccess(self._vars[base], name)
        return FieldAccess(None, name, owner=base)

    def visit_operand(self, node, visited_children):
        value = visited_children[0]
        if isinstance(value, int):
            return IntLiteral(value)
        return self._var(value)

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────

    def visit_int_lit(self, node, visited_children):
        value = int(node.text)
        if value not in _INT32:
            raise IRSyntaxError(
                f"integer literal {node.text} does not fit in 32 bits",
                line=self.lineno,
            )
        return value

    def visit_bin_op(self, node, visited_children):
        return node.text

    visit_cond_op = visit_bin_op

    def visit_ident(self, node, visited_children):
        return node.text

    visit_label = visit_ident
    visit_method_name = visit_ident
    visit_type_name = visit_ident

    # ─────────────────────────────────────────────────────────────
    # Bookkeeping
    # ─────────────────────────────────────────────────────────────

    def _var(self, name: str) -> Var:
        var = self._vars.get(name)
        if var is None:
            var = self._vars[name] = Var(name, PrimitiveType.INT)
        return var

    def _declare(self, var_type: Type, name: str) -> Var:
        existing = self._vars.get(name)
        if existing is not None:
            if existing.type != var_type:
                raise IRSyntaxError(
                    f"variable {name!r} redeclared as {var_type} "
                    f"(already {existing.type})",
                    line=self.lineno,
                )
            return existing
        var = self._vars[name] = Var(name, var_type)
        return var

    def _jump(self, label: str, setter: Callable[[Stmt], None]) -> None:
        self._fixups.append((label, self.lineno, setter))

    def _append(self, stmt: Stmt) -> None:
        stmt.line_number = self.lineno
        self._stmts.append(stmt)
        for label, _ in self._pending_labels:
            self._labels[label] = stmt
        self._pending_labels.clear()

    def finish(self, method_name: str) -> IR:
        """Resolve jump targets and return the finished IR."""
        if self._pending_labels:
            # a trailing label marks the end of the routine
            tail = Nop()
            self.lineno = self._pending_labels[0][1]
            self._append(tail)
        for label, lineno, setter in self._fixups:
            target = self._labels.get(label)
            if target is None:
                raise IRSyntaxError(f"unknown label {label!r}", line=lineno)
            setter(target)
        return IR(method_name, self._params, self._stmts, list(self._vars.values()))


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — PUBLIC API
# ═══════════════════════════════════════════════════════════════════

def parse_ir(text: str, method_name: str = "main") -> IR:
    """Parse IR text into an :class:`IR`.

    Raises
    ------
    IRSyntaxError
        On a line the grammar does not accept, an unknown or duplicate
        label, a conflicting declaration or an out-of-range literal.
    """
    builder = _IRBuilder()
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0]
        if not line.strip():
            continue
        builder.lineno = lineno
        try:
            tree = IR_GRAMMAR.parse(line)
        except ParseError as e:
            raise IRSyntaxError(
                f"cannot parse {line.strip()!r} (column {e.pos + 1})",
                line=lineno,
            ) from e
        builder.visit(tree)
    ir = builder.finish(method_name)
    logger.debug("Parsed %r with %d variables", ir, len(ir.get_vars()))
    return ir
