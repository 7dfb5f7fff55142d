"""Render syntax tree expressions back to TICKscript text."""

from __future__ import annotations

from kapalert.tick.ast import (
    BinaryOp,
    BoolLit,
    Call,
    Chain,
    DurationLit,
    Expr,
    Identifier,
    Lambda,
    ListLit,
    NumberLit,
    Reference,
    StringLit,
    UnaryOp,
)

_PRECEDENCE: dict[str, int] = {
    "OR": 1,
    "AND": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3, "=~": 3, "!~": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5,
}
_UNARY_PRECEDENCE = 6


def quote(value: str) -> str:
    """Single-quote a string literal, escaping backslashes and quotes."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def reference(name: str) -> str:
    """Double-quote a field or tag reference."""
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _precedence(expr: Expr) -> int:
    if isinstance(expr, BinaryOp):
        return _PRECEDENCE[expr.op]
    if isinstance(expr, UnaryOp):
        return _UNARY_PRECEDENCE
    if isinstance(expr, Lambda):
        return 0
    return 7


def _is_logical(expr: Expr) -> bool:
    return isinstance(expr, BinaryOp) and expr.op in ("AND", "OR")


def _operand_minimums(expr: BinaryOp) -> tuple[int, int]:
    prec = _PRECEDENCE[expr.op]
    left_min, right_min = prec, prec + 1
    if expr.op in ("AND", "OR"):
        # Mixed logical groups are always parenthesized.
        if _is_logical(expr.left) and expr.left.op != expr.op:
            left_min = _PRECEDENCE["=="]
        if _is_logical(expr.right):
            right_min = _PRECEDENCE["=="]
    return left_min, right_min


def _wrap(expr: Expr, minimum: int) -> str:
    text = format_expr(expr)
    return f"({text})" if _precedence(expr) < minimum else text


def format_expr(expr: Expr) -> str:
    """Format an expression on a single line.

    Parentheses are only emitted where precedence requires them, plus around
    logical groups nested inside a different logical operator.
    """
    if isinstance(expr, StringLit):
        return f"'''{expr.value}'''" if expr.triple else quote(expr.value)
    if isinstance(expr, (NumberLit, DurationLit)):
        return expr.text
    if isinstance(expr, BoolLit):
        return "TRUE" if expr.value else "FALSE"
    if isinstance(expr, Reference):
        return reference(expr.name)
    if isinstance(expr, Identifier):
        return expr.name
    if isinstance(expr, ListLit):
        return "[" + ", ".join(format_expr(i) for i in expr.items) + "]"
    if isinstance(expr, Lambda):
        return f"lambda: {format_expr(expr.body)}"
    if isinstance(expr, UnaryOp):
        return f"{expr.op}{_wrap(expr.operand, _UNARY_PRECEDENCE)}"
    if isinstance(expr, Call):
        return f"{expr.func}(" + ", ".join(format_expr(a) for a in expr.args) + ")"
    if isinstance(expr, BinaryOp):
        # The unparenthesized left spine is formatted iteratively.
        spine = [expr]
        while (
            isinstance(spine[-1].left, BinaryOp)
            and _precedence(spine[-1].left) >= _operand_minimums(spine[-1])[0]
        ):
            spine.append(spine[-1].left)
        text = _wrap(spine[-1].left, _operand_minimums(spine[-1])[0])
        for node in reversed(spine):
            text = f"{text} {node.op} {_wrap(node.right, _operand_minimums(node)[1])}"
        return text
    if isinstance(expr, Chain):
        parts = [format_expr(expr.source)]
        for link in expr.links:
            args = ", ".join(format_expr(a) for a in link.args)
            parts.append(f"{link.kind}{link.name}({args})")
        return "".join(parts)
    raise TypeError(f"Cannot format {type(expr).__name__}")
