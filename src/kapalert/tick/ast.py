"""TICKscript syntax tree.

Frozen dataclasses produced by the parser and consumed by the printer and
the reverse translator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class StringLit:
    value: str
    triple: bool = False


@dataclass(frozen=True)
class NumberLit:
    text: str  # kept verbatim so "90" and "90.0" survive a round trip


@dataclass(frozen=True)
class DurationLit:
    text: str


@dataclass(frozen=True)
class BoolLit:
    value: bool


@dataclass(frozen=True)
class Reference:
    """A double-quoted field or tag reference, e.g. ``"value"``."""

    name: str


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class ListLit:
    items: tuple[Expr, ...]


@dataclass(frozen=True)
class Lambda:
    body: Expr


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expr


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Call:
    """A function call inside an expression, e.g. ``float("value")``."""

    func: str
    args: tuple[Expr, ...]


@dataclass(frozen=True)
class ChainLink:
    """One ``|node(args)`` or ``.property(args)`` step of a pipeline."""

    kind: str  # "|" for a node, "." for a property
    name: str
    args: tuple[Expr, ...]

    @property
    def is_node(self) -> bool:
        return self.kind == "|"


@dataclass(frozen=True)
class Chain:
    source: Expr
    links: tuple[ChainLink, ...]


Expr = Union[
    StringLit,
    NumberLit,
    DurationLit,
    BoolLit,
    Reference,
    Identifier,
    ListLit,
    Lambda,
    UnaryOp,
    BinaryOp,
    Call,
    Chain,
]


@dataclass(frozen=True)
class VarDecl:
    name: str
    value: Expr
    line: int = 0


@dataclass(frozen=True)
class ExprStatement:
    expr: Expr
    line: int = 0


Statement = Union[VarDecl, ExprStatement]


@dataclass(frozen=True)
class Program:
    statements: tuple[Statement, ...]

    def declarations(self) -> dict[str, Expr]:
        """Map of var name to value. Later declarations shadow earlier ones."""
        return {s.name: s.value for s in self.statements if isinstance(s, VarDecl)}
