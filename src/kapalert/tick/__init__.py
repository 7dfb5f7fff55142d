"""TICKscript syntax support: lexer, parser, syntax tree and printer.

Covers the subset of TICKscript that generated alert scripts use.
"""

from kapalert.tick.ast import Program
from kapalert.tick.lexer import Token, TokenKind, tokenize
from kapalert.tick.parser import parse
from kapalert.tick.printer import format_expr, quote, reference

__all__ = [
    "Program",
    "Token",
    "TokenKind",
    "tokenize",
    "parse",
    "format_expr",
    "quote",
    "reference",
]
