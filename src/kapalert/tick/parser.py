"""Recursive-descent TICKscript parser.

Grammar (lowest precedence first)::

    program    := statement*
    statement  := "var" IDENT "=" expr | expr
    expr       := or
    or         := and ("OR" and)*
    and        := compare ("AND" compare)*
    compare    := additive (("==" | "!=" | "<" | "<=" | ">" | ">=" | "=~" | "!~") additive)?
    additive   := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("-" | "!") unary | postfix
    postfix    := primary (("|" | ".") IDENT "(" args ")")*
    primary    := literal | REFERENCE | IDENT | IDENT "(" args ")"
                | "[" args "]" | "lambda:" expr | "(" expr ")"

Statements need no terminator: one ends where the next token cannot
continue its expression.

Parenthesized groups, lambdas, lists, call arguments and prefix operators
may nest at most `MAX_NESTING` deep.
"""

from __future__ import annotations

import logging

from kapalert.exceptions import ScriptSyntaxError
from kapalert.tick.ast import (
    BinaryOp,
    BoolLit,
    Call,
    Chain,
    ChainLink,
    DurationLit,
    Expr,
    ExprStatement,
    Identifier,
    Lambda,
    ListLit,
    NumberLit,
    Program,
    Reference,
    Statement,
    StringLit,
    UnaryOp,
    VarDecl,
)
from kapalert.tick.lexer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

_COMPARISON_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "=~", "!~"}
MAX_NESTING = 64


class Parser:
    """Parses a token list into a Program."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse_program(self) -> Program:
        statements: list[Statement] = []
        while self._peek().kind != TokenKind.EOF:
            statements.append(self._statement())
        return Program(statements=tuple(statements))

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.kind != TokenKind.EOF:
            self._pos += 1
        return tok

    def _expect(self, kind: TokenKind, what: str) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            raise ScriptSyntaxError(f"expected {what}, found {tok}", line=tok.line)
        return self._advance()

    def _at_operator(self, *ops: str) -> bool:
        tok = self._peek()
        return tok.kind == TokenKind.OPERATOR and tok.text in ops

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ScriptSyntaxError("expression nested too deeply", line=self._peek().line)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _statement(self) -> Statement:
        tok = self._peek()
        if tok.kind == TokenKind.VAR:
            self._advance()
            name = self._expect(TokenKind.IDENT, "variable name").text
            self._expect(TokenKind.ASSIGN, "'='")
            return VarDecl(name=name, value=self._expr(), line=tok.line)
        return ExprStatement(expr=self._expr(), line=tok.line)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _expr(self) -> Expr:
        self._enter()
        try:
            return self._or()
        finally:
            self._depth -= 1

    def _or(self) -> Expr:
        left = self._and()
        while self._at_operator("OR"):
            self._advance()
            left = BinaryOp("OR", left, self._and())
        return left

    def _and(self) -> Expr:
        left = self._compare()
        while self._at_operator("AND"):
            self._advance()
            left = BinaryOp("AND", left, self._compare())
        return left

    def _compare(self) -> Expr:
        left = self._additive()
        if self._at_operator(*_COMPARISON_OPERATORS):
            op = self._advance().text
            left = BinaryOp(op, left, self._additive())
        return left

    def _additive(self) -> Expr:
        left = self._term()
        while self._at_operator("+", "-"):
            op = self._advance().text
            left = BinaryOp(op, left, self._term())
        return left

    def _term(self) -> Expr:
        left = self._unary()
        while self._at_operator("*", "/"):
            op = self._advance().text
            left = BinaryOp(op, left, self._unary())
        return left

    def _unary(self) -> Expr:
        if self._at_operator("-", "!"):
            op = self._advance().text
            self._enter()
            try:
                return UnaryOp(op, self._unary())
            finally:
                self._depth -= 1
        return self._postfix()

    def _postfix(self) -> Expr:
        expr = self._primary()
        links: list[ChainLink] = []
        while self._peek().kind in (TokenKind.PIPE, TokenKind.DOT):
            kind = self._advance().text
            name = self._expect(TokenKind.IDENT, "node or property name").text
            self._expect(TokenKind.LPAREN, "'('")
            args = self._args(TokenKind.RPAREN)
            links.append(ChainLink(kind=kind, name=name, args=args))
        if not links:
            return expr
        if isinstance(expr, Chain):
            return Chain(expr.source, expr.links + tuple(links))
        return Chain(expr, tuple(links))

    def _args(self, closer: TokenKind) -> tuple[Expr, ...]:
        """Comma separated expressions up to and including ``closer``."""
        args: list[Expr] = []
        if self._peek().kind == closer:
            self._advance()
            return ()
        while True:
            args.append(self._expr())
            tok = self._advance()
            if tok.kind == closer:
                return tuple(args)
            if tok.kind != TokenKind.COMMA:
                raise ScriptSyntaxError(
                    f"expected ',' or {closer.value!r}, found {tok}", line=tok.line
                )

    def _primary(self) -> Expr:
        tok = self._advance()
        kind = tok.kind
        if kind == TokenKind.STRING:
            return StringLit(tok.text)
        if kind == TokenKind.TRIPLE:
            return StringLit(tok.text, triple=True)
        if kind == TokenKind.NUMBER:
            return NumberLit(tok.text)
        if kind == TokenKind.DURATION:
            return DurationLit(tok.text)
        if kind == TokenKind.BOOL:
            return BoolLit(tok.text == "TRUE")
        if kind == TokenKind.REFERENCE:
            return Reference(tok.text)
        if kind == TokenKind.LAMBDA:
            return Lambda(self._expr())
        if kind == TokenKind.LBRACKET:
            return ListLit(self._args(TokenKind.RBRACKET))
        if kind == TokenKind.LPAREN:
            inner = self._expr()
            self._expect(TokenKind.RPAREN, "')'")
            return inner
        if kind == TokenKind.IDENT:
            if self._peek().kind == TokenKind.LPAREN:
                self._advance()
                return Call(tok.text, self._args(TokenKind.RPAREN))
            return Identifier(tok.text)
        raise ScriptSyntaxError(f"unexpected {tok}", line=tok.line)


def parse(source: str) -> Program:
    """Parse TICKscript source. Raises ScriptSyntaxError on invalid input."""
    program = Parser(tokenize(source)).parse_program()
    logger.debug("Parsed %d statements", len(program.statements))
    return program
