"""TICKscript lexer.

Splits script text into tokens for the subset of TICKscript that alert
scripts use: declarations, literals (strings, triple-quoted strings,
numbers, durations, booleans, references), lambdas, chaining operators and
the usual comparison/logic/arithmetic operators. ``//`` comments are
skipped.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from kapalert.exceptions import ScriptSyntaxError


class TokenKind(str, enum.Enum):
    VAR = "var"
    LAMBDA = "lambda"
    IDENT = "ident"
    STRING = "string"
    TRIPLE = "triple"
    NUMBER = "number"
    DURATION = "duration"
    BOOL = "bool"
    REFERENCE = "reference"
    OPERATOR = "operator"
    PIPE = "|"
    DOT = "."
    COMMA = ","
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    ASSIGN = "="
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int

    def __str__(self) -> str:
        if self.kind == TokenKind.EOF:
            return "end of script"
        return repr(self.text)


# Longest units first so "ms" wins over "m".
DURATION_UNITS: tuple[str, ...] = ("ms", "u", "µ", "s", "m", "h", "d", "w")

_TWO_CHAR_OPERATORS = {"==", "!=", "<=", ">=", "=~", "!~"}
_ONE_CHAR_OPERATORS = {"<", ">", "+", "-", "*", "/", "!"}
_PUNCTUATION = {
    "|": TokenKind.PIPE,
    ".": TokenKind.DOT,
    ",": TokenKind.COMMA,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
}
_WORD_OPERATORS = {"AND", "OR"}
_BOOLEANS = {"TRUE", "FALSE"}


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


class Lexer:
    """Single-pass tokenizer over a script string."""

    def __init__(self, source: str) -> None:
        self._src = source
        self._pos = 0
        self._line = 1

    def tokens(self) -> list[Token]:
        """Tokenize the whole source. The last token is always EOF."""
        result: list[Token] = []
        while True:
            tok = self._next()
            result.append(tok)
            if tok.kind == TokenKind.EOF:
                return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        return self._src[idx] if idx < len(self._src) else ""

    def _error(self, message: str) -> ScriptSyntaxError:
        return ScriptSyntaxError(message, line=self._line)

    def _skip_trivia(self) -> None:
        while self._pos < len(self._src):
            ch = self._src[self._pos]
            if ch == "\n":
                self._line += 1
                self._pos += 1
            elif ch.isspace():
                self._pos += 1
            elif ch == "/" and self._peek(1) == "/":
                end = self._src.find("\n", self._pos)
                self._pos = len(self._src) if end == -1 else end
            else:
                return

    def _next(self) -> Token:
        self._skip_trivia()
        line = self._line
        if self._pos >= len(self._src):
            return Token(TokenKind.EOF, "", line)

        ch = self._src[self._pos]
        if self._src.startswith("'''", self._pos):
            return self._triple_string(line)
        if ch == "'":
            return Token(TokenKind.STRING, self._quoted("'"), line)
        if ch == '"':
            return Token(TokenKind.REFERENCE, self._quoted('"'), line)
        if ch.isdigit():
            return self._number(line)
        if _is_ident_start(ch):
            return self._word(line)

        two = self._src[self._pos:self._pos + 2]
        if two in _TWO_CHAR_OPERATORS:
            self._pos += 2
            return Token(TokenKind.OPERATOR, two, line)
        if ch == "=":
            self._pos += 1
            return Token(TokenKind.ASSIGN, ch, line)
        if ch in _ONE_CHAR_OPERATORS:
            self._pos += 1
            return Token(TokenKind.OPERATOR, ch, line)
        if ch in _PUNCTUATION:
            self._pos += 1
            return Token(_PUNCTUATION[ch], ch, line)
        raise self._error(f"unexpected character {ch!r}")

    def _triple_string(self, line: int) -> Token:
        start = self._pos + 3
        end = self._src.find("'''", start)
        if end == -1:
            raise self._error("unterminated triple-quoted string")
        text = self._src[start:end]
        self._line += text.count("\n")
        self._pos = end + 3
        return Token(TokenKind.TRIPLE, text, line)

    def _quoted(self, quote: str) -> str:
        """Read a quoted literal; backslash escapes the quote and itself."""
        self._pos += 1
        chars: list[str] = []
        while True:
            if self._pos >= len(self._src):
                raise self._error("unterminated string")
            ch = self._src[self._pos]
            if ch == "\\" and self._peek(1) in (quote, "\\"):
                chars.append(self._peek(1))
                self._pos += 2
                continue
            if ch == quote:
                self._pos += 1
                return "".join(chars)
            if ch == "\n":
                self._line += 1
            chars.append(ch)
            self._pos += 1

    def _number(self, line: int) -> Token:
        start = self._pos
        while self._peek().isdigit():
            self._pos += 1
        if self._peek() == "." and self._peek(1).isdigit():
            self._pos += 1
            while self._peek().isdigit():
                self._pos += 1
        for unit in DURATION_UNITS:
            if self._src.startswith(unit, self._pos):
                after = self._peek(len(unit))
                if not _is_ident_char(after):
                    self._pos += len(unit)
                    return Token(TokenKind.DURATION, self._src[start:self._pos], line)
        if _is_ident_char(self._peek()):
            raise self._error(
                f"invalid number or duration {self._src[start:self._pos + 1]!r}"
            )
        return Token(TokenKind.NUMBER, self._src[start:self._pos], line)

    def _word(self, line: int) -> Token:
        start = self._pos
        while _is_ident_char(self._peek()):
            self._pos += 1
        word = self._src[start:self._pos]
        if word == "var":
            return Token(TokenKind.VAR, word, line)
        if word == "lambda" and self._peek() == ":":
            self._pos += 1
            return Token(TokenKind.LAMBDA, word, line)
        if word in _BOOLEANS:
            return Token(TokenKind.BOOL, word, line)
        if word in _WORD_OPERATORS:
            return Token(TokenKind.OPERATOR, word, line)
        return Token(TokenKind.IDENT, word, line)


def tokenize(source: str) -> list[Token]:
    """Tokenize a TICKscript. Raises ScriptSyntaxError on invalid input."""
    return Lexer(source).tokens()
