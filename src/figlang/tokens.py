"""
Token types for the fig configuration language scanner.

Tokens carry their kind, their normalized text and the span of source they
were read from. Literal tokens keep their text (digit separators removed,
escapes resolved); conversion to runtime values happens at evaluation time.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional


class TokenType(Enum):
    """All token types recognized by the scanner."""

    # --- Literals ---
    INTEGER = auto()            # 42, 1_000, 0xff, 0o17, 0b1010
    FLOAT = auto()              # 3.14, 1e-9, inf, nan
    STRING = auto()             # "hello", 'world'
    HEREDOC = auto()            # <<EOF ... EOF
    BOOLEAN = auto()            # true, false, yes, no, on, off
    NULL = auto()               # null
    DATE = auto()               # 2021-04-18
    DATETIME = auto()           # 2021-04-18T19:16:45Z
    TIME = auto()               # 19:16:45.123

    # --- Names ---
    IDENT = auto()              # option and object names, bare words
    MACRO = auto()              # .include
    LOCAL_VAR = auto()          # $name
    ENV_VAR = auto()            # @name

    # --- Arithmetic operators ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /
    PERCENT = auto()            # %
    POWER = auto()              # **

    # --- Bitwise operators ---
    LSHIFT = auto()             # <<
    RSHIFT = auto()             # >>
    BIT_AND = auto()            # &
    BIT_OR = auto()             # |
    BIT_XOR = auto()            # ^
    BIT_NOT = auto()            # ~

    # --- Logical operators ---
    AND = auto()                # &&
    OR = auto()                 # ||
    NOT = auto()                # !

    # --- Comparison operators ---
    LT = auto()                 # <
    GT = auto()                 # >
    LE = auto()                 # <=
    GE = auto()                 # >=
    EQ = auto()                 # ==
    NE = auto()                 # !=

    # --- Delimiters ---
    ASSIGN = auto()             # =
    LBRACE = auto()             # {
    RBRACE = auto()             # }
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    LBRACKET = auto()           # [
    RBRACKET = auto()           # ]
    COMMA = auto()              # ,
    COLON = auto()              # :
    QUESTION = auto()           # ?

    # --- Layout ---
    COMMENT = auto()            # # ... and /* ... */
    EOL = auto()                # end of line

    # --- Special ---
    EOF = auto()                # end of input
    INVALID = auto()            # malformed input, value holds the reason


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


NO_SPAN = SourceSpan(SourceLocation(0, 0, 0), SourceLocation(0, 0, 0))


@dataclass(frozen=True)
class Token:
    """A single token from the scanner."""
    type: TokenType
    value: str              # Normalized text (escapes resolved, separators removed)
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    def __str__(self) -> str:
        if self.type in LITERAL_TOKENS or self.type in NAME_TOKENS:
            return f"{self.type.name}({self.value!r})"
        if self.type == TokenType.INVALID:
            return f"INVALID({self.lexeme!r}: {self.value})"
        return self.type.name

    @property
    def is_literal(self) -> bool:
        return self.type in LITERAL_TOKENS

    @property
    def is_comment(self) -> bool:
        return self.type == TokenType.COMMENT


LITERAL_TOKENS: frozenset[TokenType] = frozenset({
    TokenType.INTEGER,
    TokenType.FLOAT,
    TokenType.STRING,
    TokenType.HEREDOC,
    TokenType.BOOLEAN,
    TokenType.NULL,
    TokenType.DATE,
    TokenType.DATETIME,
    TokenType.TIME,
})

NAME_TOKENS: frozenset[TokenType] = frozenset({
    TokenType.IDENT,
    TokenType.MACRO,
    TokenType.LOCAL_VAR,
    TokenType.ENV_VAR,
})

# Keyword mapping - bare words with a literal meaning
KEYWORDS: dict[str, TokenType] = {
    "true": TokenType.BOOLEAN,
    "false": TokenType.BOOLEAN,
    "yes": TokenType.BOOLEAN,
    "no": TokenType.BOOLEAN,
    "on": TokenType.BOOLEAN,
    "off": TokenType.BOOLEAN,
    "null": TokenType.NULL,
    "inf": TokenType.FLOAT,
    "nan": TokenType.FLOAT,
}

TRUTHY_WORDS: frozenset[str] = frozenset({"true", "yes", "on"})

# Multipliers accepted right after a numeric literal (10K, 4Kb, 2h, 500ms)
_SI = 1000
_IEC = 1024
_MINUTE = 60
_HOUR = _MINUTE * 60
_DAY = _HOUR * 24

UNITS: dict[str, float] = {
    "K": _SI,
    "M": _SI ** 2,
    "G": _SI ** 3,
    "T": _SI ** 4,
    "Kb": _IEC,
    "Mb": _IEC ** 2,
    "Gb": _IEC ** 3,
    "Tb": _IEC ** 4,
    "s": 1,
    "m": _MINUTE,
    "h": _HOUR,
    "d": _DAY,
    "w": _DAY * 7,
    "y": _DAY * 365,
    "ms": 1 / _SI,
}
