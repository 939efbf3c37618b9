"""
Scanner for the fig configuration language.

Converts source text into a lazy stream of tokens for the parser.
Supports:
- Identifiers, boolean/null/inf/nan keywords
- Integers (decimal with ``_`` separators, ``0x``/``0o``/``0b`` prefixes)
- Floats (fraction and/or exponent)
- Date, time and datetime literals
- Single and double quoted strings, heredocs (``<<LABEL``)
- Line comments (``#``) and block comments (``/* */``, not nested)
- Macro names (``.include``), local (``$x``) and environment (``@x``) variables
- All operators and delimiters

Malformed input never raises: the scanner produces an INVALID token whose
value describes the problem and keeps going. The parser reports the first
INVALID token it meets.
"""

import re
from typing import List, Optional, Iterator, Tuple, Union

from .tokens import Token, TokenType, SourceLocation, SourceSpan, KEYWORDS


_DATETIME_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})?)?"
)
_TIME_RE = re.compile(r"\d{2}:\d{2}:\d{2}(?:\.\d+)?")

_DIGITS = {
    "x": "0123456789abcdefABCDEF",
    "o": "01234567",
    "b": "01",
}

# Integer literals must fit a signed 64-bit value
_INT_MIN = -(1 << 63)
_INT_MAX = (1 << 63) - 1

_TWO_CHAR_TOKENS: dict[str, TokenType] = {
    "**": TokenType.POWER,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "<<": TokenType.LSHIFT,
    ">>": TokenType.RSHIFT,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "==": TokenType.EQ,
    "!=": TokenType.NE,
}

_SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "!": TokenType.NOT,
    "~": TokenType.BIT_NOT,
    "&": TokenType.BIT_AND,
    "|": TokenType.BIT_OR,
    "^": TokenType.BIT_XOR,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "=": TokenType.ASSIGN,
    ":": TokenType.COLON,
    "?": TokenType.QUESTION,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
}

_ESCAPES = {
    "n": "\n",
    "r": "\r",
    '"': '"',
    "\\": "\\",
}

# Token kinds after which a sign starts a number instead of an operator
_VALUE_ENDINGS = frozenset({
    TokenType.INTEGER, TokenType.FLOAT, TokenType.STRING, TokenType.HEREDOC,
    TokenType.BOOLEAN, TokenType.NULL, TokenType.DATE, TokenType.DATETIME,
    TokenType.TIME, TokenType.IDENT, TokenType.LOCAL_VAR, TokenType.ENV_VAR,
    TokenType.RPAREN, TokenType.RBRACKET, TokenType.RBRACE,
})


def _normalize(source: str) -> str:
    return source.replace("\r\n", "\n").replace("\r", "\n")


def _decode(source: Union[str, bytes]) -> Tuple[str, Optional[int]]:
    """Source text, plus the offset of the first byte that is not UTF-8."""
    if not isinstance(source, (bytes, bytearray)):
        return _normalize(source), None
    data = bytes(source)
    try:
        return _normalize(data.decode("utf-8")), None
    except UnicodeDecodeError as exc:
        # scan the valid prefix; the bad byte ends the input
        return _normalize(data[:exc.start].decode("utf-8")), exc.start


def _is_name_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


class Scanner:
    """
    Tokenizer for fig source text.

    The whole input is buffered and newline-normalized up front; tokens are
    then produced one at a time.

    Usage:
        scanner = Scanner(source_code)
        tokens = scanner.tokenize()

    Or lazily:
        for token in Scanner(source_code):
            process(token)
    """

    def __init__(self, source: Union[str, bytes], filename: Optional[str] = None):
        self.source, self._bad_byte = _decode(source)
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None
        self._last: Optional[TokenType] = None

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.split("\n")
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx >= len(self.source):
            return "\0"
        return self.source[idx]

    def _advance(self) -> str:
        if self.pos >= len(self.source):
            return "\0"
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _advance_by(self, count: int) -> None:
        for _ in range(count):
            self._advance()

    def _is_at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _make_token(self, token_type: TokenType, value: str, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        span = self._span(start)
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, value, lexeme, span)

    def _invalid(self, reason: str, start: SourceLocation) -> Token:
        # Always consume something so scanning makes progress
        if self.pos == start.offset:
            self._advance()
        return self._make_token(TokenType.INVALID, reason, start)

    # =========================================================================
    # Layout
    # =========================================================================

    def _skip_blanks(self) -> None:
        while self._peek() in " \t\f\v" and not self._is_at_end():
            self._advance()

    def _scan_newlines(self) -> Token:
        start = self._location()
        while not self._is_at_end() and self._peek() in " \t\f\v\n":
            self._advance()
        return self._make_token(TokenType.EOL, "\n", start)

    def _scan_line_comment(self) -> Token:
        start = self._location()
        self._advance()  # consume '#'
        while self._peek() != "\n" and not self._is_at_end():
            self._advance()
        text = self.source[start.offset + 1:self.pos]
        return self._make_token(TokenType.COMMENT, text.strip(), start)

    def _scan_block_comment(self) -> Token:
        start = self._location()
        self._advance_by(2)  # consume '/*'
        end = self.source.find("*/", self.pos)
        if end < 0:
            while not self._is_at_end():
                self._advance()
            return self._make_token(TokenType.INVALID, "unterminated comment", start)
        text = self.source[self.pos:end]
        self._advance_by(end + 2 - self.pos)
        return self._make_token(TokenType.COMMENT, text.strip(), start)

    # =========================================================================
    # Literals
    # =========================================================================

    def _scan_string(self) -> Token:
        start = self._location()
        quote = self._advance()
        chars = []
        while not self._is_at_end() and self._peek() != quote:
            ch = self._advance()
            if ch == "\\" and quote == '"' and not self._is_at_end():
                esc = self._advance()
                chars.append(_ESCAPES.get(esc, "\\" + esc))
            else:
                chars.append(ch)
        if self._is_at_end():
            return self._make_token(TokenType.INVALID, "unterminated string", start)
        self._advance()  # consume closing quote
        return self._make_token(TokenType.STRING, "".join(chars), start)

    def _scan_heredoc(self) -> Token:
        start = self._location()
        self._advance_by(2)  # consume '<<'
        label_start = self.pos
        while self._peek().isupper() or self._peek().isdigit() or self._peek() == "_":
            self._advance()
        label = self.source[label_start:self.pos]

        self._skip_blanks()
        if self._peek() != "\n":
            return self._invalid("heredoc label must end the line", start)
        self._advance()

        body = []
        while not self._is_at_end():
            end = self.source.find("\n", self.pos)
            if end < 0:
                end = len(self.source)
            line = self.source[self.pos:end]
            if line == label:
                self._advance_by(len(line))
                if not body:
                    return self._make_token(TokenType.INVALID, "empty heredoc", start)
                return self._make_token(TokenType.HEREDOC, "\n".join(body), start)
            body.append(line)
            self._advance_by(end - self.pos)
            self._advance()  # consume '\n'
        return self._make_token(TokenType.INVALID, f"unterminated heredoc {label}", start)

    def _scan_calendar(self) -> Optional[Token]:
        """Scan a date, datetime or time literal if one starts here."""
        start = self._location()
        match = _DATETIME_RE.match(self.source, self.pos)
        if match is not None:
            text = match.group(0)
            kind = TokenType.DATETIME if len(text) > 10 else TokenType.DATE
            self._advance_by(len(text))
            return self._make_token(kind, text, start)
        match = _TIME_RE.match(self.source, self.pos)
        if match is not None:
            text = match.group(0)
            self._advance_by(len(text))
            return self._make_token(TokenType.TIME, text, start)
        return None

    def _scan_digits(self, allowed: str) -> str:
        begin = self.pos
        while self._peek() in allowed or (self._peek() == "_" and self.pos > begin):
            if self._is_at_end():
                break
            self._advance()
        return self.source[begin:self.pos]

    def _scan_number(self) -> Token:
        start = self._location()
        sign = ""
        if self._peek() in "+-":
            sign = self._advance()
            if sign == "+":
                sign = ""

        if self._peek() == "0" and self._peek(1).lower() in _DIGITS:
            self._advance()
            base = self._advance().lower()
            digits = self._scan_digits(_DIGITS[base])
            if not digits or digits.endswith("_") or _is_name_char(self._peek()):
                while _is_name_char(self._peek()):
                    self._advance()
                return self._make_token(TokenType.INVALID, "malformed integer", start)
            text = f"{sign}0{base}{digits.replace('_', '')}"
            if not _INT_MIN <= int(text, 0) <= _INT_MAX:
                return self._make_token(TokenType.INVALID, "integer out of range", start)
            return self._make_token(TokenType.INTEGER, text, start)

        digits = self._scan_digits("0123456789")
        if digits.endswith("_"):
            return self._make_token(TokenType.INVALID, "malformed number", start)
        if len(digits) > 1 and digits[0] == "0" and self._peek() not in ".eE":
            return self._make_token(TokenType.INVALID, "leading zero in integer", start)

        is_float = False
        if self._peek() == "." and self._peek(1).isdigit():
            is_float = True
            self._advance()  # consume '.'
            while self._peek().isdigit():
                self._advance()

        if self._peek() in "eE" and (self._peek(1).isdigit()
                                     or (self._peek(1) in "+-" and self._peek(2).isdigit())):
            is_float = True
            self._advance()  # consume 'e'
            if self._peek() in "+-":
                self._advance()
            while self._peek().isdigit():
                self._advance()

        text = self.source[start.offset:self.pos].replace("_", "")
        if text.startswith("+"):
            text = text[1:]
        if is_float:
            return self._make_token(TokenType.FLOAT, text, start)
        if not _INT_MIN <= int(text) <= _INT_MAX:
            return self._make_token(TokenType.INVALID, "integer out of range", start)
        return self._make_token(TokenType.INTEGER, text, start)

    # =========================================================================
    # Names
    # =========================================================================

    def _read_name(self, allow_dash: bool = False) -> str:
        begin = self.pos
        while True:
            ch = self._peek()
            if _is_name_char(ch) and not self._is_at_end():
                self._advance()
            elif allow_dash and ch == "-" and _is_name_start(self._peek(1)):
                self._advance()
            else:
                break
        return self.source[begin:self.pos]

    def _scan_identifier(self) -> Token:
        start = self._location()
        name = self._read_name(allow_dash=True)
        token_type = KEYWORDS.get(name, TokenType.IDENT)
        return self._make_token(token_type, name, start)

    def _scan_prefixed_name(self, token_type: TokenType) -> Token:
        start = self._location()
        self._advance()  # consume sigil
        if not _is_name_start(self._peek()):
            return self._invalid(f"missing name after '{self.source[start.offset]}'", start)
        name = self._read_name()
        return self._make_token(token_type, name, start)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _sign_starts_number(self) -> bool:
        return self._peek(1).isdigit() and self._last not in _VALUE_ENDINGS

    def _scan_token(self) -> Token:
        self._skip_blanks()
        if self._is_at_end():
            if self._bad_byte is not None:
                offset, self._bad_byte = self._bad_byte, None
                return self._make_token(TokenType.INVALID,
                                        f"invalid UTF-8 byte at offset {offset}",
                                        self._location(), lexeme="")
            return self._make_token(TokenType.EOF, "", self._location())

        ch = self._peek()
        if ch == "\n":
            return self._scan_newlines()
        if ch == "#":
            return self._scan_line_comment()
        if ch == "/" and self._peek(1) == "*":
            return self._scan_block_comment()
        if ch in "\"'":
            return self._scan_string()
        if ch.isdigit():
            token = self._scan_calendar()
            if token is not None:
                return token
            return self._scan_number()
        if ch in "+-" and self._sign_starts_number():
            return self._scan_number()
        if _is_name_start(ch):
            return self._scan_identifier()
        if ch == "." and _is_name_start(self._peek(1)):
            return self._scan_prefixed_name(TokenType.MACRO)
        if ch == "$":
            return self._scan_prefixed_name(TokenType.LOCAL_VAR)
        if ch == "@":
            return self._scan_prefixed_name(TokenType.ENV_VAR)
        if ch == "<" and self._peek(1) == "<" and self._peek(2).isupper():
            return self._scan_heredoc()

        start = self._location()
        pair = ch + self._peek(1)
        if pair in _TWO_CHAR_TOKENS:
            self._advance_by(2)
            return self._make_token(_TWO_CHAR_TOKENS[pair], pair, start)
        if ch in _SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(_SINGLE_CHAR_TOKENS[ch], ch, start)
        return self._invalid(f"unexpected character {ch!r}", start)

    def next(self) -> Token:
        """Return the next token; EOF is returned again once reached."""
        token = self._scan_token()
        if token.type != TokenType.COMMENT:
            self._last = token.type
        return token

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        return list(self)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: Union[str, bytes], filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source text.

    Args:
        source: The source text (bytes are decoded as UTF-8)
        filename: Optional filename for error messages

    Returns:
        List of tokens, ending with EOF. Malformed input shows up as
        INVALID tokens rather than exceptions.
    """
    return Scanner(source, filename).tokenize()
