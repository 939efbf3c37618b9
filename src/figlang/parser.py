"""
Recursive descent parser for the fig configuration language.

Converts a token stream into a tree of ``Object``/``Option``/``List``/``Macro``
nodes whose option values are expression trees. Tokens are pulled lazily from
the scanner with a small lookahead buffer.

There is no error recovery: the first unexpected or INVALID token raises a
``ParserError`` (or ``LexerError``) carrying its source position.
"""

from typing import List, Optional, Iterable, Iterator, Union, Dict, Tuple

from .tokens import Token, TokenType, SourceSpan, LITERAL_TOKENS, UNITS, NO_SPAN
from .scanner import Scanner
from .ast import (
    Expr, Literal, Variable, Unary, Binary, Ternary, Array, Index, Call,
    Node, Comment, Option, Object, Macro,
)
from .errors import (
    error_invalid_token,
    error_unexpected_token,
    error_unexpected_eof,
    error_unknown_unit,
    error_bad_argument_list,
)


class Parser:
    """
    Recursive descent parser for fig documents.

    Usage:
        parser = Parser(Scanner(source).tokenize())
        root = parser.parse()

    Expressions use precedence climbing:
        Lowest:  ?: (ternary, right-associative)
                 ||
                 &&
                 == != < > <= >=
                 |
                 ^
                 &
                 << >>
                 + -
                 * / %
        Highest: ** (power, right-associative)
                 unary (- ! ~), indexing, calls, grouping
    """

    # Operator precedence levels (higher = tighter binding)
    PRECEDENCE = {
        TokenType.OR: 1,
        TokenType.AND: 2,
        TokenType.EQ: 3,
        TokenType.NE: 3,
        TokenType.LT: 3,
        TokenType.GT: 3,
        TokenType.LE: 3,
        TokenType.GE: 3,
        TokenType.BIT_OR: 4,
        TokenType.BIT_XOR: 5,
        TokenType.BIT_AND: 6,
        TokenType.LSHIFT: 7,
        TokenType.RSHIFT: 7,
        TokenType.PLUS: 8,
        TokenType.MINUS: 8,
        TokenType.STAR: 9,
        TokenType.SLASH: 9,
        TokenType.PERCENT: 9,
        TokenType.POWER: 10,
    }

    # Right-associative operators
    RIGHT_ASSOCIATIVE = {TokenType.POWER}

    UNARY_OPERATORS = {TokenType.MINUS, TokenType.PLUS, TokenType.NOT, TokenType.BIT_NOT}

    def __init__(self, tokens: Iterable[Token], source_lines: Optional[List[str]] = None):
        self._tokens: Iterator[Token] = iter(tokens)
        self._buffer: List[Token] = []
        self._previous: Optional[Token] = None
        self.source_lines = source_lines
        self._seq = 0

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _peek(self, offset: int = 0) -> Token:
        """Peek at token at current position + offset."""
        while len(self._buffer) <= offset:
            if self._buffer and self._buffer[-1].type == TokenType.EOF:
                return self._buffer[-1]
            token = next(self._tokens, None)
            if token is None:
                last = self._buffer[-1] if self._buffer else self._previous
                span = last.span if last is not None else NO_SPAN
                token = Token(TokenType.EOF, "", "", span)
            self._buffer.append(token)
        return self._buffer[offset]

    def _current(self) -> Token:
        return self._peek(0)

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if token.type != TokenType.EOF:
            self._buffer.pop(0)
            self._previous = token
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _skip_layout(self) -> None:
        """Skip end-of-line and comment tokens inside brackets."""
        while self._current().type in (TokenType.EOL, TokenType.COMMENT):
            self._advance()

    def _source_line(self, token: Token) -> Optional[str]:
        if self.source_lines is None:
            return None
        line = token.span.start.line
        if 1 <= line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    def _error(self, expected: str) -> None:
        """Raise an error for the current token."""
        token = self._current()
        line = self._source_line(token)
        if token.type == TokenType.INVALID:
            raise error_invalid_token(token.value, token.lexeme, token.span, line)
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        raise error_unexpected_token(expected, str(token), token.span, line)

    def _span_from(self, start: Token) -> SourceSpan:
        """Create a span from start token to the last consumed token."""
        end = self._previous if self._previous is not None else start
        return SourceSpan(start.span.start, end.span.end)

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    # =========================================================================
    # Documents
    # =========================================================================

    def parse(self) -> Object:
        """Parse a complete document into an anonymous root object."""
        start = self._current()
        root = Object(start.span, "")
        if self._check(TokenType.LBRACE):
            # a document may be wrapped in a single pair of braces
            self._advance()
            self._parse_body(root, TokenType.RBRACE)
            self._consume(TokenType.RBRACE, "'}'")
            self._skip_layout()
        else:
            self._parse_body(root, None)
        self._consume(TokenType.EOF, "end of file")
        root.span = self._span_from(start)
        return root

    def _parse_body(self, obj: Object, closing: Optional[TokenType]) -> None:
        """Parse options, objects and macros until ``closing`` (or EOF)."""
        leading: List[str] = []
        while True:
            token = self._current()
            if token.type == TokenType.EOL:
                self._advance()
                continue
            if token.type == TokenType.COMMENT:
                leading.append(self._advance().value)
                continue
            if closing is not None and token.type == closing:
                return
            if token.type == TokenType.EOF:
                if closing is not None:
                    self._error("'}'")
                return

            comment = Comment(token.span, "\n".join(leading)) if leading else None
            leading = []
            if token.type == TokenType.MACRO:
                node = self._parse_macro()
                obj.directives.append(node)
            elif token.type == TokenType.IDENT:
                node = self._parse_declaration(obj)
                node.comment = comment
            else:
                self._error("option, object or macro")
            self._end_statement(node)

    def _end_statement(self, node: Node) -> None:
        """A statement ends at a newline, a trailing comment, '}' or EOF."""
        trailing = self._match(TokenType.COMMENT)
        if trailing is not None and not isinstance(node, Macro):
            text = trailing.value
            if node.comment is not None:
                text = f"{node.comment.text}\n{text}"
            node.comment = Comment(trailing.span, text)
        if self._match(TokenType.EOL):
            return
        if self._current().type in (TokenType.RBRACE, TokenType.EOF):
            return
        self._error("end of line")

    def _parse_declaration(self, obj: Object) -> Union[Option, Object]:
        """Parse ``name = expr`` or ``name... { body }``."""
        start = self._advance()

        if self._match(TokenType.ASSIGN):
            value = self.parse_expression()
            option = Option(self._span_from(start), start.value, value, seq=self._next_seq())
            obj.declare(option)
            return option

        names = [start]
        while self._check(TokenType.IDENT):
            names.append(self._advance())
        if not self._check(TokenType.LBRACE):
            if len(names) == 1:
                self._error("'=' or '{'")
            self._error("'{'")

        target = obj
        for i, name in enumerate(names):
            target = target.child(name.value, name.span, fresh=i == len(names) - 1)
            if target.seq == 0:
                target.seq = self._next_seq()

        self._consume(TokenType.LBRACE, "'{'")
        self._parse_body(target, TokenType.RBRACE)
        self._consume(TokenType.RBRACE, "'}'")
        target.span = self._span_from(start)
        return target

    def _parse_macro(self) -> Macro:
        """Parse ``.name(args) [{ body }]``."""
        start = self._advance()
        args, named = self._parse_arguments()
        body = None
        if self._check(TokenType.LBRACE):
            brace = self._advance()
            body = Object(brace.span, "")
            self._parse_body(body, TokenType.RBRACE)
            self._consume(TokenType.RBRACE, "'}'")
            body.span = self._span_from(brace)
        return Macro(self._span_from(start), start.value, args, named, body, seq=self._next_seq())

    # =========================================================================
    # Expressions
    # =========================================================================

    def parse_expression(self) -> Expr:
        """Parse an expression, including the ternary operator."""
        start = self._current()
        condition = self._parse_binary_expr(1)
        if not self._match(TokenType.QUESTION):
            return condition
        self._skip_layout()
        then = self.parse_expression()
        self._skip_layout()
        self._consume(TokenType.COLON, "':'")
        self._skip_layout()
        otherwise = self.parse_expression()
        return Ternary(self._span_from(start), condition, then, otherwise)

    def _parse_binary_expr(self, min_precedence: int) -> Expr:
        """Parse binary expression using precedence climbing."""
        start = self._current()
        left = self._parse_unary_expr()

        while True:
            op = self._current().type
            precedence = self.PRECEDENCE.get(op)
            if precedence is None or precedence < min_precedence:
                break
            self._advance()
            self._skip_layout()

            if op in self.RIGHT_ASSOCIATIVE:
                right = self._parse_binary_expr(precedence)
            else:
                right = self._parse_binary_expr(precedence + 1)

            left = Binary(self._span_from(start), left, op, right)

        return left

    def _parse_unary_expr(self) -> Expr:
        start = self._current()
        if start.type in self.UNARY_OPERATORS:
            self._advance()
            operand = self._parse_unary_expr()
            if start.type == TokenType.PLUS:
                return operand
            return Unary(self._span_from(start), start.type, operand)
        return self._parse_postfix_expr()

    def _parse_postfix_expr(self) -> Expr:
        start = self._current()
        expr = self._parse_primary()
        while self._check(TokenType.LBRACKET):
            self._advance()
            self._skip_layout()
            index = self.parse_expression()
            self._skip_layout()
            self._consume(TokenType.RBRACKET, "']'")
            expr = Index(self._span_from(start), expr, index)
        return expr

    def _parse_primary(self) -> Expr:
        token = self._current()

        if token.type in LITERAL_TOKENS:
            self._advance()
            unit = None
            if token.type in (TokenType.INTEGER, TokenType.FLOAT):
                unit = self._parse_unit(token)
            return Literal(self._span_from(token), token, unit)

        if token.type == TokenType.IDENT:
            self._advance()
            if self._check(TokenType.LPAREN):
                args, named = self._parse_arguments()
                return Call(self._span_from(token), token.value, args, named)
            # a bare word is a text literal
            return Literal(token.span, token)

        if token.type in (TokenType.LOCAL_VAR, TokenType.ENV_VAR):
            self._advance()
            return Variable(token.span, token.value, token.type == TokenType.LOCAL_VAR)

        if token.type == TokenType.LPAREN:
            self._advance()
            self._skip_layout()
            expr = self.parse_expression()
            self._skip_layout()
            self._consume(TokenType.RPAREN, "')'")
            return expr

        if token.type == TokenType.LBRACKET:
            return self._parse_array()

        self._error("expression")

    def _parse_unit(self, number: Token) -> Optional[str]:
        """A name glued to a number literal is a unit multiplier."""
        token = self._current()
        if token.type != TokenType.IDENT or token.span.start.offset != number.span.end.offset:
            return None
        if token.value not in UNITS:
            raise error_unknown_unit(token.value, token.span, self._source_line(token))
        self._advance()
        return token.value

    def _parse_array(self) -> Array:
        """
        Parse ``[expr, ...]``; newlines are allowed between elements.

        A trailing comma is accepted only when a newline follows it.
        """
        start = self._consume(TokenType.LBRACKET, "'['")
        elements: List[Expr] = []
        self._skip_layout()
        if self._match(TokenType.RBRACKET):
            return Array(self._span_from(start), elements)
        while True:
            self._skip_layout()
            elements.append(self.parse_expression())
            self._skip_layout()
            if self._match(TokenType.COMMA):
                token = self._current()
                broken = token.type == TokenType.EOL or (
                    token.type == TokenType.COMMENT and token.lexeme.startswith("#"))
                self._skip_layout()
                if self._check(TokenType.RBRACKET):
                    if not broken:
                        self._error("array element after ','")
                    self._advance()
                    break
                continue
            self._consume(TokenType.RBRACKET, "',' or ']'")
            break
        return Array(self._span_from(start), elements)

    def _parse_arguments(self) -> Tuple[List[Expr], Dict[str, Expr]]:
        """Parse ``(args)`` with positional and ``name=expr`` arguments."""
        self._consume(TokenType.LPAREN, "'('")
        args: List[Expr] = []
        named: Dict[str, Expr] = {}
        self._skip_layout()
        if self._match(TokenType.RPAREN):
            return args, named
        while True:
            self._skip_layout()
            token = self._current()
            if token.type == TokenType.IDENT and self._peek(1).type == TokenType.ASSIGN:
                self._advance()
                self._advance()
                self._skip_layout()
                if token.value in named:
                    raise error_bad_argument_list(
                        f"duplicate keyword argument '{token.value}'",
                        token.span, self._source_line(token))
                named[token.value] = self.parse_expression()
            else:
                if named:
                    raise error_bad_argument_list(
                        "positional argument follows keyword argument",
                        token.span, self._source_line(token))
                args.append(self.parse_expression())
            self._skip_layout()
            if self._match(TokenType.COMMA):
                continue
            self._consume(TokenType.RPAREN, "',' or ')'")
            break
        return args, named


def parse(source: Union[str, bytes, Iterable[Token]], filename: Optional[str] = None) -> Object:
    """
    Convenience function to parse a document.

    Args:
        source: Source text, or an iterable of tokens
        filename: Optional filename for error messages

    Returns:
        The anonymous root Object (macros not yet expanded)

    Raises:
        ParserError: On the first syntax error
        LexerError: On the first invalid token
    """
    if isinstance(source, (str, bytes, bytearray)):
        scanner = Scanner(source, filename)
        return Parser(scanner, scanner.lines).parse()
    return Parser(source).parse()
