"""
Unit tests for the fig parser.
"""

import pytest
from figlang import (
    parse, tokenize, Parser, TokenType,
    Literal, Variable, Unary, Binary, Ternary, Array, Index, Call,
    Option, Object, List, Macro,
    ParserError, LexerError,
)


def value_of(source):
    """Parse ``x = <source>`` and return the expression."""
    return parse(f"x = {source}").fields["x"].value


class TestDocuments:
    """Test document structure."""

    def test_empty_document(self):
        """An empty document is an empty root object."""
        root = parse("")
        assert isinstance(root, Object)
        assert root.name == ""
        assert root.fields == {}

    def test_simple_option(self):
        """A single option."""
        root = parse("port = 8080")
        option = root.fields["port"]
        assert isinstance(option, Option)
        assert isinstance(option.value, Literal)
        assert option.value.token.value == "8080"

    def test_field_order(self):
        """Fields keep declaration order."""
        root = parse("b = 1\na = 2\nc = 3")
        assert list(root.fields) == ["b", "a", "c"]

    def test_braced_document(self):
        """A document may be wrapped in braces."""
        root = parse("{\n  a = 1\n}\n")
        assert "a" in root

    def test_nested_objects(self):
        """Objects nest."""
        root = parse("server {\n  http {\n    port = 80\n  }\n}")
        server = root.fields["server"]
        assert isinstance(server, Object)
        http = server.fields["http"]
        assert isinstance(http.fields["port"], Option)

    def test_single_line_object(self):
        """An object body may sit on one line."""
        root = parse("server { port = 80 }")
        assert "port" in root.fields["server"]

    def test_empty_object(self):
        """An object may be empty."""
        root = parse("server { }")
        assert root.fields["server"].fields == {}

    def test_typed_block(self):
        """A chain of names opens nested objects."""
        root = parse("service web {\n  port = 80\n}\nservice db {\n  port = 5432\n}")
        service = root.fields["service"]
        assert isinstance(service, Object)
        assert list(service.fields) == ["web", "db"]

    def test_byte_source(self):
        """Byte sources are accepted."""
        root = parse(b"a = 1")
        assert "a" in root

    def test_token_source(self):
        """A token list can be parsed directly."""
        root = parse(tokenize("a = 1"))
        assert "a" in root

    def test_parser_class(self):
        """Parser can be driven directly."""
        root = Parser(tokenize("a = 1\nb = 2")).parse()
        assert list(root.fields) == ["a", "b"]


class TestRepeatedDeclarations:
    """Test folding of repeated names into lists."""

    def test_repeated_options(self):
        """Repeated options become an ordered List."""
        root = parse("a = 1\na = 2\na = 3")
        node = root.fields["a"]
        assert isinstance(node, List)
        assert [item.value.token.value for item in node.items] == ["1", "2", "3"]

    def test_repeated_objects(self):
        """Repeated objects become an ordered List."""
        root = parse("item {\n  x = 1\n}\nitem {\n  x = 2\n}")
        node = root.fields["item"]
        assert isinstance(node, List)
        assert len(node) == 2
        assert all(isinstance(item, Object) for item in node.items)

    def test_mixing_option_and_object(self):
        """An option and an object cannot share a name."""
        with pytest.raises(ParserError) as exc_info:
            parse("a = 1\na {\n}")
        assert exc_info.value.code == "E105"

    def test_sequence_numbers_increase(self):
        """Declarations are numbered in source order."""
        root = parse("a = 1\nb { }\nc = 2")
        seqs = [node.seq for node in root.fields.values()]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == 3


class TestComments:
    """Test comment attachment."""

    def test_leading_comment(self):
        """Leading comments attach to the next declaration."""
        root = parse("# the port\nport = 80")
        assert root.fields["port"].comment.text == "the port"

    def test_leading_and_trailing_comment(self):
        """Leading and trailing comments are joined."""
        root = parse("# leading\nport = 1 # trailing")
        assert root.fields["port"].comment.text == "leading\ntrailing"

    def test_comment_only_document(self):
        """Comments alone produce an empty document."""
        root = parse("# nothing\n/* here */\n")
        assert root.fields == {}


class TestExpressions:
    """Test expression parsing and precedence."""

    def test_literal_kinds(self):
        """Literal tokens keep their kind."""
        assert value_of("1.5").kind == TokenType.FLOAT
        assert value_of('"s"').kind == TokenType.STRING
        assert value_of("true").kind == TokenType.BOOLEAN
        assert value_of("2021-04-18").kind == TokenType.DATE

    def test_bare_word_is_literal(self):
        """A bare identifier is a text literal."""
        expr = value_of("hello")
        assert isinstance(expr, Literal)
        assert expr.kind == TokenType.IDENT

    def test_multiplication_binds_tighter(self):
        """* binds tighter than +."""
        expr = value_of("1 + 2 * 3")
        assert isinstance(expr, Binary)
        assert expr.operator == TokenType.PLUS
        assert isinstance(expr.right, Binary)
        assert expr.right.operator == TokenType.STAR

    def test_left_associative(self):
        """Subtraction is left associative."""
        expr = value_of("10 - 4 - 3")
        assert expr.operator == TokenType.MINUS
        assert isinstance(expr.left, Binary)

    def test_power_is_right_associative(self):
        """** is right associative."""
        expr = value_of("2 ** 3 ** 2")
        assert expr.operator == TokenType.POWER
        assert isinstance(expr.right, Binary)
        assert expr.right.operator == TokenType.POWER

    def test_comparison_below_arithmetic(self):
        """Comparisons bind looser than arithmetic."""
        expr = value_of("1 + 1 == 2")
        assert expr.operator == TokenType.EQ

    def test_logical_precedence(self):
        """&& binds tighter than ||."""
        expr = value_of("a || b && c")
        assert expr.operator == TokenType.OR
        assert expr.right.operator == TokenType.AND

    def test_grouping(self):
        """Parentheses override precedence."""
        expr = value_of("(1 + 2) * 3")
        assert expr.operator == TokenType.STAR
        assert isinstance(expr.left, Binary)

    def test_ternary(self):
        """Ternary expression."""
        expr = value_of("$a > 1 ? 2 : 3")
        assert isinstance(expr, Ternary)
        assert isinstance(expr.condition, Binary)

    def test_unary(self):
        """Prefix operators."""
        assert isinstance(value_of("!true"), Unary)
        assert isinstance(value_of("~$x"), Unary)
        expr = value_of("-$x")
        assert isinstance(expr, Unary)
        assert expr.operator == TokenType.MINUS

    def test_unary_plus_is_dropped(self):
        """Unary + returns its operand."""
        assert isinstance(value_of("+$x"), Variable)

    def test_variables(self):
        """Local and environment variables."""
        local = value_of("$port")
        env = value_of("@home")
        assert isinstance(local, Variable) and local.local
        assert isinstance(env, Variable) and not env.local
        assert env.name == "home"

    def test_index(self):
        """Index access."""
        expr = value_of("[1, 2][0]")
        assert isinstance(expr, Index)
        assert isinstance(expr.target, Array)

    def test_str_round_trip(self):
        """Expressions print in a readable form."""
        assert str(value_of("1 + 2 * $x")) == "(1 + (2 * $x))"


class TestArrays:
    """Test array literals."""

    def test_empty_array(self):
        """Empty array."""
        assert value_of("[]").elements == []

    def test_multiline_array(self):
        """Newlines and comments are allowed inside brackets."""
        expr = value_of("[\n  1, # one\n  2\n]")
        assert isinstance(expr, Array)
        assert len(expr.elements) == 2

    def test_trailing_comma_rejected(self):
        """A trailing comma on the same line as ']' is an error."""
        with pytest.raises(ParserError):
            parse("x = [1, 2,]")

    def test_trailing_comma_before_newline(self):
        """A trailing comma followed by a newline is allowed."""
        expr = value_of("[1, 2,\n]")
        assert isinstance(expr, Array)
        assert len(expr.elements) == 2

    def test_trailing_comma_before_comment(self):
        """A line comment after the trailing comma ends the line."""
        assert len(value_of("[\n  1,\n  2, # last\n]").elements) == 2

    def test_unclosed_array(self):
        """Unclosed array reports end of file."""
        with pytest.raises(ParserError) as exc_info:
            parse("x = [1, 2")
        assert exc_info.value.code == "E102"


class TestCalls:
    """Test function call syntax."""

    def test_positional_and_named(self):
        """Positional arguments come before named ones."""
        expr = value_of("seq(1, 5, step=2)")
        assert isinstance(expr, Call)
        assert expr.name == "seq"
        assert len(expr.arguments) == 2
        assert list(expr.named_arguments) == ["step"]

    def test_no_arguments(self):
        """Call without arguments."""
        expr = value_of("randn()")
        assert expr.arguments == [] and expr.named_arguments == {}

    def test_positional_after_named(self):
        """Positional arguments may not follow keywords."""
        with pytest.raises(ParserError) as exc_info:
            parse("x = f(a=1, 2)")
        assert exc_info.value.code == "E104"

    def test_duplicate_keyword(self):
        """A keyword may appear once."""
        with pytest.raises(ParserError) as exc_info:
            parse("x = f(a=1, a=2)")
        assert exc_info.value.code == "E104"


class TestUnits:
    """Test unit multipliers."""

    def test_unit_attached(self):
        """A known unit glued to a number."""
        expr = value_of("10K")
        assert expr.unit == "K"
        assert str(expr) == "10K"

    def test_unknown_unit(self):
        """An unknown unit is an error."""
        with pytest.raises(ParserError) as exc_info:
            parse("x = 10Q")
        assert exc_info.value.code == "E103"

    def test_spaced_word_is_not_a_unit(self):
        """A word after a space is not a unit and ends nothing."""
        with pytest.raises(ParserError) as exc_info:
            parse("x = 10 K")
        assert exc_info.value.code == "E101"


class TestMacros:
    """Test macro directive syntax."""

    def test_directive(self):
        """A directive is recorded on its object."""
        root = parse('.include("base.fig")')
        assert root.fields == {}
        macro = root.directives[0]
        assert isinstance(macro, Macro)
        assert macro.name == "include"
        assert macro.body is None
        assert len(macro.arguments) == 1

    def test_directive_with_body(self):
        """A directive may carry a body object."""
        root = parse(".define(base) {\n  a = 1\n}")
        macro = root.directives[0]
        assert isinstance(macro.body, Object)
        assert "a" in macro.body

    def test_nested_directive(self):
        """Directives inside objects belong to that object."""
        root = parse("server {\n  .apply(base)\n}")
        assert root.directives == []
        assert root.fields["server"].directives[0].name == "apply"

    def test_directive_order(self):
        """Directives and declarations share one sequence."""
        root = parse("a = 1\n.apply(x)\nb = 2")
        assert root.fields["a"].seq < root.directives[0].seq < root.fields["b"].seq


class TestErrors:
    """Test error reporting."""

    def test_invalid_token(self):
        """An INVALID token surfaces as a LexerError."""
        with pytest.raises(LexerError) as exc_info:
            parse("x = 007")
        assert exc_info.value.code == "E001"

    def test_missing_brace(self):
        """Unclosed object reports end of file."""
        with pytest.raises(ParserError) as exc_info:
            parse("server {\n  port = 80\n")
        assert exc_info.value.code == "E102"

    def test_missing_value(self):
        """An option needs a value."""
        with pytest.raises(ParserError):
            parse("x =\n")

    def test_bare_name(self):
        """A name alone is not a statement."""
        with pytest.raises(ParserError):
            parse("x\n")

    def test_two_statements_on_a_line(self):
        """Statements are separated by newlines."""
        with pytest.raises(ParserError):
            parse("a = 1 b = 2")

    def test_error_location(self):
        """Errors carry the offending position and source line."""
        with pytest.raises(ParserError) as exc_info:
            parse("a = 1\nb = )", filename="app.fig")
        error = exc_info.value
        assert error.span.start.line == 2
        assert error.span.start.filename == "app.fig"
        assert "b = )" in str(error)
