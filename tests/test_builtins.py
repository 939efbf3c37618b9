"""
Unit tests for fig built-in functions.
"""

import pytest
from figlang import (
    parse, evaluate,
    Bool, Int, Double, Text, Slice,
    InvalidArgument, MissingArgument,
)
from figlang.runtime import (
    BuiltinRegistry, get_builtin_registry, call_builtin, make_environment,
)


def ev(source):
    """Evaluate the expression ``source``."""
    expr = parse(f"x = {source}").fields["x"].value
    return evaluate(expr, make_environment())


def texts(*values):
    return Slice(tuple(Text(v) for v in values))


def ints(*values):
    return Slice(tuple(Int(v) for v in values))


class TestRegistry:
    """Test the builtin registry."""

    def test_global_registry(self):
        """The global registry is shared."""
        assert get_builtin_registry() is get_builtin_registry()

    def test_aliases(self):
        """Aliases map to the same function."""
        registry = BuiltinRegistry()
        assert registry.get_function("dir") is registry.get_function("dirname")
        assert registry.get_function("base") is registry.get_function("basename")

    def test_names(self):
        """Registered names are listed."""
        names = BuiltinRegistry().names()
        for name in ("typeof", "seq", "avg", "substr", "b64encode", "read"):
            assert name in names

    def test_call_builtin(self):
        """Builtins can be called directly."""
        env = make_environment()
        assert call_builtin("upper", env, [Text("abc")]) == Text("ABC")
        # the call frame is popped afterwards
        assert env.depth == 1

    def test_seeded_randn(self):
        """Seeding makes randn repeatable."""
        registry = BuiltinRegistry()
        func = registry.get_function("randn")
        env = make_environment()
        registry.seed(42)
        first = [func.call(env, [Int(100)], {}) for _ in range(5)]
        registry.seed(42)
        second = [func.call(env, [Int(100)], {}) for _ in range(5)]
        assert first == second
        assert all(0 <= v.value < 100 for v in first)


class TestArgumentBinding:
    """Test matching of call arguments to parameters."""

    def test_keyword_argument(self):
        """Parameters can be named."""
        assert ev("substr(str=hello, pos=1)") == Text("ello")

    def test_default_argument(self):
        """Omitted parameters take their default."""
        assert ev("seq(1, 4)") == ints(1, 2, 3)

    def test_missing_argument(self):
        """Required parameters must be given."""
        with pytest.raises(MissingArgument) as exc_info:
            ev("seq(1)")
        assert exc_info.value.code == "E208"

    def test_too_many_arguments(self):
        """Surplus positional arguments are rejected."""
        with pytest.raises(InvalidArgument):
            ev("upper(a, b)")

    def test_unknown_keyword(self):
        """Unknown keywords are rejected."""
        with pytest.raises(InvalidArgument):
            ev("seq(1, 2, bogus=1)")

    def test_position_and_keyword(self):
        """A parameter cannot be given twice."""
        with pytest.raises(InvalidArgument):
            ev("seq(1, 2, first=1)")

    def test_variadic_array_argument(self):
        """A single array is spread into a variadic parameter."""
        assert ev("max([3, 9, 2])") == Int(9)


class TestInspection:
    """Test typeof, len, first and last."""

    @pytest.mark.parametrize("source,kind", [
        ("1", "integer"),
        ("1.5", "double"),
        ('"a"', "text"),
        ("[1]", "array"),
        ("true", "boolean"),
        ("2021-04-18", "moment"),
    ])
    def test_typeof(self, source, kind):
        """Kind names."""
        assert ev(f"typeof({source})") == Text(kind)

    def test_len(self):
        """Length of text and arrays, -1 otherwise."""
        assert ev('len("abc")') == Int(3)
        assert ev("len([1, 2])") == Int(2)
        assert ev("len(1)") == Int(-1)

    def test_first_and_last(self):
        """First and last elements."""
        assert ev("first([1, 2, 3])") == Int(1)
        assert ev("last([1, 2, 3])") == Int(3)

    def test_first_of_empty(self):
        """Empty arrays have no first element."""
        with pytest.raises(InvalidArgument):
            ev("first([])")


class TestMath:
    """Test numeric builtins."""

    def test_seq_descending(self):
        """seq counts down when last < first."""
        assert ev("seq(8, 5, 1)") == ints(8, 7, 6)

    def test_seq_step(self):
        """seq with a step."""
        assert ev("seq(0, 6, 2)") == ints(0, 2, 4)

    def test_seq_zero_step(self):
        """A zero step is invalid."""
        with pytest.raises(InvalidArgument):
            ev("seq(1, 4, 0)")

    def test_abs_and_sqrt(self):
        """abs and sqrt return doubles."""
        assert ev("abs(-2)") == Double(2.0)
        assert ev("sqrt(16)") == Double(4.0)

    def test_sqrt_negative(self):
        """sqrt of a negative number is invalid."""
        with pytest.raises(InvalidArgument):
            ev("sqrt(-1)")

    def test_randn_range(self):
        """randn needs a positive bound."""
        value = ev("randn(10)")
        assert 0 <= value.value < 10
        with pytest.raises(InvalidArgument):
            ev("randn(0)")


class TestAggregates:
    """Test min, max, all, any and avg."""

    def test_avg(self):
        """Average of mixed numbers."""
        assert ev("avg(10, 10, 10.0, 5.0, 5.0)") == Double(8.0)

    def test_min_max(self):
        """Extremes."""
        assert ev("min(3, 1, 2)") == Int(1)
        assert ev("max(3, 9.5, 2)") == Double(9.5)

    def test_all_any(self):
        """Truthiness aggregates."""
        assert ev("all()") == Bool(True)
        assert ev("any()") == Bool(False)
        assert ev("all(1, 0)") == Bool(False)
        assert ev('any(0, "x")') == Bool(True)

    def test_empty_aggregates(self):
        """min, max and avg need arguments."""
        for name in ("min", "max", "avg"):
            with pytest.raises(InvalidArgument):
                ev(f"{name}()")


class TestStrings:
    """Test text builtins."""

    def test_case(self):
        """upper and lower."""
        assert ev('upper("abc")') == Text("ABC")
        assert ev('lower("ABC")') == Text("abc")

    def test_split(self):
        """split with an explicit and the default separator."""
        assert ev('split("a,b", ",")') == texts("a", "b")
        assert ev('split("a b")') == texts("a", "b")

    def test_split_empty_separator(self):
        """An empty separator is invalid."""
        with pytest.raises(InvalidArgument):
            ev('split("ab", "")')

    def test_join(self):
        """join prints each element as text."""
        assert ev('join([a, 1, 2.5], "-")') == Text("a-1-2.5")

    def test_contains(self):
        """Substring test."""
        assert ev('contains("hello", "ell")') == Bool(True)
        assert ev('contains("hello", "xyz")') == Bool(False)

    def test_substr(self):
        """Substring by position and length."""
        assert ev('substr("hello", 1, 3)') == Text("ell")
        assert ev('substr("hello", 2)') == Text("llo")

    def test_substr_out_of_range(self):
        """Positions past the end are invalid."""
        with pytest.raises(InvalidArgument):
            ev('substr("hello", 9)')

    def test_trim(self):
        """Whitespace and custom trimming."""
        assert ev('trim("  x  ")') == Text("x")
        assert ev('trim("--x--", "-")') == Text("x")

    def test_replace(self):
        """Replace all or a limited count."""
        assert ev('replace("aaa", "a", "b")') == Text("bbb")
        assert ev('replace("aaa", "a", "b", 2)') == Text("bba")


class TestPaths:
    """Test path and file builtins."""

    def test_dirname_and_basename(self):
        """Path components."""
        assert ev('dirname("/a/b/c.txt")') == Text("/a/b")
        assert ev('basename("/a/b/c.txt")') == Text("c.txt")
        assert ev('dirname("file")') == Text(".")
        assert ev('base("/a/b/")') == Text("b")

    def test_isfile_isdir(self, tmp_path):
        """File system checks."""
        path = tmp_path / "a.txt"
        path.write_text("x")
        assert ev(f'isfile("{path}")') == Bool(True)
        assert ev(f'isdir("{tmp_path}")') == Bool(True)
        assert ev(f'isfile("{tmp_path / "missing"}")') == Bool(False)

    def test_read(self, tmp_path):
        """read concatenates files."""
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("one\n")
        b.write_text("two\n")
        assert ev(f'read("{a}", "{b}")') == Text("one\ntwo\n")

    def test_read_missing(self, tmp_path):
        """Unreadable files are invalid arguments."""
        with pytest.raises(InvalidArgument):
            ev(f'read("{tmp_path / "missing.txt"}")')


class TestEncodings:
    """Test base64 builtins."""

    def test_encode(self):
        """Standard base64."""
        assert ev('b64encode("hello")') == Text("aGVsbG8=")

    def test_decode(self):
        """Standard base64 decoding."""
        assert ev('b64decode("aGVsbG8=")') == Text("hello")

    def test_url_safe(self):
        """URL-safe alphabet."""
        assert ev('b64encode("??>", url=true)') == Text("Pz8-")

    def test_decode_invalid(self):
        """Invalid input is reported."""
        with pytest.raises(InvalidArgument):
            ev('b64decode("!!")')
