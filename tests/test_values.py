"""
Unit tests for fig runtime values.
"""

import math
from datetime import date, datetime, time, timezone, timedelta

import pytest
from figlang import (
    Bool, Int, Double, Text, Moment, Slice,
    UnsupportedOperation, IncompatibleTypes, ZeroDivision, IndexOutOfRange,
    InvalidArgument,
)
from figlang.runtime.values import format_double, parse_moment, wrap


class TestIntArithmetic:
    """Test integer arithmetic."""

    def test_basic_operations(self):
        """Add, subtract, multiply."""
        assert Int(100).add(Int(1)) == Int(101)
        assert Int(3).sub(Int(5)) == Int(-2)
        assert Int(6).mul(Int(7)) == Int(42)

    def test_division_truncates_toward_zero(self):
        """Integer division truncates toward zero."""
        assert Int(7).div(Int(2)) == Int(3)
        assert Int(-7).div(Int(2)) == Int(-3)

    def test_modulo_takes_dividend_sign(self):
        """Integer modulo has the sign of the dividend."""
        assert Int(-7).mod(Int(2)) == Int(-1)
        assert Int(7).mod(Int(-2)) == Int(1)

    def test_division_by_zero(self):
        """Division and modulo by zero."""
        with pytest.raises(ZeroDivision):
            Int(1).div(Int(0))
        with pytest.raises(ZeroDivision):
            Int(1).mod(Int(0))

    def test_power(self):
        """Integer power."""
        assert Int(2).pow(Int(10)) == Int(1024)

    def test_power_overflow(self):
        """Power results beyond 64 bits are refused."""
        with pytest.raises(UnsupportedOperation):
            Int(2).pow(Int(64))

    def test_wraps_at_64_bits(self):
        """Integers wrap in the signed 64-bit range."""
        assert Int(2 ** 63 - 1).add(Int(1)) == Int(-(2 ** 63))
        assert Int(1 << 63).value == -(1 << 63)

    def test_mixed_promotes_to_double(self):
        """Int combined with Double gives a Double."""
        result = Int(1).add(Double(0.5))
        assert isinstance(result, Double)
        assert result == Double(1.5)

    def test_negation(self):
        """Unary minus."""
        assert Int(5).neg() == Int(-5)


class TestDoubleArithmetic:
    """Test floating point arithmetic."""

    def test_division(self):
        """Double division."""
        assert Double(7.0).div(Int(2)) == Double(3.5)

    def test_division_by_zero(self):
        """Division by zero raises for doubles too."""
        with pytest.raises(ZeroDivision):
            Double(1.0).div(Double(0.0))

    def test_modulo(self):
        """Double modulo keeps the dividend sign."""
        assert Double(-7.5).mod(Double(2.0)) == Double(-1.5)

    def test_epsilon_equality(self):
        """Doubles within 1e-9 compare equal."""
        assert Double(0.1 + 0.2).compare(Double(0.3)) == 0
        assert Double(1.0).compare(Double(1.1)) == -1

    def test_bitwise_refused(self):
        """Doubles support no shift or bitwise operation."""
        with pytest.raises(UnsupportedOperation):
            Double(1.0).lshift(Int(1))
        with pytest.raises(UnsupportedOperation):
            Double(1.0).band(Int(1))


class TestBitwise:
    """Test shift and bitwise operations."""

    def test_shifts(self):
        """Left and arithmetic right shift."""
        assert Int(1).lshift(Int(3)) == Int(8)
        assert Int(-1).rshift(Int(1)) == Int(-1)

    def test_double_shift_count_refused(self):
        """A Double shift count is unsupported."""
        with pytest.raises(UnsupportedOperation):
            Int(1).lshift(Double(1.0))

    def test_negative_shift_count(self):
        """Negative shift counts are invalid."""
        with pytest.raises(InvalidArgument):
            Int(1).lshift(Int(-1))

    def test_and_or_xor_not(self):
        """Bitwise operators."""
        assert Int(6).band(Int(3)) == Int(2)
        assert Int(6).bor(Int(3)) == Int(7)
        assert Int(6).bxor(Int(3)) == Int(5)
        assert Int(0).bnot() == Int(-1)


class TestText:
    """Test text values."""

    def test_concatenation_unsupported(self):
        """Text does not support +."""
        with pytest.raises(UnsupportedOperation):
            Text("a").add(Text("b"))

    def test_mixed_kinds_incompatible(self):
        """Text and Int have no coercion rule."""
        with pytest.raises(IncompatibleTypes):
            Text("a").add(Int(1))
        with pytest.raises(IncompatibleTypes):
            Int(1).add(Text("a"))

    def test_lexicographic_compare(self):
        """Text compares lexicographically."""
        assert Text("abc").compare(Text("abd")) == -1
        assert Text("b").compare(Text("a")) == 1
        assert Text("a").compare(Text("a")) == 0

    def test_truthiness(self):
        """Empty text is false."""
        assert not Text("").is_true()
        assert Text("x").is_true()


class TestBool:
    """Test boolean values."""

    def test_compare(self):
        """false orders before true."""
        assert Bool(False).compare(Bool(True)) == -1

    def test_arithmetic_refused(self):
        """Booleans have no arithmetic."""
        with pytest.raises(UnsupportedOperation):
            Bool(True).add(Bool(True))

    def test_logic_uses_truthiness(self):
        """Logical operators accept any kind."""
        assert Text("").or_(Int(1)) == Bool(True)
        assert Int(0).not_() == Bool(True)
        assert Slice(()).and_(Bool(True)) == Bool(False)

    def test_to_text(self):
        """Booleans print as true/false."""
        assert Bool(True).to_text() == Text("true")


class TestMoment:
    """Test date and time values."""

    def test_parse_date(self):
        """Date literal."""
        assert parse_moment("2021-04-18").value == date(2021, 4, 18)

    def test_parse_time(self):
        """Time literal with fraction."""
        assert parse_moment("19:16:45.5").value == time(19, 16, 45, 500000)

    def test_parse_datetime_defaults_to_utc(self):
        """A datetime without offset is UTC."""
        value = parse_moment("2021-04-18T19:16:45").value
        assert value == datetime(2021, 4, 18, 19, 16, 45, tzinfo=timezone.utc)

    def test_parse_datetime_offset(self):
        """A numeric offset is kept."""
        value = parse_moment("2021-04-18T19:16:45+02:00").value
        assert value.utcoffset() == timedelta(hours=2)

    def test_invalid_date(self):
        """Impossible dates are invalid."""
        with pytest.raises(InvalidArgument):
            parse_moment("2021-02-30")

    def test_compare_across_offsets(self):
        """Instants compare across offsets."""
        a = parse_moment("2021-04-18T12:00:00+02:00")
        b = parse_moment("2021-04-18T10:00:00Z")
        assert a.compare(b) == 0

    def test_arithmetic_refused(self):
        """Moments support no arithmetic."""
        with pytest.raises(UnsupportedOperation):
            Moment(date(2021, 1, 1)).add(Moment(date(2021, 1, 2)))

    def test_to_text(self):
        """Moments print in ISO form."""
        assert Moment(date(2021, 4, 18)).to_text() == Text("2021-04-18")


class TestSlice:
    """Test array values."""

    def test_index(self):
        """Positive and negative indices."""
        values = Slice((Int(1), Int(2), Int(3)))
        assert values.index(Int(0)) == Int(1)
        assert values.index(Int(-1)) == Int(3)

    def test_index_out_of_range(self):
        """Indices outside the array."""
        with pytest.raises(IndexOutOfRange):
            Slice((Int(1),)).index(Int(1))
        with pytest.raises(IndexOutOfRange):
            Slice((Int(1),)).index(Int(-2))

    def test_compare_element_wise(self):
        """Arrays compare element by element, then by length."""
        assert Slice((Int(1), Int(2))).compare(Slice((Int(1), Int(3)))) == -1
        assert Slice((Int(1),)).compare(Slice((Int(1), Int(0)))) == -1
        assert Slice((Int(1), Double(2.0))).compare(Slice((Int(1), Int(2)))) == 0

    def test_truthiness(self):
        """Empty arrays are false."""
        assert not Slice(()).is_true()

    def test_unwrap(self):
        """Arrays unwrap to lists."""
        assert Slice((Int(1), Text("a"))).unwrap() == [1, "a"]


class TestConversions:
    """Test conversions and host value wrapping."""

    def test_format_double(self):
        """Doubles print without exponent or trailing zeros."""
        assert format_double(2.0) == "2"
        assert format_double(0.5) == "0.5"
        assert format_double(1e21) == "1000000000000000000000"
        assert format_double(math.inf) == "inf"

    def test_double_to_int_truncates(self):
        """Double to Int truncates."""
        assert Double(2.9).to_int() == Int(2)
        assert Double(-2.9).to_int() == Int(-2)

    def test_text_has_no_number_conversion(self):
        """Text does not convert to numbers."""
        with pytest.raises(IncompatibleTypes):
            Text("1").to_int()

    def test_wrap(self):
        """Native values wrap into runtime values."""
        assert wrap(True) == Bool(True)
        assert wrap(3) == Int(3)
        assert wrap([1, "a"]) == Slice((Int(1), Text("a")))
        assert wrap(date(2021, 1, 1)) == Moment(date(2021, 1, 1))

    def test_wrap_unsupported(self):
        """Unsupported host values are rejected."""
        with pytest.raises(InvalidArgument):
            wrap(None)
