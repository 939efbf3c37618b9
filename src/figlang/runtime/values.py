"""
Runtime values for the fig evaluator.

Every value kind implements the full operator contract (arithmetic, logical,
comparison, shift and bitwise operations, truthiness and conversions).
Combinations a kind does not support raise ``UnsupportedOperation``;
operands of different kinds with no coercion rule raise
``IncompatibleTypes``. The only implicit coercion is Int to Double.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, ClassVar, Tuple, Union

from ..errors import (
    error_unsupported,
    error_incompatible,
    error_zero_division,
    error_index_out_of_range,
    error_invalid_argument,
    error_overflow,
)


EPSILON = 1e-9

_INT64_MIN = -(1 << 63)
_INT64_SPAN = 1 << 64


def _wrap64(n: int) -> int:
    """Wrap an integer into the signed 64-bit range."""
    return (n - _INT64_MIN) % _INT64_SPAN + _INT64_MIN


def _cmp(a, b) -> int:
    if a == b:
        return 0
    return 1 if a > b else -1


class Value:
    """Base class for runtime values; the default for every operation is to refuse it."""

    kind: ClassVar[str] = "value"

    # --- Arithmetic ---

    def add(self, other: "Value") -> "Value":
        raise self._refuse("+", other)

    def sub(self, other: "Value") -> "Value":
        raise self._refuse("-", other)

    def mul(self, other: "Value") -> "Value":
        raise self._refuse("*", other)

    def div(self, other: "Value") -> "Value":
        raise self._refuse("/", other)

    def mod(self, other: "Value") -> "Value":
        raise self._refuse("%", other)

    def pow(self, other: "Value") -> "Value":
        raise self._refuse("**", other)

    def neg(self) -> "Value":
        raise error_unsupported("-", self.kind)

    # --- Logical (on truthiness, for every kind) ---

    def not_(self) -> "Bool":
        return Bool(not self.is_true())

    def and_(self, other: "Value") -> "Bool":
        return Bool(self.is_true() and other.is_true())

    def or_(self, other: "Value") -> "Bool":
        return Bool(self.is_true() or other.is_true())

    # --- Comparison ---

    def compare(self, other: "Value") -> int:
        """Three-way comparison: -1, 0 or 1."""
        raise self._refuse("compare", other)

    # --- Shift and bitwise ---

    def lshift(self, other: "Value") -> "Value":
        raise self._refuse("<<", other)

    def rshift(self, other: "Value") -> "Value":
        raise self._refuse(">>", other)

    def band(self, other: "Value") -> "Value":
        raise self._refuse("&", other)

    def bor(self, other: "Value") -> "Value":
        raise self._refuse("|", other)

    def bxor(self, other: "Value") -> "Value":
        raise self._refuse("^", other)

    def bnot(self) -> "Value":
        raise error_unsupported("~", self.kind)

    # --- Truthiness and conversions ---

    def is_true(self) -> bool:
        return True

    def to_int(self) -> "Int":
        raise error_incompatible("conversion", self.kind, Int.kind)

    def to_double(self) -> "Double":
        raise error_incompatible("conversion", self.kind, Double.kind)

    def to_bool(self) -> "Bool":
        return Bool(self.is_true())

    def to_text(self) -> "Text":
        raise error_incompatible("conversion", self.kind, Text.kind)

    def to_moment(self) -> "Moment":
        raise error_incompatible("conversion", self.kind, Moment.kind)

    def unwrap(self) -> Any:
        """Native Python projection of the value."""
        raise NotImplementedError

    def _refuse(self, operation: str, other: "Value"):
        if type(other) is type(self):
            return error_unsupported(operation, self.kind)
        return error_incompatible(operation, self.kind, other.kind)


# =============================================================================
# Bool
# =============================================================================

@dataclass(frozen=True)
class Bool(Value):
    value: bool
    kind: ClassVar[str] = "boolean"

    def compare(self, other: Value) -> int:
        if not isinstance(other, Bool):
            raise error_incompatible("compare", self.kind, other.kind)
        return _cmp(int(self.value), int(other.value))

    def is_true(self) -> bool:
        return self.value

    def to_text(self) -> "Text":
        return Text("true" if self.value else "false")

    def unwrap(self) -> bool:
        return self.value


# =============================================================================
# Numbers
# =============================================================================

def _numbers(left: Value, right: Value, operation: str) -> Tuple[Union[int, float], Union[int, float], bool]:
    """Operands as Python numbers plus whether the result must be a Double."""
    if not isinstance(right, (Int, Double)):
        raise error_incompatible(operation, left.kind, right.kind)
    is_double = isinstance(left, Double) or isinstance(right, Double)
    if is_double:
        return float(left.value), float(right.value), True
    return left.value, right.value, False


def _number(value: Union[int, float], is_double: bool) -> Value:
    return Double(float(value)) if is_double else Int(value)


class _Number(Value):
    """Arithmetic shared by Int and Double."""

    def add(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "+")
        return _number(a + b, is_double)

    def sub(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "-")
        return _number(a - b, is_double)

    def mul(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "*")
        return _number(a * b, is_double)

    def div(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "/")
        if b == 0:
            raise error_zero_division("division")
        if is_double:
            return Double(a / b)
        quotient = abs(a) // abs(b)
        return Int(quotient if (a >= 0) == (b >= 0) else -quotient)

    def mod(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "%")
        if b == 0:
            raise error_zero_division("modulo")
        if is_double:
            return Double(math.fmod(a, b))
        quotient = abs(a) // abs(b)
        quotient = quotient if (a >= 0) == (b >= 0) else -quotient
        return Int(a - b * quotient)

    def pow(self, other: Value) -> Value:
        a, b, is_double = _numbers(self, other, "**")
        try:
            result = math.pow(a, b)
        except ValueError:
            result = math.nan
        except OverflowError:
            result = math.inf
        if is_double:
            return Double(result)
        if not math.isfinite(result) or abs(result) >= float(1 << 63):
            raise error_overflow("**")
        return Int(int(result))

    def compare(self, other: Value) -> int:
        a, b, is_double = _numbers(self, other, "compare")
        if is_double and abs(a - b) < EPSILON:
            return 0
        return _cmp(a, b)

    def to_int(self) -> "Int":
        if isinstance(self.value, float) and not math.isfinite(self.value):
            raise error_overflow("conversion")
        return Int(int(self.value))

    def to_double(self) -> "Double":
        return Double(float(self.value))

    def is_true(self) -> bool:
        return self.value != 0

    def unwrap(self) -> Union[int, float]:
        return self.value


@dataclass(frozen=True)
class Int(_Number):
    value: int
    kind: ClassVar[str] = "integer"

    def __post_init__(self):
        object.__setattr__(self, "value", _wrap64(int(self.value)))

    def neg(self) -> "Int":
        return Int(-self.value)

    def _shift_count(self, other: Value, operation: str) -> int:
        if isinstance(other, Double):
            raise error_unsupported(operation, other.kind)
        if not isinstance(other, Int):
            raise error_incompatible(operation, self.kind, other.kind)
        if other.value < 0:
            raise error_invalid_argument(operation, "negative shift count")
        return other.value

    def _bits(self, other: Value, operation: str) -> int:
        if isinstance(other, Double):
            raise error_unsupported(operation, other.kind)
        if not isinstance(other, Int):
            raise error_incompatible(operation, self.kind, other.kind)
        return other.value

    def lshift(self, other: Value) -> "Int":
        count = self._shift_count(other, "<<")
        return Int(self.value << min(count, 64))

    def rshift(self, other: Value) -> "Int":
        count = self._shift_count(other, ">>")
        return Int(self.value >> min(count, 64))

    def band(self, other: Value) -> "Int":
        return Int(self.value & self._bits(other, "&"))

    def bor(self, other: Value) -> "Int":
        return Int(self.value | self._bits(other, "|"))

    def bxor(self, other: Value) -> "Int":
        return Int(self.value ^ self._bits(other, "^"))

    def bnot(self) -> "Int":
        return Int(~self.value)

    def to_text(self) -> "Text":
        return Text(str(self.value))


@dataclass(frozen=True)
class Double(_Number):
    value: float
    kind: ClassVar[str] = "double"

    def neg(self) -> "Double":
        return Double(-self.value)

    def lshift(self, other: Value) -> Value:
        raise error_unsupported("<<", self.kind)

    def rshift(self, other: Value) -> Value:
        raise error_unsupported(">>", self.kind)

    def band(self, other: Value) -> Value:
        raise error_unsupported("&", self.kind)

    def bor(self, other: Value) -> Value:
        raise error_unsupported("|", self.kind)

    def bxor(self, other: Value) -> Value:
        raise error_unsupported("^", self.kind)

    def to_text(self) -> "Text":
        return Text(format_double(self.value))


def format_double(value: float) -> str:
    """Shortest plain decimal form of a float (no exponent, no trailing zeros)."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


# =============================================================================
# Text
# =============================================================================

@dataclass(frozen=True)
class Text(Value):
    value: str
    kind: ClassVar[str] = "text"

    def compare(self, other: Value) -> int:
        if not isinstance(other, Text):
            raise error_incompatible("compare", self.kind, other.kind)
        return _cmp(self.value, other.value)

    def is_true(self) -> bool:
        return self.value != ""

    def to_text(self) -> "Text":
        return self

    def unwrap(self) -> str:
        return self.value


# =============================================================================
# Moment
# =============================================================================

_DATETIME_PARTS = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})[T ]"
    r"(?P<hms>\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)
_TIME_PARTS = re.compile(r"(?P<hms>\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?$")

_EPOCH_DAY = date(1, 1, 1)


def _clock(hms: str, frac: str) -> time:
    hour, minute, second = (int(part) for part in hms.split(":"))
    micro = int((frac or "0")[:6].ljust(6, "0"))
    return time(hour, minute, second, micro)


def _offset(tz: str) -> timezone:
    if not tz or tz == "Z":
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    hours, minutes = int(tz[1:3]), int(tz[4:6])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_moment(text: str) -> "Moment":
    """Build a Moment from a date, time or datetime literal.

    Fractional seconds beyond microseconds are truncated; datetimes without
    an offset are taken as UTC.
    """
    try:
        match = _DATETIME_PARTS.match(text)
        if match is not None:
            clock = _clock(match.group("hms"), match.group("frac"))
            day = date.fromisoformat(match.group("date"))
            return Moment(datetime.combine(day, clock, _offset(match.group("tz"))))
        match = _TIME_PARTS.match(text)
        if match is not None:
            return Moment(_clock(match.group("hms"), match.group("frac")))
        return Moment(date.fromisoformat(text))
    except ValueError as exc:
        raise error_invalid_argument("moment", f"{text}: {exc}") from exc


@dataclass(frozen=True)
class Moment(Value):
    value: Union[date, time, datetime]
    kind: ClassVar[str] = "moment"

    @property
    def instant(self) -> datetime:
        """The value as an aware datetime, for ordering."""
        value = self.value
        if isinstance(value, datetime):
            return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
        if isinstance(value, date):
            return datetime.combine(value, time(), timezone.utc)
        return datetime.combine(_EPOCH_DAY, value, value.tzinfo or timezone.utc)

    def compare(self, other: Value) -> int:
        if not isinstance(other, Moment):
            raise error_incompatible("compare", self.kind, other.kind)
        return _cmp(self.instant, other.instant)

    def to_text(self) -> "Text":
        return Text(self.value.isoformat())

    def to_moment(self) -> "Moment":
        return self

    def unwrap(self) -> Union[date, time, datetime]:
        return self.value


# =============================================================================
# Slice
# =============================================================================

@dataclass(frozen=True)
class Slice(Value):
    values: Tuple[Value, ...] = ()
    kind: ClassVar[str] = "array"

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def index(self, position: Value) -> Value:
        """Element at ``position``; negative positions count from the end."""
        if not isinstance(position, Int):
            raise error_incompatible("index", self.kind, position.kind)
        size = len(self.values)
        i = position.value
        if i < 0:
            i += size
        if i < 0 or i >= size:
            raise error_index_out_of_range(position.value, size)
        return self.values[i]

    def compare(self, other: Value) -> int:
        if not isinstance(other, Slice):
            raise error_incompatible("compare", self.kind, other.kind)
        for left, right in zip(self.values, other.values):
            result = left.compare(right)
            if result != 0:
                return result
        return _cmp(len(self.values), len(other.values))

    def is_true(self) -> bool:
        return len(self.values) > 0

    def unwrap(self) -> list:
        return [v.unwrap() for v in self.values]


# =============================================================================
# Conversions
# =============================================================================

def wrap(data: Any) -> Value:
    """Wrap a native Python value."""
    if isinstance(data, Value):
        return data
    if isinstance(data, bool):
        return Bool(data)
    if isinstance(data, int):
        return Int(data)
    if isinstance(data, float):
        return Double(data)
    if isinstance(data, str):
        return Text(data)
    if isinstance(data, (date, time)):
        return Moment(data)
    if isinstance(data, (list, tuple)):
        return Slice(tuple(wrap(item) for item in data))
    raise error_invalid_argument("wrap", f"unsupported host value {type(data).__name__}")
