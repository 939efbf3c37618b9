"""
Built-in function registry for the fig evaluator.

Each builtin declares its parameters (name, optional default, variadic).
A call binds its arguments into a short-lived call frame pushed on the
environment; implementations read their parameters back by name with
``env.resolve``.

Variadic functions (``min``, ``max``, ``all``, ``any``, ``avg``, ``read``)
receive their extra arguments as an array named ``args`` (``file`` for
``read``). When a variadic function is given a single array argument, the
array itself is used as the argument list.
"""

import base64
import binascii
import math
import os
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .values import Value, Int, Double, Bool, Text, Slice
from .environment import Environment
from ..errors import (
    error_invalid_argument,
    error_missing_argument,
    error_undefined_function,
)


Implementation = Callable[[Environment], Value]


@dataclass
class Parameter:
    """A builtin parameter; ``default`` of None marks it as required."""
    name: str
    default: Optional[Value] = None
    variadic: bool = False


@dataclass
class BuiltinFunction:
    """
    A built-in function with its implementation and parameter list.
    """
    name: str
    params: List[Parameter]
    implementation: Implementation
    aliases: List[str] = field(default_factory=list)
    doc: str = ""

    @property
    def is_variadic(self) -> bool:
        return bool(self.params) and self.params[-1].variadic

    def bind(self, args: List[Value], named: Dict[str, Value]) -> Dict[str, Value]:
        """
        Match call arguments to parameters.

        Positional arguments fill parameters in order; any surplus goes to a
        trailing variadic parameter. Keyword arguments must name a parameter
        not already filled positionally. Unfilled parameters take their
        default, or raise ``MissingArgument``.
        """
        fixed = self.params[:-1] if self.is_variadic else self.params
        bound: Dict[str, Value] = {}

        for param, value in zip(fixed, args):
            bound[param.name] = value
        surplus = list(args[len(fixed):])
        if surplus and not self.is_variadic:
            raise error_invalid_argument(
                self.name, f"expected at most {len(fixed)} argument(s), got {len(args)}")

        for name, value in named.items():
            param = self._param(name)
            if param is None:
                raise error_invalid_argument(self.name, f"unknown keyword argument '{name}'")
            if name in bound or (param.variadic and surplus):
                raise error_invalid_argument(
                    self.name, f"argument '{name}' given by position and by keyword")
            bound[name] = value

        if self.is_variadic:
            variadic = self.params[-1]
            if variadic.name not in bound:
                if len(surplus) == 1 and isinstance(surplus[0], Slice):
                    bound[variadic.name] = surplus[0]
                else:
                    bound[variadic.name] = Slice(tuple(surplus))

        for param in fixed:
            if param.name in bound:
                continue
            if param.default is None:
                raise error_missing_argument(self.name, param.name)
            bound[param.name] = param.default
        return bound

    def _param(self, name: str) -> Optional[Parameter]:
        for param in self.params:
            if param.name == name:
                return param
        return None

    def call(self, env: Environment, args: List[Value], named: Dict[str, Value]) -> Value:
        """Bind the arguments into a call frame and run the implementation."""
        bindings = self.bind(args, named)
        with env.scope(bindings, name=f"call:{self.name}"):
            return self.implementation(env)


# =============================================================================
# Argument helpers
# =============================================================================

def _text(env: Environment, name: str) -> str:
    return env.resolve(name).to_text().value


def _int(env: Environment, name: str) -> int:
    return env.resolve(name).to_int().value


def _double(env: Environment, name: str) -> float:
    return env.resolve(name).to_double().value


def _array(env: Environment, name: str, function: str) -> Slice:
    value = env.resolve(name)
    if not isinstance(value, Slice):
        raise error_invalid_argument(function, f"{name}: expected array, got {value.kind}")
    return value


def _params(*names: str, **defaults: Value) -> List[Parameter]:
    """Required parameters by name followed by defaulted ones."""
    params = [Parameter(name) for name in names]
    params.extend(Parameter(name, default) for name, default in defaults.items())
    return params


_VARIADIC = [Parameter("args", variadic=True)]


class BuiltinRegistry:
    """
    Registry of all built-in functions.

    Functions are registered by name (and by alias) and looked up by the
    evaluator when it meets a call expression.
    """

    def __init__(self):
        self._functions: Dict[str, BuiltinFunction] = {}
        self._rng = random.Random()
        self._register_all()

    def get_function(self, name: str) -> Optional[BuiltinFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)

    def register(self, func: BuiltinFunction) -> None:
        """Register a function under its name and aliases."""
        self._functions[func.name] = func
        for alias in func.aliases:
            self._functions[alias] = func

    def seed(self, value: int) -> None:
        """Seed the generator behind ``randn``."""
        self._rng.seed(value)

    def _register_all(self) -> None:
        """Register all built-in functions."""
        self._register_inspection_functions()
        self._register_math_functions()
        self._register_aggregate_functions()
        self._register_string_functions()
        self._register_path_functions()
        self._register_encoding_functions()

    # --- Inspection ---

    def _register_inspection_functions(self) -> None:

        def _typeof(env: Environment) -> Value:
            return Text(env.resolve("obj").kind)

        def _len(env: Environment) -> Value:
            obj = env.resolve("obj")
            if isinstance(obj, Text):
                return Int(len(obj.value))
            if isinstance(obj, Slice):
                return Int(len(obj))
            return Int(-1)

        def _first(env: Environment) -> Value:
            arr = _array(env, "arr", "first")
            if not len(arr):
                raise error_invalid_argument("first", "empty array")
            return arr.values[0]

        def _last(env: Environment) -> Value:
            arr = _array(env, "arr", "last")
            if not len(arr):
                raise error_invalid_argument("last", "empty array")
            return arr.values[-1]

        self.register(BuiltinFunction("typeof", _params("obj"), _typeof,
                                      doc="Kind name of a value"))
        self.register(BuiltinFunction("len", _params("obj"), _len,
                                      doc="Length of a text or array, -1 otherwise"))
        self.register(BuiltinFunction("first", _params("arr"), _first))
        self.register(BuiltinFunction("last", _params("arr"), _last))

    # --- Math ---

    def _register_math_functions(self) -> None:

        def _seq(env: Environment) -> Value:
            first, last, step = _int(env, "first"), _int(env, "last"), _int(env, "step")
            if step == 0:
                raise error_invalid_argument("seq", "step must not be zero")
            step = abs(step)
            if last < first:
                return Slice(tuple(Int(i) for i in range(first, last, -step)))
            return Slice(tuple(Int(i) for i in range(first, last, step)))

        def _randn(env: Environment) -> Value:
            num = _int(env, "num")
            if num <= 0:
                raise error_invalid_argument("randn", "num must be positive")
            return Int(self._rng.randrange(num))

        def _abs(env: Environment) -> Value:
            return Double(math.fabs(_double(env, "num")))

        def _sqrt(env: Environment) -> Value:
            num = _double(env, "num")
            if num < 0:
                raise error_invalid_argument("sqrt", "negative operand")
            return Double(math.sqrt(num))

        self.register(BuiltinFunction("seq", _params("first", "last", step=Int(1)), _seq,
                                      doc="Integers from first up to (excluding) last"))
        self.register(BuiltinFunction("randn", _params("num"), _randn,
                                      doc="Random integer in [0, num)"))
        self.register(BuiltinFunction("abs", _params("num"), _abs))
        self.register(BuiltinFunction("sqrt", _params("num"), _sqrt))

    # --- Aggregates ---

    def _register_aggregate_functions(self) -> None:

        def _extreme(name: str, sign: int) -> Implementation:
            def run(env: Environment) -> Value:
                values = _array(env, "args", name).values
                if not values:
                    raise error_invalid_argument(name, "no arguments")
                result = values[0]
                for value in values[1:]:
                    if value.compare(result) * sign > 0:
                        result = value
                return result
            return run

        def _all(env: Environment) -> Value:
            return Bool(all(v.is_true() for v in _array(env, "args", "all")))

        def _any(env: Environment) -> Value:
            return Bool(any(v.is_true() for v in _array(env, "args", "any")))

        def _avg(env: Environment) -> Value:
            values = _array(env, "args", "avg").values
            if not values:
                raise error_invalid_argument("avg", "no arguments")
            total = sum(v.to_double().value for v in values)
            return Double(total / len(values))

        self.register(BuiltinFunction("min", _VARIADIC, _extreme("min", -1)))
        self.register(BuiltinFunction("max", _VARIADIC, _extreme("max", 1)))
        self.register(BuiltinFunction("all", _VARIADIC, _all))
        self.register(BuiltinFunction("any", _VARIADIC, _any))
        self.register(BuiltinFunction("avg", _VARIADIC, _avg))

    # --- Strings ---

    def _register_string_functions(self) -> None:

        def _upper(env: Environment) -> Value:
            return Text(_text(env, "str").upper())

        def _lower(env: Environment) -> Value:
            return Text(_text(env, "str").lower())

        def _split(env: Environment) -> Value:
            sep = _text(env, "sep")
            if sep == "":
                raise error_invalid_argument("split", "empty separator")
            return Slice(tuple(Text(part) for part in _text(env, "str").split(sep)))

        def _join(env: Environment) -> Value:
            arr = _array(env, "arr", "join")
            return Text(_text(env, "sep").join(v.to_text().value for v in arr))

        def _contains(env: Environment) -> Value:
            return Bool(_text(env, "substr") in _text(env, "str"))

        def _substr(env: Environment) -> Value:
            value = _text(env, "str")
            pos, size = _int(env, "pos"), _int(env, "len")
            if pos < 0 or pos > len(value):
                raise error_invalid_argument("substr", f"position {pos} out of range")
            if size < 0:
                raise error_invalid_argument("substr", "negative length")
            if size == 0:
                return Text(value[pos:])
            return Text(value[pos:pos + size])

        def _trim(env: Environment) -> Value:
            char = _text(env, "char")
            value = _text(env, "str")
            return Text(value.strip(char) if char else value.strip())

        def _replace(env: Environment) -> Value:
            count = _int(env, "count")
            value, src, dst = _text(env, "str"), _text(env, "src"), _text(env, "dst")
            return Text(value.replace(src, dst, count if count > 0 else -1))

        self.register(BuiltinFunction("upper", _params("str"), _upper))
        self.register(BuiltinFunction("lower", _params("str"), _lower))
        self.register(BuiltinFunction("split", _params("str", sep=Text(" ")), _split))
        self.register(BuiltinFunction("join", _params("arr", sep=Text(" ")), _join))
        self.register(BuiltinFunction("contains", _params("str", "substr"), _contains))
        self.register(BuiltinFunction("substr", _params("str", pos=Int(0), len=Int(0)), _substr,
                                      doc="Substring from pos; len 0 takes the rest"))
        self.register(BuiltinFunction("trim", _params("str", char=Text("")), _trim))
        self.register(BuiltinFunction("replace", _params("str", "src", "dst", count=Int(0)),
                                      _replace, doc="Replace count occurrences; 0 replaces all"))

    # --- Paths and files ---

    def _register_path_functions(self) -> None:

        def _dirname(env: Environment) -> Value:
            path = _text(env, "path")
            return Text(os.path.dirname(path.rstrip("/")) or ".")

        def _basename(env: Environment) -> Value:
            path = _text(env, "path")
            return Text(os.path.basename(path.rstrip("/")) or path[:1] or ".")

        def _isfile(env: Environment) -> Value:
            return Bool(os.path.isfile(_text(env, "path")))

        def _isdir(env: Environment) -> Value:
            return Bool(os.path.isdir(_text(env, "path")))

        def _read(env: Environment) -> Value:
            parts = []
            for file in _array(env, "file", "read"):
                path = file.to_text().value
                try:
                    with open(path, encoding="utf-8") as f:
                        parts.append(f.read())
                except OSError as exc:
                    raise error_invalid_argument("read", f"{path}: {exc.strerror}") from exc
            return Text("".join(parts))

        self.register(BuiltinFunction("dirname", _params("path"), _dirname, aliases=["dir"]))
        self.register(BuiltinFunction("basename", _params("path"), _basename, aliases=["base"]))
        self.register(BuiltinFunction("isfile", _params("path"), _isfile))
        self.register(BuiltinFunction("isdir", _params("path"), _isdir))
        self.register(BuiltinFunction("read", [Parameter("file", variadic=True)], _read,
                                      doc="Concatenated content of the given files"))

    # --- Encodings ---

    def _register_encoding_functions(self) -> None:

        def _b64encode(env: Environment) -> Value:
            data = _text(env, "str").encode("utf-8")
            if env.resolve("url").is_true():
                return Text(base64.urlsafe_b64encode(data).decode("ascii"))
            return Text(base64.b64encode(data).decode("ascii"))

        def _b64decode(env: Environment) -> Value:
            data = _text(env, "str")
            try:
                if env.resolve("url").is_true():
                    raw = base64.urlsafe_b64decode(data)
                else:
                    raw = base64.b64decode(data, validate=True)
                return Text(raw.decode("utf-8"))
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise error_invalid_argument("b64decode", str(exc)) from exc

        self.register(BuiltinFunction("b64encode", _params("str", url=Bool(False)), _b64encode))
        self.register(BuiltinFunction("b64decode", _params("str", url=Bool(False)), _b64decode))


# Global registry instance
_registry: Optional[BuiltinRegistry] = None


def get_builtin_registry() -> BuiltinRegistry:
    """Get the global built-in function registry."""
    global _registry
    if _registry is None:
        _registry = BuiltinRegistry()
    return _registry


def call_builtin(name: str, env: Environment, args: List[Value],
                 named: Optional[Dict[str, Value]] = None) -> Value:
    """
    Call a built-in function by name.

    Raises UndefinedFunction if the function is not registered.
    """
    func = get_builtin_registry().get_function(name)
    if func is None:
        raise error_undefined_function(name)
    return func.call(env, args, named or {})
