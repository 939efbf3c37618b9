"""
Lexical environments for evaluating fig expressions.

An Environment is an owned stack of frames. The bottom frame holds the values
the host defines on a document; the query layer pushes one *object frame* per
object level on the path to an option; builtin calls push a short-lived call
frame for their arguments.

Object frames are populated with the level's option bindings as unevaluated
``Option`` nodes. A binding is evaluated the first time it is looked up,
against the chain from its own frame outward, and the result replaces it.
While a binding is being evaluated it is hidden, so an option that refers to
itself fails with ``UndefinedVariable`` instead of recursing.
"""

from dataclasses import dataclass, field
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .values import Value, wrap
from ..ast import Node
from ..errors import error_undefined_variable, FigError


Binding = Union[Value, Node]


@dataclass
class Frame:
    """One scope level of identifier bindings."""
    bindings: Dict[str, Binding] = field(default_factory=dict)
    local: bool = False     # object frame, visible to $-lookups
    name: str = "frame"     # for debugging

    def copy(self) -> "Frame":
        return Frame(dict(self.bindings), self.local, self.name)


class Environment:
    """
    A stack of frames searched innermost to outermost.

    Usage:
        env = Environment({"port": 8080})
        with env.scope({"x": Int(1)}):
            env.resolve("x")
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None,
                 evaluate: Optional[Callable[[Node, "Environment"], Value]] = None):
        self.frames: List[Frame] = [Frame(name="base")]
        self._evaluate = evaluate
        for name, value in (values or {}).items():
            self.define(name, value)

    # =========================================================================
    # Frames
    # =========================================================================

    def push(self, bindings: Optional[Dict[str, Binding]] = None,
             local: bool = False, name: str = "frame") -> Frame:
        """Push a new innermost frame."""
        frame = Frame(dict(bindings or {}), local, name)
        self.frames.append(frame)
        return frame

    def pop(self) -> Frame:
        """Pop the innermost frame; the base frame is never popped."""
        if len(self.frames) == 1:
            raise IndexError("cannot pop the base frame")
        return self.frames.pop()

    @contextmanager
    def scope(self, bindings: Optional[Dict[str, Binding]] = None,
              local: bool = False, name: str = "block") -> Iterator[Frame]:
        """
        Context manager pushing a frame for the duration of a block.

        Usage:
            with env.scope({"str": Text("x")}, name="call:upper"):
                ...
        """
        frame = self.push(bindings, local, name)
        try:
            yield frame
        finally:
            self.pop()

    def copy(self) -> "Environment":
        """An independent environment with copies of every frame."""
        dup = Environment(evaluate=self._evaluate)
        dup.frames = [frame.copy() for frame in self.frames]
        return dup

    @property
    def depth(self) -> int:
        return len(self.frames)

    # =========================================================================
    # Bindings
    # =========================================================================

    def define(self, name: str, value: Any) -> None:
        """Bind ``name`` in the innermost frame."""
        if not isinstance(value, (Value, Node)):
            value = wrap(value)
        self.frames[-1].bindings[name] = value

    def delete(self, name: str) -> None:
        """Remove ``name`` from the innermost frame, if present."""
        self.frames[-1].bindings.pop(name, None)

    def is_defined(self, name: str) -> bool:
        return any(name in frame.bindings for frame in self.frames)

    def resolve(self, name: str) -> Value:
        """Look ``name`` up through every frame, innermost first."""
        return self._lookup(name, local_only=False)

    def resolve_local(self, name: str) -> Value:
        """Look ``name`` up through object frames only, innermost first."""
        return self._lookup(name, local_only=True)

    def _lookup(self, name: str, local_only: bool) -> Value:
        for index in range(len(self.frames) - 1, -1, -1):
            frame = self.frames[index]
            if local_only and not frame.local:
                continue
            if name in frame.bindings:
                return self._force(index, name)
        raise error_undefined_variable(name)

    def _force(self, index: int, name: str) -> Value:
        """Evaluate a pending option binding in place."""
        frame = self.frames[index]
        binding = frame.bindings[name]
        if isinstance(binding, Value):
            return binding
        if self._evaluate is None:
            raise error_undefined_variable(name)

        # the binding is hidden while it is evaluated to block self reference
        del frame.bindings[name]
        outer = Environment(evaluate=self._evaluate)
        outer.frames = self.frames[:index + 1]
        try:
            value = self._evaluate(binding, outer)
        except FigError:
            frame.bindings[name] = binding
            raise
        frame.bindings[name] = value
        return value
