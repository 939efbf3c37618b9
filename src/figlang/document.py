"""
Query layer over an expanded fig tree.

A Document pairs the expanded root object with a base environment holding
host definitions and values registered during expansion. Accessors take a
path of names: every segment but the last names an object, the last names an
option. When a segment names repeated objects the query fans out over all of
them and the results are combined into an array.

Each query rebuilds the lexical context of its target: a private copy of the
base environment plus one object frame per level from the root to the
target's object, holding that level's options. The target option is left out
of its own frame, so an option referring to itself is undefined rather than
recursive. Frames are private to the query, so repeated queries give the same
results.
"""

from __future__ import annotations

import logging
import os
from datetime import date, time
from typing import Any, Callable, List, Optional, Tuple, Union

from .ast import Expr, Array, Node, Option, Object, List as ListNode
from .parser import parse
from .loader import Loader
from .macros import Expander
from .runtime.values import Value, Int, Double, Bool, Text, Moment, Slice, wrap
from .runtime.environment import Environment, Frame
from .runtime.evaluator import evaluate_node, make_environment
from .errors import (
    FigError,
    error_empty_path,
    error_object_not_found,
    error_option_not_found,
    error_not_an_object,
    error_not_an_option,
    error_type_mismatch,
    error_include,
    error_incompatible,
)


logger = logging.getLogger(__name__)

Match = Tuple[Node, List[Object]]


def _objects(node: Node) -> List[Node]:
    return list(node.items) if isinstance(node, ListNode) else [node]


def _is_option(node: Node) -> bool:
    return isinstance(node, Option) or (
        isinstance(node, ListNode) and all(isinstance(item, Option) for item in node.items))


class Document:
    """
    An expanded configuration tree ready to be queried.

    Usage:
        doc = load(source)
        port = doc.int("server", "port")
        hosts = doc.text_array("server", "hosts")
    """

    def __init__(self, root: Object, env: Optional[Environment] = None,
                 parents: Optional[List[Object]] = None):
        self.root = root
        self.env = env if env is not None else make_environment()
        self._parents = list(parents or [])

    # =========================================================================
    # Host definitions
    # =========================================================================

    def define(self, name: str, value: Any) -> None:
        """Define ``name`` in the base environment (native values are wrapped)."""
        self.env.frames[0].bindings[name] = wrap(value)

    def define_int(self, name: str, value: int) -> None:
        self.define(name, Int(value))

    def define_float(self, name: str, value: float) -> None:
        self.define(name, Double(value))

    def define_bool(self, name: str, value: bool) -> None:
        self.define(name, Bool(value))

    def define_text(self, name: str, value: str) -> None:
        self.define(name, Text(value))

    def define_time(self, name: str, value: Union[date, time]) -> None:
        self.define(name, Moment(value))

    # =========================================================================
    # Lookup
    # =========================================================================

    def _find(self, path: Tuple[str, ...]) -> List[Match]:
        """Option nodes at ``path`` along with the object levels leading to them."""
        if not path:
            raise error_empty_path()
        current: List[Match] = [(self.root, [self.root])]
        for depth, segment in enumerate(path[:-1]):
            label = ".".join(path[:depth + 1])
            found: List[Match] = []
            for obj, levels in current:
                node = obj.get(segment)
                if node is None:
                    raise error_object_not_found(label)
                for item in _objects(node):
                    if not isinstance(item, Object):
                        raise error_not_an_object(label)
                    found.append((item, levels + [item]))
            current = found

        label = ".".join(path)
        matches: List[Match] = []
        for obj, levels in current:
            node = obj.get(path[-1])
            if node is None:
                raise error_option_not_found(label)
            if not _is_option(node):
                raise error_not_an_option(label)
            matches.append((node, levels))
        return matches

    def _environment(self, levels: List[Object], exclude: str) -> Environment:
        """Private query environment for an option of ``levels[-1]``."""
        env = Environment(evaluate=evaluate_node)
        env.frames = [frame.copy() for frame in self.env.frames]
        for level in self._parents + levels:
            env.frames.append(Frame(dict(level.options()), local=True, name=level.name or "root"))
        env.frames[-1].bindings.pop(exclude, None)
        return env

    def _evaluate(self, path: Tuple[str, ...]) -> Value:
        values = []
        for node, levels in self._find(path):
            env = self._environment(levels, path[-1])
            values.append(evaluate_node(node, env))
        if len(values) == 1:
            return values[0]
        return Slice(tuple(values))

    def _typed(self, path: Tuple[str, ...], expected: str,
               convert: Callable[[Value], Value]) -> Any:
        value = self._evaluate(path)
        return self._convert(path, value, expected, convert)

    @staticmethod
    def _convert(path, value: Value, expected: str, convert: Callable[[Value], Value]) -> Any:
        try:
            return convert(value).unwrap()
        except FigError as exc:
            raise error_type_mismatch(".".join(path), expected, value.kind) from exc

    def _typed_array(self, path: Tuple[str, ...], expected: str,
                     convert: Callable[[Value], Value]) -> list:
        value = self._evaluate(path)
        values = value.values if isinstance(value, Slice) else (value,)
        return [self._convert(path, v, expected, convert) for v in values]

    # =========================================================================
    # Accessors
    # =========================================================================

    def int(self, *path: str) -> int:
        return self._typed(path, Int.kind, _to_int)

    def float(self, *path: str) -> float:
        return self._typed(path, Double.kind, _to_double)

    def bool(self, *path: str) -> bool:
        return self._typed(path, Bool.kind, _to_bool)

    def text(self, *path: str) -> str:
        return self._typed(path, Text.kind, _to_text)

    def time(self, *path: str) -> Union[date, time]:
        return self._typed(path, Moment.kind, _to_moment)

    def value(self, *path: str) -> Any:
        """Native Python projection of the option at ``path``."""
        return self._evaluate(path).unwrap()

    def evaluate(self, *path: str) -> Value:
        """The runtime value of the option at ``path``."""
        return self._evaluate(path)

    def expr(self, *path: str) -> Expr:
        """The unevaluated expression of the option at ``path``."""
        exprs: List[Expr] = []
        for node, _ in self._find(path):
            exprs.extend(item.value for item in _objects(node))
        if len(exprs) == 1:
            return exprs[0]
        return Array(exprs[0].span, exprs)

    def int_array(self, *path: str) -> List[int]:
        return self._typed_array(path, Int.kind, _to_int)

    def float_array(self, *path: str) -> List[float]:
        return self._typed_array(path, Double.kind, _to_double)

    def bool_array(self, *path: str) -> List[bool]:
        return self._typed_array(path, Bool.kind, _to_bool)

    def text_array(self, *path: str) -> List[str]:
        return self._typed_array(path, Text.kind, _to_text)

    def time_array(self, *path: str) -> list:
        return self._typed_array(path, Moment.kind, _to_moment)

    def slice(self, *path: str) -> list:
        """Native values of the option at ``path`` as a list."""
        value = self._evaluate(path)
        if isinstance(value, Slice):
            return value.unwrap()
        return [value.unwrap()]

    # =========================================================================
    # Navigation
    # =========================================================================

    def _object(self, path: Tuple[str, ...]) -> Tuple[Object, List[Object]]:
        obj, levels = self.root, []
        for depth, segment in enumerate(path):
            label = ".".join(path[:depth + 1])
            node = obj.get(segment)
            if node is None:
                raise error_object_not_found(label)
            if isinstance(node, ListNode) and node.items and isinstance(node.items[-1], Object):
                node = node.items[-1]
            if not isinstance(node, Object):
                raise error_not_an_object(label)
            levels.append(obj)
            obj = node
        return obj, levels

    def document(self, *path: str) -> "Document":
        """
        A Document scoped to the object at ``path``.

        The sub-document shares the base environment and keeps the options of
        the enclosing objects in scope. For repeated objects the last one is
        used.
        """
        obj, levels = self._object(path)
        return Document(obj, self.env, self._parents + levels)

    def documents(self, *path: str) -> List[Document]:
        """One Document per object at ``path``, following repeated objects."""
        if not path:
            return [self]
        parent, levels = self._object(path[:-1])
        label = ".".join(path)
        node = parent.get(path[-1])
        if node is None:
            raise error_object_not_found(label)
        scope = self._parents + levels + [parent]
        docs = []
        for item in _objects(node):
            if not isinstance(item, Object):
                raise error_not_an_object(label)
            docs.append(Document(item, self.env, scope))
        return docs

    def has(self, *path: str) -> bool:
        """Whether ``path`` names an option or object."""
        if not path:
            return True
        try:
            obj, _ = self._object(path[:-1])
        except FigError:
            return False
        return path[-1] in obj

    def keys(self, *path: str) -> List[str]:
        """Field names of the object at ``path``, in declaration order."""
        obj, _ = self._object(path)
        return list(obj.fields)

    # =========================================================================
    # Conversion
    # =========================================================================

    def decode(self, shape):
        """Decode the document with a shape descriptor (see ``figlang.decode``)."""
        from .decode import decode
        return decode(self, shape)

    def to_dict(self) -> dict:
        """Every option evaluated to native Python values."""
        from .dump import to_dict
        return to_dict(self)

    def dump(self) -> str:
        """The document serialized as YAML."""
        from .dump import to_yaml
        return to_yaml(self)

    def __repr__(self) -> str:
        return f"Document({self.root.name or 'root'!r}, fields={list(self.root.fields)!r})"


def _to_int(value: Value) -> Value:
    if not isinstance(value, (Int, Double)):
        raise error_incompatible("conversion", value.kind, Int.kind)
    return value.to_int()


def _to_double(value: Value) -> Value:
    if not isinstance(value, (Int, Double)):
        raise error_incompatible("conversion", value.kind, Double.kind)
    return value.to_double()


def _to_bool(value: Value) -> Value:
    if not isinstance(value, Bool):
        raise error_incompatible("conversion", value.kind, Bool.kind)
    return value


def _to_text(value: Value) -> Value:
    # scalars print as text; arrays do not
    return value.to_text()


def _to_moment(value: Value) -> Value:
    return value.to_moment()


# =============================================================================
# Loading
# =============================================================================

def load(source: Union[str, bytes], env: Optional[Environment] = None,
         loader: Optional[Loader] = None, base_dir: Optional[str] = None,
         filename: Optional[str] = None, max_depth: int = 16) -> Document:
    """
    Parse and expand a document.

    Args:
        source: Document text
        env: Base environment; it is copied, never modified
        loader: Loader used for includes
        base_dir: Directory relative includes resolve from
        filename: Name used in error locations
        max_depth: Maximum include nesting

    Returns:
        A fully expanded Document

    Raises:
        FigError: If scanning, parsing or expansion fails
    """
    root = parse(source, filename)
    base = env.copy() if env is not None else make_environment()
    expander = Expander(base, loader, base_dir, max_depth)
    if filename is not None and base_dir is not None:
        expander.including = (os.path.normpath(os.path.join(base_dir, filename)),)
    document = Document(expander.expand(root), base)
    logger.debug("Loaded document %s", filename or "<string>")
    return document


def load_file(path: str, env: Optional[Environment] = None,
              loader: Optional[Loader] = None, max_depth: int = 16) -> Document:
    """Load a document from a file; includes resolve relative to its directory."""
    path = os.path.abspath(path)
    try:
        with open(path, "rb") as f:
            source = f.read()
    except OSError as exc:
        raise error_include(path, exc.strerror or str(exc)) from exc
    return load(source, env=env, loader=loader, base_dir=os.path.dirname(path),
                filename=os.path.basename(path), max_depth=max_depth)
