"""
Macro expansion for fig documents.

The expander rewrites a parsed tree into a new tree in which every directive
has been applied. Within one object, declarations and directives are
replayed in source order, so a directive only sees what was declared (or
defined) before it. Nested objects and directive bodies are expanded before
they are used.

Insertion methods:
    merge    Overlay the incoming fields onto the current object; nested
             objects merge recursively, any other field is overwritten.
    append   Add the incoming object as a further sibling of the same name.
    replace  Replace the field of the same name with the incoming object.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from .ast import Option, Object, List as ListNode, Macro, Literal
from .tokens import Token, TokenType
from .parser import parse
from .loader import Loader
from .runtime.values import Value, Slice
from .runtime.environment import Environment
from .runtime.evaluator import evaluate, make_environment
from .errors import (
    FigError,
    LexerError,
    ParserError,
    IncludeResolutionError,
    error_macro_argument,
    error_include,
)


logger = logging.getLogger(__name__)

MERGE = "merge"
APPEND = "append"
REPLACE = "replace"

_METHODS = {
    "": MERGE,
    "default": MERGE,
    MERGE: MERGE,
    APPEND: APPEND,
    REPLACE: REPLACE,
}


@dataclass
class Directive:
    """Argument layout of a directive and the method applying it."""
    name: str
    params: Tuple[str, ...]
    required: int
    body: bool                      # whether a { body } is expected
    handler: Callable[..., None]
    variadic: bool = False          # surplus positional arguments allowed


def strategy(method: str, macro: Macro) -> str:
    """Normalize an insertion method name."""
    try:
        return _METHODS[method]
    except KeyError:
        raise error_macro_argument(macro.name, f"unknown method '{method}'", macro.span) from None


# =============================================================================
# Tree operations
# =============================================================================

def overlay(target: Object, incoming: Object) -> None:
    """Merge ``incoming`` into ``target``; the last write wins per leaf."""
    for name, node in incoming.fields.items():
        current = target.fields.get(name)
        if isinstance(current, Object) and isinstance(node, Object):
            overlay(current, node)
        else:
            target.fields[name] = copy.deepcopy(node)
    for name, partial in incoming.partials.items():
        target.partials[name] = partial.clone()


def insert(target: Object, incoming: Object, method: str, macro: Macro) -> None:
    """Insert ``incoming`` into ``target`` using an insertion method."""
    if method == MERGE:
        overlay(target, incoming)
    elif method == REPLACE:
        target.fields[incoming.name] = incoming
    else:
        current = target.fields.get(incoming.name)
        first = current.items[0] if isinstance(current, ListNode) else current
        if first is not None and not isinstance(first, Object):
            raise error_macro_argument(
                macro.name, f"cannot append object '{incoming.name}' next to an option",
                macro.span)
        target.declare(incoming)


def prune(obj: Object, depth: int) -> Object:
    """Drop nested objects more than ``depth`` levels below ``obj`` (0 keeps all)."""
    if depth <= 0:
        return obj
    for name in list(obj.fields):
        node = obj.fields[name]
        objects = [node] if isinstance(node, Object) else (
            [item for item in node.items if isinstance(item, Object)]
            if isinstance(node, ListNode) else [])
        if not objects:
            continue
        if depth == 1:
            del obj.fields[name]
            continue
        for nested in objects:
            prune(nested, depth - 1)
    return obj


def _events(obj: Object) -> List[Union[Option, Object, Macro]]:
    """Declarations and directives of an object in source order."""
    events: List[Union[Option, Object, Macro]] = []
    for node in obj.fields.values():
        if isinstance(node, ListNode):
            events.extend(node.items)
        else:
            events.append(node)
    events.extend(obj.directives)
    return sorted(events, key=lambda event: event.seq)


def _strip_extensions(name: str) -> str:
    while True:
        name, ext = os.path.splitext(name)
        if not ext:
            return name


def _basename(location: str) -> str:
    parsed = urlparse(location)
    path = parsed.path if parsed.scheme else location
    return os.path.basename(path.rstrip("/")) or location


# =============================================================================
# Expander
# =============================================================================

class Expander:
    """
    Applies macro directives to a parsed tree.

    Usage:
        expander = Expander(base_dir="/etc/app")
        root = expander.expand(parse(source))

    Directive arguments are evaluated against ``env`` (the base environment
    of the resulting document); ``.register`` defines new values in it.
    """

    def __init__(self, env: Optional[Environment] = None, loader: Optional[Loader] = None,
                 base_dir: Optional[str] = None, max_depth: int = 16):
        self.env = env if env is not None else make_environment()
        self.loader = loader if loader is not None else Loader()
        self.base_dir = base_dir
        self.max_depth = max_depth
        self.including: Tuple[str, ...] = ()
        self.directives: Dict[str, Directive] = {}
        self._register_directives()

    def _register_directives(self) -> None:
        for directive in (
            Directive("define", ("name", "method"), 1, True, self._define),
            Directive("apply", ("name", "fields", "depth", "method"), 1, False, self._apply),
            Directive("include", ("file", "name", "fatal", "method"), 1, False, self._include),
            Directive("repeat", ("count", "name"), 2, True, self._repeat),
            Directive("extend", ("name", "as"), 1, True, self._extend),
            Directive("readfile", ("file", "name"), 1, False, self._readfile),
            Directive("ifdef", ("ident",), 1, True, self._ifdef),
            Directive("ifndef", ("ident",), 1, True, self._ifndef),
            Directive("ifeq", ("value",), 1, True, self._ifeq, variadic=True),
            Directive("ifneq", ("value",), 1, True, self._ifneq, variadic=True),
            Directive("register", ("ident", "value"), 2, False, self._register),
        ):
            self.directives[directive.name] = directive

    def expand(self, root: Object) -> Object:
        """Return a fully expanded copy of ``root``."""
        return self._expand_object(root, [])

    # =========================================================================
    # Traversal
    # =========================================================================

    def _expand_object(self, source: Object, ancestors: List[Object]) -> Object:
        result = Object(source.span, source.name, comment=source.comment, seq=source.seq)
        chain = ancestors + [result]
        for event in _events(source):
            if isinstance(event, Macro):
                self._run(event, result, chain)
            elif isinstance(event, Object):
                result.declare(self._expand_object(event, chain))
            else:
                result.declare(copy.deepcopy(event))
        return result

    def _run(self, macro: Macro, target: Object, chain: List[Object]) -> None:
        directive = self.directives.get(macro.name)
        if directive is None:
            raise error_macro_argument(macro.name, "unknown directive", macro.span)
        if directive.body and macro.body is None:
            raise error_macro_argument(macro.name, "missing { body }", macro.span)
        if not directive.body and macro.body is not None:
            raise error_macro_argument(macro.name, "does not take a body", macro.span)

        args, rest = self._bind(directive, macro)
        body = self._expand_object(macro.body, chain) if macro.body is not None else None
        logger.debug("Applying .%s at %s", macro.name, macro.span)
        try:
            directive.handler(macro, target, chain, body, args, rest)
        except FigError as exc:
            raise exc.at(macro.span)

    def _bind(self, directive: Directive, macro: Macro) -> Tuple[Dict[str, Value], List[Value]]:
        """Evaluate and match directive arguments to parameters."""
        params = directive.params
        if len(macro.arguments) > len(params) and not directive.variadic:
            raise error_macro_argument(
                macro.name, f"expected at most {len(params)} argument(s), got {len(macro.arguments)}",
                macro.span)
        if directive.variadic and macro.named_arguments:
            raise error_macro_argument(macro.name, "keyword arguments are not accepted", macro.span)

        values = [self._value(expr) for expr in macro.arguments]
        bound = dict(zip(params, values))
        for name, expr in macro.named_arguments.items():
            if name not in params:
                raise error_macro_argument(macro.name, f"unknown argument '{name}'", macro.span)
            if name in bound:
                raise error_macro_argument(
                    macro.name, f"argument '{name}' given by position and by keyword", macro.span)
            bound[name] = self._value(expr)
        for name in params[:directive.required]:
            if name not in bound:
                raise error_macro_argument(macro.name, f"missing argument '{name}'", macro.span)
        return bound, values[len(params):]

    def _value(self, expr) -> Value:
        return evaluate(expr, self.env)

    @staticmethod
    def _text(args: Dict[str, Value], name: str, default: str = "") -> str:
        value = args.get(name)
        return default if value is None else value.to_text().value

    @staticmethod
    def _find_partial(name: str, chain: List[Object], macro: Macro) -> Object:
        for obj in reversed(chain):
            if name in obj.partials:
                return obj.partials[name]
        raise error_macro_argument(macro.name, f"'{name}' is not defined", macro.span)

    # =========================================================================
    # Fragments
    # =========================================================================

    def _define(self, macro, target, chain, body, args, rest) -> None:
        name = self._text(args, "name")
        method = strategy(self._text(args, "method"), macro)
        body.name = name
        existing = target.partials.get(name)
        if existing is None or method == REPLACE:
            target.partials[name] = body
        elif method == MERGE:
            overlay(existing, body)
        else:
            raise error_macro_argument(macro.name, "append is not supported for fragments", macro.span)

    def _apply(self, macro, target, chain, body, args, rest) -> None:
        name = self._text(args, "name")
        fragment = self._find_partial(name, chain, macro).clone()

        fields = args.get("fields")
        if fields is not None:
            wanted = [v.to_text().value for v in fields] if isinstance(fields, Slice) \
                else [fields.to_text().value]
            for field_name in wanted:
                if field_name not in fragment.fields:
                    raise error_macro_argument(
                        macro.name, f"'{field_name}' is not a field of '{name}'", macro.span)
            fragment.fields = {k: fragment.fields[k] for k in wanted}

        depth = args.get("depth")
        if depth is not None:
            prune(fragment, depth.to_int().value)
        insert(target, fragment, strategy(self._text(args, "method"), macro), macro)

    def _extend(self, macro, target, chain, body, args, rest) -> None:
        name = self._text(args, "name")
        alias = self._text(args, "as")
        fragment = self._find_partial(name, chain, macro)
        if alias:
            if alias in target.partials:
                raise error_macro_argument(macro.name, f"'{alias}' is already defined", macro.span)
            fragment = fragment.clone(alias)
        elif name not in target.partials:
            fragment = fragment.clone()
        overlay(fragment, body)
        target.partials[alias or name] = fragment

    def _repeat(self, macro, target, chain, body, args, rest) -> None:
        count = args["count"].to_int().value
        if count <= 1:
            raise error_macro_argument(macro.name, f"count must be greater than 1, got {count}",
                                       macro.span)
        body.name = self._text(args, "name")
        for _ in range(count):
            insert(target, body.clone(), APPEND, macro)

    # =========================================================================
    # Includes
    # =========================================================================

    def _include(self, macro, target, chain, body, args, rest) -> None:
        location = self._text(args, "file")
        fatal = args["fatal"].is_true() if "fatal" in args else False
        method = strategy(self._text(args, "method"), macro)

        try:
            resolved = self.loader.resolve(location, self.base_dir)
        except IncludeResolutionError as exc:
            if fatal:
                raise
            logger.debug("Skipping include %s: %s", location, exc.diagnostic.message)
            return
        # cycles and runaway nesting fail whether or not the include is fatal
        if resolved in self.including:
            raise error_include(location, "include cycle", macro.span)
        if len(self.including) >= self.max_depth:
            raise error_include(location, f"includes nested deeper than {self.max_depth}",
                                macro.span)

        try:
            text = self.loader.fetch(resolved)
            tree = parse(text, filename=resolved)
        except (IncludeResolutionError, LexerError, ParserError) as exc:
            if fatal:
                raise
            logger.debug("Skipping include %s: %s", location, exc.diagnostic.message)
            return

        nested = Expander(self.env, self.loader, self.loader.base_of(resolved), self.max_depth)
        nested.including = self.including + (resolved,)
        included = nested.expand(tree)
        included.name = self._text(args, "name") or _basename(location)
        insert(target, included, method, macro)

    def _readfile(self, macro, target, chain, body, args, rest) -> None:
        location = self._text(args, "file")
        name = self._text(args, "name") or _strip_extensions(_basename(location))
        content = self.loader.fetch(location, self.base_dir)
        token = Token(TokenType.STRING, content, "", macro.span)
        target.declare(Option(macro.span, name, Literal(macro.span, token), seq=macro.seq))

    # =========================================================================
    # Conditionals
    # =========================================================================

    def _is_defined(self, ident: str, target: Object) -> bool:
        return self.env.is_defined(ident) or ident in target

    def _ifdef(self, macro, target, chain, body, args, rest) -> None:
        if self._is_defined(self._text(args, "ident"), target):
            overlay(target, body)

    def _ifndef(self, macro, target, chain, body, args, rest) -> None:
        if not self._is_defined(self._text(args, "ident"), target):
            overlay(target, body)

    def _matches(self, macro, args, rest: Sequence[Value]) -> bool:
        if not rest:
            raise error_macro_argument(macro.name, "expected at least one candidate", macro.span)
        value = self._text(args, "value")
        return any(value == candidate.to_text().value for candidate in rest)

    def _ifeq(self, macro, target, chain, body, args, rest) -> None:
        if self._matches(macro, args, rest):
            overlay(target, body)

    def _ifneq(self, macro, target, chain, body, args, rest) -> None:
        if not self._matches(macro, args, rest):
            overlay(target, body)

    def _register(self, macro, target, chain, body, args, rest) -> None:
        ident = self._text(args, "ident")
        self.env.frames[0].bindings[ident] = args["value"].to_text()


def expand(root: Object, **options) -> Object:
    """
    Convenience function to expand a parsed tree.

    Keyword arguments are passed to ``Expander``.
    """
    return Expander(**options).expand(root)
