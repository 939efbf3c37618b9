"""
Abstract Syntax Tree (AST) node definitions for the fig configuration language.

Two closed families of nodes exist:

- Structural nodes (``Option``, ``Object``, ``List``, ``Macro``, ``Comment``)
  describe the shape of a document.
- Expression nodes (``Literal``, ``Variable``, ``Unary``, ``Binary``,
  ``Ternary``, ``Array``, ``Index``, ``Call``) describe option values and are
  evaluated lazily against an environment.

Objects keep their fields in declaration order. Declaring the same name twice
at one level never overwrites: the two declarations are folded into a
``List``.
"""

import copy
from dataclasses import dataclass, field
from typing import Optional, List as ListT, Dict, Union, Any
from abc import ABC

from .tokens import SourceSpan, Token, TokenType
from .errors import error_bad_declaration


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Expr(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Literal(Expr):
    """A literal value, optionally scaled by a unit multiplier (10K, 2h)."""
    token: Token
    unit: Optional[str] = None

    @property
    def kind(self) -> TokenType:
        return self.token.type

    def __str__(self) -> str:
        text = self.token.lexeme if self.token.lexeme else self.token.value
        return f"{text}{self.unit or ''}"


@dataclass
class Variable(Expr):
    """A ``$local`` or ``@environment`` variable reference."""
    name: str
    local: bool = True

    def __str__(self) -> str:
        return f"{'$' if self.local else '@'}{self.name}"


@dataclass
class Unary(Expr):
    """A prefix operation (``-x``, ``!x``, ``~x``)."""
    operator: TokenType
    operand: Expr

    def __str__(self) -> str:
        return f"{OPERATOR_SYMBOLS[self.operator]}{self.operand}"


@dataclass
class Binary(Expr):
    """An infix operation."""
    left: Expr
    operator: TokenType
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} {OPERATOR_SYMBOLS[self.operator]} {self.right})"


@dataclass
class Ternary(Expr):
    """A conditional expression ``cond ? then : otherwise``."""
    condition: Expr
    then: Expr
    otherwise: Expr

    def __str__(self) -> str:
        return f"({self.condition} ? {self.then} : {self.otherwise})"


@dataclass
class Array(Expr):
    """An array literal."""
    elements: ListT[Expr] = field(default_factory=list)

    def __str__(self) -> str:
        return "[" + ", ".join(str(e) for e in self.elements) + "]"


@dataclass
class Index(Expr):
    """Index access (``arr[0]``, ``arr[-1]``)."""
    target: Expr
    index: Expr

    def __str__(self) -> str:
        return f"{self.target}[{self.index}]"


@dataclass
class Call(Expr):
    """A builtin function call."""
    name: str
    arguments: ListT[Expr] = field(default_factory=list)
    named_arguments: Dict[str, Expr] = field(default_factory=dict)

    def __str__(self) -> str:
        args = [str(a) for a in self.arguments]
        args.extend(f"{k}={v}" for k, v in self.named_arguments.items())
        return f"{self.name}({', '.join(args)})"


OPERATOR_SYMBOLS: Dict[TokenType, str] = {
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
    TokenType.PERCENT: "%",
    TokenType.POWER: "**",
    TokenType.LSHIFT: "<<",
    TokenType.RSHIFT: ">>",
    TokenType.BIT_AND: "&",
    TokenType.BIT_OR: "|",
    TokenType.BIT_XOR: "^",
    TokenType.BIT_NOT: "~",
    TokenType.AND: "&&",
    TokenType.OR: "||",
    TokenType.NOT: "!",
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LE: "<=",
    TokenType.GE: ">=",
    TokenType.EQ: "==",
    TokenType.NE: "!=",
}


# =============================================================================
# Structural Nodes
# =============================================================================

@dataclass
class Node(AstNode):
    """Base class for structural nodes."""
    pass


@dataclass
class Comment(Node):
    """Annotation text attached to the node it decorates."""
    text: str


@dataclass
class Option(Node):
    """A single named binding ``name = expr``."""
    name: str
    value: Expr
    comment: Optional[Comment] = None
    seq: int = 0    # declaration order within the parsed document


@dataclass
class List(Node):
    """Repeated same-named siblings, in declaration order."""
    name: str
    items: ListT[Union["Option", "Object"]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class Macro(Node):
    """A directive such as ``.include("base.fig")`` or ``.define(x) { ... }``."""
    name: str
    arguments: ListT[Expr] = field(default_factory=list)
    named_arguments: Dict[str, Expr] = field(default_factory=dict)
    body: Optional["Object"] = None
    seq: int = 0


@dataclass
class Object(Node):
    """
    A named (or anonymous root) collection of fields.

    ``fields`` maps names to ``Option``, ``Object`` or ``List`` nodes in
    declaration order. ``directives`` holds the macro directives found in the
    object before expansion; ``partials`` holds the fragments registered by
    ``.define``.
    """
    name: str = ""
    fields: Dict[str, Node] = field(default_factory=dict)
    directives: ListT[Macro] = field(default_factory=list)
    partials: Dict[str, "Object"] = field(default_factory=dict)
    comment: Optional[Comment] = None
    seq: int = 0

    def get(self, name: str) -> Optional[Node]:
        return self.fields.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def declare(self, node: Union[Option, "Object"]) -> None:
        """Add a field, folding a repeated name into a List."""
        name = node.name
        current = self.fields.get(name)
        if current is None:
            self.fields[name] = node
            return
        first = current.items[0] if isinstance(current, List) else current
        if type(first) is not type(node):
            raise error_bad_declaration(name, "cannot mix options and objects", node.span)
        if isinstance(current, List):
            current.items.append(node)
        else:
            self.fields[name] = List(current.span, name, [current, node])

    def child(self, name: str, span: SourceSpan, fresh: bool) -> "Object":
        """Find or create the nested object ``name``.

        With ``fresh`` a new object is always added (folding into a List when
        the name exists); otherwise the existing object, or the last object
        of an existing List, is reused.
        """
        current = self.fields.get(name)
        if current is not None and not fresh:
            if isinstance(current, Object):
                return current
            if isinstance(current, List) and isinstance(current.items[-1], Object):
                return current.items[-1]
        nest = Object(span, name)
        self.declare(nest)
        return nest

    def options(self) -> Dict[str, Node]:
        """Fields that are options or lists of options."""
        return {
            name: node for name, node in self.fields.items()
            if isinstance(node, Option)
            or (isinstance(node, List) and node.items and isinstance(node.items[0], Option))
        }

    def clone(self, name: Optional[str] = None) -> "Object":
        """Deep copy of the object, optionally renamed."""
        dup = copy.deepcopy(self)
        if name is not None:
            dup.name = name
        return dup
