"""
Expression evaluator for fig option values.

Walks expression trees against an Environment. Literals are converted to
runtime values here (the scanner keeps them as text), operators dispatch to
the value model, and calls go to the builtin registry.
"""

from typing import Dict, List

from .values import Value, Int, Double, Bool, Text, Slice, parse_moment
from .environment import Environment
from .builtins import get_builtin_registry
from ..ast import (
    AstVisitor, Expr, Literal, Variable, Unary, Binary, Ternary, Array,
    Index, Call, Node, Option, List as ListNode,
)
from ..tokens import TokenType, TRUTHY_WORDS, UNITS
from ..errors import (
    FigError,
    error_unsupported,
    error_undefined_function,
    error_not_an_option,
)


_BINARY_METHODS = {
    TokenType.PLUS: "add",
    TokenType.MINUS: "sub",
    TokenType.STAR: "mul",
    TokenType.SLASH: "div",
    TokenType.PERCENT: "mod",
    TokenType.POWER: "pow",
    TokenType.LSHIFT: "lshift",
    TokenType.RSHIFT: "rshift",
    TokenType.BIT_AND: "band",
    TokenType.BIT_OR: "bor",
    TokenType.BIT_XOR: "bxor",
}

_COMPARISONS = {
    TokenType.EQ: lambda c: c == 0,
    TokenType.NE: lambda c: c != 0,
    TokenType.LT: lambda c: c < 0,
    TokenType.LE: lambda c: c <= 0,
    TokenType.GT: lambda c: c > 0,
    TokenType.GE: lambda c: c >= 0,
}


def literal_value(node: Literal) -> Value:
    """Convert a literal token (and its unit, if any) to a runtime value."""
    token = node.token
    kind = token.type

    if kind == TokenType.INTEGER:
        number = int(token.value, 0)
        if node.unit is None:
            return Int(number)
        factor = UNITS[node.unit]
        if isinstance(factor, float):
            return Double(number * factor)
        return Int(number * factor)

    if kind == TokenType.FLOAT:
        number = float(token.value)
        if node.unit is not None:
            number *= UNITS[node.unit]
        return Double(number)

    if kind in (TokenType.STRING, TokenType.HEREDOC, TokenType.IDENT):
        return Text(token.value)

    if kind == TokenType.BOOLEAN:
        return Bool(token.value in TRUTHY_WORDS)

    if kind == TokenType.NULL:
        return Slice()

    if kind in (TokenType.DATE, TokenType.TIME, TokenType.DATETIME):
        return parse_moment(token.value)

    raise error_unsupported("literal", kind.name.lower())


class Evaluator(AstVisitor):
    """
    Evaluates expressions in an environment.

    Usage:
        value = Evaluator(env).evaluate(expr)
    """

    def __init__(self, env: Environment):
        self.env = env
        self.registry = get_builtin_registry()

    def evaluate(self, expr: Expr) -> Value:
        """Evaluate an expression, attaching its span to errors raised without one."""
        try:
            return expr.accept(self)
        except FigError as exc:
            raise exc.at(expr.span)

    def visit_Literal(self, node: Literal) -> Value:
        return literal_value(node)

    def visit_Variable(self, node: Variable) -> Value:
        if node.local:
            return self.env.resolve_local(node.name)
        return self.env.resolve(node.name)

    def visit_Unary(self, node: Unary) -> Value:
        operand = self.evaluate(node.operand)
        if node.operator == TokenType.MINUS:
            return operand.neg()
        if node.operator == TokenType.NOT:
            return operand.not_()
        if node.operator == TokenType.BIT_NOT:
            return operand.bnot()
        raise error_unsupported(node.operator.name.lower(), operand.kind)

    def visit_Binary(self, node: Binary) -> Value:
        op = node.operator
        left = self.evaluate(node.left)

        # logical operators short-circuit on the truthiness of the left side
        if op == TokenType.AND:
            if not left.is_true():
                return Bool(False)
            return left.and_(self.evaluate(node.right))
        if op == TokenType.OR:
            if left.is_true():
                return Bool(True)
            return left.or_(self.evaluate(node.right))

        right = self.evaluate(node.right)
        if op in _COMPARISONS:
            return Bool(_COMPARISONS[op](left.compare(right)))
        return getattr(left, _BINARY_METHODS[op])(right)

    def visit_Ternary(self, node: Ternary) -> Value:
        if self.evaluate(node.condition).is_true():
            return self.evaluate(node.then)
        return self.evaluate(node.otherwise)

    def visit_Array(self, node: Array) -> Value:
        return Slice(tuple(self.evaluate(element) for element in node.elements))

    def visit_Index(self, node: Index) -> Value:
        target = self.evaluate(node.target)
        position = self.evaluate(node.index)
        if not isinstance(target, Slice):
            raise error_unsupported("index", target.kind)
        return target.index(position)

    def visit_Call(self, node: Call) -> Value:
        func = self.registry.get_function(node.name)
        if func is None:
            raise error_undefined_function(node.name)
        args: List[Value] = [self.evaluate(arg) for arg in node.arguments]
        named: Dict[str, Value] = {
            name: self.evaluate(arg) for name, arg in node.named_arguments.items()
        }
        return func.call(self.env, args, named)


def evaluate(expr: Expr, env: Environment) -> Value:
    """Evaluate a single expression."""
    return Evaluator(env).evaluate(expr)


def evaluate_node(node: Node, env: Environment) -> Value:
    """
    Evaluate an option binding.

    An ``Option`` yields the value of its expression; a ``List`` of options
    yields an array of their values in declaration order.
    """
    if isinstance(node, Option):
        return evaluate(node.value, env)
    if isinstance(node, ListNode) and all(isinstance(item, Option) for item in node.items):
        return Slice(tuple(evaluate(item.value, env) for item in node.items))
    raise error_not_an_option(getattr(node, "name", type(node).__name__))


def make_environment(values=None) -> Environment:
    """An environment whose pending option bindings evaluate with ``evaluate_node``."""
    return Environment(values, evaluate=evaluate_node)
