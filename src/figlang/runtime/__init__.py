"""
fig runtime - values, environments and the expression evaluator.

This module provides:
- Value: Runtime value variants and the operator contract
- Environment: Frame stack used to resolve variables
- BuiltinRegistry: Built-in function implementations
- Evaluator: Tree-walking expression evaluator
"""

from .values import (
    Value,
    Bool,
    Int,
    Double,
    Text,
    Moment,
    Slice,
    EPSILON,
    format_double,
    parse_moment,
    wrap,
)

from .environment import (
    Frame,
    Environment,
)

from .builtins import (
    Parameter,
    BuiltinFunction,
    BuiltinRegistry,
    get_builtin_registry,
    call_builtin,
)

from .evaluator import (
    Evaluator,
    evaluate,
    evaluate_node,
    literal_value,
    make_environment,
)

__all__ = [
    # Values
    "Value",
    "Bool",
    "Int",
    "Double",
    "Text",
    "Moment",
    "Slice",
    "EPSILON",
    "format_double",
    "parse_moment",
    "wrap",
    # Environment
    "Frame",
    "Environment",
    # Builtins
    "Parameter",
    "BuiltinFunction",
    "BuiltinRegistry",
    "get_builtin_registry",
    "call_builtin",
    # Evaluator
    "Evaluator",
    "evaluate",
    "evaluate_node",
    "literal_value",
    "make_environment",
]
