"""
figlang - reader for the fig configuration language.

This module provides:
- Scanner: Tokenizes fig source text
- Parser: Builds the tree of objects, options and directives
- Expander: Applies .include/.define/.apply and the other directives
- Document: Typed queries over the expanded tree

Usage:
    from figlang import load

    doc = load('''
    server {
        host = "localhost"
        port = 8000 + 80
        hosts = ["a", "b"]
    }
    ''')
    doc.int("server", "port")          # 8080
    doc.text_array("server", "hosts")  # ["a", "b"]

    # Or one stage at a time
    tokens = tokenize(source)
    root = parse(source)
    expanded = expand(root, base_dir="/etc/app")
"""

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
    UNITS,
)

from .scanner import (
    Scanner,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .ast import (
    # Base
    AstNode,
    AstVisitor,
    # Expressions
    Expr,
    Literal,
    Variable,
    Unary,
    Binary,
    Ternary,
    Array,
    Index,
    Call,
    # Structure
    Node,
    Comment,
    Option,
    List,
    Macro,
    Object,
)

from .errors import (
    ErrorSeverity,
    Diagnostic,
    FigError,
    LexerError,
    ParserError,
    EvaluationError,
    UnsupportedOperation,
    IncompatibleTypes,
    ZeroDivision,
    IndexOutOfRange,
    UndefinedVariable,
    UndefinedFunction,
    InvalidArgument,
    MissingArgument,
    QueryError,
    ObjectNotFound,
    OptionNotFound,
    NotAnObject,
    NotAnOption,
    TypeMismatch,
    MacroError,
    MacroArgumentError,
    IncludeResolutionError,
)

from .runtime import (
    Value,
    Bool,
    Int,
    Double,
    Text,
    Moment,
    Slice,
    Environment,
    Evaluator,
    evaluate,
)

from .loader import Loader
from .macros import Expander, expand
from .document import Document, load, load_file
from .decode import Field, Shape, ListOf, list_of, decode, shape_of
from .dump import debug_tree, to_dict, to_yaml

__all__ = [
    # Tokens
    "Token",
    "TokenType",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    "UNITS",
    # Scanner / Parser
    "Scanner",
    "tokenize",
    "Parser",
    "parse",
    # AST
    "AstNode",
    "AstVisitor",
    "Expr",
    "Literal",
    "Variable",
    "Unary",
    "Binary",
    "Ternary",
    "Array",
    "Index",
    "Call",
    "Node",
    "Comment",
    "Option",
    "List",
    "Macro",
    "Object",
    # Errors
    "ErrorSeverity",
    "Diagnostic",
    "FigError",
    "LexerError",
    "ParserError",
    "EvaluationError",
    "UnsupportedOperation",
    "IncompatibleTypes",
    "ZeroDivision",
    "IndexOutOfRange",
    "UndefinedVariable",
    "UndefinedFunction",
    "InvalidArgument",
    "MissingArgument",
    "QueryError",
    "ObjectNotFound",
    "OptionNotFound",
    "NotAnObject",
    "NotAnOption",
    "TypeMismatch",
    "MacroError",
    "MacroArgumentError",
    "IncludeResolutionError",
    # Runtime
    "Value",
    "Bool",
    "Int",
    "Double",
    "Text",
    "Moment",
    "Slice",
    "Environment",
    "Evaluator",
    "evaluate",
    # Expansion and queries
    "Loader",
    "Expander",
    "expand",
    "Document",
    "load",
    "load_file",
    "Field",
    "Shape",
    "ListOf",
    "list_of",
    "decode",
    "shape_of",
    "debug_tree",
    "to_dict",
    "to_yaml",
]

__version__ = "0.1.0"
