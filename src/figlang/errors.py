"""
Exceptions and diagnostics for the fig configuration language.

Error code ranges:
- E0xx: Scanner errors (invalid tokens surfaced by the parser)
- E1xx: Parser errors
- E2xx: Evaluation errors
- E3xx: Document query and decoding errors
- E4xx: Macro expansion errors
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single diagnostic message."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity = ErrorSeverity.ERROR
    span: Optional[SourceSpan] = None
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        # Header: location: severity[code]: message
        header = f"{self.severity.value}[{self.code}]: {self.message}"
        if self.span is not None:
            header = f"{self.span.start}: {header}"
        parts.append(header)

        # Source line with caret
        if show_source and self.span is not None and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            if self.span.start.line == self.span.end.line:
                end_col = self.span.end.column
            else:
                end_col = len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        data = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "hints": self.hints,
        }
        if self.span is not None:
            data["range"] = {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            }
        return data


class FigError(Exception):
    """Base exception for all fig errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    def __str__(self) -> str:
        return self.diagnostic.format()

    @property
    def code(self) -> str:
        return self.diagnostic.code

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.diagnostic.span

    def at(self, span: Optional[SourceSpan], source_line: str = None) -> "FigError":
        """Attach a location to an error raised without one.

        Errors that already carry a span are returned unchanged, so the
        innermost location wins when errors propagate outward.
        """
        if self.diagnostic.span is None and span is not None:
            self.diagnostic = replace(self.diagnostic, span=span, source_line=source_line)
        return self


class LexerError(FigError):
    """Malformed token reported by the scanner (E0xx)."""
    pass


class ParserError(FigError):
    """Syntax error (E1xx)."""
    pass


class EvaluationError(FigError):
    """Error while evaluating an expression (E2xx)."""
    pass


class UnsupportedOperation(EvaluationError):
    pass


class IncompatibleTypes(EvaluationError):
    pass


class ZeroDivision(EvaluationError):
    pass


class IndexOutOfRange(EvaluationError):
    pass


class UndefinedVariable(EvaluationError):
    pass


class UndefinedFunction(EvaluationError):
    pass


class InvalidArgument(EvaluationError):
    pass


class MissingArgument(InvalidArgument):
    pass


class QueryError(FigError):
    """Error while looking up a path in a document (E3xx)."""
    pass


class ObjectNotFound(QueryError):
    pass


class OptionNotFound(QueryError):
    pass


class NotAnObject(QueryError):
    pass


class NotAnOption(QueryError):
    pass


class TypeMismatch(QueryError):
    """A value does not fit the kind a decoder expected."""
    pass


class MacroError(FigError):
    """Error while expanding macro directives (E4xx)."""
    pass


class MacroArgumentError(MacroError):
    pass


class IncludeResolutionError(MacroError):
    pass


# --- Scanner error codes ---

def error_invalid_token(reason: str, lexeme: str, span: SourceSpan,
                        source_line: str = None) -> LexerError:
    """E001: Invalid token produced by the scanner."""
    diag = Diagnostic(
        code="E001",
        message=f"{reason}: {lexeme!r}" if lexeme else reason,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    diag = Diagnostic(
        code="E101",
        message=f"expected {expected}, found {found}",
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of file."""
    diag = Diagnostic(
        code="E102",
        message=f"unexpected end of file, expected {expected}",
        span=span,
    )
    return ParserError(diag)


def error_unknown_unit(unit: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E103: Unknown multiplier after a numeric literal."""
    diag = Diagnostic(
        code="E103",
        message=f"unknown unit multiplier '{unit}'",
        span=span,
        source_line=source_line,
        hints=["known units: K M G T Kb Mb Gb Tb s m h d w y ms"],
    )
    return ParserError(diag)


def error_bad_argument_list(message: str, span: SourceSpan,
                            source_line: str = None) -> ParserError:
    """E104: Malformed argument list."""
    diag = Diagnostic(
        code="E104",
        message=message,
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_bad_declaration(name: str, message: str, span: SourceSpan,
                          source_line: str = None) -> ParserError:
    """E105: A declaration clashes with an existing field."""
    diag = Diagnostic(
        code="E105",
        message=f"{name}: {message}",
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


# --- Evaluation error codes ---

def error_unsupported(operation: str, kind: str) -> UnsupportedOperation:
    """E201: Operation not supported by a value kind."""
    return UnsupportedOperation(Diagnostic(
        code="E201",
        message=f"unsupported operation '{operation}' for {kind}",
    ))


def error_overflow(operation: str) -> UnsupportedOperation:
    """E209: Result does not fit a 64-bit integer."""
    return UnsupportedOperation(Diagnostic(
        code="E209",
        message=f"integer overflow in '{operation}'",
    ))


def error_incompatible(operation: str, left: str, right: str) -> IncompatibleTypes:
    """E202: Operands of different kinds with no coercion rule."""
    return IncompatibleTypes(Diagnostic(
        code="E202",
        message=f"incompatible types for '{operation}': {left} and {right}",
    ))


def error_zero_division(operation: str) -> ZeroDivision:
    """E203: Division or modulo by zero."""
    return ZeroDivision(Diagnostic(
        code="E203",
        message=f"{operation} by zero",
    ))


def error_index_out_of_range(index: int, size: int) -> IndexOutOfRange:
    """E204: Index outside an array."""
    return IndexOutOfRange(Diagnostic(
        code="E204",
        message=f"index {index} out of range for array of length {size}",
    ))


def error_undefined_variable(name: str) -> UndefinedVariable:
    """E205: Variable not found in any frame."""
    return UndefinedVariable(Diagnostic(
        code="E205",
        message=f"undefined variable '{name}'",
    ))


def error_undefined_function(name: str) -> UndefinedFunction:
    """E206: Call to an unknown builtin."""
    return UndefinedFunction(Diagnostic(
        code="E206",
        message=f"undefined function '{name}'",
    ))


def error_invalid_argument(function: str, message: str) -> InvalidArgument:
    """E207: Bad argument given to a builtin."""
    return InvalidArgument(Diagnostic(
        code="E207",
        message=f"{function}: {message}",
    ))


def error_missing_argument(function: str, parameter: str) -> MissingArgument:
    """E208: Required builtin parameter not supplied."""
    return MissingArgument(Diagnostic(
        code="E208",
        message=f"{function}: missing argument '{parameter}'",
    ))


# --- Query error codes ---

def error_object_not_found(name: str) -> ObjectNotFound:
    """E301: Path segment does not exist."""
    return ObjectNotFound(Diagnostic(code="E301", message=f"{name}: object not found"))


def error_option_not_found(name: str) -> OptionNotFound:
    """E302: Final path segment does not exist."""
    return OptionNotFound(Diagnostic(code="E302", message=f"{name}: option not found"))


def error_not_an_object(name: str) -> NotAnObject:
    """E303: Path segment is not an object."""
    return NotAnObject(Diagnostic(code="E303", message=f"{name}: not an object"))


def error_not_an_option(name: str) -> NotAnOption:
    """E304: Final path segment is not an option."""
    return NotAnOption(Diagnostic(code="E304", message=f"{name}: not an option"))


def error_type_mismatch(path: str, expected: str, found: str) -> TypeMismatch:
    """E305: Value kind differs from the expected kind."""
    return TypeMismatch(Diagnostic(
        code="E305",
        message=f"{path}: type mismatch: expected {expected}, found {found}",
    ))


def error_empty_path() -> QueryError:
    """E306: Query without any path segment."""
    return QueryError(Diagnostic(code="E306", message="empty path"))


# --- Macro error codes ---

def error_macro_argument(macro: str, message: str, span: SourceSpan = None) -> MacroArgumentError:
    """E401: Bad macro arguments."""
    return MacroArgumentError(Diagnostic(
        code="E401",
        message=f"{macro}: {message}",
        span=span,
    ))


def error_include(location: str, reason: str, span: SourceSpan = None) -> IncludeResolutionError:
    """E402: Include could not be resolved."""
    return IncludeResolutionError(Diagnostic(
        code="E402",
        message=f"{location}: {reason}",
        span=span,
    ))
