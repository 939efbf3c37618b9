"""
Decoding of documents into host data through shape descriptors.

A Shape lists the fields to read from an object. Each Field names a tree
field and a kind: a scalar kind name, ``list_of(kind)`` for arrays, a nested
Shape for an object, or ``list_of(shape)`` for repeated objects. Tree fields
not named by the shape are ignored.

Usage:
    shape = Shape([
        Field("host", "text", default="localhost"),
        Field("port", "int", required=True),
        Field("tls", Shape([Field("cert", "text")])),
    ])
    settings = decode(doc, shape)

``shape_of`` derives a Shape from a dataclass whose instances are then
built by the decoder.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, List, Optional, Union, get_args, get_origin, get_type_hints

from .errors import error_option_not_found, error_invalid_argument


class _Missing:
    """Marks a field without a default."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

SCALAR_KINDS = ("int", "float", "bool", "text", "time", "value")


@dataclass(frozen=True)
class ListOf:
    """An array of scalars, or repeated objects when ``kind`` is a Shape."""
    kind: Union[str, "Shape"]


def list_of(kind: Union[str, "Shape"]) -> ListOf:
    return ListOf(kind)


@dataclass
class Field:
    """One field of a shape; ``rename`` is the name used in the tree."""
    name: str
    kind: Union[str, ListOf, "Shape"] = "value"
    rename: Optional[str] = None
    ignore: bool = False
    required: bool = False
    default: Any = MISSING
    default_factory: Any = MISSING

    def __post_init__(self):
        if isinstance(self.kind, str) and self.kind not in SCALAR_KINDS:
            raise error_invalid_argument("Field", f"{self.name}: unknown kind '{self.kind}'")

    @property
    def key(self) -> str:
        return self.rename or self.name

    def fallback(self) -> Any:
        if self.default_factory is not MISSING:
            return self.default_factory()
        return self.default


@dataclass
class Shape:
    """Fields to decode and the factory building the result from them."""
    fields: List[Field]
    factory: Callable[..., Any] = dict


def decode(document, shape: Shape) -> Any:
    """
    Decode a document (or sub-document) with ``shape``.

    Raises:
        OptionNotFound: If a required field is missing
        TypeMismatch: If a value does not fit the field kind
    """
    values = {}
    for item in shape.fields:
        if item.ignore:
            continue
        if not document.has(item.key):
            if item.required:
                raise error_option_not_found(item.key)
            value = item.fallback()
            if value is not MISSING:
                values[item.name] = value
            continue
        values[item.name] = _decode_field(document, item.key, item.kind)
    return shape.factory(**values)


def _decode_field(document, key: str, kind) -> Any:
    if isinstance(kind, Shape):
        return decode(document.document(key), kind)
    if isinstance(kind, ListOf):
        if isinstance(kind.kind, Shape):
            return [decode(sub, kind.kind) for sub in document.documents(key)]
        if kind.kind == "value":
            return document.slice(key)
        return getattr(document, f"{kind.kind}_array")(key)
    return getattr(document, kind)(key)


# =============================================================================
# Dataclass shapes
# =============================================================================

_SCALAR_TYPES = {
    int: "int",
    float: "float",
    bool: "bool",
    str: "text",
    date: "time",
    datetime: "time",
    time: "time",
}


def _kind_of(annotation) -> Union[str, ListOf, Shape]:
    origin = get_origin(annotation)
    if origin is Union:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return _kind_of(args[0])
        return "value"
    if origin in (list, List):
        args = get_args(annotation)
        return ListOf(_kind_of(args[0]) if args else "value")
    if dataclasses.is_dataclass(annotation):
        return shape_of(annotation)
    return _SCALAR_TYPES.get(annotation, "value")


def shape_of(cls) -> Shape:
    """
    Build a Shape from a dataclass.

    Field metadata keys: ``fig`` renames the tree field, ``ignore`` skips the
    field, ``required`` fails when it is missing. Fields without a default
    are required.
    """
    if not dataclasses.is_dataclass(cls):
        raise error_invalid_argument("shape_of", f"{cls!r} is not a dataclass")
    hints = get_type_hints(cls)
    fields = []
    for item in dataclasses.fields(cls):
        if not item.init:
            continue
        metadata = item.metadata
        has_default = (item.default is not dataclasses.MISSING
                       or item.default_factory is not dataclasses.MISSING)
        fields.append(Field(
            name=item.name,
            kind=_kind_of(hints.get(item.name, Any)),
            rename=metadata.get("fig"),
            ignore=metadata.get("ignore", False),
            required=metadata.get("required", not has_default),
            default=_or_missing(item.default),
            default_factory=_or_missing(item.default_factory),
        ))
    return Shape(fields, factory=cls)


def _or_missing(value):
    return MISSING if value is dataclasses.MISSING else value
