"""Document formats and backend-agnostic classification of document nodes."""

from __future__ import annotations

from enum import Enum
from typing import Any

from tomlkit import items
from tomlkit.container import Container, OutOfOrderTableProxy

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U64_MAX = 2**64 - 1

_TOML_TABLES = (items.Table, items.InlineTable, Container, OutOfOrderTableProxy)


class ConfigFormat(Enum):
    JSON = "json"
    TOML = "toml"

    def __str__(self) -> str:
        return self.value


class TypeKind(Enum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"

    def __str__(self) -> str:
        return self.value

    @property
    def is_container(self) -> bool:
        return self in (TypeKind.ARRAY, TypeKind.OBJECT)


def is_toml_node(node: Any) -> bool:
    return isinstance(node, (items.Item, Container, OutOfOrderTableProxy))


def classify(node: Any) -> TypeKind:
    """Return the TypeKind of a JSON value or a tomlkit node.

    A TOML inline table and a JSON object both classify as OBJECT, an
    array-of-tables and a JSON list both as ARRAY.
    """
    if is_toml_node(node):
        return _classify_toml(node)
    return _classify_json(node)


def _classify_toml(node: Any) -> TypeKind:
    # tomlkit scalars subclass the builtin types, so test tomlkit classes only
    if isinstance(node, items.Bool):
        return TypeKind.BOOL
    if isinstance(node, items.Integer):
        return TypeKind.INT
    if isinstance(node, items.Float):
        return TypeKind.FLOAT
    if isinstance(node, items.String):
        return TypeKind.STRING
    if isinstance(node, (items.Array, items.AoT)):
        return TypeKind.ARRAY
    if isinstance(node, _TOML_TABLES):
        return TypeKind.OBJECT
    if isinstance(node, items.DateTime):
        return TypeKind.DATETIME
    if isinstance(node, items.Date):
        return TypeKind.DATE
    if isinstance(node, items.Time):
        return TypeKind.TIME
    raise TypeError(f"cannot classify TOML node of type {type(node).__name__}")


def _classify_json(node: Any) -> TypeKind:
    if node is None:
        return TypeKind.NULL
    if isinstance(node, bool):
        return TypeKind.BOOL
    if isinstance(node, int):
        if _I64_MIN <= node <= _I64_MAX:
            return TypeKind.INT
        if 0 <= node <= _U64_MAX:
            return TypeKind.UINT
        # wider than 64 bits: only representable as a float in the JSON number model
        return TypeKind.FLOAT
    if isinstance(node, float):
        return TypeKind.FLOAT
    if isinstance(node, str):
        return TypeKind.STRING
    if isinstance(node, list):
        return TypeKind.ARRAY
    if isinstance(node, dict):
        return TypeKind.OBJECT
    raise TypeError(f"cannot classify JSON node of type {type(node).__name__}")
