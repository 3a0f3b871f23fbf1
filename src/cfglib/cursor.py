"""Cursors: positions inside a parsed JSON value tree or a tomlkit document.

There are exactly four shapes:

* ``JsonCursor`` - any JSON value.
* ``TomlItemCursor`` - a document-level entry: the document itself, a table,
  a dotted/out-of-order table proxy, an array-of-tables, or a value stored
  directly in a table.
* ``TomlValueCursor`` - a value living inside an inline table or an array.
* ``TomlTableCursor`` - one element of an array-of-tables.

Children of a table are items (table semantics); children of an inline table
or array are values (inline semantics). An array-of-tables element is a
table, so lookups below it go back to table semantics even though it sits
inside an array.

Each shape only answers two questions: which mapping/sequence it exposes, and
which shape its children take. Lookup, replacement, removal and listing are
shared and raise path errors carrying the prefix walked so far.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, MutableMapping, MutableSequence, Optional, Tuple

from tomlkit import items
from tomlkit.container import Container, OutOfOrderTableProxy

from .errors import IndexOutOfBounds, KeyNotFound, NotAnArray, NotAnObject, NotSupportedFormat, suggest
from .kinds import TypeKind, classify
from .paths import Index, Key, PathSegment, ValuePath


class Cursor:
    node: Any

    def kind(self) -> TypeKind:
        return classify(self.node)

    def _mapping(self) -> Optional[MutableMapping[str, Any]]:
        return None

    def _sequence(self) -> Optional[MutableSequence[Any]]:
        return None

    # child hooks only run once _mapping / _sequence returned a container
    def _key_child(self, node: Any) -> "Cursor":
        raise NotImplementedError

    def _index_child(self, node: Any) -> "Cursor":
        raise NotImplementedError

    def _checked_mapping(self, key: str, prefix: ValuePath) -> MutableMapping[str, Any]:
        mapping = self._mapping()
        if mapping is None:
            raise NotAnObject(prefix=prefix, key=key, found=self.kind())
        if key not in mapping:
            raise KeyNotFound(prefix=prefix, key=key, suggestion=suggest(key, [str(k) for k in mapping]))
        return mapping

    def _checked_sequence(self, index: int, prefix: ValuePath) -> MutableSequence[Any]:
        seq = self._sequence()
        if seq is None:
            raise NotAnArray(prefix=prefix, index=index, found=self.kind())
        if index >= len(seq):
            raise IndexOutOfBounds(prefix=prefix, index=index, length=len(seq))
        return seq

    def get(self, segment: PathSegment, prefix: ValuePath) -> "Cursor":
        """Step into ``segment``; ``prefix`` is the path that led to this cursor."""
        if isinstance(segment, Key):
            return self._key_child(self._checked_mapping(segment.name, prefix)[segment.name])
        if isinstance(segment, Index):
            return self._index_child(self._checked_sequence(segment.position, prefix)[segment.position])
        raise TypeError(f"unknown path segment {segment!r}")

    def replace(self, segment: PathSegment, value: Any, prefix: ValuePath) -> None:
        if isinstance(segment, Key):
            self._checked_mapping(segment.name, prefix)[segment.name] = value
        elif isinstance(segment, Index):
            self._checked_sequence(segment.position, prefix)[segment.position] = value
        else:
            raise TypeError(f"unknown path segment {segment!r}")

    def remove(self, segment: PathSegment, prefix: ValuePath) -> None:
        if isinstance(segment, Key):
            del self._checked_mapping(segment.name, prefix)[segment.name]
        elif isinstance(segment, Index):
            del self._checked_sequence(segment.position, prefix)[segment.position]
        else:
            raise TypeError(f"unknown path segment {segment!r}")

    def children(self) -> Optional[List[Tuple[PathSegment, "Cursor"]]]:
        """Immediate children in document order, or None for a scalar."""
        mapping = self._mapping()
        if mapping is not None:
            return [(Key(str(k)), self._key_child(mapping[k])) for k in list(mapping)]
        seq = self._sequence()
        if seq is not None:
            return [(Index(i), self._index_child(v)) for i, v in enumerate(seq)]
        return None


@dataclass(frozen=True)
class JsonCursor(Cursor):
    node: Any

    def _mapping(self) -> Optional[MutableMapping[str, Any]]:
        return self.node if isinstance(self.node, dict) else None

    def _sequence(self) -> Optional[MutableSequence[Any]]:
        return self.node if isinstance(self.node, list) else None

    def _key_child(self, node: Any) -> Cursor:
        return JsonCursor(node)

    def _index_child(self, node: Any) -> Cursor:
        return JsonCursor(node)


_TABLE_LIKE = (Container, OutOfOrderTableProxy, items.Table)


@dataclass(frozen=True)
class TomlItemCursor(Cursor):
    node: Any

    def _mapping(self) -> Optional[MutableMapping[str, Any]]:
        if isinstance(self.node, _TABLE_LIKE + (items.InlineTable,)):
            return self.node
        return None

    def _sequence(self) -> Optional[MutableSequence[Any]]:
        if isinstance(self.node, (items.Array, items.AoT)):
            return self.node
        return None

    def _key_child(self, node: Any) -> Cursor:
        if isinstance(self.node, items.InlineTable):
            return TomlValueCursor(node)
        return TomlItemCursor(node)

    def _index_child(self, node: Any) -> Cursor:
        if isinstance(self.node, items.AoT):
            return TomlTableCursor(node)
        return TomlValueCursor(node)

    def replace(self, segment: PathSegment, value: Any, prefix: ValuePath) -> None:
        if isinstance(segment, Index) and isinstance(self.node, items.AoT):
            raise NotSupportedFormat(
                format="toml",
                op="replacing a whole array-of-tables element",
                hint="Set the keys inside the table one by one instead.",
            )
        super().replace(segment, value, prefix)


@dataclass(frozen=True)
class TomlValueCursor(Cursor):
    node: Any

    def _mapping(self) -> Optional[MutableMapping[str, Any]]:
        return self.node if isinstance(self.node, items.InlineTable) else None

    def _sequence(self) -> Optional[MutableSequence[Any]]:
        return self.node if isinstance(self.node, items.Array) else None

    def _key_child(self, node: Any) -> Cursor:
        return TomlValueCursor(node)

    def _index_child(self, node: Any) -> Cursor:
        return TomlValueCursor(node)


@dataclass(frozen=True)
class TomlTableCursor(Cursor):
    node: items.Table

    def _mapping(self) -> Optional[MutableMapping[str, Any]]:
        return self.node

    def _key_child(self, node: Any) -> Cursor:
        return TomlItemCursor(node)
