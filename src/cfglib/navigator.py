"""Resolve key paths inside a ConfigDocument and read, set, delete or list them."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, List, Tuple

import tomlkit
from tomlkit import items
from tomlkit.container import OutOfOrderTableProxy
from tomlkit.exceptions import TOMLKitError

from .cursor import Cursor, JsonCursor, TomlItemCursor
from .documents import ConfigDocument, NonFiniteNumber, loads_strict_json
from .errors import EmptyPath, NotAContainer, NotSupportedOption, TypeMismatch
from .kinds import ConfigFormat, TypeKind, classify, is_toml_node
from .paths import PathSegment, ValuePath

log = logging.getLogger(__name__)


def root_cursor(document: ConfigDocument) -> Cursor:
    if document.format is ConfigFormat.JSON:
        return JsonCursor(document.root)
    if document.format is ConfigFormat.TOML:
        return TomlItemCursor(document.root)
    raise TypeError(f"unknown format {document.format!r}")


def _walk(cursor: Cursor, path: ValuePath) -> Cursor:
    prefix = ValuePath()
    for seg in path:
        cursor = cursor.get(seg, prefix)
        prefix = prefix.child(seg)
    return cursor


def resolve(document: ConfigDocument, path: ValuePath) -> Cursor:
    """Walk ``path`` from the document root.

    Raises a PathError whose ``prefix`` is the part of ``path`` that did
    resolve before the failing segment.
    """
    if not path:
        raise EmptyPath()
    return _walk(root_cursor(document), path)


def _resolve_parent(document: ConfigDocument, path: ValuePath) -> Cursor:
    if not path:
        raise EmptyPath()
    return _walk(root_cursor(document), path.parent())


# values -----------------------------------------------------------------


def infer_value(raw: str, fmt: ConfigFormat) -> Any:
    """Turn a command-line VALUE into a node for ``fmt``.

    Anything that does not parse as a literal of the format is taken as a
    plain string, so ``localhost`` needs no quoting. ``NaN``, ``Infinity`` and
    overflowing numbers are not JSON literals and become strings too.
    """
    if fmt is ConfigFormat.JSON:
        try:
            return loads_strict_json(raw)
        except (json.JSONDecodeError, NonFiniteNumber):
            return raw
    try:
        return tomlkit.value(raw)
    except TOMLKitError:
        return tomlkit.string(raw)


def display_text(node: Any) -> str:
    """Text printed by ``read``: scalars bare, containers in their format."""
    if is_toml_node(node):
        if isinstance(node, items.String):
            return node.unwrap()
        if isinstance(node, items.AoT):
            return "\n".join(tomlkit.dumps(t).rstrip("\n") for t in node)
        if isinstance(node, items.Item) and not isinstance(node, items.Table):
            return node.as_string().strip()
        return tomlkit.dumps(node).rstrip("\n")

    if isinstance(node, str):
        return node
    if node is None or isinstance(node, (bool, int, float)):
        return json.dumps(node)
    return json.dumps(node, indent=2, ensure_ascii=False)


def to_plain(node: Any) -> Any:
    """Detached plain-Python copy of a node."""
    if isinstance(node, OutOfOrderTableProxy):
        return {k: to_plain(v) for k, v in node.items()}
    if is_toml_node(node):
        return node.unwrap()
    return copy.deepcopy(node)


# operations -------------------------------------------------------------


def read_value(document: ConfigDocument, path: ValuePath) -> str:
    return display_text(resolve(document, path).node)


def read_plain(document: ConfigDocument, path: ValuePath) -> Any:
    return to_plain(resolve(document, path).node)


def set_value(document: ConfigDocument, path: ValuePath, raw: str, coerce: bool = False) -> TypeKind:
    """Replace the existing value at ``path`` with ``raw``.

    The new value must classify as the same TypeKind as the one it replaces.
    Only the replaced entry changes; in TOML its siblings, comments and
    ordering are left as they were.
    """
    if coerce:
        raise NotSupportedOption(
            option="--coerce",
            hint="set only accepts a value of the existing type; pass a literal of that type.",
        )

    prefix = path.parent()
    parent = _resolve_parent(document, path)
    existing = parent.get(path.last, prefix)

    new = infer_value(raw, document.format)
    expected, found = existing.kind(), classify(new)
    if expected is not found:
        raise TypeMismatch(path=path, expected=expected, found=found)

    parent.replace(path.last, new, prefix)
    log.info("Set %s (%s)", path, found)
    return found


def delete_value(document: ConfigDocument, path: ValuePath) -> None:
    """Remove the entry at ``path``; a missing entry is an error, not a no-op."""
    parent = _resolve_parent(document, path)
    parent.remove(path.last, path.parent())
    log.info("Deleted %s", path)


def _entries(cursor: Cursor, path: ValuePath) -> List[Tuple[PathSegment, TypeKind]]:
    children = cursor.children()
    if children is None:
        raise NotAContainer(prefix=path, found=cursor.kind())
    return [(seg, child.kind()) for seg, child in children]


def list_entries(document: ConfigDocument, path: ValuePath) -> List[Tuple[PathSegment, TypeKind]]:
    """Immediate children of the container at ``path`` with their kinds."""
    return _entries(resolve(document, path), path)


def list_root_entries(document: ConfigDocument) -> List[Tuple[PathSegment, TypeKind]]:
    return _entries(root_cursor(document), ValuePath())


def list_children(document: ConfigDocument, path: ValuePath) -> List[PathSegment]:
    return [seg for seg, _ in list_entries(document, path)]
