"""Key-path language: ``network.timeout``, ``servers[0].host``.

Grammar::

    path    := segment ( '.' segment | index )*
    segment := [A-Za-z0-9_-]+
    index   := '[' digits ']'

The first segment carries no leading dot. ``render_path`` writes the canonical
form, so ``render_path(parse_path(p))`` is stable under a second round trip.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Tuple, Union

from .errors import InvalidPathSyntax

PATH_EXAMPLE = "network.timeout or servers[0].host"

_IDENTIFIER = re.compile(r"[A-Za-z0-9_-]+")
_INDEX = re.compile(r"\[([0-9]+)\]")


@dataclass(frozen=True)
class Key:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Index:
    position: int

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"index must be non-negative, got {self.position}")

    def __str__(self) -> str:
        return f"[{self.position}]"


PathSegment = Union[Key, Index]


@dataclass(frozen=True)
class ValuePath:
    segments: Tuple[PathSegment, ...] = ()

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[PathSegment]:
        return iter(self.segments)

    def __bool__(self) -> bool:
        return bool(self.segments)

    def __str__(self) -> str:
        return render_path(self)

    def child(self, segment: PathSegment) -> "ValuePath":
        """Return a new path extended by ``segment``; ``self`` is left as is."""
        return ValuePath(self.segments + (segment,))

    def parent(self) -> "ValuePath":
        return ValuePath(self.segments[:-1])

    @property
    def last(self) -> PathSegment:
        return self.segments[-1]


def render_path(path: ValuePath) -> str:
    out = []
    for i, seg in enumerate(path.segments):
        if isinstance(seg, Key):
            out.append(seg.name if i == 0 else f".{seg.name}")
        else:
            out.append(f"[{seg.position}]")
    return "".join(out)


def parse_path(text: str) -> ValuePath:
    """Parse a key path, raising InvalidPathSyntax on malformed input."""

    def fail(pos: int, reason: str) -> InvalidPathSyntax:
        return InvalidPathSyntax(input=text, example=PATH_EXAMPLE, position=pos, reason=reason)

    if not text:
        raise fail(0, "path is empty")

    m = _IDENTIFIER.match(text)
    if not m:
        raise fail(0, "path must start with a key")
    segments = [Key(m.group())]
    pos = m.end()

    while pos < len(text):
        ch = text[pos]
        if ch == ".":
            m = _IDENTIFIER.match(text, pos + 1)
            if not m:
                raise fail(pos + 1, "expected a key after '.'")
            segments.append(Key(m.group()))
        elif ch == "[":
            m = _INDEX.match(text, pos)
            if not m:
                raise fail(pos, "expected '[' digits ']'")
            segments.append(Index(int(m.group(1))))
        else:
            raise fail(pos, f"unexpected character {ch!r}")
        pos = m.end()

    return ValuePath(tuple(segments))
