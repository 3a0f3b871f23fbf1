"""Loading, serializing and atomically persisting config documents."""

from __future__ import annotations

import json
import logging
import math
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import tomlkit
from tomlkit.exceptions import (
    InvalidUnicodeValueError,
    ParseError as TomlParseError,
    TOMLKitError,
    UnexpectedCharError,
    UnexpectedEofError,
)

from .errors import (
    AtomicReplaceFailed,
    ConflictingFlags,
    InvalidChoice,
    InvalidEscape,
    InvalidSyntax,
    MissingFlag,
    NotSupportedFormat,
    ParseError,
    ReadFailed,
    SourceLocation,
    TempCreateFailed,
    TrailingContent,
    UnexpectedEof,
    UnexpectedToken,
    UnterminatedString,
    WriteFailed,
    extract_snippet,
    offset_to_location,
)
from .kinds import ConfigFormat

log = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: Dict[str, ConfigFormat] = {
    ".json": ConfigFormat.JSON,
    ".toml": ConfigFormat.TOML,
}
DEFAULT_JSON_INDENT = 2

_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)
_TOML_LOCATION_SUFFIX = re.compile(r" at line \d+ col \d+$")
# strings are matched whole so literals inside them are skipped
_JSON_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"|(-?Infinity|NaN|-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)')


@dataclass
class ConfigDocument:
    """A parsed document owned by a single invocation.

    ``root`` is plain Python data for JSON and a ``tomlkit.TOMLDocument`` for
    TOML; the navigator mutates it in place.
    """

    format: ConfigFormat
    source: str
    root: Any
    path: Optional[Path] = None


def format_for_extension(path: Union[str, Path], extra: Optional[Dict[str, ConfigFormat]] = None) -> Optional[ConfigFormat]:
    suffix = Path(path).suffix.lower()
    mapping = dict(DEFAULT_EXTENSIONS)
    mapping.update(extra or {})
    return mapping.get(suffix)


def resolve_format(
    path: Union[str, Path],
    explicit: Union[str, ConfigFormat, None] = None,
    extensions: Optional[Dict[str, ConfigFormat]] = None,
) -> ConfigFormat:
    """Pick the document format from ``--format`` or the file extension.

    An explicit format that contradicts a recognised extension is rejected
    rather than silently preferred.
    """
    inferred = format_for_extension(path, extensions)

    if explicit is None:
        if inferred is None:
            raise MissingFlag(
                flag="--format <json|toml>",
                hint="Use --format when the file extension is not .json or .toml.",
            )
        return inferred

    if isinstance(explicit, str):
        try:
            explicit = ConfigFormat(explicit.lower())
        except ValueError:
            raise InvalidChoice(
                provided=explicit,
                flag="--format",
                valid=tuple(f.value for f in ConfigFormat),
            ) from None

    if inferred is not None and inferred is not explicit:
        raise ConflictingFlags(
            a=f"--format {explicit}",
            b=f"a '{Path(path).suffix}' file",
            hint="Drop --format or rename the file to match its contents.",
        )
    return explicit


# parsing ----------------------------------------------------------------


def _describe_char(source: str, offset: int) -> str:
    if offset >= len(source):
        return "end of input"
    return repr(source[offset])


def _json_parse_error(source: str, err: json.JSONDecodeError, file: Optional[str]) -> ParseError:
    line, column = offset_to_location(source, err.pos)
    loc = SourceLocation(line, column, file)
    snippet = extract_snippet(source, line, column)
    msg = err.msg
    fmt = ConfigFormat.JSON

    if msg.startswith("Unterminated string"):
        return UnterminatedString(format=fmt, location=loc, snippet=snippet)
    if msg.startswith("Invalid \\") and "escape" in msg:
        return InvalidEscape(format=fmt, location=loc, detail=msg, snippet=snippet)
    if msg == "Extra data":
        return TrailingContent(format=fmt, location=loc, snippet=snippet)
    if msg.startswith("Expecting "):
        if not source[err.pos:].strip():
            return UnexpectedEof(format=fmt, location=loc, snippet=snippet)
        return UnexpectedToken(
            format=fmt,
            location=loc,
            expected=msg[len("Expecting "):],
            found=_describe_char(source, err.pos),
            snippet=snippet,
        )
    return InvalidSyntax(format=fmt, location=loc, detail=msg, snippet=snippet)


class NonFiniteNumber(ValueError):
    """A NaN, Infinity or overflowing number literal in JSON text."""

    def __init__(self, literal: str) -> None:
        super().__init__(literal)
        self.literal = literal


def _reject_constant(name: str) -> Any:
    raise NonFiniteNumber(name)


def _finite_float(text: str) -> float:
    value = float(text)
    if math.isinf(value) or math.isnan(value):
        raise NonFiniteNumber(text)
    return value


def loads_strict_json(text: str) -> Any:
    """``json.loads`` limited to RFC 8259: NaN, Infinity and overflow raise NonFiniteNumber."""
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def _literal_offset(source: str, literal: str) -> int:
    for m in _JSON_LITERAL.finditer(source):
        if m.group(1) == literal:
            return m.start(1)
    return 0


def _non_finite_error(source: str, err: NonFiniteNumber, file: Optional[str]) -> ParseError:
    line, column = offset_to_location(source, _literal_offset(source, err.literal))
    return InvalidSyntax(
        format=ConfigFormat.JSON,
        location=SourceLocation(line, column, file),
        detail=f"{err.literal} is not a finite JSON number",
        snippet=extract_snippet(source, line, column),
    )


def _toml_parse_error(source: str, err: TomlParseError, file: Optional[str]) -> ParseError:
    # tomlkit reports 1-based lines and 0-based columns
    line, column = err.line, err.col + 1
    loc = SourceLocation(line, column, file)
    snippet = extract_snippet(source, line, column)
    detail = _TOML_LOCATION_SUFFIX.sub("", str(err))
    fmt = ConfigFormat.TOML

    if isinstance(err, UnexpectedEofError):
        return UnexpectedEof(format=fmt, location=loc, snippet=snippet)
    if isinstance(err, UnexpectedCharError):
        lines = source.splitlines()
        text = lines[line - 1] if 1 <= line <= len(lines) else ""
        found = repr(text[column - 1]) if column - 1 < len(text) else "end of line"
        return UnexpectedToken(format=fmt, location=loc, expected="a valid TOML token", found=found, snippet=snippet)
    if isinstance(err, InvalidUnicodeValueError):
        return InvalidEscape(format=fmt, location=loc, detail=detail, snippet=snippet)
    return InvalidSyntax(format=fmt, location=loc, detail=detail, snippet=snippet)


def parse_document(source: str, fmt: ConfigFormat, path: Union[str, Path, None] = None) -> ConfigDocument:
    file = str(path) if path is not None else None
    if fmt is ConfigFormat.JSON:
        try:
            root = loads_strict_json(source)
        except json.JSONDecodeError as e:
            raise _json_parse_error(source, e, file) from e
        except NonFiniteNumber as e:
            raise _non_finite_error(source, e, file) from e
    elif fmt is ConfigFormat.TOML:
        try:
            root = tomlkit.parse(source)
        except TomlParseError as e:
            raise _toml_parse_error(source, e, file) from e
        except TOMLKitError as e:
            # semantic errors such as a key defined twice carry no position
            raise InvalidSyntax(
                format=fmt, location=SourceLocation(None, None, file), detail=str(e), snippet=""
            ) from e
    else:
        raise TypeError(f"unknown format {fmt!r}")
    return ConfigDocument(format=fmt, source=source, root=root, path=Path(path) if path is not None else None)


def load_document(path: Union[str, Path], fmt: ConfigFormat) -> ConfigDocument:
    """Read and parse the file at ``path``."""
    log.info("Reading %s document from %s", fmt, path)
    try:
        source = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReadFailed.from_exception(path, e) from e
    return parse_document(source, fmt, path)


# serializing ------------------------------------------------------------


def _detect_json_indent(source: str, default: int) -> Union[int, str, None]:
    body = source.strip()
    if body and "\n" not in body:
        return None
    m = _INDENT_RE.search(source)
    if m is None:
        return default
    ws = m.group(1)
    return ws if "\t" in ws else len(ws)


def dump_document(document: ConfigDocument, json_indent: int = DEFAULT_JSON_INDENT) -> str:
    """Serialize ``document`` back to text.

    TOML goes through tomlkit, so untouched regions come back byte for byte.
    JSON keeps key order, the source's indentation and its trailing newline.
    """
    if document.format is ConfigFormat.TOML:
        return tomlkit.dumps(document.root)

    indent = _detect_json_indent(document.source, json_indent)
    try:
        text = json.dumps(document.root, indent=indent, ensure_ascii=False, allow_nan=False)
    except ValueError as e:
        raise NotSupportedFormat(
            format="json",
            op="writing NaN or Infinity",
            hint="JSON has no non-finite numbers; store a string or null instead.",
        ) from e
    if document.source.endswith("\n"):
        text += "\n"
    return text


def atomic_write(path: Union[str, Path], text: str) -> None:
    """Replace ``path`` with ``text`` via a temp file and ``os.replace``.

    The target is only touched by the final rename; on any failure the temp
    file is removed and the target keeps its old content.
    """
    target = Path(path)
    try:
        tmp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        )
    except OSError as e:
        raise TempCreateFailed.from_exception(target.parent, e) from e

    tmp_path = Path(tmp.name)
    replaced = False
    try:
        try:
            with tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            if target.exists():
                shutil.copymode(target, tmp_path)
        except OSError as e:
            raise WriteFailed.from_exception(tmp_path, e) from e

        try:
            os.replace(tmp_path, target)
        except OSError as e:
            raise AtomicReplaceFailed.from_exception(tmp_path, target, e) from e
        replaced = True
        log.info("Replaced %s", target)
    finally:
        if not replaced:
            tmp_path.unlink(missing_ok=True)


def save_document(document: ConfigDocument, json_indent: int = DEFAULT_JSON_INDENT) -> None:
    if document.path is None:
        raise ValueError("document has no backing file")
    text = dump_document(document, json_indent)
    log.info("Writing %d bytes of %s to %s", len(text.encode("utf-8")), document.format, document.path)
    atomic_write(document.path, text)
