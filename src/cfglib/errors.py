"""Error taxonomy for cfgctl.

Every failure is raised as one of the variants below. Variants only carry
data; ``format_error_message`` is the single place that turns them into text,
and ``str(error)`` delegates to it.
"""

from __future__ import annotations

import difflib
import errno
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, List, Optional, Tuple, Type

if TYPE_CHECKING:  # pragma: no cover
    from .kinds import ConfigFormat, TypeKind
    from .paths import ValuePath


class ErrorCategory(Enum):
    USAGE = "usage"
    FILE_IO = "file-io"
    PARSE = "parse"
    PATH = "path"
    TYPE = "type"
    NOT_SUPPORTED = "not-supported"


EXIT_CODES: Dict[ErrorCategory, int] = {
    ErrorCategory.USAGE: 2,
    ErrorCategory.FILE_IO: 3,
    ErrorCategory.PARSE: 3,
    ErrorCategory.PATH: 4,
    ErrorCategory.TYPE: 5,
    ErrorCategory.NOT_SUPPORTED: 6,
}


class CfgError(Exception):
    """Base of the closed error taxonomy."""

    category: ClassVar[ErrorCategory]

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.category]

    def __str__(self) -> str:
        return format_error_message(self)


# Usage ------------------------------------------------------------------


class UsageError(CfgError):
    category = ErrorCategory.USAGE


@dataclass(eq=False)
class MissingFlag(UsageError):
    flag: str
    hint: str


@dataclass(eq=False)
class InvalidChoice(UsageError):
    provided: str
    flag: str
    valid: Tuple[str, ...]


@dataclass(eq=False)
class ConflictingFlags(UsageError):
    a: str
    b: str
    hint: str


@dataclass(eq=False)
class MissingArgument(UsageError):
    name: str
    example: str


@dataclass(eq=False)
class InvalidPathSyntax(UsageError):
    input: str
    example: str
    position: int = 0
    reason: str = "malformed path"


@dataclass(eq=False)
class SettingsError(UsageError):
    path: str
    reason: str


# File I/O ---------------------------------------------------------------


class IoFault(Enum):
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    IS_A_DIRECTORY = "is-a-directory"
    WOULD_BLOCK = "would-block"
    ALREADY_EXISTS = "already-exists"
    INVALID_INPUT = "invalid-input"
    OTHER = "other"


def classify_os_error(exc: BaseException) -> IoFault:
    if isinstance(exc, FileNotFoundError):
        return IoFault.NOT_FOUND
    if isinstance(exc, PermissionError):
        return IoFault.PERMISSION_DENIED
    if isinstance(exc, IsADirectoryError):
        return IoFault.IS_A_DIRECTORY
    if isinstance(exc, BlockingIOError):
        return IoFault.WOULD_BLOCK
    if isinstance(exc, FileExistsError):
        return IoFault.ALREADY_EXISTS
    if isinstance(exc, UnicodeError):
        return IoFault.INVALID_INPUT
    if isinstance(exc, OSError) and exc.errno in (errno.EINVAL, errno.ENAMETOOLONG):
        return IoFault.INVALID_INPUT
    return IoFault.OTHER


def io_reason_and_hint(fault: IoFault, path: str, detail: Optional[str] = None) -> Tuple[str, str]:
    """Map an I/O fault to a short reason and a remediation hint."""
    if fault is IoFault.NOT_FOUND:
        return "No such file or directory", f"Check the path or create it first: {path}"
    if fault is IoFault.PERMISSION_DENIED:
        return "Permission denied", "Check file permissions or run with appropriate rights."
    if fault is IoFault.IS_A_DIRECTORY:
        return "Path is a directory, not a file", "Use a regular file path for this operation."
    if fault is IoFault.WOULD_BLOCK:
        return (
            "Resource temporarily unavailable",
            "Try again or ensure no other process is locking the file.",
        )
    if fault is IoFault.ALREADY_EXISTS:
        return (
            "File already exists",
            "Remove the leftover temp file or choose a different output path.",
        )
    if fault is IoFault.INVALID_INPUT:
        return "Invalid path or file contents", "Verify the path string and that the file is UTF-8 text."
    return detail or "Unexpected I/O error", "Re-run with -v for more details."


def _os_detail(exc: BaseException) -> str:
    return getattr(exc, "strerror", None) or type(exc).__name__


class FileIoError(CfgError):
    category = ErrorCategory.FILE_IO


@dataclass(eq=False)
class _PathIoFailure(FileIoError):
    path: str
    fault: IoFault
    reason: str
    hint: str

    @classmethod
    def from_exception(cls, path: Any, exc: BaseException):
        fault = classify_os_error(exc)
        reason, hint = io_reason_and_hint(fault, str(path), _os_detail(exc))
        return cls(path=str(path), fault=fault, reason=reason, hint=hint)


class ReadFailed(_PathIoFailure):
    pass


class WriteFailed(_PathIoFailure):
    pass


class TempCreateFailed(_PathIoFailure):
    pass


@dataclass(eq=False)
class AtomicReplaceFailed(FileIoError):
    temp_path: str
    final_path: str
    fault: IoFault
    reason: str
    hint: str

    @classmethod
    def from_exception(cls, temp_path: Any, final_path: Any, exc: BaseException) -> "AtomicReplaceFailed":
        fault = classify_os_error(exc)
        reason, hint = io_reason_and_hint(fault, str(final_path), _os_detail(exc))
        return cls(
            temp_path=str(temp_path),
            final_path=str(final_path),
            fault=fault,
            reason=reason,
            hint=hint,
        )


# Parse ------------------------------------------------------------------


@dataclass
class SourceLocation:
    """Where a parse error happened; line and column are None when the parser gives no position."""

    line: Optional[int]
    column: Optional[int]
    file: Optional[str] = None

    def __str__(self) -> str:
        if self.line is None or self.column is None:
            return self.file or "<input>"
        if self.file:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


def offset_to_location(source: str, offset: int) -> Tuple[int, int]:
    """1-based (line, column) of ``offset``, found by counting newlines before it."""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset) + 1
    column = offset - (source.rfind("\n", 0, offset) + 1) + 1
    return line, column


def extract_snippet(source: str, line: int, column: int) -> str:
    """The offending source line with a caret under ``column``."""
    lines = source.splitlines()
    if not 1 <= line <= len(lines):
        return ""
    return lines[line - 1] + "\n" + " " * max(column - 1, 0) + "^"


class ParseError(CfgError):
    category = ErrorCategory.PARSE


@dataclass(eq=False)
class UnexpectedToken(ParseError):
    format: ConfigFormat
    location: SourceLocation
    expected: str
    found: str
    snippet: str


@dataclass(eq=False)
class UnexpectedEof(ParseError):
    format: ConfigFormat
    location: SourceLocation
    snippet: str


@dataclass(eq=False)
class UnterminatedString(ParseError):
    format: ConfigFormat
    location: SourceLocation
    snippet: str


@dataclass(eq=False)
class InvalidEscape(ParseError):
    format: ConfigFormat
    location: SourceLocation
    detail: str
    snippet: str


@dataclass(eq=False)
class TrailingContent(ParseError):
    format: ConfigFormat
    location: SourceLocation
    snippet: str


@dataclass(eq=False)
class InvalidSyntax(ParseError):
    format: ConfigFormat
    location: SourceLocation
    detail: str
    snippet: str


# Path -------------------------------------------------------------------


class PathError(CfgError):
    category = ErrorCategory.PATH


@dataclass(eq=False)
class EmptyPath(PathError):
    pass


@dataclass(eq=False)
class NotAnObject(PathError):
    prefix: ValuePath
    key: str
    found: TypeKind


@dataclass(eq=False)
class NotAnArray(PathError):
    prefix: ValuePath
    index: int
    found: TypeKind


@dataclass(eq=False)
class NotAContainer(PathError):
    prefix: ValuePath
    found: TypeKind


@dataclass(eq=False)
class KeyNotFound(PathError):
    prefix: ValuePath
    key: str
    suggestion: Optional[str] = None


@dataclass(eq=False)
class IndexOutOfBounds(PathError):
    prefix: ValuePath
    index: int
    length: int


SUGGESTION_CUTOFF = 0.6


def suggest(needle: str, candidates: List[str]) -> Optional[str]:
    """Closest-looking candidate for a "did you mean" hint, or None if nothing is close."""
    matches = difflib.get_close_matches(needle, candidates, n=1, cutoff=SUGGESTION_CUTOFF)
    return matches[0] if matches else None


# Type / not supported ---------------------------------------------------


class ValueTypeError(CfgError):
    category = ErrorCategory.TYPE


@dataclass(eq=False)
class TypeMismatch(ValueTypeError):
    path: ValuePath
    expected: TypeKind
    found: TypeKind


class NotSupportedError(CfgError):
    category = ErrorCategory.NOT_SUPPORTED


@dataclass(eq=False)
class NotSupportedOption(NotSupportedError):
    option: str
    hint: str


@dataclass(eq=False)
class NotSupportedFormat(NotSupportedError):
    format: str
    op: str
    hint: str


# Presentation -----------------------------------------------------------


def _at(path: Any) -> str:
    text = str(path)
    return text if text else "<root>"


def _fmt_name(fmt: Any) -> str:
    return getattr(fmt, "name", str(fmt))


def _parse_head(e: Any) -> str:
    return f"ParseError: {_fmt_name(e.format)} parse error at {e.location}"


def _with_snippet(head: str, snippet: str) -> str:
    return f"{head}\n{snippet}" if snippet else head


def _key_not_found(e: KeyNotFound) -> str:
    msg = f"PathError: key not found at {_at(e.prefix)}: missing key `{e.key}`"
    if e.suggestion:
        msg += f" (did you mean `{e.suggestion}`?)"
    return msg


_TEMPLATES: Dict[Type[CfgError], Callable[[Any], str]] = {
    MissingFlag: lambda e: f"UsageError: missing required flag {e.flag}. {e.hint}",
    InvalidChoice: lambda e: (
        f"UsageError: invalid value {e.provided!r} for {e.flag}. "
        f"Valid options: {', '.join(e.valid)}. Example: {e.flag} {e.valid[0]}"
    ),
    ConflictingFlags: lambda e: f"UsageError: flags {e.a} and {e.b} cannot be used together. {e.hint}",
    MissingArgument: lambda e: f"UsageError: missing argument {e.name}. Example: {e.example}",
    InvalidPathSyntax: lambda e: (
        f"UsageError: invalid key-path syntax: {e.input!r} ({e.reason} at position {e.position}). "
        f"Example: {e.example}"
    ),
    SettingsError: lambda e: f"UsageError: invalid settings in {e.path}: {e.reason}",
    ReadFailed: lambda e: f"FileIoError: could not read {e.path}: {e.reason}. {e.hint}",
    WriteFailed: lambda e: f"FileIoError: could not write {e.path}: {e.reason}. {e.hint}",
    TempCreateFailed: lambda e: f"FileIoError: could not create temp file near {e.path}: {e.reason}. {e.hint}",
    AtomicReplaceFailed: lambda e: (
        f"FileIoError: could not atomically replace {e.final_path} (from {e.temp_path}): "
        f"{e.reason}. {e.hint}"
    ),
    UnexpectedToken: lambda e: _with_snippet(
        f"{_parse_head(e)}: unexpected token: expected {e.expected}, found {e.found}", e.snippet
    ),
    UnexpectedEof: lambda e: _with_snippet(f"{_parse_head(e)}: unexpected end of input", e.snippet),
    UnterminatedString: lambda e: _with_snippet(f"{_parse_head(e)}: unterminated string literal", e.snippet),
    InvalidEscape: lambda e: _with_snippet(f"{_parse_head(e)}: invalid escape sequence: {e.detail}", e.snippet),
    TrailingContent: lambda e: _with_snippet(f"{_parse_head(e)}: trailing content after document", e.snippet),
    InvalidSyntax: lambda e: _with_snippet(f"{_parse_head(e)}: {e.detail}", e.snippet),
    EmptyPath: lambda e: "PathError: empty path is not allowed",
    NotAnObject: lambda e: (
        f"PathError: not an object at {_at(e.prefix)}: cannot access key `{e.key}` on {e.found}"
    ),
    NotAnArray: lambda e: (
        f"PathError: not an array at {_at(e.prefix)}: cannot access index [{e.index}] on {e.found}"
    ),
    NotAContainer: lambda e: (
        f"PathError: not a container at {_at(e.prefix)}: cannot list children of a {e.found}"
    ),
    KeyNotFound: _key_not_found,
    IndexOutOfBounds: lambda e: (
        f"PathError: index out of bounds at {_at(e.prefix)}: index {e.index} >= len {e.length}"
    ),
    TypeMismatch: lambda e: f"TypeError: type mismatch at {_at(e.path)}: expected {e.expected}, found {e.found}",
    NotSupportedOption: lambda e: f"NotSupportedError: option not supported: {e.option}. {e.hint}",
    NotSupportedFormat: lambda e: f"NotSupportedError: not supported for format {e.format}: {e.op}. {e.hint}",
}


def format_error_message(error: CfgError) -> str:
    """Render any taxonomy error; only parse errors span more than one line."""
    return _TEMPLATES[type(error)](error)


def suggest_troubleshooting_steps(error: CfgError) -> List[str]:
    """Suggest follow-up commands for an error, most useful first."""
    suggestions: List[str] = []

    if isinstance(error, (KeyNotFound, IndexOutOfBounds, NotAnObject, NotAnArray, NotAContainer)):
        prefix = str(error.prefix)
        suggestions.append(f"List what exists at that level: cfgctl --file <FILE> list {prefix}".rstrip())
        if isinstance(error, KeyNotFound) and error.suggestion:
            suggestions.append(f"Check the key spelling; a close match is `{error.suggestion}`")
        suggestions.append("Remember that array positions use [n], not .n")
    elif isinstance(error, TypeMismatch):
        suggestions.extend([
            f"Read the current value first: cfgctl --file <FILE> read {error.path}",
            f"Pass a {error.expected} literal (strings need no quotes, JSON objects do)",
        ])
    elif isinstance(error, ParseError):
        suggestions.extend([
            "Fix the syntax error shown above and re-run",
            "Pass --format explicitly if the file extension is misleading",
        ])
    elif isinstance(error, FileIoError):
        suggestions.append(error.hint)
        if error.fault is IoFault.NOT_FOUND:
            suggestions.append("Use an absolute path or check the current directory")
    elif isinstance(error, UsageError):
        suggestions.append("Run 'cfgctl --help' to see the accepted options")
    elif isinstance(error, NotSupportedError):
        suggestions.append("Drop the unsupported option or edit the file by hand")

    if not suggestions:
        suggestions.append("Re-run with -v/--verbose for more details")

    return suggestions
