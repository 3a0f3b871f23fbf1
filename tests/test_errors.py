from __future__ import annotations

import pytest

from cfglib.errors import (
    AtomicReplaceFailed,
    CfgError,
    ConflictingFlags,
    EmptyPath,
    IndexOutOfBounds,
    InvalidChoice,
    InvalidPathSyntax,
    IoFault,
    KeyNotFound,
    MissingArgument,
    MissingFlag,
    NotAContainer,
    NotAnArray,
    NotAnObject,
    NotSupportedFormat,
    NotSupportedOption,
    ReadFailed,
    SettingsError,
    SourceLocation,
    TypeMismatch,
    UnexpectedEof,
    format_error_message,
    suggest,
    suggest_troubleshooting_steps,
)
from cfglib.kinds import ConfigFormat, TypeKind
from cfglib.paths import ValuePath, parse_path

NETWORK = parse_path("network")

SINGLE_LINE = [
    MissingFlag(flag="--format <json|toml>", hint="Pass it."),
    InvalidChoice(provided="yaml", flag="--format", valid=("json", "toml")),
    ConflictingFlags(a="--format toml", b="a '.json' file", hint="Drop one."),
    MissingArgument(name="VALUE", example="cfgctl --file a.toml set a 1"),
    SettingsError(path="/etc/cfgctl.yaml", reason="bad"),
    ReadFailed(path="a.json", fault=IoFault.NOT_FOUND, reason="No such file or directory", hint="Check it."),
    AtomicReplaceFailed(
        temp_path=".a.json.x.tmp",
        final_path="a.json",
        fault=IoFault.PERMISSION_DENIED,
        reason="Permission denied",
        hint="Check permissions.",
    ),
    EmptyPath(),
    NotAnObject(prefix=NETWORK, key="x", found=TypeKind.INT),
    NotAnArray(prefix=NETWORK, index=0, found=TypeKind.OBJECT),
    NotAContainer(prefix=NETWORK, found=TypeKind.STRING),
    KeyNotFound(prefix=NETWORK, key="timout", suggestion="timeout"),
    IndexOutOfBounds(prefix=NETWORK, index=3, length=1),
    TypeMismatch(path=NETWORK, expected=TypeKind.INT, found=TypeKind.STRING),
    NotSupportedOption(option="--coerce", hint="Not yet."),
    NotSupportedFormat(format="toml", op="replacing a table", hint="Edit keys."),
]


@pytest.mark.parametrize("error", SINGLE_LINE, ids=lambda e: type(e).__name__)
def test_messages_are_single_line_and_categorised(error):
    msg = format_error_message(error)
    assert "\n" not in msg
    assert msg == str(error)
    assert msg.split(":", 1)[0] in {
        "UsageError",
        "FileIoError",
        "PathError",
        "TypeError",
        "NotSupportedError",
    }


@pytest.mark.parametrize(
    "error,code",
    [
        (MissingFlag(flag="--format", hint=""), 2),
        (ReadFailed(path="a", fault=IoFault.OTHER, reason="r", hint="h"), 3),
        (UnexpectedEof(format=ConfigFormat.JSON, location=SourceLocation(1, 1), snippet=""), 3),
        (EmptyPath(), 4),
        (TypeMismatch(path=NETWORK, expected=TypeKind.INT, found=TypeKind.BOOL), 5),
        (NotSupportedOption(option="--coerce", hint=""), 6),
    ],
)
def test_exit_codes(error, code):
    assert isinstance(error, CfgError)
    assert error.exit_code == code


def test_key_not_found_message():
    err = KeyNotFound(prefix=NETWORK, key="timout", suggestion="timeout")
    assert str(err) == "PathError: key not found at network: missing key `timout` (did you mean `timeout`?)"


def test_root_prefix_is_named():
    err = KeyNotFound(prefix=ValuePath(), key="x")
    assert str(err) == "PathError: key not found at <root>: missing key `x`"


def test_type_mismatch_message():
    err = TypeMismatch(path=parse_path("servers[0].port"), expected=TypeKind.INT, found=TypeKind.STRING)
    assert str(err) == "TypeError: type mismatch at servers[0].port: expected int, found string"


def test_parse_error_appends_snippet():
    err = UnexpectedEof(format=ConfigFormat.TOML, location=SourceLocation(2, 4, "a.toml"), snippet="a =\n   ^")
    assert str(err) == "ParseError: TOML parse error at a.toml:2:4: unexpected end of input\na =\n   ^"


def test_errors_can_be_raised_and_caught_by_category():
    with pytest.raises(CfgError):
        raise IndexOutOfBounds(prefix=NETWORK, index=1, length=0)


@pytest.mark.parametrize(
    "needle,candidates,expected",
    [
        ("timout", ["retries", "timeout"], "timeout"),
        ("hots", ["hosts", "port"], "hosts"),
        ("x", [], None),
        ("missing", ["timeout"], None),
        ("port", ["host", "name"], None),
    ],
)
def test_suggest(needle, candidates, expected):
    assert suggest(needle, candidates) == expected


def test_path_syntax_message_stays_on_one_line():
    err = InvalidPathSyntax(input="a\nb", example="a.b", position=1, reason="unexpected character '\\n'")
    msg = str(err)
    assert "\n" not in msg
    assert msg.startswith("UsageError: invalid key-path syntax: 'a\\nb'")


def test_location_without_position_names_file():
    assert str(SourceLocation(None, None, "a.toml")) == "a.toml"
    assert str(SourceLocation(None, None)) == "<input>"


def test_troubleshooting_for_path_error_names_prefix():
    steps = suggest_troubleshooting_steps(KeyNotFound(prefix=NETWORK, key="timout", suggestion="timeout"))
    assert steps[0] == "List what exists at that level: cfgctl --file <FILE> list network"
    assert any("timeout" in s for s in steps)


def test_troubleshooting_for_io_error_uses_hint():
    err = ReadFailed(path="a", fault=IoFault.NOT_FOUND, reason="r", hint="Check the path")
    assert suggest_troubleshooting_steps(err)[0] == "Check the path"


@pytest.mark.parametrize("error", SINGLE_LINE, ids=lambda e: type(e).__name__)
def test_troubleshooting_never_empty(error):
    assert suggest_troubleshooting_steps(error)
