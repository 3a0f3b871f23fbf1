from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Optional, Tuple

import click
from tabulate import tabulate

import cfglib.navigator as navigator
from cfglib.config import Settings, load_settings
from cfglib.documents import ConfigDocument, load_document, resolve_format, save_document
from cfglib.errors import (
    CfgError,
    MissingArgument,
    NotSupportedFormat,
    format_error_message,
    suggest_troubleshooting_steps,
)
from cfglib.paths import Index, parse_path


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--file",
    "file_path",
    required=True,
    metavar="PATH",
    type=click.Path(path_type=Path),
    help="Path to the config file",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["json", "toml"], case_sensitive=False),
    help="Format of the config file; inferred from the extension when omitted",
)
@click.option(
    "--json-output",
    "json_output",
    is_flag=True,
    help="Output JSON instead of plain text/tables (pretty-printed)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose logging to stderr (what the CLI is doing)",
)
@click.pass_context
def cli(ctx: click.Context, file_path: Path, fmt: Optional[str], json_output: bool, verbose: bool) -> None:
    """Read and edit JSON and TOML config files.

    KEY_PATH addresses a value with dots for keys and brackets for array
    positions, e.g. network.timeout or servers[0].host. TOML files keep their
    comments and layout when edited.
    """
    ctx.ensure_object(dict)
    ctx.obj["file"] = file_path
    ctx.obj["format"] = fmt
    ctx.obj["json"] = json_output
    ctx.obj["verbose"] = verbose

    # Configure logging once per process
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _fail(ctx: click.Context, error: CfgError) -> None:
    click.echo(format_error_message(error), err=True)
    if ctx.obj.get("verbose"):
        suggestions = suggest_troubleshooting_steps(error)
        if suggestions:
            click.echo("\nTroubleshooting suggestions:", err=True)
            for suggestion in suggestions[:3]:  # Show top 3 suggestions
                click.echo(f"  • {suggestion}", err=True)
    raise SystemExit(error.exit_code)


def _load(ctx: click.Context, log: logging.Logger) -> Tuple[ConfigDocument, Settings]:
    settings = load_settings()
    path: Path = ctx.obj["file"]
    fmt = resolve_format(path, ctx.obj.get("format"), settings.extensions)
    log.info("Loading %s as %s", path, fmt)
    document = load_document(path, fmt)
    return document, settings


def _json_default(o: Any) -> Any:
    if isinstance(o, (dt.date, dt.time)):
        return o.isoformat()
    return str(o)


@cli.command("read")
@click.argument("key_path")
@click.pass_context
def read_cmd(ctx: click.Context, key_path: str) -> None:
    """Print the value at KEY_PATH."""
    log = logging.getLogger("cfgctl.read")
    try:
        path = parse_path(key_path)
        document, _ = _load(ctx, log)
        log.info("Resolving %s", path)
        if ctx.obj.get("json"):
            value = navigator.read_plain(document, path)
            try:
                out = json.dumps(value, indent=2, default=_json_default, allow_nan=False)
            except ValueError as e:
                # TOML allows nan and inf, JSON does not
                raise NotSupportedFormat(
                    format="json",
                    op="printing NaN or Infinity",
                    hint="Read the value without --json-output.",
                ) from e
            click.echo(out)
            return
        text = navigator.read_value(document, path)
    except CfgError as e:
        _fail(ctx, e)
        return

    click.echo(text)


@cli.command("set")
@click.argument("key_path")
@click.argument("value", required=False)
@click.option("--coerce", is_flag=True, help="Convert VALUE to the existing type (not supported)")
@click.pass_context
def set_cmd(ctx: click.Context, key_path: str, value: Optional[str], coerce: bool) -> None:
    """Set KEY_PATH to VALUE; the value must keep the existing type.

    KEY_PATH=VALUE is accepted as a single argument.
    """
    log = logging.getLogger("cfgctl.set")
    try:
        if value is None:
            if "=" not in key_path:
                raise MissingArgument(
                    name="VALUE",
                    example="cfgctl --file settings.toml set network.timeout 1500",
                )
            key_path, value = key_path.split("=", 1)

        path = parse_path(key_path)
        document, settings = _load(ctx, log)
        kind = navigator.set_value(document, path, value, coerce=coerce)
        log.info("Updated %s (%s), writing %s", path, kind, document.path)
        save_document(document, settings.json_indent)
    except CfgError as e:
        _fail(ctx, e)


@cli.command("delete")
@click.argument("key_path")
@click.pass_context
def delete_cmd(ctx: click.Context, key_path: str) -> None:
    """Remove the value at KEY_PATH."""
    log = logging.getLogger("cfgctl.delete")
    try:
        path = parse_path(key_path)
        document, settings = _load(ctx, log)
        navigator.delete_value(document, path)
        log.info("Removed %s, writing %s", path, document.path)
        save_document(document, settings.json_indent)
    except CfgError as e:
        _fail(ctx, e)


@cli.command("list")
@click.argument("key_path", required=False)
@click.pass_context
def list_cmd(ctx: click.Context, key_path: Optional[str]) -> None:
    """List keys (optionally under KEY_PATH)."""
    log = logging.getLogger("cfgctl.list")
    try:
        path = parse_path(key_path) if key_path else None
        document, _ = _load(ctx, log)
        if path is None:
            entries = navigator.list_root_entries(document)
        else:
            entries = navigator.list_entries(document, path)
        log.info("Found %d entries", len(entries))
    except CfgError as e:
        _fail(ctx, e)
        return

    if ctx.obj.get("json"):
        out = {
            "path": str(path) if path is not None else "",
            "children": [
                {
                    "key": seg.position if isinstance(seg, Index) else seg.name,
                    "type": str(kind),
                }
                for seg, kind in entries
            ],
        }
        click.echo(json.dumps(out, indent=2))
        return

    if not entries:
        click.echo("No entries found")
        return

    rows = [[str(seg), str(kind)] for seg, kind in entries]
    log.info("Rendering %d entries", len(rows))
    click.echo(tabulate(rows, headers=["KEY", "TYPE"]))


cli.add_command(read_cmd, "get")
cli.add_command(delete_cmd, "rm")
cli.add_command(list_cmd, "ls")


def main() -> None:  # entry point
    cli(standalone_mode=True)


if __name__ == "__main__":  # pragma: no cover
    main()
