from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from cfgctl.cli import cli

TOML = """\
# service settings
servers = [{ host = "a", port = 8080 }]

[network]
timeout = 500 # ms
"""


def write_json(tmp_path: Path, data=None, name: str = "conf.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps({"network": {"timeout": 500}} if data is None else data, indent=2) + "\n")
    return path


def write_toml(tmp_path: Path, text: str = TOML, name: str = "conf.toml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def run(path: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--file", str(path), *args])  # type: ignore[arg-type]


def test_read_json_value(tmp_path):
    res = run(write_json(tmp_path), "read", "network.timeout")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "500"


def test_set_toml_inline_table_value(tmp_path):
    path = write_toml(tmp_path)
    res = run(path, "set", "servers[0].host=localhost")
    assert res.exit_code == 0, res.output

    res = run(path, "read", "servers[0].host")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "localhost"
    text = path.read_text()
    assert text.startswith("# service settings\n")
    assert "timeout = 500 # ms" in text


def test_read_missing_key(tmp_path):
    res = run(write_json(tmp_path), "read", "network.missing")
    assert res.exit_code == 4
    assert "PathError: key not found at network: missing key `missing`" in res.output


def test_read_missing_key_without_false_hint(tmp_path):
    res = run(write_json(tmp_path), "read", "network.missing")
    assert res.exit_code == 4
    assert "did you mean" not in res.output


def test_set_nan_on_float_is_rejected(tmp_path):
    path = write_json(tmp_path, {"ratio": 0.5})
    before = path.read_text()
    res = run(path, "set", "ratio", "NaN")
    assert res.exit_code == 5
    assert "expected float, found string" in res.output
    assert path.read_text() == before


def test_json_file_with_nan_is_a_parse_error(tmp_path):
    path = tmp_path / "conf.json"
    path.write_text('{"x": NaN}\n')
    res = run(path, "read", "x")
    assert res.exit_code == 3
    assert "NaN is not a finite JSON number" in res.output


def test_toml_nan_has_no_json_output(tmp_path):
    path = write_toml(tmp_path, "x = nan\n")
    runner = CliRunner()
    res = runner.invoke(cli, ["--json-output", "--file", str(path), "read", "x"])  # type: ignore[arg-type]
    assert res.exit_code == 6
    assert "NotSupportedError" in res.output

    res = run(path, "read", "x")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "nan"


def test_delete_then_read(tmp_path):
    path = write_json(tmp_path)
    res = run(path, "delete", "network.timeout")
    assert res.exit_code == 0, res.output
    assert json.loads(path.read_text()) == {"network": {}}

    res = run(path, "read", "network.timeout")
    assert res.exit_code == 4
    assert "key not found" in res.output


def test_set_with_separate_value(tmp_path):
    path = write_toml(tmp_path)
    res = run(path, "set", "network.timeout", "1500")
    assert res.exit_code == 0, res.output
    assert "timeout = 1500 # ms" in path.read_text()


def test_set_json_keeps_indent(tmp_path):
    path = write_json(tmp_path, {"a": 1, "b": [1, 2]})
    res = run(path, "set", "a", "2")
    assert res.exit_code == 0, res.output
    assert path.read_text() == json.dumps({"a": 2, "b": [1, 2]}, indent=2) + "\n"


def test_settings_indent_used_for_unindented_json(tmp_path, monkeypatch):
    settings = tmp_path / "settings.yaml"
    settings.write_text("json_indent: 4\n")
    monkeypatch.setenv("CFGCTL_CONFIG", str(settings))
    path = tmp_path / "flat.json"
    path.write_text('{\n"a": 1,\n"b": 2\n}\n')

    res = run(path, "set", "a", "3")
    assert res.exit_code == 0, res.output
    assert path.read_text() == '{\n    "a": 3,\n    "b": 2\n}\n'


def test_set_type_mismatch_leaves_file(tmp_path):
    path = write_toml(tmp_path)
    res = run(path, "set", "network.timeout", "fast")
    assert res.exit_code == 5
    assert "TypeError: type mismatch at network.timeout: expected int, found string" in res.output
    assert path.read_text() == TOML


def test_set_coerce_not_supported(tmp_path):
    path = write_json(tmp_path)
    res = run(path, "set", "--coerce", "network.timeout", "1")
    assert res.exit_code == 6
    assert "NotSupportedError" in res.output


def test_set_without_value(tmp_path):
    res = run(write_json(tmp_path), "set", "network.timeout")
    assert res.exit_code == 2
    assert "missing argument VALUE" in res.output


def test_format_conflicts_with_extension(tmp_path):
    res = run(write_json(tmp_path), "--format", "toml", "read", "network.timeout")
    assert res.exit_code == 2
    assert "cannot be used together" in res.output


def test_unknown_extension_requires_format(tmp_path):
    path = write_json(tmp_path, name="app.conf")
    res = run(path, "read", "network.timeout")
    assert res.exit_code == 2
    assert "--format" in res.output

    res = run(path, "--format", "json", "read", "network.timeout")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "500"


def test_extension_mapping_from_settings(tmp_path, monkeypatch):
    settings = tmp_path / "settings.yaml"
    settings.write_text("extensions:\n  conf: toml\n")
    monkeypatch.setenv("CFGCTL_CONFIG", str(settings))
    path = write_toml(tmp_path, name="app.conf")

    res = run(path, "read", "network.timeout")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "500"


def test_missing_file(tmp_path):
    res = run(tmp_path / "absent.toml", "read", "a")
    assert res.exit_code == 3
    assert "FileIoError: could not read" in res.output


def test_parse_error_shows_caret(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text('{\n  "a": 1,\n  "b": }\n')
    res = run(path, "read", "a")
    assert res.exit_code == 3
    assert "ParseError: JSON parse error at" in res.output
    assert "       ^" in res.output


def test_invalid_key_path(tmp_path):
    res = run(write_json(tmp_path), "read", "network[x]")
    assert res.exit_code == 2
    assert "invalid key-path syntax" in res.output


def test_list_table(tmp_path):
    path = write_json(tmp_path, {"network": {"timeout": 500, "hosts": ["a"]}})
    res = run(path, "list", "network")
    assert res.exit_code == 0, res.output
    assert "KEY" in res.output and "TYPE" in res.output
    assert "timeout" in res.output and "int" in res.output
    assert "hosts" in res.output and "array" in res.output


def test_list_root_json_output(tmp_path):
    path = write_toml(tmp_path)
    runner = CliRunner()
    res = runner.invoke(cli, ["--json-output", "--file", str(path), "ls"])  # type: ignore[arg-type]
    assert res.exit_code == 0, res.output
    data = json.loads(res.output)
    assert data == {
        "path": "",
        "children": [
            {"key": "servers", "type": "array"},
            {"key": "network", "type": "object"},
        ],
    }


def test_list_array_json_output(tmp_path):
    path = write_toml(tmp_path)
    runner = CliRunner()
    res = runner.invoke(cli, ["--json-output", "--file", str(path), "list", "servers"])  # type: ignore[arg-type]
    assert res.exit_code == 0, res.output
    assert json.loads(res.output)["children"] == [{"key": 0, "type": "object"}]


def test_list_empty_container(tmp_path):
    res = run(write_json(tmp_path, {"empty": {}}), "list", "empty")
    assert res.exit_code == 0, res.output
    assert "No entries found" in res.output


def test_list_scalar(tmp_path):
    res = run(write_json(tmp_path), "list", "network.timeout")
    assert res.exit_code == 4
    assert "not a container" in res.output


def test_get_and_rm_aliases(tmp_path):
    path = write_toml(tmp_path)
    res = run(path, "get", "network.timeout")
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "500"

    res = run(path, "rm", "servers[0]")
    assert res.exit_code == 0, res.output
    res = run(path, "list", "servers")
    assert res.exit_code == 0, res.output
    assert "No entries found" in res.output


def test_read_object_json_output(tmp_path):
    path = write_toml(tmp_path)
    runner = CliRunner()
    res = runner.invoke(cli, ["--json-output", "--file", str(path), "read", "servers"])  # type: ignore[arg-type]
    assert res.exit_code == 0, res.output
    assert json.loads(res.output) == [{"host": "a", "port": 8080}]


def test_verbose_shows_troubleshooting(tmp_path):
    res = run(write_json(tmp_path), "-v", "read", "network.timout")
    assert res.exit_code == 4
    assert "Troubleshooting suggestions:" in res.output
    assert "did you mean `timeout`" in res.output
