# tests/cli/test_cli.py
import json
import os
from pathlib import Path

from typer.testing import CliRunner

from fsresources.cli.app import app

runner = CliRunner()


def test_help_lists_commands():
    res = runner.invoke(app, ["--help"])
    assert res.exit_code == 0
    for command in ("kind", "stat", "cat", "mkfifo", "link", "filters"):
        assert command in res.output


def test_filters_lists_builtins():
    res = runner.invoke(app, ["filters"])
    assert res.exit_code == 0, res.output
    assert "string.rot13" in res.output.splitlines()
    assert "zlib.inflate" in res.output.splitlines()


def test_kind(tmp_path: Path):
    res = runner.invoke(app, ["kind", str(tmp_path)])
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "dir"
    res = runner.invoke(app, ["kind", "memory://", "--verbose"])
    assert res.exit_code == 0, res.output
    assert res.output.strip().endswith("file")


def test_kind_missing_path_exits_1(tmp_path: Path):
    res = runner.invoke(app, ["kind", str(tmp_path / "missing")])
    assert res.exit_code == 1
    assert "Error" in res.output


def test_stat_json(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_bytes(b"12345")
    res = runner.invoke(app, ["stat", str(f), "--json"])
    assert res.exit_code == 0, res.output
    data = json.loads(res.output)
    assert data["size"] == 5
    assert data["kind"] == "file"


def test_stat_text_and_no_follow(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("x")
    os.symlink(f, tmp_path / "l")
    res = runner.invoke(app, ["stat", str(tmp_path / "l")])
    assert res.exit_code == 0, res.output
    assert "kind: file" in res.output
    res = runner.invoke(app, ["stat", str(tmp_path / "l"), "--no-follow"])
    assert "kind: link" in res.output


def test_cat_with_filters(tmp_path: Path):
    f = tmp_path / "msg.txt"
    f.write_bytes(b"Hello")
    res = runner.invoke(app, ["cat", str(f), "--filter", "string.rot13", "-f", "string.toupper"])
    assert res.exit_code == 0, res.output
    assert res.output == "URYYB"


def test_cat_missing_file_and_unknown_filter(tmp_path: Path):
    res = runner.invoke(app, ["cat", str(tmp_path / "missing")])
    assert res.exit_code == 1
    assert "Could not open resource" in res.output

    f = tmp_path / "msg.txt"
    f.write_bytes(b"x")
    res = runner.invoke(app, ["cat", str(f), "--filter", "no.such"])
    assert res.exit_code == 1
    assert "Unable to locate filter" in res.output


def test_mkfifo(tmp_path: Path):
    p = tmp_path / "fifo"
    res = runner.invoke(app, ["mkfifo", str(p), "--permissions", "600"])
    assert res.exit_code == 0, res.output
    assert (os.stat(p).st_mode & 0o777) == 0o600 & ~_umask()
    res = runner.invoke(app, ["mkfifo", str(p)])
    assert res.exit_code == 1
    assert "already exists" in res.output


def test_mkfifo_rejects_non_octal_permissions(tmp_path: Path):
    res = runner.invoke(app, ["mkfifo", str(tmp_path / "p"), "--permissions", "rw-"])
    assert res.exit_code != 0
    assert not (tmp_path / "p").exists()


def test_link(tmp_path: Path):
    target = tmp_path / "t"
    target.write_text("x")
    res = runner.invoke(app, ["link", str(tmp_path / "l"), str(target)])
    assert res.exit_code == 0, res.output
    assert os.readlink(tmp_path / "l") == str(target)
    res = runner.invoke(app, ["link", str(tmp_path / "l"), str(target)])
    assert res.exit_code == 1


def test_bad_configuration_exits_1(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("FSRES_OPEN_POLICY", "sometimes")
    res = runner.invoke(app, ["kind", str(tmp_path)])
    assert res.exit_code == 1
    assert "FSRES_OPEN_POLICY" in res.output


def _umask() -> int:
    current = os.umask(0)
    os.umask(current)
    return current
