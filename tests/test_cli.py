# -*- coding: utf-8 -*-

import json
import os

import pytest
from typer.testing import CliRunner

from adam import __version__
from adam import cli
from adam.cli import app
from adam.config import build_store, load_settings
from adam.snapshot import write_snapshot
from adam.models import FileRecord


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmpdir):
    for name in list(os.environ):
        if name.startswith("ADAM_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("ADAM_CONFIG", str(tmpdir.join("missing.toml")))
    monkeypatch.setenv("ADAM_BASE_DIR", str(tmpdir.join("files")))
    monkeypatch.setenv("ADAM_CACHE_DIR", str(tmpdir.join("cache")))
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store():
    return build_store(load_settings())


def test_version(runner):
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_restore(runner, tmpdir, store):
    path = str(tmpdir.join("backup.json"))
    write_snapshot(path, [FileRecord("a.txt", "a" * 64, "id-a")])

    result = runner.invoke(app, ["restore", path])

    assert result.exit_code == 0
    assert result.output.strip().endswith("ok")
    assert store.path_of("id-a") == "a.txt"


def test_restore_invalid_snapshot(runner, tmpdir):
    path = tmpdir.join("backup.json")
    path.write("not json")

    result = runner.invoke(app, ["restore", str(path)])

    assert result.exit_code == 1


def test_dump_to_file(runner, tmpdir, store):
    record = store.store("a.txt", b"a")
    path = str(tmpdir.join("out.json"))

    result = runner.invoke(app, ["dump", path])

    assert result.exit_code == 0
    with open(path) as fileobj:
        assert json.load(fileobj) == [record.as_dict()]


def test_repair(runner, tmpdir, store):
    tmpdir.join("files", "untracked.txt").write_binary(b"x")

    result = runner.invoke(app, ["repair"])

    assert result.exit_code == 0
    assert "identity\tuntracked.txt" in result.output
    assert "2 entries repaired" in result.output
    assert store.find_identity_by_path("untracked.txt") is not None


def test_cache_dir_flag(runner, tmpdir):
    path = str(tmpdir.join("backup.json"))
    write_snapshot(path, [FileRecord("a.txt", "a" * 64, "id-a")])
    other = tmpdir.join("other-cache")

    result = runner.invoke(app, ["restore", path, "-c", str(other)])

    assert result.exit_code == 0
    assert other.join("ids").check()
