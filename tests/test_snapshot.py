# -*- coding: utf-8 -*-

import io
import json

import pytest
from fs.memoryfs import MemoryFS

import adam
from adam import snapshot
from adam.exceptions import SnapshotError
from adam.models import FileRecord


@pytest.fixture
def records():
    return [
        FileRecord("a.txt", "a" * 64, "id-a"),
        FileRecord("dir/b.txt", None, "id-b"),
    ]


@pytest.fixture
def store(tmpdir):
    return adam.FileStore(
        MemoryFS(),
        adam.MemoryCache(str(tmpdir.join("ids"))),
        adam.MemoryCache(str(tmpdir.join("sha256sum"))),
    )


def test_dumps_loads(records):
    text = snapshot.dumps(records)

    assert json.loads(text)[0] == {"path": "a.txt", "checksum": "a" * 64,
                                   "identifier": "id-a"}
    assert snapshot.loads(text) == records


def test_loads_optional_checksum():
    text = json.dumps([{"path": "a.txt", "identifier": "id-a"}])

    assert snapshot.loads(text) == [FileRecord("a.txt", None, "id-a")]


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        json.dumps({"path": "a.txt"}),
        json.dumps(["a.txt"]),
        json.dumps([{"path": "a.txt"}]),
        json.dumps([{"path": "", "identifier": "id"}]),
        json.dumps([{"path": "a.txt", "identifier": 3}]),
        json.dumps([{"path": "a.txt", "identifier": "id", "checksum": 3}]),
    ],
)
def test_loads_invalid(text):
    with pytest.raises(SnapshotError):
        snapshot.loads(text)


def test_write_and_load_snapshot(tmpdir, records):
    path = str(tmpdir.join("backup.json"))

    snapshot.write_snapshot(path, records)

    assert snapshot.load_snapshot(path) == records


def test_write_snapshot_stream(records):
    stream = io.StringIO()

    snapshot.write_snapshot(stream, records)

    assert snapshot.loads(stream.getvalue()) == records


def test_load_snapshot_missing(tmpdir):
    with pytest.raises(SnapshotError):
        snapshot.load_snapshot(str(tmpdir.join("missing.json")))


def test_restore_file(tmpdir, store, records):
    path = str(tmpdir.join("backup.json"))
    snapshot.write_snapshot(path, records)

    assert snapshot.restore_file(store, path) == []
    assert store.path_of("id-b") == "dir/b.txt"
    assert store.checksum("a.txt") == "a" * 64


def test_restore_file_unreadable(tmpdir, store):
    errors = snapshot.restore_file(store, str(tmpdir.join("missing.json")))

    assert len(errors) == 1
    assert isinstance(errors[0], SnapshotError)


def test_dump_restore_into_fresh_store(tmpdir, store):
    store.store("a.txt", b"a")
    store.store("dir/b.txt", b"b")
    path = str(tmpdir.join("backup.json"))
    records, _ = store.dump()
    snapshot.write_snapshot(path, records)

    fresh = adam.FileStore(
        MemoryFS(),
        adam.MemoryCache(str(tmpdir.join("fresh-ids"))),
        adam.MemoryCache(str(tmpdir.join("fresh-sha256sum"))),
    )

    assert snapshot.restore_file(fresh, path) == []
    assert fresh.dump() == (records, [])
