# -*- coding: utf-8 -*-
"""Backup and restore of the indices as JSON snapshot files.

A snapshot is a JSON array of objects with ``path``, ``checksum`` (may be
``null``) and ``identifier`` keys, as produced by :meth:`FileStore.dump`.
"""

import json
from typing import IO, Iterable, List, Union

from .exceptions import SnapshotError
from .models import FileRecord


def loads(text: Union[str, bytes]) -> List[FileRecord]:
    """Decode a snapshot document into records."""
    try:
        entries = json.loads(text)
    except ValueError as exc:
        raise SnapshotError("Invalid snapshot: {0}".format(exc)) from exc

    if not isinstance(entries, list):
        raise SnapshotError("Invalid snapshot: expected a list of files")

    records = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise SnapshotError("Invalid snapshot entry #{0}: {1!r}"
                                .format(index, entry))
        try:
            records.append(FileRecord.from_dict(entry))
        except (KeyError, TypeError) as exc:
            raise SnapshotError("Invalid snapshot entry #{0}: {1}"
                                .format(index, exc)) from exc
    return records


def dumps(records: Iterable[FileRecord]) -> str:
    """Encode `records` as a snapshot document."""
    return json.dumps([record.as_dict() for record in records], indent=2)


def load_snapshot(path: str) -> List[FileRecord]:
    """Read the snapshot file at `path`."""
    try:
        with open(path, "rb") as fileobj:
            text = fileobj.read()
    except OSError as exc:
        raise SnapshotError("Cannot read snapshot {0}: {1}".format(path, exc)) from exc
    return loads(text)


def write_snapshot(target: Union[str, IO[str]], records: Iterable[FileRecord]) -> None:
    """Write `records` to a file path or an open text stream."""
    if hasattr(target, "write"):
        target.write(dumps(records))
        target.write("\n")
        return

    with open(target, "w", encoding="utf8") as fileobj:
        write_snapshot(fileobj, records)


def restore_file(store, path: str) -> List[Exception]:
    """Restore the indices of `store` from the snapshot file at `path`.

    A snapshot that cannot be read or decoded is reported as a single error.
    """
    try:
        records = load_snapshot(path)
    except SnapshotError as exc:
        return [exc]
    return store.restore(records)
