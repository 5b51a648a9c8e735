# -*- coding: utf-8 -*-


"""
common utils for adam
"""


import hashlib
import threading
from typing import List, Union

import fs as pyfs
from fs.base import FS
from fs.osfs import OSFS


def to_bytes(text) -> bytes:
    if not isinstance(text, bytes):
        text = bytes(text, "utf8")
    return text


def load_fs(root: Union[FS, str]) -> FS:
    """Return `root` if it already is a filesystem, else open the directory
    at `root` as an :class:`OSFS`, creating it when missing.
    """
    if isinstance(root, FS):
        return root

    return OSFS(root, create=True)


def normpath(path: str) -> str:
    """Normalize `path` into the relative, ``/`` separated form used as an
    index key. Raises :class:`fs.errors.IllegalBackReference` for paths that
    climb out of the store root.
    """
    return pyfs.path.relpath(pyfs.path.normpath(path.replace("\\", "/")))


def sha256sum(content: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of `content`."""
    return hashlib.sha256(content).hexdigest()


def sha256stream(stream, chunk_size: int = 64 * 1024) -> str:
    """Return the SHA-256 hex digest of a binary `stream`, read in chunks."""
    digest = hashlib.sha256()
    for data in iter(lambda: stream.read(chunk_size), b""):
        digest.update(data)
    return digest.hexdigest()


def has_prefix(path: str, prefix: str) -> bool:
    """Return whether `path` is `prefix` itself or lives under it.

    Matching is done on whole path components so that ``dir`` doesn't match
    ``dir2/file``. An empty prefix is the store root and matches everything.
    """
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


def replace_prefix(path: str, old: str, new: str) -> str:
    """Rewrite the leading `old` component run of `path` to `new`."""
    if not old:
        return pyfs.path.join(new, path) if new else path
    return new + path[len(old):]


class ResultList(object):
    """Append-only list shared between the workers of one bulk request.

    Each :meth:`append` is atomic; :meth:`snapshot` returns a copy of what
    has been collected so far.
    """

    def __init__(self):
        self._items = []
        self._lock = threading.Lock()

    def append(self, *items) -> None:
        with self._lock:
            self._items.extend(items)

    def snapshot(self) -> List:
        with self._lock:
            return list(self._items)

    def __iter__(self):
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
