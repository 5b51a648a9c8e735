# -*- coding: utf-8 -*-
"""Key-value stores backing the identity and checksum indices.

Every operation opens the store, performs a single call and closes it again,
so no handle outlives an operation. Calls against the same location are
serialized by a per-location lock held for the whole open/call/close cycle.
"""

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .exceptions import CacheError, IterationDone

logger = logging.getLogger(__name__)

Visitor = Callable[[bytes, bytes], None]

_locks: Dict[Tuple[str, str], threading.Lock] = {}
_locks_guard = threading.Lock()


def _location_lock(kind: str, location: str) -> threading.Lock:
    with _locks_guard:
        return _locks.setdefault((kind, location), threading.Lock())


class Cache(object):
    """Persistent map from byte keys to byte values.

    Subclasses provide :meth:`_connect` plus the primitive ``_put``,
    ``_get``, ``_delete`` and ``_iterate`` calls.

    Attributes:
        location: Where the store lives. A directory or file path for disk
            backends, a plain name for :class:`MemoryCache`.
    """

    #: Exceptions from the backing library that are reported as CacheError.
    errors: Tuple[type, ...] = (OSError,)

    def __init__(self, location: str):
        self.location = location
        self._lock = _location_lock(type(self).__name__, self._lock_key())

    def __repr__(self):
        return "{0}({1!r})".format(type(self).__name__, self.location)

    def put(self, key: bytes, value: bytes) -> None:
        """Store `value` under `key`, replacing any previous value."""
        with self._session("put") as handle:
            self._put(handle, key, value)

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value stored under `key` or ``None`` if there is none."""
        with self._session("get") as handle:
            return self._get(handle, key)

    def delete(self, key: bytes) -> None:
        """Remove `key`. Deleting a key that isn't there is not an error."""
        with self._session("delete") as handle:
            self._delete(handle, key)

    def fold(self, visitor: Visitor) -> None:
        """Call ``visitor(key, value)`` for every stored pair, in no particular
        order, over a point-in-time view of the store.

        The visitor stops the iteration early by raising
        :class:`IterationDone`; ``fold`` then returns normally. The visitor
        must not call back into this same cache.
        """
        with self._session("fold") as handle:
            pairs = self._iterate(handle)
            try:
                for key, value in pairs:
                    visitor(key, value)
            except IterationDone:
                return
            finally:
                pairs.close()

    def items(self) -> List[Tuple[bytes, bytes]]:
        """Return every stored pair."""
        pairs = []
        self.fold(lambda key, value: pairs.append((key, value)))
        return pairs

    @contextmanager
    def _session(self, operation: str):
        with self._lock:
            try:
                with self._connect() as handle:
                    yield handle
            except self.errors as exc:
                raise CacheError("{0} {1}: {2}"
                                 .format(self.location, operation, exc)) from exc

    def _lock_key(self) -> str:
        return os.path.abspath(self.location)

    def _connect(self):  # pragma: no cover
        raise NotImplementedError

    def _put(self, handle, key: bytes, value: bytes) -> None:  # pragma: no cover
        raise NotImplementedError

    def _get(self, handle, key: bytes) -> Optional[bytes]:  # pragma: no cover
        raise NotImplementedError

    def _delete(self, handle, key: bytes) -> None:  # pragma: no cover
        raise NotImplementedError

    def _iterate(self, handle) -> Iterator[Tuple[bytes, bytes]]:  # pragma: no cover
        raise NotImplementedError


class LevelDBCache(Cache):
    """LevelDB store through plyvel. `location` is the database directory.

    LevelDB allows a single open handle per process, which the per-location
    lock guarantees.
    """

    def __init__(self, location: str):
        import plyvel

        self._plyvel = plyvel
        self.errors = (plyvel.Error, OSError)
        super(LevelDBCache, self).__init__(location)
        os.makedirs(os.path.dirname(os.path.abspath(location)), exist_ok=True)

    @contextmanager
    def _connect(self):
        db = self._plyvel.DB(self.location, create_if_missing=True)
        try:
            yield db
        finally:
            db.close()

    def _put(self, db, key, value):
        db.put(key, value)

    def _get(self, db, key):
        return db.get(key)

    def _delete(self, db, key):
        db.delete(key)

    def _iterate(self, db):
        with db.snapshot() as snapshot:
            with snapshot.iterator() as it:
                for key, value in it:
                    yield key, value


class SQLiteCache(Cache):
    """Single-file SQLite store. `location` is the database file."""

    errors = (sqlite3.Error, OSError)

    #: Seconds to wait on a database locked by another process.
    timeout = 30.0

    def __init__(self, location: str):
        super(SQLiteCache, self).__init__(location)
        os.makedirs(os.path.dirname(os.path.abspath(location)), exist_ok=True)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.location, timeout=self.timeout)
        try:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                "key BLOB PRIMARY KEY, value BLOB NOT NULL)"
            )
            with conn:
                yield conn
        finally:
            conn.close()

    def _put(self, conn, key, value):
        conn.execute(
            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
            (bytes(key), bytes(value)),
        )

    def _get(self, conn, key):
        row = conn.execute(
            "SELECT value FROM kv WHERE key = ?", (bytes(key),)
        ).fetchone()
        return bytes(row[0]) if row is not None else None

    def _delete(self, conn, key):
        conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))

    def _iterate(self, conn):
        rows = conn.execute("SELECT key, value FROM kv").fetchall()
        for key, value in rows:
            yield bytes(key), bytes(value)


class MemoryCache(Cache):
    """Process-local store. Caches built with the same `location` share their
    contents, mirroring two handles on one database directory.
    """

    _stores: Dict[str, Dict[bytes, bytes]] = {}

    @classmethod
    def clear_all(cls) -> None:
        cls._stores.clear()

    def _lock_key(self):
        return self.location

    @contextmanager
    def _connect(self):
        yield self._stores.setdefault(self.location, {})

    def _put(self, data, key, value):
        data[bytes(key)] = bytes(value)

    def _get(self, data, key):
        return data.get(bytes(key))

    def _delete(self, data, key):
        data.pop(bytes(key), None)

    def _iterate(self, data):
        for key, value in list(data.items()):
            yield key, value


BACKENDS = {
    "leveldb": LevelDBCache,
    "sqlite": SQLiteCache,
    "memory": MemoryCache,
}


def open_cache(backend: str, location: str) -> Cache:
    """Return the cache implementation registered as `backend`."""
    try:
        cls = BACKENDS[backend]
    except KeyError:
        raise ValueError("Unknown cache backend {0!r}, expected one of {1}"
                         .format(backend, ", ".join(sorted(BACKENDS))))

    logger.debug("opening %s cache at %s", backend, location)
    return cls(location)
