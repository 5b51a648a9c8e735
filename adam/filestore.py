"""Module for FileStore class."""

import io
import logging
import os
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple, Union

import fs as pyfs
from fs.permissions import Permissions

import adam.utils as u
from .cache import Cache
from .exceptions import (
    AdamError,
    CacheError,
    EntryNotFound,
    InconsistencyError,
    IndexUpdateError,
    IterationDone,
    StorageError,
)
from .models import FileRecord

logger = logging.getLogger(__name__)

Errors = List[Exception]


class FileStore(object):
    """File manager that keeps two indices in step with a file tree.

    The identity index maps a stable identifier to the file's current
    relative path; the checksum index maps that path to the SHA-256 of its
    content. Every mutation changes the file tree first and the indices
    afterwards, so a crash or an index failure can leave them stale until the
    next :meth:`repair`. Lookups by path (:meth:`find_identity_by_path`) and
    the prefix rewrites done by :meth:`move` and :meth:`delete` scan the whole
    identity index, so they cost O(index size).

    Attributes:
        root: Directory path or pyfilesystem2 ``FS`` holding the files.
        id_cache: Identity index, ``identifier -> path``.
        hash_cache: Checksum index, ``path -> sha256 hex digest``.
        workers (int, optional): Threads used by :meth:`store_many`.
            Defaults to ``8``.
        dmode (int, optional): Directory mode permission to set for
            created directories. Defaults to ``0o755``.
    """

    def __init__(self,
                 root: Union[pyfs.base.FS, str],
                 id_cache: Cache,
                 hash_cache: Cache,
                 workers: int = 8,
                 dmode: int = 0o755):

        self.fs = u.load_fs(root)
        self.id_cache = id_cache
        self.hash_cache = hash_cache
        self.workers = workers
        self.dmode = dmode

        self._path_locks: Dict[str, threading.Lock] = {}
        self._path_locks_guard = threading.Lock()

    def store(self, path: str, content: bytes) -> FileRecord:
        """Write `content` at `path` and index it.

        Overwriting an existing file keeps its identifier; a new path gets a
        fresh one.

        Returns:
            The stored file's record.

        Raises:
            StorageError: The file could not be written. No index is touched.
            InconsistencyError: The path exists on disk but has no identifier.
            IndexUpdateError: The file was written but an index write failed.
                The record is available as ``exc.record``.
        """
        path = self._relpath(path)

        # Writers of one path must agree on its identifier.
        with self._path_lock(path):
            if self._isdir(path):
                raise StorageError(
                    "Cannot store {0!r}: it is a directory".format(path))

            if self._exists(path):
                identifier = self.find_identity_by_path(path)
                if identifier is None:
                    raise InconsistencyError(
                        "{0!r} exists but has no identifier".format(path))
            else:
                identifier = str(uuid.uuid4())

            self._write(path, content)

            record = FileRecord(path, u.sha256sum(content), identifier)
            errors = self._index(record)

        if errors:
            raise IndexUpdateError("store {0}".format(path), errors, record)

        return record

    def store_many(self, files: Iterable[Tuple[str, bytes]]
                  ) -> Tuple[List[FileRecord], Errors]:
        """Store every ``(path, content)`` pair in parallel.

        Returns once every file has been handled. One failure does not stop
        the others.

        Returns:
            A pair of the stored records and the errors of the failed files.
        """
        records = u.ResultList()
        errors = u.ResultList()

        def task(path, content):
            try:
                records.append(self.store(path, content))
            except (AdamError, ValueError) as exc:
                logger.warning("store %s: %s", path, exc)
                errors.append(exc)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(task, path, content)
                       for path, content in files]

        for future in futures:
            future.result()

        return records.snapshot(), errors.snapshot()

    def delete(self, path: str) -> List[str]:
        """Delete the file or directory at `path` and drop every index entry
        at or under it. A path missing from disk only has its entries
        dropped.

        Returns:
            The paths whose entries were dropped.

        Raises:
            StorageError: The path could not be removed. No index is touched.
            IndexUpdateError: Removal happened but some entries are left.
        """
        prefix = self._relpath(path)
        if not prefix:
            raise ValueError("Refusing to delete the store root")

        try:
            if self.fs.isdir(prefix):
                self.fs.removetree(prefix)
            elif self.fs.exists(prefix):
                self.fs.remove(prefix)
        except pyfs.errors.FSError as exc:
            raise StorageError("delete {0}: {1}".format(prefix, exc)) from exc

        deletable = {}

        def collect(identifier, value):
            if u.has_prefix(value.decode("utf8"), prefix):
                deletable[identifier] = value

        try:
            self.id_cache.fold(collect)
        except CacheError as exc:
            logger.warning("delete %s: %s", prefix, exc)
            raise IndexUpdateError("delete {0}".format(prefix), [exc]) from exc

        errors = []
        for identifier, value in deletable.items():
            for cache, key in ((self.hash_cache, value),
                               (self.id_cache, identifier)):
                try:
                    cache.delete(key)
                except CacheError as exc:
                    logger.warning("delete %s: %s", prefix, exc)
                    errors.append(exc)

        if errors:
            raise IndexUpdateError("delete {0}".format(prefix), errors)

        return sorted(value.decode("utf8") for value in deletable.values())

    def move(self, old_path: str, new_path: str) -> None:
        """Rename a file or directory and rewrite every index entry at or
        under `old_path` to live under `new_path`. Identifiers are kept.

        Raises:
            StorageError: The rename failed. No index is touched.
            IndexUpdateError: The rename happened but some entries are stale.
        """
        old = self._relpath(old_path)
        new = self._relpath(new_path)

        if not old or not new:
            raise ValueError("Cannot move the store root")
        if old == new:
            return
        if u.has_prefix(new, old):
            raise ValueError("Cannot move {0!r} into itself".format(old))

        if not self._exists(old):
            raise StorageError("move {0} -> {1}: {0} not found".format(old, new))
        if self._exists(new):
            raise StorageError("move {0} -> {1}: {1} exists".format(old, new))

        self._makedirs(pyfs.path.dirname(new))
        self._rename(old, new)

        # The two indices are disjoint, rewrite them side by side.
        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [
                executor.submit(self._move_identities, old, new),
                executor.submit(self._move_checksums, old, new),
            ]

        errors = []
        for future in futures:
            errors.extend(future.result())

        if errors:
            raise IndexUpdateError("move {0} -> {1}".format(old, new), errors)

    def move_checksum(self, src: str, dst: str) -> None:
        """Move the checksum entry of exactly one path.

        Raises:
            EntryNotFound: `src` has no checksum entry.
        """
        src = u.to_bytes(self._relpath(src))
        dst = u.to_bytes(self._relpath(dst))

        checksum = self.hash_cache.get(src)
        if checksum is None:
            raise EntryNotFound("No checksum for {0!r}".format(src.decode("utf8")))

        self.hash_cache.delete(src)
        self.hash_cache.put(dst, checksum)

    def find_identity_by_path(self, path: str) -> Optional[str]:
        """Return the identifier whose path is exactly `path`, or ``None``.

        This scans the whole identity index.
        """
        target = u.to_bytes(self._relpath(path))
        found = []

        def match(identifier, value):
            if value == target:
                found.append(identifier)
                raise IterationDone

        self.id_cache.fold(match)

        return found[0].decode("utf8") if found else None

    def restore(self, records: Iterable[FileRecord]) -> Errors:
        """Load `records` into both indices, overwriting existing entries.

        The file tree is neither read nor checked. A record without a
        checksum only restores its identity entry.

        Returns:
            Every failure, one per failed entry.
        """
        errors = []

        for record in records:
            try:
                path = self._relpath(record.path)
            except ValueError as exc:
                errors.append(exc)
                continue

            try:
                self.id_cache.put(u.to_bytes(record.identifier), u.to_bytes(path))
            except CacheError as exc:
                logger.warning("restore identifier for %s: %s", path, exc)
                errors.append(exc)

            if record.checksum is None:
                continue

            try:
                self.hash_cache.put(u.to_bytes(path), u.to_bytes(record.checksum))
            except CacheError as exc:
                logger.warning("restore checksum for %s: %s", path, exc)
                errors.append(exc)

        return errors

    def dump(self) -> Tuple[List[FileRecord], Errors]:
        """Return a record for every identity entry, sorted by path.

        A missing checksum yields a record with ``checksum=None`` and an
        :class:`EntryNotFound` in the errors; a failed checksum read skips
        the record.

        Raises:
            CacheError: The identity index could not be read.
        """
        records = []
        errors = []

        for identifier, path in self.id_cache.items():
            try:
                checksum = self.hash_cache.get(path)
            except CacheError as exc:
                logger.warning("dump %s: %s", path, exc)
                errors.append(exc)
                continue

            if checksum is None:
                errors.append(EntryNotFound(
                    "No checksum for {0!r}".format(path.decode("utf8"))))

            records.append(FileRecord(
                path.decode("utf8"),
                checksum.decode("utf8") if checksum is not None else None,
                identifier.decode("utf8"),
            ))

        records.sort(key=lambda record: record.path)
        return records, errors

    def repair(self) -> List[Tuple[str, FileRecord]]:
        """Reconcile both indices with the files on disk.

        - ``identity``: a file without identifier gets a new one.
        - ``duplicate``: extra identifiers pointing at one file are dropped.
        - ``checksum``: a missing or wrong checksum is recomputed.
        - ``stale``: identifiers of paths that are gone are dropped.
        - ``orphan``: checksums of paths that are gone are dropped.

        Returns:
            ``(reason, record)`` pairs describing what was changed.
        """
        repaired = []

        identities: Dict[str, List[str]] = {}
        for identifier, path in self.id_cache.items():
            identities.setdefault(path.decode("utf8"), []).append(
                identifier.decode("utf8"))

        checksums = {path.decode("utf8"): checksum.decode("utf8")
                     for path, checksum in self.hash_cache.items()}

        on_disk = set()
        for path in self.files():
            on_disk.add(path)
            ids = sorted(identities.get(path, []))

            if not ids:
                ids = [str(uuid.uuid4())]
                self.id_cache.put(u.to_bytes(ids[0]), u.to_bytes(path))
                repaired.append(("identity", FileRecord(path, None, ids[0])))

            for extra in ids[1:]:
                self.id_cache.delete(u.to_bytes(extra))
                repaired.append(("duplicate", FileRecord(path, None, extra)))

            checksum = self._computehash(path)
            if checksums.get(path) != checksum:
                self.hash_cache.put(u.to_bytes(path), u.to_bytes(checksum))
                repaired.append(("checksum", FileRecord(path, checksum, ids[0])))

        for path, ids in identities.items():
            if path in on_disk:
                continue
            for identifier in ids:
                self.id_cache.delete(u.to_bytes(identifier))
                repaired.append(
                    ("stale", FileRecord(path, checksums.get(path), identifier)))
            self.hash_cache.delete(u.to_bytes(path))

        for path, checksum in checksums.items():
            if path not in on_disk and path not in identities:
                self.hash_cache.delete(u.to_bytes(path))
                repaired.append(("orphan", FileRecord(path, checksum, None)))

        return repaired

    def path_of(self, identifier: str) -> Optional[str]:
        """Return the current path of `identifier`, or ``None``."""
        path = self.id_cache.get(u.to_bytes(identifier))
        return path.decode("utf8") if path is not None else None

    def checksum(self, path: str) -> Optional[str]:
        """Return the indexed checksum of `path`, or ``None``."""
        checksum = self.hash_cache.get(u.to_bytes(self._relpath(path)))
        return checksum.decode("utf8") if checksum is not None else None

    def open(self, path: str, mode: str = "rb") -> io.IOBase:
        """Return an open file object for `path`.

        Raises:
            IOError: If file doesn't exist.
        """
        path = self._relpath(path)
        if not self.fs.isfile(path):
            raise IOError("Could not locate file: {0}".format(path))

        return self.fs.open(path, mode)

    def read(self, path: str) -> bytes:
        """Return the content of the file at `path`."""
        with self.open(path) as fileobj:
            return fileobj.read()

    def exists(self, path: str) -> bool:
        """Check whether a given path exists on disk."""
        return self._exists(self._relpath(path))

    def files(self) -> Iterable[str]:
        """Return generator that yields the relative path of every file."""
        for path in self.fs.walk.files():
            yield u.normpath(path)

    def isdir(self, path: str) -> bool:
        """Check whether `path` is a directory on disk."""
        return self._isdir(self._relpath(path))

    def listdir(self, path: str = "") -> List[str]:
        """Return the sorted names in the directory at `path`, directories
        with a trailing ``/``.

        Raises:
            IOError: If `path` is not a directory.
        """
        path = self._relpath(path)
        if not self._isdir(path):
            raise IOError("Could not locate directory: {0}".format(path))

        return sorted(info.name + "/" if info.is_dir else info.name
                      for info in self.fs.scandir(path))

    def __contains__(self, path: str) -> bool:
        return self.exists(path)

    def __iter__(self) -> Iterable[str]:
        return self.files()

    def _index(self, record: FileRecord) -> Errors:
        """Write both index entries of `record`, collecting failures."""
        errors = []
        for cache, key, value in (
                (self.id_cache, record.identifier, record.path),
                (self.hash_cache, record.path, record.checksum)):
            try:
                cache.put(u.to_bytes(key), u.to_bytes(value))
            except CacheError as exc:
                logger.warning("index %s: %s", record.path, exc)
                errors.append(exc)
        return errors

    def _move_identities(self, old: str, new: str) -> Errors:
        affected = {}

        def collect(identifier, value):
            path = value.decode("utf8")
            if u.has_prefix(path, old):
                affected[identifier] = u.replace_prefix(path, old, new)

        try:
            self.id_cache.fold(collect)
        except CacheError as exc:
            logger.warning("move %s: %s", old, exc)
            return [exc]

        errors = []
        for identifier, path in affected.items():
            try:
                self.id_cache.put(identifier, u.to_bytes(path))
            except CacheError as exc:
                logger.warning("move %s: %s", old, exc)
                errors.append(exc)
        return errors

    def _move_checksums(self, old: str, new: str) -> Errors:
        affected = {}

        def collect(key, checksum):
            path = key.decode("utf8")
            if u.has_prefix(path, old):
                affected[key] = (u.replace_prefix(path, old, new), checksum)

        try:
            self.hash_cache.fold(collect)
        except CacheError as exc:
            logger.warning("move %s: %s", old, exc)
            return [exc]

        errors = []
        for key, (path, checksum) in affected.items():
            try:
                self.hash_cache.put(u.to_bytes(path), checksum)
                self.hash_cache.delete(key)
            except CacheError as exc:
                logger.warning("move %s: %s", old, exc)
                errors.append(exc)
        return errors

    def _path_lock(self, path: str) -> threading.Lock:
        with self._path_locks_guard:
            return self._path_locks.setdefault(path, threading.Lock())

    def _rename(self, old: str, new: str) -> None:
        """Rename `old` to `new` in place when the files live on an OS
        file system, otherwise fall back to pyfilesystem2's copying move.
        """
        if self.fs.hassyspath(old):
            try:
                os.rename(self.fs.getsyspath(old), self.fs.getsyspath(new))
            except OSError as exc:
                raise StorageError(
                    "move {0} -> {1}: {2}".format(old, new, exc)) from exc
            return

        try:
            if self.fs.isdir(old):
                self.fs.movedir(old, new, create=True)
            else:
                self.fs.move(old, new)
        except pyfs.errors.FSError as exc:
            raise StorageError("move {0} -> {1}: {2}".format(old, new, exc)) from exc

    def _computehash(self, path: str) -> str:
        """Compute the SHA-256 of the file at `path` without loading it whole."""
        with self.fs.openbin(path) as stream:
            return u.sha256stream(stream)

    def _write(self, path: str, content: bytes) -> None:
        """Physically write `content`, creating parent folders as needed."""
        self._makedirs(pyfs.path.dirname(path))
        try:
            self.fs.writebytes(path, content)
        except pyfs.errors.FSError as exc:
            raise StorageError("write {0}: {1}".format(path, exc)) from exc

    def _makedirs(self, dir_path: str) -> None:
        """Physically create the folder path on disk."""
        if not dir_path:
            return

        try:
            perms = Permissions.create(self.dmode)
            self.fs.makedirs(dir_path, permissions=perms, recreate=True)
        except pyfs.errors.FSError as exc:
            raise StorageError("makedirs {0}: {1}".format(dir_path, exc)) from exc

    def _exists(self, path: str) -> bool:
        try:
            return self.fs.exists(path)
        except pyfs.errors.FSError as exc:
            raise StorageError("exists {0}: {1}".format(path, exc)) from exc

    def _isdir(self, path: str) -> bool:
        try:
            return self.fs.isdir(path)
        except pyfs.errors.FSError as exc:
            raise StorageError("isdir {0}: {1}".format(path, exc)) from exc

    @staticmethod
    def _relpath(path: str) -> str:
        return u.normpath(path)
