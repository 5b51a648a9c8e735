# -*- coding: utf-8 -*-
"""Records exchanged by the file store, the snapshot files and the API."""

from collections import namedtuple
from typing import Any, Dict, Mapping


class FileRecord(namedtuple("FileRecord", ["path", "checksum", "identifier"])):
    """A stored file: its path relative to the store root, the SHA-256 hex
    digest of its content and the identifier that survives renames.

    ``checksum`` may be ``None`` for records read from a snapshot or dumped
    from an index that lacks the entry.
    """

    def as_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "checksum": self.checksum,
            "identifier": self.identifier,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileRecord":
        """Build a record from a snapshot entry. Raises ``KeyError`` when
        ``path`` or ``identifier`` is missing and ``TypeError`` for non-string
        values.
        """
        path = data["path"]
        identifier = data["identifier"]
        checksum = data.get("checksum") or None

        for name, value in (("path", path), ("identifier", identifier)):
            if not isinstance(value, str) or not value:
                raise TypeError("{0} must be a non-empty string, got {1!r}"
                                .format(name, value))
        if checksum is not None and not isinstance(checksum, str):
            raise TypeError("checksum must be a string, got {0!r}".format(checksum))

        return cls(path=path, checksum=checksum, identifier=identifier)
