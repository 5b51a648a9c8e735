# -*- coding: utf-8 -*-
"""adam is a self-hosted file store. What does that mean? Clients upload,
fetch, rename and delete files under a root directory, and adam keeps two
indices in step with that tree:

- a checksum index, ``path -> sha256``, to verify content without reading it.
- an identity index, ``identifier -> path``, so that a file can be addressed
  by an identifier that survives renames.

The indices live in small embedded key-value stores (SQLite or LevelDB) and
can be dumped to and restored from JSON snapshots.
"""

from .__meta__ import (
    __title__,
    __summary__,
    __version__,
    __author__,
    __license__,
)

from .cache import Cache, LevelDBCache, MemoryCache, SQLiteCache, open_cache
from .filestore import FileStore
from .models import FileRecord


__all__ = (
    "Cache",
    "FileRecord",
    "FileStore",
    "LevelDBCache",
    "MemoryCache",
    "SQLiteCache",
    "open_cache",
)
