# -*- coding: utf-8 -*-
"""Exceptions raised by adam."""


class AdamError(Exception):
    """Base class for every error raised by adam."""


class StorageError(AdamError):
    """A file system operation (write, rename, remove) failed."""


class CacheError(AdamError):
    """The underlying key-value store failed to open, read or write."""


class EntryNotFound(AdamError, KeyError):
    """A required index entry does not exist."""

    def __str__(self):
        return Exception.__str__(self)


class InconsistencyError(AdamError):
    """Disk state and indices disagree in a way that blocks the operation."""


class SnapshotError(AdamError):
    """A snapshot file could not be read or decoded."""


class IndexUpdateError(AdamError):
    """The file tree was changed but one or more index updates failed.

    Attributes:
        errors: Every index failure collected during the operation.
        record: The :class:`FileRecord` produced by the operation, if any.
    """

    def __init__(self, message, errors, record=None):
        super(IndexUpdateError, self).__init__(message)
        self.errors = list(errors)
        self.record = record

    def __str__(self):
        detail = "; ".join(str(e) for e in self.errors)
        return "{0}: {1}".format(self.args[0], detail) if detail else self.args[0]


class IterationDone(Exception):
    """Raised by a fold visitor to stop iterating. Not an error."""
