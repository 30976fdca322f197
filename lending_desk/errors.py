"""Exceptions raised by the lending desk core."""


class LibraryError(Exception):
    """Base class for every failure reported by the core."""


class NotFoundError(LibraryError, LookupError):
    """An id (book, member or active loan) is unknown."""


class ConflictError(LibraryError, ValueError):
    """A record with the same id already exists."""


class InvalidStateError(LibraryError, ValueError):
    """The operation is blocked by the current copy counts or loans."""


class MalformedRecordError(LibraryError, ValueError):
    """A persisted line could not be parsed into a record."""


class StorageError(LibraryError):
    """A data file could not be read or written."""

    def __init__(self, message: str, path=None) -> None:
        super().__init__(message)
        self.path = path
