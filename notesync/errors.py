"""Error kinds shared by the Notes API and its clients."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


class NoteSyncError(Exception):
    """Base class for failures that cross the API boundary as ``{kind, message}``."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(NoteSyncError):
    """Raised when a note's fields are rejected before persistence."""

    kind = ErrorKind.VALIDATION


class NotFoundError(NoteSyncError):
    """Raised when no note exists with the given id."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, note_id: int):
        self.note_id = note_id
        super().__init__(f'Note with ID "{note_id}" does not exist')


class StorageError(NoteSyncError):
    """Raised when the database cannot complete a query."""

    kind = ErrorKind.STORAGE


class NetworkError(Exception):
    """Raised by the client when the server cannot be reached."""

    def __init__(self, error: Exception):
        self.error = error
        super().__init__(f"Server unreachable: {error}")


class ApiError(Exception):
    """Raised by the client when the server answers with a non-2xx status."""

    def __init__(self, status_code: int, kind: ErrorKind, message: str):
        self.status_code = status_code
        self.kind = kind
        self.message = message
        super().__init__(f"{status_code} {kind.value}: {message}")
