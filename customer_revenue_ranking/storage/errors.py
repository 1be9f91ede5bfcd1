"""Exceptions raised by the storage collaborators."""


class StorageError(RuntimeError):
    """Base class for database access failures."""


class DatabaseUnavailableError(StorageError):
    """The database could not be reached or failed its health check."""


class DataLoadError(StorageError):
    """Loading one of the source artifacts failed."""

    def __init__(self, artifact: str, message: str) -> None:
        super().__init__(f"Error loading {artifact}: {message}")
        self.artifact = artifact


class ExportError(StorageError):
    """Writing or reading an export table failed."""
