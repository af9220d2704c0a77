"""Storage error kinds."""


class StorageError(Exception):
    """Custom exception for store operations"""
    pass


class SourceAlreadyExists(StorageError):
    """Raised by create_source for a name that is already registered."""

    def __init__(self, name: str):
        super().__init__(f"source already exists: {name}")
        self.name = name


class SourceNotFound(StorageError):
    def __init__(self, name: str):
        super().__init__(f"source not found: {name}")
        self.name = name


class StoreUnavailable(StorageError):
    """The store could not start a transaction (locked database, lost connection). Safe to retry."""
