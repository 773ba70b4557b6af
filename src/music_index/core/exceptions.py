"""Index store exceptions for error handling."""


class IndexStoreError(Exception):
    """Base exception for index store operations."""

    pass


class StoreOpenError(IndexStoreError):
    """Raised when the database file cannot be opened or created."""

    def __init__(self, db_path, message: str = None):
        self.db_path = db_path
        super().__init__(message or f"Failed to open database at {db_path}")


class SchemaError(IndexStoreError):
    """Raised when the tracks schema cannot be dropped or created."""

    pass


class StoreReadError(IndexStoreError):
    """Raised when the pre-scan track set cannot be read."""

    pass
