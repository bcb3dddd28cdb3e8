"""Database-specific exceptions shared by both stores."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a store stays unreachable after all startup attempts."""

    def __init__(self, message: str, store: str, attempts: int):
        super().__init__(message)
        self.store = store
        self.attempts = attempts
