"""
Repository Layer Exceptions.

Every SQLAlchemy error raised inside a repository is wrapped in one
of these, so the sink can treat "the page did not persist" uniformly.
transaction_scope() turns any of them into DatabasePersistenceError
after rolling back.
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """Base exception for transfer store repository operations."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class IntegrityError(RepositoryException):
    """A constraint other than the event identity was violated."""

    def __init__(self, repository_name: str, operation: str, constraint_name: str, message: str) -> None:
        super().__init__(
            f"Constraint {constraint_name} violated: {message}",
            repository_name,
            operation,
            {"constraint": constraint_name},
        )
        self.constraint_name = constraint_name


class ConnectionError(RepositoryException):
    """The transfer store is unreachable."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            f"Database unavailable: {original_error}",
            repository_name,
            operation,
            {"original_error": original_error},
        )


class QueryError(RepositoryException):
    """A statement failed to execute."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            f"Statement failed: {original_error}",
            repository_name,
            operation,
            {"original_error": original_error},
        )


class CursorRegressionError(RepositoryException):
    """
    A cursor write would move a key backwards.

    Cursors only rewind through the explicit operator reset.
    """

    def __init__(self, repository_name: str, key: Any, current: Any, proposed: Any) -> None:
        super().__init__(
            f"Cursor for {key} cannot move from {current} to {proposed}",
            repository_name,
            "advance",
            {"key": str(key), "current": str(current), "proposed": str(proposed)},
        )
        self.key = key
        self.current = current
        self.proposed = proposed
