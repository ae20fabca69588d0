"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for the transfer store repositories: session
injection, SQLAlchemy error wrapping and the dialect lookup
the upsert needs.

============================================================
USAGE
============================================================
Repositories never commit. The caller owns the transaction
(see database.transaction_scope) so an event batch and its
cursor advance share one commit.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    IntegrityError,
    QueryError,
)


T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for the transfer store repositories.

    Every SQLAlchemyError leaving a repository is re-raised as a
    RepositoryException naming the repository and the operation.
    """

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def repository_name(self) -> str:
        return self._repository_name

    @property
    def dialect_name(self) -> str:
        """Name of the bound dialect, e.g. 'postgresql' or 'sqlite'."""
        return self._session.get_bind().dialect.name

    # =========================================================
    # ERROR WRAPPING
    # =========================================================

    def _handle_db_error(self, error: SQLAlchemyError, operation: str) -> NoReturn:
        """Log `error` and raise the matching RepositoryException."""
        self._logger.error(
            f"{self._model_class.__tablename__} {operation} failed: {error}",
            extra={"operation": operation},
        )

        if isinstance(error, OperationalError):
            raise ConnectionError(self._repository_name, operation, str(error)) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            constraint = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
            raise IntegrityError(self._repository_name, operation, constraint or "unknown", str(error)) from error

        raise QueryError(self._repository_name, operation, str(error)) from error

    def _execute(self, stmt: Any, operation: str) -> Any:
        try:
            return self._session.execute(stmt)
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)

    def _execute_query(self, stmt: Any, operation: str = "select") -> List[T]:
        """Rows of `stmt` as ORM entities."""
        return list(self._execute(stmt, operation).scalars().all())

    def _execute_scalar(self, stmt: Any, operation: str = "select_one") -> Optional[Any]:
        """Single value (or entity) of `stmt`, None when there is no row."""
        return self._execute(stmt, operation).scalar_one_or_none()
