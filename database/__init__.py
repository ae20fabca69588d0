"""
Database Package Initialization.

============================================================
TRANSFER STORE PERSISTENCE LAYER
============================================================

Engine, session factory and transaction scope for the
transfer sync sink. Every page is written inside exactly one
transaction_scope(); failures raise DatabasePersistenceError.

============================================================
"""

from .engine import (
    create_database_engine,
    create_session_factory,
    get_database_url,
    get_engine,
    get_session_factory,
    reset_engine,
    transaction_scope,
    verify_database_connection,
    create_all_tables,
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)

__all__ = [
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "reset_engine",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
