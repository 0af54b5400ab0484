"""
Database module.
Contains database connection, table definitions, and the job repository.
"""

from pgqueue.db.connection import (
    close_db,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    transaction,
)
from pgqueue.db.models import QueueTables, get_tables

__all__ = [
    "get_engine",
    "get_session_factory",
    "make_session_factory",
    "transaction",
    "init_db",
    "close_db",
    "create_tables",
    "drop_tables",
    "QueueTables",
    "get_tables",
]
