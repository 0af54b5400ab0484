"""
SQLAlchemy table definitions.
Defines the job and job result tables for a pair of table names.
"""

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from pgqueue.types.job import TableOptions

metadata = MetaData()


@dataclass(frozen=True)
class QueueTables:
    """
    The two tables backing one family of queues.

    Any number of named queues share the same pair of tables; rows are
    partitioned by ``queue_name``.
    """

    jobs: Table
    results: Table


def _build_jobs_table(name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", BigInteger, primary_key=True, autoincrement=True),
        Column("payload", JSONB, nullable=True),
        Column("queue_name", String(255), nullable=False),
        # Set for recurring jobs only
        Column("interval_seconds", Integer, nullable=True),
        Column(
            "last_run",
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        ),
        Column("delete_on_acknowledge", Boolean, nullable=False, default=True),
        Index(f"ix_{name}_queue_name", "queue_name"),
    )


def _build_results_table(name: str) -> Table:
    # job_id has no foreign key: the job row is usually gone before the
    # result is consumed.
    return Table(
        name,
        metadata,
        Column("id", BigInteger, primary_key=True, autoincrement=True),
        Column("job_id", BigInteger, nullable=False),
        Column("result", JSONB, nullable=True),
        Column("time_run", DateTime(timezone=True), nullable=False),
        Index(f"ix_{name}_job_id", "job_id"),
    )


_JOB_COLUMNS = frozenset(
    {"id", "payload", "queue_name", "interval_seconds", "last_run", "delete_on_acknowledge"}
)
_RESULT_COLUMNS = frozenset({"id", "job_id", "result", "time_run"})


def _get_table(name: str, build: Callable[[str], Table], columns: frozenset[str]) -> Table:
    # Tables are registered on the shared metadata by name, so one table may
    # back several queues with different partner tables.
    table = metadata.tables.get(name)
    if table is None:
        return build(name)
    if set(table.c.keys()) != columns:
        raise ValueError(f"Table {name!r} is already defined with other columns")
    return table


def get_tables(options: TableOptions | None = None) -> QueueTables:
    """
    Get the table pair for the given table names, defining it on first use.

    Args:
        options: Table names. Defaults come from settings.

    Returns:
        QueueTables: The job and result tables.
    """
    if options is None:
        options = TableOptions.from_settings()

    return QueueTables(
        jobs=_get_table(options.table_name, _build_jobs_table, _JOB_COLUMNS),
        results=_get_table(
            options.result_table_name, _build_results_table, _RESULT_COLUMNS
        ),
    )
