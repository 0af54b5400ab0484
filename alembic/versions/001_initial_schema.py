"""Initial schema with job and job result tables

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create jobs table
    op.create_table(
        "pgqueue_jobs",
        sa.Column("id", sa.BigInteger, sa.Identity(always=False), nullable=False),
        sa.Column("payload", postgresql.JSONB, nullable=True),
        sa.Column("queue_name", sa.String(255), nullable=False),
        sa.Column("interval_seconds", sa.Integer, nullable=True),
        sa.Column(
            "last_run",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("delete_on_acknowledge", sa.Boolean, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create results table; job_id has no foreign key
    op.create_table(
        "pgqueue_results",
        sa.Column("id", sa.BigInteger, sa.Identity(always=False), nullable=False),
        sa.Column("job_id", sa.BigInteger, nullable=False),
        sa.Column("result", postgresql.JSONB, nullable=True),
        sa.Column("time_run", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes
    op.create_index("ix_pgqueue_jobs_queue_name", "pgqueue_jobs", ["queue_name"])
    op.create_index("ix_pgqueue_results_job_id", "pgqueue_results", ["job_id"])


def downgrade() -> None:
    op.drop_index("ix_pgqueue_results_job_id", table_name="pgqueue_results")
    op.drop_index("ix_pgqueue_jobs_queue_name", table_name="pgqueue_jobs")

    op.drop_table("pgqueue_results")
    op.drop_table("pgqueue_jobs")
