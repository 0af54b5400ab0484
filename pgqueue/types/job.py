"""
Job-related type definitions.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pgqueue.config import get_settings

logger = logging.getLogger(__name__)


class JobOptions(BaseModel):
    """
    Options accepted when adding a job.

    ``delete_on_acknowledge`` stays ``None`` unless the caller sets it, so an
    explicit ``False`` can be told apart from the default.
    """

    interval_seconds: int | None = Field(
        default=None, gt=0, description="Run the job every N seconds"
    )
    delete_on_acknowledge: bool | None = Field(
        default=None,
        description="Discard the result of a one-shot job instead of storing it for done()",
    )

    @model_validator(mode="after")
    def _recurring_jobs_discard_results(self) -> "JobOptions":
        if self.interval_seconds is not None and self.delete_on_acknowledge is False:
            logger.warning(
                "delete_on_acknowledge can only be False for one-shot jobs; "
                "results of recurring jobs are always discarded so they do not "
                "pile up. Hand results on from inside the processing callback instead.",
                extra={"interval_seconds": self.interval_seconds},
            )
            self.delete_on_acknowledge = True
        return self

    @property
    def is_recurring(self) -> bool:
        """Check if the job runs on an interval."""
        return self.interval_seconds is not None

    @property
    def should_delete_on_acknowledge(self) -> bool:
        """Resolved value of delete_on_acknowledge (True unless set to False)."""
        return self.delete_on_acknowledge is not False


class TableOptions(BaseModel):
    """Names of the tables a queue reads and writes."""

    model_config = ConfigDict(frozen=True)

    table_name: str = Field(min_length=1, max_length=63)
    result_table_name: str = Field(min_length=1, max_length=63)

    @model_validator(mode="after")
    def _distinct_names(self) -> "TableOptions":
        if self.table_name == self.result_table_name:
            raise ValueError("table_name and result_table_name must differ")
        return self

    @classmethod
    def from_settings(cls) -> "TableOptions":
        settings = get_settings()
        return cls(
            table_name=settings.table_name,
            result_table_name=settings.result_table_name,
        )


@dataclass
class JobRow:
    """
    A job row as read by a claim.
    Only valid inside the transaction that locked it.
    """

    id: int
    payload: Any
    queue_name: str
    interval_seconds: int | None
    last_run: datetime
    delete_on_acknowledge: bool

    @property
    def is_recurring(self) -> bool:
        """Check if the job runs on an interval."""
        return self.interval_seconds is not None
