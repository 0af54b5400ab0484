"""
Unit tests for job options, table options and settings.
"""

import logging

import pytest
from pydantic import ValidationError

from pgqueue.config import Settings
from pgqueue.db.models import get_tables
from pgqueue.queue import Queue
from pgqueue.types.job import JobOptions, TableOptions


class TestJobOptions:
    """Tests for JobOptions."""

    def test_defaults(self):
        """Test a default job is one-shot and discards its result."""
        options = JobOptions()

        assert options.interval_seconds is None
        assert options.delete_on_acknowledge is None
        assert options.is_recurring is False
        assert options.should_delete_on_acknowledge is True

    def test_one_shot_keeps_result(self):
        """Test a one-shot job may keep its result."""
        options = JobOptions(delete_on_acknowledge=False)

        assert options.should_delete_on_acknowledge is False

    def test_recurring(self):
        """Test a recurring job."""
        options = JobOptions(interval_seconds=5)

        assert options.is_recurring is True
        assert options.should_delete_on_acknowledge is True

    def test_recurring_job_cannot_keep_result(self, caplog: pytest.LogCaptureFixture):
        """Test the invalid combination is corrected with a warning, not rejected."""
        with caplog.at_level(logging.WARNING, logger="pgqueue.types.job"):
            options = JobOptions(interval_seconds=5, delete_on_acknowledge=False)

        assert options.delete_on_acknowledge is True
        assert options.should_delete_on_acknowledge is True
        assert any(
            "delete_on_acknowledge can only be False" in record.getMessage()
            for record in caplog.records
        )

    def test_recurring_with_explicit_true_does_not_warn(
        self, caplog: pytest.LogCaptureFixture
    ):
        """Test no warning is logged for a valid recurring job."""
        with caplog.at_level(logging.WARNING, logger="pgqueue.types.job"):
            JobOptions(interval_seconds=5, delete_on_acknowledge=True)

        assert caplog.records == []

    @pytest.mark.parametrize("interval", [0, -1])
    def test_interval_must_be_positive(self, interval: int):
        """Test non-positive intervals are rejected."""
        with pytest.raises(ValidationError):
            JobOptions(interval_seconds=interval)


class TestTableOptions:
    """Tests for TableOptions and table definitions."""

    def test_from_settings(self):
        """Test the default table names come from settings."""
        options = TableOptions.from_settings()

        assert options.table_name == "pgqueue_jobs"
        assert options.result_table_name == "pgqueue_results"

    def test_empty_name_rejected(self):
        """Test empty table names are rejected."""
        with pytest.raises(ValidationError):
            TableOptions(table_name="", result_table_name="results")

    def test_tables_are_defined_once(self):
        """Test equal table options map to the same table objects."""
        options = TableOptions(table_name="unit_jobs", result_table_name="unit_results")

        first = get_tables(options)
        second = get_tables(
            TableOptions(table_name="unit_jobs", result_table_name="unit_results")
        )

        assert first == second
        assert first.jobs is second.jobs
        assert first.jobs.name == "unit_jobs"
        assert first.results.name == "unit_results"

    def test_job_table_shared_with_different_result_tables(self):
        """Test queues may share a job table while storing results apart."""
        first = Queue(
            "a",
            table_options=TableOptions(
                table_name="shared_jobs", result_table_name="shared_results_a"
            ),
        )
        second = Queue(
            "b",
            table_options=TableOptions(
                table_name="shared_jobs", result_table_name="shared_results_b"
            ),
        )

        assert first.tables.jobs is second.tables.jobs
        assert first.tables.results.name == "shared_results_a"
        assert second.tables.results.name == "shared_results_b"

    def test_identical_names_rejected(self):
        """Test the job and result tables cannot have the same name."""
        with pytest.raises(ValidationError):
            TableOptions(table_name="same", result_table_name="same")

    def test_name_reused_for_other_table_kind_rejected(self):
        """Test a job table name cannot be reused as a result table."""
        get_tables(TableOptions(table_name="kind_jobs", result_table_name="kind_results"))

        with pytest.raises(ValueError, match="kind_jobs"):
            get_tables(
                TableOptions(table_name="other_kind_jobs", result_table_name="kind_jobs")
            )

    def test_table_columns(self):
        """Test the job and result tables carry the expected columns."""
        tables = get_tables()

        assert set(tables.jobs.c.keys()) == {
            "id",
            "payload",
            "queue_name",
            "interval_seconds",
            "last_run",
            "delete_on_acknowledge",
        }
        assert set(tables.results.c.keys()) == {"id", "job_id", "result", "time_run"}


class TestSettings:
    """Tests for Settings."""

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        """Test settings are read from PGQUEUE_ variables."""
        monkeypatch.setenv("PGQUEUE_POLL_INTERVAL_SECONDS", "0.25")
        monkeypatch.setenv("PGQUEUE_TABLE_NAME", "other_jobs")

        settings = Settings()

        assert settings.poll_interval_seconds == 0.25
        assert settings.table_name == "other_jobs"
        assert settings.result_table_name == "pgqueue_results"
