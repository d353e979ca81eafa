"""Unit tests for scheduled jobs and the CLI."""

from unittest.mock import patch

import pytest

from reply_tracker import scheduler
from reply_tracker.__main__ import main


@pytest.fixture
def build_processor():
    with patch("reply_tracker.processors.build_processor") as build:
        build.return_value.process.return_value = {"total": 3}
        yield build


class TestScheduledJobs:
    """Tests for scheduler job wiring."""

    def test_job_runs_stage(self, build_processor):
        assert scheduler.run_stage_job("classify") == {"total": 3}
        build_processor.assert_called_once_with("classify")

    def test_job_failure_is_logged_not_raised(self, build_processor):
        build_processor.return_value.process.side_effect = RuntimeError("gmail down")
        assert scheduler.run_stage_job("thread") is None

    def test_start_and_stop(self):
        with patch("reply_tracker.scheduler.BackgroundScheduler") as scheduler_class:
            started = scheduler.start_scheduler()
            try:
                job_ids = [c.kwargs["id"] for c in scheduler_class.return_value.add_job.call_args_list]
                assert job_ids == ["thread", "heuristic", "classify"]
                assert all(c.kwargs["max_instances"] == 1 for c in scheduler_class.return_value.add_job.call_args_list)
                assert scheduler.get_scheduler() is started
            finally:
                scheduler.stop_scheduler()

        started.shutdown.assert_called_once_with(wait=False)
        assert scheduler.get_scheduler() is None


class TestCli:
    """Tests for the command-line entry point."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with patch("reply_tracker.__main__.configure_logging"):
            yield

    def test_classify_dry_run(self, build_processor):
        assert main(["classify", "--dry-run"]) == 0
        build_processor.assert_called_once_with("classify", dry_run=True)

    def test_thread(self, build_processor):
        assert main(["thread"]) == 0
        build_processor.assert_called_once_with("thread", dry_run=None)

    def test_failure_exit_code(self, build_processor):
        build_processor.return_value.process.side_effect = RuntimeError("database unavailable")
        assert main(["heuristic"]) == 1

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            main(["webhooks"])
