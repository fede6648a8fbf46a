"""Tests for CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from clarity.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _use_tmp_paths(tmp_path: Path):
    """Redirect all CLI tests to a temporary database and config file."""
    db_path = tmp_path / "test.db"
    cfg_dir = tmp_path / "config"
    with patch("clarity.db._get_db_path", return_value=db_path), \
            patch("clarity.config._CONFIG_DIR", cfg_dir), \
            patch("clarity.config._CONFIG_FILE", cfg_dir / "config.json"), \
            patch("clarity.config._DB_DIR", tmp_path / "share"):
        yield


class TestCapture:
    def test_capture_task(self) -> None:
        result = runner.invoke(app, ["capture", "Call the plumber"])
        assert result.exit_code == 0
        assert "Captured task #1" in result.output

    def test_capture_with_due_date(self) -> None:
        result = runner.invoke(app, ["capture", "Pay rent", "--due", "2026-11-01",
                                     "--status", "next_action"])
        assert result.exit_code == 0
        result = runner.invoke(app, ["tasks", "--status", "next_action"])
        assert "Pay rent" in result.output
        assert "2026-11-01" in result.output

    def test_bad_due_date(self) -> None:
        result = runner.invoke(app, ["capture", "Pay rent", "--due", "soon"])
        assert result.exit_code == 1
        assert "Invalid due date" in result.output

    def test_unknown_project(self) -> None:
        result = runner.invoke(app, ["capture", "Plant", "--project", "7"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_project(self) -> None:
        result = runner.invoke(app, ["project", "Plan holiday"])
        assert result.exit_code == 0
        assert "Added project #1" in result.output
        result = runner.invoke(app, ["capture", "Book flights", "--project", "1"])
        assert result.exit_code == 0


class TestTasks:
    def test_empty(self) -> None:
        result = runner.invoke(app, ["tasks"])
        assert result.exit_code == 0
        assert "No tasks" in result.output

    def test_grouped(self) -> None:
        runner.invoke(app, ["capture", "Alpha"])
        runner.invoke(app, ["capture", "Beta", "--status", "someday"])
        result = runner.invoke(app, ["tasks"])
        assert "Alpha" in result.output
        assert "Beta" in result.output
        assert "Someday" in result.output


class TestReviewCommands:
    def test_start_daily(self) -> None:
        result = runner.invoke(app, ["review", "start", "daily"])
        assert result.exit_code == 0
        assert "Daily review #1" in result.output

    def test_start_joins_existing(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "start", "weekly"])
        assert result.exit_code == 0
        assert "already in progress" in result.output
        assert "Daily review #1" in result.output

    def test_show_without_session(self) -> None:
        result = runner.invoke(app, ["review", "show"])
        assert result.exit_code == 0
        assert "No review in progress" in result.output

    def test_step(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "step", "welcome"])
        assert result.exit_code == 0
        assert "step 1/6" in result.output

    def test_step_with_data(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(
            app, ["review", "step", "planning", "--data", '{"tomorrows_plan": ["Gym"]}']
        )
        assert result.exit_code == 0
        result = runner.invoke(app, ["review", "show"])
        assert "Gym" in result.output

    def test_step_wrong_review_type(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "step", "inbox_process"])
        assert result.exit_code == 1
        assert "not a step" in result.output

    def test_step_bad_json(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "step", "planning", "--data", "{oops"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_step_bad_payload(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "step", "planning", "--data", '{"mood": 1}'])
        assert result.exit_code == 1

    def test_step_without_session(self) -> None:
        result = runner.invoke(app, ["review", "step", "welcome"])
        assert result.exit_code == 1
        assert "No review in progress" in result.output

    def test_last_step_suggests_finish(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        for step in ("welcome", "calendar_check", "task_triage",
                     "waiting_for_review", "planning"):
            runner.invoke(app, ["review", "step", step])
        result = runner.invoke(app, ["review", "step", "reflection"])
        assert result.exit_code == 0
        assert "All steps done" in result.output

    def test_pause_and_resume(self) -> None:
        runner.invoke(app, ["review", "start", "weekly"])
        result = runner.invoke(app, ["review", "pause"])
        assert result.exit_code == 0
        assert "paused" in result.output
        result = runner.invoke(app, ["review", "step", "welcome"])
        assert result.exit_code == 1
        result = runner.invoke(app, ["review", "resume"])
        assert result.exit_code == 0
        assert "active" in result.output

    def test_pause_without_session(self) -> None:
        result = runner.invoke(app, ["review", "pause"])
        assert result.exit_code == 1

    def test_finish(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "finish", "--notes", "good day"])
        assert result.exit_code == 0
        assert "Quick and Efficient!" in result.output
        result = runner.invoke(app, ["history"])
        assert "daily" in result.output

    def test_finish_without_session(self) -> None:
        result = runner.invoke(app, ["review", "finish"])
        assert result.exit_code == 1
        assert "No active review session" in result.output

    def test_abandon(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["review", "abandon"])
        assert result.exit_code == 0
        assert "abandoned" in result.output
        result = runner.invoke(app, ["history"])
        assert "No reviews completed yet" in result.output


class TestAct:
    def test_complete_task(self) -> None:
        runner.invoke(app, ["capture", "Email Jo"])
        result = runner.invoke(app, ["act", "1", "complete"])
        assert result.exit_code == 0
        assert "#1 Email Jo" in result.output

    def test_missing_task(self) -> None:
        result = runner.invoke(app, ["act", "99", "complete"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_assign_needs_project(self) -> None:
        runner.invoke(app, ["capture", "Email Jo"])
        result = runner.invoke(app, ["act", "1", "assign_project"])
        assert result.exit_code == 1


class TestAnalyticsCommands:
    def test_stats_empty(self) -> None:
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Current streak: 0 days" in result.output
        assert "Next milestone: 7 days" in result.output

    def test_stats_after_review(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        runner.invoke(app, ["review", "finish"])
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Current streak: 1 day" in result.output
        assert "Total reviews: 1" in result.output

    def test_coach_for_step(self) -> None:
        result = runner.invoke(app, ["coach", "--type", "weekly", "--step", "planning"])
        assert result.exit_code == 0
        assert "Weekly Priorities" in result.output

    def test_coach_follows_session(self) -> None:
        runner.invoke(app, ["review", "start", "daily"])
        result = runner.invoke(app, ["coach", "--compact"])
        assert result.exit_code == 0
        assert "Review Mindset" in result.output

    def test_chart_pattern(self, tmp_path: Path) -> None:
        out = tmp_path / "pattern.png"
        result = runner.invoke(app, ["chart", str(out)])
        assert result.exit_code == 0
        assert out.exists()

    def test_chart_metrics_needs_data(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["chart", str(tmp_path / "m.png"), "--kind", "metrics"])
        assert result.exit_code == 1

    def test_chart_unknown_kind(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["chart", str(tmp_path / "x.png"), "--kind", "pie"])
        assert result.exit_code == 1

    def test_remind_when_never_reviewed(self) -> None:
        result = runner.invoke(app, ["remind"])
        assert result.exit_code == 0
        assert "overdue by 999 days" in result.output

    def test_remind_skips_disabled_schedule(self) -> None:
        runner.invoke(app, ["schedule", "weekly", "--disable"])
        result = runner.invoke(app, ["remind"])
        assert "Weekly review due" not in result.output
        assert "Daily review due" in result.output


class TestConfig:
    def test_show_default(self) -> None:
        result = runner.invoke(app, ["config", "--show"])
        assert result.exit_code == 0
        assert "(default)" in result.output
        assert "daily review: 09:00" in result.output

    def test_set_db_path(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere" / "gtd.db"
        result = runner.invoke(app, ["config", "--db-path", str(target)])
        assert result.exit_code == 0
        assert "Database path set to" in result.output

    def test_reset(self) -> None:
        result = runner.invoke(app, ["config", "--reset"])
        assert result.exit_code == 0
        assert "Reset" in result.output

    def test_schedule(self) -> None:
        result = runner.invoke(app, ["schedule", "daily", "--time", "07:30", "--days", "1,3"])
        assert result.exit_code == 0
        assert "Daily review scheduled at 07:30 on days 1,3" in result.output

    def test_schedule_bad_time_keeps_remind_working(self) -> None:
        result = runner.invoke(app, ["schedule", "daily", "--time", "25:99"])
        assert result.exit_code == 1
        result = runner.invoke(app, ["remind"])
        assert result.exit_code == 0

    def test_schedule_bad_day(self) -> None:
        result = runner.invoke(app, ["schedule", "weekly", "--days", "9"])
        assert result.exit_code == 1

    def test_verbose_flag(self) -> None:
        result = runner.invoke(app, ["--verbose", "tasks"])
        assert result.exit_code == 0
