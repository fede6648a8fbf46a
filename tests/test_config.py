"""Tests for the config module."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from clarity.config import (
    get_db_path,
    get_schedule,
    load_config,
    next_occurrence,
    reset_db_path,
    save_config,
    set_db_path,
    update_schedule,
)
from clarity.models import AppConfig, ReviewSchedule, ReviewType


def _patch_config_paths(tmp_path: Path):
    """Return a context manager that redirects config dir/file to tmp_path."""
    cfg_dir = tmp_path / "config"
    cfg_file = cfg_dir / "config.json"
    return (
        patch("clarity.config._CONFIG_DIR", cfg_dir),
        patch("clarity.config._CONFIG_FILE", cfg_file),
    )


class TestLoadSaveConfig:
    def test_load_default_when_missing(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            config = load_config()
            assert config.db_path is None
            assert config.history_limit == 10

    def test_save_and_load_roundtrip(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            path = save_config(AppConfig(db_path="/tmp/test.db", history_limit=25))
            assert path.exists()

            loaded = load_config()
            assert loaded.db_path == "/tmp/test.db"
            assert loaded.history_limit == 25

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            cfg_file = tmp_path / "config" / "config.json"
            cfg_file.parent.mkdir(parents=True)
            cfg_file.write_text("{not json")
            assert load_config() == AppConfig()

    def test_invalid_values_fall_back_to_defaults(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            cfg_file = tmp_path / "config" / "config.json"
            cfg_file.parent.mkdir(parents=True)
            cfg_file.write_text('{"history_limit": 0}')
            assert load_config().history_limit == 10


class TestDbPath:
    def test_set_and_get_custom_path(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            target = tmp_path / "data" / "mine.db"
            cfg = set_db_path(str(target))
            assert cfg.db_path == str(target.resolve())
            assert get_db_path() == target.resolve()

    def test_directory_gets_default_filename(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            cfg = set_db_path(str(tmp_path))
            assert cfg.db_path == str(tmp_path.resolve() / "clarity.db")

    def test_reset(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2, patch("clarity.config._DB_DIR", tmp_path / "share"):
            set_db_path(str(tmp_path / "custom.db"))
            cfg = reset_db_path()
            assert cfg.db_path is None
            assert get_db_path() == tmp_path / "share" / "clarity.db"


class TestSchedules:
    def test_get_schedule(self) -> None:
        schedule = get_schedule(AppConfig(), ReviewType.WEEKLY)
        assert schedule is not None
        assert schedule.days == [5]

    def test_get_schedule_missing(self) -> None:
        assert get_schedule(AppConfig(review_schedules=[]), ReviewType.DAILY) is None

    def test_update_schedule_persists(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            update_schedule(ReviewType.DAILY, time="07:30", days=[3, 1, 1], enabled=False)
            schedule = get_schedule(load_config(), ReviewType.DAILY)
            assert schedule is not None
            assert schedule.time == "07:30"
            assert schedule.days == [1, 3]
            assert schedule.enabled is False

    def test_update_schedule_rejects_bad_day(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            with pytest.raises(ValueError):
                update_schedule(ReviewType.WEEKLY, days=[7])

    def test_update_schedule_rejects_bad_time(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            with pytest.raises(ValueError):
                update_schedule(ReviewType.WEEKLY, time="noon")

    def test_update_schedule_rejects_out_of_range_time(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            for bad in ("25:00", "24:00", "09:60", "25:99"):
                with pytest.raises(ValueError):
                    update_schedule(ReviewType.DAILY, time=bad)
            schedule = get_schedule(load_config(), ReviewType.DAILY)
            assert schedule is not None
            assert schedule.time == "09:00"

    def test_boundary_times_accepted(self, tmp_path: Path) -> None:
        p1, p2 = _patch_config_paths(tmp_path)
        with p1, p2:
            update_schedule(ReviewType.DAILY, time="23:59")
            update_schedule(ReviewType.WEEKLY, time="00:00")
            config = load_config()
            assert get_schedule(config, ReviewType.DAILY).time == "23:59"
            assert get_schedule(config, ReviewType.WEEKLY).time == "00:00"


class TestNextOccurrence:
    def test_later_same_day(self) -> None:
        # 2026-10-19 is a Monday (day 1)
        now = datetime(2026, 10, 19, 8, 0)
        schedule = ReviewSchedule(type=ReviewType.DAILY, time="09:00", days=[1])
        assert next_occurrence(schedule, now) == datetime(2026, 10, 19, 9, 0)

    def test_rolls_to_next_matching_day(self) -> None:
        now = datetime(2026, 10, 19, 12, 0)
        schedule = ReviewSchedule(type=ReviewType.WEEKLY, time="10:00", days=[5])
        assert next_occurrence(schedule, now) == datetime(2026, 10, 23, 10, 0)

    def test_sunday_is_zero(self) -> None:
        now = datetime(2026, 10, 19, 12, 0)
        schedule = ReviewSchedule(type=ReviewType.WEEKLY, time="10:00", days=[0])
        assert next_occurrence(schedule, now) == datetime(2026, 10, 25, 10, 0)

    def test_same_weekday_a_week_later(self) -> None:
        now = datetime(2026, 10, 19, 12, 0)
        schedule = ReviewSchedule(type=ReviewType.DAILY, time="09:00", days=[1])
        assert next_occurrence(schedule, now) == datetime(2026, 10, 26, 9, 0)

    def test_disabled(self) -> None:
        schedule = ReviewSchedule(type=ReviewType.DAILY, enabled=False, days=[1])
        assert next_occurrence(schedule) is None
