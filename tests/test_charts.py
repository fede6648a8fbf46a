"""Tests for the charts module."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from PIL import Image

from clarity.charts import metrics_timeseries, weekday_pattern
from clarity.models import Review, ReviewMetrics, ReviewType


def _make_review(days_ago: int = 0) -> Review:
    return Review(
        id=days_ago + 1,
        type=ReviewType.DAILY,
        completed_at=datetime.now() - timedelta(days=days_ago),
        duration_minutes=8,
    )


def _make_metrics(days_ago: int, tasks: int = 3, daily: int = 1) -> ReviewMetrics:
    return ReviewMetrics(
        id=days_ago + 1,
        date=date.today() - timedelta(days=days_ago),
        tasks_completed=tasks,
        daily_reviews_completed=daily,
    )


class TestWeekdayPattern:
    def test_returns_image(self) -> None:
        img = weekday_pattern([_make_review(i) for i in range(10)])
        assert isinstance(img, Image.Image)
        assert img.size[0] > 0 and img.size[1] > 0

    def test_returns_image_no_data(self) -> None:
        assert isinstance(weekday_pattern([]), Image.Image)

    def test_custom_size(self) -> None:
        img = weekday_pattern([_make_review()], size=(300, 200), dpi=50)
        assert isinstance(img, Image.Image)


class TestMetricsTimeseries:
    def test_returns_none_for_fewer_than_two(self) -> None:
        assert metrics_timeseries([]) is None
        assert metrics_timeseries([_make_metrics(0)]) is None

    def test_returns_image_for_two_or_more(self) -> None:
        img = metrics_timeseries([_make_metrics(0, tasks=5), _make_metrics(1, tasks=2)])
        assert isinstance(img, Image.Image)
        assert img.size[0] > 0

    def test_without_review_days(self) -> None:
        rows = [_make_metrics(i, daily=0) for i in range(5)]
        assert isinstance(metrics_timeseries(rows), Image.Image)
