"""Tests for the review analytics helpers."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from clarity.analytics import (
    MILESTONES,
    achievements,
    analyze_review_patterns,
    completion_rate,
    health_label,
    next_milestone,
    productivity_trend,
    review_stats,
    review_streak,
    review_type_breakdown,
    system_health,
)
from clarity.models import Review, ReviewMetrics, ReviewType, WeeklyInsights

TODAY = date(2026, 10, 19)  # a Monday


def _review(
    days_ago: int = 0,
    review_type: ReviewType = ReviewType.DAILY,
    duration: int = 10,
    hour: int = 9,
) -> Review:
    day = TODAY - timedelta(days=days_ago)
    return Review(
        id=days_ago + 1,
        type=review_type,
        completed_at=datetime(day.year, day.month, day.day, hour, 0),
        duration_minutes=duration,
    )


def _metrics(days_ago: int, daily: int = 1, tasks: int = 0) -> ReviewMetrics:
    return ReviewMetrics(
        id=days_ago + 1,
        date=TODAY - timedelta(days=days_ago),
        daily_reviews_completed=daily,
        tasks_completed=tasks,
    )


class TestStreak:
    def test_consecutive_days(self) -> None:
        reviews = [_review(0), _review(1), _review(2), _review(4)]
        assert review_streak(reviews, TODAY) == 3

    def test_gap_stops_count(self) -> None:
        assert review_streak([_review(0), _review(2)], TODAY) == 1

    def test_no_review_today(self) -> None:
        assert review_streak([_review(1), _review(2)], TODAY) == 0

    def test_empty(self) -> None:
        assert review_streak([], TODAY) == 0

    def test_weekly_reviews_ignored(self) -> None:
        reviews = [_review(0), _review(1, ReviewType.WEEKLY), _review(2)]
        assert review_streak(reviews, TODAY) == 1

    def test_same_day_counts_once(self) -> None:
        reviews = [_review(0, hour=8), _review(0, hour=20), _review(1)]
        assert review_streak(reviews, TODAY) == 2

    def test_unordered_input(self) -> None:
        assert review_streak([_review(2), _review(0), _review(1)], TODAY) == 3


class TestCompletionRate:
    def test_full_week(self) -> None:
        assert completion_rate([_metrics(i) for i in range(7)], 7) == 100

    def test_no_rows(self) -> None:
        assert completion_rate([], 7) == 0

    def test_denominator_is_window(self) -> None:
        assert completion_rate([_metrics(0), _metrics(1)], 7) == 29

    def test_only_newest_rows_counted(self) -> None:
        rows = [_metrics(i, daily=1 if i < 3 else 0) for i in range(10)]
        assert completion_rate(rows, 3) == 100

    def test_zero_days(self) -> None:
        assert completion_rate([_metrics(0)], 0) == 0


class TestSystemHealth:
    def test_no_insights(self) -> None:
        assert system_health([], None) == 50

    def test_perfect(self) -> None:
        insights = WeeklyInsights(streak_days=7, avg_tasks_per_day=5, projects_progressed=2)
        assert system_health([], insights) == 100

    def test_components_are_capped(self) -> None:
        insights = WeeklyInsights(streak_days=30, avg_tasks_per_day=20, projects_progressed=1)
        assert system_health([], insights) == 100

    def test_idle_system(self) -> None:
        assert system_health([], WeeklyInsights()) == 17

    @pytest.mark.parametrize(
        "score, label",
        [(80, "healthy"), (79, "fair"), (60, "fair"), (59, "needs attention")],
    )
    def test_labels(self, score: int, label: str) -> None:
        assert health_label(score) == label


class TestMilestones:
    def test_next_milestone_values(self) -> None:
        assert next_milestone(0) == 7
        assert next_milestone(7) == 14
        assert next_milestone(100) == 180
        assert next_milestone(365) == 395

    def test_always_strictly_greater(self) -> None:
        for streak in range(0, 800):
            assert next_milestone(streak) > streak

    def test_milestones_ascending(self) -> None:
        assert list(MILESTONES) == sorted(MILESTONES)


class TestPatterns:
    def test_breakdown_starts_on_sunday(self) -> None:
        patterns = analyze_review_patterns([_review(0)])
        assert [d.name for d in patterns.weekly_breakdown][:2] == ["Sunday", "Monday"]
        assert patterns.weekly_breakdown[1].count == 1
        assert patterns.weekly_breakdown[1].percentage == 100.0

    def test_best_day(self) -> None:
        # 0 and 7 days ago are Mondays; 1 day ago is Sunday
        patterns = analyze_review_patterns([_review(0), _review(7), _review(1)])
        assert patterns.best_day == "Monday"

    def test_tie_goes_to_earlier_day(self) -> None:
        patterns = analyze_review_patterns([_review(0), _review(1)])
        assert patterns.best_day == "Sunday"

    def test_empty(self) -> None:
        patterns = analyze_review_patterns([])
        assert patterns.best_day == "Sunday"
        assert all(d.count == 0 and d.percentage == 0 for d in patterns.weekly_breakdown)

    def test_unimplemented_fields_are_none(self) -> None:
        patterns = analyze_review_patterns([_review(0)])
        assert patterns.preferred_time is None
        assert patterns.consistency_score is None


class TestStatsAndTrend:
    def test_review_stats(self) -> None:
        stats = review_stats([_review(0, duration=10), _review(1, duration=15)])
        assert stats.total_reviews == 2
        assert stats.avg_minutes == 12

    def test_review_stats_empty(self) -> None:
        assert review_stats([]).total_reviews == 0

    def test_type_breakdown(self) -> None:
        reviews = [_review(0), _review(1), _review(2, ReviewType.WEEKLY)]
        assert review_type_breakdown(reviews) == {ReviewType.DAILY: 2, ReviewType.WEEKLY: 1}

    def test_trend_newest_minus_oldest(self) -> None:
        rows = [_metrics(0, tasks=6), _metrics(1, tasks=4), _metrics(2, tasks=2)]
        assert productivity_trend(rows) == 4
        assert productivity_trend(rows[:1]) == 0


class TestAchievements:
    def test_none_earned(self) -> None:
        assert not any(a.completed for a in achievements(0, 0))

    def test_all_earned(self) -> None:
        assert all(a.completed for a in achievements(30, 80))

    def test_partial(self) -> None:
        earned = {a.title for a in achievements(7, 50) if a.completed}
        assert earned == {"Consistent Reviewer"}
