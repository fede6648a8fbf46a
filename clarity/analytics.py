"""Review analytics: streaks, completion rates, patterns and system health.

Everything here is a pure function of already-loaded reviews, metrics and
insights; nothing touches the database.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from typing import Optional, Sequence

from clarity.models import (
    Achievement,
    DayCount,
    Review,
    ReviewMetrics,
    ReviewPatterns,
    ReviewStats,
    ReviewType,
    WeeklyInsights,
)

MILESTONES: tuple[int, ...] = (7, 14, 30, 60, 90, 180, 365)

# Sunday first, matching the schedule day numbering.
DAY_NAMES: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def review_streak(reviews: Sequence[Review], today: Optional[date] = None) -> int:
    """Count consecutive days, ending today, with a completed daily review.

    Walks review days newest first; the i-th must be today - i. Several
    reviews on one day count once. Stops at the first gap.
    """
    today = today or date.today()
    days = sorted(
        {r.completed_at.date() for r in reviews if r.type == ReviewType.DAILY},
        reverse=True,
    )
    streak = 0
    for i, day in enumerate(days):
        if day == today - timedelta(days=i):
            streak += 1
        else:
            break
    return streak


def completion_rate(metrics: Sequence[ReviewMetrics], days: int = 7) -> int:
    """Percentage of the last *days* days with a daily review.

    *metrics* must be newest first. The denominator is always *days*, even
    when fewer rows exist.
    """
    relevant = list(metrics[:days])
    if not relevant or days <= 0:
        return 0
    completed = sum(m.daily_reviews_completed for m in relevant)
    return round(completed / days * 100)


def system_health(
    metrics: Sequence[ReviewMetrics], insights: Optional[WeeklyInsights]
) -> int:
    """Overall GTD system score, 0-100 (50 when there are no insights)."""
    if insights is None:
        return 50
    review_consistency = min(insights.streak_days / 7 * 100, 100)
    task_completion = min(insights.avg_tasks_per_day / 5 * 100, 100)
    project_progress = 100 if insights.projects_progressed > 0 else 50
    return round((review_consistency + task_completion + project_progress) / 3)


def health_label(score: int) -> str:
    if score >= 80:
        return "healthy"
    if score >= 60:
        return "fair"
    return "needs attention"


def next_milestone(streak: int) -> int:
    """Smallest milestone strictly above *streak*, else streak + 30."""
    for milestone in MILESTONES:
        if milestone > streak:
            return milestone
    return streak + 30


def analyze_review_patterns(reviews: Sequence[Review]) -> ReviewPatterns:
    """Bucket reviews by day of week and pick the busiest day.

    Ties go to the earlier day in the week (Sunday first).
    """
    counts = Counter(
        (r.completed_at.weekday() + 1) % 7 for r in reviews
    )
    total = len(reviews)
    breakdown = [
        DayCount(
            name=name,
            count=counts.get(index, 0),
            percentage=(counts.get(index, 0) / total * 100) if total else 0.0,
        )
        for index, name in enumerate(DAY_NAMES)
    ]
    best = breakdown[0]
    for day in breakdown[1:]:
        if day.count > best.count:
            best = day
    # TODO: derive preferred_time from completed_at hours and consistency_score
    # from the spread of gaps between reviews; both stay None until then.
    return ReviewPatterns(best_day=best.name, weekly_breakdown=breakdown)


def review_stats(reviews: Sequence[Review]) -> ReviewStats:
    if not reviews:
        return ReviewStats()
    avg = sum(r.duration_minutes for r in reviews) / len(reviews)
    return ReviewStats(total_reviews=len(reviews), avg_minutes=round(avg))


def review_type_breakdown(reviews: Sequence[Review]) -> dict[ReviewType, int]:
    breakdown: dict[ReviewType, int] = {}
    for review in reviews:
        breakdown[review.type] = breakdown.get(review.type, 0) + 1
    return breakdown


def productivity_trend(metrics: Sequence[ReviewMetrics]) -> int:
    """Newest minus oldest ``tasks_completed`` (metrics newest first)."""
    if len(metrics) < 2:
        return 0
    return metrics[0].tasks_completed - metrics[-1].tasks_completed


def achievements(streak: int, rate: int) -> list[Achievement]:
    return [
        Achievement(
            title="Consistent Reviewer",
            description="Complete 7 daily reviews in a row",
            completed=streak >= 7,
        ),
        Achievement(
            title="Weekly Warrior",
            description="Maintain 80%+ completion rate",
            completed=rate >= 80,
        ),
        Achievement(
            title="GTD Master",
            description="30-day review streak",
            completed=streak >= 30,
        ),
    ]
