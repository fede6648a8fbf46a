"""Contextual coaching prompts for daily and weekly reviews.

Prompts come from a static table keyed by review type and step. Selection is
a pure function of the review type, the step, the loaded review data and the
set of prompt ids dismissed so far; ``CoachingSession`` keeps that set in
memory for the lifetime of one review.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from clarity.models import (
    CoachingMessage,
    CoachingPrompt,
    DailyReviewData,
    PromptCondition,
    PromptKind,
    PromptPriority,
    ReviewReminder,
    ReviewType,
    StepKind,
    WeeklyReviewData,
)

ReviewData = Union[DailyReviewData, WeeklyReviewData]

GENERAL = "general"
LARGE_INBOX_THRESHOLD = 10

_PRIORITY_RANK: dict[PromptPriority, int] = {
    PromptPriority.HIGH: 3,
    PromptPriority.MEDIUM: 2,
    PromptPriority.LOW: 1,
}


def _p(
    id: str,
    kind: PromptKind,
    title: str,
    message: str,
    priority: PromptPriority,
    *,
    actionable: bool = False,
    conditions: tuple[PromptCondition, ...] = (),
) -> CoachingPrompt:
    return CoachingPrompt(
        id=id,
        kind=kind,
        title=title,
        message=message,
        priority=priority,
        actionable=actionable,
        conditions=conditions,
    )


_TIP, _INSIGHT, _ENC, _WARN, _SUGG = (
    PromptKind.TIP,
    PromptKind.INSIGHT,
    PromptKind.ENCOURAGEMENT,
    PromptKind.WARNING,
    PromptKind.SUGGESTION,
)
_HIGH, _MED, _LOW = PromptPriority.HIGH, PromptPriority.MEDIUM, PromptPriority.LOW

COACHING_PROMPTS: dict[ReviewType, dict[str, list[CoachingPrompt]]] = {
    ReviewType.DAILY: {
        GENERAL: [
            _p("daily_consistency", _ENC, "Building Habits",
               "Daily reviews are like compound interest for productivity. Small, "
               "consistent actions lead to significant results over time.", _MED),
            _p("daily_timing", _TIP, "Optimal Timing",
               "Most people find daily reviews work best either first thing in the "
               "morning or at the end of the workday. Find your rhythm.", _LOW),
        ],
        StepKind.WELCOME.value: [
            _p("welcome_mindset", _TIP, "Review Mindset",
               "Approach this review as a conversation with your future self. What "
               "would help you feel prepared and confident today?", _MED),
        ],
        StepKind.CALENDAR_CHECK.value: [
            _p("calendar_preparation", _TIP, "Meeting Preparation",
               "For each meeting today, ask: What outcome do I want? What preparation "
               "is needed? What follow-up actions might emerge?", _HIGH),
            _p("time_blocking", _SUGG, "Time Blocking",
               "Consider blocking time for your most important tasks between "
               "meetings. Protect your focus time.", _MED, actionable=True),
        ],
        StepKind.TASK_TRIAGE.value: [
            _p("overdue_action", _WARN, "Overdue Tasks",
               "Overdue tasks can create mental overhead. Be honest about what's "
               "still relevant and reschedule or delete outdated items.", _HIGH,
               conditions=(PromptCondition.HAS_OVERDUE_TASKS,)),
            _p("context_batching", _TIP, "Context Batching",
               "Group similar tasks together. Make all your calls at once, batch your "
               "errands, or dedicate blocks to computer work.", _MED),
        ],
        StepKind.INBOX_PROCESS.value: [
            _p("inbox_zero", _TIP, "Inbox Processing",
               "For each item in your inbox, decide: Is it actionable? If yes, will "
               "it take less than 2 minutes? If so, do it now.", _HIGH),
        ],
        StepKind.PROJECT_REVIEW.value: [
            _p("project_progress", _TIP, "Project Health Check",
               "For each project, ask: What's the next physical action required? Is "
               "this project still aligned with my priorities?", _HIGH),
        ],
        StepKind.SOMEDAY_REVIEW.value: [
            _p("someday_relevance", _TIP, "Someday/Maybe Review",
               "Review your someday/maybe list periodically. Some items may become "
               "irrelevant, while others might be ready to become active projects.",
               _MED),
        ],
        StepKind.WAITING_FOR_REVIEW.value: [
            _p("follow_up_timing", _TIP, "Follow-up Strategy",
               "For items you're waiting on, set a specific follow-up date rather "
               "than just hoping. A gentle check-in shows professionalism.", _HIGH),
        ],
        StepKind.PLANNING.value: [
            _p("daily_planning", _TIP, "Daily Planning",
               "Choose 3 key outcomes for today. Having clear priorities helps you "
               "stay focused when distractions arise.", _HIGH),
        ],
        StepKind.REFLECTION.value: [
            _p("daily_reflection", _INSIGHT, "Learning and Growth",
               "What went well today? What could be improved? Small daily "
               "improvements compound over time.", _MED),
        ],
        StepKind.COMPLETION.value: [
            _p("daily_completion", _ENC, "Review Complete",
               "Well done! You've invested in your future self by taking time to "
               "review and plan. This daily practice builds momentum.", _HIGH),
        ],
    },
    ReviewType.WEEKLY: {
        GENERAL: [
            _p("weekly_importance", _INSIGHT, "Weekly Review Power",
               "David Allen calls the weekly review the \"backbone\" of GTD. It's "
               "where you regain control and perspective on all your commitments.",
               _HIGH),
            _p("weekly_environment", _TIP, "Review Environment",
               "Find a quiet, distraction-free space for your weekly review. This is "
               "strategic thinking time, not operational task-doing time.", _MED),
        ],
        StepKind.WELCOME.value: [
            _p("weekly_mindset", _TIP, "Strategic Perspective",
               "The weekly review is your chance to think strategically. Step back "
               "from the day-to-day and look at the bigger picture.", _HIGH),
        ],
        StepKind.INBOX_PROCESS.value: [
            _p("inbox_zero_goal", _TIP, "Inbox Zero Mindset",
               "The goal isn't to do everything in your inbox, but to decide what "
               "everything means. Clarify, organize, then act.", _HIGH),
            _p("processing_speed", _TIP, "Processing Efficiently",
               "Move quickly through inbox items. If you can't decide in 30 seconds, "
               "it probably needs more information or breaking down.", _MED),
            _p("large_inbox", _SUGG, "Large Inbox Strategy",
               "If your inbox is overwhelming, process the most recent items first, "
               "then tackle older items in batches over several sessions.", _HIGH,
               conditions=(PromptCondition.LARGE_INBOX,)),
        ],
        StepKind.PROJECT_REVIEW.value: [
            _p("project_outcomes", _INSIGHT, "Outcome Clarity",
               "For each project, ask: \"What does success look like?\" and \"What's "
               "the next physical action needed?\" These two questions drive "
               "everything forward.", _HIGH),
            _p("stalled_projects", _WARN, "Stalled Projects",
               "If a project hasn't moved in 2+ weeks, it either needs a clearer next "
               "action or should be moved to Someday/Maybe.", _HIGH,
               conditions=(PromptCondition.HAS_STALLED_PROJECTS,)),
        ],
        StepKind.TASK_TRIAGE.value: [
            _p("weekly_task_review", _TIP, "Task Review",
               "Review all your tasks. Are they still relevant? Do they have clear "
               "next actions? Update or delete as needed.", _HIGH),
        ],
        StepKind.CALENDAR_CHECK.value: [
            _p("calendar_learning", _INSIGHT, "Calendar Insights",
               "Your past week's calendar tells a story. What did you learn about "
               "your time allocation? Where did you create the most value?", _MED),
        ],
        StepKind.WAITING_FOR_REVIEW.value: [
            _p("waiting_for_discipline", _TIP, "Waiting For Discipline",
               "The Waiting For list only works if you actually check it regularly. "
               "Set calendar reminders for important follow-ups.", _HIGH),
        ],
        StepKind.SOMEDAY_REVIEW.value: [
            _p("someday_activation", _TIP, "Activating Someday Items",
               "Someday/Maybe isn't a dumping ground. Regularly ask: \"Is this still "
               "relevant?\" and \"Am I ready to commit to this now?\"", _MED),
            _p("someday_pruning", _SUGG, "Pruning Someday Lists",
               "It's healthy to delete Someday items that no longer excite you. Your "
               "interests and priorities evolve.", _LOW, actionable=True),
        ],
        StepKind.PLANNING.value: [
            _p("weekly_priorities", _INSIGHT, "Weekly Priorities",
               "What are the 3 most important outcomes you want to achieve next "
               "week? Everything else is supporting these priorities.", _HIGH),
            _p("energy_planning", _TIP, "Energy Management",
               "Plan not just what you'll do, but when based on your energy "
               "patterns. Schedule demanding work during your peak hours.", _MED),
        ],
        StepKind.REFLECTION.value: [
            _p("system_improvements", _INSIGHT, "System Evolution",
               "Your GTD system should evolve with you. What's working well? What "
               "friction points can you eliminate?", _MED),
        ],
        StepKind.COMPLETION.value: [
            _p("weekly_completion", _ENC, "Weekly Review Complete",
               "Excellent! You've completed your weekly review. You should feel more "
               "in control and clear about your priorities for the week ahead.",
               _HIGH),
        ],
    },
}


def check_condition(condition: PromptCondition, review_data: Optional[ReviewData]) -> bool:
    """Evaluate one prompt condition against the loaded review data."""
    if condition == PromptCondition.HAS_OVERDUE_TASKS:
        return isinstance(review_data, DailyReviewData) and bool(review_data.overdue_tasks)
    if condition == PromptCondition.LARGE_INBOX:
        return (
            isinstance(review_data, WeeklyReviewData)
            and len(review_data.inbox_items) > LARGE_INBOX_THRESHOLD
        )
    if condition == PromptCondition.HAS_STALLED_PROJECTS:
        # TODO: detect projects whose tasks have not changed in 14 days once
        # task history is tracked; until then this never matches.
        return False
    return True


def select_prompts(
    review_type: ReviewType,
    step: Optional[StepKind] = None,
    review_data: Optional[ReviewData] = None,
    dismissed: frozenset[str] | set[str] = frozenset(),
    compact: bool = False,
) -> list[CoachingPrompt]:
    """Pick the prompts to show: top 1 in compact mode, otherwise top 3."""
    table = COACHING_PROMPTS[review_type]
    candidates = (table.get(step.value, []) if step else []) + table.get(GENERAL, [])
    relevant = [
        prompt
        for prompt in candidates
        if prompt.id not in dismissed
        and all(check_condition(c, review_data) for c in prompt.conditions)
    ]
    # sorted() is stable, so equal priorities keep table order
    relevant = sorted(relevant, key=lambda p: _PRIORITY_RANK[p.priority], reverse=True)
    return relevant[:1] if compact else relevant[:3]


class CoachingSession:
    """Remembers which prompts were dismissed during one review."""

    def __init__(self, review_type: ReviewType, compact: bool = False) -> None:
        self.review_type = review_type
        self.compact = compact
        self.dismissed: set[str] = set()

    def prompts(
        self,
        step: Optional[StepKind] = None,
        review_data: Optional[ReviewData] = None,
    ) -> list[CoachingPrompt]:
        return select_prompts(
            self.review_type,
            step,
            review_data,
            dismissed=self.dismissed,
            compact=self.compact,
        )

    def dismiss(self, prompt_id: str) -> None:
        self.dismissed.add(prompt_id)


# ---------------------------------------------------------------------------
# Completion coaching & reminders
# ---------------------------------------------------------------------------


def completion_message(review_type: ReviewType, duration_minutes: int) -> CoachingMessage:
    """Feedback shown right after a review is completed."""
    if review_type == ReviewType.DAILY:
        if duration_minutes < 5:
            return CoachingMessage(
                title="Quick and Efficient!",
                message="You completed your daily review efficiently. "
                "Consistency beats perfection.",
            )
        if duration_minutes > 15:
            return CoachingMessage(
                title="Thorough Review",
                message="You took time for a thorough review. Consider if you can "
                "streamline future daily reviews.",
                kind=PromptKind.TIP,
            )
    elif review_type == ReviewType.WEEKLY and duration_minutes < 30:
        return CoachingMessage(
            title="Efficient Weekly Review",
            message="Great job completing your weekly review efficiently while "
            "being thorough.",
        )
    return CoachingMessage(
        title="Review Complete!",
        message="Well done on completing your review. Your GTD system is now "
        "current and trustworthy.",
    )


_NEVER_REVIEWED_DAYS = 999


def review_reminder(
    review_type: ReviewType,
    last_review_at: Optional[datetime],
    streak: int = 0,
    today: Optional[date] = None,
) -> Optional[ReviewReminder]:
    """Return a reminder if a review of *review_type* is due, else None.

    Daily reviews are due one day after the last one, weekly reviews after
    seven.
    """
    today = today or date.today()
    if last_review_at is None:
        days_since = _NEVER_REVIEWED_DAYS
    else:
        days_since = (today - last_review_at.date()).days

    if review_type == ReviewType.DAILY:
        if days_since < 1:
            return None
        message = (
            "Time for your daily review"
            if days_since == 1
            else f"Daily review overdue by {days_since} days"
        )
    else:
        if days_since < 7:
            return None
        message = f"Weekly review overdue by {days_since - 7} days"

    return ReviewReminder(
        review_type=review_type,
        days_since_last=days_since,
        message=message,
        streak=streak,
    )
