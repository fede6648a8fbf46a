"""Pydantic models -- single source of truth for all data types."""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Tasks & projects
# ---------------------------------------------------------------------------


class TaskStatus(str, enum.Enum):
    """GTD list a task currently lives on."""

    CAPTURED = "captured"
    NEXT_ACTION = "next_action"
    PROJECT = "project"
    WAITING_FOR = "waiting_for"
    SOMEDAY = "someday"
    COMPLETED = "completed"


class TaskContext(str, enum.Enum):
    CALLS = "calls"
    COMPUTER = "computer"
    ERRANDS = "errands"
    HOME = "home"
    OFFICE = "office"
    ANYWHERE = "anywhere"


class EnergyLevel(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskDuration(str, enum.Enum):
    FIVE_MIN = "5min"
    FIFTEEN_MIN = "15min"
    THIRTY_MIN = "30min"
    ONE_HOUR = "1hour"
    TWO_HOURS_PLUS = "2hour+"


class Task(BaseModel):
    """A single unit of work."""

    id: int
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    status: TaskStatus = TaskStatus.CAPTURED
    project_id: Optional[int] = None
    context: Optional[TaskContext] = None
    energy_level: Optional[EnergyLevel] = None
    estimated_duration: Optional[TaskDuration] = None
    due_date: Optional[date] = None
    priority: Optional[int] = Field(default=None, ge=1, le=4)  # 1 = urgent
    tags: list[str] = Field(default_factory=list)
    waiting_for: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def is_overdue(self) -> bool:
        return self.due_date is not None and self.due_date < date.today()


class TaskCreate(BaseModel):
    """Input model for capturing a new task."""

    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.CAPTURED
    project_id: Optional[int] = None
    context: Optional[TaskContext] = None
    energy_level: Optional[EnergyLevel] = None
    estimated_duration: Optional[TaskDuration] = None
    due_date: Optional[date] = None
    priority: Optional[int] = Field(default=None, ge=1, le=4)
    tags: list[str] = Field(default_factory=list)
    waiting_for: Optional[str] = None


class TaskAction(str, enum.Enum):
    """Things a review step can do to a task it is looking at."""

    COMPLETE = "complete"
    DEFER = "defer"  # due tomorrow
    CONVERT_TO_NEXT_ACTION = "convert_to_next_action"
    CONVERT_TO_PROJECT = "convert_to_project"
    DEFER_TO_SOMEDAY = "defer_to_someday"
    ASSIGN_PROJECT = "assign_project"


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class Project(BaseModel):
    """A multi-step outcome that owns tasks through ``Task.project_id``."""

    id: int
    name: str
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ProjectCreate(BaseModel):
    """Input model for creating a project."""

    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Review sessions
# ---------------------------------------------------------------------------


class ReviewType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class SessionStatus(str, enum.Enum):
    """Lifecycle of a single review attempt."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


OPEN_STATUSES = (SessionStatus.ACTIVE, SessionStatus.PAUSED)


class StepKind(str, enum.Enum):
    WELCOME = "welcome"
    CALENDAR_CHECK = "calendar_check"
    INBOX_PROCESS = "inbox_process"
    TASK_TRIAGE = "task_triage"
    PROJECT_REVIEW = "project_review"
    WAITING_FOR_REVIEW = "waiting_for_review"
    SOMEDAY_REVIEW = "someday_review"
    PLANNING = "planning"
    REFLECTION = "reflection"
    COMPLETION = "completion"


DAILY_STEPS: tuple[StepKind, ...] = (
    StepKind.WELCOME,
    StepKind.CALENDAR_CHECK,
    StepKind.TASK_TRIAGE,
    StepKind.WAITING_FOR_REVIEW,
    StepKind.PLANNING,
    StepKind.REFLECTION,
)

WEEKLY_STEPS: tuple[StepKind, ...] = (
    StepKind.WELCOME,
    StepKind.INBOX_PROCESS,
    StepKind.PROJECT_REVIEW,
    StepKind.CALENDAR_CHECK,
    StepKind.WAITING_FOR_REVIEW,
    StepKind.SOMEDAY_REVIEW,
    StepKind.PLANNING,
    StepKind.REFLECTION,
    StepKind.TASK_TRIAGE,
    StepKind.COMPLETION,
)

STEPS_BY_TYPE: dict[ReviewType, tuple[StepKind, ...]] = {
    ReviewType.DAILY: DAILY_STEPS,
    ReviewType.WEEKLY: WEEKLY_STEPS,
}


class _StepPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class WelcomeData(_StepPayload):
    acknowledged: bool = True


class CalendarCheckData(_StepPayload):
    calendar_reviewed: bool = False
    conflicts: list[str] = Field(default_factory=list)
    past_week_reviewed: bool = False
    upcoming_reviewed: bool = False


class InboxProcessData(_StepPayload):
    processed_items: list[int] = Field(default_factory=list)


class TaskTriageData(_StepPayload):
    reviewed_task_ids: list[int] = Field(default_factory=list)


class ProjectReviewData(_StepPayload):
    reviewed_projects: list[int] = Field(default_factory=list)


class WaitingForReviewData(_StepPayload):
    reviewed_item_ids: list[int] = Field(default_factory=list)


class SomedayReviewData(_StepPayload):
    reviewed_item_ids: list[int] = Field(default_factory=list)
    activated_item_ids: list[int] = Field(default_factory=list)


class PlanningData(_StepPayload):
    tomorrows_plan: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)
    weekly_goals: list[str] = Field(default_factory=list)


class ReflectionData(_StepPayload):
    notes: Optional[str] = None
    wins: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)


class CompletionData(_StepPayload):
    confirmed: bool = True


STEP_PAYLOADS: dict[StepKind, type[_StepPayload]] = {
    StepKind.WELCOME: WelcomeData,
    StepKind.CALENDAR_CHECK: CalendarCheckData,
    StepKind.INBOX_PROCESS: InboxProcessData,
    StepKind.TASK_TRIAGE: TaskTriageData,
    StepKind.PROJECT_REVIEW: ProjectReviewData,
    StepKind.WAITING_FOR_REVIEW: WaitingForReviewData,
    StepKind.SOMEDAY_REVIEW: SomedayReviewData,
    StepKind.PLANNING: PlanningData,
    StepKind.REFLECTION: ReflectionData,
    StepKind.COMPLETION: CompletionData,
}


class ReviewSession(BaseModel):
    """A single in-flight review attempt.

    ``version`` is bumped by every persisted update and checked before the
    next one, so two writers working from the same snapshot cannot both win.
    """

    id: int
    type: ReviewType
    status: SessionStatus = SessionStatus.ACTIVE
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(gt=0)
    completed_steps: list[StepKind] = Field(default_factory=list)
    session_data: dict[StepKind, dict] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)
    version: int = Field(default=1, ge=1)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def steps(self) -> tuple[StepKind, ...]:
        return STEPS_BY_TYPE[self.type]

    @property
    def next_step(self) -> Optional[StepKind]:
        """The step the sequence suggests next, or None once past the end."""
        if self.current_step < len(self.steps):
            return self.steps[self.current_step]
        return None


class ReviewProgressData(BaseModel):
    current_step: int
    total_steps: int
    completed_steps: list[StepKind] = Field(default_factory=list)
    started_at: datetime


class Review(BaseModel):
    """Immutable record of a completed review session."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: ReviewType
    completed_at: datetime
    notes: Optional[str] = None
    duration_minutes: int = Field(default=0, ge=0)
    tasks_reviewed: int = Field(default=0, ge=0)
    projects_reviewed: int = Field(default=0, ge=0)
    progress_data: Optional[ReviewProgressData] = None


class ReviewCreate(BaseModel):
    """Input model for inserting a review record."""

    type: ReviewType
    completed_at: datetime
    notes: Optional[str] = None
    duration_minutes: int = Field(default=0, ge=0)
    tasks_reviewed: int = Field(default=0, ge=0)
    projects_reviewed: int = Field(default=0, ge=0)
    progress_data: Optional[ReviewProgressData] = None


class ReviewMetrics(BaseModel):
    """Per-day aggregate counters."""

    id: int
    date: date
    daily_reviews_completed: int = Field(default=0, ge=0)
    weekly_reviews_completed: int = Field(default=0, ge=0)
    tasks_completed: int = Field(default=0, ge=0)
    tasks_created: int = Field(default=0, ge=0)
    projects_updated: int = Field(default=0, ge=0)
    inbox_items_processed: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Review view models (derived, never persisted)
# ---------------------------------------------------------------------------


class WeeklyInsights(BaseModel):
    tasks_completed: int = Field(default=0, ge=0)
    projects_progressed: int = Field(default=0, ge=0)
    avg_tasks_per_day: float = Field(default=0.0, ge=0)
    top_contexts: list[TaskContext] = Field(default_factory=list)
    streak_days: int = Field(default=0, ge=0)


class DailyReviewData(BaseModel):
    todays_tasks: list[Task] = Field(default_factory=list)
    overdue_tasks: list[Task] = Field(default_factory=list)
    waiting_for_items: list[Task] = Field(default_factory=list)
    completed_tasks: list[Task] = Field(default_factory=list)
    tomorrows_plan: list[str] = Field(default_factory=list)


class WeeklyReviewData(BaseModel):
    inbox_items: list[Task] = Field(default_factory=list)
    all_projects: list[Project] = Field(default_factory=list)
    someday_items: list[Task] = Field(default_factory=list)
    completed_this_week: list[Task] = Field(default_factory=list)
    insights: WeeklyInsights = Field(default_factory=WeeklyInsights)


# ---------------------------------------------------------------------------
# Analytics results
# ---------------------------------------------------------------------------


class DayCount(BaseModel):
    name: str
    count: int = Field(ge=0)
    percentage: float = Field(ge=0)


class ReviewPatterns(BaseModel):
    """Day-of-week breakdown of completed reviews.

    ``preferred_time`` and ``consistency_score`` are not computed yet and are
    always None.
    """

    best_day: str
    weekly_breakdown: list[DayCount]
    preferred_time: Optional[str] = None
    consistency_score: Optional[int] = None


class ReviewStats(BaseModel):
    total_reviews: int = Field(default=0, ge=0)
    avg_minutes: int = Field(default=0, ge=0)


class Achievement(BaseModel):
    title: str
    description: str
    completed: bool = False


# ---------------------------------------------------------------------------
# Coaching
# ---------------------------------------------------------------------------


class PromptPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PromptKind(str, enum.Enum):
    TIP = "tip"
    INSIGHT = "insight"
    ENCOURAGEMENT = "encouragement"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class PromptCondition(str, enum.Enum):
    HAS_OVERDUE_TASKS = "has_overdue_tasks"
    LARGE_INBOX = "large_inbox"
    HAS_STALLED_PROJECTS = "has_stalled_projects"


class CoachingPrompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: PromptKind
    title: str
    message: str
    priority: PromptPriority
    actionable: bool = False
    conditions: tuple[PromptCondition, ...] = ()


class CoachingMessage(BaseModel):
    title: str
    message: str
    kind: PromptKind = PromptKind.ENCOURAGEMENT


class ReviewReminder(BaseModel):
    review_type: ReviewType
    days_since_last: int
    message: str
    streak: int = 0


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ReviewSchedule(BaseModel):
    """When a review type should happen. Days use 0 = Sunday."""

    type: ReviewType
    enabled: bool = True
    time: str = Field(default="09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    days: list[int] = Field(default_factory=list)
    reminder_enabled: bool = True
    reminder_minutes_before: int = Field(default=15, ge=0)


def _default_schedules() -> list[ReviewSchedule]:
    return [
        ReviewSchedule(
            type=ReviewType.DAILY, time="09:00", days=[1, 2, 3, 4, 5],
            reminder_minutes_before=15,
        ),
        ReviewSchedule(
            type=ReviewType.WEEKLY, time="10:00", days=[5],
            reminder_minutes_before=30,
        ),
    ]


class AppConfig(BaseModel):
    """Application configuration (persisted to ~/.config/clarity/config.json)."""

    db_path: Optional[str] = None  # None = use default (~/.local/share/clarity/)
    history_limit: int = Field(default=10, gt=0)
    review_schedules: list[ReviewSchedule] = Field(default_factory=_default_schedules)
