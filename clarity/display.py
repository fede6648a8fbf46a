"""Rich terminal formatting helpers."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from clarity import analytics
from clarity.models import (
    CoachingMessage,
    CoachingPrompt,
    DailyReviewData,
    PromptPriority,
    Review,
    ReviewMetrics,
    ReviewReminder,
    ReviewSession,
    SessionStatus,
    Task,
    TaskStatus,
    WeeklyInsights,
    WeeklyReviewData,
)

console = Console()

_STATUS_STYLE: dict[TaskStatus, str] = {
    TaskStatus.CAPTURED: "dim",
    TaskStatus.NEXT_ACTION: "bold cyan",
    TaskStatus.PROJECT: "magenta",
    TaskStatus.WAITING_FOR: "yellow",
    TaskStatus.SOMEDAY: "blue",
    TaskStatus.COMPLETED: "green",
}

_STATUS_ICON: dict[TaskStatus, str] = {
    TaskStatus.CAPTURED: "[ ]",
    TaskStatus.NEXT_ACTION: "[>]",
    TaskStatus.PROJECT: "[P]",
    TaskStatus.WAITING_FOR: "[~]",
    TaskStatus.SOMEDAY: "[?]",
    TaskStatus.COMPLETED: "[x]",
}

_SESSION_STYLE: dict[SessionStatus, str] = {
    SessionStatus.ACTIVE: "green",
    SessionStatus.PAUSED: "yellow",
    SessionStatus.COMPLETED: "blue",
    SessionStatus.ABANDONED: "dim",
}

_PROMPT_STYLE: dict[PromptPriority, str] = {
    PromptPriority.HIGH: "magenta",
    PromptPriority.MEDIUM: "blue",
    PromptPriority.LOW: "dim",
}


def print_task_list(tasks: Sequence[Task], title: str = "Tasks") -> None:
    """Print a list of tasks in a panel."""
    if not tasks:
        console.print(Panel("No tasks.", title=title, border_style="dim"))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("status", width=3)
    table.add_column("id", width=5)
    table.add_column("title")
    table.add_column("due", justify="right")

    for task in tasks:
        table.add_row(
            Text(_STATUS_ICON[task.status]),
            f"#{task.id}",
            Text(task.title),
            task.due_date.isoformat() if task.due_date else "",
            style=_STATUS_STYLE[task.status],
        )

    console.print(Panel(table, title=title, border_style="blue"))


def print_session(session: Optional[ReviewSession]) -> None:
    """Print where the open review stands."""
    if session is None:
        console.print(Panel("No review in progress.", title="Review", border_style="dim"))
        return

    done = set(session.completed_steps)
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("mark", width=3)
    table.add_column("step")
    for index, step in enumerate(session.steps):
        if step in done:
            mark, style = "[x]", "green"
        elif index == session.current_step:
            mark, style = "[>]", "bold cyan"
        else:
            mark, style = "[ ]", "dim"
        table.add_row(Text(mark), step.value.replace("_", " "), style=style)

    title = (
        f"{session.type.value.title()} review #{session.id} "
        f"({session.status.value}, step {min(session.current_step, session.total_steps)}"
        f"/{session.total_steps})"
    )
    console.print(Panel(table, title=title, border_style=_SESSION_STYLE[session.status]))


def print_daily_data(data: DailyReviewData) -> None:
    print_task_list(data.overdue_tasks, title="Overdue")
    print_task_list(data.todays_tasks, title="Due today")
    print_task_list(data.waiting_for_items, title="Waiting for")
    print_task_list(data.completed_tasks, title="Completed since yesterday")
    if data.tomorrows_plan:
        console.print(Panel(Text("\n".join(f"- {p}" for p in data.tomorrows_plan)),
                            title="Tomorrow", border_style="green"))


def print_weekly_data(data: WeeklyReviewData) -> None:
    print_task_list(data.inbox_items, title=f"Inbox ({len(data.inbox_items)})")
    if data.all_projects:
        projects = "\n".join(f"#{p.id} {p.name}" for p in data.all_projects)
    else:
        projects = "No active projects."
    console.print(Panel(Text(projects), title="Active projects", border_style="magenta"))
    print_task_list(data.someday_items, title="Someday / maybe")
    print_task_list(data.completed_this_week, title="Completed this week")
    print_insights(data.insights)


def print_insights(insights: WeeklyInsights) -> None:
    contexts = ", ".join(c.value for c in insights.top_contexts) or "-"
    lines = [
        f"Tasks completed: {insights.tasks_completed}",
        f"Projects progressed: {insights.projects_progressed}",
        f"Average per day: {insights.avg_tasks_per_day:.1f}",
        f"Top contexts: {contexts}",
        f"Review streak: {insights.streak_days} day{'s' if insights.streak_days != 1 else ''}",
    ]
    console.print(Panel("\n".join(lines), title="Weekly insights", border_style="green"))


def print_prompts(prompts: Sequence[CoachingPrompt]) -> None:
    for prompt in prompts:
        body = Text(prompt.message)
        body.append(f"\n\n{prompt.kind.value} - {prompt.id}", style="dim")
        console.print(Panel(body, title=prompt.title,
                            border_style=_PROMPT_STYLE[prompt.priority]))


def print_history(reviews: Sequence[Review]) -> None:
    if not reviews:
        console.print(Panel("No reviews completed yet.", title="Recent reviews",
                            border_style="dim"))
        return
    table = Table(box=None)
    table.add_column("#", justify="right")
    table.add_column("type")
    table.add_column("completed")
    table.add_column("minutes", justify="right")
    table.add_column("tasks", justify="right")
    for review in reviews:
        table.add_row(
            str(review.id),
            review.type.value,
            review.completed_at.strftime("%Y-%m-%d %H:%M"),
            str(review.duration_minutes),
            str(review.tasks_reviewed),
        )
    console.print(Panel(table, title="Recent reviews", border_style="blue"))


def print_dashboard(
    reviews: Sequence[Review],
    metrics: Sequence[ReviewMetrics],
    insights: Optional[WeeklyInsights],
    streak: int,
    rate: int,
) -> None:
    """Print the analytics dashboard."""
    stats = analytics.review_stats(reviews)
    health = analytics.system_health(metrics, insights)
    milestone = analytics.next_milestone(streak)
    patterns = analytics.analyze_review_patterns(reviews)
    trend = analytics.productivity_trend(metrics)

    lines = [
        f"Current streak: {streak} day{'s' if streak != 1 else ''}",
        f"Completion rate (7 days): {rate}%",
        f"Total reviews: {stats.total_reviews}",
        f"Average duration: {stats.avg_minutes} min",
        f"System health: {health}% ({analytics.health_label(health)})",
        f"Productivity trend: {'+' if trend > 0 else ''}{trend}",
        f"Best review day: {patterns.best_day}",
    ]
    console.print(Panel("\n".join(lines), title="Review analytics", border_style="green"))

    console.print(
        f"Next milestone: {milestone} days ({milestone - streak} to go)"
    )
    console.print(ProgressBar(total=milestone, completed=streak, width=40))

    for badge in analytics.achievements(streak, rate):
        mark = f"[green]{escape('[x]')}[/green]" if badge.completed else "[dim][ ][/dim]"
        console.print(f"{mark} [bold]{badge.title}[/bold] - {badge.description}")


def print_completion(review: Review, message: CoachingMessage) -> None:
    text = Text(f"{message.title}\n\n{message.message}", justify="center")
    text.append(
        f"\n\nDuration: {review.duration_minutes} min   "
        f"Steps reviewed: {review.tasks_reviewed}",
        style="dim",
    )
    console.print(Panel(text, border_style="magenta", padding=(1, 4)))


def print_reminder(reminder: ReviewReminder) -> None:
    message = reminder.message
    if reminder.streak > 0:
        message += f"\nDon't break your {reminder.streak}-day streak!"
    console.print(Panel(Text(message), title=f"{reminder.review_type.value.title()} review due",
                        border_style="yellow"))


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{escape(message)}[/green]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{escape(message)}[/blue]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{escape(message)}[/yellow]")
