"""Clarity CLI -- daily and weekly GTD reviews from the terminal."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import typer

from clarity import analytics, coaching, db, display
from clarity import config as cfg
from clarity.models import (
    ProjectCreate,
    ReviewType,
    StepKind,
    TaskAction,
    TaskContext,
    TaskCreate,
    TaskStatus,
)
from clarity.reviews import ReviewError, ReviewService

app = typer.Typer(
    name="clarity",
    help="Capture, clarify and review: a GTD review companion.",
    no_args_is_help=True,
)

review_app = typer.Typer(help="Run a daily or weekly review step by step.", no_args_is_help=True)
app.add_typer(review_app, name="review")

# Enough history for the streak to reach the one-year milestone.
_STREAK_HISTORY = 400


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Capture, clarify and review: a GTD review companion."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _conn() -> db.sqlite3.Connection:
    """Get a database connection (convenience wrapper)."""
    return db.get_connection()


def _service(conn: db.sqlite3.Connection) -> ReviewService:
    return ReviewService(conn, history_limit=cfg.load_config().history_limit)


def _fail(message: str, conn: Optional[db.sqlite3.Connection] = None) -> None:
    display.print_warning(message)
    if conn is not None:
        conn.close()
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


@app.command()
def capture(
    title: str = typer.Argument(..., help="What has your attention?"),
    status: TaskStatus = typer.Option(TaskStatus.CAPTURED, "--status", "-s", help="List to file it on"),
    due: Optional[str] = typer.Option(None, "--due", help="Due date (YYYY-MM-DD)"),
    context: Optional[TaskContext] = typer.Option(None, "--context", "-c", help="Where it can be done"),
    project_id: Optional[int] = typer.Option(None, "--project", "-p", help="Project ID"),
) -> None:
    """Capture a new task (into the inbox by default)."""
    try:
        due_date = date.fromisoformat(due) if due else None
    except ValueError:
        _fail(f"Invalid due date '{due}'. Use YYYY-MM-DD.")
    conn = _conn()
    if project_id is not None and db.get_project(conn, project_id) is None:
        _fail(f"Project #{project_id} not found.", conn)
    task = db.add_task(
        conn,
        TaskCreate(title=title, status=status, due_date=due_date,
                   context=context, project_id=project_id),
    )
    display.print_success(f"Captured task #{task.id}: {task.title}")
    conn.close()


@app.command()
def project(name: str = typer.Argument(..., help="Desired outcome")) -> None:
    """Create a project."""
    conn = _conn()
    created = db.add_project(conn, ProjectCreate(name=name))
    display.print_success(f"Added project #{created.id}: {created.name}")
    conn.close()


@app.command(name="tasks")
def list_tasks(
    status: Optional[TaskStatus] = typer.Option(None, "--status", "-s", help="Only this list"),
) -> None:
    """List tasks, grouped by GTD list."""
    conn = _conn()
    if status is not None:
        display.print_task_list(db.list_tasks(conn, status), title=status.value.replace("_", " ").title())
        conn.close()
        return

    shown = 0
    for s in TaskStatus:
        if s == TaskStatus.COMPLETED:
            continue
        tasks = db.list_tasks(conn, s)
        if tasks:
            display.print_task_list(tasks, title=s.value.replace("_", " ").title())
            shown += len(tasks)
    if not shown:
        display.print_task_list([])
    conn.close()


# ---------------------------------------------------------------------------
# Review session
# ---------------------------------------------------------------------------


@review_app.command()
def start(
    review_type: ReviewType = typer.Argument(ReviewType.DAILY, help="daily or weekly"),
) -> None:
    """Start a review (or rejoin the one in progress)."""
    conn = _conn()
    svc = _service(conn)
    try:
        session = svc.start_review(review_type)
    except ReviewError as exc:
        _fail(f"Could not start review: {exc}", conn)

    if session.type != review_type:
        display.print_info(
            f"A {session.type.value} review is already in progress; continuing it."
        )
    display.print_session(session)
    if session.type == ReviewType.DAILY and svc.daily_review_data:
        display.print_daily_data(svc.daily_review_data)
    elif session.type == ReviewType.WEEKLY and svc.weekly_review_data:
        display.print_weekly_data(svc.weekly_review_data)
    display.print_prompts(
        coaching.select_prompts(session.type, session.next_step, compact=True)
    )
    conn.close()


@review_app.command()
def show() -> None:
    """Show the review in progress and its data."""
    conn = _conn()
    svc = _service(conn)
    session = svc.current_session
    display.print_session(session)
    if session is not None:
        data = (
            svc.daily_review_data if session.type == ReviewType.DAILY
            else svc.weekly_review_data
        )
        if data is not None:
            if session.type == ReviewType.DAILY:
                display.print_daily_data(data)
            else:
                display.print_weekly_data(data)
    conn.close()


@review_app.command()
def step(
    step_kind: StepKind = typer.Argument(..., help="Step that was finished"),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Step payload as JSON"),
) -> None:
    """Mark a review step as done, with optional JSON data."""
    try:
        payload = json.loads(data) if data else None
    except json.JSONDecodeError as exc:
        _fail(f"--data is not valid JSON: {exc.msg}")
    if payload is not None and not isinstance(payload, dict):
        _fail("--data must be a JSON object.")

    conn = _conn()
    svc = _service(conn)
    session = svc.current_session
    if session is None:
        _fail("No review in progress. Run 'clarity review start' first.", conn)

    svc.error = None
    updated = svc.complete_review_step(session, step_kind, payload)
    if svc.error:
        _fail(svc.error, conn)

    display.print_session(updated)
    if updated is not None and updated.next_step is None:
        display.print_info("All steps done. Run 'clarity review finish' to complete the review.")
    elif updated is not None:
        display.print_prompts(
            coaching.select_prompts(
                updated.type,
                updated.next_step,
                svc.daily_review_data if updated.type == ReviewType.DAILY else svc.weekly_review_data,
                compact=True,
            )
        )
    conn.close()


@review_app.command()
def pause() -> None:
    """Pause the review in progress."""
    _toggle(pause=True)


@review_app.command()
def resume() -> None:
    """Resume a paused review."""
    _toggle(pause=False)


def _toggle(pause: bool) -> None:
    conn = _conn()
    svc = _service(conn)
    if svc.current_session is None:
        _fail("No review in progress.", conn)
    svc.error = None
    if pause:
        session = svc.pause_review(svc.current_session)
    else:
        session = svc.resume_review(svc.current_session)
    if svc.error:
        _fail(svc.error, conn)
    display.print_session(session)
    conn.close()


@review_app.command()
def finish(
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Closing notes"),
) -> None:
    """Complete the review in progress."""
    conn = _conn()
    svc = _service(conn)
    session = svc.current_session
    if notes is None and session is not None:
        notes = session.session_data.get(StepKind.REFLECTION, {}).get("notes")
    try:
        review = svc.complete_review(session, notes)
    except ReviewError as exc:
        _fail(str(exc), conn)
    display.print_completion(
        review, coaching.completion_message(review.type, review.duration_minutes)
    )
    conn.close()


@review_app.command()
def abandon() -> None:
    """Abandon the review in progress. Nothing is recorded."""
    conn = _conn()
    svc = _service(conn)
    if svc.current_session is None:
        _fail("No review in progress.", conn)
    svc.error = None
    svc.abandon_review(svc.current_session)
    if svc.error:
        _fail(svc.error, conn)
    display.print_success("Review abandoned.")
    conn.close()


@app.command()
def act(
    task_id: int = typer.Argument(..., help="Task ID"),
    action: TaskAction = typer.Argument(..., help="What to do with it"),
    project_id: Optional[int] = typer.Option(None, "--project", "-p", help="Project for assign_project"),
) -> None:
    """Act on a task during a review (complete, defer, re-file...)."""
    conn = _conn()
    svc = _service(conn)
    try:
        task = svc.apply_task_action(task_id, action, project_id=project_id)
    except ReviewError as exc:
        _fail(str(exc), conn)
    display.print_success(f"#{task.id} {task.title}: {action.value.replace('_', ' ')}")
    conn.close()


@app.command()
def coach(
    review_type: Optional[ReviewType] = typer.Option(None, "--type", "-t", help="daily or weekly"),
    step_kind: Optional[StepKind] = typer.Option(None, "--step", help="Step to get advice for"),
    compact: bool = typer.Option(False, "--compact", help="Only the top prompt"),
) -> None:
    """Get coaching prompts for the current (or a given) review step."""
    conn = _conn()
    svc = _service(conn)
    session = svc.current_session
    rtype = review_type or (session.type if session else ReviewType.DAILY)
    kind = step_kind or (session.next_step if session and session.type == rtype else None)
    data = svc.daily_review_data if rtype == ReviewType.DAILY else svc.weekly_review_data
    prompts = coaching.CoachingSession(rtype, compact=compact).prompts(kind, data)
    display.print_prompts(prompts)
    conn.close()


# ---------------------------------------------------------------------------
# History & analytics
# ---------------------------------------------------------------------------


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of reviews to show"),
) -> None:
    """List recently completed reviews."""
    conn = _conn()
    display.print_history(db.list_reviews(conn, limit=limit))
    conn.close()


@app.command()
def stats(
    days: int = typer.Option(30, "--days", help="Metrics window in days"),
) -> None:
    """Show the review analytics dashboard."""
    conn = _conn()
    svc = ReviewService(conn, auto_load=False)
    svc.load_review_history(limit=_STREAK_HISTORY)
    svc.load_metrics(days)
    try:
        svc.load_weekly_review_data()
    except ReviewError as exc:
        _fail(str(exc), conn)
    display.print_dashboard(
        svc.recent_reviews,
        svc.metrics,
        svc.get_weekly_insights(),
        svc.get_review_streak(),
        svc.get_completion_rate(7),
    )
    conn.close()


@app.command()
def chart(
    output: Path = typer.Argument(..., help="PNG file to write"),
    kind: str = typer.Option("pattern", "--kind", "-k", help="pattern or metrics"),
    days: int = typer.Option(30, "--days", help="Metrics window in days"),
) -> None:
    """Save an analytics chart as a PNG."""
    from clarity.charts import metrics_timeseries, weekday_pattern

    conn = _conn()
    if kind == "pattern":
        image = weekday_pattern(db.list_reviews(conn, limit=_STREAK_HISTORY))
    elif kind == "metrics":
        since = date.today().toordinal() - days
        image = metrics_timeseries(db.list_metrics(conn, date.fromordinal(since)))
        if image is None:
            _fail("Not enough metrics yet; need at least two days.", conn)
    else:
        _fail(f"Unknown chart '{kind}'. Use 'pattern' or 'metrics'.", conn)
    image.save(output)
    display.print_success(f"Chart saved to {output}")
    conn.close()


@app.command()
def remind() -> None:
    """Show which reviews are due."""
    conn = _conn()
    config = cfg.load_config()
    streak_reviews = db.list_reviews(conn, ReviewType.DAILY, limit=_STREAK_HISTORY)
    streak = analytics.review_streak(streak_reviews)
    any_due = False
    for review_type in ReviewType:
        schedule = cfg.get_schedule(config, review_type)
        if schedule is not None and not schedule.enabled:
            continue
        last = db.list_reviews(conn, review_type, limit=1)
        reminder = coaching.review_reminder(
            review_type,
            last[0].completed_at if last else None,
            streak if review_type == ReviewType.DAILY else 0,
        )
        if reminder is not None:
            any_due = True
            display.print_reminder(reminder)
        nxt = cfg.next_occurrence(schedule) if schedule else None
        if nxt is not None:
            display.print_info(
                f"Next {review_type.value} review: {nxt.strftime('%a %Y-%m-%d %H:%M')}"
            )
    if not any_due:
        display.print_success("All reviews are up to date.")
    conn.close()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@app.command()
def config(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Set a custom database file path"),
    reset: bool = typer.Option(False, "--reset", help="Reset to default local DB"),
    show: bool = typer.Option(False, "--show", help="Show current config"),
) -> None:
    """Configure where your data is stored."""
    if db_path:
        result = cfg.set_db_path(db_path)
        display.print_success(f"Database path set to: {result.db_path}")
    elif reset:
        cfg.reset_db_path()
        display.print_success("Reset to default local database.")
    elif show:
        current = cfg.load_config()
        resolved = cfg.get_db_path()
        if current.db_path:
            display.print_info(f"Database: {current.db_path}")
        else:
            display.print_info(f"Database: {resolved} (default)")
        for schedule in current.review_schedules:
            state = "on" if schedule.enabled else "off"
            days = ",".join(str(d) for d in schedule.days) or "-"
            display.print_info(
                f"{schedule.type.value} review: {schedule.time} days {days} ({state})"
            )
    else:
        display.print_info("Use --db-path, --reset, or --show.")


@app.command()
def schedule(
    review_type: ReviewType = typer.Argument(..., help="daily or weekly"),
    time: Optional[str] = typer.Option(None, "--time", help="HH:MM"),
    days: Optional[str] = typer.Option(None, "--days", help="Comma-separated, 0 = Sunday"),
    enable: bool = typer.Option(False, "--enable", help="Turn the schedule on"),
    disable: bool = typer.Option(False, "--disable", help="Turn the schedule off"),
) -> None:
    """Change when a review is scheduled."""
    enabled = True if enable else (False if disable else None)
    try:
        day_list = [int(d) for d in days.split(",")] if days else None
        updated = cfg.update_schedule(review_type, time=time, days=day_list, enabled=enabled)
    except ValueError as exc:
        _fail(str(exc))
    current = next(s for s in updated.review_schedules if s.type == review_type)
    display.print_success(
        f"{review_type.value.title()} review scheduled at {current.time} "
        f"on days {','.join(str(d) for d in current.days) or '-'}"
        f"{'' if current.enabled else ' (disabled)'}"
    )
