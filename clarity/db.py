"""SQLite database layer. All public functions return Pydantic models."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from clarity.config import get_db_path as _config_get_db_path
from clarity.models import (
    OPEN_STATUSES,
    Project,
    ProjectCreate,
    ProjectStatus,
    Review,
    ReviewCreate,
    ReviewMetrics,
    ReviewProgressData,
    ReviewSession,
    ReviewType,
    SessionStatus,
    Task,
    TaskCreate,
    TaskStatus,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    description TEXT,
    status      TEXT    NOT NULL DEFAULT 'active',
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    title              TEXT    NOT NULL,
    description        TEXT,
    notes              TEXT,
    status             TEXT    NOT NULL DEFAULT 'captured',
    project_id         INTEGER REFERENCES projects(id),
    context            TEXT,
    energy_level       TEXT,
    estimated_duration TEXT,
    due_date           TEXT,
    priority           INTEGER,
    tags               TEXT    NOT NULL DEFAULT '[]',
    waiting_for        TEXT,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL,
    completed_at       TEXT
);

CREATE TABLE IF NOT EXISTS review_sessions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    type            TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'active',
    current_step    INTEGER NOT NULL DEFAULT 0,
    total_steps     INTEGER NOT NULL,
    completed_steps TEXT    NOT NULL DEFAULT '[]',
    session_data    TEXT    NOT NULL DEFAULT '{}',
    started_at      TEXT    NOT NULL,
    completed_at    TEXT,
    updated_at      TEXT    NOT NULL,
    version         INTEGER NOT NULL DEFAULT 1
);

-- At most one active or paused session at a time.
CREATE UNIQUE INDEX IF NOT EXISTS idx_review_sessions_single_open
    ON review_sessions ((status IN ('active', 'paused')))
    WHERE status IN ('active', 'paused');

CREATE TABLE IF NOT EXISTS reviews (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    type              TEXT    NOT NULL,
    completed_at      TEXT    NOT NULL,
    notes             TEXT,
    duration_minutes  INTEGER NOT NULL DEFAULT 0,
    tasks_reviewed    INTEGER NOT NULL DEFAULT 0,
    projects_reviewed INTEGER NOT NULL DEFAULT 0,
    progress_data     TEXT
);

CREATE TABLE IF NOT EXISTS review_metrics (
    id                       INTEGER PRIMARY KEY AUTOINCREMENT,
    date                     TEXT    NOT NULL UNIQUE,
    daily_reviews_completed  INTEGER NOT NULL DEFAULT 0,
    weekly_reviews_completed INTEGER NOT NULL DEFAULT 0,
    tasks_completed          INTEGER NOT NULL DEFAULT 0,
    tasks_created            INTEGER NOT NULL DEFAULT 0,
    projects_updated         INTEGER NOT NULL DEFAULT 0,
    inbox_items_processed    INTEGER NOT NULL DEFAULT 0
);
"""

_METRIC_COLUMNS = frozenset(
    {
        "daily_reviews_completed",
        "weekly_reviews_completed",
        "tasks_completed",
        "tasks_created",
        "projects_updated",
        "inbox_items_processed",
    }
)


def _get_db_path() -> Path:
    """Return the database file path from config (or default)."""
    return _config_get_db_path()


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open a connection and ensure the schema exists."""
    path = db_path or _get_db_path()
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(_SCHEMA)
    return conn


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now()


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def bump_metric(
    conn: sqlite3.Connection, column: str, for_date: date, amount: int = 1
) -> None:
    """Add *amount* to one counter of the metrics row for *for_date* (upsert)."""
    if column not in _METRIC_COLUMNS:
        raise ValueError(f"Unknown metrics column: {column}")
    conn.execute(
        f"""INSERT INTO review_metrics (date, {column}) VALUES (?, ?)
            ON CONFLICT(date) DO UPDATE SET {column} = {column} + excluded.{column}""",
        (for_date.isoformat(), amount),
    )
    conn.commit()


def record_review_completion(
    conn: sqlite3.Connection, review_type: ReviewType, for_date: date
) -> ReviewMetrics:
    """Count one completed review of *review_type* on *for_date*."""
    bump_metric(conn, f"{review_type.value}_reviews_completed", for_date)
    row = conn.execute(
        "SELECT * FROM review_metrics WHERE date = ?", (for_date.isoformat(),)
    ).fetchone()
    return _row_to_metrics(row)


def _row_to_metrics(row: sqlite3.Row) -> ReviewMetrics:
    """Convert a database row to a ReviewMetrics model."""
    return ReviewMetrics(
        id=row["id"],
        date=date.fromisoformat(row["date"]),
        daily_reviews_completed=row["daily_reviews_completed"],
        weekly_reviews_completed=row["weekly_reviews_completed"],
        tasks_completed=row["tasks_completed"],
        tasks_created=row["tasks_created"],
        projects_updated=row["projects_updated"],
        inbox_items_processed=row["inbox_items_processed"],
    )


def get_metrics(conn: sqlite3.Connection, for_date: date) -> Optional[ReviewMetrics]:
    """Fetch the metrics row for a single date."""
    row = conn.execute(
        "SELECT * FROM review_metrics WHERE date = ?", (for_date.isoformat(),)
    ).fetchone()
    return _row_to_metrics(row) if row else None


def list_metrics(conn: sqlite3.Connection, since: date) -> list[ReviewMetrics]:
    """Metrics rows dated on/after *since*, newest first."""
    rows = conn.execute(
        "SELECT * FROM review_metrics WHERE date >= ? ORDER BY date DESC",
        (since.isoformat(),),
    ).fetchall()
    return [_row_to_metrics(r) for r in rows]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def _row_to_project(row: sqlite3.Row) -> Project:
    """Convert a database row to a Project model."""
    return Project(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        status=ProjectStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def add_project(
    conn: sqlite3.Connection, project_in: ProjectCreate, now: Optional[datetime] = None
) -> Project:
    """Insert a new active project and return it as a model."""
    ts = _now(now).isoformat()
    cur = conn.execute(
        "INSERT INTO projects (name, description, status, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?)",
        (project_in.name, project_in.description, ProjectStatus.ACTIVE.value, ts, ts),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_project(row)


def get_project(conn: sqlite3.Connection, project_id: int) -> Optional[Project]:
    """Fetch a single project by ID."""
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return _row_to_project(row) if row else None


def list_projects(
    conn: sqlite3.Connection, status: Optional[ProjectStatus] = None
) -> list[Project]:
    """List projects, optionally filtered by status."""
    query = "SELECT * FROM projects"
    params: list[str] = []
    if status is not None:
        query += " WHERE status = ?"
        params.append(status.value)
    query += " ORDER BY created_at ASC"
    return [_row_to_project(r) for r in conn.execute(query, params).fetchall()]


def complete_project(
    conn: sqlite3.Connection, project_id: int, now: Optional[datetime] = None
) -> Optional[Project]:
    """Mark a project complete and count it as a project update."""
    ts = _now(now)
    cur = conn.execute(
        "UPDATE projects SET status = ?, updated_at = ? WHERE id = ?",
        (ProjectStatus.COMPLETE.value, ts.isoformat(), project_id),
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    bump_metric(conn, "projects_updated", ts.date())
    return get_project(conn, project_id)


def delete_project(conn: sqlite3.Connection, project_id: int) -> bool:
    """Delete a project. Refused (returns False) while any task references it."""
    in_use = conn.execute(
        "SELECT COUNT(*) AS n FROM tasks WHERE project_id = ?", (project_id,)
    ).fetchone()["n"]
    if in_use:
        return False
    cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    conn.commit()
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def _row_to_task(row: sqlite3.Row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        notes=row["notes"],
        status=TaskStatus(row["status"]),
        project_id=row["project_id"],
        context=row["context"],
        energy_level=row["energy_level"],
        estimated_duration=row["estimated_duration"],
        due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
        priority=row["priority"],
        tags=json.loads(row["tags"]),
        waiting_for=row["waiting_for"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        completed_at=_dt(row["completed_at"]),
    )


def add_task(
    conn: sqlite3.Connection, task_in: TaskCreate, now: Optional[datetime] = None
) -> Task:
    """Insert a new task, count it as created, and return it as a model."""
    ts = _now(now)
    completed_at = ts.isoformat() if task_in.status == TaskStatus.COMPLETED else None
    cur = conn.execute(
        """INSERT INTO tasks (title, description, status, project_id, context,
               energy_level, estimated_duration, due_date, priority, tags,
               waiting_for, created_at, updated_at, completed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            task_in.title,
            task_in.description,
            task_in.status.value,
            task_in.project_id,
            task_in.context.value if task_in.context else None,
            task_in.energy_level.value if task_in.energy_level else None,
            task_in.estimated_duration.value if task_in.estimated_duration else None,
            task_in.due_date.isoformat() if task_in.due_date else None,
            task_in.priority,
            json.dumps(task_in.tags),
            task_in.waiting_for,
            ts.isoformat(),
            ts.isoformat(),
            completed_at,
        ),
    )
    conn.commit()
    bump_metric(conn, "tasks_created", ts.date())
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_task(row)


def get_task(conn: sqlite3.Connection, task_id: int) -> Optional[Task]:
    """Fetch a single task by ID."""
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    return _row_to_task(row) if row else None


def list_tasks(
    conn: sqlite3.Connection,
    status: Optional[TaskStatus] = None,
    *,
    statuses: Optional[Iterable[TaskStatus]] = None,
    due_on_or_before: Optional[date] = None,
    completed_since: Optional[datetime] = None,
    project_id: Optional[int] = None,
) -> list[Task]:
    """List tasks filtered by any combination of status, due date and completion."""
    query = "SELECT * FROM tasks WHERE 1=1"
    params: list[str | int] = []
    if status is not None:
        query += " AND status = ?"
        params.append(status.value)
    if statuses is not None:
        values = [s.value for s in statuses]
        query += f" AND status IN ({', '.join('?' for _ in values)})"
        params.extend(values)
    if due_on_or_before is not None:
        query += " AND due_date IS NOT NULL AND due_date <= ?"
        params.append(due_on_or_before.isoformat())
    if completed_since is not None:
        query += " AND completed_at IS NOT NULL AND completed_at >= ?"
        params.append(completed_since.isoformat())
    if project_id is not None:
        query += " AND project_id = ?"
        params.append(project_id)
    query += " ORDER BY created_at ASC, id ASC"
    rows = conn.execute(query, params).fetchall()
    return [_row_to_task(r) for r in rows]


def set_task_status(
    conn: sqlite3.Connection,
    task_id: int,
    status: TaskStatus,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Move a task to another list.

    Moving an inbox (captured) item anywhere else counts as processing it;
    moving to completed also stamps ``completed_at`` and counts a completion.
    """
    task = get_task(conn, task_id)
    if task is None:
        return None
    ts = _now(now)
    completed_at = ts.isoformat() if status == TaskStatus.COMPLETED else None
    conn.execute(
        "UPDATE tasks SET status = ?, completed_at = ?, updated_at = ? WHERE id = ?",
        (status.value, completed_at, ts.isoformat(), task_id),
    )
    conn.commit()
    if task.status == TaskStatus.CAPTURED and status != TaskStatus.CAPTURED:
        bump_metric(conn, "inbox_items_processed", ts.date())
    if status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
        bump_metric(conn, "tasks_completed", ts.date())
    return get_task(conn, task_id)


def complete_task(
    conn: sqlite3.Connection, task_id: int, now: Optional[datetime] = None
) -> Optional[Task]:
    """Mark a task as completed and update the daily metrics."""
    return set_task_status(conn, task_id, TaskStatus.COMPLETED, now=now)


def defer_task(
    conn: sqlite3.Connection,
    task_id: int,
    until: date,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Push a task's due date to *until*."""
    cur = conn.execute(
        "UPDATE tasks SET due_date = ?, updated_at = ? WHERE id = ?",
        (until.isoformat(), _now(now).isoformat(), task_id),
    )
    conn.commit()
    return get_task(conn, task_id) if cur.rowcount else None


def assign_project(
    conn: sqlite3.Connection,
    task_id: int,
    project_id: int,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Attach a task to a project and count the project as updated."""
    if get_project(conn, project_id) is None:
        return None
    ts = _now(now)
    cur = conn.execute(
        "UPDATE tasks SET project_id = ?, updated_at = ? WHERE id = ?",
        (project_id, ts.isoformat(), task_id),
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    conn.execute(
        "UPDATE projects SET updated_at = ? WHERE id = ?", (ts.isoformat(), project_id)
    )
    conn.commit()
    bump_metric(conn, "projects_updated", ts.date())
    return get_task(conn, task_id)


# ---------------------------------------------------------------------------
# Review sessions
# ---------------------------------------------------------------------------


def _row_to_review_session(row: sqlite3.Row) -> ReviewSession:
    """Convert a database row to a ReviewSession model."""
    return ReviewSession(
        id=row["id"],
        type=ReviewType(row["type"]),
        status=SessionStatus(row["status"]),
        current_step=row["current_step"],
        total_steps=row["total_steps"],
        completed_steps=json.loads(row["completed_steps"]),
        session_data=json.loads(row["session_data"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        completed_at=_dt(row["completed_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        version=row["version"],
    )


def create_review_session(
    conn: sqlite3.Connection,
    review_type: ReviewType,
    total_steps: int,
    started_at: datetime,
) -> ReviewSession:
    """Insert a fresh active session.

    Raises ``sqlite3.IntegrityError`` if another session is already open.
    """
    try:
        cur = conn.execute(
            "INSERT INTO review_sessions (type, status, total_steps, started_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                review_type.value,
                SessionStatus.ACTIVE.value,
                total_steps,
                started_at.isoformat(),
                started_at.isoformat(),
            ),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise
    row = conn.execute(
        "SELECT * FROM review_sessions WHERE id = ?", (cur.lastrowid,)
    ).fetchone()
    return _row_to_review_session(row)


def get_review_session(conn: sqlite3.Connection, session_id: int) -> Optional[ReviewSession]:
    """Fetch a single review session by ID."""
    row = conn.execute(
        "SELECT * FROM review_sessions WHERE id = ?", (session_id,)
    ).fetchone()
    return _row_to_review_session(row) if row else None


def get_open_review_session(conn: sqlite3.Connection) -> Optional[ReviewSession]:
    """Return the active or paused session, if there is one."""
    values = [s.value for s in OPEN_STATUSES]
    row = conn.execute(
        f"SELECT * FROM review_sessions WHERE status IN ({', '.join('?' for _ in values)}) "
        "ORDER BY id DESC LIMIT 1",
        values,
    ).fetchone()
    return _row_to_review_session(row) if row else None


def list_review_sessions(
    conn: sqlite3.Connection, status: Optional[SessionStatus] = None
) -> list[ReviewSession]:
    """List review sessions, optionally filtered by status."""
    query = "SELECT * FROM review_sessions"
    params: list[str] = []
    if status is not None:
        query += " WHERE status = ?"
        params.append(status.value)
    query += " ORDER BY id ASC"
    return [_row_to_review_session(r) for r in conn.execute(query, params).fetchall()]


def update_review_session(
    conn: sqlite3.Connection,
    session: ReviewSession,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Optional[ReviewSession]:
    """Persist *session* if the stored version still equals ``session.version``.

    Returns the stored row with its bumped version, or None when the row is
    missing or was changed by someone else since *session* was read. With
    ``commit=False`` the caller owns the transaction.
    """
    ts = _now(now)
    cur = conn.execute(
        """UPDATE review_sessions
           SET status = ?, current_step = ?, completed_steps = ?, session_data = ?,
               completed_at = ?, updated_at = ?, version = version + 1
           WHERE id = ? AND version = ?""",
        (
            session.status.value,
            session.current_step,
            json.dumps([s.value for s in session.completed_steps]),
            json.dumps({k.value: v for k, v in session.session_data.items()}),
            session.completed_at.isoformat() if session.completed_at else None,
            ts.isoformat(),
            session.id,
            session.version,
        ),
    )
    if commit:
        conn.commit()
    if cur.rowcount == 0:
        return None
    return get_review_session(conn, session.id)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


def _row_to_review(row: sqlite3.Row) -> Review:
    """Convert a database row to a Review model."""
    progress = row["progress_data"]
    return Review(
        id=row["id"],
        type=ReviewType(row["type"]),
        completed_at=datetime.fromisoformat(row["completed_at"]),
        notes=row["notes"],
        duration_minutes=row["duration_minutes"],
        tasks_reviewed=row["tasks_reviewed"],
        projects_reviewed=row["projects_reviewed"],
        progress_data=ReviewProgressData.model_validate_json(progress) if progress else None,
    )


def add_review(
    conn: sqlite3.Connection, review_in: ReviewCreate, commit: bool = True
) -> Review:
    """Insert an immutable review record and return it."""
    cur = conn.execute(
        """INSERT INTO reviews (type, completed_at, notes, duration_minutes,
               tasks_reviewed, projects_reviewed, progress_data)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            review_in.type.value,
            review_in.completed_at.isoformat(),
            review_in.notes,
            review_in.duration_minutes,
            review_in.tasks_reviewed,
            review_in.projects_reviewed,
            review_in.progress_data.model_dump_json() if review_in.progress_data else None,
        ),
    )
    if commit:
        conn.commit()
    row = conn.execute("SELECT * FROM reviews WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_review(row)


def list_reviews(
    conn: sqlite3.Connection,
    review_type: Optional[ReviewType] = None,
    limit: int = 10,
) -> list[Review]:
    """List completed reviews, most recent first."""
    query = "SELECT * FROM reviews"
    params: list[str | int] = []
    if review_type is not None:
        query += " WHERE type = ?"
        params.append(review_type.value)
    query += " ORDER BY completed_at DESC, id DESC LIMIT ?"
    params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_review(r) for r in rows]
