"""Review sessions: lifecycle, data loading and analytics accessors.

``ReviewService`` is what a screen talks to. Sessions are passed in
explicitly and every write returns the freshly stored copy; the service only
mirrors the open session in ``current_session`` for display. State changes:

    active <-> paused -> completed
    active/paused     -> abandoned

Only one session may be open (active or paused) at a time. The database
enforces that with a unique index, and every update is checked against the
session's ``version`` so a write based on an old copy is rejected.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import Counter
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Iterator, Mapping, Optional, Union

from pydantic import BaseModel

from clarity import analytics, db
from clarity.models import (
    STEP_PAYLOADS,
    STEPS_BY_TYPE,
    DailyReviewData,
    ProjectStatus,
    Review,
    ReviewCreate,
    ReviewMetrics,
    ReviewProgressData,
    ReviewSession,
    ReviewType,
    SessionStatus,
    StepKind,
    Task,
    TaskAction,
    TaskContext,
    TaskStatus,
    WeeklyInsights,
    WeeklyReviewData,
)

log = logging.getLogger(__name__)

SessionListener = Callable[[ReviewSession], None]
StepData = Union[Mapping[str, Any], BaseModel, None]


class ReviewError(Exception):
    """A review operation failed. The message is meant for the user."""


class StaleSessionError(ReviewError):
    """The session changed in storage since this copy was read."""


class SessionChangeFeed:
    """In-process notification channel for persisted session writes."""

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener*; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, session: ReviewSession) -> None:
        for listener in list(self._listeners):
            listener(session)


class ReviewService:
    """Drives daily and weekly reviews against one database connection."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        feed: Optional[SessionChangeFeed] = None,
        clock: Callable[[], datetime] = datetime.now,
        auto_load: bool = True,
        realtime_sync: bool = True,
        history_limit: int = 10,
    ) -> None:
        self.conn = conn
        self.feed = feed or SessionChangeFeed()
        self.history_limit = history_limit
        self._clock = clock

        self.current_session: Optional[ReviewSession] = None
        self.daily_review_data: Optional[DailyReviewData] = None
        self.weekly_review_data: Optional[WeeklyReviewData] = None
        self.recent_reviews: list[Review] = []
        self.metrics: list[ReviewMetrics] = []
        self.error: Optional[str] = None
        self._pending = 0

        self._unsubscribe: Optional[Callable[[], None]] = None
        if realtime_sync:
            self._unsubscribe = self.feed.subscribe(self.receive_session_update)
        if auto_load:
            self.load_active_session()

    # ── Read-only state ─────────────────────────────────────────────────────

    @property
    def is_reviewing(self) -> bool:
        return self.current_session is not None and self.current_session.is_open

    @property
    def loading(self) -> bool:
        return self._pending > 0

    @contextmanager
    def _busy(self) -> Iterator[None]:
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def close(self) -> None:
        """Stop listening to the change feed."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── Session lifecycle ───────────────────────────────────────────────────

    def load_active_session(self) -> Optional[ReviewSession]:
        """Pick up an open session left by an earlier run, plus history and metrics."""
        # History first: the weekly insights need it for the streak.
        self.load_review_history()
        self.load_metrics()
        try:
            session = db.get_open_review_session(self.conn)
            self.current_session = session
            if session is not None:
                self._load_for(session.type)
        except (sqlite3.Error, ReviewError) as exc:
            self.error = str(exc) or "Failed to load active session"
            log.exception("Failed to load active review session")
        return self.current_session

    def start_review(self, review_type: ReviewType) -> ReviewSession:
        """Open a new session, or return the one that is already open."""
        self.error = None
        with self._busy():
            try:
                existing = db.get_open_review_session(self.conn)
                if existing is not None:
                    log.info(
                        "Review session %d (%s) already open; joining it",
                        existing.id, existing.type.value,
                    )
                    self.current_session = existing
                    return existing

                total_steps = len(STEPS_BY_TYPE[review_type])
                try:
                    session = db.create_review_session(
                        self.conn, review_type, total_steps, self._clock()
                    )
                except sqlite3.IntegrityError:
                    # Someone else opened a session between our read and insert.
                    session = db.get_open_review_session(self.conn)
                    if session is None:
                        raise
                    log.info("Lost the race to open a review; joining session %d", session.id)
                    self.current_session = session
                    return session

                log.info("Started %s review session %d", review_type.value, session.id)
                self.current_session = session
                self.feed.publish(session)
                self._load_for(review_type)
                return session
            except sqlite3.Error as exc:
                self.error = str(exc) or "Failed to start review"
                raise ReviewError(self.error) from exc
            except ReviewError as exc:
                self.error = str(exc) or "Failed to start review"
                raise

    def pause_review(self, session: Optional[ReviewSession]) -> Optional[ReviewSession]:
        """Pause an active session. Failures are reported through ``error``."""
        if session is None or session.status != SessionStatus.ACTIVE:
            return session
        return self._quietly(
            "Failed to pause review",
            session,
            lambda: self._write(session.model_copy(update={"status": SessionStatus.PAUSED})),
        )

    def resume_review(self, session: Optional[ReviewSession]) -> Optional[ReviewSession]:
        """Resume a paused session. Failures are reported through ``error``."""
        if session is None or session.status != SessionStatus.PAUSED:
            return session
        return self._quietly(
            "Failed to resume review",
            session,
            lambda: self._write(session.model_copy(update={"status": SessionStatus.ACTIVE})),
        )

    def complete_review_step(
        self,
        session: Optional[ReviewSession],
        step: Union[StepKind, str],
        data: StepData = None,
    ) -> Optional[ReviewSession]:
        """Record a finished step and its payload.

        Steps may be completed in any order and more than once; each call
        appends to ``completed_steps`` and advances ``current_step``. The step
        must belong to the session's review type and *data* must fit that
        step's payload model, which is merged over anything stored before.
        On failure the session is returned unchanged and ``error`` is set.
        """
        if session is None:
            return None

        def apply() -> ReviewSession:
            kind = StepKind(step)
            if kind not in session.steps:
                raise ReviewError(
                    f"'{kind.value}' is not a step of the {session.type.value} review"
                )
            if session.status != SessionStatus.ACTIVE:
                raise ReviewError(f"Review is {session.status.value}; resume it first")
            if isinstance(data, BaseModel):
                incoming = data.model_dump(exclude_unset=True)
            else:
                incoming = dict(data or {})
            previous = session.session_data.get(kind, {})
            payload = STEP_PAYLOADS[kind].model_validate({**previous, **incoming})
            return self._write(
                session.model_copy(
                    update={
                        "current_step": session.current_step + 1,
                        "completed_steps": [*session.completed_steps, kind],
                        "session_data": {
                            **session.session_data,
                            kind: payload.model_dump(mode="json"),
                        },
                    }
                )
            )

        return self._quietly("Failed to complete step", session, apply)

    def complete_review(
        self, session: Optional[ReviewSession], notes: Optional[str] = None
    ) -> Review:
        """Close the session and store the permanent review record."""
        if session is None or not session.is_open:
            raise ReviewError("No active review session")

        # The session close and the review insert commit together or not at all.
        with self._busy():
            try:
                now = self._clock()
                closed = self._store(
                    session.model_copy(
                        update={"status": SessionStatus.COMPLETED, "completed_at": now}
                    ),
                    commit=False,
                )
                elapsed = (now - session.started_at).total_seconds()
                review = db.add_review(
                    self.conn,
                    ReviewCreate(
                        type=session.type,
                        completed_at=now,
                        notes=notes,
                        duration_minutes=max(0, round(elapsed / 60)),
                        tasks_reviewed=len(session.session_data),
                        projects_reviewed=_projects_reviewed(session),
                        progress_data=ReviewProgressData(
                            current_step=session.total_steps,
                            total_steps=session.total_steps,
                            completed_steps=session.completed_steps,
                            started_at=session.started_at,
                        ),
                    ),
                    commit=False,
                )
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                self.error = str(exc) or "Failed to complete review"
                raise ReviewError(self.error) from exc
            except ReviewError as exc:
                self.conn.rollback()
                self.error = str(exc) or "Failed to complete review"
                raise

            self._mirror(closed)
            self._update_metrics(session.type, now.date())
            log.info(
                "Completed %s review %d in %d min",
                review.type.value, review.id, review.duration_minutes,
            )
            self.load_review_history()
            return review

    def abandon_review(self, session: Optional[ReviewSession]) -> Optional[ReviewSession]:
        """Give up on a session. No review record is written."""
        if session is None or not session.is_open:
            return session
        return self._quietly(
            "Failed to abandon review",
            session,
            lambda: self._write(session.model_copy(update={"status": SessionStatus.ABANDONED})),
        )

    def receive_session_update(self, incoming: ReviewSession) -> Optional[ReviewSession]:
        """Reconcile a pushed session write with the copy held here.

        Only updates to the held session with a newer version are applied.
        """
        current = self.current_session
        if current is None or current.id != incoming.id:
            return current
        if incoming.version <= current.version:
            return current
        self.current_session = incoming if incoming.is_open else None
        return self.current_session

    def _write(self, session: ReviewSession) -> ReviewSession:
        stored = self._store(session)
        self._mirror(stored)
        return stored

    def _store(self, session: ReviewSession, commit: bool = True) -> ReviewSession:
        stored = db.update_review_session(
            self.conn, session, now=self._clock(), commit=commit
        )
        if stored is None:
            log.warning("Rejected stale write to review session %d", session.id)
            raise StaleSessionError(
                f"Review session {session.id} was changed elsewhere; reload it and try again"
            )
        return stored

    def _mirror(self, stored: ReviewSession) -> None:
        if stored.is_open:
            self.current_session = stored
        elif self.current_session is not None and self.current_session.id == stored.id:
            self.current_session = None
        self.feed.publish(stored)

    def _quietly(
        self,
        fallback: str,
        session: ReviewSession,
        action: Callable[[], ReviewSession],
    ) -> ReviewSession:
        try:
            return action()
        except (ValueError, sqlite3.Error, ReviewError) as exc:
            self.error = str(exc) or fallback
            log.warning("%s: %s", fallback, self.error)
            return session

    def _update_metrics(self, review_type: ReviewType, for_date: date) -> None:
        try:
            db.record_review_completion(self.conn, review_type, for_date)
        except sqlite3.Error:
            log.exception("Failed to update review metrics")

    # ── Review data ─────────────────────────────────────────────────────────

    def _load_for(self, review_type: ReviewType) -> None:
        if review_type == ReviewType.DAILY:
            self.load_daily_review_data()
        else:
            self.load_weekly_review_data()

    def load_daily_review_data(self, today: Optional[date] = None) -> DailyReviewData:
        """Today's and overdue actions, waiting-for items, and recent completions."""
        today = today or self._clock().date()
        yesterday = datetime.combine(today - timedelta(days=1), time.min)
        with self._busy():
            try:
                due = db.list_tasks(
                    self.conn,
                    statuses=(TaskStatus.NEXT_ACTION, TaskStatus.WAITING_FOR),
                    due_on_or_before=today,
                )
                completed = db.list_tasks(
                    self.conn, TaskStatus.COMPLETED, completed_since=yesterday
                )
                waiting = db.list_tasks(self.conn, TaskStatus.WAITING_FOR)
            except sqlite3.Error as exc:
                self.error = str(exc) or "Failed to load daily review data"
                raise ReviewError(self.error) from exc

        data = DailyReviewData(
            todays_tasks=[t for t in due if t.due_date == today],
            overdue_tasks=[t for t in due if t.due_date is not None and t.due_date < today],
            waiting_for_items=waiting,
            completed_tasks=completed,
            tomorrows_plan=self._planned_tomorrow(),
        )
        self.daily_review_data = data
        return data

    def load_weekly_review_data(self, now: Optional[datetime] = None) -> WeeklyReviewData:
        """Inbox, active projects, someday items and the past week's completions."""
        now = now or self._clock()
        week_start = now - timedelta(days=7)
        with self._busy():
            try:
                inbox = db.list_tasks(self.conn, TaskStatus.CAPTURED)
                projects = db.list_projects(self.conn, ProjectStatus.ACTIVE)
                someday = db.list_tasks(self.conn, TaskStatus.SOMEDAY)
                completed = db.list_tasks(
                    self.conn, TaskStatus.COMPLETED, completed_since=week_start
                )
            except sqlite3.Error as exc:
                self.error = str(exc) or "Failed to load weekly review data"
                raise ReviewError(self.error) from exc

        insights = WeeklyInsights(
            tasks_completed=len(completed),
            projects_progressed=len(projects),
            avg_tasks_per_day=len(completed) / 7,
            top_contexts=_top_contexts(completed),
            streak_days=self.get_review_streak(now.date()),
        )
        data = WeeklyReviewData(
            inbox_items=inbox,
            all_projects=projects,
            someday_items=someday,
            completed_this_week=completed,
            insights=insights,
        )
        self.weekly_review_data = data
        return data

    def _planned_tomorrow(self) -> list[str]:
        session = self.current_session
        if session is None or session.type != ReviewType.DAILY:
            return []
        return list(session.session_data.get(StepKind.PLANNING, {}).get("tomorrows_plan", []))

    def apply_task_action(
        self,
        task_id: int,
        action: TaskAction,
        project_id: Optional[int] = None,
    ) -> Task:
        """Act on a task from inside a review, then refresh the review data."""
        now = self._clock()
        try:
            if action == TaskAction.COMPLETE:
                task = db.complete_task(self.conn, task_id, now=now)
            elif action == TaskAction.DEFER:
                task = db.defer_task(
                    self.conn, task_id, now.date() + timedelta(days=1), now=now
                )
            elif action == TaskAction.CONVERT_TO_NEXT_ACTION:
                task = db.set_task_status(self.conn, task_id, TaskStatus.NEXT_ACTION, now=now)
            elif action == TaskAction.CONVERT_TO_PROJECT:
                task = db.set_task_status(self.conn, task_id, TaskStatus.PROJECT, now=now)
            elif action == TaskAction.DEFER_TO_SOMEDAY:
                task = db.set_task_status(self.conn, task_id, TaskStatus.SOMEDAY, now=now)
            else:
                if project_id is None:
                    raise ReviewError("A project id is required to assign a task")
                task = db.assign_project(self.conn, task_id, project_id, now=now)
        except sqlite3.Error as exc:
            self.error = str(exc) or "Failed to update task"
            raise ReviewError(self.error) from exc

        if task is None:
            self.error = f"Task #{task_id} not found"
            raise ReviewError(self.error)
        if self.current_session is not None:
            self._load_for(self.current_session.type)
        return task

    # ── History & metrics ───────────────────────────────────────────────────

    def load_review_history(self, limit: Optional[int] = None) -> list[Review]:
        try:
            self.recent_reviews = db.list_reviews(self.conn, limit=limit or self.history_limit)
        except sqlite3.Error as exc:
            self.error = str(exc) or "Failed to load review history"
            log.warning("Failed to load review history: %s", exc)
        return self.recent_reviews

    def load_metrics(self, days: int = 30) -> list[ReviewMetrics]:
        since = self._clock().date() - timedelta(days=days)
        try:
            self.metrics = db.list_metrics(self.conn, since)
        except sqlite3.Error as exc:
            self.error = str(exc) or "Failed to load metrics"
            log.warning("Failed to load metrics: %s", exc)
        return self.metrics

    # ── Analytics ───────────────────────────────────────────────────────────

    def get_review_streak(self, today: Optional[date] = None) -> int:
        return analytics.review_streak(self.recent_reviews, today or self._clock().date())

    def get_completion_rate(self, days: int = 7) -> int:
        return analytics.completion_rate(self.metrics, days)

    def get_weekly_insights(self) -> Optional[WeeklyInsights]:
        return self.weekly_review_data.insights if self.weekly_review_data else None


def _projects_reviewed(session: ReviewSession) -> int:
    payload = session.session_data.get(StepKind.PROJECT_REVIEW, {})
    return len(set(payload.get("reviewed_projects", [])))


def _top_contexts(tasks: list[Task], limit: int = 3) -> list[TaskContext]:
    counts = Counter(t.context for t in tasks if t.context is not None)
    return [context for context, _ in counts.most_common(limit)]
