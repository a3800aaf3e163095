from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from taskflow.config import Settings
from taskflow.infra.models import utcnow
from taskflow.infra.repository import TaskRepository

from .recurrence_service import RecurrenceService

logger = logging.getLogger(__name__)

CHECK_JOB_ID = "recurrence-poll"


class RecurrenceScheduler:
    """Background safety net that applies recurrence to recently completed tasks.

    A periodic poll finds completed recurring tasks inside the look-back window
    and queues one deferred work item per task. A failing work item is retried
    with exponential backoff until ``queue_max_attempts`` is reached.
    """

    def __init__(
        self,
        tasks: TaskRepository,
        recurrence: RecurrenceService,
        settings: Settings,
        scheduler: BackgroundScheduler | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tasks = tasks
        self._recurrence = recurrence
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._clock = clock
        self._poll_interval = timedelta(minutes=settings.recurrence_check_minutes)
        self._lookback = timedelta(hours=settings.recurrence_lookback_hours)
        self._check_delay = timedelta(minutes=settings.recurrence_check_delay_minutes)
        self._max_attempts = max(settings.queue_max_attempts, 1)
        self._backoff_seconds = settings.queue_backoff_seconds
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        logger.info("Starting recurrence scheduler (poll every %s)", self._poll_interval)
        self._scheduler.add_job(
            self.check_recurrences,
            trigger=IntervalTrigger(seconds=self._poll_interval.total_seconds(), timezone=timezone.utc),
            id=CHECK_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        self._started = True
        self.check_recurrences()

    def shutdown(self) -> None:
        if not self._started:
            return
        logger.info("Stopping recurrence scheduler")
        self._scheduler.shutdown(wait=False)
        self._started = False

    def check_recurrences(self) -> int:
        now = self._clock()
        horizon = now + self._poll_interval
        try:
            completed = self._tasks.list_completed_recurring(since=now - self._lookback)
        except Exception:
            logger.exception("Error checking completed recurring tasks")
            return 0

        scheduled = 0
        for task in completed:
            check_at = task.completed_at + self._check_delay
            if check_at <= horizon:
                self.enqueue_recurrence_check(task.id, task.user_id, check_at)
                scheduled += 1

        if scheduled:
            logger.info("Scheduled recurrence checks for %s tasks", scheduled)
        return scheduled

    def enqueue_recurrence_check(
        self,
        task_id: int,
        user_id: str,
        run_at: datetime,
        attempt: int = 1,
    ) -> None:
        run_at = max(run_at, self._clock())
        self._scheduler.add_job(
            self._run_recurrence_job,
            trigger=DateTrigger(run_date=run_at, timezone=timezone.utc),
            args=[task_id, user_id, attempt],
            id=f"recurrence:{task_id}:{attempt}",
            replace_existing=True,
            misfire_grace_time=300,
        )
        logger.debug("Queued recurrence check for task %s at %s (attempt %s)", task_id, run_at, attempt)

    def _run_recurrence_job(self, task_id: int, user_id: str, attempt: int) -> None:
        logger.info("Processing recurrence job for task %s", task_id)
        try:
            successor = self._recurrence.apply_recurrence_to_task(task_id, user_id)
        except Exception:
            logger.exception("Failed to process recurrence for task %s (attempt %s)", task_id, attempt)
            if attempt >= self._max_attempts:
                logger.error("Giving up on recurrence for task %s after %s attempts", task_id, attempt)
                return
            delay = timedelta(seconds=self._backoff_seconds * 2 ** (attempt - 1))
            self.enqueue_recurrence_check(task_id, user_id, self._clock() + delay, attempt + 1)
            return

        if successor:
            logger.info("Created next occurrence for task %s: new task %s", task_id, successor.id)
        else:
            logger.info("No next occurrence generated for task %s", task_id)
