"""
JobScheduler -- in-process trigger that launches one job on a schedule.

Contract:
    Each firing computes a fresh parameter set from the clock and hands it
    to the JobLauncher.  ``tick()`` fires once unconditionally;
    ``run_pending()`` fires only when the trigger says a firing is due.
    ``start()`` / ``stop()`` drive ``run_pending()`` from a daemon thread.

Architecture: order_batch/services.  Uses order_batch.domain.schedule for
    pure trigger evaluation and order_batch.services.launcher to run.

Invariants enforced:
    - All timestamps from injected Clock.
    - Nothing escapes a firing: every exception is wrapped in
      SchedulingError, logged, and dropped so later firings still happen.
    - Firings never overlap inside one process.  Firings missed while a
      run was in progress collapse into one immediate firing.
    - Graceful shutdown: ``stop()`` lets the current run finish.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable

from order_kernel.domain.clock import Clock, SystemClock
from order_kernel.exceptions import SchedulingError
from order_kernel.logging_config import get_logger

from order_batch.domain.parameters import JobParameters
from order_batch.domain.schedule import IntervalTrigger, Trigger
from order_batch.domain.types import JobExecution
from order_batch.services.launcher import JobLauncher
from order_batch.steps.base import Job

logger = get_logger("batch.scheduler")


class JobScheduler:
    """Fires a job on a Trigger with freshly computed parameters.

    Non-goals:
        - NOT a distributed scheduler.  Cross-process overlap is refused
          by the JobRepository's running guard, not here.
    """

    def __init__(
        self,
        launcher: JobLauncher,
        job: Job,
        parameters_factory: Callable[[datetime], JobParameters],
        trigger: Trigger | None = None,
        clock: Clock | None = None,
        poll_interval_seconds: float = 1.0,
    ):
        self._launcher = launcher
        self._job = job
        self._parameters_factory = parameters_factory
        self._trigger = trigger or IntervalTrigger()
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval_seconds
        self._next_fire_at: datetime | None = None
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> JobExecution | None:
        """Run the job once now (public for testing and one-shot use).

        Returns the finished JobExecution, or None if the firing failed.
        """
        with self._run_lock:
            return self._fire(self._clock.now())

    def run_pending(self) -> JobExecution | None:
        """Fire if a firing is due; otherwise do nothing and return None."""
        with self._run_lock:
            now = self._clock.now()
            if self._next_fire_at is None:
                self._next_fire_at = self._trigger.first_fire_time(now)
            if now < self._next_fire_at:
                return None

            scheduled = self._next_fire_at
            execution = self._fire(now)
            self._next_fire_at = self._advance(scheduled, now)
            return execution

    @property
    def next_fire_at(self) -> datetime | None:
        return self._next_fire_at

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="order-batch-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"job_name": self._job.name, "trigger": self._trigger.describe()},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current run to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped", extra={"job_name": self._job.name})

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.run_pending()
            except Exception:
                logger.exception("scheduler_loop_exception")
            self._stop_event.wait(timeout=self._seconds_until_due())

    def _seconds_until_due(self) -> float:
        if self._next_fire_at is None:
            return 0.0
        remaining = (self._next_fire_at - self._clock.now()).total_seconds()
        return max(0.0, min(remaining, self._poll_interval))

    def _advance(self, scheduled: datetime, fired_at: datetime) -> datetime:
        """Next firing after ``scheduled``.

        Slots up to ``fired_at`` are covered by the run that just happened.
        Slots that passed while it ran collapse into one immediate firing.
        """
        next_fire = self._trigger.next_fire_time(scheduled)
        while next_fire <= fired_at:
            next_fire = self._trigger.next_fire_time(next_fire)

        now = self._clock.now()
        while next_fire <= now:
            following = self._trigger.next_fire_time(next_fire)
            if following > now:
                break
            next_fire = following
        return next_fire

    def _fire(self, now: datetime) -> JobExecution | None:
        try:
            parameters = self._parameters_factory(now)
            execution = self._launcher.run(self._job, parameters)
        except Exception as exc:
            error = SchedulingError(self._job.name, exc)
            logger.error(
                "scheduled_run_failed",
                exc_info=True,
                extra={
                    "job_name": self._job.name,
                    "error_code": error.code,
                    "cause_type": error.cause_type,
                    "cause_code": error.cause_code,
                    "error": str(error),
                },
            )
            return None

        logger.info(
            "scheduled_run_finished",
            extra={
                "job_name": self._job.name,
                "job_execution_id": str(execution.job_execution_id),
                "status": execution.status.value,
            },
        )
        return execution
