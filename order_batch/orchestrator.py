"""
BatchOrchestrator -- DI container for the order batch pipeline.

Contract:
    Wires settings, engine, JobRepository, JobLauncher, the order
    processing Job and (on request) the JobScheduler.  Single place where
    all batch dependencies are composed; everything downstream receives
    its collaborators by explicit reference.

Architecture: order_batch (top-level).  The canonical entry point for the
    CLI and for tests that want the production wiring.

Invariants enforced:
    - Clock injection: repository, launcher, processor and scheduler all
      receive the same Clock.
    - One business zone (``settings.timezone``): the default clock reports
      in it, the date window is computed in it and cron is matched in it.
    - One Job instance per orchestrator, built at construction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from order_kernel.db.engine import get_session_factory, init_engine_from_url
from order_kernel.domain.clock import Clock, SystemClock
from order_kernel.logging_config import get_logger

from order_config import BatchSettings

from order_batch.domain.parameters import (
    END_DATE,
    MIN_AMOUNT,
    PROCESSING_MODE,
    RUN_TOKEN,
    START_DATE,
    JobParameters,
    JobParametersBuilder,
    build_scheduled_parameters,
    parse_processing_mode,
)
from order_batch.domain.schedule import Trigger, trigger_from_settings
from order_batch.domain.types import JobExecution
from order_batch.jobs.order_job import build_order_processing_job
from order_batch.services.launcher import JobLauncher
from order_batch.services.repository import JobRepository
from order_batch.services.scheduler import JobScheduler
from order_batch.steps.base import ItemWriter, Job

logger = get_logger("batch.orchestrator")


def run_token(now: datetime) -> int:
    """Epoch milliseconds of ``now``; distinguishes one firing from the next."""
    return int(now.timestamp() * 1000)


class BatchOrchestrator:
    """DI container for the order batch pipeline.

    Contract:
        - ``from_settings()`` creates the engine and a fully wired instance.
        - ``run_once()`` runs the job now with scheduled (or given) parameters.
        - ``create_scheduler()`` returns a JobScheduler for background use.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        settings: BatchSettings,
        engine: Engine,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        writer: ItemWriter | None = None,
    ) -> None:
        self._settings = settings
        self._engine = engine
        self._session_factory = session_factory
        self._zone = ZoneInfo(settings.timezone)
        self._clock = clock or SystemClock(self._zone)
        self._repository = JobRepository(
            clock=self._clock,
            stale_after=timedelta(seconds=settings.execution.stale_after_seconds),
        )
        self._launcher = JobLauncher(session_factory, self._repository, self._clock)
        self._job = build_order_processing_job(
            engine,
            chunk_size=settings.step.chunk_size,
            fetch_size=settings.step.fetch_size,
            clock=self._clock,
            job_name=settings.job_name,
            writer=writer,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: BatchSettings,
        clock: Clock | None = None,
    ) -> BatchOrchestrator:
        """Initialize the engine from ``settings.database`` and wire everything."""
        engine = init_engine_from_url(
            settings.database.url,
            echo=settings.database.echo,
            pool_size=settings.database.pool_size,
        )
        return cls(settings, engine, get_session_factory(), clock=clock)

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def business_date(self, now: datetime) -> date:
        """The business day ``now`` falls on.

        Aware times are converted to the configured zone first; naive times
        are taken to be business-local already.
        """
        if now.tzinfo is not None:
            now = now.astimezone(self._zone)
        return now.date()

    def scheduled_parameters(self, now: datetime) -> JobParameters:
        """The parameter set a scheduled firing at ``now`` runs with."""
        defaults = self._settings.parameters
        return build_scheduled_parameters(
            today=self.business_date(now),
            lookback_days=defaults.lookback_days,
            min_amount=defaults.min_amount,
            processing_mode=defaults.processing_mode,
            token=run_token(now),
        )

    def build_parameters(
        self,
        now: datetime,
        start_date: date | None = None,
        end_date: date | None = None,
        min_amount: int | None = None,
        processing_mode: str | None = None,
    ) -> JobParameters:
        """Scheduled parameters with any of the four values overridden.

        Raises:
            InvalidJobParametersError: For an unknown processing mode.
        """
        defaults = self._settings.parameters
        end = end_date or self.business_date(now)
        start = start_date or end - timedelta(days=defaults.lookback_days)
        mode = parse_processing_mode(processing_mode or defaults.processing_mode)
        amount = defaults.min_amount if min_amount is None else min_amount
        return (
            JobParametersBuilder()
            .add_string(START_DATE, start.isoformat())
            .add_string(END_DATE, end.isoformat())
            .add_string(MIN_AMOUNT, str(amount))
            .add_string(PROCESSING_MODE, mode.value)
            .add_long(RUN_TOKEN, run_token(now))
            .to_job_parameters()
        )

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def run_once(self, parameters: JobParameters | None = None) -> JobExecution:
        """Run the job now.  Exceptions from the launcher propagate."""
        effective = parameters or self.scheduled_parameters(self._clock.now())
        return self._launcher.run(self._job, effective)

    def create_scheduler(self, trigger: Trigger | None = None) -> JobScheduler:
        """Create a JobScheduler firing the job on the configured schedule."""
        schedule = self._settings.schedule
        effective_trigger = trigger or trigger_from_settings(
            schedule.fixed_rate_ms, schedule.cron, self._zone,
        )
        logger.info(
            "scheduler_configured",
            extra={"job_name": self._job.name, "trigger": effective_trigger.describe()},
        )
        return JobScheduler(
            launcher=self._launcher,
            job=self._job,
            parameters_factory=self.scheduled_parameters,
            trigger=effective_trigger,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> BatchSettings:
        return self._settings

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def job(self) -> Job:
        return self._job

    @property
    def launcher(self) -> JobLauncher:
        return self._launcher

    @property
    def repository(self) -> JobRepository:
        return self._repository
