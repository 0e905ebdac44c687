"""
Expiration trigger: runs the expiration sweep on a timer and on demand.

Both paths share one lock so at most one sweep is in flight per process.
Timer ticks skip when a sweep is already running; on-demand calls wait a
bounded time for it and then give up with ``SweepInProgressError``.
Transient store errors are retried with exponential backoff a bounded
number of times.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from hospital_backend.core import config
from hospital_backend.database import SessionLocal
from hospital_backend.services.exceptions import SweepInProgressError
from hospital_backend.services.expiration import SweepResult, retire_expired

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'retire_expired_appointments'


class ExpirationScheduler:
    """Owns the recurring sweep job and the on-demand sweep entry point."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: int | None = None,
        lock_timeout_seconds: float | None = None,
        max_attempts: int | None = None,
        retry_max_wait_seconds: float | None = None,
    ):
        self.scheduler = BackgroundScheduler(timezone='UTC')
        self._session_factory = session_factory
        self._lock = Lock()
        self.interval_seconds = interval_seconds or config.EXPIRATION_SWEEP_INTERVAL_SECONDS
        self.lock_timeout_seconds = (
            config.EXPIRATION_SWEEP_LOCK_TIMEOUT_SECONDS if lock_timeout_seconds is None else lock_timeout_seconds
        )
        self.max_attempts = max_attempts or config.EXPIRATION_SWEEP_MAX_ATTEMPTS
        self.retry_max_wait_seconds = (
            config.EXPIRATION_SWEEP_RETRY_MAX_WAIT_SECONDS if retry_max_wait_seconds is None else retry_max_wait_seconds
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self.run_scheduled,
            IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name='Retire expired appointments',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info('Expiration sweep scheduled every %s seconds', self.interval_seconds)

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info('Expiration sweep scheduler stopped')

    def run_scheduled(self) -> SweepResult | None:
        """Timer path. Never raises; a failed tick is retried on the next one."""
        if not self._lock.acquire(blocking=False):
            logger.info('Expiration sweep already in progress; skipping scheduled run')
            return None

        try:
            result = self._sweep()
        except SQLAlchemyError:
            logger.exception('Scheduled expiration sweep failed; will retry on next tick')
            return None
        finally:
            self._lock.release()

        if result.retired_count > 0:
            logger.info(
                'Expired appointments processed: %d %s',
                result.retired_count,
                [(item.recipient_address, item.appointment_id) for item in result.notified],
            )
        return result

    def run_on_demand(self, reference_time: datetime | None = None) -> SweepResult:
        """On-demand path. Store failures propagate to the caller."""
        if not self._lock.acquire(timeout=self.lock_timeout_seconds):
            raise SweepInProgressError('An expiration sweep is already running. Try again shortly.')

        try:
            return self._sweep(reference_time)
        finally:
            self._lock.release()

    def _sweep(self, reference_time: datetime | None = None) -> SweepResult:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=0, max=self.retry_max_wait_seconds),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        'Retrying expiration sweep (attempt %d of %d)',
                        attempt.retry_state.attempt_number,
                        self.max_attempts,
                    )
                db = self._session_factory()
                try:
                    result = retire_expired(db, reference_time)
                finally:
                    db.close()
        return result


_expiration_scheduler: ExpirationScheduler | None = None


def get_expiration_scheduler() -> ExpirationScheduler:
    global _expiration_scheduler

    if _expiration_scheduler is None:
        _expiration_scheduler = ExpirationScheduler()
    return _expiration_scheduler


def shutdown_expiration_scheduler() -> None:
    global _expiration_scheduler

    if _expiration_scheduler is not None:
        _expiration_scheduler.shutdown()
        _expiration_scheduler = None
