"""
Scheduler for the mirror's sync and retention passes.

Each pass runs on its own cron cadence on an APScheduler background thread.
A failing run is logged and never takes the scheduler down with it.
"""
import logging
import time

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from django.conf import settings
from django.db import close_old_connections

from mirror.exceptions import SyncAborted

logger = logging.getLogger(__name__)

SYNC_JOB_ID = 'mirror-sync'
RETENTION_JOB_ID = 'mirror-retention'


CRONTAB_DAY_NAMES = {name: number for number, name in enumerate(
    ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat')
)}


def _crontab_day(value):
    value = value.strip().lower()
    if value in CRONTAB_DAY_NAMES:
        return CRONTAB_DAY_NAMES[value]
    try:
        day = int(value)
    except ValueError:
        raise ValueError(f"Invalid day of week {value!r}") from None
    if not 0 <= day <= 7:
        raise ValueError(f"Day of week {day} out of range 0-7")
    return day


def _crontab_weekdays(field):
    """Renumber a crontab day-of-week field (0 or 7 = Sunday) for APScheduler (0 = Monday).

    Day names and numbers may be mixed, e.g. ``mon,3`` or ``sun-wed/2``.
    """
    if field == '*':
        return field
    days = set()
    for part in field.split(','):
        span, _, step = part.partition('/')
        if span == '*':
            start, end = 0, 6
        elif '-' in span:
            start, end = (_crontab_day(value) for value in span.split('-', 1))
        else:
            start = end = _crontab_day(span)
        days.update((day + 6) % 7 for day in range(start, end + 1, int(step or 1)))
    return ','.join(str(day) for day in sorted(days))


def cron_trigger(expression, timezone):
    """Build a trigger from a five-field crontab expression."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Wrong number of fields in {expression!r}; got {len(fields)}, expected 5")
    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute, hour=hour, day=day, month=month,
        day_of_week=_crontab_weekdays(day_of_week), timezone=timezone,
    )


class SyncScheduler:
    def __init__(self, orchestrator, sync_cron, retention_cron,
                 sync_timezone='UTC', retention_timezone='UTC', log=None):
        self.orchestrator = orchestrator
        # Parse eagerly so a bad expression fails at construction, not at start()
        self.sync_trigger = cron_trigger(sync_cron, sync_timezone)
        self.retention_trigger = cron_trigger(retention_cron, retention_timezone)
        self.log = log or logger
        self._scheduler = None
        self._sync_job = None
        self._retention_job = None

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            self.log.warning("Sync scheduler already running")
            return

        self.log.info("Starting sync scheduler...")
        self._scheduler = BackgroundScheduler(timezone='UTC')
        self._sync_job = self._scheduler.add_job(
            self._run_scheduled_sync,
            self.sync_trigger,
            id=SYNC_JOB_ID,
            name='Order sync',
            max_instances=1,
            coalesce=True,
        )
        self._retention_job = self._scheduler.add_job(
            self._run_scheduled_retention,
            self.retention_trigger,
            id=RETENTION_JOB_ID,
            name='Retention',
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

        status = self.get_status()
        self.log.info("Order sync scheduled (%s), next run %s", self.sync_trigger, status['next_sync_time'])
        self.log.info("Retention scheduled (%s), next run %s", self.retention_trigger, status['next_retention_time'])

    def stop(self):
        """Cancel future runs. A run already in progress finishes on its own."""
        if not self.running:
            self.log.info("Sync scheduler not running, nothing to stop")
            return

        self.log.info("Stopping sync scheduler...")
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._sync_job = None
        self._retention_job = None
        self.log.info("Sync scheduler stopped")

    def trigger_sync(self, lookback=None):
        """Run an order sync now, bypassing cadence and connectivity check."""
        self.log.info("Manual sync triggered")
        return self.orchestrator.run_sync(lookback=lookback)

    def trigger_retention(self, threshold=None):
        self.log.info("Manual retention triggered")
        return self.orchestrator.run_retention(threshold=threshold)

    def get_status(self):
        return {
            'is_running': self.running,
            'next_sync_time': self._next_run_time(self._sync_job),
            'next_retention_time': self._next_run_time(self._retention_job),
        }

    @staticmethod
    def _next_run_time(job):
        if job is None:
            return None
        return getattr(job, 'next_run_time', None)

    def _run_scheduled_sync(self):
        close_old_connections()
        try:
            return self._sync_if_reachable()
        finally:
            close_old_connections()

    def _sync_if_reachable(self):
        start = time.monotonic()
        self.log.info("Starting scheduled sync...")

        try:
            if not self.orchestrator.client.test_connection():
                self.log.warning("Remote store unreachable, skipping this sync run")
                return None

            result = self.orchestrator.run_sync()
        except SyncAborted as exc:
            self.log.error("Scheduled sync aborted: %s (partial stats: %s)", exc, exc.stats)
            return None
        except Exception:
            self.log.exception("Scheduled sync failed")
            return None

        self.log.info("Scheduled sync completed in %.1fs: %s", time.monotonic() - start, result)
        try:
            self.log.info("Sync statistics: %s", self.orchestrator.get_stats())
        except Exception:
            self.log.exception("Could not collect sync statistics")
        return result

    def _run_scheduled_retention(self):
        close_old_connections()
        try:
            return self._retention_pass()
        finally:
            close_old_connections()

    def _retention_pass(self):
        start = time.monotonic()
        self.log.info("Starting scheduled retention...")

        try:
            result = self.orchestrator.run_retention()
        except Exception:
            self.log.exception("Scheduled retention failed")
            return None

        self.log.info("Scheduled retention completed in %.1fs: %s", time.monotonic() - start, result)
        return result


def build_scheduler(orchestrator=None):
    """Assemble a scheduler from settings, wired to the configured client."""
    if orchestrator is None:
        from mirror.clients import get_client
        from mirror.sync import SyncOrchestrator

        orchestrator = SyncOrchestrator(client=get_client())

    return SyncScheduler(
        orchestrator,
        sync_cron=settings.MIRROR_SYNC_CRON,
        retention_cron=settings.MIRROR_RETENTION_CRON,
        sync_timezone=settings.MIRROR_SYNC_TIMEZONE,
        retention_timezone=settings.MIRROR_RETENTION_TIMEZONE,
    )
