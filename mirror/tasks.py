import logging
from datetime import timedelta

from celery import shared_task

from mirror.clients import get_client
from mirror.exceptions import SyncAborted
from mirror.sync import SyncOrchestrator

logger = logging.getLogger(__name__)


def _orchestrator():
    return SyncOrchestrator(client=get_client())


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def sync_orders(self, lookback_days=None):
    lookback = None if lookback_days is None else timedelta(days=lookback_days)
    try:
        return _orchestrator().run_sync(lookback=lookback)
    except SyncAborted as exc:
        if not exc.transient:
            logger.error("Order sync rejected by the remote store, not retrying: %s", exc)
            raise
        logger.warning("Order sync aborted on page %d, retrying: %s", exc.page, exc)
        raise self.retry(exc=exc)


@shared_task
def sync_catalog():
    return _orchestrator().sync_catalog()


@shared_task
def prune_stale_orders(retention_days=None):
    threshold = None if retention_days is None else timedelta(days=retention_days)
    return _orchestrator().run_retention(threshold=threshold)
