import logging
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from mirror.exceptions import InvalidPayload, LocalPersistenceError, RemoteError, SyncAborted
from mirror.models import Order, OrderLineItem, Product, SyncRun
from mirror.transforms import (
    compute_hash,
    referenced_product_ids,
    transform_order,
    transform_product,
    validate_order,
    validate_product,
)

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Keeps the local store in step with the remote one.

    ``run_sync`` walks recently modified orders page by page and backfills
    the products they reference, ``sync_catalog`` mirrors the whole product
    catalog, and ``run_retention`` retires stale orders together with the
    products nothing references any more. Failures of a single record are
    counted in the returned stats; only a failed page fetch stops a pass,
    raised as SyncAborted.
    """

    def __init__(self, client, page_size=None, lookback=None, retention=None,
                 protect_fresh_products=None, log=None):
        self.client = client
        self.page_size = page_size or settings.MIRROR_PAGE_SIZE
        if lookback is None:
            lookback = timedelta(days=settings.MIRROR_SYNC_LOOKBACK_DAYS)
        self.lookback = lookback
        if retention is None:
            retention = timedelta(days=settings.MIRROR_RETENTION_DAYS)
        self.retention = retention
        if protect_fresh_products is None:
            protect_fresh_products = settings.MIRROR_RETENTION_PROTECT_FRESH_PRODUCTS
        self.protect_fresh_products = protect_fresh_products
        self.log = log or logger

    # Order sync

    def run_sync(self, lookback=None):
        started = timezone.now()
        since = started - (self.lookback if lookback is None else lookback)
        self.log.info("Starting order sync (modified since %s)", since.isoformat())

        stats = {
            'synced': 0, 'created': 0, 'updated': 0, 'unchanged': 0,
            'products_backfilled': 0, 'errors': 0,
        }
        seen = set()

        try:
            for orders in self._iter_pages(self.client.fetch_orders_page, stats, since=since):
                for raw in orders:
                    self._sync_order(raw, stats, seen)
        except SyncAborted:
            self._record_run(SyncRun.ORDERS, started, SyncRun.ABORTED, stats)
            raise

        self._record_run(SyncRun.ORDERS, started, SyncRun.COMPLETED, stats)
        self.log.info("Order sync complete: %s", stats)
        return stats

    def _sync_order(self, raw, stats, seen):
        is_valid, reason = validate_order(raw)
        if not is_valid:
            self.log.warning("Skipping invalid order: %s", reason)
            stats['errors'] += 1
            return

        try:
            order_id, fields, line_items = transform_order(raw)
        except InvalidPayload as exc:
            self.log.error("Failed to sync order %s: %s", raw['id'], exc)
            stats['errors'] += 1
            return

        # A record modified mid-pass moves to an earlier page and can come around twice
        if order_id in seen:
            self.log.debug("Order %s already processed in this pass", order_id)
            return
        seen.add(order_id)

        try:
            product_ids = referenced_product_ids(line_items)
            outcome, present = self._upsert_order(order_id, fields, line_items, product_ids)
        except (InvalidPayload, LocalPersistenceError) as exc:
            self.log.error("Failed to sync order %s: %s", order_id, exc)
            stats['errors'] += 1
            return

        stats['synced'] += 1
        stats[outcome] += 1
        self.log.debug("Synced order %s (%s)", order_id, outcome)

        for product_id in product_ids:
            if product_id in present:
                continue
            try:
                created = self._backfill_product(product_id)
            except (RemoteError, InvalidPayload, LocalPersistenceError) as exc:
                # No stub is stored, the next pass retries the gap
                self.log.error("Failed to backfill product %s from order %s: %s", product_id, order_id, exc)
                stats['errors'] += 1
                continue
            if created:
                stats['products_backfilled'] += 1
                self.log.debug("Backfilled product %s from order %s", product_id, order_id)

    def _upsert_order(self, remote_id, fields, line_items, product_ids):
        """Write one order and its line items; return (outcome, ids of products already stored).

        The referenced product rows are locked in the same transaction so a
        concurrent retention pass cannot delete one between this commit and
        its reference check.
        """
        data_hash = compute_hash({'order': fields, 'line_items': line_items})
        try:
            with transaction.atomic():
                existing = (
                    Order.objects.select_for_update()
                    .filter(remote_id=remote_id)
                    .values_list('data_hash', flat=True)
                    .first()
                )
                if existing == data_hash:
                    outcome = 'unchanged'
                else:
                    order, created = Order.objects.update_or_create(
                        remote_id=remote_id,
                        defaults={**fields, 'data_hash': data_hash},
                    )
                    order.line_items.all().delete()
                    OrderLineItem.objects.bulk_create(
                        [OrderLineItem(order=order, **item) for item in line_items]
                    )
                    outcome = 'created' if created else 'updated'

                present = set(
                    Product.objects.select_for_update()
                    .filter(remote_id__in=product_ids)
                    .values_list('remote_id', flat=True)
                )
        except DatabaseError as exc:
            raise LocalPersistenceError(f"could not store order {remote_id}: {exc}") from exc
        return outcome, present

    def _backfill_product(self, product_id):
        raw = self.client.fetch_product(product_id)
        is_valid, reason = validate_product(raw)
        if not is_valid:
            raise InvalidPayload(reason)
        remote_id, fields = transform_product(raw)
        try:
            with transaction.atomic():
                # Never overwrite a product the catalog sync stored meanwhile
                _, created = Product.objects.get_or_create(remote_id=remote_id, defaults=fields)
        except DatabaseError as exc:
            raise LocalPersistenceError(f"could not store product {remote_id}: {exc}") from exc
        return created

    def _upsert_product(self, raw):
        remote_id, fields = transform_product(raw)
        try:
            with transaction.atomic():
                _, created = Product.objects.update_or_create(remote_id=remote_id, defaults=fields)
        except DatabaseError as exc:
            raise LocalPersistenceError(f"could not store product {remote_id}: {exc}") from exc
        return created

    # Catalog sync

    def sync_catalog(self):
        started = timezone.now()
        self.log.info("Starting catalog sync")
        stats = {'synced': 0, 'created': 0, 'updated': 0, 'errors': 0}

        try:
            for products in self._iter_pages(self.client.fetch_products_page, stats):
                for raw in products:
                    self._sync_product(raw, stats)
        except SyncAborted:
            self._record_run(SyncRun.CATALOG, started, SyncRun.ABORTED, stats)
            raise

        self._record_run(SyncRun.CATALOG, started, SyncRun.COMPLETED, stats)
        self.log.info("Catalog sync complete: %s", stats)
        return stats

    def _sync_product(self, raw, stats):
        is_valid, reason = validate_product(raw)
        if not is_valid:
            self.log.warning("Skipping invalid product: %s", reason)
            stats['errors'] += 1
            return
        try:
            created = self._upsert_product(raw)
        except (InvalidPayload, LocalPersistenceError) as exc:
            self.log.error("Failed to sync product %s: %s", raw['id'], exc)
            stats['errors'] += 1
            return

        stats['synced'] += 1
        stats['created' if created else 'updated'] += 1

    def _iter_pages(self, fetch_page, stats, **params):
        """Yield non-empty pages until one comes back shorter than the page size."""
        page = 1
        while True:
            self.log.info("Fetching page %d", page)
            try:
                records = fetch_page(page, self.page_size, **params)
            except RemoteError as exc:
                self.log.error("Fetching page %d failed, aborting pass: %s", page, exc)
                raise SyncAborted(page, stats, exc) from exc

            if not records:
                self.log.info("Page %d is empty, nothing more to sync", page)
                return
            yield records
            if len(records) < self.page_size:
                return
            page += 1

    # Retention

    def run_retention(self, threshold=None):
        started = timezone.now()
        cutoff = started - (self.retention if threshold is None else threshold)
        self.log.info("Starting retention (orders last modified before %s)", cutoff.isoformat())

        stats = {'orders_deleted': 0, 'products_deleted': 0, 'errors': 0}
        candidates = set()

        stale = Order.objects.filter(last_modified__lt=cutoff).prefetch_related('line_items')
        stale = list(stale)
        self.log.info("Found %d stale orders", len(stale))

        for order in stale:
            candidates.update(item.product_remote_id for item in order.line_items.all())
            try:
                with transaction.atomic():
                    order.delete()
            except DatabaseError as exc:
                self.log.error("Failed to delete order %s: %s", order.remote_id, exc)
                stats['errors'] += 1
                continue
            stats['orders_deleted'] += 1
            self.log.debug("Deleted order %s", order.remote_id)

        # Only now that every stale order is gone can "still referenced" be decided
        for product_id in sorted(candidates):
            try:
                if self._delete_unreferenced_product(product_id, cutoff):
                    stats['products_deleted'] += 1
            except DatabaseError as exc:
                self.log.error("Failed to check/delete product %s: %s", product_id, exc)
                stats['errors'] += 1

        self._record_run(SyncRun.RETENTION, started, SyncRun.COMPLETED, stats)
        self.log.info("Retention complete: %s", stats)
        return stats

    def _delete_unreferenced_product(self, product_id, cutoff):
        with transaction.atomic():
            product = Product.objects.select_for_update().filter(remote_id=product_id).first()
            if product is None:
                return False
            if OrderLineItem.objects.filter(product_remote_id=product_id).exists():
                return False
            if self.protect_fresh_products and product.date_modified >= cutoff:
                self.log.debug("Keeping unreferenced product %s, modified %s", product_id, product.date_modified)
                return False
            product.delete()
        self.log.debug("Deleted unused product %s", product_id)
        return True

    def _record_run(self, kind, started, status, stats):
        # Failing to write the bookkeeping row never fails the pass itself
        try:
            with transaction.atomic():
                SyncRun.objects.create(
                    kind=kind, status=status, started_at=started,
                    finished_at=timezone.now(), stats=stats,
                )
        except DatabaseError as exc:
            self.log.error("Could not record %s run: %s", kind, exc)

    def get_stats(self):
        last_run = (
            SyncRun.objects.filter(kind=SyncRun.ORDERS, status=SyncRun.COMPLETED)
            .aggregate(last=Max('finished_at'))
        )
        return {
            'total_orders': Order.objects.count(),
            'total_products': Product.objects.count(),
            'last_sync_date': last_run['last'],
        }
