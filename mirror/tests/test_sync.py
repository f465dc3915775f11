from datetime import timedelta
from unittest.mock import MagicMock, patch

import responses
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from mirror.clients.woocommerce import WooCommerceClient
from mirror.exceptions import RemoteRejected, RemoteServerFault, RemoteUnavailable, SyncAborted
from mirror.models import Order, OrderLineItem, Product, SyncRun
from mirror.sync import SyncOrchestrator
from mirror.tests.payloads import order_payload, product_payload


def _make_orchestrator(order_pages=(), page_size=100, products=None):
    """Orchestrator over a fake client serving ``order_pages`` in sequence."""
    products = products if products is not None else {}
    client = MagicMock()
    client.fetch_orders_page.side_effect = list(order_pages)

    def fetch_product(product_id):
        result = products.get(product_id, product_payload(product_id))
        if isinstance(result, Exception):
            raise result
        return result

    client.fetch_product.side_effect = fetch_product
    return SyncOrchestrator(client=client, page_size=page_size)


def _stored_product(remote_id, name=None):
    now = timezone.now()
    return Product.objects.create(
        remote_id=remote_id, name=name or f"Product {remote_id}", status='publish',
        date_created=now, date_modified=now,
    )


class TestPagination(TestCase):
    def test_two_pages_of_100_and_50(self):
        orders = [order_payload(i) for i in range(1, 151)]
        orchestrator = _make_orchestrator([orders[:100], orders[100:]])

        result = orchestrator.run_sync()

        self.assertEqual(orchestrator.client.fetch_orders_page.call_count, 2)
        self.assertEqual(result['synced'], 150)
        self.assertEqual(result['errors'], 0)
        self.assertEqual(Order.objects.count(), 150)
        pages = [c.args[0] for c in orchestrator.client.fetch_orders_page.call_args_list]
        self.assertEqual(pages, [1, 2])

    def test_empty_first_page(self):
        orchestrator = _make_orchestrator([[]])

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 0)
        self.assertEqual(result['errors'], 0)
        self.assertEqual(orchestrator.client.fetch_orders_page.call_count, 1)

    def test_full_page_then_empty_page(self):
        orchestrator = _make_orchestrator([[order_payload(1), order_payload(2)], []], page_size=2)

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 2)
        self.assertEqual(orchestrator.client.fetch_orders_page.call_count, 2)

    def test_lookback_bounds_request(self):
        orchestrator = _make_orchestrator([[]])

        before = timezone.now()
        orchestrator.run_sync(lookback=timedelta(days=3))

        since = orchestrator.client.fetch_orders_page.call_args.kwargs['since']
        self.assertAlmostEqual(
            since.timestamp(), (before - timedelta(days=3)).timestamp(), delta=5,
        )

    def test_zero_lookback_honored(self):
        orchestrator = _make_orchestrator([[]])

        before = timezone.now()
        orchestrator.run_sync(lookback=timedelta(0))

        since = orchestrator.client.fetch_orders_page.call_args.kwargs['since']
        self.assertAlmostEqual(since.timestamp(), before.timestamp(), delta=5)

    def test_zero_lookback_in_constructor_honored(self):
        client = MagicMock()
        client.fetch_orders_page.return_value = []
        orchestrator = SyncOrchestrator(client=client, lookback=timedelta(0))

        before = timezone.now()
        orchestrator.run_sync()

        since = client.fetch_orders_page.call_args.kwargs['since']
        self.assertAlmostEqual(since.timestamp(), before.timestamp(), delta=5)

    def test_record_repeated_on_next_page_processed_once(self):
        orchestrator = _make_orchestrator(
            [[order_payload(1), order_payload(2)], [order_payload(2)]], page_size=2,
        )

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 2)
        self.assertEqual(Order.objects.count(), 2)


class TestUpsert(TestCase):
    def test_fields_stored(self):
        raw = order_payload(42, product_ids=(101, 102), total="99.80")
        orchestrator = _make_orchestrator([[raw]])

        orchestrator.run_sync()

        order = Order.objects.get(remote_id=42)
        self.assertEqual(order.total, "99.80")
        self.assertEqual(order.status, "processing")
        self.assertEqual(order.billing["email"], "jana@example.com")
        self.assertEqual(
            sorted(order.line_items.values_list('product_remote_id', flat=True)), [101, 102],
        )

    def test_second_pass_is_a_no_op(self):
        orders = [order_payload(1, product_ids=(101,)), order_payload(2, product_ids=(101, 102))]

        first = _make_orchestrator([orders]).run_sync()
        stored = {o.remote_id: (o.last_modified, o.data_hash) for o in Order.objects.all()}
        second = _make_orchestrator([orders]).run_sync()

        self.assertEqual(first['created'], 2)
        self.assertEqual(second['synced'], 2)
        self.assertEqual(second['unchanged'], 2)
        self.assertEqual(second['created'] + second['updated'], 0)
        self.assertEqual(second['products_backfilled'], 0)
        self.assertEqual(Order.objects.count(), 2)
        self.assertEqual(OrderLineItem.objects.count(), 3)
        self.assertEqual(
            {o.remote_id: (o.last_modified, o.data_hash) for o in Order.objects.all()}, stored,
        )

    def test_remote_change_updates_order(self):
        raw = order_payload(1, product_ids=(101, 102))
        _make_orchestrator([[raw]]).run_sync()

        changed = order_payload(1, product_ids=(101,), status='completed',
                                modified=timezone.now() - timedelta(hours=1))
        result = _make_orchestrator([[changed]]).run_sync()

        self.assertEqual(result['updated'], 1)
        order = Order.objects.get(remote_id=1)
        self.assertEqual(order.status, 'completed')
        self.assertEqual(list(order.line_items.values_list('product_remote_id', flat=True)), [101])

    def test_last_modified_is_remote_time(self):
        modified = timezone.now().replace(microsecond=0) - timedelta(days=4)
        _make_orchestrator([[order_payload(1, modified=modified)]]).run_sync()

        self.assertEqual(Order.objects.get(remote_id=1).last_modified, modified)

    def test_write_failure_isolated_to_one_record(self):
        orchestrator = _make_orchestrator([[order_payload(1), order_payload(2), order_payload(3)]])
        real_upsert = Order.objects.update_or_create

        def flaky(*args, **kwargs):
            if kwargs['remote_id'] == 2:
                raise DatabaseError("disk I/O error")
            return real_upsert(*args, **kwargs)

        with patch.object(Order.objects, 'update_or_create', side_effect=flaky):
            result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 2)
        self.assertEqual(result['errors'], 1)
        self.assertEqual(sorted(Order.objects.values_list('remote_id', flat=True)), [1, 3])

    def test_malformed_record_counted(self):
        broken = order_payload(2)
        broken['total'] = 'lots'
        missing_id = order_payload(3)
        del missing_id['id']
        orchestrator = _make_orchestrator([[order_payload(1), broken, missing_id]])

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 1)
        self.assertEqual(result['errors'], 2)

    def test_malformed_id_isolated_to_one_record(self):
        malformed = order_payload(2)
        malformed['id'] = [2]
        orchestrator = _make_orchestrator([[order_payload(1), malformed, order_payload(3)]])

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 2)
        self.assertEqual(result['errors'], 1)
        self.assertEqual(sorted(Order.objects.values_list('remote_id', flat=True)), [1, 3])

    def test_numeric_string_id_deduplicated_with_integer_id(self):
        repeated = order_payload(1)
        repeated['id'] = '1'
        orchestrator = _make_orchestrator([[order_payload(1), repeated]])

        result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 1)
        self.assertEqual(Order.objects.count(), 1)


class TestBackfill(TestCase):
    def test_missing_products_fetched_once(self):
        orders = [order_payload(1, product_ids=(101, 102)), order_payload(2, product_ids=(102,))]
        orchestrator = _make_orchestrator([orders])

        result = orchestrator.run_sync()

        self.assertEqual(result['products_backfilled'], 2)
        self.assertEqual(orchestrator.client.fetch_product.call_count, 2)
        product = Product.objects.get(remote_id=102)
        self.assertEqual(product.price, "24.95")
        self.assertEqual(product.tags, [{"id": 9, "name": "new", "slug": "new"}])

    def test_existing_product_not_refetched_or_overwritten(self):
        _stored_product(101, name="Edited locally by catalog sync")
        orchestrator = _make_orchestrator([[order_payload(1, product_ids=(101,))]])

        result = orchestrator.run_sync()

        orchestrator.client.fetch_product.assert_not_called()
        self.assertEqual(result['products_backfilled'], 0)
        self.assertEqual(Product.objects.get(remote_id=101).name, "Edited locally by catalog sync")

    def test_deleted_product_marker_not_fetched(self):
        orchestrator = _make_orchestrator([[order_payload(1, product_ids=(0,))]])

        result = orchestrator.run_sync()

        orchestrator.client.fetch_product.assert_not_called()
        self.assertEqual(result['errors'], 0)

    def test_failed_backfill_counted_and_retried_next_pass(self):
        raw = order_payload(1, product_ids=(101, 102))
        flaky = _make_orchestrator(
            [[raw]], products={101: RemoteUnavailable("timed out")},
        )

        result = flaky.run_sync()

        self.assertEqual(result['synced'], 1)
        self.assertEqual(result['errors'], 1)
        self.assertEqual(result['products_backfilled'], 1)
        self.assertTrue(Order.objects.filter(remote_id=1).exists())
        self.assertFalse(Product.objects.filter(remote_id=101).exists())

        retry = _make_orchestrator([[raw]]).run_sync()

        self.assertEqual(retry['unchanged'], 1)
        self.assertEqual(retry['products_backfilled'], 1)
        self.assertTrue(Product.objects.filter(remote_id=101).exists())

    @responses.activate
    @patch('mirror.clients.woocommerce.time.sleep')
    def test_rate_limited_backfill_with_http_date_does_not_stop_the_page(self, mock_sleep):
        api_url = "https://shop.example.com/wp-json/wc/v3"
        responses.add(
            responses.GET, f"{api_url}/orders",
            json=[order_payload(1, product_ids=(101,)), order_payload(2, product_ids=(102,))],
            status=200,
        )
        responses.add(
            responses.GET, f"{api_url}/products/101",
            status=429, headers={'Retry-After': 'Wed, 21 Oct 2026 07:28:00 GMT'},
        )
        responses.add(responses.GET, f"{api_url}/products/102", json=product_payload(102), status=200)
        client = WooCommerceClient(
            base_url="https://shop.example.com", consumer_key="ck_test", consumer_secret="cs_test",
        )

        result = SyncOrchestrator(client=client, page_size=100).run_sync()

        self.assertEqual(result['synced'], 2)
        self.assertEqual(result['errors'], 1)
        self.assertEqual(result['products_backfilled'], 1)
        self.assertEqual(sorted(Order.objects.values_list('remote_id', flat=True)), [1, 2])
        self.assertEqual(list(Product.objects.values_list('remote_id', flat=True)), [102])

    def test_invalid_product_payload_not_stored(self):
        orchestrator = _make_orchestrator(
            [[order_payload(1, product_ids=(101,))]], products={101: {"id": 101}},
        )

        result = orchestrator.run_sync()

        self.assertEqual(result['errors'], 1)
        self.assertFalse(Product.objects.exists())


class TestPageFailure(TestCase):
    def test_fetch_failure_aborts_and_keeps_committed_pages(self):
        orchestrator = _make_orchestrator(
            [[order_payload(1), order_payload(2)], RemoteServerFault("502 Bad Gateway")], page_size=2,
        )

        with self.assertRaises(SyncAborted) as ctx:
            orchestrator.run_sync()

        self.assertEqual(ctx.exception.page, 2)
        self.assertEqual(ctx.exception.stats['synced'], 2)
        self.assertTrue(ctx.exception.transient)
        self.assertEqual(Order.objects.count(), 2)

    def test_rejected_is_not_transient(self):
        orchestrator = _make_orchestrator([RemoteRejected("401 Unauthorized", status_code=401)])

        with self.assertRaises(SyncAborted) as ctx:
            orchestrator.run_sync()

        self.assertFalse(ctx.exception.transient)
        self.assertEqual(ctx.exception.page, 1)


class TestCatalogSync(TestCase):
    def test_catalog_pages_upserted(self):
        _stored_product(1, name="Stale name")
        client = MagicMock()
        client.fetch_products_page.side_effect = [
            [product_payload(1, name="Fresh name"), product_payload(2)],
            [product_payload(3)],
        ]
        orchestrator = SyncOrchestrator(client=client, page_size=2)

        result = orchestrator.sync_catalog()

        self.assertEqual(result, {'synced': 3, 'created': 2, 'updated': 1, 'errors': 0})
        self.assertEqual(Product.objects.get(remote_id=1).name, "Fresh name")
        self.assertEqual(client.fetch_products_page.call_count, 2)

    def test_invalid_product_isolated(self):
        client = MagicMock()
        client.fetch_products_page.side_effect = [[{"id": 9}, product_payload(2)]]
        orchestrator = SyncOrchestrator(client=client, page_size=10)

        result = orchestrator.sync_catalog()

        self.assertEqual(result['synced'], 1)
        self.assertEqual(result['errors'], 1)


class TestStats(TestCase):
    def test_counts(self):
        _make_orchestrator([[order_payload(1, product_ids=(101,))]]).run_sync()

        stats = SyncOrchestrator(client=MagicMock()).get_stats()

        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['total_products'], 1)
        self.assertIsNotNone(stats['last_sync_date'])

    def test_last_sync_date_advances_on_a_no_op_pass(self):
        raw = order_payload(1, product_ids=(101,))
        _make_orchestrator([[raw]]).run_sync()
        first = SyncOrchestrator(client=MagicMock()).get_stats()['last_sync_date']

        result = _make_orchestrator([[raw]]).run_sync()
        second = SyncOrchestrator(client=MagicMock()).get_stats()['last_sync_date']

        self.assertEqual(result['unchanged'], 1)
        self.assertGreater(second, first)

    def test_no_completed_pass_yet(self):
        self.assertIsNone(SyncOrchestrator(client=MagicMock()).get_stats()['last_sync_date'])


class TestRunRecords(TestCase):
    def test_completed_pass_recorded_with_stats(self):
        result = _make_orchestrator([[order_payload(1)]]).run_sync()

        run = SyncRun.objects.get()
        self.assertEqual(run.kind, SyncRun.ORDERS)
        self.assertEqual(run.status, SyncRun.COMPLETED)
        self.assertEqual(run.stats, result)
        self.assertGreaterEqual(run.finished_at, run.started_at)

    def test_aborted_pass_recorded_and_not_counted_as_last_sync(self):
        orchestrator = _make_orchestrator([RemoteServerFault("502 Bad Gateway")])

        with self.assertRaises(SyncAborted):
            orchestrator.run_sync()

        self.assertEqual(SyncRun.objects.get().status, SyncRun.ABORTED)
        self.assertIsNone(orchestrator.get_stats()['last_sync_date'])

    def test_catalog_and_retention_passes_recorded(self):
        client = MagicMock()
        client.fetch_products_page.side_effect = [[product_payload(1)]]
        orchestrator = SyncOrchestrator(client=client, page_size=10)

        orchestrator.sync_catalog()
        orchestrator.run_retention()

        self.assertEqual(
            sorted(SyncRun.objects.values_list('kind', flat=True)),
            [SyncRun.CATALOG, SyncRun.RETENTION],
        )

    def test_bookkeeping_failure_does_not_fail_the_pass(self):
        orchestrator = _make_orchestrator([[order_payload(1)]])

        with patch.object(SyncRun.objects, 'create', side_effect=DatabaseError("disk full")):
            result = orchestrator.run_sync()

        self.assertEqual(result['synced'], 1)
        self.assertFalse(SyncRun.objects.exists())
