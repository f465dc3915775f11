from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from mirror.exceptions import SyncAborted
from mirror.scheduler import build_scheduler


class Command(BaseCommand):
    help = "Run one pass of the mirror immediately and print its outcome."

    def add_arguments(self, parser):
        parser.add_argument(
            'pass_name', nargs='?', default='orders', choices=['orders', 'catalog', 'retention'],
        )
        parser.add_argument('--days', type=int, help="Lookback (orders) or retention threshold in days.")

    def handle(self, *args, **options):
        scheduler = build_scheduler()
        days = None if options['days'] is None else timedelta(days=options['days'])

        try:
            if options['pass_name'] == 'orders':
                result = scheduler.trigger_sync(lookback=days)
            elif options['pass_name'] == 'catalog':
                result = scheduler.orchestrator.sync_catalog()
            else:
                result = scheduler.trigger_retention(threshold=days)
        except SyncAborted as exc:
            raise CommandError(f"{exc} (partial stats: {exc.stats})") from exc

        for key, value in result.items():
            self.stdout.write(f"{key}: {value}")
