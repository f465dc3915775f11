import signal
import threading

from django.core.management.base import BaseCommand

from mirror.scheduler import build_scheduler


class Command(BaseCommand):
    help = "Run the order sync and retention jobs on their configured cadences until interrupted."

    def handle(self, *args, **options):
        scheduler = build_scheduler()
        stopped = threading.Event()

        def _stop(signum, frame):
            stopped.set()

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)

        scheduler.start()
        status = scheduler.get_status()
        self.stdout.write(
            f"Scheduler running. Next sync: {status['next_sync_time']}, "
            f"next retention: {status['next_retention_time']}"
        )
        stopped.wait()
        scheduler.stop()
        self.stdout.write("Scheduler stopped.")
