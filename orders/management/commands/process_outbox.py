"""
Management command to deliver outbox events to the push channel.
"""
import time

from django.core.management.base import BaseCommand

from orders.conf import get_setting
from orders.infra.dispatcher import OutboxDispatcher


class Command(BaseCommand):
    help = 'Deliver pending order events from the outbox to the push channel'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of events to deliver in one run',
        )
        parser.add_argument(
            '--loop',
            action='store_true',
            help='Run in loop (for production)',
        )
        parser.add_argument(
            '--interval',
            type=int,
            default=3,
            help='Interval between loops in seconds',
        )

    def handle(self, *args, **options):
        limit = options['limit'] or get_setting("OUTBOX_BATCH_SIZE")
        interval = options['interval']

        dispatcher = OutboxDispatcher()

        if not options['loop']:
            processed = dispatcher.process_outbox_events(limit=limit)
            self.stdout.write(self.style.SUCCESS(f'Delivered {processed} events'))
            return

        self.stdout.write(f'Starting dispatcher in loop mode (interval: {interval}s)')
        while True:
            try:
                processed = dispatcher.process_outbox_events(limit=limit)
                if processed > 0:
                    self.stdout.write(self.style.SUCCESS(f'Delivered {processed} events'))
                time.sleep(interval)
            except KeyboardInterrupt:
                self.stdout.write(self.style.WARNING('Stopped by user'))
                break
