"""
Management command to drop order lines whose product no longer exists and
to fail orders stuck in ``reserving``.
"""
from datetime import timedelta

from django.core.management.base import BaseCommand

from orders.services import OrderMaintenance


class Command(BaseCommand):
    help = 'Remove order items referencing deleted products, reprice the affected orders and release stale reservations'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without saving',
        )
        parser.add_argument(
            '--stale-minutes',
            type=int,
            default=None,
            help='Age after which a reserving order counts as abandoned',
        )

    def handle(self, *args, **options):
        maintenance = OrderMaintenance()
        dry_run = options['dry_run']
        older_than = None
        if options['stale_minutes'] is not None:
            older_than = timedelta(minutes=options['stale_minutes'])

        report = maintenance.purge_orphan_items(dry_run=dry_run)
        sweep = maintenance.release_stale_reservations(older_than=older_than, dry_run=dry_run)

        prefix = '[dry run] ' if dry_run else ''
        self.stdout.write(f'{prefix}Orphan products: {len(report.orphan_product_ids)}')
        self.stdout.write(f'{prefix}Items removed: {report.items_removed}')
        self.stdout.write(f'{prefix}Orders repriced: {report.orders_updated}')
        self.stdout.write(f'{prefix}Stale reservations failed: {sweep.orders_failed}')
        self.stdout.write(f'{prefix}Stale reservations restocked: {sweep.orders_restocked}')
        self.stdout.write(
            self.style.SUCCESS(f'{prefix}Orders cancelled: {report.orders_cancelled}')
        )
