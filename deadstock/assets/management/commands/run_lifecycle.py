import logging

from django.core.management.base import BaseCommand, CommandError

from deadstock.assets import lifecycle
from deadstock.core.utils import create_audit_log

logger = logging.getLogger('deadstock.lifecycle')


class Command(BaseCommand):
    help = 'Move outdated assets to dead stock and long-standing dead stock to disposal'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dead-stock-only',
            action='store_true',
            help='Only flag outdated assets as dead stock'
        )
        parser.add_argument(
            '--disposal-only',
            action='store_true',
            help='Only create disposal records for expired dead stock'
        )

    def handle(self, *args, **options):
        if options['dead_stock_only'] and options['disposal_only']:
            raise CommandError('--dead-stock-only and --disposal-only are mutually exclusive')

        if options['dead_stock_only']:
            dead_stock = lifecycle.move_outdated_to_dead_stock()
            disposal = {'count': 0, 'records': []}
        elif options['disposal_only']:
            dead_stock = {'count': 0, 'assets': []}
            disposal = lifecycle.move_dead_stock_to_disposal()
        else:
            summary = lifecycle.run_full_lifecycle()
            dead_stock, disposal = summary['dead_stock'], summary['disposal']

        for item in dead_stock['assets']:
            self.stdout.write(f"  dead stock: {item['unique_asset_id']} ({item['reason']})")
        for item in disposal['records']:
            self.stdout.write(f"  disposal:   {item['unique_asset_id']} ({item['method']}, {item['value']})")

        create_audit_log(
            action='lifecycle_run', entity_type='Lifecycle', entity_id='cron',
            description=f"Scheduled lifecycle run: {dead_stock['count']} to dead stock, "
                        f"{disposal['count']} to disposal",
        )
        self.stdout.write(self.style.SUCCESS(
            f"Lifecycle complete: {dead_stock['count']} moved to dead stock, {disposal['count']} moved to disposal"
        ))
        logger.info(f"run_lifecycle finished: dead_stock={dead_stock['count']} disposal={disposal['count']}")
