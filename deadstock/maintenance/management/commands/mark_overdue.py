import logging
from datetime import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from deadstock.core.utils import create_audit_log
from deadstock.maintenance.services import mark_overdue_maintenance
from deadstock.purchasing.services import mark_overdue_invoices

logger = logging.getLogger('deadstock.maintenance')


class Command(BaseCommand):
    help = 'Mark past-due scheduled maintenance and unpaid invoices as overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            default=None,
            help='Treat this date (YYYY-MM-DD) as today'
        )

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options['date']:
            try:
                today = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError(f"Invalid --date '{options['date']}', expected YYYY-MM-DD")

        maintenance_count = mark_overdue_maintenance(today)
        invoice_count = mark_overdue_invoices(today)

        if maintenance_count or invoice_count:
            create_audit_log(
                action='mark_overdue', entity_type='System', entity_id='cron', severity='warning',
                description=f"Marked {maintenance_count} maintenance record(s) and {invoice_count} invoice(s) overdue",
            )
        self.stdout.write(self.style.SUCCESS(
            f"Marked {maintenance_count} maintenance record(s) and {invoice_count} invoice(s) overdue"
        ))
        logger.info(f"mark_overdue: maintenance={maintenance_count} invoices={invoice_count}")
