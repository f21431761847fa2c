import logging
from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from deadstock.audits.services import check_and_trigger_due_audits, send_due_reminders

logger = logging.getLogger('deadstock.audits')


class Command(BaseCommand):
    help = 'Start scheduled audits that are due, or send reminders for upcoming ones'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reminders',
            action='store_true',
            help='Send reminders for upcoming audits instead of starting due ones'
        )
        parser.add_argument(
            '--date',
            help='Treat this day (YYYY-MM-DD) as today'
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError('--date must be formatted as YYYY-MM-DD')

        if options['reminders']:
            sent = send_due_reminders(today)
            self.stdout.write(self.style.SUCCESS(f"Sent {sent} audit reminders"))
            return

        summary = check_and_trigger_due_audits(today)
        for run_id in summary['runs']:
            self.stdout.write(f"  started run #{run_id}")
        self.stdout.write(self.style.SUCCESS(
            f"Triggered {summary['triggered']} audits, closed {summary['completed']} expired, "
            f"{summary['failed']} failed"
        ))
        if summary['failed']:
            logger.warning(f"{summary['failed']} scheduled audits failed to start")
