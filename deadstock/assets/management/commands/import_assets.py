"""
Management command to import assets from a CSV file
"""
import logging
import os

from django.core.management.base import BaseCommand, CommandError

from deadstock.assets import import_export
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import User

logger = logging.getLogger('deadstock.assets')


class Command(BaseCommand):
    help = 'Import assets from a CSV file in the export layout'

    def add_arguments(self, parser):
        parser.add_argument('--csv-file', required=True, help='Path to the CSV file')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate every row without saving anything'
        )
        parser.add_argument('--user', help='Email of the user the import is recorded against')

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        user = None
        if options['user']:
            user = User.objects.filter(email__iexact=options['user']).first()
            if user is None:
                raise CommandError(f"No user with email {options['user']}")

        with open(csv_file, 'rb') as handle:
            try:
                rows = import_export.read_csv(handle)
                summary = import_export.import_rows(rows, user=user, dry_run=options['dry_run'])
            except BusinessRuleError as e:
                raise CommandError(e.detail['error'])

        for failure in summary['errors']:
            messages = '; '.join(f"{field}: {' '.join(str(m) for m in errors)}"
                                 for field, errors in failure['errors'].items())
            self.stdout.write(self.style.WARNING(f"  row {failure['row']}: {messages}"))

        verb = 'Would import' if options['dry_run'] else 'Imported'
        self.stdout.write(self.style.SUCCESS(
            f"{verb} {summary['imported']} of {summary['total_rows']} row(s), {summary['failed']} rejected"
        ))
        logger.info(f"import_assets {csv_file}: imported={summary['imported']} failed={summary['failed']}")
