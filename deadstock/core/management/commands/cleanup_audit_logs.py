from datetime import timedelta
import logging

from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from deadstock.core.models import AuditLog, SystemSettings

logger = logging.getLogger('deadstock.core.management')


class Command(BaseCommand):
    help = 'Delete audit log entries older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Days of audit log to keep (default: application.auditLogRetentionDays setting)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without actually deleting'
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = SystemSettings.load().get_section('application')['auditLogRetentionDays']
        dry_run = options['dry_run']

        cutoff_date = timezone.now() - timedelta(days=days)
        self.stdout.write(f"Looking for audit log entries older than {days} days ({cutoff_date})")

        old_entries = AuditLog.objects.filter(timestamp__lt=cutoff_date)
        count = old_entries.count()

        if count == 0:
            self.stdout.write(self.style.SUCCESS("No old audit log entries found"))
            return

        if dry_run:
            self.stdout.write(f"Would delete {count} audit log entries (dry run)")
            breakdown = old_entries.values('action').annotate(count=Count('id')).order_by('-count')
            for item in breakdown:
                self.stdout.write(f"  - {item['action']}: {item['count']} entries")
            return

        deleted_count, _ = old_entries.delete()
        self.stdout.write(self.style.SUCCESS(f"Successfully deleted {deleted_count} old audit log entries"))
        logger.info(f"Cleaned up {deleted_count} audit log entries older than {days} days")
