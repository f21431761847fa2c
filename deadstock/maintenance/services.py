"""Asset side effects of maintenance status changes"""
import logging

from django.utils import timezone

from deadstock.assets.models import Asset
from deadstock.core.cache_utils import invalidate_dashboard_cache
from .models import Maintenance

logger = logging.getLogger('deadstock.maintenance')

# statuses an asset can be pulled out of or put back from by maintenance work
SERVICEABLE_STATUSES = (Asset.STATUS_ACTIVE, Asset.STATUS_AVAILABLE, Asset.STATUS_DAMAGED,
                        Asset.STATUS_UNDER_MAINTENANCE)


def apply_status_side_effects(record, old_status=None):
    """
    In Progress puts the asset Under Maintenance; Completed returns it to
    Active (assigned) or Available and stamps last_maintenance_date.
    Returns the asset when it was changed.
    """
    if record.status == old_status:
        return None
    asset = record.asset
    if asset.status not in SERVICEABLE_STATUSES:
        return None

    if record.status == Maintenance.STATUS_IN_PROGRESS:
        asset.status = Asset.STATUS_UNDER_MAINTENANCE
        asset.save(update_fields=['status', 'updated_at'])
        return asset

    if record.status == Maintenance.STATUS_COMPLETED:
        asset.status = Asset.STATUS_ACTIVE if asset.assigned_user_id else Asset.STATUS_AVAILABLE
        asset.last_maintenance_date = timezone.localdate()
        asset.save(update_fields=['status', 'last_maintenance_date', 'updated_at'])
        return asset

    if record.status == Maintenance.STATUS_CANCELLED and asset.status == Asset.STATUS_UNDER_MAINTENANCE:
        still_open = asset.maintenance_records.filter(status=Maintenance.STATUS_IN_PROGRESS).exclude(pk=record.pk)
        if not still_open.exists():
            asset.status = Asset.STATUS_ACTIVE if asset.assigned_user_id else Asset.STATUS_AVAILABLE
            asset.save(update_fields=['status', 'updated_at'])
            return asset
    return None


def mark_overdue_maintenance(today=None):
    """Scheduled work dated before today becomes Overdue; returns the count"""
    today = today or timezone.localdate()
    count = Maintenance.objects.filter(
        status=Maintenance.STATUS_SCHEDULED, maintenance_date__lt=today
    ).update(status=Maintenance.STATUS_OVERDUE, updated_at=timezone.now())
    if count:
        logger.info(f"Marked {count} maintenance record(s) overdue")
        invalidate_dashboard_cache()
    return count
