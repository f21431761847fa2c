"""
Batch operations on many assets at once.

Every operation runs in one transaction with the dashboard cache signals
suspended, writes one audit entry per asset sharing a batch id, and
invalidates the dashboards once when the batch is done.
"""
import logging
import uuid
from contextlib import contextmanager

from django.db import transaction
from django.utils import timezone

from deadstock.core.cache_signals import suspend_cache_signals
from deadstock.core.cache_utils import invalidate_dashboard_cache
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.notifications import notify_users
from deadstock.core.utils import create_audit_log, diff_values, snapshot
from .models import Asset

logger = logging.getLogger('deadstock.assets')

MAX_BATCH_SIZE = 500

BULK_ACTIONS = {
    'update_status': 'bulk_status_update',
    'assign': 'bulk_assign',
    'update_location': 'bulk_location_update',
    'update_condition': 'bulk_condition_update',
    'schedule_maintenance': 'bulk_maintenance_schedule',
    'delete': 'bulk_delete',
}

UNASSIGNABLE_STATUSES = (Asset.STATUS_DISPOSED, Asset.STATUS_READY_FOR_SCRAP, Asset.STATUS_DAMAGED)
IN_USE_STATUSES = (Asset.STATUS_ACTIVE, Asset.STATUS_UNDER_MAINTENANCE)


class BulkResult:
    """Outcome of one batch: assets changed, skipped with a reason, and ids not found"""

    def __init__(self, operation, missing_ids):
        self.operation = operation
        self.batch_id = uuid.uuid4().hex[:12]
        self.updated = []
        self.updated_ids = []
        self.skipped = []
        self.missing_ids = missing_ids

    def add(self, asset):
        self.updated.append(asset)
        self.updated_ids.append(asset.pk)

    def skip(self, asset, reason):
        self.skipped.append({'id': asset.pk, 'unique_asset_id': asset.unique_asset_id, 'reason': reason})

    def as_dict(self):
        return {
            'operation': self.operation,
            'batch_id': self.batch_id,
            'updated_count': len(self.updated_ids),
            'updated_ids': self.updated_ids,
            'skipped': self.skipped,
            'missing_ids': self.missing_ids,
        }


def load_assets(asset_ids):
    """
    Fetch the assets for a batch, preserving the request order.

    Raises BusinessRuleError for an empty or oversized batch and a 404 when
    none of the ids exist; partially missing ids are returned alongside.
    """
    asset_ids = list(dict.fromkeys(asset_ids))
    if not asset_ids:
        raise BusinessRuleError('asset_ids must be a non-empty list.')
    if len(asset_ids) > MAX_BATCH_SIZE:
        raise BusinessRuleError(f'Cannot process more than {MAX_BATCH_SIZE} assets at once.')

    found = Asset.objects.select_related('assigned_user').in_bulk(asset_ids)
    if not found:
        raise BusinessRuleError('No matching assets found.', status_code=404)
    missing_ids = [pk for pk in asset_ids if pk not in found]
    return [found[pk] for pk in asset_ids if pk in found], missing_ids


@contextmanager
def batch(operation, missing_ids):
    """Transaction plus suspended cache signals around one batch"""
    result = BulkResult(operation, missing_ids)
    with suspend_cache_signals():
        with transaction.atomic():
            yield result
    if result.updated:
        invalidate_dashboard_cache()
    logger.info(f"Bulk {operation} {result.batch_id}: {len(result.updated)} updated, "
                f"{len(result.skipped)} skipped, {len(missing_ids)} missing")


def _log(result, request, asset, description, old_values=None, new_values=None, severity='info'):
    changes = diff_values(old_values, new_values) if old_values and new_values else {}
    changes['batch_id'] = result.batch_id
    create_audit_log(request=request, action=BULK_ACTIONS[result.operation], entity_type='Asset',
                     entity_id=asset.pk, description=description, severity=severity,
                     old_values=old_values, new_values=new_values, changes=changes)


def update_status(asset_ids, new_status, request, notes=''):
    assets, missing_ids = load_assets(asset_ids)
    if new_status == Asset.STATUS_DISPOSED:
        raise BusinessRuleError('Assets are disposed through a disposal record.')

    with batch('update_status', missing_ids) as result:
        for asset in assets:
            if asset.status == Asset.STATUS_DISPOSED:
                result.skip(asset, 'Asset is disposed.')
                continue
            if asset.status == new_status:
                result.skip(asset, f'Already {new_status}.')
                continue
            old_values = snapshot(asset, fields=['status'])
            asset.status = new_status
            if new_status == Asset.STATUS_READY_FOR_SCRAP and asset.dead_stock_since is None:
                asset.dead_stock_since = timezone.now()
            if notes:
                asset.append_note(f"Status set to {new_status}: {notes}")
            asset.save()
            _log(result, request, asset, f"Bulk status change of {asset.unique_asset_id} to {new_status}",
                 old_values, snapshot(asset, fields=['status']))
            result.add(asset)

    for asset in result.updated:
        notify_users(
            [asset.assigned_user], 'Asset status updated',
            f'{asset.name} ({asset.unique_asset_id}) is now {new_status}.',
            type='info', sender=request.user,
            data={'asset_id': asset.pk, 'batch_id': result.batch_id},
            action_url=f'/assets/{asset.pk}',
        )
    return result


def assignment_conflicts(assets, user):
    """Assets currently held by somebody other than ``user``"""
    return [
        {'id': asset.pk, 'unique_asset_id': asset.unique_asset_id, 'assigned_to': asset.assigned_user.email}
        for asset in assets if asset.assigned_user_id and asset.assigned_user_id != user.pk
    ]


def assign(asset_ids, user, request, department=None, notes='', force=False):
    """
    Assign every asset to ``user``.

    Without ``force`` a batch containing assets held by another user is
    refused as a whole.
    """
    assets, missing_ids = load_assets(asset_ids)
    if not force:
        conflicts = assignment_conflicts(assets, user)
        if conflicts:
            raise BusinessRuleError(
                f'{len(conflicts)} asset(s) are already assigned to other users. Pass force to reassign.',
                extra={'conflicts': conflicts},
            )

    fields = ['assigned_user', 'department', 'status']
    with batch('assign', missing_ids) as result:
        for asset in assets:
            if asset.status in UNASSIGNABLE_STATUSES:
                result.skip(asset, f'Cannot assign an asset with status "{asset.status}".')
                continue
            if asset.assigned_user_id == user.pk:
                result.skip(asset, 'Already assigned to this user.')
                continue
            old_values = snapshot(asset, fields=fields)
            asset.assigned_user = user
            if department:
                asset.department = department
            if asset.status == Asset.STATUS_AVAILABLE:
                asset.status = Asset.STATUS_ACTIVE
            if notes:
                asset.append_note(f"Assigned to {user.name}: {notes}")
            asset.save()
            _log(result, request, asset, f"Bulk assignment of {asset.unique_asset_id} to {user.email}",
                 old_values, snapshot(asset, fields=fields))
            result.add(asset)

    if result.updated:
        codes = ', '.join(asset.unique_asset_id for asset in result.updated[:10])
        more = len(result.updated) - 10
        notify_users(
            [user], 'Assets assigned to you',
            f'{len(result.updated)} asset(s) have been assigned to you: {codes}'
            + (f' and {more} more.' if more > 0 else '.'),
            type='asset_assigned', sender=request.user,
            data={'asset_ids': [asset.pk for asset in result.updated], 'batch_id': result.batch_id},
            action_url='/assets/my-assets',
        )
    return result


def update_location(asset_ids, location, request, notes=''):
    assets, missing_ids = load_assets(asset_ids)
    with batch('update_location', missing_ids) as result:
        for asset in assets:
            if asset.status == Asset.STATUS_DISPOSED:
                result.skip(asset, 'Asset is disposed.')
                continue
            if asset.location == location:
                result.skip(asset, 'Already at this location.')
                continue
            old_values = snapshot(asset, fields=['location'])
            asset.location = location
            if notes:
                asset.append_note(f"Moved to {location}: {notes}")
            asset.save()
            _log(result, request, asset, f"Bulk move of {asset.unique_asset_id} to {location}",
                 old_values, snapshot(asset, fields=['location']))
            result.add(asset)
    return result


def update_condition(asset_ids, condition, request, notes=''):
    """A condition check counts as an audit of the asset"""
    assets, missing_ids = load_assets(asset_ids)
    now = timezone.now()
    with batch('update_condition', missing_ids) as result:
        for asset in assets:
            if asset.status == Asset.STATUS_DISPOSED:
                result.skip(asset, 'Asset is disposed.')
                continue
            old_values = snapshot(asset, fields=['condition'])
            asset.condition = condition
            asset.last_audit_date = now
            if notes:
                asset.append_note(f"Condition {condition}: {notes}")
            asset.save()
            _log(result, request, asset, f"Bulk condition update of {asset.unique_asset_id} to {condition}",
                 old_values, snapshot(asset, fields=['condition']))
            result.add(asset)
    return result


def schedule_maintenance(asset_ids, request, maintenance_type, maintenance_date, description='',
                         priority='Medium', performed_by='', vendor=None, cost=0):
    """One Scheduled maintenance record per asset; assignees are told about theirs"""
    from deadstock.maintenance.models import Maintenance

    assets, missing_ids = load_assets(asset_ids)
    if maintenance_date < timezone.localdate():
        raise BusinessRuleError('Maintenance cannot be scheduled in the past.')

    records = []
    with batch('schedule_maintenance', missing_ids) as result:
        for asset in assets:
            if asset.status in (Asset.STATUS_DISPOSED, Asset.STATUS_READY_FOR_SCRAP):
                result.skip(asset, f'Cannot schedule maintenance for an asset with status "{asset.status}".')
                continue
            record = Maintenance.objects.create(
                asset=asset, maintenance_type=maintenance_type, maintenance_date=maintenance_date,
                description=description, priority=priority, performed_by=performed_by,
                vendor=vendor, cost=cost, created_by=request.user,
            )
            records.append(record)
            _log(result, request, asset,
                 f"{maintenance_type} maintenance scheduled for {asset.unique_asset_id} on {maintenance_date}",
                 new_values={'maintenance_id': record.pk, 'maintenance_date': maintenance_date.isoformat()})
            result.add(asset)

    for record in records:
        notify_users(
            [record.asset.assigned_user], 'Maintenance scheduled',
            f'{record.maintenance_type} maintenance for {record.asset.name} ({record.asset.unique_asset_id}) '
            f'is scheduled on {maintenance_date}.',
            type='maintenance', priority='high' if priority in ('High', 'Critical') else 'medium',
            sender=request.user,
            data={'maintenance_id': record.pk, 'asset_id': record.asset_id, 'batch_id': result.batch_id},
            action_url=f'/maintenance/{record.pk}',
        )
    return result


def delete(asset_ids, request, reason, permanent=False, force=False):
    """
    Retire assets to dead stock, or remove them outright when ``permanent``.

    Assets in use (Active, Under Maintenance or assigned) are only touched
    with ``force``. Retired assets become Ready for Scrap so the disposal
    workflow picks them up.
    """
    assets, missing_ids = load_assets(asset_ids)
    if not force:
        in_use = [asset.unique_asset_id for asset in assets
                  if asset.status in IN_USE_STATUSES or asset.assigned_user_id]
        if in_use:
            raise BusinessRuleError(
                f'{len(in_use)} asset(s) are in use ({", ".join(in_use[:10])}). Pass force to proceed.'
            )

    with batch('delete', missing_ids) as result:
        for asset in assets:
            if permanent:
                _log(result, request, asset,
                     f"Permanently deleted {asset.unique_asset_id} ({asset.name}): {reason}",
                     old_values=snapshot(asset), new_values={}, severity='warning')
                result.add(asset)
                asset.delete()
                continue
            if asset.status in (Asset.STATUS_DISPOSED, Asset.STATUS_READY_FOR_SCRAP):
                result.skip(asset, f'Already {asset.status}.')
                continue
            fields = ['status', 'assigned_user']
            old_values = snapshot(asset, fields=fields)
            asset.status = Asset.STATUS_READY_FOR_SCRAP
            asset.assigned_user = None
            asset.dead_stock_since = timezone.now()
            asset.append_note(f"Retired by {request.user.name}: {reason}")
            asset.save()
            _log(result, request, asset, f"Retired {asset.unique_asset_id} to dead stock: {reason}",
                 old_values, snapshot(asset, fields=fields), severity='warning')
            result.add(asset)
    return result


def validate(asset_ids, operation):
    """Dry run: what a batch would touch, without changing anything"""
    if operation not in BULK_ACTIONS:
        raise BusinessRuleError(f'Unknown bulk operation "{operation}".')
    assets, missing_ids = load_assets(asset_ids)

    warnings = []
    disposed = [a.unique_asset_id for a in assets if a.status == Asset.STATUS_DISPOSED]
    if disposed:
        warnings.append(f'{len(disposed)} asset(s) are disposed and will be skipped.')
    if operation == 'assign':
        assigned = [a.unique_asset_id for a in assets if a.assigned_user_id]
        if assigned:
            warnings.append(f'{len(assigned)} asset(s) are already assigned; reassigning requires force.')
    if operation == 'delete':
        in_use = [a.unique_asset_id for a in assets if a.status in IN_USE_STATUSES or a.assigned_user_id]
        if in_use:
            warnings.append(f'{len(in_use)} asset(s) are in use; deleting them requires force.')
    if missing_ids:
        warnings.append(f'{len(missing_ids)} id(s) were not found.')

    return {
        'operation': operation,
        'requested': len(asset_ids),
        'valid_count': len(assets),
        'missing_ids': missing_ids,
        'warnings': warnings,
        'can_proceed': bool(assets),
    }
