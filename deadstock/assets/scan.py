"""
Barcode and QR scan lookups.

Labels encode the unique asset ID; a scan also matches on serial number.
Every scan, found or not, is written to the audit log so scan history and
scan statistics come straight from AuditLog.
"""
import logging
from datetime import timedelta

from django.db.models import Count, Max
from django.utils import timezone

from deadstock.core.models import AuditLog
from deadstock.core.utils import create_audit_log, snapshot
from .models import Asset

logger = logging.getLogger('deadstock.assets')

MAX_BATCH_CODES = 100

SCAN_MODES = ('lookup', 'audit', 'checkout')

SCAN_ACTIONS = {
    'lookup': 'qr_scan_success',
    'audit': 'audit_scanned',
    'checkout': 'checkout_scanned',
}
SCAN_FAILED = 'qr_scan_failed'
QUICK_AUDIT = 'quick_audit_completed'
ALL_SCAN_ACTIONS = [*SCAN_ACTIONS.values(), SCAN_FAILED, QUICK_AUDIT]

STATS_PERIODS = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    '90d': timedelta(days=90),
}


def find_by_code(code, queryset=None):
    """Asset whose unique ID or serial number matches ``code``, case-insensitively"""
    code = (code or '').strip()
    if not code:
        return None
    queryset = Asset.objects.select_related('assigned_user', 'vendor') if queryset is None else queryset
    asset = queryset.filter(unique_asset_id__iexact=code).first()
    if asset is None:
        asset = queryset.filter(serial_number__iexact=code).first()
    return asset


def record_scan(request, code, asset, mode='lookup'):
    """Audit one scan attempt"""
    if asset is None:
        logger.info(f"Scan of unknown code {code!r} by {request.user.email}")
        return create_audit_log(request=request, action=SCAN_FAILED, entity_type='Asset', entity_id=code[:100],
                                description=f"No asset matches scanned code {code}", severity='warning',
                                changes={'code': code, 'mode': mode})
    return create_audit_log(request=request, action=SCAN_ACTIONS[mode], entity_type='Asset', entity_id=asset.pk,
                            description=f"Scanned {asset.unique_asset_id} ({mode})",
                            changes={'code': code, 'mode': mode, 'unique_asset_id': asset.unique_asset_id})


def scan(request, code, mode='lookup', queryset=None):
    asset = find_by_code(code, queryset=queryset)
    record_scan(request, code, asset, mode=mode)
    return asset


def quick_audit(request, asset, condition=None, new_status=None, location=None, notes=''):
    """
    Record an on-the-spot audit of a scanned asset.

    Stamps last_audit_date and applies whatever condition, status and
    location the auditor observed.
    """
    fields = ['condition', 'status', 'location', 'last_audit_date']
    old_values = snapshot(asset, fields=fields)
    if condition:
        asset.condition = condition
    if new_status:
        asset.status = new_status
        if new_status == Asset.STATUS_READY_FOR_SCRAP and asset.dead_stock_since is None:
            asset.dead_stock_since = timezone.now()
    if location:
        asset.location = location
    asset.last_audit_date = timezone.now()
    if notes:
        asset.append_note(f"Audit by {request.user.name}: {notes}")
    asset.save()

    create_audit_log(request=request, action=QUICK_AUDIT, entity_type='Asset', entity_id=asset.pk,
                     description=f"Quick audit of {asset.unique_asset_id}",
                     old_values=old_values, new_values=snapshot(asset, fields=fields))
    return asset


def scan_history(user=None, mode=None):
    queryset = AuditLog.objects.select_related('user').filter(action__in=ALL_SCAN_ACTIONS)
    if user is not None:
        queryset = queryset.filter(user=user)
    if mode in SCAN_ACTIONS:
        queryset = queryset.filter(action=SCAN_ACTIONS[mode])
    elif mode == 'failed':
        queryset = queryset.filter(action=SCAN_FAILED)
    return queryset


def scan_stats(period='7d', user=None, now=None):
    """Scan counts by outcome over ``period`` plus the ten most scanned assets"""
    since = (now or timezone.now()) - STATS_PERIODS[period]
    queryset = scan_history(user=user).filter(timestamp__gte=since)

    counts = dict(queryset.order_by().values('action').annotate(total=Count('id')).values_list('action', 'total'))
    successful = sum(counts.get(action, 0) for action in SCAN_ACTIONS.values())
    failed = counts.get(SCAN_FAILED, 0)
    total = successful + failed

    scanned = queryset.filter(action__in=SCAN_ACTIONS.values()).order_by()
    top = list(
        scanned.values('entity_id').annotate(scans=Count('id'), last_scanned=Max('timestamp'))
        .order_by('-scans', '-last_scanned')[:10]
    )
    assets = Asset.objects.in_bulk([int(row['entity_id']) for row in top if row['entity_id'].isdigit()])
    most_scanned = []
    for row in top:
        asset = assets.get(int(row['entity_id'])) if row['entity_id'].isdigit() else None
        if asset is None:
            continue
        most_scanned.append({
            'id': asset.pk,
            'unique_asset_id': asset.unique_asset_id,
            'name': asset.name,
            'scans': row['scans'],
            'last_scanned': row['last_scanned'],
        })

    return {
        'period': period,
        'since': since,
        'total_scans': total,
        'successful_scans': successful,
        'failed_scans': failed,
        'success_rate': round(successful * 100 / total, 1) if total else 0,
        'by_mode': {mode: counts.get(action, 0) for mode, action in SCAN_ACTIONS.items()},
        'quick_audits': counts.get(QUICK_AUDIT, 0),
        'unique_assets': scanned.values('entity_id').distinct().count(),
        'most_scanned': most_scanned,
    }

