"""
Asset lifecycle automation: Active -> Dead Stock -> Disposal.

Dead stock criteria (thresholds from the ``lifecycle`` settings section):
- purchased more than ``maxAgeYears`` ago
- poor/damaged condition and purchased more than ``poorConditionAgeYears`` ago
- poor/fair condition and last maintained more than ``noMaintenanceMonths`` ago

Dead stock older than ``daysInDeadStock`` days gets a disposal record and
the asset is marked Disposed. Records are completed straight away when
``autoApprove`` is on, otherwise they wait as pending.

Run from ``manage.py run_lifecycle`` (cron) or ``POST /api/v1/lifecycle/run/``.
"""
import logging
import time
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from deadstock.core.models import SystemSettings, User
from deadstock.core.notifications import notify_managers, notify_roles
from deadstock.core.utils import add_months, create_audit_log
from .models import Asset, DisposalRecord

logger = logging.getLogger('deadstock.lifecycle')

LIVE_STATUSES = (Asset.STATUS_ACTIVE, Asset.STATUS_AVAILABLE, Asset.STATUS_UNDER_MAINTENANCE)
DAMAGE_CONDITIONS = ('poor', 'damaged')
NEGLECT_CONDITIONS = ('poor', 'fair')
AUCTION_COST_THRESHOLD = Decimal('50000')

DISPOSAL_VALUE_MULTIPLIERS = {
    'excellent': Decimal('0.20'),
    'good': Decimal('0.15'),
    'fair': Decimal('0.10'),
    'poor': Decimal('0.05'),
    'damaged': Decimal('0.05'),
}


def get_config():
    return SystemSettings.load().get_section('lifecycle')


def find_outdated_assets(config=None):
    config = config or get_config()
    today = timezone.localdate()
    max_age_cutoff = add_months(today, -12 * config['maxAgeYears'])
    poor_age_cutoff = add_months(today, -12 * config['poorConditionAgeYears'])
    maintenance_cutoff = add_months(today, -config['noMaintenanceMonths'])

    return Asset.objects.filter(status__in=LIVE_STATUSES).filter(
        Q(purchase_date__isnull=False, purchase_date__lte=max_age_cutoff) |
        Q(condition__in=DAMAGE_CONDITIONS, purchase_date__isnull=False, purchase_date__lte=poor_age_cutoff) |
        Q(condition__in=NEGLECT_CONDITIONS, last_maintenance_date__isnull=False,
          last_maintenance_date__lte=maintenance_cutoff)
    ).select_related('assigned_user')


def find_assets_ready_for_disposal(config=None):
    config = config or get_config()
    threshold = timezone.now() - timedelta(days=config['daysInDeadStock'])
    return Asset.objects.filter(
        status=Asset.STATUS_READY_FOR_SCRAP,
        dead_stock_since__isnull=False,
        dead_stock_since__lte=threshold,
    )


def dead_stock_reason(asset, config):
    reasons = []
    age = asset.age_years
    if age is not None and age >= config['maxAgeYears']:
        reasons.append(f"Age: {age:.1f} years (obsolete)")
    if asset.condition in DAMAGE_CONDITIONS:
        reasons.append(f"Condition: {asset.condition}")
    if asset.last_maintenance_date:
        months = (timezone.localdate() - asset.last_maintenance_date).days // 30
        if months >= config['noMaintenanceMonths']:
            reasons.append(f"No maintenance for {months} months")
    return ', '.join(reasons) or 'Automated lifecycle criteria met'


def disposal_method_for(asset):
    if asset.condition == 'damaged':
        return 'Recycling'
    if asset.purchase_cost is not None and asset.purchase_cost > AUCTION_COST_THRESHOLD:
        return 'Auction'
    if 'electronics' in (asset.asset_type or '').lower():
        return 'Recycling'
    if asset.condition == 'poor':
        return 'Scrap'
    return 'Donation'


def disposal_value_for(asset):
    """Salvage value: a condition-based share of the depreciated value, whole units"""
    current = asset.current_value()
    if not current:
        return Decimal('0')
    multiplier = DISPOSAL_VALUE_MULTIPLIERS.get(asset.condition, Decimal('0.05'))
    return (current * multiplier).quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def days_in_dead_stock(asset):
    if not asset.dead_stock_since:
        return 0
    return (timezone.now() - asset.dead_stock_since).days


def move_to_dead_stock(asset, reason, user=None, request=None):
    """Flag one asset as dead stock; shared by the automation and approvals"""
    old_status = asset.status
    asset.status = Asset.STATUS_READY_FOR_SCRAP
    asset.dead_stock_since = timezone.now()
    if asset.condition not in DAMAGE_CONDITIONS:
        asset.condition = 'poor'
    asset.append_note(f"[DEAD-STOCK] {reason}")
    asset.save(update_fields=['status', 'dead_stock_since', 'condition', 'notes', 'updated_at'])

    create_audit_log(
        request=request, user=user,
        action='auto_move_to_dead_stock' if user is None and request is None else 'move_to_dead_stock',
        entity_type='Asset', entity_id=asset.pk,
        description=f"Asset {asset.unique_asset_id} moved to dead stock: {reason}",
        severity='warning',
        changes={'status': {'from': old_status, 'to': asset.status}, 'reason': reason},
    )
    notify_managers(
        'Asset moved to dead stock',
        f'Asset "{asset.name}" ({asset.unique_asset_id}) moved to dead stock. Reason: {reason}',
        type='warning',
        data={'asset_id': asset.pk, 'unique_asset_id': asset.unique_asset_id, 'reason': reason},
        action_url='/inventory/dead-stock',
    )
    return asset


def move_outdated_to_dead_stock(config=None):
    config = config or get_config()
    moved = []
    for asset in find_outdated_assets(config):
        reason = dead_stock_reason(asset, config)
        try:
            with transaction.atomic():
                move_to_dead_stock(asset, f"[AUTO] {reason}")
        except Exception as e:
            logger.error(f"Failed to move {asset.unique_asset_id} to dead stock: {e}")
            continue
        moved.append({'id': asset.pk, 'unique_asset_id': asset.unique_asset_id, 'name': asset.name, 'reason': reason})
        logger.info(f"{asset.unique_asset_id} -> dead stock ({reason})")
    return {'count': len(moved), 'assets': moved}


def dispose_asset(asset, record):
    """Mark an asset Disposed once its disposal record is created or completed"""
    asset.status = Asset.STATUS_DISPOSED
    asset.assigned_user = None
    asset.append_note(f"[DISPOSAL] {record.document_reference}: {record.disposal_method} - {record.disposal_value}")
    asset.save(update_fields=['status', 'assigned_user', 'notes', 'updated_at'])


def move_dead_stock_to_disposal(config=None):
    config = config or get_config()
    auto_approve = config['autoApprove']
    records = []
    for asset in find_assets_ready_for_disposal(config):
        days = days_in_dead_stock(asset)
        method = disposal_method_for(asset)
        value = disposal_value_for(asset)
        try:
            with transaction.atomic():
                record = DisposalRecord.objects.create(
                    asset=asset,
                    asset_code=asset.unique_asset_id,
                    asset_name=asset.name,
                    category=asset.asset_type,
                    disposal_method=method,
                    disposal_value=value,
                    approved_by='SYSTEM-AUTO' if auto_approve else 'SYSTEM',
                    status='completed' if auto_approve else 'pending',
                    remarks=f"Automated disposal after {days} days in dead stock. Condition: {asset.condition}",
                )
                dispose_asset(asset, record)
                create_audit_log(
                    action='auto_move_to_disposal', entity_type='Asset', entity_id=asset.pk,
                    description=f"Asset {asset.unique_asset_id} moved to disposal after {days} days",
                    severity='warning',
                    changes={
                        'status': {'from': Asset.STATUS_READY_FOR_SCRAP, 'to': Asset.STATUS_DISPOSED},
                        'disposal_method': method,
                        'disposal_value': str(value),
                        'days_in_dead_stock': days,
                    },
                )
                notify_roles(
                    [User.ROLE_ADMIN],
                    'Asset moved to disposal',
                    f'Asset "{asset.name}" ({asset.unique_asset_id}) moved to disposal after {days} days. '
                    f'Method: {method}',
                    priority='high',
                    data={'asset_id': asset.pk, 'disposal_record_id': record.pk, 'days_in_dead_stock': days},
                    action_url='/inventory/disposal-records',
                )
        except Exception as e:
            logger.error(f"Failed to dispose {asset.unique_asset_id}: {e}")
            continue
        records.append({
            'id': record.pk,
            'unique_asset_id': asset.unique_asset_id,
            'name': asset.name,
            'method': method,
            'value': value,
            'days_in_dead_stock': days,
            'document_reference': record.document_reference,
        })
        logger.info(f"{asset.unique_asset_id} -> disposal ({method}, {value})")
    return {'count': len(records), 'records': records}


def run_full_lifecycle(config=None):
    """Both lifecycle steps; admins get a summary when anything moved"""
    config = config or get_config()
    started = time.monotonic()
    dead_stock = move_outdated_to_dead_stock(config)
    disposal = move_dead_stock_to_disposal(config)
    summary = {
        'success': True,
        'duration': f"{time.monotonic() - started:.2f}s",
        'dead_stock': dead_stock,
        'disposal': disposal,
        'timestamp': timezone.now(),
    }
    logger.info(
        f"Lifecycle run completed in {summary['duration']}: "
        f"{dead_stock['count']} to dead stock, {disposal['count']} to disposal"
    )
    if dead_stock['count'] or disposal['count']:
        notify_roles(
            [User.ROLE_ADMIN],
            'Lifecycle automation summary',
            f"Lifecycle automation completed: {dead_stock['count']} assets to dead stock, "
            f"{disposal['count']} assets to disposal",
            priority='low',
            data={'dead_stock_count': dead_stock['count'], 'disposal_count': disposal['count']},
            action_url='/inventory/reports',
        )
    return summary


def lifecycle_stats(config=None):
    config = config or get_config()
    return {
        'current_state': {
            'active': Asset.objects.filter(status__in=[Asset.STATUS_ACTIVE, Asset.STATUS_AVAILABLE]).count(),
            'dead_stock': Asset.objects.filter(status=Asset.STATUS_READY_FOR_SCRAP).count(),
            'disposed': Asset.objects.filter(status=Asset.STATUS_DISPOSED).count(),
        },
        'eligible': {
            'for_dead_stock': find_outdated_assets(config).count(),
            'for_disposal': find_assets_ready_for_disposal(config).count(),
        },
        'disposal_records': {
            'pending': DisposalRecord.objects.filter(status='pending').count(),
            'completed': DisposalRecord.objects.filter(status='completed').count(),
        },
        'configuration': config,
    }
