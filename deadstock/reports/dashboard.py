"""
Dashboard aggregations per role.

Every function returns plain data and is cached under the ``dashboard``
prefix for DASHBOARD_CACHE_TTL seconds; saves on the models listed in
core.cache_signals drop the cache.
"""
from datetime import timedelta
from decimal import Decimal

from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Q, Sum, DurationField
from django.db.models.functions import Coalesce
from django.utils import timezone

from deadstock.approvals.models import Approval
from deadstock.assets.models import Asset, AssetTransfer, DisposalRecord
from deadstock.audits.models import AuditRunEntry, ScheduledAudit, ScheduledAuditRun
from deadstock.core.cache_utils import DASHBOARD_PREFIX, cached_query
from deadstock.core.models import AuditLog, Notification, User
from deadstock.core.utils import add_months
from deadstock.maintenance.models import Maintenance
from deadstock.purchasing.models import Invoice, PurchaseOrder
from deadstock.vendors.models import Vendor
from .models import GeneratedReport

ZERO = Decimal('0')
AUDIT_VALID_DAYS = 365
RUN_GRACE_DAYS = 7
ISSUE_STATUSES = ('not_found', 'missing', 'damaged')


def _sum(queryset, field):
    return queryset.aggregate(total=Coalesce(Sum(field), ZERO, output_field=DecimalField()))['total']


def _trend(current, previous):
    """Percentage change as {'value': abs %, 'is_positive': bool}"""
    change = round((current - previous) * 100 / previous) if previous else 0
    return {'value': abs(int(change)), 'is_positive': change >= 0}


def _month_bounds(today=None):
    today = today or timezone.localdate()
    current = today.replace(day=1)
    return add_months(current, -1), current


def _live_assets():
    return Asset.objects.exclude(status=Asset.STATUS_DISPOSED)


@cached_query(key_prefix=DASHBOARD_PREFIX)
def admin_stats():
    last_month, this_month = _month_bounds()
    assets = _live_assets()
    total_assets = assets.count()
    total_value = _sum(assets, 'purchase_cost')
    active_users = User.objects.filter(is_active=True).count()
    monthly_purchase = _sum(assets.filter(purchase_date__gte=this_month), 'purchase_cost')
    last_month_purchase = _sum(assets.filter(purchase_date__gte=last_month, purchase_date__lt=this_month),
                               'purchase_cost')
    earlier_assets = assets.filter(created_at__date__lt=this_month)

    return {
        'total_assets': total_assets,
        'total_value': total_value,
        'active_users': active_users,
        'pending_approvals': Approval.objects.filter(status=Approval.STATUS_PENDING).count(),
        'scrap_candidates': assets.filter(
            Q(status=Asset.STATUS_READY_FOR_SCRAP) | Q(condition__in=['poor', 'damaged'])
        ).count(),
        'monthly_purchase': monthly_purchase,
        'trends': {
            'assets': _trend(total_assets, earlier_assets.count()),
            'value': _trend(total_value, _sum(earlier_assets, 'purchase_cost')),
            'users': _trend(active_users, User.objects.filter(is_active=True, date_joined__date__lt=this_month).count()),
            'purchase': _trend(monthly_purchase, last_month_purchase),
        },
    }


def recent_activities(limit=10):
    logs = AuditLog.objects.select_related('user').order_by('-timestamp')[:limit]
    return [
        {
            'id': log.pk,
            'action': log.action,
            'entity_type': log.entity_type,
            'entity_id': log.entity_id,
            'description': log.description,
            'severity': log.severity,
            'user': log.user.name if log.user else 'System',
            'timestamp': log.timestamp,
        }
        for log in logs
    ]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def users_by_role():
    rows = User.objects.filter(is_active=True).values('role').annotate(count=Count('id')).order_by('role')
    counts = {row['role']: row['count'] for row in rows}
    return [{'role': role, 'label': label, 'count': counts.get(role, 0)} for role, label in User.ROLE_CHOICES]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def assets_by_category():
    rows = _live_assets().values('asset_type').annotate(
        count=Count('id'), value=Coalesce(Sum('purchase_cost'), ZERO, output_field=DecimalField())
    ).order_by('-count', 'asset_type')
    return [{'category': row['asset_type'], 'count': row['count'], 'value': row['value']} for row in rows]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def assets_by_location():
    rows = _live_assets().values('location').annotate(
        count=Count('id'),
        active=Count('id', filter=Q(status=Asset.STATUS_ACTIVE)),
        available=Count('id', filter=Q(status=Asset.STATUS_AVAILABLE)),
        maintenance=Count('id', filter=Q(status=Asset.STATUS_UNDER_MAINTENANCE)),
        value=Coalesce(Sum('purchase_cost'), ZERO, output_field=DecimalField()),
    ).order_by('-count', 'location')
    return list(rows)


@cached_query(key_prefix=DASHBOARD_PREFIX)
def monthly_trends(months=6):
    """Acquisitions (count and value) and disposals per month, oldest first"""
    this_month = timezone.localdate().replace(day=1)
    trends = []
    for offset in range(months - 1, -1, -1):
        start = add_months(this_month, -offset)
        end = add_months(start, 1)
        acquired = Asset.objects.filter(purchase_date__gte=start, purchase_date__lt=end)
        trends.append({
            'month': start.strftime('%Y-%m'),
            'label': start.strftime('%b %Y'),
            'acquisitions': acquired.count(),
            'acquisition_value': _sum(acquired, 'purchase_cost'),
            'disposals': DisposalRecord.objects.filter(disposal_date__gte=start, disposal_date__lt=end).count(),
        })
    return trends


@cached_query(key_prefix=DASHBOARD_PREFIX)
def system_overview():
    now = timezone.now()
    by_status = Asset.objects.values('status').annotate(count=Count('id')).order_by('status')
    return {
        'assets': {row['status']: row['count'] for row in by_status},
        'users': {
            'total': User.objects.count(),
            'active': User.objects.filter(is_active=True).count(),
        },
        'vendors': Vendor.objects.filter(is_active=True).count(),
        'open_maintenance': Maintenance.objects.filter(
            status__in=[Maintenance.STATUS_SCHEDULED, Maintenance.STATUS_IN_PROGRESS, Maintenance.STATUS_OVERDUE]
        ).count(),
        'open_transfers': AssetTransfer.objects.filter(status__in=AssetTransfer.OPEN_STATUSES).count(),
        'open_purchase_orders': PurchaseOrder.objects.exclude(status__in=PurchaseOrder.CLOSED_STATUSES).count(),
        'unpaid_invoices': Invoice.objects.filter(status__in=Invoice.UNPAID_STATUSES).count(),
        'pending_approvals': Approval.objects.filter(status=Approval.STATUS_PENDING).count(),
        'active_scheduled_audits': ScheduledAudit.objects.filter(status=ScheduledAudit.STATUS_ACTIVE).count(),
        'reports_last_30_days': GeneratedReport.objects.filter(generated_at__gte=now - timedelta(days=30)).count(),
        'audit_events_last_24h': AuditLog.objects.filter(timestamp__gte=now - timedelta(hours=24)).count(),
        'unread_notifications': Notification.objects.filter(is_read=False).count(),
    }


@cached_query(key_prefix=DASHBOARD_PREFIX)
def inventory_stats():
    today = timezone.localdate()
    last_month, this_month = _month_bounds(today)
    assets = _live_assets()
    total_assets = assets.count()
    monthly_purchases = Asset.objects.filter(purchase_date__gte=this_month).count()
    return {
        'total_assets': total_assets,
        'active_assets': assets.filter(status=Asset.STATUS_ACTIVE).count(),
        'available_assets': assets.filter(status=Asset.STATUS_AVAILABLE).count(),
        'in_maintenance_assets': assets.filter(status=Asset.STATUS_UNDER_MAINTENANCE).count(),
        'dead_stock_assets': assets.filter(status=Asset.STATUS_READY_FOR_SCRAP).count(),
        'total_value': _sum(assets, 'purchase_cost'),
        'location_count': assets.values('location').distinct().count(),
        'warranty_expiring': assets.filter(warranty_expiry__gte=today,
                                           warranty_expiry__lte=today + timedelta(days=90)).count(),
        'maintenance_due': Maintenance.objects.filter(
            status__in=[Maintenance.STATUS_SCHEDULED, Maintenance.STATUS_IN_PROGRESS],
            maintenance_date__gte=today, maintenance_date__lte=today + timedelta(days=7),
        ).count(),
        'monthly_purchases': monthly_purchases,
        'active_vendors': Vendor.objects.filter(is_active=True).count(),
        'trends': {
            'assets': _trend(total_assets, assets.filter(created_at__date__lt=this_month).count()),
            'purchases': _trend(monthly_purchases, Asset.objects.filter(
                purchase_date__gte=last_month, purchase_date__lt=this_month).count()),
        },
    }


@cached_query(key_prefix=DASHBOARD_PREFIX)
def warranty_expiring(days=90):
    today = timezone.localdate()
    assets = _live_assets().filter(
        warranty_expiry__gte=today, warranty_expiry__lte=today + timedelta(days=days)
    ).select_related('assigned_user').order_by('warranty_expiry')
    return [
        {
            'id': asset.pk,
            'unique_asset_id': asset.unique_asset_id,
            'name': asset.name,
            'location': asset.location,
            'assigned_user': asset.assigned_user.name if asset.assigned_user else None,
            'warranty_expiry': asset.warranty_expiry,
            'days_remaining': (asset.warranty_expiry - today).days,
        }
        for asset in assets
    ]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def maintenance_schedule(days=30):
    today = timezone.localdate()
    records = Maintenance.objects.filter(
        Q(status__in=[Maintenance.STATUS_SCHEDULED, Maintenance.STATUS_IN_PROGRESS],
          maintenance_date__lte=today + timedelta(days=days)) |
        Q(status=Maintenance.STATUS_OVERDUE)
    ).select_related('asset', 'vendor').order_by('maintenance_date')
    return [
        {
            'id': record.pk,
            'asset_id': record.asset_id,
            'unique_asset_id': record.asset.unique_asset_id,
            'asset_name': record.asset.name,
            'maintenance_type': record.maintenance_type,
            'maintenance_date': record.maintenance_date,
            'status': record.status,
            'priority': record.priority,
            'vendor': record.vendor.company_name if record.vendor else None,
            'days_until': (record.maintenance_date - today).days,
        }
        for record in records
    ]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def top_vendors(limit=5):
    vendors = Vendor.objects.filter(is_active=True).annotate(
        total_spend=Coalesce(
            Sum('purchase_orders__total_amount', filter=Q(purchase_orders__status='completed')),
            ZERO, output_field=DecimalField()
        ),
        order_count=Count('purchase_orders', distinct=True),
        asset_count=Count('assets', distinct=True),
    ).order_by('-total_spend', '-asset_count', 'company_name')[:limit]
    return [
        {
            'id': vendor.pk,
            'vendor_code': vendor.vendor_code,
            'company_name': vendor.company_name,
            'rating': vendor.rating,
            'total_spend': vendor.total_spend,
            'order_count': vendor.order_count,
            'asset_count': vendor.asset_count,
        }
        for vendor in vendors
    ]


@cached_query(key_prefix=DASHBOARD_PREFIX)
def pending_approvals(limit=10):
    approvals = Approval.objects.filter(status=Approval.STATUS_PENDING).select_related(
        'requested_by', 'asset'
    ).order_by('-created_at')[:limit]
    return [
        {
            'id': approval.pk,
            'request_type': approval.request_type,
            'priority': approval.priority,
            'requested_by': approval.requested_by.name,
            'asset': approval.asset.unique_asset_id if approval.asset else None,
            'created_at': approval.created_at,
        }
        for approval in approvals
    ]


def _audit_cutoff():
    return timezone.now() - timedelta(days=AUDIT_VALID_DAYS)


@cached_query(key_prefix=DASHBOARD_PREFIX)
def auditor_stats():
    assets = _live_assets()
    total = assets.count()
    audited = assets.filter(last_audit_date__isnull=False).count()
    return {
        'total_assets': total,
        'audited': audited,
        'pending': assets.filter(Q(last_audit_date__isnull=True) | Q(last_audit_date__lt=_audit_cutoff())).count(),
        'discrepancies': assets.filter(condition__in=['poor', 'damaged']).count(),
        'completion_rate': round(audited * 100 / total) if total else 0,
    }


@cached_query(key_prefix=DASHBOARD_PREFIX)
def audit_items(limit=50):
    cutoff = _audit_cutoff()
    assets = _live_assets().select_related('assigned_user').order_by(
        F('last_audit_date').asc(nulls_first=True), 'unique_asset_id'
    )[:limit]
    items = []
    for asset in assets:
        if asset.condition in ('poor', 'damaged'):
            audit_status = 'discrepancy'
        elif asset.last_audit_date is None or asset.last_audit_date < cutoff:
            audit_status = 'pending'
        else:
            audit_status = 'verified'
        items.append({
            'id': asset.pk,
            'unique_asset_id': asset.unique_asset_id,
            'name': asset.name,
            'location': asset.location,
            'assigned_user': asset.assigned_user.name if asset.assigned_user else None,
            'last_audit_date': asset.last_audit_date,
            'condition': asset.condition,
            'status': audit_status,
        })
    return items


@cached_query(key_prefix=DASHBOARD_PREFIX)
def condition_chart():
    rows = _live_assets().values('condition').annotate(count=Count('id'))
    counts = {row['condition']: row['count'] for row in rows}
    return {
        'labels': [label for _, label in Asset.CONDITION_CHOICES],
        'data': [counts.get(value, 0) for value, _ in Asset.CONDITION_CHOICES],
    }


@cached_query(key_prefix=DASHBOARD_PREFIX)
def compliance():
    """Run timeliness, average completion and open audit issues"""
    runs = ScheduledAuditRun.objects.exclude(status=ScheduledAuditRun.STATUS_CANCELLED)
    completed = runs.filter(status=ScheduledAuditRun.STATUS_COMPLETED, completed_at__isnull=False)
    on_time = completed.annotate(
        took=ExpressionWrapper(F('completed_at') - F('run_date'), output_field=DurationField())
    ).filter(took__lte=timedelta(days=RUN_GRACE_DAYS)).count()
    completed_count = completed.count()

    assets = _live_assets()
    total = assets.count()
    compliant = assets.filter(
        condition__in=['excellent', 'good'], last_audit_date__gte=_audit_cutoff()
    ).count()

    return {
        'overall_score': round(compliant * 100 / total) if total else 0,
        'runs_total': runs.count(),
        'runs_completed': completed_count,
        'runs_completed_on_time': on_time,
        'on_time_rate': round(on_time * 100 / completed_count) if completed_count else 0,
        'average_completion': runs.aggregate(
            avg=Coalesce(Avg('completion_percentage'), ZERO, output_field=DecimalField())
        )['avg'],
        'open_issues': AuditRunEntry.objects.filter(
            status__in=ISSUE_STATUSES, audited_at__gte=_audit_cutoff()
        ).exclude(asset__status=Asset.STATUS_DISPOSED).count(),
    }


@cached_query(key_prefix=DASHBOARD_PREFIX)
def employee_stats(user_id):
    today = timezone.localdate()
    assets = Asset.objects.filter(assigned_user_id=user_id)
    return {
        'total_assets': assets.count(),
        'active_assets': assets.filter(status=Asset.STATUS_ACTIVE).count(),
        'pending_requests': Approval.objects.filter(
            requested_by_id=user_id, status=Approval.STATUS_PENDING
        ).count(),
        'open_maintenance': Maintenance.objects.filter(
            asset__assigned_user_id=user_id,
            status__in=[Maintenance.STATUS_SCHEDULED, Maintenance.STATUS_IN_PROGRESS],
        ).count(),
        'warranties_expiring': assets.filter(
            warranty_expiry__gte=today, warranty_expiry__lte=add_months(today, 3)
        ).count(),
    }
