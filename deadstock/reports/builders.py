"""
Report data builders.

Each builder takes ``date_from``, ``date_to`` (dates or None) and a
``filters`` dict and returns ``(title, columns, rows, summary)``: rows are
lists aligned with ``columns``, summary is a flat dict of headline figures.
"""
from collections import Counter
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, F, Max, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from deadstock.assets.models import Asset, AssetCategory, AssetTransfer, DisposalRecord
from deadstock.audits.models import ScheduledAuditRun
from deadstock.core.models import AuditLog, User
from deadstock.maintenance.models import Maintenance
from deadstock.vendors.models import Vendor

ZERO = Decimal('0')
AUDIT_VALID_DAYS = 365


def _in_range(queryset, field, date_from, date_to):
    if date_from:
        queryset = queryset.filter(**{f'{field}__gte': date_from})
    if date_to:
        queryset = queryset.filter(**{f'{field}__lte': date_to})
    return queryset


def _filter_iexact(queryset, filters, *pairs):
    """Apply ``filters[key]`` as case-insensitive matches on ``field``"""
    for key, field in pairs:
        value = filters.get(key)
        if value:
            queryset = queryset.filter(**{f'{field}__iexact': value})
    return queryset


def _categories():
    return {category.name.lower(): category for category in AssetCategory.objects.all()}


def asset_inventory(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    assets = Asset.objects.select_related('assigned_user')
    if filters.get('status'):
        assets = assets.filter(status=filters['status'])
    else:
        assets = assets.exclude(status=Asset.STATUS_DISPOSED)
    assets = _filter_iexact(assets, filters, ('location', 'location'), ('category', 'asset_type'),
                            ('department', 'department'))
    assets = _in_range(assets, 'purchase_date', date_from, date_to).order_by('unique_asset_id')

    categories = _categories()
    rows = []
    total_cost = total_value = ZERO
    by_status = Counter()
    for asset in assets:
        value = asset.current_value(categories.get(asset.asset_type.lower())) or ZERO
        total_cost += asset.purchase_cost or ZERO
        total_value += value
        by_status[asset.status] += 1
        rows.append([
            asset.unique_asset_id, asset.name, asset.asset_type, asset.location, asset.department,
            asset.status, asset.condition, asset.assigned_user.name if asset.assigned_user else '',
            asset.purchase_date, asset.purchase_cost, value,
        ])
    columns = ['Asset ID', 'Name', 'Type', 'Location', 'Department', 'Status', 'Condition',
               'Assigned To', 'Purchase Date', 'Purchase Cost', 'Current Value']
    summary = {'total_assets': len(rows), 'total_purchase_cost': total_cost, 'total_current_value': total_value}
    summary.update({f'status_{key}': count for key, count in sorted(by_status.items())})
    return 'Asset Inventory Summary', columns, rows, summary


def asset_utilization(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    assets = Asset.objects.exclude(status=Asset.STATUS_DISPOSED)
    assets = _filter_iexact(assets, filters, ('department', 'department'), ('location', 'location'))
    assets = _in_range(assets, 'purchase_date', date_from, date_to)

    grouped = assets.values('asset_type').annotate(
        total=Count('id'),
        assigned=Count('id', filter=Q(assigned_user__isnull=False)),
        in_use=Count('id', filter=Q(status=Asset.STATUS_ACTIVE)),
        available=Count('id', filter=Q(status=Asset.STATUS_AVAILABLE)),
        maintenance=Count('id', filter=Q(status=Asset.STATUS_UNDER_MAINTENANCE)),
        idle=Count('id', filter=Q(status__in=[Asset.STATUS_DAMAGED, Asset.STATUS_READY_FOR_SCRAP])),
    ).order_by('asset_type')

    rows = []
    total = in_use = 0
    for row in grouped:
        rate = round(row['in_use'] * 100 / row['total'], 1) if row['total'] else 0
        total += row['total']
        in_use += row['in_use']
        rows.append([row['asset_type'], row['total'], row['in_use'], row['assigned'], row['available'],
                     row['maintenance'], row['idle'], rate])
    columns = ['Type', 'Total', 'In Use', 'Assigned', 'Available', 'Under Maintenance', 'Idle',
               'Utilization %']
    summary = {
        'total_assets': total,
        'in_use': in_use,
        'overall_utilization': round(in_use * 100 / total, 1) if total else 0,
        'underutilized_types': sum(1 for row in rows if row[-1] < 50),
    }
    return 'Asset Utilization Analytics', columns, rows, summary


def maintenance_cost(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    records = Maintenance.objects.select_related('asset', 'vendor')
    records = _in_range(records, 'maintenance_date', date_from, date_to)
    if filters.get('maintenance_type'):
        records = records.filter(maintenance_type=filters['maintenance_type'])
    if filters.get('status'):
        records = records.filter(status=filters['status'])
    records = _filter_iexact(records, filters, ('category', 'asset__asset_type'),
                             ('department', 'asset__department'))
    records = records.order_by('maintenance_date', 'id')

    rows = []
    by_type = Counter()
    total = ZERO
    for record in records:
        cost = record.cost or ZERO
        total += cost
        by_type[record.maintenance_type] += cost
        rows.append([
            record.maintenance_date, record.asset.unique_asset_id, record.asset.name,
            record.maintenance_type, record.status, record.vendor.company_name if record.vendor else '',
            record.performed_by, cost,
        ])
    columns = ['Date', 'Asset ID', 'Asset', 'Type', 'Status', 'Vendor', 'Performed By', 'Cost']
    summary = {'records': len(rows), 'total_cost': total,
               'average_cost': (total / len(rows)).quantize(Decimal('0.01')) if rows else ZERO}
    summary.update({f'cost_{key.lower()}': value for key, value in sorted(by_type.items())})
    return 'Maintenance Cost Analysis', columns, rows, summary


def vendor_performance(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    vendors = Vendor.objects.all()
    if filters.get('vendor_type'):
        vendors = vendors.filter(vendor_type=filters['vendor_type'])
    if not filters.get('include_inactive'):
        vendors = vendors.filter(is_active=True)

    rows = []
    spend_total = ZERO
    for vendor in vendors.order_by('company_name'):
        orders = _in_range(vendor.purchase_orders.all(), 'created_at__date', date_from, date_to)
        completed = orders.filter(status='completed')
        delivered = completed.filter(actual_delivery_date__isnull=False)
        on_time = delivered.filter(actual_delivery_date__lte=F('expected_delivery_date')).count()
        delivered_count = delivered.count()
        spend = completed.aggregate(
            total=Coalesce(Sum('total_amount'), ZERO, output_field=DecimalField())
        )['total']
        jobs = _in_range(vendor.maintenance_records.all(), 'maintenance_date', date_from, date_to)
        spend_total += spend
        rows.append([
            vendor.vendor_code, vendor.company_name, vendor.vendor_type, vendor.rating,
            orders.count(), completed.count(),
            round(on_time * 100 / delivered_count, 1) if delivered_count else None,
            spend, jobs.count(),
            jobs.aggregate(total=Coalesce(Sum('cost'), ZERO, output_field=DecimalField()))['total'],
        ])
    columns = ['Code', 'Vendor', 'Type', 'Rating', 'Orders', 'Completed', 'On-time %', 'Spend',
               'Service Jobs', 'Service Cost']
    summary = {'vendors': len(rows), 'total_spend': spend_total}
    return 'Vendor Performance Report', columns, rows, summary


def depreciation(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    assets = Asset.objects.exclude(status=Asset.STATUS_DISPOSED).filter(purchase_cost__isnull=False)
    assets = _filter_iexact(assets, filters, ('category', 'asset_type'), ('department', 'department'))
    assets = _in_range(assets, 'purchase_date', date_from, date_to).order_by('asset_type', 'unique_asset_id')

    categories = _categories()
    rows = []
    total_cost = total_value = ZERO
    for asset in assets:
        category = categories.get(asset.asset_type.lower())
        value = asset.current_value(category)
        total_cost += asset.purchase_cost
        total_value += value
        rows.append([
            asset.unique_asset_id, asset.name, asset.asset_type, asset.purchase_date, asset.purchase_cost,
            asset.depreciation_rate(category), asset.age_years, asset.purchase_cost - value, value,
        ])
    columns = ['Asset ID', 'Name', 'Type', 'Purchase Date', 'Cost', 'Rate %/yr', 'Age (yrs)',
               'Accumulated Depreciation', 'Current Value']
    summary = {
        'assets': len(rows),
        'total_cost': total_cost,
        'total_current_value': total_value,
        'total_depreciation': total_cost - total_value,
    }
    return 'Asset Depreciation Schedule', columns, rows, summary


def audit_compliance(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    now = timezone.now()
    cutoff = now - timedelta(days=AUDIT_VALID_DAYS)
    assets = Asset.objects.exclude(status=Asset.STATUS_DISPOSED)
    assets = _filter_iexact(assets, filters, ('department', 'department'), ('location', 'location'))
    assets = assets.order_by(F('last_audit_date').asc(nulls_first=True), 'unique_asset_id')

    rows = []
    compliant = 0
    for asset in assets:
        audited_recently = asset.last_audit_date is not None and asset.last_audit_date >= cutoff
        ok = audited_recently and asset.condition not in ('poor', 'damaged')
        compliant += ok
        rows.append([
            asset.unique_asset_id, asset.name, asset.location, asset.department,
            asset.last_audit_date.date() if asset.last_audit_date else None,
            (now - asset.last_audit_date).days if asset.last_audit_date else None,
            asset.condition, 'Yes' if ok else 'No',
        ])

    runs = _in_range(ScheduledAuditRun.objects.all(), 'run_date__date', date_from, date_to)
    columns = ['Asset ID', 'Name', 'Location', 'Department', 'Last Audit', 'Days Since Audit',
               'Condition', 'Compliant']
    summary = {
        'assets': len(rows),
        'compliant': compliant,
        'compliance_rate': round(compliant * 100 / len(rows), 1) if rows else 0,
        'never_audited': sum(1 for row in rows if row[4] is None),
        'audit_runs': runs.count(),
        'audit_runs_completed': runs.filter(status=ScheduledAuditRun.STATUS_COMPLETED).count(),
    }
    return 'Compliance Audit Report', columns, rows, summary


def asset_movement(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    transfers = AssetTransfer.objects.select_related('asset', 'from_user', 'to_user')
    transfers = _in_range(transfers, 'created_at__date', date_from, date_to)
    if filters.get('status'):
        transfers = transfers.filter(status=filters['status'])
    if filters.get('transfer_reason'):
        transfers = transfers.filter(transfer_reason=filters['transfer_reason'])
    if filters.get('location'):
        transfers = transfers.filter(
            Q(from_location__iexact=filters['location']) | Q(to_location__iexact=filters['location'])
        )

    rows = []
    by_status = Counter()
    for transfer in transfers.order_by('created_at'):
        by_status[transfer.status] += 1
        rows.append([
            transfer.transfer_id, transfer.asset.unique_asset_id,
            transfer.from_user.name if transfer.from_user else '',
            transfer.to_user.name if transfer.to_user else '',
            transfer.from_location, transfer.to_location, transfer.get_transfer_reason_display(),
            transfer.status, transfer.created_at.date(),
            transfer.completion_date.date() if transfer.completion_date else None,
        ])
    columns = ['Transfer ID', 'Asset ID', 'From User', 'To User', 'From Location', 'To Location',
               'Reason', 'Status', 'Requested', 'Completed']
    summary = {'transfers': len(rows)}
    summary.update({f'status_{key}': count for key, count in sorted(by_status.items())})
    return 'Asset Movement Tracking', columns, rows, summary


def disposal(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    records = _in_range(DisposalRecord.objects.all(), 'disposal_date', date_from, date_to)
    if filters.get('status'):
        records = records.filter(status=filters['status'])
    if filters.get('disposal_method'):
        records = records.filter(disposal_method=filters['disposal_method'])
    records = _filter_iexact(records, filters, ('category', 'category'))

    rows = []
    total = ZERO
    by_method = Counter()
    for record in records.order_by('disposal_date', 'id'):
        total += record.disposal_value
        by_method[record.disposal_method] += 1
        rows.append([
            record.document_reference, record.asset_code, record.asset_name, record.category,
            record.disposal_date, record.disposal_method, record.disposal_value, record.status,
            record.approved_by,
        ])
    columns = ['Document', 'Asset ID', 'Asset', 'Category', 'Date', 'Method', 'Value', 'Status',
               'Approved By']
    summary = {'records': len(rows), 'total_recovered_value': total}
    summary.update({f'method_{key.lower()}': count for key, count in sorted(by_method.items())})
    return 'Asset Disposal Report', columns, rows, summary


def user_activity(date_from=None, date_to=None, filters=None):
    filters = filters or {}
    logs = _in_range(AuditLog.objects.filter(user__isnull=False), 'timestamp__date', date_from, date_to)
    if filters.get('action'):
        logs = logs.filter(action=filters['action'])

    users = User.objects.filter(audit_logs__in=logs).distinct()
    if filters.get('role'):
        users = users.filter(role=filters['role'])
    per_user = logs.values('user').annotate(actions=Count('id'), last_activity=Max('timestamp'))
    activity = {row['user']: row for row in per_user}

    rows = []
    for user in users.order_by('email'):
        row = activity.get(user.pk)
        if row is None:
            continue
        top = logs.filter(user=user).values('action').annotate(n=Count('id')).order_by('-n', 'action').first()
        rows.append([user.name, user.email, user.role, row['actions'], top['action'] if top else '',
                     row['last_activity']])
    rows.sort(key=lambda row: -row[3])
    columns = ['User', 'Email', 'Role', 'Actions', 'Most Frequent Action', 'Last Activity']
    summary = {'active_users': len(rows), 'total_actions': sum(row[3] for row in rows)}
    return 'User Activity Report', columns, rows, summary


BUILDERS = {
    'asset_inventory': asset_inventory,
    'asset_utilization': asset_utilization,
    'maintenance_cost': maintenance_cost,
    'vendor_performance': vendor_performance,
    'depreciation': depreciation,
    'audit_compliance': audit_compliance,
    'asset_movement': asset_movement,
    'disposal': disposal,
    'user_activity': user_activity,
}


def build(kind, date_from=None, date_to=None, filters=None):
    try:
        builder = BUILDERS[kind]
    except KeyError:
        raise ValueError(f"Unknown report kind '{kind}'")
    return builder(date_from=date_from, date_to=date_to, filters=filters or {})
