"""
CSV and JSON import and export of the asset register.

Export writes one row per asset with people and vendors by email and
company name. Import validates every row with AssetSerializer, creates the
valid ones and reports the rest by row number.
"""
import csv
import io
import logging

from django.db import transaction

from deadstock.core.cache_signals import suspend_cache_signals
from deadstock.core.cache_utils import invalidate_dashboard_cache
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import User
from deadstock.core.utils import create_audit_log, snapshot
from deadstock.vendors.models import Vendor
from .models import Asset
from .serializers import AssetSerializer

logger = logging.getLogger('deadstock.assets')

MAX_IMPORT_ROWS = 1000

EXPORT_COLUMNS = [
    'unique_asset_id', 'manufacturer', 'model', 'serial_number', 'asset_type', 'location', 'department',
    'status', 'condition', 'assigned_user_email', 'vendor_name', 'purchase_date', 'purchase_cost',
    'warranty_expiry', 'expected_lifespan', 'last_audit_date', 'notes',
]

# columns written by export that the importer resolves or ignores
LOOKUP_COLUMNS = {'assigned_user_email', 'vendor_name'}
IGNORED_COLUMNS = {'last_audit_date'}


def _export_row(asset):
    return {
        'unique_asset_id': asset.unique_asset_id,
        'manufacturer': asset.manufacturer,
        'model': asset.model,
        'serial_number': asset.serial_number,
        'asset_type': asset.asset_type,
        'location': asset.location,
        'department': asset.department,
        'status': asset.status,
        'condition': asset.condition,
        'assigned_user_email': asset.assigned_user.email if asset.assigned_user_id else '',
        'vendor_name': asset.vendor.company_name if asset.vendor_id else '',
        'purchase_date': asset.purchase_date.isoformat() if asset.purchase_date else '',
        'purchase_cost': asset.purchase_cost if asset.purchase_cost is not None else '',
        'warranty_expiry': asset.warranty_expiry.isoformat() if asset.warranty_expiry else '',
        'expected_lifespan': asset.expected_lifespan if asset.expected_lifespan is not None else '',
        'last_audit_date': asset.last_audit_date.isoformat() if asset.last_audit_date else '',
        'notes': asset.notes,
    }


def export_rows(queryset):
    return [_export_row(asset) for asset in queryset.select_related('assigned_user', 'vendor')]


def export_csv(queryset):
    """The register as CSV text with a header row"""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for asset in queryset.select_related('assigned_user', 'vendor').iterator():
        writer.writerow(_export_row(asset))
    return buffer.getvalue()


def read_csv(upload):
    """Rows of an uploaded CSV file as dicts keyed by the header"""
    try:
        text = upload.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        raise BusinessRuleError('The file must be UTF-8 encoded CSV.')
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise BusinessRuleError('The CSV file is empty.')
    return [{(key or '').strip(): (value or '').strip() for key, value in row.items()} for row in reader]


def _row_data(row):
    """Map one import row onto AssetSerializer input, resolving emails and vendor names"""
    errors = {}
    data = {key: value for key, value in row.items()
            if key not in LOOKUP_COLUMNS | IGNORED_COLUMNS and value not in ('', None)}

    email = str(row.get('assigned_user_email') or '').strip()
    if email:
        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            errors['assigned_user_email'] = [f'No user with email {email}.']
        else:
            data['assigned_user'] = user.pk

    vendor_name = str(row.get('vendor_name') or '').strip()
    if vendor_name:
        vendor = Vendor.objects.filter(company_name__iexact=vendor_name).first()
        if vendor is None:
            errors['vendor_name'] = [f'No vendor named {vendor_name}.']
        else:
            data['vendor'] = vendor.pk
    return data, errors


def import_rows(rows, request=None, user=None, dry_run=False, first_row=2):
    """
    Create an asset for every valid row.

    ``first_row`` is the number reported for rows[0]; 2 matches a CSV with
    a header line. With ``dry_run`` the rows are validated and created
    inside a transaction that is then rolled back, so duplicates within the
    file are caught exactly as in a real import.
    """
    if not rows:
        raise BusinessRuleError('No rows to import.')
    if len(rows) > MAX_IMPORT_ROWS:
        raise BusinessRuleError(f'Cannot import more than {MAX_IMPORT_ROWS} rows at once.')

    created, errors = [], []
    with suspend_cache_signals():
        with transaction.atomic():
            for number, row in enumerate(rows, start=first_row):
                if not isinstance(row, dict):
                    errors.append({'row': number, 'errors': {'non_field_errors': ['Row must be an object.']}})
                    continue
                data, lookup_errors = _row_data(row)
                serializer = AssetSerializer(data=data)
                if not serializer.is_valid() or lookup_errors:
                    errors.append({'row': number, 'errors': {**serializer.errors, **lookup_errors}})
                    continue
                asset = serializer.save()
                if asset.assigned_user_id and asset.status == Asset.STATUS_AVAILABLE:
                    asset.status = Asset.STATUS_ACTIVE
                    asset.save(update_fields=['status', 'updated_at'])
                created.append(asset)
                if not dry_run:
                    create_audit_log(request=request, user=user, action='import', entity_type='Asset',
                                     entity_id=asset.pk,
                                     description=f"Imported asset {asset.unique_asset_id} ({asset.name})",
                                     new_values=snapshot(asset))
            if dry_run:
                transaction.set_rollback(True)

    if created and not dry_run:
        invalidate_dashboard_cache()
    logger.info(f"Asset import{' (dry run)' if dry_run else ''}: {len(created)} valid, {len(errors)} rejected")
    return {
        'dry_run': dry_run,
        'total_rows': len(rows),
        'imported': len(created),
        'failed': len(errors),
        'created_ids': [] if dry_run else [asset.pk for asset in created],
        'errors': errors,
    }
