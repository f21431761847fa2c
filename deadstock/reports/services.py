import logging

from django.core.files.base import ContentFile
from django.db.models import F
from django.utils import timezone

from deadstock.core.utils import create_audit_log
from . import builders, renderers
from .models import GeneratedReport, ReportTemplate

logger = logging.getLogger('deadstock.reports')


def generate_report(template, fmt, user=None, date_from=None, date_to=None, filters=None, request=None):
    """
    Build and render a report from ``template``.

    Always returns the GeneratedReport row; a failed build is stored with
    status ``failed`` and the error message instead of raising.
    """
    filters = filters or {}
    report = GeneratedReport.objects.create(
        template=template,
        report_name=template.name,
        category=template.category,
        generated_by=user,
        format=fmt,
        parameters={'filters': filters},
        date_from=date_from,
        date_to=date_to,
    )

    try:
        title, columns, rows, summary = builders.build(template.kind, date_from, date_to, filters)
        meta = {
            'report_id': report.report_id,
            'generated_at': timezone.localtime().strftime('%Y-%m-%d %H:%M'),
            'generated_by': user.name if user else 'system',
            'date_from': date_from.isoformat() if date_from else None,
            'date_to': date_to.isoformat() if date_to else None,
        }
        content = renderers.render(fmt, title, columns, rows, summary, meta)
        report.file.save(f"{report.report_id}.{report.file_extension}", ContentFile(content), save=False)
    except Exception as e:
        logger.exception(f"Report {report.report_id} ({template.kind}, {fmt}) failed")
        report.status = 'failed'
        report.error_message = str(e)
        report.save(update_fields=['status', 'error_message'])
        return report

    report.file_size = len(content)
    report.total_records = len(rows)
    report.status = 'completed'
    report.save(update_fields=['file', 'file_size', 'total_records', 'status'])

    ReportTemplate.objects.filter(pk=template.pk).update(
        last_generated=timezone.now(), generation_count=F('generation_count') + 1
    )
    create_audit_log(
        request=request, user=user, action='report_generated', entity_type='GeneratedReport',
        entity_id=report.pk, description=f"Generated {fmt} report {report.report_id} from {template.template_id}",
        changes={'template': template.template_id, 'format': fmt, 'records': len(rows)},
    )
    logger.info(f"Report {report.report_id} generated: {len(rows)} rows, {report.file_size} bytes")
    return report


def record_download(report):
    GeneratedReport.objects.filter(pk=report.pk).update(
        download_count=F('download_count') + 1, last_downloaded=timezone.now()
    )


DEFAULT_TEMPLATES = [
    {
        'template_id': 'RPT-001',
        'name': 'Asset Inventory Summary',
        'description': 'Complete overview of all assets with current status and location',
        'category': 'Inventory',
        'frequency': 'weekly',
        'type': 'summary',
        'kind': 'asset_inventory',
        'parameters': {'dateRange': True, 'location': True, 'category': True, 'status': True},
        'formats': ['PDF', 'CSV', 'JSON'],
    },
    {
        'template_id': 'RPT-002',
        'name': 'Asset Utilization Analytics',
        'description': 'Track asset usage patterns and identify underutilized resources',
        'category': 'Analytics',
        'frequency': 'monthly',
        'type': 'analytics',
        'kind': 'asset_utilization',
        'parameters': {'dateRange': True, 'department': True},
        'formats': ['PDF', 'CSV'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-003',
        'name': 'Maintenance Cost Analysis',
        'description': 'Breakdown of maintenance expenses by asset and maintenance type',
        'category': 'Financial',
        'frequency': 'monthly',
        'type': 'analytics',
        'kind': 'maintenance_cost',
        'parameters': {'dateRange': True, 'category': True, 'maintenance_type': True},
        'formats': ['PDF', 'CSV'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-004',
        'name': 'Vendor Performance Report',
        'description': 'Evaluate vendor reliability, spend and delivery timelines',
        'category': 'Vendor',
        'frequency': 'quarterly',
        'type': 'summary',
        'kind': 'vendor_performance',
        'parameters': {'dateRange': True, 'vendor_type': True},
        'formats': ['PDF', 'CSV'],
    },
    {
        'template_id': 'RPT-005',
        'name': 'Asset Depreciation Schedule',
        'description': 'Current asset values with straight-line depreciation',
        'category': 'Financial',
        'frequency': 'yearly',
        'type': 'detailed',
        'kind': 'depreciation',
        'parameters': {'dateRange': True, 'category': True},
        'formats': ['PDF', 'CSV'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-006',
        'name': 'Compliance Audit Report',
        'description': 'Audit coverage and condition compliance per asset',
        'category': 'Compliance',
        'frequency': 'monthly',
        'type': 'compliance',
        'kind': 'audit_compliance',
        'parameters': {'dateRange': True, 'department': True},
        'formats': ['PDF'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-007',
        'name': 'Asset Movement Tracking',
        'description': 'Asset transfers between users and locations',
        'category': 'Tracking',
        'frequency': 'weekly',
        'type': 'detailed',
        'kind': 'asset_movement',
        'parameters': {'dateRange': True, 'location': True, 'transfer_reason': True},
        'formats': ['PDF', 'CSV', 'JSON'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-008',
        'name': 'User Activity Dashboard',
        'description': 'User actions and system usage from the audit trail',
        'category': 'System',
        'frequency': 'daily',
        'type': 'analytics',
        'kind': 'user_activity',
        'parameters': {'dateRange': True, 'role': True, 'action': True},
        'formats': ['PDF', 'CSV'],
        'is_scheduled': True,
    },
    {
        'template_id': 'RPT-009',
        'name': 'Asset Disposal Register',
        'description': 'Disposed assets with method, recovered value and approval',
        'category': 'Financial',
        'frequency': 'quarterly',
        'type': 'detailed',
        'kind': 'disposal',
        'parameters': {'dateRange': True, 'disposal_method': True, 'category': True},
        'formats': ['PDF', 'CSV', 'JSON'],
    },
]


def seed_default_templates(user=None):
    """Install the default templates; existing ones are left untouched"""
    created = 0
    for definition in DEFAULT_TEMPLATES:
        values = {key: value for key, value in definition.items() if key != 'template_id'}
        _, was_created = ReportTemplate.objects.get_or_create(
            template_id=definition['template_id'], defaults={**values, 'created_by': user}
        )
        created += was_created
    return created
