"""
Test suite for dashboards and reports
Tests: role dashboards, report templates, generation, history and downloads
"""
import json
import re
import shutil
import tempfile
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.cache import cache
from django.core.files.storage import FileSystemStorage
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from deadstock.approvals.models import Approval
from deadstock.assets.models import Asset
from deadstock.audits.models import ScheduledAuditRun
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.core.utils import create_audit_log
from deadstock.reports import renderers
from deadstock.reports.models import GeneratedReport, ReportTemplate
from deadstock.reports.services import DEFAULT_TEMPLATES, generate_report


class AdminDashboardTests(TestCase):
    """Test cases for the admin and inventory dashboards"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.employee)
        TestDataFactory.create_asset(asset_type='Monitor', condition='poor', location='Branch')
        TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)

    def test_admin_stats(self):
        TestDataFactory.create_approval(self.employee, request_type=Approval.TYPE_OTHER)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/dashboard/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_assets'], 2)
        self.assertEqual(response.data['total_value'], Decimal('2000.00'))
        self.assertEqual(response.data['active_users'], 3)
        self.assertEqual(response.data['pending_approvals'], 1)
        self.assertEqual(response.data['scrap_candidates'], 1)
        self.assertIn('assets', response.data['trends'])

    def test_admin_dashboard_requires_admin(self):
        for user in (self.manager, self.employee):
            self.client.authenticate_user(user)
            response = self.client.get('/api/v1/dashboard/stats/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats_refresh_after_changes(self):
        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.get('/api/v1/dashboard/stats/').data['total_assets'], 2)
        TestDataFactory.create_asset()
        self.assertEqual(self.client.get('/api/v1/dashboard/stats/').data['total_assets'], 3)

    def test_breakdowns(self):
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/v1/dashboard/users-by-role/')
        counts = {row['role']: row['count'] for row in response.data}
        self.assertEqual(counts['ADMIN'], 1)
        self.assertEqual(counts['EMPLOYEE'], 1)
        self.assertEqual(counts['AUDITOR'], 0)

        response = self.client.get('/api/v1/dashboard/assets-by-category/')
        self.assertEqual({row['category'] for row in response.data}, {'Laptop', 'Monitor'})

        response = self.client.get('/api/v1/dashboard/assets-by-location/')
        locations = {row['location']: row for row in response.data}
        self.assertEqual(locations['HQ']['active'], 1)
        self.assertEqual(locations['Branch']['available'], 1)

        response = self.client.get('/api/v1/dashboard/monthly-trends/', {'months': 3})
        self.assertEqual(len(response.data), 3)
        self.assertEqual(response.data[-1]['month'], timezone.localdate().strftime('%Y-%m'))

        response = self.client.get('/api/v1/dashboard/system-overview/')
        self.assertEqual(response.data['assets'][Asset.STATUS_DISPOSED], 1)
        self.assertEqual(response.data['users']['total'], 3)

    def test_activities(self):
        for index in range(3):
            create_audit_log(action='update', entity_type='Asset', entity_id=index,
                             description=f'Change {index}', user=self.admin)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/dashboard/activities/', {'limit': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['user'], self.admin.name)

    def test_inventory_dashboard(self):
        today = timezone.localdate()
        asset = TestDataFactory.create_asset(warranty_expiry=today + timedelta(days=20))
        TestDataFactory.create_maintenance(asset, maintenance_date=today + timedelta(days=2))

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/dashboard/inventory-stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/dashboard/inventory-stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_assets'], 3)
        self.assertEqual(response.data['active_assets'], 1)
        self.assertEqual(response.data['warranty_expiring'], 1)
        self.assertEqual(response.data['maintenance_due'], 1)

        response = self.client.get('/api/v1/dashboard/warranty-expiring/', {'days': 30})
        self.assertEqual(response.data[0]['days_remaining'], 20)

        response = self.client.get('/api/v1/dashboard/maintenance-schedule/')
        self.assertEqual(response.data[0]['days_until'], 2)

    def test_top_vendors_and_pending_approvals(self):
        vendor = TestDataFactory.create_vendor()
        TestDataFactory.create_purchase_order(self.manager, vendor=vendor, status='completed')
        TestDataFactory.create_approval(self.employee, request_type=Approval.TYPE_NEW_ASSET)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/dashboard/top-vendors/')
        self.assertEqual(response.data[0]['id'], vendor.pk)
        self.assertEqual(response.data[0]['total_spend'], Decimal('1000.00'))

        response = self.client.get('/api/v1/dashboard/pending-approvals/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['requested_by'], self.employee.name)


class AuditorDashboardTests(TestCase):
    """Test cases for the auditor and employee dashboards"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.auditor = TestDataFactory.create_auditor()
        self.employee = TestDataFactory.create_user()
        now = timezone.now()
        self.verified = TestDataFactory.create_asset(last_audit_date=now - timedelta(days=10))
        self.stale = TestDataFactory.create_asset(last_audit_date=now - timedelta(days=400))
        self.never = TestDataFactory.create_asset()
        self.damaged = TestDataFactory.create_asset(condition='damaged', assigned_user=self.employee,
                                                    status=Asset.STATUS_ACTIVE)

    def test_auditor_stats(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/dashboard/auditor/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_assets'], 4)
        self.assertEqual(response.data['audited'], 2)
        self.assertEqual(response.data['pending'], 3)
        self.assertEqual(response.data['discrepancies'], 1)
        self.assertEqual(response.data['completion_rate'], 50)

    def test_employee_cannot_see_auditor_dashboard(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/dashboard/auditor/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_items(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/dashboard/auditor/audit-items/')
        statuses = {row['id']: row['status'] for row in response.data}
        self.assertEqual(statuses[self.verified.pk], 'verified')
        self.assertEqual(statuses[self.stale.pk], 'pending')
        self.assertEqual(statuses[self.never.pk], 'pending')
        self.assertEqual(statuses[self.damaged.pk], 'discrepancy')

    def test_condition_chart(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/dashboard/auditor/condition-chart/')
        chart = dict(zip(response.data['labels'], response.data['data']))
        self.assertEqual(chart['Good'], 3)
        self.assertEqual(chart['Damaged'], 1)

    def test_compliance(self):
        creator = TestDataFactory.create_manager()
        audit = TestDataFactory.create_scheduled_audit(creator)
        now = timezone.now()
        ScheduledAuditRun.objects.create(
            scheduled_audit=audit, run_date=now - timedelta(days=20), status=ScheduledAuditRun.STATUS_COMPLETED,
            completed_at=now - timedelta(days=18), completion_percentage=Decimal('100'),
        )
        ScheduledAuditRun.objects.create(
            scheduled_audit=audit, run_date=now - timedelta(days=20), status=ScheduledAuditRun.STATUS_COMPLETED,
            completed_at=now - timedelta(days=5), completion_percentage=Decimal('100'),
        )
        ScheduledAuditRun.objects.create(
            scheduled_audit=audit, run_date=now, status=ScheduledAuditRun.STATUS_IN_PROGRESS,
            completion_percentage=Decimal('40'),
        )

        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/dashboard/auditor/compliance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['runs_total'], 3)
        self.assertEqual(response.data['runs_completed'], 2)
        self.assertEqual(response.data['runs_completed_on_time'], 1)
        self.assertEqual(response.data['on_time_rate'], 50)
        self.assertEqual(response.data['average_completion'], Decimal('80'))
        self.assertEqual(response.data['overall_score'], 25)

    def test_employee_stats(self):
        TestDataFactory.create_approval(self.employee, asset=self.damaged)
        TestDataFactory.create_maintenance(self.damaged)

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/dashboard/employee/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_assets'], 1)
        self.assertEqual(response.data['active_assets'], 1)
        self.assertEqual(response.data['pending_requests'], 1)
        self.assertEqual(response.data['open_maintenance'], 1)


class ReportTemplateAPITests(TestCase):
    """Test cases for report template endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.auditor = TestDataFactory.create_auditor()
        self.employee = TestDataFactory.create_user()

    def test_create_template(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.post('/api/v1/reports/templates/', {
            'name': 'Branch stock',
            'category': 'Inventory',
            'kind': 'asset_inventory',
            'formats': ['csv', 'pdf', 'CSV'],
            'parameters': {'location': True},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['template_id'], 'RPT-001')
        self.assertEqual(response.data['formats'], ['CSV', 'PDF'])
        self.assertEqual(response.data['created_by'], self.auditor.pk)

    def test_template_validation(self):
        ReportTemplate.objects.create(template_id='RPT-100', name='Existing', category='System',
                                      kind='user_activity')
        self.client.authenticate_user(self.auditor)

        response = self.client.post('/api/v1/reports/templates/', {
            'name': 'Spreadsheet', 'category': 'Inventory', 'kind': 'asset_inventory', 'formats': ['XLS'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('formats', response.data)

        response = self.client.post('/api/v1/reports/templates/', {
            'template_id': 'rpt-100', 'name': 'Clash', 'category': 'System', 'kind': 'user_activity',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('template_id', response.data)

    def test_update_keeps_template_id(self):
        template = ReportTemplate.objects.create(name='Costs', category='Financial', kind='maintenance_cost')
        self.client.authenticate_user(self.auditor)
        response = self.client.patch(f'/api/v1/reports/templates/{template.pk}/',
                                     {'template_id': '', 'status': 'inactive'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['template_id'], template.template_id)
        self.assertEqual(response.data['status'], 'inactive')

    def test_list_filters_and_delete(self):
        ReportTemplate.objects.create(name='Costs', category='Financial', kind='maintenance_cost')
        other = ReportTemplate.objects.create(name='Movement', category='Tracking', kind='asset_movement')
        self.client.authenticate_user(self.auditor)

        response = self.client.get('/api/v1/reports/templates/', {'category': 'Tracking'})
        self.assertEqual([row['id'] for row in response.data['results']], [other.pk])

        response = self.client.delete(f'/api/v1/reports/templates/{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(ReportTemplate.objects.count(), 1)

    def test_employee_forbidden(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/reports/templates/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_seed_command(self):
        out = StringIO()
        call_command('seed_report_templates', stdout=out)
        self.assertIn(f'{len(DEFAULT_TEMPLATES)} created', out.getvalue())
        call_command('seed_report_templates', stdout=StringIO())
        self.assertEqual(ReportTemplate.objects.count(), len(DEFAULT_TEMPLATES))
        self.assertEqual(ReportTemplate.objects.get(template_id='RPT-006').formats, ['PDF'])


class ReportGenerationTests(TestCase):
    """Test cases for report generation, history and download"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        settings_override = override_settings(MEDIA_ROOT=self.media_root)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.client = AuthenticatedAPIClient()
        self.auditor = TestDataFactory.create_auditor()
        self.other_auditor = TestDataFactory.create_auditor()
        self.admin = TestDataFactory.create_admin()
        self.template = ReportTemplate.objects.create(name='Asset Inventory Summary', category='Inventory',
                                                      kind='asset_inventory')
        TestDataFactory.create_asset()
        TestDataFactory.create_asset(asset_type='Monitor', location='Branch')
        TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)

    def _download(self, report_pk):
        response = self.client.get(f'/api/v1/reports/history/{report_pk}/download/')
        content = b''.join(response.streaming_content) if response.status_code == 200 else b''
        response.close()
        return response, content

    def test_generate_csv_and_download(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.post('/api/v1/reports/generate/',
                                    {'template': self.template.template_id, 'format': 'csv'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['format'], 'CSV')
        self.assertEqual(response.data['total_records'], 2)
        self.assertEqual(response.data['download_url'], f"/api/v1/reports/history/{response.data['id']}/download/")
        self.template.refresh_from_db()
        self.assertEqual(self.template.generation_count, 1)
        self.assertIsNotNone(self.template.last_generated)

        download, content = self._download(response.data['id'])
        self.assertEqual(download.status_code, status.HTTP_200_OK)
        self.assertEqual(download['Content-Type'], 'text/csv')
        self.assertIn('attachment', download['Content-Disposition'])
        lines = content.decode('utf-8').splitlines()
        self.assertTrue(lines[0].startswith('Asset ID,Name'))
        self.assertEqual(len(lines), 3)

        report = GeneratedReport.objects.get(pk=response.data['id'])
        self.assertEqual(report.download_count, 1)
        self.assertIsNotNone(report.last_downloaded)

    def test_generate_json_with_filters(self):
        report = generate_report(self.template, 'JSON', user=self.auditor, filters={'location': 'branch'})
        self.assertEqual(report.status, 'completed')
        with report.file.open('rb') as handle:
            payload = json.loads(handle.read())
        self.assertEqual(payload['title'], 'Asset Inventory Summary')
        self.assertEqual(len(payload['rows']), 1)
        self.assertEqual(payload['rows'][0]['Type'], 'Monitor')
        self.assertEqual(payload['summary']['total_assets'], 1)
        self.assertEqual(payload['meta']['report_id'], report.report_id)

    def test_generate_pdf(self):
        report = generate_report(self.template, 'PDF', user=self.auditor)
        self.assertEqual(report.status, 'completed')
        with report.file.open('rb') as handle:
            self.assertTrue(handle.read(4) == b'%PDF')
        self.assertGreater(report.file_size, 0)

    def test_every_default_kind_generates(self):
        call_command('seed_report_templates', stdout=StringIO())
        for template in ReportTemplate.objects.filter(template_id__in=[t['template_id'] for t in DEFAULT_TEMPLATES]):
            report = generate_report(template, template.formats[0], user=self.auditor)
            self.assertEqual(report.status, 'completed', f"{template.kind}: {report.error_message}")

    def test_generation_validation(self):
        pdf_only = ReportTemplate.objects.create(name='Compliance', category='Compliance',
                                                 kind='audit_compliance', formats=['PDF'])
        inactive = ReportTemplate.objects.create(name='Old', category='Inventory', kind='asset_inventory',
                                                 status='inactive')
        self.client.authenticate_user(self.auditor)

        response = self.client.post('/api/v1/reports/generate/',
                                    {'template': pdf_only.pk, 'format': 'CSV'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('format', response.data)

        response = self.client.post('/api/v1/reports/generate/',
                                    {'template': inactive.pk, 'format': 'CSV'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('template', response.data)

        response = self.client.post('/api/v1/reports/generate/',
                                    {'template': 'RPT-999', 'format': 'CSV'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/reports/generate/', {
            'template': self.template.pk, 'format': 'CSV',
            'date_from': '2025-06-01', 'date_to': '2025-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_to', response.data)

    def test_failed_generation(self):
        broken = ReportTemplate.objects.create(name='Broken', category='System', kind='not_a_kind')
        self.client.authenticate_user(self.auditor)
        response = self.client.post('/api/v1/reports/generate/',
                                    {'template': broken.pk, 'format': 'JSON'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Report generation failed')
        self.assertEqual(response.data['report']['status'], 'failed')
        self.assertIsNone(response.data['report']['download_url'])

        download, _ = self._download(response.data['report']['id'])
        self.assertEqual(download.status_code, status.HTTP_400_BAD_REQUEST)

    def test_storage_error_marks_report_failed(self):
        with patch.object(FileSystemStorage, '_save', side_effect=OSError('No space left on device')):
            with self.assertLogs('deadstock.reports', level='ERROR'):
                report = generate_report(self.template, 'CSV', user=self.auditor)

        report.refresh_from_db()
        self.assertEqual(report.status, 'failed')
        self.assertIn('No space left on device', report.error_message)
        self.assertFalse(report.file)
        self.template.refresh_from_db()
        self.assertEqual(self.template.generation_count, 0)

    def test_pdf_row_cap(self):
        columns = ['Asset ID', 'Name']
        rows = [[f'AST-{number:05d}', f'Laptop {number}'] for number in range(300)]
        with patch.object(renderers, 'PDF_MAX_ROWS', 10):
            capped = renderers.render_pdf('Assets', columns, rows, {}, {})
        full = renderers.render_pdf('Assets', columns, rows, {}, {})

        self.assertTrue(capped.startswith(b'%PDF'))
        self.assertEqual(len(re.findall(rb'/Type /Page\b', capped)), 1)
        self.assertGreater(len(re.findall(rb'/Type /Page\b', full)), 1)

    def test_missing_file(self):
        report = generate_report(self.template, 'CSV', user=self.auditor)
        report.file.storage.delete(report.file.name)
        self.client.authenticate_user(self.auditor)
        download, _ = self._download(report.pk)
        self.assertEqual(download.status_code, status.HTTP_404_NOT_FOUND)

    def test_history(self):
        generate_report(self.template, 'CSV', user=self.auditor)
        generate_report(self.template, 'JSON', user=self.other_auditor)
        self.client.authenticate_user(self.auditor)

        response = self.client.get('/api/v1/reports/history/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/reports/history/', {'mine': 'true'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/reports/history/', {'format': 'JSON'})
        self.assertEqual(response.data['results'][0]['generated_by'], self.other_auditor.pk)

    def test_delete_report(self):
        report = generate_report(self.template, 'CSV', user=self.auditor)
        storage, name = report.file.storage, report.file.name

        self.client.authenticate_user(self.other_auditor)
        response = self.client.delete(f'/api/v1/reports/history/{report.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.auditor)
        response = self.client.delete(f'/api/v1/reports/history/{report.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(GeneratedReport.objects.filter(pk=report.pk).exists())
        self.assertFalse(storage.exists(name))
