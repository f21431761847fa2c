"""
Test suite for the scheduled audits module
Tests: recurrence, scoping, run creation, progress recording, reminders and API
"""
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core import mail
from django.core.management import CommandError, call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.assets.models import Asset
from deadstock.audits.models import ScheduledAudit, ScheduledAuditRun
from deadstock.audits.services import (
    build_asset_queryset, calculate_next_run_date, check_and_trigger_due_audits,
    planned_dates, record_progress, send_due_reminders, trigger_run,
)
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import Notification
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory


class RecurrenceTests(TestCase):

    def test_next_run_dates(self):
        start = date(2025, 1, 31)
        self.assertEqual(calculate_next_run_date(start, 'daily'), date(2025, 2, 1))
        self.assertEqual(calculate_next_run_date(start, 'weekly'), date(2025, 2, 7))
        self.assertEqual(calculate_next_run_date(start, 'monthly'), date(2025, 2, 28))
        self.assertEqual(calculate_next_run_date(start, 'quarterly'), date(2025, 4, 30))
        self.assertEqual(calculate_next_run_date(start, 'yearly'), date(2026, 1, 31))
        self.assertIsNone(calculate_next_run_date(start, 'once'))

    def test_next_run_from_last_run(self):
        self.assertEqual(
            calculate_next_run_date(date(2025, 1, 1), 'monthly', last_run=date(2025, 3, 15)),
            date(2025, 4, 1),
        )
        self.assertEqual(
            calculate_next_run_date(date(2025, 6, 2), 'weekly', last_run=date(2025, 6, 11)),
            date(2025, 6, 16),
        )
        self.assertEqual(calculate_next_run_date(date(2025, 6, 2), 'weekly', last_run=date(2025, 5, 20)),
                         date(2025, 6, 2))

    def test_month_end_start_does_not_drift(self):
        start = date(2025, 1, 31)
        runs = []
        current = None
        for _ in range(5):
            current = calculate_next_run_date(start, 'monthly', last_run=current)
            runs.append(current)
        self.assertEqual(runs, [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30),
                                date(2025, 5, 31), date(2025, 6, 30)])

        quarterly = calculate_next_run_date(date(2024, 11, 30), 'quarterly', last_run=date(2025, 2, 28))
        self.assertEqual(quarterly, date(2025, 5, 30))

    def test_planned_dates_keep_month_end(self):
        creator = TestDataFactory.create_auditor()
        audit = TestDataFactory.create_scheduled_audit(creator, start_date=date(2025, 1, 31))
        self.assertEqual(planned_dates(audit, date(2025, 3, 1), date(2025, 3, 31)), [date(2025, 3, 31)])
        self.assertEqual(planned_dates(audit, date(2025, 4, 1), date(2025, 4, 30)), [date(2025, 4, 30)])

    def test_planned_dates_stop_at_end_date(self):
        creator = TestDataFactory.create_auditor()
        audit = TestDataFactory.create_scheduled_audit(
            creator, recurrence_type='weekly', start_date=date(2025, 6, 2), end_date=date(2025, 6, 20)
        )
        self.assertEqual(
            planned_dates(audit, date(2025, 6, 1), date(2025, 6, 30)),
            [date(2025, 6, 2), date(2025, 6, 9), date(2025, 6, 16)],
        )


class ScopeTests(TestCase):

    def setUp(self):
        self.it_laptop = TestDataFactory.create_asset(department='IT', location='HQ')
        self.hr_chair = TestDataFactory.create_asset(asset_type='Chair', department='HR', location='Branch',
                                                     condition='fair')
        self.disposed = TestDataFactory.create_asset(department='IT', status=Asset.STATUS_DISPOSED)

    def test_all_excludes_disposed(self):
        self.assertEqual(set(build_asset_queryset('all')), {self.it_laptop, self.hr_chair})

    def test_department_scope_is_case_insensitive(self):
        self.assertEqual(list(build_asset_queryset('department', {'department': 'it'})), [self.it_laptop])

    def test_list_values(self):
        queryset = build_asset_queryset('location', {'location': ['HQ', 'Branch']})
        self.assertEqual(queryset.count(), 2)

    def test_missing_scope_value_matches_nothing(self):
        self.assertFalse(build_asset_queryset('category', {}).exists())

    def test_custom_filter(self):
        queryset = build_asset_queryset('custom_filter', {'condition': 'fair', 'unknown': 'x'})
        self.assertEqual(list(queryset), [self.hr_chair])


class AuditRunServiceTests(TestCase):

    def setUp(self):
        self.auditor = TestDataFactory.create_auditor()
        self.other_auditor = TestDataFactory.create_auditor()
        self.laptop = TestDataFactory.create_asset()
        self.monitor = TestDataFactory.create_asset(asset_type='Monitor')
        self.audit = TestDataFactory.create_scheduled_audit(self.auditor, auditors=[self.auditor])

    def test_trigger_run(self):
        today = timezone.localdate()
        run = trigger_run(self.audit, user=self.auditor, today=today)

        self.assertEqual(run.total_assets, 2)
        self.assertEqual(run.status, ScheduledAuditRun.STATUS_PENDING)
        self.assertEqual(list(run.assigned_auditors.all()), [self.auditor])
        self.audit.refresh_from_db()
        self.assertEqual(self.audit.total_runs, 1)
        self.assertEqual(self.audit.next_run_date, calculate_next_run_date(today, 'monthly', last_run=today))
        self.assertTrue(Notification.objects.filter(
            recipient=self.auditor, title=f'Audit started: {self.audit.name}').exists())

    def test_one_off_audit_completes_after_run(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, recurrence_type='once')
        trigger_run(audit)
        audit.refresh_from_db()
        self.assertEqual(audit.status, ScheduledAudit.STATUS_COMPLETED)
        self.assertIsNone(audit.next_run_date)

    def test_empty_scope_run_is_complete(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, scope_type='location',
                                                       scope_config={'location': 'Nowhere'})
        run = trigger_run(audit)
        self.assertEqual(run.status, ScheduledAuditRun.STATUS_COMPLETED)
        self.assertEqual(run.completion_percentage, Decimal('100'))
        audit.refresh_from_db()
        self.assertEqual(audit.completed_runs, 1)

    def test_paused_audit_cannot_run(self):
        self.audit.status = ScheduledAudit.STATUS_PAUSED
        self.audit.save()
        with self.assertRaises(BusinessRuleError):
            trigger_run(self.audit)

    def test_record_progress_until_complete(self):
        run = trigger_run(self.audit)

        record_progress(run, self.auditor, self.laptop, 'found', condition='good', location='HQ')
        run.refresh_from_db()
        self.assertEqual(run.status, ScheduledAuditRun.STATUS_IN_PROGRESS)
        self.assertEqual(run.completion_percentage, Decimal('50.00'))
        self.assertIsNotNone(run.started_at)

        record_progress(run, self.auditor, self.monitor, 'damaged', condition='damaged')
        run.refresh_from_db()
        self.assertEqual(run.status, ScheduledAuditRun.STATUS_COMPLETED)
        self.assertEqual((run.assets_found, run.assets_damaged), (1, 1))
        self.monitor.refresh_from_db()
        self.assertEqual(self.monitor.status, Asset.STATUS_DAMAGED)
        self.assertEqual(self.monitor.condition, 'damaged')
        self.assertIsNotNone(self.monitor.last_audit_date)
        self.audit.refresh_from_db()
        self.assertEqual(self.audit.completed_runs, 1)

    def test_record_progress_rules(self):
        run = trigger_run(self.audit)
        outsider = TestDataFactory.create_asset()

        with self.assertRaises(BusinessRuleError) as ctx:
            record_progress(run, self.other_auditor, self.laptop, 'found')
        self.assertEqual(ctx.exception.status_code, 403)

        with self.assertRaises(BusinessRuleError):
            record_progress(run, self.auditor, outsider, 'found')

        record_progress(run, self.auditor, self.laptop, 'found')
        with self.assertRaises(BusinessRuleError):
            record_progress(run, self.auditor, self.laptop, 'missing')

    def test_check_and_trigger_due_audits(self):
        today = timezone.localdate()
        future = TestDataFactory.create_scheduled_audit(self.auditor, start_date=today + timedelta(days=5))
        expired = TestDataFactory.create_scheduled_audit(
            self.auditor, start_date=today - timedelta(days=60), end_date=today - timedelta(days=1),
            next_run_date=today - timedelta(days=1),
        )

        summary = check_and_trigger_due_audits(today)

        self.assertEqual(summary['triggered'], 1)
        self.assertEqual(summary['completed'], 1)
        self.assertEqual(summary['failed'], 0)
        self.assertEqual(self.audit.runs.count(), 1)
        self.assertFalse(future.runs.exists())
        expired.refresh_from_db()
        self.assertEqual(expired.status, ScheduledAudit.STATUS_COMPLETED)
        self.assertFalse(expired.runs.exists())

    def test_failing_audit_does_not_stop_others(self):
        broken = TestDataFactory.create_scheduled_audit(self.auditor, name='Broken scope', scope_type='location',
                                                        scope_config={'location': 'Broken'})
        real_builder = build_asset_queryset

        def builder(scope_type, scope_config=None):
            if scope_config == {'location': 'Broken'}:
                raise RuntimeError('scope lookup failed')
            return real_builder(scope_type, scope_config)

        with patch('deadstock.audits.services.build_asset_queryset', side_effect=builder):
            with self.assertLogs('deadstock.audits', level='ERROR') as logs:
                summary = check_and_trigger_due_audits(timezone.localdate())

        self.assertEqual(summary['triggered'], 1)
        self.assertEqual(summary['failed'], 1)
        self.assertEqual(self.audit.runs.count(), 1)
        self.assertIn('Broken scope', logs.output[0])
        broken.refresh_from_db()
        self.assertEqual(broken.failed_runs, 1)
        self.assertEqual(broken.total_runs, 0)
        self.assertFalse(broken.runs.exists())
        self.assertEqual(broken.status, ScheduledAudit.STATUS_ACTIVE)

    def test_send_due_reminders(self):
        today = timezone.localdate()
        TestDataFactory.create_scheduled_audit(
            self.auditor, name='Quarterly count', start_date=today + timedelta(days=1), auditors=[self.auditor]
        )
        self.assertEqual(send_due_reminders(today), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.auditor.email])
        self.assertTrue(Notification.objects.filter(
            recipient=self.auditor, title='Upcoming audit: Quarterly count').exists())

    def test_run_scheduled_audits_command(self):
        out = StringIO()
        call_command('run_scheduled_audits', stdout=out)
        self.assertIn('Triggered 1 audits', out.getvalue())
        self.assertEqual(self.audit.runs.count(), 1)

        with self.assertRaises(CommandError):
            call_command('run_scheduled_audits', '--date', '19-10-2026', stdout=StringIO())


class ScheduledAuditAPITests(TestCase):
    """Test cases for scheduled audit endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.auditor = TestDataFactory.create_auditor()
        self.other_auditor = TestDataFactory.create_auditor()
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.asset = TestDataFactory.create_asset()

    def test_create_audit(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.post('/api/v1/audits/scheduled/', {
            'name': 'Monthly IT sweep',
            'recurrence_type': 'monthly',
            'start_date': str(timezone.localdate()),
            'scope_type': 'department',
            'scope_config': {'department': 'IT'},
            'checklist_items': [{'item': 'Tag readable', 'order': 2}, {'item': 'Serial matches', 'order': 1}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['next_run_date'], str(timezone.localdate()))
        self.assertEqual(response.data['assigned_auditors'], [self.auditor.pk])
        self.assertEqual([item['item'] for item in response.data['checklist_items']],
                         ['Serial matches', 'Tag readable'])

    def test_create_validation(self):
        self.client.authenticate_user(self.auditor)
        today = timezone.localdate()
        response = self.client.post('/api/v1/audits/scheduled/', {
            'name': 'Broken', 'recurrence_type': 'weekly', 'start_date': str(today),
            'scope_type': 'location', 'scope_config': {},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('scope_config', response.data)

        response = self.client.post('/api/v1/audits/scheduled/', {
            'name': 'Backwards', 'recurrence_type': 'weekly', 'start_date': str(today),
            'end_date': str(today - timedelta(days=1)), 'scope_type': 'all',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_employee_forbidden(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/audits/scheduled/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_visibility(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, auditors=[self.auditor])

        self.client.authenticate_user(self.other_auditor)
        response = self.client.get(f'/api/v1/audits/scheduled/{audit.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/audits/scheduled/')
        self.assertEqual(response.data['count'], 1)

    def test_pause_and_resume(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor)
        self.client.authenticate_user(self.auditor)

        response = self.client.post(f'/api/v1/audits/scheduled/{audit.pk}/pause/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ScheduledAudit.STATUS_PAUSED)

        response = self.client.post(f'/api/v1/audits/scheduled/{audit.pk}/pause/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/audits/scheduled/{audit.pk}/trigger/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

        response = self.client.post(f'/api/v1/audits/scheduled/{audit.pk}/resume/')
        self.assertEqual(response.data['status'], ScheduledAudit.STATUS_ACTIVE)

    def test_trigger_and_record_progress(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, auditors=[self.auditor])
        self.client.authenticate_user(self.auditor)

        response = self.client.post(f'/api/v1/audits/scheduled/{audit.pk}/trigger/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_assets'], 1)
        self.assertEqual(response.data['pending_assets'][0]['id'], self.asset.pk)
        run_id = response.data['id']

        response = self.client.post(f'/api/v1/audits/runs/{run_id}/progress/', {
            'asset': self.asset.pk, 'status': 'found', 'condition': 'excellent', 'location': 'HQ',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_complete'])
        self.assertEqual(response.data['completion_percentage'], Decimal('100.00'))

        response = self.client.get(f'/api/v1/audits/runs/{run_id}/')
        self.assertEqual(len(response.data['entries']), 1)
        self.assertEqual(response.data['pending_assets'], [])

        response = self.client.get(f'/api/v1/audits/scheduled/{audit.pk}/runs/')
        self.assertEqual(response.data['count'], 1)

    def test_unassigned_auditor_cannot_record(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, auditors=[self.auditor])
        run = trigger_run(audit)
        self.client.authenticate_user(self.other_auditor)
        response = self.client.post(f'/api/v1/audits/runs/{run.pk}/progress/',
                                    {'asset': self.asset.pk, 'status': 'found'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel_run_and_delete(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, auditors=[self.auditor])
        run = trigger_run(audit)
        run.status = ScheduledAuditRun.STATUS_IN_PROGRESS
        run.save()
        self.client.authenticate_user(self.auditor)

        response = self.client.delete(f'/api/v1/audits/scheduled/{audit.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/audits/runs/{run.pk}/cancel/', {'reason': 'Office closed'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ScheduledAuditRun.STATUS_CANCELLED)
        self.assertIn('Office closed', response.data['summary_notes'])

        response = self.client.delete(f'/api/v1/audits/scheduled/{audit.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_calendar(self):
        audit = TestDataFactory.create_scheduled_audit(self.auditor, recurrence_type='yearly',
                                                       auditors=[self.auditor])
        self.client.authenticate_user(self.auditor)

        response = self.client.get('/api/v1/audits/calendar/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['month'], timezone.localdate().strftime('%Y-%m'))
        self.assertEqual([item['scheduled_audit'] for item in response.data['planned']], [audit.pk])

        response = self.client.get('/api/v1/audits/calendar/', {'month': 'October'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reminders_endpoint(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/audits/reminders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reminders_sent'], 0)
