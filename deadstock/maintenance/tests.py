"""
Test suite for the maintenance module
Tests: scheduling, asset status side effects, overdue marking and stats
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.assets.models import Asset
from deadstock.core.models import Notification
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.maintenance.models import Maintenance
from deadstock.maintenance.services import apply_status_side_effects, mark_overdue_maintenance


class MaintenanceServiceTests(TestCase):

    def setUp(self):
        self.employee = TestDataFactory.create_user()
        self.asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)

    def test_in_progress_then_completed(self):
        record = TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_IN_PROGRESS)
        apply_status_side_effects(record)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_UNDER_MAINTENANCE)

        record.status = Maintenance.STATUS_COMPLETED
        record.save()
        apply_status_side_effects(record, Maintenance.STATUS_IN_PROGRESS)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_ACTIVE)
        self.assertEqual(self.asset.last_maintenance_date, timezone.localdate())

    def test_cancel_restores_when_nothing_else_open(self):
        record = TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_IN_PROGRESS)
        apply_status_side_effects(record)
        record.status = Maintenance.STATUS_CANCELLED
        record.save()
        apply_status_side_effects(record, Maintenance.STATUS_IN_PROGRESS)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_ACTIVE)

    def test_disposed_asset_untouched(self):
        asset = TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP)
        record = TestDataFactory.create_maintenance(asset, status=Maintenance.STATUS_IN_PROGRESS)
        self.assertIsNone(apply_status_side_effects(record))

    def test_mark_overdue(self):
        today = timezone.localdate()
        late = TestDataFactory.create_maintenance(self.asset, maintenance_date=today - timedelta(days=2))
        upcoming = TestDataFactory.create_maintenance(self.asset, maintenance_date=today + timedelta(days=2))
        self.assertEqual(mark_overdue_maintenance(today), 1)
        late.refresh_from_db()
        upcoming.refresh_from_db()
        self.assertEqual(late.status, Maintenance.STATUS_OVERDUE)
        self.assertEqual(upcoming.status, Maintenance.STATUS_SCHEDULED)

    def test_mark_overdue_command(self):
        TestDataFactory.create_maintenance(self.asset, maintenance_date=timezone.localdate() - timedelta(days=1))
        out = StringIO()
        call_command('mark_overdue', stdout=out)
        self.assertIn('Marked 1 maintenance record(s)', out.getvalue())

    def test_mark_overdue_command_bad_date(self):
        from django.core.management.base import CommandError
        with self.assertRaises(CommandError):
            call_command('mark_overdue', '--date', '2024-13-01', stdout=StringIO())


class MaintenanceAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)
        self.vendor = TestDataFactory.create_vendor()
        self.client = AuthenticatedAPIClient()

    def _payload(self, **overrides):
        data = {
            'asset': self.asset.pk,
            'maintenance_type': 'Corrective',
            'description': 'Replace keyboard',
            'cost': '1200.00',
            'vendor': self.vendor.pk,
            'maintenance_date': (timezone.localdate() + timedelta(days=1)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_schedule_notifies_assignee(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/maintenance/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Notification.objects.filter(recipient=self.employee, type='maintenance').exists())

    def test_create_in_progress_moves_asset(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/maintenance/', self._payload(status='In Progress'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_UNDER_MAINTENANCE)

    def test_next_date_before_date_rejected(self):
        self.client.authenticate_user(self.manager)
        payload = self._payload(next_maintenance_date=timezone.localdate().isoformat())
        response = self.client.post('/api/v1/maintenance/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('next_maintenance_date', response.data)

    def test_disposed_asset_rejected(self):
        disposed = TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/maintenance/', self._payload(asset=disposed.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_schedule(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/maintenance/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_sees_own_asset_records(self):
        TestDataFactory.create_maintenance(self.asset)
        TestDataFactory.create_maintenance(TestDataFactory.create_asset())
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/maintenance/')
        self.assertEqual(response.data['count'], 1)

    def test_complete_via_patch(self):
        record = TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_IN_PROGRESS)
        apply_status_side_effects(record)
        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/maintenance/{record.pk}/', {'status': 'Completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_ACTIVE)
        self.assertTrue(Notification.objects.filter(recipient=self.employee,
                                                    title='Maintenance completed').exists())

    def test_cannot_delete_in_progress(self):
        record = TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_IN_PROGRESS)
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/maintenance/{record.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upcoming(self):
        today = timezone.localdate()
        TestDataFactory.create_maintenance(self.asset, maintenance_date=today + timedelta(days=5))
        TestDataFactory.create_maintenance(self.asset, maintenance_date=today + timedelta(days=60))
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/maintenance/upcoming/', {'days': 10})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/maintenance/upcoming/', {'days': 'ten'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_warranties(self):
        TestDataFactory.create_asset(warranty_expiry=timezone.localdate() + timedelta(days=20))
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/maintenance/warranties/', {'days': 30})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['days_remaining'], 20)

    def test_stats(self):
        TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_COMPLETED,
                                           maintenance_date=timezone.localdate(), cost=Decimal('300.00'))
        TestDataFactory.create_maintenance(self.asset, status=Maintenance.STATUS_OVERDUE)
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/maintenance/stats/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['overdue'], 1)
        self.assertEqual(response.data['total_cost'], Decimal('300.00'))
