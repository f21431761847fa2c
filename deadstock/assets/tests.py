"""
Test suite for the assets module
Tests: asset registry, categories, assignment, transfers, disposal,
lifecycle automation, labels, bulk operations, import/export and scanning
"""
import csv
import json
import os
import tempfile
from datetime import timedelta
from io import StringIO
from decimal import Decimal
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.approvals.models import Approval
from deadstock.assets import lifecycle
from deadstock.assets.label_generator import generate_asset_label
from deadstock.assets.models import Asset, AssetTransfer, DisposalRecord
from deadstock.core.models import AuditLog, Notification, SystemSettings
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.maintenance.models import Maintenance


class AssetModelTests(TestCase):

    def test_unique_asset_id_generated(self):
        asset = TestDataFactory.create_asset()
        self.assertEqual(asset.unique_asset_id, f"AST-{timezone.now().year}-00001")

    def test_name_from_manufacturer_and_model(self):
        asset = TestDataFactory.create_asset(manufacturer='HP', model='EliteBook 840')
        self.assertEqual(asset.name, 'HP EliteBook 840')

    def test_current_value_uses_category_rate(self):
        TestDataFactory.create_category(name='Laptop', depreciation_rate=Decimal('20.00'))
        asset = TestDataFactory.create_asset(
            asset_type='Laptop', purchase_cost=Decimal('1000.00'),
            purchase_date=timezone.localdate() - timedelta(days=730),
        )
        self.assertEqual(asset.current_value(), Decimal('600.00'))

    def test_current_value_floor(self):
        asset = TestDataFactory.create_asset(
            asset_type='Unknown', purchase_cost=Decimal('1000.00'),
            purchase_date=timezone.localdate() - timedelta(days=365 * 20),
        )
        self.assertEqual(asset.current_value(), Decimal('50.00'))

    def test_current_value_without_cost(self):
        asset = TestDataFactory.create_asset(purchase_cost=None)
        self.assertIsNone(asset.current_value())

    def test_disposal_reference_generated(self):
        asset = TestDataFactory.create_asset()
        record = DisposalRecord.objects.create(asset=asset, disposal_method='Scrap')
        self.assertTrue(record.document_reference.startswith(f"DOC-{timezone.now().year}-"))
        self.assertEqual(record.asset_code, asset.unique_asset_id)


class CategoryAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()

    def test_list_counts_assets(self):
        TestDataFactory.create_category(name='Laptop')
        TestDataFactory.create_asset(asset_type='laptop')
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/assets/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['asset_count'], 1)

    def test_duplicate_name_case_insensitive(self):
        TestDataFactory.create_category(name='Printer')
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/assets/categories/', {'name': 'printer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename_updates_assets(self):
        category = TestDataFactory.create_category(name='Laptop')
        asset = TestDataFactory.create_asset(asset_type='Laptop')
        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/assets/categories/{category.pk}/', {'name': 'Notebook'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        asset.refresh_from_db()
        self.assertEqual(asset.asset_type, 'Notebook')

    def test_delete_in_use_rejected(self):
        category = TestDataFactory.create_category(name='Laptop')
        TestDataFactory.create_asset(asset_type='Laptop')
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/assets/categories/{category.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_delete(self):
        category = TestDataFactory.create_category()
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/assets/categories/{category.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AssetAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.category = TestDataFactory.create_category(name='Laptop')
        self.client = AuthenticatedAPIClient()

    def _payload(self, **overrides):
        data = {
            'manufacturer': 'Dell',
            'model': 'Latitude 5420',
            'serial_number': 'SN-0001',
            'asset_type': 'laptop',
            'location': 'HQ Floor 2',
            'purchase_cost': '85000.00',
            'purchase_date': (timezone.localdate() - timedelta(days=10)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_create_asset(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/assets/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['asset_type'], 'Laptop')
        self.assertTrue(response.data['unique_asset_id'].startswith('AST-'))
        self.assertTrue(AuditLog.objects.filter(entity_type='Asset', action='create').exists())

    def test_create_with_assignee_becomes_active(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/assets/', self._payload(assigned_user=self.employee.pk),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Asset.STATUS_ACTIVE)

    def test_unknown_category_rejected(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/assets/', self._payload(asset_type='Spaceship'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('asset_type', response.data)

    def test_future_purchase_date_rejected(self):
        self.client.authenticate_user(self.manager)
        future = (timezone.localdate() + timedelta(days=5)).isoformat()
        response = self.client.post('/api/v1/assets/', self._payload(purchase_date=future), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_warranty_before_purchase_rejected(self):
        self.client.authenticate_user(self.manager)
        payload = self._payload(warranty_expiry=(timezone.localdate() - timedelta(days=30)).isoformat())
        response = self.client.post('/api/v1/assets/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('warranty_expiry', response.data)

    def test_employee_cannot_create(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/assets/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_sees_only_assigned(self):
        mine = TestDataFactory.create_asset(assigned_user=self.employee)
        other = TestDataFactory.create_asset()
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/assets/')
        self.assertEqual([row['id'] for row in response.data['results']], [mine.pk])
        response = self.client.get(f'/api/v1/assets/{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_filter_by_status_list(self):
        TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE)
        TestDataFactory.create_asset(status=Asset.STATUS_DAMAGED)
        TestDataFactory.create_asset(status=Asset.STATUS_AVAILABLE)
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/assets/', {'status': 'Active,Damaged'})
        self.assertEqual(response.data['count'], 2)

    def test_disposed_asset_only_notes_editable(self):
        asset = TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)
        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/assets/{asset.pk}/', {'location': 'Elsewhere'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(f'/api/v1/assets/{asset.pk}/', {'notes': 'sold for parts'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_cannot_set_disposed_directly(self):
        asset = TestDataFactory.create_asset()
        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/assets/{asset.pk}/', {'status': Asset.STATUS_DISPOSED},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_and_return(self):
        asset = TestDataFactory.create_asset()
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/assets/{asset.pk}/assign/', {'user': self.employee.pk},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Asset.STATUS_ACTIVE)
        self.assertTrue(Notification.objects.filter(recipient=self.employee, type='asset_assigned').exists())

        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/assets/{asset.pk}/return/', {'condition': 'fair'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        asset.refresh_from_db()
        self.assertIsNone(asset.assigned_user)
        self.assertEqual(asset.status, Asset.STATUS_AVAILABLE)
        self.assertEqual(asset.condition, 'fair')

    def test_assign_damaged_rejected(self):
        asset = TestDataFactory.create_asset(status=Asset.STATUS_DAMAGED)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/assets/{asset.pk}/assign/', {'user': self.employee.pk},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_report_issue_creates_repair_approval(self):
        asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)
        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/assets/{asset.pk}/report-issue/',
                                    {'description': 'Screen flickers', 'priority': 'High'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        approval = Approval.objects.get(asset=asset)
        self.assertEqual(approval.request_type, Approval.TYPE_REPAIR)
        self.assertTrue(Notification.objects.filter(recipient=self.manager, type='approval').exists())

    def test_report_issue_on_someone_elses_asset(self):
        asset = TestDataFactory.create_asset()
        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/assets/{asset.pk}/report-issue/', {'description': 'x'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_label(self):
        asset = TestDataFactory.create_asset()
        self.client.authenticate_user(self.manager)
        response = self.client.get(f'/api/v1/assets/{asset.pk}/label/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['image'].startswith('data:image/png;base64,'))

    def test_stats(self):
        TestDataFactory.create_asset(purchase_cost=Decimal('100.00'))
        TestDataFactory.create_asset(purchase_cost=Decimal('300.00'), status=Asset.STATUS_DISPOSED)
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/assets/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['in_service'], 1)
        self.assertEqual(response.data['total_value'], Decimal('100.00'))

    def test_history(self):
        asset = TestDataFactory.create_asset()
        TestDataFactory.create_maintenance(asset)
        self.client.authenticate_user(self.manager)
        response = self.client.get(f'/api/v1/assets/{asset.pk}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['maintenance']), 1)


class LabelGeneratorTests(TestCase):

    def test_long_name_truncated_and_rendered(self):
        image = generate_asset_label('AST-2024-00001', 'A' * 60, serial_number='SN1', location='HQ')
        self.assertTrue(image.startswith('data:image/png;base64,'))


class TransferAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.recipient = TestDataFactory.create_user()
        self.asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE,
                                                  location='HQ')
        self.client = AuthenticatedAPIClient()

    def _request_transfer(self):
        data = {
            'asset': self.asset.pk,
            'to_user': self.recipient.pk,
            'to_location': 'Branch Office',
            'transfer_reason': 'department_change',
            'description': 'Moving teams',
            'expected_transfer_date': (timezone.localdate() + timedelta(days=2)).isoformat(),
        }
        return self.client.post('/api/v1/transfers/', data, format='json')

    def test_full_workflow(self):
        self.client.authenticate_user(self.employee)
        response = self._request_transfer()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['transfer_id'].startswith('AT'))
        transfer_pk = response.data['id']

        response = self.client.post(f'/api/v1/transfers/{transfer_pk}/status/', {'status': 'approved'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/transfers/{transfer_pk}/status/', {'status': 'approved'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/transfers/{transfer_pk}/status/', {'status': 'completed'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.asset.refresh_from_db()
        self.assertEqual(self.asset.assigned_user, self.recipient)
        self.assertEqual(self.asset.location, 'Branch Office')
        transfer = AssetTransfer.objects.get(pk=transfer_pk)
        self.assertEqual(list(transfer.history.values_list('action', flat=True)),
                         ['created', 'approved', 'completed'])

    def test_second_open_transfer_rejected(self):
        self.client.authenticate_user(self.employee)
        self._request_transfer()
        response = self._request_transfer()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_transition(self):
        self.client.authenticate_user(self.employee)
        transfer_pk = self._request_transfer().data['id']
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/transfers/{transfer_pk}/status/', {'status': 'in_transit'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_requires_reason(self):
        self.client.authenticate_user(self.employee)
        transfer_pk = self._request_transfer().data['id']
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/transfers/{transfer_pk}/status/', {'status': 'rejected'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_transfer_unowned_asset(self):
        self.client.authenticate_user(self.recipient)
        response = self._request_transfer()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_transfer_must_change_something(self):
        self.client.authenticate_user(self.manager)
        data = {
            'asset': self.asset.pk,
            'to_user': self.employee.pk,
            'transfer_reason': 'other',
            'description': 'no-op',
            'expected_transfer_date': timezone.localdate().isoformat(),
        }
        response = self.client.post('/api/v1/transfers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class DisposalAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.auditor = TestDataFactory.create_auditor()
        self.client = AuthenticatedAPIClient()

    def test_completed_record_disposes_asset(self):
        asset = TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP)
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/disposals/', {
            'asset': asset.pk, 'disposal_method': 'Auction', 'disposal_value': '150.00', 'status': 'completed',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['approved_by'], self.manager.name)
        asset.refresh_from_db()
        self.assertEqual(asset.status, Asset.STATUS_DISPOSED)

    def test_pending_then_complete(self):
        asset = TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP)
        self.client.authenticate_user(self.manager)
        record_pk = self.client.post('/api/v1/disposals/', {'asset': asset.pk, 'disposal_method': 'Scrap'},
                                     format='json').data['id']
        asset.refresh_from_db()
        self.assertEqual(asset.status, Asset.STATUS_READY_FOR_SCRAP)

        response = self.client.patch(f'/api/v1/disposals/{record_pk}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        asset.refresh_from_db()
        self.assertEqual(asset.status, Asset.STATUS_DISPOSED)

        response = self.client.patch(f'/api/v1/disposals/{record_pk}/', {'remarks': 'late edit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_record_rejected(self):
        asset = TestDataFactory.create_asset()
        DisposalRecord.objects.create(asset=asset, disposal_method='Scrap')
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/disposals/', {'asset': asset.pk, 'disposal_method': 'Scrap'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_auditor_reads_only(self):
        self.client.authenticate_user(self.auditor)
        self.assertEqual(self.client.get('/api/v1/disposals/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/disposals/', {'asset_code': 'X', 'disposal_method': 'Scrap'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class LifecycleTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.today = timezone.localdate()

    def test_old_asset_moved_to_dead_stock(self):
        old = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE,
                                           purchase_date=self.today - timedelta(days=365 * 6))
        young = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE)

        result = lifecycle.move_outdated_to_dead_stock()
        self.assertEqual(result['count'], 1)
        old.refresh_from_db()
        young.refresh_from_db()
        self.assertEqual(old.status, Asset.STATUS_READY_FOR_SCRAP)
        self.assertIsNotNone(old.dead_stock_since)
        self.assertEqual(old.condition, 'poor')
        self.assertEqual(young.status, Asset.STATUS_ACTIVE)
        self.assertTrue(AuditLog.objects.filter(action='auto_move_to_dead_stock').exists())
        self.assertTrue(Notification.objects.filter(recipient=self.admin, title='Asset moved to dead stock').exists())

    def test_poor_condition_uses_shorter_age(self):
        asset = TestDataFactory.create_asset(condition='damaged',
                                             purchase_date=self.today - timedelta(days=365 * 3))
        self.assertIn(asset, list(lifecycle.find_outdated_assets()))

    def test_neglected_asset(self):
        asset = TestDataFactory.create_asset(condition='fair', last_maintenance_date=self.today - timedelta(days=800))
        self.assertIn(asset, list(lifecycle.find_outdated_assets()))
        self.assertIn('No maintenance', lifecycle.dead_stock_reason(asset, lifecycle.get_config()))

    def test_dead_stock_disposed_after_threshold(self):
        asset = TestDataFactory.create_asset(
            status=Asset.STATUS_READY_FOR_SCRAP, condition='damaged',
            dead_stock_since=timezone.now() - timedelta(days=100),
        )
        recent = TestDataFactory.create_asset(
            status=Asset.STATUS_READY_FOR_SCRAP, dead_stock_since=timezone.now() - timedelta(days=10),
        )
        result = lifecycle.move_dead_stock_to_disposal()
        self.assertEqual(result['count'], 1)
        record = DisposalRecord.objects.get(asset=asset)
        self.assertEqual(record.disposal_method, 'Recycling')
        self.assertEqual(record.status, 'pending')
        asset.refresh_from_db()
        recent.refresh_from_db()
        self.assertEqual(asset.status, Asset.STATUS_DISPOSED)
        self.assertEqual(recent.status, Asset.STATUS_READY_FOR_SCRAP)

    def test_auto_approve_completes_records(self):
        settings_obj = SystemSettings.load()
        settings_obj.lifecycle = {'autoApprove': True}
        settings_obj.save()
        TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP,
                                     dead_stock_since=timezone.now() - timedelta(days=100))
        lifecycle.move_dead_stock_to_disposal()
        self.assertEqual(DisposalRecord.objects.get().status, 'completed')

    def test_disposal_method_rules(self):
        expensive = TestDataFactory.create_asset(purchase_cost=Decimal('60000.00'), condition='good')
        electronics = TestDataFactory.create_asset(asset_type='Consumer Electronics', condition='good')
        poor = TestDataFactory.create_asset(condition='poor')
        self.assertEqual(lifecycle.disposal_method_for(expensive), 'Auction')
        self.assertEqual(lifecycle.disposal_method_for(electronics), 'Recycling')
        self.assertEqual(lifecycle.disposal_method_for(poor), 'Scrap')

    def test_run_endpoint_admin_only(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_manager())
        self.assertEqual(client.post('/api/v1/lifecycle/run/').status_code, status.HTTP_403_FORBIDDEN)
        client.authenticate_user(self.admin)
        response = client.post('/api/v1/lifecycle/run/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('dead_stock', response.data)

    def test_stats_endpoint(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.admin)
        TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP)
        response = client.get('/api/v1/lifecycle/stats/')
        self.assertEqual(response.data['current_state']['dead_stock'], 1)

    def test_management_command(self):
        TestDataFactory.create_asset(purchase_date=self.today - timedelta(days=365 * 6))
        call_command('run_lifecycle', '--dead-stock-only', stdout=StringIO())
        self.assertEqual(Asset.objects.filter(status=Asset.STATUS_READY_FOR_SCRAP).count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='lifecycle_run').exists())


class BulkOperationAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.manager)

    def test_status_update_reports_skipped_and_missing(self):
        held = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.employee)
        disposed = TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)
        response = self.client.post('/api/v1/assets/bulk/status/', {
            'asset_ids': [held.pk, disposed.pk, 99999], 'status': Asset.STATUS_DAMAGED,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated_ids'], [held.pk])
        self.assertEqual([row['id'] for row in response.data['skipped']], [disposed.pk])
        self.assertEqual(response.data['missing_ids'], [99999])
        held.refresh_from_db()
        self.assertEqual(held.status, Asset.STATUS_DAMAGED)
        log = AuditLog.objects.get(action='bulk_status_update', entity_id=str(held.pk))
        self.assertEqual(log.changes['batch_id'], response.data['batch_id'])
        self.assertTrue(Notification.objects.filter(recipient=self.employee, title='Asset status updated').exists())

    def test_status_update_cannot_dispose(self):
        asset = TestDataFactory.create_asset()
        response = self.client.post('/api/v1/assets/bulk/status/', {
            'asset_ids': [asset.pk], 'status': Asset.STATUS_DISPOSED,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_batch_limits(self):
        response = self.client.post('/api/v1/assets/bulk/location/', {
            'asset_ids': list(range(1, 502)), 'location': 'Store',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/assets/bulk/location/', {
            'asset_ids': [99998, 99999], 'location': 'Store',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_forbidden(self):
        asset = TestDataFactory.create_asset()
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/assets/bulk/location/', {
            'asset_ids': [asset.pk], 'location': 'Store',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_assign_conflict_requires_force(self):
        held = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.other)
        free = TestDataFactory.create_asset()
        payload = {'asset_ids': [held.pk, free.pk], 'user': self.employee.pk}
        response = self.client.post('/api/v1/assets/bulk/assign/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['conflicts'][0]['unique_asset_id'], held.unique_asset_id)
        free.refresh_from_db()
        self.assertIsNone(free.assigned_user)

        response = self.client.post('/api/v1/assets/bulk/assign/', {**payload, 'force': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated_count'], 2)
        free.refresh_from_db()
        self.assertEqual(free.assigned_user, self.employee)
        self.assertEqual(free.status, Asset.STATUS_ACTIVE)
        self.assertEqual(Notification.objects.filter(recipient=self.employee, type='asset_assigned').count(), 1)

    def test_assign_skips_damaged(self):
        damaged = TestDataFactory.create_asset(status=Asset.STATUS_DAMAGED)
        response = self.client.post('/api/v1/assets/bulk/assign/', {
            'asset_ids': [damaged.pk], 'user': self.employee.pk,
        }, format='json')
        self.assertEqual(response.data['updated_count'], 0)
        self.assertEqual(len(response.data['skipped']), 1)

    def test_condition_update_counts_as_audit(self):
        asset = TestDataFactory.create_asset()
        response = self.client.post('/api/v1/assets/bulk/condition/', {
            'asset_ids': [asset.pk], 'condition': 'poor', 'notes': 'cracked hinge',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        asset.refresh_from_db()
        self.assertEqual(asset.condition, 'poor')
        self.assertIsNotNone(asset.last_audit_date)
        self.assertIn('cracked hinge', asset.notes)

    def test_schedule_maintenance(self):
        owned = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.employee)
        scrap = TestDataFactory.create_asset(status=Asset.STATUS_READY_FOR_SCRAP)
        when = timezone.localdate() + timedelta(days=7)
        response = self.client.post('/api/v1/assets/bulk/maintenance/', {
            'asset_ids': [owned.pk, scrap.pk], 'maintenance_type': 'Inspection',
            'maintenance_date': when.isoformat(), 'priority': 'High',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['updated_ids'], [owned.pk])
        record = Maintenance.objects.get()
        self.assertEqual(record.asset, owned)
        self.assertEqual(record.maintenance_date, when)
        self.assertEqual(record.created_by, self.manager)
        self.assertTrue(Notification.objects.filter(recipient=self.employee, type='maintenance').exists())

        response = self.client.post('/api/v1/assets/bulk/maintenance/', {
            'asset_ids': [owned.pk], 'maintenance_type': 'Inspection',
            'maintenance_date': (timezone.localdate() - timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_retires_unless_permanent(self):
        in_use = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.employee)
        payload = {'asset_ids': [in_use.pk], 'reason': 'End of life'}
        response = self.client.post('/api/v1/assets/bulk/delete/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/assets/bulk/delete/', {**payload, 'force': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        in_use.refresh_from_db()
        self.assertEqual(in_use.status, Asset.STATUS_READY_FOR_SCRAP)
        self.assertIsNone(in_use.assigned_user)
        self.assertIsNotNone(in_use.dead_stock_since)

        response = self.client.post('/api/v1/assets/bulk/delete/', {**payload, 'permanent': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/assets/bulk/delete/', {**payload, 'permanent': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated_ids'], [in_use.pk])
        self.assertFalse(Asset.objects.filter(pk=in_use.pk).exists())

    def test_dashboard_cache_invalidated_once_per_batch(self):
        assets = [TestDataFactory.create_asset() for _ in range(3)]
        with patch('deadstock.assets.bulk.invalidate_dashboard_cache') as batch_invalidate, \
                patch('deadstock.core.cache_signals.invalidate_dashboard_cache') as signal_invalidate:
            response = self.client.post('/api/v1/assets/bulk/location/', {
                'asset_ids': [asset.pk for asset in assets], 'location': 'Warehouse',
            }, format='json')
        self.assertEqual(response.data['updated_count'], 3)
        batch_invalidate.assert_called_once_with()
        signal_invalidate.assert_not_called()

    def test_validate_changes_nothing(self):
        held = TestDataFactory.create_asset(status=Asset.STATUS_ACTIVE, assigned_user=self.other)
        response = self.client.post('/api/v1/assets/bulk/validate/', {
            'asset_ids': [held.pk, 99999], 'operation': 'assign',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['valid_count'], 1)
        self.assertEqual(response.data['missing_ids'], [99999])
        self.assertTrue(response.data['can_proceed'])
        self.assertEqual(len(response.data['warnings']), 2)
        held.refresh_from_db()
        self.assertEqual(held.assigned_user, self.other)

    def test_history_scoped_to_user(self):
        asset = TestDataFactory.create_asset()
        first = self.client.post('/api/v1/assets/bulk/location/', {
            'asset_ids': [asset.pk], 'location': 'Store A',
        }, format='json')
        self.client.authenticate_user(self.admin)
        self.client.post('/api/v1/assets/bulk/location/', {
            'asset_ids': [asset.pk], 'location': 'Store B',
        }, format='json')

        response = self.client.get('/api/v1/assets/bulk/history/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/assets/bulk/history/', {'batch_id': first.data['batch_id']})
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/assets/bulk/history/', {'operation': 'update_location'})
        self.assertEqual(response.data['count'], 1)


class AssetImportExportTests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user(email='alex@test.com')
        TestDataFactory.create_category(name='Laptop')
        self.client = AuthenticatedAPIClient().authenticate_user(self.manager)

    def _row(self, **overrides):
        row = {
            'manufacturer': 'Lenovo', 'model': 'T14', 'serial_number': 'SN-IMP-1',
            'asset_type': 'Laptop', 'location': 'HQ',
        }
        row.update(overrides)
        return row

    def test_export_csv(self):
        TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)
        TestDataFactory.create_asset()
        response = self.client.get('/api/v1/assets/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment;', response['Content-Disposition'])
        rows = list(csv.DictReader(StringIO(response.content.decode())))
        self.assertEqual(len(rows), 2)
        self.assertEqual(sorted(row['assigned_user_email'] for row in rows), ['', 'alex@test.com'])
        self.assertTrue(AuditLog.objects.filter(action='export', entity_type='Asset').exists())

    def test_export_json_honours_filters(self):
        TestDataFactory.create_asset(status=Asset.STATUS_DAMAGED)
        TestDataFactory.create_asset()
        response = self.client.get('/api/v1/assets/export/', {'output': 'json', 'status': 'Damaged'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = json.loads(response.content)
        self.assertEqual([row['status'] for row in rows], [Asset.STATUS_DAMAGED])

    def test_employee_cannot_export(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/assets/export/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_import_csv_reports_bad_rows(self):
        content = (
            'manufacturer,model,serial_number,asset_type,location,assigned_user_email\n'
            'Lenovo,T14,SN-IMP-1,laptop,HQ,alex@test.com\n'
            'Lenovo,T14,SN-IMP-2,Spaceship,HQ,\n'
            'Lenovo,T14,SN-IMP-3,Laptop,HQ,nobody@test.com\n'
        )
        upload = SimpleUploadedFile('assets.csv', content.encode(), content_type='text/csv')
        response = self.client.post('/api/v1/assets/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['imported'], 1)
        self.assertEqual([error['row'] for error in response.data['errors']], [3, 4])
        self.assertIn('asset_type', response.data['errors'][0]['errors'])
        self.assertIn('assigned_user_email', response.data['errors'][1]['errors'])
        asset = Asset.objects.get()
        self.assertEqual(asset.asset_type, 'Laptop')
        self.assertEqual(asset.assigned_user, self.employee)
        self.assertEqual(asset.status, Asset.STATUS_ACTIVE)
        self.assertTrue(AuditLog.objects.filter(action='import', entity_id=str(asset.pk)).exists())

    def test_import_dry_run_catches_duplicates_and_saves_nothing(self):
        rows = [self._row(unique_asset_id='ast-legacy-1'),
                self._row(unique_asset_id='AST-LEGACY-1', serial_number='SN-IMP-2')]
        response = self.client.post('/api/v1/assets/import/', {'assets': rows, 'dry_run': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['imported'], 1)
        self.assertEqual(response.data['errors'][0]['row'], 2)
        self.assertIn('unique_asset_id', response.data['errors'][0]['errors'])
        self.assertFalse(Asset.objects.exists())

    def test_import_with_no_valid_rows(self):
        response = self.client.post('/api/v1/assets/import/', {'assets': [self._row(asset_type='')]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['failed'], 1)
        response = self.client.post('/api/v1/assets/import/', {'assets': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_import_template(self):
        response = self.client.get('/api/v1/assets/import/template/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.decode().startswith('unique_asset_id,manufacturer,'))

    def test_management_command(self):
        handle = tempfile.NamedTemporaryFile('w', suffix='.csv', delete=False)
        with handle:
            handle.write('manufacturer,model,serial_number,asset_type,location\nHP,ProBook,SN-CLI-1,Laptop,HQ\n')
        self.addCleanup(os.remove, handle.name)
        out = StringIO()
        call_command('import_assets', csv_file=handle.name, dry_run=True, stdout=out)
        self.assertIn('Would import 1 of 1', out.getvalue())
        self.assertFalse(Asset.objects.exists())
        call_command('import_assets', csv_file=handle.name, stdout=out)
        self.assertEqual(Asset.objects.get().serial_number, 'SN-CLI-1')


class ScanAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.auditor = TestDataFactory.create_auditor()
        self.employee = TestDataFactory.create_user()
        self.asset = TestDataFactory.create_asset(serial_number='SN-SCAN-1')
        self.client = AuthenticatedAPIClient().authenticate_user(self.manager)

    def test_scan_by_asset_id_or_serial(self):
        response = self.client.get(f'/api/v1/assets/scan/{self.asset.unique_asset_id.lower()}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['asset']['id'], self.asset.pk)
        self.assertTrue(response.data['actions']['can_assign'])
        response = self.client.get('/api/v1/assets/scan/SN-SCAN-1/', {'include_history': 'true'})
        self.assertEqual(response.data['asset']['id'], self.asset.pk)
        self.assertIn('recent_maintenance', response.data)
        self.assertEqual(AuditLog.objects.filter(action='qr_scan_success', entity_id=str(self.asset.pk)).count(), 2)

    def test_unknown_code_logged(self):
        response = self.client.get('/api/v1/assets/scan/NOPE-1/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        log = AuditLog.objects.get(action='qr_scan_failed')
        self.assertEqual(log.entity_id, 'NOPE-1')
        self.assertEqual(log.severity, 'warning')

    def test_scan_mode(self):
        response = self.client.get('/api/v1/assets/scan/SN-SCAN-1/', {'mode': 'audit'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='audit_scanned').exists())
        response = self.client.get('/api/v1/assets/scan/SN-SCAN-1/', {'mode': 'teleport'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_scans_only_own_assets(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/assets/scan/SN-SCAN-1/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        mine = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)
        response = self.client.get(f'/api/v1/assets/scan/{mine.unique_asset_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_batch_scan(self):
        response = self.client.post('/api/v1/assets/scan/batch/', {
            'codes': [self.asset.unique_asset_id, 'missing-code'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['found_count'], 1)
        self.assertEqual(response.data['not_found'], ['missing-code'])
        response = self.client.post('/api/v1/assets/scan/batch/', {
            'codes': [f'CODE-{n}' for n in range(101)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_quick_audit(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.post(f'/api/v1/assets/scan/{self.asset.unique_asset_id}/quick-audit/', {
            'condition': 'poor', 'location': 'Store Room', 'notes': 'Dented lid',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.condition, 'poor')
        self.assertEqual(self.asset.location, 'Store Room')
        self.assertIsNotNone(self.asset.last_audit_date)
        self.assertTrue(AuditLog.objects.filter(action='quick_audit_completed',
                                                entity_id=str(self.asset.pk)).exists())

    def test_quick_audit_rules(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/assets/scan/SN-SCAN-1/quick-audit/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.auditor)
        response = self.client.post('/api/v1/assets/scan/SN-SCAN-1/quick-audit/',
                                    {'status': Asset.STATUS_DISPOSED}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        disposed = TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)
        response = self.client.post(f'/api/v1/assets/scan/{disposed.unique_asset_id}/quick-audit/', {},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_history_and_stats(self):
        self.client.get(f'/api/v1/assets/scan/{self.asset.unique_asset_id}/')
        self.client.get('/api/v1/assets/scan/SN-SCAN-1/', {'mode': 'checkout'})
        self.client.get('/api/v1/assets/scan/NOPE-2/')

        response = self.client.get('/api/v1/assets/scan/history/')
        self.assertEqual(response.data['count'], 3)
        response = self.client.get('/api/v1/assets/scan/history/', {'mode': 'failed'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/assets/scan/stats/', {'period': '24h'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_scans'], 3)
        self.assertEqual(response.data['successful_scans'], 2)
        self.assertEqual(response.data['failed_scans'], 1)
        self.assertEqual(response.data['by_mode']['checkout'], 1)
        self.assertEqual(response.data['most_scanned'][0]['id'], self.asset.pk)
        self.assertEqual(response.data['most_scanned'][0]['scans'], 2)

        response = self.client.get('/api/v1/assets/scan/stats/', {'period': '1y'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
