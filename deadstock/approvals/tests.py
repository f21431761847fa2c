"""
Test suite for the approvals module
Tests: submission, decisions and their asset effects, withdrawal and visibility
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from deadstock.approvals.models import Approval
from deadstock.approvals.services import decide
from deadstock.assets.models import Asset
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import Notification
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.maintenance.models import Maintenance


class DecisionServiceTests(TestCase):

    def setUp(self):
        self.employee = TestDataFactory.create_user()
        self.manager = TestDataFactory.create_manager()
        self.asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)

    def test_repair_approval_books_maintenance(self):
        approval = TestDataFactory.create_approval(
            self.employee, asset=self.asset, priority='Urgent',
            request_data={'reason': 'Screen flickers', 'estimated_cost': 250},
        )
        approval, effects = decide(approval, self.manager, approve=True)

        self.assertEqual(approval.status, Approval.STATUS_APPROVED)
        self.assertEqual(approval.approver, self.manager)
        self.assertIsNotNone(approval.approved_at)
        record = Maintenance.objects.get(pk=effects['maintenance_id'])
        self.assertEqual(record.asset, self.asset)
        self.assertEqual(record.maintenance_type, 'Corrective')
        self.assertEqual(record.priority, 'Critical')
        self.assertEqual(record.status, Maintenance.STATUS_SCHEDULED)
        self.assertEqual(record.cost, Decimal('250'))

    def test_scrap_approval_moves_asset_to_dead_stock(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset,
                                                   request_type=Approval.TYPE_SCRAP)
        decide(approval, self.manager, approve=True)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.status, Asset.STATUS_READY_FOR_SCRAP)
        self.assertIsNotNone(self.asset.dead_stock_since)

    def test_rejection_has_no_effects(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset)
        approval, effects = decide(approval, self.manager, approve=False, comments='Not needed')
        self.assertEqual(approval.status, Approval.STATUS_REJECTED)
        self.assertEqual(approval.comments, 'Not needed')
        self.assertIsNone(effects)
        self.assertFalse(Maintenance.objects.filter(asset=self.asset).exists())

    def test_requester_notified(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset)
        decide(approval, self.manager, approve=True)
        self.assertTrue(Notification.objects.filter(recipient=self.employee, title='Request approved').exists())

    def test_cannot_decide_twice(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset)
        decide(approval, self.manager, approve=False)
        with self.assertRaises(BusinessRuleError) as ctx:
            decide(approval, self.manager, approve=True)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_cannot_decide_own_request(self):
        approval = TestDataFactory.create_approval(self.manager, asset=self.asset)
        with self.assertRaises(BusinessRuleError) as ctx:
            decide(approval, self.manager, approve=True)
        self.assertEqual(ctx.exception.status_code, 403)


class ApprovalAPITests(TestCase):
    """Test cases for approval endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.employee = TestDataFactory.create_user()
        self.other_employee = TestDataFactory.create_user()
        self.manager = TestDataFactory.create_manager()
        self.admin = TestDataFactory.create_admin()
        self.asset = TestDataFactory.create_asset(assigned_user=self.employee, status=Asset.STATUS_ACTIVE)

    def test_submit_request_notifies_managers(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/approvals/', {
            'request_type': Approval.TYPE_REPAIR,
            'asset': self.asset.pk,
            'priority': 'High',
            'request_data': {'reason': 'Broken hinge', 'estimated_cost': 120},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Approval.STATUS_PENDING)
        self.assertEqual(response.data['requested_by'], self.employee.pk)
        self.assertEqual(response.data['asset_code'], self.asset.unique_asset_id)
        for user in (self.manager, self.admin):
            self.assertTrue(Notification.objects.filter(recipient=user, title='New Repair request').exists())
        self.assertFalse(Notification.objects.filter(recipient=self.employee).exists())

    def test_asset_required_for_repair(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/approvals/', {'request_type': Approval.TYPE_SCRAP}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('asset', response.data)

    def test_new_asset_request_without_asset(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/approvals/', {
            'request_type': Approval.TYPE_NEW_ASSET,
            'request_data': {'item': 'Monitor', 'estimated_cost': 300},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['asset'])

    def test_negative_cost_rejected(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/approvals/', {
            'request_type': Approval.TYPE_NEW_ASSET,
            'request_data': {'estimated_cost': -5},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('request_data', response.data)

    def test_disposed_asset_rejected(self):
        disposed = TestDataFactory.create_asset(status=Asset.STATUS_DISPOSED)
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/approvals/', {
            'request_type': Approval.TYPE_REPAIR, 'asset': disposed.pk,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_via_api(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/approvals/{approval.pk}/approve/', {'comments': 'Go ahead'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Approval.STATUS_APPROVED)
        self.assertIn('maintenance_id', response.data['effects'])

    def test_reject_already_decided(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset, status=Approval.STATUS_APPROVED)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/approvals/{approval.pk}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_self_decision_forbidden(self):
        approval = TestDataFactory.create_approval(self.manager, asset=self.asset)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/approvals/{approval.pk}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        approval.refresh_from_db()
        self.assertTrue(approval.is_pending)

    def test_employee_cannot_approve(self):
        approval = TestDataFactory.create_approval(self.other_employee, asset=self.asset)
        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/approvals/{approval.pk}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_withdraw_pending_only(self):
        pending = TestDataFactory.create_approval(self.employee, asset=self.asset)
        decided = TestDataFactory.create_approval(self.employee, asset=self.asset, status=Approval.STATUS_REJECTED)
        self.client.authenticate_user(self.employee)

        response = self.client.delete(f'/api/v1/approvals/{decided.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/v1/approvals/{pending.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Approval.objects.filter(pk=pending.pk).exists())

    def test_manager_cannot_withdraw_others_request(self):
        approval = TestDataFactory.create_approval(self.employee, asset=self.asset)
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/approvals/{approval.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_visibility(self):
        own = TestDataFactory.create_approval(self.employee, asset=self.asset)
        other = TestDataFactory.create_approval(self.other_employee, request_type=Approval.TYPE_OTHER)

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/approvals/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data['results']], [own.pk])
        response = self.client.get(f'/api/v1/approvals/{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/approvals/')
        self.assertEqual(response.data['count'], 2)

    def test_filters(self):
        TestDataFactory.create_approval(self.employee, asset=self.asset)
        TestDataFactory.create_approval(self.employee, request_type=Approval.TYPE_OTHER,
                                        status=Approval.STATUS_REJECTED)
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/approvals/', {'status': Approval.STATUS_REJECTED})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/approvals/', {'type': Approval.TYPE_REPAIR})
        self.assertEqual(response.data['count'], 1)

    def test_stats(self):
        TestDataFactory.create_approval(self.employee, asset=self.asset)
        TestDataFactory.create_approval(self.employee, asset=self.asset, request_type=Approval.TYPE_SCRAP,
                                        status=Approval.STATUS_APPROVED)
        TestDataFactory.create_approval(self.other_employee, request_type=Approval.TYPE_OTHER)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/approvals/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['pending'], 2)
        self.assertEqual(response.data['by_status'][Approval.STATUS_APPROVED], 1)
        self.assertEqual(response.data['by_type'][Approval.TYPE_REPAIR], 1)

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/approvals/stats/')
        self.assertEqual(response.data['total'], 2)
