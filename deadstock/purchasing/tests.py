"""
Test suite for the purchasing module
Tests: purchase order workflow, goods receipt, invoices and spend statistics
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import Notification, User
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.purchasing.models import Invoice, InvoiceItem, PurchaseOrder
from deadstock.purchasing.services import mark_overdue_invoices, receive_items, transition_order


class PurchaseOrderModelTests(TestCase):

    def setUp(self):
        self.employee = TestDataFactory.create_user()

    def test_po_number_and_totals(self):
        order = TestDataFactory.create_purchase_order(
            self.employee, items=[(2, '500.00'), (1, '250.50')],
            tax_amount=Decimal('100.00'), shipping_cost=Decimal('20.00'),
        )
        self.assertTrue(order.po_number.startswith(f'PO-{timezone.now().year}-'))
        self.assertEqual(order.subtotal, Decimal('1250.50'))
        self.assertEqual(order.total_amount, Decimal('1370.50'))

    def test_po_numbers_are_sequential(self):
        first = TestDataFactory.create_purchase_order(self.employee)
        second = TestDataFactory.create_purchase_order(self.employee)
        self.assertTrue(first.po_number.endswith('0001'))
        self.assertTrue(second.po_number.endswith('0002'))

    def test_invoice_totals_include_tax(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='approved')
        invoice = Invoice.objects.create(purchase_order=order, vendor=order.vendor,
                                         due_date=timezone.localdate() + timedelta(days=30))
        InvoiceItem.objects.create(invoice=invoice, description='Laptop', quantity=2, unit_price=Decimal('100.00'))
        invoice.recalculate_totals()
        self.assertTrue(invoice.invoice_number.startswith('INV-'))
        self.assertEqual(invoice.subtotal, Decimal('200.00'))
        self.assertEqual(invoice.tax_amount, Decimal('36.00'))
        self.assertEqual(invoice.total_amount, Decimal('236.00'))


class PurchaseServiceTests(TestCase):

    def setUp(self):
        self.employee = TestDataFactory.create_user()
        self.manager = TestDataFactory.create_manager()

    def test_submit_notifies_managers(self):
        order = TestDataFactory.create_purchase_order(self.employee)
        transition_order(order, 'pending_approval', self.employee)
        self.assertEqual(order.status, 'pending_approval')
        self.assertEqual(order.history.get().action, 'submitted')
        self.assertTrue(Notification.objects.filter(
            recipient=self.manager, title='Purchase order awaiting approval').exists())

    def test_employee_cannot_approve(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='pending_approval')
        with self.assertRaises(BusinessRuleError) as ctx:
            transition_order(order, 'approved', self.employee)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_approval_records_approver_and_notifies(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='pending_approval')
        transition_order(order, 'approved', self.manager)
        order.refresh_from_db()
        self.assertEqual(order.approved_by, self.manager)
        self.assertTrue(Notification.objects.filter(
            recipient=self.employee, title='Purchase order approved').exists())

    def test_invalid_transition(self):
        order = TestDataFactory.create_purchase_order(self.employee)
        with self.assertRaises(BusinessRuleError):
            transition_order(order, 'sent_to_vendor', self.manager)
        with self.assertRaises(BusinessRuleError):
            transition_order(order, 'draft', self.manager)

    def test_partial_then_complete_receipt(self):
        order = TestDataFactory.create_purchase_order(
            self.employee, status='sent_to_vendor', items=[(2, '500.00'), (1, '300.00')]
        )
        first, second = order.items.all()

        receive_items(order, [{'item': first.pk, 'quantity': 1}], self.manager)
        self.assertEqual(order.status, 'partially_received')
        self.assertIsNone(order.actual_delivery_date)

        with self.assertRaises(BusinessRuleError):
            receive_items(order, [{'item': first.pk, 'quantity': 2}], self.manager)

        receive_items(order, [{'item': first.pk, 'quantity': 1}, {'item': second.pk, 'quantity': 1}], self.manager)
        order.refresh_from_db()
        self.assertEqual(order.status, 'completed')
        self.assertEqual(order.actual_delivery_date, timezone.localdate())
        self.assertTrue(order.is_fully_received)
        self.assertEqual(list(order.history.values_list('action', flat=True)), ['received', 'received', 'completed'])

    def test_receive_sums_repeated_lines_for_same_item(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='sent_to_vendor', items=[(2, '100.00')])
        item = order.items.get()
        with self.assertRaises(BusinessRuleError):
            receive_items(order, [{'item': item.pk, 'quantity': 2}, {'item': item.pk, 'quantity': 2}], self.manager)
        item.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(item.quantity_received, 0)
        self.assertEqual(order.status, 'sent_to_vendor')

        receive_items(order, [{'item': item.pk, 'quantity': 1}, {'item': item.pk, 'quantity': 1}], self.manager)
        item.refresh_from_db()
        self.assertEqual(item.quantity_received, 2)
        self.assertEqual(order.status, 'completed')

    def test_receive_rejects_foreign_item_and_wrong_status(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='sent_to_vendor')
        other = TestDataFactory.create_purchase_order(self.employee, status='sent_to_vendor')
        with self.assertRaises(BusinessRuleError):
            receive_items(order, [{'item': other.items.get().pk, 'quantity': 1}], self.manager)

        draft = TestDataFactory.create_purchase_order(self.employee)
        with self.assertRaises(BusinessRuleError):
            receive_items(draft, [{'item': draft.items.get().pk, 'quantity': 1}], self.manager)

    def test_mark_overdue_invoices(self):
        order = TestDataFactory.create_purchase_order(self.employee, status='approved')
        today = timezone.localdate()
        late = Invoice.objects.create(purchase_order=order, vendor=order.vendor, status='sent',
                                      invoice_date=today - timedelta(days=40), due_date=today - timedelta(days=1))
        paid = Invoice.objects.create(purchase_order=order, vendor=order.vendor, status='paid',
                                      invoice_date=today - timedelta(days=40), due_date=today - timedelta(days=1))
        self.assertEqual(mark_overdue_invoices(today), 1)
        late.refresh_from_db()
        paid.refresh_from_db()
        self.assertEqual(late.status, 'overdue')
        self.assertEqual(paid.status, 'paid')


class PurchaseOrderAPITests(TestCase):
    """Test cases for purchase order endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.employee = TestDataFactory.create_user()
        self.manager = TestDataFactory.create_manager()
        self.auditor = TestDataFactory.create_auditor()
        self.vendor = TestDataFactory.create_vendor()

    def _payload(self, **overrides):
        payload = {
            'vendor': self.vendor.pk,
            'department': 'IT',
            'expected_delivery_date': str(timezone.localdate() + timedelta(days=10)),
            'tax_amount': '50.00',
            'shipping_cost': '25.00',
            'items': [{'description': 'Docking station', 'category': 'Accessories',
                       'quantity': 3, 'unit_price': '250.00'}],
        }
        payload.update(overrides)
        return payload

    def test_create_order(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/purchase/orders/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('750.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('825.00'))
        self.assertEqual(response.data['requested_by'], self.employee.pk)
        self.assertEqual(len(response.data['items']), 1)

    def test_create_requires_items(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/purchase/orders/', self._payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_inactive_vendor_rejected(self):
        inactive = TestDataFactory.create_vendor(is_active=False)
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/purchase/orders/', self._payload(vendor=inactive.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('vendor', response.data)

    def test_vendor_user_cannot_create(self):
        vendor_user = TestDataFactory.create_user(role=User.ROLE_VENDOR, vendor=self.vendor)
        self.client.authenticate_user(vendor_user)
        response = self.client.post('/api/v1/purchase/orders/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_replaces_items_on_draft_only(self):
        order = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor)
        self.client.authenticate_user(self.employee)
        response = self.client.patch(f'/api/v1/purchase/orders/{order.pk}/', {
            'items': [{'description': 'Monitor', 'category': 'Display', 'quantity': 1, 'unit_price': '199.99'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('199.99'))

        order.status = 'pending_approval'
        order.save()
        response = self.client.patch(f'/api/v1/purchase/orders/{order.pk}/', {'notes': 'late edit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_workflow_through_status_endpoint(self):
        order = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor)

        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/status/',
                                    {'status': 'pending_approval'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/status/',
                                    {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        for new_status in ('approved', 'sent_to_vendor'):
            response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/status/',
                                        {'status': new_status}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'sent_to_vendor')
        self.assertEqual([event['action'] for event in response.data['history']],
                         ['submitted', 'approved', 'sent'])

        response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/status/',
                                    {'status': 'sent_to_vendor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_receive_endpoint(self):
        order = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor, status='sent_to_vendor')
        item = order.items.get()

        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/receive/',
                                    {'items': [{'item': item.pk, 'quantity': 2}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/purchase/orders/{order.pk}/receive/',
                                    {'items': [{'item': item.pk, 'quantity': 2}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['items'][0]['quantity_outstanding'], 0)

    def test_delete_draft_only(self):
        draft = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor)
        approved = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor, status='approved')
        self.client.authenticate_user(self.employee)
        response = self.client.delete(f'/api/v1/purchase/orders/{approved.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v1/purchase/orders/{draft.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_visibility(self):
        own = TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor)
        sent = TestDataFactory.create_purchase_order(self.manager, vendor=self.vendor, status='sent_to_vendor')

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/purchase/orders/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.pk])

        vendor_user = TestDataFactory.create_user(role=User.ROLE_VENDOR, vendor=self.vendor)
        self.client.authenticate_user(vendor_user)
        response = self.client.get('/api/v1/purchase/orders/')
        self.assertEqual([row['id'] for row in response.data['results']], [sent.pk])

        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/purchase/orders/', {'status': 'draft,sent_to_vendor'})
        self.assertEqual(response.data['count'], 2)

    def test_stats(self):
        TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor, status='completed')
        TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor, status='pending_approval')
        TestDataFactory.create_purchase_order(self.employee, vendor=self.vendor, status='cancelled')

        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/purchase/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/purchase/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 3)
        self.assertEqual(response.data['pending_approval'], 1)
        self.assertEqual(response.data['open_orders'], 1)
        self.assertEqual(response.data['total_value'], Decimal('2000.00'))
        self.assertEqual(response.data['completed_spend'], Decimal('1000.00'))


class InvoiceAPITests(TestCase):
    """Test cases for invoice endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.employee = TestDataFactory.create_user()
        self.manager = TestDataFactory.create_manager()
        self.order = TestDataFactory.create_purchase_order(self.employee, status='approved')

    def _payload(self, **overrides):
        today = timezone.localdate()
        payload = {
            'purchase_order': self.order.pk,
            'invoice_date': str(today),
            'due_date': str(today + timedelta(days=30)),
            'items': [{'description': 'Laptop', 'quantity': 2, 'unit_price': '100.00'}],
        }
        payload.update(overrides)
        return payload

    def test_create_invoice(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/purchase/invoices/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['vendor'], self.order.vendor_id)
        self.assertEqual(response.data['po_number'], self.order.po_number)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('236.00'))
        self.assertFalse(response.data['is_overdue'])

    def test_employee_cannot_record_invoice(self):
        self.client.authenticate_user(self.employee)
        response = self.client.post('/api/v1/purchase/invoices/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invoice_validation(self):
        self.client.authenticate_user(self.manager)
        draft_order = TestDataFactory.create_purchase_order(self.employee)
        response = self.client.post('/api/v1/purchase/invoices/', self._payload(purchase_order=draft_order.pk),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('purchase_order', response.data)

        today = timezone.localdate()
        response = self.client.post('/api/v1/purchase/invoices/',
                                    self._payload(due_date=str(today - timedelta(days=1))), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('due_date', response.data)

        other_vendor = TestDataFactory.create_vendor()
        response = self.client.post('/api/v1/purchase/invoices/', self._payload(vendor=other_vendor.pk),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('vendor', response.data)

    def test_payment_flow(self):
        invoice = Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor,
                                         due_date=timezone.localdate() + timedelta(days=30))
        self.client.authenticate_user(self.manager)

        response = self.client.post(f'/api/v1/purchase/invoices/{invoice.pk}/status/', {'status': 'paid'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        for new_status in ('received', 'approved'):
            response = self.client.post(f'/api/v1/purchase/invoices/{invoice.pk}/status/',
                                        {'status': new_status}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['approved_by'], self.manager.pk)

        response = self.client.post(f'/api/v1/purchase/invoices/{invoice.pk}/status/', {
            'status': 'paid', 'payment_reference': 'UTR-42', 'payment_method': 'upi',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'paid')
        self.assertEqual(response.data['payment_reference'], 'UTR-42')
        self.assertEqual(response.data['payment_date'], str(timezone.localdate()))

    def test_delete_only_draft_or_cancelled(self):
        invoice = Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor, status='approved',
                                         due_date=timezone.localdate() + timedelta(days=30))
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/purchase/invoices/{invoice.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        invoice.status = 'cancelled'
        invoice.save()
        response = self.client.delete(f'/api/v1/purchase/invoices/{invoice.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_employee_sees_no_invoices(self):
        Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor,
                               due_date=timezone.localdate() + timedelta(days=30))
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/purchase/invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

    def test_invoice_stats(self):
        today = timezone.localdate()
        Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor, status='approved',
                               total_amount=Decimal('500.00'), invoice_date=today - timedelta(days=40),
                               due_date=today - timedelta(days=5))
        Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor, status='sent',
                               total_amount=Decimal('300.00'), due_date=today + timedelta(days=10))
        Invoice.objects.create(purchase_order=self.order, vendor=self.order.vendor, status='paid',
                               total_amount=Decimal('200.00'), payment_date=today, due_date=today)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/purchase/invoices/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['outstanding']['count'], 2)
        self.assertEqual(response.data['outstanding']['amount'], Decimal('800.00'))
        self.assertEqual(response.data['overdue']['count'], 1)
        self.assertEqual(response.data['due_next_30_days'], Decimal('300.00'))
        self.assertEqual(response.data['paid_this_month'], Decimal('200.00'))
        self.assertEqual(response.data['total_invoiced'], Decimal('1000.00'))
