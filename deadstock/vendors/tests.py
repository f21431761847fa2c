"""
Test suite for the vendors module
Tests: vendor codes, CRUD permissions, deactivation and performance figures
"""
from decimal import Decimal
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.core.models import AuditLog, User
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.vendors.models import Vendor


class VendorModelTests(TestCase):

    def test_vendor_code_generated(self):
        first = TestDataFactory.create_vendor()
        second = TestDataFactory.create_vendor()
        self.assertEqual(first.vendor_code, 'VEN-0001')
        self.assertEqual(second.vendor_code, 'VEN-0002')

    def test_explicit_code_kept(self):
        vendor = TestDataFactory.create_vendor(vendor_code='ACME-01')
        self.assertEqual(vendor.vendor_code, 'ACME-01')

    def test_address(self):
        vendor = TestDataFactory.create_vendor(street='1 Main St', city='Pune')
        self.assertEqual(vendor.address['city'], 'Pune')
        self.assertEqual(vendor.address['country'], 'India')


class VendorAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.auditor = TestDataFactory.create_auditor()
        self.employee = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_manager_creates_vendor(self):
        self.client.authenticate_user(self.manager)
        data = {'company_name': 'Acme Corp', 'vendor_code': 'acme', 'email': 'sales@acme.test',
                'categories': ['Laptop', 'Printer']}
        response = self.client.post('/api/v1/vendors/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['vendor_code'], 'ACME')
        self.assertTrue(AuditLog.objects.filter(entity_type='Vendor', action='create').exists())

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_vendor(vendor_code='DUP')
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/vendors/', {'company_name': 'Other', 'vendor_code': 'dup'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('vendor_code', response.data)

    def test_categories_must_be_list(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/vendors/', {'company_name': 'Bad', 'categories': 'Laptop'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_auditor_reads_but_cannot_write(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.auditor)
        self.assertEqual(self.client.get('/api/v1/vendors/').status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/vendors/{vendor.pk}/', {'rating': '4.5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_cannot_list(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/vendors/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_vendor_user_sees_own_record(self):
        vendor = TestDataFactory.create_vendor()
        other = TestDataFactory.create_vendor()
        vendor_user = TestDataFactory.create_user(role=User.ROLE_VENDOR, vendor=vendor)
        self.client.authenticate_user(vendor_user)
        self.assertEqual(self.client.get(f'/api/v1/vendors/{vendor.pk}/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(f'/api/v1/vendors/{other.pk}/').status_code, status.HTTP_403_FORBIDDEN)

    def test_filters(self):
        TestDataFactory.create_vendor(company_name='Alpha', categories=['Laptop'])
        TestDataFactory.create_vendor(company_name='Beta', is_active=False, categories=['Furniture'])
        self.client.authenticate_user(self.manager)

        response = self.client.get('/api/v1/vendors/', {'is_active': 'true'})
        self.assertEqual([v['company_name'] for v in response.data['results']], ['Alpha'])
        response = self.client.get('/api/v1/vendors/', {'category': 'Furniture'})
        self.assertEqual([v['company_name'] for v in response.data['results']], ['Beta'])

    def test_delete_without_orders(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/vendors/{vendor.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Vendor.objects.filter(pk=vendor.pk).exists())

    def test_delete_with_orders_deactivates(self):
        vendor = TestDataFactory.create_vendor()
        TestDataFactory.create_purchase_order(self.manager, vendor=vendor)
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/vendors/{vendor.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        vendor.refresh_from_db()
        self.assertFalse(vendor.is_active)


class VendorPerformanceTests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.vendor = TestDataFactory.create_vendor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_performance_figures(self):
        today = timezone.localdate()
        on_time = TestDataFactory.create_purchase_order(self.manager, vendor=self.vendor, status='completed',
                                                        expected_delivery_date=today)
        on_time.actual_delivery_date = today - timedelta(days=1)
        on_time.save()
        late = TestDataFactory.create_purchase_order(self.manager, vendor=self.vendor, status='completed',
                                                     expected_delivery_date=today - timedelta(days=5))
        late.actual_delivery_date = today
        late.save()
        TestDataFactory.create_purchase_order(self.manager, vendor=self.vendor, status='draft')
        asset = TestDataFactory.create_asset(vendor=self.vendor)
        TestDataFactory.create_maintenance(asset, vendor=self.vendor, cost=Decimal('250.00'))

        response = self.client.get(f'/api/v1/vendors/{self.vendor.pk}/performance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['orders']['total'], 3)
        self.assertEqual(response.data['orders']['completed'], 2)
        self.assertEqual(response.data['orders']['open'], 1)
        self.assertEqual(response.data['on_time_delivery_rate'], 50.0)
        self.assertEqual(response.data['total_spend'], Decimal('2000.00'))
        self.assertEqual(response.data['maintenance_jobs']['total_cost'], Decimal('250.00'))
        self.assertEqual(response.data['assets_supplied'], 1)

    def test_stats(self):
        TestDataFactory.create_vendor(is_active=False, vendor_type='service')
        response = self.client.get('/api/v1/vendors/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['inactive'], 1)
        self.assertEqual(response.data['by_type']['service'], 1)
