"""
Test utilities and factories for creating test data
"""
import random
import string
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from deadstock.approvals.models import Approval
from deadstock.assets.models import Asset, AssetCategory
from deadstock.audits.models import ScheduledAudit
from deadstock.maintenance.models import Maintenance
from deadstock.purchasing.models import PurchaseOrder, PurchaseOrderItem
from deadstock.vendors.models import Vendor

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(role=User.ROLE_EMPLOYEE, username=None, email=None, password='testpass123',
                    is_superuser=False, **extra):
        """Create a test user with an application role"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username.lower()}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_superuser=is_superuser,
            **extra
        )

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_ADMIN, **kwargs)

    @staticmethod
    def create_manager(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_INVENTORY_MANAGER, **kwargs)

    @staticmethod
    def create_auditor(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_AUDITOR, **kwargs)

    @staticmethod
    def create_vendor(company_name=None, is_active=True, **extra):
        """Create a test vendor"""
        if not company_name:
            company_name = f'Vendor_{TestDataFactory.random_string(6)}'
        return Vendor.objects.create(
            company_name=company_name,
            email=f'{company_name.lower()}@vendor.test',
            is_active=is_active,
            **extra
        )

    @staticmethod
    def create_category(name=None, depreciation_rate=Decimal('20.00'), **extra):
        """Create a test asset category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return AssetCategory.objects.create(
            name=name,
            description=f'Test category {name}',
            depreciation_rate=depreciation_rate,
            **extra
        )

    @staticmethod
    def create_asset(asset_type='Laptop', location='HQ', department='IT', status=Asset.STATUS_AVAILABLE,
                     condition='good', purchase_cost=Decimal('1000.00'), purchase_date=None, **extra):
        """Create a test asset"""
        if purchase_date is None:
            purchase_date = timezone.localdate() - timedelta(days=30)
        return Asset.objects.create(
            manufacturer=extra.pop('manufacturer', 'Dell'),
            model=extra.pop('model', f'Model_{TestDataFactory.random_string(4)}'),
            serial_number=extra.pop('serial_number', f'SN{TestDataFactory.random_string(8)}'),
            asset_type=asset_type,
            location=location,
            department=department,
            status=status,
            condition=condition,
            purchase_cost=purchase_cost,
            purchase_date=purchase_date,
            **extra
        )

    @staticmethod
    def create_maintenance(asset, status=Maintenance.STATUS_SCHEDULED, maintenance_date=None,
                           cost=Decimal('100.00'), **extra):
        """Create a test maintenance record"""
        return Maintenance.objects.create(
            asset=asset,
            maintenance_type=extra.pop('maintenance_type', 'Preventive'),
            maintenance_date=maintenance_date or timezone.localdate() + timedelta(days=3),
            status=status,
            cost=cost,
            **extra
        )

    @staticmethod
    def create_approval(requested_by, asset=None, request_type=Approval.TYPE_REPAIR, **extra):
        """Create a pending approval request"""
        return Approval.objects.create(
            request_type=request_type,
            asset=asset,
            requested_by=requested_by,
            comments=extra.pop('comments', 'Test request'),
            **extra
        )

    @staticmethod
    def create_purchase_order(requested_by, vendor=None, status='draft', items=None, **extra):
        """
        Create a purchase order with line items.

        ``items`` is a list of (quantity, unit_price) tuples; one line of
        2 x 500.00 is added by default.
        """
        if vendor is None:
            vendor = TestDataFactory.create_vendor()
        order = PurchaseOrder.objects.create(
            vendor=vendor,
            requested_by=requested_by,
            department=extra.pop('department', 'IT'),
            status=status,
            expected_delivery_date=extra.pop('expected_delivery_date', timezone.localdate() + timedelta(days=14)),
            **extra
        )
        for quantity, unit_price in items or [(2, Decimal('500.00'))]:
            PurchaseOrderItem.objects.create(
                purchase_order=order,
                description=f'Item_{TestDataFactory.random_string(4)}',
                category='Laptop',
                quantity=quantity,
                unit_price=Decimal(unit_price),
            )
        order.recalculate_totals()
        return order

    @staticmethod
    def create_scheduled_audit(created_by, scope_type='all', scope_config=None, recurrence_type='monthly',
                               start_date=None, auditors=None, **extra):
        """Create an active scheduled audit due today"""
        start_date = start_date or timezone.localdate()
        audit = ScheduledAudit.objects.create(
            name=extra.pop('name', f'Audit_{TestDataFactory.random_string(6)}'),
            recurrence_type=recurrence_type,
            start_date=start_date,
            next_run_date=extra.pop('next_run_date', start_date),
            scope_type=scope_type,
            scope_config=scope_config or {},
            created_by=created_by,
            **extra
        )
        if auditors:
            audit.assigned_auditors.set(auditors)
        return audit


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
