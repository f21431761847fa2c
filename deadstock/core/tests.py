"""
Test suite for the core module
Tests: authentication, users, audit log, notifications, settings and search
"""
from datetime import date, timedelta

from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from deadstock.core.cache_utils import cached_query, invalidate_dashboard_cache
from deadstock.core.models import AuditLog, Notification, SettingsHistory, SystemSettings, User
from deadstock.core.notifications import notify_managers, notify_users, send_email_notification
from deadstock.core.permissions import has_role, is_manager
from deadstock.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from deadstock.core.utils import add_months, create_audit_log


class UtilityTests(TestCase):
    """Test shared helpers"""

    def test_add_months_clamps_to_month_end(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2023, 1, 31), 1), date(2023, 2, 28))

    def test_add_months_negative(self):
        self.assertEqual(add_months(date(2024, 3, 15), -3), date(2023, 12, 15))

    def test_create_audit_log_without_request(self):
        log = create_audit_log(action='lifecycle_run', entity_type='Lifecycle', entity_id='cron',
                               description='nightly run')
        self.assertEqual(log.action, 'lifecycle_run')
        self.assertIsNone(log.user)
        self.assertEqual(log.entity_id, 'cron')

    def test_has_role_superuser(self):
        user = TestDataFactory.create_user(is_superuser=True)
        self.assertTrue(has_role(user, User.ROLE_AUDITOR))
        self.assertTrue(is_manager(user))

    def test_superuser_is_admin(self):
        user = TestDataFactory.create_user(role=User.ROLE_EMPLOYEE, is_superuser=True)
        self.assertEqual(user.role, User.ROLE_ADMIN)


class NotificationHelperTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()

    def test_notify_users_skips_duplicates_and_inactive(self):
        inactive = TestDataFactory.create_user(is_active=False)
        created = notify_users([self.employee, self.employee, inactive, None], 'Hello', 'World')
        self.assertEqual(len(created), 1)
        self.assertEqual(Notification.objects.filter(recipient=self.employee).count(), 1)
        self.assertFalse(Notification.objects.filter(recipient=inactive).exists())

    def test_notify_managers(self):
        notify_managers('Low stock', 'Something needs attention', type='warning')
        recipients = set(Notification.objects.values_list('recipient_id', flat=True))
        self.assertEqual(recipients, {self.admin.pk, self.manager.pk})

    def test_send_email_notification(self):
        sent = send_email_notification([self.employee, self.manager], 'Subject', 'Body')
        self.assertEqual(sent, 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(sorted(mail.outbox[0].to), sorted([self.employee.email, self.manager.email]))


class CacheUtilsTests(TestCase):

    def test_cached_query_and_invalidation(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix='dashboard')
        def expensive(value):
            calls.append(value)
            return value * 2

        self.assertEqual(expensive(2), 4)
        self.assertEqual(expensive(2), 4)
        self.assertEqual(len(calls), 1)

        invalidate_dashboard_cache()
        self.assertEqual(expensive(2), 4)
        self.assertEqual(len(calls), 2)


class AuthAPITests(TestCase):
    """Test registration, login and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_creates_employee(self):
        data = {
            'email': 'new.person@test.com',
            'password': 'Str0ng!Passw0rd',
            'password_confirm': 'Str0ng!Passw0rd',
            'name': 'New Person',
            'role': User.ROLE_ADMIN,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        user = User.objects.get(email='new.person@test.com')
        self.assertEqual(user.role, User.ROLE_EMPLOYEE)
        self.assertTrue(AuditLog.objects.filter(action='register', entity_id=str(user.pk)).exists())

    def test_register_password_mismatch(self):
        data = {
            'email': 'mismatch@test.com',
            'password': 'Str0ng!Passw0rd',
            'password_confirm': 'Different!Passw0rd',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_tokens_and_user(self):
        user = TestDataFactory.create_manager(password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'email': user.email, 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_INVENTORY_MANAGER)
        self.assertTrue(AuditLog.objects.filter(action='login', user=user).exists())

    def test_login_wrong_password(self):
        user = TestDataFactory.create_user()
        response = self.client.post('/api/v1/auth/login/', {'email': user.email, 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_capabilities(self):
        user = TestDataFactory.create_auditor()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_audit'])
        self.assertFalse(response.data['can_manage_users'])
        self.assertEqual(response.data['dashboard'], 'auditor')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.employee = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_admin_lists_users_paginated(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/users/', {'role': User.ROLE_EMPLOYEE})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertIn('total_pages', response.data)

    def test_employee_cannot_list_users(self):
        self.client.authenticate_user(self.employee)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_user_with_role(self):
        self.client.authenticate_user(self.admin)
        data = {
            'email': 'auditor@test.com',
            'password': 'Str0ng!Passw0rd',
            'password_confirm': 'Str0ng!Passw0rd',
            'role': User.ROLE_AUDITOR,
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email='auditor@test.com').role, User.ROLE_AUDITOR)

    def test_self_patch_allowed_other_user_forbidden(self):
        self.client.authenticate_user(self.employee)
        response = self.client.patch(f'/api/v1/users/{self.employee.pk}/', {'phone': '5551234'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(f'/api/v1/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_cannot_delete_self(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_deletes_user(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/users/{self.employee.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.employee.pk).exists())


class AuditLogAPITests(TestCase):

    def setUp(self):
        self.auditor = TestDataFactory.create_auditor()
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        create_audit_log(action='create', entity_type='Asset', entity_id=1, user=self.manager,
                         description='Created asset')
        create_audit_log(action='delete', entity_type='Asset', entity_id=1, user=self.manager,
                         description='Deleted asset', severity='warning')

    def test_auditor_lists_and_filters(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/audit-logs/', {'severity': 'warning'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'delete')

    def test_stats(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/audit-logs/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['by_action']['create'], 1)
        self.assertEqual(response.data['by_entity_type']['Asset'], 2)

    def test_export_csv(self):
        self.client.authenticate_user(self.auditor)
        response = self.client.get('/api/v1/audit-logs/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('Deleted asset', response.content.decode())

    def test_manager_forbidden(self):
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class NotificationAPITests(TestCase):

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.employee = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_manager_sends_to_role(self):
        self.client.authenticate_user(self.manager)
        data = {'title': 'Audit week', 'message': 'Keep assets at desks', 'roles': [User.ROLE_EMPLOYEE]}
        response = self.client.post('/api/v1/notifications/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sent'], 1)
        self.assertTrue(Notification.objects.filter(recipient=self.employee, title='Audit week').exists())

    def test_employee_cannot_send(self):
        self.client.authenticate_user(self.employee)
        data = {'title': 'x', 'message': 'y', 'roles': [User.ROLE_EMPLOYEE]}
        response = self.client.post('/api/v1/notifications/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_expired_notifications_hidden_and_read_flow(self):
        notify_users([self.employee], 'Current', 'visible')
        notify_users([self.employee], 'Old', 'hidden', expires_at=timezone.now() - timedelta(days=1))
        self.client.authenticate_user(self.employee)

        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['unread_count'], 1)

        notification = Notification.objects.get(recipient=self.employee, title='Current')
        response = self.client.post(f'/api/v1/notifications/{notification.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

        response = self.client.delete('/api/v1/notifications/clear-read/')
        self.assertEqual(response.data['deleted'], 1)

    def test_cannot_read_someone_elses_notification(self):
        notify_users([self.manager], 'Private', 'for managers')
        notification = Notification.objects.get(recipient=self.manager)
        self.client.authenticate_user(self.employee)
        response = self.client.post(f'/api/v1/notifications/{notification.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SettingsAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_returns_defaults(self):
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['lifecycle']['maxAgeYears'], 5)

    def test_update_merges_and_records_history(self):
        response = self.client.patch('/api/v1/settings/lifecycle/', {'maxAgeYears': 7}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['maxAgeYears'], 7)
        self.assertEqual(response.data['daysInDeadStock'], 90)
        self.assertEqual(SystemSettings.load().get_section('lifecycle')['maxAgeYears'], 7)
        self.assertEqual(SettingsHistory.objects.filter(section='lifecycle').count(), 1)

    def test_update_rejects_invalid_values(self):
        response = self.client.patch('/api/v1/settings/security/', {'sessionTimeout': 1, 'bogus': True},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sessionTimeout', response.data['errors'])
        self.assertIn('bogus', response.data['errors'])

    def test_update_rejects_bad_types_and_choices(self):
        response = self.client.patch('/api/v1/settings/email/',
                                     {'fromEmail': 'not-an-email', 'smtpPort': 70000}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('fromEmail', response.data['errors'])
        self.assertIn('smtpPort', response.data['errors'])

        response = self.client.patch('/api/v1/settings/database/',
                                     {'backupFrequency': 'hourly', 'connectionPoolSize': 'many'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('backupFrequency', response.data['errors'])
        self.assertIn('connectionPoolSize', response.data['errors'])
        self.assertEqual(SystemSettings.load().get_section('database')['backupFrequency'], 'daily')

    def test_secret_is_masked(self):
        self.client.patch('/api/v1/settings/email/', {'smtpPassword': 'hunter2'}, format='json')
        response = self.client.get('/api/v1/settings/email/')
        self.assertEqual(response.data['smtpPassword'], '********')

        # sending the mask back leaves the stored password alone
        self.client.patch('/api/v1/settings/email/', {'smtpPassword': '********', 'smtpPort': 465}, format='json')
        stored = SystemSettings.load().get_section('email')
        self.assertEqual(stored['smtpPassword'], 'hunter2')
        self.assertEqual(stored['smtpPort'], 465)

    def test_reset_section(self):
        self.client.patch('/api/v1/settings/lifecycle/', {'maxAgeYears': 9}, format='json')
        response = self.client.post('/api/v1/settings/reset/lifecycle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['maxAgeYears'], 5)

    def test_unknown_section(self):
        response = self.client.get('/api/v1/settings/nope/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class GlobalSearchTests(TestCase):

    def test_employee_sees_only_own_assets(self):
        employee = TestDataFactory.create_user()
        mine = TestDataFactory.create_asset(manufacturer='Lenovo', assigned_user=employee)
        TestDataFactory.create_asset(manufacturer='Lenovo')
        TestDataFactory.create_vendor(company_name='Lenovo Supplies')

        client = AuthenticatedAPIClient()
        client.authenticate_user(employee)
        response = client.get('/api/v1/search/', {'q': 'Lenovo'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([a['id'] for a in response.data['assets']], [mine.pk])
        self.assertEqual(response.data['vendors'], [])

    def test_empty_query(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/search/')
        self.assertEqual(response.data['assets'], [])
