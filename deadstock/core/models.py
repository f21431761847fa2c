import copy

from django.contrib.auth.models import AbstractUser
from django.db import models

from .settings_schema import SECTION_DEFAULTS


class User(AbstractUser):
    """Register user with an application role"""
    ROLE_ADMIN = 'ADMIN'
    ROLE_INVENTORY_MANAGER = 'INVENTORY_MANAGER'
    ROLE_EMPLOYEE = 'EMPLOYEE'
    ROLE_AUDITOR = 'AUDITOR'
    ROLE_VENDOR = 'VENDOR'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_INVENTORY_MANAGER, 'Inventory Manager'),
        (ROLE_EMPLOYEE, 'Employee'),
        (ROLE_AUDITOR, 'Auditor'),
        (ROLE_VENDOR, 'Vendor'),
    ]

    DEPARTMENT_CHOICES = [
        ('INVENTORY', 'Inventory'),
        ('IT', 'IT'),
        ('ADMIN', 'Admin'),
        ('VENDOR', 'Vendor'),
    ]

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_EMPLOYEE)
    department = models.CharField(max_length=20, choices=DEPARTMENT_CHOICES, default='INVENTORY')
    employee_id = models.CharField(max_length=50, unique=True, blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    vendor = models.ForeignKey(
        'vendors.Vendor', on_delete=models.SET_NULL, null=True, blank=True, related_name='users'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    def __str__(self):
        return self.name or self.email

    def save(self, *args, **kwargs):
        if not self.name:
            self.name = f"{self.first_name} {self.last_name}".strip() or self.username
        if self.is_superuser and self.role != self.ROLE_ADMIN:
            self.role = self.ROLE_ADMIN
        super().save(*args, **kwargs)

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_manager(self):
        """Admins and inventory managers run the register"""
        return self.role in (self.ROLE_ADMIN, self.ROLE_INVENTORY_MANAGER)

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['role'], name='idx_user_role'),
            models.Index(fields=['department'], name='idx_user_department'),
        ]


class AuditLog(models.Model):
    """Audit trail entry for an action taken on a register entity"""
    SEVERITY_CHOICES = [
        ('info', 'Info'),
        ('warning', 'Warning'),
        ('error', 'Error'),
        ('critical', 'Critical'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    action = models.CharField(max_length=60)
    entity_type = models.CharField(max_length=60, blank=True)
    entity_id = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='info')
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['-timestamp'], name='idx_auditlog_ts'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_auditlog_entity'),
            models.Index(fields=['user', 'action'], name='idx_auditlog_user_action'),
            models.Index(fields=['severity'], name='idx_auditlog_severity'),
        ]


class Notification(models.Model):
    """In-app notification for a single recipient"""
    TYPE_CHOICES = [
        ('info', 'Info'),
        ('warning', 'Warning'),
        ('error', 'Error'),
        ('success', 'Success'),
        ('maintenance', 'Maintenance'),
        ('audit', 'Audit'),
        ('approval', 'Approval'),
        ('asset_assigned', 'Asset Assigned'),
        ('asset_returned', 'Asset Returned'),
        ('warranty_expiring', 'Warranty Expiring'),
        ('system', 'System'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    sender = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_notifications')
    title = models.CharField(max_length=200)
    message = models.CharField(max_length=1000)
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, default='info')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    data = models.JSONField(null=True, blank=True)
    action_url = models.CharField(max_length=255, blank=True, null=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='idx_notif_recipient_read'),
            models.Index(fields=['-created_at'], name='idx_notif_created'),
        ]


class SystemSettings(models.Model):
    """Singleton row holding runtime-editable configuration sections"""
    security = models.JSONField(default=dict, blank=True)
    database = models.JSONField(default=dict, blank=True)
    email = models.JSONField(default=dict, blank=True)
    application = models.JSONField(default=dict, blank=True)
    lifecycle = models.JSONField(default=dict, blank=True)
    last_modified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    SECTIONS = tuple(SECTION_DEFAULTS.keys())

    def __str__(self):
        return 'System settings'

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        """Return the settings row, creating it with defaults on first use"""
        obj, created = cls.objects.get_or_create(
            pk=1,
            defaults={section: copy.deepcopy(values) for section, values in SECTION_DEFAULTS.items()},
        )
        return obj

    def get_section(self, section):
        """Stored values layered over the defaults"""
        merged = copy.deepcopy(SECTION_DEFAULTS[section])
        merged.update(getattr(self, section) or {})
        return merged

    class Meta:
        db_table = 'system_settings'


class SettingsHistory(models.Model):
    """One change to one settings section"""
    section = models.CharField(max_length=30)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='settings_changes')
    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.section} @ {self.changed_at:%Y-%m-%d %H:%M}"

    class Meta:
        db_table = 'settings_history'
        ordering = ['-changed_at']
        verbose_name_plural = 'settings history'
