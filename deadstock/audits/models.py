from django.db import models

from deadstock.core.models import User
from deadstock.assets.models import Asset


class ScheduledAudit(models.Model):
    """Recurring physical verification of a set of assets"""
    RECURRENCE_CHOICES = [
        ('once', 'Once'),
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('yearly', 'Yearly'),
    ]

    AUDIT_TYPE_CHOICES = [
        ('full', 'Full'),
        ('partial', 'Partial'),
        ('spot_check', 'Spot Check'),
        ('condition', 'Condition'),
        ('location', 'Location'),
    ]

    SCOPE_CHOICES = [
        ('all', 'All Assets'),
        ('department', 'Department'),
        ('location', 'Location'),
        ('category', 'Category'),
        ('custom_filter', 'Custom Filter'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_PAUSED = 'paused'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PAUSED, 'Paused'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    recurrence_type = models.CharField(max_length=10, choices=RECURRENCE_CHOICES)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    next_run_date = models.DateField(null=True, blank=True)
    last_run_date = models.DateTimeField(null=True, blank=True)
    audit_type = models.CharField(max_length=20, choices=AUDIT_TYPE_CHOICES, default='full')
    scope_type = models.CharField(max_length=20, choices=SCOPE_CHOICES)
    scope_config = models.JSONField(default=dict, blank=True)
    assigned_auditors = models.ManyToManyField(User, blank=True, related_name='scheduled_audits')
    notification_recipients = models.ManyToManyField(User, blank=True, related_name='audit_notifications')
    auto_assign = models.BooleanField(default=True)
    reminder_enabled = models.BooleanField(default=True)
    reminder_days_before = models.PositiveIntegerField(default=1)
    reminder_send_email = models.BooleanField(default=True)
    reminder_send_notification = models.BooleanField(default=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    total_runs = models.PositiveIntegerField(default=0)
    completed_runs = models.PositiveIntegerField(default=0)
    failed_runs = models.PositiveIntegerField(default=0)
    checklist_items = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='scheduled_audits_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.recurrence_type})"

    class Meta:
        db_table = 'scheduled_audits'
        ordering = ['next_run_date', 'name']
        indexes = [
            models.Index(fields=['status', 'next_run_date'], name='idx_sched_audit_due'),
        ]


class ScheduledAuditRun(models.Model):
    """One execution of a scheduled audit"""
    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS)

    scheduled_audit = models.ForeignKey(ScheduledAudit, on_delete=models.CASCADE, related_name='runs')
    run_date = models.DateTimeField()
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default=STATUS_PENDING)
    assets_to_audit = models.ManyToManyField(Asset, blank=True, related_name='scheduled_audit_runs')
    total_assets = models.PositiveIntegerField(default=0)
    assigned_auditors = models.ManyToManyField(User, blank=True, related_name='audit_runs_assigned')
    assets_found = models.PositiveIntegerField(default=0)
    assets_not_found = models.PositiveIntegerField(default=0)
    assets_damaged = models.PositiveIntegerField(default=0)
    assets_missing = models.PositiveIntegerField(default=0)
    completion_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    summary_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.scheduled_audit.name} @ {self.run_date:%Y-%m-%d}"

    @property
    def audited_count(self):
        return self.assets_found + self.assets_not_found + self.assets_damaged + self.assets_missing

    class Meta:
        db_table = 'scheduled_audit_runs'
        ordering = ['-run_date']
        indexes = [
            models.Index(fields=['scheduled_audit', 'status'], name='idx_audit_run_status'),
            models.Index(fields=['-run_date'], name='idx_audit_run_date'),
        ]


class AuditRunEntry(models.Model):
    """Result of auditing one asset within a run"""
    STATUS_CHOICES = [
        ('found', 'Found'),
        ('not_found', 'Not Found'),
        ('damaged', 'Damaged'),
        ('missing', 'Missing'),
    ]

    run = models.ForeignKey(ScheduledAuditRun, on_delete=models.CASCADE, related_name='entries')
    asset = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='audit_entries')
    audited_at = models.DateTimeField(auto_now_add=True)
    audited_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_entries')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    condition = models.CharField(max_length=10, choices=Asset.CONDITION_CHOICES, blank=True)
    location = models.CharField(max_length=150, blank=True)
    notes = models.TextField(blank=True)
    checklist_responses = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = 'audit_run_entries'
        ordering = ['audited_at']
        constraints = [
            models.UniqueConstraint(fields=['run', 'asset'], name='uniq_audit_entry_per_run'),
        ]
