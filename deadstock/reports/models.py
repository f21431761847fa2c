import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from deadstock.core.models import User

FORMAT_CHOICES = [
    ('PDF', 'PDF'),
    ('CSV', 'CSV'),
    ('JSON', 'JSON'),
]

KIND_CHOICES = [
    ('asset_inventory', 'Asset Inventory'),
    ('asset_utilization', 'Asset Utilization'),
    ('maintenance_cost', 'Maintenance Cost'),
    ('vendor_performance', 'Vendor Performance'),
    ('depreciation', 'Depreciation'),
    ('audit_compliance', 'Audit Compliance'),
    ('asset_movement', 'Asset Movement'),
    ('disposal', 'Disposal'),
    ('user_activity', 'User Activity'),
]


class ReportTemplate(models.Model):
    """Report definition users generate reports from"""
    CATEGORY_CHOICES = [
        ('Inventory', 'Inventory'),
        ('Analytics', 'Analytics'),
        ('Financial', 'Financial'),
        ('Vendor', 'Vendor'),
        ('Compliance', 'Compliance'),
        ('Tracking', 'Tracking'),
        ('System', 'System'),
    ]

    FREQUENCY_CHOICES = [
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('yearly', 'Yearly'),
        ('on-demand', 'On Demand'),
    ]

    TYPE_CHOICES = [
        ('summary', 'Summary'),
        ('detailed', 'Detailed'),
        ('analytics', 'Analytics'),
        ('compliance', 'Compliance'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('archived', 'Archived'),
    ]

    template_id = models.CharField(max_length=20, unique=True, blank=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default='on-demand')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='summary')
    kind = models.CharField(max_length=30, choices=KIND_CHOICES)
    parameters = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    formats = models.JSONField(default=list, blank=True)
    is_scheduled = models.BooleanField(default=False)
    last_generated = models.DateTimeField(null=True, blank=True)
    generation_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='report_templates')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.template_id} {self.name}"

    def save(self, *args, **kwargs):
        if not self.template_id:
            number = ReportTemplate.objects.count() + 1
            while ReportTemplate.objects.filter(template_id=f"RPT-{number:03d}").exists():
                number += 1
            self.template_id = f"RPT-{number:03d}"
        if not self.formats:
            self.formats = ['PDF', 'CSV', 'JSON']
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'report_templates'
        ordering = ['template_id']


def generate_report_id():
    return f"RPT-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def report_upload_to(instance, filename):
    return f"{settings.REPORTS_UPLOAD_DIR}/{timezone.now():%Y/%m}/{filename}"


class GeneratedReport(models.Model):
    STATUS_CHOICES = [
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]

    report_id = models.CharField(max_length=30, unique=True, default=generate_report_id)
    template = models.ForeignKey(ReportTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='generated_reports')
    report_name = models.CharField(max_length=200)
    category = models.CharField(max_length=20, blank=True)
    generated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='generated_reports')
    generated_at = models.DateTimeField(auto_now_add=True)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default='processing')
    format = models.CharField(max_length=4, choices=FORMAT_CHOICES)
    file = models.FileField(upload_to=report_upload_to, blank=True)
    file_size = models.PositiveIntegerField(default=0)
    download_count = models.PositiveIntegerField(default=0)
    last_downloaded = models.DateTimeField(null=True, blank=True)
    parameters = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True)
    total_records = models.PositiveIntegerField(default=0)
    date_from = models.DateField(null=True, blank=True)
    date_to = models.DateField(null=True, blank=True)

    def __str__(self):
        return self.report_id

    @property
    def file_extension(self):
        return self.format.lower()

    class Meta:
        db_table = 'generated_reports'
        ordering = ['-generated_at']
        indexes = [
            models.Index(fields=['status', 'category'], name='idx_report_status_category'),
            models.Index(fields=['generated_by', '-generated_at'], name='idx_report_user'),
        ]
