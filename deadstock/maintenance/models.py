from django.core.validators import MinValueValidator
from django.db import models

from deadstock.assets.models import Asset
from deadstock.core.models import User
from deadstock.vendors.models import Vendor


class Maintenance(models.Model):
    """Scheduled or completed service work on an asset"""
    TYPE_CHOICES = [
        ('Preventive', 'Preventive'),
        ('Corrective', 'Corrective'),
        ('Predictive', 'Predictive'),
        ('Emergency', 'Emergency'),
        ('Inspection', 'Inspection'),
        ('Calibration', 'Calibration'),
        ('Cleaning', 'Cleaning'),
    ]

    PRIORITY_CHOICES = [
        ('Low', 'Low'),
        ('Medium', 'Medium'),
        ('High', 'High'),
        ('Critical', 'Critical'),
    ]

    STATUS_SCHEDULED = 'Scheduled'
    STATUS_IN_PROGRESS = 'In Progress'
    STATUS_COMPLETED = 'Completed'
    STATUS_OVERDUE = 'Overdue'
    STATUS_CANCELLED = 'Cancelled'

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    IMPACT_CHOICES = [
        ('Low', 'Low'),
        ('Medium', 'Medium'),
        ('High', 'High'),
    ]

    asset = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='maintenance_records')
    maintenance_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    description = models.TextField(blank=True)
    cost = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    vendor = models.ForeignKey(Vendor, on_delete=models.SET_NULL, null=True, blank=True, related_name='maintenance_records')
    maintenance_date = models.DateField()
    next_maintenance_date = models.DateField(null=True, blank=True)
    performed_by = models.CharField(max_length=150, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='Medium')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    estimated_duration = models.DecimalField(max_digits=6, decimal_places=2, default=2, help_text='Hours',
                                             validators=[MinValueValidator(0)])
    actual_duration = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True, help_text='Hours',
                                          validators=[MinValueValidator(0)])
    downtime_impact = models.CharField(max_length=10, choices=IMPACT_CHOICES, default='Low')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='maintenance_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.maintenance_type} - {self.asset.unique_asset_id} ({self.maintenance_date})"

    class Meta:
        db_table = 'maintenance'
        ordering = ['-maintenance_date', '-created_at']
        indexes = [
            models.Index(fields=['status', 'maintenance_date'], name='idx_maint_status_date'),
            models.Index(fields=['asset', 'status'], name='idx_maint_asset_status'),
        ]
