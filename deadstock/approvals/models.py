from django.db import models

from deadstock.assets.models import Asset
from deadstock.core.models import User


class Approval(models.Model):
    """Request that needs a manager's decision"""
    TYPE_REPAIR = 'Repair'
    TYPE_UPGRADE = 'Upgrade'
    TYPE_SCRAP = 'Scrap'
    TYPE_NEW_ASSET = 'New Asset'
    TYPE_TRANSFER = 'Transfer'
    TYPE_OTHER = 'Other'

    TYPE_CHOICES = [
        (TYPE_REPAIR, 'Repair'),
        (TYPE_UPGRADE, 'Upgrade'),
        (TYPE_SCRAP, 'Scrap'),
        (TYPE_NEW_ASSET, 'New Asset'),
        (TYPE_TRANSFER, 'Transfer'),
        (TYPE_OTHER, 'Other'),
    ]

    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    PRIORITY_CHOICES = [
        ('Low', 'Low'),
        ('Medium', 'Medium'),
        ('High', 'High'),
        ('Urgent', 'Urgent'),
    ]

    request_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    asset = models.ForeignKey(Asset, on_delete=models.SET_NULL, null=True, blank=True, related_name='approvals')
    requested_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='approval_requests')
    approver = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approvals_decided')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='Medium')
    request_data = models.JSONField(default=dict, blank=True)
    comments = models.TextField(blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.request_type} request #{self.pk} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING

    class Meta:
        db_table = 'approvals'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'request_type'], name='idx_approval_status_type'),
            models.Index(fields=['requested_by', 'status'], name='idx_approval_requester'),
        ]
