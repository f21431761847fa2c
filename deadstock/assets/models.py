import random
from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from deadstock.core.models import User
from deadstock.vendors.models import Vendor

HEX_COLOR_VALIDATOR = RegexValidator(
    regex=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$',
    message='Enter a valid hex color code (#RGB or #RRGGBB).',
)

# yearly straight-line depreciation used when a category has no rate
DEFAULT_DEPRECIATION_RATE = Decimal('15')
MAX_DEPRECIATION_PERCENT = Decimal('95')


class AssetCategory(models.Model):
    """Asset type with display and depreciation metadata"""
    MAINTENANCE_SCHEDULE_CHOICES = [
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('yearly', 'Yearly'),
        ('none', 'None'),
    ]

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=7, default='#1976d2', validators=[HEX_COLOR_VALIDATOR])
    icon = models.CharField(max_length=50, default='Inventory')
    active = models.BooleanField(default=True)
    depreciation_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
        help_text='Percent of purchase cost lost per year (0 = default rate)'
    )
    typical_lifespan_years = models.PositiveIntegerField(default=5)
    maintenance_schedule = models.CharField(max_length=10, choices=MAINTENANCE_SCHEDULE_CHOICES, default='none')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='asset_categories')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def asset_count(self):
        return Asset.objects.filter(asset_type__iexact=self.name).count()

    def can_delete(self):
        return self.asset_count() == 0

    class Meta:
        db_table = 'asset_categories'
        ordering = ['name']
        verbose_name_plural = 'asset categories'


class Asset(models.Model):
    """Tracked physical item"""
    STATUS_ACTIVE = 'Active'
    STATUS_UNDER_MAINTENANCE = 'Under Maintenance'
    STATUS_AVAILABLE = 'Available'
    STATUS_DAMAGED = 'Damaged'
    STATUS_READY_FOR_SCRAP = 'Ready for Scrap'
    STATUS_DISPOSED = 'Disposed'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_UNDER_MAINTENANCE, 'Under Maintenance'),
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_DAMAGED, 'Damaged'),
        (STATUS_READY_FOR_SCRAP, 'Ready for Scrap'),
        (STATUS_DISPOSED, 'Disposed'),
    ]

    CONDITION_CHOICES = [
        ('excellent', 'Excellent'),
        ('good', 'Good'),
        ('fair', 'Fair'),
        ('poor', 'Poor'),
        ('damaged', 'Damaged'),
    ]

    unique_asset_id = models.CharField(max_length=50, unique=True, blank=True)
    manufacturer = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    serial_number = models.CharField(max_length=100)
    asset_type = models.CharField(max_length=100)
    location = models.CharField(max_length=150)
    department = models.CharField(max_length=50, blank=True)
    assigned_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_assets')
    vendor = models.ForeignKey(Vendor, on_delete=models.SET_NULL, null=True, blank=True, related_name='assets')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    condition = models.CharField(max_length=10, choices=CONDITION_CHOICES, default='good')
    purchase_date = models.DateField(null=True, blank=True)
    purchase_cost = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    warranty_expiry = models.DateField(null=True, blank=True)
    last_audit_date = models.DateTimeField(null=True, blank=True)
    last_maintenance_date = models.DateField(null=True, blank=True)
    dead_stock_since = models.DateTimeField(null=True, blank=True)
    configuration = models.JSONField(default=dict, blank=True)
    expected_lifespan = models.PositiveIntegerField(null=True, blank=True, help_text='Years')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.unique_asset_id} - {self.name}"

    def save(self, *args, **kwargs):
        if not self.unique_asset_id:
            self.unique_asset_id = self.generate_asset_id()
        super().save(*args, **kwargs)

    @classmethod
    def generate_asset_id(cls):
        year = timezone.now().year
        prefix = f"AST-{year}-"
        number = cls.objects.filter(unique_asset_id__startswith=prefix).count() + 1
        asset_id = f"{prefix}{number:05d}"
        while cls.objects.filter(unique_asset_id=asset_id).exists():
            number += 1
            asset_id = f"{prefix}{number:05d}"
        return asset_id

    @property
    def name(self):
        return f"{self.manufacturer} {self.model}".strip()

    @property
    def age_years(self):
        if not self.purchase_date:
            return None
        return round((timezone.now().date() - self.purchase_date).days / 365, 2)

    @property
    def category(self):
        return AssetCategory.objects.filter(name__iexact=self.asset_type).first()

    def depreciation_rate(self, category=None):
        category = category if category is not None else self.category
        if category is not None and category.depreciation_rate and category.depreciation_rate > 0:
            return Decimal(category.depreciation_rate)
        return DEFAULT_DEPRECIATION_RATE

    def current_value(self, category=None):
        """Straight-line depreciated value, never below 5% of cost"""
        if self.purchase_cost is None:
            return None
        age = self.age_years
        rate = self.depreciation_rate(category)
        percent = min(Decimal(str(age)) * rate, MAX_DEPRECIATION_PERCENT) if age is not None else Decimal('0')
        value = Decimal(self.purchase_cost) * (Decimal('1') - percent / Decimal('100'))
        return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @property
    def is_dead_stock(self):
        return self.status == self.STATUS_READY_FOR_SCRAP

    def append_note(self, text):
        stamp = timezone.now().strftime('%Y-%m-%d')
        self.notes = f"{self.notes}\n[{stamp}] {text}".strip()

    class Meta:
        db_table = 'assets'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_asset_status'),
            models.Index(fields=['asset_type'], name='idx_asset_type'),
            models.Index(fields=['location'], name='idx_asset_location'),
            models.Index(fields=['assigned_user', 'status'], name='idx_asset_user_status'),
            models.Index(fields=['warranty_expiry'], name='idx_asset_warranty'),
        ]


def generate_transfer_id():
    """AT + 8 digits of the current timestamp + 3 random digits"""
    millis = str(int(timezone.now().timestamp() * 1000))[-8:]
    return f"AT{millis}{random.randint(0, 999):03d}"


class AssetTransfer(models.Model):
    """Movement of an asset between users and/or locations"""
    REASON_CHOICES = [
        ('employee_relocation', 'Employee Relocation'),
        ('department_change', 'Department Change'),
        ('temporary_assignment', 'Temporary Assignment'),
        ('permanent_assignment', 'Permanent Assignment'),
        ('maintenance_transfer', 'Maintenance Transfer'),
        ('office_relocation', 'Office Relocation'),
        ('project_requirement', 'Project Requirement'),
        ('other', 'Other'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('in_transit', 'In Transit'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    # status -> statuses it may move to
    TRANSITIONS = {
        'pending': {'approved', 'rejected', 'cancelled'},
        'approved': {'in_transit', 'completed', 'cancelled'},
        'in_transit': {'completed', 'cancelled'},
        'rejected': set(),
        'completed': set(),
        'cancelled': set(),
    }
    OPEN_STATUSES = ('pending', 'approved', 'in_transit')

    transfer_id = models.CharField(max_length=20, unique=True, default=generate_transfer_id)
    asset = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='transfers')
    from_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='transfers_out')
    to_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='transfers_in')
    from_location = models.CharField(max_length=150)
    to_location = models.CharField(max_length=150)
    initiated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='transfers_initiated')
    transfer_reason = models.CharField(max_length=30, choices=REASON_CHOICES)
    description = models.CharField(max_length=500)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='transfers_approved')
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=500, blank=True)
    expected_transfer_date = models.DateField()
    actual_transfer_date = models.DateTimeField(null=True, blank=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    handover_notes = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.transfer_id

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    class Meta:
        db_table = 'asset_transfers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_transfer_status'),
            models.Index(fields=['asset', 'status'], name='idx_transfer_asset_status'),
        ]


class TransferEvent(models.Model):
    """History entry on a transfer"""
    transfer = models.ForeignKey(AssetTransfer, on_delete=models.CASCADE, related_name='history')
    action = models.CharField(max_length=20)
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    comments = models.CharField(max_length=500, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'asset_transfer_events'
        ordering = ['timestamp', 'id']


class DisposalRecord(models.Model):
    """Retirement document for an asset"""
    METHOD_CHOICES = [
        ('Auction', 'Auction'),
        ('Scrap', 'Scrap'),
        ('Donation', 'Donation'),
        ('Recycling', 'Recycling'),
        ('Sale', 'Sale'),
        ('Other', 'Other'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    asset = models.ForeignKey(Asset, on_delete=models.SET_NULL, null=True, blank=True, related_name='disposal_records')
    asset_code = models.CharField(max_length=50)
    asset_name = models.CharField(max_length=200)
    category = models.CharField(max_length=100)
    disposal_date = models.DateField(default=timezone.localdate)
    disposal_method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    disposal_value = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    approved_by = models.CharField(max_length=150, blank=True, default='SYSTEM')
    document_reference = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    remarks = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='disposal_records')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.document_reference} ({self.asset_code})"

    def save(self, *args, **kwargs):
        if not self.document_reference:
            self.document_reference = f"DOC-{timezone.now().year}-{random.randint(0, 9999):04d}"
        if self.asset_id and not self.asset_code:
            self.asset_code = self.asset.unique_asset_id
            self.asset_name = self.asset_name or self.asset.name
            self.category = self.category or self.asset.asset_type
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'disposal_records'
        ordering = ['-disposal_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_disposal_status'),
            models.Index(fields=['disposal_method'], name='idx_disposal_method'),
            models.Index(fields=['-disposal_date'], name='idx_disposal_date'),
        ]
