from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from deadstock.core.models import User
from deadstock.vendors.models import Vendor

CENT = Decimal('0.01')


def _next_number(model, field, prefix, width):
    """Next free ``<prefix><n>`` value for a sequential document number"""
    number = model.objects.filter(**{f'{field}__startswith': prefix}).count() + 1
    value = f"{prefix}{number:0{width}d}"
    while model.objects.filter(**{field: value}).exists():
        number += 1
        value = f"{prefix}{number:0{width}d}"
    return value


class PurchaseOrder(models.Model):
    """Order placed with a vendor"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('pending_approval', 'Pending Approval'),
        ('approved', 'Approved'),
        ('sent_to_vendor', 'Sent to Vendor'),
        ('acknowledged', 'Acknowledged'),
        ('in_progress', 'In Progress'),
        ('partially_received', 'Partially Received'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('rejected', 'Rejected'),
    ]

    # status -> statuses reachable through the status endpoint
    TRANSITIONS = {
        'draft': {'pending_approval', 'cancelled'},
        'pending_approval': {'approved', 'rejected', 'cancelled'},
        'approved': {'sent_to_vendor', 'cancelled'},
        'sent_to_vendor': {'acknowledged', 'in_progress', 'cancelled'},
        'acknowledged': {'in_progress', 'cancelled'},
        'in_progress': {'cancelled'},
        'partially_received': set(),
        'completed': set(),
        'cancelled': set(),
        'rejected': {'draft'},
    }
    RECEIVABLE_STATUSES = ('sent_to_vendor', 'acknowledged', 'in_progress', 'partially_received')
    CLOSED_STATUSES = ('completed', 'cancelled', 'rejected')

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('bank_transfer', 'Bank Transfer'),
        ('check', 'Check'),
        ('credit_card', 'Credit Card'),
        ('cash', 'Cash'),
        ('other', 'Other'),
    ]

    po_number = models.CharField(max_length=30, unique=True, blank=True)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name='purchase_orders')
    requested_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='purchase_orders_requested')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders_approved')
    department = models.CharField(max_length=50)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    shipping_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    expected_delivery_date = models.DateField()
    actual_delivery_date = models.DateField(null=True, blank=True)
    delivery_address = models.JSONField(default=dict, blank=True)
    payment_terms = models.CharField(max_length=50, default='Net 30')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='bank_transfer')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number or f"PO-{self.id}"

    def save(self, *args, **kwargs):
        if not self.po_number:
            self.po_number = _next_number(PurchaseOrder, 'po_number', f"PO-{timezone.now().year}-", 4)
        self.total_amount = (
            Decimal(self.subtotal or 0) + Decimal(self.tax_amount or 0) + Decimal(self.shipping_cost or 0)
        ).quantize(CENT, rounding=ROUND_HALF_UP)
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    def recalculate_totals(self):
        """Subtotal from the items; total follows in save()"""
        self.subtotal = sum((item.total_price for item in self.items.all()), Decimal('0'))
        self.save()

    @property
    def is_fully_received(self):
        items = list(self.items.all())
        return bool(items) and all(item.quantity_received >= item.quantity for item in items)

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['vendor', 'status'], name='idx_po_vendor_status'),
            models.Index(fields=['-created_at'], name='idx_po_created'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    category = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    specifications = models.TextField(blank=True)
    brand_preference = models.CharField(max_length=100, blank=True)
    quantity_received = models.PositiveIntegerField(default=0)

    def save(self, *args, **kwargs):
        self.total_price = (Decimal(self.quantity) * Decimal(self.unit_price)).quantize(CENT, rounding=ROUND_HALF_UP)
        super().save(*args, **kwargs)

    @property
    def quantity_outstanding(self):
        return max(self.quantity - self.quantity_received, 0)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']


class PurchaseOrderEvent(models.Model):
    """Approval and delivery history of a purchase order"""
    ACTION_CHOICES = [
        ('submitted', 'Submitted'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('cancelled', 'Cancelled'),
        ('sent', 'Sent'),
        ('acknowledged', 'Acknowledged'),
        ('in_progress', 'In Progress'),
        ('received', 'Received'),
        ('completed', 'Completed'),
        ('reopened', 'Reopened'),
    ]

    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='history')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    comments = models.TextField(blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'purchase_order_events'
        ordering = ['timestamp', 'id']


class Invoice(models.Model):
    """Vendor invoice against a purchase order"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('received', 'Received'),
        ('approved', 'Approved'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]

    TRANSITIONS = {
        'draft': {'sent', 'received', 'cancelled'},
        'sent': {'received', 'approved', 'overdue', 'cancelled'},
        'received': {'approved', 'overdue', 'cancelled'},
        'approved': {'paid', 'overdue', 'cancelled'},
        'overdue': {'paid', 'cancelled'},
        'paid': set(),
        'cancelled': set(),
    }
    UNPAID_STATUSES = ('sent', 'received', 'approved', 'overdue')

    PAYMENT_METHOD_CHOICES = [
        ('bank_transfer', 'Bank Transfer'),
        ('cheque', 'Cheque'),
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('credit_card', 'Credit Card'),
        ('other', 'Other'),
    ]

    invoice_number = models.CharField(max_length=30, unique=True, blank=True)
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.PROTECT, related_name='invoices')
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name='invoices')
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default='INR')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='bank_transfer')
    payment_date = models.DateField(null=True, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)
    vendor_gstin = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='invoices_created')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices_approved')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number or f"Invoice-{self.id}"

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = _next_number(Invoice, 'invoice_number', f"INV-{timezone.now():%Y%m}-", 4)
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    def recalculate_totals(self):
        subtotal = Decimal('0')
        tax = Decimal('0')
        for item in self.items.all():
            line = Decimal(item.quantity) * Decimal(item.unit_price)
            subtotal += line
            tax += line * Decimal(item.tax_rate)
        self.subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)
        self.tax_amount = tax.quantize(CENT, rounding=ROUND_HALF_UP)
        self.total_amount = self.subtotal + self.tax_amount
        self.save()

    @property
    def is_overdue(self):
        return self.status in self.UNPAID_STATUSES and self.due_date < timezone.localdate()

    class Meta:
        db_table = 'invoices'
        ordering = ['-invoice_date', '-created_at']
        indexes = [
            models.Index(fields=['status', 'due_date'], name='idx_invoice_status_due'),
            models.Index(fields=['vendor', 'status'], name='idx_invoice_vendor_status'),
        ]


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    tax_rate = models.DecimalField(max_digits=4, decimal_places=3, default=Decimal('0.18'),
                                   validators=[MinValueValidator(0), MaxValueValidator(1)])
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    def save(self, *args, **kwargs):
        line = Decimal(self.quantity) * Decimal(self.unit_price)
        self.total_amount = (line * (1 + Decimal(self.tax_rate))).quantize(CENT, rounding=ROUND_HALF_UP)
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'invoice_items'
        ordering = ['id']
