from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderEvent, Invoice, InvoiceItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ['total_price']


class PurchaseOrderEventInline(admin.TabularInline):
    model = PurchaseOrderEvent
    extra = 0
    readonly_fields = ['action', 'performed_by', 'comments', 'timestamp']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'vendor', 'department', 'status', 'priority', 'total_amount', 'created_at']
    list_filter = ['status', 'priority', 'department']
    search_fields = ['po_number', 'vendor__company_name', 'notes']
    readonly_fields = ['po_number', 'subtotal', 'total_amount', 'created_at', 'updated_at']
    inlines = [PurchaseOrderItemInline, PurchaseOrderEventInline]


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['total_amount']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'vendor', 'purchase_order', 'status', 'total_amount', 'due_date']
    list_filter = ['status', 'payment_method']
    search_fields = ['invoice_number', 'vendor__company_name', 'purchase_order__po_number']
    readonly_fields = ['invoice_number', 'subtotal', 'tax_amount', 'total_amount', 'created_at', 'updated_at']
    inlines = [InvoiceItemInline]
