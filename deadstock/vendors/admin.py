from django.contrib import admin
from .models import Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'vendor_code', 'contact_person', 'email', 'phone', 'vendor_type', 'rating', 'is_active']
    list_filter = ['is_active', 'vendor_type']
    search_fields = ['company_name', 'vendor_code', 'contact_person', 'email', 'gst_number']
    ordering = ['company_name']
    readonly_fields = ['created_at', 'updated_at']
