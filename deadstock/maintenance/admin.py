from django.contrib import admin
from .models import Maintenance


@admin.register(Maintenance)
class MaintenanceAdmin(admin.ModelAdmin):
    list_display = ['asset', 'maintenance_type', 'maintenance_date', 'status', 'priority', 'cost', 'vendor']
    list_filter = ['status', 'maintenance_type', 'priority']
    search_fields = ['asset__unique_asset_id', 'description', 'performed_by']
    raw_id_fields = ['asset', 'vendor', 'created_by']
    date_hierarchy = 'maintenance_date'
