from django.contrib import admin
from .models import Asset, AssetCategory, AssetTransfer, TransferEvent, DisposalRecord


@admin.register(AssetCategory)
class AssetCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'active', 'depreciation_rate', 'typical_lifespan_years', 'maintenance_schedule']
    list_filter = ['active', 'maintenance_schedule']
    search_fields = ['name', 'description']


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = ['unique_asset_id', 'manufacturer', 'model', 'asset_type', 'location', 'status', 'condition',
                    'assigned_user', 'purchase_date']
    list_filter = ['status', 'condition', 'asset_type', 'department']
    search_fields = ['unique_asset_id', 'manufacturer', 'model', 'serial_number', 'location']
    raw_id_fields = ['assigned_user', 'vendor']
    readonly_fields = ['created_at', 'updated_at']


class TransferEventInline(admin.TabularInline):
    model = TransferEvent
    extra = 0
    readonly_fields = ['action', 'performed_by', 'comments', 'timestamp']


@admin.register(AssetTransfer)
class AssetTransferAdmin(admin.ModelAdmin):
    list_display = ['transfer_id', 'asset', 'from_location', 'to_location', 'status', 'priority', 'created_at']
    list_filter = ['status', 'priority', 'transfer_reason']
    search_fields = ['transfer_id', 'asset__unique_asset_id']
    raw_id_fields = ['asset', 'from_user', 'to_user', 'initiated_by', 'approved_by']
    inlines = [TransferEventInline]


@admin.register(DisposalRecord)
class DisposalRecordAdmin(admin.ModelAdmin):
    list_display = ['document_reference', 'asset_code', 'asset_name', 'disposal_method', 'disposal_value',
                    'status', 'disposal_date']
    list_filter = ['status', 'disposal_method']
    search_fields = ['document_reference', 'asset_code', 'asset_name']
    raw_id_fields = ['asset', 'created_by']
