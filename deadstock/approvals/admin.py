from django.contrib import admin
from .models import Approval


@admin.register(Approval)
class ApprovalAdmin(admin.ModelAdmin):
    list_display = ['id', 'request_type', 'asset', 'requested_by', 'status', 'priority', 'created_at']
    list_filter = ['status', 'request_type', 'priority']
    search_fields = ['requested_by__email', 'asset__unique_asset_id', 'comments']
    raw_id_fields = ['asset', 'requested_by', 'approver']
