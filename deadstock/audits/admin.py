from django.contrib import admin
from .models import ScheduledAudit, ScheduledAuditRun, AuditRunEntry


@admin.register(ScheduledAudit)
class ScheduledAuditAdmin(admin.ModelAdmin):
    list_display = ['name', 'recurrence_type', 'audit_type', 'scope_type', 'status', 'next_run_date', 'total_runs']
    list_filter = ['status', 'recurrence_type', 'audit_type', 'scope_type']
    search_fields = ['name', 'description']
    filter_horizontal = ['assigned_auditors', 'notification_recipients']


class AuditRunEntryInline(admin.TabularInline):
    model = AuditRunEntry
    extra = 0
    raw_id_fields = ['asset', 'audited_by']


@admin.register(ScheduledAuditRun)
class ScheduledAuditRunAdmin(admin.ModelAdmin):
    list_display = ['scheduled_audit', 'run_date', 'status', 'total_assets', 'completion_percentage']
    list_filter = ['status']
    raw_id_fields = ['scheduled_audit']
    filter_horizontal = ['assigned_auditors']
    inlines = [AuditRunEntryInline]
