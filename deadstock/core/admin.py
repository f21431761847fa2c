from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog, Notification, SystemSettings, SettingsHistory


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'name', 'role', 'department', 'employee_id', 'is_active', 'last_login']
    list_filter = ['role', 'department', 'is_active', 'is_superuser']
    search_fields = ['email', 'username', 'name', 'employee_id']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Register Profile', {'fields': ('name', 'role', 'department', 'employee_id', 'phone', 'vendor')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Register Profile', {'fields': ('email', 'name', 'role', 'department')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'user', 'action', 'entity_type', 'entity_id', 'severity', 'ip_address']
    list_filter = ['action', 'entity_type', 'severity', 'timestamp']
    search_fields = ['user__email', 'entity_type', 'entity_id', 'description']
    ordering = ['-timestamp']
    readonly_fields = ['user', 'action', 'entity_type', 'entity_id', 'description', 'severity', 'old_values',
                       'new_values', 'changes', 'ip_address', 'user_agent', 'timestamp']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'recipient', 'type', 'priority', 'is_read', 'created_at']
    list_filter = ['type', 'priority', 'is_read']
    search_fields = ['title', 'message', 'recipient__email']
    ordering = ['-created_at']


@admin.register(SystemSettings)
class SystemSettingsAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'last_modified_by', 'updated_at']
    readonly_fields = ['updated_at']


@admin.register(SettingsHistory)
class SettingsHistoryAdmin(admin.ModelAdmin):
    list_display = ['section', 'changed_by', 'changed_at', 'ip_address']
    list_filter = ['section']
    ordering = ['-changed_at']
    readonly_fields = ['section', 'changed_by', 'old_values', 'new_values', 'ip_address', 'changed_at']
