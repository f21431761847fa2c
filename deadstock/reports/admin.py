from django.contrib import admin
from .models import ReportTemplate, GeneratedReport


@admin.register(ReportTemplate)
class ReportTemplateAdmin(admin.ModelAdmin):
    list_display = ['template_id', 'name', 'category', 'kind', 'frequency', 'status', 'generation_count']
    list_filter = ['category', 'status', 'frequency']
    search_fields = ['template_id', 'name', 'description']


@admin.register(GeneratedReport)
class GeneratedReportAdmin(admin.ModelAdmin):
    list_display = ['report_id', 'report_name', 'format', 'status', 'generated_by', 'generated_at', 'download_count']
    list_filter = ['status', 'format', 'category']
    search_fields = ['report_id', 'report_name']
    readonly_fields = ['report_id', 'generated_at', 'file_size', 'download_count', 'last_downloaded']
