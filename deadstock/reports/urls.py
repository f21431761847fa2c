from django.urls import path
from . import views

urlpatterns = [
    path('dashboard/stats/', views.dashboard_stats, name='dashboard-stats'),
    path('dashboard/activities/', views.dashboard_activities, name='dashboard-activities'),
    path('dashboard/users-by-role/', views.users_by_role, name='dashboard-users-by-role'),
    path('dashboard/assets-by-category/', views.assets_by_category, name='dashboard-assets-by-category'),
    path('dashboard/assets-by-location/', views.assets_by_location, name='dashboard-assets-by-location'),
    path('dashboard/monthly-trends/', views.monthly_trends, name='dashboard-monthly-trends'),
    path('dashboard/system-overview/', views.system_overview, name='dashboard-system-overview'),
    path('dashboard/inventory-stats/', views.inventory_stats, name='dashboard-inventory-stats'),
    path('dashboard/warranty-expiring/', views.warranty_expiring, name='dashboard-warranty-expiring'),
    path('dashboard/maintenance-schedule/', views.maintenance_schedule, name='dashboard-maintenance-schedule'),
    path('dashboard/top-vendors/', views.top_vendors, name='dashboard-top-vendors'),
    path('dashboard/pending-approvals/', views.pending_approvals, name='dashboard-pending-approvals'),
    path('dashboard/auditor/stats/', views.auditor_stats, name='dashboard-auditor-stats'),
    path('dashboard/auditor/audit-items/', views.audit_items, name='dashboard-audit-items'),
    path('dashboard/auditor/condition-chart/', views.condition_chart, name='dashboard-condition-chart'),
    path('dashboard/auditor/compliance/', views.compliance, name='dashboard-compliance'),
    path('dashboard/employee/stats/', views.employee_stats, name='dashboard-employee-stats'),
    path('reports/templates/', views.template_list_create, name='report-template-list-create'),
    path('reports/templates/<int:pk>/', views.template_detail, name='report-template-detail'),
    path('reports/generate/', views.generate, name='report-generate'),
    path('reports/history/', views.history, name='report-history'),
    path('reports/history/<int:pk>/', views.history_detail, name='report-history-detail'),
    path('reports/history/<int:pk>/download/', views.download, name='report-download'),
]
