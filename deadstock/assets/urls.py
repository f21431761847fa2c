from django.urls import path
from . import views, bulk_views, scan_views

urlpatterns = [
    # Categories
    path('assets/categories/', views.category_list_create, name='category-list-create'),
    path('assets/categories/<int:pk>/', views.category_detail, name='category-detail'),

    # Assets
    path('assets/', views.asset_list_create, name='asset-list-create'),
    path('assets/my-assets/', views.my_assets, name='asset-my-assets'),
    path('assets/stats/', views.asset_stats, name='asset-stats'),

    # Bulk operations
    path('assets/bulk/status/', bulk_views.bulk_update_status, name='asset-bulk-status'),
    path('assets/bulk/assign/', bulk_views.bulk_assign, name='asset-bulk-assign'),
    path('assets/bulk/location/', bulk_views.bulk_update_location, name='asset-bulk-location'),
    path('assets/bulk/condition/', bulk_views.bulk_update_condition, name='asset-bulk-condition'),
    path('assets/bulk/maintenance/', bulk_views.bulk_schedule_maintenance, name='asset-bulk-maintenance'),
    path('assets/bulk/delete/', bulk_views.bulk_delete, name='asset-bulk-delete'),
    path('assets/bulk/validate/', bulk_views.bulk_validate, name='asset-bulk-validate'),
    path('assets/bulk/history/', bulk_views.bulk_history, name='asset-bulk-history'),

    # Import and export
    path('assets/export/', bulk_views.asset_export, name='asset-export'),
    path('assets/import/', bulk_views.asset_import, name='asset-import'),
    path('assets/import/template/', bulk_views.asset_import_template, name='asset-import-template'),

    # Scanning
    path('assets/scan/batch/', scan_views.scan_batch, name='asset-scan-batch'),
    path('assets/scan/history/', scan_views.scan_history, name='asset-scan-history'),
    path('assets/scan/stats/', scan_views.scan_stats, name='asset-scan-stats'),
    path('assets/scan/<str:code>/', scan_views.scan_code, name='asset-scan'),
    path('assets/scan/<str:code>/quick-audit/', scan_views.scan_quick_audit, name='asset-scan-quick-audit'),

    path('assets/<int:pk>/', views.asset_detail, name='asset-detail'),
    path('assets/<int:pk>/label/', views.asset_label, name='asset-label'),
    path('assets/<int:pk>/history/', views.asset_history, name='asset-history'),
    path('assets/<int:pk>/assign/', views.asset_assign, name='asset-assign'),
    path('assets/<int:pk>/return/', views.asset_return, name='asset-return'),
    path('assets/<int:pk>/report-issue/', views.asset_report_issue, name='asset-report-issue'),

    # Transfers
    path('transfers/', views.transfer_list_create, name='transfer-list-create'),
    path('transfers/stats/', views.transfer_stats, name='transfer-stats'),
    path('transfers/<int:pk>/', views.transfer_detail, name='transfer-detail'),
    path('transfers/<int:pk>/status/', views.transfer_status, name='transfer-status'),
    path('transfers/<int:pk>/history/', views.transfer_history, name='transfer-history'),

    # Disposal
    path('disposals/', views.disposal_list_create, name='disposal-list-create'),
    path('disposals/stats/', views.disposal_stats, name='disposal-stats'),
    path('disposals/<int:pk>/', views.disposal_detail, name='disposal-detail'),

    # Lifecycle automation
    path('lifecycle/stats/', views.lifecycle_stats, name='lifecycle-stats'),
    path('lifecycle/run/', views.lifecycle_run, name='lifecycle-run'),
    path('lifecycle/dead-stock/', views.lifecycle_dead_stock, name='lifecycle-dead-stock'),
    path('lifecycle/disposal/', views.lifecycle_disposal, name='lifecycle-disposal'),
    path('lifecycle/config/', views.lifecycle_config, name='lifecycle-config'),
]
