from django.urls import path
from . import views

urlpatterns = [
    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', views.CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', views.user_me, name='user-me'),
    path('users/', views.user_list_create, name='user-list-create'),
    path('users/change-password/', views.change_password, name='change-password'),
    path('users/<int:pk>/', views.user_detail, name='user-detail'),
    path('audit-logs/', views.audit_log_list, name='audit-log-list'),
    path('audit-logs/stats/', views.audit_log_stats, name='audit-log-stats'),
    path('audit-logs/export/', views.audit_log_export, name='audit-log-export'),
    path('audit-logs/<int:pk>/', views.audit_log_detail, name='audit-log-detail'),
    path('notifications/', views.notification_list_create, name='notification-list-create'),
    path('notifications/unread-count/', views.notification_unread_count, name='notification-unread-count'),
    path('notifications/read-all/', views.notification_mark_all_read, name='notification-read-all'),
    path('notifications/clear-read/', views.notification_clear_read, name='notification-clear-read'),
    path('notifications/<int:pk>/', views.notification_delete, name='notification-delete'),
    path('notifications/<int:pk>/read/', views.notification_mark_read, name='notification-read'),
    path('settings/', views.settings_list, name='settings-list'),
    path('settings/history/', views.settings_history, name='settings-history'),
    path('settings/reset/<str:section>/', views.settings_reset, name='settings-reset'),
    path('settings/<str:section>/', views.settings_section, name='settings-section'),
    path('search/', views.global_search, name='global-search'),
]
