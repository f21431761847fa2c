from django.urls import path
from . import views

urlpatterns = [
    path('audits/scheduled/', views.scheduled_audit_list_create, name='scheduled-audit-list-create'),
    path('audits/scheduled/<int:pk>/', views.scheduled_audit_detail, name='scheduled-audit-detail'),
    path('audits/scheduled/<int:pk>/pause/', views.scheduled_audit_pause, name='scheduled-audit-pause'),
    path('audits/scheduled/<int:pk>/resume/', views.scheduled_audit_resume, name='scheduled-audit-resume'),
    path('audits/scheduled/<int:pk>/trigger/', views.scheduled_audit_trigger, name='scheduled-audit-trigger'),
    path('audits/scheduled/<int:pk>/runs/', views.scheduled_audit_runs, name='scheduled-audit-runs'),
    path('audits/runs/<int:pk>/', views.audit_run_detail, name='audit-run-detail'),
    path('audits/runs/<int:pk>/progress/', views.audit_run_progress, name='audit-run-progress'),
    path('audits/runs/<int:pk>/cancel/', views.audit_run_cancel, name='audit-run-cancel'),
    path('audits/reminders/', views.audit_reminders, name='audit-reminders'),
    path('audits/calendar/', views.audit_calendar, name='audit-calendar'),
]
