from django.urls import path
from . import views

urlpatterns = [
    path('maintenance/', views.maintenance_list_create, name='maintenance-list-create'),
    path('maintenance/upcoming/', views.maintenance_upcoming, name='maintenance-upcoming'),
    path('maintenance/warranties/', views.maintenance_warranties, name='maintenance-warranties'),
    path('maintenance/stats/', views.maintenance_stats, name='maintenance-stats'),
    path('maintenance/<int:pk>/', views.maintenance_detail, name='maintenance-detail'),
]
