from django.urls import path
from . import views

urlpatterns = [
    path('vendors/', views.vendor_list_create, name='vendor-list-create'),
    path('vendors/stats/', views.vendor_stats, name='vendor-stats'),
    path('vendors/<int:pk>/', views.vendor_detail, name='vendor-detail'),
    path('vendors/<int:pk>/performance/', views.vendor_performance, name='vendor-performance'),
]
