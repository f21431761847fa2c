from django.urls import path
from . import views

urlpatterns = [
    path('purchase/orders/', views.order_list_create, name='purchase-order-list-create'),
    path('purchase/orders/<int:pk>/', views.order_detail, name='purchase-order-detail'),
    path('purchase/orders/<int:pk>/status/', views.order_status, name='purchase-order-status'),
    path('purchase/orders/<int:pk>/receive/', views.order_receive, name='purchase-order-receive'),
    path('purchase/invoices/', views.invoice_list_create, name='invoice-list-create'),
    path('purchase/invoices/stats/', views.invoice_stats, name='invoice-stats'),
    path('purchase/invoices/<int:pk>/', views.invoice_detail, name='invoice-detail'),
    path('purchase/invoices/<int:pk>/status/', views.invoice_status, name='invoice-status'),
    path('purchase/stats/', views.purchase_stats, name='purchase-stats'),
]
