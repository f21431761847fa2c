from django.urls import path
from . import views

urlpatterns = [
    path('approvals/', views.approval_list_create, name='approval-list-create'),
    path('approvals/stats/', views.approval_stats, name='approval-stats'),
    path('approvals/<int:pk>/', views.approval_detail, name='approval-detail'),
    path('approvals/<int:pk>/approve/', views.approval_approve, name='approval-approve'),
    path('approvals/<int:pk>/reject/', views.approval_reject, name='approval-reject'),
]
