from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('deadstock.core.urls')),
    path('api/v1/', include('deadstock.vendors.urls')),
    path('api/v1/', include('deadstock.assets.urls')),
    path('api/v1/', include('deadstock.maintenance.urls')),
    path('api/v1/', include('deadstock.approvals.urls')),
    path('api/v1/', include('deadstock.purchasing.urls')),
    path('api/v1/', include('deadstock.audits.urls')),
    path('api/v1/', include('deadstock.reports.urls')),
]
