import django_filters
from django.db.models import Q

from .models import Maintenance


class MaintenanceFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Maintenance.STATUS_CHOICES)
    maintenance_type = django_filters.ChoiceFilter(choices=Maintenance.TYPE_CHOICES)
    priority = django_filters.ChoiceFilter(choices=Maintenance.PRIORITY_CHOICES)
    asset = django_filters.NumberFilter(field_name='asset_id')
    vendor = django_filters.NumberFilter(field_name='vendor_id')
    date_from = django_filters.DateFilter(field_name='maintenance_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='maintenance_date', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Maintenance
        fields = ['status', 'maintenance_type', 'priority', 'asset', 'vendor']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(description__icontains=value) |
            Q(performed_by__icontains=value) |
            Q(asset__unique_asset_id__icontains=value) |
            Q(asset__manufacturer__icontains=value) |
            Q(asset__model__icontains=value)
        )
