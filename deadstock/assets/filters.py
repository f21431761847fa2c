from datetime import timedelta

import django_filters
from django.db.models import Q
from django.utils import timezone

from .models import Asset, AssetTransfer, DisposalRecord

ASSET_ORDERING_FIELDS = (
    'unique_asset_id', 'manufacturer', 'model', 'asset_type', 'location', 'status',
    'condition', 'purchase_date', 'purchase_cost', 'warranty_expiry', 'created_at', 'updated_at',
)


class AssetFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter(method='filter_multi_value')
    condition = django_filters.CharFilter(method='filter_multi_value')
    asset_type = django_filters.CharFilter(field_name='asset_type', lookup_expr='iexact')
    location = django_filters.CharFilter(field_name='location', lookup_expr='icontains')
    department = django_filters.CharFilter(field_name='department', lookup_expr='iexact')
    assigned_user = django_filters.NumberFilter(field_name='assigned_user_id')
    vendor = django_filters.NumberFilter(field_name='vendor_id')
    unassigned = django_filters.BooleanFilter(field_name='assigned_user', lookup_expr='isnull')
    purchase_date_from = django_filters.DateFilter(field_name='purchase_date', lookup_expr='gte')
    purchase_date_to = django_filters.DateFilter(field_name='purchase_date', lookup_expr='lte')
    warranty_expiring_days = django_filters.NumberFilter(method='filter_warranty_expiring')
    dead_stock = django_filters.BooleanFilter(method='filter_dead_stock')
    ordering = django_filters.CharFilter(method='filter_ordering')

    class Meta:
        model = Asset
        fields = ['asset_type', 'location', 'department', 'assigned_user', 'vendor']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(unique_asset_id__icontains=value) |
            Q(manufacturer__icontains=value) |
            Q(model__icontains=value) |
            Q(serial_number__icontains=value) |
            Q(asset_type__icontains=value) |
            Q(location__icontains=value) |
            Q(assigned_user__name__icontains=value) |
            Q(assigned_user__email__icontains=value)
        )

    def filter_multi_value(self, queryset, name, value):
        """Accept a single value or a comma separated list"""
        values = [v.strip() for v in value.split(',') if v.strip()]
        if not values:
            return queryset
        return queryset.filter(**{f'{name}__in': values})

    def filter_warranty_expiring(self, queryset, name, value):
        today = timezone.localdate()
        return queryset.filter(
            warranty_expiry__gte=today,
            warranty_expiry__lte=today + timedelta(days=int(value)),
        )

    def filter_dead_stock(self, queryset, name, value):
        if value:
            return queryset.filter(status=Asset.STATUS_READY_FOR_SCRAP)
        return queryset.exclude(status=Asset.STATUS_READY_FOR_SCRAP)

    def filter_ordering(self, queryset, name, value):
        fields = []
        for field in value.split(','):
            field = field.strip()
            if field.lstrip('-') in ASSET_ORDERING_FIELDS:
                fields.append(field)
        return queryset.order_by(*fields) if fields else queryset


class TransferFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=AssetTransfer.STATUS_CHOICES)
    priority = django_filters.ChoiceFilter(choices=AssetTransfer.PRIORITY_CHOICES)
    transfer_reason = django_filters.ChoiceFilter(choices=AssetTransfer.REASON_CHOICES)
    asset = django_filters.NumberFilter(field_name='asset_id')
    user = django_filters.NumberFilter(method='filter_user')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = AssetTransfer
        fields = ['status', 'priority', 'transfer_reason', 'asset']

    def filter_user(self, queryset, name, value):
        return queryset.filter(Q(from_user_id=value) | Q(to_user_id=value) | Q(initiated_by_id=value))

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(transfer_id__icontains=value) |
            Q(asset__unique_asset_id__icontains=value) |
            Q(from_location__icontains=value) |
            Q(to_location__icontains=value) |
            Q(description__icontains=value)
        )


class DisposalFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=DisposalRecord.STATUS_CHOICES)
    disposal_method = django_filters.ChoiceFilter(choices=DisposalRecord.METHOD_CHOICES)
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='disposal_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='disposal_date', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = DisposalRecord
        fields = ['status', 'disposal_method', 'category']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(asset_code__icontains=value) |
            Q(asset_name__icontains=value) |
            Q(document_reference__icontains=value)
        )
