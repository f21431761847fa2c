import django_filters
from django.db.models import Q

from .models import AuditLog, User


class AuditLogFilter(django_filters.FilterSet):
    action = django_filters.CharFilter(field_name='action')
    entity_type = django_filters.CharFilter(field_name='entity_type', lookup_expr='iexact')
    entity_id = django_filters.CharFilter(field_name='entity_id')
    severity = django_filters.ChoiceFilter(choices=AuditLog.SEVERITY_CHOICES)
    user = django_filters.NumberFilter(field_name='user_id')
    date_from = django_filters.DateFilter(field_name='timestamp', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='timestamp', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = AuditLog
        fields = ['action', 'entity_type', 'entity_id', 'severity', 'user']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(description__icontains=value) |
            Q(action__icontains=value) |
            Q(entity_id__icontains=value) |
            Q(user__email__icontains=value)
        )


class UserFilter(django_filters.FilterSet):
    role = django_filters.ChoiceFilter(choices=User.ROLE_CHOICES)
    department = django_filters.ChoiceFilter(choices=User.DEPARTMENT_CHOICES)
    is_active = django_filters.BooleanFilter()
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = User
        fields = ['role', 'department', 'is_active']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) |
            Q(email__icontains=value) |
            Q(username__icontains=value) |
            Q(employee_id__icontains=value)
        )
