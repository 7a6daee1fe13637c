import django_filters
from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filters for the generic audit log listing"""
    action = django_filters.CharFilter(field_name='action', lookup_expr='exact')
    model_name = django_filters.CharFilter(field_name='model_name', lookup_expr='iexact')
    object_id = django_filters.CharFilter(field_name='object_id', lookup_expr='exact')
    user = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = AuditLog
        fields = ['action', 'model_name', 'object_id', 'user', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(object_name__icontains=value) | queryset.filter(object_reference__icontains=value)
