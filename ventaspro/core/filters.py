import django_filters
from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filter for AuditLog model using django-filter"""

    action = django_filters.CharFilter(field_name='action')
    model = django_filters.CharFilter(field_name='model_name')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = AuditLog
        fields = ['action', 'model', 'date_from', 'date_to']
