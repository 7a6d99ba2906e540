import django_filters
from django.db.models import Q
from .models import Sale, CashRegister

PAYMENT_METHOD_LABELS = {label.lower(): value for value, label in Sale.PAYMENT_METHOD_CHOICES}


class SaleFilter(django_filters.FilterSet):
    """Filter for Sale model using django-filter"""

    # Customer name, sale number or payment method
    search = django_filters.CharFilter(method='filter_search', label='Search')

    date = django_filters.DateFilter(field_name='created_at', lookup_expr='date')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    status = django_filters.CharFilter(method='filter_choice', label='Status')
    payment_method = django_filters.CharFilter(method='filter_choice', label='Payment method')
    customer = django_filters.NumberFilter(field_name='customer_id')

    class Meta:
        model = Sale
        fields = ['search', 'date', 'date_from', 'date_to', 'status', 'payment_method', 'customer']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip().lstrip('#')
        if not value:
            return queryset
        query = Q(customer__name__icontains=value) | Q(payment_method__icontains=value)
        method = PAYMENT_METHOD_LABELS.get(value.lower())
        if method:
            query |= Q(payment_method=method)
        if value.isdigit():
            query |= Q(pk=int(value))
        return queryset.filter(query)

    def filter_choice(self, queryset, name, value):
        if not value or value == 'all':
            return queryset
        return queryset.filter(**{name: value})


class CashRegisterFilter(django_filters.FilterSet):
    date = django_filters.DateFilter(field_name='created_at', lookup_expr='date')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    type = django_filters.CharFilter(method='filter_type', label='Type')

    class Meta:
        model = CashRegister
        fields = ['date', 'date_from', 'date_to', 'type']

    def filter_type(self, queryset, name, value):
        if not value or value == 'all':
            return queryset
        return queryset.filter(type=value)
