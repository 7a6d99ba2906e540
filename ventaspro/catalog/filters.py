import django_filters
from django.db.models import Q, F
from .models import Product, Category


def _is_true(value):
    return str(value).strip().lower() in ('1', 'true', 'yes')


class ProductFilter(django_filters.FilterSet):
    """Filter for Product model using django-filter"""

    # Free text search across name, SKU and description
    search = django_filters.CharFilter(method='filter_search', label='Search')

    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    supplier = django_filters.NumberFilter(field_name='supplier_id', lookup_expr='exact')
    unit = django_filters.NumberFilter(field_name='unit_of_measure_id', lookup_expr='exact')
    active = django_filters.CharFilter(method='filter_active', label='Active')

    # Stock status filters
    in_stock = django_filters.CharFilter(method='filter_in_stock', label='In Stock')
    low_stock = django_filters.CharFilter(method='filter_low_stock', label='Low Stock')
    out_of_stock = django_filters.CharFilter(method='filter_out_of_stock', label='Out of Stock')

    class Meta:
        model = Product
        fields = ['search', 'category', 'supplier', 'unit', 'active', 'in_stock', 'low_stock', 'out_of_stock']

    def filter_search(self, queryset, name, value):
        """Match the whole search term against name, SKU or description"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(sku__icontains=value) |
            Q(description__icontains=value)
        )

    def filter_active(self, queryset, name, value):
        if value in (None, '', 'all'):
            return queryset
        return queryset.filter(is_active=_is_true(value))

    def filter_in_stock(self, queryset, name, value):
        if not _is_true(value):
            return queryset
        return queryset.filter(inventory__quantity__gt=0)

    def filter_low_stock(self, queryset, name, value):
        if not _is_true(value):
            return queryset
        return queryset.filter(inventory__quantity__lte=F('inventory__min_stock'))

    def filter_out_of_stock(self, queryset, name, value):
        if not _is_true(value):
            return queryset
        return queryset.filter(Q(inventory__isnull=True) | Q(inventory__quantity=0))


class CategoryFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Category
        fields = ['search']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))
