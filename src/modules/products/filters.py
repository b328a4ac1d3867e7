import django_filters
from django.db.models import Q

from modules.products.models import Product


class ProductFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method="filter_search")
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr="lte")
    collection = django_filters.CharFilter(field_name="collection", lookup_expr="iexact")
    sku = django_filters.CharFilter(field_name="sku", lookup_expr="iexact")
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")

    class Meta:
        model = Product
        fields = ["search", "min_price", "max_price", "collection", "sku", "status"]

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))
