import django_filters
from django.db.models import Q

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    customer_email = django_filters.CharFilter(
        field_name="customer__email", lookup_expr="icontains"
    )
    date_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="lte")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Order
        fields = [
            "status",
            "customer",
            "customer_email",
            "date_from",
            "date_to",
            "min_total",
            "max_total",
            "search",
        ]

    def filter_search(self, queryset, name, value):
        condition = (
            Q(order_number__icontains=value)
            | Q(status__icontains=value)
            | Q(shipping_info__name__icontains=value)
            | Q(shipping_info__address__icontains=value)
            | Q(customer__email__icontains=value)
            | Q(customer__first_name__icontains=value)
            | Q(customer__last_name__icontains=value)
        )
        return queryset.filter(condition)
