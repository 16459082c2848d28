import django_filters

from .models import Order, OrderStatus


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    customer = django_filters.UUIDFilter(field_name="customer_id")
    invoice_id = django_filters.CharFilter(lookup_expr="iexact")
    created_after = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    created_before = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    walk_in = django_filters.BooleanFilter(field_name="customer", lookup_expr="isnull")

    class Meta:
        model = Order
        fields = ["status", "customer", "invoice_id", "is_wholesale"]
