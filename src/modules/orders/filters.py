import django_filters

from modules.orders.constants import TERMINAL_STAGE
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    stage = django_filters.NumberFilter(field_name="current_stage")
    buyer = django_filters.CharFilter(field_name="buyer", lookup_expr="icontains")
    supplier = django_filters.CharFilter(field_name="supplier", lookup_expr="icontains")
    po_number = django_filters.CharFilter(field_name="po_number", lookup_expr="icontains")
    start_date = django_filters.DateFilter(field_name="order_date", lookup_expr="gte")
    end_date = django_filters.DateFilter(field_name="order_date", lookup_expr="lte")
    completed = django_filters.BooleanFilter(method="filter_completed")

    class Meta:
        model = Order
        fields = [
            "stage",
            "buyer",
            "supplier",
            "po_number",
            "start_date",
            "end_date",
            "completed",
        ]

    def filter_completed(self, queryset, name, value):
        if value:
            return queryset.filter(current_stage=TERMINAL_STAGE)
        return queryset.exclude(current_stage=TERMINAL_STAGE)
