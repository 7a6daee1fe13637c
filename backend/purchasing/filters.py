import django_filters
from .models import PurchaseOrder


class PurchaseOrderFilter(django_filters.FilterSet):
    """Filters for the purchase order listing"""
    status = django_filters.ChoiceFilter(field_name='status', choices=PurchaseOrder.STATUS_CHOICES)
    supplier = django_filters.NumberFilter(field_name='supplier_id', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='order_date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='order_date', lookup_expr='lte')
    payment_status = django_filters.ChoiceFilter(field_name='payment_status', choices=PurchaseOrder.PAYMENT_STATUS_CHOICES)

    class Meta:
        model = PurchaseOrder
        fields = ['status', 'supplier', 'start_date', 'end_date', 'payment_status']
