from django.urls import path
from .views import (
    supplier_list_create, supplier_detail, supplier_deactivate, supplier_activate, supplier_products,
    purchase_order_list_create, purchase_order_next_number, purchase_order_detail,
    purchase_order_send, purchase_order_email, purchase_order_cancel,
    purchase_order_receipts, receipt_detail,
)

urlpatterns = [
    # Supplier endpoints
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('suppliers/<int:pk>/deactivate/', supplier_deactivate, name='supplier-deactivate'),
    path('suppliers/<int:pk>/activate/', supplier_activate, name='supplier-activate'),
    path('suppliers/<int:pk>/products/', supplier_products, name='supplier-products'),

    # Purchase order endpoints
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/next-number/', purchase_order_next_number, name='purchase-order-next-number'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/send/', purchase_order_send, name='purchase-order-send'),
    path('purchase-orders/<int:pk>/email/', purchase_order_email, name='purchase-order-email'),
    path('purchase-orders/<int:pk>/cancel/', purchase_order_cancel, name='purchase-order-cancel'),

    # Receipt endpoints
    path('purchase-orders/<int:pk>/receipts/', purchase_order_receipts, name='purchase-order-receipts'),
    path('receipts/<int:pk>/', receipt_detail, name='receipt-detail'),
]
