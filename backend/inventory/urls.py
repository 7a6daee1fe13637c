from django.urls import path
from .views import (
    spirit_type_list_create, mash_bill_list_create,
    batch_list_create, batch_detail, batch_complete,
    order_list_create, order_detail, order_transfer_in, order_transfer_out, order_tax_determination,
    barrel_list_create, barrel_detail, barrel_loss,
)

urlpatterns = [
    path('spirit-types/', spirit_type_list_create, name='spirit-type-list-create'),
    path('mash-bills/', mash_bill_list_create, name='mash-bill-list-create'),

    # Batch endpoints
    path('batches/', batch_list_create, name='batch-list-create'),
    path('batches/<int:pk>/', batch_detail, name='batch-detail'),
    path('batches/<int:pk>/complete/', batch_complete, name='batch-complete'),

    # Order endpoints
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/transfer-in/', order_transfer_in, name='order-transfer-in'),
    path('orders/<int:pk>/transfer-out/', order_transfer_out, name='order-transfer-out'),
    path('orders/<int:pk>/tax-determination/', order_tax_determination, name='order-tax-determination'),

    # Barrel endpoints
    path('barrels/', barrel_list_create, name='barrel-list-create'),
    path('barrels/<int:pk>/', barrel_detail, name='barrel-detail'),
    path('barrels/<int:pk>/loss/', barrel_loss, name='barrel-loss'),
]
