from django.urls import path
from .views import (
    event_types, subscription_list_create, subscription_detail, subscription_deactivate, subscription_reactivate,
    subscription_deliveries
)

urlpatterns = [
    path('webhooks/event-types/', event_types, name='webhook-event-types'),
    path('webhooks/', subscription_list_create, name='webhook-list-create'),
    path('webhooks/<int:pk>/', subscription_detail, name='webhook-detail'),
    path('webhooks/<int:pk>/deactivate/', subscription_deactivate, name='webhook-deactivate'),
    path('webhooks/<int:pk>/reactivate/', subscription_reactivate, name='webhook-reactivate'),
    path('webhooks/<int:pk>/deliveries/', subscription_deliveries, name='webhook-deliveries'),
]
