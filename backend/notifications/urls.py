from django.urls import path
from .views import vapid_public_key, subscribe, subscription_list, subscription_delete, preferences, send_test

urlpatterns = [
    path('push/vapid-public-key/', vapid_public_key, name='push-vapid-public-key'),
    path('push/subscribe/', subscribe, name='push-subscribe'),
    path('push/subscriptions/', subscription_list, name='push-subscription-list'),
    path('push/subscriptions/<int:pk>/', subscription_delete, name='push-subscription-delete'),
    path('push/preferences/', preferences, name='push-preferences'),
    path('push/test/', send_test, name='push-test'),
]
