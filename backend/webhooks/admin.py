from django.contrib import admin
from .models import WebhookSubscription, WebhookDelivery


@admin.register(WebhookSubscription)
class WebhookSubscriptionAdmin(admin.ModelAdmin):
    list_display = ['id', 'company', 'name', 'target_url', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'target_url']
    exclude = ['secret_key']


@admin.register(WebhookDelivery)
class WebhookDeliveryAdmin(admin.ModelAdmin):
    list_display = ['id', 'subscription', 'event_type', 'event_id', 'delivery_status', 'retry_count', 'created_at']
    list_filter = ['delivery_status', 'event_type']
