from rest_framework import serializers
from .models import WebhookDelivery, WebhookSubscription


class WebhookSubscriptionSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = WebhookSubscription
        fields = [
            'id', 'company', 'name', 'target_url', 'event_types', 'is_active',
            'created_by', 'created_by_name', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class WebhookSubscriptionCreatedSerializer(WebhookSubscriptionSerializer):
    """Returned once on creation; the secret is not shown again"""

    class Meta(WebhookSubscriptionSerializer.Meta):
        fields = WebhookSubscriptionSerializer.Meta.fields + ['secret_key']
        read_only_fields = fields


class WebhookSubscriptionInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    target_url = serializers.CharField(max_length=500)
    event_types = serializers.ListField(child=serializers.CharField(max_length=50), allow_empty=False)


class WebhookDeliverySerializer(serializers.ModelSerializer):
    class Meta:
        model = WebhookDelivery
        fields = [
            'id', 'subscription', 'event_type', 'event_id', 'payload', 'delivery_status', 'http_status_code',
            'response_body', 'retry_count', 'next_retry_at', 'delivered_at', 'created_at',
        ]
        read_only_fields = fields
