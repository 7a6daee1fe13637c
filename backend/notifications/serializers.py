from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rest_framework import serializers
from .models import PushSubscription, NotificationPreference


class PushSubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PushSubscription
        fields = ['id', 'device_name', 'is_active', 'created_at', 'last_used_at']
        read_only_fields = fields


class SubscribeSerializer(serializers.Serializer):
    endpoint = serializers.CharField(max_length=500)
    p256dh_key = serializers.CharField(max_length=200)
    auth_key = serializers.CharField(max_length=100)
    device_name = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class NotificationPreferenceSerializer(serializers.ModelSerializer):
    quiet_hours_start = serializers.TimeField(format='%H:%M', required=False, allow_null=True)
    quiet_hours_end = serializers.TimeField(format='%H:%M', required=False, allow_null=True)

    class Meta:
        model = NotificationPreference
        fields = [
            'notifications_enabled', 'task_assignments', 'task_reminders', 'compliance_alerts',
            'sync_status', 'quiet_hours_start', 'quiet_hours_end', 'timezone',
        ]

    def validate_timezone(self, value):
        if not value:
            return 'UTC'
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError(f"Unknown timezone: {value}")
        return value
