from django.contrib import admin
from .models import PushSubscription, NotificationPreference


@admin.register(PushSubscription)
class PushSubscriptionAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'device_name', 'is_active', 'failure_count', 'last_used_at', 'created_at']
    list_filter = ['is_active', 'device_name']
    search_fields = ['user__username', 'endpoint']


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ['user', 'notifications_enabled', 'task_assignments', 'compliance_alerts', 'timezone']
    list_filter = ['notifications_enabled']
