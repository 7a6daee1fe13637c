from django.db import models
from backend.core.models import User


class PushSubscription(models.Model):
    """Browser web push endpoint registered by a user"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='push_subscriptions')
    endpoint = models.CharField(max_length=500)
    p256dh_key = models.CharField(max_length=200)
    auth_key = models.CharField(max_length=100)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    device_name = models.CharField(max_length=100, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    failure_count = models.PositiveIntegerField(default=0)
    last_failure_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.username}: {self.device_name or 'Unknown Device'}"

    class Meta:
        db_table = 'push_subscriptions'
        unique_together = [['user', 'endpoint']]
        indexes = [
            models.Index(fields=['user', 'is_active'], name='idx_push_user_active'),
        ]


class NotificationPreference(models.Model):
    """Per-user push notification categories and quiet hours"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='notification_preference')
    notifications_enabled = models.BooleanField(default=True)
    task_assignments = models.BooleanField(default=True)
    task_reminders = models.BooleanField(default=True)
    compliance_alerts = models.BooleanField(default=True)
    sync_status = models.BooleanField(default=True)
    quiet_hours_start = models.TimeField(null=True, blank=True)
    quiet_hours_end = models.TimeField(null=True, blank=True)
    timezone = models.CharField(max_length=64, default='UTC')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Notification preferences for {self.user.username}"

    class Meta:
        db_table = 'notification_preferences'
