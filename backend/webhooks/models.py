from django.db import models
from backend.core.models import Company, User


class WebhookSubscription(models.Model):
    """External endpoint that receives signed event payloads for a company"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='webhook_subscriptions')
    name = models.CharField(max_length=200)
    target_url = models.URLField(max_length=500)
    event_types = models.JSONField(default=list)
    secret_key = models.CharField(max_length=64)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='webhook_subscriptions')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} -> {self.target_url}"

    class Meta:
        db_table = 'webhook_subscriptions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'is_active'], name='idx_webhook_company_active'),
        ]


class WebhookDelivery(models.Model):
    """One event payload queued for one subscription, with its retry state"""
    STATUS_PENDING = 'pending'
    STATUS_SUCCESS = 'success'
    STATUS_FAILED = 'failed'
    STATUS_RETRYING = 'retrying'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SUCCESS, 'Success'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_RETRYING, 'Retrying'),
    ]

    subscription = models.ForeignKey(WebhookSubscription, on_delete=models.CASCADE, related_name='deliveries')
    event_type = models.CharField(max_length=50)
    event_id = models.IntegerField()
    payload = models.TextField()
    delivery_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    http_status_code = models.IntegerField(null=True, blank=True)
    response_body = models.TextField(blank=True, null=True)
    retry_count = models.PositiveIntegerField(default=0)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.event_type} #{self.event_id} ({self.delivery_status})"

    class Meta:
        db_table = 'webhook_deliveries'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['delivery_status', 'next_retry_at'], name='idx_webhook_delivery_due'),
        ]
