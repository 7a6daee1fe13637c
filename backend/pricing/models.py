from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from backend.core.models import User


class PricingTier(models.Model):
    """Subscription tier shown on the public pricing page"""
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=50, unique=True)
    tagline = models.CharField(max_length=200, blank=True, null=True)
    monthly_price_cents = models.IntegerField(null=True, blank=True)
    annual_price_cents = models.IntegerField(null=True, blank=True)
    annual_discount_percent = models.IntegerField(default=0)
    is_popular = models.BooleanField(default=False)
    is_custom_pricing = models.BooleanField(default=False)
    cta_text = models.CharField(max_length=50, blank=True, null=True)
    cta_url = models.CharField(max_length=200, blank=True, null=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'pricing_tiers'
        ordering = ['sort_order', 'id']
        indexes = [
            models.Index(fields=['is_active', 'sort_order'], name='idx_pricing_tier_active_sort'),
        ]


class PricingFeature(models.Model):
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, null=True)
    category = models.CharField(max_length=50, blank=True, null=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'pricing_features'
        ordering = ['category', 'sort_order', 'id']


class PricingTierFeature(models.Model):
    """Whether a tier includes a feature, with an optional limit"""
    tier = models.ForeignKey(PricingTier, on_delete=models.CASCADE, related_name='tier_features')
    feature = models.ForeignKey(PricingFeature, on_delete=models.CASCADE, related_name='tier_features')
    is_included = models.BooleanField(default=True)
    limit_value = models.CharField(max_length=50, blank=True, null=True)
    limit_description = models.CharField(max_length=200, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.tier} - {self.feature}"

    class Meta:
        db_table = 'pricing_tier_features'
        unique_together = [['tier', 'feature']]


class PricingFaq(models.Model):
    question = models.CharField(max_length=500)
    answer = models.TextField()
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.question

    class Meta:
        db_table = 'pricing_faqs'
        ordering = ['sort_order', 'id']


class PricingPromotion(models.Model):
    """Promo code; an empty applies_to_tiers list means every tier"""
    DISCOUNT_PERCENTAGE = 'percentage'
    DISCOUNT_FIXED_AMOUNT = 'fixed_amount'
    DISCOUNT_FREE_MONTHS = 'free_months'
    DISCOUNT_TYPE_CHOICES = [
        (DISCOUNT_PERCENTAGE, 'Percentage'),
        (DISCOUNT_FIXED_AMOUNT, 'Fixed Amount'),
        (DISCOUNT_FREE_MONTHS, 'Free Months'),
    ]

    code = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=200, blank=True, null=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default=DISCOUNT_PERCENTAGE)
    discount_value = models.IntegerField()
    applies_to_tiers = models.JSONField(default=list, blank=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    max_redemptions = models.IntegerField(null=True, blank=True)
    current_redemptions = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'pricing_promotions'
        ordering = ['-created_at']


class PricingAuditLog(models.Model):
    """Change history for pricing page content"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('activate', 'Activate'),
        ('deactivate', 'Deactivate'),
    ]

    entity_type = models.CharField(max_length=50)
    entity_id = models.IntegerField()
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='pricing_changes')
    change_timestamp = models.DateTimeField(auto_now_add=True)
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    change_description = models.TextField(blank=True, null=True)

    def __str__(self):
        return f"{self.action} {self.entity_type} {self.entity_id}"

    class Meta:
        db_table = 'pricing_audit_logs'
        ordering = ['-change_timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='idx_pricing_audit_entity'),
            models.Index(fields=['-change_timestamp'], name='idx_pricing_audit_timestamp'),
        ]
