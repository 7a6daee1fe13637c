from rest_framework import serializers
from .models import PricingTier, PricingFeature, PricingTierFeature, PricingFaq, PricingPromotion, PricingAuditLog


class PricingTierFeatureSerializer(serializers.ModelSerializer):
    feature_name = serializers.CharField(source='feature.name', read_only=True)
    feature_category = serializers.CharField(source='feature.category', read_only=True, default=None)

    class Meta:
        model = PricingTierFeature
        fields = [
            'id', 'tier', 'feature', 'feature_name', 'feature_category', 'is_included',
            'limit_value', 'limit_description', 'created_at',
        ]
        read_only_fields = fields


class PricingTierSerializer(serializers.ModelSerializer):
    """Admin shape; `id` in the body must match the URL on update"""
    id = serializers.IntegerField(required=False)
    tier_features = PricingTierFeatureSerializer(many=True, read_only=True)

    class Meta:
        model = PricingTier
        fields = [
            'id', 'name', 'slug', 'tagline', 'monthly_price_cents', 'annual_price_cents',
            'annual_discount_percent', 'is_popular', 'is_custom_pricing', 'cta_text', 'cta_url',
            'sort_order', 'is_active', 'tier_features', 'created_at', 'updated_at',
        ]
        read_only_fields = ['tier_features', 'created_at', 'updated_at']
        extra_kwargs = {
            'name': {'required': False, 'allow_blank': True},
            'slug': {'required': False, 'allow_blank': True, 'validators': []},
            'annual_discount_percent': {'min_value': 0, 'max_value': 100},
        }


class PricingFeatureSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(required=False)

    class Meta:
        model = PricingFeature
        fields = ['id', 'name', 'description', 'category', 'sort_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'name': {'required': False, 'allow_blank': True}}


class TierFeatureInputSerializer(serializers.Serializer):
    feature_id = serializers.IntegerField(required=False)
    is_included = serializers.BooleanField(required=False)
    limit_value = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    limit_description = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)


class PricingFaqSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(required=False)

    class Meta:
        model = PricingFaq
        fields = ['id', 'question', 'answer', 'sort_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {
            'question': {'required': False, 'allow_blank': True},
            'answer': {'required': False, 'allow_blank': True},
        }


class PricingPromotionSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(required=False)
    applies_to_tiers = serializers.ListField(child=serializers.IntegerField(), required=False)

    class Meta:
        model = PricingPromotion
        fields = [
            'id', 'code', 'description', 'discount_type', 'discount_value', 'applies_to_tiers',
            'valid_from', 'valid_until', 'max_redemptions', 'current_redemptions', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['current_redemptions', 'created_at', 'updated_at']
        extra_kwargs = {
            'code': {'required': False, 'allow_blank': True, 'validators': []},
            'discount_value': {'min_value': 0},
        }

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', None))
        value = attrs.get('discount_value')
        if discount_type == PricingPromotion.DISCOUNT_PERCENTAGE and value is not None and value > 100:
            raise serializers.ValidationError({'discount_value': 'Percentage discounts cannot exceed 100.'})
        valid_from = attrs.get('valid_from', getattr(self.instance, 'valid_from', None))
        valid_until = attrs.get('valid_until', getattr(self.instance, 'valid_until', None))
        if valid_from and valid_until and valid_until < valid_from:
            raise serializers.ValidationError({'valid_until': 'Must be after valid_from.'})
        return attrs


class PricingAuditLogSerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.name', read_only=True, default=None)

    class Meta:
        model = PricingAuditLog
        fields = [
            'id', 'entity_type', 'entity_id', 'action', 'changed_by', 'changed_by_name',
            'change_timestamp', 'old_values', 'new_values', 'ip_address', 'user_agent',
            'change_description',
        ]
        read_only_fields = fields


class ValidatePromoSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, default='')
    tier_id = serializers.IntegerField(required=False, allow_null=True)


class ApplyPromoSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, default='')
    tier_id = serializers.IntegerField(min_value=1, error_messages={
        'required': 'Valid tier ID is required',
        'min_value': 'Valid tier ID is required',
    })
