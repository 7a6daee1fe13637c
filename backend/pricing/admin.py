from django.contrib import admin
from .models import PricingTier, PricingFeature, PricingTierFeature, PricingFaq, PricingPromotion, PricingAuditLog


class PricingTierFeatureInline(admin.TabularInline):
    model = PricingTierFeature
    extra = 1


@admin.register(PricingTier)
class PricingTierAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'monthly_price_cents', 'annual_price_cents', 'is_popular', 'is_active', 'sort_order']
    list_filter = ['is_active', 'is_popular', 'is_custom_pricing']
    search_fields = ['name', 'slug', 'tagline']
    ordering = ['sort_order']
    inlines = [PricingTierFeatureInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(PricingFeature)
class PricingFeatureAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'sort_order', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'description']
    ordering = ['category', 'sort_order']


@admin.register(PricingFaq)
class PricingFaqAdmin(admin.ModelAdmin):
    list_display = ['question', 'sort_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['question', 'answer']
    ordering = ['sort_order']


@admin.register(PricingPromotion)
class PricingPromotionAdmin(admin.ModelAdmin):
    list_display = ['code', 'discount_type', 'discount_value', 'valid_from', 'valid_until', 'current_redemptions', 'max_redemptions', 'is_active']
    list_filter = ['discount_type', 'is_active']
    search_fields = ['code', 'description']
    ordering = ['-created_at']
    readonly_fields = ['current_redemptions', 'created_at', 'updated_at']


@admin.register(PricingAuditLog)
class PricingAuditLogAdmin(admin.ModelAdmin):
    list_display = ['change_timestamp', 'entity_type', 'entity_id', 'action', 'changed_by', 'ip_address']
    list_filter = ['entity_type', 'action', 'change_timestamp']
    search_fields = ['change_description']
    ordering = ['-change_timestamp']
    readonly_fields = [f.name for f in PricingAuditLog._meta.fields]
