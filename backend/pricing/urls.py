from django.urls import path
from .views import (
    pricing_page, pricing_tiers, pricing_tier_by_slug, pricing_features, pricing_faqs,
    validate_promo, apply_promo,
    admin_tier_list_create, admin_tier_detail, admin_feature_list_create, admin_feature_detail,
    admin_tier_feature_add, admin_tier_feature_detail, admin_faq_list_create, admin_faq_detail,
    admin_promotion_list_create, admin_promotion_detail, admin_audit_logs, admin_preview
)

urlpatterns = [
    # Public pricing page
    path('pricing/', pricing_page, name='pricing-page'),
    path('pricing/tiers/', pricing_tiers, name='pricing-tiers'),
    path('pricing/tiers/<slug:slug>/', pricing_tier_by_slug, name='pricing-tier-by-slug'),
    path('pricing/features/', pricing_features, name='pricing-features'),
    path('pricing/faqs/', pricing_faqs, name='pricing-faqs'),
    path('pricing/validate-promo/', validate_promo, name='pricing-validate-promo'),
    path('pricing/apply-promo/', apply_promo, name='pricing-apply-promo'),

    # Administration
    path('admin/pricing/tiers/', admin_tier_list_create, name='admin-pricing-tier-list-create'),
    path('admin/pricing/tiers/<int:pk>/', admin_tier_detail, name='admin-pricing-tier-detail'),
    path('admin/pricing/tiers/<int:tier_id>/features/', admin_tier_feature_add, name='admin-pricing-tier-feature-add'),
    path('admin/pricing/tiers/<int:tier_id>/features/<int:feature_id>/', admin_tier_feature_detail, name='admin-pricing-tier-feature-detail'),
    path('admin/pricing/features/', admin_feature_list_create, name='admin-pricing-feature-list-create'),
    path('admin/pricing/features/<int:pk>/', admin_feature_detail, name='admin-pricing-feature-detail'),
    path('admin/pricing/faqs/', admin_faq_list_create, name='admin-pricing-faq-list-create'),
    path('admin/pricing/faqs/<int:pk>/', admin_faq_detail, name='admin-pricing-faq-detail'),
    path('admin/pricing/promotions/', admin_promotion_list_create, name='admin-pricing-promotion-list-create'),
    path('admin/pricing/promotions/<int:pk>/', admin_promotion_detail, name='admin-pricing-promotion-detail'),
    path('admin/pricing/audit-logs/', admin_audit_logs, name='admin-pricing-audit-logs'),
    path('admin/pricing/preview/', admin_preview, name='admin-pricing-preview'),
]
