"""
Public pricing page data and promo codes

Page data is served from the cache for PRICING_CACHE_TTL seconds; every admin change
calls invalidate_cache().
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.cache import cache
from django.db.models import Prefetch
from django.utils import timezone

from backend.core.cache_utils import PRICING_CACHE_TTL, invalidate_cache_pattern
from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.utils import sanitize_for_log
from .models import PricingFaq, PricingFeature, PricingPromotion, PricingTier, PricingTierFeature

logger = logging.getLogger('backend.pricing')

CACHE_KEY_TIERS = 'Pricing:Tiers'
CACHE_KEY_FEATURES = 'Pricing:Features'
CACHE_KEY_FAQS = 'Pricing:Faqs'
CACHE_KEY_PAGE_DATA = 'Pricing:PageData'
CACHE_KEYS = (CACHE_KEY_TIERS, CACHE_KEY_FEATURES, CACHE_KEY_FAQS, CACHE_KEY_PAGE_DATA)
DEFAULT_CATEGORY = 'Other'


def format_whole_dollars(cents):
    """$1,234 from 123400 cents"""
    if cents is None:
        return None
    amount = (Decimal(cents) / 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return f"${amount:,}"


def format_dollars(cents):
    """$1,234.50 from 123450 cents"""
    if cents is None:
        return None
    amount = (Decimal(cents) / 100).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    return f"${amount:,}"


def _cached(key, builder):
    data = cache.get(key)
    if data is not None:
        logger.debug(f"Cache HIT for {key}")
        return data
    data = builder()
    cache.set(key, data, PRICING_CACHE_TTL)
    return data


def invalidate_cache():
    invalidate_cache_pattern('Pricing:', known_keys=CACHE_KEYS)
    logger.info("Pricing cache invalidated")


# Page data

def tier_data(tier, include_inactive_features=False):
    tier_features = [
        tf for tf in tier.tier_features.all()
        if include_inactive_features or tf.feature.is_active
    ]
    tier_features.sort(key=lambda tf: (tf.feature.category or '', tf.feature.sort_order))
    return {
        'id': tier.id,
        'name': tier.name,
        'slug': tier.slug,
        'tagline': tier.tagline,
        'monthly_price_cents': tier.monthly_price_cents,
        'annual_price_cents': tier.annual_price_cents,
        'annual_discount_percent': tier.annual_discount_percent,
        'is_popular': tier.is_popular,
        'is_custom_pricing': tier.is_custom_pricing,
        'is_active': tier.is_active,
        'cta_text': tier.cta_text,
        'cta_url': tier.cta_url,
        'sort_order': tier.sort_order,
        'monthly_price_formatted': format_whole_dollars(tier.monthly_price_cents),
        'annual_price_formatted': format_whole_dollars(tier.annual_price_cents),
        'annual_savings_message': (
            f"Save {tier.annual_discount_percent}%" if tier.annual_discount_percent > 0 else None
        ),
        'features': [
            {
                'feature_id': tf.feature_id,
                'name': tf.feature.name,
                'description': tf.feature.description,
                'category': tf.feature.category,
                'is_included': tf.is_included,
                'limit_value': tf.limit_value,
                'limit_description': tf.limit_description,
                'sort_order': tf.feature.sort_order,
            }
            for tf in tier_features
        ],
    }


def _tier_queryset():
    return PricingTier.objects.prefetch_related(
        Prefetch('tier_features', queryset=PricingTierFeature.objects.select_related('feature'))
    ).order_by('sort_order', 'id')


def features_by_category(features):
    """Group features into [{category, features}] keeping the incoming order"""
    groups = {}
    for feature in features:
        groups.setdefault(feature.category or DEFAULT_CATEGORY, []).append({
            'id': feature.id,
            'name': feature.name,
            'description': feature.description,
            'category': feature.category,
            'sort_order': feature.sort_order,
        })
    return [{'category': category, 'features': items} for category, items in groups.items()]


def faq_data(faq):
    return {'id': faq.id, 'question': faq.question, 'answer': faq.answer, 'sort_order': faq.sort_order}


def get_active_tiers():
    return _cached(CACHE_KEY_TIERS, lambda: [tier_data(t) for t in _tier_queryset().filter(is_active=True)])


def get_tier_by_slug(slug):
    slug = (slug or '').strip().lower()
    for tier in get_active_tiers():
        if tier['slug'].lower() == slug:
            return tier
    raise NotFound(f"Pricing tier '{sanitize_for_log(slug)}' not found")


def get_features():
    return _cached(CACHE_KEY_FEATURES, lambda: features_by_category(
        PricingFeature.objects.filter(is_active=True).order_by('category', 'sort_order', 'id')
    ))


def get_faqs():
    return _cached(CACHE_KEY_FAQS, lambda: [
        faq_data(f) for f in PricingFaq.objects.filter(is_active=True).order_by('sort_order', 'id')
    ])


def get_page_data():
    return _cached(CACHE_KEY_PAGE_DATA, lambda: {
        'tiers': get_active_tiers(),
        'features_by_category': get_features(),
        'faqs': get_faqs(),
        'generated_at': timezone.now().isoformat(),
    })


def preview_page_data():
    """Uncached page data including inactive tiers, features and FAQs"""
    return {
        'tiers': [tier_data(t, include_inactive_features=True) for t in _tier_queryset()],
        'features_by_category': features_by_category(PricingFeature.objects.order_by('category', 'sort_order', 'id')),
        'faqs': [faq_data(f) for f in PricingFaq.objects.order_by('sort_order', 'id')],
        'generated_at': timezone.now().isoformat(),
    }


# Promo codes

def discount_description(discount_type, value):
    if discount_type == PricingPromotion.DISCOUNT_PERCENTAGE:
        return f"{value}% off"
    if discount_type == PricingPromotion.DISCOUNT_FIXED_AMOUNT:
        return f"{format_dollars(value or 0)} off"
    if discount_type == PricingPromotion.DISCOUNT_FREE_MONTHS:
        return f"{value} free month(s)"
    return None


def _invalid(message):
    return {'is_valid': False, 'error_message': message, 'promotion': None}


def validate_promo(code, tier_id=None, now=None):
    """Check a promo code, optionally against a tier; returns {is_valid, error_message, promotion}"""
    code = (code or '').strip()
    if not code:
        return _invalid('Promo code is required')

    promo = PricingPromotion.objects.filter(code__iexact=code, is_active=True).first()
    if promo is None:
        logger.info(f"Promo code validation failed: code '{sanitize_for_log(code)}' not found")
        return _invalid('Invalid promo code')

    now = now or timezone.now()
    if promo.valid_from and now < promo.valid_from:
        return _invalid('This promo code is not yet active')
    if promo.valid_until and now > promo.valid_until:
        return _invalid('This promo code has expired')
    if promo.max_redemptions is not None and promo.current_redemptions >= promo.max_redemptions:
        return _invalid('This promo code has reached its maximum redemptions')

    tier_ids = [int(t) for t in promo.applies_to_tiers or []]
    if tier_id is not None and tier_ids and int(tier_id) not in tier_ids:
        logger.info(f"Promo code '{sanitize_for_log(code)}' not applicable to tier {tier_id}")
        return _invalid('This promo code is not applicable to the selected tier')

    logger.info(f"Promo code '{sanitize_for_log(code)}' validated successfully")
    return {
        'is_valid': True,
        'error_message': None,
        'promotion': {
            'code': promo.code,
            'description': promo.description,
            'discount_type': promo.discount_type,
            'discount_value': promo.discount_value,
            'applicable_tier_ids': tier_ids,
            'discount_description': discount_description(promo.discount_type, promo.discount_value),
        },
    }


def _discounted(price, discount_type, value):
    if price is None:
        return None
    if discount_type == PricingPromotion.DISCOUNT_PERCENTAGE:
        return price - price * value // 100
    if discount_type == PricingPromotion.DISCOUNT_FIXED_AMOUNT:
        return max(0, price - value)
    return price


def apply_promo(code, tier_id, now=None):
    """Price a tier with a promo code; invalid codes raise ValidationFailed"""
    validation = validate_promo(code, tier_id, now)
    if not validation['is_valid']:
        raise ValidationFailed(validation['error_message'])

    tier = PricingTier.objects.filter(pk=tier_id, is_active=True).first()
    if tier is None:
        raise ValidationFailed('Tier not found')
    if tier.is_custom_pricing:
        raise ValidationFailed('Promo codes cannot be applied to custom pricing tiers')

    promo = validation['promotion']
    discount_type = promo['discount_type']
    value = promo['discount_value']
    monthly = _discounted(tier.monthly_price_cents, discount_type, value)
    annual = _discounted(tier.annual_price_cents, discount_type, value)

    logger.info(f"Promo code '{sanitize_for_log(promo['code'])}' applied to tier {tier.id}: {discount_type} {value}")
    return {
        'success': True,
        'error_message': None,
        'code': promo['code'],
        'tier_id': tier.id,
        'discount_type': discount_type,
        'discount_value': value,
        'free_months': value if discount_type == PricingPromotion.DISCOUNT_FREE_MONTHS else None,
        'original_monthly_price_cents': tier.monthly_price_cents,
        'discounted_monthly_price_cents': monthly,
        'original_annual_price_cents': tier.annual_price_cents,
        'discounted_annual_price_cents': annual,
        'original_monthly_price_formatted': format_dollars(tier.monthly_price_cents),
        'discounted_monthly_price_formatted': format_dollars(monthly),
        'original_annual_price_formatted': format_dollars(tier.annual_price_cents),
        'discounted_annual_price_formatted': format_dollars(annual),
    }
