"""
Pricing administration: CRUD with a pricing audit entry and cache invalidation per change
"""
import logging

from django.db import transaction
from django.forms.models import model_to_dict

from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.utils import get_client_ip, get_user_agent, sanitize_for_log
from . import services
from .models import PricingAuditLog, PricingFaq, PricingFeature, PricingPromotion, PricingTier, PricingTierFeature

logger = logging.getLogger('backend.pricing')

ACTION_VERBS = {
    'create': 'created',
    'update': 'updated',
    'delete': 'deleted',
    'activate': 'activated',
    'deactivate': 'deactivated',
}
DEFAULT_AUDIT_LIMIT = 100


# Audit trail

def snapshot(entity):
    values = model_to_dict(entity)
    values['id'] = entity.pk
    return values


def describe_change(action, entity):
    verb = ACTION_VERBS.get(action, 'modified')
    if isinstance(entity, PricingTier):
        return f"Pricing tier '{entity.name}' ({entity.slug}) was {verb}"
    if isinstance(entity, PricingFeature):
        return f"Pricing feature '{entity.name}' was {verb}"
    if isinstance(entity, PricingTierFeature):
        return f"Tier-feature mapping (Tier {entity.tier_id}, Feature {entity.feature_id}) was {verb}"
    if isinstance(entity, PricingFaq):
        return f"FAQ '{entity.question[:50]}' was {verb}"
    if isinstance(entity, PricingPromotion):
        return f"Promo code '{entity.code}' was {verb}"
    return f"{type(entity).__name__} was {verb}"


def log_change(request, action, entity, old_values=None, entity_id=None):
    """Record a pricing change and drop the cached page data"""
    user = getattr(request, 'user', None)
    entry = PricingAuditLog.objects.create(
        entity_type=type(entity).__name__,
        entity_id=entity_id if entity_id is not None else entity.pk,
        action=action,
        changed_by=user if user is not None and user.is_authenticated else None,
        old_values=old_values,
        new_values=None if action == 'delete' else snapshot(entity),
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        change_description=describe_change(action, entity),
    )
    logger.info(
        f"Pricing Audit: {action} {entry.entity_type} ID {entry.entity_id} "
        f"by User {entry.changed_by_id}"
    )
    services.invalidate_cache()
    return entry


def query_audit_logs(entity_type=None, entity_id=None, start=None, end=None, limit=DEFAULT_AUDIT_LIMIT):
    logs = PricingAuditLog.objects.select_related('changed_by')
    if entity_type:
        logs = logs.filter(entity_type=entity_type)
    if entity_id is not None:
        logs = logs.filter(entity_id=entity_id)
    if start:
        logs = logs.filter(change_timestamp__date__gte=start)
    if end:
        logs = logs.filter(change_timestamp__date__lte=end)
    return logs.order_by('-change_timestamp', '-id')[:limit]


def _apply(entity, data, exclude=('id',)):
    for field, value in data.items():
        if field not in exclude:
            setattr(entity, field, value)


def _check_id(entity, data):
    if data.get('id') is not None and int(data['id']) != entity.pk:
        raise ValidationFailed('ID mismatch')


def _delete(request, entity):
    entity_id = entity.pk
    old_values = snapshot(entity)
    entity.delete()
    log_change(request, 'delete', entity, old_values=old_values, entity_id=entity_id)


# Tiers

def _check_slug(slug, exclude_id=None):
    duplicates = PricingTier.objects.filter(slug=slug)
    if exclude_id is not None:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise ValidationFailed('A tier with this slug already exists')


@transaction.atomic
def create_tier(request, data):
    name = (data.get('name') or '').strip()
    slug = (data.get('slug') or '').strip()
    if not name or not slug:
        raise ValidationFailed('Name and slug are required')
    _check_slug(slug)

    tier = PricingTier(name=name, slug=slug)
    _apply(tier, data, exclude=('id', 'name', 'slug'))
    tier.save()
    log_change(request, 'create', tier)
    logger.info(f"Created pricing tier '{sanitize_for_log(name)}' (ID: {tier.id})")
    return tier


@transaction.atomic
def update_tier(request, tier, data):
    _check_id(tier, data)
    if 'name' in data and not (data['name'] or '').strip():
        raise ValidationFailed('Name and slug are required')
    if 'slug' in data:
        if not (data['slug'] or '').strip():
            raise ValidationFailed('Name and slug are required')
        _check_slug(data['slug'], exclude_id=tier.pk)

    old_values = snapshot(tier)
    was_active = tier.is_active
    _apply(tier, data)
    tier.save()
    action = 'update'
    if set(data) == {'is_active'} and was_active != tier.is_active:
        action = 'activate' if tier.is_active else 'deactivate'
    log_change(request, action, tier, old_values=old_values)
    logger.info(f"Updated pricing tier '{sanitize_for_log(tier.name)}' (ID: {tier.id})")
    return tier


def delete_tier(request, tier):
    logger.info(f"Deleting pricing tier '{sanitize_for_log(tier.name)}' (ID: {tier.id})")
    _delete(request, tier)


# Features

@transaction.atomic
def create_feature(request, data):
    if not (data.get('name') or '').strip():
        raise ValidationFailed('Name is required')
    feature = PricingFeature()
    _apply(feature, data)
    feature.save()
    log_change(request, 'create', feature)
    return feature


@transaction.atomic
def update_feature(request, feature, data):
    _check_id(feature, data)
    if 'name' in data and not (data['name'] or '').strip():
        raise ValidationFailed('Name is required')
    old_values = snapshot(feature)
    _apply(feature, data)
    feature.save()
    log_change(request, 'update', feature, old_values=old_values)
    return feature


def delete_feature(request, feature):
    _delete(request, feature)


# Tier features

def _get_tier_feature(tier_id, feature_id):
    tier_feature = PricingTierFeature.objects.filter(tier_id=tier_id, feature_id=feature_id).first()
    if tier_feature is None:
        raise NotFound('Tier-feature mapping not found')
    return tier_feature


@transaction.atomic
def add_tier_feature(request, tier_id, data):
    if not PricingTier.objects.filter(pk=tier_id).exists():
        raise NotFound('Tier not found')
    feature_id = data.get('feature_id')
    if not PricingFeature.objects.filter(pk=feature_id).exists():
        raise NotFound('Feature not found')
    if PricingTierFeature.objects.filter(tier_id=tier_id, feature_id=feature_id).exists():
        raise ValidationFailed('This feature is already associated with this tier')

    tier_feature = PricingTierFeature(tier_id=tier_id, feature_id=feature_id)
    _apply(tier_feature, data, exclude=('id', 'feature_id', 'tier_id'))
    tier_feature.save()
    log_change(request, 'create', tier_feature)
    logger.info(f"Added feature {feature_id} to tier {tier_id}")
    return tier_feature


@transaction.atomic
def update_tier_feature(request, tier_id, feature_id, data):
    tier_feature = _get_tier_feature(tier_id, feature_id)
    old_values = snapshot(tier_feature)
    _apply(tier_feature, data, exclude=('id', 'feature_id', 'tier_id'))
    tier_feature.save()
    log_change(request, 'update', tier_feature, old_values=old_values)
    return tier_feature


def remove_tier_feature(request, tier_id, feature_id):
    _delete(request, _get_tier_feature(tier_id, feature_id))
    logger.info(f"Removed feature {feature_id} from tier {tier_id}")


# FAQs

def _check_faq(question, answer):
    if not (question or '').strip() or not (answer or '').strip():
        raise ValidationFailed('Question and answer are required')


@transaction.atomic
def create_faq(request, data):
    _check_faq(data.get('question'), data.get('answer'))
    faq = PricingFaq()
    _apply(faq, data)
    faq.save()
    log_change(request, 'create', faq)
    return faq


@transaction.atomic
def update_faq(request, faq, data):
    _check_id(faq, data)
    _check_faq(data.get('question', faq.question), data.get('answer', faq.answer))
    old_values = snapshot(faq)
    _apply(faq, data)
    faq.save()
    log_change(request, 'update', faq, old_values=old_values)
    return faq


def delete_faq(request, faq):
    _delete(request, faq)


# Promotions

def _check_code(code, exclude_id=None):
    code = (code or '').strip()
    if not code:
        raise ValidationFailed('Code is required')
    duplicates = PricingPromotion.objects.filter(code__iexact=code)
    if exclude_id is not None:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise ValidationFailed('A promotion with this code already exists')
    return code


@transaction.atomic
def create_promotion(request, data):
    code = _check_code(data.get('code'))
    promotion = PricingPromotion(code=code)
    _apply(promotion, data, exclude=('id', 'code'))
    promotion.save()
    log_change(request, 'create', promotion)
    logger.info(f"Created promotion '{sanitize_for_log(code)}' (ID: {promotion.id})")
    return promotion


@transaction.atomic
def update_promotion(request, promotion, data):
    _check_id(promotion, data)
    if 'code' in data:
        data = dict(data, code=_check_code(data['code'], exclude_id=promotion.pk))
    old_values = snapshot(promotion)
    _apply(promotion, data)
    promotion.save()
    log_change(request, 'update', promotion, old_values=old_values)
    return promotion


def delete_promotion(request, promotion):
    _delete(request, promotion)
