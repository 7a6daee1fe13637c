"""
Outgoing webhooks

Events are recorded as pending deliveries, one per matching active subscription; the
deliver_webhooks command posts them. Payloads are signed with HMAC-SHA256 over the raw
JSON body using the subscription's secret key.
"""
import hashlib
import hmac
import json
import logging
import secrets
from urllib.parse import urlparse

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from backend.core.exceptions import NotFound, ValidationFailed
from .models import WebhookDelivery, WebhookSubscription

logger = logging.getLogger('backend.webhooks')

BARREL_CREATED = 'barrel.created'
BARREL_UPDATED = 'barrel.updated'
BARREL_MOVED = 'barrel.moved'
BATCH_CREATED = 'batch.created'
BATCH_COMPLETED = 'batch.completed'
ORDER_CREATED = 'order.created'
ORDER_COMPLETED = 'order.completed'
TASK_CREATED = 'task.created'
TASK_COMPLETED = 'task.completed'
TRANSFER_CREATED = 'transfer.created'
TTB_REPORT_SUBMITTED = 'ttb_report.submitted'

EVENT_TYPES = [
    BARREL_CREATED, BARREL_UPDATED, BARREL_MOVED,
    BATCH_CREATED, BATCH_COMPLETED,
    ORDER_CREATED, ORDER_COMPLETED,
    TASK_CREATED, TASK_COMPLETED,
    TRANSFER_CREATED,
    TTB_REPORT_SUBMITTED,
]

DEFAULT_DELIVERY_LIMIT = 50


def generate_secret_key():
    return secrets.token_hex(32)


def calculate_signature(payload, secret_key):
    digest = hmac.new(secret_key.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def build_payload(event_type, event_id, data, company_id):
    return json.dumps({
        'event_type': event_type,
        'event_id': event_id,
        'timestamp': timezone.now(),
        'data': data,
        'company_id': company_id,
    }, cls=DjangoJSONEncoder, separators=(',', ':'))


def trigger_event(event_type, event_id, data, company_id):
    """Queue a delivery for every active subscription of the company listening to the event"""
    if event_type not in EVENT_TYPES:
        logger.warning(f"Invalid webhook event type: {event_type}")
        return []

    try:
        subscriptions = [
            s for s in WebhookSubscription.objects.filter(company_id=company_id, is_active=True)
            if event_type in (s.event_types or [])
        ]
        if not subscriptions:
            logger.debug(f"No active webhook subscriptions for event {event_type} in company {company_id}")
            return []

        payload = build_payload(event_type, event_id, data, company_id)
        deliveries = WebhookDelivery.objects.bulk_create([
            WebhookDelivery(subscription=s, event_type=event_type, event_id=event_id, payload=payload)
            for s in subscriptions
        ])
    except Exception as e:
        logger.error(f"Failed to queue webhook event {event_type} for entity {event_id}: {str(e)}")
        return []

    logger.info(f"Created {len(deliveries)} webhook deliveries for event {event_type} in company {company_id}")
    return deliveries


def _validate_event_types(event_types):
    if not event_types:
        raise ValidationFailed('At least one event type is required.')
    invalid = [e for e in event_types if e not in EVENT_TYPES]
    if invalid:
        raise ValidationFailed(
            f"Invalid event types: {', '.join(invalid)}. Valid types are: {', '.join(EVENT_TYPES)}"
        )


def _validate_target_url(url):
    parsed = urlparse(url or '')
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValidationFailed('Target URL must be a valid HTTP or HTTPS URL')


def create_subscription(company_id, name, target_url, event_types, created_by=None):
    _validate_event_types(event_types)
    _validate_target_url(target_url)
    subscription = WebhookSubscription.objects.create(
        company_id=company_id,
        name=name,
        target_url=target_url,
        event_types=list(dict.fromkeys(event_types)),
        secret_key=generate_secret_key(),
        created_by=created_by,
    )
    logger.info(
        f"Created webhook subscription {subscription.id} for company {company_id} "
        f"with events: {', '.join(subscription.event_types)}"
    )
    return subscription


def get_subscription(company_id, subscription_id):
    subscription = WebhookSubscription.objects.filter(pk=subscription_id, company_id=company_id).first()
    if subscription is None:
        raise NotFound(f"Webhook subscription {subscription_id} not found")
    return subscription


def list_subscriptions(company_id):
    return WebhookSubscription.objects.filter(company_id=company_id).order_by('-created_at')


def set_active(subscription, is_active):
    subscription.is_active = is_active
    subscription.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"{'Reactivated' if is_active else 'Deactivated'} webhook subscription {subscription.id}")
    return subscription


def delete_subscription(subscription):
    subscription_id = subscription.id
    subscription.delete()
    logger.info(f"Deleted webhook subscription {subscription_id}")


def recent_deliveries(subscription, limit=DEFAULT_DELIVERY_LIMIT):
    return subscription.deliveries.order_by('-created_at', '-id')[:limit]
