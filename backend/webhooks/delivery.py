"""
Webhook delivery worker

Pending and retrying deliveries are posted to their subscription's endpoint with an
HMAC signature header. Non-2xx responses and network errors are retried on a fixed
backoff schedule; after the last retry the delivery is marked failed and the
subscription's creator is emailed.
"""
import logging
from datetime import timedelta

import requests
from django.db.models import Q
from django.utils import timezone

from backend.core.emails import AUTOMATED_FOOTER, send_email
from .models import WebhookDelivery
from .services import calculate_signature

logger = logging.getLogger('backend.webhooks')

MAX_RETRY_ATTEMPTS = 5
BATCH_SIZE = 100
REQUEST_TIMEOUT_SECONDS = 10
MAX_RESPONSE_BODY_LENGTH = 1000
RETRY_DELAYS_MINUTES = [1, 5, 15, 60, 360]
USER_AGENT = 'Caskr-Webhooks/1.0'


def truncate_response(body):
    if body and len(body) > MAX_RESPONSE_BODY_LENGTH:
        return body[:MAX_RESPONSE_BODY_LENGTH] + '...[truncated]'
    return body


def retry_delay(retry_count):
    index = min(max(retry_count - 1, 0), len(RETRY_DELAYS_MINUTES) - 1)
    return timedelta(minutes=RETRY_DELAYS_MINUTES[index])


def due_deliveries(now, limit=BATCH_SIZE):
    return (WebhookDelivery.objects
            .filter(delivery_status__in=[WebhookDelivery.STATUS_PENDING, WebhookDelivery.STATUS_RETRYING])
            .filter(Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now))
            .select_related('subscription', 'subscription__created_by')
            .order_by('created_at', 'id')[:limit])


def process_pending_deliveries(now=None):
    """Attempt every due delivery once; returns counts by outcome"""
    now = now or timezone.now()
    counts = {'processed': 0, 'succeeded': 0, 'retrying': 0, 'failed': 0}
    for delivery in due_deliveries(now):
        status = deliver(delivery, now)
        counts['processed'] += 1
        if status == WebhookDelivery.STATUS_SUCCESS:
            counts['succeeded'] += 1
        elif status == WebhookDelivery.STATUS_RETRYING:
            counts['retrying'] += 1
        else:
            counts['failed'] += 1
    if counts['processed']:
        logger.info(
            f"Processed {counts['processed']} webhook deliveries: {counts['succeeded']} succeeded, "
            f"{counts['retrying']} retrying, {counts['failed']} failed"
        )
    return counts


def deliver(delivery, now=None):
    now = now or timezone.now()
    subscription = delivery.subscription

    if not subscription.is_active:
        delivery.delivery_status = WebhookDelivery.STATUS_FAILED
        delivery.response_body = 'Subscription is no longer active'
        delivery.next_retry_at = None
        delivery.save(update_fields=['delivery_status', 'response_body', 'next_retry_at'])
        logger.warning(f"Webhook delivery {delivery.id} skipped: subscription {subscription.id} is inactive")
        return delivery.delivery_status

    headers = {
        'Content-Type': 'application/json',
        'User-Agent': USER_AGENT,
        'X-Caskr-Signature': calculate_signature(delivery.payload, subscription.secret_key),
        'X-Caskr-Event': delivery.event_type,
        'X-Caskr-Delivery-Id': str(delivery.id),
    }

    try:
        response = requests.post(
            subscription.target_url,
            data=delivery.payload.encode('utf-8'),
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS
        )
    except requests.exceptions.Timeout:
        logger.warning(f"Webhook delivery {delivery.id} to {subscription.target_url} timed out")
        return _record_failure(delivery, None, f"Request timed out after {REQUEST_TIMEOUT_SECONDS} seconds", now)
    except requests.exceptions.RequestException as e:
        logger.warning(f"Webhook delivery {delivery.id} to {subscription.target_url} failed: {str(e)}")
        return _record_failure(delivery, None, f"Network error: {str(e)}", now)

    if 200 <= response.status_code < 300:
        delivery.delivery_status = WebhookDelivery.STATUS_SUCCESS
        delivery.http_status_code = response.status_code
        delivery.response_body = truncate_response(response.text)
        delivery.delivered_at = now
        delivery.next_retry_at = None
        delivery.save(update_fields=[
            'delivery_status', 'http_status_code', 'response_body', 'delivered_at', 'next_retry_at'
        ])
        logger.info(f"Webhook delivery {delivery.id} succeeded with HTTP {response.status_code}")
        return delivery.delivery_status

    logger.warning(f"Webhook delivery {delivery.id} returned HTTP {response.status_code}")
    return _record_failure(
        delivery, response.status_code, f"HTTP {response.status_code}: {truncate_response(response.text)}", now
    )


def _record_failure(delivery, status_code, message, now):
    delivery.retry_count += 1
    delivery.http_status_code = status_code
    delivery.response_body = truncate_response(message)

    if delivery.retry_count >= MAX_RETRY_ATTEMPTS:
        delivery.delivery_status = WebhookDelivery.STATUS_FAILED
        delivery.next_retry_at = None
        logger.error(f"Webhook delivery {delivery.id} permanently failed after {delivery.retry_count} attempts")
        _notify_permanent_failure(delivery)
    else:
        delivery.delivery_status = WebhookDelivery.STATUS_RETRYING
        delivery.next_retry_at = now + retry_delay(delivery.retry_count)
        logger.info(f"Webhook delivery {delivery.id} scheduled for retry {delivery.retry_count} at {delivery.next_retry_at}")

    delivery.save(update_fields=[
        'retry_count', 'http_status_code', 'response_body', 'delivery_status', 'next_retry_at'
    ])
    return delivery.delivery_status


def _notify_permanent_failure(delivery):
    subscription = delivery.subscription
    creator = subscription.created_by
    if creator is None or not creator.email:
        return False
    body = (
        f"A webhook delivery has permanently failed after {MAX_RETRY_ATTEMPTS} attempts.\n\n"
        f"Webhook: {subscription.name}\n"
        f"Target URL: {subscription.target_url}\n"
        f"Event: {delivery.event_type} (ID {delivery.event_id})\n"
        f"Delivery ID: {delivery.id}\n"
        f"Last error: {delivery.response_body}\n\n"
        "Check that the endpoint is reachable and returns a 2xx status, then re-enable or update the webhook.\n\n"
        f"{AUTOMATED_FOOTER}"
    )
    return send_email(creator.email, f"Webhook Delivery Failed: {subscription.name}", body)
