"""
Web push delivery

Subscriptions are stored per browser; payloads are encrypted and signed by pywebpush
using the VAPID keys from settings.
"""
import json
import logging
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.db.models import F
from django.db.models.functions import Coalesce
from django.utils import timezone
from pywebpush import WebPushException, webpush

from .models import NotificationPreference, PushSubscription

logger = logging.getLogger('backend.notifications')

TYPE_TASK_ASSIGNED = 'task_assigned'
TYPE_TASK_DUE_SOON = 'task_due_soon'
TYPE_TASK_URGENT = 'task_urgent'
TYPE_COMPLIANCE_REPORT_DUE = 'compliance_report_due'
TYPE_COMPLIANCE_REQUIRES_APPROVAL = 'compliance_requires_approval'
TYPE_COMPLIANCE_APPROVED = 'compliance_approved'
TYPE_COMPLIANCE_REJECTED = 'compliance_rejected'
TYPE_SYNC_COMPLETED = 'sync_completed'
TYPE_SYNC_FAILED = 'sync_failed'
TYPE_GENERAL = 'general'

NOTIFICATION_TYPES = [
    TYPE_TASK_ASSIGNED, TYPE_TASK_DUE_SOON, TYPE_TASK_URGENT,
    TYPE_COMPLIANCE_REPORT_DUE, TYPE_COMPLIANCE_REQUIRES_APPROVAL,
    TYPE_COMPLIANCE_APPROVED, TYPE_COMPLIANCE_REJECTED,
    TYPE_SYNC_COMPLETED, TYPE_SYNC_FAILED, TYPE_GENERAL,
]

# Preference toggle consulted for each notification type; general is always allowed
PREFERENCE_FOR_TYPE = {
    TYPE_TASK_ASSIGNED: 'task_assignments',
    TYPE_TASK_DUE_SOON: 'task_reminders',
    TYPE_TASK_URGENT: 'task_assignments',
    TYPE_COMPLIANCE_REPORT_DUE: 'compliance_alerts',
    TYPE_COMPLIANCE_REQUIRES_APPROVAL: 'compliance_alerts',
    TYPE_COMPLIANCE_APPROVED: 'compliance_alerts',
    TYPE_COMPLIANCE_REJECTED: 'compliance_alerts',
    TYPE_SYNC_COMPLETED: 'sync_status',
    TYPE_SYNC_FAILED: 'sync_status',
}

MAX_FAILURE_COUNT = 5
EXPIRED_SUBSCRIPTION_DAYS = 30
PUSH_TTL_SECONDS = 86400
DEFAULT_ICON = '/icons/icon-192x192.png'
DEFAULT_BADGE = '/icons/icon-72x72.png'

DEVICE_NAMES = [
    ('iphone', 'iPhone'),
    ('ipad', 'iPad'),
    ('android', 'Android Device'),
    ('windows', 'Windows Device'),
    ('mac', 'Mac'),
    ('linux', 'Linux Device'),
]


def device_name_from_user_agent(user_agent):
    if not user_agent:
        return 'Unknown Device'
    ua = user_agent.lower()
    for token, name in DEVICE_NAMES:
        if token in ua:
            return name
    return 'Unknown Device'


# Subscriptions

def save_subscription(user, endpoint, p256dh_key, auth_key, user_agent=None, device_name=None):
    """Create or refresh the subscription for (user, endpoint)"""
    subscription = PushSubscription.objects.filter(user=user, endpoint=endpoint).first()
    if subscription is not None:
        subscription.p256dh_key = p256dh_key
        subscription.auth_key = auth_key
        subscription.user_agent = user_agent or subscription.user_agent
        subscription.device_name = device_name or subscription.device_name
        subscription.is_active = True
        subscription.failure_count = 0
        subscription.last_failure_at = None
        subscription.save()
        logger.info(f"Updated push subscription {subscription.id} for user {user.id}")
        return subscription

    subscription = PushSubscription.objects.create(
        user=user,
        endpoint=endpoint,
        p256dh_key=p256dh_key,
        auth_key=auth_key,
        user_agent=user_agent,
        device_name=device_name or device_name_from_user_agent(user_agent),
    )
    logger.info(f"Created new push subscription for user {user.id}")
    return subscription


def remove_subscription(user, endpoint=None, subscription_id=None):
    subscriptions = PushSubscription.objects.filter(user=user)
    if subscription_id is not None:
        subscription = subscriptions.filter(pk=subscription_id).first()
    else:
        subscription = subscriptions.filter(endpoint=endpoint).first()
    if subscription is None:
        return False
    logger.info(f"Removed push subscription {subscription.id} for user {user.id}")
    subscription.delete()
    return True


def active_subscriptions(user):
    """Active subscriptions, most recently used first"""
    return PushSubscription.objects.filter(user=user, is_active=True).annotate(
        last_activity=Coalesce('last_used_at', 'created_at')
    ).order_by(F('last_activity').desc())


def mark_failed(subscription):
    subscription.failure_count += 1
    subscription.last_failure_at = timezone.now()
    if subscription.failure_count >= MAX_FAILURE_COUNT:
        subscription.is_active = False
        logger.warning(
            f"Deactivated push subscription {subscription.id} after {subscription.failure_count} failures"
        )
    subscription.save(update_fields=['failure_count', 'last_failure_at', 'is_active'])


def mark_used(subscription):
    subscription.last_used_at = timezone.now()
    subscription.failure_count = 0
    subscription.last_failure_at = None
    subscription.save(update_fields=['last_used_at', 'failure_count', 'last_failure_at'])


def deactivate(subscription):
    subscription.is_active = False
    subscription.save(update_fields=['is_active'])
    logger.info(f"Deactivated push subscription {subscription.id}")


def cleanup_expired_subscriptions():
    """Delete inactive subscriptions unused for 30 days"""
    cutoff = timezone.now() - timedelta(days=EXPIRED_SUBSCRIPTION_DAYS)
    expired = PushSubscription.objects.filter(is_active=False).annotate(
        last_activity=Coalesce('last_used_at', 'created_at')
    ).filter(last_activity__lt=cutoff)
    count = expired.count()
    if count:
        PushSubscription.objects.filter(pk__in=list(expired.values_list('pk', flat=True))).delete()
        logger.info(f"Cleaned up {count} expired push subscriptions")
    return count


# Preferences

def get_preferences(user):
    preferences, created = NotificationPreference.objects.get_or_create(user=user)
    return preferences


def update_preferences(user, data):
    preferences = get_preferences(user)
    for field, value in data.items():
        setattr(preferences, field, value)
    preferences.save()
    logger.info(f"Updated notification preferences for user {user.id}")
    return preferences


def _user_local_time(preferences, now=None):
    now = now or timezone.now()
    try:
        zone = ZoneInfo(preferences.timezone or 'UTC')
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{preferences.timezone}' for user {preferences.user_id}; using UTC")
        zone = ZoneInfo('UTC')
    return now.astimezone(zone).time()


def in_quiet_hours(preferences, now=None):
    start, end = preferences.quiet_hours_start, preferences.quiet_hours_end
    if start is None or end is None:
        return False
    current = _user_local_time(preferences, now)
    if start > end:
        # Window spans midnight, e.g. 22:00-08:00
        return current >= start or current <= end
    return start <= current <= end


def should_notify(user, notification_type, now=None):
    preferences = get_preferences(user)
    if not preferences.notifications_enabled:
        return False

    toggle = PREFERENCE_FOR_TYPE.get(notification_type)
    if toggle is not None and not getattr(preferences, toggle):
        return False

    if in_quiet_hours(preferences, now):
        logger.debug(f"Suppressing notification for user {user.id} during quiet hours")
        return False
    return True


# Sending

def build_payload(notification_type, title, body, entity_id=None, url=None, tag=None, icon=None, badge=None,
                  custom_data=None, actions=None):
    return {
        'title': title or 'Caskr',
        'body': body or '',
        'icon': icon or DEFAULT_ICON,
        'badge': badge or DEFAULT_BADGE,
        'tag': tag,
        'data': {
            'type': notification_type,
            'entityId': entity_id,
            'url': url,
            'customData': custom_data,
        },
        'actions': actions,
    }


def send_to_subscription(subscription, payload):
    """Deliver one payload; returns True when the push service accepted it"""
    if not settings.VAPID_PRIVATE_KEY:
        logger.warning('VAPID keys not configured, skipping push notification')
        return False

    try:
        webpush(
            subscription_info={
                'endpoint': subscription.endpoint,
                'keys': {'p256dh': subscription.p256dh_key, 'auth': subscription.auth_key},
            },
            data=json.dumps(payload),
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_claims={'sub': settings.VAPID_SUBJECT},
            ttl=PUSH_TTL_SECONDS,
        )
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else None
        if status_code in (404, 410):
            logger.info(f"Subscription {subscription.id} returned {status_code}, deactivating")
            deactivate(subscription)
        else:
            logger.warning(f"Push notification to {subscription.id} failed with status {status_code}: {str(e)}")
            mark_failed(subscription)
        return False
    except Exception as e:
        logger.error(f"Exception sending push notification to subscription {subscription.id}: {str(e)}")
        mark_failed(subscription)
        return False

    mark_used(subscription)
    return True


def send_to_user(user, notification_type, title, body, entity_id=None, url=None, **extra):
    """Send to all of a user's active subscriptions, honouring their preferences; returns the sent count"""
    if not should_notify(user, notification_type):
        logger.debug(f"Skipping notification for user {user.id} based on preferences")
        return 0

    subscriptions = list(active_subscriptions(user))
    if not subscriptions:
        logger.debug(f"No active subscriptions for user {user.id}")
        return 0

    payload = build_payload(notification_type, title, body, entity_id=entity_id, url=url, **extra)
    sent = sum(1 for subscription in subscriptions if send_to_subscription(subscription, payload))
    logger.info(f"Sent {sent}/{len(subscriptions)} notifications to user {user.id}")
    return sent


def send_to_users(users, notification_type, title, body, entity_id=None, url=None, **extra):
    return sum(send_to_user(user, notification_type, title, body, entity_id=entity_id, url=url, **extra)
               for user in users)


def send_test_notification(user):
    sent = send_to_user(
        user,
        TYPE_GENERAL,
        'Test Notification',
        'If you see this, push notifications are working!',
        url='/',
        tag='test',
    )
    return sent > 0
