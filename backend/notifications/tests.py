"""
Test suite for web push notifications
"""
from datetime import datetime, time, timedelta, timezone as dt_timezone
from unittest.mock import Mock, patch

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from pywebpush import WebPushException
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.notifications import services
from backend.notifications.models import NotificationPreference, PushSubscription

IPHONE_UA = 'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15'


def create_subscription(user, endpoint='https://push.example.com/sub/1', **kwargs):
    return PushSubscription.objects.create(
        user=user, endpoint=endpoint, p256dh_key='p256dh', auth_key='auth', **kwargs
    )


class SubscriptionServiceTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_device_name(self):
        self.assertEqual(services.device_name_from_user_agent(IPHONE_UA), 'iPhone')
        self.assertEqual(services.device_name_from_user_agent('Mozilla/5.0 (X11; Linux x86_64)'), 'Linux Device')
        self.assertEqual(services.device_name_from_user_agent(None), 'Unknown Device')

    def test_resubscribe_refreshes_existing(self):
        first = services.save_subscription(self.user, 'https://push.example.com/a', 'k1', 'a1', user_agent=IPHONE_UA)
        first.failure_count = 3
        first.is_active = False
        first.save()

        second = services.save_subscription(self.user, 'https://push.example.com/a', 'k2', 'a2')

        self.assertEqual(first.id, second.id)
        second.refresh_from_db()
        self.assertEqual(second.p256dh_key, 'k2')
        self.assertEqual(second.device_name, 'iPhone')
        self.assertTrue(second.is_active)
        self.assertEqual(second.failure_count, 0)

    def test_failures_deactivate_after_limit(self):
        subscription = create_subscription(self.user)
        for _ in range(services.MAX_FAILURE_COUNT - 1):
            services.mark_failed(subscription)
        self.assertTrue(subscription.is_active)

        services.mark_failed(subscription)

        subscription.refresh_from_db()
        self.assertFalse(subscription.is_active)
        self.assertEqual(subscription.failure_count, services.MAX_FAILURE_COUNT)

    def test_active_subscriptions_most_recent_first(self):
        older = create_subscription(self.user, endpoint='https://push.example.com/old')
        newer = create_subscription(self.user, endpoint='https://push.example.com/new')
        create_subscription(self.user, endpoint='https://push.example.com/off', is_active=False)
        PushSubscription.objects.filter(pk=older.pk).update(last_used_at=timezone.now() - timedelta(days=2))
        PushSubscription.objects.filter(pk=newer.pk).update(last_used_at=timezone.now())

        self.assertEqual([s.id for s in services.active_subscriptions(self.user)], [newer.id, older.id])

    def test_cleanup_expired(self):
        stale = create_subscription(self.user, endpoint='https://push.example.com/stale', is_active=False)
        PushSubscription.objects.filter(pk=stale.pk).update(last_used_at=timezone.now() - timedelta(days=31))
        recent = create_subscription(self.user, endpoint='https://push.example.com/recent', is_active=False)
        active = create_subscription(self.user, endpoint='https://push.example.com/active')

        call_command('cleanup_push_subscriptions', stdout=Mock())

        remaining = set(PushSubscription.objects.values_list('id', flat=True))
        self.assertEqual(remaining, {recent.id, active.id})


class PreferenceTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.preferences = services.get_preferences(self.user)

    def at(self, hour, minute=0):
        return datetime(2026, 7, 1, hour, minute, tzinfo=dt_timezone.utc)

    def test_quiet_hours_spanning_midnight(self):
        self.preferences.quiet_hours_start = time(22, 0)
        self.preferences.quiet_hours_end = time(8, 0)

        self.assertTrue(services.in_quiet_hours(self.preferences, self.at(23)))
        self.assertTrue(services.in_quiet_hours(self.preferences, self.at(7, 30)))
        self.assertFalse(services.in_quiet_hours(self.preferences, self.at(12)))

    def test_quiet_hours_use_user_timezone(self):
        self.preferences.quiet_hours_start = time(12, 0)
        self.preferences.quiet_hours_end = time(13, 0)
        self.preferences.timezone = 'America/New_York'

        # 16:30 UTC is 12:30 in New York during daylight time
        self.assertTrue(services.in_quiet_hours(self.preferences, self.at(16, 30)))
        self.assertFalse(services.in_quiet_hours(self.preferences, self.at(12, 30)))

    def test_category_toggles(self):
        services.update_preferences(self.user, {'compliance_alerts': False})

        self.assertFalse(services.should_notify(self.user, services.TYPE_COMPLIANCE_APPROVED))
        self.assertTrue(services.should_notify(self.user, services.TYPE_TASK_ASSIGNED))
        self.assertTrue(services.should_notify(self.user, services.TYPE_GENERAL))

    def test_master_switch(self):
        services.update_preferences(self.user, {'notifications_enabled': False})
        self.assertFalse(services.should_notify(self.user, services.TYPE_GENERAL))


@override_settings(VAPID_PRIVATE_KEY='private-key', VAPID_SUBJECT='mailto:ops@example.com')
@patch('backend.notifications.services.webpush')
class DeliveryTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.subscription = create_subscription(self.user)

    def test_send_to_user(self, webpush):
        sent = services.send_to_user(self.user, services.TYPE_TASK_ASSIGNED, 'New task', 'Check barrel 12',
                                     entity_id=7, url='/tasks/7')

        self.assertEqual(sent, 1)
        kwargs = webpush.call_args.kwargs
        self.assertEqual(kwargs['subscription_info']['endpoint'], self.subscription.endpoint)
        self.assertEqual(kwargs['vapid_claims'], {'sub': 'mailto:ops@example.com'})
        self.assertIn('"entityId": 7', kwargs['data'])
        self.subscription.refresh_from_db()
        self.assertIsNotNone(self.subscription.last_used_at)

    def test_gone_subscription_deactivated(self, webpush):
        webpush.side_effect = WebPushException('Gone', response=Mock(status_code=410))

        self.assertEqual(services.send_to_user(self.user, services.TYPE_GENERAL, 'Hi', 'There'), 0)

        self.subscription.refresh_from_db()
        self.assertFalse(self.subscription.is_active)

    def test_server_error_counts_failure(self, webpush):
        webpush.side_effect = WebPushException('Server error', response=Mock(status_code=500))

        services.send_to_user(self.user, services.TYPE_GENERAL, 'Hi', 'There')

        self.subscription.refresh_from_db()
        self.assertTrue(self.subscription.is_active)
        self.assertEqual(self.subscription.failure_count, 1)

    def test_preferences_suppress_delivery(self, webpush):
        services.update_preferences(self.user, {'task_reminders': False})
        self.assertEqual(services.send_to_user(self.user, services.TYPE_TASK_DUE_SOON, 'Due', 'Soon'), 0)
        webpush.assert_not_called()

    @override_settings(VAPID_PRIVATE_KEY='')
    def test_unconfigured_keys_skip(self, webpush):
        self.assertEqual(services.send_to_user(self.user, services.TYPE_GENERAL, 'Hi', 'There'), 0)
        webpush.assert_not_called()


class PushAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    @override_settings(VAPID_PUBLIC_KEY='public-key')
    def test_public_key_is_open(self):
        self.client.logout()
        response = self.client.get('/api/v1/push/vapid-public-key/')
        self.assertEqual(response.data, {'public_key': 'public-key'})

    @override_settings(VAPID_PUBLIC_KEY='')
    def test_public_key_unconfigured(self):
        response = self.client.get('/api/v1/push/vapid-public-key/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_subscribe_list_and_unsubscribe(self):
        response = self.client.post('/api/v1/push/subscribe/', {
            'endpoint': 'https://push.example.com/sub/9', 'p256dh_key': 'k', 'auth_key': 'a',
        }, HTTP_USER_AGENT=IPHONE_UA)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['device_name'], 'iPhone')

        response = self.client.get('/api/v1/push/subscriptions/')
        self.assertEqual(len(response.data), 1)

        response = self.client.delete('/api/v1/push/subscribe/', {'endpoint': 'https://push.example.com/sub/9'},
                                      format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(PushSubscription.objects.exists())

    def test_subscribe_validation(self):
        response = self.client.post('/api/v1/push/subscribe/', {'endpoint': 'https://push.example.com/x'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid subscription data')

    def test_cannot_remove_other_users_subscription(self):
        other = create_subscription(TestDataFactory.create_user())
        response = self.client.delete(f'/api/v1/push/subscriptions/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(PushSubscription.objects.filter(pk=other.id).exists())

    def test_preferences_round_trip(self):
        response = self.client.get('/api/v1/push/preferences/')
        self.assertTrue(response.data['notifications_enabled'])

        response = self.client.put('/api/v1/push/preferences/', {
            'quiet_hours_start': '22:00', 'quiet_hours_end': '07:00', 'timezone': 'Europe/London',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quiet_hours_start'], '22:00')
        preferences = NotificationPreference.objects.get(user=self.user)
        self.assertEqual(preferences.timezone, 'Europe/London')

    def test_unknown_timezone_rejected(self):
        response = self.client.put('/api/v1/push/preferences/', {'timezone': 'Mars/Olympus'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_send_test_without_subscriptions(self):
        response = self.client.post('/api/v1/push/test/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/push/subscriptions/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
