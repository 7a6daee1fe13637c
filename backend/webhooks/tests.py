"""
Test suite for outgoing webhooks
"""
import hashlib
import hmac
import json
from datetime import timedelta
from io import StringIO
from unittest.mock import Mock, patch

import requests
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.tasks import services as task_services
from backend.webhooks import delivery, services
from backend.webhooks.models import WebhookDelivery, WebhookSubscription


def create_subscription(company, event_types=None, user=None, **kwargs):
    return services.create_subscription(
        company.id,
        kwargs.pop('name', 'ERP sync'),
        kwargs.pop('target_url', 'https://erp.example.com/hooks'),
        event_types or [services.ORDER_CREATED],
        created_by=user,
    )


def http_response(status_code, text=''):
    return Mock(status_code=status_code, text=text)


class SubscriptionServiceTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_create_generates_secret_and_dedupes_events(self):
        subscription = create_subscription(
            self.company, [services.ORDER_CREATED, services.ORDER_CREATED, services.TASK_COMPLETED]
        )

        self.assertEqual(len(subscription.secret_key), 64)
        int(subscription.secret_key, 16)
        self.assertEqual(subscription.event_types, [services.ORDER_CREATED, services.TASK_COMPLETED])
        self.assertTrue(subscription.is_active)

    def test_invalid_event_types_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            create_subscription(self.company, [services.ORDER_CREATED, 'order.exploded'])
        self.assertTrue(ctx.exception.message.startswith('Invalid event types: order.exploded. Valid types are:'))

    def test_target_url_must_be_http(self):
        for url in ('ftp://erp.example.com/hooks', 'erp.example.com/hooks', 'https://'):
            with self.assertRaises(ValidationFailed):
                create_subscription(self.company, target_url=url)
        self.assertFalse(WebhookSubscription.objects.exists())

    def test_signature_is_hmac_sha256_of_payload(self):
        payload = '{"event_type":"order.created"}'
        expected = hmac.new(b'secret', payload.encode('utf-8'), hashlib.sha256).hexdigest()
        self.assertEqual(services.calculate_signature(payload, 'secret'), f'sha256={expected}')

    def test_get_subscription_scoped_to_company(self):
        subscription = create_subscription(self.company)
        other = TestDataFactory.create_company()
        with self.assertRaises(NotFound):
            services.get_subscription(other.id, subscription.id)


class TriggerEventTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_queues_delivery_for_matching_active_subscriptions(self):
        listening = create_subscription(self.company, [services.ORDER_CREATED])
        create_subscription(self.company, [services.TASK_CREATED], name='Tasks only')
        inactive = create_subscription(self.company, [services.ORDER_CREATED], name='Paused')
        services.set_active(inactive, False)
        create_subscription(TestDataFactory.create_company(), [services.ORDER_CREATED], name='Elsewhere')

        deliveries = services.trigger_event(services.ORDER_CREATED, 42, {'name': 'Private barrel'}, self.company.id)

        self.assertEqual(len(deliveries), 1)
        queued = WebhookDelivery.objects.get()
        self.assertEqual(queued.subscription_id, listening.id)
        self.assertEqual(queued.delivery_status, WebhookDelivery.STATUS_PENDING)
        self.assertEqual(queued.event_id, 42)
        payload = json.loads(queued.payload)
        self.assertEqual(payload['event_type'], 'order.created')
        self.assertEqual(payload['event_id'], 42)
        self.assertEqual(payload['company_id'], self.company.id)
        self.assertEqual(payload['data'], {'name': 'Private barrel'})
        self.assertIn('timestamp', payload)

    def test_unknown_event_type_ignored(self):
        create_subscription(self.company)
        self.assertEqual(services.trigger_event('order.exploded', 1, {}, self.company.id), [])
        self.assertFalse(WebhookDelivery.objects.exists())

    def test_task_lifecycle_fires_events(self):
        create_subscription(self.company, [services.TASK_CREATED, services.TASK_COMPLETED])
        order = TestDataFactory.create_order(self.company)

        task = task_services.create_task(order.id, 'Check proof')
        task_services.set_complete(task, True)
        task_services.set_complete(task, True)

        events = list(WebhookDelivery.objects.order_by('id').values_list('event_type', flat=True))
        self.assertEqual(events, ['task.created', 'task.completed'])


@patch('backend.webhooks.delivery.requests.post')
class DeliveryTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.admin = TestDataFactory.create_admin(company=self.company)
        self.subscription = create_subscription(self.company, user=self.admin)
        services.trigger_event(services.ORDER_CREATED, 7, {'name': 'Order'}, self.company.id)
        self.delivery = WebhookDelivery.objects.get()
        self.now = timezone.now()

    def test_success_posts_signed_payload(self, mock_post):
        mock_post.return_value = http_response(200, 'ok')

        counts = delivery.process_pending_deliveries(self.now)

        self.assertEqual(counts, {'processed': 1, 'succeeded': 1, 'retrying': 0, 'failed': 0})
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://erp.example.com/hooks')
        self.assertEqual(kwargs['timeout'], 10)
        self.assertEqual(kwargs['data'], self.delivery.payload.encode('utf-8'))
        headers = kwargs['headers']
        self.assertEqual(headers['X-Caskr-Signature'],
                         services.calculate_signature(self.delivery.payload, self.subscription.secret_key))
        self.assertEqual(headers['X-Caskr-Event'], 'order.created')
        self.assertEqual(headers['X-Caskr-Delivery-Id'], str(self.delivery.id))
        self.assertEqual(headers['User-Agent'], 'Caskr-Webhooks/1.0')

        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.delivery_status, WebhookDelivery.STATUS_SUCCESS)
        self.assertEqual(self.delivery.http_status_code, 200)
        self.assertEqual(self.delivery.delivered_at, self.now)

    def test_error_status_schedules_retry(self, mock_post):
        mock_post.return_value = http_response(500, 'boom')

        delivery.process_pending_deliveries(self.now)

        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.delivery_status, WebhookDelivery.STATUS_RETRYING)
        self.assertEqual(self.delivery.retry_count, 1)
        self.assertEqual(self.delivery.http_status_code, 500)
        self.assertEqual(self.delivery.response_body, 'HTTP 500: boom')
        self.assertEqual(self.delivery.next_retry_at, self.now + timedelta(minutes=1))

    def test_retry_waits_until_due(self, mock_post):
        mock_post.return_value = http_response(503)
        delivery.process_pending_deliveries(self.now)

        counts = delivery.process_pending_deliveries(self.now + timedelta(seconds=30))
        self.assertEqual(counts['processed'], 0)

        counts = delivery.process_pending_deliveries(self.now + timedelta(minutes=1))
        self.assertEqual(counts['processed'], 1)
        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.retry_count, 2)
        self.assertEqual(self.delivery.next_retry_at, self.now + timedelta(minutes=6))

    def test_timeout_and_network_errors(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()
        delivery.deliver(self.delivery, self.now)
        self.assertEqual(self.delivery.response_body, 'Request timed out after 10 seconds')
        self.assertIsNone(self.delivery.http_status_code)

        mock_post.side_effect = requests.exceptions.ConnectionError('connection refused')
        delivery.deliver(self.delivery, self.now)
        self.assertEqual(self.delivery.response_body, 'Network error: connection refused')
        self.assertEqual(self.delivery.retry_count, 2)
        self.assertEqual(self.delivery.delivery_status, WebhookDelivery.STATUS_RETRYING)

    @patch('backend.webhooks.delivery.send_email', return_value=True)
    def test_fails_permanently_after_max_retries_and_emails_creator(self, mock_email, mock_post):
        mock_post.return_value = http_response(404, 'missing')
        self.delivery.retry_count = delivery.MAX_RETRY_ATTEMPTS - 1
        self.delivery.save()

        counts = delivery.process_pending_deliveries(self.now)

        self.assertEqual(counts['failed'], 1)
        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.delivery_status, WebhookDelivery.STATUS_FAILED)
        self.assertEqual(self.delivery.retry_count, 5)
        self.assertIsNone(self.delivery.next_retry_at)
        recipient, subject, body = mock_email.call_args[0]
        self.assertEqual(recipient, self.admin.email)
        self.assertEqual(subject, 'Webhook Delivery Failed: ERP sync')
        self.assertIn('HTTP 404: missing', body)

    def test_inactive_subscription_fails_without_request(self, mock_post):
        services.set_active(self.subscription, False)

        delivery.process_pending_deliveries(self.now)

        mock_post.assert_not_called()
        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.delivery_status, WebhookDelivery.STATUS_FAILED)
        self.assertEqual(self.delivery.response_body, 'Subscription is no longer active')

    def test_long_response_body_truncated(self, mock_post):
        mock_post.return_value = http_response(200, 'x' * 1500)

        delivery.process_pending_deliveries(self.now)

        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.response_body, 'x' * 1000 + '...[truncated]')

    def test_command_reports_counts(self, mock_post):
        mock_post.return_value = http_response(204)
        out = StringIO()
        call_command('deliver_webhooks', stdout=out)
        self.assertIn('Processed 1 webhook delivery(ies): 1 succeeded', out.getvalue())

    def test_retry_delays_follow_schedule(self, mock_post):
        self.assertEqual(
            [delivery.retry_delay(n) for n in range(1, 6)],
            [timedelta(minutes=m) for m in (1, 5, 15, 60, 360)]
        )


class WebhookAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.admin = TestDataFactory.create_admin(company=self.company)
        self.client.authenticate_user(self.admin)

    def test_create_returns_secret_once(self):
        response = self.client.post('/api/v1/webhooks/', {
            'name': 'ERP sync',
            'target_url': 'https://erp.example.com/hooks',
            'event_types': ['order.created', 'batch.completed'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['secret_key']), 64)
        self.assertEqual(response.data['created_by'], self.admin.id)

        response = self.client.get('/api/v1/webhooks/')
        self.assertEqual(len(response.data), 1)
        self.assertNotIn('secret_key', response.data[0])

    def test_invalid_event_type_returns_400(self):
        response = self.client.post('/api/v1/webhooks/', {
            'name': 'Bad', 'target_url': 'https://erp.example.com/hooks', 'event_types': ['nope'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid event types: nope', response.data['error'])

    def test_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user(company=self.company))
        response = self.client.get('/api/v1/webhooks/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate_reactivate_and_delete(self):
        subscription = create_subscription(self.company, user=self.admin)

        response = self.client.post(f'/api/v1/webhooks/{subscription.id}/deactivate/')
        self.assertFalse(response.data['is_active'])
        response = self.client.post(f'/api/v1/webhooks/{subscription.id}/reactivate/')
        self.assertTrue(response.data['is_active'])

        response = self.client.delete(f'/api/v1/webhooks/{subscription.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(WebhookSubscription.objects.exists())

    def test_other_company_webhook_not_found(self):
        subscription = create_subscription(TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/webhooks/{subscription.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_recent_deliveries_newest_first(self):
        subscription = create_subscription(self.company)
        for event_id in (1, 2, 3):
            services.trigger_event(services.ORDER_CREATED, event_id, {}, self.company.id)

        response = self.client.get(f'/api/v1/webhooks/{subscription.id}/deliveries/?limit=2')

        self.assertEqual([d['event_id'] for d in response.data], [3, 2])

    def test_event_types(self):
        response = self.client.get('/api/v1/webhooks/event-types/')
        self.assertIn('ttb_report.submitted', response.data['event_types'])

    def test_order_endpoints_fire_events(self):
        create_subscription(self.company, [services.ORDER_CREATED, services.ORDER_COMPLETED])
        bourbon = TestDataFactory.create_spirit_type('Bourbon')

        response = self.client.post('/api/v1/orders/', {
            'name': 'Private barrel', 'spirit_type': bourbon.id, 'quantity': 3,
        })
        order_id = response.data['id']
        self.client.patch(f'/api/v1/orders/{order_id}/', {'status_name': 'Completed'}, format='json')

        queued = list(WebhookDelivery.objects.order_by('id'))
        self.assertEqual([d.event_type for d in queued], ['order.created', 'order.completed'])
        self.assertEqual(json.loads(queued[0].payload)['data']['name'], 'Private barrel')
        self.assertTrue(all(d.event_id == order_id for d in queued))
