"""
Test suite for order tasks
"""
from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ValidationFailed
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.tasks import services
from backend.tasks.models import OrderTask


class TaskServiceTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.order = TestDataFactory.create_order(self.company)
        self.user = TestDataFactory.create_user(company=self.company)

    def test_open_tasks_first_then_due_date(self):
        now = timezone.now()
        done = TestDataFactory.create_task(self.order, name='Done', is_complete=True, due_date=now)
        undated = TestDataFactory.create_task(self.order, name='Undated')
        later = TestDataFactory.create_task(self.order, name='Later', due_date=now + timedelta(days=5))
        sooner = TestDataFactory.create_task(self.order, name='Sooner', due_date=now + timedelta(days=1))

        ordered = [t.id for t in services.tasks_for_order(self.order.id)]

        self.assertEqual(ordered, [sooner.id, later.id, undated.id, done.id])

    def test_tasks_for_user_filters(self):
        today = timezone.now()
        TestDataFactory.create_task(self.order, name='Open', assignee=self.user, due_date=today + timedelta(days=10))
        TestDataFactory.create_task(self.order, name='Closed', assignee=self.user, is_complete=True)
        TestDataFactory.create_task(self.order, name='Someone else')

        self.assertEqual([t.name for t in services.tasks_for_user(self.user)], ['Open'])
        self.assertEqual(len(services.tasks_for_user(self.user, include_completed=True)), 2)
        self.assertEqual(list(services.tasks_for_user(self.user, due_before=today.date())), [])

    def test_complete_and_reopen(self):
        task = TestDataFactory.create_task(self.order)

        services.set_complete(task, True)
        self.assertIsNotNone(task.completed_at)

        services.set_complete(task, False)
        task.refresh_from_db()
        self.assertFalse(task.is_complete)
        self.assertIsNone(task.completed_at)

    @patch('backend.tasks.services.push.send_to_user')
    def test_assignment_notifies_new_assignee(self, send_to_user):
        manager = TestDataFactory.create_user(company=self.company)
        task = services.create_task(self.order.id, 'Gauge barrels', assignee_id=self.user.id, created_by=manager)

        send_to_user.assert_called_once()
        self.assertEqual(send_to_user.call_args[0][0], self.user)
        self.assertEqual(send_to_user.call_args[0][1], 'task_assigned')

        send_to_user.reset_mock()
        services.assign_task(task, self.user.id, assigned_by=manager)
        send_to_user.assert_not_called()

    @patch('backend.tasks.services.push.send_to_user')
    def test_self_assignment_is_silent(self, send_to_user):
        services.create_task(self.order.id, 'Own task', assignee_id=self.user.id, created_by=self.user)
        send_to_user.assert_not_called()

    @patch('backend.tasks.services.push.send_to_user')
    def test_assignee_from_another_company_rejected(self, send_to_user):
        outsider = TestDataFactory.create_user()
        task = TestDataFactory.create_task(self.order, name='Seal barrels')

        with self.assertRaises(ValidationFailed):
            services.create_task(self.order.id, 'Gauge barrels', assignee_id=outsider.id)
        with self.assertRaises(ValidationFailed):
            services.assign_task(task, outsider.id)

        task.refresh_from_db()
        self.assertIsNone(task.assignee)
        send_to_user.assert_not_called()

    @patch('backend.tasks.services.push.send_to_user', side_effect=RuntimeError('push down'))
    def test_notification_failure_keeps_task(self, send_to_user):
        task = services.create_task(self.order.id, 'Rotate barrels', assignee_id=self.user.id)
        self.assertTrue(OrderTask.objects.filter(pk=task.id).exists())


class TaskAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.worker = TestDataFactory.create_user(company=self.company, user_type='warehouse')
        self.order = TestDataFactory.create_order(self.company)
        self.client.authenticate_user(self.user)

    def test_create_and_list_for_order(self):
        response = self.client.post('/api/v1/tasks/', {
            'order_id': self.order.id, 'name': '  Fill barrels  ', 'assignee_id': self.worker.id,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Fill barrels')
        self.assertEqual(response.data['assignee'], self.worker.id)

        response = self.client.get(f'/api/v1/orders/{self.order.id}/tasks/')
        self.assertEqual(len(response.data), 1)

    def test_create_validation(self):
        response = self.client.post('/api/v1/tasks/', {'order_id': self.order.id, 'name': 'x' * 201})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Task name cannot exceed 200 characters')

        response = self.client.post('/api/v1/tasks/', {'order_id': 999999, 'name': 'Orphan'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/tasks/', {'order_id': self.order.id, 'name': 'Ghost', 'assignee_id': 999999})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'User with ID 999999 not found')

    def test_my_tasks(self):
        TestDataFactory.create_task(self.order, name='Mine', assignee=self.worker)
        TestDataFactory.create_task(self.order, name='Done', assignee=self.worker, is_complete=True)
        self.client.authenticate_user(self.worker)

        response = self.client.get('/api/v1/tasks/mine/')
        self.assertEqual([t['name'] for t in response.data], ['Mine'])

        response = self.client.get('/api/v1/tasks/mine/', {'include_completed': 'true'})
        self.assertEqual(len(response.data), 2)

    def test_update_assign_complete_delete(self):
        task = TestDataFactory.create_task(self.order, due_date=timezone.now() - timedelta(days=1))

        response = self.client.get(f'/api/v1/tasks/{task.id}/')
        self.assertTrue(response.data['is_overdue'])

        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'name': 'Proof check', 'due_date': None},
                                     format='json')
        self.assertEqual(response.data['name'], 'Proof check')
        self.assertIsNone(response.data['due_date'])

        response = self.client.put(f'/api/v1/tasks/{task.id}/assign/', {'assignee_id': self.worker.id}, format='json')
        self.assertEqual(response.data['assignee_name'], self.worker.username)

        response = self.client.put(f'/api/v1/tasks/{task.id}/assign/', {'assignee_id': None}, format='json')
        self.assertIsNone(response.data['assignee'])

        outsider = TestDataFactory.create_user()
        response = self.client.put(f'/api/v1/tasks/{task.id}/assign/', {'assignee_id': outsider.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], f'User with ID {outsider.id} not found')

        response = self.client.put(f'/api/v1/tasks/{task.id}/complete/', {}, format='json')
        self.assertTrue(response.data['is_complete'])
        self.assertIsNotNone(response.data['completed_at'])

        response = self.client.put(f'/api/v1/tasks/{task.id}/complete/', {'is_complete': False}, format='json')
        self.assertFalse(response.data['is_complete'])

        response = self.client.delete(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_missing_task(self):
        response = self.client.get('/api/v1/tasks/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Task not found')

    def test_other_company_task_forbidden(self):
        other_order = TestDataFactory.create_order(TestDataFactory.create_company())
        task = TestDataFactory.create_task(other_order)

        response = self.client.get(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.post('/api/v1/tasks/', {'order_id': other_order.id, 'name': 'Sneaky'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
