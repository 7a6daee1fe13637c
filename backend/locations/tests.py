"""
Test suite for rickhouse management
"""
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import Rickhouse


class RickhouseAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.admin = TestDataFactory.create_admin(company=self.company)
        self.warehouse = TestDataFactory.create_user(company=self.company, user_type='warehouse')
        self.rickhouse = TestDataFactory.create_rickhouse(self.company, name='Warehouse A')

    def test_list_active_rickhouses(self):
        Rickhouse.objects.create(company=self.company, name='Old House', is_active=False)
        TestDataFactory.create_rickhouse(TestDataFactory.create_company(), name='Elsewhere')
        self.client.authenticate_user(self.warehouse)

        response = self.client.get('/api/v1/rickhouses/')
        self.assertEqual([r['name'] for r in response.data], ['Warehouse A'])

        response = self.client.get('/api/v1/rickhouses/', {'include_inactive': 'true'})
        self.assertEqual(len(response.data), 2)

    def test_create_requires_admin(self):
        self.client.authenticate_user(self.warehouse)
        response = self.client.post('/api/v1/rickhouses/', {'name': 'Warehouse B'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_rickhouse_with_audit(self):
        self.client.authenticate_user(self.admin)

        response = self.client.post('/api/v1/rickhouses/', {'name': 'Warehouse B', 'capacity_barrels': 1200})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['company'], self.company.id)
        self.assertEqual(response.data['barrel_count'], 0)
        self.assertTrue(AuditLog.objects.filter(model_name='Rickhouse', action='create').exists())

    def test_duplicate_name_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/rickhouses/', {'name': 'Warehouse A'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_company_forbidden(self):
        other = TestDataFactory.create_rickhouse(TestDataFactory.create_company())
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/rickhouses/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/rickhouses/{self.rickhouse.id}/', {'capacity_barrels': 900},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['capacity_barrels'], 900)

    def test_delete_in_use_deactivates(self):
        TestDataFactory.create_barrel(self.company, rickhouse=self.rickhouse)
        self.client.authenticate_user(self.admin)

        response = self.client.delete(f'/api/v1/rickhouses/{self.rickhouse.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.rickhouse.refresh_from_db()
        self.assertFalse(self.rickhouse.is_active)

    def test_delete_empty_rickhouse(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/rickhouses/{self.rickhouse.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Rickhouse.objects.filter(pk=self.rickhouse.id).exists())
