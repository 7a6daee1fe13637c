"""
Test suite for inventory
Tests: batches, orders and barrels, and the TTB transactions their lifecycle events record
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import Order
from backend.ttb import gauges
from backend.ttb.models import TtbTaxDetermination, TtbTransaction


class BatchAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)

    def test_create_and_filter_batches(self):
        response = self.client.post('/api/v1/batches/', {'name': 'Fall Bourbon'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'planned')
        TestDataFactory.create_batch(self.company, status='completed')

        response = self.client.get('/api/v1/batches/', {'status': 'planned'})

        self.assertEqual([b['name'] for b in response.data], ['Fall Bourbon'])

    def test_complete_batch_logs_production(self):
        batch = TestDataFactory.create_batch(self.company, status='in_progress')
        TestDataFactory.create_order(self.company, batch=batch, quantity=2)

        response = self.client.post(f'/api/v1/batches/{batch.id}/complete/', {'production_date': '2026-07-01'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['batch']['status'], 'completed')
        transaction = TtbTransaction.objects.get(source_entity_type='Batch', source_entity_id=batch.id)
        self.assertEqual(transaction.transaction_type, 'production')
        self.assertEqual(transaction.product_type, 'Bourbon')
        self.assertEqual(transaction.wine_gallons, Decimal('106.00'))
        self.assertEqual(transaction.proof_gallons, Decimal('132.50'))
        self.assertTrue(AuditLog.objects.filter(model_name='Batch', action='complete').exists())

    def test_complete_batch_without_orders_fails(self):
        batch = TestDataFactory.create_batch(self.company)

        response = self.client.post(f'/api/v1/batches/{batch.id}/complete/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        batch.refresh_from_db()
        self.assertEqual(batch.status, 'planned')

    def test_complete_twice_rejected(self):
        batch = TestDataFactory.create_batch(self.company, status='completed')
        response = self.client.post(f'/api/v1/batches/{batch.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mash_bill_from_other_company_rejected(self):
        response = self.client.post('/api/v1/mash-bills/', {'name': 'High Rye', 'company_id': self.company.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        mash_bill_id = response.data['id']

        outsider = TestDataFactory.create_user()
        self.client.authenticate_user(outsider)
        response = self.client.post('/api/v1/batches/', {'name': 'Borrowed', 'mash_bill': mash_bill_id})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class OrderAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)
        self.bourbon = TestDataFactory.create_spirit_type('Bourbon')

    def test_create_defaults_owner_to_caller(self):
        response = self.client.post('/api/v1/orders/', {
            'name': 'Private barrel', 'spirit_type': self.bourbon.id, 'quantity': 3,
        })

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['owner'], self.user.id)
        self.assertEqual(response.data['spirit_type_name'], 'Bourbon')

    def test_status_change_is_audited(self):
        order = TestDataFactory.create_order(self.company)

        self.client.patch(f'/api/v1/orders/{order.id}/', {'status_name': 'Tax Paid'}, format='json')

        entry = AuditLog.objects.get(model_name='Order', action='status_change')
        self.assertEqual(entry.changes['status_name'], {'old': 'In Progress', 'new': 'Tax Paid'})

    def test_inactive_statuses(self):
        self.assertTrue(Order(status_name=' Sold ').is_inactive())
        self.assertTrue(Order(status_name='Transferred Out').is_inactive())
        self.assertFalse(Order(status_name='In Progress').is_inactive())

    def test_transfer_in_recorded_once(self):
        order = TestDataFactory.create_order(self.company, quantity=1)

        response = self.client.post(f'/api/v1/orders/{order.id}/transfer-in/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['proof_gallons']), Decimal('66.25'))

        response = self.client.post(f'/api/v1/orders/{order.id}/transfer-in/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_transfer_out_requires_quantity(self):
        order = TestDataFactory.create_order(self.company, quantity=0)
        response = self.client.post(f'/api/v1/orders/{order.id}/transfer-out/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tax_determination_preview_and_record(self):
        order = TestDataFactory.create_order(self.company, quantity=1)
        barrel = TestDataFactory.create_barrel(self.company, order=order)
        gauges.create_gauge_record(barrel.id, 'removal', Decimal('125'), Decimal('60'), Decimal('50'))

        response = self.client.get(f'/api/v1/orders/{order.id}/tax-determination/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_proof_gallons'], Decimal('62.50'))
        self.assertEqual(response.data['total_tax_due'], Decimal('833.75'))

        response = self.client.post(f'/api/v1/orders/{order.id}/tax-determination/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(TtbTaxDetermination.objects.filter(order=order).count(), 1)

    def test_tax_determination_without_removal_gauges(self):
        order = TestDataFactory.create_order(self.company)
        response = self.client.get(f'/api/v1/orders/{order.id}/tax-determination/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_other_company_order_forbidden(self):
        order = TestDataFactory.create_order(TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BarrelAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)
        self.rickhouse = TestDataFactory.create_rickhouse(self.company)
        self.order = TestDataFactory.create_order(self.company)

    def test_create_and_filter(self):
        response = self.client.post('/api/v1/barrels/', {
            'sku': 'BRL-0001', 'order': self.order.id, 'rickhouse': self.rickhouse.id,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        TestDataFactory.create_barrel(self.company)

        response = self.client.get('/api/v1/barrels/', {'rickhouse_id': self.rickhouse.id})

        self.assertEqual([b['sku'] for b in response.data], ['BRL-0001'])

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_barrel(self.company, sku='BRL-0001')
        response = self.client.post('/api/v1/barrels/', {'sku': 'BRL-0001'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cross_company_rickhouse_rejected(self):
        foreign = TestDataFactory.create_rickhouse(TestDataFactory.create_company())
        response = self.client.post('/api/v1/barrels/', {'sku': 'BRL-0002', 'rickhouse': foreign.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('rickhouse', response.data)

    def test_loss_recorded_once(self):
        barrel = TestDataFactory.create_barrel(self.company, order=self.order)

        response = self.client.post(f'/api/v1/barrels/{barrel.id}/loss/', {'proof_gallons': '10', 'reason': 'Leak'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        loss = TtbTransaction.objects.get(transaction_type='loss', source_entity_id=barrel.id)
        self.assertEqual(loss.wine_gallons, Decimal('8.00'))
        self.assertEqual(loss.notes, f'Loss recorded for barrel {barrel.sku}: Leak')

        response = self.client.post(f'/api/v1/barrels/{barrel.id}/loss/', {'proof_gallons': '5'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_loss_requires_order(self):
        barrel = TestDataFactory.create_barrel(self.company)
        response = self.client.post(f'/api/v1/barrels/{barrel.id}/loss/', {'proof_gallons': '10'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_loss_requires_proof_gallons(self):
        barrel = TestDataFactory.create_barrel(self.company, order=self.order)
        response = self.client.post(f'/api/v1/barrels/{barrel.id}/loss/', {'reason': 'Leak'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
