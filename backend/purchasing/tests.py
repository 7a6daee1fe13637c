"""
Test suite for the purchasing module
Tests: suppliers, supplier products, purchase order lifecycle, email, receipts and tenant isolation
"""
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.purchasing import services
from backend.purchasing.models import PurchaseOrder, Supplier


class SupplierServiceTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_create_supplier_trims_name(self):
        supplier = services.create_supplier(self.company.id, {'supplier_name': '  Midwest Grain  ', 'supplier_type': 'grain'})
        self.assertEqual(supplier.supplier_name, 'Midwest Grain')
        self.assertTrue(supplier.is_active)

    def test_supplier_name_required(self):
        with self.assertRaises(ValidationFailed):
            services.create_supplier(self.company.id, {'supplier_name': '   '})

    def test_duplicate_name_is_case_insensitive(self):
        TestDataFactory.create_supplier(self.company, name='Cooper Co')
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_supplier(self.company.id, {'supplier_name': 'cooper co'})
        self.assertEqual(ctx.exception.message, 'A supplier with this name already exists')

    def test_same_name_allowed_in_another_company(self):
        TestDataFactory.create_supplier(self.company, name='Cooper Co')
        other = TestDataFactory.create_company()
        supplier = services.create_supplier(other.id, {'supplier_name': 'Cooper Co'})
        self.assertEqual(supplier.company, other)

    def test_list_excludes_inactive_by_default(self):
        active = TestDataFactory.create_supplier(self.company, name='Active')
        inactive = TestDataFactory.create_supplier(self.company, name='Inactive')
        services.set_supplier_active(inactive, False)
        self.assertEqual(list(services.list_suppliers(self.company.id)), [active])
        self.assertEqual(len(services.list_suppliers(self.company.id, include_inactive=True)), 2)

    def test_duplicate_product_sku(self):
        supplier = TestDataFactory.create_supplier(self.company)
        TestDataFactory.create_supplier_product(supplier, sku='CORN-01')
        with self.assertRaises(ValidationFailed):
            services.create_supplier_product(supplier, {'product_name': 'Corn', 'sku': 'CORN-01'})


class PurchaseOrderServiceTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.supplier = TestDataFactory.create_supplier(self.company)
        self.corn = TestDataFactory.create_supplier_product(self.supplier, name='Corn')
        self.rye = TestDataFactory.create_supplier_product(self.supplier, name='Rye')

    def _create(self, **overrides):
        data = {
            'supplier_id': self.supplier.id,
            'items': [
                {'supplier_product_id': self.corn.id, 'quantity': Decimal('100'), 'unit_price': Decimal('0.25')},
                {'supplier_product_id': self.rye.id, 'quantity': Decimal('0.333'), 'unit_price': Decimal('1.25')},
            ],
        }
        data.update(overrides)
        return services.create_purchase_order(self.company.id, data, created_by=self.user)

    def test_next_po_number_sequence(self):
        year = timezone.now().year
        self.assertEqual(services.next_po_number(self.company.id), f'PO-{year}-001')
        TestDataFactory.create_purchase_order(self.company, supplier=self.supplier, po_number=f'PO-{year}-007')
        self.assertEqual(services.next_po_number(self.company.id), f'PO-{year}-008')

    def test_create_computes_totals(self):
        po = self._create()
        self.assertEqual(po.status, 'draft')
        self.assertEqual(po.items.count(), 2)
        # 100 * 0.25 + round(0.333 * 1.25) = 25.00 + 0.42
        self.assertEqual(po.total_amount, Decimal('25.42'))
        self.assertTrue(po.po_number.startswith('PO-'))

    def test_create_requires_items(self):
        with self.assertRaises(ValidationFailed):
            self._create(items=[])

    def test_create_rejects_other_suppliers_product(self):
        other_supplier = TestDataFactory.create_supplier(self.company)
        foreign = TestDataFactory.create_supplier_product(other_supplier)
        with self.assertRaises(ValidationFailed) as ctx:
            self._create(items=[{'supplier_product_id': foreign.id, 'quantity': 1, 'unit_price': 1}])
        self.assertIn('Invalid product ID', ctx.exception.message)

    def test_create_rejects_supplier_from_other_company(self):
        other = TestDataFactory.create_supplier(TestDataFactory.create_company())
        with self.assertRaises(ValidationFailed) as ctx:
            self._create(supplier_id=other.id)
        self.assertEqual(ctx.exception.message, 'Invalid supplier')

    def test_update_replaces_items(self):
        po = self._create()
        services.update_purchase_order(po, {
            'items': [{'supplier_product_id': self.corn.id, 'quantity': Decimal('10'), 'unit_price': Decimal('2')}],
        })
        po.refresh_from_db()
        self.assertEqual(po.items.count(), 1)
        self.assertEqual(po.total_amount, Decimal('20.00'))

    def test_supplier_change_requires_new_items(self):
        po = self._create()
        other = TestDataFactory.create_supplier(self.company)
        with self.assertRaises(ValidationFailed):
            services.update_purchase_order(po, {'supplier_id': other.id})

    def test_only_drafts_editable(self):
        po = self._create()
        services.send_purchase_order(po)
        with self.assertRaises(ValidationFailed):
            services.update_purchase_order(po, {'notes': 'late change'})
        with self.assertRaises(ValidationFailed):
            services.delete_purchase_order(po)

    def test_cannot_cancel_received_order(self):
        po = TestDataFactory.create_purchase_order(self.company, supplier=self.supplier, status='received')
        with self.assertRaises(ValidationFailed):
            services.cancel_purchase_order(po)

    @patch('backend.purchasing.services.send_email', return_value=True)
    def test_email_marks_draft_sent(self, mock_send):
        po = self._create()
        services.email_purchase_order(po)
        po.refresh_from_db()
        self.assertEqual(po.status, 'sent')
        recipient, subject, body = mock_send.call_args[0]
        self.assertEqual(recipient, self.supplier.email)
        self.assertEqual(subject, f'Purchase Order {po.po_number}')
        self.assertIn('Corn', body)

    def test_email_requires_address(self):
        supplier = TestDataFactory.create_supplier(self.company, email='')
        po = TestDataFactory.create_purchase_order(self.company, supplier=supplier)
        with self.assertRaises(ValidationFailed) as ctx:
            services.email_purchase_order(po)
        self.assertEqual(ctx.exception.message, 'Supplier does not have an email address')

    @patch('backend.purchasing.services.send_email', return_value=False)
    def test_email_failure_keeps_draft(self, mock_send):
        po = self._create()
        with self.assertRaises(ValidationFailed):
            services.email_purchase_order(po, to_email='buyer@test.com')
        po.refresh_from_db()
        self.assertEqual(po.status, 'draft')


class ReceiptServiceTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.po = TestDataFactory.create_purchase_order(self.company, status='sent')
        self.item = TestDataFactory.create_purchase_order_item(self.po, quantity=Decimal('10'))

    def _receive(self, quantity):
        return services.create_receipt(self.po, {
            'items': [{'purchase_order_item_id': self.item.id, 'received_quantity': Decimal(quantity)}],
        }, received_by=self.user)

    def test_partial_then_full_receipt(self):
        self._receive('4')
        self.po.refresh_from_db()
        self.assertEqual(self.po.status, 'partial_received')

        self._receive('6')
        self.po.refresh_from_db()
        self.item.refresh_from_db()
        self.assertEqual(self.po.status, 'received')
        self.assertEqual(self.item.received_quantity, Decimal('10'))
        self.assertEqual(self.po.receipts.count(), 2)

    def test_cannot_receive_draft(self):
        draft = TestDataFactory.create_purchase_order(self.company)
        with self.assertRaises(ValidationFailed):
            services.create_receipt(draft, {'items': []})

    def test_unknown_item_rejected(self):
        with self.assertRaises(ValidationFailed):
            services.create_receipt(self.po, {
                'items': [{'purchase_order_item_id': 999999, 'received_quantity': Decimal('1')}],
            })


class PurchasingAPITests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(self.company, name='Barrel Works')
        self.product = TestDataFactory.create_supplier_product(self.supplier, name='Oak barrel')

    def test_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_supplier_audited(self):
        response = self.client.post('/api/v1/suppliers/', {
            'supplier_name': 'Glass Co', 'supplier_type': 'bottles', 'email': 'sales@glass.test',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['company'], self.company.id)
        log = AuditLog.objects.get(model_name='Supplier', action='create')
        self.assertEqual(log.object_name, 'Glass Co')
        self.assertEqual(log.user, self.user)

    def test_duplicate_supplier_returns_error_envelope(self):
        response = self.client.post('/api/v1/suppliers/', {'supplier_name': 'barrel works'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'A supplier with this name already exists')

    def test_other_company_supplier_forbidden(self):
        foreign = TestDataFactory.create_supplier(TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/suppliers/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate_and_activate(self):
        response = self.client.post(f'/api/v1/suppliers/{self.supplier.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Supplier.objects.get(pk=self.supplier.id).is_active)
        self.client.post(f'/api/v1/suppliers/{self.supplier.id}/activate/')
        self.assertTrue(Supplier.objects.get(pk=self.supplier.id).is_active)

    def test_purchase_order_flow(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier_id': self.supplier.id,
            'items': [{'supplier_product_id': self.product.id, 'quantity': '2', 'unit_price': '150.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        po_id = response.data['id']
        self.assertEqual(response.data['total_amount'], '300.00')
        self.assertEqual(response.data['item_count'], 1)
        item_id = response.data['items'][0]['id']

        response = self.client.post(f'/api/v1/purchase-orders/{po_id}/send/')
        self.assertEqual(response.data['status'], 'sent')

        response = self.client.post(f'/api/v1/purchase-orders/{po_id}/receipts/', {
            'items': [{'purchase_order_item_id': item_id, 'received_quantity': '2'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(PurchaseOrder.objects.get(pk=po_id).status, 'received')
        self.assertTrue(AuditLog.objects.filter(model_name='InventoryReceipt', action='receive').exists())

    def test_list_is_paginated_and_filtered(self):
        TestDataFactory.create_purchase_order(self.company, supplier=self.supplier, status='draft')
        TestDataFactory.create_purchase_order(self.company, supplier=self.supplier, status='sent')
        TestDataFactory.create_purchase_order(TestDataFactory.create_company())

        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/purchase-orders/', {'status': 'sent'})
        self.assertEqual(response.data['count'], 1)

    def test_next_number_endpoint(self):
        response = self.client.get('/api/v1/purchase-orders/next-number/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['po_number'].startswith('PO-'))

    def test_delete_draft(self):
        po = TestDataFactory.create_purchase_order(self.company, supplier=self.supplier)
        response = self.client.delete(f'/api/v1/purchase-orders/{po.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrder.objects.filter(pk=po.id).exists())
