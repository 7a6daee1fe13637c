"""
Test suite for TTB compliance
Tests: volume math, transactions, monthly and storage reports, the review workflow,
gauge records, excise tax, inventory snapshots, scheduled reports and the audit trail
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ConflictError, ValidationFailed
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import Order
from backend.ttb import audit, auto_reports, calculator, excise, gauges, snapshots, transactions, volumes
from backend.ttb.models import (
    TtbAuditLog, TtbInventorySnapshot, TtbMonthlyReport, TtbTaxDetermination, TtbTransaction
)

JUNE = date(2026, 6, 1)


def create_transaction(company, transaction_type, proof_gallons, wine_gallons, transaction_date=JUNE,
                       product_type='Bourbon', spirits_type='under_190_proof', source_entity_type=None,
                       source_entity_id=None):
    return TtbTransaction.objects.create(
        company=company,
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        product_type=product_type,
        spirits_type=spirits_type,
        proof_gallons=Decimal(proof_gallons),
        wine_gallons=Decimal(wine_gallons),
        source_entity_type=source_entity_type,
        source_entity_id=source_entity_id,
    )


def create_snapshot(company, snapshot_date, proof_gallons, wine_gallons, product_type='Bourbon'):
    return TtbInventorySnapshot.objects.create(
        company=company,
        snapshot_date=snapshot_date,
        product_type=product_type,
        spirits_type='under_190_proof',
        proof_gallons=Decimal(proof_gallons),
        wine_gallons=Decimal(wine_gallons),
    )


def create_report(company, user, month=6, year=2026, status=TtbMonthlyReport.STATUS_DRAFT, **kwargs):
    return TtbMonthlyReport.objects.create(
        company=company, report_month=month, report_year=year, status=status, created_by=user, **kwargs
    )


class VolumeTests(TestCase):

    def test_proof_gallons(self):
        self.assertEqual(volumes.calculate_proof_gallons(Decimal('53'), Decimal('62.5')), Decimal('66.25'))
        self.assertEqual(volumes.calculate_proof_gallons(0, 50), Decimal('0.00'))
        self.assertEqual(volumes.calculate_proof_gallons(10, -5), Decimal('0.00'))

    def test_classification(self):
        self.assertEqual(volumes.classify_spirit(' Bourbon '), ('under_190_proof', Decimal('62.5')))
        self.assertEqual(volumes.classify_spirit('Vodka').spirits_type, 'neutral_190_or_more')
        self.assertEqual(volumes.classify_spirit('Brandy').spirits_type, 'wine')
        self.assertEqual(volumes.classify_spirit('Absinthe'), volumes.DEFAULT_CLASSIFICATION)
        self.assertEqual(volumes.classify_spirit(''), volumes.DEFAULT_CLASSIFICATION)

    def test_product_type_precedence(self):
        company = TestDataFactory.create_company()
        order = TestDataFactory.create_order(company, spirit_type=TestDataFactory.create_spirit_type('Gin'))
        barrel = TestDataFactory.create_barrel(company, sku='BRL-1')

        self.assertEqual(volumes.determine_product_type(order=order, barrel=barrel), 'Gin')
        self.assertEqual(volumes.determine_product_type(barrel=barrel), 'BRL-1')
        self.assertEqual(volumes.determine_product_type(), 'Batch 0')

    def test_correction_factor_bands(self):
        self.assertEqual(volumes.get_correction_factor(60, 125), Decimal('1.0000'))
        self.assertEqual(volumes.get_correction_factor(75, 125), Decimal('0.9865'))
        self.assertEqual(volumes.get_correction_factor(35, 90), Decimal('1.0150'))
        self.assertEqual(volumes.get_correction_factor(95, 190), Decimal('0.9640'))

    def test_gauge_rounding_is_half_even(self):
        self.assertEqual(volumes.calculate_gauge_proof_gallons('0.5', '105', '60'), Decimal('0.52'))
        self.assertEqual(volumes.calculate_gauge_proof_gallons('53', '125', '75'), Decimal('65.36'))

    def test_barrel_conversion(self):
        self.assertEqual(volumes.barrels_to_wine_gallons(2), Decimal('106'))
        self.assertEqual(volumes.wine_gallons_to_barrels(Decimal('79.5')), Decimal('1.50'))


class TransactionLoggingTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_production_logged_once(self):
        batch = TestDataFactory.create_batch(self.company)
        TestDataFactory.create_order(self.company, batch=batch, quantity=1)

        first = transactions.log_production(batch, JUNE)
        second = transactions.log_production(batch, JUNE)

        self.assertEqual(first.proof_gallons, Decimal('66.25'))
        self.assertEqual(first.notes, f'Batch {batch.id} completed on 2026-06-01')
        self.assertIsNone(second)

    def test_production_requires_positive_quantity(self):
        batch = TestDataFactory.create_batch(self.company)
        TestDataFactory.create_order(self.company, batch=batch, quantity=0)
        with self.assertRaises(ValidationFailed):
            transactions.log_production(batch, JUNE)

    def test_transfers_reference_order(self):
        order = TestDataFactory.create_order(self.company, spirit_type=TestDataFactory.create_spirit_type('Vodka'))

        entry = transactions.log_transfer_out(order)

        self.assertEqual(entry.source_entity_type, 'Transfer')
        self.assertEqual(entry.source_entity_id, order.id)
        self.assertEqual(entry.spirits_type, 'neutral_190_or_more')
        self.assertEqual(entry.proof_gallons, Decimal('100.70'))
        self.assertEqual(entry.notes, f'Transfer sent using order {order.id}')

    def test_tax_determination_sized_from_order(self):
        order = TestDataFactory.create_order(self.company, quantity=2)
        entry = transactions.log_tax_determination(order)
        self.assertEqual(entry.wine_gallons, Decimal('106.00'))
        self.assertIsNone(transactions.log_tax_determination(order))


class TransactionAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company, first_name='Jane', last_name='Doe')
        self.client.authenticate_user(self.user)
        self.payload = {
            'transaction_date': '2026-06-05',
            'transaction_type': 'gain',
            'product_type': 'Bourbon',
            'spirits_type': 'under_190_proof',
            'proof_gallons': '10.00',
            'wine_gallons': '8.00',
            'notes': 'Inventory recount',
        }

    def test_create_manual_transaction_is_audited(self):
        response = self.client.post('/api/v1/ttb/transactions/', self.payload)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_manual'])
        entry = TtbAuditLog.objects.get(entity_type='TtbTransaction', entity_id=response.data['id'])
        self.assertEqual(entry.action, 'create')
        self.assertEqual(entry.changed_by, self.user)
        self.assertEqual(entry.change_description,
                         'Jane Doe created Gain transaction for 10.00 proof gallons on 06/05/2026')

    def test_negative_gallons_rejected(self):
        self.payload['proof_gallons'] = '-1'
        response = self.client.post('/api/v1/ttb/transactions/', self.payload)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Proof gallons cannot be negative.')

    def test_list_by_month(self):
        create_transaction(self.company, 'production', '66.25', '53')
        create_transaction(self.company, 'production', '66.25', '53', transaction_date=date(2026, 7, 2))
        create_transaction(TestDataFactory.create_company(), 'production', '66.25', '53')

        response = self.client.get('/api/v1/ttb/transactions/', {'month': 6, 'year': 2026})
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/ttb/transactions/', {'year': 2019})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete_manual_transaction(self):
        entry = create_transaction(self.company, 'gain', '10', '8', source_entity_type='Manual')

        response = self.client.put(f'/api/v1/ttb/transactions/{entry.id}/', {'proof_gallons': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['proof_gallons'], '12.00')

        response = self.client.delete(f'/api/v1/ttb/transactions/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        actions = list(TtbAuditLog.objects.filter(entity_id=entry.id).order_by('id').values_list('action', flat=True))
        self.assertEqual(actions, ['update', 'delete'])
        deleted = TtbAuditLog.objects.get(entity_id=entry.id, action='delete')
        self.assertIsNone(deleted.new_values)
        self.assertEqual(deleted.old_values['proof_gallons'], '12.00')

    def test_generated_transactions_are_read_only(self):
        entry = create_transaction(self.company, 'production', '66.25', '53', source_entity_type='Batch',
                                   source_entity_id=1)

        response = self.client.put(f'/api/v1/ttb/transactions/{entry.id}/', {'notes': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only manual transactions can be edited.')

        response = self.client.delete(f'/api/v1/ttb/transactions/{entry.id}/')
        self.assertEqual(response.data['error'], 'Only manual transactions can be deleted.')

    def test_locked_month_rejects_changes(self):
        create_report(self.company, self.user, status=TtbMonthlyReport.STATUS_APPROVED)

        response = self.client.post('/api/v1/ttb/transactions/', self.payload)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], transactions.LOCKED_MONTH_MESSAGE)

        july = create_transaction(self.company, 'gain', '10', '8', transaction_date=date(2026, 7, 3),
                                  source_entity_type='Manual')
        response = self.client.put(f'/api/v1/ttb/transactions/{july.id}/', {'transaction_date': '2026-06-30'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], transactions.LOCKED_TARGET_MONTH_MESSAGE)

    def test_other_company_transaction_forbidden(self):
        entry = create_transaction(TestDataFactory.create_company(), 'gain', '10', '8', source_entity_type='Manual')
        response = self.client.get(f'/api/v1/ttb/transactions/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class MonthlyReportCalculationTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_sections_and_closing_balance(self):
        create_transaction(self.company, 'production', '132.50', '106', transaction_date=date(2026, 6, 5))
        create_transaction(self.company, 'transfer_in', '66.25', '53', transaction_date=date(2026, 6, 10))
        create_transaction(self.company, 'loss', '10', '8', transaction_date=date(2026, 6, 20))
        create_transaction(self.company, 'production', '66.25', '53', transaction_date=date(2026, 7, 1))

        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)

        self.assertEqual(data['opening_inventory'], [])
        self.assertEqual(data['production'][0]['proof_gallons'], Decimal('132.50'))
        self.assertEqual(data['transfers']['transfers_in'][0]['wine_gallons'], Decimal('53.00'))
        self.assertEqual(data['transfers']['transfers_out'], [])
        self.assertEqual(data['losses'][0]['proof_gallons'], Decimal('10.00'))
        self.assertEqual(data['closing_inventory'], [{
            'product_type': 'Bourbon',
            'spirits_type': 'under_190_proof',
            'wine_gallons': Decimal('151.00'),
            'proof_gallons': Decimal('188.75'),
        }])
        self.assertEqual(data['validation_errors'], [])

    def test_product_types_grouped_case_insensitively(self):
        create_transaction(self.company, 'production', '10', '8', product_type='Bourbon')
        create_transaction(self.company, 'production', '5', '4', product_type='bourbon')
        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)
        self.assertEqual(len(data['production']), 1)
        self.assertEqual(data['production'][0]['proof_gallons'], Decimal('15.00'))

    def test_opening_from_prior_transactions(self):
        create_transaction(self.company, 'production', '132.50', '106', transaction_date=date(2026, 5, 3))
        create_transaction(self.company, 'transfer_out', '66.25', '53', transaction_date=date(2026, 5, 20))

        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)

        self.assertEqual(data['opening_inventory'][0]['proof_gallons'], Decimal('66.25'))
        self.assertEqual(data['closing_inventory'][0]['proof_gallons'], Decimal('66.25'))

    def test_opening_prefers_latest_snapshot(self):
        create_transaction(self.company, 'production', '132.50', '106', transaction_date=date(2026, 5, 3))
        create_snapshot(self.company, date(2026, 5, 15), '20', '16')
        create_snapshot(self.company, date(2026, 5, 31), '40', '32')

        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)

        self.assertEqual(data['opening_inventory'][0]['proof_gallons'], Decimal('40.00'))

    def test_negative_closing_is_an_error(self):
        create_transaction(self.company, 'loss', '10', '8')
        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)
        self.assertEqual(data['validation_errors'],
                         ['Negative closing inventory for Bourbon/under_190_proof: -10.00 proof gallons.'])

    def test_closing_snapshot_mismatch_warns(self):
        create_transaction(self.company, 'production', '66.25', '53')
        create_snapshot(self.company, date(2026, 6, 30), '60', '48')

        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)

        self.assertEqual(len(data['validation_warnings']), 1)
        self.assertTrue(data['validation_warnings'][0].startswith(
            'Closing inventory mismatch for Bourbon/under_190_proof on 2026-06-30'))

    def test_matching_snapshot_within_tolerance(self):
        create_transaction(self.company, 'production', '66.25', '53')
        create_snapshot(self.company, date(2026, 6, 30), '66.26', '53')
        data = calculator.calculate_monthly_report(self.company.id, 6, 2026)
        self.assertEqual(data['validation_warnings'], [])

    def test_invalid_period(self):
        with self.assertRaises(ValidationFailed):
            calculator.calculate_monthly_report(self.company.id, 13, 2026)
        with self.assertRaises(ValidationFailed):
            calculator.calculate_monthly_report(self.company.id, 6, 1999)

    def test_reportable_activity(self):
        self.assertFalse(calculator.has_reportable_activity(
            calculator.calculate_monthly_report(self.company.id, 6, 2026)))
        create_transaction(self.company, 'production', '66.25', '53')
        self.assertTrue(calculator.has_reportable_activity(
            calculator.calculate_monthly_report(self.company.id, 6, 2026)))


class StorageReportTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        create_transaction(self.company, 'production', '132.50', '106')

    def test_barrel_movements(self):
        create_transaction(self.company, 'transfer_out', '66.25', '53', transaction_date=date(2026, 6, 9))

        data = calculator.calculate_storage_report(self.company.id, 6, 2026)

        self.assertEqual(data['form_type'], '5110_40')
        self.assertEqual(data['opening_barrels'], Decimal('0.00'))
        self.assertEqual(data['barrels_received'], Decimal('2.00'))
        self.assertEqual(data['barrels_removed'], Decimal('1.00'))
        self.assertEqual(data['closing_barrels'], Decimal('1.00'))
        self.assertEqual(data['proof_gallons_by_warehouse'],
                         [{'warehouse_name': 'Storage', 'proof_gallons': Decimal('66.25')}])

    def test_warehouse_labels(self):
        TestDataFactory.create_rickhouse(self.company, name='Warehouse A')
        data = calculator.calculate_storage_report(self.company.id, 6, 2026)
        self.assertEqual(data['proof_gallons_by_warehouse'][0]['warehouse_name'], 'Warehouse A')

        TestDataFactory.create_rickhouse(self.company, name='Warehouse B')
        data = calculator.calculate_storage_report(self.company.id, 6, 2026)
        self.assertEqual(data['proof_gallons_by_warehouse'][0]['warehouse_name'], 'All Warehouses')

    def test_negative_storage_rejected(self):
        create_transaction(self.company, 'transfer_out', '265', '212')
        with self.assertRaises(ValidationFailed):
            calculator.calculate_storage_report(self.company.id, 6, 2026)


@patch('backend.ttb.workflow.send_email')
class ReportWorkflowAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.distiller = TestDataFactory.create_user(company=self.company)
        self.manager = TestDataFactory.create_user(company=self.company, user_type='compliance_manager')
        create_transaction(self.company, 'production', '132.50', '106')

    def generate(self, **extra):
        self.client.authenticate_user(self.distiller)
        return self.client.post('/api/v1/ttb/reports/generate/', {'month': 6, 'year': 2026, **extra})

    def test_generate_draft(self, send_email):
        response = self.generate()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['created_by'], self.distiller.id)
        self.assertEqual(response.data['report_data']['form_type'], '5110_28')
        self.assertTrue(TtbAuditLog.objects.filter(entity_type='TtbMonthlyReport', action='create').exists())

    def test_generate_storage_form(self, send_email):
        response = self.generate(form_type='5110_40')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['report_data']['barrels_received'], Decimal('2.00'))

    def test_regenerate_replaces_draft(self, send_email):
        first = self.generate().data['id']
        second = self.generate().data['id']

        self.assertNotEqual(first, second)
        self.assertEqual(TtbMonthlyReport.objects.filter(company=self.company).count(), 1)

    def test_generate_without_activity(self, send_email):
        self.client.authenticate_user(self.distiller)
        response = self.client.post('/api/v1/ttb/reports/generate/', {'month': 3, 'year': 2026})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No TTB data found for the specified month.')

        response = self.client.post('/api/v1/ttb/reports/generate/', {'month': 3, 'year': 2019})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_preview_does_not_store(self, send_email):
        self.client.authenticate_user(self.distiller)
        response = self.client.get('/api/v1/ttb/reports/preview/', {'month': 6, 'year': 2026})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['production'][0]['proof_gallons'], Decimal('132.50'))
        self.assertFalse(TtbMonthlyReport.objects.exists())

    def test_full_lifecycle(self, send_email):
        report_id = self.generate().data['id']

        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/submit-for-review/')
        self.assertEqual(response.data['status'], 'pending_review')
        send_email.assert_called_once()
        self.assertEqual(send_email.call_args[0][0], self.manager.email)

        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Only Compliance Managers can approve reports.')

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/approve/', {'review_notes': 'Looks right'})
        self.assertEqual(response.data['status'], 'approved')
        self.assertEqual(response.data['approved_by'], self.manager.id)
        self.assertTrue(audit.is_month_locked(self.company.id, 6, 2026))

        response = self.generate()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/submit/', {'confirmation_number': ' '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/submit/', {'confirmation_number': 'TTB-2026-06'})
        self.assertEqual(response.data['status'], 'submitted')
        self.assertEqual(response.data['ttb_confirmation_number'], 'TTB-2026-06')

        response = self.client.delete(f'/api/v1/ttb/reports/{report_id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/archive/')
        self.assertEqual(response.data['status'], 'archived')

    def test_reject_returns_to_draft(self, send_email):
        report_id = self.generate().data['id']
        self.client.post(f'/api/v1/ttb/reports/{report_id}/submit-for-review/')
        send_email.reset_mock()

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/reject/', {'review_notes': 'Recount barrels'})

        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['review_notes'], 'Recount barrels')
        self.assertEqual(response.data['reviewed_by'], self.manager.id)
        send_email.assert_called_once()
        self.assertEqual(send_email.call_args[0][0], self.distiller.email)
        self.assertIn('Recount barrels', send_email.call_args[0][2])

    def test_transitions_out_of_order(self, send_email):
        report = create_report(self.company, self.distiller)
        self.client.authenticate_user(self.manager)

        response = self.client.post(f'/api/v1/ttb/reports/{report.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.post(f'/api/v1/ttb/reports/{report.id}/archive/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.post(f'/api/v1/ttb/reports/{report.id}/submit/', {'confirmation_number': 'X-1'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_validation_errors_block_review(self, send_email):
        report = create_report(self.company, self.distiller, validation_errors=['Negative closing inventory'])
        self.client.authenticate_user(self.distiller)

        response = self.client.post(f'/api/v1/ttb/reports/{report.id}/submit-for-review/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        report.refresh_from_db()
        self.assertEqual(report.status, 'draft')

    def test_notification_failure_does_not_undo_transition(self, send_email):
        send_email.side_effect = RuntimeError('smtp down')
        report_id = self.generate().data['id']

        response = self.client.post(f'/api/v1/ttb/reports/{report_id}/submit-for-review/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending_review')

    def test_delete_draft_and_list(self, send_email):
        report_id = self.generate().data['id']
        create_report(TestDataFactory.create_company(), TestDataFactory.create_user())

        response = self.client.get('/api/v1/ttb/reports/', {'year': 2026})
        self.assertEqual([r['id'] for r in response.data], [report_id])

        response = self.client.delete(f'/api/v1/ttb/reports/{report_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_other_company_report_forbidden(self, send_email):
        other = TestDataFactory.create_user()
        report = create_report(other.company, other)
        self.client.authenticate_user(self.manager)
        response = self.client.get(f'/api/v1/ttb/reports/{report.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class GaugeRecordAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)
        self.barrel = TestDataFactory.create_barrel(self.company)

    def reading(self, **overrides):
        data = {
            'barrel_id': self.barrel.id, 'gauge_type': 'entry', 'proof': '125', 'temperature': '75',
            'wine_gallons': '53',
        }
        data.update(overrides)
        return data

    def test_create_applies_temperature_correction(self):
        response = self.client.post('/api/v1/ttb/gauge-records/', self.reading())

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['proof_gallons'], '65.36')
        self.assertEqual(response.data['gauged_by'], self.user.id)
        self.assertEqual(response.data['barrel_sku'], self.barrel.sku)

    def test_update_and_delete(self):
        record_id = self.client.post('/api/v1/ttb/gauge-records/', self.reading()).data['id']

        response = self.client.put(f'/api/v1/ttb/gauge-records/{record_id}/',
                                   {'proof': '125', 'temperature': '60', 'wine_gallons': '53'})
        self.assertEqual(response.data['proof_gallons'], '66.25')

        response = self.client.delete(f'/api/v1/ttb/gauge-records/{record_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        actions = TtbAuditLog.objects.filter(entity_type='TtbGaugeRecord').values_list('action', flat=True)
        self.assertEqual(sorted(actions), ['create', 'delete', 'update'])

    def test_list_for_barrel_and_company(self):
        self.client.post('/api/v1/ttb/gauge-records/', self.reading())
        other_barrel = TestDataFactory.create_barrel(self.company)
        self.client.post('/api/v1/ttb/gauge-records/', self.reading(barrel_id=other_barrel.id))

        response = self.client.get('/api/v1/ttb/gauge-records/', {'barrel_id': self.barrel.id})
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/ttb/gauge-records/')
        self.assertEqual(len(response.data), 2)

    def test_validation(self):
        response = self.client.post('/api/v1/ttb/gauge-records/', self.reading(proof='250'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/ttb/gauge-records/', self.reading(barrel_id=999999))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        data = self.reading()
        del data['gauge_type']
        response = self.client.post('/api/v1/ttb/gauge-records/', data)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_company_barrel_forbidden(self):
        foreign = TestDataFactory.create_barrel(TestDataFactory.create_company())
        response = self.client.post('/api/v1/ttb/gauge-records/', self.reading(barrel_id=foreign.id))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_record(self):
        response = self.client.get('/api/v1/ttb/gauge-records/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ExciseTaxTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.order = TestDataFactory.create_order(self.company)
        barrel = TestDataFactory.create_barrel(self.company, order=self.order)
        gauges.create_gauge_record(barrel.id, 'removal', Decimal('125'), Decimal('60'), Decimal('50'))

    def test_eligibility(self):
        self.assertTrue(excise.determine_eligibility(self.company)[0])

        self.company.annual_production_proof_gallons = Decimal('3000000')
        self.assertEqual(excise.determine_eligibility(self.company),
                         (False, 'Annual production (3000000 PG) exceeds limit of 2250000 PG'))

        self.company.is_eligible_for_reduced_excise_tax_rate = False
        self.company.excise_tax_eligibility_notes = 'Controlled group'
        self.assertEqual(excise.determine_eligibility(self.company), (False, 'Controlled group'))

    def test_reduced_rate(self):
        result = excise.calculate_tax(self.order)
        self.assertEqual(result['total_proof_gallons'], Decimal('62.50'))
        self.assertEqual(result['proof_gallons_at_standard_rate'], Decimal('0'))
        self.assertEqual(result['total_tax_due'], Decimal('833.75'))
        self.assertEqual(result['effective_tax_rate'], Decimal('13.34'))

    def test_standard_rate_when_ineligible(self):
        self.company.is_eligible_for_reduced_excise_tax_rate = False
        self.company.save()
        self.order.refresh_from_db()

        result = excise.calculate_tax(self.order)

        self.assertEqual(result['total_tax_due'], Decimal('843.75'))

    def test_graduated_rate_across_threshold(self):
        earlier = TestDataFactory.create_order(self.company)
        TtbTaxDetermination.objects.create(
            company=self.company, order=earlier, proof_gallons=Decimal('99990'), tax_rate=Decimal('13.34'),
            tax_amount=Decimal('1333866.60'), determination_date=timezone.now(),
        )

        result = excise.calculate_tax(self.order)

        self.assertEqual(result['proof_gallons_at_reduced_rate'], Decimal('10'))
        self.assertEqual(result['proof_gallons_at_standard_rate'], Decimal('52.50'))
        self.assertEqual(result['total_tax_due'], Decimal('842.15'))

    def test_no_removal_gauges(self):
        with self.assertRaises(ConflictError):
            excise.calculate_tax(TestDataFactory.create_order(self.company))

    def test_record_is_idempotent(self):
        first = excise.record_tax_determination(self.order)
        second = excise.record_tax_determination(self.order)

        self.assertEqual(first.id, second.id)
        entry = TtbTransaction.objects.get(transaction_type='tax_determination', source_entity_id=self.order.id)
        self.assertEqual(entry.proof_gallons, Decimal('62.50'))
        self.assertIn('Craft Beverage Modernization Act', first.notes)


class ExciseTaxAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)
        self.order = TestDataFactory.create_order(self.company)
        barrel = TestDataFactory.create_barrel(self.company, order=self.order)
        gauges.create_gauge_record(barrel.id, 'removal', Decimal('125'), Decimal('60'), Decimal('50'))

    def test_calculate_requires_order(self):
        response = self.client.get('/api/v1/ttb/excise-tax/calculate/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/ttb/excise-tax/calculate/', {'order_id': self.order.id})
        self.assertEqual(response.data['total_tax_due'], Decimal('833.75'))

    def test_record_pay_and_report(self):
        response = self.client.post('/api/v1/ttb/excise-tax/record/', {'order_id': self.order.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        determination_id = response.data['id']
        self.assertFalse(response.data['is_paid'])

        response = self.client.get('/api/v1/ttb/excise-tax/determinations/', {'unpaid': 'true'})
        self.assertEqual([d['id'] for d in response.data], [determination_id])

        response = self.client.post(f'/api/v1/ttb/excise-tax/determinations/{determination_id}/pay/',
                                    {'payment_reference': 'ACH-4411'})
        self.assertTrue(response.data['is_paid'])
        self.assertEqual(response.data['payment_reference'], 'ACH-4411')

        today = timezone.now()
        response = self.client.get('/api/v1/ttb/excise-tax/report/', {'month': today.month, 'year': today.year})
        self.assertEqual(response.data['total_tax_due'], Decimal('833.75'))
        self.assertEqual(response.data['total_tax_paid'], Decimal('833.75'))
        self.assertEqual(response.data['outstanding_tax_liability'], Decimal('0'))
        self.assertEqual(len(response.data['determinations']), 1)

    def test_report_requires_period(self):
        response = self.client.get('/api/v1/ttb/excise-tax/report/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_company_order_forbidden(self):
        order = TestDataFactory.create_order(TestDataFactory.create_company())
        response = self.client.post('/api/v1/ttb/excise-tax/record/', {'order_id': order.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SnapshotTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.today = timezone.now().date()

    def test_tax_status(self):
        self.assertEqual(snapshots.determine_tax_status(Order(status_name='Tax Paid')), 'tax_paid')
        self.assertEqual(snapshots.determine_tax_status(Order(status_name='Export hold')), 'export')
        self.assertEqual(snapshots.determine_tax_status(Order(status_name='Duty Free')), 'tax_free')
        self.assertEqual(snapshots.determine_tax_status(Order(status_name=None)), 'bonded')

    def test_capture_groups_barrels(self):
        bonded = TestDataFactory.create_order(self.company)
        TestDataFactory.create_barrel(self.company, order=bonded)
        TestDataFactory.create_barrel(self.company, order=bonded)
        TestDataFactory.create_barrel(self.company, order=TestDataFactory.create_order(self.company, status_name='Tax Paid'))
        TestDataFactory.create_barrel(self.company, order=TestDataFactory.create_order(self.company, status_name='Sold'))
        TestDataFactory.create_barrel(self.company)

        snapshots.capture_snapshot(self.company.id, self.today)
        snapshots.capture_snapshot(self.company.id, self.today)

        rows = {r.tax_status: r for r in TtbInventorySnapshot.objects.filter(company=self.company)}
        self.assertEqual(set(rows), {'bonded', 'tax_paid'})
        self.assertEqual(rows['bonded'].wine_gallons, Decimal('106.00'))
        self.assertEqual(rows['bonded'].proof_gallons, Decimal('132.50'))
        self.assertEqual(rows['tax_paid'].proof_gallons, Decimal('66.25'))

    def test_orders_created_after_day_excluded(self):
        TestDataFactory.create_barrel(self.company, order=TestDataFactory.create_order(self.company))
        self.assertEqual(snapshots.build_snapshot_rows(self.company.id, self.today - timedelta(days=1)), [])

    def test_ttb_enabled_companies(self):
        permitted = TestDataFactory.create_company(ttb_permit_number='DSP-KY-1')
        create_transaction(self.company, 'production', '66.25', '53')
        TestDataFactory.create_company()

        self.assertEqual(snapshots.ttb_enabled_company_ids(), sorted([self.company.id, permitted.id]))
        self.assertEqual(set(snapshots.capture_for_all_companies(self.today)), {self.company.id, permitted.id})

    def test_backfill_range(self):
        with self.assertRaises(ValidationFailed):
            snapshots.backfill(self.company.id, self.today, self.today - timedelta(days=1))


class SnapshotAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.admin = TestDataFactory.create_admin(company=self.company)
        self.today = timezone.now().date()
        TestDataFactory.create_barrel(self.company, order=TestDataFactory.create_order(self.company))

    def test_backfill_and_list(self):
        self.client.authenticate_user(self.admin)

        response = self.client.post('/api/v1/ttb/snapshots/backfill/', {
            'start_date': str(self.today - timedelta(days=2)), 'end_date': str(self.today),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['days'], 3)
        self.assertEqual(response.data['rows'], 1)

        response = self.client.get('/api/v1/ttb/snapshots/', {'date': str(self.today)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_backfill_bad_range(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/ttb/snapshots/backfill/', {
            'start_date': str(self.today), 'end_date': str(self.today - timedelta(days=1)),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_backfill_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user(company=self.company))
        response = self.client.post('/api/v1/ttb/snapshots/backfill/', {
            'start_date': str(self.today), 'end_date': str(self.today),
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AutoReportScheduleTests(TestCase):

    def utc(self, *args):
        return datetime(*args, tzinfo=dt_timezone.utc)

    def test_next_monthly_run(self):
        self.assertEqual(auto_reports.next_monthly_run(self.utc(2026, 3, 10, 12), 31, 6), self.utc(2026, 3, 28, 6))
        self.assertEqual(auto_reports.next_monthly_run(self.utc(2026, 3, 28, 7), 28, 6), self.utc(2026, 4, 28, 6))
        self.assertEqual(auto_reports.next_monthly_run(self.utc(2026, 12, 15), 1, 6), self.utc(2027, 1, 1, 6))

    def test_next_weekly_run(self):
        # 2026-10-18 is a Sunday
        self.assertEqual(auto_reports.next_weekly_run(self.utc(2026, 10, 18, 12), 0, 6), self.utc(2026, 10, 19, 6))
        self.assertEqual(auto_reports.next_weekly_run(self.utc(2026, 10, 19, 7), 0, 6), self.utc(2026, 10, 26, 6))

    def test_reporting_period(self):
        self.assertEqual(auto_reports.reporting_period(self.utc(2026, 1, 3)), (12, 2025))
        self.assertEqual(auto_reports.reporting_period(self.utc(2026, 7, 1)), (6, 2026))

    def test_calculate_next_run(self):
        reference = self.utc(2026, 3, 10, 12)
        self.assertEqual(auto_reports.calculate_next_run(reference), self.utc(2026, 4, 1, 6))

        TestDataFactory.create_company(auto_generate_ttb_reports=True, ttb_auto_report_cadence='weekly',
                                       ttb_auto_report_day_of_week=2, ttb_auto_report_hour_utc=9)
        self.assertEqual(auto_reports.calculate_next_run(reference), self.utc(2026, 3, 11, 9))

    def test_report_creator_preference(self):
        company = TestDataFactory.create_company()
        first = TestDataFactory.create_user(company=company)
        self.assertEqual(auto_reports.resolve_report_creator(company), first)

        primary = TestDataFactory.create_user(company=company, is_primary_contact=True)
        self.assertEqual(auto_reports.resolve_report_creator(company), primary)

        contact = TestDataFactory.create_user(company=company, is_ttb_contact=True)
        self.assertEqual(auto_reports.resolve_report_creator(company), contact)


@patch('backend.ttb.auto_reports.send_bulk_email', return_value=1)
class AutoReportGenerationTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company(auto_generate_ttb_reports=True)
        self.manager = TestDataFactory.create_user(company=self.company, user_type='compliance_manager')
        create_transaction(self.company, 'production', '66.25', '53')
        self.run_time = datetime(2026, 7, 1, 6, tzinfo=dt_timezone.utc)

    def test_generates_last_month_once(self, send_bulk_email):
        created = auto_reports.generate_due_reports(self.run_time)

        self.assertEqual(len(created), 1)
        report = created[0]
        self.assertEqual((report.report_month, report.report_year), (6, 2026))
        self.assertEqual(report.created_by, self.manager)
        self.assertEqual(report.status, 'draft')
        send_bulk_email.assert_called_once()
        self.assertEqual(send_bulk_email.call_args[0][0], [self.manager.email])

        self.assertEqual(auto_reports.generate_due_reports(self.run_time), [])

    def test_not_due_yet(self, send_bulk_email):
        self.assertEqual(auto_reports.generate_due_reports(self.run_time - timedelta(minutes=1)), [])

    def test_cron_run_after_slot_generates(self, send_bulk_email):
        created = auto_reports.generate_due_reports(datetime(2026, 7, 1, 6, 5))

        self.assertEqual(len(created), 1)
        self.assertEqual((created[0].report_month, created[0].report_year), (6, 2026))
        self.assertEqual(auto_reports.generate_due_reports(datetime(2026, 7, 1, 7, 5)), [])

    def test_missed_slot_caught_up_later_in_month(self, send_bulk_email):
        created = auto_reports.generate_due_reports(self.run_time + timedelta(days=1))

        self.assertEqual(len(created), 1)

    def test_weekly_cadence_due_after_first_slot_of_month(self, send_bulk_email):
        self.company.ttb_auto_report_cadence = 'weekly'
        self.company.ttb_auto_report_day_of_week = 0
        self.company.save()

        # 2026-07-06 is the first Monday of July
        self.assertEqual(auto_reports.generate_due_reports(datetime(2026, 7, 3, 6, tzinfo=dt_timezone.utc)), [])
        self.assertEqual(len(auto_reports.generate_due_reports(datetime(2026, 7, 6, 6, 30, tzinfo=dt_timezone.utc))), 1)

    def test_skips_quiet_months(self, send_bulk_email):
        TtbTransaction.objects.all().delete()
        self.assertEqual(auto_reports.generate_due_reports(self.run_time), [])
        send_bulk_email.assert_not_called()


class AuditTrailAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.client.authenticate_user(self.user)
        entry = create_transaction(self.company, 'gain', '10', '8', source_entity_type='Manual')
        self.log = audit.log_change('create', entry, self.company.id, user=self.user)
        other = TestDataFactory.create_company()
        audit.log_change('create', create_transaction(other, 'gain', '1', '1'), other.id)

    def test_system_changes_described(self):
        entry = create_transaction(self.company, 'loss', '3', '2')
        log = audit.log_change('create', entry, self.company.id)
        self.assertIsNone(log.changed_by)
        self.assertTrue(log.change_description.startswith('System created Loss transaction for 3.00'))

    def test_list_recent_and_detail(self):
        response = self.client.get('/api/v1/ttb/audit-logs/recent/')
        self.assertEqual([e['id'] for e in response.data], [self.log.id])

        response = self.client.get(f'/api/v1/ttb/audit-logs/{self.log.id}/')
        self.assertEqual(response.data['entity_type'], 'TtbTransaction')
        self.assertEqual(response.data['changed_by_name'], self.user.username)

        response = self.client.get('/api/v1/ttb/audit-logs/', {'start_date': 'not-a-date'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_csv_export(self):
        response = self.client.get('/api/v1/ttb/audit-logs/export/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], ','.join(audit.AUDIT_CSV_HEADER))
        self.assertEqual(len(lines), 2)
        self.assertIn(self.user.username, lines[1])
