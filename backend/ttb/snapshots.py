"""Daily inventory snapshots: barrels on hand per product, spirits class and tax status"""
import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db import transaction as db_transaction
from django.utils import timezone

from backend.core.exceptions import ValidationFailed
from backend.core.models import Company
from backend.core.utils import round2
from backend.inventory.models import Barrel, GALLONS_PER_BARREL, Order
from .models import TtbInventorySnapshot, TtbMonthlyReport, TtbTransaction
from .volumes import calculate_proof_gallons, resolve_product_metadata

logger = logging.getLogger('backend.ttb')


def determine_tax_status(order):
    status_name = (order.status_name or '').strip().lower()
    if 'tax paid' in status_name:
        return 'tax_paid'
    if 'export' in status_name:
        return 'export'
    if 'tax free' in status_name or 'duty free' in status_name:
        return 'tax_free'
    return 'bonded'


def _day_end_exclusive(snapshot_date):
    return timezone.make_aware(datetime.combine(snapshot_date + timedelta(days=1), time.min))


def _include_barrel(order, upper_bound):
    if order.created_at >= upper_bound:
        return False
    if (order.status_name or '').strip().lower() not in Order.INACTIVE_STATUSES:
        return True
    # An order that went inactive after the snapshot day was still on hand that day
    return order.updated_at >= upper_bound


def build_snapshot_rows(company_id, snapshot_date):
    """Unsaved snapshot rows describing a company's barrel inventory at the end of a day"""
    upper_bound = _day_end_exclusive(snapshot_date)
    barrels = Barrel.objects.filter(company_id=company_id).filter(
        order__isnull=True
    ) | Barrel.objects.filter(company_id=company_id, order__created_at__lt=upper_bound)
    barrels = barrels.select_related('order__spirit_type', 'batch__mash_bill')

    aggregates = {}
    for barrel in barrels:
        if barrel.order is None:
            logger.warning(
                f"Barrel {barrel.id} in company {company_id} has no associated order; "
                f"it will be excluded from the snapshot."
            )
            continue
        if not _include_barrel(barrel.order, upper_bound):
            continue

        metadata = resolve_product_metadata(batch=barrel.batch, order=barrel.order, barrel=barrel)
        key = (metadata.product_type.lower(), metadata.spirits_type, determine_tax_status(barrel.order))
        row = aggregates.setdefault(key, {
            'product_type': metadata.product_type,
            'wine_gallons': Decimal('0'),
            'proof_gallons': Decimal('0'),
        })
        row['wine_gallons'] += GALLONS_PER_BARREL
        row['proof_gallons'] += calculate_proof_gallons(GALLONS_PER_BARREL, metadata.abv)

    return [
        TtbInventorySnapshot(
            company_id=company_id,
            snapshot_date=snapshot_date,
            product_type=row['product_type'],
            spirits_type=spirits_type,
            tax_status=tax_status,
            wine_gallons=round2(row['wine_gallons']),
            proof_gallons=round2(row['proof_gallons']),
        )
        for (_, spirits_type, tax_status), row in aggregates.items()
    ]


@db_transaction.atomic
def capture_snapshot(company_id, snapshot_date):
    """Replace a company's snapshot rows for a date with freshly calculated ones"""
    rows = build_snapshot_rows(company_id, snapshot_date)
    TtbInventorySnapshot.objects.filter(company_id=company_id, snapshot_date=snapshot_date).delete()
    TtbInventorySnapshot.objects.bulk_create(rows)
    return rows


def ttb_enabled_company_ids():
    company_ids = set(Company.objects.exclude(ttb_permit_number='').values_list('id', flat=True))
    company_ids.update(TtbMonthlyReport.objects.values_list('company_id', flat=True).distinct())
    company_ids.update(TtbTransaction.objects.values_list('company_id', flat=True).distinct())
    return sorted(company_ids)


def capture_for_all_companies(snapshot_date=None):
    snapshot_date = snapshot_date or timezone.now().date()
    company_ids = ttb_enabled_company_ids()
    if not company_ids:
        logger.debug(f"No TTB-enabled companies were found for snapshot date {snapshot_date}")
        return {}

    captured = {}
    for company_id in company_ids:
        rows = capture_snapshot(company_id, snapshot_date)
        captured[company_id] = len(rows)
        logger.info(f"Captured {len(rows)} TTB inventory snapshot rows for company {company_id} on {snapshot_date}")
    return captured


def backfill(company_id, start_date, end_date):
    if start_date > end_date:
        raise ValidationFailed('The start date must be on or before the end date.')

    captured = {}
    current = start_date
    while current <= end_date:
        rows = capture_snapshot(company_id, current)
        captured[current] = len(rows)
        logger.info(f"Backfilled {len(rows)} TTB inventory snapshot rows for company {company_id} on {current}")
        current += timedelta(days=1)
    return captured
