"""
Form 5110.28 (processing) and Form 5110.40 (storage) calculations

Closing inventory = opening + production + transfers in - transfers out - losses,
balanced per (product type, spirits type) within 0.01 proof gallons.
"""
import calendar
import logging
from datetime import date
from decimal import Decimal

from django.db.models import Max

from backend.core.exceptions import ValidationFailed
from backend.core.utils import round2
from backend.locations.models import Rickhouse
from .models import TtbInventorySnapshot, TtbTransaction
from .volumes import ZERO, wine_gallons_to_barrels

logger = logging.getLogger('backend.ttb')

SNAPSHOT_TOLERANCE = Decimal('0.01')


class Aggregate:
    """Proof and wine gallon totals keyed case-insensitively by (product type, spirits type)"""

    def __init__(self):
        self._rows = {}

    def add(self, product_type, spirits_type, proof_gallons, wine_gallons):
        key = ((product_type or '').lower(), spirits_type)
        row = self._rows.get(key)
        if row is None:
            row = self._rows[key] = {
                'product_type': product_type,
                'spirits_type': spirits_type,
                'proof_gallons': ZERO,
                'wine_gallons': ZERO,
            }
        row['proof_gallons'] += Decimal(proof_gallons)
        row['wine_gallons'] += Decimal(wine_gallons)

    def merge(self, other, sign=1):
        for row in other.rows():
            self.add(row['product_type'], row['spirits_type'], row['proof_gallons'] * sign, row['wine_gallons'] * sign)

    def copy(self):
        clone = Aggregate()
        clone.merge(self)
        return clone

    def get(self, key):
        return self._rows.get(key)

    def keys(self):
        return self._rows.keys()

    def rows(self):
        return list(self._rows.values())

    def totals(self):
        proof = sum((row['proof_gallons'] for row in self._rows.values()), ZERO)
        wine = sum((row['wine_gallons'] for row in self._rows.values()), ZERO)
        return proof, wine

    def __len__(self):
        return len(self._rows)

    def to_rows(self):
        """Rounded rows sorted by product type then spirits type"""
        ordered = sorted(self._rows.values(), key=lambda r: (r['product_type'] or '', r['spirits_type']))
        return [{
            'product_type': row['product_type'],
            'spirits_type': row['spirits_type'],
            'wine_gallons': round2(row['wine_gallons']),
            'proof_gallons': round2(row['proof_gallons']),
        } for row in ordered]


def validate_period(month, year):
    if not 1 <= month <= 12:
        raise ValidationFailed('Month must be between 1 and 12.')
    if year < 2000:
        raise ValidationFailed('Year must be 2000 or later.')


def period_bounds(month, year):
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def aggregate_snapshots(snapshots):
    aggregate = Aggregate()
    for snapshot in snapshots:
        aggregate.add(snapshot.product_type, snapshot.spirits_type, snapshot.proof_gallons, snapshot.wine_gallons)
    return aggregate


def aggregate_transactions(transactions, transaction_types=None, directional=False):
    aggregate = Aggregate()
    for txn in transactions:
        if transaction_types and txn.transaction_type not in transaction_types:
            continue
        sign = TtbTransaction.MULTIPLIERS.get(txn.transaction_type, 0) if directional else 1
        aggregate.add(txn.product_type, txn.spirits_type, txn.proof_gallons * sign, txn.wine_gallons * sign)
    return aggregate


def load_opening_inventory(company_id, start_date):
    """Latest snapshot set before the period, else the net of all earlier transactions"""
    latest = TtbInventorySnapshot.objects.filter(
        company_id=company_id, snapshot_date__lt=start_date
    ).aggregate(latest=Max('snapshot_date'))['latest']

    if latest is not None:
        rows = TtbInventorySnapshot.objects.filter(company_id=company_id, snapshot_date=latest)
        if rows.exists():
            return aggregate_snapshots(rows)

    previous = list(TtbTransaction.objects.filter(company_id=company_id, transaction_date__lt=start_date))
    if not previous:
        logger.info(f"No prior TTB inventory snapshots or transactions found for company {company_id} before {start_date}")
        return Aggregate()

    logger.warning(
        f"Opening inventory snapshot not found for company {company_id} before {start_date}. "
        f"Falling back to aggregated prior transactions."
    )
    return aggregate_transactions(previous, directional=True)


def calculate_closing(opening, additions=(), removals=()):
    closing = opening.copy()
    for aggregate in additions:
        closing.merge(aggregate)
    for aggregate in removals:
        closing.merge(aggregate, sign=-1)
    return closing


def reconcile_closing(company_id, end_date, calculated):
    """Compare the calculated closing balance with snapshots taken on the last day of the period"""
    snapshots = TtbInventorySnapshot.objects.filter(company_id=company_id, snapshot_date=end_date)
    if not snapshots.exists():
        logger.warning(
            f"No closing inventory snapshot found for company {company_id} on {end_date}. "
            f"Calculated closing totals will be used without reconciliation."
        )
        return []

    snapshot_aggregate = aggregate_snapshots(snapshots)
    warnings = []
    empty = {'proof_gallons': ZERO, 'wine_gallons': ZERO}
    for key in sorted(set(snapshot_aggregate.keys()) | set(calculated.keys())):
        calc_row = calculated.get(key) or snapshot_aggregate.get(key)
        calc = calculated.get(key) or empty
        snap = snapshot_aggregate.get(key) or empty
        if (abs(calc['proof_gallons'] - snap['proof_gallons']) > SNAPSHOT_TOLERANCE
                or abs(calc['wine_gallons'] - snap['wine_gallons']) > SNAPSHOT_TOLERANCE):
            message = (
                f"Closing inventory mismatch for {calc_row['product_type']}/{calc_row['spirits_type']} on "
                f"{end_date}: calculated {calc['proof_gallons']:.2f} PG / {calc['wine_gallons']:.2f} WG vs snapshot "
                f"{snap['proof_gallons']:.2f} PG / {snap['wine_gallons']:.2f} WG."
            )
            logger.warning(message)
            warnings.append(message)
    return warnings


def _monthly_transactions(company_id, start_date, end_date):
    return list(TtbTransaction.objects.filter(
        company_id=company_id, transaction_date__gte=start_date, transaction_date__lte=end_date
    ))


def calculate_monthly_report(company_id, month, year):
    """Form 5110.28 sections for a calendar month"""
    validate_period(month, year)
    start_date, end_date = period_bounds(month, year)

    opening = load_opening_inventory(company_id, start_date)
    monthly = _monthly_transactions(company_id, start_date, end_date)

    production = aggregate_transactions(monthly, [TtbTransaction.TYPE_PRODUCTION])
    transfers_in = aggregate_transactions(monthly, [TtbTransaction.TYPE_TRANSFER_IN])
    transfers_out = aggregate_transactions(monthly, [TtbTransaction.TYPE_TRANSFER_OUT])
    losses = aggregate_transactions(monthly, [TtbTransaction.TYPE_LOSS])

    closing = calculate_closing(opening, (production, transfers_in), (transfers_out, losses))
    warnings = reconcile_closing(company_id, end_date, closing)

    closing_rows = closing.to_rows()
    errors = [
        f"Negative closing inventory for {row['product_type']}/{row['spirits_type']}: "
        f"{row['proof_gallons']:.2f} proof gallons."
        for row in closing_rows
        if row['proof_gallons'] < 0 or row['wine_gallons'] < 0
    ]

    return {
        'company_id': company_id,
        'month': month,
        'year': year,
        'start_date': start_date,
        'end_date': end_date,
        'opening_inventory': opening.to_rows(),
        'production': production.to_rows(),
        'transfers': {
            'transfers_in': transfers_in.to_rows(),
            'transfers_out': transfers_out.to_rows(),
        },
        'losses': losses.to_rows(),
        'closing_inventory': closing_rows,
        'validation_errors': errors,
        'validation_warnings': warnings,
    }


def has_reportable_activity(report_data):
    if report_data.get('form_type') == '5110_40':
        return any(report_data.get(k) for k in ('opening_barrels', 'barrels_received', 'barrels_removed', 'closing_barrels'))
    sections = [
        report_data.get('opening_inventory'),
        report_data.get('production'),
        report_data.get('transfers', {}).get('transfers_in'),
        report_data.get('transfers', {}).get('transfers_out'),
        report_data.get('losses'),
        report_data.get('closing_inventory'),
    ]
    return any(sections)


def _warehouse_proof_gallons(company_id, closing, monthly):
    closing_proof = round2(closing.totals()[0])
    rickhouses = dict(Rickhouse.objects.filter(company_id=company_id).values_list('id', 'name'))

    by_warehouse = {}
    for txn in monthly:
        if (txn.source_entity_type or '').lower() != 'rickhouse' or txn.source_entity_id is None:
            continue
        sign = TtbTransaction.MULTIPLIERS.get(txn.transaction_type, 0)
        by_warehouse[txn.source_entity_id] = by_warehouse.get(txn.source_entity_id, ZERO) + txn.proof_gallons * sign

    if by_warehouse:
        rows = [{
            'warehouse_name': rickhouses.get(rickhouse_id, f"Warehouse {rickhouse_id}"),
            'proof_gallons': round2(total),
        } for rickhouse_id, total in by_warehouse.items()]
        unspecified = closing_proof - sum((row['proof_gallons'] for row in rows), ZERO)
        if abs(unspecified) > SNAPSHOT_TOLERANCE:
            rows.append({'warehouse_name': 'Unspecified Warehouse', 'proof_gallons': round2(unspecified)})
        return rows

    if len(rickhouses) > 1:
        label = 'All Warehouses'
    elif rickhouses:
        label = next(iter(rickhouses.values()))
    else:
        label = 'Storage'
    return [{'warehouse_name': label, 'proof_gallons': closing_proof}]


def calculate_storage_report(company_id, month, year):
    """Form 5110.40 barrel movements and proof gallons per warehouse"""
    validate_period(month, year)
    start_date, end_date = period_bounds(month, year)

    opening = load_opening_inventory(company_id, start_date)
    monthly = _monthly_transactions(company_id, start_date, end_date)

    received = aggregate_transactions(monthly, [TtbTransaction.TYPE_PRODUCTION, TtbTransaction.TYPE_TRANSFER_IN])
    removed = aggregate_transactions(monthly, [TtbTransaction.TYPE_TRANSFER_OUT, TtbTransaction.TYPE_BOTTLING])
    calculated_closing = calculate_closing(opening, (received,), (removed,))

    closing_snapshots = TtbInventorySnapshot.objects.filter(company_id=company_id, snapshot_date=end_date)
    closing = aggregate_snapshots(closing_snapshots) if closing_snapshots.exists() else calculated_closing
    warnings = reconcile_closing(company_id, end_date, calculated_closing)

    closing_proof, closing_wine = closing.totals()
    expected_wine = opening.totals()[1] + received.totals()[1] - removed.totals()[1]
    if abs(closing_wine - expected_wine) > SNAPSHOT_TOLERANCE:
        logger.error(
            f"TTB COMPLIANCE ERROR: Storage inventory balance mismatch for {company_id} {month}/{year}. "
            f"Calculated closing = {closing_wine}, Expected = {expected_wine}."
        )
        raise ValidationFailed('Inventory balance validation failed for storage report.')

    if closing_wine < 0 or closing_proof < 0:
        raise ValidationFailed('Negative inventory is not permitted for TTB storage reports.')

    return {
        'company_id': company_id,
        'month': month,
        'year': year,
        'form_type': '5110_40',
        'start_date': start_date,
        'end_date': end_date,
        'opening_barrels': wine_gallons_to_barrels(opening.totals()[1]),
        'barrels_received': wine_gallons_to_barrels(received.totals()[1]),
        'barrels_removed': wine_gallons_to_barrels(removed.totals()[1]),
        'closing_barrels': wine_gallons_to_barrels(closing_wine),
        'proof_gallons_by_warehouse': _warehouse_proof_gallons(company_id, closing, monthly),
        'validation_errors': [],
        'validation_warnings': warnings,
    }
