"""
Federal excise tax on spirits removed from bond

Eligible producers pay the reduced rate on the first 100,000 proof gallons removed in a
calendar year and the standard rate on everything after that.
"""
import logging
from datetime import datetime, time
from decimal import Decimal

from django.db import transaction as db_transaction
from django.db.models import Sum
from django.utils import timezone

from backend.core.exceptions import ConflictError
from backend.core.utils import round2
from . import audit
from .calculator import period_bounds, validate_period
from .models import TtbGaugeRecord, TtbTaxDetermination, TtbTransaction

logger = logging.getLogger('backend.ttb')

STANDARD_TAX_RATE = Decimal('13.50')
REDUCED_TAX_RATE = Decimal('13.34')
REDUCED_RATE_THRESHOLD_PROOF_GALLONS = Decimal('100000')
ANNUAL_PRODUCTION_ELIGIBILITY_LIMIT = Decimal('2250000')


def determine_eligibility(company):
    if not company.is_eligible_for_reduced_excise_tax_rate:
        return False, company.excise_tax_eligibility_notes or 'Company marked as ineligible for reduced rate'

    annual = company.annual_production_proof_gallons
    if annual is not None and annual >= ANNUAL_PRODUCTION_ELIGIBILITY_LIMIT:
        return False, (f"Annual production ({annual:.0f} PG) exceeds limit of "
                       f"{ANNUAL_PRODUCTION_ELIGIBILITY_LIMIT:.0f} PG")

    return True, 'Eligible for reduced rate under Craft Beverage Modernization Act'


def year_to_date_proof_gallons(company_id):
    year_start = timezone.now().replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    total = TtbTaxDetermination.objects.filter(
        company_id=company_id, determination_date__gte=year_start
    ).aggregate(total=Sum('proof_gallons'))['total']
    return total or Decimal('0')


def calculate_tax(order):
    """Graduated excise tax for the removal gauges recorded against an order's barrels"""
    logger.info(f"Calculating excise tax for order {order.id}")

    total_proof_gallons = TtbGaugeRecord.objects.filter(
        barrel__order=order, gauge_type='removal'
    ).aggregate(total=Sum('proof_gallons'))['total'] or Decimal('0')

    if total_proof_gallons <= 0:
        raise ConflictError(f"Order {order.id} has no proof gallons recorded for removal.")

    is_eligible, reason = determine_eligibility(order.company)

    if is_eligible:
        ytd = year_to_date_proof_gallons(order.company_id)
        remaining = max(Decimal('0'), REDUCED_RATE_THRESHOLD_PROOF_GALLONS - ytd)
        at_reduced = min(total_proof_gallons, remaining)
    else:
        at_reduced = Decimal('0')
    at_standard = total_proof_gallons - at_reduced

    reduced_tax = at_reduced * REDUCED_TAX_RATE
    standard_tax = at_standard * STANDARD_TAX_RATE
    total_tax = round2(reduced_tax + standard_tax)

    return {
        'order_id': order.id,
        'company_id': order.company_id,
        'total_proof_gallons': total_proof_gallons,
        'proof_gallons_at_reduced_rate': at_reduced,
        'proof_gallons_at_standard_rate': at_standard,
        'reduced_rate_tax': round2(reduced_tax),
        'standard_rate_tax': round2(standard_tax),
        'total_tax_due': total_tax,
        'effective_tax_rate': round2(total_tax / total_proof_gallons),
        'is_eligible_for_reduced_rate': is_eligible,
        'eligibility_reason': reason,
        'calculation_date': timezone.now(),
    }


@db_transaction.atomic
def record_tax_determination(order, calculation=None, user=None, request=None):
    """Persist a determination and its tax_determination transaction; one per order"""
    logger.info(f"Recording tax determination for order {order.id}")

    existing = TtbTaxDetermination.objects.filter(order=order).first()
    if existing is not None:
        logger.info(f"Tax determination already exists for order {order.id}")
        return existing

    calculation = calculation or calculate_tax(order)
    now = timezone.now()
    determination = TtbTaxDetermination.objects.create(
        company_id=calculation['company_id'],
        order=order,
        proof_gallons=calculation['total_proof_gallons'],
        tax_rate=calculation['effective_tax_rate'],
        tax_amount=calculation['total_tax_due'],
        determination_date=now,
        notes=(
            f"Tax calculation: {calculation['proof_gallons_at_reduced_rate']:.2f} PG @ ${REDUCED_TAX_RATE}/PG + "
            f"{calculation['proof_gallons_at_standard_rate']:.2f} PG @ ${STANDARD_TAX_RATE}/PG. "
            f"{calculation['eligibility_reason']}"
        ),
    )

    TtbTransaction.objects.create(
        company_id=calculation['company_id'],
        transaction_date=now.date(),
        transaction_type=TtbTransaction.TYPE_TAX_DETERMINATION,
        product_type='Distilled Spirits',
        spirits_type='under_190_proof',
        proof_gallons=round2(calculation['total_proof_gallons']),
        wine_gallons=Decimal('0'),
        source_entity_type='Order',
        source_entity_id=order.id,
        notes=(
            f"Federal excise tax determination: ${calculation['total_tax_due']:.2f} due on "
            f"{calculation['total_proof_gallons']:.2f} proof gallons"
        ),
    )

    audit.log_change('create', determination, determination.company_id, user=user, request=request)
    logger.info(
        f"Created tax determination {determination.id} for order {order.id}: "
        f"${determination.tax_amount:.2f} on {determination.proof_gallons:.2f} PG"
    )
    return determination


def mark_paid(determination, payment_reference=None, paid_date=None, user=None, request=None):
    old_values = audit.snapshot(determination)
    determination.paid_date = paid_date or timezone.now()
    determination.payment_reference = payment_reference
    determination.save(update_fields=['paid_date', 'payment_reference'])
    audit.log_change('update', determination, determination.company_id, user=user, old_values=old_values, request=request)
    return determination


def monthly_excise_report(company, month, year):
    """Totals due, paid and outstanding for determinations made in a month"""
    validate_period(month, year)
    logger.info(f"Generating excise tax report for company {company.id}, {month}/{year}")
    start_date, end_date = period_bounds(month, year)
    start = datetime.combine(start_date, time.min)
    end = datetime.combine(end_date, time.max)
    if timezone.is_aware(timezone.now()):
        start, end = timezone.make_aware(start), timezone.make_aware(end)

    determinations = list(TtbTaxDetermination.objects.filter(
        company=company, determination_date__gte=start, determination_date__lte=end
    ).select_related('order').order_by('determination_date'))

    total_due = sum((d.tax_amount for d in determinations), Decimal('0'))
    total_paid = sum((d.tax_amount for d in determinations if d.paid_date), Decimal('0'))

    return {
        'company_id': company.id,
        'company_name': company.company_name,
        'month': month,
        'year': year,
        'total_proof_gallons_removed': sum((d.proof_gallons for d in determinations), Decimal('0')),
        'total_tax_due': total_due,
        'total_tax_paid': total_paid,
        'outstanding_tax_liability': total_due - total_paid,
        'determinations': [{
            'tax_determination_id': d.id,
            'order_id': d.order_id,
            'order_name': d.order.name,
            'determination_date': d.determination_date,
            'proof_gallons': d.proof_gallons,
            'tax_rate': d.tax_rate,
            'tax_amount': d.tax_amount,
            'is_paid': d.paid_date is not None,
            'paid_date': d.paid_date,
            'payment_reference': d.payment_reference,
        } for d in determinations],
    }
