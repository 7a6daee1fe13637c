"""
Equipment utilization, bottleneck detection and daily capacity snapshots

Available hours = days x daily operating hours, where the daily hours come from the
strictest active max_hours_per_day constraint for the equipment or the facility (16 when
there is none). Allocated hours are the parts of active-plan allocations that fall inside
the range, each allocation's hours spread evenly over its days. Bookings only feed the
affected-run lookup and the actual hours of snapshots.
"""
import calendar
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.db.models import Q, Sum
from django.utils import timezone

from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.utils import round2
from backend.inventory.models import Batch
from backend.ttb.models import TtbTransaction
from .models import (
    CapacityAllocation, CapacityConstraint, CapacitySnapshot, Equipment, EquipmentBooking, ProductionRun,
)

logger = logging.getLogger('backend.capacity')

DEFAULT_DAILY_OPERATING_HOURS = Decimal('16')
HIGH_UTILIZATION_THRESHOLD = Decimal('85')
CRITICAL_UTILIZATION_THRESHOLD = Decimal('95')
HIGH_SEVERITY_THRESHOLD = Decimal('90')
MAINTENANCE_OVERHEAD_SHARE = Decimal('0.1')
ESTIMATED_DELAY_HOURS_PER_RUN = 2
TREND_MONTHS = 6
DEFAULT_PRODUCT_TYPE = 'other'
ZERO = Decimal('0')

SEVERITY_RANK = {'low': 0, 'medium': 1, 'high': 2, 'critical': 3}


def validate_range(start, end):
    if start is None or end is None:
        raise ValidationFailed('start_date and end_date are required.')
    if end < start:
        raise ValidationFailed('End date must be on or after start date.')


def range_days(start, end):
    return (end - start).days + 1


def _range_bounds(start, end):
    lower = datetime.combine(start, time.min)
    upper = datetime.combine(end + timedelta(days=1), time.min)
    if timezone.is_aware(timezone.now()):
        lower, upper = timezone.make_aware(lower), timezone.make_aware(upper)
    return lower, upper


def utilization_percent(used, available):
    if available <= 0:
        return Decimal('0.00')
    return round2(used / available * 100)


def alert_level(percent):
    if percent >= CRITICAL_UTILIZATION_THRESHOLD:
        return 'critical'
    if percent >= HIGH_UTILIZATION_THRESHOLD:
        return 'warning'
    return None


def bottleneck_severity(percent):
    if percent >= CRITICAL_UTILIZATION_THRESHOLD:
        return 'critical'
    if percent >= HIGH_SEVERITY_THRESHOLD:
        return 'high'
    if percent >= HIGH_UTILIZATION_THRESHOLD:
        return 'medium'
    return 'low'


# Constraints and hours

def active_constraints(company_id, start, end):
    return CapacityConstraint.objects.filter(
        company_id=company_id, is_active=True, effective_from__lte=end
    ).filter(Q(effective_until__isnull=True) | Q(effective_until__gte=start))


def daily_hours(constraints, equipment_id=None, facility_only=False):
    """Smallest applicable max_hours_per_day constraint, else the default operating day"""
    values = [
        c.constraint_value for c in constraints
        if c.constraint_type == 'max_hours_per_day'
        and (c.equipment_id is None or (not facility_only and c.equipment_id == equipment_id))
    ]
    return min(values) if values else DEFAULT_DAILY_OPERATING_HOURS


def active_allocations(company_id, start, end):
    """Allocations of the company's active plans that overlap the range"""
    return CapacityAllocation.objects.filter(
        plan__company_id=company_id, plan__status='active', start_date__lte=end, end_date__gte=start
    )


def allocation_hours_in_range(allocation, start, end):
    """The allocation's hours prorated by the share of its days inside the range"""
    overlap_start = max(allocation.start_date, start)
    overlap_end = min(allocation.end_date, end)
    if overlap_end < overlap_start:
        return ZERO
    total_days = range_days(allocation.start_date, allocation.end_date)
    return allocation.hours_allocated * range_days(overlap_start, overlap_end) / total_days


def _allocated_by_equipment(company_id, start, end):
    """{equipment id: {allocation type: hours}} for active plans"""
    hours = defaultdict(lambda: defaultdict(lambda: ZERO))
    for allocation in active_allocations(company_id, start, end):
        hours[allocation.equipment_id][allocation.allocation_type] += allocation_hours_in_range(allocation, start, end)
    return hours


def _booked_bookings(equipment_ids, start, end):
    lower, upper = _range_bounds(start, end)
    return EquipmentBooking.objects.filter(
        equipment_id__in=equipment_ids, start_time__lt=upper, end_time__gt=lower
    ).exclude(status='cancelled').select_related('production_run')


def booking_hours_in_range(booking, lower, upper):
    overlap_start = max(booking.start_time, lower)
    overlap_end = min(booking.end_time, upper)
    if overlap_end <= overlap_start:
        return ZERO
    return Decimal((overlap_end - overlap_start).total_seconds()) / Decimal('3600')


def _booked_by_equipment(equipment_ids, start, end):
    """(booked hours, bookings) per equipment id"""
    lower, upper = _range_bounds(start, end)
    booked = defaultdict(lambda: ZERO)
    bookings = defaultdict(list)
    for booking in _booked_bookings(equipment_ids, start, end):
        booked[booking.equipment_id] += booking_hours_in_range(booking, lower, upper)
        bookings[booking.equipment_id].append(booking)
    return booked, bookings


def _equipment_figures(equipment, days, hours_per_day, by_type):
    available = days * hours_per_day
    allocated = sum(by_type.values(), ZERO)
    percent = utilization_percent(allocated, available)
    return {
        'equipment_id': equipment.id,
        'equipment_name': equipment.name,
        'equipment_type': equipment.equipment_type,
        'daily_hours': hours_per_day,
        'available_hours': round2(available),
        'allocated_hours': round2(allocated),
        'production_hours': round2(by_type['production']),
        'maintenance_hours': round2(by_type['maintenance']),
        'buffer_hours': round2(by_type['buffer']),
        'reserved_hours': round2(by_type['reserved']),
        'remaining_hours': round2(max(ZERO, available - allocated)),
        'utilization_percent': percent,
        'alert_level': alert_level(percent),
    }


def active_equipment(company_id):
    return Equipment.objects.filter(company_id=company_id, is_active=True)


# Overview and detail

def capacity_overview(company_id, start, end):
    validate_range(start, end)
    equipment = list(active_equipment(company_id))
    constraints = list(active_constraints(company_id, start, end))
    days = range_days(start, end)
    allocated = _allocated_by_equipment(company_id, start, end)

    rows = []
    total_available = ZERO
    total_allocated = ZERO
    for eq in equipment:
        hours_per_day = daily_hours(constraints, eq.id)
        rows.append(_equipment_figures(eq, days, hours_per_day, allocated[eq.id]))
        total_available += days * hours_per_day
        total_allocated += sum(allocated[eq.id].values(), ZERO)

    alerts = [{
        'level': row['alert_level'],
        'equipment_id': row['equipment_id'],
        'equipment_name': row['equipment_name'],
        'message': f"{row['equipment_name']} is at {row['utilization_percent']:.1f}% utilization",
    } for row in rows if row['alert_level']]

    return {
        'company_id': company_id,
        'start_date': start,
        'end_date': end,
        'days': days,
        'daily_hours': daily_hours(constraints, facility_only=True),
        'equipment_count': len(equipment),
        'total_available_hours': round2(total_available),
        'total_allocated_hours': round2(total_allocated),
        'total_remaining_hours': round2(max(ZERO, total_available - total_allocated)),
        'utilization_percent': utilization_percent(total_allocated, total_available),
        'equipment': rows,
        'alerts': alerts,
    }


def get_equipment(company_id, equipment_id):
    equipment = Equipment.objects.filter(pk=equipment_id, company_id=company_id).first()
    if equipment is None:
        raise NotFound(f"Equipment {equipment_id} not found")
    return equipment


def equipment_detail(company_id, equipment_id, start, end):
    validate_range(start, end)
    equipment = get_equipment(company_id, equipment_id)
    constraints = list(active_constraints(company_id, start, end))
    allocations = list(active_allocations(company_id, start, end).filter(equipment=equipment))
    by_type = defaultdict(lambda: ZERO)
    for allocation in allocations:
        by_type[allocation.allocation_type] += allocation_hours_in_range(allocation, start, end)

    detail = _equipment_figures(equipment, range_days(start, end), daily_hours(constraints, equipment.id), by_type)
    detail['allocations'] = [{
        'id': a.id,
        'plan_id': a.plan_id,
        'allocation_type': a.allocation_type,
        'start_date': a.start_date,
        'end_date': a.end_date,
        'hours_allocated': a.hours_allocated,
        'hours_in_range': round2(allocation_hours_in_range(a, start, end)),
        'product_type': a.product_type,
        'notes': a.notes,
    } for a in allocations]
    detail['constraints'] = [{
        'id': c.id,
        'constraint_type': c.constraint_type,
        'constraint_value': c.constraint_value,
        'effective_from': c.effective_from,
        'effective_until': c.effective_until,
    } for c in constraints if c.equipment_id in (None, equipment.id)]
    return detail


def capacity_by_type(company_id, start, end):
    """Production hours per product type, largest share first"""
    validate_range(start, end)
    hours = defaultdict(lambda: ZERO)
    counts = defaultdict(int)
    for allocation in active_allocations(company_id, start, end).filter(allocation_type='production'):
        product_type = allocation.product_type or DEFAULT_PRODUCT_TYPE
        hours[product_type] += allocation_hours_in_range(allocation, start, end)
        counts[product_type] += 1

    total = sum(hours.values(), ZERO)
    result = [{
        'product_type': product_type,
        'allocated_hours': round2(type_hours),
        'share_percent': round2(type_hours / total * 100) if total else Decimal('0.00'),
        'allocation_count': counts[product_type],
    } for product_type, type_hours in sorted(hours.items())]
    return sorted(result, key=lambda r: r['allocated_hours'], reverse=True)


# Utilization over time

def _add_months(day, months):
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _period_end(period_start, period):
    if period == 'day':
        return period_start
    if period == 'month':
        return _add_months(period_start, 1) - timedelta(days=1)
    return period_start + timedelta(days=6)


def utilization_report(company_id, start, end, period='week'):
    validate_range(start, end)
    if period not in ('day', 'week', 'month'):
        raise ValidationFailed("Period must be 'day', 'week' or 'month'.")

    series = []
    current = start
    while current <= end:
        period_end = min(_period_end(current, period), end)
        overview = capacity_overview(company_id, current, period_end)
        series.append({
            'period_start': current,
            'period_end': period_end,
            'available_hours': overview['total_available_hours'],
            'allocated_hours': overview['total_allocated_hours'],
            'utilization_percent': overview['utilization_percent'],
        })
        current = period_end + timedelta(days=1)

    overall = capacity_overview(company_id, start, end)
    return {
        'start_date': start,
        'end_date': end,
        'period': period,
        'available_hours': overall['total_available_hours'],
        'allocated_hours': overall['total_allocated_hours'],
        'utilization_percent': overall['utilization_percent'],
        'series': series,
    }


def trend_direction(value):
    if value > 5:
        return 'increasing'
    if value < -5:
        return 'decreasing'
    return 'stable'


def utilization_trend(company_id, months=TREND_MONTHS, today=None):
    today = today or timezone.now().date()
    first_month = _add_months(today.replace(day=1), -(months - 1))

    points = []
    current = first_month
    while current <= today:
        month_end = min(_add_months(current, 1) - timedelta(days=1), today)
        overview = capacity_overview(company_id, current, month_end)
        points.append({
            'year': current.year,
            'month': current.month,
            'available_hours': overview['total_available_hours'],
            'allocated_hours': overview['total_allocated_hours'],
            'utilization_percent': overview['utilization_percent'],
        })
        current = _add_months(current, 1)

    direction = ZERO
    if len(points) >= 2:
        half = len(points) // 2
        first = [p['utilization_percent'] for p in points[:half]]
        second = [p['utilization_percent'] for p in points[half:]]
        direction = sum(second, ZERO) / len(second) - sum(first, ZERO) / len(first)

    return {
        'start_date': first_month,
        'end_date': today,
        'points': points,
        'trend_value': round2(direction),
        'trend': trend_direction(direction),
    }


def equipment_utilization_ranking(company_id, start, end):
    validate_range(start, end)
    rows = []
    for eq in active_equipment(company_id):
        detail = equipment_detail(company_id, eq.id, start, end)
        del detail['allocations'], detail['constraints']
        rows.append(detail)
    return sorted(rows, key=lambda r: r['utilization_percent'], reverse=True)


# Bottlenecks

def affected_runs(equipment_id, start, end):
    lower, upper = _range_bounds(start, end)
    return ProductionRun.objects.filter(
        bookings__equipment_id=equipment_id,
        bookings__start_time__lt=upper,
        bookings__end_time__gt=lower,
    ).exclude(status__in=ProductionRun.CLOSED_STATUSES).distinct().order_by('scheduled_start')


def identify_bottlenecks(company_id, start, end, min_severity=None):
    bottlenecks = []
    for row in equipment_utilization_ranking(company_id, start, end):
        if row['utilization_percent'] < HIGH_UTILIZATION_THRESHOLD:
            continue
        severity = bottleneck_severity(row['utilization_percent'])
        if min_severity and SEVERITY_RANK[severity] < SEVERITY_RANK[min_severity]:
            continue
        runs = list(affected_runs(row['equipment_id'], start, end))
        lost = max(ZERO, row['allocated_hours'] - row['available_hours'])
        bottlenecks.append({
            'equipment_id': row['equipment_id'],
            'equipment_name': row['equipment_name'],
            'equipment_type': row['equipment_type'],
            'severity': severity,
            'utilization_percent': row['utilization_percent'],
            'affected_run_count': len(runs),
            'lost_capacity_hours': round2(lost),
            'description': (
                f"{row['equipment_name']} is operating at {row['utilization_percent']:.1f}% capacity, "
                f"potentially causing delays for {len(runs)} production runs"
            ),
        })
    return sorted(bottlenecks, key=lambda b: (SEVERITY_RANK[b['severity']], b['utilization_percent']), reverse=True)


def analyze_bottleneck(company_id, equipment_id, start, end):
    detail = equipment_detail(company_id, equipment_id, start, end)
    runs = list(affected_runs(equipment_id, start, end))
    percent = detail['utilization_percent']
    delay = ESTIMATED_DELAY_HOURS_PER_RUN if runs else 0

    factors = []
    if percent > 90:
        factors.append('Very high demand on this equipment')
    if detail['maintenance_hours'] > detail['available_hours'] * MAINTENANCE_OVERHEAD_SHARE:
        factors.append('Significant maintenance overhead')
    if len(runs) > 5:
        factors.append('Multiple production runs competing for time slots')

    return {
        'equipment_id': equipment_id,
        'equipment_name': detail['equipment_name'],
        'equipment_type': detail['equipment_type'],
        'severity': bottleneck_severity(percent),
        'utilization_percent': percent,
        'affected_runs': [{
            'id': run.id,
            'name': run.name,
            'scheduled_start': run.scheduled_start,
            'estimated_delay_hours': ESTIMATED_DELAY_HOURS_PER_RUN,
            'reason': f"Waiting for {detail['equipment_name']}",
        } for run in runs],
        'total_estimated_delay_hours': ESTIMATED_DELAY_HOURS_PER_RUN * len(runs),
        'average_wait_hours': delay,
        'max_wait_hours': delay,
        'lost_capacity_hours': round2(max(ZERO, detail['allocated_hours'] - detail['available_hours'])),
        'contributing_factors': factors,
    }


def suggest_resolutions(bottleneck):
    """Resolution options for a bottleneck, most effective first"""
    severity = SEVERITY_RANK[bottleneck['severity']]
    lost = Decimal(bottleneck['lost_capacity_hours'])
    options = []

    def option(resolution_type, description, cost, gain_factor, days, prerequisites, score):
        options.append({
            'resolution_type': resolution_type,
            'description': description,
            'estimated_cost': Decimal(cost),
            'capacity_gain_hours': round2(lost * Decimal(gain_factor)),
            'implementation_days': days,
            'prerequisites': prerequisites,
            'effectiveness_score': score,
        })

    if severity >= SEVERITY_RANK['high']:
        option('add_equipment', f"Add another {bottleneck['equipment_type']} to increase capacity",
               50000, '0.5', 90, ['Budget approval', 'Space availability', 'Staff training'], 90)
    option('extend_hours', 'Extend operating hours by adding a second shift',
           8000, '0.3', 14, ['Staff availability', 'Safety approval'], 75)
    option('optimize_schedule', 'Optimize production schedule to reduce gaps and conflicts',
           0, '0.15', 7, [], 60)
    if severity >= SEVERITY_RANK['medium']:
        option('reduce_maintenance_time', 'Implement predictive maintenance to reduce downtime',
               5000, '0.1', 30, ['Maintenance team buy-in', 'Sensor installation'], 50)

    return sorted(options, key=lambda o: o['effectiveness_score'], reverse=True)


# Snapshots

def planned_hours_for_day(equipment_id, day):
    """Hours allocated to the equipment on that day by active plans"""
    allocations = CapacityAllocation.objects.filter(
        equipment_id=equipment_id, plan__status='active', start_date__lte=day, end_date__gte=day
    )
    return sum((allocation_hours_in_range(a, day, day) for a in allocations), ZERO)


def _produced_on(company_id, run_ids, day):
    batch_ids = list(ProductionRun.objects.filter(
        pk__in=run_ids, batch__isnull=False
    ).values_list('batch_id', flat=True))
    completed = Batch.objects.filter(pk__in=batch_ids, completed_at__date=day).count()
    proof_gallons = TtbTransaction.objects.filter(
        company_id=company_id,
        transaction_type=TtbTransaction.TYPE_PRODUCTION,
        source_entity_type='Batch',
        source_entity_id__in=batch_ids,
        transaction_date=day,
    ).aggregate(total=Sum('proof_gallons'))['total'] or ZERO
    return completed, proof_gallons


def capture_snapshot(company_id, snapshot_date=None):
    """Record one day of utilization per active equipment, replacing that day's rows"""
    snapshot_date = snapshot_date or timezone.now().date()
    equipment = list(active_equipment(company_id))
    constraints = list(active_constraints(company_id, snapshot_date, snapshot_date))
    booked, bookings = _booked_by_equipment([e.id for e in equipment], snapshot_date, snapshot_date)

    snapshots = []
    for eq in equipment:
        available = daily_hours(constraints, eq.id)
        run_ids = {b.production_run_id for b in bookings[eq.id]}
        batches_completed, proof_gallons = _produced_on(company_id, run_ids, snapshot_date)
        snapshot, _ = CapacitySnapshot.objects.update_or_create(
            equipment=eq,
            snapshot_date=snapshot_date,
            defaults={
                'company_id': company_id,
                'planned_hours': round2(planned_hours_for_day(eq.id, snapshot_date)),
                'actual_hours': round2(booked[eq.id]),
                'available_hours': round2(available),
                'utilization_percent': utilization_percent(booked[eq.id], available),
                'proof_gallons_produced': round2(proof_gallons),
                'batches_completed': batches_completed,
            },
        )
        snapshots.append(snapshot)

    logger.info(f"Captured {len(snapshots)} capacity snapshots for company {company_id} on {snapshot_date}")
    return snapshots


def snapshot_history(company_id, start, end, equipment_id=None):
    snapshots = CapacitySnapshot.objects.filter(
        company_id=company_id, snapshot_date__gte=start, snapshot_date__lte=end
    ).select_related('equipment')
    if equipment_id is not None:
        snapshots = snapshots.filter(equipment_id=equipment_id)
    return snapshots.order_by('snapshot_date', 'equipment_id')


def capture_for_all_companies(snapshot_date=None):
    company_ids = Equipment.objects.filter(is_active=True).values_list('company_id', flat=True).distinct()
    return {company_id: len(capture_snapshot(company_id, snapshot_date)) for company_id in company_ids}
