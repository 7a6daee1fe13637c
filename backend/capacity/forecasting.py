"""
Capacity and demand forecasts, gap analysis and what-if scenarios
"""
import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from backend.core.exceptions import ValidationFailed
from backend.core.utils import round2
from backend.inventory.models import Order
from .analysis import (
    DEFAULT_DAILY_OPERATING_HOURS, active_equipment, capacity_overview, equipment_detail,
    identify_bottlenecks, range_days, utilization_percent, validate_range,
)
from .models import CapacitySnapshot

logger = logging.getLogger('backend.capacity')

METHOD_MOVING_AVERAGE = 'moving_average'
METHOD_EXPONENTIAL_SMOOTHING = 'exponential_smoothing'
METHOD_LINEAR_REGRESSION = 'linear_regression'
METHOD_SEASONAL_ADJUSTED = 'seasonal_adjusted'
FORECAST_METHODS = [
    METHOD_MOVING_AVERAGE, METHOD_EXPONENTIAL_SMOOTHING, METHOD_LINEAR_REGRESSION, METHOD_SEASONAL_ADJUSTED,
]

DEFAULT_WEEKS_AHEAD = 12
MAX_WEEKS_AHEAD = 52
HISTORY_WEEKS = 12
MIN_DATA_POINTS = 4
MOVING_AVERAGE_WINDOW = 4
SMOOTHING_ALPHA = Decimal('0.3')
HOURS_PER_BATCH = 8
DEFAULT_WEEKLY_QUANTITY = Decimal('100')
DEFAULT_WEEKLY_BATCHES = 5
DEMAND_CONFIDENCE = Decimal('0.75')
SURPLUS_SHARE = Decimal('0.3')

SCENARIO_ADD_EQUIPMENT = 'add_equipment'
SCENARIO_REMOVE_EQUIPMENT = 'remove_equipment'
SCENARIO_CHANGE_OPERATING_HOURS = 'change_operating_hours'
SCENARIO_CHANGE_TYPES = [SCENARIO_ADD_EQUIPMENT, SCENARIO_REMOVE_EQUIPMENT, SCENARIO_CHANGE_OPERATING_HOURS]
ADD_EQUIPMENT_COST = Decimal('50000')
EXTEND_HOURS_COST = Decimal('8000')
REDUCE_HOURS_SAVING = Decimal('-2000')


def seasonal_factor(month):
    if month <= 2:
        return Decimal('0.9')
    if month <= 5:
        return Decimal('1.1')
    if month <= 8:
        return Decimal('1.0')
    if month <= 11:
        return Decimal('1.15')
    return Decimal('0.85')


def week_start(day):
    return day - timedelta(days=day.weekday())


def _weeks_ahead(weeks):
    weeks = DEFAULT_WEEKS_AHEAD if weeks is None else weeks
    if weeks < 1 or weeks > MAX_WEEKS_AHEAD:
        raise ValidationFailed(f"weeks_ahead must be between 1 and {MAX_WEEKS_AHEAD}.")
    return weeks


def historical_utilization(company_id, today=None):
    """Weekly average snapshot utilization, oldest first; synthetic when history is too short"""
    today = today or timezone.now().date()
    weekly = defaultdict(list)
    snapshots = CapacitySnapshot.objects.filter(
        company_id=company_id, snapshot_date__gte=today - timedelta(weeks=HISTORY_WEEKS)
    ).values_list('snapshot_date', 'utilization_percent')
    for snapshot_date, percent in snapshots:
        weekly[week_start(snapshot_date)].append(percent)

    history = [sum(values, Decimal('0')) / len(values) for _, values in sorted(weekly.items())]
    if len(history) < MIN_DATA_POINTS:
        logger.info(f"Only {len(history)} weeks of snapshots for company {company_id}; using synthetic history")
        return [Decimal(65 + (i % 4) * 5) for i in range(12)], True
    return history, False


def moving_average(history):
    window = history[-MOVING_AVERAGE_WINDOW:]
    return sum(window, Decimal('0')) / len(window)


def exponential_smoothing(history):
    smoothed = history[0]
    for value in history[1:]:
        smoothed = SMOOTHING_ALPHA * value + (1 - SMOOTHING_ALPHA) * smoothed
    return smoothed


def linear_regression(history, periods_ahead):
    n = len(history)
    x_sum = Decimal(n * (n + 1)) / 2
    x_squared_sum = Decimal(n * (n + 1) * (2 * n + 1)) / 6
    y_sum = sum(history, Decimal('0'))
    xy_sum = sum((y * (i + 1) for i, y in enumerate(history)), Decimal('0'))

    denominator = n * x_squared_sum - x_sum * x_sum
    slope = (n * xy_sum - x_sum * y_sum) / denominator if denominator else Decimal('0')
    intercept = (y_sum - slope * x_sum) / n
    return intercept + slope * (n + 1 + periods_ahead)


def seasonal_adjusted(history, week):
    return moving_average(history) * seasonal_factor(week.month)


def _predict(method, history, periods_ahead, week):
    if method == METHOD_EXPONENTIAL_SMOOTHING:
        return exponential_smoothing(history)
    if method == METHOD_LINEAR_REGRESSION:
        return linear_regression(history, periods_ahead)
    if method == METHOD_SEASONAL_ADJUSTED:
        return seasonal_adjusted(history, week)
    return moving_average(history)


def forecast_capacity(company_id, weeks_ahead=None, method=METHOD_MOVING_AVERAGE, today=None):
    weeks_ahead = _weeks_ahead(weeks_ahead)
    if method not in FORECAST_METHODS:
        raise ValidationFailed(f"Unknown forecast method '{method}'.")

    today = today or timezone.now().date()
    history, synthetic = historical_utilization(company_id, today)
    weekly_capacity = active_equipment(company_id).count() * DEFAULT_DAILY_OPERATING_HOURS * 7
    first_week = week_start(today)

    weeks = []
    for i in range(weeks_ahead):
        start = first_week + timedelta(weeks=i)
        predicted = _predict(method, history, i, start)
        interval = Decimal(10 + 2 * i)
        weeks.append({
            'week_start': start,
            'week_end': start + timedelta(days=6),
            'predicted_utilization': round2(predicted),
            'lower_bound': max(Decimal('0'), round2(predicted - interval)),
            'upper_bound': min(Decimal('100'), round2(predicted + interval)),
            'projected_hours': round2(weekly_capacity * predicted / 100),
            'capacity_hours': round2(weekly_capacity),
        })

    return {
        'generated_at': timezone.now(),
        'method': method,
        'weeks_ahead': weeks_ahead,
        'history_points': len(history),
        'synthetic_history': synthetic,
        'confidence': max(Decimal('0'), Decimal('0.85') - Decimal('0.01') * weeks_ahead),
        'weekly_forecasts': weeks,
        'assumptions': [
            'Based on historical utilization patterns',
            'Assumes current equipment configuration',
            'Does not account for planned maintenance',
        ],
    }


def forecast_demand(company_id, weeks_ahead=None, today=None):
    weeks_ahead = _weeks_ahead(weeks_ahead)
    today = today or timezone.now().date()

    quantities = defaultdict(int)
    counts = defaultdict(int)
    orders = Order.objects.filter(
        company_id=company_id, created_at__date__gte=today - timedelta(days=365)
    ).values_list('created_at', 'quantity')
    for created_at, quantity in orders:
        key = created_at.date().isocalendar()[:2]
        quantities[key] += quantity
        counts[key] += 1

    if quantities:
        average_quantity = Decimal(sum(quantities.values())) / len(quantities)
        average_batches = sum(counts.values()) // len(counts)
    else:
        average_quantity = DEFAULT_WEEKLY_QUANTITY
        average_batches = DEFAULT_WEEKLY_BATCHES

    first_week = week_start(today)
    weeks = []
    for i in range(weeks_ahead):
        start = first_week + timedelta(weeks=i)
        weeks.append({
            'week_start': start,
            'week_end': start + timedelta(days=6),
            'predicted_quantity': round2(average_quantity * (1 + Decimal('0.02') * i)),
            'predicted_batches': average_batches,
            'lower_bound': round2(average_quantity * Decimal('0.8')),
            'upper_bound': round2(average_quantity * Decimal('1.2')),
        })

    return {
        'generated_at': timezone.now(),
        'weeks_ahead': weeks_ahead,
        'history_weeks': len(quantities),
        'confidence': DEMAND_CONFIDENCE,
        'basis': 'Historical order patterns',
        'weekly_forecasts': weeks,
    }


def _gap_status(gap, capacity):
    if gap < 0:
        return 'deficit'
    if gap > capacity * SURPLUS_SHARE:
        return 'surplus'
    return 'balanced'


def gap_analysis(company_id, start, end, today=None):
    validate_range(start, end)
    weeks_ahead = min(MAX_WEEKS_AHEAD, (end - start).days // 7 + 1)
    capacity = forecast_capacity(company_id, weeks_ahead, today=today)
    demand = forecast_demand(company_id, weeks_ahead, today=today)
    demand_by_week = {week['week_start']: week for week in demand['weekly_forecasts']}

    weekly_gaps = []
    total_capacity = Decimal('0')
    total_demand = Decimal('0')
    for week in capacity['weekly_forecasts']:
        week_demand = demand_by_week.get(week['week_start'])
        if week_demand is None:
            continue
        demand_hours = Decimal(week_demand['predicted_batches'] * HOURS_PER_BATCH)
        gap = week['capacity_hours'] - demand_hours
        weekly_gaps.append({
            'week_start': week['week_start'],
            'capacity_hours': week['capacity_hours'],
            'demand_hours': demand_hours,
            'gap_hours': round2(gap),
            'gap_percent': round2(gap / week['capacity_hours'] * 100) if week['capacity_hours'] else Decimal('0'),
            'status': _gap_status(gap, week['capacity_hours']),
        })
        total_capacity += week['capacity_hours']
        total_demand += demand_hours

    total_gap = total_capacity - total_demand
    status = _gap_status(total_gap, total_capacity)
    recommendations = []
    if status == 'deficit':
        recommendations = [
            'Consider adding equipment or extending operating hours',
            'Review production schedule for optimization opportunities',
        ]
    elif status == 'surplus':
        recommendations = [
            'Significant excess capacity available',
            'Consider taking on additional orders or scheduling maintenance',
        ]

    return {
        'start_date': start,
        'end_date': end,
        'total_capacity_hours': round2(total_capacity),
        'total_demand_hours': round2(total_demand),
        'gap_hours': round2(total_gap),
        'gap_percent': round2(total_gap / total_capacity * 100) if total_capacity else Decimal('0'),
        'status': status,
        'has_shortfall': status == 'deficit',
        'weekly_gaps': weekly_gaps,
        'recommendations': recommendations,
    }


# What-if scenarios

def _decimal_param(parameters, key, default):
    value = parameters.get(key)
    if value in (None, ''):
        return default
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise ValidationFailed(f"Scenario parameter '{key}' must be a number.")


def run_scenario(company_id, scenario):
    """Project capacity after the scenario's changes against the baseline for its evaluation period"""
    start, end = scenario['start_date'], scenario['end_date']
    baseline = capacity_overview(company_id, start, end)
    days = range_days(start, end)

    capacity_change = Decimal('0')
    cost_impact = Decimal('0')
    equipment_delta = 0
    for change in scenario.get('changes') or []:
        change_type = change.get('type')
        parameters = change.get('parameters') or {}
        if change_type == SCENARIO_ADD_EQUIPMENT:
            units = int(_decimal_param(parameters, 'quantity', Decimal('1')))
            hours_per_day = _decimal_param(parameters, 'hours_per_day', DEFAULT_DAILY_OPERATING_HOURS)
            capacity_change += hours_per_day * days * units
            cost_impact += _decimal_param(parameters, 'cost', ADD_EQUIPMENT_COST) * units
            equipment_delta += units
        elif change_type == SCENARIO_REMOVE_EQUIPMENT:
            if not change.get('equipment_id'):
                raise ValidationFailed('equipment_id is required to remove equipment.')
            detail = equipment_detail(company_id, change['equipment_id'], start, end)
            capacity_change -= detail['available_hours']
            equipment_delta -= 1
        elif change_type == SCENARIO_CHANGE_OPERATING_HOURS:
            hours_delta = _decimal_param(parameters, 'hours_delta', Decimal('0'))
            capacity_change += hours_delta * baseline['equipment_count'] * days
            if hours_delta > 0:
                cost_impact += EXTEND_HOURS_COST
            elif hours_delta < 0:
                cost_impact += REDUCE_HOURS_SAVING
        else:
            raise ValidationFailed(f"Unknown scenario change type '{change_type}'.")

    baseline_capacity = baseline['total_available_hours']
    projected_capacity = max(Decimal('0'), baseline_capacity + capacity_change)
    allocated = baseline['total_allocated_hours']
    projected_utilization = utilization_percent(allocated, projected_capacity)
    change_percent = round2(capacity_change / baseline_capacity * 100) if baseline_capacity else Decimal('0')

    if capacity_change > 0:
        summary = f"Adding {capacity_change:.0f} hours of capacity ({change_percent:.1f}% increase)"
    elif capacity_change < 0:
        summary = f"Reducing {abs(capacity_change):.0f} hours of capacity ({abs(change_percent):.1f}% decrease)"
    else:
        summary = 'No net change in capacity'

    logger.info(f"Ran scenario '{scenario.get('name')}' for company {company_id}: {summary}")
    return {
        'name': scenario.get('name'),
        'start_date': start,
        'end_date': end,
        'baseline': {
            'equipment_count': baseline['equipment_count'],
            'capacity_hours': baseline_capacity,
            'allocated_hours': allocated,
            'utilization_percent': baseline['utilization_percent'],
        },
        'projected': {
            'equipment_count': baseline['equipment_count'] + equipment_delta,
            'capacity_hours': round2(projected_capacity),
            'allocated_hours': allocated,
            'utilization_percent': projected_utilization,
        },
        'baseline_bottlenecks': identify_bottlenecks(company_id, start, end),
        'capacity_change_hours': round2(capacity_change),
        'capacity_change_percent': change_percent,
        'cost_impact': round2(cost_impact),
        'summary': summary,
    }


def compare_scenarios(company_id, scenarios):
    if len(scenarios) < 2:
        raise ValidationFailed('At least two scenarios are required for a comparison.')
    results = [run_scenario(company_id, scenario) for scenario in scenarios]

    def cost_per_hour(result):
        gained = result['capacity_change_hours']
        return result['cost_impact'] / gained if gained > 0 else None

    best_capacity = max(results, key=lambda r: r['capacity_change_hours'])
    costed = [r for r in results if cost_per_hour(r) is not None]
    best_value = min(costed, key=cost_per_hour) if costed else None
    return {
        'results': results,
        'best_capacity_gain': best_capacity['name'],
        'best_cost_per_hour': best_value['name'] if best_value else None,
    }
