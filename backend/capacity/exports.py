from backend.core.utils import build_csv


def utilization_csv(report):
    header = ['Period Start', 'Period End', 'Available Hours', 'Allocated Hours', 'Utilization %']
    rows = [
        [p['period_start'].isoformat(), p['period_end'].isoformat(),
         p['available_hours'], p['allocated_hours'], p['utilization_percent']]
        for p in report['series']
    ]
    return build_csv(header, rows)


def forecast_csv(forecast):
    header = ['Week Start', 'Week End', 'Predicted Utilization %', 'Lower Bound', 'Upper Bound',
              'Projected Hours', 'Capacity Hours']
    rows = [
        [w['week_start'].isoformat(), w['week_end'].isoformat(), w['predicted_utilization'],
         w['lower_bound'], w['upper_bound'], w['projected_hours'], w['capacity_hours']]
        for w in forecast['weekly_forecasts']
    ]
    return build_csv(header, rows)


def plan_allocations_csv(plan):
    header = ['Equipment', 'Equipment Type', 'Allocation Type', 'Start Date', 'End Date',
              'Hours Allocated', 'Product Type', 'Notes']
    rows = [
        [a.equipment.name, a.equipment.get_equipment_type_display(), a.get_allocation_type_display(),
         a.start_date.isoformat(), a.end_date.isoformat(), a.hours_allocated, a.product_type or '', a.notes or '']
        for a in plan.allocations.select_related('equipment').order_by('start_date', 'equipment__name')
    ]
    return build_csv(header, rows)
