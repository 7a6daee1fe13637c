import logging
from decimal import Decimal

from django.db import transaction

from backend.core.exceptions import ConflictError, NotFound, ValidationFailed
from .analysis import active_constraints, daily_hours, range_days
from .models import CapacityAllocation, CapacityConstraint, CapacityPlan, Equipment

logger = logging.getLogger('backend.capacity')

PLAN_UTILIZATION_WARNING = Decimal('90')

PLAN_FIELDS = (
    'name', 'description', 'plan_type', 'period_start', 'period_end',
    'target_proof_gallons', 'target_bottles', 'target_batches', 'notes',
)


def get_plan(company_id, plan_id):
    plan = CapacityPlan.objects.filter(pk=plan_id, company_id=company_id).first()
    if plan is None:
        raise NotFound(f"Capacity plan {plan_id} not found")
    return plan


def list_plans(company_id, status=None, plan_type=None):
    plans = CapacityPlan.objects.filter(company_id=company_id).select_related('created_by')
    if status:
        plans = plans.filter(status=status)
    if plan_type:
        plans = plans.filter(plan_type=plan_type)
    return plans.prefetch_related('allocations__equipment').order_by('-period_start')


def _check_period(period_start, period_end):
    if period_end <= period_start:
        raise ValidationFailed('Period end must be after period start.')


def _company_equipment(company_id, allocations):
    ids = {a['equipment_id'] for a in allocations}
    found = set(Equipment.objects.filter(company_id=company_id, pk__in=ids).values_list('pk', flat=True))
    missing = sorted(ids - found)
    if missing:
        raise ValidationFailed(f"Equipment {missing[0]} not found")


def _create_allocations(plan, allocations):
    CapacityAllocation.objects.bulk_create([
        CapacityAllocation(
            plan=plan,
            equipment_id=a['equipment_id'],
            allocation_type=a.get('allocation_type') or 'production',
            start_date=a['start_date'],
            end_date=a['end_date'],
            hours_allocated=a['hours_allocated'],
            product_type=a.get('product_type'),
            notes=a.get('notes'),
        ) for a in allocations
    ])


@transaction.atomic
def create_plan(company_id, data, created_by=None):
    _check_period(data['period_start'], data['period_end'])
    allocations = data.get('allocations') or []
    _company_equipment(company_id, allocations)

    plan = CapacityPlan.objects.create(
        company_id=company_id,
        created_by=created_by,
        **{field: data.get(field) for field in PLAN_FIELDS if field in data},
    )
    _create_allocations(plan, allocations)
    logger.info(f"Created capacity plan {plan.id} '{plan.name}' with {len(allocations)} allocations")
    return plan


@transaction.atomic
def update_plan(plan, data):
    """Update a draft plan; allocations, when given, replace the existing ones"""
    if plan.status != 'draft':
        raise ConflictError('Only draft plans can be modified')

    period_start = data.get('period_start', plan.period_start)
    period_end = data.get('period_end', plan.period_end)
    _check_period(period_start, period_end)

    for field in PLAN_FIELDS:
        if field in data:
            setattr(plan, field, data[field])
    plan.save()

    if 'allocations' in data:
        allocations = data['allocations'] or []
        _company_equipment(plan.company_id, allocations)
        plan.allocations.all().delete()
        _create_allocations(plan, allocations)

    logger.info(f"Updated capacity plan {plan.id}")
    return plan


def validate_plan(plan):
    errors = []
    warnings = []
    allocations = list(plan.allocations.select_related('equipment').order_by('equipment_id', 'start_date'))
    constraints = list(active_constraints(plan.company_id, plan.period_start, plan.period_end))

    for allocation in allocations:
        if allocation.end_date < allocation.start_date:
            errors.append({
                'code': 'DATE_INVALID',
                'allocation_id': allocation.id,
                'message': f"Allocation for {allocation.equipment.name} ends before it starts",
            })
            continue
        if allocation.start_date < plan.period_start or allocation.end_date > plan.period_end:
            errors.append({
                'code': 'DATE_INVALID',
                'allocation_id': allocation.id,
                'message': f"Allocation for {allocation.equipment.name} falls outside the plan period",
            })

        limit = daily_hours(constraints, allocation.equipment_id)
        per_day = allocation.hours_allocated / range_days(allocation.start_date, allocation.end_date)
        if per_day > limit:
            warnings.append({
                'code': 'EXCEEDS_DAILY_HOURS',
                'allocation_id': allocation.id,
                'message': (
                    f"Allocation for {allocation.equipment.name} needs {per_day:.1f} hours per day, "
                    f"more than the {limit} hour limit"
                ),
            })

    for index, first in enumerate(allocations):
        for second in allocations[index + 1:]:
            if second.equipment_id != first.equipment_id:
                break
            if first.start_date <= second.end_date and second.start_date <= first.end_date:
                errors.append({
                    'code': 'OVERLAP',
                    'allocation_id': second.id,
                    'message': f"Allocations for {first.equipment.name} overlap",
                })

    plan_days = range_days(plan.period_start, plan.period_end)
    allocated = {}
    for allocation in allocations:
        allocated[allocation.equipment] = allocated.get(allocation.equipment, Decimal('0')) + allocation.hours_allocated
    for equipment, hours in allocated.items():
        available = plan_days * daily_hours(constraints, equipment.id)
        if available > 0 and hours / available * 100 > PLAN_UTILIZATION_WARNING:
            warnings.append({
                'code': 'HIGH_UTILIZATION',
                'equipment_id': equipment.id,
                'message': f"{equipment.name} is allocated {hours / available * 100:.1f}% of its available hours",
            })

    return {'is_valid': not errors, 'errors': errors, 'warnings': warnings}


def activate_plan(plan):
    if plan.status != 'draft':
        raise ConflictError('Only draft plans can be activated')
    result = validate_plan(plan)
    if not result['is_valid']:
        raise ConflictError('Plan has validation errors and cannot be activated')
    plan.status = 'active'
    plan.save(update_fields=['status', 'updated_at'])
    logger.info(f"Activated capacity plan {plan.id}")
    return plan


def delete_plan(plan):
    """Archive active plans, delete the rest; returns True when the plan was deleted"""
    if plan.status == 'active':
        plan.status = 'archived'
        plan.save(update_fields=['status', 'updated_at'])
        logger.info(f"Archived active capacity plan {plan.id}")
        return False
    logger.info(f"Deleted capacity plan {plan.id}")
    plan.delete()
    return True


# Constraints

def list_constraints(company_id, equipment_id=None, include_inactive=False):
    constraints = CapacityConstraint.objects.filter(company_id=company_id).select_related('equipment')
    if not include_inactive:
        constraints = constraints.filter(is_active=True)
    if equipment_id is not None:
        constraints = constraints.filter(equipment_id=equipment_id)
    return constraints.order_by('constraint_type', 'effective_from')


def get_constraint(company_id, constraint_id):
    constraint = CapacityConstraint.objects.filter(pk=constraint_id, company_id=company_id).first()
    if constraint is None:
        raise NotFound(f"Constraint {constraint_id} not found")
    return constraint


def _check_constraint(company_id, data):
    if data.get('effective_until') and data.get('effective_from') and data['effective_until'] < data['effective_from']:
        raise ValidationFailed('effective_until must be on or after effective_from.')
    equipment = data.get('equipment')
    if equipment is not None and equipment.company_id != company_id:
        raise ValidationFailed(f"Equipment {equipment.id} not found")
    if data.get('constraint_type') == 'max_hours_per_day' and data.get('constraint_value', 0) > 24:
        raise ValidationFailed('max_hours_per_day cannot exceed 24.')


def create_constraint(company_id, data):
    _check_constraint(company_id, data)
    constraint = CapacityConstraint.objects.create(company_id=company_id, **data)
    logger.info(f"Created {constraint.constraint_type} constraint {constraint.id} for company {company_id}")
    return constraint


def update_constraint(constraint, data):
    merged = {
        'effective_from': constraint.effective_from,
        'effective_until': constraint.effective_until,
        'constraint_type': constraint.constraint_type,
        'constraint_value': constraint.constraint_value,
        'equipment': constraint.equipment,
    }
    merged.update(data)
    _check_constraint(constraint.company_id, merged)
    for field, value in data.items():
        setattr(constraint, field, value)
    constraint.save()
    logger.info(f"Updated constraint {constraint.id}")
    return constraint


def deactivate_constraint(constraint):
    constraint.is_active = False
    constraint.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Deactivated constraint {constraint.id}")
    return constraint