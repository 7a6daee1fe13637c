import logging
from datetime import timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.utils import timezone
from backend.core.exceptions import ValidationFailed
from backend.core.permissions import resolve_company_id
from backend.core.utils import create_audit_log, csv_response, parse_date_param, parse_int_param
from . import analysis, exports, forecasting, planning
from .serializers import (
    EquipmentSerializer, CapacityPlanSerializer, CapacityPlanWriteSerializer, CapacityConstraintSerializer,
    CapacitySnapshotSerializer, ScenarioSerializer, ScenarioComparisonSerializer, ForecastQuerySerializer
)

logger = logging.getLogger('backend.capacity')

DEFAULT_RANGE_DAYS = 30


def _date_range(request):
    """start_date/end_date query parameters; defaults to the next 30 days"""
    start = parse_date_param(request.query_params.get('start_date'), 'start_date') or timezone.now().date()
    end = parse_date_param(request.query_params.get('end_date'), 'end_date') or start + timedelta(days=DEFAULT_RANGE_DAYS - 1)
    analysis.validate_range(start, end)
    return start, end


def _forecast_params(request):
    serializer = ForecastQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


# Utilization

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def overview(request):
    """Company-wide capacity for a date range with per-equipment alerts"""
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    logger.info(f"Getting capacity overview for company {company_id} from {start} to {end}")
    return Response(analysis.capacity_overview(company_id, start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def equipment_list(request):
    company_id = resolve_company_id(request)
    equipment = analysis.active_equipment(company_id)
    equipment_type = request.query_params.get('equipment_type')
    if equipment_type:
        equipment = equipment.filter(equipment_type=equipment_type)
    return Response(EquipmentSerializer(equipment, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def equipment_capacity(request, pk):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    return Response(analysis.equipment_detail(company_id, pk, start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def capacity_by_type(request):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    return Response(analysis.capacity_by_type(company_id, start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def utilization(request):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    period = request.query_params.get('period') or 'week'
    return Response(analysis.utilization_report(company_id, start, end, period))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def utilization_trend(request):
    company_id = resolve_company_id(request)
    months = parse_int_param(request.query_params.get('months'), 'months', analysis.TREND_MONTHS)
    if months < 1 or months > 24:
        raise ValidationFailed('months must be between 1 and 24.')
    return Response(analysis.utilization_trend(company_id, months))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def utilization_by_equipment(request):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    return Response(analysis.equipment_utilization_ranking(company_id, start, end))


# Bottlenecks

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bottleneck_list(request):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    min_severity = request.query_params.get('min_severity')
    if min_severity and min_severity not in analysis.SEVERITY_RANK:
        raise ValidationFailed(f"Invalid min_severity: {min_severity}")
    return Response(analysis.identify_bottlenecks(company_id, start, end, min_severity or None))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bottleneck_detail(request, equipment_id):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    return Response(analysis.analyze_bottleneck(company_id, equipment_id, start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bottleneck_resolutions(request, equipment_id):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    bottleneck = analysis.analyze_bottleneck(company_id, equipment_id, start, end)
    return Response(analysis.suggest_resolutions(bottleneck))


# Plans

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def plan_list_create(request):
    """List capacity plans or create one with its allocations"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        plans = planning.list_plans(
            company_id,
            status=request.query_params.get('status'),
            plan_type=request.query_params.get('plan_type'),
        )
        return Response(CapacityPlanSerializer(plans, many=True).data)

    else:  # POST
        serializer = CapacityPlanWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        plan = planning.create_plan(company_id, serializer.validated_data, created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='CapacityPlan',
            object_id=plan.id,
            object_name=plan.name,
            company=plan.company,
        )
        return Response(CapacityPlanSerializer(plan).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def plan_detail(request, pk):
    company_id = resolve_company_id(request)
    plan = planning.get_plan(company_id, pk)

    if request.method == 'GET':
        return Response(CapacityPlanSerializer(plan).data)

    elif request.method == 'PUT':
        serializer = CapacityPlanWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        plan = planning.update_plan(plan, serializer.validated_data)
        create_audit_log(
            request=request,
            action='update',
            model_name='CapacityPlan',
            object_id=plan.id,
            object_name=plan.name,
            company=plan.company,
            changes={'fields': sorted(serializer.validated_data.keys())},
        )
        return Response(CapacityPlanSerializer(plan).data)

    else:  # DELETE
        plan_name = plan.name
        company = plan.company
        deleted = planning.delete_plan(plan)
        create_audit_log(
            request=request,
            action='delete' if deleted else 'archive',
            model_name='CapacityPlan',
            object_id=pk,
            object_name=plan_name,
            company=company,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def plan_validate(request, pk):
    company_id = resolve_company_id(request)
    plan = planning.get_plan(company_id, pk)
    return Response(planning.validate_plan(plan))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def plan_activate(request, pk):
    company_id = resolve_company_id(request)
    plan = planning.activate_plan(planning.get_plan(company_id, pk))
    create_audit_log(
        request=request,
        action='activate',
        model_name='CapacityPlan',
        object_id=plan.id,
        object_name=plan.name,
        company=plan.company,
    )
    return Response(CapacityPlanSerializer(plan).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def plan_export(request, pk):
    company_id = resolve_company_id(request)
    plan = planning.get_plan(company_id, pk)
    return csv_response(exports.plan_allocations_csv(plan), f"capacity_plan_{plan.id}.csv")


# Forecasts and scenarios

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def forecast(request):
    company_id = resolve_company_id(request)
    params = _forecast_params(request)
    return Response(forecasting.forecast_capacity(company_id, params['weeks_ahead'], params['method']))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def demand_forecast(request):
    company_id = resolve_company_id(request)
    params = _forecast_params(request)
    return Response(forecasting.forecast_demand(company_id, params['weeks_ahead']))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def gap_analysis(request):
    company_id = resolve_company_id(request)
    start = parse_date_param(request.query_params.get('start_date'), 'start_date') or timezone.now().date()
    end = parse_date_param(request.query_params.get('end_date'), 'end_date') or start + timedelta(weeks=12, days=-1)
    return Response(forecasting.gap_analysis(company_id, start, end))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def scenario_run(request):
    company_id = resolve_company_id(request)
    serializer = ScenarioSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(forecasting.run_scenario(company_id, serializer.validated_data))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def scenario_compare(request):
    company_id = resolve_company_id(request)
    serializer = ScenarioComparisonSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(forecasting.compare_scenarios(company_id, serializer.validated_data['scenarios']))


# Constraints

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def constraint_list_create(request):
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        include_inactive = request.query_params.get('include_inactive', '').lower() == 'true'
        equipment_id = parse_int_param(request.query_params.get('equipment_id'), 'equipment_id')
        constraints = planning.list_constraints(company_id, equipment_id, include_inactive)
        return Response(CapacityConstraintSerializer(constraints, many=True).data)

    else:  # POST
        serializer = CapacityConstraintSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        constraint = planning.create_constraint(company_id, serializer.validated_data)
        return Response(CapacityConstraintSerializer(constraint).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def constraint_detail(request, pk):
    company_id = resolve_company_id(request)
    constraint = planning.get_constraint(company_id, pk)

    if request.method == 'PUT':
        serializer = CapacityConstraintSerializer(constraint, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        constraint = planning.update_constraint(constraint, serializer.validated_data)
        return Response(CapacityConstraintSerializer(constraint).data)

    else:  # DELETE
        planning.deactivate_constraint(constraint)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Snapshots

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def snapshot_list(request):
    company_id = resolve_company_id(request)
    end = parse_date_param(request.query_params.get('end_date'), 'end_date') or timezone.now().date()
    start = parse_date_param(request.query_params.get('start_date'), 'start_date') or end - timedelta(days=29)
    analysis.validate_range(start, end)
    equipment_id = parse_int_param(request.query_params.get('equipment_id'), 'equipment_id')
    snapshots = analysis.snapshot_history(company_id, start, end, equipment_id)
    return Response(CapacitySnapshotSerializer(snapshots, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def snapshot_capture(request):
    company_id = resolve_company_id(request)
    snapshot_date = parse_date_param(request.data.get('snapshot_date'), 'snapshot_date')
    snapshots = analysis.capture_snapshot(company_id, snapshot_date)
    return Response(CapacitySnapshotSerializer(snapshots, many=True).data, status=status.HTTP_201_CREATED)


# CSV exports

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def export_utilization(request):
    company_id = resolve_company_id(request)
    start, end = _date_range(request)
    report = analysis.utilization_report(company_id, start, end, request.query_params.get('period') or 'week')
    return csv_response(exports.utilization_csv(report), f"capacity_utilization_{start}_{end}.csv")


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def export_forecast(request):
    company_id = resolve_company_id(request)
    params = _forecast_params(request)
    result = forecasting.forecast_capacity(company_id, params['weeks_ahead'], params['method'])
    return csv_response(exports.forecast_csv(result), f"capacity_forecast_{params['method']}.csv")
