import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.exceptions import ValidationFailed
from backend.core.models import Company
from backend.core.permissions import IsCompanyAdmin, ensure_company_access, resolve_company_id
from backend.core.utils import csv_response, paginate, parse_date_param, parse_int_param
from backend.inventory.models import Barrel, Order
from . import audit, excise, gauges, snapshots, transactions, workflow
from .models import TtbMonthlyReport, TtbTransaction, TtbGaugeRecord, TtbTaxDetermination, TtbAuditLog, TtbInventorySnapshot
from .serializers import (
    TtbMonthlyReportSerializer, TtbMonthlyReportDetailSerializer, GenerateReportSerializer,
    ReviewSerializer, SubmitToTtbSerializer, TtbTransactionSerializer, TtbInventorySnapshotSerializer,
    SnapshotBackfillSerializer, TtbGaugeRecordSerializer, GaugeReadingSerializer,
    TtbTaxDeterminationSerializer, MarkPaidSerializer, TtbAuditLogSerializer
)

logger = logging.getLogger('backend.ttb')


# Monthly reports

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def report_list(request):
    """List TTB reports for a company, optionally filtered by year and status"""
    company_id = resolve_company_id(request)
    reports = TtbMonthlyReport.objects.filter(company_id=company_id).select_related(
        'company', 'created_by', 'submitted_for_review_by', 'reviewed_by', 'approved_by'
    )

    year = parse_int_param(request.query_params.get('year'), 'year')
    if year is not None:
        reports = reports.filter(report_year=year)
    status_filter = request.query_params.get('status')
    if status_filter:
        reports = reports.filter(status=status_filter)

    return Response(TtbMonthlyReportSerializer(reports, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_generate(request):
    """Calculate and store a draft report for a month"""
    serializer = GenerateReportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    company_id = resolve_company_id(request)
    data = serializer.validated_data
    report = workflow.generate_report(
        company_id, data['month'], data['year'], request.user, form_type=data['form_type'], request=request
    )
    return Response(TtbMonthlyReportDetailSerializer(report).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def report_preview(request):
    """Calculate a month's figures without storing a report"""
    company_id = resolve_company_id(request)
    month = parse_int_param(request.query_params.get('month'), 'month')
    year = parse_int_param(request.query_params.get('year'), 'year')
    if month is None or year is None:
        raise ValidationFailed('month and year are required.')
    form_type = request.query_params.get('form_type') or TtbMonthlyReport.FORM_5110_28
    return Response(workflow.calculate(company_id, month, year, form_type))


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def report_detail(request, pk):
    """Retrieve a report or delete a draft"""
    report = get_object_or_404(TtbMonthlyReport.objects.select_related('company'), pk=pk)
    ensure_company_access(request.user, report.company_id)

    if request.method == 'GET':
        return Response(TtbMonthlyReportDetailSerializer(report).data)
    else:  # DELETE
        workflow.delete_report(report, request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _report_for_transition(request, pk):
    report = get_object_or_404(TtbMonthlyReport.objects.select_related('company', 'submitted_for_review_by'), pk=pk)
    ensure_company_access(request.user, report.company_id)
    return report


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_submit_for_review(request, pk):
    report = _report_for_transition(request, pk)
    workflow.submit_for_review(report, request.user, request=request)
    return Response(TtbMonthlyReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_approve(request, pk):
    report = _report_for_transition(request, pk)
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    workflow.approve(report, request.user, serializer.validated_data.get('review_notes'), request=request)
    return Response(TtbMonthlyReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_reject(request, pk):
    report = _report_for_transition(request, pk)
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    workflow.reject(report, request.user, serializer.validated_data.get('review_notes'), request=request)
    return Response(TtbMonthlyReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_submit(request, pk):
    """Record the report's submission to TTB"""
    report = _report_for_transition(request, pk)
    serializer = SubmitToTtbSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    workflow.submit_to_ttb(report, request.user, serializer.validated_data.get('confirmation_number'), request=request)
    return Response(TtbMonthlyReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def report_archive(request, pk):
    report = _report_for_transition(request, pk)
    workflow.archive(report, request.user, request=request)
    return Response(TtbMonthlyReportSerializer(report).data)


# Transactions

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transaction_list_create(request):
    """List a company's TTB transactions for a month or record a manual one"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        month = parse_int_param(request.query_params.get('month'), 'month')
        year = parse_int_param(request.query_params.get('year'), 'year')
        entries = transactions.list_transactions(company_id, month, year)
        return Response(TtbTransactionSerializer(entries, many=True).data)
    else:  # POST
        serializer = TtbTransactionSerializer(data=request.data)
        if serializer.is_valid():
            entity = transactions.create_manual_transaction(
                company_id, serializer.validated_data, request.user, request=request
            )
            return Response(TtbTransactionSerializer(entity).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def transaction_detail(request, pk):
    """Retrieve, update or delete a TTB transaction"""
    entity = get_object_or_404(TtbTransaction, pk=pk)
    ensure_company_access(request.user, entity.company_id)

    if request.method == 'GET':
        return Response(TtbTransactionSerializer(entity).data)
    elif request.method == 'PUT':
        serializer = TtbTransactionSerializer(entity, data=request.data, partial=True)
        if serializer.is_valid():
            entity = transactions.update_manual_transaction(entity, serializer.validated_data, request.user, request=request)
            return Response(TtbTransactionSerializer(entity).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        transactions.delete_manual_transaction(entity, request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Inventory snapshots

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def snapshot_list(request):
    """Stored snapshot rows for a company, optionally for one date"""
    company_id = resolve_company_id(request)
    rows = TtbInventorySnapshot.objects.filter(company_id=company_id)
    snapshot_date = parse_date_param(request.query_params.get('date'), 'date')
    if snapshot_date:
        rows = rows.filter(snapshot_date=snapshot_date)
    return Response(paginate(request, rows, TtbInventorySnapshotSerializer, default_limit=50))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def snapshot_backfill(request):
    """Recalculate snapshots for every day in a date range"""
    serializer = SnapshotBackfillSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    company_id = resolve_company_id(request)
    captured = snapshots.backfill(company_id, serializer.validated_data['start_date'], serializer.validated_data['end_date'])
    logger.info(f"Snapshot backfill for company {company_id} requested by {request.user.username}")
    return Response({
        'company_id': company_id,
        'days': len(captured),
        'rows': sum(captured.values()),
    })


# Gauge records

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def gauge_record_list_create(request):
    """List gauge records for a barrel or company, or record a new gauge"""
    if request.method == 'GET':
        barrel_id = parse_int_param(request.query_params.get('barrel_id'), 'barrel_id')
        if barrel_id is not None:
            barrel = get_object_or_404(Barrel, pk=barrel_id)
            ensure_company_access(request.user, barrel.company_id)
            records = gauges.list_for_barrel(barrel_id)
        else:
            company_id = resolve_company_id(request)
            records = gauges.list_for_company(
                company_id,
                parse_date_param(request.query_params.get('start_date'), 'start_date'),
                parse_date_param(request.query_params.get('end_date'), 'end_date'),
            )
        return Response(TtbGaugeRecordSerializer(records, many=True).data)
    else:  # POST
        serializer = GaugeReadingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        if data.get('barrel_id') is None or data.get('gauge_type') is None:
            raise ValidationFailed('barrel_id and gauge_type are required.')

        barrel = Barrel.objects.filter(pk=data['barrel_id']).first()
        if barrel is not None:
            ensure_company_access(request.user, barrel.company_id)
        record = gauges.create_gauge_record(
            data['barrel_id'], data['gauge_type'], data['proof'], data['temperature'], data['wine_gallons'],
            user=request.user, notes=data.get('notes'), gauge_date=data.get('gauge_date'), request=request,
        )
        return Response(TtbGaugeRecordSerializer(record).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def gauge_record_detail(request, pk):
    """Retrieve, update or delete a gauge record"""
    record = get_object_or_404(TtbGaugeRecord.objects.select_related('barrel', 'gauged_by'), pk=pk)
    ensure_company_access(request.user, record.barrel.company_id)

    if request.method == 'GET':
        return Response(TtbGaugeRecordSerializer(record).data)
    elif request.method == 'PUT':
        serializer = GaugeReadingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        record = gauges.update_gauge_record(
            pk, data['proof'], data['temperature'], data['wine_gallons'],
            notes=data.get('notes'), user=request.user, request=request,
        )
        return Response(TtbGaugeRecordSerializer(record).data)
    else:  # DELETE
        gauges.delete_gauge_record(pk, user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Excise tax

def _order_from_request(request):
    order_id = parse_int_param(request.data.get('order_id') or request.query_params.get('order_id'), 'order_id')
    if order_id is None:
        raise ValidationFailed('order_id is required.')
    order = get_object_or_404(Order.objects.select_related('company'), pk=order_id)
    ensure_company_access(request.user, order.company_id)
    return order


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def excise_calculate(request):
    """Preview the excise tax owed on an order's removals"""
    order = _order_from_request(request)
    return Response(excise.calculate_tax(order))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def excise_record(request):
    """Record the tax determination for an order"""
    order = _order_from_request(request)
    determination = excise.record_tax_determination(order, user=request.user, request=request)
    return Response(TtbTaxDeterminationSerializer(determination).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def excise_determination_list(request):
    company_id = resolve_company_id(request)
    determinations = TtbTaxDetermination.objects.filter(company_id=company_id).select_related('order')
    if request.query_params.get('unpaid') in ('1', 'true', 'True'):
        determinations = determinations.filter(paid_date__isnull=True)
    return Response(TtbTaxDeterminationSerializer(determinations, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def excise_determination_detail(request, pk):
    determination = get_object_or_404(TtbTaxDetermination.objects.select_related('order'), pk=pk)
    ensure_company_access(request.user, determination.company_id)
    return Response(TtbTaxDeterminationSerializer(determination).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def excise_determination_pay(request, pk):
    """Mark a determination paid"""
    determination = get_object_or_404(TtbTaxDetermination.objects.select_related('order'), pk=pk)
    ensure_company_access(request.user, determination.company_id)

    serializer = MarkPaidSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    excise.mark_paid(
        determination,
        payment_reference=serializer.validated_data.get('payment_reference'),
        paid_date=serializer.validated_data.get('paid_date'),
        user=request.user,
        request=request,
    )
    return Response(TtbTaxDeterminationSerializer(determination).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def excise_report(request):
    """Monthly excise tax liability summary"""
    company_id = resolve_company_id(request)
    month = parse_int_param(request.query_params.get('month'), 'month')
    year = parse_int_param(request.query_params.get('year'), 'year')
    if month is None or year is None:
        raise ValidationFailed('month and year are required.')
    company = get_object_or_404(Company, pk=company_id)
    return Response(excise.monthly_excise_report(company, month, year))


# Audit trail

def _audit_range(request):
    return (
        parse_date_param(request.query_params.get('start_date'), 'start_date'),
        parse_date_param(request.query_params.get('end_date'), 'end_date'),
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """TTB audit entries for a company, newest first"""
    company_id = resolve_company_id(request)
    start, end = _audit_range(request)
    return Response(paginate(request, audit.get_audit_logs(company_id, start, end), TtbAuditLogSerializer, default_limit=50))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_export(request):
    """Download the TTB audit trail as CSV"""
    company_id = resolve_company_id(request)
    start, end = _audit_range(request)
    content = audit.export_audit_logs_csv(company_id, start, end)
    logger.info(f"TTB audit trail exported for company {company_id} by {request.user.username}")
    return csv_response(content, f"ttb-audit-trail-{company_id}.csv")


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    entry = get_object_or_404(TtbAuditLog.objects.select_related('changed_by'), pk=pk)
    ensure_company_access(request.user, entry.company_id)
    return Response(TtbAuditLogSerializer(entry).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_recent(request):
    company_id = resolve_company_id(request)
    limit = parse_int_param(request.query_params.get('limit'), 'limit', 10)
    entries = audit.get_audit_logs(company_id)[:max(1, min(limit, 100))]
    return Response(TtbAuditLogSerializer(entries, many=True).data)
