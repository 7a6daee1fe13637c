import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from django.utils import timezone
from backend.core.exceptions import ValidationFailed
from backend.core.permissions import ensure_company_access, resolve_company_id
from backend.core.utils import create_audit_log, parse_date_param, to_decimal
from backend.ttb import excise, transactions as ttb_transactions
from backend.ttb.serializers import TtbTransactionSerializer, TtbTaxDeterminationSerializer
from backend.webhooks import services as webhooks
from .models import SpiritType, MashBill, Batch, Order, Barrel
from .serializers import (
    SpiritTypeSerializer, MashBillSerializer, BatchSerializer, OrderSerializer, BarrelSerializer
)

logger = logging.getLogger('backend.inventory')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def spirit_type_list_create(request):
    """List all spirit types or create a new spirit type"""
    if request.method == 'GET':
        return Response(SpiritTypeSerializer(SpiritType.objects.all(), many=True).data)
    else:  # POST
        serializer = SpiritTypeSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def mash_bill_list_create(request):
    """List mash bills for a company or create one"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        mash_bills = MashBill.objects.filter(company_id=company_id)
        return Response(MashBillSerializer(mash_bills, many=True).data)
    else:  # POST
        serializer = MashBillSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save(company_id=company_id)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def batch_list_create(request):
    """List batches for a company or create one"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        batches = Batch.objects.filter(company_id=company_id).select_related('mash_bill')
        status_filter = request.query_params.get('status')
        if status_filter:
            batches = batches.filter(status=status_filter)
        return Response(BatchSerializer(batches, many=True).data)
    else:  # POST
        serializer = BatchSerializer(data=request.data)
        if serializer.is_valid():
            mash_bill = serializer.validated_data.get('mash_bill')
            if mash_bill is not None and mash_bill.company_id != company_id:
                return Response({'mash_bill': ['Must belong to the same company.']}, status=status.HTTP_400_BAD_REQUEST)
            batch = serializer.save(company_id=company_id)
            create_audit_log(
                request=request,
                action='create',
                model_name='Batch',
                object_id=batch.id,
                object_name=str(batch),
                company=batch.company,
            )
            data = BatchSerializer(batch).data
            webhooks.trigger_event(webhooks.BATCH_CREATED, batch.id, data, company_id)
            return Response(data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def batch_detail(request, pk):
    """Retrieve or update a batch"""
    batch = get_object_or_404(Batch, pk=pk)
    ensure_company_access(request.user, batch.company_id)

    if request.method == 'GET':
        return Response(BatchSerializer(batch).data)
    else:  # PATCH
        serializer = BatchSerializer(batch, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def batch_complete(request, pk):
    """Mark a batch completed and log its TTB production transaction"""
    batch = get_object_or_404(Batch, pk=pk)
    ensure_company_access(request.user, batch.company_id)

    if batch.status == 'completed':
        return Response({'error': 'Batch is already completed'}, status=status.HTTP_400_BAD_REQUEST)

    production_date = parse_date_param(request.data.get('production_date'), 'production_date') or timezone.now().date()
    # The production record must exist before the batch is closed
    transaction = ttb_transactions.log_production(batch, production_date)

    batch.status = 'completed'
    batch.completed_at = timezone.now()
    batch.save(update_fields=['status', 'completed_at', 'updated_at'])

    create_audit_log(
        request=request,
        action='complete',
        model_name='Batch',
        object_id=batch.id,
        object_name=str(batch),
        company=batch.company,
        changes={'status': {'old': 'in_progress', 'new': 'completed'}},
    )
    logger.info(f"Batch {batch.id} completed by {request.user.username}")
    data = BatchSerializer(batch).data
    webhooks.trigger_event(webhooks.BATCH_COMPLETED, batch.id, data, batch.company_id)
    return Response({
        'batch': data,
        'transaction': TtbTransactionSerializer(transaction).data if transaction else None,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders for a company or create one"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        orders = Order.objects.filter(company_id=company_id).select_related('spirit_type', 'owner')
        status_name = request.query_params.get('status_name')
        if status_name:
            orders = orders.filter(status_name__iexact=status_name)
        return Response(OrderSerializer(orders, many=True).data)
    else:  # POST
        serializer = OrderSerializer(data=request.data)
        if serializer.is_valid():
            order = serializer.save(company_id=company_id, owner=serializer.validated_data.get('owner') or request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='Order',
                object_id=order.id,
                object_name=order.name,
                company=order.company,
                changes={'quantity': order.quantity, 'status_name': order.status_name},
            )
            logger.info(f"Order '{order.name}' created by {request.user.username}")
            data = OrderSerializer(order).data
            webhooks.trigger_event(webhooks.ORDER_CREATED, order.id, data, company_id)
            return Response(data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve, update or delete an order"""
    order = get_object_or_404(Order, pk=pk)
    ensure_company_access(request.user, order.company_id)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)
    elif request.method == 'PATCH':
        old_status = order.status_name
        serializer = OrderSerializer(order, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            if old_status != order.status_name:
                create_audit_log(
                    request=request,
                    action='status_change',
                    model_name='Order',
                    object_id=order.id,
                    object_name=order.name,
                    company=order.company,
                    changes={'status_name': {'old': old_status, 'new': order.status_name}},
                )
                if (order.status_name or '').strip().lower() == 'completed':
                    webhooks.trigger_event(webhooks.ORDER_COMPLETED, order.id, serializer.data, order.company_id)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(
            request=request,
            action='delete',
            model_name='Order',
            object_id=order.id,
            object_name=order.name,
            company=order.company,
        )
        order.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _order_transfer(request, pk, direction):
    order = get_object_or_404(Order, pk=pk)
    ensure_company_access(request.user, order.company_id)

    if direction == 'in':
        transaction = ttb_transactions.log_transfer_in(order)
    else:
        transaction = ttb_transactions.log_transfer_out(order)

    if transaction is None:
        return Response({'error': f'Transfer {direction} was already recorded for this order'}, status=status.HTTP_409_CONFLICT)
    data = TtbTransactionSerializer(transaction).data
    webhooks.trigger_event(webhooks.TRANSFER_CREATED, transaction.id, data, order.company_id)
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_transfer_in(request, pk):
    """Record an incoming bonded transfer for an order"""
    return _order_transfer(request, pk, 'in')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_transfer_out(request, pk):
    """Record an outgoing bonded transfer for an order"""
    return _order_transfer(request, pk, 'out')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_tax_determination(request, pk):
    """Preview (GET) or record (POST) the excise tax determination for an order"""
    order = get_object_or_404(Order, pk=pk)
    ensure_company_access(request.user, order.company_id)

    calculation = excise.calculate_tax(order)
    if request.method == 'GET':
        return Response(calculation)
    else:  # POST
        determination = excise.record_tax_determination(order, calculation, user=request.user, request=request)
        return Response(TtbTaxDeterminationSerializer(determination).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def barrel_list_create(request):
    """List barrels for a company or create one"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        barrels = Barrel.objects.filter(company_id=company_id).select_related('rickhouse')
        for param in ('order', 'batch', 'rickhouse'):
            value = request.query_params.get(f'{param}_id')
            if value:
                barrels = barrels.filter(**{f'{param}_id': value})
        return Response(BarrelSerializer(barrels, many=True).data)
    else:  # POST
        serializer = BarrelSerializer(data=request.data, context={'company_id': company_id})
        if serializer.is_valid():
            try:
                barrel = serializer.save(company_id=company_id)
            except IntegrityError:
                return Response({'error': 'A barrel with this SKU already exists'}, status=status.HTTP_400_BAD_REQUEST)
            data = BarrelSerializer(barrel).data
            webhooks.trigger_event(webhooks.BARREL_CREATED, barrel.id, data, company_id)
            return Response(data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def barrel_detail(request, pk):
    """Retrieve or update a barrel"""
    barrel = get_object_or_404(Barrel, pk=pk)
    ensure_company_access(request.user, barrel.company_id)

    if request.method == 'GET':
        return Response(BarrelSerializer(barrel).data)
    else:  # PATCH
        old_rickhouse_id = barrel.rickhouse_id
        serializer = BarrelSerializer(barrel, data=request.data, partial=True, context={'company_id': barrel.company_id})
        if serializer.is_valid():
            serializer.save()
            webhooks.trigger_event(webhooks.BARREL_UPDATED, barrel.id, serializer.data, barrel.company_id)
            if barrel.rickhouse_id != old_rickhouse_id:
                webhooks.trigger_event(webhooks.BARREL_MOVED, barrel.id, {
                    'barrel': serializer.data,
                    'from_rickhouse_id': old_rickhouse_id,
                    'to_rickhouse_id': barrel.rickhouse_id,
                }, barrel.company_id)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def barrel_loss(request, pk):
    """Record a loss (leakage, evaporation, ...) against a barrel"""
    barrel = get_object_or_404(Barrel, pk=pk)
    ensure_company_access(request.user, barrel.company_id)

    proof_gallons = to_decimal(request.data.get('proof_gallons'), 'proof_gallons')
    if proof_gallons is None:
        raise ValidationFailed('proof_gallons is required.')
    reason = request.data.get('reason', '')

    transaction = ttb_transactions.log_loss(barrel, proof_gallons, reason)
    if transaction is None:
        return Response({'error': 'A loss was already recorded for this barrel'}, status=status.HTTP_409_CONFLICT)
    logger.info(f"Loss of {transaction.proof_gallons} PG recorded for barrel {barrel.sku}")
    return Response(TtbTransactionSerializer(transaction).data, status=status.HTTP_201_CREATED)
