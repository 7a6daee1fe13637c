import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.permissions import ensure_company_access, resolve_company_id
from backend.core.utils import create_audit_log, paginate, sanitize_for_log
from . import services
from .filters import PurchaseOrderFilter
from .models import Supplier, PurchaseOrder, InventoryReceipt
from .serializers import (
    SupplierSerializer, SupplierProductSerializer, PurchaseOrderSerializer, PurchaseOrderDetailSerializer,
    PurchaseOrderInputSerializer, EmailPurchaseOrderSerializer, InventoryReceiptSerializer, ReceiptInputSerializer
)

logger = logging.getLogger('backend.purchasing')


def _supplier_for_request(request, pk):
    supplier = get_object_or_404(Supplier, pk=pk)
    ensure_company_access(request.user, supplier.company_id)
    return supplier


def _po_for_request(request, pk):
    po = get_object_or_404(PurchaseOrder.objects.select_related('supplier', 'company'), pk=pk)
    ensure_company_access(request.user, po.company_id)
    return po


def _po_detail(po):
    annotated = services.purchase_order_queryset(po.company_id).prefetch_related('items__supplier_product').get(pk=po.pk)
    return PurchaseOrderDetailSerializer(annotated).data


def _audit_po(request, po, action, changes=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='PurchaseOrder',
        object_id=po.id,
        object_name=po.po_number,
        object_reference=po.po_number,
        company=po.company,
        changes=changes,
    )


# Suppliers

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_list_create(request):
    """List a company's suppliers or create a new supplier"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        include_inactive = request.query_params.get('include_inactive', '').lower() == 'true'
        suppliers = services.list_suppliers(company_id, include_inactive, request.query_params.get('search'))
        return Response(SupplierSerializer(suppliers, many=True).data)

    else:  # POST
        serializer = SupplierSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        supplier = services.create_supplier(company_id, serializer.validated_data)
        create_audit_log(
            request=request,
            action='create',
            model_name='Supplier',
            object_id=supplier.id,
            object_name=supplier.supplier_name,
            company=supplier.company,
            changes={'supplier_type': supplier.supplier_type, 'email': supplier.email},
        )
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def supplier_detail(request, pk):
    """Retrieve or update a supplier"""
    supplier = _supplier_for_request(request, pk)

    if request.method == 'GET':
        return Response(SupplierSerializer(supplier).data)

    serializer = SupplierSerializer(supplier, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_name = supplier.supplier_name
    supplier = services.update_supplier(supplier, serializer.validated_data)
    create_audit_log(
        request=request,
        action='update',
        model_name='Supplier',
        object_id=supplier.id,
        object_name=supplier.supplier_name,
        company=supplier.company,
        changes={'fields': sorted(serializer.validated_data.keys()), 'old_name': old_name},
    )
    return Response(SupplierSerializer(supplier).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def supplier_deactivate(request, pk):
    supplier = services.set_supplier_active(_supplier_for_request(request, pk), False)
    create_audit_log(
        request=request,
        action='deactivate',
        model_name='Supplier',
        object_id=supplier.id,
        object_name=supplier.supplier_name,
        company=supplier.company,
    )
    return Response({'message': 'Supplier deactivated successfully'})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def supplier_activate(request, pk):
    supplier = services.set_supplier_active(_supplier_for_request(request, pk), True)
    create_audit_log(
        request=request,
        action='activate',
        model_name='Supplier',
        object_id=supplier.id,
        object_name=supplier.supplier_name,
        company=supplier.company,
    )
    return Response({'message': 'Supplier activated successfully'})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_products(request, pk):
    """List or add products offered by a supplier"""
    supplier = _supplier_for_request(request, pk)

    if request.method == 'GET':
        include_inactive = request.query_params.get('include_inactive', '').lower() == 'true'
        products = services.list_supplier_products(supplier, include_inactive)
        return Response(SupplierProductSerializer(products, many=True).data)

    else:  # POST
        serializer = SupplierProductSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        product = services.create_supplier_product(supplier, serializer.validated_data)
        create_audit_log(
            request=request,
            action='create',
            model_name='SupplierProduct',
            object_id=product.id,
            object_name=product.product_name,
            object_reference=product.sku,
            company=supplier.company,
            changes={'supplier_id': supplier.id, 'current_price': product.current_price},
        )
        return Response(SupplierProductSerializer(product).data, status=status.HTTP_201_CREATED)


# Purchase orders

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List purchase orders or create a draft order with its line items"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        filterset = PurchaseOrderFilter(request.query_params, queryset=services.purchase_order_queryset(company_id))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        response = Response(paginate(request, filterset.qs, PurchaseOrderSerializer))
        response['Cache-Control'] = 'private, max-age=10, must-revalidate'
        return response

    else:  # POST
        serializer = PurchaseOrderInputSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        po = services.create_purchase_order(company_id, serializer.validated_data, created_by=request.user)
        _audit_po(request, po, 'create', {
            'supplier_id': po.supplier_id,
            'total_amount': po.total_amount,
            'item_count': len(serializer.validated_data.get('items') or []),
        })
        return Response(_po_detail(po), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_order_next_number(request):
    company_id = resolve_company_id(request)
    return Response({'po_number': services.next_po_number(company_id)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    """Retrieve, update (draft only) or delete (draft only) a purchase order"""
    po = _po_for_request(request, pk)

    if request.method == 'GET':
        return Response(_po_detail(po))

    elif request.method == 'PUT':
        serializer = PurchaseOrderInputSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        po = services.update_purchase_order(po, serializer.validated_data)
        _audit_po(request, po, 'update', {
            'fields': sorted(serializer.validated_data.keys()),
            'total_amount': po.total_amount,
        })
        return Response(_po_detail(po))

    else:  # DELETE
        po_id = po.id
        po_number = po.po_number
        company = po.company
        services.delete_purchase_order(po)
        create_audit_log(
            request=request,
            action='delete',
            model_name='PurchaseOrder',
            object_id=po_id,
            object_name=po_number,
            object_reference=po_number,
            company=company,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_send(request, pk):
    po = services.send_purchase_order(_po_for_request(request, pk))
    _audit_po(request, po, 'send', {'status': po.status})
    return Response(_po_detail(po))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_email(request, pk):
    """Email the order to the supplier (or the given address)"""
    po = _po_for_request(request, pk)
    serializer = EmailPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    po = services.email_purchase_order(po, data.get('to_email'), data.get('subject'), data.get('body'))
    recipient = data.get('to_email') or po.supplier.email
    _audit_po(request, po, 'send', {'emailed_to': sanitize_for_log(recipient), 'status': po.status})
    return Response(_po_detail(po))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_cancel(request, pk):
    po = _po_for_request(request, pk)
    old_status = po.status
    po = services.cancel_purchase_order(po)
    _audit_po(request, po, 'cancel', {'old_status': old_status})
    return Response(_po_detail(po))


# Receipts

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_receipts(request, pk):
    """List receipts for an order or record a delivery"""
    po = _po_for_request(request, pk)

    if request.method == 'GET':
        return Response(InventoryReceiptSerializer(services.list_receipts(po), many=True).data)

    else:  # POST
        serializer = ReceiptInputSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        receipt = services.create_receipt(po, serializer.validated_data, received_by=request.user)
        po.refresh_from_db()
        create_audit_log(
            request=request,
            action='receive',
            model_name='InventoryReceipt',
            object_id=receipt.id,
            object_name=po.po_number,
            object_reference=po.po_number,
            company=po.company,
            changes={
                'purchase_order_id': po.id,
                'status': po.status,
                'items': [
                    {'purchase_order_item_id': i['purchase_order_item_id'], 'received_quantity': i['received_quantity']}
                    for i in serializer.validated_data['items']
                ],
            },
        )
        return Response(InventoryReceiptSerializer(receipt).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def receipt_detail(request, pk):
    receipt = get_object_or_404(InventoryReceipt.objects.select_related('purchase_order', 'received_by'), pk=pk)
    ensure_company_access(request.user, receipt.purchase_order.company_id)
    return Response(InventoryReceiptSerializer(receipt).data)
