"""
Supplier and purchase order rules

Rule violations raise ValidationFailed, which the shared exception handler turns into a 400.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from backend.core.emails import AUTOMATED_FOOTER, send_email
from backend.core.exceptions import ValidationFailed
from backend.core.utils import round2, sanitize_for_log
from .models import (
    InventoryReceipt, InventoryReceiptItem, PurchaseOrder, PurchaseOrderItem, Supplier, SupplierProduct,
)

logger = logging.getLogger('backend.purchasing')

SUPPLIER_FIELDS = (
    'supplier_name', 'supplier_type', 'contact_person', 'email', 'phone', 'address',
    'website', 'payment_terms', 'notes',
)
PO_FIELDS = ('order_date', 'expected_delivery_date', 'currency', 'payment_status', 'notes')
ZERO = Decimal('0')


# Suppliers

def list_suppliers(company_id, include_inactive=False, search=None):
    suppliers = Supplier.objects.filter(company_id=company_id)
    if not include_inactive:
        suppliers = suppliers.filter(is_active=True)
    if search:
        suppliers = suppliers.filter(
            Q(supplier_name__icontains=search) | Q(contact_person__icontains=search) | Q(email__icontains=search)
        )
    return suppliers.order_by('supplier_name')


def _check_supplier_name(company_id, name, exclude_id=None):
    name = (name or '').strip()
    if not name:
        raise ValidationFailed('Supplier name is required')
    duplicates = Supplier.objects.filter(company_id=company_id, supplier_name__iexact=name)
    if exclude_id is not None:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise ValidationFailed('A supplier with this name already exists')
    return name


def create_supplier(company_id, data):
    name = _check_supplier_name(company_id, data.get('supplier_name'))
    values = {field: data[field] for field in SUPPLIER_FIELDS if field in data}
    values['supplier_name'] = name
    supplier = Supplier.objects.create(company_id=company_id, **values)
    logger.info(f"Created supplier {supplier.id} '{sanitize_for_log(name)}' for company {company_id}")
    return supplier


def update_supplier(supplier, data):
    if 'supplier_name' in data:
        data = dict(data, supplier_name=_check_supplier_name(supplier.company_id, data['supplier_name'], supplier.id))
    for field in SUPPLIER_FIELDS:
        if field in data:
            setattr(supplier, field, data[field])
    supplier.save()
    logger.info(f"Updated supplier {supplier.id} '{sanitize_for_log(supplier.supplier_name)}'")
    return supplier


def set_supplier_active(supplier, is_active):
    supplier.is_active = is_active
    supplier.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"{'Activated' if is_active else 'Deactivated'} supplier {supplier.id}")
    return supplier


def list_supplier_products(supplier, include_inactive=False):
    products = supplier.products.all()
    if not include_inactive:
        products = products.filter(is_active=True)
    return products.order_by('product_name')


def create_supplier_product(supplier, data):
    name = (data.get('product_name') or '').strip()
    if not name:
        raise ValidationFailed('Product name is required')
    sku = data.get('sku')
    if sku and supplier.products.filter(sku=sku).exists():
        raise ValidationFailed('A product with this SKU already exists for this supplier')
    product = SupplierProduct.objects.create(supplier=supplier, **dict(data, product_name=name))
    logger.info(f"Created product {product.id} '{sanitize_for_log(name)}' for supplier {supplier.id}")
    return product


# Purchase orders

def purchase_order_queryset(company_id):
    """Purchase orders with line counts and ordered/received totals"""
    return PurchaseOrder.objects.filter(company_id=company_id).select_related('supplier', 'created_by').annotate(
        item_count=Count('items', distinct=True),
        total_quantity_ordered=Coalesce(Sum('items__quantity'), ZERO),
        total_quantity_received=Coalesce(Sum('items__received_quantity'), ZERO),
    ).order_by('-order_date', '-created_at')


def next_po_number(company_id, year=None):
    """PO-{year}-{n:03d}, one past the highest number issued to the company this year"""
    year = year or timezone.now().year
    prefix = f"PO-{year}-"
    next_number = 1
    for number in PurchaseOrder.objects.filter(company_id=company_id, po_number__startswith=prefix).values_list(
        'po_number', flat=True
    ):
        suffix = number[len(prefix):]
        if suffix.isdigit():
            next_number = max(next_number, int(suffix) + 1)
    return f"{prefix}{next_number:03d}"


def _resolve_supplier(company_id, supplier_id):
    supplier = Supplier.objects.filter(pk=supplier_id, company_id=company_id).first()
    if supplier is None:
        raise ValidationFailed('Invalid supplier')
    return supplier


def _build_items(supplier, items):
    if not items:
        raise ValidationFailed('At least one line item is required')
    products = {p.id: p for p in supplier.products.filter(pk__in=[i['supplier_product_id'] for i in items])}
    lines = []
    for item in items:
        product = products.get(item['supplier_product_id'])
        if product is None:
            raise ValidationFailed(f"Invalid product ID: {item['supplier_product_id']}")
        quantity = Decimal(item['quantity'])
        unit_price = Decimal(item['unit_price'])
        lines.append(PurchaseOrderItem(
            supplier_product=product,
            quantity=quantity,
            unit_price=unit_price,
            total_price=round2(quantity * unit_price),
            notes=item.get('notes'),
        ))
    return lines


def _save_items(po, lines):
    for line in lines:
        line.purchase_order = po
    PurchaseOrderItem.objects.bulk_create(lines)
    po.total_amount = round2(sum((line.total_price for line in lines), ZERO))
    po.save(update_fields=['total_amount', 'updated_at'])


@transaction.atomic
def create_purchase_order(company_id, data, created_by=None):
    supplier = _resolve_supplier(company_id, data.get('supplier_id'))
    lines = _build_items(supplier, data.get('items'))

    po = PurchaseOrder.objects.create(
        company_id=company_id,
        supplier=supplier,
        po_number=data.get('po_number') or next_po_number(company_id),
        order_date=data.get('order_date') or timezone.now().date(),
        created_by=created_by,
        **{field: data[field] for field in PO_FIELDS if field in data and field != 'order_date'},
    )
    _save_items(po, lines)
    logger.info(f"Created purchase order {po.id} '{po.po_number}' with {len(lines)} items")
    return po


@transaction.atomic
def update_purchase_order(po, data):
    if po.status != 'draft':
        raise ValidationFailed('Only draft purchase orders can be edited')

    if 'supplier_id' in data and data['supplier_id'] != po.supplier_id:
        if 'items' not in data:
            raise ValidationFailed('Line items must be replaced when the supplier changes')
        po.supplier = _resolve_supplier(po.company_id, data['supplier_id'])
    for field in PO_FIELDS:
        if field in data:
            setattr(po, field, data[field])
    po.save()

    if 'items' in data:
        lines = _build_items(po.supplier, data['items'])
        po.items.all().delete()
        _save_items(po, lines)

    logger.info(f"Updated purchase order {po.id} '{po.po_number}'")
    return po


def send_purchase_order(po):
    if po.status != 'draft':
        raise ValidationFailed('Only draft purchase orders can be sent')
    po.status = 'sent'
    po.save(update_fields=['status', 'updated_at'])
    logger.info(f"Marked purchase order {po.id} '{po.po_number}' as sent")
    return po


def default_email_body(po):
    lines = [
        f"Dear {po.supplier.contact_person or po.supplier.supplier_name},",
        '',
        f"Please find purchase order {po.po_number} dated {po.order_date.isoformat()}.",
        '',
    ]
    for item in po.items.select_related('supplier_product'):
        lines.append(f"- {item.supplier_product.product_name}: {item.quantity} x {item.unit_price} = {item.total_price}")
    lines.extend(['', f"Total: {po.total_amount} {po.currency}", ''])
    if po.expected_delivery_date:
        lines.append(f"Requested delivery date: {po.expected_delivery_date.isoformat()}")
    lines.extend(['', AUTOMATED_FOOTER])
    return '\n'.join(lines)


def email_purchase_order(po, to_email=None, subject=None, body=None):
    """Mail the order to the supplier; a draft order becomes sent"""
    recipient = to_email or po.supplier.email
    if not recipient:
        raise ValidationFailed('Supplier does not have an email address')
    if po.status == 'cancelled':
        raise ValidationFailed('Cannot email a cancelled purchase order')

    subject = subject or f"Purchase Order {po.po_number}"
    if not send_email(recipient, subject, body or default_email_body(po)):
        raise ValidationFailed(f"Failed to send purchase order email to {recipient}")

    if po.status == 'draft':
        po.status = 'sent'
        po.save(update_fields=['status', 'updated_at'])
    logger.info(f"Emailed purchase order {po.id} '{po.po_number}' to {sanitize_for_log(recipient)}")
    return po


def cancel_purchase_order(po):
    if po.status == 'received':
        raise ValidationFailed('Cannot cancel a fully received purchase order')
    po.status = 'cancelled'
    po.save(update_fields=['status', 'updated_at'])
    logger.info(f"Cancelled purchase order {po.id} '{po.po_number}'")
    return po


def delete_purchase_order(po):
    if po.status != 'draft':
        raise ValidationFailed('Only draft purchase orders can be deleted')
    logger.info(f"Deleted purchase order {po.id} '{po.po_number}'")
    po.delete()


# Receipts

def list_receipts(po):
    return po.receipts.select_related('received_by').prefetch_related(
        'items__purchase_order_item__supplier_product'
    ).order_by('-receipt_date', '-created_at')


@transaction.atomic
def create_receipt(po, data, received_by=None):
    """Record received quantities; the order becomes received or partial_received"""
    po = PurchaseOrder.objects.select_for_update().get(pk=po.pk)
    if po.status in ('draft', 'cancelled'):
        raise ValidationFailed('Cannot receive items for draft or cancelled purchase orders')

    order_items = {item.id: item for item in po.items.all()}
    receipt = InventoryReceipt.objects.create(
        purchase_order=po,
        receipt_date=data.get('receipt_date') or timezone.now().date(),
        received_by=received_by,
        notes=data.get('notes'),
    )

    for line in data.get('items') or []:
        order_item = order_items.get(line['purchase_order_item_id'])
        if order_item is None:
            raise ValidationFailed(f"Invalid purchase order item ID: {line['purchase_order_item_id']}")
        order_item.received_quantity += Decimal(line['received_quantity'])
        order_item.save(update_fields=['received_quantity', 'updated_at'])
        InventoryReceiptItem.objects.create(
            receipt=receipt,
            purchase_order_item=order_item,
            received_quantity=line['received_quantity'],
            condition=line.get('condition') or 'good',
            notes=line.get('notes'),
        )

    total_ordered = sum((item.quantity for item in order_items.values()), ZERO)
    total_received = sum((item.received_quantity for item in order_items.values()), ZERO)
    if total_received >= total_ordered:
        po.status = 'received'
    elif total_received > 0:
        po.status = 'partial_received'
    po.save(update_fields=['status', 'updated_at'])

    logger.info(f"Created inventory receipt {receipt.id} for purchase order {po.id}")
    return receipt
