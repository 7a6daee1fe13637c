"""
TTB transaction records: automatic logging from production events and the manual
transaction service behind the transactions API
"""
import logging
from decimal import Decimal

from django.db import transaction as db_transaction
from django.utils import timezone

from backend.core.exceptions import AccessDenied, ValidationFailed
from backend.core.utils import round2
from backend.inventory.models import Order
from . import audit
from .models import TtbTransaction
from .volumes import (
    ZERO, barrels_to_wine_gallons, calculate_proof_gallons, resolve_product_metadata,
    wine_gallons_for_proof_gallons,
)

logger = logging.getLogger('backend.ttb')

LOCKED_MONTH_MESSAGE = 'Cannot modify data for submitted reports. Contact administrator.'
LOCKED_TARGET_MONTH_MESSAGE = 'Cannot move transaction to a month with submitted reports. Contact administrator.'
GALLON_LABELS = {'proof_gallons': 'Proof gallons', 'wine_gallons': 'Wine gallons'}


def _exists(transaction_type, source_entity_type, source_entity_id):
    return TtbTransaction.objects.filter(
        transaction_type=transaction_type,
        source_entity_type=source_entity_type,
        source_entity_id=source_entity_id,
    ).exists()


def _persist(company_id, transaction_date, transaction_type, metadata, proof_gallons, wine_gallons,
             source_entity_type, source_entity_id, notes):
    if not company_id:
        raise ValidationFailed('A valid company identifier is required to persist a TTB transaction.')
    return TtbTransaction.objects.create(
        company_id=company_id,
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        product_type=metadata.product_type,
        spirits_type=metadata.spirits_type,
        proof_gallons=round2(max(ZERO, Decimal(proof_gallons))),
        wine_gallons=round2(max(ZERO, Decimal(wine_gallons))),
        source_entity_type=source_entity_type,
        source_entity_id=source_entity_id,
        notes=notes,
    )


def _order_volume(order):
    if order.quantity <= 0:
        raise ValidationFailed(f"Order {order.id} does not have a positive quantity and cannot be translated into gallons.")
    return barrels_to_wine_gallons(order.quantity)


def log_production(batch, production_date):
    """Production transaction for a completed batch; returns None when already logged"""
    logger.info(f"Creating production transaction for batch {batch.id}")
    if _exists(TtbTransaction.TYPE_PRODUCTION, 'Batch', batch.id):
        logger.info(f"Production transaction already exists for batch {batch.id}")
        return None

    orders = list(Order.objects.filter(batch=batch, company_id=batch.company_id).select_related('spirit_type'))
    if not orders:
        raise ValidationFailed(f"Batch {batch.id} does not have any orders to derive production metrics from.")

    reference = next((o for o in orders if o.spirit_type_id), orders[0])
    metadata = resolve_product_metadata(batch=batch, order=reference)

    total_barrels = sum(o.quantity for o in orders)
    if total_barrels <= 0:
        raise ValidationFailed(f"Orders linked to batch {batch.id} do not contain a positive quantity.")

    wine_gallons = barrels_to_wine_gallons(total_barrels)
    return _persist(
        batch.company_id,
        production_date,
        TtbTransaction.TYPE_PRODUCTION,
        metadata,
        calculate_proof_gallons(wine_gallons, metadata.abv),
        wine_gallons,
        'Batch',
        batch.id,
        f"Batch {batch.id} completed on {production_date:%Y-%m-%d}",
    )


def _log_transfer(order, transaction_type):
    logger.info(f"Logging {transaction_type} for transfer {order.id}")
    # Transfers are represented by their order
    if _exists(transaction_type, 'Transfer', order.id):
        logger.info(f"{transaction_type} transaction already exists for transfer {order.id}")
        return None

    metadata = resolve_product_metadata(batch=order.batch, order=order)
    wine_gallons = _order_volume(order)
    direction = 'received' if transaction_type == TtbTransaction.TYPE_TRANSFER_IN else 'sent'
    return _persist(
        order.company_id,
        timezone.now().date(),
        transaction_type,
        metadata,
        calculate_proof_gallons(wine_gallons, metadata.abv),
        wine_gallons,
        'Transfer',
        order.id,
        f"Transfer {direction} using order {order.id}",
    )


def log_transfer_in(order):
    return _log_transfer(order, TtbTransaction.TYPE_TRANSFER_IN)


def log_transfer_out(order):
    return _log_transfer(order, TtbTransaction.TYPE_TRANSFER_OUT)


def log_loss(barrel, proof_gallons, reason=''):
    """Loss transaction for a barrel; wine gallons are derived from the proof gallons lost"""
    logger.info(f"Recording loss for barrel {barrel.id}")
    if _exists(TtbTransaction.TYPE_LOSS, 'Barrel', barrel.id):
        logger.info(f"Loss transaction already exists for barrel {barrel.id}")
        return None

    if barrel.order_id is None:
        raise ValidationFailed(f"Barrel {barrel.id} is not associated with an order - cannot determine spirit type.")

    metadata = resolve_product_metadata(batch=barrel.batch, order=barrel.order, barrel=barrel)
    normalized = round2(max(ZERO, Decimal(str(proof_gallons))))
    wine_gallons = wine_gallons_for_proof_gallons(normalized, metadata.abv)

    reason = (reason or '').strip()
    notes = f"Loss recorded for barrel {barrel.sku}: {reason}" if reason else f"Loss recorded for barrel {barrel.sku}"
    return _persist(
        barrel.company_id,
        timezone.now().date(),
        TtbTransaction.TYPE_LOSS,
        metadata,
        normalized,
        wine_gallons,
        'Barrel',
        barrel.id,
        notes,
    )


def log_tax_determination(order):
    """Tax determination transaction sized from the order's barrel count"""
    logger.info(f"Recording tax determination for order {order.id}")
    if _exists(TtbTransaction.TYPE_TAX_DETERMINATION, 'Order', order.id):
        logger.info(f"Tax determination transaction already exists for order {order.id}")
        return None

    metadata = resolve_product_metadata(batch=order.batch, order=order)
    wine_gallons = _order_volume(order)
    return _persist(
        order.company_id,
        timezone.now().date(),
        TtbTransaction.TYPE_TAX_DETERMINATION,
        metadata,
        calculate_proof_gallons(wine_gallons, metadata.abv),
        wine_gallons,
        'Order',
        order.id,
        f"Tax determination for order {order.name}",
    )


# Manual transactions

def _ensure_month_unlocked(company_id, transaction_date, message=LOCKED_MONTH_MESSAGE):
    if audit.is_month_locked(company_id, transaction_date.month, transaction_date.year):
        raise AccessDenied(message)


def _validate_gallons(data):
    for field in ('proof_gallons', 'wine_gallons'):
        value = data.get(field)
        if value is not None and value < 0:
            raise ValidationFailed(f"{GALLON_LABELS[field]} cannot be negative.")


def list_transactions(company_id, month=None, year=None):
    transactions = TtbTransaction.objects.filter(company_id=company_id)
    if year is not None:
        if year < 2020:
            raise ValidationFailed('Year must be 2020 or later.')
        transactions = transactions.filter(transaction_date__year=year)
    if month is not None:
        if not 1 <= month <= 12:
            raise ValidationFailed('Month must be between 1 and 12.')
        transactions = transactions.filter(transaction_date__month=month)
    return transactions.order_by('-transaction_date', '-id')


@db_transaction.atomic
def create_manual_transaction(company_id, data, user, request=None):
    _validate_gallons(data)
    _ensure_month_unlocked(company_id, data['transaction_date'])

    entity = TtbTransaction.objects.create(
        company_id=company_id,
        source_entity_type=TtbTransaction.SOURCE_MANUAL,
        **{k: v for k, v in data.items() if k not in ('company', 'source_entity_type', 'source_entity_id')},
    )
    audit.log_change('create', entity, company_id, user=user, request=request)
    logger.info(f"Manual TTB transaction {entity.id} created by {user.username}")
    return entity


def _ensure_manual(entity, verb):
    if entity.source_entity_type != TtbTransaction.SOURCE_MANUAL:
        raise ValidationFailed(f'Only manual transactions can be {verb}.')


@db_transaction.atomic
def update_manual_transaction(entity, data, user, request=None):
    _ensure_manual(entity, 'edited')
    _validate_gallons(data)
    _ensure_month_unlocked(entity.company_id, entity.transaction_date)
    new_date = data.get('transaction_date')
    if new_date is not None:
        _ensure_month_unlocked(entity.company_id, new_date, LOCKED_TARGET_MONTH_MESSAGE)

    old_values = audit.snapshot(entity)
    for field, value in data.items():
        if field in ('company', 'source_entity_type', 'source_entity_id'):
            continue
        setattr(entity, field, value)
    entity.save()
    audit.log_change('update', entity, entity.company_id, user=user, old_values=old_values, request=request)
    return entity


@db_transaction.atomic
def delete_manual_transaction(entity, user, request=None):
    _ensure_manual(entity, 'deleted')
    _ensure_month_unlocked(entity.company_id, entity.transaction_date)

    old_values = audit.snapshot(entity)
    company_id = entity.company_id
    entity.delete()
    # Keep the primary key for the audit description
    entity.pk = old_values['id']
    audit.log_change('delete', entity, company_id, user=user, old_values=old_values, request=request)
    logger.info(f"Manual TTB transaction {old_values['id']} deleted by {user.username}")
