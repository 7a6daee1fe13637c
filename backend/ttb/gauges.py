import logging

from django.utils import timezone

from backend.core.exceptions import NotFound, ValidationFailed
from backend.inventory.models import Barrel
from . import audit
from .models import TtbGaugeRecord
from .volumes import calculate_gauge_proof_gallons

logger = logging.getLogger('backend.ttb')


def list_for_barrel(barrel_id):
    return TtbGaugeRecord.objects.filter(barrel_id=barrel_id).select_related('gauged_by').order_by('-gauge_date')


def list_for_company(company_id, start=None, end=None):
    records = TtbGaugeRecord.objects.filter(barrel__company_id=company_id).select_related('barrel', 'gauged_by')
    if start:
        records = records.filter(gauge_date__date__gte=start)
    if end:
        records = records.filter(gauge_date__date__lte=end)
    return records.order_by('-gauge_date')


def create_gauge_record(barrel_id, gauge_type, proof, temperature, wine_gallons, user=None, notes=None,
                        gauge_date=None, request=None):
    barrel = Barrel.objects.filter(pk=barrel_id).first()
    if barrel is None:
        raise ValidationFailed(f"Barrel with ID {barrel_id} not found.")

    record = TtbGaugeRecord.objects.create(
        barrel=barrel,
        gauge_date=gauge_date or timezone.now(),
        gauge_type=gauge_type,
        proof=proof,
        temperature=temperature,
        wine_gallons=wine_gallons,
        proof_gallons=calculate_gauge_proof_gallons(wine_gallons, proof, temperature),
        gauged_by=user if user is not None and user.is_authenticated else None,
        notes=notes,
    )
    audit.log_change('create', record, barrel.company_id, user=user, request=request)
    logger.info(f"Gauge record {record.id} ({gauge_type}) created for barrel {barrel.sku}")
    return record


def update_gauge_record(record_id, proof, temperature, wine_gallons, notes=None, user=None, request=None):
    record = TtbGaugeRecord.objects.select_related('barrel').filter(pk=record_id).first()
    if record is None:
        raise NotFound(f"Gauge record with ID {record_id} not found.")

    old_values = audit.snapshot(record)
    record.proof = proof
    record.temperature = temperature
    record.wine_gallons = wine_gallons
    record.proof_gallons = calculate_gauge_proof_gallons(wine_gallons, proof, temperature)
    record.notes = notes
    record.save()
    audit.log_change('update', record, record.barrel.company_id, user=user, old_values=old_values, request=request)
    return record


def delete_gauge_record(record_id, user=None, request=None):
    record = TtbGaugeRecord.objects.select_related('barrel').filter(pk=record_id).first()
    if record is None:
        raise NotFound(f"Gauge record with ID {record_id} not found.")

    old_values = audit.snapshot(record)
    company_id = record.barrel.company_id
    record.delete()
    record.pk = old_values['id']
    audit.log_change('delete', record, company_id, user=user, old_values=old_values, request=request)
