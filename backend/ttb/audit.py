"""Change history for TTB compliance records"""
import logging

from django.forms.models import model_to_dict

from backend.core.utils import build_csv, get_client_ip, get_user_agent
from .models import TtbAuditLog, TtbGaugeRecord, TtbMonthlyReport, TtbTaxDetermination, TtbTransaction

logger = logging.getLogger('backend.ttb')

AUDIT_CSV_HEADER = [
    'Timestamp (UTC)', 'User', 'Entity Type', 'Entity ID', 'Action',
    'Change Description', 'IP Address', 'User Agent',
]

AUDITED_FIELDS = {
    TtbTransaction: [
        'id', 'company', 'transaction_date', 'transaction_type', 'product_type', 'spirits_type',
        'proof_gallons', 'wine_gallons', 'source_entity_type', 'source_entity_id', 'notes',
    ],
    TtbMonthlyReport: [
        'id', 'company', 'report_month', 'report_year', 'status', 'form_type', 'generated_at',
        'submitted_at', 'ttb_confirmation_number', 'pdf_path', 'validation_errors',
        'validation_warnings', 'created_by', 'submitted_for_review_by', 'reviewed_by',
        'approved_by', 'review_notes',
    ],
    TtbGaugeRecord: [
        'id', 'barrel', 'gauge_date', 'gauge_type', 'proof', 'temperature', 'wine_gallons',
        'proof_gallons', 'gauged_by', 'notes',
    ],
    TtbTaxDetermination: [
        'id', 'company', 'order', 'proof_gallons', 'tax_rate', 'tax_amount', 'determination_date',
        'paid_date', 'payment_reference', 'notes',
    ],
}

ACTION_VERBS = {'create': 'created', 'update': 'updated', 'delete': 'deleted'}


def snapshot(instance):
    """Plain dict of an entity's audited fields, taken before a change"""
    if instance is None:
        return None
    fields = AUDITED_FIELDS.get(type(instance))
    values = model_to_dict(instance, fields=fields)
    # model_to_dict skips the non-editable primary key
    values['id'] = instance.pk
    return values


def describe_change(action, entity, user_name):
    verb = ACTION_VERBS.get(action, 'modified')
    entity_type = type(entity).__name__

    if isinstance(entity, TtbTransaction):
        return (f"{user_name} {verb} {entity.get_transaction_type_display()} transaction for "
                f"{entity.proof_gallons:.2f} proof gallons on {entity.transaction_date:%m/%d/%Y}")
    if isinstance(entity, TtbMonthlyReport):
        return f"{user_name} {verb} TTB Monthly Report for {entity.report_month}/{entity.report_year}"
    if isinstance(entity, TtbGaugeRecord):
        return (f"{user_name} {verb} {entity.get_gauge_type_display()} gauge record for Barrel "
                f"#{entity.barrel_id} ({entity.proof_gallons:.2f} proof gallons) on {entity.gauge_date:%m/%d/%Y}")
    if isinstance(entity, TtbTaxDetermination):
        return (f"{user_name} {verb} Tax Determination for Order #{entity.order_id} "
                f"({entity.proof_gallons:.2f} proof gallons, ${entity.tax_amount:.2f})")
    return f"{user_name} {verb} {entity_type}"


def log_change(action, entity, company_id, user=None, old_values=None, request=None):
    """
    Record a TTB audit entry.

    For deletes pass the entity as it was before deletion; its primary key is read from
    old_values when the instance no longer has one.
    """
    try:
        entity_id = entity.pk if entity.pk is not None else (old_values or {}).get('id')
        if not entity_id:
            logger.warning(f"Could not determine entity ID for TTB audit entry ({type(entity).__name__}, {action})")
            return None

        user_name = user.name if user is not None else 'System'
        audit_log = TtbAuditLog.objects.create(
            company_id=company_id,
            entity_type=type(entity).__name__,
            entity_id=entity_id,
            action=action,
            changed_by=user if user is not None and user.is_authenticated else None,
            old_values=old_values,
            new_values=None if action == 'delete' else snapshot(entity),
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request, max_length=500),
            change_description=describe_change(action, entity, user_name),
        )
        logger.info(
            f"TTB Audit: {action} {audit_log.entity_type} ID {entity_id} by User "
            f"{user.id if user is not None else '-'} for Company {company_id}"
        )
        return audit_log
    except Exception as e:
        logger.error(f"Failed to write TTB audit entry: {str(e)}")
        return None


def get_audit_logs(company_id, start=None, end=None):
    logs = TtbAuditLog.objects.filter(company_id=company_id).select_related('changed_by')
    if start:
        logs = logs.filter(change_timestamp__date__gte=start)
    if end:
        logs = logs.filter(change_timestamp__date__lte=end)
    return logs.order_by('-change_timestamp')


def export_audit_logs_csv(company_id, start=None, end=None):
    rows = []
    for log in get_audit_logs(company_id, start, end):
        user_name = log.changed_by.name if log.changed_by else f"User {log.changed_by_id}"
        rows.append([
            log.change_timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            user_name,
            log.entity_type,
            log.entity_id,
            log.get_action_display(),
            log.change_description or '',
            log.ip_address or '',
            log.user_agent or '',
        ])
    return build_csv(AUDIT_CSV_HEADER, rows)


def is_month_locked(company_id, month, year):
    """A month is locked once a report for it is approved or submitted"""
    return TtbMonthlyReport.objects.filter(
        company_id=company_id,
        report_month=month,
        report_year=year,
        status__in=TtbMonthlyReport.LOCKED_STATUSES,
    ).exists()
