"""Shared helpers: audit logging, request parsing, pagination, CSV and decimal rounding"""
import csv
import io
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from django.core.paginator import Paginator
from django.http import HttpResponse
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import ValidationFailed
from .models import AuditLog

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def get_user_agent(request, max_length=500):
    if not request or not hasattr(request, 'META'):
        return None
    user_agent = request.META.get('HTTP_USER_AGENT')
    if not user_agent:
        return None
    return user_agent[:max_length]


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None,
                     company=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, send, receive, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., supplier name, PO number)
        object_reference: Reference identifier (e.g., PO number)
        company: Tenant the change belongs to
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            company=company,
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def sanitize_for_log(value):
    """Strip line breaks so user input cannot forge log lines"""
    if value is None:
        return ''
    return str(value).replace('\r', '').replace('\n', '')


def round2(value):
    """Round half away from zero to two decimal places"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value, field_name='value'):
    if value is None or value == '':
        return None
    try:
        return Decimal(str(value))
    except Exception:
        raise ValidationFailed(f"Invalid {field_name}: {value}")


def parse_date_param(value, field_name='date'):
    """Parse YYYY-MM-DD (or an ISO datetime) into a date; None passes through"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        parsed_dt = parse_datetime(str(value))
        if parsed_dt is None:
            raise ValidationFailed(f"Invalid {field_name}: {value}")
        parsed = parsed_dt.date()
    return parsed


def parse_int_param(value, field_name, default=None):
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid {field_name}: {value}")


def paginate(request, queryset, serializer_class, default_limit=15, context=None):
    """Paginate a queryset into the standard list envelope"""
    page = parse_int_param(request.query_params.get('page'), 'page', 1)
    limit = parse_int_param(request.query_params.get('limit'), 'limit', default_limit)

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }


def build_csv(header, rows):
    """Render rows as CSV text; csv quotes fields containing commas, quotes or line breaks"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(header)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])
    return buffer.getvalue()


def csv_response(content, filename):
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
