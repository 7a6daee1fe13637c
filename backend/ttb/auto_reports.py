"""Scheduled generation of draft 5110.28 reports for companies that opt in"""
import calendar
import logging
from datetime import datetime, timedelta, timezone as dt_timezone

from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils import timezone

from backend.core.emails import AUTOMATED_FOOTER, send_bulk_email
from backend.core.exceptions import ValidationFailed
from backend.core.models import Company, User
from . import calculator
from .models import TtbMonthlyReport

logger = logging.getLogger('backend.ttb')

DEFAULT_DAY_OF_MONTH = 1
DEFAULT_HOUR_UTC = 6


def _clamp(value, low, high):
    return max(low, min(high, value))


def next_monthly_run(reference, day_of_month, hour_utc):
    day = _clamp(day_of_month, 1, 28)
    candidate = datetime(reference.year, reference.month, day, hour_utc, tzinfo=dt_timezone.utc)
    if candidate <= reference:
        year, month = (reference.year + 1, 1) if reference.month == 12 else (reference.year, reference.month + 1)
        candidate = datetime(year, month, min(day, calendar.monthrange(year, month)[1]), hour_utc,
                             tzinfo=dt_timezone.utc)
    return candidate


def next_weekly_run(reference, day_of_week, hour_utc):
    days_until = (day_of_week - reference.weekday()) % 7
    next_date = reference.date() + timedelta(days=days_until)
    candidate = datetime(next_date.year, next_date.month, next_date.day, hour_utc, tzinfo=dt_timezone.utc)
    if candidate <= reference:
        candidate += timedelta(days=7)
    return candidate


def company_next_run(company, reference):
    hour = _clamp(company.ttb_auto_report_hour_utc, 0, 23)
    if company.ttb_auto_report_cadence == 'weekly':
        return next_weekly_run(reference, _clamp(company.ttb_auto_report_day_of_week, 0, 6), hour)
    return next_monthly_run(reference, company.ttb_auto_report_day_of_month, hour)


def calculate_next_run(reference=None):
    """Earliest upcoming run across opted-in companies, or the default monthly slot"""
    reference = reference or timezone.now()
    companies = list(Company.objects.filter(auto_generate_ttb_reports=True))
    if not companies:
        return next_monthly_run(reference, DEFAULT_DAY_OF_MONTH, DEFAULT_HOUR_UTC)
    return min(company_next_run(company, reference) for company in companies)


def is_due(company, run_time):
    """True once the company's first scheduled slot of the run's month has passed"""
    month_start = run_time.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    first_slot = company_next_run(company, month_start - timedelta(seconds=1))
    return first_slot <= run_time


def reporting_period(run_time):
    if run_time.month == 1:
        return 12, run_time.year - 1
    return run_time.month - 1, run_time.year


def _compliance_contacts(company):
    return company.users.filter(
        Q(is_ttb_contact=True) | Q(user_type=User.USER_TYPE_COMPLIANCE_MANAGER)
    ).order_by('id')


def resolve_report_creator(company):
    contact = _compliance_contacts(company).first()
    if contact is not None:
        return contact
    primary = company.users.filter(is_primary_contact=True).order_by('id').first()
    if primary is not None:
        return primary
    return company.users.order_by('id').first()


def notify_compliance(company, report, run_time):
    recipients = sorted({u.email for u in _compliance_contacts(company) if u.email})
    if not recipients:
        return 0
    body = (
        f"A draft TTB Form 5110.28 for {report.report_month:02d}/{report.report_year} was generated "
        f"automatically at {run_time.isoformat()}. Please review the report for compliance accuracy "
        f"before submission. Access the draft here: /ttb-reports/{report.id}\n\n"
        f"{AUTOMATED_FOOTER}\n"
    )
    return send_bulk_email(recipients, 'TTB Monthly Report Generated - Review Required', body)


def generate_due_reports(run_time=None):
    """Generate last month's draft for every company whose schedule has come due; returns created reports"""
    run_time = run_time or timezone.now()
    if timezone.is_naive(run_time):
        run_time = run_time.replace(tzinfo=dt_timezone.utc)
    companies = list(Company.objects.filter(auto_generate_ttb_reports=True))
    if not companies:
        logger.info(f"No companies configured for TTB auto-generation at {run_time.isoformat()}")
        return []

    month, year = reporting_period(run_time)
    created = []
    for company in companies:
        if not is_due(company, run_time):
            logger.debug(f"Skipping company {company.id}; its schedule for {run_time:%Y-%m} has not come due")
            continue

        existing = TtbMonthlyReport.objects.filter(
            company=company, report_month=month, report_year=year, form_type=TtbMonthlyReport.FORM_5110_28
        ).first()
        if existing is not None:
            logger.info(f"TTB report for company {company.id} {month}/{year} already exists (id={existing.id}); skipping")
            continue

        try:
            data = calculator.calculate_monthly_report(company.id, month, year)
        except ValidationFailed as e:
            logger.error(f"TTB calculation failed for company {company.id} month {month} year {year}: {str(e)}")
            continue

        if not calculator.has_reportable_activity(data):
            logger.warning(f"TTB auto-generation skipped for company {company.id} {month}/{year}; no reportable activity")
            continue

        creator = resolve_report_creator(company)
        if creator is None:
            logger.warning(f"Unable to find a compliance contact for company {company.id}; skipping {month}/{year}")
            continue

        data['form_type'] = TtbMonthlyReport.FORM_5110_28
        with db_transaction.atomic():
            report = TtbMonthlyReport.objects.create(
                company=company,
                report_month=month,
                report_year=year,
                form_type=TtbMonthlyReport.FORM_5110_28,
                status=TtbMonthlyReport.STATUS_DRAFT,
                generated_at=run_time,
                created_by=creator,
                report_data=data,
                validation_errors=data.get('validation_errors', []),
                validation_warnings=data.get('validation_warnings', []),
            )

        try:
            notify_compliance(company, report, run_time)
        except Exception as e:
            logger.warning(f"Failed to announce auto-generated report {report.id}: {str(e)}")

        logger.info(f"Generated draft TTB report {report.id} for company {company.id} covering {month}/{year}")
        created.append(report)
    return created
