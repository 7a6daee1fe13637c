"""
TTB report generation and review workflow

draft -> pending_review -> approved -> submitted -> archived; rejection returns a report to draft.
"""
import logging

from django.db import transaction as db_transaction
from django.utils import timezone

from backend.core.emails import AUTOMATED_FOOTER, send_email
from backend.core.exceptions import AccessDenied, ConflictError, ValidationFailed
from backend.core.models import User
from backend.core.permissions import REVIEWER_TYPES, is_reviewer
from backend.notifications import services as push
from backend.webhooks import services as webhooks
from . import audit, calculator
from .models import TtbMonthlyReport

logger = logging.getLogger('backend.ttb')


def _status_label(report):
    return report.get_status_display().replace(' ', '')


def _period(report):
    return f"{report.report_month}/{report.report_year}"


def _report_details(report):
    company_name = report.company.company_name if report.company_id else 'Unknown'
    return (
        f"Report Details:\n"
        f"- Company: {company_name}\n"
        f"- Period: {_period(report)}\n"
        f"- Form Type: {report.get_form_type_display()}\n"
    )


def calculate(company_id, month, year, form_type=TtbMonthlyReport.FORM_5110_28):
    if form_type == TtbMonthlyReport.FORM_5110_40:
        return calculator.calculate_storage_report(company_id, month, year)
    data = calculator.calculate_monthly_report(company_id, month, year)
    data['form_type'] = TtbMonthlyReport.FORM_5110_28
    return data


@db_transaction.atomic
def generate_report(company_id, month, year, user, form_type=TtbMonthlyReport.FORM_5110_28, request=None):
    """Calculate and store a draft report, replacing any unsubmitted report for the period"""
    if year < 2020:
        raise ValidationFailed('Year must be 2020 or later.')

    existing = TtbMonthlyReport.objects.filter(
        company_id=company_id, report_month=month, report_year=year, form_type=form_type
    ).first()
    if existing is not None:
        if existing.status in TtbMonthlyReport.LOCKED_STATUSES:
            raise ConflictError('Submitted or approved reports cannot be regenerated.')
        old_values = audit.snapshot(existing)
        existing.delete()
        existing.pk = old_values['id']
        audit.log_change('delete', existing, company_id, user=user, old_values=old_values, request=request)

    data = calculate(company_id, month, year, form_type)
    if not calculator.has_reportable_activity(data):
        logger.warning(f"No TTB data found for company {company_id} month {month} year {year} when generating report.")
        raise ValidationFailed('No TTB data found for the specified month.')

    report = TtbMonthlyReport.objects.create(
        company_id=company_id,
        report_month=month,
        report_year=year,
        form_type=form_type,
        status=TtbMonthlyReport.STATUS_DRAFT,
        generated_at=timezone.now(),
        created_by=user,
        report_data=data,
        validation_errors=data.get('validation_errors', []),
        validation_warnings=data.get('validation_warnings', []),
    )
    audit.log_change('create', report, company_id, user=user, request=request)
    logger.info(f"TTB report {report.id} generated for company {company_id} {month}/{year} by {user.username}")
    return report


def delete_report(report, user, request=None):
    if report.status != TtbMonthlyReport.STATUS_DRAFT:
        raise ConflictError('Only Draft reports can be deleted.')
    old_values = audit.snapshot(report)
    company_id = report.company_id
    report.delete()
    report.pk = old_values['id']
    audit.log_change('delete', report, company_id, user=user, old_values=old_values, request=request)


def get_reviewers(company_id):
    return User.objects.filter(company_id=company_id, user_type__in=REVIEWER_TYPES, is_active=True)


def _ensure_no_validation_errors(report, purpose):
    errors = report.validation_errors or []
    if errors:
        raise ValidationFailed(
            f"Report has {len(errors)} validation error(s) that must be resolved before {purpose}."
        )


def _transition(report, user, request, **changes):
    old_values = audit.snapshot(report)
    for field, value in changes.items():
        setattr(report, field, value)
    report.save()
    audit.log_change('update', report, report.company_id, user=user, old_values=old_values, request=request)


def submit_for_review(report, user, request=None):
    if report.status != TtbMonthlyReport.STATUS_DRAFT:
        raise ConflictError(
            f"Report cannot be submitted for review from {_status_label(report)} status. "
            f"Only Draft reports can be submitted for review."
        )
    _ensure_no_validation_errors(report, 'submission for review')

    _transition(
        report, user, request,
        status=TtbMonthlyReport.STATUS_PENDING_REVIEW,
        submitted_for_review_by=user,
        submitted_for_review_at=timezone.now(),
    )
    logger.info(f"Report {report.id} for {_period(report)} submitted for review by user {user.id}")
    _notify_review_requested(report, user)
    return report


def approve(report, user, review_notes=None, request=None):
    if not is_reviewer(user):
        raise AccessDenied('Only Compliance Managers can approve reports.')
    if report.status != TtbMonthlyReport.STATUS_PENDING_REVIEW:
        raise ConflictError(
            f"Report cannot be approved from {_status_label(report)} status. "
            f"Only PendingReview reports can be approved."
        )

    now = timezone.now()
    _transition(
        report, user, request,
        status=TtbMonthlyReport.STATUS_APPROVED,
        reviewed_by=user,
        reviewed_at=now,
        approved_by=user,
        approved_at=now,
        review_notes=review_notes,
    )
    logger.info(f"Report {report.id} for {_period(report)} approved by user {user.id}")
    _notify_approved(report, user)
    return report


def reject(report, user, review_notes=None, request=None):
    if not is_reviewer(user):
        raise AccessDenied('Only Compliance Managers can reject reports.')
    if report.status != TtbMonthlyReport.STATUS_PENDING_REVIEW:
        raise ConflictError(
            f"Report cannot be rejected from {_status_label(report)} status. "
            f"Only PendingReview reports can be rejected."
        )

    _transition(
        report, user, request,
        status=TtbMonthlyReport.STATUS_DRAFT,
        reviewed_by=user,
        reviewed_at=timezone.now(),
        review_notes=review_notes,
        approved_by=None,
        approved_at=None,
    )
    logger.info(f"Report {report.id} for {_period(report)} rejected by user {user.id}")
    _notify_rejected(report, user)
    return report


def submit_to_ttb(report, user, confirmation_number, request=None):
    if not confirmation_number or not str(confirmation_number).strip():
        raise ValidationFailed('TTB confirmation number is required.')
    if report.status != TtbMonthlyReport.STATUS_APPROVED:
        raise ConflictError(
            f"Report cannot be submitted to TTB from {_status_label(report)} status. "
            f"Only Approved reports can be submitted to TTB."
        )
    _ensure_no_validation_errors(report, 'TTB submission')

    _transition(
        report, user, request,
        status=TtbMonthlyReport.STATUS_SUBMITTED,
        submitted_at=timezone.now(),
        ttb_confirmation_number=str(confirmation_number).strip(),
    )
    logger.info(
        f"Report {report.id} for {_period(report)} submitted to TTB with confirmation "
        f"{report.ttb_confirmation_number} by user {user.id}"
    )
    _notify_submitted(report)
    webhooks.trigger_event(webhooks.TTB_REPORT_SUBMITTED, report.id, {
        'id': report.id,
        'report_month': report.report_month,
        'report_year': report.report_year,
        'status': report.status,
        'submitted_at': report.submitted_at,
        'ttb_confirmation_number': report.ttb_confirmation_number,
    }, report.company_id)
    return report


def archive(report, user, request=None):
    if report.status != TtbMonthlyReport.STATUS_SUBMITTED:
        raise ConflictError(
            f"Report cannot be archived from {_status_label(report)} status. Only Submitted reports can be archived."
        )
    _transition(report, user, request, status=TtbMonthlyReport.STATUS_ARCHIVED)
    logger.info(f"Report {report.id} for {_period(report)} archived by user {user.id}")
    return report


# Notifications. Failures are logged and never undo a transition.

def _notify_review_requested(report, submitter):
    try:
        reviewers = list(get_reviewers(report.company_id))
        subject = f"TTB Report Review Requested - {_period(report)}"
        body = (
            f"TTB Report Review Requested\n\n"
            f"A TTB monthly report has been submitted for your review.\n\n"
            f"{_report_details(report)}"
            f"- Submitted By: {submitter.name}\n"
            f"- Submitted At: {timezone.now():%Y-%m-%d %H:%M} UTC\n\n"
            f"Please review this report and either approve it for TTB submission or reject it with feedback.\n\n"
            f"{AUTOMATED_FOOTER}\n"
        )
        for reviewer in reviewers:
            send_email(reviewer.email, subject, body)
        push.send_to_users(
            [r for r in reviewers if r.id != submitter.id],
            push.TYPE_COMPLIANCE_REQUIRES_APPROVAL,
            'TTB report needs review',
            f"{submitter.name} submitted the {_period(report)} report for review.",
            entity_id=report.id,
            url=f"/ttb-reports/{report.id}",
        )
    except Exception as e:
        logger.warning(f"Failed to send review request notification for report {report.id}: {str(e)}")


def _notify_approved(report, approver):
    try:
        submitter = report.submitted_for_review_by
        if submitter is None:
            return
        notes = f"\nReviewer Notes: {report.review_notes}" if report.review_notes else ''
        body = (
            f"TTB Report Approved\n\n"
            f"Your TTB monthly report has been approved and is ready for submission to TTB.\n\n"
            f"{_report_details(report)}"
            f"- Approved By: {approver.name}\n"
            f"- Approved At: {report.approved_at:%Y-%m-%d %H:%M} UTC\n"
            f"{notes}\n\n"
            f"You can now submit this report to TTB and record the confirmation number in Caskr.\n\n"
            f"{AUTOMATED_FOOTER}\n"
        )
        send_email(submitter.email, f"TTB Report Approved - {_period(report)}", body)
        push.send_to_user(
            submitter,
            push.TYPE_COMPLIANCE_APPROVED,
            'TTB report approved',
            f"The {_period(report)} report was approved by {approver.name}.",
            entity_id=report.id,
            url=f"/ttb-reports/{report.id}",
        )
    except Exception as e:
        logger.warning(f"Failed to send approval notification for report {report.id}: {str(e)}")


def _notify_rejected(report, reviewer):
    try:
        submitter = report.submitted_for_review_by
        if submitter is None:
            return
        notes = (f"\nReviewer Notes: {report.review_notes}" if report.review_notes
                 else "\nNo specific feedback was provided.")
        body = (
            f"TTB Report Requires Revision\n\n"
            f"Your TTB monthly report has been reviewed and requires changes before it can be approved.\n\n"
            f"{_report_details(report)}"
            f"- Reviewed By: {reviewer.name}\n"
            f"- Reviewed At: {report.reviewed_at:%Y-%m-%d %H:%M} UTC\n"
            f"{notes}\n\n"
            f"Please address the feedback and resubmit the report for review.\n\n"
            f"{AUTOMATED_FOOTER}\n"
        )
        send_email(submitter.email, f"TTB Report Requires Revision - {_period(report)}", body)
        push.send_to_user(
            submitter,
            push.TYPE_COMPLIANCE_REJECTED,
            'TTB report requires revision',
            f"The {_period(report)} report was returned by {reviewer.name}.",
            entity_id=report.id,
            url=f"/ttb-reports/{report.id}",
        )
    except Exception as e:
        logger.warning(f"Failed to send rejection notification for report {report.id}: {str(e)}")


def _notify_submitted(report):
    try:
        recipients = {}
        for user in (report.submitted_for_review_by, report.approved_by):
            if user is not None:
                recipients[user.id] = user
        for contact in User.objects.filter(company_id=report.company_id, is_ttb_contact=True):
            recipients[contact.id] = contact

        body = (
            f"TTB Report Submission Confirmed\n\n"
            f"A TTB monthly report has been successfully submitted to the TTB.\n\n"
            f"{_report_details(report)}"
            f"- TTB Confirmation Number: {report.ttb_confirmation_number}\n"
            f"- Submitted At: {report.submitted_at:%Y-%m-%d %H:%M} UTC\n\n"
            f"This report is now locked and cannot be modified. All related transaction data for this "
            f"period is also locked for compliance purposes.\n\n"
            f"{AUTOMATED_FOOTER}\n"
        )
        subject = f"TTB Report Submitted - Confirmation #{report.ttb_confirmation_number}"
        for user in recipients.values():
            send_email(user.email, subject, body)
    except Exception as e:
        logger.warning(f"Failed to send submission confirmation notification for report {report.id}: {str(e)}")
