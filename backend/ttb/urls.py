from django.urls import path
from .views import (
    report_list, report_generate, report_preview, report_detail,
    report_submit_for_review, report_approve, report_reject, report_submit, report_archive,
    transaction_list_create, transaction_detail,
    snapshot_list, snapshot_backfill,
    gauge_record_list_create, gauge_record_detail,
    excise_calculate, excise_record, excise_determination_list, excise_determination_detail,
    excise_determination_pay, excise_report,
    audit_log_list, audit_log_export, audit_log_detail, audit_log_recent,
)

urlpatterns = [
    # Monthly report endpoints
    path('ttb/reports/', report_list, name='ttb-report-list'),
    path('ttb/reports/generate/', report_generate, name='ttb-report-generate'),
    path('ttb/reports/preview/', report_preview, name='ttb-report-preview'),
    path('ttb/reports/<int:pk>/', report_detail, name='ttb-report-detail'),
    path('ttb/reports/<int:pk>/submit-for-review/', report_submit_for_review, name='ttb-report-submit-for-review'),
    path('ttb/reports/<int:pk>/approve/', report_approve, name='ttb-report-approve'),
    path('ttb/reports/<int:pk>/reject/', report_reject, name='ttb-report-reject'),
    path('ttb/reports/<int:pk>/submit/', report_submit, name='ttb-report-submit'),
    path('ttb/reports/<int:pk>/archive/', report_archive, name='ttb-report-archive'),

    # Transaction endpoints
    path('ttb/transactions/', transaction_list_create, name='ttb-transaction-list-create'),
    path('ttb/transactions/<int:pk>/', transaction_detail, name='ttb-transaction-detail'),

    # Snapshot endpoints
    path('ttb/snapshots/', snapshot_list, name='ttb-snapshot-list'),
    path('ttb/snapshots/backfill/', snapshot_backfill, name='ttb-snapshot-backfill'),

    # Gauge record endpoints
    path('ttb/gauge-records/', gauge_record_list_create, name='ttb-gauge-record-list-create'),
    path('ttb/gauge-records/<int:pk>/', gauge_record_detail, name='ttb-gauge-record-detail'),

    # Excise tax endpoints
    path('ttb/excise-tax/calculate/', excise_calculate, name='ttb-excise-calculate'),
    path('ttb/excise-tax/record/', excise_record, name='ttb-excise-record'),
    path('ttb/excise-tax/determinations/', excise_determination_list, name='ttb-excise-determination-list'),
    path('ttb/excise-tax/determinations/<int:pk>/', excise_determination_detail, name='ttb-excise-determination-detail'),
    path('ttb/excise-tax/determinations/<int:pk>/pay/', excise_determination_pay, name='ttb-excise-determination-pay'),
    path('ttb/excise-tax/report/', excise_report, name='ttb-excise-report'),

    # Audit trail endpoints
    path('ttb/audit-logs/', audit_log_list, name='ttb-audit-log-list'),
    path('ttb/audit-logs/export/', audit_log_export, name='ttb-audit-log-export'),
    path('ttb/audit-logs/recent/', audit_log_recent, name='ttb-audit-log-recent'),
    path('ttb/audit-logs/<int:pk>/', audit_log_detail, name='ttb-audit-log-detail'),
]
