from django.contrib import admin
from .models import (
    TtbMonthlyReport, TtbTransaction, TtbInventorySnapshot, TtbGaugeRecord,
    TtbTaxDetermination, TtbAuditLog
)


@admin.register(TtbMonthlyReport)
class TtbMonthlyReportAdmin(admin.ModelAdmin):
    list_display = ['id', 'company', 'form_type', 'report_month', 'report_year', 'status', 'generated_at', 'submitted_at']
    list_filter = ['status', 'form_type', 'report_year', 'company']
    search_fields = ['ttb_confirmation_number']
    readonly_fields = ['report_data', 'validation_errors', 'validation_warnings', 'generated_at']


@admin.register(TtbTransaction)
class TtbTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'company', 'transaction_date', 'transaction_type', 'product_type', 'spirits_type', 'proof_gallons', 'source_entity_type']
    list_filter = ['transaction_type', 'spirits_type', 'source_entity_type', 'company']
    search_fields = ['product_type', 'notes']
    date_hierarchy = 'transaction_date'


@admin.register(TtbInventorySnapshot)
class TtbInventorySnapshotAdmin(admin.ModelAdmin):
    list_display = ['snapshot_date', 'company', 'product_type', 'spirits_type', 'tax_status', 'proof_gallons', 'wine_gallons']
    list_filter = ['tax_status', 'spirits_type', 'company']
    date_hierarchy = 'snapshot_date'


@admin.register(TtbGaugeRecord)
class TtbGaugeRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'barrel', 'gauge_type', 'gauge_date', 'proof', 'temperature', 'wine_gallons', 'proof_gallons', 'gauged_by']
    list_filter = ['gauge_type']
    search_fields = ['barrel__sku']


@admin.register(TtbTaxDetermination)
class TtbTaxDeterminationAdmin(admin.ModelAdmin):
    list_display = ['id', 'company', 'order', 'proof_gallons', 'tax_rate', 'tax_amount', 'determination_date', 'paid_date']
    list_filter = ['company']
    search_fields = ['order__name', 'payment_reference']


@admin.register(TtbAuditLog)
class TtbAuditLogAdmin(admin.ModelAdmin):
    list_display = ['change_timestamp', 'company', 'entity_type', 'entity_id', 'action', 'changed_by']
    list_filter = ['entity_type', 'action', 'company']
    search_fields = ['change_description']
    readonly_fields = [f.name for f in TtbAuditLog._meta.fields]
