from rest_framework import serializers
from .models import (
    TtbMonthlyReport, TtbTransaction, TtbInventorySnapshot, TtbGaugeRecord,
    TtbTaxDetermination, TtbAuditLog
)


class TtbMonthlyReportSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.name', read_only=True)
    submitted_for_review_by_name = serializers.CharField(source='submitted_for_review_by.name', read_only=True, default=None)
    reviewed_by_name = serializers.CharField(source='reviewed_by.name', read_only=True, default=None)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, default=None)
    company_name = serializers.CharField(source='company.company_name', read_only=True)

    class Meta:
        model = TtbMonthlyReport
        fields = [
            'id', 'company', 'company_name', 'report_month', 'report_year', 'status', 'form_type',
            'generated_at', 'submitted_at', 'ttb_confirmation_number', 'pdf_path',
            'validation_errors', 'validation_warnings', 'created_by', 'created_by_name',
            'submitted_for_review_by', 'submitted_for_review_by_name', 'submitted_for_review_at',
            'reviewed_by', 'reviewed_by_name', 'reviewed_at',
            'approved_by', 'approved_by_name', 'approved_at', 'review_notes',
        ]
        read_only_fields = fields


class TtbMonthlyReportDetailSerializer(TtbMonthlyReportSerializer):
    class Meta(TtbMonthlyReportSerializer.Meta):
        fields = TtbMonthlyReportSerializer.Meta.fields + ['report_data']
        read_only_fields = fields


class GenerateReportSerializer(serializers.Serializer):
    company_id = serializers.IntegerField(required=False)
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField()
    form_type = serializers.ChoiceField(choices=TtbMonthlyReport.FORM_TYPE_CHOICES, default=TtbMonthlyReport.FORM_5110_28)


class ReviewSerializer(serializers.Serializer):
    review_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class SubmitToTtbSerializer(serializers.Serializer):
    confirmation_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class TtbTransactionSerializer(serializers.ModelSerializer):
    transaction_type_display = serializers.CharField(source='get_transaction_type_display', read_only=True)
    is_manual = serializers.SerializerMethodField()

    class Meta:
        model = TtbTransaction
        fields = [
            'id', 'company', 'transaction_date', 'transaction_type', 'transaction_type_display',
            'product_type', 'spirits_type', 'proof_gallons', 'wine_gallons',
            'source_entity_type', 'source_entity_id', 'is_manual', 'notes', 'created_at',
        ]
        read_only_fields = ['id', 'company', 'source_entity_type', 'source_entity_id', 'created_at']

    def get_is_manual(self, obj):
        return obj.source_entity_type == TtbTransaction.SOURCE_MANUAL


class TtbInventorySnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = TtbInventorySnapshot
        fields = [
            'id', 'company', 'snapshot_date', 'product_type', 'spirits_type',
            'proof_gallons', 'wine_gallons', 'tax_status', 'created_at',
        ]
        read_only_fields = fields


class SnapshotBackfillSerializer(serializers.Serializer):
    company_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class TtbGaugeRecordSerializer(serializers.ModelSerializer):
    barrel_sku = serializers.CharField(source='barrel.sku', read_only=True)
    gauged_by_name = serializers.CharField(source='gauged_by.name', read_only=True, default=None)

    class Meta:
        model = TtbGaugeRecord
        fields = [
            'id', 'barrel', 'barrel_sku', 'gauge_date', 'gauge_type', 'proof', 'temperature',
            'wine_gallons', 'proof_gallons', 'gauged_by', 'gauged_by_name', 'notes', 'created_at',
        ]
        read_only_fields = ['id', 'proof_gallons', 'gauged_by', 'created_at']


class GaugeReadingSerializer(serializers.Serializer):
    """Input for creating or updating a gauge reading"""
    barrel_id = serializers.IntegerField(required=False)
    gauge_type = serializers.ChoiceField(choices=TtbGaugeRecord.GAUGE_TYPE_CHOICES, required=False)
    gauge_date = serializers.DateTimeField(required=False)
    proof = serializers.DecimalField(max_digits=6, decimal_places=2, min_value=0, max_value=200)
    temperature = serializers.DecimalField(max_digits=6, decimal_places=2)
    wine_gallons = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class TtbTaxDeterminationSerializer(serializers.ModelSerializer):
    order_name = serializers.CharField(source='order.name', read_only=True)
    is_paid = serializers.SerializerMethodField()

    class Meta:
        model = TtbTaxDetermination
        fields = [
            'id', 'company', 'order', 'order_name', 'proof_gallons', 'tax_rate', 'tax_amount',
            'determination_date', 'paid_date', 'is_paid', 'payment_reference', 'notes', 'created_at',
        ]
        read_only_fields = fields

    def get_is_paid(self, obj):
        return obj.paid_date is not None


class MarkPaidSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paid_date = serializers.DateTimeField(required=False)


class TtbAuditLogSerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.name', read_only=True, default=None)

    class Meta:
        model = TtbAuditLog
        fields = [
            'id', 'company', 'entity_type', 'entity_id', 'action', 'changed_by', 'changed_by_name',
            'change_timestamp', 'old_values', 'new_values', 'ip_address', 'user_agent',
            'change_description',
        ]
        read_only_fields = fields

