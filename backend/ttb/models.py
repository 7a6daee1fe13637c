from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from backend.core.models import Company, User
from backend.inventory.models import Barrel, Order

SPIRITS_TYPE_CHOICES = [
    ('under_190_proof', 'Under 190 Proof'),
    ('neutral_190_or_more', 'Neutral 190 or More'),
    ('wine', 'Wine'),
    ('alcohol', 'Alcohol'),
]


class TtbMonthlyReport(models.Model):
    """Monthly TTB report (Form 5110.28 processing or 5110.40 storage)"""
    STATUS_DRAFT = 'draft'
    STATUS_PENDING_REVIEW = 'pending_review'
    STATUS_APPROVED = 'approved'
    STATUS_SUBMITTED = 'submitted'
    STATUS_ARCHIVED = 'archived'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING_REVIEW, 'Pending Review'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    FORM_5110_28 = '5110_28'
    FORM_5110_40 = '5110_40'

    FORM_TYPE_CHOICES = [
        (FORM_5110_28, 'Form 5110.28'),
        (FORM_5110_40, 'Form 5110.40'),
    ]

    # Reports in these states lock their month's transactions
    LOCKED_STATUSES = (STATUS_SUBMITTED, STATUS_APPROVED)

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='ttb_reports')
    report_month = models.PositiveSmallIntegerField()
    report_year = models.PositiveSmallIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    form_type = models.CharField(max_length=10, choices=FORM_TYPE_CHOICES, default=FORM_5110_28)
    generated_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    ttb_confirmation_number = models.CharField(max_length=100, blank=True, null=True)
    pdf_path = models.CharField(max_length=500, blank=True, null=True)
    validation_errors = models.JSONField(default=list, blank=True)
    validation_warnings = models.JSONField(default=list, blank=True)
    report_data = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='ttb_reports_created')
    submitted_for_review_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    submitted_for_review_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    approved_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True, null=True)

    def __str__(self):
        return f"{self.get_form_type_display()} {self.report_month}/{self.report_year} ({self.company_id})"

    class Meta:
        db_table = 'ttb_monthly_reports'
        ordering = ['-report_year', '-report_month']
        unique_together = [['company', 'report_month', 'report_year', 'form_type']]


class TtbTransaction(models.Model):
    """Single TTB-relevant movement of spirits"""
    TYPE_PRODUCTION = 'production'
    TYPE_TRANSFER_IN = 'transfer_in'
    TYPE_TRANSFER_OUT = 'transfer_out'
    TYPE_LOSS = 'loss'
    TYPE_GAIN = 'gain'
    TYPE_DESTRUCTION = 'destruction'
    TYPE_BOTTLING = 'bottling'
    TYPE_TAX_DETERMINATION = 'tax_determination'

    TYPE_CHOICES = [
        (TYPE_PRODUCTION, 'Production'),
        (TYPE_TRANSFER_IN, 'Transfer In'),
        (TYPE_TRANSFER_OUT, 'Transfer Out'),
        (TYPE_LOSS, 'Loss'),
        (TYPE_GAIN, 'Gain'),
        (TYPE_DESTRUCTION, 'Destruction'),
        (TYPE_BOTTLING, 'Bottling'),
        (TYPE_TAX_DETERMINATION, 'Tax Determination'),
    ]

    # Sign applied when netting transactions into an inventory balance
    MULTIPLIERS = {
        TYPE_PRODUCTION: 1,
        TYPE_TRANSFER_IN: 1,
        TYPE_GAIN: 1,
        TYPE_TRANSFER_OUT: -1,
        TYPE_LOSS: -1,
        TYPE_DESTRUCTION: -1,
        TYPE_BOTTLING: -1,
        TYPE_TAX_DETERMINATION: -1,
    }

    SOURCE_MANUAL = 'Manual'

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='ttb_transactions')
    transaction_date = models.DateField()
    transaction_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    product_type = models.CharField(max_length=200)
    spirits_type = models.CharField(max_length=30, choices=SPIRITS_TYPE_CHOICES)
    proof_gallons = models.DecimalField(max_digits=14, decimal_places=2)
    wine_gallons = models.DecimalField(max_digits=14, decimal_places=2)
    source_entity_type = models.CharField(max_length=50, blank=True, null=True)
    source_entity_id = models.IntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.proof_gallons} PG on {self.transaction_date}"

    class Meta:
        db_table = 'ttb_transactions'
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['company', 'transaction_date'], name='idx_ttb_txn_company_date'),
            models.Index(fields=['source_entity_type', 'source_entity_id'], name='idx_ttb_txn_source'),
        ]


class TtbInventorySnapshot(models.Model):
    """End-of-day inventory position used as the opening balance for reports"""
    TAX_STATUS_CHOICES = [
        ('bonded', 'Bonded'),
        ('tax_paid', 'Tax Paid'),
        ('export', 'Export'),
        ('tax_free', 'Tax Free'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='ttb_snapshots')
    snapshot_date = models.DateField()
    product_type = models.CharField(max_length=200)
    spirits_type = models.CharField(max_length=30, choices=SPIRITS_TYPE_CHOICES)
    proof_gallons = models.DecimalField(max_digits=14, decimal_places=2)
    wine_gallons = models.DecimalField(max_digits=14, decimal_places=2)
    tax_status = models.CharField(max_length=20, choices=TAX_STATUS_CHOICES, default='bonded')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ttb_inventory_snapshots'
        ordering = ['-snapshot_date', 'product_type']
        indexes = [
            models.Index(fields=['company', 'snapshot_date'], name='idx_ttb_snapshot_date'),
        ]


class TtbGaugeRecord(models.Model):
    """Physical gauge of a barrel (proof and temperature)"""
    GAUGE_TYPE_CHOICES = [
        ('entry', 'Entry'),
        ('removal', 'Removal'),
        ('inventory', 'Inventory'),
        ('other', 'Other'),
    ]

    barrel = models.ForeignKey(Barrel, on_delete=models.CASCADE, related_name='gauge_records')
    gauge_date = models.DateTimeField()
    gauge_type = models.CharField(max_length=20, choices=GAUGE_TYPE_CHOICES)
    proof = models.DecimalField(max_digits=6, decimal_places=2)
    temperature = models.DecimalField(max_digits=6, decimal_places=2)
    wine_gallons = models.DecimalField(max_digits=10, decimal_places=2)
    proof_gallons = models.DecimalField(max_digits=10, decimal_places=2)
    gauged_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='gauge_records')
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ttb_gauge_records'
        ordering = ['-gauge_date']
        indexes = [
            models.Index(fields=['barrel', 'gauge_date'], name='idx_gauge_barrel_date'),
        ]


class TtbTaxDetermination(models.Model):
    """Federal excise tax determined on removal of an order from bond"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='tax_determinations')
    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='tax_determination')
    proof_gallons = models.DecimalField(max_digits=14, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=8, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2)
    determination_date = models.DateTimeField()
    paid_date = models.DateTimeField(null=True, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ttb_tax_determinations'
        ordering = ['-determination_date']


class TtbAuditLog(models.Model):
    """Immutable change history for TTB compliance records"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='ttb_audit_logs')
    entity_type = models.CharField(max_length=50)
    entity_id = models.IntegerField()
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='ttb_audit_logs')
    change_timestamp = models.DateTimeField(auto_now_add=True)
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    change_description = models.TextField(blank=True)

    class Meta:
        db_table = 'ttb_audit_logs'
        ordering = ['-change_timestamp']
        indexes = [
            models.Index(fields=['company', '-change_timestamp'], name='idx_ttb_audit_company_ts'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_ttb_audit_entity'),
        ]
