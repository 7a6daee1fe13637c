from django.contrib.auth.models import AbstractUser
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class Company(models.Model):
    """Tenant distillery"""
    CADENCE_CHOICES = [
        ('monthly', 'Monthly'),
        ('weekly', 'Weekly'),
    ]

    company_name = models.CharField(max_length=200)
    address_line1 = models.CharField(max_length=200, blank=True)
    address_line2 = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    website = models.CharField(max_length=200, blank=True)
    ttb_permit_number = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)

    # Federal excise tax eligibility
    is_eligible_for_reduced_excise_tax_rate = models.BooleanField(default=True)
    annual_production_proof_gallons = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    excise_tax_eligibility_notes = models.TextField(blank=True)

    # Scheduled TTB report generation
    auto_generate_ttb_reports = models.BooleanField(default=False)
    ttb_auto_report_cadence = models.CharField(max_length=10, choices=CADENCE_CHOICES, default='monthly')
    ttb_auto_report_day_of_month = models.PositiveSmallIntegerField(default=1)
    ttb_auto_report_day_of_week = models.PositiveSmallIntegerField(default=0, help_text='0 = Monday')
    ttb_auto_report_hour_utc = models.PositiveSmallIntegerField(default=6)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name

    class Meta:
        db_table = 'companies'
        ordering = ['company_name']
        verbose_name_plural = 'companies'


class User(AbstractUser):
    """Extended user model with tenant and role fields"""
    USER_TYPE_SUPER_ADMIN = 'super_admin'
    USER_TYPE_ADMIN = 'admin'
    USER_TYPE_COMPLIANCE_MANAGER = 'compliance_manager'

    USER_TYPE_CHOICES = [
        (USER_TYPE_SUPER_ADMIN, 'Super Admin'),
        (USER_TYPE_ADMIN, 'Admin'),
        (USER_TYPE_COMPLIANCE_MANAGER, 'Compliance Manager'),
        ('distiller', 'Distiller'),
        ('warehouse', 'Warehouse'),
        ('viewer', 'Viewer'),
    ]

    company = models.ForeignKey(Company, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    user_type = models.CharField(max_length=30, choices=USER_TYPE_CHOICES, default='viewer')
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_ttb_contact = models.BooleanField(default=False)
    is_primary_contact = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def name(self):
        return self.get_full_name() or self.username

    @property
    def is_super_admin(self):
        return self.user_type == self.USER_TYPE_SUPER_ADMIN

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('status_change', 'Status Change'),
        ('send', 'Sent'),
        ('receive', 'Received'),
        ('cancel', 'Cancelled'),
        ('activate', 'Activated'),
        ('deactivate', 'Deactivated'),
        ('assign', 'Assigned'),
        ('complete', 'Completed'),
        ('archive', 'Archived'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., supplier name, PO number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., PO number, receipt id)")
    changes = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]


class UserSitePreference(models.Model):
    """Desktop/mobile site preference, per user or per anonymous session"""
    SITE_CHOICES = [
        ('auto', 'Auto'),
        ('desktop', 'Desktop'),
        ('mobile', 'Mobile'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, null=True, blank=True, related_name='site_preference')
    session_id = models.CharField(max_length=100, blank=True, null=True, unique=True)
    preferred_site = models.CharField(max_length=10, choices=SITE_CHOICES, default='auto')
    last_detected_device = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        owner = self.user.username if self.user_id else self.session_id
        return f"{owner}: {self.preferred_site}"

    class Meta:
        db_table = 'user_site_preferences'
