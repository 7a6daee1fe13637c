from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import Company, User, AuditLog, UserSitePreference


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'ttb_permit_number', 'auto_generate_ttb_reports', 'is_active', 'created_at']
    list_filter = ['is_active', 'auto_generate_ttb_reports', 'ttb_auto_report_cadence']
    search_fields = ['company_name', 'ttb_permit_number']
    ordering = ['company_name']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'company', 'user_type', 'is_ttb_contact', 'is_active', 'date_joined']
    list_filter = ['user_type', 'is_active', 'is_ttb_contact', 'company']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Tenant', {'fields': ('company', 'user_type', 'phone', 'is_ttb_contact', 'is_primary_contact')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Tenant', {'fields': ('company', 'user_type', 'phone')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'company', 'action', 'model_name', 'object_id', 'ip_address', 'created_at']
    list_filter = ['action', 'model_name', 'created_at']
    search_fields = ['user__username', 'model_name', 'object_id', 'object_reference']
    ordering = ['-created_at']
    readonly_fields = ['user', 'company', 'action', 'model_name', 'object_id', 'changes', 'ip_address', 'created_at']


@admin.register(UserSitePreference)
class UserSitePreferenceAdmin(admin.ModelAdmin):
    list_display = ['user', 'session_id', 'preferred_site', 'last_detected_device', 'updated_at']
    list_filter = ['preferred_site']
