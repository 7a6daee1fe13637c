from rest_framework import serializers
from .models import Company, User, AuditLog, UserSitePreference


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = [
            'id', 'company_name', 'address_line1', 'address_line2', 'city', 'state', 'postal_code', 'country',
            'phone_number', 'website', 'ttb_permit_number', 'is_active',
            'is_eligible_for_reduced_excise_tax_rate', 'annual_production_proof_gallons', 'excise_tax_eligibility_notes',
            'auto_generate_ttb_reports', 'ttb_auto_report_cadence', 'ttb_auto_report_day_of_month',
            'ttb_auto_report_day_of_week', 'ttb_auto_report_hour_utc',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_ttb_auto_report_day_of_month(self, value):
        if not 1 <= value <= 28:
            raise serializers.ValidationError('Day of month must be between 1 and 28.')
        return value

    def validate_ttb_auto_report_day_of_week(self, value):
        if not 0 <= value <= 6:
            raise serializers.ValidationError('Day of week must be between 0 (Monday) and 6 (Sunday).')
        return value

    def validate_ttb_auto_report_hour_utc(self, value):
        if not 0 <= value <= 23:
            raise serializers.ValidationError('Hour must be between 0 and 23.')
        return value


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'name', 'phone', 'company',
                  'user_type', 'is_ttb_contact', 'is_primary_contact', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'company', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']


class SitePreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserSitePreference
        fields = ['preferred_site', 'last_detected_device', 'updated_at']
