from rest_framework import serializers
from .forecasting import FORECAST_METHODS, METHOD_MOVING_AVERAGE, SCENARIO_CHANGE_TYPES
from .models import (
    CapacityAllocation, CapacityConstraint, CapacityPlan, CapacitySnapshot, Equipment,
)


class EquipmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Equipment
        fields = ['id', 'name', 'equipment_type', 'capacity', 'capacity_unit', 'is_active']


class CapacityAllocationSerializer(serializers.ModelSerializer):
    equipment_id = serializers.IntegerField()
    equipment_name = serializers.CharField(source='equipment.name', read_only=True)

    class Meta:
        model = CapacityAllocation
        fields = [
            'id', 'equipment_id', 'equipment_name', 'allocation_type', 'start_date', 'end_date',
            'hours_allocated', 'product_type', 'notes',
        ]
        read_only_fields = ['id']

    def validate_hours_allocated(self, value):
        if value <= 0:
            raise serializers.ValidationError('Hours allocated must be greater than zero.')
        return value


class CapacityPlanSerializer(serializers.ModelSerializer):
    allocations = CapacityAllocationSerializer(many=True, read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = CapacityPlan
        fields = [
            'id', 'company', 'name', 'description', 'plan_type', 'status', 'period_start', 'period_end',
            'target_proof_gallons', 'target_bottles', 'target_batches', 'created_by', 'created_by_name',
            'notes', 'allocations', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CapacityPlanWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    plan_type = serializers.ChoiceField(choices=CapacityPlan.PLAN_TYPE_CHOICES, default='monthly')
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    target_proof_gallons = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    target_bottles = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    target_batches = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    allocations = CapacityAllocationSerializer(many=True, required=False)


class CapacityConstraintSerializer(serializers.ModelSerializer):
    equipment_name = serializers.CharField(source='equipment.name', read_only=True, default=None)

    class Meta:
        model = CapacityConstraint
        fields = [
            'id', 'company', 'equipment', 'equipment_name', 'constraint_type', 'constraint_value',
            'effective_from', 'effective_until', 'is_active', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'company', 'is_active', 'created_at', 'updated_at']

    def validate_constraint_value(self, value):
        if value < 0:
            raise serializers.ValidationError('Constraint value cannot be negative.')
        return value


class CapacitySnapshotSerializer(serializers.ModelSerializer):
    equipment_name = serializers.CharField(source='equipment.name', read_only=True)

    class Meta:
        model = CapacitySnapshot
        fields = [
            'id', 'equipment', 'equipment_name', 'snapshot_date', 'planned_hours', 'actual_hours',
            'available_hours', 'utilization_percent', 'proof_gallons_produced', 'batches_completed',
        ]
        read_only_fields = fields


class ScenarioChangeSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=SCENARIO_CHANGE_TYPES)
    equipment_id = serializers.IntegerField(required=False, allow_null=True)
    parameters = serializers.DictField(required=False, default=dict)


class ScenarioSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    changes = ScenarioChangeSerializer(many=True)

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError('End date must be on or after start date.')
        return attrs


class ScenarioComparisonSerializer(serializers.Serializer):
    scenarios = ScenarioSerializer(many=True)


class ForecastQuerySerializer(serializers.Serializer):
    weeks_ahead = serializers.IntegerField(min_value=1, max_value=52, default=12)
    method = serializers.ChoiceField(choices=FORECAST_METHODS, default=METHOD_MOVING_AVERAGE)
