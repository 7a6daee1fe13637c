from django.contrib import admin
from .models import (
    Equipment, ProductionRun, EquipmentBooking, CapacityPlan, CapacityAllocation,
    CapacityConstraint, CapacitySnapshot,
)


@admin.register(Equipment)
class EquipmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'equipment_type', 'capacity', 'capacity_unit', 'is_active']
    list_filter = ['equipment_type', 'is_active']
    search_fields = ['name']


@admin.register(ProductionRun)
class ProductionRunAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'run_type', 'status', 'scheduled_start', 'scheduled_end', 'is_maintenance']
    list_filter = ['run_type', 'status', 'is_maintenance']
    search_fields = ['name']


@admin.register(EquipmentBooking)
class EquipmentBookingAdmin(admin.ModelAdmin):
    list_display = ['equipment', 'production_run', 'start_time', 'end_time', 'status']
    list_filter = ['status']


class CapacityAllocationInline(admin.TabularInline):
    model = CapacityAllocation
    extra = 0


@admin.register(CapacityPlan)
class CapacityPlanAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'plan_type', 'status', 'period_start', 'period_end']
    list_filter = ['plan_type', 'status']
    search_fields = ['name']
    inlines = [CapacityAllocationInline]


@admin.register(CapacityConstraint)
class CapacityConstraintAdmin(admin.ModelAdmin):
    list_display = ['constraint_type', 'company', 'equipment', 'constraint_value', 'effective_from', 'effective_until', 'is_active']
    list_filter = ['constraint_type', 'is_active']


@admin.register(CapacitySnapshot)
class CapacitySnapshotAdmin(admin.ModelAdmin):
    list_display = ['equipment', 'snapshot_date', 'actual_hours', 'available_hours', 'utilization_percent']
    list_filter = ['snapshot_date']
