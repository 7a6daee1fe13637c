from django.urls import path
from .views import (
    overview, equipment_list, equipment_capacity, capacity_by_type,
    utilization, utilization_trend, utilization_by_equipment,
    bottleneck_list, bottleneck_detail, bottleneck_resolutions,
    plan_list_create, plan_detail, plan_validate, plan_activate, plan_export,
    forecast, demand_forecast, gap_analysis, scenario_run, scenario_compare,
    constraint_list_create, constraint_detail, snapshot_list, snapshot_capture,
    export_utilization, export_forecast,
)

urlpatterns = [
    # Utilization endpoints
    path('capacity/overview/', overview, name='capacity-overview'),
    path('capacity/equipment/', equipment_list, name='capacity-equipment-list'),
    path('capacity/equipment/<int:pk>/', equipment_capacity, name='capacity-equipment-detail'),
    path('capacity/by-type/', capacity_by_type, name='capacity-by-type'),
    path('capacity/utilization/', utilization, name='capacity-utilization'),
    path('capacity/utilization/trend/', utilization_trend, name='capacity-utilization-trend'),
    path('capacity/utilization/equipment/', utilization_by_equipment, name='capacity-utilization-equipment'),

    # Bottleneck endpoints
    path('capacity/bottlenecks/', bottleneck_list, name='capacity-bottleneck-list'),
    path('capacity/bottlenecks/<int:equipment_id>/', bottleneck_detail, name='capacity-bottleneck-detail'),
    path('capacity/bottlenecks/<int:equipment_id>/resolutions/', bottleneck_resolutions, name='capacity-bottleneck-resolutions'),

    # Plan endpoints
    path('capacity/plans/', plan_list_create, name='capacity-plan-list-create'),
    path('capacity/plans/<int:pk>/', plan_detail, name='capacity-plan-detail'),
    path('capacity/plans/<int:pk>/validate/', plan_validate, name='capacity-plan-validate'),
    path('capacity/plans/<int:pk>/activate/', plan_activate, name='capacity-plan-activate'),
    path('capacity/plans/<int:pk>/export/', plan_export, name='capacity-plan-export'),

    # Forecast endpoints
    path('capacity/forecast/', forecast, name='capacity-forecast'),
    path('capacity/forecast/demand/', demand_forecast, name='capacity-demand-forecast'),
    path('capacity/gap-analysis/', gap_analysis, name='capacity-gap-analysis'),
    path('capacity/scenarios/', scenario_run, name='capacity-scenario-run'),
    path('capacity/scenarios/compare/', scenario_compare, name='capacity-scenario-compare'),

    # Constraint endpoints
    path('capacity/constraints/', constraint_list_create, name='capacity-constraint-list-create'),
    path('capacity/constraints/<int:pk>/', constraint_detail, name='capacity-constraint-detail'),

    # Snapshot endpoints
    path('capacity/snapshots/', snapshot_list, name='capacity-snapshot-list'),
    path('capacity/snapshots/capture/', snapshot_capture, name='capacity-snapshot-capture'),

    # Export endpoints
    path('capacity/export/utilization/', export_utilization, name='capacity-export-utilization'),
    path('capacity/export/forecast/', export_forecast, name='capacity-export-forecast'),
]
