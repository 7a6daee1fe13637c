from django.db import models
from backend.core.models import Company, User
from backend.inventory.models import Batch


class Equipment(models.Model):
    """Production equipment whose hours are planned and booked"""
    EQUIPMENT_TYPE_CHOICES = [
        ('still', 'Still'),
        ('fermenter', 'Fermenter'),
        ('mash_tun', 'Mash Tun'),
        ('bottling_line', 'Bottling Line'),
        ('labeler', 'Labeler'),
        ('tank', 'Tank'),
        ('other', 'Other'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='equipment')
    name = models.CharField(max_length=200)
    equipment_type = models.CharField(max_length=20, choices=EQUIPMENT_TYPE_CHOICES, default='other')
    capacity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    capacity_unit = models.CharField(max_length=30, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'equipment'
        ordering = ['name']
        verbose_name_plural = 'equipment'


class ProductionRun(models.Model):
    RUN_TYPE_CHOICES = [
        ('mashing', 'Mashing'),
        ('fermentation', 'Fermentation'),
        ('distillation', 'Distillation'),
        ('barreling', 'Barreling'),
        ('bottling', 'Bottling'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    CLOSED_STATUSES = ('completed', 'cancelled')

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='production_runs')
    name = models.CharField(max_length=200)
    run_type = models.CharField(max_length=20, choices=RUN_TYPE_CHOICES, default='other')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    scheduled_start = models.DateTimeField()
    scheduled_end = models.DateTimeField()
    batch = models.ForeignKey(Batch, on_delete=models.SET_NULL, null=True, blank=True, related_name='production_runs')
    is_maintenance = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'production_runs'
        ordering = ['scheduled_start']
        indexes = [
            models.Index(fields=['company', 'scheduled_start'], name='idx_run_company_start'),
        ]


class EquipmentBooking(models.Model):
    """Time slot reserving a piece of equipment for a production run"""
    STATUS_CHOICES = [
        ('tentative', 'Tentative'),
        ('confirmed', 'Confirmed'),
        ('cancelled', 'Cancelled'),
    ]

    equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, related_name='bookings')
    production_run = models.ForeignKey(ProductionRun, on_delete=models.CASCADE, related_name='bookings')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='tentative')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'equipment_bookings'
        ordering = ['start_time']
        indexes = [
            models.Index(fields=['equipment', 'start_time', 'end_time'], name='idx_booking_equipment_time'),
        ]


class CapacityPlan(models.Model):
    PLAN_TYPE_CHOICES = [
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('annual', 'Annual'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('archived', 'Archived'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='capacity_plans')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    plan_type = models.CharField(max_length=20, choices=PLAN_TYPE_CHOICES, default='monthly')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    period_start = models.DateField()
    period_end = models.DateField()
    target_proof_gallons = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    target_bottles = models.PositiveIntegerField(null=True, blank=True)
    target_batches = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='capacity_plans')
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'capacity_plans'
        ordering = ['-period_start']
        indexes = [
            models.Index(fields=['company', 'status'], name='idx_plan_company_status'),
        ]


class CapacityAllocation(models.Model):
    ALLOCATION_TYPE_CHOICES = [
        ('production', 'Production'),
        ('maintenance', 'Maintenance'),
        ('buffer', 'Buffer'),
        ('reserved', 'Reserved'),
    ]

    plan = models.ForeignKey(CapacityPlan, on_delete=models.CASCADE, related_name='allocations')
    equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, related_name='allocations')
    allocation_type = models.CharField(max_length=20, choices=ALLOCATION_TYPE_CHOICES, default='production')
    start_date = models.DateField()
    end_date = models.DateField()
    hours_allocated = models.DecimalField(max_digits=10, decimal_places=2)
    product_type = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'capacity_allocations'
        ordering = ['start_date']


class CapacityConstraint(models.Model):
    CONSTRAINT_TYPE_CHOICES = [
        ('max_hours_per_day', 'Max Hours Per Day'),
        ('max_hours_per_week', 'Max Hours Per Week'),
        ('max_concurrent_runs', 'Max Concurrent Runs'),
        ('max_runs_per_day', 'Max Runs Per Day'),
        ('min_time_between_runs', 'Min Time Between Runs'),
        ('max_proof_gallons_per_run', 'Max Proof Gallons Per Run'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='capacity_constraints')
    equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, null=True, blank=True, related_name='constraints',
                                  help_text='Empty for a facility-wide constraint')
    constraint_type = models.CharField(max_length=30, choices=CONSTRAINT_TYPE_CHOICES)
    constraint_value = models.DecimalField(max_digits=12, decimal_places=2)
    effective_from = models.DateField()
    effective_until = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'capacity_constraints'
        ordering = ['constraint_type']


class CapacitySnapshot(models.Model):
    """Daily utilization figures per equipment; the history behind forecasts"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='capacity_snapshots')
    equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, related_name='snapshots')
    snapshot_date = models.DateField()
    planned_hours = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    actual_hours = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    available_hours = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    utilization_percent = models.DecimalField(max_digits=6, decimal_places=2, default=0)
    proof_gallons_produced = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    batches_completed = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'capacity_snapshots'
        ordering = ['snapshot_date', 'equipment_id']
        unique_together = [['equipment', 'snapshot_date']]
        indexes = [
            models.Index(fields=['company', 'snapshot_date'], name='idx_cap_snapshot_company_date'),
        ]
