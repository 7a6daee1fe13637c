# Initial schema for equipment, production runs, bookings and capacity planning

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Equipment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('equipment_type', models.CharField(choices=[('still', 'Still'), ('fermenter', 'Fermenter'), ('mash_tun', 'Mash Tun'), ('bottling_line', 'Bottling Line'), ('labeler', 'Labeler'), ('tank', 'Tank'), ('other', 'Other')], default='other', max_length=20)),
                ('capacity', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('capacity_unit', models.CharField(blank=True, max_length=30)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='equipment', to='core.company')),
            ],
            options={
                'db_table': 'equipment',
                'ordering': ['name'],
                'verbose_name_plural': 'equipment',
            },
        ),
        migrations.CreateModel(
            name='ProductionRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('run_type', models.CharField(choices=[('mashing', 'Mashing'), ('fermentation', 'Fermentation'), ('distillation', 'Distillation'), ('barreling', 'Barreling'), ('bottling', 'Bottling'), ('other', 'Other')], default='other', max_length=20)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('scheduled_start', models.DateTimeField()),
                ('scheduled_end', models.DateTimeField()),
                ('is_maintenance', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_runs', to='inventory.batch')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_runs', to='core.company')),
            ],
            options={
                'db_table': 'production_runs',
                'ordering': ['scheduled_start'],
                'indexes': [models.Index(fields=['company', 'scheduled_start'], name='idx_run_company_start')],
            },
        ),
        migrations.CreateModel(
            name='EquipmentBooking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('tentative', 'Tentative'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], default='tentative', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('equipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to='capacity.equipment')),
                ('production_run', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bookings', to='capacity.productionrun')),
            ],
            options={
                'db_table': 'equipment_bookings',
                'ordering': ['start_time'],
                'indexes': [models.Index(fields=['equipment', 'start_time', 'end_time'], name='idx_booking_equipment_time')],
            },
        ),
        migrations.CreateModel(
            name='CapacityPlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, null=True)),
                ('plan_type', models.CharField(choices=[('weekly', 'Weekly'), ('monthly', 'Monthly'), ('quarterly', 'Quarterly'), ('annual', 'Annual')], default='monthly', max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('active', 'Active'), ('completed', 'Completed'), ('archived', 'Archived')], default='draft', max_length=20)),
                ('period_start', models.DateField()),
                ('period_end', models.DateField()),
                ('target_proof_gallons', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('target_bottles', models.PositiveIntegerField(blank=True, null=True)),
                ('target_batches', models.PositiveIntegerField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='capacity_plans', to='core.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='capacity_plans', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'capacity_plans',
                'ordering': ['-period_start'],
                'indexes': [models.Index(fields=['company', 'status'], name='idx_plan_company_status')],
            },
        ),
        migrations.CreateModel(
            name='CapacityAllocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('allocation_type', models.CharField(choices=[('production', 'Production'), ('maintenance', 'Maintenance'), ('buffer', 'Buffer'), ('reserved', 'Reserved')], default='production', max_length=20)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('hours_allocated', models.DecimalField(decimal_places=2, max_digits=10)),
                ('product_type', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('equipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='allocations', to='capacity.equipment')),
                ('plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='allocations', to='capacity.capacityplan')),
            ],
            options={
                'db_table': 'capacity_allocations',
                'ordering': ['start_date'],
            },
        ),
        migrations.CreateModel(
            name='CapacityConstraint',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('constraint_type', models.CharField(choices=[('max_hours_per_day', 'Max Hours Per Day'), ('max_hours_per_week', 'Max Hours Per Week'), ('max_concurrent_runs', 'Max Concurrent Runs'), ('max_runs_per_day', 'Max Runs Per Day'), ('min_time_between_runs', 'Min Time Between Runs'), ('max_proof_gallons_per_run', 'Max Proof Gallons Per Run')], max_length=30)),
                ('constraint_value', models.DecimalField(decimal_places=2, max_digits=12)),
                ('effective_from', models.DateField()),
                ('effective_until', models.DateField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='capacity_constraints', to='core.company')),
                ('equipment', models.ForeignKey(blank=True, help_text='Empty for a facility-wide constraint', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='constraints', to='capacity.equipment')),
            ],
            options={
                'db_table': 'capacity_constraints',
                'ordering': ['constraint_type'],
            },
        ),
        migrations.CreateModel(
            name='CapacitySnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('snapshot_date', models.DateField()),
                ('planned_hours', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('actual_hours', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('available_hours', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('utilization_percent', models.DecimalField(decimal_places=2, default=0, max_digits=6)),
                ('proof_gallons_produced', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('batches_completed', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='capacity_snapshots', to='core.company')),
                ('equipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='snapshots', to='capacity.equipment')),
            ],
            options={
                'db_table': 'capacity_snapshots',
                'ordering': ['snapshot_date', 'equipment_id'],
                'indexes': [models.Index(fields=['company', 'snapshot_date'], name='idx_cap_snapshot_company_date')],
                'unique_together': {('equipment', 'snapshot_date')},
            },
        ),
    ]
