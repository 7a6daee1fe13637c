# Initial schema for TTB reports, transactions, snapshots, gauges, excise tax and the audit trail

import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

SPIRITS_TYPE_CHOICES = [
    ('under_190_proof', 'Under 190 Proof'),
    ('neutral_190_or_more', 'Neutral 190 or More'),
    ('wine', 'Wine'),
    ('alcohol', 'Alcohol'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='TtbMonthlyReport',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('report_month', models.PositiveSmallIntegerField()),
                ('report_year', models.PositiveSmallIntegerField()),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending_review', 'Pending Review'), ('approved', 'Approved'), ('submitted', 'Submitted'), ('archived', 'Archived')], default='draft', max_length=20)),
                ('form_type', models.CharField(choices=[('5110_28', 'Form 5110.28'), ('5110_40', 'Form 5110.40')], default='5110_28', max_length=10)),
                ('generated_at', models.DateTimeField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('ttb_confirmation_number', models.CharField(blank=True, max_length=100, null=True)),
                ('pdf_path', models.CharField(blank=True, max_length=500, null=True)),
                ('validation_errors', models.JSONField(blank=True, default=list)),
                ('validation_warnings', models.JSONField(blank=True, default=list)),
                ('report_data', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('submitted_for_review_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('review_notes', models.TextField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ttb_reports', to='core.company')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ttb_reports_created', to=settings.AUTH_USER_MODEL)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('submitted_for_review_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ttb_monthly_reports',
                'ordering': ['-report_year', '-report_month'],
                'unique_together': {('company', 'report_month', 'report_year', 'form_type')},
            },
        ),
        migrations.CreateModel(
            name='TtbTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_date', models.DateField()),
                ('transaction_type', models.CharField(choices=[('production', 'Production'), ('transfer_in', 'Transfer In'), ('transfer_out', 'Transfer Out'), ('loss', 'Loss'), ('gain', 'Gain'), ('destruction', 'Destruction'), ('bottling', 'Bottling'), ('tax_determination', 'Tax Determination')], max_length=30)),
                ('product_type', models.CharField(max_length=200)),
                ('spirits_type', models.CharField(choices=SPIRITS_TYPE_CHOICES, max_length=30)),
                ('proof_gallons', models.DecimalField(decimal_places=2, max_digits=14)),
                ('wine_gallons', models.DecimalField(decimal_places=2, max_digits=14)),
                ('source_entity_type', models.CharField(blank=True, max_length=50, null=True)),
                ('source_entity_id', models.IntegerField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ttb_transactions', to='core.company')),
            ],
            options={
                'db_table': 'ttb_transactions',
                'ordering': ['-transaction_date', '-id'],
                'indexes': [
                    models.Index(fields=['company', 'transaction_date'], name='idx_ttb_txn_company_date'),
                    models.Index(fields=['source_entity_type', 'source_entity_id'], name='idx_ttb_txn_source'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TtbInventorySnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('snapshot_date', models.DateField()),
                ('product_type', models.CharField(max_length=200)),
                ('spirits_type', models.CharField(choices=SPIRITS_TYPE_CHOICES, max_length=30)),
                ('proof_gallons', models.DecimalField(decimal_places=2, max_digits=14)),
                ('wine_gallons', models.DecimalField(decimal_places=2, max_digits=14)),
                ('tax_status', models.CharField(choices=[('bonded', 'Bonded'), ('tax_paid', 'Tax Paid'), ('export', 'Export'), ('tax_free', 'Tax Free')], default='bonded', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ttb_snapshots', to='core.company')),
            ],
            options={
                'db_table': 'ttb_inventory_snapshots',
                'ordering': ['-snapshot_date', 'product_type'],
                'indexes': [models.Index(fields=['company', 'snapshot_date'], name='idx_ttb_snapshot_date')],
            },
        ),
        migrations.CreateModel(
            name='TtbGaugeRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('gauge_date', models.DateTimeField()),
                ('gauge_type', models.CharField(choices=[('entry', 'Entry'), ('removal', 'Removal'), ('inventory', 'Inventory'), ('other', 'Other')], max_length=20)),
                ('proof', models.DecimalField(decimal_places=2, max_digits=6)),
                ('temperature', models.DecimalField(decimal_places=2, max_digits=6)),
                ('wine_gallons', models.DecimalField(decimal_places=2, max_digits=10)),
                ('proof_gallons', models.DecimalField(decimal_places=2, max_digits=10)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('barrel', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='gauge_records', to='inventory.barrel')),
                ('gauged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='gauge_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ttb_gauge_records',
                'ordering': ['-gauge_date'],
                'indexes': [models.Index(fields=['barrel', 'gauge_date'], name='idx_gauge_barrel_date')],
            },
        ),
        migrations.CreateModel(
            name='TtbTaxDetermination',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('proof_gallons', models.DecimalField(decimal_places=2, max_digits=14)),
                ('tax_rate', models.DecimalField(decimal_places=2, max_digits=8)),
                ('tax_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('determination_date', models.DateTimeField()),
                ('paid_date', models.DateTimeField(blank=True, null=True)),
                ('payment_reference', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tax_determinations', to='core.company')),
                ('order', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='tax_determination', to='inventory.order')),
            ],
            options={
                'db_table': 'ttb_tax_determinations',
                'ordering': ['-determination_date'],
            },
        ),
        migrations.CreateModel(
            name='TtbAuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(max_length=50)),
                ('entity_id', models.IntegerField()),
                ('action', models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete')], max_length=10)),
                ('change_timestamp', models.DateTimeField(auto_now_add=True)),
                ('old_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('new_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500, null=True)),
                ('change_description', models.TextField(blank=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ttb_audit_logs', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ttb_audit_logs', to='core.company')),
            ],
            options={
                'db_table': 'ttb_audit_logs',
                'ordering': ['-change_timestamp'],
                'indexes': [
                    models.Index(fields=['company', '-change_timestamp'], name='idx_ttb_audit_company_ts'),
                    models.Index(fields=['entity_type', 'entity_id'], name='idx_ttb_audit_entity'),
                ],
            },
        ),
    ]
