import deadstock.assets.models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('vendors', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='AssetCategory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
                ('description', models.TextField(blank=True)),
                ('color', models.CharField(default='#1976d2', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a valid hex color code (#RGB or #RRGGBB).', regex='^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')])),
                ('icon', models.CharField(default='Inventory', max_length=50)),
                ('active', models.BooleanField(default=True)),
                ('depreciation_rate', models.DecimalField(decimal_places=2, default=0, help_text='Percent of purchase cost lost per year (0 = default rate)', max_digits=5, validators=[django.core.validators.MinValueValidator(0)])),
                ('typical_lifespan_years', models.PositiveIntegerField(default=5)),
                ('maintenance_schedule', models.CharField(choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('quarterly', 'Quarterly'), ('yearly', 'Yearly'), ('none', 'None')], default='none', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='asset_categories', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'asset_categories',
                'ordering': ['name'],
                'verbose_name_plural': 'asset categories',
            },
        ),
        migrations.CreateModel(
            name='Asset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('unique_asset_id', models.CharField(blank=True, max_length=50, unique=True)),
                ('manufacturer', models.CharField(max_length=100)),
                ('model', models.CharField(max_length=100)),
                ('serial_number', models.CharField(max_length=100)),
                ('asset_type', models.CharField(max_length=100)),
                ('location', models.CharField(max_length=150)),
                ('department', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('Active', 'Active'), ('Under Maintenance', 'Under Maintenance'), ('Available', 'Available'), ('Damaged', 'Damaged'), ('Ready for Scrap', 'Ready for Scrap'), ('Disposed', 'Disposed')], default='Available', max_length=20)),
                ('condition', models.CharField(choices=[('excellent', 'Excellent'), ('good', 'Good'), ('fair', 'Fair'), ('poor', 'Poor'), ('damaged', 'Damaged')], default='good', max_length=10)),
                ('purchase_date', models.DateField(blank=True, null=True)),
                ('purchase_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('warranty_expiry', models.DateField(blank=True, null=True)),
                ('last_audit_date', models.DateTimeField(blank=True, null=True)),
                ('last_maintenance_date', models.DateField(blank=True, null=True)),
                ('dead_stock_since', models.DateTimeField(blank=True, null=True)),
                ('configuration', models.JSONField(blank=True, default=dict)),
                ('expected_lifespan', models.PositiveIntegerField(blank=True, help_text='Years', null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_assets', to=settings.AUTH_USER_MODEL)),
                ('vendor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assets', to='vendors.vendor')),
            ],
            options={
                'db_table': 'assets',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_asset_status'),
                    models.Index(fields=['asset_type'], name='idx_asset_type'),
                    models.Index(fields=['location'], name='idx_asset_location'),
                    models.Index(fields=['assigned_user', 'status'], name='idx_asset_user_status'),
                    models.Index(fields=['warranty_expiry'], name='idx_asset_warranty'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AssetTransfer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transfer_id', models.CharField(default=deadstock.assets.models.generate_transfer_id, max_length=20, unique=True)),
                ('from_location', models.CharField(max_length=150)),
                ('to_location', models.CharField(max_length=150)),
                ('transfer_reason', models.CharField(choices=[('employee_relocation', 'Employee Relocation'), ('department_change', 'Department Change'), ('temporary_assignment', 'Temporary Assignment'), ('permanent_assignment', 'Permanent Assignment'), ('maintenance_transfer', 'Maintenance Transfer'), ('office_relocation', 'Office Relocation'), ('project_requirement', 'Project Requirement'), ('other', 'Other')], max_length=30)),
                ('description', models.CharField(max_length=500)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('in_transit', 'In Transit'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.CharField(blank=True, max_length=500)),
                ('expected_transfer_date', models.DateField()),
                ('actual_transfer_date', models.DateTimeField(blank=True, null=True)),
                ('completion_date', models.DateTimeField(blank=True, null=True)),
                ('handover_notes', models.CharField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transfers', to='assets.asset')),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transfers_approved', to=settings.AUTH_USER_MODEL)),
                ('from_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transfers_out', to=settings.AUTH_USER_MODEL)),
                ('initiated_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transfers_initiated', to=settings.AUTH_USER_MODEL)),
                ('to_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transfers_in', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'asset_transfers',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_transfer_status'),
                    models.Index(fields=['asset', 'status'], name='idx_transfer_asset_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransferEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=20)),
                ('comments', models.CharField(blank=True, max_length=500)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('performed_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('transfer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='assets.assettransfer')),
            ],
            options={
                'db_table': 'asset_transfer_events',
                'ordering': ['timestamp', 'id'],
            },
        ),
        migrations.CreateModel(
            name='DisposalRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('asset_code', models.CharField(max_length=50)),
                ('asset_name', models.CharField(max_length=200)),
                ('category', models.CharField(max_length=100)),
                ('disposal_date', models.DateField(default=django.utils.timezone.localdate)),
                ('disposal_method', models.CharField(choices=[('Auction', 'Auction'), ('Scrap', 'Scrap'), ('Donation', 'Donation'), ('Recycling', 'Recycling'), ('Sale', 'Sale'), ('Other', 'Other')], max_length=20)),
                ('disposal_value', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('approved_by', models.CharField(blank=True, default='SYSTEM', max_length=150)),
                ('document_reference', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('remarks', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('asset', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='disposal_records', to='assets.asset')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='disposal_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'disposal_records',
                'ordering': ['-disposal_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_disposal_status'),
                    models.Index(fields=['disposal_method'], name='idx_disposal_method'),
                    models.Index(fields=['-disposal_date'], name='idx_disposal_date'),
                ],
            },
        ),
    ]
