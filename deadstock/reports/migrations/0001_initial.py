import deadstock.reports.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ReportTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('template_id', models.CharField(blank=True, max_length=20, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(choices=[('Inventory', 'Inventory'), ('Analytics', 'Analytics'), ('Financial', 'Financial'), ('Vendor', 'Vendor'), ('Compliance', 'Compliance'), ('Tracking', 'Tracking'), ('System', 'System')], max_length=20)),
                ('frequency', models.CharField(choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('quarterly', 'Quarterly'), ('yearly', 'Yearly'), ('on-demand', 'On Demand')], default='on-demand', max_length=10)),
                ('type', models.CharField(choices=[('summary', 'Summary'), ('detailed', 'Detailed'), ('analytics', 'Analytics'), ('compliance', 'Compliance')], default='summary', max_length=20)),
                ('kind', models.CharField(choices=[('asset_inventory', 'Asset Inventory'), ('asset_utilization', 'Asset Utilization'), ('maintenance_cost', 'Maintenance Cost'), ('vendor_performance', 'Vendor Performance'), ('depreciation', 'Depreciation'), ('audit_compliance', 'Audit Compliance'), ('asset_movement', 'Asset Movement'), ('disposal', 'Disposal'), ('user_activity', 'User Activity')], max_length=30)),
                ('parameters', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('archived', 'Archived')], default='active', max_length=10)),
                ('formats', models.JSONField(blank=True, default=list)),
                ('is_scheduled', models.BooleanField(default=False)),
                ('last_generated', models.DateTimeField(blank=True, null=True)),
                ('generation_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='report_templates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'report_templates',
                'ordering': ['template_id'],
            },
        ),
        migrations.CreateModel(
            name='GeneratedReport',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('report_id', models.CharField(default=deadstock.reports.models.generate_report_id, max_length=30, unique=True)),
                ('report_name', models.CharField(max_length=200)),
                ('category', models.CharField(blank=True, max_length=20)),
                ('generated_at', models.DateTimeField(auto_now_add=True)),
                ('status', models.CharField(choices=[('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], default='processing', max_length=12)),
                ('format', models.CharField(choices=[('PDF', 'PDF'), ('CSV', 'CSV'), ('JSON', 'JSON')], max_length=4)),
                ('file', models.FileField(blank=True, upload_to=deadstock.reports.models.report_upload_to)),
                ('file_size', models.PositiveIntegerField(default=0)),
                ('download_count', models.PositiveIntegerField(default=0)),
                ('last_downloaded', models.DateTimeField(blank=True, null=True)),
                ('parameters', models.JSONField(blank=True, default=dict)),
                ('error_message', models.TextField(blank=True)),
                ('total_records', models.PositiveIntegerField(default=0)),
                ('date_from', models.DateField(blank=True, null=True)),
                ('date_to', models.DateField(blank=True, null=True)),
                ('generated_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_reports', to=settings.AUTH_USER_MODEL)),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_reports', to='reports.reporttemplate')),
            ],
            options={
                'db_table': 'generated_reports',
                'ordering': ['-generated_at'],
                'indexes': [
                    models.Index(fields=['status', 'category'], name='idx_report_status_category'),
                    models.Index(fields=['generated_by', '-generated_at'], name='idx_report_user'),
                ],
            },
        ),
    ]
