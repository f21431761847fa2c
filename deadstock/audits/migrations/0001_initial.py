import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('assets', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ScheduledAudit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('recurrence_type', models.CharField(choices=[('once', 'Once'), ('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('quarterly', 'Quarterly'), ('yearly', 'Yearly')], max_length=10)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField(blank=True, null=True)),
                ('next_run_date', models.DateField(blank=True, null=True)),
                ('last_run_date', models.DateTimeField(blank=True, null=True)),
                ('audit_type', models.CharField(choices=[('full', 'Full'), ('partial', 'Partial'), ('spot_check', 'Spot Check'), ('condition', 'Condition'), ('location', 'Location')], default='full', max_length=20)),
                ('scope_type', models.CharField(choices=[('all', 'All Assets'), ('department', 'Department'), ('location', 'Location'), ('category', 'Category'), ('custom_filter', 'Custom Filter')], max_length=20)),
                ('scope_config', models.JSONField(blank=True, default=dict)),
                ('auto_assign', models.BooleanField(default=True)),
                ('reminder_enabled', models.BooleanField(default=True)),
                ('reminder_days_before', models.PositiveIntegerField(default=1)),
                ('reminder_send_email', models.BooleanField(default=True)),
                ('reminder_send_notification', models.BooleanField(default=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('paused', 'Paused'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='active', max_length=10)),
                ('total_runs', models.PositiveIntegerField(default=0)),
                ('completed_runs', models.PositiveIntegerField(default=0)),
                ('failed_runs', models.PositiveIntegerField(default=0)),
                ('checklist_items', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_auditors', models.ManyToManyField(blank=True, related_name='scheduled_audits', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='scheduled_audits_created', to=settings.AUTH_USER_MODEL)),
                ('notification_recipients', models.ManyToManyField(blank=True, related_name='audit_notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'scheduled_audits',
                'ordering': ['next_run_date', 'name'],
                'indexes': [
                    models.Index(fields=['status', 'next_run_date'], name='idx_sched_audit_due'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ScheduledAuditRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('run_date', models.DateTimeField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], default='pending', max_length=15)),
                ('total_assets', models.PositiveIntegerField(default=0)),
                ('assets_found', models.PositiveIntegerField(default=0)),
                ('assets_not_found', models.PositiveIntegerField(default=0)),
                ('assets_damaged', models.PositiveIntegerField(default=0)),
                ('assets_missing', models.PositiveIntegerField(default=0)),
                ('completion_percentage', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('summary_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assets_to_audit', models.ManyToManyField(blank=True, related_name='scheduled_audit_runs', to='assets.asset')),
                ('assigned_auditors', models.ManyToManyField(blank=True, related_name='audit_runs_assigned', to=settings.AUTH_USER_MODEL)),
                ('scheduled_audit', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='runs', to='audits.scheduledaudit')),
            ],
            options={
                'db_table': 'scheduled_audit_runs',
                'ordering': ['-run_date'],
                'indexes': [
                    models.Index(fields=['scheduled_audit', 'status'], name='idx_audit_run_status'),
                    models.Index(fields=['-run_date'], name='idx_audit_run_date'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditRunEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('audited_at', models.DateTimeField(auto_now_add=True)),
                ('status', models.CharField(choices=[('found', 'Found'), ('not_found', 'Not Found'), ('damaged', 'Damaged'), ('missing', 'Missing')], max_length=10)),
                ('condition', models.CharField(blank=True, choices=[('excellent', 'Excellent'), ('good', 'Good'), ('fair', 'Fair'), ('poor', 'Poor'), ('damaged', 'Damaged')], max_length=10)),
                ('location', models.CharField(blank=True, max_length=150)),
                ('notes', models.TextField(blank=True)),
                ('checklist_responses', models.JSONField(blank=True, default=list)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_entries', to='assets.asset')),
                ('audited_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_entries', to=settings.AUTH_USER_MODEL)),
                ('run', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='audits.scheduledauditrun')),
            ],
            options={
                'db_table': 'audit_run_entries',
                'ordering': ['audited_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('run', 'asset'), name='uniq_audit_entry_per_run'),
                ],
            },
        ),
    ]
