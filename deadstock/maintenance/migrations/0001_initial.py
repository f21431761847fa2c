import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('assets', '0001_initial'),
        ('vendors', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Maintenance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('maintenance_type', models.CharField(choices=[('Preventive', 'Preventive'), ('Corrective', 'Corrective'), ('Predictive', 'Predictive'), ('Emergency', 'Emergency'), ('Inspection', 'Inspection'), ('Calibration', 'Calibration'), ('Cleaning', 'Cleaning')], max_length=20)),
                ('description', models.TextField(blank=True)),
                ('cost', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('maintenance_date', models.DateField()),
                ('next_maintenance_date', models.DateField(blank=True, null=True)),
                ('performed_by', models.CharField(blank=True, max_length=150)),
                ('priority', models.CharField(choices=[('Low', 'Low'), ('Medium', 'Medium'), ('High', 'High'), ('Critical', 'Critical')], default='Medium', max_length=10)),
                ('status', models.CharField(choices=[('Scheduled', 'Scheduled'), ('In Progress', 'In Progress'), ('Completed', 'Completed'), ('Overdue', 'Overdue'), ('Cancelled', 'Cancelled')], default='Scheduled', max_length=20)),
                ('estimated_duration', models.DecimalField(decimal_places=2, default=2, help_text='Hours', max_digits=6, validators=[django.core.validators.MinValueValidator(0)])),
                ('actual_duration', models.DecimalField(blank=True, decimal_places=2, help_text='Hours', max_digits=6, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('downtime_impact', models.CharField(choices=[('Low', 'Low'), ('Medium', 'Medium'), ('High', 'High')], default='Low', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='maintenance_records', to='assets.asset')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='maintenance_created', to=settings.AUTH_USER_MODEL)),
                ('vendor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='maintenance_records', to='vendors.vendor')),
            ],
            options={
                'db_table': 'maintenance',
                'ordering': ['-maintenance_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'maintenance_date'], name='idx_maint_status_date'),
                    models.Index(fields=['asset', 'status'], name='idx_maint_asset_status'),
                ],
            },
        ),
    ]
