from rest_framework import serializers

from deadstock.assets.models import Asset
from .models import Maintenance


class MaintenanceSerializer(serializers.ModelSerializer):
    asset_code = serializers.CharField(source='asset.unique_asset_id', read_only=True)
    asset_name = serializers.CharField(source='asset.name', read_only=True)
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True, default=None)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Maintenance
        fields = ['id', 'asset', 'asset_code', 'asset_name', 'maintenance_type', 'description', 'cost',
                  'vendor', 'vendor_name', 'maintenance_date', 'next_maintenance_date', 'performed_by',
                  'priority', 'status', 'estimated_duration', 'actual_duration', 'downtime_impact',
                  'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_asset(self, value):
        changing = self.instance is None or self.instance.asset_id != value.pk
        if changing and value.status == Asset.STATUS_DISPOSED:
            raise serializers.ValidationError('Cannot schedule maintenance for a disposed asset.')
        return value

    def validate(self, attrs):
        maintenance_date = attrs.get('maintenance_date', getattr(self.instance, 'maintenance_date', None))
        next_date = attrs.get('next_maintenance_date', getattr(self.instance, 'next_maintenance_date', None))
        if maintenance_date and next_date and next_date < maintenance_date:
            raise serializers.ValidationError(
                {'next_maintenance_date': 'Next maintenance date cannot be before the maintenance date.'}
            )
        return attrs
