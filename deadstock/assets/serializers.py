from django.utils import timezone
from rest_framework import serializers

from deadstock.core.models import User
from deadstock.core.serializers import UserSummarySerializer
from deadstock.maintenance.models import Maintenance
from deadstock.vendors.models import Vendor
from .models import Asset, AssetCategory, AssetTransfer, TransferEvent, DisposalRecord


class AssetCategorySerializer(serializers.ModelSerializer):
    asset_count = serializers.SerializerMethodField()
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = AssetCategory
        fields = ['id', 'name', 'description', 'color', 'icon', 'active', 'depreciation_rate',
                  'typical_lifespan_years', 'maintenance_schedule', 'asset_count',
                  'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_asset_count(self, obj):
        # annotated by the list view, counted per row otherwise
        count = getattr(obj, 'num_assets', None)
        return count if count is not None else obj.asset_count()

    def validate_name(self, value):
        value = value.strip()
        queryset = AssetCategory.objects.filter(name__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A category with this name already exists.')
        return value

    def validate_depreciation_rate(self, value):
        if value > 100:
            raise serializers.ValidationError('Depreciation rate cannot exceed 100 percent.')
        return value


class AssetListSerializer(serializers.ModelSerializer):
    """Compact row for tables and search results"""
    name = serializers.CharField(read_only=True)
    assigned_user_name = serializers.CharField(source='assigned_user.name', read_only=True, default=None)
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True, default=None)

    class Meta:
        model = Asset
        fields = ['id', 'unique_asset_id', 'name', 'manufacturer', 'model', 'serial_number', 'asset_type',
                  'location', 'department', 'status', 'condition', 'assigned_user', 'assigned_user_name',
                  'vendor', 'vendor_name', 'purchase_date', 'purchase_cost', 'warranty_expiry', 'updated_at']


class AssetSerializer(serializers.ModelSerializer):
    unique_asset_id = serializers.CharField(max_length=50, required=False, allow_blank=True)
    name = serializers.CharField(read_only=True)
    age_years = serializers.FloatField(read_only=True)
    current_value = serializers.SerializerMethodField()
    is_dead_stock = serializers.BooleanField(read_only=True)
    assigned_user_detail = UserSummarySerializer(source='assigned_user', read_only=True)
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True, default=None)

    class Meta:
        model = Asset
        fields = ['id', 'unique_asset_id', 'name', 'manufacturer', 'model', 'serial_number', 'asset_type',
                  'location', 'department', 'assigned_user', 'assigned_user_detail', 'vendor', 'vendor_name',
                  'status', 'condition', 'purchase_date', 'purchase_cost', 'current_value', 'age_years',
                  'warranty_expiry', 'last_audit_date', 'last_maintenance_date', 'dead_stock_since',
                  'is_dead_stock', 'configuration', 'expected_lifespan', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['last_audit_date', 'dead_stock_since', 'created_at', 'updated_at']

    def get_current_value(self, obj):
        value = obj.current_value()
        return float(value) if value is not None else None

    def validate_unique_asset_id(self, value):
        value = (value or '').strip().upper()
        if value:
            queryset = Asset.objects.filter(unique_asset_id=value)
            if self.instance is not None:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('An asset with this ID already exists.')
        elif self.instance is not None:
            # keep the generated ID when a client clears the field
            return self.instance.unique_asset_id
        return value

    def validate_asset_type(self, value):
        value = value.strip()
        category = AssetCategory.objects.filter(name__iexact=value).first()
        if category is None:
            raise serializers.ValidationError(f'Unknown asset category "{value}".')
        unchanged = self.instance is not None and self.instance.asset_type.lower() == value.lower()
        if not category.active and not unchanged:
            raise serializers.ValidationError(f'Asset category "{category.name}" is inactive.')
        return category.name

    def validate_assigned_user(self, value):
        if value is not None and not value.is_active:
            raise serializers.ValidationError('Cannot assign an asset to an inactive user.')
        return value

    def validate_purchase_date(self, value):
        if value and value > timezone.localdate():
            raise serializers.ValidationError('Purchase date cannot be in the future.')
        return value

    def validate_configuration(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Configuration must be an object.')
        return value

    def validate(self, attrs):
        purchase_date = attrs.get('purchase_date', getattr(self.instance, 'purchase_date', None))
        warranty_expiry = attrs.get('warranty_expiry', getattr(self.instance, 'warranty_expiry', None))
        if purchase_date and warranty_expiry and warranty_expiry < purchase_date:
            raise serializers.ValidationError({'warranty_expiry': 'Warranty expiry cannot precede the purchase date.'})
        if attrs.get('status') == Asset.STATUS_DISPOSED and (self.instance is None or not self.instance.status == Asset.STATUS_DISPOSED):
            raise serializers.ValidationError({'status': 'Assets are disposed through a disposal record.'})
        return attrs


class AssignAssetSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    location = serializers.CharField(max_length=150, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


class ReportIssueSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=1000)
    priority = serializers.ChoiceField(choices=['Low', 'Medium', 'High', 'Urgent'], default='Medium')
    estimated_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)


class TransferEventSerializer(serializers.ModelSerializer):
    performed_by_name = serializers.CharField(source='performed_by.name', read_only=True, default=None)

    class Meta:
        model = TransferEvent
        fields = ['id', 'action', 'performed_by', 'performed_by_name', 'comments', 'timestamp']


class AssetTransferSerializer(serializers.ModelSerializer):
    asset_detail = AssetListSerializer(source='asset', read_only=True)
    from_user_detail = UserSummarySerializer(source='from_user', read_only=True)
    to_user_detail = UserSummarySerializer(source='to_user', read_only=True)
    initiated_by_detail = UserSummarySerializer(source='initiated_by', read_only=True)
    approved_by_detail = UserSummarySerializer(source='approved_by', read_only=True)
    history = TransferEventSerializer(many=True, read_only=True)
    to_location = serializers.CharField(max_length=150, required=False, allow_blank=True)

    class Meta:
        model = AssetTransfer
        fields = ['id', 'transfer_id', 'asset', 'asset_detail', 'from_user', 'from_user_detail',
                  'to_user', 'to_user_detail', 'from_location', 'to_location',
                  'initiated_by', 'initiated_by_detail', 'transfer_reason', 'description', 'status',
                  'priority', 'approved_by', 'approved_by_detail', 'approved_at', 'rejection_reason',
                  'expected_transfer_date', 'actual_transfer_date', 'completion_date', 'handover_notes',
                  'history', 'created_at', 'updated_at']
        read_only_fields = ['transfer_id', 'from_user', 'from_location', 'initiated_by', 'status',
                            'approved_by', 'approved_at', 'rejection_reason', 'actual_transfer_date',
                            'completion_date', 'created_at', 'updated_at']

    def validate_asset(self, value):
        if value.status == Asset.STATUS_DISPOSED:
            raise serializers.ValidationError('Disposed assets cannot be transferred.')
        if value.transfers.filter(status__in=AssetTransfer.OPEN_STATUSES).exists():
            raise serializers.ValidationError('This asset already has an open transfer.')
        return value

    def validate_to_user(self, value):
        if value is not None and not value.is_active:
            raise serializers.ValidationError('Cannot transfer to an inactive user.')
        return value

    def validate_expected_transfer_date(self, value):
        if self.instance is None and value < timezone.localdate():
            raise serializers.ValidationError('Expected transfer date cannot be in the past.')
        return value

    def validate(self, attrs):
        asset = attrs.get('asset')
        to_user = attrs.get('to_user')
        to_location = (attrs.get('to_location') or '').strip() or asset.location
        if to_user == asset.assigned_user and to_location == asset.location:
            raise serializers.ValidationError('Transfer must change the assigned user or the location.')
        attrs['to_location'] = to_location
        return attrs

    def create(self, validated_data):
        asset = validated_data['asset']
        validated_data['from_user'] = asset.assigned_user
        validated_data['from_location'] = asset.location
        return super().create(validated_data)


class TransferStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in AssetTransfer.STATUS_CHOICES])
    comments = serializers.CharField(max_length=500, required=False, allow_blank=True)
    rejection_reason = serializers.CharField(max_length=500, required=False, allow_blank=True)
    handover_notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['status'] == 'rejected' and not attrs.get('rejection_reason'):
            raise serializers.ValidationError({'rejection_reason': 'A reason is required to reject a transfer.'})
        return attrs


class DisposalRecordSerializer(serializers.ModelSerializer):
    asset_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    asset_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True)
    document_reference = serializers.CharField(max_length=50, required=False, allow_blank=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = DisposalRecord
        fields = ['id', 'asset', 'asset_code', 'asset_name', 'category', 'disposal_date', 'disposal_method',
                  'disposal_value', 'approved_by', 'document_reference', 'status', 'remarks',
                  'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_asset(self, value):
        if value is None:
            return value
        changing = self.instance is None or self.instance.asset_id != value.pk
        if changing and value.status == Asset.STATUS_DISPOSED:
            raise serializers.ValidationError('This asset has already been disposed.')
        if changing and value.disposal_records.exclude(status='cancelled').exists():
            raise serializers.ValidationError('This asset already has a disposal record.')
        return value

    def validate(self, attrs):
        asset = attrs.get('asset', getattr(self.instance, 'asset', None))
        code = attrs.get('asset_code', getattr(self.instance, 'asset_code', ''))
        if asset is None and not code:
            raise serializers.ValidationError({'asset': 'Provide an asset or an asset code.'})
        if self.instance is not None and self.instance.status in ('completed', 'cancelled'):
            raise serializers.ValidationError(f'A {self.instance.status} disposal record cannot be changed.')
        return attrs


# Bulk operations and scanning
ASSIGNABLE_STATUS_CHOICES = [value for value, _ in Asset.STATUS_CHOICES if value != Asset.STATUS_DISPOSED]


class BulkAssetSerializer(serializers.Serializer):
    asset_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class BulkStatusSerializer(BulkAssetSerializer):
    status = serializers.ChoiceField(choices=ASSIGNABLE_STATUS_CHOICES)


class BulkAssignSerializer(BulkAssetSerializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    department = serializers.CharField(max_length=50, required=False, allow_blank=True)
    force = serializers.BooleanField(default=False)


class BulkLocationSerializer(BulkAssetSerializer):
    location = serializers.CharField(max_length=150)


class BulkConditionSerializer(BulkAssetSerializer):
    condition = serializers.ChoiceField(choices=Asset.CONDITION_CHOICES)


class BulkMaintenanceSerializer(BulkAssetSerializer):
    maintenance_type = serializers.ChoiceField(choices=Maintenance.TYPE_CHOICES)
    maintenance_date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(choices=Maintenance.PRIORITY_CHOICES, default='Medium')
    performed_by = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    vendor = serializers.PrimaryKeyRelatedField(queryset=Vendor.objects.filter(is_active=True),
                                                required=False, allow_null=True, default=None)
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)


class BulkDeleteSerializer(BulkAssetSerializer):
    reason = serializers.CharField(max_length=500)
    permanent = serializers.BooleanField(default=False)
    force = serializers.BooleanField(default=False)


class BulkValidateSerializer(serializers.Serializer):
    asset_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    operation = serializers.ChoiceField(choices=['update_status', 'assign', 'update_location', 'update_condition',
                                                 'schedule_maintenance', 'delete'])


class BatchScanSerializer(serializers.Serializer):
    codes = serializers.ListField(child=serializers.CharField(max_length=100), allow_empty=False, max_length=100)
    mode = serializers.ChoiceField(choices=['lookup', 'audit', 'checkout'], default='lookup')


class QuickAuditSerializer(serializers.Serializer):
    condition = serializers.ChoiceField(choices=Asset.CONDITION_CHOICES, required=False)
    status = serializers.ChoiceField(choices=ASSIGNABLE_STATUS_CHOICES, required=False)
    location = serializers.CharField(max_length=150, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
