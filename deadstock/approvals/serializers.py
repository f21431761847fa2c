from rest_framework import serializers

from deadstock.assets.models import Asset
from deadstock.core.serializers import UserSummarySerializer
from .models import Approval

ASSET_REQUIRED_TYPES = (Approval.TYPE_REPAIR, Approval.TYPE_UPGRADE, Approval.TYPE_SCRAP, Approval.TYPE_TRANSFER)


class ApprovalSerializer(serializers.ModelSerializer):
    requested_by_detail = UserSummarySerializer(source='requested_by', read_only=True)
    approver_detail = UserSummarySerializer(source='approver', read_only=True)
    asset_code = serializers.CharField(source='asset.unique_asset_id', read_only=True, default=None)
    asset_name = serializers.CharField(source='asset.name', read_only=True, default=None)

    class Meta:
        model = Approval
        fields = ['id', 'request_type', 'asset', 'asset_code', 'asset_name', 'requested_by',
                  'requested_by_detail', 'approver', 'approver_detail', 'status', 'priority',
                  'request_data', 'comments', 'approved_at', 'created_at', 'updated_at']
        read_only_fields = ['requested_by', 'approver', 'status', 'approved_at', 'created_at', 'updated_at']

    def validate_request_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Request data must be an object.')
        cost = value.get('estimated_cost')
        if cost is not None:
            try:
                if float(cost) < 0:
                    raise serializers.ValidationError('Estimated cost cannot be negative.')
            except (TypeError, ValueError):
                raise serializers.ValidationError('Estimated cost must be a number.')
        return value

    def validate(self, attrs):
        request_type = attrs.get('request_type', getattr(self.instance, 'request_type', None))
        asset = attrs.get('asset', getattr(self.instance, 'asset', None))
        if request_type in ASSET_REQUIRED_TYPES and asset is None:
            raise serializers.ValidationError({'asset': f'{request_type} requests must reference an asset.'})
        if asset is not None and asset.status == Asset.STATUS_DISPOSED:
            raise serializers.ValidationError({'asset': 'This asset has been disposed.'})
        return attrs


class ApprovalDecisionSerializer(serializers.Serializer):
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)
