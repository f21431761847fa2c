from rest_framework import serializers

from deadstock.assets.models import Asset
from deadstock.core.models import User
from deadstock.core.serializers import UserSummarySerializer
from .models import ScheduledAudit, ScheduledAuditRun, AuditRunEntry
from .services import CUSTOM_FILTER_FIELDS, SCOPE_FIELDS, calculate_next_run_date


class ScheduledAuditSerializer(serializers.ModelSerializer):
    assigned_auditors = serializers.PrimaryKeyRelatedField(
        many=True, required=False, queryset=User.objects.filter(is_active=True)
    )
    notification_recipients = serializers.PrimaryKeyRelatedField(
        many=True, required=False, queryset=User.objects.filter(is_active=True)
    )
    assigned_auditors_detail = UserSummarySerializer(source='assigned_auditors', many=True, read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = ScheduledAudit
        fields = ['id', 'name', 'description', 'recurrence_type', 'start_date', 'end_date', 'next_run_date',
                  'last_run_date', 'audit_type', 'scope_type', 'scope_config', 'assigned_auditors',
                  'assigned_auditors_detail', 'notification_recipients', 'auto_assign', 'reminder_enabled',
                  'reminder_days_before', 'reminder_send_email', 'reminder_send_notification', 'status',
                  'total_runs', 'completed_runs', 'failed_runs', 'checklist_items', 'created_by',
                  'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['next_run_date', 'last_run_date', 'status', 'total_runs', 'completed_runs',
                            'failed_runs', 'created_by', 'created_at', 'updated_at']

    def validate_scope_config(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Scope config must be an object.')
        return value

    def validate_checklist_items(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Checklist items must be a list.')
        cleaned = []
        for index, item in enumerate(value):
            if not isinstance(item, dict) or not str(item.get('item', '')).strip():
                raise serializers.ValidationError(f'Checklist item {index + 1} needs an "item" text.')
            cleaned.append({
                'item': str(item['item']).strip(),
                'is_required': bool(item.get('is_required', False)),
                'order': item.get('order', index + 1),
            })
        return sorted(cleaned, key=lambda entry: entry['order'])

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date.'})

        scope_type = attrs.get('scope_type', getattr(self.instance, 'scope_type', None))
        scope_config = attrs.get('scope_config', getattr(self.instance, 'scope_config', None)) or {}
        if scope_type in SCOPE_FIELDS and not scope_config.get(scope_type):
            raise serializers.ValidationError({'scope_config': f'A {scope_type} scope needs "{scope_type}" set.'})
        if scope_type == 'custom_filter':
            unknown = sorted(set(scope_config) - set(CUSTOM_FILTER_FIELDS))
            if unknown:
                raise serializers.ValidationError(
                    {'scope_config': f"Unsupported filter fields: {', '.join(unknown)}."}
                )
        return attrs

    def create(self, validated_data):
        validated_data['next_run_date'] = validated_data['start_date']
        return super().create(validated_data)

    def update(self, instance, validated_data):
        reschedule = any(
            field in validated_data and validated_data[field] != getattr(instance, field)
            for field in ('recurrence_type', 'start_date')
        )
        instance = super().update(instance, validated_data)
        if reschedule and instance.status in (ScheduledAudit.STATUS_ACTIVE, ScheduledAudit.STATUS_PAUSED):
            if instance.last_run_date:
                instance.next_run_date = calculate_next_run_date(
                    instance.start_date, instance.recurrence_type, last_run=instance.last_run_date
                )
            else:
                instance.next_run_date = instance.start_date
            instance.save(update_fields=['next_run_date', 'updated_at'])
        return instance


class AuditRunEntrySerializer(serializers.ModelSerializer):
    asset_code = serializers.CharField(source='asset.unique_asset_id', read_only=True)
    audited_by_name = serializers.CharField(source='audited_by.name', read_only=True, default=None)

    class Meta:
        model = AuditRunEntry
        fields = ['id', 'asset', 'asset_code', 'audited_at', 'audited_by', 'audited_by_name', 'status',
                  'condition', 'location', 'notes', 'checklist_responses']


class ScheduledAuditRunSerializer(serializers.ModelSerializer):
    audit_name = serializers.CharField(source='scheduled_audit.name', read_only=True)
    audited_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = ScheduledAuditRun
        fields = ['id', 'scheduled_audit', 'audit_name', 'run_date', 'status', 'total_assets', 'audited_count',
                  'assets_found', 'assets_not_found', 'assets_damaged', 'assets_missing',
                  'completion_percentage', 'assigned_auditors', 'started_at', 'completed_at', 'summary_notes']


class ScheduledAuditRunDetailSerializer(ScheduledAuditRunSerializer):
    assigned_auditors_detail = UserSummarySerializer(source='assigned_auditors', many=True, read_only=True)
    entries = AuditRunEntrySerializer(many=True, read_only=True)
    pending_assets = serializers.SerializerMethodField()

    class Meta(ScheduledAuditRunSerializer.Meta):
        fields = ScheduledAuditRunSerializer.Meta.fields + ['assigned_auditors_detail', 'entries', 'pending_assets']

    def get_pending_assets(self, obj):
        audited = obj.entries.values_list('asset_id', flat=True)
        pending = obj.assets_to_audit.exclude(pk__in=audited).order_by('unique_asset_id')
        return [
            {'id': asset.pk, 'unique_asset_id': asset.unique_asset_id, 'name': asset.name,
             'location': asset.location, 'condition': asset.condition}
            for asset in pending
        ]


class AuditProgressSerializer(serializers.Serializer):
    asset = serializers.PrimaryKeyRelatedField(queryset=Asset.objects.all())
    status = serializers.ChoiceField(choices=AuditRunEntry.STATUS_CHOICES)
    condition = serializers.ChoiceField(choices=Asset.CONDITION_CHOICES, required=False, allow_blank=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=150)
    notes = serializers.CharField(required=False, allow_blank=True)
    checklist_responses = serializers.ListField(child=serializers.DictField(), required=False)
