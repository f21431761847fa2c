from rest_framework import serializers

from .models import FORMAT_CHOICES, GeneratedReport, ReportTemplate

FORMATS = [value for value, _ in FORMAT_CHOICES]


class ReportTemplateSerializer(serializers.ModelSerializer):
    template_id = serializers.CharField(max_length=20, required=False, allow_blank=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = ReportTemplate
        fields = ['id', 'template_id', 'name', 'description', 'category', 'frequency', 'type', 'kind',
                  'parameters', 'status', 'formats', 'is_scheduled', 'last_generated', 'generation_count',
                  'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['last_generated', 'generation_count', 'created_by', 'created_at', 'updated_at']

    def validate_template_id(self, value):
        value = (value or '').strip().upper()
        if value:
            queryset = ReportTemplate.objects.filter(template_id=value)
            if self.instance is not None:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('A template with this ID already exists.')
        elif self.instance is not None:
            return self.instance.template_id
        return value

    def validate_formats(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError('At least one format is required.')
        value = [str(item).upper() for item in value]
        unknown = sorted(set(value) - set(FORMATS))
        if unknown:
            raise serializers.ValidationError(f"Unsupported formats: {', '.join(unknown)}")
        return list(dict.fromkeys(value))

    def validate_parameters(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Parameters must be an object.')
        return value


class GeneratedReportSerializer(serializers.ModelSerializer):
    template_id = serializers.CharField(source='template.template_id', read_only=True, default=None)
    generated_by_name = serializers.CharField(source='generated_by.name', read_only=True, default=None)
    download_url = serializers.SerializerMethodField()

    class Meta:
        model = GeneratedReport
        fields = ['id', 'report_id', 'template', 'template_id', 'report_name', 'category',
                  'generated_by', 'generated_by_name', 'generated_at', 'status', 'format',
                  'file_size', 'download_count', 'last_downloaded', 'parameters', 'error_message',
                  'total_records', 'date_from', 'date_to', 'download_url']
        read_only_fields = fields

    def get_download_url(self, obj):
        if obj.status != 'completed':
            return None
        return f"/api/v1/reports/history/{obj.pk}/download/"


class GenerateReportSerializer(serializers.Serializer):
    """Template by primary key or template ID (RPT-001)"""
    template = serializers.CharField()
    format = serializers.CharField()
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)
    filters = serializers.DictField(required=False, default=dict)

    def validate_template(self, value):
        value = value.strip()
        lookup = {'pk': int(value)} if value.isdigit() else {'template_id': value.upper()}
        try:
            return ReportTemplate.objects.get(**lookup)
        except ReportTemplate.DoesNotExist:
            raise serializers.ValidationError('Report template not found.')

    def validate_format(self, value):
        value = value.upper()
        if value not in FORMATS:
            raise serializers.ValidationError(f"Format must be one of {', '.join(FORMATS)}.")
        return value

    def validate(self, attrs):
        template = attrs['template']
        if template.status != 'active':
            raise serializers.ValidationError({'template': 'Only active templates can be generated.'})
        if attrs['format'] not in template.formats:
            raise serializers.ValidationError(
                {'format': f"Template {template.template_id} supports {', '.join(template.formats)} only."}
            )
        date_from, date_to = attrs.get('date_from'), attrs.get('date_to')
        if date_from and date_to and date_to < date_from:
            raise serializers.ValidationError({'date_to': 'date_to must not be before date_from.'})
        return attrs
