from rest_framework import serializers
from .models import Vendor


class VendorSerializer(serializers.ModelSerializer):
    vendor_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    address = serializers.SerializerMethodField()

    class Meta:
        model = Vendor
        fields = ['id', 'company_name', 'vendor_code', 'contact_person', 'email', 'phone',
                  'street', 'city', 'state', 'zip_code', 'country', 'address',
                  'payment_terms', 'vendor_type', 'rating', 'is_active', 'categories',
                  'gst_number', 'pan_number', 'bank_details', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_address(self, obj):
        return obj.address

    def validate_vendor_code(self, value):
        value = (value or '').strip().upper()
        if value:
            queryset = Vendor.objects.filter(vendor_code=value)
            if self.instance is not None:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('A vendor with this code already exists.')
        return value

    def validate_categories(self, value):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError('Categories must be a list of names.')
        return value

    def validate_bank_details(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Bank details must be an object.')
        return value


class VendorSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = ['id', 'company_name', 'vendor_code', 'email', 'phone', 'rating', 'is_active']
