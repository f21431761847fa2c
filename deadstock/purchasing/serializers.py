from rest_framework import serializers
from django.db import transaction

from deadstock.core.serializers import UserSummarySerializer
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderEvent, Invoice, InvoiceItem


def _validate_items(serializer_class, items_data, required):
    """Validate the ``items`` list handed over via serializer context"""
    if items_data is None:
        if required:
            raise serializers.ValidationError({'items': 'At least one item is required.'})
        return None
    if not isinstance(items_data, list) or not items_data:
        raise serializers.ValidationError({'items': 'At least one item is required.'})
    item_serializer = serializer_class(data=items_data, many=True)
    if not item_serializer.is_valid():
        raise serializers.ValidationError({'items': item_serializer.errors})
    return item_serializer.validated_data


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    quantity_outstanding = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'description', 'category', 'quantity', 'unit_price', 'total_price',
                  'specifications', 'brand_preference', 'quantity_received', 'quantity_outstanding']
        read_only_fields = ['total_price', 'quantity_received']


class PurchaseOrderEventSerializer(serializers.ModelSerializer):
    performed_by_name = serializers.CharField(source='performed_by.name', read_only=True, default=None)

    class Meta:
        model = PurchaseOrderEvent
        fields = ['id', 'action', 'performed_by', 'performed_by_name', 'comments', 'timestamp']


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'vendor', 'vendor_name', 'department', 'status', 'priority',
                  'total_amount', 'currency', 'expected_delivery_date', 'item_count', 'created_at']

    def get_item_count(self, obj):
        return obj.items.count()


class PurchaseOrderSerializer(serializers.ModelSerializer):
    """
    Purchase order with nested items.

    Items are popped from the payload by the view and passed in as
    ``context['items_data']``. On update, omitting items keeps the existing
    lines; sending them replaces all lines.
    """
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True)
    requested_by_detail = UserSummarySerializer(source='requested_by', read_only=True)
    approved_by_detail = UserSummarySerializer(source='approved_by', read_only=True)
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    history = PurchaseOrderEventSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'vendor', 'vendor_name', 'requested_by', 'requested_by_detail',
                  'approved_by', 'approved_by_detail', 'department', 'items', 'subtotal', 'tax_amount',
                  'shipping_cost', 'total_amount', 'currency', 'status', 'priority',
                  'expected_delivery_date', 'actual_delivery_date', 'delivery_address',
                  'payment_terms', 'payment_method', 'notes', 'history', 'created_at', 'updated_at']
        read_only_fields = ['po_number', 'requested_by', 'approved_by', 'subtotal', 'total_amount',
                            'status', 'actual_delivery_date', 'created_at', 'updated_at']

    def validate_vendor(self, value):
        if not value.is_active:
            raise serializers.ValidationError('Cannot order from an inactive vendor.')
        return value

    def validate_delivery_address(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Delivery address must be an object.')
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status != 'draft':
            raise serializers.ValidationError('Only draft purchase orders can be edited.')
        self._items = _validate_items(
            PurchaseOrderItemSerializer, self.context.get('items_data'), required=self.instance is None
        )
        return attrs

    def _write_items(self, order, items):
        if getattr(order, '_prefetched_objects_cache', None):
            order._prefetched_objects_cache = {}
        order.items.all().delete()
        for item in items:
            PurchaseOrderItem.objects.create(purchase_order=order, **item)
        order.recalculate_totals()

    @transaction.atomic
    def create(self, validated_data):
        order = super().create(validated_data)
        self._write_items(order, self._items)
        return order

    @transaction.atomic
    def update(self, instance, validated_data):
        instance = super().update(instance, validated_data)
        if self._items is not None:
            self._write_items(instance, self._items)
        return instance


class PurchaseOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PurchaseOrder.STATUS_CHOICES)
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class ReceiveLineSerializer(serializers.Serializer):
    item = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class ReceiveSerializer(serializers.Serializer):
    items = ReceiveLineSerializer(many=True, allow_empty=False)
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class InvoiceItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    tax_rate = serializers.DecimalField(max_digits=4, decimal_places=3, min_value=0, max_value=1, required=False)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'description', 'quantity', 'unit_price', 'tax_rate', 'total_amount']
        read_only_fields = ['total_amount']


class InvoiceSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True)
    po_number = serializers.CharField(source='purchase_order.po_number', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, default=None)
    items = InvoiceItemSerializer(many=True, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'purchase_order', 'po_number', 'vendor', 'vendor_name',
                  'invoice_date', 'due_date', 'status', 'items', 'subtotal', 'tax_amount', 'total_amount',
                  'currency', 'payment_method', 'payment_date', 'payment_reference', 'vendor_gstin',
                  'notes', 'is_overdue', 'created_by', 'created_by_name', 'approved_by', 'approved_by_name',
                  'created_at', 'updated_at']
        read_only_fields = ['invoice_number', 'status', 'subtotal', 'tax_amount', 'total_amount',
                            'payment_date', 'created_by', 'approved_by', 'created_at', 'updated_at']
        extra_kwargs = {'vendor': {'required': False}}

    def validate_purchase_order(self, value):
        if value.status in ('draft', 'pending_approval', 'rejected', 'cancelled'):
            raise serializers.ValidationError('Invoices can only be raised against approved purchase orders.')
        return value

    def validate(self, attrs):
        order = attrs.get('purchase_order', getattr(self.instance, 'purchase_order', None))
        vendor = attrs.get('vendor')
        if vendor is None:
            attrs['vendor'] = order.vendor
        elif vendor.pk != order.vendor_id:
            raise serializers.ValidationError({'vendor': 'Vendor must match the purchase order vendor.'})

        invoice_date = attrs.get('invoice_date', getattr(self.instance, 'invoice_date', None))
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if invoice_date and due_date and due_date < invoice_date:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the invoice date.'})

        self._items = _validate_items(
            InvoiceItemSerializer, self.context.get('items_data'), required=self.instance is None
        )
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        invoice = super().create(validated_data)
        for item in self._items:
            InvoiceItem.objects.create(invoice=invoice, **item)
        invoice.recalculate_totals()
        return invoice


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES)
    payment_date = serializers.DateField(required=False)
    payment_reference = serializers.CharField(required=False, allow_blank=True, max_length=100)
    payment_method = serializers.ChoiceField(choices=Invoice.PAYMENT_METHOD_CHOICES, required=False)
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)
