from decimal import Decimal
from rest_framework import serializers
from .models import (
    Supplier, SupplierProduct, PurchaseOrder, PurchaseOrderItem, InventoryReceipt, InventoryReceiptItem,
)


class SupplierSerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'company', 'supplier_name', 'supplier_type', 'contact_person', 'email', 'phone',
            'address', 'website', 'payment_terms', 'is_active', 'notes', 'product_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'company', 'is_active', 'product_count', 'created_at', 'updated_at']
        extra_kwargs = {'supplier_name': {'required': False, 'allow_blank': True}}

    def get_product_count(self, obj):
        return obj.products.filter(is_active=True).count()


class SupplierProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = SupplierProduct
        fields = [
            'id', 'supplier', 'product_name', 'product_category', 'sku', 'unit_of_measure',
            'current_price', 'currency', 'lead_time_days', 'minimum_order_quantity', 'notes',
            'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'supplier', 'created_at', 'updated_at']
        extra_kwargs = {'product_name': {'required': False, 'allow_blank': True}}


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='supplier_product.product_name', read_only=True)
    sku = serializers.CharField(source='supplier_product.sku', read_only=True, default=None)
    unit_of_measure = serializers.CharField(source='supplier_product.unit_of_measure', read_only=True, default=None)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            'id', 'supplier_product', 'product_name', 'sku', 'unit_of_measure', 'quantity',
            'unit_price', 'total_price', 'received_quantity', 'notes',
        ]
        read_only_fields = fields


class PurchaseOrderSerializer(serializers.ModelSerializer):
    """List shape; counts come from the annotated queryset"""
    supplier_name = serializers.CharField(source='supplier.supplier_name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    item_count = serializers.IntegerField(read_only=True, default=0)
    total_quantity_ordered = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True, default=0)
    total_quantity_received = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True, default=0)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'company', 'supplier', 'supplier_name', 'po_number', 'order_date', 'expected_delivery_date',
            'status', 'total_amount', 'currency', 'payment_status', 'notes', 'created_by', 'created_by_name',
            'item_count', 'total_quantity_ordered', 'total_quantity_received', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PurchaseOrderDetailSerializer(PurchaseOrderSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)

    class Meta(PurchaseOrderSerializer.Meta):
        fields = PurchaseOrderSerializer.Meta.fields + ['items']
        read_only_fields = fields


class PurchaseOrderItemInputSerializer(serializers.Serializer):
    supplier_product_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0.001'))
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PurchaseOrderInputSerializer(serializers.Serializer):
    supplier_id = serializers.IntegerField()
    po_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    order_date = serializers.DateField(required=False)
    expected_delivery_date = serializers.DateField(required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False)
    payment_status = serializers.ChoiceField(choices=PurchaseOrder.PAYMENT_STATUS_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = PurchaseOrderItemInputSerializer(many=True, required=False)

    def validate_po_number(self, value):
        if value and PurchaseOrder.objects.filter(po_number=value).exists():
            raise serializers.ValidationError('A purchase order with this number already exists.')
        return value


class EmailPurchaseOrderSerializer(serializers.Serializer):
    to_email = serializers.EmailField(required=False, allow_blank=True)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True)
    body = serializers.CharField(required=False, allow_blank=True)


class InventoryReceiptItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='purchase_order_item.supplier_product.product_name', read_only=True)

    class Meta:
        model = InventoryReceiptItem
        fields = ['id', 'purchase_order_item', 'product_name', 'received_quantity', 'condition', 'notes']
        read_only_fields = fields


class InventoryReceiptSerializer(serializers.ModelSerializer):
    po_number = serializers.CharField(source='purchase_order.po_number', read_only=True)
    received_by_name = serializers.CharField(source='received_by.name', read_only=True, default=None)
    items = InventoryReceiptItemSerializer(many=True, read_only=True)

    class Meta:
        model = InventoryReceipt
        fields = [
            'id', 'purchase_order', 'po_number', 'receipt_date', 'received_by', 'received_by_name',
            'notes', 'items', 'created_at',
        ]
        read_only_fields = fields


class ReceiptItemInputSerializer(serializers.Serializer):
    purchase_order_item_id = serializers.IntegerField()
    received_quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0'))
    condition = serializers.ChoiceField(choices=InventoryReceiptItem.CONDITION_CHOICES, default='good')
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ReceiptInputSerializer(serializers.Serializer):
    receipt_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = ReceiptItemInputSerializer(many=True)
