from rest_framework import serializers
from .models import Transaction, TransactionItem


class TransactionItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    size_name = serializers.CharField(source='variant.size.name', read_only=True, default=None)
    color_name = serializers.CharField(source='variant.color.name', read_only=True, default=None)
    barcode = serializers.CharField(source='variant.barcode', read_only=True, default=None)

    class Meta:
        model = TransactionItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'variant', 'size_name', 'color_name',
                  'barcode', 'quantity', 'unit_price', 'total_price']


class TransactionSerializer(serializers.ModelSerializer):
    """Transaction with its line items, profit and item count"""
    items = TransactionItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()
    profit = serializers.SerializerMethodField()
    user_name = serializers.SerializerMethodField()
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True, default=None)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)

    class Meta:
        model = Transaction
        fields = ['id', 'type', 'invoice_number', 'status', 'subtotal', 'discount', 'tax', 'total_amount',
                  'notes', 'user', 'user_name', 'customer', 'customer_name', 'customer_phone',
                  'supplier', 'supplier_name', 'transaction_date', 'completed_at', 'created_at',
                  'item_count', 'profit', 'items']
        read_only_fields = fields

    def get_item_count(self, obj):
        return obj.get_item_count()

    def get_profit(self, obj):
        return str(obj.get_profit())

    def get_user_name(self, obj):
        return obj.user.display_name if obj.user else None


class TransactionListSerializer(TransactionSerializer):
    """List rows: same as TransactionSerializer without the items"""

    class Meta(TransactionSerializer.Meta):
        fields = [f for f in TransactionSerializer.Meta.fields if f != 'items']
        read_only_fields = fields


class SaleItemInputSerializer(serializers.Serializer):
    variantId = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class SaleCreateSerializer(serializers.Serializer):
    items = SaleItemInputSerializer(many=True, allow_empty=False)
    customerName = serializers.CharField(required=False, allow_blank=True, default='')
    customerPhone = serializers.CharField(required=False, allow_blank=True, default='')
    customerId = serializers.IntegerField(required=False, allow_null=True)
    discount = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100,
                                        required=False, default=0)
    tax = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100,
                                   required=False, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
