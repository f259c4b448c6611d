from rest_framework import serializers


class PurchaseItemInputSerializer(serializers.Serializer):
    variantId = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                         required=False, allow_null=True)


class PurchaseCreateSerializer(serializers.Serializer):
    """Production/purchase order input; also used by reorder suggestions"""
    items = PurchaseItemInputSerializer(many=True, allow_empty=False)
    supplierId = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
