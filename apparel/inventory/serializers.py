from rest_framework import serializers
from .models import StockMovement, StockAdjustment


class VariantBriefMixin(serializers.Serializer):
    product_name = serializers.CharField(source='variant.product.name', read_only=True)
    product_sku = serializers.CharField(source='variant.product.sku', read_only=True)
    size_name = serializers.CharField(source='variant.size.name', read_only=True)
    color_name = serializers.CharField(source='variant.color.name', read_only=True)
    created_by_name = serializers.SerializerMethodField()

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by else None


class StockMovementSerializer(VariantBriefMixin, serializers.ModelSerializer):
    current_stock = serializers.IntegerField(source='variant.stock', read_only=True)

    class Meta:
        model = StockMovement
        fields = ['id', 'variant', 'product_name', 'product_sku', 'size_name', 'color_name',
                  'current_stock', 'type', 'quantity', 'reason', 'reference',
                  'created_by', 'created_by_name', 'created_at']
        read_only_fields = fields


class StockAdjustmentSerializer(VariantBriefMixin, serializers.ModelSerializer):
    class Meta:
        model = StockAdjustment
        fields = ['id', 'variant', 'product_name', 'product_sku', 'size_name', 'color_name',
                  'adjustment_type', 'quantity', 'stock_before', 'stock_after', 'reason', 'notes',
                  'created_by', 'created_by_name', 'created_at']
        read_only_fields = fields


class StockAdjustmentCreateSerializer(serializers.Serializer):
    variantId = serializers.IntegerField()
    adjustmentType = serializers.ChoiceField(choices=StockAdjustment.ADJUSTMENT_TYPE_CHOICES)
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.ChoiceField(choices=StockAdjustment.REASON_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class SetStockSerializer(serializers.Serializer):
    variantId = serializers.IntegerField()
    newStock = serializers.IntegerField(min_value=0)
    reason = serializers.CharField()
