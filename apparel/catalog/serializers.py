from rest_framework import serializers
from .models import Category, Brand, Size, Color, Product, ProductVariant


class UniqueActiveNameMixin:
    """
    Lookup-table names must be unique among active rows.

    New names matching a soft-deleted row reactivate it in the view; a rename
    must not take a name still held by any other row, active or not.
    """

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required.')
        model_name = self.Meta.model.__name__
        if self.instance is None:
            if self.Meta.model.objects.filter(name__iexact=value, is_active=True).exists():
                raise serializers.ValidationError(f"{model_name} with this name already exists.")
            return value

        clash = self.Meta.model.objects.filter(name__iexact=value).exclude(pk=self.instance.pk).first()
        if clash is not None:
            if clash.is_active:
                raise serializers.ValidationError(f"{model_name} with this name already exists.")
            raise serializers.ValidationError(f"A deactivated {model_name.lower()} already uses this name.")
        return value


class CategorySerializer(UniqueActiveNameMixin, serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'is_active', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']
        extra_kwargs = {'name': {'validators': []}}

    def get_product_count(self, obj):
        return getattr(obj, 'product_count', None)


class BrandSerializer(UniqueActiveNameMixin, serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = ['id', 'name', 'description', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']
        extra_kwargs = {'name': {'validators': []}}


class SizeSerializer(UniqueActiveNameMixin, serializers.ModelSerializer):
    class Meta:
        model = Size
        fields = ['id', 'name', 'sort_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']
        extra_kwargs = {'name': {'validators': []}}


class ColorSerializer(UniqueActiveNameMixin, serializers.ModelSerializer):
    class Meta:
        model = Color
        fields = ['id', 'name', 'hex_code', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']
        extra_kwargs = {'name': {'validators': []}}

    def validate_hex_code(self, value):
        if value and (len(value) != 7 or not value.startswith('#')):
            raise serializers.ValidationError('Hex code must look like #RRGGBB.')
        return value.upper() if value else value


class ProductVariantSerializer(serializers.ModelSerializer):
    size_name = serializers.CharField(source='size.name', read_only=True)
    color_name = serializers.CharField(source='color.name', read_only=True)
    hex_code = serializers.CharField(source='color.hex_code', read_only=True)
    effective_cost_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    selling_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'size', 'size_name', 'color', 'color_name', 'hex_code', 'stock', 'min_stock',
                  'barcode', 'cost_price', 'effective_cost_price', 'selling_price', 'is_low_stock', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['product', 'size', 'color', 'stock', 'barcode', 'is_active', 'created_at', 'updated_at']


class VariantCreateSerializer(serializers.Serializer):
    size = serializers.IntegerField()
    color = serializers.IntegerField()
    stock = serializers.IntegerField(min_value=0, default=0)
    min_stock = serializers.IntegerField(min_value=0, default=5)
    cost_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                          required=False, allow_null=True)


class VariantUpdateSerializer(serializers.ModelSerializer):
    """Only the reorder threshold and cost override are editable; stock moves through inventory"""

    class Meta:
        model = ProductVariant
        fields = ['min_stock', 'cost_price', 'is_active']
        extra_kwargs = {'min_stock': {'min_value': 0}}


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    brand_name = serializers.CharField(source='brand.name', read_only=True, default=None)
    variants = ProductVariantSerializer(many=True, read_only=True)
    total_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'category', 'category_name', 'brand', 'brand_name', 'description',
                  'season', 'gender', 'cost_price', 'selling_price', 'is_active', 'total_stock', 'variants',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'sku': {'validators': []}}

    def get_total_stock(self, obj):
        return sum(variant.stock for variant in obj.variants.all())

    def validate_sku(self, value):
        value = value.strip()
        queryset = Product.objects.filter(sku__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('SKU already exists')
        return value


class ScanResultSerializer(serializers.ModelSerializer):
    """Variant as the POS needs it after a scan or search"""
    product = serializers.SerializerMethodField()
    size = serializers.CharField(source='size.name', read_only=True)
    color = serializers.CharField(source='color.name', read_only=True)
    selling_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = ProductVariant
        fields = ['id', 'barcode', 'product', 'size', 'color', 'stock', 'min_stock', 'selling_price']

    def get_product(self, obj):
        return {
            'id': obj.product_id,
            'name': obj.product.name,
            'sku': obj.product.sku,
            'category': obj.product.category.name if obj.product.category else None,
            'brand': obj.product.brand.name if obj.product.brand else None,
        }
