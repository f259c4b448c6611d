import django_filters
from django.db.models import Q, F
from .models import Product, ProductVariant


class ProductFilter(django_filters.FilterSet):
    """Product list filters using django-filter"""

    # Searches name, SKU, description and variant barcodes
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    brand = django_filters.NumberFilter(field_name='brand_id', lookup_expr='exact')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    season = django_filters.CharFilter(field_name='season')
    gender = django_filters.CharFilter(field_name='gender')

    class Meta:
        model = Product
        fields = ['search', 'category', 'brand', 'is_active', 'season', 'gender']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(name__icontains=search)
            | Q(sku__icontains=search)
            | Q(description__icontains=search)
            | Q(variants__barcode__icontains=search)
        ).distinct()


class VariantStockFilter(django_filters.FilterSet):
    """Variant stock list filters; lowStock keeps variants at or below min_stock"""
    lowStock = django_filters.BooleanFilter(method='filter_low_stock', label='Low stock')
    product = django_filters.NumberFilter(field_name='product_id')
    category = django_filters.NumberFilter(field_name='product__category_id')

    class Meta:
        model = ProductVariant
        fields = ['lowStock', 'product', 'category']

    def filter_low_stock(self, queryset, name, value):
        if value:
            return queryset.filter(stock__lte=F('min_stock'))
        return queryset
