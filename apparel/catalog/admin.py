from django.contrib import admin
from .models import Category, Brand, Size, Color, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Size)
class SizeAdmin(admin.ModelAdmin):
    list_display = ['name', 'sort_order', 'is_active']
    list_filter = ['is_active']
    ordering = ['sort_order', 'name']


@admin.register(Color)
class ColorAdmin(admin.ModelAdmin):
    list_display = ['name', 'hex_code', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ['size', 'color', 'stock', 'min_stock', 'barcode', 'cost_price', 'is_active']
    readonly_fields = ['stock', 'barcode']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'brand', 'season', 'gender', 'selling_price', 'is_active', 'created_at']
    list_filter = ['category', 'brand', 'season', 'gender', 'is_active']
    search_fields = ['name', 'sku', 'description']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ['product', 'size', 'color', 'stock', 'min_stock', 'barcode', 'is_active']
    list_filter = ['size', 'color', 'is_active']
    search_fields = ['product__name', 'product__sku', 'barcode']
    readonly_fields = ['stock', 'created_at', 'updated_at']
