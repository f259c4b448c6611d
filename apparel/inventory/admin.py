from django.contrib import admin
from .models import StockMovement, StockAdjustment


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['variant', 'type', 'quantity', 'reason', 'reference', 'created_by', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['variant__product__name', 'variant__barcode', 'reference', 'reason']
    ordering = ['-created_at']
    readonly_fields = ['created_at']


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['variant', 'adjustment_type', 'quantity', 'stock_before', 'stock_after', 'reason', 'created_by', 'created_at']
    list_filter = ['adjustment_type', 'reason', 'created_at']
    search_fields = ['variant__product__name', 'variant__barcode', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['stock_before', 'stock_after', 'created_at']
