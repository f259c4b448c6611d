from django.urls import path
from .views import (
    inventory_overview, adjust_stock,
    stock_adjustment_list_create,
    inventory_analytics, stock_movement_list, reorder_suggestions,
)

urlpatterns = [
    # Stock levels
    path('inventory/', inventory_overview, name='inventory-overview'),
    path('inventory/adjust-stock/', adjust_stock, name='inventory-adjust-stock'),

    # Adjustments (both paths are in use by clients)
    path('inventory/adjustments/', stock_adjustment_list_create, name='stock-adjustment-list-create'),
    path('stock-adjustments/', stock_adjustment_list_create, name='stock-adjustment-list-create-alias'),

    # Forecasting and ledger
    path('inventory/analytics/', inventory_analytics, name='inventory-analytics'),
    path('stock-movements/', stock_movement_list, name='stock-movement-list'),
    path('reorder-suggestions/', reorder_suggestions, name='reorder-suggestions'),
]
