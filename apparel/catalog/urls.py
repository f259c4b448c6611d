from django.urls import path
from .views import (
    category_list_create, category_detail,
    brand_list_create, brand_detail,
    size_list_create, size_detail,
    color_list_create, color_detail,
    product_list_create, product_detail,
    product_variant_create, product_variant_detail,
    barcode_scan, pos_search,
    variant_barcode_png, variant_qr_png, product_labels_pdf,
    variant_stock_list, seed_view,
)

urlpatterns = [
    # Lookup tables
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),
    path('brands/', brand_list_create, name='brand-list-create'),
    path('brands/<int:pk>/', brand_detail, name='brand-detail'),
    path('sizes/', size_list_create, name='size-list-create'),
    path('sizes/<int:pk>/', size_detail, name='size-detail'),
    path('colors/', color_list_create, name='color-list-create'),
    path('colors/<int:pk>/', color_detail, name='color-detail'),

    # Products and variants
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/variants/', product_variant_create, name='product-variant-create'),
    path('products/<int:pk>/variants/<int:variant_id>/', product_variant_detail, name='product-variant-detail'),
    path('products/<int:pk>/labels.pdf', product_labels_pdf, name='product-labels-pdf'),

    # Scanning and POS search
    path('barcode/scan/', barcode_scan, name='barcode-scan'),
    path('pos/search/', pos_search, name='pos-search'),

    # Variant images
    path('variants/<int:pk>/barcode.png', variant_barcode_png, name='variant-barcode-png'),
    path('variants/<int:pk>/qr.png', variant_qr_png, name='variant-qr-png'),

    path('inventory/variants/', variant_stock_list, name='variant-stock-list'),
    path('seed/', seed_view, name='seed'),
]
