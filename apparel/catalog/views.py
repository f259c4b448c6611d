import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Q, F
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from apparel.core.exceptions import BarcodeGenerationError
from apparel.core.models import ActivityLog
from apparel.core.permissions import IsSuperAdmin, require_permission, require_method_permissions
from apparel.core.utils import log_activity, paginate
from .filters import ProductFilter, VariantStockFilter
from .label_generator import render_barcode_png, render_qr_png, render_label_pdf
from .models import Category, Brand, Size, Color, Product, ProductVariant
from .seed import seed_catalog
from .serializers import (
    CategorySerializer, BrandSerializer, SizeSerializer, ColorSerializer,
    ProductSerializer, ProductVariantSerializer, VariantCreateSerializer, VariantUpdateSerializer,
    ScanResultSerializer,
)
from .services import get_house_brand, create_variant, delete_variant, delete_product
from .utils import generate_ean13, build_qr_payload

logger = logging.getLogger(__name__)

LOOKUP_LIST_PERMISSIONS = require_method_permissions({'POST': 'products.create'})
LOOKUP_DETAIL_PERMISSIONS = require_method_permissions({
    'PUT': 'products.edit',
    'PATCH': 'products.edit',
    'DELETE': 'products.delete',
})

POS_SEARCH_LIMIT = 50
POS_BROWSE_LIMIT = 100


def _variant_queryset():
    return ProductVariant.objects.select_related('product', 'product__category', 'product__brand', 'size', 'color')


# Lookup tables (categories, brands, sizes, colors)
def _lookup_list_create(request, model, serializer_class, queryset=None):
    if request.method == 'GET':
        queryset = queryset if queryset is not None else model.objects.all()
        if request.query_params.get('includeInactive') != 'true':
            queryset = queryset.filter(is_active=True)
        return Response(serializer_class(queryset, many=True).data)

    # A soft-deleted row with the same name is brought back instead of duplicated
    name = str(request.data.get('name', '')).strip()
    dormant = model.objects.filter(name__iexact=name, is_active=False).first() if name else None
    serializer = serializer_class(dormant, data=request.data) if dormant else serializer_class(data=request.data)
    if serializer.is_valid():
        instance = serializer.save(is_active=True)
        log_activity(request, ActivityLog.ACTION_CREATE, model._meta.db_table, resource_id=instance.id,
                     metadata={'name': instance.name})
        return Response(serializer_class(instance).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _lookup_detail(request, model, serializer_class, pk, in_use=None):
    instance = get_object_or_404(model, pk=pk)

    if request.method == 'GET':
        return Response(serializer_class(instance).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = serializer_class(instance, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            log_activity(request, ActivityLog.ACTION_UPDATE, model._meta.db_table, resource_id=instance.id,
                         metadata={'name': instance.name})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    if in_use is not None and in_use(instance):
        return Response(
            {'error': f"Cannot delete {model.__name__.lower()} '{instance.name}': it is used by product variants"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    instance.is_active = False
    instance.save(update_fields=['is_active', 'updated_at'])
    log_activity(request, ActivityLog.ACTION_DELETE, model._meta.db_table, resource_id=instance.id,
                 metadata={'name': instance.name})
    return Response(status=status.HTTP_204_NO_CONTENT)


def _has_variants(instance):
    return instance.variants.exists()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, LOOKUP_LIST_PERMISSIONS])
def category_list_create(request):
    """List all categories or create a new category"""
    queryset = Category.objects.annotate(product_count=Count('products'))
    return _lookup_list_create(request, Category, CategorySerializer, queryset)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, LOOKUP_DETAIL_PERMISSIONS])
def category_detail(request, pk):
    return _lookup_detail(request, Category, CategorySerializer, pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, LOOKUP_LIST_PERMISSIONS])
def brand_list_create(request):
    """List all brands or create a new brand"""
    return _lookup_list_create(request, Brand, BrandSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, LOOKUP_DETAIL_PERMISSIONS])
def brand_detail(request, pk):
    return _lookup_detail(request, Brand, BrandSerializer, pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, LOOKUP_LIST_PERMISSIONS])
def size_list_create(request):
    """List sizes in sort order or create a new size"""
    return _lookup_list_create(request, Size, SizeSerializer, Size.objects.order_by('sort_order', 'name'))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, LOOKUP_DETAIL_PERMISSIONS])
def size_detail(request, pk):
    return _lookup_detail(request, Size, SizeSerializer, pk, in_use=_has_variants)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, LOOKUP_LIST_PERMISSIONS])
def color_list_create(request):
    """List all colors or create a new color"""
    return _lookup_list_create(request, Color, ColorSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, LOOKUP_DETAIL_PERMISSIONS])
def color_detail(request, pk):
    return _lookup_detail(request, Color, ColorSerializer, pk, in_use=_has_variants)


# Products
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'products.view',
    'POST': 'products.create',
})])
def product_list_create(request):
    """List products (search, category, brand, is_active filters) or create a product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category', 'brand').prefetch_related(
            'variants__size', 'variants__color'
        )
        filterset = ProductFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        products, pagination = paginate(filterset.qs, request.query_params, default_limit=50)
        return Response({
            'products': ProductSerializer(products, many=True).data,
            'pagination': pagination,
        })

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        extra = {}
        if not serializer.validated_data.get('brand'):
            extra['brand'] = get_house_brand()
        product = serializer.save(**extra)
        log_activity(request, ActivityLog.ACTION_CREATE, 'products', resource_id=product.id,
                     metadata={'name': product.name, 'sku': product.sku})
        logger.info(f"Product created: {product.sku}")
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'products.view',
    'PUT': 'products.edit',
    'PATCH': 'products.edit',
    'DELETE': 'products.delete',
})])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(
        Product.objects.select_related('category', 'brand').prefetch_related('variants__size', 'variants__color'),
        pk=pk,
    )

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=True)
        if serializer.is_valid():
            product = serializer.save()
            log_activity(request, ActivityLog.ACTION_UPDATE, 'products', resource_id=product.id,
                         metadata={'fields': sorted(request.data.keys())})
            return Response(ProductSerializer(product).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    product_id, name, sku = product.id, product.name, product.sku
    delete_product(product)
    log_activity(request, ActivityLog.ACTION_DELETE, 'products', resource_id=product_id,
                 metadata={'name': name, 'sku': sku})
    return Response({'message': 'Product deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('products.create', 'products.edit')])
def product_variant_create(request, pk):
    """Add a size/color variant; the barcode is generated and opening stock booked"""
    product = get_object_or_404(Product, pk=pk)
    serializer = VariantCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    variant = create_variant(
        product,
        data['size'],
        data['color'],
        stock=data['stock'],
        min_stock=data['min_stock'],
        cost_price=data.get('cost_price'),
        user=request.user,
    )
    log_activity(request, ActivityLog.ACTION_CREATE, 'products', resource_id=product.id,
                 metadata={'variantId': variant.id, 'barcode': variant.barcode, 'stock': variant.stock})
    return Response(ProductVariantSerializer(variant).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'products.view',
    'PUT': 'products.edit',
    'PATCH': 'products.edit',
    'DELETE': 'products.delete',
})])
def product_variant_detail(request, pk, variant_id):
    """Retrieve a variant, update its min_stock/cost_price, or delete it"""
    variant = get_object_or_404(_variant_queryset(), pk=variant_id, product_id=pk)

    if request.method == 'GET':
        return Response(ProductVariantSerializer(variant).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = VariantUpdateSerializer(variant, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            log_activity(request, ActivityLog.ACTION_UPDATE, 'products', resource_id=pk,
                         metadata={'variantId': variant.id, 'fields': sorted(serializer.validated_data.keys())})
            return Response(ProductVariantSerializer(variant).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    variant_pk, barcode = variant.id, variant.barcode
    delete_variant(variant)
    log_activity(request, ActivityLog.ACTION_DELETE, 'products', resource_id=pk,
                 metadata={'variantId': variant_pk, 'barcode': barcode})
    return Response({'message': 'Variant deleted'})


# Scanning and POS search
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def barcode_scan(request):
    """Exact barcode lookup of an active variant"""
    code = (request.query_params.get('barcode') or '').strip()
    if not code:
        return Response({'error': 'Barcode is required'}, status=status.HTTP_400_BAD_REQUEST)

    variant = _variant_queryset().filter(barcode=code, is_active=True).first()
    if variant is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(ScanResultSerializer(variant).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pos_search(request):
    """Variant search by product name, SKU or barcode; without a query, in-stock variants"""
    query = (request.query_params.get('q') or '').strip()
    queryset = _variant_queryset().filter(is_active=True, product__is_active=True)

    if query:
        queryset = queryset.filter(
            Q(product__name__icontains=query)
            | Q(product__sku__icontains=query)
            | Q(barcode__icontains=query)
        ).order_by('product__name', 'size__sort_order')[:POS_SEARCH_LIMIT]
    else:
        queryset = queryset.filter(stock__gt=0).order_by('product__name', 'size__sort_order')[:POS_BROWSE_LIMIT]

    return Response(ScanResultSerializer(queryset, many=True).data)


# Images and labels
def _render_or_fail(render, *args, **kwargs):
    try:
        return render(*args, **kwargs)
    except Exception as e:
        logger.error(f"Image rendering failed for {args[0] if args else '?'}: {str(e)}")
        raise BarcodeGenerationError(f"Could not render image: {str(e)}")


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('products.view')])
def variant_barcode_png(request, pk):
    """
    Barcode image for a variant.

    ?format=ean13 renders the product's EAN-13 code instead of the Code128 variant barcode.
    """
    variant = get_object_or_404(_variant_queryset(), pk=pk)
    if request.query_params.get('format') == 'ean13':
        png = _render_or_fail(render_barcode_png, generate_ean13(variant.product.sku), symbology='ean13')
    else:
        if not variant.barcode:
            return Response({'error': 'Variant has no barcode'}, status=status.HTTP_404_NOT_FOUND)
        png = _render_or_fail(render_barcode_png, variant.barcode)
    return HttpResponse(png, content_type='image/png')


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('products.view')])
def variant_qr_png(request, pk):
    """QR code carrying the variant's JSON payload"""
    variant = get_object_or_404(_variant_queryset(), pk=pk)
    png = _render_or_fail(render_qr_png, build_qr_payload(variant))
    return HttpResponse(png, content_type='image/png')


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('products.view')])
def product_labels_pdf(request, pk):
    """Printable A4 label sheet, one label per variant"""
    product = get_object_or_404(Product, pk=pk)
    variants = list(_variant_queryset().filter(product=product, is_active=True).order_by('size__sort_order', 'color__name'))
    pdf = render_label_pdf(variants, title=f"{product.name} ({product.sku})")
    log_activity(request, ActivityLog.ACTION_EXPORT, 'products', resource_id=product.id,
                 metadata={'format': 'pdf', 'labels': len(variants)})

    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'inline; filename="labels-{product.sku}.pdf"'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('inventory.view')])
def variant_stock_list(request):
    """Variants with their stock status; ?lowStock=true keeps those at or below min_stock"""
    queryset = _variant_queryset().filter(is_active=True).order_by('product__name', 'size__sort_order')
    filterset = VariantStockFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

    variants = []
    for variant in filterset.qs:
        data = ScanResultSerializer(variant).data
        if variant.stock == 0:
            data['stock_status'] = 'out_of_stock'
        elif variant.stock <= variant.min_stock:
            data['stock_status'] = 'low_stock'
        else:
            data['stock_status'] = 'normal'
        variants.append(data)

    active = ProductVariant.objects.filter(is_active=True)
    return Response({
        'variants': variants,
        'total': len(variants),
        'lowStockCount': active.filter(stock__gt=0, stock__lte=F('min_stock')).count(),
        'outOfStockCount': active.filter(stock=0).count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def seed_view(request):
    """Seed demo catalog data and default permissions"""
    result = seed_catalog()
    log_activity(request, ActivityLog.ACTION_IMPORT, 'seed', metadata=result)
    return Response({'message': 'Database seeded', 'success': True, 'data': result},
                    status=status.HTTP_201_CREATED)
