import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from apparel.core.models import ActivityLog
from apparel.core.permissions import require_permission, require_method_permissions
from apparel.core.utils import log_activity, paginate, parse_int, parse_id, parse_date, date_range_bounds
from apparel.pos.serializers import TransactionSerializer
from apparel.purchasing.serializers import PurchaseCreateSerializer
from apparel.purchasing.services import create_purchase, REORDER_PREFIX
from .models import StockMovement, StockAdjustment
from .serializers import (
    StockMovementSerializer, StockAdjustmentSerializer, StockAdjustmentCreateSerializer, SetStockSerializer
)
from .services import adjust_stock_to, apply_adjustment
from . import analytics

logger = logging.getLogger(__name__)


def _set_stock(request):
    serializer = SetStockSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    result = adjust_stock_to(data['variantId'], data['newStock'], data['reason'], user=request.user)
    log_activity(
        request=request,
        action=ActivityLog.ACTION_UPDATE,
        resource='inventory',
        resource_id=data['variantId'],
        metadata={
            'previousStock': result['previous_stock'],
            'newStock': result['new_stock'],
            'reason': data['reason'],
        },
    )
    return Response({
        'message': 'Stock updated',
        'variantId': result['variant'].id,
        'previousStock': result['previous_stock'],
        'newStock': result['new_stock'],
        'difference': result['difference'],
        'movement': StockMovementSerializer(result['movement']).data,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'inventory.view',
    'POST': 'inventory.adjust',
})])
def inventory_overview(request):
    """Stock classification per variant (GET) or set an absolute stock level (POST)"""
    if request.method == 'GET':
        overview = analytics.build_inventory_overview(
            category_id=parse_id(request.query_params.get('category'), 'category'),
            brand_id=parse_id(request.query_params.get('brand'), 'brand'),
            alerts_only=request.query_params.get('alertsOnly') == 'true',
        )
        return Response(overview)
    return _set_stock(request)


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('inventory.adjust')])
def adjust_stock(request):
    """Set a variant's stock to an absolute value"""
    return _set_stock(request)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'inventory.view',
    'POST': 'inventory.adjust',
})])
def stock_adjustment_list_create(request):
    """List stock adjustments or record an INCREASE/DECREASE"""
    if request.method == 'GET':
        queryset = StockAdjustment.objects.select_related(
            'variant__product', 'variant__size', 'variant__color', 'created_by'
        )
        variant_id = parse_id(request.query_params.get('variantId'), 'variantId')
        adjustment_type = request.query_params.get('type')
        reason = request.query_params.get('reason')
        start, end = date_range_bounds(
            parse_date(request.query_params.get('startDate')),
            parse_date(request.query_params.get('endDate')),
        )
        if variant_id:
            queryset = queryset.filter(variant_id=variant_id)
        if adjustment_type:
            queryset = queryset.filter(adjustment_type=adjustment_type)
        if reason:
            queryset = queryset.filter(reason=reason)
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)

        items, pagination = paginate(queryset, request.query_params, default_limit=20)
        return Response({
            'adjustments': StockAdjustmentSerializer(items, many=True).data,
            'pagination': pagination,
        })

    serializer = StockAdjustmentCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    result = apply_adjustment(
        data['variantId'], data['adjustmentType'], data['quantity'], data['reason'],
        notes=data['notes'], user=request.user,
    )
    adjustment = result['adjustment']
    log_activity(
        request=request,
        action=ActivityLog.ACTION_CREATE,
        resource='inventory',
        resource_id=adjustment.id,
        metadata={
            'variantId': adjustment.variant_id,
            'type': adjustment.adjustment_type,
            'quantity': adjustment.quantity,
            'reason': adjustment.reason,
            'stockBefore': adjustment.stock_before,
            'stockAfter': adjustment.stock_after,
        },
    )

    response = {
        'message': 'Stock adjusted',
        'adjustment': StockAdjustmentSerializer(adjustment).data,
        'movement': StockMovementSerializer(result['movement']).data,
    }
    if result['production_order'] is not None:
        response['productionOrder'] = TransactionSerializer(result['production_order']).data
    return Response(response, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('inventory.view')])
def inventory_analytics(request):
    """Days-of-stock forecasting: one variant, the low-stock list, recommendations, or a summary"""
    variant_id = parse_id(request.query_params.get('variantId'), 'variantId')
    analytics_type = request.query_params.get('type', 'all')

    if variant_id:
        remaining = analytics.calculate_days_remaining(variant_id)
        return Response({
            'variantId': variant_id,
            'daysRemaining': remaining,
            'status': analytics.inventory_status(remaining),
        })

    if analytics_type == 'low-stock':
        threshold = parse_int(request.query_params.get('threshold'), 14, minimum=0)
        variants = analytics.get_low_stock_variants(threshold)
        return Response({'variants': variants, 'total': len(variants)})

    if analytics_type == 'recommendations':
        recommendations = analytics.get_production_recommendations()
        return Response({'recommendations': recommendations, 'total': len(recommendations)})

    return Response(analytics.get_inventory_analytics_summary())


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('inventory.view')])
def stock_movement_list(request):
    """Stock ledger, newest first"""
    queryset = StockMovement.objects.select_related(
        'variant__product', 'variant__size', 'variant__color', 'created_by'
    )
    variant_id = parse_id(request.query_params.get('variantId'), 'variantId')
    movement_type = request.query_params.get('type')
    if variant_id:
        queryset = queryset.filter(variant_id=variant_id)
    if movement_type:
        queryset = queryset.filter(type=movement_type)

    items, pagination = paginate(queryset, request.query_params, default_limit=50)
    return Response({
        'movements': StockMovementSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'inventory.view',
    'POST': 'purchases.create',
})])
def reorder_suggestions(request):
    """Reorder suggestions (GET) or turn selected suggestions into a pending order (POST)"""
    if request.method == 'GET':
        return Response(analytics.build_reorder_suggestions())

    serializer = PurchaseCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    purchase = create_purchase(
        [
            {'variant_id': item['variantId'], 'quantity': item['quantity'], 'unit_price': item.get('unitPrice')}
            for item in data['items']
        ],
        user=request.user,
        supplier_id=data.get('supplierId'),
        notes=data['notes'] or 'Auto-generated from reorder suggestions',
        prefix=REORDER_PREFIX,
    )
    log_activity(
        request=request,
        action=ActivityLog.ACTION_CREATE,
        resource='purchases',
        resource_id=purchase.id,
        metadata={'invoiceNumber': purchase.invoice_number, 'source': 'reorder-suggestions'},
    )
    return Response({
        'message': 'Production order created',
        'transaction': TransactionSerializer(purchase).data,
        'summary': {
            'totalItems': len(data['items']),
            'totalCost': str(purchase.total_amount),
            'invoiceNumber': purchase.invoice_number,
        },
    }, status=status.HTTP_201_CREATED)
