import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from apparel.core.models import ActivityLog
from apparel.core.permissions import require_permission, require_method_permissions
from apparel.core.utils import log_activity, paginate, parse_date, date_range_bounds
from apparel.pos.models import Transaction
from apparel.pos.serializers import TransactionSerializer
from .serializers import PurchaseCreateSerializer
from .services import create_purchase, complete_purchase, cancel_purchase, delete_purchase, purchase_stats

logger = logging.getLogger(__name__)


def _purchase_queryset():
    return Transaction.objects.filter(type=Transaction.TYPE_PURCHASE).select_related(
        'user', 'supplier'
    ).prefetch_related('items__product', 'items__variant__product', 'items__variant__size', 'items__variant__color')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'purchases.view',
    'POST': 'purchases.create',
})])
def purchase_list_create(request):
    """List production orders with totals, or create a pending order"""
    if request.method == 'GET':
        queryset = _purchase_queryset().order_by('-created_at')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        start, end = date_range_bounds(
            parse_date(request.query_params.get('startDate')),
            parse_date(request.query_params.get('endDate')),
        )
        if start:
            queryset = queryset.filter(transaction_date__gte=start)
        if end:
            queryset = queryset.filter(transaction_date__lte=end)

        purchases, pagination = paginate(queryset, request.query_params, default_limit=10)
        return Response({
            'purchases': TransactionSerializer(purchases, many=True).data,
            'pagination': pagination,
            'stats': purchase_stats(queryset),
        })

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
        notes=data['notes'],
    )
    log_activity(request, ActivityLog.ACTION_CREATE, 'purchases', resource_id=purchase.id, metadata={
        'invoiceNumber': purchase.invoice_number,
        'totalAmount': str(purchase.total_amount),
    })
    return Response({
        'message': 'Production order created',
        'purchase': TransactionSerializer(purchase).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'purchases.view',
    'DELETE': 'purchases.delete',
})])
def purchase_detail(request, pk):
    """Retrieve a production order, or delete it while still pending"""
    purchase = get_object_or_404(_purchase_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(TransactionSerializer(purchase).data)

    invoice_number = delete_purchase(purchase.id)
    log_activity(request, ActivityLog.ACTION_DELETE, 'purchases', resource_id=pk,
                 metadata={'invoiceNumber': invoice_number})
    return Response({'message': 'Production order deleted'})


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, require_permission('purchases.edit')])
def purchase_complete(request, pk):
    """Complete a pending order: its quantities are added to stock"""
    purchase = complete_purchase(pk, user=request.user)
    log_activity(request, ActivityLog.ACTION_UPDATE, 'purchases', resource_id=purchase.id, metadata={
        'invoiceNumber': purchase.invoice_number,
        'status': purchase.status,
    })
    return Response({
        'message': 'Production order completed',
        'purchase': TransactionSerializer(_purchase_queryset().get(pk=purchase.id)).data,
    })


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, require_permission('purchases.edit')])
def purchase_cancel(request, pk):
    """Cancel a pending order"""
    purchase = cancel_purchase(pk, user=request.user)
    log_activity(request, ActivityLog.ACTION_VOID, 'purchases', resource_id=purchase.id, metadata={
        'invoiceNumber': purchase.invoice_number,
    })
    return Response({
        'message': 'Production order cancelled',
        'purchase': TransactionSerializer(purchase).data,
    })
