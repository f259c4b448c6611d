import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from apparel.core.models import ActivityLog
from apparel.core.permissions import require_permission, require_method_permissions
from apparel.core.utils import log_activity, paginate, parse_date, date_range_bounds, parse_int
from .models import Transaction
from .serializers import TransactionSerializer, TransactionListSerializer, SaleCreateSerializer
from .services import create_sale, delete_sale, filter_transactions, transactions_summary

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'sales.view',
    'POST': ('sales.create', 'pos.create'),
})])
def sale_list_create(request):
    """List sales (page/limit, startDate/endDate) or ring up a new sale"""
    if request.method == 'GET':
        queryset = Transaction.objects.filter(type=Transaction.TYPE_SALE).select_related(
            'user', 'customer'
        ).prefetch_related('items__product', 'items__variant__product').order_by('-transaction_date')

        start, end = date_range_bounds(
            parse_date(request.query_params.get('startDate')),
            parse_date(request.query_params.get('endDate')),
        )
        if start:
            queryset = queryset.filter(transaction_date__gte=start)
        if end:
            queryset = queryset.filter(transaction_date__lte=end)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(invoice_number__icontains=search)

        sales, pagination = paginate(queryset, request.query_params, default_limit=10)
        return Response({
            'sales': TransactionListSerializer(sales, many=True).data,
            'pagination': pagination,
        })

    serializer = SaleCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    sale = create_sale(
        [{'variant_id': item['variantId'], 'quantity': item['quantity']} for item in data['items']],
        user=request.user,
        customer_name=data['customerName'],
        customer_phone=data['customerPhone'],
        customer_id=data.get('customerId'),
        discount_percent=data['discount'],
        tax_percent=data['tax'],
        notes=data['notes'],
    )
    log_activity(request, ActivityLog.ACTION_CREATE, 'sales', resource_id=sale.id, metadata={
        'invoiceNumber': sale.invoice_number,
        'totalAmount': str(sale.total_amount),
        'itemCount': sale.get_item_count(),
    })
    return Response({
        'message': 'Sale recorded',
        'transaction': TransactionSerializer(sale).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'sales.view',
    'DELETE': 'sales.delete',
})])
def sale_detail(request, pk):
    """Sale with items and profit, or delete it and restore the stock"""
    sale = get_object_or_404(
        Transaction.objects.select_related('user', 'customer').prefetch_related(
            'items__product', 'items__variant__product', 'items__variant__size', 'items__variant__color'
        ),
        pk=pk, type=Transaction.TYPE_SALE,
    )

    if request.method == 'GET':
        return Response(TransactionSerializer(sale).data)

    metadata = {'invoiceNumber': sale.invoice_number, 'totalAmount': str(sale.total_amount)}
    delete_sale(sale.id, user=request.user)
    log_activity(request, ActivityLog.ACTION_DELETE, 'sales', resource_id=pk, metadata=metadata)
    return Response({'message': 'Sale deleted and stock restored'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('sales.view', 'reports.view')])
def transaction_list(request):
    """Every transaction type in the window, each with profit and item count, plus totals"""
    transactions = list(filter_transactions(request.query_params))
    return Response({
        'transactions': TransactionSerializer(transactions, many=True).data,
        'summary': transactions_summary(transactions),
        'totalCount': len(transactions),
        'period': parse_int(request.query_params.get('period'), 30, minimum=1),
    })
