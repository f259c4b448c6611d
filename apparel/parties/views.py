from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Q, Sum, Value, DecimalField
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404

from apparel.core.models import ActivityLog
from apparel.core.permissions import require_method_permissions
from apparel.core.utils import log_activity
from apparel.pos.models import Transaction
from apparel.pos.serializers import TransactionListSerializer
from .models import Customer, Supplier
from .serializers import CustomerSerializer, SupplierSerializer
from .services import customer_stats

ZERO = Value(0, output_field=DecimalField(max_digits=14, decimal_places=2))


def _completed(type_):
    return Q(transactions__type=type_, transactions__status=Transaction.STATUS_COMPLETED)


def _customers_with_totals():
    sales = _completed(Transaction.TYPE_SALE)
    return Customer.objects.annotate(
        transaction_count=Count('transactions', filter=sales),
        total_spent=Coalesce(Sum('transactions__total_amount', filter=sales), ZERO),
    )


def _suppliers_with_totals():
    purchases = Q(transactions__type=Transaction.TYPE_PURCHASE)
    return Supplier.objects.annotate(
        purchase_count=Count('transactions', filter=purchases),
        purchase_total=Coalesce(Sum('transactions__total_amount', filter=purchases), ZERO),
    )


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'customers.view',
    'POST': 'customers.create',
})])
def customer_list_create(request):
    """List active customers with their sales totals, or create a customer"""
    if request.method == 'GET':
        queryset = _customers_with_totals().filter(is_active=True)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(phone__icontains=search))
        return Response({'customers': CustomerSerializer(queryset, many=True).data})

    serializer = CustomerSerializer(data=request.data)
    if serializer.is_valid():
        customer = serializer.save()
        log_activity(request, ActivityLog.ACTION_CREATE, 'customers', resource_id=customer.id,
                     metadata={'name': customer.name, 'phone': customer.phone})
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'customers.view',
    'PUT': 'customers.edit',
    'PATCH': 'customers.edit',
    'DELETE': 'customers.delete',
})])
def customer_detail(request, pk):
    """Customer with purchase statistics; update; or soft delete"""
    customer = get_object_or_404(_customers_with_totals(), pk=pk)

    if request.method == 'GET':
        stats = customer_stats(customer)
        recent = stats.pop('recent_transactions')
        last = stats['last_transaction']
        stats['last_transaction'] = TransactionListSerializer(last).data if last else None
        return Response({
            'customer': CustomerSerializer(customer).data,
            'transactions': TransactionListSerializer(recent, many=True).data,
            'stats': stats,
        })

    if request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(customer, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            log_activity(request, ActivityLog.ACTION_UPDATE, 'customers', resource_id=customer.id,
                         metadata={'fields': sorted(serializer.validated_data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    customer.is_active = False
    customer.save(update_fields=['is_active', 'updated_at'])
    log_activity(request, ActivityLog.ACTION_DELETE, 'customers', resource_id=customer.id,
                 metadata={'name': customer.name})
    return Response({'message': 'Customer deleted'})


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'suppliers.view',
    'POST': 'suppliers.create',
})])
def supplier_list_create(request):
    """List active suppliers or create a new supplier"""
    if request.method == 'GET':
        queryset = _suppliers_with_totals().filter(is_active=True)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(contact__icontains=search))
        return Response({'suppliers': SupplierSerializer(queryset, many=True).data})

    serializer = SupplierSerializer(data=request.data)
    if serializer.is_valid():
        supplier = serializer.save()
        log_activity(request, ActivityLog.ACTION_CREATE, 'suppliers', resource_id=supplier.id,
                     metadata={'name': supplier.name})
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'suppliers.view',
    'PUT': 'suppliers.edit',
    'PATCH': 'suppliers.edit',
    'DELETE': 'suppliers.delete',
})])
def supplier_detail(request, pk):
    """Retrieve, update or soft delete a supplier"""
    supplier = get_object_or_404(_suppliers_with_totals(), pk=pk)

    if request.method == 'GET':
        return Response(SupplierSerializer(supplier).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = SupplierSerializer(supplier, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            log_activity(request, ActivityLog.ACTION_UPDATE, 'suppliers', resource_id=supplier.id,
                         metadata={'fields': sorted(serializer.validated_data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    supplier.is_active = False
    supplier.save(update_fields=['is_active', 'updated_at'])
    log_activity(request, ActivityLog.ACTION_DELETE, 'suppliers', resource_id=supplier.id,
                 metadata={'name': supplier.name})
    return Response({'message': 'Supplier deleted'})
