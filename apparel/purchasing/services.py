"""
Production (purchase) orders.

An order is a PURCHASE transaction that starts PENDING and leaves stock
untouched; completing it books the quantities into stock.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apparel.catalog.models import ProductVariant
from apparel.core.exceptions import ValidationError, NotFoundError, InvalidStateError
from apparel.inventory.models import StockMovement
from apparel.inventory.services import lock_variant, change_stock
from apparel.parties.models import Supplier
from apparel.pos.models import Transaction, TransactionItem

logger = logging.getLogger(__name__)

PRODUCTION_PREFIX = 'PROD'
REORDER_PREFIX = 'PO'
PURCHASE_REASON = 'PURCHASE'


def get_purchase(purchase_id, for_update=False):
    queryset = Transaction.objects.filter(type=Transaction.TYPE_PURCHASE)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=purchase_id)
    except (Transaction.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Production order not found')


def create_purchase(items, user=None, supplier_id=None, notes='', prefix=PRODUCTION_PREFIX):
    """
    Create a PENDING purchase order.

    Args:
        items: [{'variant_id', 'quantity', 'unit_price' (optional)}]
        user: Creating user
        supplier_id: Optional supplier
        notes: Free text
        prefix: Document number prefix (PROD for production, PO for reorders)

    A missing unit price falls back to the variant's effective cost price.
    """
    if not items:
        raise ValidationError('Items are required')

    supplier = None
    if supplier_id:
        supplier = Supplier.objects.filter(pk=supplier_id).first()
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

    variant_ids = [item['variant_id'] for item in items]
    variants = ProductVariant.objects.select_related('product').in_bulk(variant_ids)

    lines = []
    total = Decimal('0.00')
    for item in items:
        variant = variants.get(item['variant_id'])
        if variant is None:
            raise NotFoundError(f"Product variant {item['variant_id']} not found")
        quantity = int(item['quantity'])
        if quantity <= 0:
            raise ValidationError('Quantity must be greater than 0')
        unit_price = item.get('unit_price')
        unit_price = Decimal(str(unit_price)) if unit_price is not None else variant.effective_cost_price
        line_total = (unit_price * quantity).quantize(Decimal('0.01'))
        total += line_total
        lines.append((variant, quantity, unit_price, line_total))

    with transaction.atomic():
        purchase = Transaction.objects.create(
            type=Transaction.TYPE_PURCHASE,
            invoice_number=Transaction.next_invoice_number(prefix),
            subtotal=total,
            total_amount=total,
            status=Transaction.STATUS_PENDING,
            notes=notes or '',
            supplier=supplier,
            user=user if user is not None and user.is_authenticated else None,
        )
        TransactionItem.objects.bulk_create([
            TransactionItem(
                transaction=purchase,
                product=variant.product,
                variant=variant,
                quantity=quantity,
                unit_price=unit_price,
                total_price=line_total,
            )
            for variant, quantity, unit_price, line_total in lines
        ])

    logger.info(f"Created production order {purchase.invoice_number}: {len(lines)} items, total {total}")
    return purchase


def complete_purchase(purchase_id, user=None):
    """Mark a PENDING order COMPLETED and add its quantities to stock"""
    with transaction.atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if purchase.status == Transaction.STATUS_COMPLETED:
            raise InvalidStateError('Production order is already completed')
        if purchase.status == Transaction.STATUS_CANCELLED:
            raise InvalidStateError('Production order has been cancelled')

        for item in purchase.items.all():
            if item.variant_id is None:
                continue
            variant = lock_variant(item.variant_id)
            change_stock(
                variant, item.quantity, StockMovement.TYPE_IN,
                PURCHASE_REASON, purchase.invoice_number, user=user,
            )

        purchase.status = Transaction.STATUS_COMPLETED
        purchase.completed_at = timezone.now()
        purchase.save(update_fields=['status', 'completed_at', 'updated_at'])

    logger.info(f"Completed production order {purchase.invoice_number}")
    return purchase


def cancel_purchase(purchase_id, user=None):
    with transaction.atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if purchase.status != Transaction.STATUS_PENDING:
            raise InvalidStateError('Only pending production orders can be cancelled')
        purchase.status = Transaction.STATUS_CANCELLED
        purchase.save(update_fields=['status', 'updated_at'])

    logger.info(f"Cancelled production order {purchase.invoice_number}")
    return purchase


def delete_purchase(purchase_id):
    with transaction.atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if purchase.status != Transaction.STATUS_PENDING:
            raise InvalidStateError('Only pending production orders can be deleted')
        invoice_number = purchase.invoice_number
        purchase.delete()

    logger.info(f"Deleted production order {invoice_number}")
    return invoice_number


def purchase_stats(queryset):
    """Totals over every order matching the list filters (not just one page)"""
    totals = {'totalItems': 0, 'totalAmount': Decimal('0.00'), 'pendingCount': 0, 'completedCount': 0}
    for purchase in queryset.prefetch_related('items'):
        totals['totalItems'] += sum(item.quantity for item in purchase.items.all())
        totals['totalAmount'] += purchase.total_amount
        if purchase.status == Transaction.STATUS_PENDING:
            totals['pendingCount'] += 1
        elif purchase.status == Transaction.STATUS_COMPLETED:
            totals['completedCount'] += 1
    return totals
