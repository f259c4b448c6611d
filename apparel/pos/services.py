"""
Point-of-sale checkout.

A sale decrements stock for every line and writes an OUT movement per line,
all inside one transaction with the variant rows locked. Deleting a sale
puts the stock back.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction

from apparel.catalog.models import ProductVariant
from apparel.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from apparel.core.utils import resolve_period
from apparel.inventory.models import StockMovement
from apparel.inventory.services import change_stock
from apparel.parties.models import Customer
from apparel.parties.services import find_or_create_customer
from .models import Transaction, TransactionItem

logger = logging.getLogger(__name__)

INVOICE_PREFIX = 'INV'
SALE_REASON = 'SALE'
SALE_ROLLBACK_REASON = 'SALE_ROLLBACK'

CENT = Decimal('0.01')
HUNDRED = Decimal('100')


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(lines, discount_percent=0, tax_percent=0):
    """
    Sale totals from (quantity, unit_price) lines.

    The discount percentage applies to the subtotal; tax applies to the
    discounted amount.
    """
    subtotal = sum((Decimal(quantity) * Decimal(price) for quantity, price in lines), Decimal('0'))
    discount = subtotal * Decimal(str(discount_percent)) / HUNDRED
    tax = (subtotal - discount) * Decimal(str(tax_percent)) / HUNDRED
    total = subtotal - discount + tax
    return {
        'subtotal': money(subtotal),
        'discount': money(discount),
        'tax': money(tax),
        'total': money(total),
    }


def create_sale(items, user=None, customer_name=None, customer_phone=None,
                discount_percent=0, tax_percent=0, notes='', customer_id=None):
    """
    Record a completed sale.

    Args:
        items: [{'variant_id': int, 'quantity': int}]
        user: Cashier
        customer_name/customer_phone: Looked up or created via find_or_create_customer
        customer_id: Existing customer; takes precedence over name/phone
        discount_percent/tax_percent: 0-100

    Raises:
        ValidationError: no items or a non-positive quantity
        NotFoundError: an unknown variant or customer
        InsufficientStockError: one or more lines exceed the stock on hand
    """
    if not items:
        raise ValidationError('Items are required')

    quantities = {}
    for item in items:
        quantity = int(item['quantity'])
        if quantity <= 0:
            raise ValidationError('Quantity must be greater than 0')
        # Repeated lines for the same variant are merged
        quantities[item['variant_id']] = quantities.get(item['variant_id'], 0) + quantity

    with transaction.atomic():
        variants = {
            v.id: v for v in ProductVariant.objects.select_for_update()
            .select_related('product', 'size', 'color')
            .filter(pk__in=list(quantities.keys()))
        }
        missing = [variant_id for variant_id in quantities if variant_id not in variants]
        if missing:
            raise NotFoundError(f"Product variant {missing[0]} not found")

        shortages = [
            {
                'variantId': variant_id,
                'product': variants[variant_id].product.name,
                'size': variants[variant_id].size.name,
                'color': variants[variant_id].color.name,
                'available': variants[variant_id].stock,
                'requested': quantity,
            }
            for variant_id, quantity in quantities.items()
            if variants[variant_id].stock < quantity
        ]
        if shortages:
            first = shortages[0]
            raise InsufficientStockError(
                f"Insufficient stock for {first['product']}. Remaining stock: {first['available']}",
                details=shortages,
            )

        lines = [(quantity, variants[variant_id].product.selling_price) for variant_id, quantity in quantities.items()]
        totals = calculate_totals(lines, discount_percent, tax_percent)
        if customer_id is not None:
            customer = Customer.objects.filter(pk=customer_id).first()
            if customer is None:
                raise NotFoundError(f"Customer {customer_id} not found")
        else:
            customer = find_or_create_customer(customer_name, customer_phone)

        sale = Transaction.objects.create(
            type=Transaction.TYPE_SALE,
            invoice_number=Transaction.next_invoice_number(INVOICE_PREFIX),
            subtotal=totals['subtotal'],
            discount=totals['discount'],
            tax=totals['tax'],
            total_amount=totals['total'],
            status=Transaction.STATUS_COMPLETED,
            notes=notes or '',
            user=user if user is not None and user.is_authenticated else None,
            customer=customer,
        )
        sale.completed_at = sale.transaction_date
        sale.save(update_fields=['completed_at'])

        for variant_id, quantity in quantities.items():
            variant = variants[variant_id]
            unit_price = variant.product.selling_price
            TransactionItem.objects.create(
                transaction=sale,
                product=variant.product,
                variant=variant,
                quantity=quantity,
                unit_price=unit_price,
                total_price=money(unit_price * quantity),
            )
            change_stock(variant, -quantity, StockMovement.TYPE_OUT, SALE_REASON, sale.invoice_number, user=user)

    logger.info(f"Sale {sale.invoice_number}: {len(quantities)} lines, total {sale.total_amount}")
    return sale


def delete_sale(transaction_id, user=None):
    """Delete a sale and return its quantities to stock; returns the invoice number"""
    with transaction.atomic():
        try:
            sale = Transaction.objects.select_for_update().get(pk=transaction_id, type=Transaction.TYPE_SALE)
        except Transaction.DoesNotExist:
            raise NotFoundError('Sale not found')

        invoice_number = sale.invoice_number
        for item in sale.items.all():
            if item.variant_id is None:
                continue
            variant = ProductVariant.objects.select_for_update().get(pk=item.variant_id)
            change_stock(variant, item.quantity, StockMovement.TYPE_IN, SALE_ROLLBACK_REASON, invoice_number, user=user)

        sale.items.all().delete()
        sale.delete()

    logger.info(f"Deleted sale {invoice_number}; stock restored")
    return invoice_number


def transaction_profit(transaction_obj):
    """Gross profit of a SALE; zero for other document types"""
    return transaction_obj.get_profit()


def filter_transactions(query_params, default_days=30):
    """
    Transactions in the reporting window (period or startDate/endDate),
    optionally restricted by ``type``; newest first.
    """
    start, end = resolve_period(query_params, default_days=default_days)
    queryset = Transaction.objects.select_related('user', 'customer', 'supplier').prefetch_related(
        'items__product', 'items__variant__product', 'items__variant__size', 'items__variant__color'
    ).filter(transaction_date__gte=start, transaction_date__lte=end)

    transaction_type = query_params.get('type')
    if transaction_type and transaction_type != 'ALL':
        queryset = queryset.filter(type=transaction_type)
    return queryset.order_by('-transaction_date')


def transactions_summary(transactions):
    """Totals over completed documents: sales, purchases, profit and items"""
    summary = {
        'totalSales': Decimal('0.00'),
        'totalPurchases': Decimal('0.00'),
        'totalProfit': Decimal('0.00'),
        'totalItems': 0,
        'transactionCount': 0,
    }
    for t in transactions:
        summary['transactionCount'] += 1
        if t.status != Transaction.STATUS_COMPLETED:
            continue
        summary['totalItems'] += t.get_item_count()
        if t.type == Transaction.TYPE_SALE:
            summary['totalSales'] += t.total_amount
            summary['totalProfit'] += t.get_profit()
        elif t.type == Transaction.TYPE_PURCHASE:
            summary['totalPurchases'] += t.total_amount
    return summary
