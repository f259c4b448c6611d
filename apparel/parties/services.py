"""Customer lookup and purchase-history statistics"""
import logging
from datetime import date
from decimal import Decimal

from django.utils import timezone

from apparel.pos.models import Transaction
from .models import Customer

logger = logging.getLogger(__name__)

FAVORITE_PRODUCTS_LIMIT = 5
RECENT_TRANSACTIONS_LIMIT = 10
MONTHLY_SPENDING_MONTHS = 6


def find_or_create_customer(name=None, phone=None):
    """
    Match a customer by phone when given, otherwise by name (case-insensitive).

    A new customer is created when nothing matches. Returns None when neither
    a name nor a phone is supplied.
    """
    name = (name or '').strip()
    phone = (phone or '').strip()
    if not name and not phone:
        return None

    if phone:
        customer = Customer.objects.filter(phone=phone).first()
    else:
        customer = Customer.objects.filter(name__iexact=name).first()
    if customer is not None:
        return customer

    customer = Customer.objects.create(name=name or phone, phone=phone or None)
    logger.info(f"Created customer {customer.id} ({customer.name})")
    return customer


def _month_keys(today, count):
    """The last ``count`` months as YYYY-MM, oldest first, ending with today's month"""
    year, month = today.year, today.month
    keys = []
    for _ in range(count):
        keys.append(f"{year}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


def customer_stats(customer):
    """Spending summary over the customer's completed sales"""
    sales = list(
        Transaction.objects.filter(
            customer=customer,
            type=Transaction.TYPE_SALE,
            status=Transaction.STATUS_COMPLETED,
        )
        .prefetch_related('items__product')
        .order_by('-transaction_date')
    )

    total_spent = sum((t.total_amount for t in sales), Decimal('0.00'))
    total_transactions = len(sales)
    total_items = 0
    products = {}
    for sale in sales:
        for item in sale.items.all():
            total_items += item.quantity
            entry = products.setdefault(item.product_id, {
                'product_id': item.product_id,
                'name': item.product.name,
                'sku': item.product.sku,
                'quantity': 0,
                'last_purchase': sale.transaction_date,
            })
            entry['quantity'] += item.quantity
            if sale.transaction_date > entry['last_purchase']:
                entry['last_purchase'] = sale.transaction_date

    favorite_products = sorted(products.values(), key=lambda p: -p['quantity'])[:FAVORITE_PRODUCTS_LIMIT]

    now = timezone.localtime()
    last_transaction = sales[0] if sales else None
    days_since_last_purchase = (now - last_transaction.transaction_date).days if last_transaction else None

    month_keys = _month_keys(date(now.year, now.month, 1), MONTHLY_SPENDING_MONTHS)
    monthly = {key: Decimal('0.00') for key in month_keys}
    for sale in sales:
        key = timezone.localtime(sale.transaction_date).strftime('%Y-%m')
        if key in monthly:
            monthly[key] += sale.total_amount

    return {
        'total_spent': total_spent,
        'total_transactions': total_transactions,
        'average_transaction_value': (
            (total_spent / total_transactions).quantize(Decimal('0.01')) if total_transactions else Decimal('0.00')
        ),
        'total_items': total_items,
        'favorite_products': favorite_products,
        'last_transaction': last_transaction,
        'days_since_last_purchase': days_since_last_purchase,
        'monthly_spending': [{'month': key, 'total': monthly[key]} for key in month_keys],
        'recent_transactions': sales[:RECENT_TRANSACTIONS_LIMIT],
    }
