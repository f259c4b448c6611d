"""
Inventory forecasting.

The pure functions at the top turn sales history into a days-of-stock
estimate and a status tier; the query helpers below feed them from the
database. Window and threshold defaults come from settings.INVENTORY_CONFIG.
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Sum, F
from django.utils import timezone

from apparel.catalog.models import ProductVariant
from apparel.pos.models import Transaction, TransactionItem
from .models import StockMovement

logger = logging.getLogger(__name__)

REORDER_LEAD_TIME_DAYS = 7
REORDER_HISTORY_MOVEMENTS = 10
REORDER_HISTORY_DAYS = 30
NO_STOCKOUT_DAYS = 999

PRIORITY_ORDER = {'URGENT': 4, 'HIGH': 3, 'MEDIUM': 2, 'LOW': 1}
OVERVIEW_STATUS_ORDER = {'CRITICAL': 4, 'LOW': 3, 'OVERSTOCK': 2, 'NORMAL': 1}


def _config(key):
    return settings.INVENTORY_CONFIG[key]


def average_daily_sales(total_sold, days):
    if days <= 0:
        return 0
    return total_sold / days


def days_remaining(stock, avg_daily_sales):
    """Whole days until stock runs out at the given rate; None without sales"""
    if not avg_daily_sales or avg_daily_sales <= 0:
        return None
    # Half-up, so 2.5 days reads as 3
    return int(math.floor(stock / avg_daily_sales + 0.5))


def inventory_status(days):
    """Status tier for a days-remaining estimate"""
    if days is None:
        return {'status': 'unknown', 'color': 'gray', 'message': 'Not enough sales data', 'priority': 0}
    if days <= 7:
        return {'status': 'critical', 'color': 'red', 'message': 'Critical stock, produce immediately', 'priority': 3}
    if days <= 14:
        return {'status': 'warning', 'color': 'yellow', 'message': 'Low stock, needs attention', 'priority': 2}
    if days <= 30:
        return {'status': 'normal', 'color': 'blue', 'message': 'Stock normal', 'priority': 1}
    return {'status': 'safe', 'color': 'green', 'message': 'Stock safe', 'priority': 0}


def reorder_point(avg_daily_sales, lead_time_days, safety_stock_days=7):
    return math.ceil(avg_daily_sales * (lead_time_days + safety_stock_days))


def max_stock_for(min_stock):
    return max(min_stock * 3, 50)


def units_sold(variant_ids=None, days=None):
    """
    Units sold per variant over the trailing window.

    Only completed SALE documents count. Returns {variant_id: quantity}.
    """
    days = days or _config('FORECAST_WINDOW_DAYS')
    since = timezone.now() - timedelta(days=days)
    queryset = TransactionItem.objects.filter(
        transaction__type=Transaction.TYPE_SALE,
        transaction__status=Transaction.STATUS_COMPLETED,
        transaction__transaction_date__gte=since,
        variant__isnull=False,
    )
    if variant_ids is not None:
        queryset = queryset.filter(variant_id__in=variant_ids)
    rows = queryset.values('variant_id').annotate(total=Sum('quantity'))
    return {row['variant_id']: row['total'] or 0 for row in rows}


def calculate_days_remaining(variant_id, days=None):
    """Days of stock left for one variant, or None when it has not sold"""
    days = days or _config('FORECAST_WINDOW_DAYS')
    variant = ProductVariant.objects.filter(pk=variant_id).only('id', 'stock').first()
    if variant is None:
        return None
    total_sold = units_sold([variant.id], days=days).get(variant.id, 0)
    return days_remaining(variant.stock, average_daily_sales(total_sold, days))


def _variant_summary(variant):
    return {
        'id': variant.id,
        'product': {'id': variant.product_id, 'name': variant.product.name, 'sku': variant.product.sku},
        'size': variant.size.name,
        'color': variant.color.name,
        'barcode': variant.barcode,
        'stock': variant.stock,
        'min_stock': variant.min_stock,
    }


def get_low_stock_variants(threshold_days=None, days=None):
    """
    Active, in-stock variants expected to sell out within ``threshold_days``.

    Most urgent first: higher priority, then fewer days remaining.
    """
    threshold_days = threshold_days if threshold_days is not None else _config('LOW_STOCK_THRESHOLD_DAYS')
    days = days or _config('FORECAST_WINDOW_DAYS')

    variants = list(
        ProductVariant.objects.filter(is_active=True, stock__gt=0)
        .select_related('product', 'size', 'color')
    )
    sold = units_sold([v.id for v in variants], days=days)

    results = []
    for variant in variants:
        remaining = days_remaining(variant.stock, average_daily_sales(sold.get(variant.id, 0), days))
        if remaining is None or remaining > threshold_days:
            continue
        entry = _variant_summary(variant)
        entry['days_remaining'] = remaining
        entry['status'] = inventory_status(remaining)
        results.append(entry)

    results.sort(key=lambda item: (-item['status']['priority'], item['days_remaining']))
    return results


def get_production_recommendations():
    """How many units to produce for variants running out within the production threshold"""
    lead_time = _config('LEAD_TIME_DAYS')
    safety_days = _config('SAFETY_STOCK_DAYS')

    recommendations = []
    for variant in get_low_stock_variants(_config('PRODUCTION_THRESHOLD_DAYS')):
        avg = variant['stock'] / (variant['days_remaining'] or 1)
        quantity = max(reorder_point(avg, lead_time, safety_days) - variant['stock'], 0)
        if quantity <= 0:
            continue
        recommendations.append({
            'variant': variant,
            'recommended_quantity': quantity,
            'urgency': variant['status']['priority'],
            'reason': f"Stock runs out in {variant['days_remaining']} days",
        })
    return recommendations


def get_inventory_analytics_summary():
    low_stock = get_low_stock_variants()
    return {
        'lowStockVariants': low_stock,
        'productionRecommendations': get_production_recommendations(),
        'totalVariants': ProductVariant.objects.filter(is_active=True).count(),
        'criticalStock': len([v for v in low_stock if v['status']['status'] == 'critical']),
        'warningStock': len([v for v in low_stock if v['status']['status'] == 'warning']),
    }


def reorder_priority(stock, min_stock):
    if stock <= 0:
        return 'URGENT'
    if stock <= min_stock / 2:
        return 'HIGH'
    if stock <= min_stock:
        return 'MEDIUM'
    return 'LOW'


def reorder_suggestion(variant, recent_out_quantities):
    """
    Reorder maths for one variant.

    ``recent_out_quantities`` are the quantities of its latest OUT movements,
    treated as a month of demand.
    """
    stock = variant.stock
    min_stock = variant.min_stock
    max_stock = max_stock_for(min_stock)

    total_out = sum(recent_out_quantities)
    span = REORDER_HISTORY_DAYS if recent_out_quantities else 1
    avg = total_out / span
    lead_time = REORDER_LEAD_TIME_DAYS
    safety_stock = max(avg * lead_time, min_stock)
    suggested = math.ceil(max(max_stock - stock, safety_stock + avg * lead_time - stock))
    days_until_stockout = math.floor(stock / avg) if avg > 0 else NO_STOCKOUT_DAYS

    return {
        'id': variant.id,
        'product': {
            'id': variant.product_id,
            'name': variant.product.name,
            'sku': variant.product.sku,
            'category': variant.product.category.name if variant.product.category else None,
            'brand': variant.product.brand.name if variant.product.brand else None,
        },
        'size': variant.size.name,
        'color': variant.color.name,
        'currentStock': stock,
        'minStock': min_stock,
        'maxStock': max_stock,
        'suggestedQuantity': suggested,
        'priority': reorder_priority(stock, min_stock),
        'avgDailySales': round(avg, 2),
        'daysUntilStockout': days_until_stockout,
        'leadTime': lead_time,
        'safetyStock': math.ceil(safety_stock),
        'estimatedCost': suggested * variant.effective_cost_price,
        'potentialRevenue': suggested * variant.product.selling_price,
    }


def build_reorder_suggestions():
    """Suggestions for every active variant at or below its minimum, plus a summary"""
    variants = list(
        ProductVariant.objects.filter(is_active=True, stock__lte=F('min_stock'))
        .select_related('product', 'product__category', 'product__brand', 'size', 'color')
    )

    suggestions = []
    for variant in variants:
        recent = list(
            StockMovement.objects.filter(variant=variant, type=StockMovement.TYPE_OUT)
            .order_by('-created_at')
            .values_list('quantity', flat=True)[:REORDER_HISTORY_MOVEMENTS]
        )
        suggestions.append(reorder_suggestion(variant, recent))

    suggestions.sort(key=lambda s: (-PRIORITY_ORDER[s['priority']], s['daysUntilStockout']))

    count = len(suggestions)
    summary = {
        'totalItems': count,
        'urgentItems': len([s for s in suggestions if s['priority'] == 'URGENT']),
        'highPriorityItems': len([s for s in suggestions if s['priority'] == 'HIGH']),
        'totalEstimatedCost': sum((s['estimatedCost'] for s in suggestions), Decimal('0.00')),
        'totalPotentialRevenue': sum((s['potentialRevenue'] for s in suggestions), Decimal('0.00')),
        'averageDaysUntilStockout': (
            sum(s['daysUntilStockout'] for s in suggestions) / count if count else 0
        ),
    }
    return {'suggestions': suggestions, 'summary': summary}


def classify_stock(stock, min_stock):
    """Overview bucket: CRITICAL, LOW, OVERSTOCK or NORMAL"""
    if stock <= 0:
        return 'CRITICAL'
    if stock <= min_stock:
        return 'LOW'
    if stock >= max_stock_for(min_stock):
        return 'OVERSTOCK'
    return 'NORMAL'


def overview_entry(variant, last_movement=None):
    stock = variant.stock
    min_stock = variant.min_stock
    max_stock = max_stock_for(min_stock)
    stock_status = classify_stock(stock, min_stock)
    suggested_reorder = 0
    if stock_status in ('LOW', 'CRITICAL'):
        suggested_reorder = max(max_stock - stock, min_stock * 2)

    return {
        'id': variant.id,
        'product': {
            'id': variant.product_id,
            'name': variant.product.name,
            'sku': variant.product.sku,
            'category': variant.product.category.name if variant.product.category else None,
            'brand': variant.product.brand.name if variant.product.brand else None,
        },
        'size': variant.size.name,
        'color': variant.color.name,
        'barcode': variant.barcode,
        'currentStock': stock,
        'minStock': min_stock,
        'maxStock': max_stock,
        'stockStatus': stock_status,
        'inventoryValue': stock * variant.product.selling_price,
        'suggestedReorder': suggested_reorder,
        'lastUpdated': variant.updated_at,
        'lastMovement': last_movement,
    }


def build_inventory_overview(category_id=None, brand_id=None, alerts_only=False):
    """Per-variant stock classification with summary counts and total value"""
    queryset = ProductVariant.objects.select_related(
        'product', 'product__category', 'product__brand', 'size', 'color'
    )
    if category_id:
        queryset = queryset.filter(product__category_id=category_id)
    if brand_id:
        queryset = queryset.filter(product__brand_id=brand_id)
    variants = list(queryset)

    latest = {}
    for movement in (
        StockMovement.objects.filter(variant_id__in=[v.id for v in variants])
        .order_by('variant_id', '-created_at', '-id')
        .values('variant_id', 'type', 'quantity', 'reason', 'reference', 'created_at')
    ):
        latest.setdefault(movement['variant_id'], movement)

    entries = [overview_entry(v, latest.get(v.id)) for v in variants]

    summary = {
        'totalProducts': len(entries),
        'totalValue': sum((e['inventoryValue'] for e in entries), Decimal('0.00')),
        'criticalStock': len([e for e in entries if e['stockStatus'] == 'CRITICAL']),
        'lowStock': len([e for e in entries if e['stockStatus'] == 'LOW']),
        'normalStock': len([e for e in entries if e['stockStatus'] == 'NORMAL']),
        'overStock': len([e for e in entries if e['stockStatus'] == 'OVERSTOCK']),
        'totalReorderSuggestions': len([e for e in entries if e['suggestedReorder'] > 0]),
    }

    if alerts_only:
        entries = [e for e in entries if e['stockStatus'] != 'NORMAL']
    entries.sort(key=lambda e: -OVERVIEW_STATUS_ORDER[e['stockStatus']])

    return {'inventory': entries, 'summary': summary}
