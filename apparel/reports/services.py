"""
Sales and production analytics, the dashboard and transaction exports.

Analytics and dashboard payloads are cached in the reports namespace, which
cache_signals invalidates whenever transactions or stock change.
"""
import logging
from datetime import timedelta
from decimal import Decimal
from io import BytesIO

from django.db.models import Sum, Count, F, DecimalField, ExpressionWrapper
from django.db.models.functions import Coalesce
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from apparel.catalog.models import Product, ProductVariant
from apparel.core.cache_utils import cached_query, DASHBOARD_CACHE_TTL, REPORTS_CACHE_TTL
from apparel.core.utils import date_range_bounds, parse_date, parse_int
from apparel.pos.models import Transaction, TransactionItem
from apparel.pos.services import transactions_summary

logger = logging.getLogger(__name__)

TREND_DAYS = 7
TOP_PRODUCTS_LIMIT = 10
TOP_CUSTOMERS_LIMIT = 10
LOW_STOCK_LIMIT = 10
WALK_IN_CUSTOMER = 'Walk-in Customer'

EXPORT_HEADERS = [
    'No', 'Date', 'Invoice No', 'Type', 'Supplier/User',
    'Item Count', 'Total Amount', 'Profit', 'Status',
]

ZERO = Decimal('0.00')


def analytics_window(query_params, default_days=30):
    """
    (start_date, end_date) for analytics: startDate/endDate when both parse,
    otherwise the last ``period`` calendar days, today included.
    """
    start_date = parse_date(query_params.get('startDate'))
    end_date = parse_date(query_params.get('endDate'))
    if start_date and end_date:
        return start_date, end_date
    days = parse_int(query_params.get('period'), default_days, minimum=1)
    today = timezone.localdate()
    return today - timedelta(days=days - 1), today


def _sales_profit(sales):
    return sum((sale.get_profit() for sale in sales), ZERO)


def _daily_sales(today):
    trend = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        start, end = date_range_bounds(day, day)
        sales = list(
            Transaction.objects.filter(
                type=Transaction.TYPE_SALE,
                status=Transaction.STATUS_COMPLETED,
                transaction_date__gte=start,
                transaction_date__lte=end,
            ).prefetch_related('items__variant__product', 'items__product')
        )
        trend.append({
            'date': day.isoformat(),
            'sales': sum((sale.total_amount for sale in sales), ZERO),
            'transactions': len(sales),
            'profit': _sales_profit(sales),
        })
    return trend


def _daily_production(today):
    trend = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        start, end = date_range_bounds(day, day)
        orders = Transaction.objects.filter(
            type=Transaction.TYPE_PURCHASE,
            status=Transaction.STATUS_COMPLETED,
            completed_at__gte=start,
            completed_at__lte=end,
        )
        totals = orders.aggregate(cost=Sum('total_amount'), count=Count('id'))
        items = TransactionItem.objects.filter(transaction__in=orders).aggregate(total=Sum('quantity'))['total']
        trend.append({
            'date': day.isoformat(),
            'cost': totals['cost'] or ZERO,
            'orders': totals['count'],
            'items': items or 0,
        })
    return trend


def _low_stock_entries(limit=LOW_STOCK_LIMIT):
    variants = ProductVariant.objects.filter(
        is_active=True, stock__lte=F('min_stock')
    ).select_related('product__category', 'product__brand', 'size', 'color').order_by('stock')[:limit]
    return [
        {
            'id': v.id,
            'productName': v.product.name,
            'sku': v.product.sku,
            'category': v.product.category.name if v.product.category else None,
            'brand': v.product.brand.name if v.product.brand else None,
            'size': v.size.name,
            'color': v.color.name,
            'barcode': v.barcode,
            'stock': v.stock,
            'minStock': v.min_stock,
        }
        for v in variants
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="analytics")
def build_analytics(start_date, end_date):
    """
    Sales, profit and production figures for [start_date, end_date].

    The 7-day trends always end today, whatever the window.
    """
    start, end = date_range_bounds(start_date, end_date)
    in_window = {'transaction_date__gte': start, 'transaction_date__lte': end}

    sales = list(
        Transaction.objects.filter(
            type=Transaction.TYPE_SALE, status=Transaction.STATUS_COMPLETED, **in_window
        ).select_related('customer').prefetch_related('items__variant__product', 'items__product')
    )
    total_sales = sum((sale.total_amount for sale in sales), ZERO)
    total_items = sum(sale.get_item_count() for sale in sales)
    total_profit = _sales_profit(sales)

    top_products = list(
        TransactionItem.objects.filter(
            transaction__type=Transaction.TYPE_SALE,
            transaction__status=Transaction.STATUS_COMPLETED,
            transaction__transaction_date__gte=start,
            transaction__transaction_date__lte=end,
        ).values('product_id', 'product__name', 'product__sku').annotate(
            quantity=Sum('quantity'), revenue=Sum('total_price')
        ).order_by('-quantity', 'product__name')[:TOP_PRODUCTS_LIMIT]
    )

    customers = {}
    for sale in sales:
        name = sale.customer.name if sale.customer else WALK_IN_CUSTOMER
        entry = customers.setdefault(name, {'customerName': name, 'totalSpent': ZERO, 'transactionCount': 0})
        entry['totalSpent'] += sale.total_amount
        entry['transactionCount'] += 1
    top_customers = sorted(customers.values(), key=lambda c: c['totalSpent'], reverse=True)[:TOP_CUSTOMERS_LIMIT]

    purchases = Transaction.objects.filter(type=Transaction.TYPE_PURCHASE, **in_window)
    pending = purchases.filter(status=Transaction.STATUS_PENDING).aggregate(
        count=Count('id'), amount=Sum('total_amount')
    )
    completed = purchases.filter(status=Transaction.STATUS_COMPLETED)
    completed_totals = completed.aggregate(count=Count('id'), amount=Sum('total_amount'))
    items_produced = TransactionItem.objects.filter(transaction__in=completed).aggregate(
        total=Sum('quantity')
    )['total'] or 0

    today = timezone.localdate()
    return {
        'period': {'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()},
        'overview': {
            'totalSales': total_sales,
            'totalTransactions': len(sales),
            'totalItemsSold': total_items,
            'averageTransactionValue': (total_sales / len(sales)).quantize(Decimal('0.01')) if sales else ZERO,
            'totalProfit': total_profit,
            'profitMargin': round(float(total_profit / total_sales * 100), 2) if total_sales else 0,
        },
        'dailySales': _daily_sales(today),
        'dailyProduction': _daily_production(today),
        'topProducts': [
            {
                'productId': row['product_id'],
                'productName': row['product__name'],
                'sku': row['product__sku'],
                'quantity': row['quantity'],
                'revenue': row['revenue'] or ZERO,
            }
            for row in top_products
        ],
        'topCustomers': top_customers,
        'productionOverview': {
            'pendingOrders': pending['count'],
            'pendingAmount': pending['amount'] or ZERO,
            'completedOrders': completed_totals['count'],
            'totalProductionCost': completed_totals['amount'] or ZERO,
            'totalItemsProduced': items_produced,
        },
        'lowStock': _low_stock_entries(),
    }


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix="dashboard")
def build_dashboard(today):
    """Today's takings plus catalog and stock headline numbers"""
    start, end = date_range_bounds(today, today)
    todays_sales = Transaction.objects.filter(
        type=Transaction.TYPE_SALE,
        status=Transaction.STATUS_COMPLETED,
        transaction_date__gte=start,
        transaction_date__lte=end,
    ).aggregate(total=Sum('total_amount'), count=Count('id'))

    active_variants = ProductVariant.objects.filter(is_active=True, product__is_active=True)
    unit_cost = Coalesce(F('cost_price'), F('product__cost_price'))
    values = active_variants.aggregate(
        cost_value=Sum(ExpressionWrapper(F('stock') * unit_cost, output_field=DecimalField())),
        retail_value=Sum(ExpressionWrapper(F('stock') * F('product__selling_price'), output_field=DecimalField())),
        units=Sum('stock'),
    )

    return {
        'date': today.isoformat(),
        'todaySales': todays_sales['total'] or ZERO,
        'todayTransactions': todays_sales['count'],
        'totalProducts': Product.objects.filter(is_active=True).count(),
        'activeVariants': active_variants.count(),
        'lowStockCount': active_variants.filter(stock__gt=0, stock__lte=F('min_stock')).count(),
        'outOfStockCount': active_variants.filter(stock__lte=0).count(),
        'totalUnits': values['units'] or 0,
        'inventoryValue': values['cost_value'] or ZERO,
        'retailValue': values['retail_value'] or ZERO,
    }


def _party_label(t):
    if t.supplier:
        return t.supplier.name
    if t.customer:
        return t.customer.name
    if t.user:
        return t.user.get_full_name() or t.user.username
    return '-'


def transaction_export_rows(transactions):
    """One list per transaction in EXPORT_HEADERS order"""
    rows = []
    for index, t in enumerate(transactions, start=1):
        rows.append([
            index,
            timezone.localtime(t.transaction_date).strftime('%Y-%m-%d %H:%M'),
            t.invoice_number,
            t.type,
            _party_label(t),
            t.get_item_count(),
            float(t.total_amount),
            float(t.get_profit()),
            t.status,
        ])
    return rows


def _summary_rows(transactions):
    summary = transactions_summary(transactions)
    return [
        ['Total Sales', float(summary['totalSales'])],
        ['Total Purchases', float(summary['totalPurchases'])],
        ['Total Profit', float(summary['totalProfit'])],
        ['Total Items', summary['totalItems']],
    ]


def _add_excel_headers(worksheet, headers):
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="CCCCCC", end_color="CCCCCC", fill_type="solid")
    for col_idx, header in enumerate(headers, 1):
        cell = worksheet.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill


def _adjust_excel_columns(worksheet):
    for column in worksheet.columns:
        max_length = 0
        column_letter = get_column_letter(column[0].column)
        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        worksheet.column_dimensions[column_letter].width = min(max_length + 2, 50)


def export_transactions_xlsx(transactions):
    """Workbook bytes: a header row, one row per transaction, then the totals"""
    transactions = list(transactions)
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Transactions"

    _add_excel_headers(worksheet, EXPORT_HEADERS)
    for row in transaction_export_rows(transactions):
        worksheet.append(row)

    worksheet.append([])
    bold = Font(bold=True)
    for label, value in _summary_rows(transactions):
        worksheet.append([label, value])
        worksheet.cell(row=worksheet.max_row, column=1).font = bold

    _adjust_excel_columns(worksheet)

    buffer = BytesIO()
    workbook.save(buffer)
    logger.info(f"Exported {len(transactions)} transactions to xlsx")
    return buffer.getvalue()


def export_transactions_pdf(transactions, title="Transaction Report"):
    """PDF bytes with the same rows as the spreadsheet"""
    transactions = list(transactions)
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    story = [
        Paragraph(title, styles["Title"]),
        Spacer(1, 12),
        Paragraph(f"Generated on: {timezone.localtime().strftime('%Y-%m-%d %H:%M:%S')}", styles["Normal"]),
        Spacer(1, 12),
    ]

    table_data = [EXPORT_HEADERS]
    for row in transaction_export_rows(transactions):
        table_data.append([str(value) for value in row])

    table = Table(table_data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 10),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 12),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 1), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 1, colors.black),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    story.append(table)
    story.append(Spacer(1, 12))

    for label, value in _summary_rows(transactions):
        story.append(Paragraph(f"<b>{label}:</b> {value}", styles["Normal"]))

    doc.build(story)
    logger.info(f"Exported {len(transactions)} transactions to pdf")
    return buffer.getvalue()
