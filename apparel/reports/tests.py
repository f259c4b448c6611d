"""
Test suite for the reports app
Tests: analytics, dashboard, cache invalidation and transaction exports
"""
from datetime import timedelta
from decimal import Decimal
from io import BytesIO

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from openpyxl import load_workbook
from rest_framework import status

from apparel.core.cache_utils import get_namespace_version, REPORTS_NAMESPACE
from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.pos.models import Transaction
from apparel.purchasing.services import complete_purchase
from apparel.reports.services import (
    analytics_window, build_analytics, build_dashboard, transaction_export_rows, EXPORT_HEADERS, TREND_DAYS,
)


class ReportsTestMixin:
    """Shared stock fixtures for report tests"""

    def make_stock(self):
        cache.clear()
        product = TestDataFactory.create_product(
            name='Kaos Polos', cost_price=Decimal('50000'), selling_price=Decimal('85000')
        )
        self.variant = TestDataFactory.create_variant(product=product, stock=20, min_stock=5)
        self.empty = TestDataFactory.create_variant(stock=0, min_stock=5)


class AnalyticsWindowTests(TestCase):
    """Test resolving the analytics date window"""

    def test_explicit_dates(self):
        """Test explicit start and end dates win"""
        start, end = analytics_window({'startDate': '2024-03-01', 'endDate': '2024-03-31'})
        self.assertEqual((start.isoformat(), end.isoformat()), ('2024-03-01', '2024-03-31'))

    def test_period_ends_today(self):
        """Test a period of seven covers seven calendar days ending today"""
        start, end = analytics_window({'period': '7'})
        self.assertEqual(end, timezone.localdate())
        self.assertEqual(end - start, timedelta(days=6))

    def test_bad_period_falls_back(self):
        """Test an unparseable period falls back to thirty days"""
        start, end = analytics_window({'period': 'abc'})
        self.assertEqual(end - start, timedelta(days=29))

    def test_single_day_period(self):
        """Test a period of one is today only"""
        start, end = analytics_window({'period': '1'})
        self.assertEqual(start, end)


class AnalyticsTests(ReportsTestMixin, TestCase):
    """Test analytics figures built from sales and purchases"""

    def setUp(self):
        self.make_stock()
        TestDataFactory.create_sale(self.variant, quantity=2, customer_name='Indah')
        TestDataFactory.create_sale(self.variant, quantity=1)
        TestDataFactory.create_purchase(self.variant, quantity=3)
        done = TestDataFactory.create_purchase(self.variant, quantity=4, unit_price=Decimal('45000'))
        complete_purchase(done.id)

    def analytics(self):
        start, end = analytics_window({})
        return build_analytics(start, end)

    def test_overview(self):
        """Test overview totals and profit margin"""
        overview = self.analytics()['overview']
        self.assertEqual(overview['totalSales'], Decimal('255000.00'))
        self.assertEqual(overview['totalTransactions'], 2)
        self.assertEqual(overview['totalItemsSold'], 3)
        self.assertEqual(overview['averageTransactionValue'], Decimal('127500.00'))
        self.assertEqual(overview['totalProfit'], Decimal('105000.00'))
        self.assertEqual(overview['profitMargin'], 41.18)

    def test_trends_cover_the_last_week(self):
        """Test daily trends cover the last week"""
        data = self.analytics()
        self.assertEqual(len(data['dailySales']), TREND_DAYS)
        today = data['dailySales'][-1]
        self.assertEqual(today['date'], timezone.localdate().isoformat())
        self.assertEqual(today['transactions'], 2)
        self.assertEqual(data['dailyProduction'][-1]['items'], 4)
        self.assertEqual(data['dailyProduction'][0]['orders'], 0)

    def test_top_lists(self):
        """Test top products and customers"""
        data = self.analytics()
        self.assertEqual(data['topProducts'][0]['productName'], 'Kaos Polos')
        self.assertEqual(data['topProducts'][0]['quantity'], 3)
        names = [c['customerName'] for c in data['topCustomers']]
        self.assertEqual(names, ['Indah', 'Walk-in Customer'])

    def test_production_overview(self):
        """Test pending and completed purchase figures"""
        production = self.analytics()['productionOverview']
        self.assertEqual(production['pendingOrders'], 1)
        self.assertEqual(production['pendingAmount'], Decimal('150000.00'))
        self.assertEqual(production['completedOrders'], 1)
        self.assertEqual(production['totalProductionCost'], Decimal('180000.00'))
        self.assertEqual(production['totalItemsProduced'], 4)

    def test_low_stock(self):
        """Test low stock lists out of stock variants"""
        low_stock = self.analytics()['lowStock']
        self.assertEqual([entry['id'] for entry in low_stock], [self.empty.id])

    def test_old_window_is_empty(self):
        """Test a window with no activity reports zeros"""
        data = build_analytics(timezone.localdate() - timedelta(days=400), timezone.localdate() - timedelta(days=300))
        self.assertEqual(data['overview']['totalSales'], Decimal('0.00'))
        self.assertEqual(data['overview']['profitMargin'], 0)


class DashboardTests(ReportsTestMixin, TestCase):
    """Test dashboard figures and their cache"""

    def setUp(self):
        self.make_stock()

    def test_dashboard_figures(self):
        """Test dashboard sales and stock value figures"""
        TestDataFactory.create_sale(self.variant, quantity=2)
        data = build_dashboard(timezone.localdate())
        self.assertEqual(data['todaySales'], Decimal('170000.00'))
        self.assertEqual(data['todayTransactions'], 1)
        self.assertEqual(data['totalProducts'], 2)
        self.assertEqual(data['activeVariants'], 2)
        self.assertEqual(data['lowStockCount'], 0)
        self.assertEqual(data['outOfStockCount'], 1)
        self.assertEqual(data['totalUnits'], 18)
        self.assertEqual(data['inventoryValue'], Decimal('900000'))
        self.assertEqual(data['retailValue'], Decimal('1530000'))

    def test_variant_cost_override_counts_in_value(self):
        """Test a variant cost override counts in inventory value"""
        self.variant.cost_price = Decimal('40000')
        self.variant.save()
        data = build_dashboard(timezone.localdate())
        self.assertEqual(data['inventoryValue'], Decimal('800000'))

    def test_new_sale_invalidates_cache(self):
        """Test a committed sale makes the cached dashboard refresh"""
        today = timezone.localdate()
        self.assertEqual(build_dashboard(today)['todayTransactions'], 0)
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_sale(self.variant, quantity=1)
        self.assertEqual(build_dashboard(today)['todayTransactions'], 1)

    def test_invalidation_waits_for_commit(self):
        """Test the cache version only moves once the writing transaction commits"""
        version = get_namespace_version(REPORTS_NAMESPACE)
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            TestDataFactory.create_sale(self.variant, quantity=1)
        self.assertEqual(get_namespace_version(REPORTS_NAMESPACE), version)
        self.assertTrue(callbacks)

        for callback in callbacks:
            callback()
        self.assertGreater(get_namespace_version(REPORTS_NAMESPACE), version)


class ReportsAPITests(ReportsTestMixin, TestCase):
    """Test report API endpoints"""

    def setUp(self):
        seed_permissions()
        self.make_stock()
        self.owner = TestDataFactory.create_user(role=User.ROLE_OWNER)
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.sale = TestDataFactory.create_sale(self.variant, quantity=2, customer_name='Joko')
        TestDataFactory.create_purchase(self.variant, quantity=5, supplier=TestDataFactory.create_supplier('CV Makmur'))

    def test_dashboard_for_staff(self):
        """Test STAFF can read the dashboard"""
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['todayTransactions'], 1)

    def test_analytics_requires_permission(self):
        """Test analytics requires reports.view"""
        self.client.authenticate_user(self.staff)
        self.assertEqual(self.client.get('/api/v1/analytics/').status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.owner)
        response = self.client.get('/api/v1/analytics/?period=7')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overview']['totalTransactions'], 1)

    def test_export_rows(self):
        """Test transaction export rows"""
        rows = transaction_export_rows(Transaction.objects.order_by('id'))
        self.assertEqual(rows[0][2], self.sale.invoice_number)
        self.assertEqual(rows[0][4], 'Joko')
        self.assertEqual(rows[0][7], 70000.0)
        self.assertEqual(rows[1][4], 'CV Makmur')
        self.assertEqual(rows[1][8], Transaction.STATUS_PENDING)

    def test_excel_export(self):
        """Test exporting transactions to Excel"""
        response = self.client.get('/api/v1/reports/transactions/export.xlsx?period=30')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'],
                         'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
        self.assertIn('attachment; filename="transactions_', response['Content-Disposition'])

        worksheet = load_workbook(BytesIO(response.content)).active
        rows = list(worksheet.iter_rows(values_only=True))
        self.assertEqual(list(rows[0]), EXPORT_HEADERS)
        invoices = {row[2] for row in rows[1:3]}
        self.assertIn(self.sale.invoice_number, invoices)
        totals = {row[0]: row[1] for row in rows if row and row[0] in ('Total Sales', 'Total Profit')}
        self.assertEqual(totals['Total Sales'], 170000)
        self.assertEqual(totals['Total Profit'], 70000)

        log = ActivityLog.objects.get(action=ActivityLog.ACTION_EXPORT)
        self.assertEqual(log.resource, 'reports')
        self.assertEqual(log.metadata['format'], 'xlsx')
        self.assertEqual(log.metadata['rowCount'], 2)

    def test_pdf_export(self):
        """Test exporting sales to PDF"""
        response = self.client.get('/api/v1/reports/transactions/export.pdf?type=SALE')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))
        self.assertEqual(ActivityLog.objects.get(action=ActivityLog.ACTION_EXPORT).metadata['rowCount'], 1)

    def test_export_forbidden_for_staff(self):
        """Test STAFF cannot export reports"""
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/reports/transactions/export.xlsx')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(ActivityLog.objects.filter(action=ActivityLog.ACTION_EXPORT).exists())
