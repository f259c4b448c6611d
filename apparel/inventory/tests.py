"""
Test suite for the inventory app
Tests: forecasting maths, stock service atomicity and audit rows, adjustments, reorder suggestions, endpoints
"""
from decimal import Decimal
from types import SimpleNamespace

from django.test import TestCase, SimpleTestCase
from rest_framework import status

from apparel.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.inventory import analytics
from apparel.inventory.models import StockMovement, StockAdjustment
from apparel.inventory.services import adjust_stock_to, apply_adjustment, MANUAL_ADJUSTMENT_REFERENCE
from apparel.pos.models import Transaction


def _fake_variant(stock, min_stock, cost=Decimal('50000.00'), price=Decimal('85000.00')):
    product = SimpleNamespace(name='Basic Tee', sku='TSH001', category=None, brand=None, selling_price=price)
    return SimpleNamespace(
        id=1, product_id=1, product=product,
        size=SimpleNamespace(name='M'), color=SimpleNamespace(name='Black'),
        stock=stock, min_stock=min_stock, effective_cost_price=cost,
    )


class ForecastMathTests(SimpleTestCase):
    """Test the pure forecasting and reorder formulas"""

    def test_average_daily_sales(self):
        """Test average daily sales over a window"""
        self.assertEqual(analytics.average_daily_sales(30, 30), 1)
        self.assertEqual(analytics.average_daily_sales(10, 0), 0)

    def test_days_remaining_rounds_half_up(self):
        """Test days remaining rounds half up"""
        self.assertEqual(analytics.days_remaining(10, 2), 5)
        self.assertEqual(analytics.days_remaining(5, 2), 3)
        self.assertEqual(analytics.days_remaining(0, 2), 0)

    def test_days_remaining_without_sales(self):
        """Test days remaining is unknown without sales"""
        self.assertIsNone(analytics.days_remaining(10, 0))
        self.assertIsNone(analytics.days_remaining(10, None))

    def test_status_tiers(self):
        """Test status tiers by days remaining"""
        self.assertEqual(analytics.inventory_status(None)['status'], 'unknown')
        self.assertEqual(analytics.inventory_status(0)['status'], 'critical')
        self.assertEqual(analytics.inventory_status(7)['status'], 'critical')
        self.assertEqual(analytics.inventory_status(8)['status'], 'warning')
        self.assertEqual(analytics.inventory_status(14)['status'], 'warning')
        self.assertEqual(analytics.inventory_status(30)['status'], 'normal')
        self.assertEqual(analytics.inventory_status(31)['status'], 'safe')
        self.assertEqual(analytics.inventory_status(3)['priority'], 3)

    def test_reorder_point_and_max_stock(self):
        """Test reorder point and max stock formulas"""
        self.assertEqual(analytics.reorder_point(2, 7, 7), 28)
        self.assertEqual(analytics.reorder_point(0.5, 7), 7)
        self.assertEqual(analytics.max_stock_for(5), 50)
        self.assertEqual(analytics.max_stock_for(20), 60)

    def test_reorder_priority(self):
        """Test reorder priority thresholds"""
        self.assertEqual(analytics.reorder_priority(0, 5), 'URGENT')
        self.assertEqual(analytics.reorder_priority(2, 5), 'HIGH')
        self.assertEqual(analytics.reorder_priority(3, 5), 'MEDIUM')
        self.assertEqual(analytics.reorder_priority(6, 5), 'LOW')

    def test_reorder_suggestion_with_history(self):
        """Test a reorder suggestion for a selling variant"""
        suggestion = analytics.reorder_suggestion(_fake_variant(stock=2, min_stock=5), [20, 10])
        self.assertEqual(suggestion['avgDailySales'], 1.0)
        self.assertEqual(suggestion['safetyStock'], 7)
        self.assertEqual(suggestion['suggestedQuantity'], 48)
        self.assertEqual(suggestion['daysUntilStockout'], 2)
        self.assertEqual(suggestion['priority'], 'HIGH')
        self.assertEqual(suggestion['estimatedCost'], Decimal('2400000.00'))

    def test_reorder_suggestion_without_history(self):
        """Test a reorder suggestion for a variant with no sales"""
        suggestion = analytics.reorder_suggestion(_fake_variant(stock=0, min_stock=5), [])
        self.assertEqual(suggestion['suggestedQuantity'], 50)
        self.assertEqual(suggestion['daysUntilStockout'], analytics.NO_STOCKOUT_DAYS)
        self.assertEqual(suggestion['priority'], 'URGENT')

    def test_classify_stock(self):
        """Test stock status classification"""
        self.assertEqual(analytics.classify_stock(0, 5), 'CRITICAL')
        self.assertEqual(analytics.classify_stock(5, 5), 'LOW')
        self.assertEqual(analytics.classify_stock(20, 5), 'NORMAL')
        self.assertEqual(analytics.classify_stock(50, 5), 'OVERSTOCK')


class StockServiceTests(TestCase):
    """Test stock set and adjustment services"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.variant = TestDataFactory.create_variant(stock=10, min_stock=5)

    def test_set_stock_up_and_down(self):
        """Test setting stock records IN and OUT movements"""
        result = adjust_stock_to(self.variant.id, 15, 'Recount', user=self.user)
        self.assertEqual(result['previous_stock'], 10)
        self.assertEqual(result['difference'], 5)
        self.assertEqual(result['movement'].type, StockMovement.TYPE_IN)
        self.assertEqual(result['movement'].reference, MANUAL_ADJUSTMENT_REFERENCE)

        result = adjust_stock_to(self.variant.id, 3, 'Damaged', user=self.user)
        self.assertEqual(result['movement'].type, StockMovement.TYPE_OUT)
        self.assertEqual(result['movement'].quantity, 12)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)

    def test_set_stock_rejects_bad_input(self):
        """Test setting stock with invalid input should fail"""
        with self.assertRaises(ValidationError):
            adjust_stock_to(self.variant.id, -1, 'Recount')
        with self.assertRaises(ValidationError):
            adjust_stock_to(self.variant.id, 4, '  ')
        with self.assertRaises(ValidationError):
            adjust_stock_to(self.variant.id, 10, 'Recount')
        with self.assertRaises(NotFoundError):
            adjust_stock_to(999999, 4, 'Recount')

    def test_increase_adjustment(self):
        """Test an increase adjustment records before and after stock"""
        result = apply_adjustment(self.variant.id, 'INCREASE', 4, 'RETURN', notes='Customer return', user=self.user)
        adjustment = result['adjustment']
        self.assertEqual((adjustment.stock_before, adjustment.stock_after), (10, 14))
        self.assertEqual(result['movement'].type, StockMovement.TYPE_ADJUSTMENT)
        self.assertEqual(result['movement'].reference, f"ADJ-{adjustment.id}")
        self.assertIsNone(result['production_order'])

    def test_production_increase_books_completed_purchase(self):
        """Test a production increase books a completed purchase"""
        result = apply_adjustment(self.variant.id, 'INCREASE', 6, 'PRODUCTION', user=self.user)
        order = result['production_order']
        self.assertEqual(order.type, Transaction.TYPE_PURCHASE)
        self.assertEqual(order.status, Transaction.STATUS_COMPLETED)
        self.assertTrue(order.invoice_number.startswith('PROD-ADJ-'))
        self.assertEqual(order.total_amount, self.variant.effective_cost_price * 6)
        self.assertEqual(result['movement'].type, StockMovement.TYPE_IN)
        self.assertEqual(result['movement'].reference, order.invoice_number)

    def test_decrease_below_zero_changes_nothing(self):
        """Test a decrease below zero leaves no trace"""
        movements_before = StockMovement.objects.count()
        with self.assertRaises(InsufficientStockError):
            apply_adjustment(self.variant.id, 'DECREASE', 11, 'LOST', user=self.user)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 10)
        self.assertFalse(StockAdjustment.objects.exists())
        self.assertEqual(StockMovement.objects.count(), movements_before)

    def test_invalid_type_reason_and_quantity(self):
        """Test adjustments with an invalid type, reason or quantity should fail"""
        with self.assertRaises(ValidationError):
            apply_adjustment(self.variant.id, 'SIDEWAYS', 1, 'LOST')
        with self.assertRaises(ValidationError):
            apply_adjustment(self.variant.id, 'DECREASE', 1, 'STOLEN')
        with self.assertRaises(ValidationError):
            apply_adjustment(self.variant.id, 'DECREASE', 0, 'LOST')


class ForecastQueryTests(TestCase):
    """Test forecasts computed from recorded sales"""

    def setUp(self):
        self.fast = TestDataFactory.create_variant(stock=20, min_stock=5)
        self.idle = TestDataFactory.create_variant(stock=20, min_stock=5)
        # 15 sold in the 30-day window: 0.5/day, 5 left -> 10 days
        TestDataFactory.create_sale(self.fast, quantity=15)

    def test_units_sold_ignores_other_types(self):
        """Test units sold only counts sales"""
        TestDataFactory.create_purchase(self.fast, quantity=40)
        self.assertEqual(analytics.units_sold([self.fast.id, self.idle.id]), {self.fast.id: 15})

    def test_calculate_days_remaining(self):
        """Test days remaining for a single variant"""
        self.assertEqual(analytics.calculate_days_remaining(self.fast.id), 10)
        self.assertIsNone(analytics.calculate_days_remaining(self.idle.id))
        self.assertIsNone(analytics.calculate_days_remaining(999999))

    def test_low_stock_variants(self):
        """Test variants running out within a threshold"""
        low = analytics.get_low_stock_variants(14)
        self.assertEqual([v['id'] for v in low], [self.fast.id])
        self.assertEqual(low[0]['days_remaining'], 10)
        self.assertEqual(low[0]['status']['status'], 'warning')
        self.assertEqual(analytics.get_low_stock_variants(7), [])

    def test_production_recommendations(self):
        """Test production recommendations"""
        recommendations = analytics.get_production_recommendations()
        self.assertEqual(len(recommendations), 1)
        self.assertEqual(recommendations[0]['recommended_quantity'], 2)
        self.assertEqual(recommendations[0]['urgency'], 2)

    def test_summary(self):
        """Test the inventory analytics summary"""
        summary = analytics.get_inventory_analytics_summary()
        self.assertEqual(summary['totalVariants'], 2)
        self.assertEqual(summary['warningStock'], 1)
        self.assertEqual(summary['criticalStock'], 0)

    def test_reorder_suggestions_use_recent_sales(self):
        """Test reorder suggestions use the recent sales rate"""
        result = analytics.build_reorder_suggestions()
        self.assertEqual([s['id'] for s in result['suggestions']], [self.fast.id])
        suggestion = result['suggestions'][0]
        self.assertEqual(suggestion['avgDailySales'], 0.5)
        self.assertEqual(suggestion['priority'], 'MEDIUM')
        self.assertEqual(result['summary']['totalItems'], 1)
        self.assertEqual(result['summary']['totalEstimatedCost'], suggestion['estimatedCost'])

    def test_inventory_overview(self):
        """Test the inventory overview with alerts only"""
        overview = analytics.build_inventory_overview(alerts_only=True)
        self.assertEqual([e['id'] for e in overview['inventory']], [self.fast.id])
        self.assertEqual(overview['inventory'][0]['stockStatus'], 'LOW')
        self.assertEqual(overview['inventory'][0]['lastMovement']['type'], StockMovement.TYPE_OUT)
        self.assertEqual(overview['summary']['totalProducts'], 2)
        self.assertEqual(overview['summary']['normalStock'], 1)


class InventoryAPITests(TestCase):
    """Test inventory API endpoints"""

    def setUp(self):
        seed_permissions()
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.variant = TestDataFactory.create_variant(stock=10, min_stock=5)

    def test_staff_can_view_but_not_adjust(self):
        """Test STAFF can view inventory but not adjust it"""
        self.client.authenticate_user(self.staff)
        self.assertEqual(self.client.get('/api/v1/inventory/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/inventory/adjust-stock/', {
            'variantId': self.variant.id, 'newStock': 3, 'reason': 'Recount',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_set_stock(self):
        """Test setting stock via API"""
        response = self.client.post('/api/v1/inventory/', {
            'variantId': self.variant.id, 'newStock': 7, 'reason': 'Recount',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['previousStock'], 10)
        self.assertEqual(response.data['difference'], -3)
        self.assertTrue(ActivityLog.objects.filter(resource='inventory', action=ActivityLog.ACTION_UPDATE).exists())

    def test_set_stock_unchanged(self):
        """Test setting stock to its current value should fail"""
        response = self.client.post('/api/v1/inventory/adjust-stock/', {
            'variantId': self.variant.id, 'newStock': 10, 'reason': 'Recount',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Stock is unchanged')

    def test_set_stock_negative_is_serializer_error(self):
        """Test setting negative stock is a field error"""
        response = self.client.post('/api/v1/inventory/adjust-stock/', {
            'variantId': self.variant.id, 'newStock': -2, 'reason': 'Recount',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('newStock', response.data)

    def test_create_and_list_adjustments(self):
        """Test creating and listing stock adjustments"""
        response = self.client.post('/api/v1/inventory/adjustments/', {
            'variantId': self.variant.id, 'adjustmentType': 'DECREASE', 'quantity': 2, 'reason': 'DAMAGED',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['adjustment']['stock_after'], 8)
        self.assertNotIn('productionOrder', response.data)

        response = self.client.get(f'/api/v1/stock-adjustments/?variantId={self.variant.id}&reason=DAMAGED')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['totalRecords'], 1)

    def test_production_adjustment_returns_order(self):
        """Test a production adjustment returns its order"""
        response = self.client.post('/api/v1/inventory/adjustments/', {
            'variantId': self.variant.id, 'adjustmentType': 'INCREASE', 'quantity': 5, 'reason': 'PRODUCTION',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['productionOrder']['status'], Transaction.STATUS_COMPLETED)

    def test_adjustment_insufficient_stock(self):
        """Test a decrease beyond stock should fail"""
        response = self.client.post('/api/v1/inventory/adjustments/', {
            'variantId': self.variant.id, 'adjustmentType': 'DECREASE', 'quantity': 50, 'reason': 'LOST',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_stock_movements(self):
        """Test listing stock movements for a variant"""
        response = self.client.get(f'/api/v1/stock-movements/?variantId={self.variant.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['movements'][0]['reference'], 'INITIAL')

    def test_analytics_endpoint_modes(self):
        """Test each inventory analytics mode"""
        TestDataFactory.create_sale(self.variant, quantity=6)
        response = self.client.get(f'/api/v1/inventory/analytics/?variantId={self.variant.id}')
        self.assertEqual(response.data['daysRemaining'], 20)
        self.assertEqual(response.data['status']['status'], 'normal')

        response = self.client.get('/api/v1/inventory/analytics/?type=low-stock&threshold=30')
        self.assertEqual(response.data['total'], 1)

        response = self.client.get('/api/v1/inventory/analytics/?type=recommendations')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/inventory/analytics/')
        self.assertIn('lowStockVariants', response.data)

    def test_non_numeric_ids_are_rejected(self):
        """Test non-numeric id filters should fail with a 400"""
        response = self.client.get('/api/v1/inventory/analytics/?variantId=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('variantId', response.data['error'])

        response = self.client.get('/api/v1/inventory/?category=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/inventory/?brand=1x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/stock-movements/?variantId=x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reorder_suggestions_to_order(self):
        """Test turning reorder suggestions into a purchase order"""
        apply_adjustment(self.variant.id, 'DECREASE', 8, 'LOST')
        response = self.client.get('/api/v1/reorder-suggestions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['totalItems'], 1)

        response = self.client.post('/api/v1/reorder-suggestions/', {
            'items': [{'variantId': self.variant.id, 'quantity': 48}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        purchase = Transaction.objects.get(pk=response.data['transaction']['id'])
        self.assertTrue(purchase.invoice_number.startswith('PO-'))
        self.assertEqual(purchase.status, Transaction.STATUS_PENDING)
        self.assertEqual(purchase.total_amount, self.variant.effective_cost_price * 48)
        # Stock is untouched until the order is completed
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 2)

    def test_staff_cannot_create_reorder(self):
        """Test STAFF cannot create reorder purchases"""
        self.client.authenticate_user(self.staff)
        response = self.client.post('/api/v1/reorder-suggestions/', {
            'items': [{'variantId': self.variant.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
