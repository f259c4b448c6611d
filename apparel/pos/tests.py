"""
Test suite for the pos app
Tests: sale totals, sale creation and rollback, stock movements, sales and transaction endpoints
"""
from decimal import Decimal

from django.test import TestCase, SimpleTestCase
from rest_framework import status

from apparel.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.inventory.models import StockMovement
from apparel.parties.models import Customer
from apparel.pos.models import Transaction, TransactionItem
from apparel.pos.services import (
    calculate_totals, create_sale, delete_sale, transactions_summary, SALE_ROLLBACK_REASON,
)
from apparel.purchasing.services import complete_purchase


class SaleTotalsTests(SimpleTestCase):
    """Test sale total arithmetic"""

    def test_plain_totals(self):
        """Test totals without discount or tax"""
        totals = calculate_totals([(2, Decimal('85000')), (1, Decimal('199000'))])
        self.assertEqual(totals['subtotal'], Decimal('369000.00'))
        self.assertEqual(totals['discount'], Decimal('0.00'))
        self.assertEqual(totals['total'], Decimal('369000.00'))

    def test_tax_applies_after_discount(self):
        """Test tax is applied after the discount"""
        totals = calculate_totals([(1, Decimal('100000'))], discount_percent=10, tax_percent=11)
        self.assertEqual(totals['discount'], Decimal('10000.00'))
        self.assertEqual(totals['tax'], Decimal('9900.00'))
        self.assertEqual(totals['total'], Decimal('99900.00'))

    def test_rounding_half_up(self):
        """Test totals round half up to cents"""
        totals = calculate_totals([(1, Decimal('0.05'))], discount_percent=50)
        self.assertEqual(totals['discount'], Decimal('0.03'))
        self.assertEqual(totals['total'], Decimal('0.03'))


class SaleServiceTests(TestCase):
    """Test recording and deleting sales"""

    def setUp(self):
        self.cashier = TestDataFactory.create_user()
        product = TestDataFactory.create_product(cost_price=Decimal('50000'), selling_price=Decimal('85000'))
        self.variant = TestDataFactory.create_variant(product=product, stock=10)
        self.other = TestDataFactory.create_variant(stock=2)

    def test_sale_decrements_stock_and_logs_movements(self):
        """Test a sale decrements stock and logs OUT movements"""
        sale = create_sale(
            [{'variant_id': self.variant.id, 'quantity': 3}, {'variant_id': self.other.id, 'quantity': 1}],
            user=self.cashier,
        )
        self.assertTrue(sale.invoice_number.startswith('INV-'))
        self.assertEqual(sale.status, Transaction.STATUS_COMPLETED)
        self.assertIsNotNone(sale.completed_at)
        self.assertEqual(sale.items.count(), 2)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 7)
        movement = StockMovement.objects.get(variant=self.variant, type=StockMovement.TYPE_OUT)
        self.assertEqual(movement.quantity, 3)
        self.assertEqual(movement.reference, sale.invoice_number)
        self.assertEqual(movement.created_by, self.cashier)

    def test_profit_uses_cost_price(self):
        """Test sale profit uses the product cost price"""
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 2}])
        self.assertEqual(sale.total_amount, Decimal('170000.00'))
        self.assertEqual(sale.get_profit(), Decimal('70000.00'))
        self.assertEqual(sale.get_item_count(), 2)

    def test_variant_cost_override_drives_profit(self):
        """Test a variant cost override drives profit"""
        self.variant.cost_price = Decimal('60000')
        self.variant.save()
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 1}])
        self.assertEqual(sale.get_profit(), Decimal('25000.00'))

    def test_repeated_lines_are_merged(self):
        """Test repeated lines for one variant are merged"""
        sale = create_sale([
            {'variant_id': self.variant.id, 'quantity': 1},
            {'variant_id': self.variant.id, 'quantity': 2},
        ])
        self.assertEqual(sale.items.get().quantity, 3)

    def test_insufficient_stock_rolls_back_everything(self):
        """Test insufficient stock rolls the whole sale back"""
        with self.assertRaises(InsufficientStockError) as ctx:
            create_sale([
                {'variant_id': self.variant.id, 'quantity': 1},
                {'variant_id': self.other.id, 'quantity': 5},
            ])
        self.assertEqual(ctx.exception.details[0]['available'], 2)
        self.assertEqual(ctx.exception.details[0]['requested'], 5)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 10)
        self.assertFalse(Transaction.objects.exists())
        self.assertFalse(StockMovement.objects.filter(type=StockMovement.TYPE_OUT).exists())

    def test_selling_the_last_unit(self):
        """Test selling the last unit leaves zero stock"""
        create_sale([{'variant_id': self.other.id, 'quantity': 2}])
        self.other.refresh_from_db()
        self.assertEqual(self.other.stock, 0)

    def test_validation(self):
        """Test recording an invalid sale should fail"""
        with self.assertRaises(ValidationError):
            create_sale([])
        with self.assertRaises(ValidationError):
            create_sale([{'variant_id': self.variant.id, 'quantity': 0}])
        with self.assertRaises(NotFoundError):
            create_sale([{'variant_id': 999999, 'quantity': 1}])

    def test_customer_attached(self):
        """Test a sale attaches the matched customer"""
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 1}], customer_name='Gita', customer_phone='0813')
        self.assertEqual(sale.customer, Customer.objects.get(phone='0813'))

    def test_customer_id_takes_precedence(self):
        """Test an explicit customer id wins over name/phone matching"""
        regular = TestDataFactory.create_customer(name='Lina', phone='0877')
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 1}],
                           customer_name='Someone New', customer_phone='0800', customer_id=regular.id)
        self.assertEqual(sale.customer, regular)
        self.assertFalse(Customer.objects.filter(phone='0800').exists())

    def test_unknown_customer_id(self):
        """Test an unknown customer id raises NotFoundError and leaves stock alone"""
        with self.assertRaises(NotFoundError):
            create_sale([{'variant_id': self.variant.id, 'quantity': 1}], customer_id=999999)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 10)

    def test_walk_in_sale_has_no_customer(self):
        """Test a walk-in sale has no customer"""
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 1}])
        self.assertIsNone(sale.customer)

    def test_delete_sale_restores_stock(self):
        """Test deleting a sale restores stock"""
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 4}])
        invoice_number = delete_sale(sale.id, user=self.cashier)
        self.assertEqual(invoice_number, sale.invoice_number)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 10)
        rollback = StockMovement.objects.get(variant=self.variant, reason=SALE_ROLLBACK_REASON)
        self.assertEqual(rollback.type, StockMovement.TYPE_IN)
        self.assertEqual(rollback.quantity, 4)
        self.assertFalse(Transaction.objects.filter(pk=sale.id).exists())
        self.assertFalse(TransactionItem.objects.exists())

    def test_delete_unknown_sale(self):
        """Test deleting an unknown sale"""
        with self.assertRaises(NotFoundError):
            delete_sale(999999)

    def test_transactions_summary(self):
        """Test the transactions summary"""
        sale = create_sale([{'variant_id': self.variant.id, 'quantity': 1}])
        purchase = TestDataFactory.create_purchase(self.variant, quantity=5, unit_price=Decimal('40000'))
        pending = TestDataFactory.create_purchase(self.variant, quantity=5)
        complete_purchase(purchase.id)

        summary = transactions_summary(Transaction.objects.all())
        self.assertEqual(summary['transactionCount'], 3)
        self.assertEqual(summary['totalSales'], sale.total_amount)
        self.assertEqual(summary['totalPurchases'], Decimal('200000.00'))
        self.assertEqual(summary['totalProfit'], Decimal('35000.00'))
        # Pending orders are counted but not totalled
        self.assertEqual(summary['totalItems'], 6)
        self.assertEqual(pending.status, Transaction.STATUS_PENDING)


class SaleAPITests(TestCase):
    """Test sale and transaction API endpoints"""

    def setUp(self):
        seed_permissions()
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)
        self.variant = TestDataFactory.create_variant(stock=5)

    def test_create_sale(self):
        """Test recording a sale via API"""
        response = self.client.post('/api/v1/sales/', {
            'items': [{'variantId': self.variant.id, 'quantity': 2}],
            'customerName': 'Hadi',
            'discount': 10,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        transaction = response.data['transaction']
        self.assertEqual(transaction['customer_name'], 'Hadi')
        self.assertEqual(transaction['item_count'], 2)
        self.assertEqual(len(transaction['items']), 1)
        self.assertTrue(ActivityLog.objects.filter(resource='sales', action=ActivityLog.ACTION_CREATE).exists())

    def test_create_sale_for_selected_customer(self):
        """Test POST /sales/ with customerId attaches that customer"""
        customer = TestDataFactory.create_customer(name='Maya')
        response = self.client.post('/api/v1/sales/', {
            'items': [{'variantId': self.variant.id, 'quantity': 1}],
            'customerId': customer.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['transaction']['customer'], customer.id)
        self.assertEqual(Transaction.objects.get().customer_id, customer.id)

        response = self.client.post('/api/v1/sales/', {
            'items': [{'variantId': self.variant.id, 'quantity': 1}],
            'customerId': 999999,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_sale_insufficient_stock(self):
        """Test a sale beyond stock should fail"""
        response = self.client.post('/api/v1/sales/', {
            'items': [{'variantId': self.variant.id, 'quantity': 6}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Remaining stock: 5', response.data['error'])
        self.assertEqual(response.data['details'][0]['variantId'], self.variant.id)

    def test_create_sale_rejects_empty_items_and_bad_discount(self):
        """Test a sale without items or with a bad discount should fail"""
        response = self.client.post('/api/v1/sales/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/sales/', {
            'items': [{'variantId': self.variant.id, 'quantity': 1}], 'discount': 150,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('discount', response.data)

    def test_list_and_detail(self):
        """Test listing sales and retrieving a sale detail"""
        sale = TestDataFactory.create_sale(self.variant, quantity=1)
        response = self.client.get('/api/v1/sales/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sales'][0]['invoice_number'], sale.invoice_number)
        self.assertNotIn('items', response.data['sales'][0])

        response = self.client.get(f'/api/v1/sales/{sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)

    def test_staff_cannot_delete_sale(self):
        """Test STAFF cannot delete sales"""
        sale = TestDataFactory.create_sale(self.variant, quantity=1)
        response = self.client.delete(f'/api/v1/sales/{sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_deletes_sale(self):
        """Test MANAGER deletes a sale and stock is restored"""
        sale = TestDataFactory.create_sale(self.variant, quantity=2)
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/sales/{sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_transaction_list(self):
        """Test listing transactions by type and period"""
        TestDataFactory.create_sale(self.variant, quantity=1)
        TestDataFactory.create_purchase(self.variant, quantity=3)
        response = self.client.get('/api/v1/transactions/?type=SALE')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalCount'], 1)
        self.assertEqual(response.data['period'], 30)

        response = self.client.get('/api/v1/transactions/?period=7')
        self.assertEqual(response.data['totalCount'], 2)
        self.assertEqual(response.data['summary']['transactionCount'], 2)

    def test_transaction_list_old_window(self):
        """Test an old date window lists no transactions"""
        TestDataFactory.create_sale(self.variant, quantity=1)
        response = self.client.get('/api/v1/transactions/?startDate=2020-01-01&endDate=2020-01-31')
        self.assertEqual(response.data['totalCount'], 0)
