"""
Test suite for the purchasing app
Tests: production order lifecycle, stock booking on completion, endpoints and permissions
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from apparel.core.exceptions import ValidationError, NotFoundError, InvalidStateError
from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.inventory.models import StockMovement
from apparel.pos.models import Transaction
from apparel.purchasing.services import (
    create_purchase, complete_purchase, cancel_purchase, delete_purchase, purchase_stats, PURCHASE_REASON,
)


class PurchaseServiceTests(TestCase):
    """Test purchase order lifecycle services"""

    def setUp(self):
        self.user = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        product = TestDataFactory.create_product(cost_price=Decimal('45000'))
        self.variant = TestDataFactory.create_variant(product=product, stock=3)

    def test_create_leaves_stock_untouched(self):
        """Test creating a pending order leaves stock untouched"""
        purchase = create_purchase([{'variant_id': self.variant.id, 'quantity': 12, 'unit_price': '40000'}],
                                   user=self.user)
        self.assertTrue(purchase.invoice_number.startswith('PROD-'))
        self.assertEqual(purchase.status, Transaction.STATUS_PENDING)
        self.assertEqual(purchase.total_amount, Decimal('480000.00'))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)

    def test_unit_price_defaults_to_cost(self):
        """Test the unit price defaults to the variant cost"""
        purchase = create_purchase([{'variant_id': self.variant.id, 'quantity': 2}])
        self.assertEqual(purchase.items.get().unit_price, Decimal('45000.00'))
        self.assertEqual(purchase.total_amount, Decimal('90000.00'))

    def test_create_validation(self):
        """Test creating an order with invalid lines should fail"""
        with self.assertRaises(ValidationError):
            create_purchase([])
        with self.assertRaises(ValidationError):
            create_purchase([{'variant_id': self.variant.id, 'quantity': -1}])
        with self.assertRaises(NotFoundError):
            create_purchase([{'variant_id': 999999, 'quantity': 1}])
        with self.assertRaises(NotFoundError):
            create_purchase([{'variant_id': self.variant.id, 'quantity': 1}], supplier_id=999999)
        self.assertFalse(Transaction.objects.exists())

    def test_complete_books_stock(self):
        """Test completing an order books stock in"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=12, user=self.user)
        complete_purchase(purchase.id, user=self.user)

        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Transaction.STATUS_COMPLETED)
        self.assertIsNotNone(purchase.completed_at)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 15)
        movement = StockMovement.objects.get(variant=self.variant, reason=PURCHASE_REASON)
        self.assertEqual(movement.type, StockMovement.TYPE_IN)
        self.assertEqual(movement.quantity, 12)
        self.assertEqual(movement.reference, purchase.invoice_number)

    def test_complete_twice(self):
        """Test completing an order twice is refused"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=4)
        complete_purchase(purchase.id)
        with self.assertRaises(InvalidStateError):
            complete_purchase(purchase.id)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 7)

    def test_cancelled_order_cannot_complete(self):
        """Test a cancelled order cannot be completed"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=4)
        cancel_purchase(purchase.id)
        with self.assertRaises(InvalidStateError):
            complete_purchase(purchase.id)
        with self.assertRaises(InvalidStateError):
            cancel_purchase(purchase.id)

    def test_delete_only_pending(self):
        """Test only pending orders can be deleted"""
        pending = TestDataFactory.create_purchase(self.variant, quantity=1)
        self.assertEqual(delete_purchase(pending.id), pending.invoice_number)
        self.assertFalse(Transaction.objects.filter(pk=pending.id).exists())

        completed = TestDataFactory.create_purchase(self.variant, quantity=1)
        complete_purchase(completed.id)
        with self.assertRaises(InvalidStateError):
            delete_purchase(completed.id)

    def test_unknown_order(self):
        """Test an unknown order is not found"""
        with self.assertRaises(NotFoundError):
            complete_purchase(999999)

    def test_sale_is_not_a_purchase(self):
        """Test a sale is not treated as a purchase order"""
        sale = TestDataFactory.create_sale(self.variant, quantity=1)
        with self.assertRaises(NotFoundError):
            complete_purchase(sale.id)

    def test_stats(self):
        """Test purchase order stats"""
        TestDataFactory.create_purchase(self.variant, quantity=2, unit_price=Decimal('1000'))
        done = TestDataFactory.create_purchase(self.variant, quantity=3, unit_price=Decimal('1000'))
        complete_purchase(done.id)

        stats = purchase_stats(Transaction.objects.filter(type=Transaction.TYPE_PURCHASE))
        self.assertEqual(stats['totalItems'], 5)
        self.assertEqual(stats['totalAmount'], Decimal('5000.00'))
        self.assertEqual(stats['pendingCount'], 1)
        self.assertEqual(stats['completedCount'], 1)


class PurchaseAPITests(TestCase):
    """Test purchase order API endpoints"""

    def setUp(self):
        seed_permissions()
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.variant = TestDataFactory.create_variant(stock=0)
        self.supplier = TestDataFactory.create_supplier()

    def test_staff_forbidden(self):
        """Test STAFF cannot view or create purchases"""
        self.client.authenticate_user(self.staff)
        self.assertEqual(self.client.get('/api/v1/purchases/').status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post('/api/v1/purchases/', {
            'items': [{'variantId': self.variant.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_and_complete(self):
        """Test creating and completing a purchase via API"""
        response = self.client.post('/api/v1/purchases/', {
            'items': [{'variantId': self.variant.id, 'quantity': 24, 'unitPrice': '42000'}],
            'supplierId': self.supplier.id,
            'notes': 'Batch 7',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        purchase = response.data['purchase']
        self.assertEqual(purchase['status'], Transaction.STATUS_PENDING)
        self.assertEqual(purchase['supplier_name'], self.supplier.name)
        self.assertEqual(purchase['item_count'], 24)

        response = self.client.patch(f"/api/v1/purchases/{purchase['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purchase']['status'], Transaction.STATUS_COMPLETED)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 24)

        response = self.client.post(f"/api/v1/purchases/{purchase['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already completed', response.data['error'])

    def test_create_rejects_empty_items(self):
        """Test creating a purchase without items should fail"""
        response = self.client.post('/api/v1/purchases/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_with_stats(self):
        """Test listing purchases with stats and a status filter"""
        TestDataFactory.create_purchase(self.variant, quantity=2, unit_price=Decimal('1000'))
        done = TestDataFactory.create_purchase(self.variant, quantity=5, unit_price=Decimal('1000'))
        complete_purchase(done.id)

        response = self.client.get('/api/v1/purchases/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['purchases']), 2)
        self.assertEqual(response.data['pagination']['totalRecords'], 2)
        self.assertEqual(response.data['stats']['pendingCount'], 1)
        self.assertEqual(response.data['stats']['totalItems'], 7)

        response = self.client.get('/api/v1/purchases/?status=COMPLETED')
        self.assertEqual([p['id'] for p in response.data['purchases']], [done.id])

    def test_cancel_logs_void(self):
        """Test cancelling a purchase logs a void"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=2)
        response = self.client.post(f'/api/v1/purchases/{purchase.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purchase']['status'], Transaction.STATUS_CANCELLED)
        self.assertTrue(ActivityLog.objects.filter(resource='purchases', action=ActivityLog.ACTION_VOID).exists())

    def test_delete_completed_refused(self):
        """Test deleting a completed purchase is refused"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=2)
        complete_purchase(purchase.id)
        response = self.client.delete(f'/api/v1/purchases/{purchase.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_pending(self):
        """Test deleting a pending purchase"""
        purchase = TestDataFactory.create_purchase(self.variant, quantity=2)
        response = self.client.delete(f'/api/v1/purchases/{purchase.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Transaction.objects.filter(pk=purchase.id).exists())

    def test_unknown_order(self):
        """Test an unknown order is not found"""
        response = self.client.get('/api/v1/purchases/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.patch('/api/v1/purchases/999999/complete/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Production order not found')
