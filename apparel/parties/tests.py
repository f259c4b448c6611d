"""
Test suite for the parties app
Tests: customer matching, customer statistics, customer and supplier endpoints
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.parties.models import Customer, Supplier
from apparel.parties.services import find_or_create_customer, customer_stats, _month_keys
from apparel.purchasing.services import complete_purchase


class CustomerMatchingTests(TestCase):
    """Test matching sale customers by phone or name"""

    def test_nothing_supplied(self):
        """Test no customer is created without a name or phone"""
        self.assertIsNone(find_or_create_customer('', '  '))
        self.assertFalse(Customer.objects.exists())

    def test_match_by_phone_first(self):
        """Test phone matching wins over the name"""
        existing = TestDataFactory.create_customer(name='Ayu', phone='081234567890')
        self.assertEqual(find_or_create_customer('Someone Else', '081234567890'), existing)

    def test_match_by_name_case_insensitive(self):
        """Test matching by name ignores case"""
        existing = TestDataFactory.create_customer(name='Budi Santoso')
        self.assertEqual(find_or_create_customer('budi santoso'), existing)

    def test_create_when_unmatched(self):
        """Test an unmatched name or phone creates a customer"""
        customer = find_or_create_customer('Citra', '0899')
        self.assertEqual((customer.name, customer.phone), ('Citra', '0899'))
        phone_only = find_or_create_customer(None, '0811')
        self.assertEqual(phone_only.name, '0811')

    def test_month_keys_cross_year(self):
        """Test month keys spanning a year boundary"""
        self.assertEqual(_month_keys(date(2024, 2, 1), 4), ['2023-11', '2023-12', '2024-01', '2024-02'])


class CustomerStatsTests(TestCase):
    """Test customer purchase statistics"""

    def setUp(self):
        self.tee = TestDataFactory.create_variant(stock=50)
        self.jeans = TestDataFactory.create_variant(stock=50)

    def test_stats_without_sales(self):
        """Test stats for a customer without sales"""
        customer = TestDataFactory.create_customer()
        stats = customer_stats(customer)
        self.assertEqual(stats['total_spent'], Decimal('0.00'))
        self.assertEqual(stats['average_transaction_value'], Decimal('0.00'))
        self.assertIsNone(stats['last_transaction'])
        self.assertIsNone(stats['days_since_last_purchase'])
        self.assertEqual(len(stats['monthly_spending']), 6)

    def test_stats_with_sales(self):
        """Test stats for a customer with sales"""
        first = TestDataFactory.create_sale(self.tee, quantity=3, customer_name='Dewi', customer_phone='0811')
        second = TestDataFactory.create_sale(self.jeans, quantity=1, customer_name='Dewi', customer_phone='0811')
        customer = Customer.objects.get(phone='0811')

        stats = customer_stats(customer)
        self.assertEqual(stats['total_transactions'], 2)
        self.assertEqual(stats['total_spent'], first.total_amount + second.total_amount)
        self.assertEqual(stats['total_items'], 4)
        self.assertEqual(stats['favorite_products'][0]['product_id'], self.tee.product_id)
        self.assertEqual(stats['favorite_products'][0]['quantity'], 3)
        self.assertEqual(stats['last_transaction'], second)
        self.assertEqual(stats['days_since_last_purchase'], 0)
        self.assertEqual(stats['monthly_spending'][-1]['total'], stats['total_spent'])


class CustomerAPITests(TestCase):
    """Test customer API endpoints"""

    def setUp(self):
        seed_permissions()
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def test_create_and_search(self):
        """Test creating and searching customers"""
        response = self.client.post('/api/v1/customers/', {'name': 'Eka', 'phone': '0822'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get('/api/v1/customers/?search=082')
        self.assertEqual([c['name'] for c in response.data['customers']], ['Eka'])
        self.assertEqual(response.data['customers'][0]['transaction_count'], 0)

    def test_blank_name(self):
        """Test creating a customer with a blank name should fail"""
        response = self.client.post('/api/v1/customers/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_includes_stats(self):
        """Test customer detail includes stats"""
        variant = TestDataFactory.create_variant(stock=10)
        TestDataFactory.create_sale(variant, quantity=2, customer_name='Fajar')
        customer = Customer.objects.get(name='Fajar')
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer']['transaction_count'], 1)
        self.assertEqual(len(response.data['transactions']), 1)
        self.assertEqual(response.data['stats']['total_items'], 2)
        self.assertIsNotNone(response.data['stats']['last_transaction'])

    def test_staff_cannot_delete(self):
        """Test STAFF cannot delete customers"""
        customer = TestDataFactory.create_customer()
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_soft_delete(self):
        """Test deleting a customer deactivates it"""
        customer = TestDataFactory.create_customer()
        self.client.authenticate_user(self.manager)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertFalse(customer.is_active)
        self.assertEqual(self.client.get('/api/v1/customers/').data['customers'], [])
        self.assertTrue(ActivityLog.objects.filter(resource='customers', action=ActivityLog.ACTION_DELETE).exists())


class SupplierAPITests(TestCase):
    """Test supplier API endpoints"""

    def setUp(self):
        seed_permissions()
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_staff_cannot_view_suppliers(self):
        """Test STAFF cannot view suppliers"""
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_update_delete(self):
        """Test the supplier lifecycle via API"""
        response = self.client.post('/api/v1/suppliers/', {'name': 'Konveksi Jaya', 'contact': 'Pak Joko'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        supplier_id = response.data['id']

        response = self.client.patch(f'/api/v1/suppliers/{supplier_id}/', {'phone': '0812'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '0812')

        response = self.client.delete(f'/api/v1/suppliers/{supplier_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Supplier.objects.get(pk=supplier_id).is_active)

    def test_purchase_totals(self):
        """Test supplier purchase totals"""
        supplier = TestDataFactory.create_supplier()
        variant = TestDataFactory.create_variant(stock=0)
        purchase = TestDataFactory.create_purchase(variant, quantity=10, unit_price=Decimal('1000'), supplier=supplier)
        complete_purchase(purchase.id)

        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.data['purchase_count'], 1)
        self.assertEqual(Decimal(response.data['purchase_total']), Decimal('10000.00'))
