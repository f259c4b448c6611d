"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apparel.catalog.models import Category, Brand, Size, Color, Product, ProductVariant
from apparel.catalog.services import create_variant
from apparel.parties.models import Customer, Supplier
from apparel.pos.services import create_sale
from apparel.purchasing.services import create_purchase
from decimal import Decimal
import random
import string

User = get_user_model()

TEST_PASSWORD = 'S3cure-Passw0rd!'


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password=TEST_PASSWORD, role=User.ROLE_STAFF, is_active=True):
        """Create a test user with an application role"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_active=is_active,
        )
        return user

    @staticmethod
    def create_super_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN, **kwargs)

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_brand(name=None, description=None):
        """Create a test brand"""
        if not name:
            name = f'Brand_{TestDataFactory.random_string(6)}'
        return Brand.objects.create(
            name=name,
            description=description or f'Test brand {name}'
        )

    @staticmethod
    def create_size(name=None, sort_order=0):
        if not name:
            name = f'S{TestDataFactory.random_string(4)}'
        return Size.objects.create(name=name, sort_order=sort_order)

    @staticmethod
    def create_color(name=None, hex_code='#000000'):
        if not name:
            name = f'Color_{TestDataFactory.random_string(6)}'
        return Color.objects.create(name=name, hex_code=hex_code)

    @staticmethod
    def create_product(name=None, sku=None, category=None, brand=None,
                       cost_price=Decimal('50000.00'), selling_price=Decimal('85000.00')):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU{TestDataFactory.random_string(6).upper()}'
        if not category:
            category = TestDataFactory.create_category()
        if not brand:
            brand = TestDataFactory.create_brand()

        return Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            brand=brand,
            cost_price=cost_price,
            selling_price=selling_price,
        )

    @staticmethod
    def create_variant(product=None, size=None, color=None, stock=20, min_stock=5, cost_price=None, user=None):
        """Create a variant through the catalog service (barcode and opening movement included)"""
        if not product:
            product = TestDataFactory.create_product()
        if not size:
            size = TestDataFactory.create_size()
        if not color:
            color = TestDataFactory.create_color()
        return create_variant(
            product, size.id, color.id,
            stock=stock, min_stock=min_stock, cost_price=cost_price, user=user,
        )

    @staticmethod
    def create_customer(name=None, phone=None, email=None):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'08{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Customer.objects.create(
            name=name,
            phone=phone,
            email=email
        )

    @staticmethod
    def create_supplier(name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'08{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            name=name,
            phone=phone,
            email=email
        )

    @staticmethod
    def create_sale(variant, quantity=1, user=None, customer_name=None, customer_phone=None,
                    discount=0, tax=0):
        """Ring up a completed sale of ``quantity`` units of ``variant``"""
        return create_sale(
            [{'variant_id': variant.id, 'quantity': quantity}],
            user=user,
            customer_name=customer_name,
            customer_phone=customer_phone,
            discount_percent=discount,
            tax_percent=tax,
        )

    @staticmethod
    def create_purchase(variant, quantity=10, unit_price=None, user=None, supplier=None):
        """Create a PENDING purchase order for one variant"""
        return create_purchase(
            [{'variant_id': variant.id, 'quantity': quantity, 'unit_price': unit_price}],
            user=user,
            supplier_id=supplier.id if supplier else None,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
