"""
Test suite for the catalog app
Tests: barcode composition, EAN-13, product/variant CRUD, lookups, scanning, labels, seeding
"""
import json
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from apparel.core.exceptions import BarcodeGenerationError
from apparel.core.models import User, ActivityLog
from apparel.core.permissions import seed_permissions
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from apparel.catalog.label_generator import render_barcode_png, render_qr_png, render_label_pdf
from apparel.catalog.models import Category, Brand, Size, Color, Product, ProductVariant
from apparel.catalog.seed import seed_catalog
from apparel.catalog.utils import (
    generate_variant_barcode, generate_unique_barcode, calculate_ean13_checksum,
    generate_ean13, validate_ean13, build_qr_payload, parse_qr_payload,
)
from apparel.inventory.models import StockMovement

PNG_SIGNATURE = b'\x89PNG'


class FixedRandom:
    """Stand-in for the random module returning a fixed suffix"""

    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        return self.value


class BarcodeCompositionTests(SimpleTestCase):
    """Test barcode and QR composition helpers"""

    def test_variant_barcode_layout(self):
        """Test the variant barcode layout"""
        self.assertEqual(generate_variant_barcode('TSH001', 'M', 'Black', rng=FixedRandom(42)), '3PTSH0M0BL042')

    def test_short_parts_are_padded(self):
        """Test short barcode parts are padded"""
        self.assertEqual(generate_variant_barcode('AB', 'S', 'R', rng=FixedRandom(7)), '3PAB00S0R0007')

    def test_prefix_is_stripped_from_sku(self):
        """Test the SKU prefix is stripped"""
        self.assertEqual(generate_variant_barcode('3PJNS1', 'XL', 'Navy', rng=FixedRandom(999)), '3PJNS1XLNA999')

    def test_ean13_checksum(self):
        """Test the EAN-13 check digit"""
        self.assertEqual(calculate_ean13_checksum('890123400001'), '4')
        self.assertEqual(calculate_ean13_checksum('400638133393'), '1')

    def test_generate_ean13(self):
        """Test generating an EAN-13 code"""
        code = generate_ean13('TSH001')
        self.assertEqual(code, '8901234000014')
        self.assertTrue(validate_ean13(code))

    def test_generate_ean13_without_digits(self):
        """Test generating an EAN-13 code from a value without digits"""
        self.assertEqual(generate_ean13('ABC')[:12], '890123400000')

    def test_validate_ean13_rejects_bad_input(self):
        """Test EAN-13 validation rejects bad input"""
        self.assertFalse(validate_ean13('8901234000015'))
        self.assertFalse(validate_ean13('12345'))
        self.assertFalse(validate_ean13('89012340000AB'))
        self.assertFalse(validate_ean13(None))

    def test_parse_qr_payload(self):
        """Test parsing a QR payload"""
        self.assertEqual(parse_qr_payload('{"id": 3}'), {'id': 3})
        self.assertIsNone(parse_qr_payload('not json'))

    def test_render_images(self):
        """Test rendering barcode and QR images"""
        self.assertTrue(render_barcode_png('3PTSH0M0BL042').startswith(PNG_SIGNATURE))
        self.assertTrue(render_barcode_png('8901234000014', symbology='ean13').startswith(PNG_SIGNATURE))
        self.assertTrue(render_qr_png('{"id": 1}').startswith(PNG_SIGNATURE))


class BarcodeUniquenessTests(TestCase):
    """Test barcode generation against stored variants"""

    def test_retries_until_free(self):
        """Test generation retries until the barcode is free"""
        variant = TestDataFactory.create_variant(stock=0)
        variant.barcode = '3PTSH0M0BL001'
        variant.save()
        rng = mock.Mock()
        rng.randint.side_effect = [1, 2]
        self.assertEqual(generate_unique_barcode('TSH001', 'M', 'Black', rng=rng), '3PTSH0M0BL002')

    def test_gives_up_after_repeated_collisions(self):
        """Test generation gives up after repeated collisions"""
        variant = TestDataFactory.create_variant(stock=0)
        variant.barcode = '3PTSH0M0BL005'
        variant.save()
        with self.assertRaises(BarcodeGenerationError):
            generate_unique_barcode('TSH001', 'M', 'Black', rng=FixedRandom(5))

    def test_qr_payload(self):
        """Test the QR payload of a variant"""
        variant = TestDataFactory.create_variant(stock=3)
        payload = json.loads(build_qr_payload(variant))
        self.assertEqual(payload['type'], 'product_variant')
        self.assertEqual(payload['barcode'], variant.barcode)
        self.assertEqual(payload['stock'], 3)

    def test_label_pdf(self):
        """Test rendering a label PDF"""
        product = TestDataFactory.create_product()
        variants = [TestDataFactory.create_variant(product=product) for _ in range(3)]
        pdf = render_label_pdf(variants, title='Labels')
        self.assertTrue(pdf.startswith(b'%PDF'))


class ProductAPITests(TestCase):
    """Product and variant endpoints"""

    def setUp(self):
        seed_permissions()
        self.owner = TestDataFactory.create_user(role=User.ROLE_OWNER)
        self.staff = TestDataFactory.create_user(role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.category = TestDataFactory.create_category(name='Tops')
        self.size = TestDataFactory.create_size(name='M', sort_order=3)
        self.color = TestDataFactory.create_color(name='Black')

    def _create_product(self, **overrides):
        data = {
            'name': 'Basic Cotton T-Shirt',
            'sku': 'TSH001',
            'category': self.category.id,
            'cost_price': '50000.00',
            'selling_price': '85000.00',
        }
        data.update(overrides)
        return self.client.post('/api/v1/products/', data, format='json')

    def test_create_product_uses_house_brand(self):
        """Test creating a product without a brand uses the house brand"""
        response = self._create_product()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['brand_name'], '3Pachino')
        self.assertEqual(response.data['total_stock'], 0)
        self.assertTrue(ActivityLog.objects.filter(resource='products', action=ActivityLog.ACTION_CREATE).exists())

    def test_duplicate_sku_is_case_insensitive(self):
        """Test a duplicate SKU in another case should fail"""
        self._create_product()
        response = self._create_product(sku='tsh001', name='Other')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sku', response.data)

    def test_staff_cannot_create_product(self):
        """Test STAFF cannot create products"""
        self.client.authenticate_user(self.staff)
        response = self._create_product()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated(self):
        """Test product endpoints require authentication"""
        self.client.logout()
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_search_and_pagination(self):
        """Test listing products with search and pagination"""
        TestDataFactory.create_product(name='Slim Fit Jeans', sku='JNS001')
        TestDataFactory.create_product(name='Summer Dress', sku='DRS001')
        response = self.client.get('/api/v1/products/?search=jeans')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['sku'] for p in response.data['products']], ['JNS001'])
        self.assertEqual(response.data['pagination']['totalRecords'], 1)

        response = self.client.get('/api/v1/products/?limit=1&page=2')
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(response.data['pagination']['totalPages'], 2)

    def test_search_by_variant_barcode(self):
        """Test searching products by variant barcode"""
        variant = TestDataFactory.create_variant()
        response = self.client.get(f'/api/v1/products/?search={variant.barcode}')
        self.assertEqual([p['id'] for p in response.data['products']], [variant.product_id])

    def test_create_variant_books_opening_stock(self):
        """Test creating a variant books its opening stock"""
        product = Product.objects.get(pk=self._create_product().data['id'])
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'size': self.size.id, 'color': self.color.id, 'stock': 12,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['barcode'].startswith('3PTSH0M0BL'))
        self.assertEqual(response.data['min_stock'], 5)

        movement = StockMovement.objects.get(variant_id=response.data['id'])
        self.assertEqual(movement.type, StockMovement.TYPE_IN)
        self.assertEqual(movement.quantity, 12)
        self.assertEqual(movement.reference, 'INITIAL')
        self.assertEqual(movement.created_by, self.owner)

    def test_create_variant_without_stock_has_no_movement(self):
        """Test a variant without opening stock has no movement"""
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'size': self.size.id, 'color': self.color.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(StockMovement.objects.filter(variant_id=response.data['id']).exists())

    def test_duplicate_variant(self):
        """Test creating a duplicate variant should fail"""
        product = TestDataFactory.create_product()
        TestDataFactory.create_variant(product=product, size=self.size, color=self.color)
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'size': self.size.id, 'color': self.color.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already exists', response.data['error'])

    def test_variant_unknown_size(self):
        """Test creating a variant with an unknown size should fail"""
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'size': 999999, 'color': self.color.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Size not found')

    def test_update_variant_cannot_touch_stock(self):
        """Test updating a variant leaves stock alone"""
        variant = TestDataFactory.create_variant(stock=10)
        response = self.client.patch(
            f'/api/v1/products/{variant.product_id}/variants/{variant.id}/',
            {'min_stock': 8, 'stock': 500, 'cost_price': '42000.00'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        variant.refresh_from_db()
        self.assertEqual(variant.min_stock, 8)
        self.assertEqual(variant.stock, 10)
        self.assertEqual(variant.effective_cost_price, Decimal('42000.00'))

    def test_delete_product_without_history(self):
        """Test deleting a product without history"""
        variant = TestDataFactory.create_variant(stock=5)
        response = self.client.delete(f'/api/v1/products/{variant.product_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Product.objects.filter(pk=variant.product_id).exists())
        self.assertFalse(StockMovement.objects.filter(variant_id=variant.id).exists())

    def test_delete_product_with_sales_is_refused(self):
        """Test deleting a product with sales is refused"""
        variant = TestDataFactory.create_variant(stock=5)
        TestDataFactory.create_sale(variant, quantity=1)
        response = self.client.delete(f'/api/v1/products/{variant.product_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(pk=variant.product_id).exists())

    def test_delete_variant_with_sales_is_refused(self):
        """Test deleting a variant with sales is refused"""
        variant = TestDataFactory.create_variant(stock=5)
        TestDataFactory.create_sale(variant, quantity=1)
        response = self.client.delete(f'/api/v1/products/{variant.product_id}/variants/{variant.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_product_detail_not_found(self):
        """Test retrieving a product that does not exist"""
        response = self.client.get('/api/v1/products/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class LookupAPITests(TestCase):
    """Test lookup table endpoints"""

    def setUp(self):
        seed_permissions()
        self.owner = TestDataFactory.create_user(role=User.ROLE_OWNER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_and_list_categories(self):
        """Test creating and listing categories"""
        response = self.client.post('/api/v1/categories/', {'name': 'Outerwear'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get('/api/v1/categories/')
        self.assertIn('Outerwear', [c['name'] for c in response.data])

    def test_duplicate_name(self):
        """Test creating a lookup with a taken name should fail"""
        Brand.objects.create(name='Zara')
        response = self.client.post('/api/v1/brands/', {'name': 'zara'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_soft_delete_then_recreate_reactivates(self):
        """Test recreating a soft-deleted lookup reactivates it"""
        category = Category.objects.create(name='Hats')
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertNotIn('Hats', [c['name'] for c in self.client.get('/api/v1/categories/').data])

        response = self.client.post('/api/v1/categories/', {'name': 'Hats'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['id'], category.id)
        self.assertTrue(response.data['is_active'])

    def test_rename_to_deactivated_name_rejected(self):
        """Test renaming onto a soft-deleted row's name returns 400"""
        Brand.objects.create(name='Zara', is_active=False)
        mango = Brand.objects.create(name='Mango')
        response = self.client.put(f'/api/v1/brands/{mango.id}/', {'name': 'Zara'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        mango.refresh_from_db()
        self.assertEqual(mango.name, 'Mango')

    def test_rename_keeps_own_name(self):
        """Test saving a lookup row under its current name is allowed"""
        color = Color.objects.create(name='Sand', hex_code='#C2B280')
        response = self.client.put(f'/api/v1/colors/{color.id}/', {'name': 'Sand', 'hex_code': '#C2B281'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_size_in_use_cannot_be_deleted(self):
        """Test deleting a size in use is refused"""
        variant = TestDataFactory.create_variant()
        response = self.client.delete(f'/api/v1/sizes/{variant.size_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Size.objects.get(pk=variant.size_id).is_active)

    def test_color_hex_validation(self):
        """Test color hex code validation"""
        response = self.client.post('/api/v1/colors/', {'name': 'Olive', 'hex_code': '808000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/colors/', {'name': 'Olive', 'hex_code': '#80800a'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['hex_code'], '#80800A')
        self.assertTrue(Color.objects.filter(name='Olive').exists())


class ScanAndSearchAPITests(TestCase):
    """Test barcode scanning and POS search endpoints"""

    def setUp(self):
        seed_permissions()
        self.staff = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)
        self.product = TestDataFactory.create_product(name='Slim Fit Jeans', sku='JNS001')
        self.variant = TestDataFactory.create_variant(product=self.product, stock=12)

    def test_scan(self):
        """Test scanning a variant barcode"""
        response = self.client.get(f'/api/v1/barcode/scan/?barcode={self.variant.barcode}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.variant.id)
        self.assertEqual(response.data['product']['sku'], 'JNS001')

    def test_scan_requires_barcode(self):
        """Test scanning without a barcode should fail"""
        response = self.client.get('/api/v1/barcode/scan/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_scan_unknown_or_inactive(self):
        """Test scanning an unknown or inactive barcode"""
        self.assertEqual(self.client.get('/api/v1/barcode/scan/?barcode=NOPE').status_code, status.HTTP_404_NOT_FOUND)
        self.variant.is_active = False
        self.variant.save()
        response = self.client.get(f'/api/v1/barcode/scan/?barcode={self.variant.barcode}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_pos_search(self):
        """Test POS variant search"""
        TestDataFactory.create_variant(stock=0)
        response = self.client.get('/api/v1/pos/search/?q=slim')
        self.assertEqual([v['id'] for v in response.data], [self.variant.id])

        # Without a query only in-stock variants are listed
        response = self.client.get('/api/v1/pos/search/')
        self.assertEqual([v['id'] for v in response.data], [self.variant.id])

    def test_barcode_and_qr_images(self):
        """Test barcode and QR image endpoints"""
        response = self.client.get(f'/api/v1/variants/{self.variant.id}/barcode.png')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')

        response = self.client.get(f'/api/v1/variants/{self.variant.id}/barcode.png?format=ean13')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(f'/api/v1/variants/{self.variant.id}/qr.png')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_label_sheet(self):
        """Test the label sheet endpoint"""
        response = self.client.get(f'/api/v1/products/{self.product.id}/labels.pdf')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_EXPORT).exists())

    def test_variant_stock_list(self):
        """Test the variant stock list"""
        low = TestDataFactory.create_variant(stock=2, min_stock=5)
        TestDataFactory.create_variant(stock=0)
        response = self.client.get('/api/v1/inventory/variants/?lowStock=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        statuses = {v['id']: v['stock_status'] for v in response.data['variants']}
        self.assertEqual(statuses[low.id], 'low_stock')
        self.assertNotIn(self.variant.id, statuses)
        self.assertEqual(response.data['lowStockCount'], 1)
        self.assertEqual(response.data['outOfStockCount'], 1)


class SeedTests(TestCase):
    """Test catalog seeding and barcode backfill"""

    def test_seed_catalog_is_idempotent(self):
        """Test seeding the catalog twice creates nothing new"""
        first = seed_catalog()
        self.assertEqual(first['categoriesCount'], 4)
        self.assertEqual(first['sizesCount'], 5)
        self.assertEqual(first['colorsCount'], 6)
        self.assertEqual(first['productsCount'], 3)
        self.assertEqual(first['variantsCreated'], 28)

        second = seed_catalog()
        self.assertEqual(second['variantsCreated'], 0)
        self.assertEqual(second['variantsCount'], 28)
        self.assertEqual(StockMovement.objects.filter(reference='INITIAL').count(), 28)

    def test_seed_variants_have_opening_stock(self):
        """Test seeded variants have opening stock"""
        seed_catalog()
        tshirt = ProductVariant.objects.filter(product__sku='TSH001').first()
        self.assertEqual(tshirt.stock, 20)
        self.assertEqual(tshirt.min_stock, 5)

    def test_seed_command_creates_admin(self):
        """Test the seed command creates an admin user"""
        out = StringIO()
        call_command('seed_data', admin_username='boss', admin_password='S3cure-Passw0rd!', stdout=out)
        self.assertEqual(User.objects.get(username='boss').role, User.ROLE_SUPER_ADMIN)

    def test_seed_endpoint_is_super_admin_only(self):
        """Test the seed endpoint is reserved for SUPER_ADMIN"""
        seed_permissions()
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_OWNER))
        self.assertEqual(client.post('/api/v1/seed/').status_code, status.HTTP_403_FORBIDDEN)

        client.authenticate_user(TestDataFactory.create_super_admin())
        response = client.post('/api/v1/seed/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])

    def test_backfill_barcodes(self):
        """Test backfilling missing barcodes"""
        variant = TestDataFactory.create_variant(stock=0)
        ProductVariant.objects.filter(pk=variant.pk).update(barcode=None)
        call_command('backfill_barcodes', '--dry-run', stdout=StringIO())
        self.assertIsNone(ProductVariant.objects.get(pk=variant.pk).barcode)
        call_command('backfill_barcodes', stdout=StringIO())
        self.assertIsNotNone(ProductVariant.objects.get(pk=variant.pk).barcode)
