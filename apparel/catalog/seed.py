"""
Demo catalog: lookup tables, three products with variants and opening stock.

Idempotent; running it twice leaves the same rows.
"""
import logging
from decimal import Decimal

from django.db import transaction

from apparel.core.models import User
from apparel.core.permissions import seed_permissions
from .models import Category, Brand, Size, Color, Product, ProductVariant
from .services import create_variant

logger = logging.getLogger(__name__)

CATEGORIES = [
    ('Tops', 'T-shirts, shirts and blouses'),
    ('Bottoms', 'Jeans, trousers and shorts'),
    ('Dresses', 'Dresses and gowns'),
    ('Accessories', 'Fashion accessories'),
]

BRANDS = ['Local Brand', 'Zara', 'H&M', 'Uniqlo']

SIZES = [('XS', 1), ('S', 2), ('M', 3), ('L', 4), ('XL', 5)]

COLORS = [
    ('Black', '#000000'),
    ('White', '#FFFFFF'),
    ('Red', '#FF0000'),
    ('Blue', '#0000FF'),
    ('Navy', '#000080'),
    ('Gray', '#808080'),
]

# sku, name, category, brand, cost, price, sizes, colors, opening stock per variant
PRODUCTS = [
    ('TSH001', 'Basic Cotton T-Shirt', 'Tops', 'Local Brand', '50000', '85000',
     ['S', 'M', 'L', 'XL'], ['Black', 'White', 'Navy'], 20),
    ('JNS001', 'Slim Fit Jeans', 'Bottoms', 'Zara', '120000', '199000',
     ['S', 'M', 'L', 'XL'], ['Blue', 'Black'], 15),
    ('DRS001', 'Summer Floral Dress', 'Dresses', 'H&M', '80000', '149000',
     ['XS', 'S', 'M', 'L'], ['Red', 'White'], 10),
]

SEED_MIN_STOCK = 5


def seed_catalog(admin_username=None, admin_password=None, admin_email=None):
    """
    Seed permissions, lookup tables and demo products.

    Returns a dict of counts describing what exists afterwards.
    """
    permission_result = seed_permissions()

    with transaction.atomic():
        categories = {}
        for name, description in CATEGORIES:
            categories[name], _ = Category.objects.get_or_create(name=name, defaults={'description': description})

        brands = {}
        for name in BRANDS:
            brands[name], _ = Brand.objects.get_or_create(name=name)

        sizes = {}
        for name, sort_order in SIZES:
            sizes[name], _ = Size.objects.get_or_create(name=name, defaults={'sort_order': sort_order})

        colors = {}
        for name, hex_code in COLORS:
            colors[name], _ = Color.objects.get_or_create(name=name, defaults={'hex_code': hex_code})

        variants_created = 0
        for sku, name, category, brand, cost, price, size_names, color_names, stock in PRODUCTS:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    'name': name,
                    'category': categories[category],
                    'brand': brands[brand],
                    'cost_price': Decimal(cost),
                    'selling_price': Decimal(price),
                },
            )
            for size_name in size_names:
                for color_name in color_names:
                    size = sizes[size_name]
                    color = colors[color_name]
                    if ProductVariant.objects.filter(product=product, size=size, color=color).exists():
                        continue
                    create_variant(product, size.id, color.id, stock=stock, min_stock=SEED_MIN_STOCK)
                    variants_created += 1

    admin_created = False
    if admin_username and admin_password:
        if not User.objects.filter(username=admin_username).exists():
            User.objects.create_superuser(
                username=admin_username,
                email=admin_email or f"{admin_username}@example.com",
                password=admin_password,
                role=User.ROLE_SUPER_ADMIN,
            )
            admin_created = True

    logger.info(f"Seeded catalog: {variants_created} new variants, admin created: {admin_created}")
    return {
        'permissionsCreated': permission_result['permissions_created'],
        'grantsCreated': permission_result['grants_created'],
        'categoriesCount': Category.objects.count(),
        'brandsCount': Brand.objects.count(),
        'sizesCount': Size.objects.count(),
        'colorsCount': Color.objects.count(),
        'productsCount': Product.objects.count(),
        'variantsCreated': variants_created,
        'variantsCount': ProductVariant.objects.count(),
        'adminCreated': admin_created,
    }
