"""Catalog writes that touch more than one table"""
import logging

from django.conf import settings
from django.db import transaction, IntegrityError

from apparel.core.exceptions import ValidationError, NotFoundError
from apparel.inventory.models import StockMovement
from apparel.inventory.services import record_movement, INITIAL_STOCK_REFERENCE
from .models import Brand, Size, Color, ProductVariant
from .utils import generate_unique_barcode

logger = logging.getLogger(__name__)


def get_house_brand():
    """Brand used for products created without one"""
    brand, created = Brand.objects.get_or_create(name=settings.INVENTORY_CONFIG['HOUSE_BRAND'])
    if created:
        logger.info(f"Created house brand {brand.name}")
    return brand


def create_variant(product, size_id, color_id, stock=0, min_stock=None, cost_price=None, user=None):
    """
    Add a size/color variant with an auto-generated barcode.

    Opening stock is booked as an IN movement in the same transaction.
    """
    size = Size.objects.filter(pk=size_id).first()
    if size is None:
        raise NotFoundError('Size not found')
    color = Color.objects.filter(pk=color_id).first()
    if color is None:
        raise NotFoundError('Color not found')
    if ProductVariant.objects.filter(product=product, size=size, color=color).exists():
        raise ValidationError(f"Variant {size.name}/{color.name} already exists for this product")
    if stock < 0:
        raise ValidationError('Stock cannot be negative')
    if min_stock is None:
        min_stock = settings.INVENTORY_CONFIG['DEFAULT_MIN_STOCK']

    barcode = generate_unique_barcode(product.sku, size.name, color.name)
    try:
        with transaction.atomic():
            variant = ProductVariant.objects.create(
                product=product,
                size=size,
                color=color,
                stock=stock,
                min_stock=min_stock,
                cost_price=cost_price,
                barcode=barcode,
            )
            if stock > 0:
                record_movement(
                    variant, StockMovement.TYPE_IN, stock,
                    reason='Initial stock', reference=INITIAL_STOCK_REFERENCE, user=user,
                )
    except IntegrityError:
        # Lost a race on (product, size, color) or the barcode
        raise ValidationError(f"Variant {size.name}/{color.name} already exists for this product")

    logger.info(f"Created variant {variant.id} ({barcode}) for {product.sku} with stock {stock}")
    return variant


def variant_has_history(variant):
    return variant.transaction_items.exists() or variant.adjustments.exists()


def delete_variant(variant):
    if variant_has_history(variant):
        raise ValidationError('Cannot delete a variant with transaction or adjustment history')
    with transaction.atomic():
        variant.stock_movements.all().delete()
        variant.delete()
    logger.info(f"Deleted variant {variant.barcode}")


def delete_product(product):
    """
    Delete a product and its variants.

    Refused when any variant appears on a transaction or adjustment; otherwise
    the variants' stock movements go with it.
    """
    variants = list(product.variants.all())
    if any(variant_has_history(v) for v in variants):
        raise ValidationError(
            'Cannot delete product with existing transactions or stock adjustments. '
            'Deactivate it instead.'
        )
    if product.transaction_items.exists():
        raise ValidationError('Cannot delete product with existing transactions. Deactivate it instead.')

    with transaction.atomic():
        StockMovement.objects.filter(variant__product=product).delete()
        product.variants.all().delete()
        product.delete()
    logger.info(f"Deleted product {product.sku} with {len(variants)} variants")
