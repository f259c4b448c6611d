"""
Barcode composition for product variants.

Variant barcodes look like ``3P`` + SKU(4) + size(2) + color(2) + random(3),
e.g. ``3PTSH0M0BL042``. The random suffix can collide, so generation retries
against the database before giving up.
"""
import json
import logging
import random
import re

from django.utils import timezone

from apparel.core.exceptions import BarcodeGenerationError
from apparel.catalog.models import ProductVariant

logger = logging.getLogger(__name__)

BARCODE_PREFIX = '3P'
MAX_BARCODE_ATTEMPTS = 10

EAN13_COUNTRY_PREFIX = '890'
EAN13_COMPANY_CODE = '1234'


def generate_variant_barcode(sku, size_name, color_name, rng=random):
    """Compose a variant barcode; the last three digits are random"""
    sku_part = (sku or '').replace(BARCODE_PREFIX, '')[:4].ljust(4, '0')
    size_part = (size_name or '')[:2].ljust(2, '0').upper()
    color_part = (color_name or '')[:2].ljust(2, '0').upper()
    random_part = str(rng.randint(0, 999)).zfill(3)
    return f"{BARCODE_PREFIX}{sku_part}{size_part}{color_part}{random_part}"


def generate_unique_barcode(sku, size_name, color_name, rng=random):
    """
    Generate a variant barcode not yet used by any variant.

    Raises BarcodeGenerationError after MAX_BARCODE_ATTEMPTS collisions.
    """
    for attempt in range(MAX_BARCODE_ATTEMPTS):
        candidate = generate_variant_barcode(sku, size_name, color_name, rng=rng)
        if not ProductVariant.objects.filter(barcode=candidate).exists():
            return candidate
        logger.debug(f"Barcode collision on {candidate} (attempt {attempt + 1})")

    logger.error(f"Unable to generate unique barcode for {sku}/{size_name}/{color_name}")
    raise BarcodeGenerationError('Unable to generate unique barcode')


def calculate_ean13_checksum(code12):
    """Check digit for the first 12 digits of an EAN-13 code"""
    total = 0
    for index, char in enumerate(code12[:12]):
        digit = int(char)
        total += digit if index % 2 == 0 else digit * 3
    return str((10 - (total % 10)) % 10)


def generate_ean13(sku):
    """EAN-13 from the digits found in the SKU (890 country, 1234 company)"""
    product_digits = re.sub(r'[^0-9]', '', sku or '')[:5].rjust(5, '0')
    without_checksum = f"{EAN13_COUNTRY_PREFIX}{EAN13_COMPANY_CODE}{product_digits}"
    return without_checksum + calculate_ean13_checksum(without_checksum)


def validate_ean13(code):
    if not code or len(code) != 13 or not code.isdigit():
        return False
    return calculate_ean13_checksum(code[:12]) == code[12]


def build_qr_payload(variant):
    """JSON document encoded in a variant's QR code"""
    return json.dumps({
        'type': 'product_variant',
        'id': variant.id,
        'barcode': variant.barcode,
        'product': variant.product.name,
        'sku': variant.product.sku,
        'size': variant.size.name,
        'color': variant.color.name,
        'stock': variant.stock,
        'timestamp': timezone.now().isoformat(),
    })


def parse_qr_payload(data):
    """Inverse of build_qr_payload; None when the data is not valid JSON"""
    try:
        return json.loads(data)
    except (TypeError, ValueError) as e:
        logger.warning(f"Error parsing QR data: {str(e)}")
        return None
