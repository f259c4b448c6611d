from django.core.management.base import BaseCommand

from apparel.core.exceptions import BarcodeGenerationError
from ...models import ProductVariant
from ...utils import generate_unique_barcode


class Command(BaseCommand):
    help = 'Generate barcodes for product variants that have none'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report what would change without saving')

    def handle(self, *args, **options):
        variants = ProductVariant.objects.filter(barcode__isnull=True).select_related('product', 'size', 'color')
        self.stdout.write(f'Found {variants.count()} variants without barcodes')

        created_count = 0
        error_count = 0
        for variant in variants:
            try:
                barcode = generate_unique_barcode(variant.product.sku, variant.size.name, variant.color.name)
            except BarcodeGenerationError as e:
                error_count += 1
                self.stdout.write(self.style.ERROR(f'  x {variant}: {e.message}'))
                continue

            if not options['dry_run']:
                variant.barcode = barcode
                variant.save(update_fields=['barcode', 'updated_at'])
            created_count += 1
            self.stdout.write(f'  + {variant}: {barcode}')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} barcodes assigned, {error_count} errors'
            + (' (dry run)' if options['dry_run'] else '')
        ))
