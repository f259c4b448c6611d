from django.core.management.base import BaseCommand

from apparel.catalog.seed import seed_catalog


class Command(BaseCommand):
    help = 'Seed permissions, lookup tables and demo products with opening stock'

    def add_arguments(self, parser):
        parser.add_argument('--admin-username', help='Create a SUPER_ADMIN user with this username')
        parser.add_argument('--admin-password', help='Password for the SUPER_ADMIN user')
        parser.add_argument('--admin-email', help='Email for the SUPER_ADMIN user')

    def handle(self, *args, **options):
        if bool(options['admin_username']) != bool(options['admin_password']):
            self.stdout.write(self.style.WARNING('Both --admin-username and --admin-password are needed; skipping admin'))

        result = seed_catalog(
            admin_username=options['admin_username'],
            admin_password=options['admin_password'],
            admin_email=options['admin_email'],
        )
        self.stdout.write(f"  Categories: {result['categoriesCount']}")
        self.stdout.write(f"  Brands: {result['brandsCount']}")
        self.stdout.write(f"  Sizes: {result['sizesCount']}")
        self.stdout.write(f"  Colors: {result['colorsCount']}")
        self.stdout.write(f"  Products: {result['productsCount']}")
        self.stdout.write(f"  Variants: {result['variantsCount']} ({result['variantsCreated']} new)")
        if result['adminCreated']:
            self.stdout.write(f"  Super admin '{options['admin_username']}' created")
        self.stdout.write(self.style.SUCCESS('\nCompleted: database seeded'))
