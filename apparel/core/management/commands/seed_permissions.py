from django.core.management.base import BaseCommand

from apparel.core.permissions import seed_permissions, DEFAULT_ROLE_GRANTS


class Command(BaseCommand):
    help = 'Create the permission catalog and default OWNER/MANAGER/STAFF grants'

    def handle(self, *args, **options):
        result = seed_permissions()
        self.stdout.write(f"  Permissions created: {result['permissions_created']} of {result['total_permissions']}")
        for role, names in DEFAULT_ROLE_GRANTS.items():
            self.stdout.write(f"  {role}: {len(names)} permissions")
        self.stdout.write(self.style.SUCCESS(
            f"\nCompleted: {result['grants_created']} new role grants"
        ))
