"""
Role based permission resolution.

Permissions are named ``<area>.<verb>`` and granted per role through the
RolePermission table. SUPER_ADMIN bypasses every check.
"""
import logging

from django.db import transaction
from rest_framework.permissions import BasePermission

from .models import Permission, RolePermission, User

logger = logging.getLogger(__name__)

# (name, description, category)
PERMISSION_CATALOG = [
    ('dashboard.view', 'View dashboard', 'dashboard'),
    ('dashboard.analytics', 'View dashboard analytics', 'dashboard'),
    ('pos.view', 'Access point of sale', 'pos'),
    ('pos.create', 'Ring up sales at the point of sale', 'pos'),
    ('sales.view', 'View sales', 'sales'),
    ('sales.create', 'Create sales', 'sales'),
    ('sales.edit', 'Edit sales', 'sales'),
    ('sales.delete', 'Delete sales', 'sales'),
    ('products.view', 'View products', 'products'),
    ('products.create', 'Create products', 'products'),
    ('products.edit', 'Edit products', 'products'),
    ('products.delete', 'Delete products', 'products'),
    ('inventory.view', 'View inventory', 'inventory'),
    ('inventory.adjust', 'Adjust stock levels', 'inventory'),
    ('inventory.approve', 'Approve stock adjustments', 'inventory'),
    ('purchases.view', 'View purchases', 'purchases'),
    ('purchases.create', 'Create purchases', 'purchases'),
    ('purchases.edit', 'Edit purchases', 'purchases'),
    ('purchases.delete', 'Delete purchases', 'purchases'),
    ('suppliers.view', 'View suppliers', 'suppliers'),
    ('suppliers.create', 'Create suppliers', 'suppliers'),
    ('suppliers.edit', 'Edit suppliers', 'suppliers'),
    ('suppliers.delete', 'Delete suppliers', 'suppliers'),
    ('customers.view', 'View customers', 'customers'),
    ('customers.create', 'Create customers', 'customers'),
    ('customers.edit', 'Edit customers', 'customers'),
    ('customers.delete', 'Delete customers', 'customers'),
    ('reports.view', 'View reports', 'reports'),
    ('reports.export', 'Export reports', 'reports'),
    ('users.view', 'View users', 'users'),
    ('users.create', 'Create users', 'users'),
    ('users.edit', 'Edit users', 'users'),
    ('users.delete', 'Delete users', 'users'),
    ('admin.permissions', 'Manage role permissions', 'admin'),
    ('admin.system', 'System administration', 'admin'),
]

ALL_PERMISSION_NAMES = [name for name, _, _ in PERMISSION_CATALOG]

DEFAULT_ROLE_GRANTS = {
    User.ROLE_OWNER: [name for name in ALL_PERMISSION_NAMES if not name.startswith('admin.')],
    User.ROLE_MANAGER: [
        'dashboard.view', 'dashboard.analytics',
        'pos.view', 'pos.create',
        'sales.view', 'sales.create', 'sales.edit', 'sales.delete',
        'products.view', 'products.edit',
        'inventory.view', 'inventory.adjust',
        'purchases.view', 'purchases.create', 'purchases.edit', 'purchases.delete',
        'suppliers.view', 'suppliers.create', 'suppliers.edit', 'suppliers.delete',
        'customers.view', 'customers.create', 'customers.edit', 'customers.delete',
        'reports.view',
    ],
    User.ROLE_STAFF: [
        'dashboard.view',
        'pos.view', 'pos.create',
        'sales.view', 'sales.create',
        'products.view',
        'inventory.view',
        'customers.view', 'customers.create',
    ],
}

# Roles whose grants can be edited; SUPER_ADMIN always has everything
EDITABLE_ROLES = [User.ROLE_OWNER, User.ROLE_MANAGER, User.ROLE_STAFF]

ROUTE_PERMISSIONS = {
    '/dashboard': 'dashboard.view',
    '/pos': 'pos.view',
    '/sales': 'sales.view',
    '/products': 'products.view',
    '/inventory': 'inventory.view',
    '/purchases': 'purchases.view',
    '/customers': 'customers.view',
    '/suppliers': 'suppliers.view',
    '/reports': 'reports.view',
    '/users': 'users.view',
    '/permissions': 'admin.permissions',
}


def check_user_permission(role, permission_name):
    """Return True when ``role`` holds ``permission_name``"""
    if role == User.ROLE_SUPER_ADMIN:
        return True
    if not role or not permission_name:
        return False
    try:
        return RolePermission.objects.filter(
            role=role,
            permission__name=permission_name,
            granted=True,
        ).exists()
    except Exception as e:
        logger.error(f"Error checking permission {permission_name} for role {role}: {str(e)}")
        return False


def get_user_permissions(role):
    """List the permission names granted to ``role``"""
    if role == User.ROLE_SUPER_ADMIN:
        return list(Permission.objects.order_by('name').values_list('name', flat=True))
    if not role:
        return []
    return list(
        RolePermission.objects.filter(role=role, granted=True)
        .order_by('permission__name')
        .values_list('permission__name', flat=True)
    )


def permission_for_route(path):
    """Map a page path to the permission guarding it, or None"""
    if not path:
        return None
    path = path.rstrip('/') or '/'
    if path in ROUTE_PERMISSIONS:
        return ROUTE_PERMISSIONS[path]
    for route, permission_name in ROUTE_PERMISSIONS.items():
        if path.startswith(route + '/'):
            return permission_name
    return None


def can_access_route(role, path):
    permission_name = permission_for_route(path)
    if permission_name is None:
        return True
    return check_user_permission(role, permission_name)


def seed_permissions():
    """
    Create the permission catalog and default role grants.

    Safe to run repeatedly: existing grants keep their ``granted`` flag.
    Returns a dict with created counts.
    """
    created_permissions = 0
    created_grants = 0
    with transaction.atomic():
        by_name = {}
        for name, description, category in PERMISSION_CATALOG:
            permission, created = Permission.objects.update_or_create(
                name=name,
                defaults={'description': description, 'category': category},
            )
            by_name[name] = permission
            if created:
                created_permissions += 1

        for role, names in DEFAULT_ROLE_GRANTS.items():
            for name in names:
                _, created = RolePermission.objects.get_or_create(
                    role=role,
                    permission=by_name[name],
                    defaults={'granted': True},
                )
                if created:
                    created_grants += 1

    logger.info(f"Seeded permissions: {created_permissions} new permissions, {created_grants} new grants")
    return {
        'permissions_created': created_permissions,
        'grants_created': created_grants,
        'total_permissions': len(PERMISSION_CATALOG),
    }


def replace_role_permissions(role, permission_names):
    """Grant exactly ``permission_names`` to ``role``; everything else is revoked"""
    permission_names = set(permission_names)
    unknown = permission_names - set(Permission.objects.filter(name__in=permission_names).values_list('name', flat=True))
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(sorted(unknown))}")

    with transaction.atomic():
        RolePermission.objects.filter(role=role).delete()
        RolePermission.objects.bulk_create([
            RolePermission(role=role, permission=permission, granted=True)
            for permission in Permission.objects.filter(name__in=permission_names)
        ])
    logger.info(f"Replaced permissions for role {role}: {len(permission_names)} granted")
    return get_user_permissions(role)


class IsSuperAdmin(BasePermission):
    """Only SUPER_ADMIN users pass"""
    message = 'Super admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'role', None) == User.ROLE_SUPER_ADMIN)


def require_permission(*permission_names):
    """
    Build a DRF permission class that passes when the user's role holds any of
    ``permission_names``.

    Usage:
        @permission_classes([IsAuthenticated, require_permission('products.create')])
    """
    class HasAppPermission(BasePermission):
        message = f"Permission required: {' or '.join(permission_names)}"

        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            role = getattr(user, 'role', None)
            return any(check_user_permission(role, name) for name in permission_names)

    HasAppPermission.__name__ = f"HasAppPermission[{','.join(permission_names)}]"
    return HasAppPermission


def require_method_permissions(mapping):
    """
    Like require_permission, but keyed by HTTP method.

    Methods missing from ``mapping`` only need an authenticated user. Values may
    be a permission name or a tuple of alternatives.
    """
    class HasMethodPermission(BasePermission):
        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            required = mapping.get(request.method)
            if required is None:
                return True
            if isinstance(required, str):
                required = (required,)
            self.message = f"Permission required: {' or '.join(required)}"
            role = getattr(user, 'role', None)
            return any(check_user_permission(role, name) for name in required)

    return HasMethodPermission
