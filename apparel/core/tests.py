"""
Test suite for the core app
Tests: role permissions, auth endpoints, user administration, activity logging, request helpers
"""
from datetime import date
from unittest import mock

from django.test import TestCase, SimpleTestCase, RequestFactory
from rest_framework import status

from apparel.core.exceptions import NotFoundError, InsufficientStockError, ValidationError, domain_exception_handler
from apparel.core.models import User, Permission, RolePermission, ActivityLog
from apparel.core.permissions import (
    check_user_permission, get_user_permissions, permission_for_route, can_access_route,
    seed_permissions, replace_role_permissions, PERMISSION_CATALOG,
)
from apparel.core.test_utils import TestDataFactory, AuthenticatedAPIClient, TEST_PASSWORD
from apparel.core.utils import (
    get_client_ip, get_resource_from_path, log_activity, parse_date, parse_int, parse_id, paginate,
    generate_reference,
)


class PermissionResolutionTests(TestCase):
    """Role to permission resolution"""

    def setUp(self):
        seed_permissions()

    def test_seed_is_idempotent(self):
        """Test seeding twice creates nothing new"""
        result = seed_permissions()
        self.assertEqual(result['permissions_created'], 0)
        self.assertEqual(result['grants_created'], 0)
        self.assertEqual(Permission.objects.count(), len(PERMISSION_CATALOG))

    def test_super_admin_has_everything(self):
        """Test SUPER_ADMIN passes every permission check"""
        self.assertTrue(check_user_permission(User.ROLE_SUPER_ADMIN, 'admin.system'))
        self.assertTrue(check_user_permission(User.ROLE_SUPER_ADMIN, 'not.a.permission'))
        self.assertEqual(len(get_user_permissions(User.ROLE_SUPER_ADMIN)), len(PERMISSION_CATALOG))

    def test_staff_defaults(self):
        """Test the default STAFF grants"""
        self.assertTrue(check_user_permission(User.ROLE_STAFF, 'pos.create'))
        self.assertFalse(check_user_permission(User.ROLE_STAFF, 'products.delete'))
        self.assertFalse(check_user_permission(User.ROLE_STAFF, 'reports.export'))

    def test_owner_lacks_admin_permissions(self):
        """Test OWNER has reports but not admin permissions"""
        self.assertTrue(check_user_permission(User.ROLE_OWNER, 'reports.export'))
        self.assertFalse(check_user_permission(User.ROLE_OWNER, 'admin.permissions'))

    def test_denied_grant_is_not_a_permission(self):
        """Test a grant row with granted=False denies the permission"""
        RolePermission.objects.filter(role=User.ROLE_STAFF, permission__name='pos.create').update(granted=False)
        self.assertFalse(check_user_permission(User.ROLE_STAFF, 'pos.create'))
        self.assertNotIn('pos.create', get_user_permissions(User.ROLE_STAFF))

    def test_missing_role_or_permission(self):
        """Test an empty role or permission name is denied"""
        self.assertFalse(check_user_permission(None, 'pos.view'))
        self.assertFalse(check_user_permission(User.ROLE_STAFF, ''))
        self.assertEqual(get_user_permissions(None), [])

    def test_route_mapping(self):
        """Test frontend routes map to their view permission"""
        self.assertEqual(permission_for_route('/products'), 'products.view')
        self.assertEqual(permission_for_route('/products/12/edit'), 'products.view')
        self.assertIsNone(permission_for_route('/productsxyz'))
        self.assertIsNone(permission_for_route('/login'))
        self.assertTrue(can_access_route(User.ROLE_STAFF, '/pos'))
        self.assertFalse(can_access_route(User.ROLE_STAFF, '/reports'))
        self.assertTrue(can_access_route(User.ROLE_STAFF, '/login'))

    def test_replace_role_permissions(self):
        """Test replacing a role grant set"""
        granted = replace_role_permissions(User.ROLE_STAFF, ['pos.view', 'sales.view'])
        self.assertEqual(granted, ['pos.view', 'sales.view'])
        self.assertFalse(check_user_permission(User.ROLE_STAFF, 'pos.create'))

    def test_replace_role_permissions_rejects_unknown(self):
        """Test an unknown permission name aborts the replacement"""
        with self.assertRaises(ValueError):
            replace_role_permissions(User.ROLE_STAFF, ['pos.view', 'nope.nothing'])
        # Nothing changed
        self.assertTrue(check_user_permission(User.ROLE_STAFF, 'pos.create'))


class AuthAPITests(TestCase):
    """Login, refresh, me and logout"""

    def setUp(self):
        seed_permissions()
        self.user = TestDataFactory.create_user(username='cashier', role=User.ROLE_STAFF)
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens_user_and_permissions(self):
        """Test login returns tokens, the user and their permissions"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cashier', 'password': TEST_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_STAFF)
        self.assertIn('pos.create', response.data['permissions'])
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_LOGIN, user=self.user).exists())

    def test_login_wrong_password(self):
        """Test login with a wrong password"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cashier', 'password': 'wrong-password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        """Test a disabled account cannot log in"""
        TestDataFactory.create_user(username='gone', is_active=False)
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'gone', 'password': TEST_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        """Test refreshing an access token"""
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'cashier', 'password': TEST_PASSWORD,
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_with_garbage_token(self):
        """Test refreshing with a malformed token"""
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'garbage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_auth(self):
        """Test the current user endpoint requires authentication"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        """Test retrieving the current user"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'cashier')
        self.assertIn('sales.view', response.data['permissions'])

    def test_user_permissions(self):
        """Test listing the current user permissions"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/user/permissions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], User.ROLE_STAFF)
        self.assertEqual(response.data['user']['id'], self.user.id)

    def test_logout_records_activity(self):
        """Test logout writes an activity log entry"""
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/logout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_LOGOUT, user=self.user).exists())


class UserAdministrationAPITests(TestCase):
    """User CRUD is reserved for SUPER_ADMIN"""

    def setUp(self):
        seed_permissions()
        self.admin = TestDataFactory.create_super_admin(username='root')
        self.owner = TestDataFactory.create_user(role=User.ROLE_OWNER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_owner_cannot_list_users(self):
        """Test OWNER is refused user administration"""
        self.client.authenticate_user(self.owner)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_user(self):
        """Test creating a user via API"""
        response = self.client.post('/api/v1/users/', {
            'username': 'newstaff',
            'email': 'newstaff@test.com',
            'password': TEST_PASSWORD,
            'role': User.ROLE_STAFF,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        self.assertTrue(User.objects.get(username='newstaff').check_password(TEST_PASSWORD))
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_CREATE, resource='users').exists())

    def test_create_user_duplicate_email(self):
        """Test creating a user with a taken email should fail"""
        response = self.client.post('/api/v1/users/', {
            'username': 'another',
            'email': self.owner.email.upper(),
            'password': TEST_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_filter_by_role(self):
        """Test filtering users by role"""
        response = self.client.get(f'/api/v1/users/?role={User.ROLE_OWNER}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['id'] for u in response.data], [self.owner.id])

    def test_update_user(self):
        """Test updating a user role"""
        response = self.client.patch(f'/api/v1/users/{self.owner.id}/', {'role': User.ROLE_MANAGER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.role, User.ROLE_MANAGER)

    def test_cannot_delete_self(self):
        """Test an admin cannot delete their own account"""
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        """Test deleting a user"""
        response = self.client.delete(f'/api/v1/users/{self.owner.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.owner.id).exists())

    def test_toggle_active(self):
        """Test toggling a user active flag"""
        response = self.client.post(f'/api/v1/users/{self.owner.id}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_get_missing_user(self):
        """Test retrieving a user that does not exist"""
        response = self.client.get('/api/v1/users/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class RolePermissionAPITests(TestCase):
    """Test permission catalogue and role grant endpoints"""

    def setUp(self):
        seed_permissions()
        self.admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_permission_list_grouped(self):
        """Test listing permissions grouped by category"""
        response = self.client.get('/api/v1/permissions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('products', response.data['grouped'])
        self.assertEqual(len(response.data['permissions']), len(PERMISSION_CATALOG))

    def test_role_matrix(self):
        """Test the per-role grant matrix"""
        response = self.client.get('/api/v1/role-permissions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('pos.create', response.data['roles'][User.ROLE_STAFF])

    def test_upsert_single_grant(self):
        """Test granting a single permission to a role"""
        response = self.client.post('/api/v1/role-permissions/', {
            'role': User.ROLE_STAFF, 'permission': 'reports.view', 'granted': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(check_user_permission(User.ROLE_STAFF, 'reports.view'))

    def test_form_encoded_false_revokes_grant(self):
        """Test a form-encoded granted=false revokes the permission"""
        response = self.client.post('/api/v1/role-permissions/', {
            'role': User.ROLE_STAFF, 'permission': 'pos.view', 'granted': 'false',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['granted'])
        self.assertFalse(check_user_permission(User.ROLE_STAFF, 'pos.view'))

    def test_grant_defaults_to_true(self):
        """Test omitting granted grants the permission"""
        response = self.client.post('/api/v1/role-permissions/', {
            'role': User.ROLE_STAFF, 'permissionName': 'reports.export',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['granted'])
        self.assertTrue(check_user_permission(User.ROLE_STAFF, 'reports.export'))

    def test_cannot_edit_super_admin(self):
        """Test SUPER_ADMIN grants cannot be edited"""
        response = self.client.post('/api/v1/role-permissions/', {
            'role': User.ROLE_SUPER_ADMIN, 'permission': 'reports.view',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_replace_role(self):
        """Test replacing every grant of a role"""
        response = self.client.put('/api/v1/role-permissions/staff/', {
            'permissions': ['pos.view'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['permissions'], ['pos.view'])

    def test_replace_role_unknown_permission(self):
        """Test replacing grants with an unknown permission should fail"""
        response = self.client.put('/api/v1/role-permissions/STAFF/', {
            'permissions': ['pos.view', 'bogus.permission'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bogus.permission', response.data['error'])

    def test_seed_permissions_endpoint(self):
        """Test the seed endpoint is idempotent"""
        response = self.client.post('/api/v1/admin/seed-permissions/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['permissions_created'], 0)


class ActivityLogTests(TestCase):
    """Test activity logging helpers and endpoints"""

    def setUp(self):
        seed_permissions()
        self.admin = TestDataFactory.create_super_admin()
        self.staff = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_log_activity_without_request(self):
        """Test logging outside a request"""
        entry = log_activity(action=ActivityLog.ACTION_CREATE, resource='products', resource_id=5, user=self.staff)
        self.assertEqual(entry.resource_id, '5')
        self.assertEqual(entry.user_role, User.ROLE_STAFF)

    def test_log_activity_missing_fields(self):
        """Test an entry without an action is skipped"""
        self.assertIsNone(log_activity(action=None, resource='products'))
        self.assertEqual(ActivityLog.objects.count(), 0)

    def test_log_activity_never_raises(self):
        """Test a failing write is swallowed by the logger"""
        with mock.patch.object(ActivityLog.objects, 'create', side_effect=RuntimeError('db down')):
            self.assertIsNone(log_activity(action=ActivityLog.ACTION_CREATE, resource='products'))

    def test_track_page_view(self):
        """Test recording a client page view"""
        self.client.authenticate_user(self.staff)
        response = self.client.post('/api/v1/activity-logs/track/', {'path': '/products/12'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        entry = ActivityLog.objects.get(action=ActivityLog.ACTION_PAGE_VIEW)
        self.assertEqual(entry.resource, 'products')
        self.assertEqual(entry.path, '/products/12')

    def test_track_requires_path(self):
        """Test page view tracking without a path should fail"""
        self.client.authenticate_user(self.staff)
        response = self.client.post('/api/v1/activity-logs/track/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_stats_are_super_admin_only(self):
        """Test log listing and stats are reserved for SUPER_ADMIN"""
        self.client.authenticate_user(self.staff)
        self.assertEqual(self.client.get('/api/v1/activity-logs/').status_code, status.HTTP_403_FORBIDDEN)

        log_activity(action=ActivityLog.ACTION_CREATE, resource='sales', user=self.staff)
        log_activity(action=ActivityLog.ACTION_DELETE, resource='sales', user=self.staff)
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/v1/activity-logs/?resource=sales&limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(len(response.data['logs']), 1)

        response = self.client.get('/api/v1/activity-logs/stats/')
        self.assertEqual(response.data['by_resource']['sales'], 2)
        self.assertEqual(response.data['top_users'][0]['count'], 2)

    def test_list_rejects_non_numeric_user(self):
        """Test filtering logs by a non-numeric user id should fail"""
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/activity-logs/?userId=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('userId', response.data['error'])

    def test_paginate(self):
        """Test page/limit pagination metadata"""
        for index in range(25):
            log_activity(action=ActivityLog.ACTION_PAGE_VIEW, resource=f'page{index}')
        items, pagination = paginate(ActivityLog.objects.order_by('id'), {'page': '3', 'limit': '10'})
        self.assertEqual(len(items), 5)
        self.assertEqual(pagination['totalPages'], 3)
        self.assertEqual(pagination['totalRecords'], 25)
        self.assertFalse(pagination['hasNext'])
        self.assertTrue(pagination['hasPrev'])


class UtilsTests(SimpleTestCase):
    """Test request and parsing helpers"""

    def setUp(self):
        self.factory = RequestFactory()

    def test_client_ip_prefers_forwarded_for(self):
        """Test client IP resolution prefers X-Forwarded-For"""
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2', REMOTE_ADDR='127.0.0.1')
        self.assertEqual(get_client_ip(request), '10.0.0.1')
        self.assertEqual(get_client_ip(self.factory.get('/', REMOTE_ADDR='127.0.0.1')), '127.0.0.1')
        self.assertIsNone(get_client_ip(None))

    def test_resource_from_path(self):
        """Test resource names derived from paths"""
        self.assertEqual(get_resource_from_path('/'), 'dashboard')
        self.assertEqual(get_resource_from_path('/activity-logs/3'), 'activity-logs')
        self.assertEqual(get_resource_from_path('/unknown/page'), 'unknown')

    def test_parse_date(self):
        """Test lenient date parsing"""
        self.assertEqual(parse_date('2024-03-05'), date(2024, 3, 5))
        self.assertEqual(parse_date('2024-03-05T10:00:00Z'), date(2024, 3, 5))
        self.assertIsNone(parse_date('05/03/2024'))
        self.assertIsNone(parse_date(None))

    def test_parse_int(self):
        """Test integer parsing with fallback and bounds"""
        self.assertEqual(parse_int('7', 1), 7)
        self.assertEqual(parse_int('x', 1), 1)
        self.assertEqual(parse_int('0', 1, minimum=1), 1)
        self.assertEqual(parse_int('900', 1, maximum=500), 500)

    def test_parse_id(self):
        """Test optional id parsing rejects non-numeric values"""
        self.assertIsNone(parse_id(None, 'variantId'))
        self.assertIsNone(parse_id('', 'variantId'))
        self.assertEqual(parse_id('12', 'variantId'), 12)
        with self.assertRaises(ValidationError):
            parse_id('abc', 'variantId')

    def test_generate_reference(self):
        """Test reference number format"""
        self.assertRegex(generate_reference('INV'), r'^INV-\d{13}$')

    def test_domain_exception_handler(self):
        """Test domain errors render as error payloads"""
        response = domain_exception_handler(NotFoundError('Sale not found'), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Sale not found'})

        error = InsufficientStockError('Not enough', details=[{'variantId': 1}])
        response = domain_exception_handler(error, {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['details'], [{'variantId': 1}])
