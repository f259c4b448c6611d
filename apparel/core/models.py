from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Store user with an application role"""
    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLE_OWNER = 'OWNER'
    ROLE_MANAGER = 'MANAGER'
    ROLE_STAFF = 'STAFF'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_OWNER, 'Owner'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_STAFF, 'Staff'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    @property
    def is_super_admin(self):
        return self.role == self.ROLE_SUPER_ADMIN


class Permission(models.Model):
    """Named application permission, e.g. products.create"""
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)
    category = models.CharField(max_length=50)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'permissions'
        ordering = ['category', 'name']


class RolePermission(models.Model):
    """Grant (or explicit denial) of a permission to a role"""
    role = models.CharField(max_length=20, choices=User.ROLE_CHOICES)
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='role_permissions')
    granted = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.role}: {self.permission.name} ({'granted' if self.granted else 'denied'})"

    class Meta:
        db_table = 'role_permissions'
        unique_together = [['role', 'permission']]


class ActivityLog(models.Model):
    """User activity trail (page views, CRUD, exports, logins)"""
    ACTION_PAGE_VIEW = 'PAGE_VIEW'
    ACTION_CREATE = 'CREATE'
    ACTION_UPDATE = 'UPDATE'
    ACTION_DELETE = 'DELETE'
    ACTION_LOGIN = 'LOGIN'
    ACTION_LOGOUT = 'LOGOUT'
    ACTION_EXPORT = 'EXPORT'
    ACTION_IMPORT = 'IMPORT'
    ACTION_VOID = 'VOID'
    ACTION_REFUND = 'REFUND'

    ACTION_CHOICES = [
        (ACTION_PAGE_VIEW, 'Page View'),
        (ACTION_CREATE, 'Create'),
        (ACTION_UPDATE, 'Update'),
        (ACTION_DELETE, 'Delete'),
        (ACTION_LOGIN, 'Login'),
        (ACTION_LOGOUT, 'Logout'),
        (ACTION_EXPORT, 'Export'),
        (ACTION_IMPORT, 'Import'),
        (ACTION_VOID, 'Void'),
        (ACTION_REFUND, 'Refund'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='activity_logs')
    user_email = models.CharField(max_length=255, blank=True, null=True)
    user_name = models.CharField(max_length=255, blank=True, null=True)
    user_role = models.CharField(max_length=20, blank=True, null=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    resource = models.CharField(max_length=100)
    resource_id = models.CharField(max_length=100, blank=True, null=True)
    path = models.CharField(max_length=500, blank=True, null=True)
    method = models.CharField(max_length=10, blank=True, null=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user_name or 'anonymous'} {self.action} {self.resource}"

    class Meta:
        db_table = 'activity_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='activity_lo_created_9a1f3c_idx'),
            models.Index(fields=['action'], name='activity_lo_action_4be21d_idx'),
            models.Index(fields=['resource'], name='activity_lo_resourc_7c0e5a_idx'),
        ]
