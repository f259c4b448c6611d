from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Permission, RolePermission, ActivityLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'date_joined']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Store', {'fields': ('phone', 'role')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Store', {'fields': ('phone', 'role')}),
    )


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'description']
    list_filter = ['category']
    search_fields = ['name', 'description']
    ordering = ['category', 'name']


@admin.register(RolePermission)
class RolePermissionAdmin(admin.ModelAdmin):
    list_display = ['role', 'permission', 'granted', 'updated_at']
    list_filter = ['role', 'granted', 'permission__category']
    search_fields = ['permission__name']
    ordering = ['role', 'permission__name']


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['user_name', 'user_role', 'action', 'resource', 'resource_id', 'ip_address', 'created_at']
    list_filter = ['action', 'resource', 'user_role', 'created_at']
    search_fields = ['user_name', 'user_email', 'resource', 'resource_id', 'path']
    ordering = ['-created_at']
    readonly_fields = ['user', 'user_email', 'user_name', 'user_role', 'action', 'resource', 'resource_id',
                       'path', 'method', 'ip_address', 'user_agent', 'metadata', 'created_at']
