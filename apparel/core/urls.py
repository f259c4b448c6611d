from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, logout, user_me,
    user_permissions,
    user_list_create, user_detail, user_toggle_active,
    permission_list, role_permission_list, role_permission_replace,
    seed_permissions_view,
    activity_log_list, activity_log_stats, activity_log_track,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', logout, name='logout'),
    path('auth/me/', user_me, name='user-me'),
    path('user/permissions/', user_permissions, name='user-permissions'),

    # User administration
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/toggle/', user_toggle_active, name='user-toggle'),

    # Permission endpoints
    path('permissions/', permission_list, name='permission-list'),
    path('role-permissions/', role_permission_list, name='role-permission-list'),
    path('role-permissions/<str:role>/', role_permission_replace, name='role-permission-replace'),
    path('admin/seed-permissions/', seed_permissions_view, name='seed-permissions'),

    # Activity log endpoints
    path('activity-logs/', activity_log_list, name='activity-log-list'),
    path('activity-logs/stats/', activity_log_stats, name='activity-log-stats'),
    path('activity-logs/track/', activity_log_track, name='activity-log-track'),
]
