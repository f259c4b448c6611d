import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404

from .models import Permission, RolePermission, ActivityLog
from .permissions import (
    IsSuperAdmin, require_permission, get_user_permissions, seed_permissions,
    replace_role_permissions, EDITABLE_ROLES,
)
from .serializers import (
    UserSerializer, UserCreateSerializer, UserUpdateSerializer,
    PermissionSerializer, RolePermissionSerializer, RoleGrantSerializer, ActivityLogSerializer,
)
from .utils import (
    log_activity, get_activity_stats, get_resource_from_path, parse_date, date_range_bounds, parse_int, parse_id,
)

logger = logging.getLogger(__name__)

User = get_user_model()

VALID_ROLES = [choice for choice, _ in User.ROLE_CHOICES]


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        data['permissions'] = get_user_permissions(self.user.role)
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK:
            user = User.objects.filter(pk=response.data['user']['id']).first()
            log_activity(request, ActivityLog.ACTION_LOGIN, 'auth', resource_id=user.pk if user else None, user=user)
            logger.info(f"User {user.username if user else '?'} logged in")
        return response


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Blacklist-free logout: record the event and let the client drop its tokens"""
    refresh = request.data.get('refresh')
    if refresh:
        try:
            RefreshToken(refresh)
        except TokenError:
            return Response({'error': 'Invalid refresh token'}, status=status.HTTP_400_BAD_REQUEST)
    log_activity(request, ActivityLog.ACTION_LOGOUT, 'auth', resource_id=request.user.pk)
    return Response({'message': 'Logged out'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with the permission names granted to their role"""
    data = UserSerializer(request.user).data
    data['permissions'] = get_user_permissions(request.user.role)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_permissions(request):
    user = request.user
    return Response({
        'permissions': get_user_permissions(user.role),
        'role': user.role,
        'user': {
            'id': user.id,
            'name': user.display_name,
            'email': user.email,
        },
    })


# User administration (super admin only)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('-created_at')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)

    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        log_activity(request, ActivityLog.ACTION_CREATE, 'users', resource_id=user.id,
                     metadata={'username': user.username, 'role': user.role})
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserUpdateSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            changes = {k: v for k, v in serializer.validated_data.items() if k != 'password'}
            log_activity(request, ActivityLog.ACTION_UPDATE, 'users', resource_id=user.id, metadata={'changes': changes})
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        username = user.username
        user.delete()
        log_activity(request, ActivityLog.ACTION_DELETE, 'users', resource_id=pk, metadata={'username': username})
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def user_toggle_active(request, pk):
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'error': 'You cannot deactivate your own account'}, status=status.HTTP_400_BAD_REQUEST)
    user.is_active = not user.is_active
    user.save(update_fields=['is_active', 'updated_at'])
    log_activity(request, ActivityLog.ACTION_UPDATE, 'users', resource_id=user.id,
                 metadata={'is_active': user.is_active})
    return Response(UserSerializer(user).data)


# Permissions
@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('admin.permissions')])
def permission_list(request):
    """All permissions, grouped by category"""
    permissions = Permission.objects.all()
    grouped = {}
    for permission in permissions:
        grouped.setdefault(permission.category, []).append(PermissionSerializer(permission).data)
    return Response({
        'permissions': PermissionSerializer(permissions, many=True).data,
        'grouped': grouped,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_permission('admin.permissions')])
def role_permission_list(request):
    """Grant matrix per role, or upsert a single (role, permission) grant"""
    if request.method == 'GET':
        matrix = {role: get_user_permissions(role) for role in VALID_ROLES}
        rows = RolePermission.objects.select_related('permission').order_by('role', 'permission__name')
        return Response({
            'roles': matrix,
            'rolePermissions': RolePermissionSerializer(rows, many=True).data,
        })

    serializer = RoleGrantSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    role = data['role']
    permission_name = data.get('permission') or data.get('permissionName')
    granted = data['granted'] is not False
    if role not in EDITABLE_ROLES:
        return Response({'error': f'Invalid role. Must be one of: {", ".join(EDITABLE_ROLES)}'},
                        status=status.HTTP_400_BAD_REQUEST)
    permission = Permission.objects.filter(name=permission_name).first()
    if permission is None:
        return Response({'error': 'Permission not found'}, status=status.HTTP_404_NOT_FOUND)

    grant, _ = RolePermission.objects.update_or_create(
        role=role, permission=permission, defaults={'granted': granted}
    )
    log_activity(request, ActivityLog.ACTION_UPDATE, 'permissions', resource_id=grant.id,
                 metadata={'role': role, 'permission': permission.name, 'granted': grant.granted})
    return Response(RolePermissionSerializer(grant).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def role_permission_replace(request, role):
    """Replace every grant of ``role`` with the submitted permission names"""
    role = role.upper()
    if role not in EDITABLE_ROLES:
        return Response({'error': f'Invalid role. Must be one of: {", ".join(EDITABLE_ROLES)}'},
                        status=status.HTTP_400_BAD_REQUEST)
    permission_names = request.data.get('permissions')
    if not isinstance(permission_names, list):
        return Response({'error': 'permissions must be a list of permission names'},
                        status=status.HTTP_400_BAD_REQUEST)
    try:
        granted = replace_role_permissions(role, permission_names)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    log_activity(request, ActivityLog.ACTION_UPDATE, 'permissions', resource_id=role,
                 metadata={'role': role, 'permissions': granted})
    return Response({'role': role, 'permissions': granted})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def seed_permissions_view(request):
    result = seed_permissions()
    return Response(result, status=status.HTTP_201_CREATED)


# Activity logs
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def activity_log_list(request):
    """List activity logs with filtering and limit/offset paging"""
    queryset = ActivityLog.objects.all()

    user_id = parse_id(request.query_params.get('userId') or request.query_params.get('user'), 'userId')
    if user_id:
        queryset = queryset.filter(user_id=user_id)
    action = request.query_params.get('action')
    if action:
        queryset = queryset.filter(action=action)
    resource = request.query_params.get('resource')
    if resource:
        queryset = queryset.filter(resource=resource)

    start, end = date_range_bounds(
        parse_date(request.query_params.get('startDate')),
        parse_date(request.query_params.get('endDate')),
    )
    if start:
        queryset = queryset.filter(created_at__gte=start)
    if end:
        queryset = queryset.filter(created_at__lte=end)

    limit = parse_int(request.query_params.get('limit'), 50, minimum=1, maximum=500)
    offset = parse_int(request.query_params.get('offset'), 0, minimum=0)
    total = queryset.count()
    logs = queryset.order_by('-created_at')[offset:offset + limit]
    return Response({
        'logs': ActivityLogSerializer(logs, many=True).data,
        'total': total,
        'limit': limit,
        'offset': offset,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def activity_log_stats(request):
    start, end = date_range_bounds(
        parse_date(request.query_params.get('startDate')),
        parse_date(request.query_params.get('endDate')),
    )
    return Response(get_activity_stats(start, end))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def activity_log_track(request):
    """Record a page view reported by the client"""
    path = request.data.get('path')
    if not path:
        return Response({'error': 'path is required'}, status=status.HTTP_400_BAD_REQUEST)
    entry = log_activity(
        request,
        ActivityLog.ACTION_PAGE_VIEW,
        get_resource_from_path(path),
        metadata=request.data.get('metadata') or {},
        path=path,
    )
    return Response({'success': entry is not None}, status=status.HTTP_201_CREATED)
