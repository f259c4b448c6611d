"""Utility functions for activity logging and request parsing"""
import logging
from datetime import datetime, time, timedelta

from django.db.models import Count
from django.utils import timezone

from .exceptions import ValidationError
from .models import ActivityLog

logger = logging.getLogger(__name__)

RESOURCE_PATHS = {
    'dashboard': 'dashboard',
    'pos': 'pos',
    'sales': 'sales',
    'products': 'products',
    'inventory': 'inventory',
    'purchases': 'purchases',
    'customers': 'customers',
    'suppliers': 'suppliers',
    'reports': 'reports',
    'users': 'users',
    'permissions': 'permissions',
    'activity-logs': 'activity-logs',
}


def get_client_ip(request):
    """Extract client IP address from request, honouring proxy headers"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip() or None
    for header in ('HTTP_X_REAL_IP', 'HTTP_CF_CONNECTING_IP', 'REMOTE_ADDR'):
        ip = request.META.get(header)
        if ip:
            return ip.strip()
    return None


def get_resource_from_path(path):
    """Map a page path such as /products/12 to its resource name"""
    segments = [s for s in (path or '').split('/') if s]
    if not segments:
        return 'dashboard'
    return RESOURCE_PATHS.get(segments[0], segments[0])


def log_activity(request=None, action=None, resource=None, resource_id=None,
                 metadata=None, user=None, path=None):
    """
    Create an activity log entry

    Args:
        request: Django/DRF request (for user, path, IP and user agent)
        action: One of ActivityLog.ACTION_CHOICES
        resource: Resource name (products, sales, ...)
        resource_id: ID of the affected object
        metadata: Extra JSON-serialisable details
        user: Optional user override (defaults to request.user)
        path: Optional path override (defaults to request.path)

    Never raises; failures are logged and None is returned.
    """
    try:
        log_user = user
        if log_user is None and request is not None and hasattr(request, 'user'):
            log_user = request.user
        if log_user is not None and not log_user.is_authenticated:
            log_user = None

        if not action or not resource:
            logger.warning(f"Activity log skipped: missing required fields (action={action}, resource={resource})")
            return None

        meta = getattr(request, 'META', {}) if request is not None else {}
        return ActivityLog.objects.create(
            user=log_user,
            user_email=log_user.email if log_user else None,
            user_name=log_user.display_name if log_user else None,
            user_role=log_user.role if log_user else None,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            path=path or (request.path if request is not None else None),
            method=request.method if request is not None else None,
            ip_address=get_client_ip(request) if request is not None else None,
            user_agent=meta.get('HTTP_USER_AGENT'),
            metadata=metadata or {},
        )
    except Exception as e:
        # Activity logging must not break the operation being logged
        logger.error(f"Failed to create activity log: {str(e)}")
        return None


def get_activity_stats(date_from=None, date_to=None):
    """Counts by action, by resource, and the ten most active users"""
    queryset = ActivityLog.objects.all()
    if date_from:
        queryset = queryset.filter(created_at__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__lte=date_to)

    by_action = {
        row['action']: row['count']
        for row in queryset.values('action').annotate(count=Count('id')).order_by()
    }
    by_resource = {
        row['resource']: row['count']
        for row in queryset.values('resource').annotate(count=Count('id')).order_by()
    }
    top_users = [
        {
            'user_id': row['user'],
            'user_name': row['user_name'],
            'user_email': row['user_email'],
            'count': row['count'],
        }
        for row in queryset.exclude(user__isnull=True)
        .values('user', 'user_name', 'user_email')
        .annotate(count=Count('id'))
        .order_by('-count')[:10]
    ]
    return {
        'total': queryset.count(),
        'by_action': by_action,
        'by_resource': by_resource,
        'top_users': top_users,
    }


def parse_date(value):
    """Parse YYYY-MM-DD (or a full ISO datetime); None for empty/invalid input"""
    if not value:
        return None
    for fmt in ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S.%fZ', '%Y-%m-%dT%H:%M:%SZ'):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def date_range_bounds(start_date, end_date):
    """Aware datetimes covering [start_date 00:00, end_date 23:59:59.999999]"""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(start_date, time.min), tz) if start_date else None
    end = timezone.make_aware(datetime.combine(end_date, time.max), tz) if end_date else None
    return start, end


def resolve_period(query_params, default_days=30):
    """
    Resolve the reporting window from startDate/endDate or period (days).

    Returns (start_datetime, end_datetime).
    """
    start_date = parse_date(query_params.get('startDate') or query_params.get('date_from'))
    end_date = parse_date(query_params.get('endDate') or query_params.get('date_to'))
    if start_date and end_date:
        return date_range_bounds(start_date, end_date)

    days = parse_int(query_params.get('period'), default_days, minimum=1)
    now = timezone.now()
    return now - timedelta(days=days), now


def parse_int(value, default, minimum=None, maximum=None):
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None and result < minimum:
        result = minimum
    if maximum is not None and result > maximum:
        result = maximum
    return result


def parse_id(value, name):
    """Optional integer id from a query parameter; None when absent, 400 when malformed"""
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def paginate(queryset, query_params, default_limit=50, max_limit=500):
    """Slice a queryset by page/limit; returns (items, pagination dict)"""
    limit = parse_int(query_params.get('limit'), default_limit, minimum=1, maximum=max_limit)
    page = parse_int(query_params.get('page'), 1, minimum=1)
    total = queryset.count()
    total_pages = (total + limit - 1) // limit if total else 0
    offset = (page - 1) * limit
    items = queryset[offset:offset + limit]
    return items, {
        'currentPage': page,
        'totalPages': total_pages,
        'totalRecords': total,
        'limit': limit,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }


def generate_reference(prefix):
    """Document number such as INV-1718000000000 (millisecond timestamp)"""
    return f"{prefix}-{int(timezone.now().timestamp() * 1000)}"
