import logging

from django.http import HttpResponse
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apparel.core.models import ActivityLog
from apparel.core.permissions import require_permission
from apparel.core.utils import log_activity
from apparel.pos.services import filter_transactions
from .services import (
    analytics_window, build_analytics, build_dashboard,
    export_transactions_xlsx, export_transactions_pdf,
)

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('dashboard.analytics', 'reports.view')])
def analytics(request):
    """Sales, profit and production analytics for a period (default 30 days)"""
    start_date, end_date = analytics_window(request.query_params)
    return Response(build_analytics(start_date, end_date))


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('dashboard.view')])
def dashboard(request):
    """Today's sales with catalog and stock totals"""
    return Response(build_dashboard(timezone.localdate()))


def _export_filename(extension):
    return f"transactions_{timezone.localtime().strftime('%Y%m%d_%H%M%S')}.{extension}"


def _log_export(request, export_format, count):
    log_activity(request, ActivityLog.ACTION_EXPORT, 'reports', metadata={
        'report': 'transactions',
        'format': export_format,
        'rowCount': count,
        'period': request.query_params.get('period'),
        'type': request.query_params.get('type'),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('reports.export')])
def export_transactions_excel(request):
    """Transactions in the window (period/startDate/endDate/type) as an .xlsx download"""
    transactions = list(filter_transactions(request.query_params))
    content = export_transactions_xlsx(transactions)
    _log_export(request, 'xlsx', len(transactions))

    response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{_export_filename("xlsx")}"'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('reports.export')])
def export_transactions_report_pdf(request):
    """Transactions in the window as a PDF table"""
    transactions = list(filter_transactions(request.query_params))
    content = export_transactions_pdf(transactions)
    _log_export(request, 'pdf', len(transactions))

    response = HttpResponse(content, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{_export_filename("pdf")}"'
    return response
