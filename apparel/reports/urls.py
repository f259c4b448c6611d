from django.urls import path
from .views import analytics, dashboard, export_transactions_excel, export_transactions_report_pdf

urlpatterns = [
    path('analytics/', analytics, name='analytics'),
    path('dashboard/', dashboard, name='dashboard'),
    path('reports/transactions/export.xlsx', export_transactions_excel, name='transactions-export-xlsx'),
    path('reports/transactions/export.pdf', export_transactions_report_pdf, name='transactions-export-pdf'),
]
