from django.contrib import admin
from .models import Transaction, TransactionItem


class TransactionItemInline(admin.TabularInline):
    model = TransactionItem
    extra = 0
    readonly_fields = ['product', 'variant', 'quantity', 'unit_price', 'total_price']


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'type', 'status', 'total_amount', 'customer', 'supplier', 'user', 'transaction_date']
    list_filter = ['type', 'status', 'transaction_date']
    search_fields = ['invoice_number', 'customer__name', 'supplier__name', 'notes']
    ordering = ['-transaction_date']
    readonly_fields = ['created_at', 'updated_at', 'completed_at']
    inlines = [TransactionItemInline]
