from django.db import models
from django.utils import timezone
from decimal import Decimal
from apparel.core.models import User
from apparel.core.utils import generate_reference
from apparel.catalog.models import Product, ProductVariant
from apparel.parties.models import Customer, Supplier


class Transaction(models.Model):
    """Sale, purchase/production order, return or adjustment document"""
    TYPE_SALE = 'SALE'
    TYPE_PURCHASE = 'PURCHASE'
    TYPE_RETURN_SALE = 'RETURN_SALE'
    TYPE_RETURN_PURCHASE = 'RETURN_PURCHASE'
    TYPE_ADJUSTMENT = 'ADJUSTMENT'

    TYPE_CHOICES = [
        (TYPE_SALE, 'Sale'),
        (TYPE_PURCHASE, 'Purchase'),
        (TYPE_RETURN_SALE, 'Sale Return'),
        (TYPE_RETURN_PURCHASE, 'Purchase Return'),
        (TYPE_ADJUSTMENT, 'Adjustment'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    invoice_number = models.CharField(max_length=100, unique=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED, db_index=True)
    notes = models.TextField(blank=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @classmethod
    def next_invoice_number(cls, prefix):
        """Timestamped document number, suffixed when the millisecond is taken"""
        number = generate_reference(prefix)
        suffix = 1
        while cls.objects.filter(invoice_number=number).exists():
            number = f"{generate_reference(prefix)}-{suffix}"
            suffix += 1
        return number

    def get_item_count(self):
        return sum(item.quantity for item in self.items.all())

    def get_profit(self):
        """Gross profit of a sale; other document types report 0"""
        if self.type != self.TYPE_SALE:
            return Decimal('0.00')
        profit = Decimal('0.00')
        for item in self.items.all():
            cost = item.variant.effective_cost_price if item.variant else item.product.cost_price
            profit += (item.unit_price - cost) * item.quantity
        return profit

    class Meta:
        db_table = 'transactions'
        ordering = ['-transaction_date']


class TransactionItem(models.Model):
    transaction = models.ForeignKey(Transaction, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='transaction_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='transaction_items')
    quantity = models.IntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=14, decimal_places=2)

    def __str__(self):
        return f"{self.transaction.invoice_number}: {self.quantity} x {self.product.name}"

    def get_line_total(self):
        return self.quantity * self.unit_price

    class Meta:
        db_table = 'transaction_items'
