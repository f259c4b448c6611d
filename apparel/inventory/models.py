from django.db import models
from apparel.catalog.models import ProductVariant


class StockMovement(models.Model):
    """One line of the stock ledger: every change to a variant's stock"""
    TYPE_IN = 'IN'
    TYPE_OUT = 'OUT'
    TYPE_ADJUSTMENT = 'ADJUSTMENT'

    TYPE_CHOICES = [
        (TYPE_IN, 'Stock In'),
        (TYPE_OUT, 'Stock Out'),
        (TYPE_ADJUSTMENT, 'Adjustment'),
    ]

    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, related_name='stock_movements')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    quantity = models.IntegerField()
    reason = models.CharField(max_length=255, blank=True, null=True)
    reference = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.type} {self.quantity} x {self.variant_id} ({self.reference or '-'})"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at']


class StockAdjustment(models.Model):
    """Manual stock increase/decrease with the before/after levels it produced"""
    TYPE_INCREASE = 'INCREASE'
    TYPE_DECREASE = 'DECREASE'

    ADJUSTMENT_TYPE_CHOICES = [
        (TYPE_INCREASE, 'Increase'),
        (TYPE_DECREASE, 'Decrease'),
    ]

    REASON_PRODUCTION = 'PRODUCTION'

    REASON_CHOICES = [
        (REASON_PRODUCTION, 'Production'),
        ('DAMAGED', 'Damaged'),
        ('LOST', 'Lost'),
        ('EXPIRED', 'Expired'),
        ('RETURN', 'Return'),
        ('CORRECTION', 'Correction'),
        ('OTHER', 'Other'),
    ]

    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, related_name='adjustments')
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPE_CHOICES)
    quantity = models.IntegerField()
    stock_before = models.IntegerField()
    stock_after = models.IntegerField()
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='stock_adjustments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.adjustment_type} {self.quantity} ({self.stock_before} -> {self.stock_after})"

    class Meta:
        db_table = 'stock_adjustments'
        ordering = ['-created_at']
