"""
Stock mutations.

Every change to ProductVariant.stock goes through this module so that the
stock level and its StockMovement/StockAdjustment audit rows are written in
the same database transaction, with the variant row locked for the
read-modify-write.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apparel.catalog.models import ProductVariant
from apparel.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from apparel.pos.models import Transaction, TransactionItem
from .models import StockMovement, StockAdjustment

logger = logging.getLogger(__name__)

MANUAL_ADJUSTMENT_REFERENCE = 'MANUAL_ADJUSTMENT'
INITIAL_STOCK_REFERENCE = 'INITIAL'


def record_movement(variant, movement_type, quantity, reason=None, reference=None, user=None):
    """Append a row to the stock ledger (caller owns the transaction)"""
    return StockMovement.objects.create(
        variant=variant,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        reference=reference,
        created_by=user if user is not None and user.is_authenticated else None,
    )


def lock_variant(variant_id):
    """Fetch a variant with a row lock; must run inside transaction.atomic()"""
    try:
        return ProductVariant.objects.select_for_update().select_related('product', 'size', 'color').get(pk=variant_id)
    except (ProductVariant.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Variant not found')


def change_stock(variant, delta, movement_type, reason, reference, user=None):
    """
    Apply ``delta`` to a locked variant and log the movement.

    The movement quantity is always positive; direction comes from the type.
    """
    new_stock = variant.stock + delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {variant}: available {variant.stock}, requested {abs(delta)}"
        )
    variant.stock = new_stock
    variant.save(update_fields=['stock', 'updated_at'])
    return record_movement(variant, movement_type, abs(delta), reason=reason, reference=reference, user=user)


def adjust_stock_to(variant_id, new_stock, reason, user=None):
    """
    Set a variant's stock to an absolute level.

    Returns a dict with previous_stock, new_stock, difference and the movement.
    """
    try:
        new_stock = int(new_stock)
    except (TypeError, ValueError):
        raise ValidationError('New stock must be a whole number')
    if new_stock < 0:
        raise ValidationError('Stock cannot be negative')
    if not reason or not str(reason).strip():
        raise ValidationError('Reason is required')

    with transaction.atomic():
        variant = lock_variant(variant_id)
        previous_stock = variant.stock
        difference = new_stock - previous_stock
        if difference == 0:
            raise ValidationError('Stock is unchanged')

        movement_type = StockMovement.TYPE_IN if difference > 0 else StockMovement.TYPE_OUT
        movement = change_stock(
            variant, difference, movement_type, str(reason).strip(), MANUAL_ADJUSTMENT_REFERENCE, user=user
        )

    logger.info(f"Stock for variant {variant.id} set {previous_stock} -> {new_stock} ({reason})")
    return {
        'variant': variant,
        'previous_stock': previous_stock,
        'new_stock': new_stock,
        'difference': difference,
        'movement': movement,
    }


def apply_adjustment(variant_id, adjustment_type, quantity, reason, notes='', user=None):
    """
    Increase or decrease a variant's stock and record a StockAdjustment with the
    before/after levels.

    PRODUCTION increases additionally book a completed PURCHASE document at the
    variant's cost price, and the IN movement references that document.
    """
    valid_types = [choice for choice, _ in StockAdjustment.ADJUSTMENT_TYPE_CHOICES]
    if adjustment_type not in valid_types:
        raise ValidationError(f"Invalid adjustment type. Must be one of: {', '.join(valid_types)}")
    valid_reasons = [choice for choice, _ in StockAdjustment.REASON_CHOICES]
    if reason not in valid_reasons:
        raise ValidationError(f"Invalid reason. Must be one of: {', '.join(valid_reasons)}")
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be a whole number')
    if quantity <= 0:
        raise ValidationError('Quantity must be greater than 0')

    with transaction.atomic():
        variant = lock_variant(variant_id)
        stock_before = variant.stock
        delta = quantity if adjustment_type == StockAdjustment.TYPE_INCREASE else -quantity
        stock_after = stock_before + delta
        if stock_after < 0:
            raise InsufficientStockError(
                f"Cannot decrease stock by {quantity}: only {stock_before} available"
            )

        variant.stock = stock_after
        variant.save(update_fields=['stock', 'updated_at'])

        adjustment = StockAdjustment.objects.create(
            variant=variant,
            adjustment_type=adjustment_type,
            quantity=quantity,
            stock_before=stock_before,
            stock_after=stock_after,
            reason=reason,
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )

        production_order = None
        if adjustment_type == StockAdjustment.TYPE_INCREASE and reason == StockAdjustment.REASON_PRODUCTION:
            unit_price = variant.effective_cost_price or Decimal('0.00')
            total = unit_price * quantity
            production_order = Transaction.objects.create(
                type=Transaction.TYPE_PURCHASE,
                invoice_number=Transaction.next_invoice_number('PROD-ADJ'),
                subtotal=total,
                total_amount=total,
                status=Transaction.STATUS_COMPLETED,
                completed_at=timezone.now(),
                notes=f"Production from stock adjustment{': ' + notes if notes else ''}",
                user=adjustment.created_by,
            )
            TransactionItem.objects.create(
                transaction=production_order,
                product=variant.product,
                variant=variant,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total,
            )
            movement = record_movement(
                variant, StockMovement.TYPE_IN, quantity,
                reason=f"Production: {notes}" if notes else 'Production',
                reference=production_order.invoice_number,
                user=user,
            )
        else:
            movement = record_movement(
                variant, StockMovement.TYPE_ADJUSTMENT, quantity,
                reason=f"{adjustment_type} - {reason}",
                reference=f"ADJ-{adjustment.id}",
                user=user,
            )

    logger.info(
        f"Stock adjustment {adjustment.id}: variant {variant.id} {adjustment_type} {quantity} "
        f"({stock_before} -> {stock_after}, {reason})"
    )
    return {
        'adjustment': adjustment,
        'movement': movement,
        'production_order': production_order,
    }
