"""
Stock adjustments.

Adjustments lock the inventory row, apply the movement and, for removals of
products with a cost, book the loss as a cash register expense.
"""
import logging
from decimal import Decimal

from django.db import transaction

from .models import Inventory

logger = logging.getLogger(__name__)


def apply_adjustment(quantity, adjustment_type, amount):
    """New quantity after an add/remove/set movement (never negative)"""
    if adjustment_type == 'add':
        return quantity + amount
    if adjustment_type == 'remove':
        return max(0, quantity - amount)
    if adjustment_type == 'set':
        return amount
    raise ValueError(f'Unknown adjustment type: {adjustment_type}')


def adjust_stock(inventory_id, adjustment_type, amount, reason='', user=None):
    """
    Apply a stock movement to an inventory row.

    Returns (inventory, previous_quantity, expense) where expense is the
    CashRegister entry booked for a removal, or None.
    """
    from ventaspro.pos.models import CashRegister

    with transaction.atomic():
        inventory = Inventory.objects.select_for_update().select_related('product').get(pk=inventory_id)
        previous = inventory.quantity
        inventory.quantity = apply_adjustment(previous, adjustment_type, amount)
        inventory.save(update_fields=['quantity', 'updated_at'])

        expense = None
        removed = previous - inventory.quantity
        cost = inventory.product.cost or Decimal('0')
        if adjustment_type == 'remove' and removed > 0 and cost > 0:
            description = f"Ajuste de inventario: {inventory.product.name} (-{removed}) - {reason or ''}"
            expense = CashRegister.objects.create(
                type='expense',
                amount=(cost * removed).quantize(Decimal('0.01')),
                description=description,
                reference_id=str(inventory.id),
                created_by=user if user and user.is_authenticated else None,
            )

    logger.info(
        f"Stock adjusted for {inventory.product.sku}: {adjustment_type} {amount} "
        f"({previous} -> {inventory.quantity})"
    )
    return inventory, previous, expense
