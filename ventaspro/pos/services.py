"""
Sale recording and cancellation.

A sale is written in one transaction: the sale row, its items, the stock
decrements (rows locked with select_for_update) and the promotion usage.
The cash register entry goes in a savepoint so a failure there is logged
without losing the sale.
"""
import logging
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from ventaspro.core.app_settings import get_tax_rate
from ventaspro.inventory.models import Inventory
from ventaspro.pricing.models import Promotion, PromotionUsage
from ventaspro.pricing.services import (
    cart_lines_from_products, calculate_promotion_discount, find_best_promotion, is_promotion_valid
)
from .models import Sale, SaleItem, CashRegister

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
HUNDRED = Decimal('100')

# Allowed status changes after a sale is recorded
STATUS_TRANSITIONS = {
    'pending': ('completed', 'cancelled'),
    'completed': ('cancelled',),
    'cancelled': (),
}


class SaleError(Exception):
    """A sale cannot be recorded or changed"""


class EmptyCartError(SaleError):
    def __init__(self):
        super().__init__('El carrito está vacío')


class InsufficientStockError(SaleError):
    def __init__(self, product, requested, available):
        super().__init__('No hay suficiente stock disponible')
        self.product = product
        self.requested = requested
        self.available = available


class InvalidPromotionError(SaleError):
    def __init__(self, promotion):
        super().__init__('La promoción no es válida para esta venta')
        self.promotion = promotion


def _quantize(amount):
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_totals(lines, discount_percent=Decimal('0'), tax_percent=Decimal('0'), promotion_discount=Decimal('0')):
    """
    Sale amounts from cart lines.

    The percentage discount and any promotion discount are added together
    (never more than the subtotal); tax applies to what remains.
    """
    subtotal = _quantize(sum((line.total_price for line in lines), Decimal('0')))
    discount = _quantize(subtotal * Decimal(discount_percent) / HUNDRED) + _quantize(promotion_discount)
    discount = min(discount, subtotal)
    tax = _quantize((subtotal - discount) * Decimal(tax_percent) / HUNDRED)
    total = _quantize(subtotal - discount + tax)
    return {'subtotal': subtotal, 'discount': discount, 'tax': tax, 'total_amount': total}


def _record_cash_entry(sale, entry_type, amount, description, user=None):
    """Cash register movement for a sale; failures are logged, never raised"""
    try:
        with transaction.atomic():
            return CashRegister.objects.create(
                type=entry_type,
                amount=amount,
                description=description,
                reference_id=str(sale.pk),
                created_by=user if user and user.is_authenticated else None,
            )
    except DatabaseError as e:
        logger.error(f"Error adding cash register entry for sale {sale.pk}: {str(e)}")
        return None


def _active_promotions(now):
    return Promotion.objects.prefetch_related('products', 'categories').filter(
        is_active=True, start_date__lte=now, end_date__gte=now
    )


def record_sale(items, customer=None, discount_percent=Decimal('0'), tax_percent=None,
                payment_method='cash', status='completed', promotion=None, auto_promotion=False,
                user=None):
    """
    Record a sale.

    Args:
        items: list of {'product': Product, 'quantity': int, 'unit_price': Decimal or None}
        customer: optional Customer
        discount_percent: discount over the subtotal, in percent
        tax_percent: tax in percent; defaults to the taxRate setting
        promotion: Promotion to apply, or None
        auto_promotion: pick the best valid promotion when none is given

    Raises:
        EmptyCartError, InsufficientStockError, InvalidPromotionError
    """
    if not items:
        raise EmptyCartError()
    if tax_percent is None:
        tax_percent = get_tax_rate()

    lines = cart_lines_from_products(items)
    now = timezone.now()

    requested = OrderedDict()
    products = {}
    for item in items:
        product = item['product']
        products[product.pk] = product
        requested[product.pk] = requested.get(product.pk, 0) + int(item['quantity'])

    with transaction.atomic():
        inventories = {
            inventory.product_id: inventory
            for inventory in Inventory.objects.select_for_update().filter(product_id__in=requested.keys())
        }
        for product_id, quantity in requested.items():
            inventory = inventories.get(product_id)
            available = inventory.quantity if inventory else 0
            if quantity > available:
                raise InsufficientStockError(products[product_id], quantity, available)

        gross = sum((line.total_price for line in lines), Decimal('0'))
        promotion_result = None
        if promotion is not None:
            if not is_promotion_valid(promotion, gross, now):
                raise InvalidPromotionError(promotion)
            promotion_result = calculate_promotion_discount(promotion, lines)
        elif auto_promotion:
            promotion_result = find_best_promotion(_active_promotions(now), lines, gross, now)
            promotion = promotion_result.promotion if promotion_result else None

        promotion_discount = promotion_result.discount_amount if promotion_result else Decimal('0')
        totals = calculate_totals(lines, discount_percent, tax_percent, promotion_discount)

        sale = Sale.objects.create(
            customer=customer,
            status=status,
            payment_method=payment_method,
            promotion=promotion,
            created_by=user if user and user.is_authenticated else None,
            **totals,
        )
        SaleItem.objects.bulk_create([
            SaleItem(
                sale=sale,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=_quantize(line.unit_price),
                total_price=_quantize(line.total_price),
            )
            for line in lines
        ])

        for product_id, quantity in requested.items():
            inventory = inventories[product_id]
            inventory.quantity -= quantity
            inventory.save(update_fields=['quantity', 'updated_at'])

        if promotion is not None and promotion_discount > 0:
            PromotionUsage.objects.create(promotion=promotion, sale=sale, discount_amount=promotion_discount)
            Promotion.objects.filter(pk=promotion.pk).update(current_uses=F('current_uses') + 1)

        if sale.status == 'completed':
            _record_cash_entry(sale, 'sale', sale.total_amount, f"Venta #{sale.reference}", user)

    logger.info(
        f"Sale {sale.pk} recorded: {len(lines)} items, total {sale.total_amount}"
        + (f", promotion {promotion.pk}" if promotion is not None else "")
    )
    return sale


def cancel_sale(sale_id, user=None):
    """
    Cancel a sale and put its items back in stock.

    Cancelling twice is rejected so stock is restored only once. A completed
    sale also gets a withdrawal reversing its cash entry.
    """
    with transaction.atomic():
        sale = Sale.objects.select_for_update().get(pk=sale_id)
        if sale.status == 'cancelled':
            raise SaleError('La venta ya está cancelada')
        was_completed = sale.status == 'completed'

        for item in sale.items.all():
            inventory, _ = Inventory.objects.select_for_update().get_or_create(
                product_id=item.product_id, defaults={'quantity': 0}
            )
            inventory.quantity += item.quantity
            inventory.save(update_fields=['quantity', 'updated_at'])

        sale.status = 'cancelled'
        sale.cancelled_at = timezone.now()
        sale.save(update_fields=['status', 'cancelled_at', 'updated_at'])

        if was_completed:
            _record_cash_entry(sale, 'withdrawal', sale.total_amount, f"Anulación venta #{sale.reference}", user)

    logger.info(f"Sale {sale.pk} cancelled, stock restored")
    return sale


def change_sale_status(sale_id, new_status, user=None):
    """Move a sale to a new status (pending -> completed/cancelled, completed -> cancelled)"""
    if new_status == 'cancelled':
        return cancel_sale(sale_id, user)

    with transaction.atomic():
        sale = Sale.objects.select_for_update().get(pk=sale_id)
        if new_status == sale.status:
            return sale
        if new_status not in STATUS_TRANSITIONS.get(sale.status, ()):
            raise SaleError('Transición de estado no válida')

        sale.status = new_status
        sale.save(update_fields=['status', 'updated_at'])
        if new_status == 'completed':
            _record_cash_entry(sale, 'sale', sale.total_amount, f"Venta #{sale.reference}", user)

    logger.info(f"Sale {sale.pk} status changed to {new_status}")
    return sale
