"""
Promotion rules: validity, discount calculation and data validation.

Cart contents are passed as ``CartLine`` tuples so the same rules serve the
sale recording flow and the ``promotions/applicable/`` preview.
"""
import logging
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, NamedTuple, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')


class CartLine(NamedTuple):
    product_id: int
    category_id: Optional[int]
    quantity: int
    unit_price: Decimal

    @property
    def total_price(self):
        return self.unit_price * self.quantity


class PromotionResult(NamedTuple):
    promotion: object
    discount_amount: Decimal
    applicable_items: List[CartLine]
    description: str


def quantize(amount):
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_number(value):
    """Decimal without trailing zeros: 10.00 -> '10', 12.50 -> '12.5'"""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal('1')))
    return format(value.normalize(), 'f')


def format_currency(amount, currency='COP'):
    """1234.5 -> '1.234,50 COP'"""
    text = f"{quantize(amount):,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"{text} {currency}"


def cart_lines_from_products(items):
    """
    Build CartLines from dicts of {'product': Product, 'quantity': n, 'unit_price': Decimal|None}.
    """
    lines = []
    for item in items:
        product = item['product']
        unit_price = item.get('unit_price')
        if unit_price is None:
            unit_price = product.price
        lines.append(CartLine(
            product_id=product.pk,
            category_id=product.category_id,
            quantity=int(item['quantity']),
            unit_price=Decimal(unit_price),
        ))
    return lines


def _conditions(promotion):
    return promotion.conditions or {}


def _positive_int(value, default=1):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def is_promotion_valid(promotion, purchase_amount=ZERO, now=None):
    """Active, inside its date range, above the minimum purchase and with uses left"""
    now = now or timezone.now()
    if not promotion.is_active:
        return False
    if now < promotion.start_date or now > promotion.end_date:
        return False
    if Decimal(purchase_amount) < (promotion.min_purchase_amount or ZERO):
        return False
    if promotion.max_uses and promotion.current_uses >= promotion.max_uses:
        return False
    return True


def promotion_status(promotion, now=None):
    """inactive, scheduled, expired, exhausted or active"""
    now = now or timezone.now()
    if not promotion.is_active:
        return 'inactive'
    if now < promotion.start_date:
        return 'scheduled'
    if now > promotion.end_date:
        return 'expired'
    if promotion.max_uses and promotion.current_uses >= promotion.max_uses:
        return 'exhausted'
    return 'active'


def calculate_promotion_discount(promotion, items):
    """
    Discount a promotion gives on a cart.

    Items are eligible when their product is one of the promotion's products
    or their category one of its categories; a promotion without products
    or categories applies to every item. The discount never exceeds the
    eligible subtotal.
    """
    product_ids = {p.pk for p in promotion.products.all()}
    category_ids = {c.pk for c in promotion.categories.all()}
    unrestricted = not product_ids and not category_ids

    eligible = [
        item for item in items
        if unrestricted or item.product_id in product_ids or
        (item.category_id is not None and item.category_id in category_ids)
    ]
    if not eligible:
        return PromotionResult(promotion, ZERO, [], 'No hay productos elegibles para esta promoción')

    eligible_subtotal = sum((item.total_price for item in eligible), ZERO)
    value = Decimal(promotion.value)
    discount = ZERO
    applicable = []

    if promotion.type == 'percentage':
        discount = eligible_subtotal * value / Decimal('100')
        applicable = eligible
        description = f"{format_number(value)}% de descuento en productos elegibles"
    elif promotion.type == 'fixed_amount':
        discount = min(value, eligible_subtotal)
        applicable = eligible
        description = f"Descuento fijo de {format_currency(value)}"
    elif promotion.type == 'buy_x_get_y':
        buy_quantity = _positive_int(_conditions(promotion).get('buy_quantity'))
        get_quantity = _positive_int(_conditions(promotion).get('get_quantity'))
        for item in eligible:
            free_items = (item.quantity // buy_quantity) * get_quantity
            discount += min(free_items, item.quantity) * item.unit_price
            if free_items > 0:
                applicable.append(item)
        description = f"Compra {buy_quantity} y lleva {get_quantity} gratis"
    elif promotion.type == 'bundle':
        bundle_products = {int(pk) for pk in _conditions(promotion).get('bundle_products') or []}
        cart_products = {item.product_id for item in items}
        if bundle_products <= cart_products:
            discount = value
            applicable = [item for item in items if item.product_id in bundle_products]
            description = 'Descuento por paquete especial'
        else:
            description = 'Faltan productos para completar el paquete'
    else:
        description = 'Tipo de promoción no reconocido'

    discount = max(ZERO, min(discount, eligible_subtotal))
    return PromotionResult(promotion, quantize(discount), applicable, description)


def get_applicable_promotions(promotions, items, subtotal=None, now=None):
    """Valid promotions with a positive discount, best first"""
    if subtotal is None:
        subtotal = sum((item.total_price for item in items), ZERO)
    results = [
        calculate_promotion_discount(promotion, items)
        for promotion in promotions
        if is_promotion_valid(promotion, subtotal, now)
    ]
    results = [result for result in results if result.discount_amount > 0]
    return sorted(results, key=lambda result: result.discount_amount, reverse=True)


def find_best_promotion(promotions, items, subtotal=None, now=None):
    """The promotion with the largest discount, or None"""
    results = get_applicable_promotions(promotions, items, subtotal, now)
    return results[0] if results else None


def format_promotion_description(promotion):
    """Short preview text for a promotion"""
    conditions = _conditions(promotion)
    if promotion.type == 'percentage':
        return f"{format_number(promotion.value)}% de descuento"
    if promotion.type == 'fixed_amount':
        return f"{format_currency(promotion.value)} de descuento"
    if promotion.type == 'buy_x_get_y':
        buy_quantity = _positive_int(conditions.get('buy_quantity'))
        get_quantity = _positive_int(conditions.get('get_quantity'))
        return f"Compra {buy_quantity} y lleva {get_quantity} gratis"
    if promotion.type == 'bundle':
        return f"Paquete especial con {format_currency(promotion.value)} de descuento"
    return 'Promoción especial'


def _to_datetime(value):
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        result = parse_datetime(value.strip())
        if result is None:
            parsed = parse_date(value.strip())
            result = datetime.combine(parsed, time.min) if parsed else None
    else:
        result = None
    if result is not None and timezone.is_naive(result):
        result = timezone.make_aware(result)
    return result


def _to_decimal(value):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def validate_promotion_data(data):
    """Return the list of validation errors for promotion data (empty when valid)"""
    errors = []

    if not str(data.get('name') or '').strip():
        errors.append('El nombre de la promoción es requerido')

    promotion_type = data.get('type')
    if not promotion_type:
        errors.append('El tipo de promoción es requerido')

    value = _to_decimal(data.get('value'))
    if value is None or not value.is_finite() or value <= 0:
        errors.append('El valor de la promoción debe ser mayor a 0')
    elif promotion_type == 'percentage' and value > 100:
        errors.append('El porcentaje de descuento no puede ser mayor a 100%')

    start_date = _to_datetime(data.get('start_date'))
    end_date = _to_datetime(data.get('end_date'))
    if start_date is None:
        errors.append('La fecha de inicio es requerida')
    if end_date is None:
        errors.append('La fecha de fin es requerida')
    if start_date is not None and end_date is not None and start_date >= end_date:
        errors.append('La fecha de fin debe ser posterior a la fecha de inicio')

    if promotion_type == 'buy_x_get_y':
        conditions = data.get('conditions')
        if not isinstance(conditions, dict):
            conditions = {}
        buy_quantity = _to_int(conditions.get('buy_quantity'))
        get_quantity = _to_int(conditions.get('get_quantity'))
        if not buy_quantity or buy_quantity <= 0:
            errors.append('La cantidad a comprar debe ser mayor a 0')
        if not get_quantity or get_quantity <= 0:
            errors.append('La cantidad gratis debe ser mayor a 0')

    max_uses = data.get('max_uses')
    if max_uses not in (None, ''):
        parsed = _to_int(max_uses)
        if parsed is None or parsed <= 0:
            errors.append('El límite de usos debe ser mayor a 0')

    return errors
