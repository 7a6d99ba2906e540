"""
Test suite for the pricing module
Tests: Promotion validity, discount rules per type, data validation, promotion endpoints
"""
from datetime import timedelta
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.pricing.models import Promotion
from ventaspro.pricing.services import (
    CartLine, calculate_promotion_discount, is_promotion_valid, promotion_status,
    find_best_promotion, get_applicable_promotions, validate_promotion_data,
    format_currency, format_number, format_promotion_description
)


def line(product, quantity, unit_price=None):
    return CartLine(
        product_id=product.id,
        category_id=product.category_id,
        quantity=quantity,
        unit_price=unit_price if unit_price is not None else product.price,
    )


class PromotionRulesTests(TestCase):
    """Test validity checks and discount calculations"""

    def setUp(self):
        self.drinks = TestDataFactory.create_category(name='Bebidas')
        self.soda = TestDataFactory.create_product(name='Gaseosa', category=self.drinks, price=Decimal('3000.00'))
        self.bread = TestDataFactory.create_product(name='Pan', price=Decimal('1500.00'))

    def test_valid_promotion(self):
        promotion = TestDataFactory.create_promotion()
        self.assertTrue(is_promotion_valid(promotion, Decimal('100')))

    def test_invalid_when_inactive_or_out_of_range(self):
        now = timezone.now()
        inactive = TestDataFactory.create_promotion(is_active=False)
        future = TestDataFactory.create_promotion(start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))
        past = TestDataFactory.create_promotion(start_date=now - timedelta(days=5), end_date=now - timedelta(days=1))
        for promotion in (inactive, future, past):
            self.assertFalse(is_promotion_valid(promotion, Decimal('100'), now))
        self.assertEqual(promotion_status(inactive, now), 'inactive')
        self.assertEqual(promotion_status(future, now), 'scheduled')
        self.assertEqual(promotion_status(past, now), 'expired')

    def test_min_purchase_and_max_uses(self):
        minimum = TestDataFactory.create_promotion(min_purchase_amount=Decimal('50000'))
        self.assertFalse(is_promotion_valid(minimum, Decimal('49999.99')))
        self.assertTrue(is_promotion_valid(minimum, Decimal('50000')))
        exhausted = TestDataFactory.create_promotion(max_uses=3, current_uses=3)
        self.assertFalse(is_promotion_valid(exhausted, Decimal('100')))
        self.assertEqual(promotion_status(exhausted), 'exhausted')

    def test_percentage_on_category(self):
        """Test only items in the promotion's categories are discounted"""
        promotion = TestDataFactory.create_promotion(type='percentage', value=Decimal('10'), categories=[self.drinks])
        result = calculate_promotion_discount(promotion, [line(self.soda, 2), line(self.bread, 4)])
        self.assertEqual(result.discount_amount, Decimal('600.00'))
        self.assertEqual([item.product_id for item in result.applicable_items], [self.soda.id])
        self.assertEqual(result.description, '10% de descuento en productos elegibles')

    def test_unrestricted_applies_to_all(self):
        promotion = TestDataFactory.create_promotion(type='percentage', value=Decimal('5'))
        result = calculate_promotion_discount(promotion, [line(self.soda, 1), line(self.bread, 2)])
        self.assertEqual(result.discount_amount, Decimal('300.00'))

    def test_fixed_amount_capped(self):
        """Test fixed discounts never exceed the eligible subtotal"""
        promotion = TestDataFactory.create_promotion(type='fixed_amount', value=Decimal('5000'), products=[self.bread])
        result = calculate_promotion_discount(promotion, [line(self.bread, 2), line(self.soda, 3)])
        self.assertEqual(result.discount_amount, Decimal('3000.00'))
        self.assertEqual(result.description, 'Descuento fijo de 5.000,00 COP')

    def test_buy_x_get_y(self):
        promotion = TestDataFactory.create_promotion(
            type='buy_x_get_y', value=Decimal('1'), products=[self.soda],
            conditions={'buy_quantity': 2, 'get_quantity': 1}
        )
        result = calculate_promotion_discount(promotion, [line(self.soda, 5)])
        self.assertEqual(result.discount_amount, Decimal('6000.00'))
        self.assertEqual(result.description, 'Compra 2 y lleva 1 gratis')

        result = calculate_promotion_discount(promotion, [line(self.soda, 1)])
        self.assertEqual(result.discount_amount, Decimal('0.00'))

    def test_bundle(self):
        """Test bundle discounts need every bundle product in the cart"""
        promotion = TestDataFactory.create_promotion(
            type='bundle', value=Decimal('1000'),
            conditions={'bundle_products': [self.soda.id, self.bread.id]}
        )
        complete = calculate_promotion_discount(promotion, [line(self.soda, 1), line(self.bread, 1)])
        self.assertEqual(complete.discount_amount, Decimal('1000.00'))
        self.assertEqual(complete.description, 'Descuento por paquete especial')

        partial = calculate_promotion_discount(promotion, [line(self.soda, 1)])
        self.assertEqual(partial.discount_amount, Decimal('0.00'))
        self.assertEqual(partial.description, 'Faltan productos para completar el paquete')

    def test_no_eligible_items(self):
        promotion = TestDataFactory.create_promotion(products=[self.bread])
        result = calculate_promotion_discount(promotion, [line(self.soda, 1)])
        self.assertEqual(result.discount_amount, Decimal('0.00'))
        self.assertEqual(result.description, 'No hay productos elegibles para esta promoción')

    def test_best_promotion(self):
        """Test the largest discount wins and zero discounts are dropped"""
        small = TestDataFactory.create_promotion(type='percentage', value=Decimal('5'))
        large = TestDataFactory.create_promotion(type='fixed_amount', value=Decimal('2000'))
        TestDataFactory.create_promotion(products=[self.bread])
        items = [line(self.soda, 2)]
        results = get_applicable_promotions(Promotion.objects.all(), items)
        self.assertEqual([r.promotion.id for r in results], [large.id, small.id])
        self.assertEqual(find_best_promotion(Promotion.objects.all(), items).promotion, large)
        self.assertIsNone(find_best_promotion([], items))

    def test_formatting(self):
        self.assertEqual(format_currency(Decimal('1234.5')), '1.234,50 COP')
        self.assertEqual(format_number(Decimal('10.00')), '10')
        self.assertEqual(format_number(Decimal('12.50')), '12.5')
        promotion = TestDataFactory.create_promotion(type='percentage', value=Decimal('15'))
        self.assertEqual(format_promotion_description(promotion), '15% de descuento')


class PromotionValidationTests(TestCase):
    """Test validate_promotion_data rules"""

    def valid_data(self, **overrides):
        now = timezone.now()
        data = {
            'name': 'Promo',
            'type': 'percentage',
            'value': '10',
            'start_date': now.isoformat(),
            'end_date': (now + timedelta(days=3)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_valid(self):
        self.assertEqual(validate_promotion_data(self.valid_data()), [])

    def test_required_fields(self):
        errors = validate_promotion_data({})
        self.assertIn('El nombre de la promoción es requerido', errors)
        self.assertIn('El tipo de promoción es requerido', errors)
        self.assertIn('El valor de la promoción debe ser mayor a 0', errors)
        self.assertIn('La fecha de inicio es requerida', errors)
        self.assertIn('La fecha de fin es requerida', errors)

    def test_percentage_over_100(self):
        errors = validate_promotion_data(self.valid_data(value='150'))
        self.assertEqual(errors, ['El porcentaje de descuento no puede ser mayor a 100%'])

    def test_end_before_start(self):
        errors = validate_promotion_data(self.valid_data(start_date='2025-02-01', end_date='2025-01-01'))
        self.assertEqual(errors, ['La fecha de fin debe ser posterior a la fecha de inicio'])

    def test_buy_x_get_y_quantities(self):
        errors = validate_promotion_data(self.valid_data(type='buy_x_get_y', conditions={'buy_quantity': 0}))
        self.assertIn('La cantidad a comprar debe ser mayor a 0', errors)
        self.assertIn('La cantidad gratis debe ser mayor a 0', errors)

    def test_non_numeric_values(self):
        """Test NaN and infinite values are reported instead of raising"""
        for value in ('NaN', 'Infinity', 'abc'):
            errors = validate_promotion_data(self.valid_data(value=value))
            self.assertEqual(errors, ['El valor de la promoción debe ser mayor a 0'])

    def test_buy_x_get_y_conditions_not_an_object(self):
        for conditions in ([1, 2], 'buy 2', 3):
            errors = validate_promotion_data(self.valid_data(type='buy_x_get_y', conditions=conditions))
            self.assertIn('La cantidad a comprar debe ser mayor a 0', errors)
            self.assertIn('La cantidad gratis debe ser mayor a 0', errors)

    def test_max_uses(self):
        errors = validate_promotion_data(self.valid_data(max_uses=0))
        self.assertEqual(errors, ['El límite de usos debe ser mayor a 0'])


class PromotionAPITests(TestCase):
    """Test Promotion API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(price=Decimal('10000.00'))

    def test_create_promotion(self):
        now = timezone.now()
        data = {
            'name': 'Semana de bebidas',
            'type': 'percentage',
            'value': '15.00',
            'start_date': now.isoformat(),
            'end_date': (now + timedelta(days=7)).isoformat(),
            'products': [self.product.id],
        }
        response = self.client.post('/api/v1/promotions/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['products'], [self.product.id])
        self.assertEqual(response.data['created_by'], self.user.employee.id)
        self.assertEqual(response.data['preview'], '15% de descuento')

    def test_create_invalid_promotion(self):
        response = self.client.post('/api/v1/promotions/', {'name': '', 'type': 'percentage', 'value': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('errors', response.data)
        self.assertIn('El nombre de la promoción es requerido', response.data['errors'])

    def test_create_with_malformed_value_or_conditions(self):
        now = timezone.now()
        base = {
            'name': 'Lleve 3 pague 2',
            'type': 'buy_x_get_y',
            'value': '1',
            'start_date': now.isoformat(),
            'end_date': (now + timedelta(days=7)).isoformat(),
            'conditions': {'buy_quantity': 3, 'get_quantity': 1},
        }
        response = self.client.post('/api/v1/promotions/', {**base, 'value': 'NaN'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['errors'], ['El valor de la promoción debe ser mayor a 0'])

        response = self.client.post('/api/v1/promotions/', {**base, 'conditions': [3, 1]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('La cantidad a comprar debe ser mayor a 0', response.data['errors'])
        self.assertFalse(Promotion.objects.exists())

    def test_patch_validates_against_stored_values(self):
        """Test partial updates are checked together with the stored dates"""
        promotion = TestDataFactory.create_promotion()
        response = self.client.patch(
            f'/api/v1/promotions/{promotion.id}/',
            {'end_date': (promotion.start_date - timedelta(days=1)).isoformat()},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['errors'], ['La fecha de fin debe ser posterior a la fecha de inicio'])

        response = self.client.patch(f'/api/v1/promotions/{promotion.id}/', {'value': '20'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['value']), Decimal('20'))

    def test_filter_by_status(self):
        now = timezone.now()
        active = TestDataFactory.create_promotion(name='Activa')
        TestDataFactory.create_promotion(name='Vencida', start_date=now - timedelta(days=9), end_date=now - timedelta(days=2))
        response = self.client.get('/api/v1/promotions/?status=active')
        self.assertEqual([p['id'] for p in response.data], [active.id])

    def test_toggle(self):
        promotion = TestDataFactory.create_promotion(is_active=True)
        response = self.client.post(f'/api/v1/promotions/{promotion.id}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        self.assertEqual(response.data['status'], 'inactive')

    def test_duplicate(self):
        """Test the copy is inactive, runs a week from now and keeps targets"""
        promotion = TestDataFactory.create_promotion(name='Original', products=[self.product], current_uses=4)
        response = self.client.post(f'/api/v1/promotions/{promotion.id}/duplicate/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Original (Copia)')
        self.assertFalse(response.data['is_active'])
        self.assertEqual(response.data['current_uses'], 0)
        self.assertEqual(response.data['products'], [self.product.id])
        copy = Promotion.objects.get(id=response.data['id'])
        self.assertEqual(copy.end_date - copy.start_date, timedelta(days=7))

    def test_applicable(self):
        best = TestDataFactory.create_promotion(type='fixed_amount', value=Decimal('5000'))
        TestDataFactory.create_promotion(type='percentage', value=Decimal('10'))
        response = self.client.post('/api/v1/promotions/applicable/', {
            'items': [{'product': self.product.id, 'quantity': 2}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['promotion']['id'], best.id)
        self.assertEqual(response.data[0]['discount_amount'], Decimal('5000.00'))

    def test_stats(self):
        now = timezone.now()
        TestDataFactory.create_promotion(current_uses=2)
        TestDataFactory.create_promotion(start_date=now + timedelta(days=1), end_date=now + timedelta(days=5))
        TestDataFactory.create_promotion(start_date=now - timedelta(days=5), end_date=now - timedelta(days=1), current_uses=3)
        response = self.client.get('/api/v1/promotions/stats/')
        self.assertEqual(response.data, {'total': 3, 'active': 1, 'scheduled': 1, 'expired': 1, 'totalUses': 5})

    def test_delete(self):
        promotion = TestDataFactory.create_promotion()
        response = self.client.delete(f'/api/v1/promotions/{promotion.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Promotion.objects.filter(id=promotion.id).exists())

    def test_cashier_can_check_applicable_but_not_create(self):
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.post('/api/v1/promotions/applicable/', {
            'items': [{'product': self.product.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/promotions/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
