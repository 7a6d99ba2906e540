"""
Test suite for the pos module
Tests: Sale totals, stock decrements, promotions, status changes, cancellation, cash register
"""
import csv
import io
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.core.models import AuditLog
from ventaspro.pricing.models import PromotionUsage
from ventaspro.pricing.services import CartLine
from ventaspro.pos.models import Sale, CashRegister
from ventaspro.pos.services import (
    calculate_totals, record_sale, cancel_sale, change_sale_status,
    SaleError, EmptyCartError, InsufficientStockError, InvalidPromotionError
)


class SaleTotalsTests(TestCase):
    """Test calculate_totals arithmetic"""

    def lines(self):
        return [
            CartLine(product_id=1, category_id=None, quantity=2, unit_price=Decimal('1500.00')),
            CartLine(product_id=2, category_id=None, quantity=1, unit_price=Decimal('2000.00')),
        ]

    def test_discount_then_tax(self):
        totals = calculate_totals(self.lines(), Decimal('10'), Decimal('19'))
        self.assertEqual(totals['subtotal'], Decimal('5000.00'))
        self.assertEqual(totals['discount'], Decimal('500.00'))
        self.assertEqual(totals['tax'], Decimal('855.00'))
        self.assertEqual(totals['total_amount'], Decimal('5355.00'))

    def test_promotion_discount_added(self):
        totals = calculate_totals(self.lines(), Decimal('10'), Decimal('0'), Decimal('1000'))
        self.assertEqual(totals['discount'], Decimal('1500.00'))
        self.assertEqual(totals['total_amount'], Decimal('3500.00'))

    def test_discount_capped_at_subtotal(self):
        totals = calculate_totals(self.lines(), Decimal('100'), Decimal('19'), Decimal('1000'))
        self.assertEqual(totals['discount'], Decimal('5000.00'))
        self.assertEqual(totals['tax'], Decimal('0.00'))
        self.assertEqual(totals['total_amount'], Decimal('0.00'))


class SaleServiceTests(TestCase):
    """Test record_sale, cancel_sale and change_sale_status"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(name='Leche', price=Decimal('4000.00'), stock=10)

    def cart(self, quantity, product=None):
        return [{'product': product or self.product, 'quantity': quantity}]

    def test_record_sale_decrements_stock(self):
        sale = record_sale(self.cart(3), tax_percent=Decimal('0'), user=self.user)
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 7)
        self.assertEqual(sale.total_amount, Decimal('12000.00'))
        self.assertEqual(sale.items.count(), 1)
        self.assertEqual(sale.created_by, self.user)

    def test_completed_sale_writes_cash_entry(self):
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'), user=self.user)
        entry = CashRegister.objects.get(type='sale')
        self.assertEqual(entry.amount, sale.total_amount)
        self.assertEqual(entry.reference_id, str(sale.id))
        self.assertEqual(entry.description, f'Venta #{sale.reference}')

    def test_tax_defaults_to_setting(self):
        """Test the taxRate setting (19 by default) applies when no tax is sent"""
        sale = record_sale(self.cart(1))
        self.assertEqual(sale.tax, Decimal('760.00'))
        self.assertEqual(sale.total_amount, Decimal('4760.00'))

    def test_same_product_in_several_lines(self):
        """Test stock is checked against the total quantity of a product"""
        with self.assertRaises(InsufficientStockError):
            record_sale(self.cart(6) + self.cart(6), tax_percent=Decimal('0'))
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 10)

    def test_insufficient_stock(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            record_sale(self.cart(11))
        self.assertEqual(ctx.exception.requested, 11)
        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(Sale.objects.count(), 0)

    def test_product_without_inventory(self):
        product = TestDataFactory.create_product(stock=None)
        with self.assertRaises(InsufficientStockError):
            record_sale(self.cart(1, product))

    def test_empty_cart(self):
        with self.assertRaises(EmptyCartError):
            record_sale([])

    def test_explicit_promotion(self):
        promotion = TestDataFactory.create_promotion(type='percentage', value=Decimal('25'))
        sale = record_sale(self.cart(2), tax_percent=Decimal('0'), promotion=promotion)
        self.assertEqual(sale.discount, Decimal('2000.00'))
        self.assertEqual(sale.total_amount, Decimal('6000.00'))
        usage = PromotionUsage.objects.get(sale=sale)
        self.assertEqual(usage.discount_amount, Decimal('2000.00'))
        promotion.refresh_from_db()
        self.assertEqual(promotion.current_uses, 1)

    def test_invalid_promotion_rejected(self):
        promotion = TestDataFactory.create_promotion(min_purchase_amount=Decimal('100000'))
        with self.assertRaises(InvalidPromotionError):
            record_sale(self.cart(1), promotion=promotion)
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 10)

    def test_auto_promotion_picks_best(self):
        TestDataFactory.create_promotion(type='percentage', value=Decimal('5'))
        best = TestDataFactory.create_promotion(type='fixed_amount', value=Decimal('1500'))
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'), auto_promotion=True)
        self.assertEqual(sale.promotion, best)
        self.assertEqual(sale.discount, Decimal('1500.00'))

    def test_auto_promotion_without_candidates(self):
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'), auto_promotion=True)
        self.assertIsNone(sale.promotion)
        self.assertEqual(PromotionUsage.objects.count(), 0)

    def test_pending_sale_books_cash_on_completion(self):
        """Test pending sales reach the cash register only once completed"""
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'), status='pending')
        self.assertFalse(CashRegister.objects.exists())
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 9)

        change_sale_status(sale.id, 'completed')
        self.assertEqual(CashRegister.objects.filter(type='sale', reference_id=str(sale.id)).count(), 1)

    def test_invalid_transition(self):
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'))
        with self.assertRaises(SaleError):
            change_sale_status(sale.id, 'pending')

    def test_cancel_restores_stock_and_reverses_cash(self):
        sale = record_sale(self.cart(4), tax_percent=Decimal('0'))
        cancel_sale(sale.id)
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 10)
        sale.refresh_from_db()
        self.assertEqual(sale.status, 'cancelled')
        self.assertIsNotNone(sale.cancelled_at)
        withdrawal = CashRegister.objects.get(type='withdrawal')
        self.assertEqual(withdrawal.amount, Decimal('16000.00'))
        self.assertEqual(withdrawal.description, f'Anulación venta #{sale.reference}')

    def test_cancel_pending_books_nothing(self):
        sale = record_sale(self.cart(1), tax_percent=Decimal('0'), status='pending')
        cancel_sale(sale.id)
        self.assertFalse(CashRegister.objects.exists())

    def test_cancel_twice(self):
        """Test stock is restored only once"""
        sale = record_sale(self.cart(2), tax_percent=Decimal('0'))
        cancel_sale(sale.id)
        with self.assertRaises(SaleError):
            cancel_sale(sale.id)
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 10)

    def test_reference(self):
        sale = record_sale(self.cart(1))
        self.assertEqual(sale.reference, str(sale.id).zfill(8))


class SaleAPITests(TestCase):
    """Test Sale API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(name='Café', price=Decimal('1000.00'), stock=20)

    def test_create_sale(self):
        customer = TestDataFactory.create_customer(name='Carla')
        data = {
            'customer': customer.id,
            'items': [{'product': self.product.id, 'quantity': 2}],
            'payment_method': 'card',
        }
        response = self.client.post('/api/v1/sales/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('2000.00'))
        self.assertEqual(Decimal(response.data['tax']), Decimal('380.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('2380.00'))
        self.assertEqual(response.data['customer_name'], 'Carla')
        self.assertEqual(response.data['items'][0]['product_name'], 'Café')
        self.assertTrue(AuditLog.objects.filter(action='sale_create', object_id=str(response.data['id'])).exists())

    def test_create_with_discount_and_tax(self):
        data = {'items': [{'product': self.product.id, 'quantity': 10}], 'discount': '10', 'tax': '0'}
        response = self.client.post('/api/v1/sales/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('9000.00'))

    def test_create_insufficient_stock(self):
        data = {'items': [{'product': self.product.id, 'quantity': 50}]}
        response = self.client.post('/api/v1/sales/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No hay suficiente stock disponible')
        self.assertEqual(response.data['product'], 'Café')
        self.assertEqual(response.data['available'], 20)

    def test_create_empty_cart(self):
        response = self.client.post('/api/v1/sales/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'El carrito está vacío')

    def test_discount_over_100_rejected(self):
        data = {'items': [{'product': self.product.id, 'quantity': 1}], 'discount': '150'}
        response = self.client.post('/api/v1/sales/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('discount', response.data)

    def test_list_filters(self):
        """Test status, payment method and customer search filters"""
        customer = TestDataFactory.create_customer(name='Diego Torres')
        TestDataFactory.create_sale(items=[(self.product, 1)], customer=customer, payment_method='card')
        TestDataFactory.create_sale(items=[(self.product, 1)], status='pending')

        response = self.client.get('/api/v1/sales/')
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['item_count'], 1)

        response = self.client.get('/api/v1/sales/?status=pending')
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/sales/?search=Tarjeta')
        self.assertEqual([s['customer_name'] for s in response.data], ['Diego Torres'])

        response = self.client.get('/api/v1/sales/?search=diego')
        self.assertEqual(len(response.data), 1)

    def test_list_pagination(self):
        for _ in range(3):
            TestDataFactory.create_sale(items=[(self.product, 1)])
        response = self.client.get('/api/v1/sales/?page=1&limit=2')
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['next'], 2)

    def test_stats(self):
        TestDataFactory.create_sale(items=[(self.product, 2)])
        TestDataFactory.create_sale(items=[(self.product, 1)], status='pending')
        response = self.client.get('/api/v1/sales/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['completed'], 1)
        self.assertEqual(response.data['today'], 2)
        self.assertEqual(response.data['totalAmount'], Decimal('3000.00'))

    def test_complete_pending_sale(self):
        sale = TestDataFactory.create_sale(items=[(self.product, 1)], status='pending')
        response = self.client.patch(f'/api/v1/sales/{sale.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertTrue(CashRegister.objects.filter(type='sale', reference_id=str(sale.id)).exists())
        self.assertTrue(AuditLog.objects.filter(action='sale_update').exists())

    def test_invalid_transition(self):
        sale = TestDataFactory.create_sale(items=[(self.product, 1)])
        response = self.client.patch(f'/api/v1/sales/{sale.id}/', {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Transición de estado no válida')

    def test_cancel(self):
        sale = TestDataFactory.create_sale(items=[(self.product, 5)])
        response = self.client.post(f'/api/v1/sales/{sale.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')
        self.product.inventory.refresh_from_db()
        self.assertEqual(self.product.inventory.quantity, 20)
        self.assertTrue(AuditLog.objects.filter(action='sale_cancel').exists())

        response = self.client.post(f'/api/v1/sales/{sale.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'La venta ya está cancelada')

    def test_cashier_can_sell_but_not_cancel(self):
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.post('/api/v1/sales/', {
            'items': [{'product': self.product.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f"/api/v1/sales/{response.data['id']}/cancel/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_viewer_cannot_sell(self):
        viewer = TestDataFactory.create_user(role='viewer')
        self.client.authenticate_user(viewer)
        response = self.client.post('/api/v1/sales/', {
            'items': [{'product': self.product.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CashRegisterAPITests(TestCase):
    """Test CashRegister API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_movement(self):
        data = {'type': 'deposit', 'amount': '50000.00', 'description': 'Base de caja'}
        response = self.client.post('/api/v1/cash-register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertEqual(response.data['type_display'], 'Depósito')
        self.assertTrue(AuditLog.objects.filter(action='cash_movement').exists())

    def test_sale_type_rejected(self):
        response = self.client.post('/api/v1/cash-register/', {'type': 'sale', 'amount': '100'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('type', response.data)

    def test_non_positive_amount_rejected(self):
        response = self.client.post('/api/v1/cash-register/', {'type': 'expense', 'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)

    def test_list_type_filter(self):
        CashRegister.objects.create(type='deposit', amount=Decimal('100.00'))
        CashRegister.objects.create(type='expense', amount=Decimal('30.00'))
        response = self.client.get('/api/v1/cash-register/?type=expense')
        self.assertEqual([m['type'] for m in response.data], ['expense'])

    def test_balance_and_today(self):
        """Test income (sales, deposits) minus outgoings (expenses, withdrawals)"""
        CashRegister.objects.create(type='sale', amount=Decimal('1000.00'))
        CashRegister.objects.create(type='deposit', amount=Decimal('500.00'))
        CashRegister.objects.create(type='expense', amount=Decimal('200.00'))
        CashRegister.objects.create(type='withdrawal', amount=Decimal('100.00'))

        response = self.client.get('/api/v1/cash-register/balance/')
        self.assertEqual(response.data['income'], Decimal('1500.00'))
        self.assertEqual(response.data['expenses'], Decimal('300.00'))
        self.assertEqual(response.data['balance'], Decimal('1200.00'))

        response = self.client.get('/api/v1/cash-register/today/')
        self.assertEqual(response.data['net'], Decimal('1200.00'))

    def test_empty_balance(self):
        response = self.client.get('/api/v1/cash-register/balance/')
        self.assertEqual(response.data['balance'], Decimal('0.00'))

    def test_export_csv(self):
        CashRegister.objects.create(type='deposit', amount=Decimal('500.00'), description='Base')
        CashRegister.objects.create(type='expense', amount=Decimal('120.50'), description='Bolsas')
        response = self.client.get('/api/v1/cash-register/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment; filename="reporte-caja-', response['Content-Disposition'])

        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0], ['Reporte de Caja'])
        self.assertEqual(rows[2], ['Balance Actual', '379.50'])
        self.assertEqual(rows[4], ['Fecha', 'Tipo', 'Descripción', 'Monto'])
        amounts = {row[2]: row[3] for row in rows[5:]}
        self.assertEqual(amounts, {'Base': '500.00', 'Bolsas': '-120.50'})

    def test_cashier_cannot_export_without_permission(self):
        """Test custom permissions replace the role defaults"""
        cashier = TestDataFactory.create_user(role=None)
        TestDataFactory.create_employee(user=cashier, role='cashier', permissions={'cash_register': {'read': False}})
        self.client.authenticate_user(cashier)
        response = self.client.get('/api/v1/cash-register/export/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
