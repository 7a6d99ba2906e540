"""
Test suite for the inventory module
Tests: Stock status, adjustments (add/remove/set), expense booking, thresholds, stats
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.core.models import AuditLog
from ventaspro.inventory.models import Inventory, get_stock_status
from ventaspro.inventory.services import apply_adjustment, adjust_stock
from ventaspro.pos.models import CashRegister


class StockStatusTests(TestCase):
    """Test stock status classification and adjustment arithmetic"""

    def test_stock_status(self):
        self.assertEqual(get_stock_status(5, 5, 100), 'low')
        self.assertEqual(get_stock_status(0, 0, 100), 'low')
        self.assertEqual(get_stock_status(6, 5, 100), 'normal')
        self.assertEqual(get_stock_status(100, 5, 100), 'high')

    def test_apply_adjustment(self):
        self.assertEqual(apply_adjustment(10, 'add', 5), 15)
        self.assertEqual(apply_adjustment(10, 'remove', 4), 6)
        self.assertEqual(apply_adjustment(3, 'remove', 10), 0)
        self.assertEqual(apply_adjustment(10, 'set', 2), 2)
        with self.assertRaises(ValueError):
            apply_adjustment(10, 'double', 2)

    def test_model_status_property(self):
        product = TestDataFactory.create_product(stock=1, min_stock=3)
        self.assertEqual(product.inventory.stock_status, 'low')


class StockAdjustmentServiceTests(TestCase):
    """Test adjust_stock and the expense it books"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(name='Arroz', cost=Decimal('2500.00'), stock=10)
        self.inventory = self.product.inventory

    def test_remove_books_expense(self):
        """Test removals of products with a cost become cash register expenses"""
        inventory, previous, expense = adjust_stock(self.inventory.id, 'remove', 3, reason='Dañado', user=self.user)
        self.assertEqual(previous, 10)
        self.assertEqual(inventory.quantity, 7)
        self.assertEqual(expense.type, 'expense')
        self.assertEqual(expense.amount, Decimal('7500.00'))
        self.assertEqual(expense.description, 'Ajuste de inventario: Arroz (-3) - Dañado')
        self.assertEqual(expense.reference_id, str(self.inventory.id))
        self.assertEqual(expense.created_by, self.user)

    def test_remove_more_than_available(self):
        """Test stock never goes negative and the expense covers only what was removed"""
        inventory, _, expense = adjust_stock(self.inventory.id, 'remove', 50)
        self.assertEqual(inventory.quantity, 0)
        self.assertEqual(expense.amount, Decimal('25000.00'))
        self.assertEqual(expense.description, 'Ajuste de inventario: Arroz (-10) - ')

    def test_add_books_nothing(self):
        _, _, expense = adjust_stock(self.inventory.id, 'add', 5)
        self.assertIsNone(expense)
        self.assertEqual(CashRegister.objects.count(), 0)

    def test_zero_cost_books_nothing(self):
        product = TestDataFactory.create_product(cost=Decimal('0'), stock=5)
        _, _, expense = adjust_stock(product.inventory.id, 'remove', 2)
        self.assertIsNone(expense)

    def test_set_lower_books_nothing(self):
        """Test only removals are treated as losses"""
        inventory, _, expense = adjust_stock(self.inventory.id, 'set', 2)
        self.assertEqual(inventory.quantity, 2)
        self.assertIsNone(expense)


class InventoryAPITests(TestCase):
    """Test Inventory API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_with_status_filter(self):
        """Test low/normal/high filters"""
        TestDataFactory.create_product(name='Bajo', stock=2, min_stock=5)
        TestDataFactory.create_product(name='Normal', stock=20, min_stock=5)
        TestDataFactory.create_product(name='Alto', stock=150, min_stock=5, max_stock=100)

        for stock_status, name in (('low', 'Bajo'), ('normal', 'Normal'), ('high', 'Alto')):
            response = self.client.get(f'/api/v1/inventory/?status={stock_status}')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual([row['product_name'] for row in response.data], [name])
            self.assertEqual(response.data[0]['stock_status'], stock_status)

    def test_search(self):
        TestDataFactory.create_product(name='Azúcar', sku='AZU-1')
        TestDataFactory.create_product(name='Sal', sku='SAL-1')
        response = self.client.get('/api/v1/inventory/?search=AZU')
        self.assertEqual(len(response.data), 1)

    def test_create_inventory_row(self):
        product = TestDataFactory.create_product(stock=None)
        data = {'product': product.id, 'quantity': 12, 'min_stock': 3, 'max_stock': 50}
        response = self.client.post('/api/v1/inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Inventory.objects.get(product=product).quantity, 12)

    def test_duplicate_inventory_row(self):
        """Test a product has at most one inventory row"""
        product = TestDataFactory.create_product(stock=5)
        response = self.client.post('/api/v1/inventory/', {'product': product.id, 'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_max_below_min_rejected(self):
        product = TestDataFactory.create_product(stock=5, min_stock=2)
        response = self.client.patch(f'/api/v1/inventory/{product.inventory.id}/', {'max_stock': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('max_stock', response.data)

    def test_update_thresholds_ignores_quantity(self):
        """Test detail updates cannot change the quantity"""
        product = TestDataFactory.create_product(stock=5)
        response = self.client.put(
            f'/api/v1/inventory/{product.inventory.id}/', {'min_stock': 4, 'quantity': 999}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.inventory.refresh_from_db()
        self.assertEqual(product.inventory.quantity, 5)
        self.assertEqual(product.inventory.min_stock, 4)

    def test_update_thresholds_writes_audit_log(self):
        product = TestDataFactory.create_product(stock=5, min_stock=2)
        response = self.client.patch(
            f'/api/v1/inventory/{product.inventory.id}/', {'min_stock': 4}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Inventory', action='update')
        self.assertEqual(log.object_id, str(product.inventory.id))
        self.assertEqual(log.object_reference, product.sku)
        self.assertEqual(log.changes['min_stock'], {'old': '2', 'new': '4'})
        self.assertNotIn('max_stock', log.changes)

    def test_adjust_endpoint(self):
        """Test removal through the API returns previous quantity and expense"""
        product = TestDataFactory.create_product(cost=Decimal('1000.00'), stock=10)
        response = self.client.post(
            f'/api/v1/inventory/{product.inventory.id}/adjust/',
            {'type': 'remove', 'quantity': 2, 'reason': 'Vencido'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 8)
        self.assertEqual(response.data['previous_quantity'], 10)
        self.assertEqual(response.data['expense_amount'], '2000.00')
        log = AuditLog.objects.get(action='stock_adjust')
        self.assertEqual(log.changes['new_quantity'], 8)

    def test_adjust_zero_quantity_rejected(self):
        product = TestDataFactory.create_product(stock=10)
        response = self.client.post(
            f'/api/v1/inventory/{product.inventory.id}/adjust/', {'type': 'add', 'quantity': 0}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_set_to_zero_allowed(self):
        product = TestDataFactory.create_product(stock=10)
        response = self.client.post(
            f'/api/v1/inventory/{product.inventory.id}/adjust/', {'type': 'set', 'quantity': 0}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 0)

    def test_adjust_missing_row(self):
        response = self.client.post('/api/v1/inventory/99999/adjust/', {'type': 'add', 'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_stats(self):
        TestDataFactory.create_product(cost=Decimal('100.00'), stock=10, min_stock=2)
        TestDataFactory.create_product(cost=Decimal('50.00'), stock=0, min_stock=2)
        response = self.client.get('/api/v1/inventory/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalItems'], 10)
        self.assertEqual(response.data['lowStock'], 1)
        self.assertEqual(response.data['outOfStock'], 1)
        self.assertEqual(Decimal(response.data['totalValue']), Decimal('1000.00'))

    def test_cashier_cannot_adjust(self):
        product = TestDataFactory.create_product(stock=10)
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.post(
            f'/api/v1/inventory/{product.inventory.id}/adjust/', {'type': 'add', 'quantity': 1}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
