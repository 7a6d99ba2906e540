"""
Test suite for the parties module
Tests: Customer and supplier CRUD, search, cedula uniqueness, permissions
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.core.models import AuditLog
from ventaspro.parties.models import Customer, Supplier


class CustomerAPITests(TestCase):
    """Test Customer API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        data = {'name': 'Juan Pérez', 'email': 'juan@example.com', 'phone': '3001234567', 'cedula': '1020304050'}
        response = self.client.post('/api/v1/customers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['cedula'], '1020304050')
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='create').exists())

    def test_blank_cedula_stored_as_null(self):
        """Test several customers can be created without cedula"""
        for name in ('Ana', 'Luis'):
            response = self.client.post('/api/v1/customers/', {'name': name, 'cedula': ''}, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
            self.assertIsNone(response.data['cedula'])
        self.assertEqual(Customer.objects.filter(cedula__isnull=True).count(), 2)

    def test_duplicate_cedula(self):
        TestDataFactory.create_customer(cedula='123')
        response = self.client.post('/api/v1/customers/', {'name': 'Otro', 'cedula': '123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['cedula'][0]), 'Ya existe un cliente con esta cédula')

    def test_update_keeps_own_cedula(self):
        """Test updating a customer does not clash with its own cedula"""
        customer = TestDataFactory.create_customer(cedula='555')
        response = self.client.put(f'/api/v1/customers/{customer.id}/', {'name': 'Nuevo nombre', 'cedula': '555'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Nuevo nombre')
        log = AuditLog.objects.get(model_name='Customer', action='update')
        self.assertEqual(log.object_reference, '555')
        self.assertEqual(log.changes['name']['new'], 'Nuevo nombre')

    def test_blank_name_rejected(self):
        response = self.client.post('/api/v1/customers/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_customers(self):
        """Test search across name, email, phone and cedula"""
        TestDataFactory.create_customer(name='María López', cedula='99887766')
        TestDataFactory.create_customer(name='Pedro Ruiz')
        response = self.client.get('/api/v1/customers/?search=9988')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['name'] for c in response.data], ['María López'])

    def test_delete_customer_keeps_sales(self):
        """Test sales survive their customer being deleted"""
        customer = TestDataFactory.create_customer()
        sale = TestDataFactory.create_sale(user=self.user, customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        sale.refresh_from_db()
        self.assertIsNone(sale.customer)

    def test_get_missing_customer(self):
        response = self.client.get('/api/v1/customers/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cashier_cannot_delete(self):
        customer = TestDataFactory.create_customer()
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SupplierAPITests(TestCase):
    """Test Supplier API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier(self):
        data = {'name': 'Distribuidora Andina', 'contact_person': 'Rosa', 'email': 'ventas@andina.co'}
        response = self.client.post('/api/v1/suppliers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_count'], 0)

    def test_invalid_email(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'X', 'email': 'no-es-email'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_product_count(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_product(supplier=supplier)
        TestDataFactory.create_product(supplier=supplier)
        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.data['product_count'], 2)

    def test_search_by_contact(self):
        TestDataFactory.create_supplier(name='Lácteos del Valle')
        TestDataFactory.create_supplier(name='Panadería Central')
        response = self.client.get('/api/v1/suppliers/?search=Contact Panader')
        self.assertEqual(len(response.data), 1)

    def test_update_supplier(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.patch(f'/api/v1/suppliers/{supplier.id}/', {'phone': '6011234567'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        supplier.refresh_from_db()
        self.assertEqual(supplier.phone, '6011234567')
        log = AuditLog.objects.get(model_name='Supplier', action='update')
        self.assertEqual(log.object_id, str(supplier.id))
        self.assertEqual(log.changes['phone']['new'], '6011234567')

    def test_delete_supplier_unlinks_products(self):
        supplier = TestDataFactory.create_supplier()
        product = TestDataFactory.create_product(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Supplier.objects.filter(id=supplier.id).exists())
        product.refresh_from_db()
        self.assertIsNone(product.supplier)
