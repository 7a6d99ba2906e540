"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from ventaspro.core.models import Employee
from ventaspro.catalog.models import Category, Product
from ventaspro.parties.models import Customer, Supplier
from ventaspro.inventory.models import Inventory
from ventaspro.pricing.models import Promotion
from ventaspro.pos.services import record_sale
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False,
                    role='admin', employee_status='active'):
        """Create a test user with an employee record (role=None for a bare login)"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username.lower()}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        if role:
            TestDataFactory.create_employee(user=user, role=role, status=employee_status)
        return user

    @staticmethod
    def create_employee(user=None, name=None, email=None, role='cashier', status='active', permissions=None):
        """Create a test employee"""
        if not name:
            name = f'Employee_{TestDataFactory.random_string(6)}'
        if not email:
            email = user.email if user else f'{name.lower()}@test.com'
        return Employee.objects.create(
            user=user,
            name=name,
            email=email,
            role=role,
            status=status,
            permissions=permissions or {}
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_supplier(name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'3{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            name=name,
            contact_person=f'Contact {name}',
            phone=phone,
            email=email
        )

    @staticmethod
    def create_customer(name=None, phone=None, email=None, cedula=None):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'3{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Customer.objects.create(
            name=name,
            phone=phone,
            email=email,
            cedula=cedula
        )

    @staticmethod
    def create_product(name=None, sku=None, category=None, supplier=None, price=None, cost=None,
                       stock=10, min_stock=2, max_stock=100, is_active=True):
        """Create a test product with its inventory row (stock=None skips the inventory)"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        if category is None:
            category = TestDataFactory.create_category()
        product = Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            supplier=supplier,
            price=price if price is not None else Decimal('1000.00'),
            cost=cost if cost is not None else Decimal('600.00'),
            is_active=is_active
        )
        if stock is not None:
            Inventory.objects.create(
                product=product,
                quantity=stock,
                min_stock=min_stock,
                max_stock=max_stock
            )
        return product

    @staticmethod
    def create_sale(user=None, items=None, customer=None, status='completed', payment_method='cash',
                    discount=Decimal('0'), tax=Decimal('0')):
        """
        Record a test sale through the sale service.

        items is a list of (product, quantity) pairs; a new product is created
        when omitted.
        """
        if items is None:
            items = [(TestDataFactory.create_product(), 1)]
        return record_sale(
            items=[{'product': product, 'quantity': quantity} for product, quantity in items],
            customer=customer,
            discount_percent=discount,
            tax_percent=tax,
            payment_method=payment_method,
            status=status,
            user=user,
        )

    @staticmethod
    def create_promotion(name=None, type='percentage', value=None, products=None, categories=None,
                         conditions=None, is_active=True, start_date=None, end_date=None,
                         min_purchase_amount=None, max_uses=None, current_uses=0):
        """Create a test promotion running from yesterday to a week from now"""
        if not name:
            name = f'Promotion_{TestDataFactory.random_string(6)}'
        now = timezone.now()
        promotion = Promotion.objects.create(
            name=name,
            type=type,
            value=value if value is not None else Decimal('10.00'),
            conditions=conditions or {},
            is_active=is_active,
            start_date=start_date or now - timedelta(days=1),
            end_date=end_date or now + timedelta(days=7),
            min_purchase_amount=min_purchase_amount or Decimal('0.00'),
            max_uses=max_uses,
            current_uses=current_uses
        )
        if products:
            promotion.products.set(products)
        if categories:
            promotion.categories.set(categories)
        return promotion


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
