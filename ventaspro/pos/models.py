from django.db import models
from decimal import Decimal
from ventaspro.core.models import User


class Sale(models.Model):
    """Sales recorded at the point of sale"""
    STATUS_CHOICES = [
        ('pending', 'Pendiente'),
        ('completed', 'Completada'),
        ('cancelled', 'Cancelada'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Efectivo'),
        ('card', 'Tarjeta'),
        ('transfer', 'Transferencia'),
    ]

    customer = models.ForeignKey('parties.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # Stored as amounts; the request carries percentages
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed', db_index=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    promotion = models.ForeignKey('pricing.Promotion', on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Venta #{self.reference}"

    @property
    def reference(self):
        """Last 8 characters of the zero-padded id, as printed on receipts"""
        return str(self.pk or 0).zfill(8)[-8:]

    class Meta:
        db_table = 'sales'
        ordering = ['-created_at']


class SaleItem(models.Model):
    """Sale line items"""
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='sale_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.product.name} x{self.quantity}"

    class Meta:
        db_table = 'sale_items'


class CashRegister(models.Model):
    """Cash register movements"""
    TYPE_CHOICES = [
        ('sale', 'Venta'),
        ('expense', 'Gasto'),
        ('deposit', 'Depósito'),
        ('withdrawal', 'Retiro'),
    ]

    INCOME_TYPES = ('sale', 'deposit')
    OUTGOING_TYPES = ('expense', 'withdrawal')

    type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField(blank=True)
    # Sale id for sale entries, inventory id for stock adjustment expenses
    reference_id = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='cash_movements')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.get_type_display()} - {self.amount}"

    class Meta:
        db_table = 'cash_register'
        ordering = ['-created_at']
