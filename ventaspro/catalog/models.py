from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class UnitOfMeasure(models.Model):
    """Units products are sold in (unidad, kilogramo, litro...)"""
    CATEGORY_CHOICES = [
        ('weight', 'Peso'),
        ('volume', 'Volumen'),
        ('length', 'Longitud'),
        ('area', 'Área'),
        ('unit', 'Unidad'),
    ]

    name = models.CharField(max_length=100)
    abbreviation = models.CharField(max_length=20, unique=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='unit')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.abbreviation})"

    class Meta:
        db_table = 'units_of_measure'
        ordering = ['category', 'name']


class Product(models.Model):
    """Product master"""
    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    sku = models.CharField(max_length=100, unique=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    supplier = models.ForeignKey('parties.Supplier', on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    unit_of_measure = models.ForeignKey(UnitOfMeasure, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    is_active = models.BooleanField(default=True, db_index=True)
    # Compressed JPEG stored inline as a data URL
    image_url = models.TextField(blank=True)
    image_alt = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku})"

    class Meta:
        db_table = 'products'
        ordering = ['name']
