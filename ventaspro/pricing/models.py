from django.db import models
from decimal import Decimal


class Promotion(models.Model):
    """Promotions and discounts"""
    TYPE_CHOICES = [
        ('percentage', 'Porcentaje'),
        ('fixed_amount', 'Monto Fijo'),
        ('buy_x_get_y', 'Compra X Lleva Y'),
        ('bundle', 'Paquete'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    value = models.DecimalField(max_digits=12, decimal_places=2)
    # buy_quantity / get_quantity for buy_x_get_y, bundle_products for bundle
    conditions = models.JSONField(default=dict, blank=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    min_purchase_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    current_uses = models.PositiveIntegerField(default=0)
    products = models.ManyToManyField('catalog.Product', related_name='promotions', blank=True)
    categories = models.ManyToManyField('catalog.Category', related_name='promotions', blank=True)
    created_by = models.ForeignKey('core.Employee', on_delete=models.SET_NULL, null=True, blank=True, related_name='promotions')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'promotions'
        ordering = ['-created_at']


class PromotionUsage(models.Model):
    """A promotion applied to a sale"""
    promotion = models.ForeignKey(Promotion, on_delete=models.CASCADE, related_name='usages')
    sale = models.ForeignKey('pos.Sale', on_delete=models.CASCADE, related_name='promotion_usages')
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.promotion.name} - {self.discount_amount}"

    class Meta:
        db_table = 'promotion_usage'
        ordering = ['-created_at']
