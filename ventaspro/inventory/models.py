from django.db import models


class Inventory(models.Model):
    """Stock level of a product"""
    product = models.OneToOneField('catalog.Product', on_delete=models.CASCADE, related_name='inventory')
    quantity = models.PositiveIntegerField(default=0)
    min_stock = models.PositiveIntegerField(default=0)
    max_stock = models.PositiveIntegerField(default=100)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.quantity}"

    @property
    def stock_status(self):
        return get_stock_status(self.quantity, self.min_stock, self.max_stock)

    class Meta:
        db_table = 'inventory'
        verbose_name_plural = 'inventory'
        ordering = ['product__name']


def get_stock_status(quantity, min_stock, max_stock):
    """'low' at or below the minimum, 'high' at or above the maximum, otherwise 'normal'"""
    if quantity <= min_stock:
        return 'low'
    if quantity >= max_stock:
        return 'high'
    return 'normal'
