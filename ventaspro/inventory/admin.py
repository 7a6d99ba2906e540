from django.contrib import admin
from .models import Inventory


@admin.register(Inventory)
class InventoryAdmin(admin.ModelAdmin):
    list_display = ['product', 'quantity', 'min_stock', 'max_stock', 'stock_status', 'updated_at']
    search_fields = ['product__name', 'product__sku']
    list_select_related = ['product']
    readonly_fields = ['updated_at']
