from django.contrib import admin
from .models import Sale, SaleItem, CashRegister


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'total_price']
    can_delete = False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'total_amount', 'status', 'payment_method', 'created_at']
    list_filter = ['status', 'payment_method', 'created_at']
    search_fields = ['id', 'customer__name']
    list_select_related = ['customer']
    readonly_fields = ['subtotal', 'discount', 'tax', 'total_amount', 'created_at', 'updated_at', 'cancelled_at']
    inlines = [SaleItemInline]


@admin.register(CashRegister)
class CashRegisterAdmin(admin.ModelAdmin):
    list_display = ['type', 'amount', 'description', 'reference_id', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['description', 'reference_id']
    readonly_fields = ['created_at']
