from django.contrib import admin
from .models import Promotion, PromotionUsage


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'value', 'start_date', 'end_date', 'is_active', 'current_uses', 'max_uses']
    list_filter = ['type', 'is_active', 'start_date']
    search_fields = ['name', 'description']
    filter_horizontal = ['products', 'categories']
    readonly_fields = ['current_uses', 'created_at', 'updated_at']


@admin.register(PromotionUsage)
class PromotionUsageAdmin(admin.ModelAdmin):
    list_display = ['promotion', 'sale', 'discount_amount', 'created_at']
    list_select_related = ['promotion', 'sale']
    readonly_fields = ['created_at']
