from django.contrib import admin
from django.utils.html import format_html
from .models import Category, UnitOfMeasure, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(UnitOfMeasure)
class UnitOfMeasureAdmin(admin.ModelAdmin):
    list_display = ['name', 'abbreviation', 'category', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'abbreviation']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'supplier', 'price', 'is_active', 'created_at']
    list_filter = ['is_active', 'category', 'supplier', 'created_at']
    search_fields = ['name', 'sku', 'description']
    ordering = ['name']
    readonly_fields = ['image_preview', 'created_at', 'updated_at']
    exclude = ['image_url']

    def image_preview(self, obj):
        if not obj.image_url:
            return '-'
        return format_html('<img src="{}" style="max-height: 120px;" />', obj.image_url)
    image_preview.short_description = 'Image'
