from django.contrib import admin
from .models import Customer, Supplier


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'cedula', 'phone', 'email', 'created_at']
    search_fields = ['name', 'cedula', 'phone', 'email']
    ordering = ['-created_at']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_person', 'phone', 'email', 'created_at']
    search_fields = ['name', 'contact_person', 'phone', 'email']
    ordering = ['name']
