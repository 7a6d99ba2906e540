from django.urls import path
from .views import inventory_list, inventory_detail, inventory_adjust, inventory_stats

urlpatterns = [
    path('inventory/', inventory_list, name='inventory-list'),
    path('inventory/stats/', inventory_stats, name='inventory-stats'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),
    path('inventory/<int:pk>/adjust/', inventory_adjust, name='inventory-adjust'),
]
