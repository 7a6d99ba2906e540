from django.urls import path
from .views import (
    sale_list_create, sale_detail, sale_cancel, sale_stats,
    cash_register_list_create, cash_register_balance, cash_register_today, cash_register_export,
)

urlpatterns = [
    path('sales/', sale_list_create, name='sale-list-create'),
    path('sales/stats/', sale_stats, name='sale-stats'),
    path('sales/<int:pk>/', sale_detail, name='sale-detail'),
    path('sales/<int:pk>/cancel/', sale_cancel, name='sale-cancel'),
    path('cash-register/', cash_register_list_create, name='cash-register-list-create'),
    path('cash-register/balance/', cash_register_balance, name='cash-register-balance'),
    path('cash-register/today/', cash_register_today, name='cash-register-today'),
    path('cash-register/export/', cash_register_export, name='cash-register-export'),
]
