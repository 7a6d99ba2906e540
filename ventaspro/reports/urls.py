from django.urls import path
from .views import dashboard_stats, reports_summary, sales_export

urlpatterns = [
    path('dashboard/stats/', dashboard_stats, name='dashboard-stats'),
    path('reports/summary/', reports_summary, name='reports-summary'),
    path('reports/sales-export/', sales_export, name='reports-sales-export'),
]
