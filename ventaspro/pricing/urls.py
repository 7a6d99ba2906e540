from django.urls import path
from .views import (
    promotion_list_create, promotion_detail, promotion_toggle, promotion_duplicate,
    promotion_applicable, promotion_stats,
)

urlpatterns = [
    path('promotions/', promotion_list_create, name='promotion-list-create'),
    path('promotions/applicable/', promotion_applicable, name='promotion-applicable'),
    path('promotions/stats/', promotion_stats, name='promotion-stats'),
    path('promotions/<int:pk>/', promotion_detail, name='promotion-detail'),
    path('promotions/<int:pk>/toggle/', promotion_toggle, name='promotion-toggle'),
    path('promotions/<int:pk>/duplicate/', promotion_duplicate, name='promotion-duplicate'),
]
