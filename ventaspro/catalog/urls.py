from django.urls import path
from .views import (
    category_list_create, category_detail,
    unit_of_measure_list_create, unit_of_measure_detail,
    product_list_create, product_detail, product_image,
    image_compress, image_placeholder,
)

urlpatterns = [
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),
    path('units/', unit_of_measure_list_create, name='unit-list-create'),
    path('units/<int:pk>/', unit_of_measure_detail, name='unit-detail'),
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/image/', product_image, name='product-image'),
    path('images/compress/', image_compress, name='image-compress'),
    path('images/placeholder/', image_placeholder, name='image-placeholder'),
]
