"""
URL configuration for the VentasPro API.

Every app exposes its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "VentasPro Admin Panel"
admin.site.site_title = "VentasPro Admin Portal"
admin.site.index_title = "Welcome to VentasPro Admin"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('ventaspro.core.urls')),
    path('api/v1/', include('ventaspro.catalog.urls')),
    path('api/v1/', include('ventaspro.parties.urls')),
    path('api/v1/', include('ventaspro.inventory.urls')),
    path('api/v1/', include('ventaspro.pricing.urls')),
    path('api/v1/', include('ventaspro.pos.urls')),
    path('api/v1/', include('ventaspro.reports.urls')),
]
