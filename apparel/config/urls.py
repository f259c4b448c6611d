"""
URL configuration for the apparel POS backend.

Every app mounts its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Apparel POS Admin Panel"
admin.site.site_title = "Apparel POS Admin Portal"
admin.site.index_title = "Store Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('apparel.core.urls')),
    path('api/v1/', include('apparel.catalog.urls')),
    path('api/v1/', include('apparel.inventory.urls')),
    path('api/v1/', include('apparel.parties.urls')),
    path('api/v1/', include('apparel.pos.urls')),
    path('api/v1/', include('apparel.purchasing.urls')),
    path('api/v1/', include('apparel.reports.urls')),
]
