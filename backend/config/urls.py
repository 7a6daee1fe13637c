"""
URL configuration for the distillery operations backend.

Every app contributes its routes under the shared `api/v1/` prefix.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Caskr Administration"
admin.site.site_title = "Caskr Admin Portal"
admin.site.index_title = "Distillery Operations"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.locations.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.capacity.urls')),
    path('api/v1/', include('backend.ttb.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.pricing.urls')),
    path('api/v1/', include('backend.notifications.urls')),
    path('api/v1/', include('backend.tasks.urls')),
    path('api/v1/', include('backend.webhooks.urls')),
]
