"""
Root URL configuration for the backend project.

We keep it short and simply include the URLs from the `inventory` app.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    # All API endpoints for equipment, IP addresses and imports live under /api/
    path("api/", include("inventory.urls")),
]
