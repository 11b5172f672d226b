from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),  # Health check endpoint

    # Admin authentication (at /api/auth/)
    path('api/auth/', include('accounts.urls')),

    # Driver registry APIs (listing, availability, block, location)
    path('api/drivers/', include('drivers.urls')),

    # Order lifecycle APIs (at /api/orders/)
    path('api/orders/', include('orders.urls')),
]
