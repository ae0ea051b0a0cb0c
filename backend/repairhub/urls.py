from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),

    # Technician APIs (profile, availability, available jobs, earnings)
    path('api/technicians/', include('technicians.urls')),

    # Admin commission configuration
    path('api/admin/settings/commission/', include('commissions.urls')),

    # Bookings and job offers (at /api/bookings/ and /api/jobs/)
    path('api/', include('bookings.urls')),
]
