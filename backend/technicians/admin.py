from django.contrib import admin
from technicians.models import TechnicianProfile


@admin.register(TechnicianProfile)
class TechnicianProfileAdmin(admin.ModelAdmin):
    """Admin panel for provisioning and managing technicians"""

    list_display = [
        "user",
        "status",
        "is_available",
        "average_rating",
        "completed_bookings",
        "last_active",
    ]

    list_filter = [
        "status",
        "is_available",
    ]

    search_fields = [
        "user__username",
        "user__first_name",
        "user__last_name",
    ]

    readonly_fields = [
        "average_rating",
        "rating_count",
        "completed_bookings",
        "last_active",
    ]

    ordering = ("user__username",)
