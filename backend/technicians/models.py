from django.db import models
from django.conf import settings

from common.utils import to_location

User = settings.AUTH_USER_MODEL


class TechnicianProfile(models.Model):
    """Technician-specific details, specializations and availability"""
    STATUS_ACTIVE = 'active'
    STATUS_ONLINE = 'online'
    STATUS_BUSY = 'busy'
    STATUS_OFFLINE = 'offline'
    STATUS_INACTIVE = 'inactive'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ONLINE, 'Online'),
        (STATUS_BUSY, 'Busy'),
        (STATUS_OFFLINE, 'Offline'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    # Statuses that may receive new job offers
    DISPATCHABLE_STATUSES = (STATUS_ACTIVE, STATUS_ONLINE)

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='technician_profile')

    # Service types handled, e.g. ["AC Repair", "Washing Machine"]
    specializations = models.JSONField(default=list, blank=True)

    # Operational status vs. technician-controlled on/off duty switch
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_INACTIVE)
    is_available = models.BooleanField(default=True)

    # Location
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    service_radius_km = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)

    # Aggregates
    average_rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    rating_count = models.PositiveIntegerField(default=0)
    completed_bookings = models.PositiveIntegerField(default=0)

    last_active = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'technician_profiles'

    def __str__(self):
        return f"{self.display_name} ({self.status})"

    @property
    def display_name(self):
        return self.user.display_name

    @property
    def location(self):
        return to_location(self.latitude, self.longitude)

    def handles(self, service_type: str) -> bool:
        """Case-insensitive substring match against the specialization list."""
        needle = (service_type or "").strip().lower()
        if not needle:
            return False
        return any(needle in str(specialization).lower() for specialization in self.specializations or [])
