from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.utils import to_location
from technicians.models import TechnicianProfile


class Booking(models.Model):
    """A customer's confirmed request for a repair service"""

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_ASSIGNED = 'assigned'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Bookings still waiting for a technician
    OPEN_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
    # Bookings a technician is working on
    ACTIVE_STATUSES = (STATUS_ASSIGNED, STATUS_IN_PROGRESS)

    PAYMENT_CHOICES = [
        ('cash', 'Cash'),
        ('online', 'Online'),
    ]

    REFERENCE_FORMAT = "BK{:06d}"

    booking_reference = models.CharField(max_length=20, unique=True, null=True, blank=True)

    # Customer
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookings'
    )
    customer_name = models.CharField(max_length=120, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    customer_email = models.EmailField(blank=True)

    # Service
    service_type = models.CharField(max_length=60)
    service_name = models.CharField(max_length=120, blank=True)
    scheduled_date = models.DateField(null=True, blank=True)
    scheduled_time = models.TimeField(null=True, blank=True)

    # Address & location
    address = models.TextField(blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # Money
    amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_CHOICES, default='cash')

    # Status & dispatch
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    no_technician_available = models.BooleanField(default=False)
    dispatch_attempt = models.PositiveIntegerField(default=0)

    technician = models.ForeignKey(
        TechnicianProfile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bookings'
    )

    notes = models.TextField(blank=True)
    earnings_snapshot = models.JSONField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(blank=True)
    cancelled_by = models.CharField(max_length=20, blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'technician'], name='booking_status_tech_idx'),
        ]

    def __str__(self):
        return f"Booking {self.booking_reference or self.pk} - {self.service_type} - {self.status}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if not self.booking_reference:
            self.booking_reference = self.REFERENCE_FORMAT.format(self.pk)
            Booking.objects.filter(pk=self.pk).update(booking_reference=self.booking_reference)

    @property
    def location(self):
        return to_location(self.latitude, self.longitude)

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES and self.technician_id is None


class JobOffer(models.Model):
    """A time-boxed proposal of one booking to one technician."""

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_EXPIRED = 'expired'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name='offers'
    )
    technician = models.ForeignKey(
        TechnicianProfile,
        on_delete=models.CASCADE,
        related_name='job_offers'
    )
    attempt = models.PositiveIntegerField(default=1)

    # Monetary terms, snapshotted when the offer is made
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    technician_earnings = models.DecimalField(max_digits=10, decimal_places=2)
    admin_commission = models.DecimalField(max_digits=10, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)

    distance_km = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Technicians who already declined or let this booking expire, in order
    previous_declines = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()
    responded_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'job_offers'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['booking'],
                condition=Q(status='pending'),
                name='unique_pending_offer_per_booking'
            )
        ]
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='job_offer_status_expiry_idx'),
        ]

    def __str__(self):
        return f"Offer #{self.pk} - Booking {self.booking_id} -> Technician {self.technician_id} ({self.status})"

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at

    def time_left_seconds(self, now=None) -> int:
        remaining = (self.expires_at - (now or timezone.now())).total_seconds()
        return max(0, int(remaining))


class EarningsRecord(models.Model):
    """Commission split written exactly once when a booking completes."""

    PAYOUT_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
    ]

    booking = models.OneToOneField(
        Booking,
        on_delete=models.PROTECT,
        related_name='earnings_record'
    )
    technician = models.ForeignKey(
        TechnicianProfile,
        on_delete=models.PROTECT,
        related_name='earnings'
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    technician_earnings = models.DecimalField(max_digits=10, decimal_places=2)
    admin_commission = models.DecimalField(max_digits=10, decimal_places=2)
    payout_status = models.CharField(max_length=20, choices=PAYOUT_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'earnings'
        ordering = ['-created_at']

    def __str__(self):
        return f"Earnings for booking {self.booking_id}: {self.technician_earnings}"


class Rating(models.Model):
    """Customer rating of a completed booking."""

    booking = models.OneToOneField(
        Booking,
        on_delete=models.CASCADE,
        related_name='rating'
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ratings_given'
    )
    technician = models.ForeignKey(
        TechnicianProfile,
        on_delete=models.CASCADE,
        related_name='ratings'
    )
    score = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'

    def __str__(self):
        return f"{self.score}/5 for booking {self.booking_id}"
