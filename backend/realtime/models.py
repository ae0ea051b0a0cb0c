from django.conf import settings
from django.db import models


class Notification(models.Model):
    """A message for one user, or for every admin when recipient is empty."""

    RECIPIENT_CUSTOMER = 'customer'
    RECIPIENT_TECHNICIAN = 'technician'
    RECIPIENT_ADMIN = 'admin'

    RECIPIENT_CHOICES = [
        (RECIPIENT_CUSTOMER, 'Customer'),
        (RECIPIENT_TECHNICIAN, 'Technician'),
        (RECIPIENT_ADMIN, 'Admin'),
    ]

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications'
    )
    recipient_type = models.CharField(max_length=20, choices=RECIPIENT_CHOICES)
    event_type = models.CharField(max_length=50)
    title = models.CharField(max_length=120)
    message = models.TextField()
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx'),
        ]

    def __str__(self):
        return f"[{self.recipient_type}] {self.title}"
