"""Tells what to show in the Django admin interface for bookings app"""

from django.contrib import admin
from .models import Booking, JobOffer, EarningsRecord, Rating


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['booking_reference', 'customer', 'service_type', 'technician', 'status',
                    'no_technician_available', 'amount', 'created_at', 'completed_at']
    list_filter = ['status', 'no_technician_available', 'payment_method', 'created_at']
    search_fields = ['booking_reference', 'customer__username', 'customer_name', 'service_type', 'address']
    readonly_fields = ['booking_reference', 'dispatch_attempt', 'earnings_snapshot', 'created_at',
                       'assigned_at', 'started_at', 'completed_at', 'cancelled_at']
    date_hierarchy = 'created_at'


@admin.register(JobOffer)
class JobOfferAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "technician", "attempt", "status", "technician_earnings", "created_at", "expires_at", "responded_at")
    list_filter = ("status",)
    search_fields = ("booking__booking_reference", "technician__user__username")


@admin.register(EarningsRecord)
class EarningsRecordAdmin(admin.ModelAdmin):
    list_display = ("booking", "technician", "total_amount", "technician_earnings", "admin_commission", "payout_status", "created_at")
    list_filter = ("payout_status",)


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("booking", "technician", "customer", "score", "created_at")
