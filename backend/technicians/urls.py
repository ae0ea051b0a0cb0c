from django.urls import path
from .views import (
    TechnicianProfileView,
    AvailabilityToggleView,
    AvailableJobsView,
    TechnicianBookingsView,
    TechnicianBookingDetailView,
    TechnicianEarningsView,
)

urlpatterns = [
    path("profile/", TechnicianProfileView.as_view(), name="technician-profile"),
    path("availability/toggle/", AvailabilityToggleView.as_view(), name="technician-availability-toggle"),
    path("available-jobs/", AvailableJobsView.as_view(), name="technician-available-jobs"),
    path("bookings/", TechnicianBookingsView.as_view(), name="technician-bookings"),
    path("bookings/<int:booking_id>/", TechnicianBookingDetailView.as_view(), name="technician-booking-detail"),
    path("earnings/", TechnicianEarningsView.as_view(), name="technician-earnings"),
]
