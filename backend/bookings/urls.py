from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    # Customer APIs
    path('bookings/', views.create_booking_view, name='create-booking'),
    path('bookings/mine/', views.my_bookings, name='my-bookings'),
    path('bookings/<int:booking_id>/customer-cancel/', views.customer_cancel_booking, name='customer-cancel'),
    path('bookings/<int:booking_id>/rating/', views.rate_booking, name='rate-booking'),

    # Technician booking actions
    path('bookings/<int:booking_id>/start/', views.start_job, name='start-job'),
    path('bookings/<int:booking_id>/complete/', views.complete_job, name='complete-job'),
    path('bookings/<int:booking_id>/cancel/', views.technician_cancel_job, name='technician-cancel'),

    # Admin
    path('bookings/<int:booking_id>/dispatch/', views.redispatch_booking, name='redispatch-booking'),
    path('bookings/<int:booking_id>/candidates/', views.assignment_candidates, name='assignment-candidates'),
    path('bookings/<int:booking_id>/assign/', views.assign_technician, name='assign-technician'),

    # Job offers
    path('jobs/offers/', views.pending_offers, name='pending-offers'),
    path('jobs/<int:offer_id>/accept/', views.accept_job_offer, name='accept-offer'),
    path('jobs/<int:offer_id>/reject/', views.reject_job_offer, name='reject-offer'),
]
