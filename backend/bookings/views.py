from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.utils import timezone

from accounts.permissions import IsCustomer, IsPlatformAdmin, IsTechnician
from common.caller import Caller
from common.exception_handler import service_error_response
from services.job_management import (
    ServiceError,
    cancel_assigned,
    cancel_by_customer,
    complete_booking,
    create_booking,
    dispatch_booking,
    get_customer_bookings,
    get_technician_for,
    start_booking,
    submit_rating,
)
from services.matching import (
    accept_offer,
    assign_by_admin,
    get_assignment_candidates,
    get_pending_offers_for,
    reject_offer,
)
from technicians.serializers import TechnicianBasicSerializer
from .serializers import (
    AdminAssignSerializer,
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingNotesSerializer,
    BookingSerializer,
    JobOfferSerializer,
    OfferRejectSerializer,
    RatingCreateSerializer,
    RatingSerializer,
)


def _offer_earnings(offer):
    return {
        'totalAmount': offer.total_amount,
        'technicianEarnings': offer.technician_earnings,
        'adminCommission': offer.admin_commission,
        'commissionPercentage': offer.commission_percentage,
    }


# ==================== Customer Booking APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCustomer])
def create_booking_view(request):
    """Confirm checkout: store the booking and start looking for a technician"""
    serializer = BookingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = create_booking(Caller.from_request(request), **serializer.validated_data)
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'booking': BookingSerializer(result.booking).data,
        'dispatchState': result.dispatch_state,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCustomer])
def my_bookings(request):
    bookings = get_customer_bookings(Caller.from_request(request))
    return Response({
        'success': True,
        'bookings': BookingSerializer(bookings, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCustomer])
def customer_cancel_booking(request, booking_id):
    """Cancel a booking by its customer (before or after assignment)"""
    serializer = BookingCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = cancel_by_customer(
            Caller.from_request(request),
            booking_id,
            serializer.validated_data['reason'],
        )
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'booking': BookingSerializer(result.booking).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCustomer])
def rate_booking(request, booking_id):
    serializer = RatingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        rating = submit_rating(
            Caller.from_request(request),
            booking_id,
            serializer.validated_data['rating'],
            serializer.validated_data['comment'],
        )
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': 'Thank you for your feedback',
        'rating': RatingSerializer(rating).data,
    }, status=status.HTTP_201_CREATED)


# ==================== Technician Job Offer APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTechnician])
def pending_offers(request):
    """Live job offers for the calling technician, with time left to respond"""
    try:
        technician = get_technician_for(Caller.from_request(request))
    except ServiceError as exc:
        return service_error_response(exc)

    now = timezone.now()
    offers = get_pending_offers_for(technician, now=now)
    return Response({
        'success': True,
        'offers': JobOfferSerializer(offers, many=True, context={'now': now}).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTechnician])
def accept_job_offer(request, offer_id):
    """Accept a job offer that was sent to this technician."""
    try:
        result = accept_offer(Caller.from_request(request), offer_id)
    except ServiceError as exc:
        return service_error_response(exc)

    offer = result.offer
    return Response({
        'success': True,
        'message': result.message,
        'job': {
            'id': offer.id,
            'bookingId': result.booking.id,
            'status': offer.status,
            'earnings': _offer_earnings(offer),
        },
        'booking': BookingSerializer(result.booking).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTechnician])
def reject_job_offer(request, offer_id):
    """Decline a pending job offer; the booking moves on to the next technician."""
    serializer = OfferRejectSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = reject_offer(Caller.from_request(request), offer_id, serializer.validated_data['reason'])
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'forwardedToNextTechnician': result.forwarded,
    })


# ==================== Technician Booking APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTechnician])
def start_job(request, booking_id):
    try:
        result = start_booking(Caller.from_request(request), booking_id)
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'booking': BookingSerializer(result.booking).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTechnician])
def complete_job(request, booking_id):
    """Complete an assigned booking and return the earnings breakdown"""
    serializer = BookingNotesSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = complete_booking(
            Caller.from_request(request),
            booking_id,
            serializer.validated_data['notes'] or None,
        )
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'earnings': result.split.as_dict(),
        'booking': BookingSerializer(result.booking).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTechnician])
def technician_cancel_job(request, booking_id):
    serializer = BookingNotesSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = cancel_assigned(
            Caller.from_request(request),
            booking_id,
            serializer.validated_data['notes'],
        )
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'booking': BookingSerializer(result.booking).data,
    })


# ==================== Admin APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlatformAdmin])
def redispatch_booking(request, booking_id):
    """Start a new dispatch attempt for a booking no technician took"""
    try:
        result = dispatch_booking(booking_id)
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'dispatchState': result.dispatch_state,
        'booking': BookingSerializer(result.booking).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlatformAdmin])
def assignment_candidates(request, booking_id):
    """Technicians who could take an open booking, closest or best rated first"""
    try:
        candidates = get_assignment_candidates(booking_id)
    except ServiceError as exc:
        return service_error_response(exc)

    technicians = []
    for technician in candidates:
        data = TechnicianBasicSerializer(technician).data
        data['status'] = technician.status
        data['isAvailable'] = technician.is_available
        data['distanceKm'] = technician.distance_km
        technicians.append(data)

    return Response({
        'success': True,
        'technicians': technicians,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlatformAdmin])
def assign_technician(request, booking_id):
    serializer = AdminAssignSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = assign_by_admin(
            Caller.from_request(request),
            booking_id,
            serializer.validated_data['technicianId'],
        )
    except ServiceError as exc:
        return service_error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'booking': BookingSerializer(result.booking).data,
    })
