from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsTechnician
from bookings.serializers import BookingSerializer
from common.caller import Caller
from common.exception_handler import service_error_response
from services.job_management import ServiceError, get_technician_for
from technicians import services
from technicians.serializers import AvailabilityToggleSerializer, TechnicianProfileSerializer


class TechnicianProfileView(APIView):
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request):
        try:
            profile = get_technician_for(Caller.from_request(request))
        except ServiceError as exc:
            return service_error_response(exc)

        serializer = TechnicianProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)


class AvailabilityToggleView(APIView):
    """
    GET: current on/off duty state
    POST: flip it (only while the account is active)
    """
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request):
        try:
            profile = get_technician_for(Caller.from_request(request))
        except ServiceError as exc:
            return service_error_response(exc)

        return Response({"success": True, **AvailabilityToggleSerializer(profile).data})

    def post(self, request):
        try:
            profile = services.toggle_availability(Caller.from_request(request))
        except ServiceError as exc:
            return service_error_response(exc)

        return Response({
            "success": True,
            "message": "You are now available for jobs" if profile.is_available else "You are now off duty",
            **AvailabilityToggleSerializer(profile).data,
        })


#    Offers are pushed over WS; this is the read-only job board.
class AvailableJobsView(APIView):
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request):
        try:
            board = services.list_available_jobs(Caller.from_request(request))
        except ServiceError as exc:
            return service_error_response(exc)

        jobs = [
            {
                **BookingSerializer(job["booking"]).data,
                "distanceKm": job["distance_km"],
                "offeredToYou": job["offered_to_you"],
            }
            for job in board.jobs
        ]
        return Response({
            "success": True,
            "jobs": jobs,
            "count": len(jobs),
            "message": board.message,
        })


class TechnicianBookingsView(APIView):
    """
    Jobs assigned to the technician.

    GET ?status=active|history|<booking status>
    """
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request):
        try:
            bookings = services.get_technician_bookings(
                Caller.from_request(request),
                request.query_params.get("status") or None,
            )
        except ServiceError as exc:
            return service_error_response(exc)

        return Response({
            "success": True,
            "bookings": BookingSerializer(bookings, many=True).data,
            "count": len(bookings),
        })


class TechnicianBookingDetailView(APIView):
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request, booking_id):
        try:
            booking = services.get_technician_booking(Caller.from_request(request), booking_id)
        except ServiceError as exc:
            return service_error_response(exc)

        return Response({"success": True, "booking": BookingSerializer(booking).data})


class TechnicianEarningsView(APIView):
    permission_classes = [IsAuthenticated, IsTechnician]

    def get(self, request):
        try:
            summary = services.get_earnings_summary(Caller.from_request(request))
        except ServiceError as exc:
            return service_error_response(exc)

        recent = [
            {
                "bookingId": record.booking_id,
                "bookingReference": record.booking.booking_reference,
                "totalAmount": record.total_amount,
                "technicianEarnings": record.technician_earnings,
                "adminCommission": record.admin_commission,
                "commissionPercentage": record.commission_percentage,
                "payoutStatus": record.payout_status,
                "createdAt": record.created_at,
            }
            for record in summary.pop("recent")
        ]
        return Response({"success": True, **summary, "recent": recent})
