from rest_framework import serializers

from technicians.serializers import TechnicianBasicSerializer
from .models import Booking, JobOffer, Rating


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for Bookings"""
    technician = TechnicianBasicSerializer(read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'booking_reference', 'customer_name', 'customer_phone', 'customer_email',
                  'service_type', 'service_name', 'scheduled_date', 'scheduled_time',
                  'address', 'latitude', 'longitude', 'amount', 'payment_method',
                  'status', 'no_technician_available', 'technician', 'notes',
                  'earnings_snapshot', 'created_at', 'assigned_at', 'started_at',
                  'completed_at', 'cancelled_at', 'cancellation_reason', 'cancelled_by']
        read_only_fields = fields


class BookingSummarySerializer(serializers.ModelSerializer):
    """Compact booking data embedded in pushed notifications"""

    class Meta:
        model = Booking
        fields = ['id', 'booking_reference', 'service_type', 'service_name', 'status',
                  'scheduled_date', 'scheduled_time', 'address', 'amount', 'technician_id']


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for checkout"""
    service_type = serializers.CharField(max_length=60)
    service_name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    scheduled_date = serializers.DateField(required=False, allow_null=True)
    scheduled_time = serializers.TimeField(required=False, allow_null=True)
    address = serializers.CharField(required=False, allow_blank=True, default="")
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=['cash', 'online'], default='cash')
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    customer_name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")


class JobOfferSerializer(serializers.ModelSerializer):
    """A live offer as shown to the technician it is addressed to"""
    bookingId = serializers.IntegerField(source='booking_id', read_only=True)
    booking = serializers.SerializerMethodField()
    expiresAt = serializers.DateTimeField(source='expires_at', read_only=True)
    timeLeftSeconds = serializers.SerializerMethodField()
    earnings = serializers.SerializerMethodField()

    class Meta:
        model = JobOffer
        fields = ['id', 'bookingId', 'booking', 'status', 'distance_km', 'expiresAt',
                  'timeLeftSeconds', 'earnings']

    def get_booking(self, obj):
        return BookingSummarySerializer(obj.booking).data

    def get_timeLeftSeconds(self, obj):
        return obj.time_left_seconds(self.context.get('now'))

    def get_earnings(self, obj):
        return {
            'totalAmount': obj.total_amount,
            'technicianEarnings': obj.technician_earnings,
            'adminCommission': obj.admin_commission,
            'commissionPercentage': obj.commission_percentage,
        }


class OfferRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BookingNotesSerializer(serializers.Serializer):
    """Technician complete/cancel body"""
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AdminAssignSerializer(serializers.Serializer):
    technicianId = serializers.IntegerField(min_value=1)


class BookingCancelSerializer(serializers.Serializer):
    """Serializer for booking cancellation by the customer"""
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RatingSerializer(serializers.ModelSerializer):
    rating = serializers.IntegerField(source='score')

    class Meta:
        model = Rating
        fields = ['id', 'booking', 'technician', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class RatingCreateSerializer(serializers.Serializer):
    # Range checks happen in the ratings service
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True, default="")
