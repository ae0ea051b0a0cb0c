from rest_framework import serializers

from accounts.serializers import UserSerializer
from technicians.models import TechnicianProfile


class TechnicianProfileSerializer(serializers.ModelSerializer):
    """
    Full technician profile serializer
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = TechnicianProfile
        fields = [
            "id",
            "user",
            "specializations",
            "status",
            "is_available",
            "latitude",
            "longitude",
            "service_radius_km",
            "average_rating",
            "rating_count",
            "completed_bookings",
            "last_active",
        ]
        read_only_fields = fields


class TechnicianBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of technician info for booking details
    (sent to customers once a technician is assigned).
    """
    name = serializers.CharField(source="display_name", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = TechnicianProfile
        fields = [
            "id",
            "name",
            "phone_number",
            "specializations",
            "average_rating",
        ]


class AvailabilityToggleSerializer(serializers.Serializer):
    """Response shape for the availability toggle."""
    isAvailable = serializers.BooleanField(source="is_available")
    status = serializers.CharField()
    canToggle = serializers.SerializerMethodField()

    def get_canToggle(self, obj):
        return obj.status == TechnicianProfile.STATUS_ACTIVE
