from rest_framework import serializers

from .models import CommissionRateChange


class CommissionRateSerializer(serializers.Serializer):
    # Range is validated by the commission service
    rate = serializers.DecimalField(max_digits=6, decimal_places=2)


class CommissionRateChangeSerializer(serializers.ModelSerializer):
    changedBy = serializers.SerializerMethodField()
    oldRate = serializers.DecimalField(source='old_rate', max_digits=5, decimal_places=2, read_only=True)
    newRate = serializers.DecimalField(source='new_rate', max_digits=5, decimal_places=2, read_only=True)
    changedAt = serializers.DateTimeField(source='changed_at', read_only=True)

    class Meta:
        model = CommissionRateChange
        fields = ['id', 'oldRate', 'newRate', 'changedBy', 'changedAt']

    def get_changedBy(self, obj):
        return obj.changed_by.display_name if obj.changed_by else None
