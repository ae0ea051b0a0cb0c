from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsPlatformAdmin
from common.caller import Caller
from common.exception_handler import service_error_response
from services.commission import get_commission_history, get_commission_percentage, update_commission_rate
from services.job_management import ServiceError
from .serializers import CommissionRateChangeSerializer, CommissionRateSerializer


class CommissionRateView(APIView):
    """
    GET: current commission percentage (any signed-in user, technicians
         see it next to their offers)
    POST: {"rate": 25} - admin only
    """

    def get_permissions(self):
        if self.request.method == "POST":
            return [IsAuthenticated(), IsPlatformAdmin()]
        return [IsAuthenticated()]

    def get(self, request):
        return Response({
            "success": True,
            "commissionRate": get_commission_percentage(),
        })

    def post(self, request):
        serializer = CommissionRateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            setting = update_commission_rate(Caller.from_request(request), serializer.validated_data["rate"])
        except ServiceError as exc:
            return service_error_response(exc)

        return Response({
            "success": True,
            "message": "Commission rate updated successfully",
            "commissionRate": setting.percentage,
        })


class CommissionHistoryView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        try:
            limit = max(1, min(int(request.query_params.get("limit", 20)), 100))
        except ValueError:
            limit = 20

        history = get_commission_history(limit)
        return Response({
            "success": True,
            "history": CommissionRateChangeSerializer(history, many=True).data,
        })
