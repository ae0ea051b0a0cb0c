from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import RegisterSerializer, LoginSerializer, UserSerializer, issue_tokens


class _PublicView(APIView):
    permission_classes = (AllowAny,)
    authentication_classes = []

    @staticmethod
    def signed_in(user, message, status_code=status.HTTP_200_OK):
        return Response({
            "success": True,
            "message": message,
            "user": UserSerializer(user).data,
            "tokens": issue_tokens(user),
        }, status=status_code)


class RegisterView(_PublicView):
    """
    Customer self-registration.

    POST {"username", "password", "email"?, "first_name"?, "last_name"?, "phone_number"?}
    """

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        return self.signed_in(serializer.save(), "Account created", status.HTTP_201_CREATED)


class LoginView(_PublicView):
    """POST {"username", "password"} for customers, technicians and admins alike."""

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self.signed_in(serializer.validated_data, "Login successful")


class RefreshTokenView(_PublicView):
    def post(self, request):
        raw = request.data.get("refresh")
        if not raw:
            return Response({"error": "Refresh token is required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            access = RefreshToken(raw).access_token
        except TokenError:
            return Response({"error": "Invalid refresh token"}, status=status.HTTP_401_UNAUTHORIZED)

        return Response({"access": str(access)})


class MeView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request):
        return Response({"success": True, "user": UserSerializer(request.user).data})
