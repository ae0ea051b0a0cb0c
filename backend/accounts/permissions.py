# accounts/permissions.py
from rest_framework.permissions import BasePermission

from accounts.models import User


class _RolePermission(BasePermission):
    """
    Allows access only to authenticated users carrying `role`.
    Keeps role check logic centralized.
    """
    role = None
    message = "Unauthorized access"

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsCustomer(_RolePermission):
    role = User.ROLE_CUSTOMER
    message = "Unauthorized: Customer role required"


class IsTechnician(_RolePermission):
    role = User.ROLE_TECHNICIAN
    message = "Unauthorized: Technician role required"


class IsPlatformAdmin(_RolePermission):
    role = User.ROLE_ADMIN
    message = "Unauthorized: Admin role required"

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if user and user.is_authenticated and user.is_staff:
            return True
        return super().has_permission(request, view)
