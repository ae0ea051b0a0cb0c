from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from technicians.models import TechnicianProfile


class TechnicianProfileInline(admin.StackedInline):
    """Technicians are provisioned here: role plus a profile row."""
    model = TechnicianProfile
    can_delete = False
    fk_name = "user"
    fields = ("status", "is_available", "specializations", "latitude", "longitude", "service_radius_km")
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "display_name", "role", "phone_number", "is_active"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "phone_number", "first_name", "last_name"]
    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("RepairHub", {"fields": ("role", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("RepairHub", {"fields": ("role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is not None and obj.role == User.ROLE_TECHNICIAN:
            return [TechnicianProfileInline]
        return []
