from django.contrib import admin
from .models import CommissionSetting, CommissionRateChange


@admin.register(CommissionSetting)
class CommissionSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "percentage", "updated_at", "updated_by")
    readonly_fields = ("updated_at",)


@admin.register(CommissionRateChange)
class CommissionRateChangeAdmin(admin.ModelAdmin):
    list_display = ("old_rate", "new_rate", "changed_by", "changed_at")
    readonly_fields = ("old_rate", "new_rate", "changed_by", "changed_at")
