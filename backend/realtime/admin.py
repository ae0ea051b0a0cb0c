from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient_type', 'recipient', 'event_type', 'title', 'booking', 'is_read', 'created_at')
    list_filter = ('recipient_type', 'event_type', 'is_read')
    search_fields = ('title', 'message', 'recipient__username')
    raw_id_fields = ('recipient', 'booking')
