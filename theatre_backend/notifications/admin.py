from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('staff', 'operation', 'notification_time', 'is_read')
    list_filter = ('is_read',)
    search_fields = ('notification_text',)
