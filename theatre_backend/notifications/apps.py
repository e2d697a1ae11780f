from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'theatre_backend.notifications'
    label = 'notifications'
    verbose_name = 'Staff Notifications'
