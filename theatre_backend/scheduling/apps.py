from django.apps import AppConfig


class SchedulingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'theatre_backend.scheduling'
    label = 'scheduling'
    verbose_name = 'OT Scheduling'
