"""Notification URLs.

Prefix: /api/
Routes:
    GET  /api/notifications/               - latest 50 for the requesting staff member
    POST /api/notifications/<id>/read/     - mark one as read
    POST /api/notifications/read-all/      - mark all as read
    GET  /api/notifications/unread-count/  - unread counter
"""

from django.urls import path

from .views import (
    NotificationListView,
    NotificationReadAllView,
    NotificationReadView,
    UnreadCountView,
)

app_name = 'notifications'

urlpatterns = [
    path('notifications/', NotificationListView.as_view(), name='list'),
    path('notifications/read-all/', NotificationReadAllView.as_view(), name='read_all'),
    path('notifications/unread-count/', UnreadCountView.as_view(), name='unread_count'),
    path('notifications/<int:pk>/read/', NotificationReadView.as_view(), name='read'),
]
