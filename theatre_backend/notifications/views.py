"""Staff notification inbox.

Every endpoint works on the requesting user's own staff profile; users
without one get 403.
"""

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from theatre_backend.core.utils import log_action
from theatre_backend.scheduling.models import Staff

from .models import Notification
from .permissions import NotificationPermission
from .serializers import NotificationSerializer

INBOX_LIMIT = 50


class StaffInboxMixin:
    permission_classes = [NotificationPermission]

    def get_staff(self, request):
        return Staff.objects.filter(user=request.user).first()

    def forbidden(self):
        return Response({'detail': 'Access denied. Staff profile required.'}, status=status.HTTP_403_FORBIDDEN)


class NotificationListView(StaffInboxMixin, APIView):
    """GET /api/notifications/ - latest 50 notifications."""

    def get(self, request, *args, **kwargs):
        staff = self.get_staff(request)
        if staff is None:
            return self.forbidden()

        qs = (
            Notification.objects.select_related('operation__room')
            .filter(staff=staff)
            .order_by('-notification_time', '-id')[:INBOX_LIMIT]
        )
        data = NotificationSerializer(qs, many=True).data
        log_action(request.user, 'notification_list', staff.id)
        return Response({'notifications': data, 'count': len(data)})


class NotificationReadView(StaffInboxMixin, APIView):
    """POST/PUT /api/notifications/<id>/read/"""

    def post(self, request, pk, *args, **kwargs):
        staff = self.get_staff(request)
        if staff is None:
            return self.forbidden()

        notification = get_object_or_404(Notification, pk=pk, staff=staff)
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
        log_action(request.user, 'notification_read', notification.id)
        return Response(NotificationSerializer(notification).data)

    put = post


class NotificationReadAllView(StaffInboxMixin, APIView):
    """POST/PUT /api/notifications/read-all/"""

    def post(self, request, *args, **kwargs):
        staff = self.get_staff(request)
        if staff is None:
            return self.forbidden()

        updated = Notification.objects.filter(staff=staff, is_read=False).update(is_read=True)
        log_action(request.user, 'notification_read_all', staff.id, meta={'updated': updated})
        return Response({'updated': updated})

    put = post


class UnreadCountView(StaffInboxMixin, APIView):
    """GET /api/notifications/unread-count/"""

    def get(self, request, *args, **kwargs):
        staff = self.get_staff(request)
        if staff is None:
            return self.forbidden()

        count = Notification.objects.filter(staff=staff, is_read=False).count()
        return Response({'unread_count': count})
