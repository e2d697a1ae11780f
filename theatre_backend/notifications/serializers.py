from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    operation_name = serializers.CharField(source='operation.operation_name', read_only=True)
    scheduled_date = serializers.DateField(source='operation.scheduled_date', read_only=True)
    scheduled_start = serializers.DateTimeField(source='operation.scheduled_start', read_only=True)
    room_name = serializers.CharField(source='operation.room.name', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id',
            'staff',
            'operation',
            'operation_name',
            'scheduled_date',
            'scheduled_start',
            'room_name',
            'notification_text',
            'notification_time',
            'is_read',
        ]
        read_only_fields = fields
