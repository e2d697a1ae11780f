from rest_framework import serializers

from .models import Equipment, Operation, OTRoom, Staff


class OTRoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = OTRoom
        fields = [
            'id',
            'name',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'name': {'validators': []}}

    def validate_name(self, value):
        name = (value or '').strip()
        if not name:
            raise serializers.ValidationError('Room name is required.')
        qs = OTRoom.objects.filter(name__iexact=name)
        if self.instance is not None:
            qs = qs.exclude(id=self.instance.id)
        if qs.exists():
            raise serializers.ValidationError('Room name already exists.')
        return name


class StaffSerializer(serializers.ModelSerializer):
    staff_id = serializers.IntegerField(source='id', read_only=True)
    user_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = Staff
        fields = ['staff_id', 'user_id', 'username', 'email', 'name', 'specialization']


class EquipmentSerializer(serializers.ModelSerializer):
    equipment_id = serializers.IntegerField(source='id', read_only=True)

    class Meta:
        model = Equipment
        fields = ['equipment_id', 'name', 'status']


class OperationSerializer(serializers.ModelSerializer):
    room_id = serializers.IntegerField(read_only=True)
    room_name = serializers.CharField(source='room.name', read_only=True)
    scheduler_id = serializers.IntegerField(read_only=True)
    scheduler_name = serializers.SerializerMethodField()
    staff_count = serializers.SerializerMethodField()
    equipment_count = serializers.SerializerMethodField()

    class Meta:
        model = Operation
        fields = [
            'id',
            'operation_name',
            'description',
            'scheduled_date',
            'scheduled_start',
            'scheduled_end',
            'duration_minutes',
            'room_id',
            'room_name',
            'scheduler_id',
            'scheduler_name',
            'status',
            'staff_count',
            'equipment_count',
            'created_at',
            'updated_at',
        ]

    def get_scheduler_name(self, obj):
        return getattr(obj.scheduler, 'username', '')

    # List views annotate the counts; single objects fall back to a query.
    def get_staff_count(self, obj):
        count = getattr(obj, 'staff_count', None)
        if count is None:
            count = obj.assignments.filter(staff__isnull=False).count()
        return count

    def get_equipment_count(self, obj):
        count = getattr(obj, 'equipment_count', None)
        if count is None:
            count = obj.assignments.filter(equipment__isnull=False).count()
        return count


class OperationCreateSerializer(serializers.Serializer):
    """Field shapes only. Presence, time parsing and "not in the past" are
    checked by the scheduling engine so every caller gets the same errors."""

    operation_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    scheduled_date = serializers.CharField(required=False, allow_blank=True)
    scheduled_start = serializers.CharField(required=False, allow_blank=True)
    duration_minutes = serializers.IntegerField(required=False, allow_null=True)
    room_id = serializers.IntegerField(required=False, allow_null=True)
    staff_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    equipment_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)



def operation_payload(operation: Operation) -> dict:
    """Plain dict of an operation for responses and real-time events."""
    return dict(OperationSerializer(operation).data)
