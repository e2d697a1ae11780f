from django.contrib import admin

from .models import Equipment, Operation, OTRoom, ResourceAssignment, Staff


@admin.register(OTRoom)
class OTRoomAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active', 'updated_at')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialization')
    search_fields = ('user__username', 'user__email', 'specialization')


@admin.register(Equipment)
class EquipmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'status', 'updated_at')
    list_filter = ('status',)
    search_fields = ('name',)


class ResourceAssignmentInline(admin.TabularInline):
    model = ResourceAssignment
    extra = 0
    fields = ('staff', 'equipment', 'assigned_by', 'assigned_at', 'notified')
    readonly_fields = ('assigned_at',)


@admin.register(Operation)
class OperationAdmin(admin.ModelAdmin):
    list_display = ('operation_name', 'room', 'scheduled_date', 'scheduled_start', 'duration_minutes', 'status')
    list_filter = ('status', 'room')
    date_hierarchy = 'scheduled_date'
    search_fields = ('operation_name',)
    readonly_fields = ('scheduled_end',)
    inlines = [ResourceAssignmentInline]
