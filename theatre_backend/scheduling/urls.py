"""Scheduling URLs.

Prefix: /api/
Routes:
    GET/POST /api/operations/                         - list / schedule
    GET      /api/operations/available-resources/     - free staff and equipment
    POST     /api/operations/<id>/cancel/             - cancel, release equipment
    POST     /api/operations/<id>/complete/           - complete, release equipment
    GET      /api/operations/staff/daily-schedule/    - staff member's day
    GET      /api/operations/weekly-assignments/      - per-staff weekly workload
    GET/POST /api/ot-rooms/                           - rooms
    GET      /api/ot-rooms/active/                    - active rooms
    GET/PATCH/DELETE /api/ot-rooms/<id>/              - room detail
    POST     /api/ot-rooms/<id>/toggle/               - toggle is_active
"""

from django.urls import path

from .views import (
	ActiveOTRoomListView,
	AvailableResourcesView,
	OperationCancelView,
	OperationCompleteView,
	OperationListCreateView,
	OTRoomDetailView,
	OTRoomListCreateView,
	OTRoomToggleView,
	StaffDailyScheduleView,
	WeeklyAssignmentsView,
)

app_name = 'scheduling'

urlpatterns = [
	path('operations/', OperationListCreateView.as_view(), name='operations_list'),
	path('operations/available-resources/', AvailableResourcesView.as_view(), name='available_resources'),
	path('operations/staff/daily-schedule/', StaffDailyScheduleView.as_view(), name='staff_daily_schedule'),
	path('operations/weekly-assignments/', WeeklyAssignmentsView.as_view(), name='weekly_assignments'),
	path('operations/<int:pk>/cancel/', OperationCancelView.as_view(), name='operation_cancel'),
	path('operations/<int:pk>/complete/', OperationCompleteView.as_view(), name='operation_complete'),

	path('ot-rooms/', OTRoomListCreateView.as_view(), name='ot_rooms_list'),
	path('ot-rooms/active/', ActiveOTRoomListView.as_view(), name='ot_rooms_active'),
	path('ot-rooms/<int:pk>/', OTRoomDetailView.as_view(), name='ot_room_detail'),
	path('ot-rooms/<int:pk>/toggle/', OTRoomToggleView.as_view(), name='ot_room_toggle'),
]
